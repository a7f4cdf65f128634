from __future__ import annotations

from passlib.context import CryptContext

from authcore.application.ports.password_hasher_port import PasswordHasherPort


# New hashes are argon2; bcrypt hashes from older accounts still verify and are
# reported as needing a rehash.
_CONTEXT = CryptContext(schemes=["argon2", "bcrypt"], default="argon2", deprecated=["bcrypt"])


class Argon2PasswordHasher(PasswordHasherPort):
    def __init__(self, context: CryptContext = _CONTEXT):
        self._context = context

    def hash(self, plain_password: str) -> str:
        return self._context.hash(plain_password)

    def verify(self, plain_password: str, password_hash: str) -> bool:
        if not password_hash or self._context.identify(password_hash) is None:
            return False
        try:
            return self._context.verify(plain_password, password_hash)
        except ValueError:
            # Recognised prefix with a corrupt body.
            return False

    def needs_rehash(self, password_hash: str) -> bool:
        return self._context.identify(password_hash) is not None and self._context.needs_update(password_hash)
