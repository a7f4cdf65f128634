from __future__ import annotations

from authcore.infrastructure.security.password_hasher import Argon2PasswordHasher


LEGACY_BCRYPT_HASH = "$2b$12$R9h/cIPz0gi.URNNX3kh2OPST9/PgBkqquzi.Ss7KIUgO2t0jWMUW"


def test_hash_and_verify():
    hasher = Argon2PasswordHasher()
    password_hash = hasher.hash("Str0ngPassw0rd!!")

    assert password_hash != "Str0ngPassw0rd!!"
    assert password_hash.startswith("$argon2")
    assert hasher.verify("Str0ngPassw0rd!!", password_hash) is True
    assert hasher.verify("wrong-password!!", password_hash) is False
    assert hasher.needs_rehash(password_hash) is False


def test_unknown_or_empty_hash_does_not_verify():
    hasher = Argon2PasswordHasher()
    assert hasher.verify("whatever", "") is False
    assert hasher.verify("whatever", "not-a-known-hash") is False
    assert hasher.needs_rehash("not-a-known-hash") is False


def test_bcrypt_hashes_are_flagged_for_rehash():
    assert Argon2PasswordHasher().needs_rehash(LEGACY_BCRYPT_HASH) is True
