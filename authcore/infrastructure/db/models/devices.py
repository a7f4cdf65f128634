from __future__ import annotations

from sqlalchemy import ForeignKey, Index, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from authcore.infrastructure.db.engine import Base


class CLIDeviceModel(Base):
    __tablename__ = "cli_devices"
    __table_args__ = (Index("ix_cli_devices_user_fingerprint", "user_id", "device_fingerprint"),)

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    user_id: Mapped[str | None] = mapped_column(Text, ForeignKey("users.id"), nullable=True)
    device_name: Mapped[str] = mapped_column(Text, nullable=False)
    device_fingerprint: Mapped[str] = mapped_column(Text, nullable=False)
    last_used_at: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[str] = mapped_column(Text, nullable=False)
    revoked_at: Mapped[str | None] = mapped_column(Text, nullable=True)


class CLIAuthFlowModel(Base):
    __tablename__ = "cli_auth_flows"

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    device_id: Mapped[str] = mapped_column(Text, ForeignKey("cli_devices.id"), nullable=False)
    state: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    code_challenge: Mapped[str] = mapped_column(Text, nullable=False)
    challenge_method: Mapped[str] = mapped_column(Text, nullable=False, server_default=text("'S256'"))
    status: Mapped[str] = mapped_column(Text, nullable=False, server_default=text("'pending'"))
    auth_code: Mapped[str | None] = mapped_column(Text, nullable=True)
    user_id: Mapped[str | None] = mapped_column(Text, ForeignKey("users.id"), nullable=True)
    expires_at: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[str] = mapped_column(Text, nullable=False)
    completed_at: Mapped[str | None] = mapped_column(Text, nullable=True)
    redeemed_at: Mapped[str | None] = mapped_column(Text, nullable=True)


class CLIRefreshTokenModel(Base):
    __tablename__ = "cli_refresh_tokens"

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    device_id: Mapped[str] = mapped_column(Text, ForeignKey("cli_devices.id"), nullable=False, index=True)
    token_hash: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    expires_at: Mapped[str] = mapped_column(Text, nullable=False)
    last_used_at: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[str] = mapped_column(Text, nullable=False)
    revoked_at: Mapped[str | None] = mapped_column(Text, nullable=True)
