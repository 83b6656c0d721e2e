"""
Credential Model

One row per credential key: the marketplace username/password plus the most
recent bearer token and its expiry. This table is the only durable state the
broker owns; its column set is the storage contract shared by every site.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import BIGINT, TIMESTAMP, String, func
from sqlalchemy.orm import Mapped, mapped_column

from src.models.base import Base


class CredentialRecord(Base):
    """
    Stored marketplace credential.

    expires_at is epoch milliseconds. A token without a future expires_at is
    treated as absent.
    """

    __tablename__ = "credentials"

    key: Mapped[str] = mapped_column(
        String, primary_key=True, comment="Opaque credential key, e.g. 'bsc-main'"
    )
    username: Mapped[str] = mapped_column(String, nullable=False)
    password: Mapped[str] = mapped_column(String, nullable=False)
    token: Mapped[str | None] = mapped_column(
        String, nullable=True, comment="Last bearer token minted by a login flow"
    )
    expires_at: Mapped[int | None] = mapped_column(
        BIGINT, nullable=True, comment="Token expiry, epoch milliseconds"
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )

    def __repr__(self) -> str:
        return (
            f"<CredentialRecord key={self.key!r} username={self.username!r} "
            f"has_token={self.token is not None!r}>"
        )
