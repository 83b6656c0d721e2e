"""
Credential Store — SQLAlchemy async implementation

Reads and writes one `credentials` row per key. Token writes touch only the
token columns, so a login never restores a password rotated while it ran.
Two concurrent logins for the same key both write; the later commit wins.

Error mapping:
- no row                 -> CredentialNotFoundError
- blank username/password -> CredentialError
- any SQLAlchemyError    -> StoreUnavailableError
"""

from __future__ import annotations

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.credentials import Credential
from src.errors import CredentialError, CredentialNotFoundError, StoreUnavailableError
from src.models.credential import CredentialRecord

logger = structlog.get_logger(__name__)


class SqlCredentialStore:
    """
    Credential store backed by the `credentials` table.

    Usage:
        store = SqlCredentialStore(session_factory)
        credential = await store.get("bsc-main")
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get(self, key: str) -> Credential:
        try:
            async with self._session_factory() as session:
                record = await session.get(CredentialRecord, key)
        except SQLAlchemyError as e:
            logger.error("credential_read_failed", key=key, error=str(e), source="credential_store")
            raise StoreUnavailableError(
                f"Failed to read credential '{key}': {e}", {"key": key}
            ) from e

        if record is None:
            raise CredentialNotFoundError(key)

        if not record.username or not record.password:
            raise CredentialError(
                f"Invalid credentials format in secret: {key}", {"key": key}
            )

        return Credential(
            username=record.username,
            password=record.password,
            token=record.token,
            expires_at=record.expires_at,
        )

    async def upsert(self, key: str, credential: Credential) -> None:
        """Insert or overwrite the credential row for key (last writer wins)."""
        try:
            async with self._session_factory() as session:
                await session.merge(
                    CredentialRecord(
                        key=key,
                        username=credential.username,
                        password=credential.password,
                        token=credential.token,
                        expires_at=credential.expires_at,
                    )
                )
                await session.commit()
        except SQLAlchemyError as e:
            logger.error("credential_write_failed", key=key, error=str(e), source="credential_store")
            raise StoreUnavailableError(
                f"Failed to update credentials for key '{key}': {e}", {"key": key}
            ) from e

        logger.info(
            "credential_upserted",
            key=key,
            has_token=credential.token is not None,
            expires_at=credential.expires_at,
            source="credential_store",
        )

    async def update_token(self, key: str, token: str, expires_at: int) -> None:
        """Set token and expiry for an existing key, leaving the login fields alone."""
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    update(CredentialRecord)
                    .where(CredentialRecord.key == key)
                    .values(token=token, expires_at=expires_at)
                )
                await session.commit()
        except SQLAlchemyError as e:
            logger.error(
                "credential_token_write_failed",
                key=key,
                error=str(e),
                source="credential_store",
            )
            raise StoreUnavailableError(
                f"Failed to update token for key '{key}': {e}", {"key": key}
            ) from e

        if result.rowcount == 0:
            raise CredentialNotFoundError(key)

        logger.info(
            "credential_token_updated",
            key=key,
            expires_at=expires_at,
            source="credential_store",
        )

    async def list_keys(self) -> list[str]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(CredentialRecord.key).order_by(CredentialRecord.key)
                )
                return list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error("credential_list_failed", error=str(e), source="credential_store")
            raise StoreUnavailableError(f"Failed to list credentials: {e}") from e
