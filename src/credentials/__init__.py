"""Credential Layer — stored marketplace secrets and the store protocol."""

from __future__ import annotations

from typing import Protocol

from pydantic import BaseModel, ConfigDict, Field


class Credential(BaseModel):
    """
    A named marketplace login plus its cached bearer token.

    expires_at is epoch milliseconds and serializes as ``expiresAt`` so the
    stored JSON shape stays the same for every site.
    """

    model_config = ConfigDict(populate_by_name=True)

    username: str
    password: str = Field(repr=False)
    token: str | None = Field(default=None, repr=False)
    expires_at: int | None = Field(default=None, alias="expiresAt")

    def has_valid_token(self, now_ms: int) -> bool:
        """True only if a token exists and expires strictly after now_ms."""
        return bool(self.token) and self.expires_at is not None and self.expires_at > now_ms


class CredentialStore(Protocol):
    """Key → Credential lookup/update service."""

    async def get(self, key: str) -> Credential:
        ...

    async def upsert(self, key: str, credential: Credential) -> None:
        ...

    async def update_token(self, key: str, token: str, expires_at: int) -> None:
        ...

    async def list_keys(self) -> list[str]:
        ...


__all__ = ["Credential", "CredentialStore"]
