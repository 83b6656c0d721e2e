"""
Site Adapter — shared contract

Each marketplace is an independent variant of the SiteAdapter protocol.
Adding a site means adding a variant and registering it; nothing shared
changes.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Protocol

from pydantic import BaseModel, ConfigDict, Field

from src.options.models import FilterState, OptionSet


class LoginState(str, Enum):
    """Login state machine. PAGE_PATH states only occur without a valid token."""
    START = "start"
    SESSION_RESOLVED = "session_resolved"
    NAVIGATED = "navigated"
    AUTH_FORM_LOCATED = "auth_form_located"
    CREDENTIALS_FILLED = "credentials_filled"
    SUBMITTED = "submitted"
    TOKEN_EXTRACTED = "token_extracted"
    DONE = "done"
    FAILED = "failed"


class LoginResult(BaseModel):
    """Definite verdict of one login attempt."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool
    message: str | None = None
    error: str | None = None
    token: str | None = Field(default=None, repr=False)
    expires_at: int | None = Field(default=None, alias="expiresAt")


class SiteAdapter(Protocol):
    site_name: str
    display_name: str

    def get_home_url(self) -> str:
        ...

    async def login(self, key: str, existing_page: Any | None = None) -> LoginResult:
        ...

    async def get_available_options(
        self, level: str | None, filters: FilterState, key: str
    ) -> OptionSet:
        ...
