"""
Marketplace Session Broker — Error Taxonomy

Two families:
- Infrastructure errors (credential store, browser engine) propagate to the
  caller uncaught.
- UI flow errors are raised inside a single login/scrape step and converted
  into a structured failure result by the adapter that owns the flow.
"""

from __future__ import annotations

from typing import Any


class MarketplaceError(Exception):
    """Base exception for the session broker."""

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.context = context or {}


class CredentialError(MarketplaceError):
    """Stored credential is malformed or missing required fields."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message, "CREDENTIAL_ERROR", context)


class CredentialNotFoundError(CredentialError):
    """No credential record exists for the key."""

    def __init__(self, key: str) -> None:
        super().__init__(f"Credential not found for key '{key}'", {"key": key})
        self.code = "CREDENTIAL_NOT_FOUND"


class StoreUnavailableError(MarketplaceError):
    """The credential store could not be read or written."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message, "STORE_UNAVAILABLE", context)


class SessionAcquisitionError(MarketplaceError):
    """The browser engine could not provide a context/page."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message, "SESSION_ACQUISITION_FAILED", context)


class UIFlowError(MarketplaceError):
    """
    A login or scrape step could not be completed.

    Carries the step name and every strategy attempted for it, so a failure
    can be traced to the exact selector that timed out.
    """

    def __init__(
        self,
        message: str,
        step: str,
        attempts: list[Any] | None = None,
    ) -> None:
        super().__init__(message, "UI_FLOW_FAILED", {"step": step})
        self.step = step
        self.attempts = list(attempts or [])


class FilterLevelError(MarketplaceError, ValueError):
    """A discovery request named a level other than the next unresolved one."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message, "FILTER_LEVEL_INVALID", context)
