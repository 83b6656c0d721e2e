"""
BuySportsCards (BSC) Adapter

Login:
    TOKEN_PATH  cached unexpired bearer token -> DONE, no browser.
    PAGE_PATH   home -> "Sign In" (sign out first if already signed in)
                -> hosted credential form -> submit ("Next", then #next)
                -> poll localStorage for the access-token entry -> store token + expiry.

The bearer token lives in a localStorage entry whose key or value contains
the access-token marker; the entry is JSON and the token is its `secret`.
Tokens are treated as valid for BSC_TOKEN_TTL_SECONDS from extraction.

Option discovery drives the seller inventory form's cascading selects.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any

import structlog
from playwright.async_api import Error as PlaywrightError

from src.adapters.base import LoginResult, LoginState
from src.adapters.steps import (
    Strategy,
    StepAttempt,
    click_step,
    fill_step,
    find_first,
    navigate,
    scrape_form_level,
    settle,
)
from src.config import settings
from src.credentials import Credential
from src.errors import UIFlowError
from src.options.cascade import CascadingOptionResolver, upstream_filters
from src.options.models import FilterState, OptionSet, OptionValue
from src.session.broker import SessionBroker, TokenSession

logger = structlog.get_logger(__name__)

# ---------------------------------------------------------------------------
# Selector tables
# ---------------------------------------------------------------------------

SIGN_IN_CONTROLS = [
    Strategy("sign_in_button", 'button:has-text("Sign In")', 5000),
    Strategy("sign_in_link", 'a:has-text("Sign In")', 2000),
]
SIGN_OUT_CONTROLS = [
    Strategy("sign_out_button", 'button:has-text("Sign Out")', 5000),
    Strategy("sign_out_link", 'a:has-text("Sign Out")', 2000),
]
USERNAME_FIELD = [Strategy("sign_in_name", "#signInName")]
PASSWORD_FIELD = [Strategy("password", "#password")]
SUBMIT_CONTROLS = [
    Strategy("next_button", 'button:has-text("Next")'),
    Strategy("next_id", "#next"),
]

TOKEN_MARKER = "accesstoken"
TOKEN_FIELDS = ("secret", "accessToken", "access_token")

LEVEL_CONTROLS: dict[str, str] = {
    "sport": "select#sport",
    "year": "select#year",
    "manufacturer": "select#manufacturer",
    "setName": "select#setName",
    "variantType": "select#variantType",
    "insertName": "select#variantName",
    "parallelName": "select#variantName",
}

# Returns raw localStorage values whose key or value mentions the marker.
_READ_TOKEN_ENTRIES_JS = """
(marker) => {
    const found = [];
    for (let i = 0; i < window.localStorage.length; i++) {
        const key = window.localStorage.key(i) || '';
        const value = window.localStorage.getItem(key) || '';
        if (key.toLowerCase().includes(marker) || value.toLowerCase().includes(marker)) {
            found.push(value);
        }
    }
    return found;
}
"""


def extract_bearer_token(entries: list[str]) -> str | None:
    """First token field found in JSON-parsable storage entries."""
    for entry in entries:
        try:
            data = json.loads(entry)
        except (json.JSONDecodeError, TypeError):
            continue
        if not isinstance(data, dict):
            continue
        for field in TOKEN_FIELDS:
            token = data.get(field)
            if isinstance(token, str) and token:
                return token
    return None


def _log_state(state: LoginState, key: str) -> None:
    logger.info("bsc_login_state", state=state.value, key=key, source="bsc_adapter")


class BSCAdapter:
    """
    BuySportsCards login and option discovery.

    Usage:
        adapter = BSCAdapter(broker)
        result = await adapter.login("bsc-main")
    """

    site_name = "bsc"
    display_name = "BuySportsCards (BSC)"

    def __init__(self, broker: SessionBroker) -> None:
        self._broker = broker

    def get_home_url(self) -> str:
        return settings.BSC_HOME_URL

    # -----------------------------------------------------------------------
    # Login
    # -----------------------------------------------------------------------

    async def login(self, key: str, existing_page: Any | None = None) -> LoginResult:
        """
        Log in with the credential stored under `key`.

        Returns a structured failure for UI problems. Store and browser
        engine errors propagate.
        """
        _log_state(LoginState.START, key)
        session = await self._broker.resolve_session(key, existing_page=existing_page)
        _log_state(LoginState.SESSION_RESOLVED, key)

        if isinstance(session, TokenSession):
            _log_state(LoginState.DONE, key)
            return LoginResult(
                success=True,
                message=f"Reusing cached {self.display_name} token",
                token=session.token,
                expires_at=session.expires_at,
            )

        async with session:
            try:
                token = await self._sign_in(session.page, session.credential, key)
            except (UIFlowError, PlaywrightError) as e:
                _log_state(LoginState.FAILED, key)
                logger.warning(
                    "bsc_login_failed",
                    key=key,
                    step=getattr(e, "step", None),
                    error=str(e),
                    source="bsc_adapter",
                )
                return LoginResult(
                    success=False,
                    error=f"Failed to log in to {self.display_name}: {e}",
                )
            expires_at = self._broker.now() + settings.BSC_TOKEN_TTL_SECONDS * 1000

        await self._broker.store.update_token(key, token, expires_at)
        _log_state(LoginState.DONE, key)

        return LoginResult(
            success=True,
            message=f"Successfully logged in to {self.display_name}",
            token=token,
            expires_at=expires_at,
        )

    async def _sign_in(self, page: Any, credential: Credential, key: str) -> str:
        """Drive the PAGE_PATH to TOKEN_EXTRACTED and return the bearer token."""
        await navigate(page, self.get_home_url())
        _log_state(LoginState.NAVIGATED, key)

        sign_in = await self._find_sign_in(page)
        await sign_in.click()

        await fill_step(page, "username_field", USERNAME_FIELD, credential.username)
        _log_state(LoginState.AUTH_FORM_LOCATED, key)
        await fill_step(page, "password_field", PASSWORD_FIELD, credential.password)
        _log_state(LoginState.CREDENTIALS_FILLED, key)

        await click_step(page, "submit", SUBMIT_CONTROLS)
        _log_state(LoginState.SUBMITTED, key)

        token = await self._poll_token(page)
        _log_state(LoginState.TOKEN_EXTRACTED, key)
        return token

    async def _find_sign_in(self, page: Any) -> Any:
        """
        Locate the "Sign In" control.

        An already-authenticated page shows "Sign Out" instead; sign out and
        look again so the flow always runs with the stored credential.
        """
        attempts: list[StepAttempt] = []
        sign_in = await find_first(page, SIGN_IN_CONTROLS, attempts)
        if sign_in is not None:
            return sign_in

        sign_out = await find_first(page, SIGN_OUT_CONTROLS, attempts)
        if sign_out is None:
            raise UIFlowError("Could not find Sign In or Sign Out control", "sign_in", attempts)

        logger.info("bsc_signing_out_existing_session", source="bsc_adapter")
        await sign_out.click()
        await settle(page)

        sign_in = await find_first(page, SIGN_IN_CONTROLS, attempts)
        if sign_in is None:
            raise UIFlowError(
                "Sign In control not found after signing out", "sign_in", attempts
            )
        return sign_in

    async def _poll_token(self, page: Any) -> str:
        """Poll localStorage until the access-token entry appears."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + settings.TOKEN_POLL_TIMEOUT_MS / 1000
        interval = settings.TOKEN_POLL_INTERVAL_MS / 1000

        while True:
            try:
                entries = await page.evaluate(_READ_TOKEN_ENTRIES_JS, TOKEN_MARKER)
            except PlaywrightError as e:
                # Redirects back from the hosted form destroy the JS context.
                logger.debug("bsc_token_poll_retry", error=str(e), source="bsc_adapter")
                entries = []

            token = extract_bearer_token(list(entries or []))
            if token:
                return token

            if loop.time() >= deadline:
                raise UIFlowError(
                    "Authentication token never appeared in local storage",
                    "token_poll",
                    [StepAttempt("local_storage", TOKEN_MARKER, "timeout")],
                )
            await asyncio.sleep(interval)

    # -----------------------------------------------------------------------
    # Option discovery
    # -----------------------------------------------------------------------

    async def get_available_options(
        self, level: str | None, filters: FilterState, key: str
    ) -> OptionSet:
        return await CascadingOptionResolver(self).get_available_options(level, filters, key)

    async def scrape_level(
        self, level: str, filters: FilterState, key: str
    ) -> list[OptionValue]:
        """Authenticate a fresh page and read `level` from the inventory form."""
        if level not in LEVEL_CONTROLS:
            return []

        session = await self._broker.resolve_session(key, prefer_token=False)
        async with session:
            await self._sign_in(session.page, session.credential, key)
            return await scrape_form_level(
                session.page,
                settings.BSC_INVENTORY_URL,
                LEVEL_CONTROLS,
                level,
                upstream_filters(filters, level),
            )
