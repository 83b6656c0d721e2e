"""
SportLots Adapter

SportLots mints no reusable token, so every login runs the full page flow:
login page -> email/password -> submit (exact value match) -> settle ->
classify by URL and logged-in indicators.

The logged-in check is a heuristic: an ordered list of independent element
checks followed by a page-content substring fallback. Any single hit counts.
"""

from __future__ import annotations

from typing import Any

import structlog
from playwright.async_api import Error as PlaywrightError

from src.adapters.base import LoginResult, LoginState
from src.adapters.steps import (
    Strategy,
    click_step,
    fill_step,
    first_text,
    navigate,
    scrape_form_level,
    settle,
)
from src.config import settings
from src.credentials import Credential
from src.errors import UIFlowError
from src.options.cascade import CascadingOptionResolver, upstream_filters
from src.options.models import FilterState, OptionSet, OptionValue
from src.session.broker import SessionBroker

logger = structlog.get_logger(__name__)

# ---------------------------------------------------------------------------
# Selector tables
# ---------------------------------------------------------------------------

EMAIL_FIELD = [Strategy("email_val", 'input[name="email_val"]')]
PASSWORD_FIELD = [Strategy("psswd", 'input[name="psswd"]')]
SUBMIT_CONTROLS = [Strategy("sign_in_value", 'input[type="submit"][value="Sign-in"]')]

LOGIN_PATH_MARKER = "login.tpl"
ERROR_SELECTORS = (".error", ".alert", "[class*='error']", "font[color='red']")

LOGGED_IN_INDICATORS = (
    ("logout_link", "a[href*='logout']"),
    ("account_link", "a[href*='account']"),
    ("my_account_text", "a:has-text('My Account')"),
    ("profile_marker", "[class*='profile']"),
)
LOGGED_IN_CONTENT_MARKERS = ("Logout", "Log Out", "My Account", "Sign Out")

LEVEL_CONTROLS: dict[str, str] = {
    "sport": "select[name='sprt']",
    "year": "select[name='yr']",
    "manufacturer": "select[name='brd']",
    "setName": "select[name='set']",
}


def _log_state(state: LoginState, key: str) -> None:
    logger.info("sportlots_login_state", state=state.value, key=key, source="sportlots_adapter")


async def detect_logged_in(page: Any) -> str | None:
    """
    Name of the first logged-in indicator found, or None.

    Element indicators are checked independently in order; the content
    substring scan only runs if none of them matched.
    """
    for name, selector in LOGGED_IN_INDICATORS:
        if await page.query_selector(selector) is not None:
            return name

    content = await page.content()
    for marker in LOGGED_IN_CONTENT_MARKERS:
        if marker in content:
            return f"content:{marker}"
    return None


class SportLotsAdapter:
    """
    SportLots login and option discovery.

    Usage:
        adapter = SportLotsAdapter(broker)
        result = await adapter.login("sportlots-main")
    """

    site_name = "sportlots"
    display_name = "SportLots"

    def __init__(self, broker: SessionBroker) -> None:
        self._broker = broker

    def get_home_url(self) -> str:
        return settings.SPORTLOTS_HOME_URL

    async def login(self, key: str, existing_page: Any | None = None) -> LoginResult:
        _log_state(LoginState.START, key)
        session = await self._broker.resolve_session(
            key, existing_page=existing_page, prefer_token=False
        )
        _log_state(LoginState.SESSION_RESOLVED, key)

        async with session:
            try:
                result = await self._sign_in(session.page, session.credential, key)
            except (UIFlowError, PlaywrightError) as e:
                result = LoginResult(
                    success=False,
                    error=f"Failed to log in to {self.display_name}: {e}",
                )

        _log_state(LoginState.DONE if result.success else LoginState.FAILED, key)
        if not result.success:
            logger.warning(
                "sportlots_login_failed", key=key, error=result.error, source="sportlots_adapter"
            )
        return result

    async def _sign_in(self, page: Any, credential: Credential, key: str) -> LoginResult:
        await navigate(page, settings.SPORTLOTS_LOGIN_URL)
        _log_state(LoginState.NAVIGATED, key)

        await fill_step(page, "email_field", EMAIL_FIELD, credential.username)
        _log_state(LoginState.AUTH_FORM_LOCATED, key)
        await fill_step(page, "password_field", PASSWORD_FIELD, credential.password)
        _log_state(LoginState.CREDENTIALS_FILLED, key)

        await click_step(page, "submit", SUBMIT_CONTROLS)
        await settle(page)
        _log_state(LoginState.SUBMITTED, key)

        if LOGIN_PATH_MARKER in page.url:
            reason = await first_text(page, ERROR_SELECTORS) or "still on login page"
            return LoginResult(success=False, error=f"Login failed: {reason}")

        indicator = await detect_logged_in(page)
        if indicator is None:
            return LoginResult(success=False, error="Login failed: no logged-in indicator found")

        logger.info("sportlots_logged_in", key=key, indicator=indicator, source="sportlots_adapter")
        return LoginResult(
            success=True,
            message=f"Successfully logged in to {self.display_name}",
        )

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
        """Log a fresh page in and read `level` from the new-inventory form."""
        if level not in LEVEL_CONTROLS:
            return []

        session = await self._broker.resolve_session(key, prefer_token=False)
        async with session:
            result = await self._sign_in(session.page, session.credential, key)
            if not result.success:
                raise UIFlowError(result.error or "Login failed", "login")
            return await scrape_form_level(
                session.page,
                settings.SPORTLOTS_INVENTORY_URL,
                LEVEL_CONTROLS,
                level,
                upstream_filters(filters, level),
            )
