"""
Session Broker — token fast path vs. browser slow path

Decides, per credential key, whether a cached unexpired bearer token can be
reused (no browser touched) or a browser page must be acquired. This is the
only place that decision is made; adapters consume the returned Session and
never keep it as instance state.

Side effects: may launch a browser. Never writes to the credential store.
Nothing here is retried; retry policy belongs to the caller.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Union

import structlog

from src.credentials import Credential, CredentialStore
from src.session.browser import BrowserFactory, BrowserHandle
from src.utils.clock import now_ms

logger = structlog.get_logger(__name__)


@dataclass
class TokenSession:
    """Session backed by a cached, unexpired bearer token. No page."""

    token: str
    expires_at: int
    credential: Credential = field(repr=False)

    async def release(self) -> None:
        return None

    async def __aenter__(self) -> TokenSession:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.release()


@dataclass
class PageSession:
    """
    Session backed by a live browser page.

    When the broker launched the browser, `handle` is set and the session owns
    it: leaving the `async with` block (normally or by exception) closes it.
    A caller-supplied page is never closed here.
    """

    page: Any
    credential: Credential = field(repr=False)
    handle: BrowserHandle | None = field(default=None, repr=False)

    @property
    def owned(self) -> bool:
        return self.handle is not None

    async def release(self) -> None:
        if self.handle is not None:
            await self.handle.close()

    async def __aenter__(self) -> PageSession:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.release()


Session = Union[TokenSession, PageSession]


class SessionBroker:
    """
    Resolves a credential key into a TokenSession or PageSession.

    Usage:
        broker = SessionBroker(store)
        async with await broker.resolve_session("bsc-main") as session:
            ...
    """

    def __init__(
        self,
        store: CredentialStore,
        browser_factory: BrowserFactory | None = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.store = store
        self._browser_factory = browser_factory or BrowserFactory()
        self._clock = clock

    def now(self) -> int:
        """Comparison instant for token expiry, epoch milliseconds."""
        return self._clock()

    async def resolve_session(
        self,
        key: str,
        existing_page: Any | None = None,
        prefer_token: bool = True,
    ) -> Session:
        """
        Resolve a session for a credential key.

        Args:
            key: Credential key in the store.
            existing_page: Page to bind instead of launching a browser.
            prefer_token: Return a TokenSession when the cached token is valid.
                Flows that need a page regardless pass False.

        Returns:
            TokenSession if a valid token is cached and preferred, else PageSession.

        Raises:
            CredentialNotFoundError / CredentialError: lookup failed.
            StoreUnavailableError: store I/O failed.
            SessionAcquisitionError: no browser could be launched.
        """
        credential = await self.store.get(key)

        if prefer_token and credential.has_valid_token(self.now()):
            logger.info(
                "session_token_reused",
                key=key,
                expires_at=credential.expires_at,
                source="session_broker",
            )
            return TokenSession(
                token=credential.token or "",
                expires_at=credential.expires_at or 0,
                credential=credential,
            )

        if existing_page is not None:
            logger.info("session_page_bound", key=key, source="session_broker")
            return PageSession(page=existing_page, credential=credential)

        handle = await self._browser_factory.open_page()
        logger.info("session_page_launched", key=key, source="session_broker")
        return PageSession(page=handle.page, credential=credential, handle=handle)
