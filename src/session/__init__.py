"""Session Layer — browser acquisition and token/page session resolution."""

from src.session.broker import PageSession, Session, SessionBroker, TokenSession
from src.session.browser import BrowserFactory, BrowserHandle

__all__ = [
    "BrowserFactory",
    "BrowserHandle",
    "PageSession",
    "Session",
    "SessionBroker",
    "TokenSession",
]
