"""Site Adapters — per-marketplace login and option discovery."""

from src.adapters.base import LoginResult, LoginState, SiteAdapter
from src.adapters.bsc import BSCAdapter
from src.adapters.sportlots import SportLotsAdapter
from src.session.broker import SessionBroker

ADAPTERS: dict[str, type] = {
    "bsc": BSCAdapter,
    "sportlots": SportLotsAdapter,
}

SUPPORTED_SITES: dict[str, str] = {
    name: adapter.display_name for name, adapter in ADAPTERS.items()
}


def create_adapter(site: str, broker: SessionBroker) -> SiteAdapter:
    """Build the adapter for a site name. Unknown sites raise ValueError."""
    adapter_cls = ADAPTERS.get(site)
    if adapter_cls is None:
        raise ValueError(f"Unknown site type: {site}")
    return adapter_cls(broker)


__all__ = [
    "ADAPTERS",
    "BSCAdapter",
    "LoginResult",
    "LoginState",
    "SUPPORTED_SITES",
    "SiteAdapter",
    "SportLotsAdapter",
    "create_adapter",
]
