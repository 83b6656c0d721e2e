"""
Cascading Option Resolver

Given a partial FilterState, picks the single next unresolved level
(strict left-to-right first gap), asks the site scraper for that level's
candidates, and normalizes them.

Chain:
    sport -> year -> manufacturer -> setName -> variantType
          -> insertName   (variantType == "insert")
          -> parallelName (variantType == "parallel")

A scrape failure for a site degrades to zero options for that site, so a
multi-site request still answers with whatever the healthy sites returned.
Store and browser-engine failures are not scrape failures and propagate.
"""

from __future__ import annotations

import asyncio
from typing import Iterable, Protocol, Sequence

import structlog
from playwright.async_api import Error as PlaywrightError

from src.errors import FilterLevelError, UIFlowError
from src.options.models import (
    FILTER_CHAIN,
    VARIANT_BRANCHES,
    DiscoveredOption,
    FilterState,
    OptionSet,
    OptionValue,
)

logger = structlog.get_logger(__name__)

# Placeholder / "all" values sites put at the top of a select.
SENTINEL_VALUES: frozenset[str] = frozenset({"", "all", "any", "-1"})
SENTINEL_LABELS: frozenset[str] = frozenset(
    {"all", "any", "select one", "choose one", "please select"}
)


class OptionScraper(Protocol):
    """What the resolver needs from a site: its name and a per-level scrape."""

    site_name: str

    async def scrape_level(
        self, level: str, filters: FilterState, key: str
    ) -> list[OptionValue]:
        ...


class OptionSource(Protocol):
    site_name: str

    async def get_available_options(
        self, level: str | None, filters: FilterState, key: str
    ) -> OptionSet:
        ...


# ---------------------------------------------------------------------------
# Level selection
# ---------------------------------------------------------------------------


def next_level(filters: FilterState) -> str | None:
    """
    Return the first chain level with no value, or None if the chain is complete.

    After variantType the chain only continues for the insert and parallel
    branches; any other variant type (e.g. "Base") completes it.
    """
    for level in FILTER_CHAIN:
        if filters.get(level) is None:
            return level

    variant_type = (filters.get("variantType") or "").strip().lower()
    branch = VARIANT_BRANCHES.get(variant_type)
    if branch is not None and filters.get(branch) is None:
        return branch
    return None


def upstream_filters(filters: FilterState, level: str) -> list[tuple[str, str]]:
    """Known (level, value) pairs that precede `level`, in chain order."""
    resolved: list[tuple[str, str]] = []
    for name in FILTER_CHAIN:
        if name == level:
            return resolved
        value = filters.get(name)
        if value is None:
            return resolved
        resolved.append((name, value))
    return resolved


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------


def clean_options(raw: Iterable[OptionValue]) -> list[OptionValue]:
    """Drop placeholder/"all" sentinels and empty labels; trim the rest."""
    cleaned: list[OptionValue] = []
    for option in raw:
        label = option.label.strip()
        value = option.value.strip()
        if not label:
            continue
        if value.lower() in SENTINEL_VALUES or label.lower() in SENTINEL_LABELS:
            continue
        if label.startswith("--"):
            continue
        cleaned.append(OptionValue(label=label, value=value))
    return cleaned


def normalize_options(site_name: str, options: Iterable[OptionValue]) -> list[DiscoveredOption]:
    """{label, value} -> {value: label, platformData: {site: value}}, order kept."""
    return [
        DiscoveredOption(value=option.label, platform_data={site_name: option.value})
        for option in options
    ]


def merge_option_sets(option_sets: Sequence[OptionSet]) -> OptionSet:
    """
    Merge per-site option sets on the canonical value.

    Options with the same value combine their platform_data; order follows
    first appearance across the input sets.
    """
    merged: dict[str, DiscoveredOption] = {}
    for option_set in option_sets:
        for option in option_set.options:
            existing = merged.get(option.value)
            if existing is None:
                merged[option.value] = DiscoveredOption(
                    value=option.value, platform_data=dict(option.platform_data)
                )
            else:
                existing.platform_data.update(option.platform_data)
    return OptionSet(options=list(merged.values()))


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------


class CascadingOptionResolver:
    """
    Resolves the next filter level for one site.

    Usage:
        resolver = CascadingOptionResolver(adapter)
        option_set = await resolver.get_available_options(None, FilterState(), "bsc-main")
    """

    def __init__(self, scraper: OptionScraper) -> None:
        self._scraper = scraper

    async def get_available_options(
        self,
        level: str | None,
        filters: FilterState,
        key: str,
    ) -> OptionSet:
        """
        Args:
            level: Level the caller expects to resolve, or None to let the
                resolver pick. Must equal the first unresolved level.
            filters: Known upstream selections.
            key: Credential key for the site.

        Raises:
            FilterLevelError: `level` is not the next unresolved level.
        """
        target = next_level(filters)
        if level is not None and level != target:
            raise FilterLevelError(
                f"Level '{level}' is out of order; next unresolved level is '{target}'",
                {"requested": level, "expected": target},
            )

        site = self._scraper.site_name
        if target is None:
            logger.info("options_chain_complete", site=site, source="option_resolver")
            return OptionSet()

        try:
            raw = await self._scraper.scrape_level(target, filters, key)
        except (UIFlowError, PlaywrightError) as e:
            logger.warning(
                "options_scrape_degraded",
                site=site,
                level=target,
                error=str(e),
                error_type=type(e).__name__,
                source="option_resolver",
            )
            return OptionSet()

        options = normalize_options(site, clean_options(raw))
        logger.info(
            "options_resolved",
            site=site,
            level=target,
            option_count=len(options),
            source="option_resolver",
        )
        return OptionSet(options=options)


async def gather_options(
    requests: Sequence[tuple[OptionSource, str]],
    level: str | None,
    filters: FilterState,
) -> OptionSet:
    """
    Query several sites for the same level concurrently and merge the results.

    If any site raises, the remaining sites are cancelled and awaited (so
    their browsers are released) before the error propagates.

    Args:
        requests: (adapter, credential key) pairs.
    """
    tasks = [
        asyncio.create_task(source.get_available_options(level, filters, key))
        for source, key in requests
    ]
    try:
        results = await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        logger.warning(
            "options_gather_aborted",
            site_count=len(tasks),
            source="option_resolver",
        )
        raise
    return merge_option_sets(results)
