"""Tests for cascading level selection, normalization and the resolver."""

from __future__ import annotations

import asyncio
import itertools
from unittest.mock import AsyncMock, MagicMock

import pytest
from playwright.async_api import Error as PlaywrightError

from src.credentials import Credential
from src.errors import (
    CredentialNotFoundError,
    FilterLevelError,
    SessionAcquisitionError,
    UIFlowError,
)
from src.options.cascade import (
    CascadingOptionResolver,
    clean_options,
    gather_options,
    merge_option_sets,
    next_level,
    normalize_options,
    upstream_filters,
)
from src.options.models import FILTER_CHAIN, DiscoveredOption, FilterState, OptionSet, OptionValue
from src.session.broker import PageSession
from tests.fakes import FakePage

_SAMPLE_VALUES = {
    "sport": "Football",
    "year": "2023",
    "manufacturer": "Panini",
    "setName": "Prizm",
    "variantType": "Base",
}


def _scraper(site: str = "sportlots", options: list[OptionValue] | None = None) -> MagicMock:
    scraper = MagicMock()
    scraper.site_name = site
    scraper.scrape_level = AsyncMock(return_value=options or [])
    return scraper


# ---------------------------------------------------------------------------
# next_level
# ---------------------------------------------------------------------------


class TestNextLevel:
    @pytest.mark.parametrize("mask", list(itertools.product([False, True], repeat=5)))
    def test_first_gap_wins(self, mask: tuple[bool, ...]) -> None:
        """Whatever is filled downstream, the first unset level is next."""
        filters = FilterState.model_validate(
            {level: _SAMPLE_VALUES[level] for level, filled in zip(FILTER_CHAIN, mask) if filled}
        )

        expected = next(
            (level for level, filled in zip(FILTER_CHAIN, mask) if not filled), None
        )
        assert next_level(filters) == expected

    def test_empty_filters_start_at_sport(self) -> None:
        assert next_level(FilterState()) == "sport"

    def test_year_missing_with_later_levels_set(self) -> None:
        filters = FilterState(sport="Football", manufacturer="Panini")
        assert next_level(filters) == "year"

    def test_blank_string_counts_as_unset(self) -> None:
        filters = FilterState(sport="  ", year="2023")
        assert next_level(filters) == "sport"

    @pytest.mark.parametrize(
        "variant_type,expected",
        [
            ("insert", "insertName"),
            ("Insert", "insertName"),
            ("parallel", "parallelName"),
            ("Base", None),
        ],
    )
    def test_variant_branch(self, variant_type: str, expected: str | None) -> None:
        filters = FilterState.model_validate({**_SAMPLE_VALUES, "variantType": variant_type})
        assert next_level(filters) == expected

    def test_branch_already_resolved_completes_chain(self) -> None:
        filters = FilterState.model_validate(
            {**_SAMPLE_VALUES, "variantType": "parallel", "parallelName": "Silver"}
        )
        assert next_level(filters) is None


class TestUpstreamFilters:
    def test_pairs_in_chain_order(self) -> None:
        filters = FilterState(sport="Football", year="2023", manufacturer="Panini")
        assert upstream_filters(filters, "manufacturer") == [
            ("sport", "Football"),
            ("year", "2023"),
        ]

    def test_stops_at_first_gap(self) -> None:
        filters = FilterState(sport="Football", manufacturer="Panini")
        assert upstream_filters(filters, "setName") == [("sport", "Football")]

    def test_branch_level_gets_whole_chain(self) -> None:
        filters = FilterState.model_validate({**_SAMPLE_VALUES, "variantType": "insert"})
        pairs = upstream_filters(filters, "insertName")
        assert [level for level, _ in pairs] == list(FILTER_CHAIN)


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------


class TestNormalization:
    def test_label_becomes_value_site_code_kept(self) -> None:
        options = normalize_options("sportlots", [OptionValue(label="Football", value="FB")])
        dumped = OptionSet(options=options).model_dump(by_alias=True)
        assert dumped == {
            "options": [{"value": "Football", "platformData": {"sportlots": "FB"}}]
        }

    def test_order_preserved(self) -> None:
        raw = [OptionValue(label=label, value=label[:2]) for label in ("Topps", "Panini", "Leaf")]
        options = normalize_options("bsc", clean_options(raw))
        assert [o.value for o in options] == ["Topps", "Panini", "Leaf"]

    @pytest.mark.parametrize(
        "label,value",
        [
            ("", "FB"),
            ("   ", "FB"),
            ("All Sports", ""),
            ("All", "all"),
            ("Any", "x"),
            ("Select One", "x"),
            ("-- choose --", "x"),
            ("Everything", "-1"),
        ],
    )
    def test_sentinels_dropped(self, label: str, value: str) -> None:
        assert clean_options([OptionValue(label=label, value=value)]) == []

    def test_real_names_resembling_placeholders_kept(self) -> None:
        raw = [OptionValue(label="Panini Select", value="PS")]
        assert clean_options(raw) == [OptionValue(label="Panini Select", value="PS")]

    def test_whitespace_trimmed(self) -> None:
        cleaned = clean_options([OptionValue(label="  Hockey\n", value=" HK ")])
        assert cleaned == [OptionValue(label="Hockey", value="HK")]


class TestMerge:
    def test_same_value_combines_platform_data(self) -> None:
        bsc = OptionSet(options=[DiscoveredOption(value="Football", platform_data={"bsc": "football"})])
        sl = OptionSet(
            options=[
                DiscoveredOption(value="Baseball", platform_data={"sportlots": "BB"}),
                DiscoveredOption(value="Football", platform_data={"sportlots": "FB"}),
            ]
        )

        merged = merge_option_sets([bsc, sl])

        assert [o.value for o in merged.options] == ["Football", "Baseball"]
        assert merged.options[0].platform_data == {"bsc": "football", "sportlots": "FB"}

    def test_inputs_not_mutated(self) -> None:
        first = OptionSet(options=[DiscoveredOption(value="A", platform_data={"bsc": "a"})])
        second = OptionSet(options=[DiscoveredOption(value="A", platform_data={"sportlots": "1"})])

        merge_option_sets([first, second])

        assert first.options[0].platform_data == {"bsc": "a"}

    def test_empty(self) -> None:
        assert merge_option_sets([]) == OptionSet()


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------


class TestCascadingOptionResolver:
    @pytest.mark.asyncio
    async def test_sport_level_from_empty_filters(self) -> None:
        scraper = _scraper(
            options=[
                OptionValue(label="All Sports", value=""),
                OptionValue(label="Football", value="FB"),
            ]
        )

        result = await CascadingOptionResolver(scraper).get_available_options(
            None, FilterState(), "sportlots-main"
        )

        assert result.model_dump(by_alias=True) == {
            "options": [{"value": "Football", "platformData": {"sportlots": "FB"}}]
        }
        scraper.scrape_level.assert_awaited_once_with("sport", FilterState(), "sportlots-main")

    @pytest.mark.asyncio
    async def test_explicit_level_must_match_first_gap(self) -> None:
        scraper = _scraper()
        filters = FilterState(sport="Football", manufacturer="Panini")

        with pytest.raises(FilterLevelError) as exc_info:
            await CascadingOptionResolver(scraper).get_available_options(
                "setName", filters, "k"
            )

        assert exc_info.value.context == {"requested": "setName", "expected": "year"}
        scraper.scrape_level.assert_not_called()

    @pytest.mark.asyncio
    async def test_explicit_matching_level_allowed(self) -> None:
        scraper = _scraper(options=[OptionValue(label="2023", value="2023")])

        result = await CascadingOptionResolver(scraper).get_available_options(
            "year", FilterState(sport="Football"), "k"
        )

        assert [o.value for o in result.options] == ["2023"]

    @pytest.mark.asyncio
    async def test_complete_chain_returns_empty_without_scraping(self) -> None:
        scraper = _scraper()
        filters = FilterState.model_validate(_SAMPLE_VALUES)

        result = await CascadingOptionResolver(scraper).get_available_options(None, filters, "k")

        assert result.options == []
        scraper.scrape_level.assert_not_called()

    @pytest.mark.parametrize(
        "error",
        [UIFlowError("select never populated", "wait_for_options"), PlaywrightError("detached")],
        ids=["ui-flow", "playwright"],
    )
    @pytest.mark.asyncio
    async def test_scrape_failure_degrades_to_empty(self, error: Exception) -> None:
        scraper = _scraper()
        scraper.scrape_level.side_effect = error

        result = await CascadingOptionResolver(scraper).get_available_options(
            None, FilterState(), "k"
        )

        assert result == OptionSet()

    @pytest.mark.asyncio
    async def test_engine_failure_propagates(self) -> None:
        scraper = _scraper()
        scraper.scrape_level.side_effect = SessionAcquisitionError("no chromium")

        with pytest.raises(SessionAcquisitionError):
            await CascadingOptionResolver(scraper).get_available_options(
                None, FilterState(), "k"
            )

    @pytest.mark.asyncio
    async def test_repeat_query_same_result(self) -> None:
        """No hidden state: the same inputs give the same answer."""
        scraper = _scraper(options=[OptionValue(label="Football", value="FB")])
        resolver = CascadingOptionResolver(scraper)

        first = await resolver.get_available_options(None, FilterState(), "k")
        second = await resolver.get_available_options(None, FilterState(), "k")

        assert first == second


class TestGatherOptions:
    @pytest.mark.asyncio
    async def test_merges_healthy_sites_and_tolerates_failed_one(self) -> None:
        bsc = _scraper("bsc", [OptionValue(label="Football", value="football")])
        sportlots = _scraper("sportlots")
        sportlots.scrape_level.side_effect = UIFlowError("login failed", "login")

        requests = [
            (CascadingOptionResolver(bsc), "bsc-main"),
            (CascadingOptionResolver(sportlots), "sportlots-main"),
        ]
        result = await gather_options(requests, None, FilterState())

        assert result.model_dump(by_alias=True) == {
            "options": [{"value": "Football", "platformData": {"bsc": "football"}}]
        }
        bsc.scrape_level.assert_awaited_once_with("sport", FilterState(), "bsc-main")
        sportlots.scrape_level.assert_awaited_once_with(
            "sport", FilterState(), "sportlots-main"
        )

    @pytest.mark.asyncio
    async def test_failed_site_cancels_and_releases_siblings(self) -> None:
        """An infrastructure error cancels the other sites and closes their browsers."""
        started = asyncio.Event()
        handle = MagicMock()
        handle.close = AsyncMock()
        sibling_cancelled = False

        class _SlowSite:
            site_name = "sportlots"

            async def get_available_options(
                self, level: str | None, filters: FilterState, key: str
            ) -> OptionSet:
                nonlocal sibling_cancelled
                session = PageSession(
                    page=FakePage(),
                    credential=Credential(username="u", password="p"),
                    handle=handle,
                )
                async with session:
                    started.set()
                    try:
                        await asyncio.sleep(10)
                    except asyncio.CancelledError:
                        sibling_cancelled = True
                        raise
                return OptionSet()

        async def _fail(level: str | None, filters: FilterState, key: str) -> OptionSet:
            await started.wait()
            raise CredentialNotFoundError(key)

        failing = MagicMock()
        failing.get_available_options = _fail

        with pytest.raises(CredentialNotFoundError):
            await gather_options(
                [(failing, "missing-key"), (_SlowSite(), "sportlots-main")],
                None,
                FilterState(),
            )

        assert sibling_cancelled is True
        handle.close.assert_awaited_once()
