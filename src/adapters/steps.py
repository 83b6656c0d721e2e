"""
UI Step Helpers — ordered attempt strategies over a Playwright page

A step (e.g. "submit") is an ordered list of Strategy entries. Each strategy
is tried on its own with its own timeout and recorded as a StepAttempt, so a
failed step reports exactly which selectors were tried and how each ended.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Sequence

import structlog
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from src.config import settings
from src.errors import UIFlowError
from src.options.cascade import SENTINEL_VALUES
from src.options.models import OptionValue

logger = structlog.get_logger(__name__)

# Reads every <option> under a select as {label, value}.
_READ_OPTIONS_JS = """
(selector) => Array.from(document.querySelectorAll(selector + ' option')).map(
    (o) => ({label: o.textContent || '', value: o.value || ''})
)
"""

# True once a select holds at least one option whose value is not a placeholder.
_OPTIONS_READY_JS = """
({selector, ignored}) => Array.from(document.querySelectorAll(selector + ' option')).some(
    (o) => !ignored.includes((o.value || '').trim().toLowerCase())
)
"""


@dataclass(frozen=True)
class Strategy:
    name: str
    selector: str
    timeout_ms: int | None = None


@dataclass(frozen=True)
class StepAttempt:
    strategy: str
    selector: str
    outcome: str  # "found" | "timeout" | "error"
    detail: str | None = None


async def find_first(
    page: Any,
    strategies: Sequence[Strategy],
    attempts: list[StepAttempt] | None = None,
) -> Any | None:
    """
    Try each strategy in order and return the first element found, else None.

    Every attempt is appended to `attempts` when a list is given.
    """
    for strategy in strategies:
        timeout = strategy.timeout_ms or settings.ELEMENT_WAIT_TIMEOUT_MS
        try:
            element = await page.wait_for_selector(strategy.selector, timeout=timeout)
        except PlaywrightTimeoutError:
            attempt = StepAttempt(strategy.name, strategy.selector, "timeout")
        except PlaywrightError as e:
            attempt = StepAttempt(strategy.name, strategy.selector, "error", str(e))
        else:
            if element is not None:
                if attempts is not None:
                    attempts.append(StepAttempt(strategy.name, strategy.selector, "found"))
                return element
            attempt = StepAttempt(strategy.name, strategy.selector, "timeout")

        logger.debug(
            "ui_strategy_missed",
            strategy=attempt.strategy,
            selector=attempt.selector,
            outcome=attempt.outcome,
            source="ui_steps",
        )
        if attempts is not None:
            attempts.append(attempt)
    return None


async def locate(page: Any, step: str, strategies: Sequence[Strategy]) -> Any:
    """Like find_first(), but a step with no matching strategy raises UIFlowError."""
    attempts: list[StepAttempt] = []
    element = await find_first(page, strategies, attempts)
    if element is None:
        tried = ", ".join(a.strategy for a in attempts)
        raise UIFlowError(f"Could not locate {step} (tried: {tried})", step, attempts)
    return element


async def fill_step(page: Any, step: str, strategies: Sequence[Strategy], text: str) -> None:
    element = await locate(page, step, strategies)
    await element.fill(text)


async def click_step(page: Any, step: str, strategies: Sequence[Strategy]) -> None:
    element = await locate(page, step, strategies)
    await element.click()


async def navigate(page: Any, url: str) -> None:
    """Navigate and wait for network idle."""
    await page.goto(url, wait_until="networkidle", timeout=settings.NAVIGATION_TIMEOUT_MS)


async def settle(page: Any) -> None:
    """Wait for network idle after an in-page action."""
    await page.wait_for_load_state("networkidle", timeout=settings.NAVIGATION_TIMEOUT_MS)


async def first_text(page: Any, selectors: Sequence[str]) -> str | None:
    """Trimmed text of the first selector that matches with non-empty text."""
    for selector in selectors:
        element = await page.query_selector(selector)
        if element is None:
            continue
        text = (await element.text_content() or "").strip()
        if text:
            return text
    return None


# ---------------------------------------------------------------------------
# Form-driven option scraping
# ---------------------------------------------------------------------------


async def read_select_options(page: Any, selector: str) -> list[OptionValue]:
    """Enumerate a select's options as raw {label, value} pairs, in page order."""
    raw = await page.evaluate(_READ_OPTIONS_JS, selector)
    return [
        OptionValue(label=str(item.get("label", "")), value=str(item.get("value", "")))
        for item in raw or []
    ]


async def wait_for_options(page: Any, selector: str) -> None:
    """Wait until a dependent select has been repopulated."""
    try:
        await page.wait_for_function(
            _OPTIONS_READY_JS,
            arg={"selector": selector, "ignored": sorted(SENTINEL_VALUES)},
            timeout=settings.ELEMENT_WAIT_TIMEOUT_MS,
        )
    except PlaywrightTimeoutError as e:
        raise UIFlowError(
            f"No options appeared in {selector}",
            "wait_for_options",
            [StepAttempt("options_ready", selector, "timeout")],
        ) from e


async def scrape_form_level(
    page: Any,
    form_url: str,
    controls: Mapping[str, str],
    level: str,
    upstream: Sequence[tuple[str, str]],
) -> list[OptionValue]:
    """
    Drive a cascading form to `level` and read that control's candidates.

    Each known upstream value is selected by its label (labels are the
    canonical values callers hold), then the next control is awaited before
    moving on. Upstream levels the site has no control for are skipped.
    """
    target = controls[level]
    await navigate(page, form_url)

    for upstream_level, value in upstream:
        selector = controls.get(upstream_level)
        if selector is None:
            continue
        await wait_for_options(page, selector)
        await page.select_option(
            selector, label=value, timeout=settings.ELEMENT_WAIT_TIMEOUT_MS
        )
        await settle(page)
        logger.debug(
            "form_filter_applied",
            level=upstream_level,
            value=value,
            source="ui_steps",
        )

    await wait_for_options(page, target)
    return await read_select_options(page, target)
