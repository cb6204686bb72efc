"""Ranked strategies for finding and activating the transcript toggle.

Strategies run in order. A strategy wins only when the transcript panel
is visible after it activated something; a located-but-ineffective
control does not stop the chain.
"""

import asyncio
from typing import Awaitable, Callable, Optional, Sequence

from .browser import BrowserSession
from .logging_config import get_logger

logger = get_logger('locators')

PANEL_SELECTOR = '[data-purpose="transcript-panel"], [data-purpose="transcript-content"]'
ALREADY_OPEN_TIMEOUT = 1.0

# Clicks the first visible control matching the heuristic; returns whether it clicked
CLICK_BY_HEURISTIC_JS = """
({needle, mode}) => {
    const isVisible = (el) => !!(el.offsetWidth || el.offsetHeight || el.getClientRects().length);
    const text = (el) => (el.textContent || '').trim().toLowerCase();
    const label = (el) => ((el.getAttribute('aria-label') || el.getAttribute('title')) || '').trim().toLowerCase();
    const tests = {
        'text-exact': (el) => text(el) === needle,
        'text-contains': (el) => text(el).includes(needle),
        'label-contains': (el) => label(el).includes(needle),
    };
    const matches = tests[mode];
    const candidates = document.querySelectorAll('button, [role="button"], [role="tab"], a');
    for (const el of candidates) {
        if (isVisible(el) && matches(el)) {
            el.click();
            return true;
        }
    }
    return false;
}
"""


class ToggleStrategy:
    """One way of finding and activating the transcript toggle."""

    name = "strategy"

    async def activate(self, session: BrowserSession, timeout: float) -> bool:
        """Try to activate the toggle; return True if something was clicked."""
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"


class SelectorToggle(ToggleStrategy):
    """Wait for a CSS selector to become visible, then click it."""

    def __init__(self, selector: str):
        self.selector = selector
        self.name = selector

    async def activate(self, session: BrowserSession, timeout: float) -> bool:
        if not await session.wait_for(self.selector, timeout):
            return False
        await session.click(self.selector, timeout)
        return True


class ScriptToggle(ToggleStrategy):
    """Evaluate an in-page heuristic that clicks a control by text or label."""

    def __init__(self, mode: str, needle: str = "transcript"):
        self.mode = mode
        self.needle = needle.lower()
        self.name = f"{mode}:{self.needle}"

    async def activate(self, session: BrowserSession, timeout: float) -> bool:
        clicked = await session.evaluate(CLICK_BY_HEURISTIC_JS, {'needle': self.needle, 'mode': self.mode})
        return bool(clicked)


def default_strategies() -> list[ToggleStrategy]:
    """Most specific identifying attribute first, generic heuristics last."""
    return [
        SelectorToggle('button[data-purpose="transcript-toggle"]'),
        SelectorToggle('[data-purpose="transcript-toggle"]'),
        SelectorToggle('button[aria-label="Transcript"]'),
        SelectorToggle('button[aria-label*="transcript" i]'),
        ScriptToggle('text-exact'),
        ScriptToggle('text-contains'),
        ScriptToggle('label-contains'),
    ]


async def open_transcript_panel(
    session: BrowserSession,
    strategies: Sequence[ToggleStrategy],
    panel_selector: str = PANEL_SELECTOR,
    selector_timeout: float = 10.0,
    panel_timeout: float = 5.0,
    settle_after_click: float = 1.0,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> Optional[str]:
    """Run the fallback chain until the transcript panel is visible.

    Returns:
        Name of the winning strategy, "already-open" if the panel was
        visible before any click, or None if no strategy opened it
    """
    # Clicking the toggle of an open panel would close it
    if await session.wait_for(panel_selector, min(panel_timeout, ALREADY_OPEN_TIMEOUT)):
        logger.debug("Transcript panel already open")
        return "already-open"

    for strategy in strategies:
        try:
            activated = await strategy.activate(session, selector_timeout)
        except Exception as e:
            logger.debug(f"Toggle strategy {strategy.name} failed: {e}")
            continue

        if not activated:
            logger.debug(f"Toggle strategy {strategy.name} found nothing")
            continue

        await sleep(settle_after_click)
        if await session.wait_for(panel_selector, panel_timeout):
            logger.debug(f"Transcript panel opened via {strategy.name}")
            return strategy.name

        logger.debug(f"Toggle strategy {strategy.name} clicked but no panel appeared")

    return None
