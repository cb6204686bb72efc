"""Per-lecture transcript extraction.

States::

    NAVIGATING -> LOCATING_TOGGLE -> OPENING_PANEL -> EXTRACTING_TEXT
        -> (EXTRACTING_CAPTIONS) -> DONE

Any state may end in ABORTED on an unrecoverable error. A missing
transcript is an expected outcome (status ``no-transcript``), not an error.
Every page interaction is followed by a settle delay before the next read.
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Optional, Sequence

from .browser import BrowserSession
from .config import Config
from .exceptions import CaptionFetchError, ExtractionError, NavigationError
from .locators import PANEL_SELECTOR, ToggleStrategy, default_strategies, open_transcript_panel
from .logging_config import get_logger, log_exception
from .models import CaptionTrackRef, ExtractionResult, ExtractionStatus, Lecture, WorkItem
from .retry import RetryContext
from .subtitles import convert_cues

module_logger = get_logger('lecture')

READ_TRANSCRIPT_JS = """
(panelSelector) => {
    const panel = document.querySelector(panelSelector);
    if (!panel) {
        return '';
    }
    let cues = panel.querySelectorAll('[data-purpose="transcript-cue"]');
    if (!cues.length) {
        cues = panel.querySelectorAll('p');
    }
    if (!cues.length) {
        return (panel.innerText || '').trim();
    }
    return Array.from(cues, (el) => (el.textContent || '').trim())
        .filter((text) => text.length > 0)
        .join('\\n\\n');
}
"""


class ExtractionState(str, Enum):
    NAVIGATING = "navigating"
    LOCATING_TOGGLE = "locating_toggle"
    OPENING_PANEL = "opening_panel"
    EXTRACTING_TEXT = "extracting_text"
    EXTRACTING_CAPTIONS = "extracting_captions"
    DONE = "done"
    ABORTED = "aborted"


@dataclass
class SettleDelays:
    """Pauses that let client-side rendering catch up, one per suspension class."""
    after_navigation: float = 3.0
    after_click: float = 1.0
    after_panel_open: float = 1.5


@dataclass
class ExtractionSettings:
    """Everything the state machine needs from configuration."""
    preferred_locale: str = "en_US"
    download_captions: bool = False
    text_read_attempts: int = 5
    text_read_delay: float = 1.0
    navigation_timeout: float = 60.0
    selector_timeout: float = 10.0
    panel_timeout: float = 5.0
    panel_selector: str = PANEL_SELECTOR
    settle: SettleDelays = field(default_factory=SettleDelays)

    @classmethod
    def from_config(cls, config: Config) -> 'ExtractionSettings':
        extraction = config.extraction
        return cls(
            preferred_locale=extraction.preferred_locale,
            download_captions=extraction.download_captions,
            text_read_attempts=extraction.text_read_attempts,
            text_read_delay=extraction.text_read_delay,
            navigation_timeout=config.browser.navigation_timeout,
            selector_timeout=config.browser.selector_timeout,
            panel_timeout=config.browser.panel_timeout,
            settle=SettleDelays(
                after_navigation=extraction.settle_after_navigation,
                after_click=extraction.settle_after_click,
                after_panel_open=extraction.settle_after_panel_open,
            ),
        )


def lecture_url(base_url: str, course_slug: str, lecture_id: int) -> str:
    return f"{base_url.rstrip('/')}/course/{course_slug}/learn/lecture/{lecture_id}"


def select_caption_track(lecture: Lecture, locale: str) -> Optional[CaptionTrackRef]:
    """Exact locale match only; there is no fallback to another locale."""
    for track in lecture.caption_tracks:
        if track.locale_code == locale:
            return track
    return None


class LectureExtractor:
    """Runs the extraction state machine for work items on one session."""

    def __init__(
        self,
        session: BrowserSession,
        base_url: str,
        course_slug: str,
        settings: Optional[ExtractionSettings] = None,
        strategies: Optional[Sequence[ToggleStrategy]] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        logger=None,
    ):
        self.session = session
        self.base_url = base_url
        self.course_slug = course_slug
        self.settings = settings or ExtractionSettings()
        self.strategies = list(strategies) if strategies is not None else default_strategies()
        self.sleep = sleep
        self.logger = logger or module_logger

    async def extract(self, item: WorkItem) -> ExtractionResult:
        """Extract one lecture. Per-lecture failures never propagate."""
        result = ExtractionResult(lecture_id=item.lecture.id, status=ExtractionStatus.ERROR)
        try:
            await self._run(item, result)
        except ExtractionError as e:
            self._enter(result, ExtractionState.ABORTED)
            result.status = ExtractionStatus.ERROR
            result.error = e.message
            self.logger.warning(f"Aborted '{item.label}': {e}")
        except Exception as e:
            self._enter(result, ExtractionState.ABORTED)
            result.status = ExtractionStatus.ERROR
            result.error = f"{type(e).__name__}: {e}"
            log_exception(self.logger, e, f"Unexpected error extracting '{item.label}'")
        return result

    def _enter(self, result: ExtractionResult, state: ExtractionState) -> None:
        result.states.append(state.value)

    async def _run(self, item: WorkItem, result: ExtractionResult) -> None:
        lecture = item.lecture
        settings = self.settings

        self._enter(result, ExtractionState.NAVIGATING)
        await self._navigate(lecture)

        self._enter(result, ExtractionState.LOCATING_TOGGLE)
        winner = await open_transcript_panel(
            self.session,
            self.strategies,
            panel_selector=settings.panel_selector,
            selector_timeout=settings.selector_timeout,
            panel_timeout=settings.panel_timeout,
            settle_after_click=settings.settle.after_click,
            sleep=self.sleep,
        )
        if winner is None:
            self.logger.info(f"No transcript toggle for '{item.label}'")
            result.status = ExtractionStatus.NO_TRANSCRIPT
            self._enter(result, ExtractionState.DONE)
            return
        result.toggle_strategy = winner

        self._enter(result, ExtractionState.OPENING_PANEL)
        await self.sleep(settings.settle.after_panel_open)

        self._enter(result, ExtractionState.EXTRACTING_TEXT)
        text = await self._read_text_with_retry(lecture)
        if not text:
            self.logger.info(f"Transcript panel stayed empty for '{item.label}'")
            result.status = ExtractionStatus.NO_TRANSCRIPT
            self._enter(result, ExtractionState.DONE)
            return
        result.transcript_text = text
        result.status = ExtractionStatus.OK

        if settings.download_captions and lecture.caption_tracks:
            self._enter(result, ExtractionState.EXTRACTING_CAPTIONS)
            await self._extract_captions(item, result)

        self._enter(result, ExtractionState.DONE)

    async def _navigate(self, lecture: Lecture) -> None:
        url = lecture_url(self.base_url, self.course_slug, lecture.id)
        self.logger.debug(f"Navigating to {url}")
        try:
            status = await self.session.navigate(url, self.settings.navigation_timeout)
        except Exception as e:
            raise NavigationError(lecture.id, url, reason=str(e)) from e

        if status is not None and status >= 400:
            raise NavigationError(lecture.id, url, reason=f"HTTP {status}")

        await self.sleep(self.settings.settle.after_navigation)

    async def _read_text(self) -> str:
        text = await self.session.evaluate(READ_TRANSCRIPT_JS, self.settings.panel_selector)
        return (text or '').strip()

    async def _read_text_with_retry(self, lecture: Lecture) -> str:
        """Re-read the panel until it has text; it may render after becoming visible."""
        retry = RetryContext(
            max_attempts=self.settings.text_read_attempts,
            initial_delay=self.settings.text_read_delay,
            backoff_factor=1.0,
            jitter=False,
        )
        while retry.should_retry():
            try:
                text = await self._read_text()
            except Exception as e:
                retry.record_failure(e)
                self.logger.debug(f"Transcript read {retry.attempt} failed for lecture {lecture.id}: {e}")
                text = ''

            if text:
                retry.record_success()
                return text

            if not retry.exhausted:
                await self.sleep(retry.next_delay())

        if retry.last_exception is not None:
            self.logger.warning(
                f"Could not read transcript panel of lecture {lecture.id}: {retry.last_exception}"
            )
        return ''

    async def _extract_captions(self, item: WorkItem, result: ExtractionResult) -> None:
        lecture = item.lecture
        locale = self.settings.preferred_locale
        track = select_caption_track(lecture, locale)
        if track is None:
            available = [t.locale_code for t in lecture.caption_tracks]
            self.logger.info(f"No '{locale}' captions for '{item.label}' (available: {available})")
            return

        try:
            payload = await self.session.fetch_text(track.source_url)
        except Exception as e:
            error = CaptionFetchError(lecture.id, locale, reason=str(e))
            self.logger.warning(f"{error}; keeping transcript without subtitles")
            return

        records = convert_cues(payload)
        if not records:
            self.logger.warning(f"Caption track for '{item.label}' contained no cues")
            return
        result.subtitle_records = records
