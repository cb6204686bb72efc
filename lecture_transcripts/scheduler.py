"""Fan work items out to concurrent lanes and wait for all of them.

Items are dealt round-robin by position (item i goes to lane i mod K).
Each lane opens its own browser session and processes its items strictly
in order, one at a time. Lanes share nothing but the output directory, and
file names never collide, so no locking is needed.
"""

import asyncio
import logging
from typing import AsyncContextManager, Callable, Optional, Sequence

from .browser import BrowserSession
from .exceptions import ConfigurationError
from .lecture import LectureExtractor
from .logging_config import LaneLogger, get_logger, log_exception
from .models import ExtractionResult, ExtractionStatus, RunSummary, WorkItem
from .output import OutputWriter

logger = get_logger('scheduler')

SessionFactory = Callable[[], AsyncContextManager[BrowserSession]]
ExtractorFactory = Callable[[BrowserSession, LaneLogger], LectureExtractor]
ProgressCallback = Callable[[int, int, str, str], None]


def partition(items: Sequence[WorkItem], lanes: int) -> list[list[WorkItem]]:
    """Deal items round-robin into ``lanes`` lists, keeping relative order."""
    if not isinstance(lanes, int) or lanes < 1:
        raise ConfigurationError(f"Lane count must be an integer >= 1, got {lanes!r}", config_key='extraction.lanes')
    return [list(items[lane::lanes]) for lane in range(lanes)]


class ExtractionScheduler:
    """Partition, fan out, join. Retries live in the per-lecture state machine."""

    def __init__(
        self,
        session_factory: SessionFactory,
        extractor_factory: ExtractorFactory,
        writer: OutputWriter,
        lanes: int = 5,
    ):
        self.session_factory = session_factory
        self.extractor_factory = extractor_factory
        self.writer = writer
        self.lanes = lanes
        self._completed = 0

    async def run(
        self,
        items: Sequence[WorkItem],
        on_progress: Optional[ProgressCallback] = None,
        course_title: str = "",
    ) -> RunSummary:
        """Process every item exactly once across the lanes.

        Args:
            items: Work items in curriculum order
            on_progress: Callback (current, total, label, status)
            course_title: Title recorded in the summary

        Returns:
            RunSummary with per-status counts
        """
        assignments = partition(items, self.lanes)
        active = [(number, lane_items) for number, lane_items in enumerate(assignments, 1) if lane_items]

        summary = RunSummary(course_title=course_title, total_lectures=len(items), lanes_used=len(active))
        self._completed = 0

        logger.info(f"Extracting {len(items)} lectures on {len(active)} lanes")
        await asyncio.gather(*(
            self._run_lane(number, lane_items, summary, on_progress)
            for number, lane_items in active
        ))

        logger.info(
            f"Run complete: {summary.ok} transcripts, {summary.no_transcript} without transcript, "
            f"{summary.failed} failed, {summary.subtitles} subtitle files"
        )
        return summary

    async def _run_lane(
        self,
        lane: int,
        items: list[WorkItem],
        summary: RunSummary,
        on_progress: Optional[ProgressCallback],
    ) -> None:
        lane_logger = LaneLogger(logger, lane)
        lane_logger.info(f"Starting with {len(items)} lectures")
        done = 0

        try:
            async with self.session_factory() as session:
                extractor = self.extractor_factory(session, lane_logger)
                for item in items:
                    self._report(on_progress, lane_logger, self._completed + 1, summary.total_lectures,
                                 item.label, "processing...")
                    try:
                        result = await extractor.extract(item)
                    except Exception as e:
                        log_exception(lane_logger, e, f"Extraction crashed for '{item.label}'")
                        result = ExtractionResult(
                            lecture_id=item.lecture.id,
                            status=ExtractionStatus.ERROR,
                            error=str(e),
                        )
                    self._finish(item, result, summary, lane_logger, on_progress)
                    done += 1
        except Exception as e:
            log_exception(lane_logger, e, "Lane session failed")

        # Items the lane never reached still get a placeholder
        for item in items[done:]:
            result = ExtractionResult(
                lecture_id=item.lecture.id,
                status=ExtractionStatus.ERROR,
                error="browser session unavailable",
            )
            self._finish(item, result, summary, lane_logger, on_progress)

        lane_logger.info("Finished")

    def _finish(
        self,
        item: WorkItem,
        result: ExtractionResult,
        summary: RunSummary,
        lane_logger: LaneLogger,
        on_progress: Optional[ProgressCallback],
    ) -> None:
        try:
            self.writer.write_result(item, result)
        except OSError as e:
            log_exception(lane_logger, e, f"Failed to write files for '{item.label}'")
            if result.status != ExtractionStatus.ERROR:
                result.status = ExtractionStatus.ERROR
                result.error = f"write failed: {e}"
            result.subtitle_records = None

        summary.record(result)
        self._completed += 1

        status = result.status.value
        if result.subtitle_records:
            status += " (+subtitles)"
        if result.error:
            status += f": {result.error}"
        lane_logger.info(f"{item.label}: {status}")
        self._report(on_progress, lane_logger, self._completed, summary.total_lectures, item.label, status)

    def _report(self, on_progress: Optional[ProgressCallback], lane_logger: LaneLogger, *args) -> None:
        """Progress display must not fail the lane or count an item twice."""
        if not on_progress:
            return
        try:
            on_progress(*args)
        except Exception as e:
            log_exception(lane_logger, e, "Progress callback failed", level=logging.WARNING)
