"""Main extractor that orchestrates a course run.

fetch curriculum -> resolve tree -> write contents -> fan out lanes ->
one transcript (and optional subtitle) file per lecture.
"""

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Callable, Optional

from .api import CourseClient, CourseInfo, parse_course_identifier
from .browser import BrowserPool
from .config import Config, get_config
from .curriculum import resolve_course_structure
from .lecture import ExtractionSettings, LectureExtractor
from .logging_config import get_logger
from .models import CourseStructure, RunSummary, WorkItem
from .output import OutputWriter
from .scheduler import ExtractionScheduler, ProgressCallback, SessionFactory

logger = get_logger('extractor')


def build_work_items(structure: CourseStructure) -> list[WorkItem]:
    """Flatten the tree: chapters in order, then standalone lectures."""
    return [
        WorkItem(lecture=lecture, chapter=chapter, position=position)
        for position, (lecture, chapter) in enumerate(structure.iter_lectures())
    ]


@dataclass
class PreparedCourse:
    """Everything known about a course before extraction starts."""
    info: CourseInfo
    slug: str
    structure: CourseStructure
    writer: OutputWriter


class CourseExtractor:
    """Extracts every lecture transcript of one course."""

    def __init__(
        self,
        config: Optional[Config] = None,
        client_factory: Optional[Callable[[], CourseClient]] = None,
        session_factory: Optional[SessionFactory] = None,
    ):
        self.config = config or get_config()
        self.client_factory = client_factory
        self.session_factory = session_factory

    def _client(self) -> CourseClient:
        if self.client_factory is not None:
            return self.client_factory()
        return CourseClient(
            self.config.platform.base_url,
            self.config.require_access_token(),
            self.config.api,
        )

    def prepare(self, course: str) -> PreparedCourse:
        """Validate inputs, fetch the curriculum and write the contents listing.

        Raises:
            ConfigurationError: Bad configuration or missing access token
            InvalidCourseIdentifierError: Course URL/slug cannot be parsed
            CurriculumError: Course API failed after retries
        """
        self.config.validate()
        self.config.require_access_token()
        identifier = parse_course_identifier(course)

        logger.info(f"Preparing course: {identifier}")
        with self._client() as client:
            info = client.get_course(identifier)
            records = client.get_curriculum(info.id)

        structure = resolve_course_structure(records, title=info.title)

        output = self.config.output
        writer = OutputWriter(output.directory, info.title or identifier, output.max_filename_length)
        writer.prepare()
        writer.write_manifest(structure, output.manifest_name, output.date_format)

        return PreparedCourse(
            info=info,
            slug=info.published_title or identifier,
            structure=structure,
            writer=writer,
        )

    def run(
        self,
        course: str,
        on_progress: Optional[ProgressCallback] = None,
        manifest_only: bool = False,
    ) -> RunSummary:
        """Synchronous entry point; see run_async."""
        return asyncio.run(self.run_async(course, on_progress, manifest_only))

    async def run_async(
        self,
        course: str,
        on_progress: Optional[ProgressCallback] = None,
        manifest_only: bool = False,
    ) -> RunSummary:
        """Extract a whole course.

        Configuration and curriculum failures raise before any lane starts.
        Per-lecture failures end up as placeholder files and summary counts.
        """
        prepared = self.prepare(course)
        items = build_work_items(prepared.structure)

        if manifest_only or not items:
            if not items:
                logger.warning("Course has no video lectures")
            return RunSummary(
                course_title=prepared.info.title,
                total_lectures=len(items),
                output_dir=str(prepared.writer.course_dir),
            )

        settings = ExtractionSettings.from_config(self.config)
        base_url = self.config.platform.base_url

        def make_extractor(session, lane_logger):
            return LectureExtractor(session, base_url, prepared.slug, settings, logger=lane_logger)

        async with self._sessions() as session_factory:
            scheduler = ExtractionScheduler(
                session_factory,
                make_extractor,
                prepared.writer,
                lanes=self.config.extraction.lanes,
            )
            summary = await scheduler.run(items, on_progress, course_title=prepared.info.title)

        summary.output_dir = str(prepared.writer.course_dir)
        if self.config.output.archive:
            summary.archive_path = str(prepared.writer.create_archive())
        return summary

    @asynccontextmanager
    async def _sessions(self):
        """Yield a per-lane session factory, launching a browser if none was injected."""
        if self.session_factory is not None:
            yield self.session_factory
            return

        async with BrowserPool(
            self.config.browser,
            self.config.platform.base_url,
            self.config.platform.access_token,
        ) as pool:
            yield pool.session
