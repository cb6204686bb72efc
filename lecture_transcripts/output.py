"""File naming and persistence for transcripts, subtitles and the contents listing.

Every lecture gets exactly one transcript file, real text or a placeholder,
so the output enumerates the course 1:1. File names start with the
lecture's ordinal label, which keeps concurrent lanes from colliding.
"""

import re
import shutil
from pathlib import Path
from typing import Optional

from .logging_config import get_logger
from .manifest import write_manifest
from .models import CourseStructure, ExtractionResult, ExtractionStatus, WorkItem
from .subtitles import render_subtitles

logger = get_logger('output')

UNSAFE_CHARS = re.compile(r'[^A-Za-z0-9 ._-]')
PLACEHOLDER = "Transcript not available"
TRANSCRIPT_SUFFIX = ".txt"
SUBTITLE_SUFFIX = ".srt"

REASONS = {
    ExtractionStatus.NO_TRANSCRIPT: "No transcript was found for this lecture.",
    ExtractionStatus.ERROR: "The lecture could not be processed.",
}


def safe_filename(label: str, filler: str = "_", max_length: int = 150) -> str:
    """Replace every character outside ``[A-Za-z0-9 ._-]`` with the filler.

    Leading/trailing spaces and dots are trimmed. Names longer than
    ``max_length`` are truncated at the end so the ordinal prefix survives.
    """
    cleaned = UNSAFE_CHARS.sub(filler, label)
    cleaned = cleaned[:max_length].strip(' .')
    return cleaned or filler


def placeholder_text(item: WorkItem, result: ExtractionResult) -> str:
    lines = [PLACEHOLDER, "", item.label, REASONS.get(result.status, REASONS[ExtractionStatus.ERROR])]
    if result.error:
        lines.append(f"Error: {result.error}")
    return '\n'.join(lines) + '\n'


class OutputWriter:
    """Writes one course's files under ``<root>/<course title>/``."""

    def __init__(self, root: str, course_title: str, max_filename_length: int = 150):
        self.root = Path(root)
        self.max_filename_length = max_filename_length
        self.course_dir = self.root / safe_filename(course_title or "course", max_length=max_filename_length)

    def prepare(self) -> Path:
        self.course_dir.mkdir(parents=True, exist_ok=True)
        logger.debug(f"Output directory: {self.course_dir}")
        return self.course_dir

    def _stem(self, item: WorkItem) -> str:
        # Leave room for the suffix
        return safe_filename(item.label, max_length=self.max_filename_length - len(SUBTITLE_SUFFIX))

    def transcript_path(self, item: WorkItem) -> Path:
        return self.course_dir / f"{self._stem(item)}{TRANSCRIPT_SUFFIX}"

    def subtitle_path(self, item: WorkItem) -> Path:
        return self.course_dir / f"{self._stem(item)}{SUBTITLE_SUFFIX}"

    def write_manifest(self, structure: CourseStructure, name: str = "contents.txt",
                       date_format: str = "%x") -> Path:
        return write_manifest(structure, self.course_dir / name, date_format)

    def write_result(self, item: WorkItem, result: ExtractionResult) -> list[Path]:
        """Persist a lecture result; returns the paths written."""
        written = []

        transcript_path = self.transcript_path(item)
        if result.has_transcript:
            content = result.transcript_text.rstrip('\n') + '\n'
        else:
            content = placeholder_text(item, result)
        transcript_path.write_text(content, encoding='utf-8')
        written.append(transcript_path)

        if result.status == ExtractionStatus.OK and result.subtitle_records:
            subtitle_path = self.subtitle_path(item)
            subtitle_path.write_text(render_subtitles(result.subtitle_records), encoding='utf-8')
            written.append(subtitle_path)

        logger.debug(f"Wrote {', '.join(p.name for p in written)}")
        return written

    def create_archive(self, destination: Optional[str] = None) -> Path:
        """Zip the course directory; returns the archive path."""
        base_name = destination or str(self.course_dir)
        archive = shutil.make_archive(
            base_name,
            'zip',
            root_dir=self.course_dir.parent,
            base_dir=self.course_dir.name,
        )
        logger.info(f"Created archive: {archive}")
        return Path(archive)
