"""Render the resolved course tree as a plain-text table of contents.

Format::

    1. Getting Started
    1.1 Welcome [2 min, 03/14/24]
    1.2 Setup [11 min, 03/14/24]

    2. Basics
    2.1 Variables [7 min, 03/15/24]

    1. Bonus lecture [4 min, 03/20/24]

Standalone lectures (those outside any chapter) follow the chapters and
carry no chapter prefix.
"""

import re
from dataclasses import dataclass, field
from pathlib import Path

from .logging_config import get_logger
from .models import CourseStructure, Lecture

logger = get_logger('manifest')

LECTURE_LINE = re.compile(r'^(\d+)\.(\d+) (.*) \[(\d+) min, (.*)\]$')
STANDALONE_LINE = re.compile(r'^(\d+)\. (.*) \[(\d+) min, (.*)\]$')
CHAPTER_LINE = re.compile(r'^(\d+)\. (.*)$')
UNKNOWN_DATE = "unknown date"


def _lecture_details(lecture: Lecture, date_format: str) -> str:
    date = lecture.created_at.strftime(date_format) if lecture.created_at else UNKNOWN_DATE
    return f"[{lecture.duration_minutes} min, {date}]"


def render_manifest(structure: CourseStructure, date_format: str = "%x") -> str:
    """Render the contents listing for a course structure."""
    lines = []
    for chapter in structure.chapters:
        lines.append(f"{chapter.ordinal}. {chapter.title}")
        for lecture in chapter.lectures:
            lines.append(
                f"{chapter.ordinal}.{lecture.ordinal} {lecture.title} "
                f"{_lecture_details(lecture, date_format)}"
            )
        lines.append("")

    for lecture in structure.standalone_lectures:
        lines.append(f"{lecture.ordinal}. {lecture.title} {_lecture_details(lecture, date_format)}")

    return '\n'.join(lines).rstrip('\n') + '\n' if lines else ''


def write_manifest(structure: CourseStructure, path: Path, date_format: str = "%x") -> Path:
    """Write the contents listing as UTF-8 text.

    Raises:
        OSError: If the file cannot be written (reported, not retried)
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_manifest(structure, date_format), encoding='utf-8')
    logger.info(f"Wrote contents listing: {path}")
    return path


@dataclass
class ManifestSummary:
    """Structure recovered from a rendered contents listing."""
    chapters: list[tuple[int, str, list[int]]] = field(default_factory=list)
    standalone: list[int] = field(default_factory=list)

    @property
    def chapter_count(self) -> int:
        return len(self.chapters)

    @property
    def lecture_count(self) -> int:
        return sum(len(ordinals) for _, _, ordinals in self.chapters) + len(self.standalone)


def _blocks(text: str) -> list[list[str]]:
    """Split the listing into runs of non-blank lines."""
    blocks, current = [], []
    for raw in text.splitlines():
        line = raw.rstrip()
        if line:
            current.append(line)
        elif current:
            blocks.append(current)
            current = []
    if current:
        blocks.append(current)
    return blocks


def _is_standalone_block(block: list[str]) -> bool:
    return all(STANDALONE_LINE.match(line) for line in block)


def _add_lecture(summary: ManifestSummary, line: str) -> None:
    match = LECTURE_LINE.match(line)
    if not match:
        logger.debug(f"Ignoring unrecognised line: {line}")
        return

    chapter_ordinal, lecture_ordinal = int(match.group(1)), int(match.group(2))
    for ordinal, _, lectures in reversed(summary.chapters):
        if ordinal == chapter_ordinal:
            lectures.append(lecture_ordinal)
            return
    logger.warning(f"Lecture line without a chapter heading: {line}")


def parse_manifest(text: str) -> ManifestSummary:
    """Recover chapter and lecture ordinals from a rendered listing.

    Every chapter renders as its own blank-separated block headed by
    ``N. title``, and standalone lectures always form the final block.
    A chapter title may itself end in ``[M min, ...]``, so a heading is
    recognised by its position, never by its shape. A lone last block of
    ``N. title [M min, date]`` lines reads as standalone lectures.
    """
    summary = ManifestSummary()
    blocks = _blocks(text)

    for number, block in enumerate(blocks, 1):
        if number == len(blocks) and _is_standalone_block(block):
            summary.standalone.extend(int(STANDALONE_LINE.match(line).group(1)) for line in block)
            continue

        heading = CHAPTER_LINE.match(block[0])
        if heading:
            summary.chapters.append((int(heading.group(1)), heading.group(2), []))
            lines = block[1:]
        else:
            lines = block

        for line in lines:
            _add_lecture(summary, line)

    return summary
