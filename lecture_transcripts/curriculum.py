"""Resolve a flat curriculum listing into an ordered chapter -> lecture tree."""

from typing import Iterable, Optional

from .logging_config import get_logger
from .models import Chapter, CourseStructure, CurriculumRecord, Lecture, RecordKind

logger = get_logger('curriculum')


def resolve_course_structure(
    records: Iterable[CurriculumRecord],
    title: str = "",
) -> CourseStructure:
    """Build the course tree in a single pass.

    The upstream listing is sorted by ``sort_order`` descending to recover
    authoring order. A chapter record opens a new chapter; each video
    lecture joins the open chapter, or the standalone group when no chapter
    has been opened yet. Non-video lectures (quizzes, practice tests) and
    records of any other kind are skipped.
    """
    ordered = sorted(records, key=lambda r: r.sort_order, reverse=True)

    structure = CourseStructure(title=title)
    current: Optional[Chapter] = None
    skipped = 0

    for record in ordered:
        if record.kind == RecordKind.CHAPTER:
            current = Chapter(
                id=record.id,
                title=record.title,
                ordinal=len(structure.chapters) + 1,
            )
            structure.chapters.append(current)
            continue

        if not record.is_video_lecture:
            skipped += 1
            continue

        group = current.lectures if current is not None else structure.standalone_lectures
        group.append(Lecture(
            id=record.id,
            title=record.title,
            ordinal=len(group) + 1,
            created_at=record.created_at,
            duration_seconds=record.duration_seconds,
            caption_tracks=record.caption_tracks,
            chapter_ordinal=current.ordinal if current is not None else None,
        ))

    logger.info(
        f"Resolved {len(structure.chapters)} chapters, {structure.lecture_count} lectures "
        f"({len(structure.standalone_lectures)} standalone, {skipped} non-video items skipped)"
    )
    return structure
