"""Data models for curriculum records, the resolved course tree and results."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class RecordKind(str, Enum):
    """Kind of a raw curriculum record."""
    CHAPTER = "chapter"
    LECTURE = "lecture"
    OTHER = "other"


class ExtractionStatus(str, Enum):
    """Terminal outcome of one lecture extraction."""
    OK = "ok"
    NO_TRANSCRIPT = "no-transcript"
    ERROR = "error"


@dataclass(frozen=True)
class CaptionTrackRef:
    """Locale-tagged timed-text resource attached to a lecture's video."""
    locale_code: str
    source_url: str


@dataclass(frozen=True)
class CurriculumRecord:
    """One raw unit from the upstream curriculum listing."""
    id: int
    kind: RecordKind
    title: str
    sort_order: int
    created_at: Optional[datetime] = None
    asset_type: Optional[str] = None   # lecture only
    duration_seconds: int = 0          # lecture only
    caption_tracks: tuple[CaptionTrackRef, ...] = ()

    @property
    def is_video_lecture(self) -> bool:
        return (
            self.kind == RecordKind.LECTURE
            and (self.asset_type or '').lower() == 'video'
        )


@dataclass
class Lecture:
    """A video lecture placed in the course tree.

    ``chapter_ordinal`` is a naming reference only; chapters own lectures,
    never the other way round. ``None`` marks a standalone lecture.
    """
    id: int
    title: str
    ordinal: int
    created_at: Optional[datetime] = None
    duration_seconds: int = 0
    caption_tracks: tuple[CaptionTrackRef, ...] = ()
    chapter_ordinal: Optional[int] = None

    @property
    def is_standalone(self) -> bool:
        return self.chapter_ordinal is None

    @property
    def duration_minutes(self) -> int:
        return self.duration_seconds // 60


@dataclass
class Chapter:
    """A chapter and its ordered lectures."""
    id: int
    title: str
    ordinal: int
    lectures: list[Lecture] = field(default_factory=list)


@dataclass
class CourseStructure:
    """Ordered chapter -> lecture tree built once per run."""
    chapters: list[Chapter] = field(default_factory=list)
    standalone_lectures: list[Lecture] = field(default_factory=list)
    title: str = ""

    @property
    def lecture_count(self) -> int:
        return sum(len(c.lectures) for c in self.chapters) + len(self.standalone_lectures)

    def iter_lectures(self):
        """Yield (lecture, chapter or None) in curriculum order."""
        for chapter in self.chapters:
            for lecture in chapter.lectures:
                yield lecture, chapter
        for lecture in self.standalone_lectures:
            yield lecture, None


@dataclass(frozen=True)
class WorkItem:
    """A single lecture queued for extraction."""
    lecture: Lecture
    chapter: Optional[Chapter] = None
    position: int = 0

    @property
    def label(self) -> str:
        """Display/file label: "<c>.<l> <title>" or "<l>. <title>"."""
        if self.chapter is not None:
            return f"{self.chapter.ordinal}.{self.lecture.ordinal} {self.lecture.title}"
        return f"{self.lecture.ordinal}. {self.lecture.title}"


@dataclass(frozen=True)
class SubtitleRecord:
    """One numbered subtitle cue with normalized HH:MM:SS,mmm timestamps."""
    index: int
    start: str
    end: str
    text: str

    def render(self) -> str:
        return f"{self.index}\n{self.start} --> {self.end}\n{self.text}\n"


@dataclass
class ExtractionResult:
    """Outcome of extracting a single lecture."""
    lecture_id: int
    status: ExtractionStatus
    transcript_text: Optional[str] = None
    subtitle_records: Optional[list[SubtitleRecord]] = None
    error: Optional[str] = None
    toggle_strategy: Optional[str] = None
    states: list[str] = field(default_factory=list)

    @property
    def has_transcript(self) -> bool:
        return self.status == ExtractionStatus.OK and bool(self.transcript_text)


@dataclass
class RunSummary:
    """Counts for a finished extraction run."""
    course_title: str
    total_lectures: int
    ok: int = 0
    no_transcript: int = 0
    failed: int = 0
    subtitles: int = 0
    lanes_used: int = 0
    output_dir: Optional[str] = None
    archive_path: Optional[str] = None

    @property
    def processed(self) -> int:
        return self.ok + self.no_transcript + self.failed

    def record(self, result: ExtractionResult) -> None:
        if result.status == ExtractionStatus.OK:
            self.ok += 1
        elif result.status == ExtractionStatus.NO_TRANSCRIPT:
            self.no_transcript += 1
        else:
            self.failed += 1
        if result.subtitle_records:
            self.subtitles += 1
