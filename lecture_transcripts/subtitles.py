"""Convert timed-text (WebVTT style) cue blocks into numbered subtitle records.

Input timestamps use a variable precision grammar, ``[[HH:]MM:]SS[.mmm]``.
Output timestamps are always ``HH:MM:SS,mmm``.
"""

import re
from typing import Optional

from .logging_config import get_logger
from .models import SubtitleRecord

logger = get_logger('subtitles')

TIMESTAMP_PATTERN = re.compile(
    r'^(?:(?:(?P<hours>\d+):)?(?P<minutes>\d{1,2}):)?(?P<seconds>\d{1,2})(?:[.,](?P<fraction>\d+))?$'
)
BLOCK_SEPARATOR = re.compile(r'\n[ \t]*\n')
ARROW = '-->'


def normalize_timestamp(value: str) -> str:
    """Normalize a timestamp to ``HH:MM:SS,mmm``.

    Missing hour/minute units are zero-filled and a missing or short
    fractional part is right-padded to three digits. Longer fractions are
    truncated to milliseconds.

    Raises:
        ValueError: If the value does not follow the timestamp grammar
    """
    match = TIMESTAMP_PATTERN.match(value.strip())
    if not match:
        raise ValueError(f"Invalid timestamp: '{value}'")

    hours = int(match.group('hours') or 0)
    minutes = int(match.group('minutes') or 0)
    seconds = int(match.group('seconds'))
    fraction = (match.group('fraction') or '').ljust(3, '0')[:3]

    return f"{hours:02d}:{minutes:02d}:{seconds:02d},{fraction}"


def timestamp_to_millis(normalized: str) -> int:
    """Milliseconds for a normalized ``HH:MM:SS,mmm`` timestamp."""
    clock, millis = normalized.split(',')
    hours, minutes, seconds = (int(part) for part in clock.split(':'))
    return ((hours * 60 + minutes) * 60 + seconds) * 1000 + int(millis)


def _parse_block(block: str) -> Optional[tuple[str, str, str]]:
    lines = [line.rstrip() for line in block.strip('\n').split('\n')]
    lines = [line for line in lines if line.strip()]
    if len(lines) < 2:
        return None

    # A cue identifier may precede the timing line
    header_index = next((i for i, line in enumerate(lines) if ARROW in line), None)
    if header_index is None:
        return None

    text_lines = lines[header_index + 1:]
    if not text_lines:
        return None

    left, _, right = lines[header_index].partition(ARROW)
    right_parts = right.split()
    if not right_parts:
        return None

    try:
        start = normalize_timestamp(left)
        # Anything after the end timestamp is cue settings
        end = normalize_timestamp(right_parts[0])
    except ValueError as e:
        logger.debug(f"Dropping cue with bad timing line: {e}")
        return None

    if timestamp_to_millis(end) < timestamp_to_millis(start):
        logger.debug(f"Cue ends before it starts ({start} --> {end}); clamping end")
        end = start

    return start, end, '\n'.join(line.strip() for line in text_lines)


def parse_cues(payload: str) -> list[tuple[str, str, str]]:
    """Split a timed-text payload into ``(start, end, text)`` cues.

    Blocks without a timing line (the ``WEBVTT`` header, ``NOTE`` and
    ``STYLE`` blocks) or with fewer than two lines are dropped.
    """
    text = payload.replace('\r\n', '\n').replace('\r', '\n').lstrip('\ufeff')
    cues = []
    for block in BLOCK_SEPARATOR.split(text):
        parsed = _parse_block(block)
        if parsed is not None:
            cues.append(parsed)
    return cues


def convert_cues(payload: str) -> list[SubtitleRecord]:
    """Convert a timed-text payload into records numbered 1..N in input order."""
    records = [
        SubtitleRecord(index=index, start=start, end=end, text=text)
        for index, (start, end, text) in enumerate(parse_cues(payload), 1)
    ]
    logger.debug(f"Converted {len(records)} cues")
    return records


def render_subtitles(records: list[SubtitleRecord]) -> str:
    """Join records as subtitle text, blocks separated by one blank line."""
    return '\n'.join(record.render() for record in records)
