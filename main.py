#!/usr/bin/env python3
"""
Lecture Transcripts

Extract lecture transcripts from a course player into a folder with a
contents listing, one transcript per lecture and optional subtitle files.

Usage:
    python main.py COURSE_URL                     # Extract with 5 lanes
    python main.py COURSE_URL -k 3 --captions     # 3 lanes, also write .srt files
    python main.py COURSE_URL --manifest-only     # Only write contents.txt
    python main.py --summary out/Course/contents.txt
"""

import argparse
import locale
import sys
from pathlib import Path

from lecture_transcripts.config import load_config
from lecture_transcripts.exceptions import LectureTranscriptsError
from lecture_transcripts.extractor import CourseExtractor
from lecture_transcripts.logging_config import setup_logging, get_logger
from lecture_transcripts.manifest import parse_manifest

logger = get_logger('main')


def print_progress(current: int, total: int, label: str, status: str):
    """Print progress to console."""
    if status == "processing...":
        return
    print(f"[{current}/{total}] {label}: {status}")


def print_manifest_summary(path: str) -> int:
    """Print chapter/lecture counts recovered from a contents listing."""
    manifest = Path(path)
    if not manifest.exists():
        print(f"Error: File not found: {path}")
        return 1

    summary = parse_manifest(manifest.read_text(encoding='utf-8'))
    print(f"\n=== {manifest} ===")
    for ordinal, title, lectures in summary.chapters:
        print(f"  {ordinal}. {title} ({len(lectures)} lectures)")
    if summary.standalone:
        print(f"  Standalone lectures: {len(summary.standalone)}")
    print(f"Chapters: {summary.chapter_count}")
    print(f"Lectures: {summary.lecture_count}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Extract lecture transcripts from a course into text files",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python main.py https://www.udemy.com/course/python-basics/
    python main.py python-basics --lanes 3 --captions --locale en_US
    python main.py python-basics --manifest-only
    python main.py python-basics --zip -o ~/transcripts
    python main.py --summary output/lecture-transcripts/Python_Basics/contents.txt

The access token is read from COURSE_ACCESS_TOKEN (or LTX_PLATFORM__ACCESS_TOKEN,
or a .env file).
        """
    )

    parser.add_argument(
        'course',
        nargs='?',
        help='Course URL or slug'
    )
    parser.add_argument(
        '--lanes', '-k',
        type=int,
        help='Number of concurrent browser lanes (default: 5)'
    )
    parser.add_argument(
        '--locale', '-l',
        help='Caption locale to download, exact match (default: en_US)'
    )
    parser.add_argument(
        '--captions',
        action='store_true',
        help='Also write a subtitle (.srt) file per lecture when captions exist'
    )
    parser.add_argument(
        '--output', '-o',
        help='Output directory (default: output/lecture-transcripts)'
    )
    parser.add_argument(
        '--zip',
        action='store_true',
        help='Zip the course folder when done'
    )
    parser.add_argument(
        '--manifest-only',
        action='store_true',
        help='Only resolve the curriculum and write the contents listing'
    )
    parser.add_argument(
        '--summary',
        metavar='PATH',
        help='Print chapter/lecture counts of an existing contents listing'
    )
    parser.add_argument(
        '--config', '-c',
        help='Path to a YAML config file'
    )
    parser.add_argument(
        '--headed',
        action='store_true',
        help='Show the browser window'
    )
    parser.add_argument(
        '--verbose', '-V',
        action='store_true',
        help='Enable verbose output (DEBUG level logging)'
    )
    parser.add_argument(
        '--log-file',
        help='Write logs to file (default: from config, otherwise no file logging)'
    )
    return parser


def apply_overrides(config, args) -> None:
    """Command line flags win over file and environment settings."""
    if args.lanes is not None:
        config.extraction.lanes = args.lanes
    if args.locale:
        config.extraction.preferred_locale = args.locale
    if args.captions:
        config.extraction.download_captions = True
    if args.output:
        config.output.directory = args.output
    if args.zip:
        config.output.archive = True
    if args.headed:
        config.browser.headless = False
    if args.verbose:
        config.logging.level = "DEBUG"
    if args.log_file:
        config.logging.file = args.log_file


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    # Dates in the contents listing follow the user's locale
    try:
        locale.setlocale(locale.LC_TIME, '')
    except locale.Error:
        logger.debug("System locale unavailable, dates use the C locale")

    if args.summary:
        return print_manifest_summary(args.summary)

    if not args.course:
        parser.print_help()
        return 1

    try:
        config = load_config(args.config)
        apply_overrides(config, args)
        # Checked before logging is set up, which needs a valid level
        config.validate()
    except LectureTranscriptsError as e:
        print(f"\nError: {e}")
        return 1

    setup_logging(
        level=config.logging.level,
        log_file=config.logging.file,
        json_format=config.logging.json_format,
        max_bytes=config.logging.max_bytes,
        backup_count=config.logging.backup_count,
        console=True,
    )
    logger.info("Lecture Transcripts starting")

    extractor = CourseExtractor(config)

    try:
        summary = extractor.run(
            args.course,
            on_progress=print_progress,
            manifest_only=args.manifest_only,
        )
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        print("\n\nInterrupted by user.")
        return 130
    except LectureTranscriptsError as e:
        logger.error(f"Run aborted: {e}")
        print(f"\nError: {e}")
        return 1
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        print(f"\nUnexpected error: {e}")
        return 1

    print("\n=== Summary ===")
    print(f"Course:           {summary.course_title}")
    print(f"Lectures:         {summary.total_lectures}")
    if not args.manifest_only:
        print(f"With transcript:  {summary.ok}")
        print(f"No transcript:    {summary.no_transcript}")
        print(f"Failed:           {summary.failed}")
        print(f"Subtitle files:   {summary.subtitles}")
        print(f"Lanes used:       {summary.lanes_used}")
    print(f"Output:           {summary.output_dir}")
    if summary.archive_path:
        print(f"Archive:          {summary.archive_path}")

    logger.info(
        f"Completed: {summary.ok}/{summary.total_lectures} transcripts, "
        f"{summary.no_transcript} unavailable, {summary.failed} failed"
    )
    return 0


if __name__ == '__main__':
    sys.exit(main())
