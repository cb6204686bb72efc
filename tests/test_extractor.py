"""End-to-end tests for a course run with a mocked API and fake browser."""

from unittest.mock import Mock

import httpx
import pytest
from fakes import PRIMARY_TOGGLE, FakeSession, fake_session_factory

from lecture_transcripts.api import CourseClient
from lecture_transcripts.config import Config
from lecture_transcripts.exceptions import ConfigurationError, CurriculumError, MissingConfigError
from lecture_transcripts.extractor import CourseExtractor, build_work_items
from lecture_transcripts.manifest import parse_manifest
from lecture_transcripts.output import PLACEHOLDER

BASE_URL = "https://courses.example.test"
EN_URL = "https://cdn.example.test/welcome.en.vtt"
VTT = "WEBVTT\n\n00:00.000 --> 00:02.000\nWelcome aboard.\n"

COURSE = {"id": 42, "title": "Python Basics", "published_title": "python-basics"}
CURRICULUM = {
    "count": 5,
    "next": None,
    "results": [
        {"_class": "quiz", "id": 5, "title": "Check yourself", "sort_order": 1},
        {"_class": "lecture", "id": 4, "title": "Setup", "sort_order": 2,
         "asset": {"asset_type": "Video", "time_estimation": 300}},
        {"_class": "lecture", "id": 3, "title": "Welcome", "sort_order": 3,
         "created": "2024-03-14T09:30:00Z",
         "asset": {"asset_type": "Video", "time_estimation": 125,
                   "captions": [{"locale_id": "en_US", "url": EN_URL}]}},
        {"_class": "chapter", "id": 2, "title": "Intro", "sort_order": 4},
        {"_class": "lecture", "id": 1, "title": "Preview", "sort_order": 5,
         "asset": {"asset_type": "Video", "time_estimation": 60}},
    ],
}


def course_api(request):
    if request.url.path.endswith("/subscriber-curriculum-items/"):
        return httpx.Response(200, json=CURRICULUM)
    if request.url.path == "/api-2.0/courses/python-basics/":
        return httpx.Response(200, json=COURSE)
    return httpx.Response(404)


@pytest.fixture
def config(tmp_path):
    config = Config()
    config.platform.base_url = BASE_URL
    config.platform.access_token = "secret-token"
    config.output.directory = str(tmp_path)
    config.output.date_format = "%Y-%m-%d"
    config.extraction.lanes = 2
    config.extraction.text_read_delay = 0
    config.extraction.settle_after_navigation = 0
    config.extraction.settle_after_click = 0
    config.extraction.settle_after_panel_open = 0
    return config


def make_extractor(config, handler=course_api, make_session=None, opened=None):
    def client_factory():
        return CourseClient(
            config.platform.base_url,
            config.platform.access_token,
            config.api,
            transport=httpx.MockTransport(handler),
            sleep=lambda seconds: None,
        )

    def default_session():
        return FakeSession(visible={PRIMARY_TOGGLE}, opens_panel={PRIMARY_TOGGLE}, captions={EN_URL: VTT})

    return CourseExtractor(
        config,
        client_factory=client_factory,
        session_factory=fake_session_factory(make_session or default_session, opened),
    )


class TestCourseExtractor:

    def test_full_run(self, config, tmp_path):
        config.extraction.download_captions = True
        opened = []

        summary = make_extractor(config, opened=opened).run(f"{BASE_URL}/course/python-basics/")

        course_dir = tmp_path / "Python Basics"
        assert summary.output_dir == str(course_dir)
        assert (summary.total_lectures, summary.ok, summary.subtitles) == (3, 3, 1)
        assert summary.lanes_used == 2
        assert sorted(p.name for p in course_dir.iterdir()) == [
            "1. Preview.txt",
            "1.1 Welcome.srt",
            "1.1 Welcome.txt",
            "1.2 Setup.txt",
            "contents.txt",
        ]
        assert (course_dir / "1.1 Welcome.txt").read_text(encoding="utf-8") == "Hello there.\n"

        visited = [url for session in opened for kind, url in session.events if kind == "navigate"]
        assert sorted(visited) == [
            f"{BASE_URL}/course/python-basics/learn/lecture/{lecture_id}" for lecture_id in (1, 3, 4)
        ]

    def test_contents_listing_matches_tree(self, config, tmp_path):
        summary = make_extractor(config).run("python-basics", manifest_only=True)

        text = (tmp_path / "Python Basics" / "contents.txt").read_text(encoding="utf-8")
        assert text == (
            "1. Intro\n"
            "1.1 Welcome [2 min, 2024-03-14]\n"
            "1.2 Setup [5 min, unknown date]\n"
            "\n"
            "1. Preview [1 min, unknown date]\n"
        )
        manifest = parse_manifest(text)
        assert manifest.lecture_count == summary.total_lectures == 3

    def test_manifest_only_starts_no_lanes(self, config, tmp_path):
        opened = []

        summary = make_extractor(config, opened=opened).run("python-basics", manifest_only=True)

        assert opened == []
        assert summary.processed == 0
        assert [p.name for p in (tmp_path / "Python Basics").iterdir()] == ["contents.txt"]

    def test_lectures_without_transcript_get_placeholders(self, config, tmp_path):
        config.extraction.download_captions = True

        summary = make_extractor(config, make_session=lambda: FakeSession(captions={EN_URL: VTT})).run("python-basics")

        assert summary.no_transcript == 3
        assert summary.subtitles == 0
        course_dir = tmp_path / "Python Basics"
        assert not list(course_dir.glob("*.srt"))
        transcripts = [p for p in course_dir.glob("*.txt") if p.name != "contents.txt"]
        assert len(transcripts) == 3
        assert all(p.read_text(encoding="utf-8").startswith(PLACEHOLDER) for p in transcripts)

    def test_archive(self, config, tmp_path):
        config.output.archive = True

        summary = make_extractor(config).run("python-basics")

        assert summary.archive_path == str(tmp_path / "Python Basics.zip")

    def test_missing_token_fails_before_any_request(self, config):
        config.platform.access_token = None
        client_factory = Mock()

        extractor = CourseExtractor(config, client_factory=client_factory)

        with pytest.raises(MissingConfigError):
            extractor.run("python-basics")
        client_factory.assert_not_called()

    def test_invalid_lane_count_fails_before_any_request(self, config):
        config.extraction.lanes = 0
        client_factory = Mock()

        with pytest.raises(ConfigurationError):
            CourseExtractor(config, client_factory=client_factory).run("python-basics")
        client_factory.assert_not_called()

    def test_unknown_course(self, config):
        with pytest.raises(CurriculumError):
            make_extractor(config).run("another-course")


class TestBuildWorkItems:

    def test_positions_follow_curriculum_order(self, config):
        prepared = make_extractor(config).prepare("python-basics")

        items = build_work_items(prepared.structure)

        assert [item.label for item in items] == ["1.1 Welcome", "1.2 Setup", "1. Preview"]
        assert [item.position for item in items] == [0, 1, 2]
        assert prepared.slug == "python-basics"
