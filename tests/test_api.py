"""Tests for the course API client."""

import httpx
import pytest

from lecture_transcripts.api import CourseClient, parse_course_identifier
from lecture_transcripts.config import ApiConfig
from lecture_transcripts.exceptions import CurriculumError, InvalidCourseIdentifierError
from lecture_transcripts.models import RecordKind

BASE_URL = "https://courses.example.test"
CURRICULUM_URL = f"{BASE_URL}/api-2.0/courses/42/subscriber-curriculum-items/"

PAGE_ONE = {
    "count": 3,
    "next": f"{CURRICULUM_URL}?page=2&page_size=2",
    "results": [
        {"_class": "chapter", "id": 1, "title": " Intro ", "sort_order": 3},
        {
            "_class": "lecture",
            "id": 2,
            "title": "Welcome",
            "sort_order": 2,
            "created": "2024-03-14T09:30:00Z",
            "asset": {
                "asset_type": "Video",
                "time_estimation": 125,
                "captions": [
                    {"locale_id": "en_US", "url": "https://cdn.example.test/en.vtt", "status": 1},
                ],
            },
        },
    ],
}
PAGE_TWO = {
    "count": 3,
    "next": None,
    "results": [{"_class": "quiz", "id": 3, "title": "Quiz", "sort_order": 1}],
}


def make_client(handler, sleeps=None, **config):
    return CourseClient(
        BASE_URL,
        "secret-token",
        ApiConfig(**config),
        transport=httpx.MockTransport(handler),
        sleep=(sleeps.append if sleeps is not None else lambda seconds: None),
    )


class TestParseCourseIdentifier:

    @pytest.mark.parametrize("value,expected", [
        ("python-basics", "python-basics"),
        ("  python-basics ", "python-basics"),
        ("12345", "12345"),
        ("https://www.udemy.com/course/python-basics/", "python-basics"),
        ("https://www.udemy.com/course/python-basics/learn/lecture/77#overview", "python-basics"),
    ])
    def test_accepts_slugs_and_urls(self, value, expected):
        assert parse_course_identifier(value) == expected

    @pytest.mark.parametrize("value", [
        "",
        "https://www.udemy.com/user/someone/",
        "https://www.udemy.com/course/",
        "not a slug!",
    ])
    def test_rejects_garbage(self, value):
        with pytest.raises(InvalidCourseIdentifierError):
            parse_course_identifier(value)


class TestCourseClient:

    def test_get_course_sends_token(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"id": 42, "title": "Python Basics", "published_title": "python-basics"})

        with make_client(handler) as client:
            info = client.get_course("python-basics")

        assert (info.id, info.title, info.published_title) == (42, "Python Basics", "python-basics")
        assert seen[0].url.path == "/api-2.0/courses/python-basics/"
        assert seen[0].headers["Authorization"] == "Bearer secret-token"

    def test_curriculum_follows_pagination(self):
        seen = []

        def handler(request):
            seen.append(request.url)
            if request.url.params.get("page") == "2":
                return httpx.Response(200, json=PAGE_TWO)
            return httpx.Response(200, json=PAGE_ONE)

        with make_client(handler, page_size=2) as client:
            records = client.get_curriculum(42)

        assert len(seen) == 2
        assert seen[0].params["page_size"] == "2"
        assert [r.kind for r in records] == [RecordKind.CHAPTER, RecordKind.LECTURE, RecordKind.OTHER]

        chapter, lecture, quiz = records
        assert chapter.title == "Intro"
        assert lecture.is_video_lecture
        assert lecture.duration_seconds == 125
        assert lecture.created_at.year == 2024
        assert lecture.caption_tracks[0].locale_code == "en_US"
        assert not quiz.is_video_lecture

    def test_server_errors_are_retried(self):
        responses = iter([httpx.Response(503), httpx.Response(200, json=PAGE_TWO)])
        sleeps = []

        with make_client(lambda request: next(responses), sleeps, retry_delay=2.0) as client:
            records = client.get_curriculum(42)

        assert len(records) == 1
        assert sleeps == [2.0]

    def test_rate_limit_honours_retry_after(self):
        responses = iter([
            httpx.Response(429, headers={"Retry-After": "7"}),
            httpx.Response(200, json=PAGE_TWO),
        ])
        sleeps = []

        with make_client(lambda request: next(responses), sleeps) as client:
            client.get_curriculum(42)

        assert sleeps == [7]

    def test_persistent_failure_raises_curriculum_error(self):
        attempts = []

        def handler(request):
            attempts.append(request)
            return httpx.Response(500)

        with make_client(handler, max_attempts=3) as client:
            with pytest.raises(CurriculumError):
                client.get_curriculum(42)

        assert len(attempts) == 3

    def test_client_errors_are_not_retried(self):
        attempts = []

        def handler(request):
            attempts.append(request)
            return httpx.Response(403, json={"detail": "You do not have permission"})

        with make_client(handler) as client:
            with pytest.raises(CurriculumError) as exc_info:
                client.get_course("python-basics")

        assert len(attempts) == 1
        assert "python-basics" in str(exc_info.value)

    def test_transport_errors_are_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) == 1:
                raise httpx.ConnectError("connection refused")
            return httpx.Response(200, json=PAGE_TWO)

        with make_client(handler) as client:
            assert len(client.get_curriculum(42)) == 1

        assert len(calls) == 2

    def test_malformed_payload(self):
        with make_client(lambda request: httpx.Response(200, json={"title": "no id"})) as client:
            with pytest.raises(CurriculumError):
                client.get_course("python-basics")
