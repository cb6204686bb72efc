"""Course content API client and payload schemas.

The curriculum endpoint returns a flat, paginated list of chapters,
lectures, quizzes and practice items. Each lecture carries its asset
(type, duration estimate and caption tracks).
"""

import re
import time
from datetime import datetime
from typing import Callable, Optional
from urllib.parse import urlparse

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError as PydanticValidationError

from .config import ApiConfig
from .exceptions import (
    CurriculumError,
    InvalidCourseIdentifierError,
    RateLimitError,
    ServiceUnavailableError,
)
from .logging_config import get_logger
from .models import CaptionTrackRef, CurriculumRecord, RecordKind
from .retry import with_retry

logger = get_logger('api')

COURSE_PATH = "/api-2.0/courses/{course}/"
CURRICULUM_PATH = "/api-2.0/courses/{course_id}/subscriber-curriculum-items/"
CURRICULUM_FIELDS = {
    'fields[lecture]': 'title,created,sort_order,asset',
    'fields[chapter]': 'title,created,sort_order',
    'fields[quiz]': 'title,sort_order',
    'fields[practice]': 'title,sort_order',
    'fields[asset]': 'asset_type,time_estimation,captions',
    'fields[caption]': 'locale_id,url',
}
SLUG_PATTERN = re.compile(r'^[A-Za-z0-9][A-Za-z0-9_-]*$')


class CaptionPayload(BaseModel):
    """A caption track attached to a video asset."""
    model_config = ConfigDict(extra='ignore')

    locale_id: str
    url: str


class AssetPayload(BaseModel):
    """The media asset behind a lecture."""
    model_config = ConfigDict(extra='ignore')

    asset_type: Optional[str] = None
    time_estimation: Optional[int] = Field(default=0, description="Duration in seconds")
    captions: list[CaptionPayload] = Field(default_factory=list)


class CurriculumItemPayload(BaseModel):
    """One entry of the curriculum listing."""
    model_config = ConfigDict(extra='ignore', populate_by_name=True)

    id: int
    kind: str = Field(alias='_class')
    title: str = ""
    created: Optional[datetime] = None
    sort_order: int = 0
    asset: Optional[AssetPayload] = None

    def to_record(self) -> CurriculumRecord:
        try:
            kind = RecordKind(self.kind)
        except ValueError:
            kind = RecordKind.OTHER

        asset = self.asset
        return CurriculumRecord(
            id=self.id,
            kind=kind,
            title=self.title.strip(),
            sort_order=self.sort_order,
            created_at=self.created,
            asset_type=asset.asset_type if asset else None,
            duration_seconds=(asset.time_estimation or 0) if asset else 0,
            caption_tracks=tuple(
                CaptionTrackRef(locale_code=c.locale_id, source_url=c.url)
                for c in (asset.captions if asset else [])
            ),
        )


class CurriculumPage(BaseModel):
    """A page of the curriculum listing."""
    model_config = ConfigDict(extra='ignore')

    count: int = 0
    next: Optional[str] = None
    results: list[CurriculumItemPayload] = Field(default_factory=list)


class CourseInfo(BaseModel):
    """Basic course identity."""
    model_config = ConfigDict(extra='ignore')

    id: int
    title: str = ""
    published_title: str = ""


def parse_course_identifier(value: str) -> str:
    """Return the course slug (or numeric id) from a URL or bare identifier.

    Raises:
        InvalidCourseIdentifierError: If nothing usable can be extracted
    """
    candidate = (value or '').strip()
    if '/' in candidate:
        parts = [p for p in urlparse(candidate).path.split('/') if p]
        if 'course' in parts:
            index = parts.index('course')
            if index + 1 < len(parts):
                candidate = parts[index + 1]
            else:
                raise InvalidCourseIdentifierError(value)
        else:
            raise InvalidCourseIdentifierError(value)

    if not SLUG_PATTERN.match(candidate):
        raise InvalidCourseIdentifierError(value)
    return candidate


class CourseClient:
    """Fetches course identity and curriculum records.

    5xx answers, 429s and transport errors are retried with a fixed delay;
    anything still failing surfaces as CurriculumError.
    """

    def __init__(
        self,
        base_url: str,
        access_token: str,
        config: Optional[ApiConfig] = None,
        transport: Optional[httpx.BaseTransport] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.config = config or ApiConfig()
        self.client = httpx.Client(
            base_url=base_url.rstrip('/'),
            headers={
                'Authorization': f'Bearer {access_token}',
                'X-Udemy-Authorization': f'Bearer {access_token}',
                'Accept': 'application/json, text/plain, */*',
            },
            timeout=httpx.Timeout(self.config.timeout_seconds),
            follow_redirects=True,
            transport=transport,
        )
        self._get_json = with_retry(
            max_attempts=self.config.max_attempts,
            initial_delay=self.config.retry_delay,
            backoff_factor=1.0,
            jitter=False,
            retryable_exceptions=(RateLimitError, ServiceUnavailableError, httpx.TransportError),
            sleep=sleep,
        )(self._get_json_once)

    def _get_json_once(self, url: str, params: Optional[dict] = None) -> dict:
        response = self.client.get(url, params=params)

        if response.status_code == 429:
            retry_after = response.headers.get('Retry-After')
            raise RateLimitError(retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None)
        if response.status_code >= 500:
            raise ServiceUnavailableError(response.status_code, str(response.url))

        response.raise_for_status()
        return response.json()

    def get_course(self, identifier: str) -> CourseInfo:
        """Look up a course by slug or id."""
        path = COURSE_PATH.format(course=identifier)
        logger.debug(f"Fetching course info: {identifier}")
        try:
            data = self._get_json(path, params={'fields[course]': 'id,title,published_title'})
            return CourseInfo.model_validate(data)
        except (httpx.HTTPError, RateLimitError, ServiceUnavailableError, PydanticValidationError, ValueError) as e:
            raise CurriculumError(identifier, reason=str(e)) from e

    def get_curriculum(self, course_id: int) -> list[CurriculumRecord]:
        """Fetch every curriculum record, following pagination."""
        url: Optional[str] = CURRICULUM_PATH.format(course_id=course_id)
        params: Optional[dict] = {'page_size': self.config.page_size, **CURRICULUM_FIELDS}
        records: list[CurriculumRecord] = []
        page_number = 0

        try:
            while url:
                page_number += 1
                page = CurriculumPage.model_validate(self._get_json(url, params=params))
                records.extend(item.to_record() for item in page.results)
                logger.debug(f"Curriculum page {page_number}: {len(page.results)} items")
                # The next link already carries the query string
                url, params = page.next, None
        except (httpx.HTTPError, RateLimitError, ServiceUnavailableError, PydanticValidationError, ValueError) as e:
            raise CurriculumError(str(course_id), reason=str(e)) from e

        logger.info(f"Fetched {len(records)} curriculum records for course {course_id}")
        return records

    def close(self):
        self.client.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
