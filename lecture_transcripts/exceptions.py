"""Custom exceptions for the lecture transcript extractor.

Exception Hierarchy:
    LectureTranscriptsError (base)
    ├── ExtractionError
    │   ├── NavigationError
    │   └── CaptionFetchError
    ├── CurriculumError
    ├── ServiceUnavailableError
    ├── RateLimitError (with retry_after)
    ├── ValidationError
    │   └── InvalidCourseIdentifierError
    └── ConfigurationError
        └── MissingConfigError

Per-lecture errors (the ExtractionError family) are caught at the lecture
boundary and never stop a lane. Curriculum, validation and configuration
errors are raised before any lane starts and abort the run.
"""

from typing import Optional


class LectureTranscriptsError(Exception):
    """Base exception for all lecture transcript errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


# =============================================================================
# Extraction Errors
# =============================================================================

class ExtractionError(LectureTranscriptsError):
    """Base class for per-lecture extraction errors."""

    def __init__(self, message: str, lecture_id: Optional[int] = None, **kwargs):
        self.lecture_id = lecture_id
        details = kwargs.pop('details', {})
        if lecture_id is not None:
            details['lecture_id'] = lecture_id
        super().__init__(message, details=details)


class NavigationError(ExtractionError):
    """Raised when a lecture page cannot be loaded."""

    def __init__(self, lecture_id: int, url: str, reason: Optional[str] = None):
        self.url = url
        self.reason = reason
        message = f"Failed to load lecture {lecture_id}"
        if reason:
            message += f": {reason}"
        super().__init__(message, lecture_id=lecture_id, details={'url': url})


class CaptionFetchError(ExtractionError):
    """Raised when a caption track cannot be downloaded."""

    def __init__(self, lecture_id: int, locale: str, reason: Optional[str] = None):
        self.locale = locale
        message = f"Failed to fetch '{locale}' captions for lecture {lecture_id}"
        if reason:
            message += f": {reason}"
        super().__init__(message, lecture_id=lecture_id, details={'locale': locale})


# =============================================================================
# Course API Errors
# =============================================================================

class CurriculumError(LectureTranscriptsError):
    """Raised when the course or its curriculum cannot be fetched."""

    def __init__(self, course: str, reason: Optional[str] = None):
        self.course = course
        message = f"Error fetching curriculum for course '{course}'"
        if reason:
            message += f": {reason}"
        super().__init__(message, details={'course': course, 'reason': reason})


class RateLimitError(LectureTranscriptsError):
    """Raised when the course API rate-limits the request.

    Attributes:
        retry_after: Suggested wait time in seconds before retrying
    """

    def __init__(self, retry_after: Optional[int] = None, message: Optional[str] = None):
        self.retry_after = retry_after or 60
        msg = message or "Course API is rate-limiting requests"
        if retry_after:
            msg += f" (retry after {retry_after}s)"
        super().__init__(msg, details={'retry_after': self.retry_after})


class ServiceUnavailableError(LectureTranscriptsError):
    """Raised on a 5xx answer from the course API (retryable)."""

    def __init__(self, status_code: int, url: str):
        self.status_code = status_code
        super().__init__(
            f"Course API unavailable (HTTP {status_code})",
            details={'status_code': status_code, 'url': url}
        )


# =============================================================================
# Validation Errors
# =============================================================================

class ValidationError(LectureTranscriptsError):
    """Raised when input validation fails."""

    def __init__(self, message: str, field: Optional[str] = None,
                 value: Optional[str] = None):
        self.field = field
        self.value = value
        details = {}
        if field:
            details['field'] = field
        if value is not None:
            details['value'] = str(value)[:100]
        super().__init__(message, details=details)


class InvalidCourseIdentifierError(ValidationError):
    """Raised when a course URL or slug cannot be parsed."""

    def __init__(self, identifier: str):
        super().__init__(
            f"Invalid course identifier: '{identifier}' (expected a course URL or slug)",
            field='course',
            value=identifier
        )


# =============================================================================
# Configuration Errors
# =============================================================================

class ConfigurationError(LectureTranscriptsError):
    """Raised when there's a configuration problem."""

    def __init__(self, message: str, config_key: Optional[str] = None):
        self.config_key = config_key
        super().__init__(message, details={'config_key': config_key})


class MissingConfigError(ConfigurationError):
    """Raised when a required configuration value is missing."""

    def __init__(self, config_key: str):
        super().__init__(
            f"Missing required configuration: '{config_key}'",
            config_key=config_key
        )
