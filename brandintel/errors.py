"""Error kinds raised by the research core.

Only ``RequestInvalid`` ever reaches a caller of the dispatcher. Every other
kind is recovered inside the dispatcher by falling back to a synthesized
report (or, for ``ResourceQuotaExceeded``, by reusing an existing query).
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from brandintel.models.research import ExtractionAttempt, ResearchJob


class ResearchError(Exception):
    """Base class for research orchestration failures."""

    kind: str = "research_error"


class RequestInvalid(ResearchError):
    kind = "request_invalid"

    def __init__(self, message: str, *, missing: list[str] | None = None):
        super().__init__(message)
        self.missing = missing or []


class ProviderUnavailable(ResearchError):
    kind = "provider_unavailable"


class ProviderRequestFailed(ResearchError):
    kind = "provider_request_failed"

    def __init__(self, message: str, *, status_code: int | None = None, body: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class ExtractionFailed(ResearchError):
    kind = "extraction_failed"

    def __init__(self, message: str, *, attempts: list[ExtractionAttempt] | None = None):
        super().__init__(message)
        self.attempts = attempts or []


class ResourceQuotaExceeded(ResearchError):
    kind = "resource_quota_exceeded"


class PollTimeout(ResearchError):
    kind = "poll_timeout"

    def __init__(self, message: str, *, job: ResearchJob | None = None):
        super().__init__(message)
        self.job = job
