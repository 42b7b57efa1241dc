from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ProviderKind(str, Enum):
    SYNC = "sync"
    ASYNC = "async"
    MANUAL = "manual"


class ResearchRequest(BaseModel):
    """A single brand research request. Immutable once issued."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    subject: str = ""  # brand / subject name
    category: str = ""
    timeframe: str = "3 months"
    markets: tuple[str, ...] = ()
    purpose: str = ""  # commercial objective / pitch context
    provider: ProviderKind = ProviderKind.ASYNC
    raw_result: Optional[str] = None  # pre-supplied provider output, bypasses the provider call
    website: str = ""
    word_count: int = 2000
    focus: str = ""  # optional secondary subject to blend into the research

    def missing_fields(self) -> list[str]:
        required = {"subject": self.subject, "category": self.category, "purpose": self.purpose}
        return [name for name, value in required.items() if not value.strip()]

    @property
    def has_raw_result(self) -> bool:
        return bool(self.raw_result and self.raw_result.strip())

    @property
    def timeframe_months(self) -> int | None:
        """3, 6 or 12 for the recognised timeframes, otherwise None."""
        return TIMEFRAME_MONTHS.get(self.timeframe.strip().lower())


TIMEFRAME_MONTHS = {"3 months": 3, "6 months": 6, "12 months": 12}


class JobStatus(str, Enum):
    SUBMITTED = "submitted"
    POLLING = "polling"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


JOB_TRANSITIONS: dict[JobStatus, set[JobStatus]] = {
    JobStatus.SUBMITTED: {JobStatus.POLLING},
    JobStatus.POLLING: {JobStatus.POLLING, JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.TIMED_OUT},
    JobStatus.COMPLETED: set(),
    JobStatus.FAILED: set(),
    JobStatus.TIMED_OUT: set(),
}


@dataclass
class ResearchJob:
    """An asynchronous provider job, owned by the poller while it runs."""

    id: str
    provider: ProviderKind = ProviderKind.ASYNC
    status: JobStatus = JobStatus.SUBMITTED
    payload: str | None = None
    attempts: int = 0

    def transition(self, status: JobStatus) -> None:
        if status not in JOB_TRANSITIONS[self.status]:
            raise ValueError(f"Illegal job transition {self.status.value} -> {status.value}")
        self.status = status

    @property
    def is_terminal(self) -> bool:
        return not JOB_TRANSITIONS[self.status]


@dataclass(slots=True)
class JobSnapshot:
    """Provider-reported state of a job at one poll."""

    status: str
    output: Any = None


@dataclass(slots=True)
class ExtractionAttempt:
    strategy: str
    succeeded: bool
    reason: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"strategy": self.strategy, "succeeded": self.succeeded, "reason": self.reason}


@dataclass
class ExtractionOutcome:
    data: dict[str, Any] | None
    attempts: list[ExtractionAttempt] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.data is not None

    @property
    def strategy(self) -> str | None:
        for attempt in self.attempts:
            if attempt.succeeded:
                return attempt.strategy
        return None


class QueryState(str, Enum):
    ACTIVE = "active"
    DELETED = "deleted"
    REUSED = "reused"


@dataclass
class EphemeralQuery:
    """A short-lived saved search on the social-listening provider."""

    id: int | str
    name: str
    state: QueryState = QueryState.ACTIVE
    created_here: bool = True

    def mark_deleted(self) -> None:
        if self.state is not QueryState.ACTIVE:
            raise ValueError(f"Query {self.id} already {self.state.value}")
        self.state = QueryState.DELETED

    def mark_reused(self) -> None:
        if self.state is not QueryState.ACTIVE:
            raise ValueError(f"Query {self.id} already {self.state.value}")
        self.state = QueryState.REUSED


@dataclass(slots=True)
class RawResearch:
    """Free text returned by a provider, before extraction."""

    text: str
    provider: str
    model: str = ""


class WorkflowResult(BaseModel):
    """Manual research workflow handed back to a human instead of a report."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    workflow_type: str = "manual"
    prompt: str
    instructions: list[str]
    provider_url: str
    created_at: str
    fallback_report: dict[str, Any] = Field(default_factory=dict)
