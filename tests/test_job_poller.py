from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from brandintel.errors import PollTimeout
from brandintel.models.research import JobSnapshot, JobStatus, ResearchJob
from brandintel.research_core.jobs.poller import JobPoller, extract_output_text

COMPLETED_OUTPUT = [
    {"type": "reasoning", "content": []},
    {"type": "web_search_call", "content": None},
    {"type": "message", "content": [{"type": "output_text", "text": '{"a": 1}'}]},
]


@pytest.mark.asyncio
async def test_job_that_never_finishes_times_out_after_exact_budget():
    retrieve = AsyncMock(return_value=JobSnapshot(status="in_progress"))
    sleep = AsyncMock()
    poller = JobPoller(retrieve, interval=30, max_attempts=5, sleep=sleep)
    job = ResearchJob(id="resp_1")

    with pytest.raises(PollTimeout) as exc_info:
        await poller.wait(job)

    assert retrieve.await_count == 5
    assert sleep.await_count == 5
    sleep.assert_awaited_with(30.0)
    assert job.status is JobStatus.TIMED_OUT
    assert job.attempts == 5
    assert job.payload is None
    assert exc_info.value.job is job


@pytest.mark.asyncio
async def test_completed_job_returns_final_output_text():
    retrieve = AsyncMock(
        side_effect=[
            JobSnapshot(status="queued"),
            JobSnapshot(status="in_progress"),
            JobSnapshot(status="completed", output=COMPLETED_OUTPUT),
        ]
    )
    poller = JobPoller(retrieve, interval=30, max_attempts=240, sleep=AsyncMock())

    job = await poller.wait(ResearchJob(id="resp_2"))

    assert job.status is JobStatus.COMPLETED
    assert job.payload == '{"a": 1}'
    assert job.attempts == 3
    retrieve.assert_awaited_with("resp_2")


@pytest.mark.asyncio
async def test_provider_failure_ends_polling_without_payload():
    retrieve = AsyncMock(side_effect=[JobSnapshot(status="in_progress"), JobSnapshot(status="failed")])
    poller = JobPoller(retrieve, interval=1, max_attempts=10, sleep=AsyncMock())

    job = await poller.wait(ResearchJob(id="resp_3"))

    assert job.status is JobStatus.FAILED
    assert job.payload is None
    assert retrieve.await_count == 2


@pytest.mark.asyncio
async def test_retrieve_errors_use_up_attempts_but_do_not_abort():
    retrieve = AsyncMock(
        side_effect=[
            RuntimeError("connection reset"),
            RuntimeError("connection reset"),
            JobSnapshot(status="completed", output=COMPLETED_OUTPUT),
        ]
    )
    poller = JobPoller(retrieve, interval=1, max_attempts=3, sleep=AsyncMock())

    job = await poller.wait(ResearchJob(id="resp_4"))

    assert job.status is JobStatus.COMPLETED
    assert job.attempts == 3


@pytest.mark.asyncio
async def test_retrieve_errors_count_toward_timeout():
    retrieve = AsyncMock(side_effect=RuntimeError("down"))
    poller = JobPoller(retrieve, interval=1, max_attempts=4, sleep=AsyncMock())

    with pytest.raises(PollTimeout):
        await poller.wait(ResearchJob(id="resp_5"))

    assert retrieve.await_count == 4


@pytest.mark.asyncio
async def test_poller_sleeps_before_every_retrieve():
    calls: list[str] = []

    async def sleep(_seconds: float) -> None:
        calls.append("sleep")

    async def retrieve(_job_id: str) -> JobSnapshot:
        calls.append("retrieve")
        return JobSnapshot(status="completed" if calls.count("retrieve") == 2 else "in_progress")

    poller = JobPoller(retrieve, interval=30, max_attempts=5, sleep=sleep)
    await poller.wait(ResearchJob(id="resp_6"))

    assert calls == ["sleep", "retrieve", "sleep", "retrieve"]


def test_extract_output_text_reads_sdk_objects():
    output = [
        SimpleNamespace(type="reasoning", content=None),
        SimpleNamespace(
            type="message",
            content=[SimpleNamespace(type="annotation", text=""), SimpleNamespace(type="output_text", text="report")],
        ),
    ]

    assert extract_output_text(output) == "report"
    assert extract_output_text([]) == ""
    assert extract_output_text(None) == ""


def test_job_rejects_illegal_transitions():
    job = ResearchJob(id="resp_7")

    with pytest.raises(ValueError):
        job.transition(JobStatus.COMPLETED)

    job.transition(JobStatus.POLLING)
    job.transition(JobStatus.COMPLETED)
    assert job.is_terminal
    with pytest.raises(ValueError):
        job.transition(JobStatus.POLLING)
