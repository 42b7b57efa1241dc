from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable

from loguru import logger

from brandintel.errors import PollTimeout
from brandintel.models.research import JobSnapshot, JobStatus, ResearchJob

COMPLETED_STATUSES = frozenset({"completed"})
FAILED_STATUSES = frozenset({"failed", "cancelled", "canceled", "incomplete", "expired"})


def _field(item: Any, name: str) -> Any:
    if isinstance(item, dict):
        return item.get(name)
    return getattr(item, name, None)


def extract_output_text(output: Any) -> str:
    """Text of the final output item of a completed background response.

    The last item in ``output`` is the assistant message; its first content
    part that carries ``text`` is the report.
    """
    if isinstance(output, str):
        return output
    if not output:
        return ""
    final_item = output[-1]
    for part in _field(final_item, "content") or []:
        text = _field(part, "text")
        if text:
            return text
    return ""


class JobPoller:
    """Poll a submitted provider job until it finishes or the budget runs out.

    The poller sleeps before every retrieve, so a job never gets polled the
    instant it was submitted. A retrieve that raises still uses up one
    attempt. The total number of retrieve calls never exceeds
    ``max_attempts``.
    """

    def __init__(
        self,
        retrieve: Callable[[str], Awaitable[JobSnapshot]],
        *,
        interval: float,
        max_attempts: int,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self._retrieve = retrieve
        self.interval = max(float(interval), 0.0)
        self.max_attempts = max(int(max_attempts), 1)
        self._sleep = sleep

    async def wait(self, job: ResearchJob) -> ResearchJob:
        if job.status is JobStatus.SUBMITTED:
            job.transition(JobStatus.POLLING)

        while job.attempts < self.max_attempts:
            await self._sleep(self.interval)
            job.attempts += 1
            try:
                snapshot = await self._retrieve(job.id)
            except Exception as exc:
                logger.warning(
                    f"Poll {job.attempts}/{self.max_attempts} for job {job.id} errored: {exc}"
                )
                continue

            status = (snapshot.status or "").lower()
            if status in COMPLETED_STATUSES:
                job.payload = extract_output_text(snapshot.output)
                job.transition(JobStatus.COMPLETED)
                logger.info(f"Job {job.id} completed after {job.attempts} polls ({len(job.payload)} chars)")
                return job
            if status in FAILED_STATUSES:
                job.transition(JobStatus.FAILED)
                logger.warning(f"Job {job.id} ended with provider status={status}")
                return job

            job.transition(JobStatus.POLLING)
            if job.attempts % 10 == 0:
                logger.debug(f"Job {job.id} still {status or 'pending'} after {job.attempts} polls")

        job.transition(JobStatus.TIMED_OUT)
        raise PollTimeout(
            f"Job {job.id} did not finish within {self.max_attempts} polls",
            job=job,
        )
