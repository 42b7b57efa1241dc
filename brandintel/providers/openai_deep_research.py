"""Asynchronous deep research over OpenAI background responses."""
from __future__ import annotations

import asyncio
import time
from typing import Any, Awaitable, Callable

from loguru import logger
from openai import OpenAIError

from brandintel.errors import ProviderRequestFailed, ProviderUnavailable
from brandintel.models.research import (
    JobSnapshot,
    JobStatus,
    ProviderKind,
    RawResearch,
    ResearchJob,
    ResearchRequest,
)
from brandintel.providers.base import ResearchProvider, render_research_prompt, render_research_task
from brandintel.research_core.jobs.poller import JobPoller
from brandintel.services.logger import log_provider_call


class DeepResearchProvider(ResearchProvider):
    """Submit a background deep research job and poll it to completion."""

    kind = ProviderKind.ASYNC

    def __init__(
        self,
        client: Any,
        *,
        model: str = "o3-deep-research-2025-06-26",
        max_output_tokens: int = 50000,
        poll_interval: float = 30.0,
        poll_max_attempts: int = 240,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.client = client
        self.model = model
        self.max_output_tokens = max_output_tokens
        self.poller = JobPoller(
            self._retrieve,
            interval=poll_interval,
            max_attempts=poll_max_attempts,
            sleep=sleep,
        )

    async def execute(self, request: ResearchRequest) -> RawResearch:
        if self.client is None:
            raise ProviderUnavailable("OPENAI_API_KEY not configured")

        started = time.perf_counter()
        job = await self.submit(request)
        # PollTimeout propagates to the dispatcher with the job attached.
        job = await self.poller.wait(job)
        duration_ms = int((time.perf_counter() - started) * 1000)

        if job.status is JobStatus.FAILED:
            log_provider_call("openai", self.model, duration_ms, status="failed", error=f"job {job.id} failed")
            raise ProviderRequestFailed(f"Deep research job {job.id} failed")

        text = job.payload or ""
        log_provider_call("openai", self.model, duration_ms, output_chars=len(text))
        return RawResearch(text=text, provider="openai", model=self.model)

    async def submit(self, request: ResearchRequest) -> ResearchJob:
        try:
            response = await self.client.responses.create(
                model=self.model,
                input=[
                    {
                        "role": "developer",
                        "content": [{"type": "input_text", "text": render_research_prompt(request)}],
                    },
                    {
                        "role": "user",
                        "content": [{"type": "input_text", "text": render_research_task(request)}],
                    },
                ],
                reasoning={"summary": "auto"},
                tools=[{"type": "web_search_preview"}],
                background=True,
                store=True,
                max_output_tokens=self.max_output_tokens,
            )
        except OpenAIError as exc:
            log_provider_call("openai", self.model, status="error", error=str(exc))
            raise ProviderRequestFailed(
                f"Deep research submission failed: {exc}",
                status_code=getattr(exc, "status_code", None),
            ) from exc

        job = ResearchJob(id=str(response.id), provider=self.kind)
        logger.info(f"Submitted deep research job {job.id} for {request.subject} (status={response.status})")
        return job

    async def _retrieve(self, job_id: str) -> JobSnapshot:
        response = await self.client.responses.retrieve(job_id)
        return JobSnapshot(status=str(response.status or ""), output=response.output)
