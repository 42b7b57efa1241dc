"""Synchronous deep research over Perplexity chat completions."""
from __future__ import annotations

import time
from typing import Any

import httpx
from loguru import logger

from brandintel.errors import ProviderRequestFailed, ProviderUnavailable
from brandintel.models.research import ProviderKind, RawResearch, ResearchRequest
from brandintel.providers.base import ResearchProvider, render_research_prompt
from brandintel.services.logger import log_provider_call
from brandintel.services.prompt_store import render_prompt

RECENCY_FILTERS = {3: "month", 6: "month", 12: "year"}


def recency_filter(request: ResearchRequest) -> str:
    return RECENCY_FILTERS.get(request.timeframe_months or 0, "month")


def message_content(data: Any) -> str:
    """Text of the first choice, or "" when the body is not a chat completion.

    Content sent as a list of parts is joined from the parts' ``text`` fields.
    """
    choices = data.get("choices") if isinstance(data, dict) else None
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return ""
    message = choices[0].get("message")
    if not isinstance(message, dict):
        return ""
    content = message.get("content")
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = [part.get("text") for part in content if isinstance(part, dict)]
        return "".join(part for part in parts if isinstance(part, str))
    return ""


class PerplexityProvider(ResearchProvider):
    """One blocking HTTP call per model, deep research model first.

    When the primary model errors or returns a non-2xx status, the fallback
    model gets exactly one try before the provider gives up.
    """

    kind = ProviderKind.SYNC

    def __init__(
        self,
        *,
        api_key: str,
        base_url: str = "https://api.perplexity.ai",
        model: str = "sonar-deep-research",
        fallback_model: str = "",
        timeout: float = 600.0,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.fallback_model = fallback_model
        self.timeout = timeout

    def model_chain(self) -> list[str]:
        chain = [self.model]
        if self.fallback_model and self.fallback_model != self.model:
            chain.append(self.fallback_model)
        return chain

    async def execute(self, request: ResearchRequest) -> RawResearch:
        if not self.api_key.strip():
            raise ProviderUnavailable("PERPLEXITY_API_KEY not configured")

        prompt = render_research_prompt(request)
        last_error: ProviderRequestFailed | None = None
        for model in self.model_chain():
            try:
                text = await self._complete(model, prompt, request)
            except ProviderRequestFailed as exc:
                last_error = exc
                logger.warning(f"Perplexity model {model} failed: {exc}")
                continue
            return RawResearch(text=text, provider="perplexity", model=model)

        raise ProviderRequestFailed(
            f"All Perplexity models failed ({', '.join(self.model_chain())}): {last_error}",
            status_code=last_error.status_code if last_error else None,
            body=last_error.body if last_error else None,
        )

    def _payload(self, model: str, prompt: str, request: ResearchRequest) -> dict[str, Any]:
        return {
            "model": model,
            "messages": [
                {"role": "system", "content": render_prompt("research.system")},
                {"role": "user", "content": prompt},
            ],
            "temperature": 0.1,
            "top_p": 0.9,
            "search_recency_filter": recency_filter(request),
            "return_citations": True,
        }

    async def _complete(self, model: str, prompt: str, request: ResearchRequest) -> str:
        started = time.perf_counter()
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.base_url}/chat/completions",
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json",
                    },
                    json=self._payload(model, prompt, request),
                )
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as exc:
            duration_ms = int((time.perf_counter() - started) * 1000)
            status_code = exc.response.status_code
            log_provider_call("perplexity", model, duration_ms, status="error", error=f"HTTP {status_code}")
            raise ProviderRequestFailed(
                f"Perplexity returned HTTP {status_code}",
                status_code=status_code,
                body=exc.response.text[:500],
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            duration_ms = int((time.perf_counter() - started) * 1000)
            log_provider_call("perplexity", model, duration_ms, status="error", error=str(exc) or type(exc).__name__)
            raise ProviderRequestFailed(f"Perplexity request failed: {exc}") from exc

        duration_ms = int((time.perf_counter() - started) * 1000)
        text = message_content(data)
        if not text.strip():
            log_provider_call("perplexity", model, duration_ms, status="error", error="empty content")
            raise ProviderRequestFailed(f"Perplexity model {model} returned no content")

        log_provider_call("perplexity", model, duration_ms, output_chars=len(text))
        return text
