"""OpenAI SDK client factory, used for deep research jobs and query generation."""
from __future__ import annotations

from typing import Any

from brandintel.config import Settings


def get_openai_client(settings: Settings, *, timeout: float | None = None) -> Any | None:
    """Build an AsyncOpenAI client, or None when no API key is configured.

    Retries are disabled so a failed background submission never creates a
    duplicate job.
    """
    if not settings.openai_api_key.strip():
        return None

    from openai import AsyncOpenAI

    kwargs: dict[str, Any] = {"api_key": settings.openai_api_key, "max_retries": 0}
    base_url = settings.openai_base_url.strip()
    if base_url:
        kwargs["base_url"] = base_url
    if timeout is not None:
        kwargs["timeout"] = timeout
    return AsyncOpenAI(**kwargs)
