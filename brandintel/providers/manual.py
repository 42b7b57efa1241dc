from __future__ import annotations

from datetime import datetime, timezone

from brandintel.models.research import ProviderKind, ResearchRequest, WorkflowResult
from brandintel.providers.base import ResearchProvider, render_research_prompt
from brandintel.research_core.fallback.synthesizer import synthesize_report
from brandintel.services.prompt_store import render_prompt_list


class ManualWorkflowProvider(ResearchProvider):
    """Hand the research prompt to a human instead of calling a provider.

    The caller shows the prompt and instructions, the human runs it on the
    provider's website and resubmits the answer as ``raw_result``.
    """

    kind = ProviderKind.MANUAL

    def __init__(self, *, provider_url: str = "https://www.perplexity.ai/"):
        self.provider_url = provider_url

    async def execute(self, request: ResearchRequest) -> WorkflowResult:
        return WorkflowResult(
            prompt=render_research_prompt(request),
            instructions=render_prompt_list("manual.instructions", provider_url=self.provider_url),
            provider_url=self.provider_url,
            created_at=datetime.now(timezone.utc).isoformat(),
            fallback_report=synthesize_report("", request).to_payload(),
        )
