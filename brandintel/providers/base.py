from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from brandintel.models.research import ProviderKind, RawResearch, ResearchRequest, WorkflowResult
from brandintel.services.prompt_store import render_prompt


class ResearchProvider(ABC):
    """One research strategy per ``ProviderKind``.

    ``execute`` returns the provider's free text for the extraction engine,
    or a ``WorkflowResult`` when a human has to run the research. Failures
    are raised as ``ProviderUnavailable``, ``ProviderRequestFailed`` or
    ``PollTimeout``; the dispatcher decides how to recover.
    """

    kind: ProviderKind

    @abstractmethod
    async def execute(self, request: ResearchRequest) -> RawResearch | WorkflowResult:
        raise NotImplementedError


def prompt_values(request: ResearchRequest) -> dict[str, Any]:
    focus = request.focus.strip()
    website = request.website.strip()
    return {
        "subject": request.subject,
        "category": request.category,
        "timeframe": request.timeframe,
        "timeframe_months": request.timeframe_months or 3,
        "markets": ", ".join(request.markets) or "Global",
        "purpose": request.purpose,
        "word_count": request.word_count,
        "focus_line": f"\nSpecial focus: {focus}" if focus else "",
        "website_hint": f" ({website})" if website else "",
    }


def render_research_prompt(request: ResearchRequest) -> str:
    return render_prompt("research.brief", **prompt_values(request))


def render_research_task(request: ResearchRequest) -> str:
    return render_prompt("research.user_task", **prompt_values(request))
