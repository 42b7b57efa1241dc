from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException

from brandintel.agents.dispatcher import ResearchDispatcher, summary_line
from brandintel.api.deps import get_dispatcher
from brandintel.errors import RequestInvalid
from brandintel.models.research import ResearchRequest, WorkflowResult
from brandintel.services import logger as log_service

router = APIRouter(prefix="/api/research", tags=["research"])


@router.post("")
async def run_research(
    request: ResearchRequest,
    dispatcher: ResearchDispatcher = Depends(get_dispatcher),
) -> dict[str, Any]:
    """Run one brand research request to completion.

    A manual request returns the workflow to hand to a human; everything
    else returns the structured report.
    """
    try:
        result = await dispatcher.run(request)
    except RequestInvalid as exc:
        log_service.log_event("request_invalid", str(exc), missing=exc.missing)
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    if isinstance(result, WorkflowResult):
        return {"success": True, "workflow": result.model_dump(by_alias=True)}
    return {"success": True, "summary": summary_line(result), "data": result.to_payload()}
