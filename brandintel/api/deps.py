from __future__ import annotations

from fastapi import Request

from brandintel.agents.dispatcher import ResearchDispatcher


def get_dispatcher(request: Request) -> ResearchDispatcher:
    """Dispatcher built once in the app lifespan."""
    return request.app.state.dispatcher
