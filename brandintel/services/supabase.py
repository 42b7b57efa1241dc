from __future__ import annotations

import asyncio
import json
from datetime import datetime, timezone
from typing import Any

from supabase import Client, create_client

from brandintel.config import Settings
from brandintel.models.report import StructuredReport
from brandintel.models.research import ResearchRequest
from brandintel.services.logger import log_db_operation


def get_client(settings: Settings) -> Client | None:
    if not (settings.supabase_url.strip() and settings.supabase_anon_key.strip()):
        return None
    return create_client(settings.supabase_url, settings.supabase_anon_key)


async def _execute(query: Any) -> Any:
    """Run blocking Supabase query execution in a worker thread."""
    return await asyncio.to_thread(query.execute)


class ReportStore:
    """Persistence sink for completed reports."""

    def __init__(self, client: Client | None, *, table: str = "analyses", client_name: str = ""):
        self.client = client
        self.table = table
        self.client_name = client_name

    @property
    def enabled(self) -> bool:
        return self.client is not None

    def build_row(self, request: ResearchRequest, report: StructuredReport) -> dict[str, Any]:
        return {
            "client_name": self.client_name,
            "brand_name": request.subject or None,
            "category": request.category or None,
            "website": request.website or None,
            "analysis": json.dumps(report.to_payload(), ensure_ascii=False),
            "created_at": datetime.now(timezone.utc).isoformat(),
        }

    async def save_report(self, request: ResearchRequest, report: StructuredReport) -> dict[str, Any] | None:
        """Insert one report row. Errors propagate; the dispatcher logs and ignores them."""
        if self.client is None:
            log_db_operation("insert", self.table, "skipped", details="supabase not configured")
            return None
        result = await _execute(self.client.table(self.table).insert(self.build_row(request, report)))
        row = result.data[0] if result.data else None
        log_db_operation("insert", self.table, "success", details=f"report for {request.subject}")
        return row
