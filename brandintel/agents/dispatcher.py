from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Mapping, Union

from loguru import logger

from brandintel.config import Settings
from brandintel.errors import (
    ExtractionFailed,
    PollTimeout,
    ProviderRequestFailed,
    ProviderUnavailable,
    RequestInvalid,
    ResearchError,
    ResourceQuotaExceeded,
)
from brandintel.llm_client import get_openai_client
from brandintel.models.report import SocialListening, StructuredReport, coerce_report
from brandintel.models.research import ExtractionAttempt, ProviderKind, ResearchRequest, WorkflowResult
from brandintel.providers.base import ResearchProvider
from brandintel.providers.manual import ManualWorkflowProvider
from brandintel.providers.openai_deep_research import DeepResearchProvider
from brandintel.providers.perplexity import PerplexityProvider
from brandintel.research_core.extract.service import ReportExtractor
from brandintel.research_core.fallback.synthesizer import synthesize_report
from brandintel.services import supabase as supabase_service
from brandintel.services.logger import log_db_operation, log_research_step
from brandintel.services.social_listening import BooleanQueryBuilder, EphemeralQueryManager
from brandintel.services.supabase import ReportStore
from brandintel.tools.brandwatch import BrandwatchClient

DispatchResult = Union[StructuredReport, WorkflowResult]

EXTRACTED_CONFIDENCE = 0.7


class Recovery(str, Enum):
    SYNTHESIZE_REPORT = "synthesize_report"
    DEFAULT_ENRICHMENT = "default_enrichment"


# The single place deciding what each error kind turns into, per stage.
RECOVERY_POLICY: dict[str, dict[type[ResearchError], Recovery]] = {
    "research": {
        ProviderUnavailable: Recovery.SYNTHESIZE_REPORT,
        ProviderRequestFailed: Recovery.SYNTHESIZE_REPORT,
        ExtractionFailed: Recovery.SYNTHESIZE_REPORT,
        PollTimeout: Recovery.SYNTHESIZE_REPORT,
    },
    "enrichment": {
        ProviderUnavailable: Recovery.DEFAULT_ENRICHMENT,
        ProviderRequestFailed: Recovery.DEFAULT_ENRICHMENT,
        ResourceQuotaExceeded: Recovery.DEFAULT_ENRICHMENT,
    },
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def summary_line(report: StructuredReport) -> str:
    """One-line executive summary shown next to a finished report."""
    return report.executive_snapshot.key_insight


class ResearchDispatcher:
    """Turn a research request into a structured report.

    Research and social-listening enrichment run concurrently. Provider,
    extraction, polling and enrichment failures are recovered through
    ``RECOVERY_POLICY`` so the caller always gets a complete report; only an
    invalid request raises. A manual request returns a ``WorkflowResult``
    instead.
    """

    def __init__(
        self,
        providers: Mapping[ProviderKind, ResearchProvider],
        *,
        extractor: ReportExtractor | None = None,
        social: EphemeralQueryManager | None = None,
        store: ReportStore | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.providers = dict(providers)
        self.extractor = extractor or ReportExtractor()
        self.social = social
        self.store = store
        self._clock = clock

    @staticmethod
    def validate(request: ResearchRequest) -> None:
        missing = request.missing_fields()
        if missing:
            raise RequestInvalid(f"Missing required fields: {', '.join(missing)}", missing=missing)

    async def run(self, request: ResearchRequest) -> DispatchResult:
        self.validate(request)
        log_research_step(request.subject, "dispatch", "started", {"provider": request.provider.value})

        if request.provider is ProviderKind.MANUAL and not request.has_raw_result:
            provider = self.providers.get(ProviderKind.MANUAL) or ManualWorkflowProvider()
            workflow = await provider.execute(request)
            log_research_step(request.subject, "dispatch", "workflow_ready")
            return workflow

        report, social = await asyncio.gather(self._research(request), self._enrich(request))
        if social is not None and not social.is_synthetic:
            report.social_listening = social

        await self._persist(request, report)
        log_research_step(
            request.subject,
            "dispatch",
            "completed",
            {"generated_by": report.meta.generated_by, "strategy": report.meta.extraction_strategy},
        )
        return report

    def _recover(self, stage: str, exc: ResearchError) -> Recovery:
        for kind, recovery in RECOVERY_POLICY[stage].items():
            if isinstance(exc, kind):
                logger.warning(f"{stage}: recovered {exc.kind} with {recovery.value}: {exc}")
                return recovery
        raise exc

    async def _research(self, request: ResearchRequest) -> StructuredReport:
        raw_text = ""
        source = "raw_result" if request.has_raw_result else request.provider.value
        attempts: list[ExtractionAttempt] = []
        try:
            if request.has_raw_result:
                raw_text = request.raw_result or ""
            else:
                provider = self.providers.get(request.provider)
                if provider is None:
                    raise ProviderUnavailable(f"No provider registered for {request.provider.value}")
                result = await provider.execute(request)
                if isinstance(result, WorkflowResult):
                    raise ProviderRequestFailed(f"{request.provider.value} provider returned a workflow, not text")
                raw_text = result.text
                source = result.provider

            outcome = self.extractor.extract(raw_text)
            attempts = outcome.attempts
            if not outcome.ok:
                raise ExtractionFailed(
                    f"No extraction strategy recovered a report from {len(raw_text)} chars",
                    attempts=outcome.attempts,
                )
            report = coerce_report(outcome.data)
            report.meta.generated_by = "extraction"
            report.meta.extraction_strategy = outcome.strategy or ""
            report.meta.confidence = EXTRACTED_CONFIDENCE
        except ResearchError as exc:
            self._recover("research", exc)
            if isinstance(exc, ExtractionFailed):
                attempts = exc.attempts
            report = synthesize_report(raw_text, request)
        except Exception:
            logger.exception(f"Research for {request.subject} crashed; synthesizing a fallback report")
            report = synthesize_report(raw_text, request)

        report.meta.subject = request.subject
        report.meta.category = request.category
        report.meta.timeframe = request.timeframe
        report.meta.markets = list(request.markets)
        report.meta.provider = source
        report.meta.extraction_trace = [attempt.to_dict() for attempt in attempts]
        report.meta.analysis_date = self._clock().isoformat()
        return report

    async def _enrich(self, request: ResearchRequest) -> SocialListening | None:
        if self.social is None:
            return None
        try:
            return await self.social.enrich(request.subject, request.category, request.timeframe)
        except ResearchError as exc:
            self._recover("enrichment", exc)
        except Exception:
            logger.exception(f"Social listening enrichment crashed for {request.subject}")
        return None

    async def _persist(self, request: ResearchRequest, report: StructuredReport) -> None:
        if self.store is None or not self.store.enabled:
            return
        try:
            await self.store.save_report(request, report)
        except Exception as exc:
            log_db_operation("insert", self.store.table, "failed", error=str(exc))


def build_dispatcher(settings: Settings) -> ResearchDispatcher:
    """Construct every collaborator once from settings."""
    openai_client = get_openai_client(settings)
    providers: dict[ProviderKind, ResearchProvider] = {
        ProviderKind.SYNC: PerplexityProvider(
            api_key=settings.perplexity_api_key,
            base_url=settings.perplexity_base_url,
            model=settings.perplexity_model,
            fallback_model=settings.perplexity_fallback_model,
            timeout=settings.perplexity_timeout_seconds,
        ),
        ProviderKind.ASYNC: DeepResearchProvider(
            openai_client,
            model=settings.deep_research_model,
            max_output_tokens=settings.deep_research_max_output_tokens,
            poll_interval=settings.poll_interval_seconds,
            poll_max_attempts=settings.poll_max_attempts,
        ),
        ProviderKind.MANUAL: ManualWorkflowProvider(provider_url=settings.manual_provider_url),
    }

    social = None
    if settings.social_listening_configured:
        social = EphemeralQueryManager(
            BrandwatchClient(
                token=settings.brandwatch_token,
                project_id=settings.brandwatch_project_id,
                base_url=settings.brandwatch_base_url,
                page_size=settings.brandwatch_page_size,
                timeout=settings.brandwatch_timeout_seconds,
            ),
            BooleanQueryBuilder(
                openai_client if settings.query_generation_enabled else None,
                model=settings.query_model,
            ),
            settle_seconds=settings.brandwatch_settle_seconds,
        )

    store = ReportStore(
        supabase_service.get_client(settings),
        table=settings.reports_table,
        client_name=settings.default_client_name,
    )
    return ResearchDispatcher(providers, social=social, store=store)
