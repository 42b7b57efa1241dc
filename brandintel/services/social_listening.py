"""Social-listening enrichment through short-lived Brandwatch queries.

A query is created for one enrichment, used for a single mention fetch and
deleted before the enrichment returns. When the project's query quota is
exhausted an existing query is borrowed instead; borrowed queries are never
deleted.
"""
from __future__ import annotations

import asyncio
import calendar
import re
from collections import Counter
from contextlib import asynccontextmanager
from datetime import date, datetime, timedelta, timezone
from typing import Any, AsyncIterator, Awaitable, Callable

from loguru import logger
from openai import OpenAIError

from brandintel.errors import ProviderRequestFailed, ResourceQuotaExceeded
from brandintel.models.report import Metric, Sentiment, SocialListening
from brandintel.models.research import TIMEFRAME_MONTHS, EphemeralQuery
from brandintel.services.prompt_store import render_prompt
from brandintel.tools.brandwatch import BrandwatchClient

QUERY_NAME_PREFIX = "TEMP_"
NOISE_EXCLUSION = '(spam OR fake OR bot OR "follow me")'
CATEGORY_HIGHLIGHT_TERMS = ("review", "experience", "opinion", "feedback", "recommend")
MIN_GENERATED_QUERY_CHARS = 10
DEFAULT_MENTION_DAYS = 30
DEFAULT_QUERY_MONTHS = 3
TOP_SOURCES = 6
TOP_KEYWORDS = 10

WORD_PATTERN = re.compile(r"[#@]?[\w'-]+", re.UNICODE)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# --- Boolean queries ---


def clean_brand(subject: str) -> str:
    return re.sub(r"[^a-z0-9\s]", "", subject.lower()).strip()


def build_boolean_query(subject: str) -> str:
    """Deterministic Brandwatch query covering the usual spellings of a brand."""
    brand = subject.strip()
    cleaned = clean_brand(brand)
    compact = re.sub(r"\s+", "", cleaned)
    terms = [f'"{brand}"']
    if cleaned and cleaned != brand:
        terms.append(f'"{cleaned}"')
    terms.append(re.sub(r"\s+", "", brand))
    if compact:
        terms.extend([f"#{compact}", f"@{compact}"])
    words = cleaned.split()
    if len(words) > 1:
        terms.append(f"({' AND '.join(words)})")
    terms.append(f"{brand.lower()}*")

    unique_terms = list(dict.fromkeys(term for term in terms if term.strip('"')))
    return f"({' OR '.join(unique_terms)}) AND NOT {NOISE_EXCLUSION}"


def highlight_terms(subject: str, category: str) -> list[str]:
    brand = subject.strip()
    cleaned = clean_brand(brand)
    compact = re.sub(r"\s+", "", cleaned)
    terms = [brand, brand.lower(), cleaned, f"#{compact}" if compact else "", f"@{compact}" if compact else ""]
    terms.append(category.strip().lower())
    terms.extend(CATEGORY_HIGHLIGHT_TERMS)
    return list(dict.fromkeys(term for term in terms if term))


class BooleanQueryBuilder:
    """Ask a small chat model for the query, falling back to the deterministic one."""

    def __init__(self, llm: Any | None = None, *, model: str = "gpt-4o-mini"):
        self.llm = llm
        self.model = model

    async def build(self, subject: str, category: str) -> str:
        fallback = build_boolean_query(subject)
        if self.llm is None:
            return fallback

        try:
            response = await self.llm.chat.completions.create(
                model=self.model,
                messages=[
                    {
                        "role": "user",
                        "content": render_prompt("social.boolean_query", subject=subject, category=category),
                    }
                ],
                max_tokens=500,
                temperature=0.3,
            )
            generated = (response.choices[0].message.content or "").strip()
        except (OpenAIError, IndexError, AttributeError) as exc:
            logger.warning(f"Boolean query generation failed for {subject}: {exc}")
            return fallback

        if len(generated) > MIN_GENERATED_QUERY_CHARS:
            logger.debug(f"Generated boolean query for {subject}: {generated}")
            return generated
        logger.info(f"Generated boolean query for {subject} too short, using deterministic query")
        return fallback


# --- Time windows ---


def shift_months(day: date, months: int) -> date:
    """Same day ``months`` earlier, clamped to the end of shorter months."""
    month_index = day.month - 1 - months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return day.replace(year=year, month=month, day=min(day.day, last_day))


def timeframe_window(timeframe: str, *, today: date) -> tuple[str, str]:
    """(start, end) ISO dates for a mention fetch. Unknown timeframes cover 30 days."""
    months = TIMEFRAME_MONTHS.get(timeframe.strip().lower())
    start = shift_months(today, months) if months else today - timedelta(days=DEFAULT_MENTION_DAYS)
    return start.isoformat(), today.isoformat()


def query_start_date(timeframe: str, *, today: date) -> str:
    months = TIMEFRAME_MONTHS.get(timeframe.strip().lower()) or DEFAULT_QUERY_MONTHS
    return shift_months(today, months).isoformat()


def query_name(subject: str, now: datetime) -> str:
    return f"{QUERY_NAME_PREFIX}{subject.strip()}_{now:%Y-%m-%dT%H-%M-%S}"


# --- Mention summary ---


def _percent(part: int, total: int) -> int:
    return round(part / total * 100) if total else 0


def summarize_mentions(mentions: list[dict[str, Any]], subject: str) -> SocialListening:
    counts = {"positive": 0, "negative": 0, "neutral": 0}
    sources: Counter[str] = Counter()
    genders: Counter[str] = Counter()
    words: Counter[str] = Counter()

    for mention in mentions:
        sentiment = str(mention.get("sentiment") or "neutral").lower()
        if "positive" in sentiment:
            counts["positive"] += 1
        elif "negative" in sentiment:
            counts["negative"] += 1
        else:
            counts["neutral"] += 1

        source = mention.get("resource") or mention.get("source") or mention.get("pageType") or "unknown"
        sources[str(source).lower()] += 1

        author = mention.get("author")
        gender = str(author.get("gender") or "").lower() if isinstance(author, dict) else ""
        if gender:
            genders[gender if gender in ("male", "female") else "other"] += 1

        content = str(mention.get("content") or mention.get("fullText") or mention.get("title") or "").lower()
        for word in WORD_PATTERN.findall(content):
            if len(word) > 3:
                words[word] += 1

    total = len(mentions)
    gender_total = sum(genders.values())
    return SocialListening(
        source="brandwatch",
        is_synthetic=False,
        mentions=Metric.measured(total, unit="mentions"),
        sentiment=Sentiment(**{key: _percent(value, total) for key, value in counts.items()}),
        volume=dict(sources.most_common(TOP_SOURCES)),
        gender={key: _percent(value, gender_total) for key, value in genders.items()},
        top_keywords=[word for word, _ in words.most_common(TOP_KEYWORDS)],
        note=f"{total} mentions of {subject} retrieved from Brandwatch",
    )


# --- Query lifecycle ---


class EphemeralQueryManager:
    """Owns the create, settle, fetch and delete cycle of a temporary query."""

    def __init__(
        self,
        client: BrandwatchClient | None,
        query_builder: BooleanQueryBuilder | None = None,
        *,
        settle_seconds: float = 3.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.client = client
        self.query_builder = query_builder or BooleanQueryBuilder()
        self.settle_seconds = settle_seconds
        self._sleep = sleep
        self._clock = clock

    @asynccontextmanager
    async def acquire(self, subject: str, category: str, timeframe: str) -> AsyncIterator[EphemeralQuery | None]:
        """Yield a usable query, or None when none could be created or borrowed.

        A query created here is deleted on every exit path; a borrowed one is
        only marked reused.
        """
        query = await self._create_or_reuse(subject, category, timeframe)
        if query is None:
            yield None
            return
        try:
            if query.created_here and self.settle_seconds > 0:
                await self._sleep(self.settle_seconds)
            yield query
        finally:
            await self._release(query)

    async def _create_or_reuse(self, subject: str, category: str, timeframe: str) -> EphemeralQuery | None:
        boolean_query = await self.query_builder.build(subject, category)
        name = query_name(subject, self._clock())
        try:
            created = await self.client.create_query(
                name,
                boolean_query,
                start_date=query_start_date(timeframe, today=self._clock().date()),
                highlight_terms=highlight_terms(subject, category),
            )
        except ResourceQuotaExceeded as exc:
            logger.warning(f"{exc}; looking for a query to reuse")
            return await self._find_reusable()

        if created.get("id") is None:
            raise ProviderRequestFailed(f"Brandwatch created query '{name}' without an id", body=created)
        return EphemeralQuery(id=created["id"], name=str(created.get("name") or name))

    async def _find_reusable(self) -> EphemeralQuery | None:
        for candidate in await self.client.list_queries():
            name = str(candidate.get("name") or "")
            if candidate.get("id") is None:
                continue
            if candidate.get("state") == "active" or QUERY_NAME_PREFIX in name:
                logger.info(f"Reusing Brandwatch query '{name}' (id={candidate['id']})")
                return EphemeralQuery(id=candidate["id"], name=name, created_here=False)
        logger.info("No reusable Brandwatch query found")
        return None

    async def _release(self, query: EphemeralQuery) -> None:
        if not query.created_here:
            query.mark_reused()
            return
        try:
            await self.client.delete_query(query.id)
        except ProviderRequestFailed as exc:
            logger.error(f"Could not delete Brandwatch query {query.id} ({query.name}): {exc}")
        finally:
            query.mark_deleted()

    async def enrich(self, subject: str, category: str, timeframe: str) -> SocialListening:
        """Real mention metrics, or the labelled synthetic payload when there are none.

        Transport failures propagate as ``ProviderRequestFailed``; the query
        is released before they do.
        """
        if self.client is None:
            return SocialListening.synthetic(subject)

        async with self.acquire(subject, category, timeframe) as query:
            if query is None:
                return SocialListening.synthetic(subject)
            start_date, end_date = timeframe_window(timeframe, today=self._clock().date())
            mentions = await self.client.fetch_mentions(query.id, start_date=start_date, end_date=end_date)

        if not mentions:
            logger.info(f"No mentions found for {subject}; using synthetic social payload")
            return SocialListening.synthetic(subject)
        return summarize_mentions(mentions, subject)
