"""Deterministic report synthesis for when extraction fails.

Each field is filled by a keyword heuristic over the raw provider text (the
nearest sentence mentioning the keyword, or a number found just after it).
Fields with no match get a neutral placeholder of the right shape. The
output depends only on the inputs: no clock, no randomness.
"""
from __future__ import annotations

import re

from brandintel.models.report import (
    NUMBER_PATTERN,
    PLACEHOLDER,
    Audience,
    BrandRelationship,
    BrandXRay,
    BusinessChallenge,
    BusinessModel,
    CategoryCompetition,
    CompanyInfo,
    Competitor,
    CultureContext,
    Demographics,
    ExecutiveSnapshot,
    MacroFactors,
    MarketingMethods,
    MarketSize,
    Methodology,
    Metric,
    Persona,
    ReportMeta,
    SnapshotMetrics,
    SocialListening,
    StrategicOpportunity,
    StructuredReport,
)
from brandintel.models.research import ResearchRequest

HEURISTIC_CONFIDENCE = 0.3
MAX_SENTENCE_CHARS = 300
MAX_SUMMARY_CHARS = 500
METRIC_WINDOW_CHARS = 120

SENTENCE_SPLIT = re.compile(r"(?<=[.!?])\s+|\n+")
MARKDOWN_NOISE = re.compile(r"```(?:json)?|^[#>*\-\s]+|\*\*", re.MULTILINE)
URL_PATTERN = re.compile(r"https?://[^\s)\]\"'<>,]+")

KEYWORDS: dict[str, tuple[str, ...]] = {
    "insight": ("key insight", "key finding", "insight", "significant", "notable"),
    "challenge": ("challenge", "problem", "issue", "difficulty", "obstacle"),
    "strength": ("strength", "advantage", "strong", "leader", "excellence"),
    "weakness": ("weakness", "limitation", "gap", "lacking", "struggle"),
    "headwind": ("headwind", "pressure", "decline", "inflation", "regulation"),
    "tailwind": ("tailwind", "growth driver", "opportunity", "trend", "demand"),
    "audience": ("audience", "customer", "consumer", "shopper", "demographic"),
    "competitor": ("competitor", "rival", "competition", "versus", "vs."),
    "culture": ("culture", "cultural", "gen z", "millennial", "tiktok"),
    "opportunity": ("opportunity", "opportunities", "could", "should", "potential"),
    "business_model": ("business model", "revenue stream", "subscription", "direct-to-consumer", "wholesale"),
    "value_proposition": ("value proposition", "promise", "positioning"),
    "strategy": ("brand strategy", "strategy", "positioning", "campaign"),
    "channels": ("channel", "social media", "retail", "e-commerce", "advertising"),
    "peak": ("peak moment", "milestone", "breakthrough", "success", "achievement"),
    "surprise": ("surprising", "unexpected", "counterintuitive", "interesting"),
    "future": ("future", "vision", "next decade", "ahead", "long-term"),
    "headquarters": ("headquarter", "based in", "head office"),
    "founded": ("founded", "established", "launched in"),
    "whitespace": ("white space", "whitespace", "untapped", "underserved"),
    "trend": ("trend", "emerging", "shift", "rise of"),
}

METRIC_KEYWORDS: dict[str, tuple[str, ...]] = {
    "market_share": ("market share", "share of market"),
    "brand_value": ("brand value", "valuation", "valued at"),
    "growth_rate": ("growth rate", "grew", "growth of", "cagr"),
    "revenue": ("revenue", "sales of", "turnover"),
    "employees": ("employees", "staff of", "workforce"),
    "marketing_spend": ("marketing spend", "ad spend", "advertising spend", "marketing budget"),
    "market_value": ("market size", "market value", "market worth", "market is worth"),
}


def split_sentences(text: str) -> list[str]:
    cleaned = MARKDOWN_NOISE.sub(" ", text or "")
    sentences: list[str] = []
    for part in SENTENCE_SPLIT.split(cleaned):
        sentence = " ".join(part.split()).strip()
        if len(sentence) < 12 or sentence.startswith(("{", "}", "[", "]")):
            continue
        if len(sentence) > MAX_SENTENCE_CHARS:
            sentence = sentence[:MAX_SENTENCE_CHARS].rstrip() + "..."
        sentences.append(sentence)
    return sentences


def find_sentence(sentences: list[str], keywords: tuple[str, ...]) -> str | None:
    """First sentence mentioning the highest-priority keyword that occurs at all."""
    for keyword in keywords:
        for sentence in sentences:
            if keyword in sentence.lower():
                return sentence
    return None


def find_sentences(sentences: list[str], keywords: tuple[str, ...], *, limit: int) -> list[str]:
    found: list[str] = []
    for sentence in sentences:
        lowered = sentence.lower()
        if any(keyword in lowered for keyword in keywords) and sentence not in found:
            found.append(sentence)
            if len(found) >= limit:
                break
    return found


def find_metric(text: str, keywords: tuple[str, ...]) -> Metric:
    """Number closest after a keyword, tagged as a low-confidence estimate."""
    lowered = (text or "").lower()
    for keyword in keywords:
        index = lowered.find(keyword)
        if index < 0:
            continue
        window = text[index + len(keyword) : index + len(keyword) + METRIC_WINDOW_CHARS]
        match = NUMBER_PATTERN.search(window)
        if match:
            return Metric.parse(match.group(0), confidence=HEURISTIC_CONFIDENCE, status="estimated")
    return Metric.missing()


def find_citations(text: str, *, limit: int = 20) -> list[str]:
    urls: list[str] = []
    for url in URL_PATTERN.findall(text or ""):
        url = url.rstrip(".;:")
        if url not in urls:
            urls.append(url)
        if len(urls) >= limit:
            break
    return urls


def _first_paragraph(text: str) -> str:
    for block in re.split(r"\n\s*\n", MARKDOWN_NOISE.sub(" ", text or "")):
        paragraph = " ".join(block.split()).strip()
        if len(paragraph) >= 40:
            if len(paragraph) > MAX_SUMMARY_CHARS:
                return paragraph[:MAX_SUMMARY_CHARS].rstrip() + "..."
            return paragraph
    return ""


def _or(value: str | None, placeholder: str = PLACEHOLDER) -> str:
    return value if value else placeholder


def synthesize_report(raw_text: str, request: ResearchRequest) -> StructuredReport:
    """Build a complete, low-confidence report from whatever text exists."""
    text = raw_text or ""
    sentences = split_sentences(text)
    subject = request.subject.strip() or "The brand"
    category = request.category.strip() or "its category"

    def sentence(key: str) -> str | None:
        return find_sentence(sentences, KEYWORDS[key])

    def sentence_list(key: str, limit: int = 4) -> list[str]:
        return find_sentences(sentences, KEYWORDS[key], limit=limit)

    def metric(key: str) -> Metric:
        return find_metric(text, METRIC_KEYWORDS[key])

    insight = sentence("insight")
    key_insight = f"{subject} in {category}: {insight}" if insight else (
        f"{subject} in {category}: {PLACEHOLDER}"
    )
    summary = _first_paragraph(text) or f"Analysis of {subject} in the {category} category {PLACEHOLDER}."

    executive_snapshot = ExecutiveSnapshot(
        key_insight=key_insight,
        summary=summary,
        metrics=SnapshotMetrics(
            market_share=metric("market_share"),
            brand_value=metric("brand_value"),
            growth_rate=metric("growth_rate"),
        ),
        company_info=CompanyInfo(
            employees=metric("employees"),
            revenue=metric("revenue"),
            founded=_or(sentence("founded")),
            headquarters=_or(sentence("headquarters")),
        ),
        business_model=BusinessModel(
            primary_model=_or(sentence("business_model")),
            value_proposition=_or(sentence("value_proposition")),
        ),
        marketing_methods=MarketingMethods(
            primary_channels=sentence_list("channels", limit=3),
            marketing_spend=metric("marketing_spend"),
            brand_strategy=_or(sentence("strategy")),
        ),
    )

    business_challenge = BusinessChallenge(
        commercial_objective=request.purpose.strip() or PLACEHOLDER,
        top_challenges=sentence_list("challenge", limit=3),
        strengths=sentence_list("strength"),
        weaknesses=sentence_list("weakness"),
        macro_factors=MacroFactors(
            headwinds=sentence_list("headwind", limit=3),
            tailwinds=sentence_list("tailwind", limit=3),
        ),
    )

    brand_x_ray = BrandXRay(
        peak_moment=_or(sentence("peak")),
        surprising_truths=sentence_list("surprise", limit=3),
        sworn_enemy=_or(sentence("competitor")),
        future_redefinition=_or(sentence("future")),
    )

    audience_sentence = sentence("audience")
    markets = [market for market in request.markets if market.strip()]
    audience = Audience(
        core_personas=[
            Persona(
                name="Primary Audience",
                title=f"Core {category} customer",
                description=_or(audience_sentence, f"Primary customers of {subject}: {PLACEHOLDER}"),
                demographics=Demographics(),
                brand_relationship=BrandRelationship(),
            )
        ],
        market_differences=(
            f"Market-specific analysis needed for {', '.join(markets)}" if markets else PLACEHOLDER
        ),
    )

    competitor_sentences = sentence_list("competitor", limit=3)
    category_competition = CategoryCompetition(
        overview=competitor_sentences[0] if competitor_sentences else PLACEHOLDER,
        market_size=MarketSize(market_value=metric("market_value")),
        top_competitors=[
            Competitor(name=f"Competitor {index}", differentiation=entry)
            for index, entry in enumerate(competitor_sentences, start=1)
        ],
        emerging_trends=sentence_list("trend", limit=3),
        whitespace=_or(sentence("whitespace")),
    )

    culture_context = CultureContext(
        cultural_white_space=_or(sentence("whitespace")),
        cultural_trends=sentence_list("culture", limit=3),
    )

    strategic_opportunities = [
        StrategicOpportunity(title=f"Opportunity {index}", description=entry)
        for index, entry in enumerate(sentence_list("opportunity", limit=3), start=1)
    ]

    methodology = Methodology(
        data_sources=["Unstructured provider response"] if text.strip() else ["No provider response"],
        limitations=(
            "Generated heuristically because the research response could not be parsed; "
            "every value is an estimate or a placeholder."
        ),
        next_steps=[
            "Re-run deep research with a configured provider",
            "Validate estimated metrics against primary sources",
        ],
    )

    return StructuredReport(
        executive_snapshot=executive_snapshot,
        business_challenge=business_challenge,
        brand_x_ray=brand_x_ray,
        audience=audience,
        category_competition=category_competition,
        culture_context=culture_context,
        strategic_opportunities=strategic_opportunities,
        social_listening=SocialListening.synthetic(subject),
        methodology=methodology,
        citations=find_citations(text),
        meta=ReportMeta(
            subject=request.subject,
            category=request.category,
            timeframe=request.timeframe,
            markets=markets,
            provider=request.provider.value,
            generated_by="fallback",
            confidence=HEURISTIC_CONFIDENCE if sentences else 0.0,
        ),
    )
