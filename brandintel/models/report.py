"""Canonical structured report schema.

Every field has a default of the right shape, so a report built from a
partial or badly-typed provider payload still carries every field path.
Values that fail validation are replaced by the field default instead of
raising.
"""
from __future__ import annotations

import json
import re
from typing import Annotated, Any, Literal, Optional, Union, get_args, get_origin

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic.alias_generators import to_camel

PLACEHOLDER = "requires further research"

MetricStatus = Literal["measured", "estimated", "missing"]

CURRENCY_UNITS = {"£": "GBP", "$": "USD", "€": "EUR"}
MAGNITUDE_UNITS = {
    "k": "thousand",
    "thousand": "thousand",
    "m": "million",
    "mn": "million",
    "million": "million",
    "b": "billion",
    "bn": "billion",
    "billion": "billion",
    "%": "%",
}
NUMBER_PATTERN = re.compile(
    r"(?P<currency>[£$€])?\s*(?P<number>-?\d[\d,]*(?:\.\d+)?)\s*"
    r"(?P<magnitude>%|billion|million|thousand|bn|mn|[kmb])?(?![a-z])",
    re.IGNORECASE,
)


def _as_text(value: Any) -> Any:
    if isinstance(value, list):
        return "; ".join(str(_as_text(item)) for item in value if item is not None)
    if isinstance(value, dict):
        return json.dumps(value, ensure_ascii=False)
    if isinstance(value, bool):
        return str(value).lower()
    return value


def _as_text_list(value: Any) -> Any:
    if isinstance(value, str):
        return [value] if value.strip() else []
    if isinstance(value, list):
        items: list[str] = []
        for item in value:
            if item is None:
                continue
            if isinstance(item, dict):
                items.append(" - ".join(str(v) for v in item.values() if v not in (None, "")))
            else:
                items.append(str(item))
        return items
    return value


Text = Annotated[str, BeforeValidator(_as_text)]
TextList = Annotated[list[str], BeforeValidator(_as_text_list)]


class Section(BaseModel):
    """Base for all report sections: camelCase aliases and lenient fields."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        coerce_numbers_to_str=True,
        extra="ignore",
    )

    @field_validator("*", mode="wrap")
    @classmethod
    def _lenient(cls, value: Any, handler: Any, info: Any) -> Any:
        if value is None:
            return cls._default_for(info.field_name)
        try:
            return handler(value)
        except ValidationError:
            return cls._default_for(info.field_name)

    @classmethod
    def _default_for(cls, field_name: str) -> Any:
        return cls.model_fields[field_name].get_default(call_default_factory=True)


class Metric(Section):
    """A numeric value tagged with how much it can be trusted.

    ``value`` is the only leaf of a report that may serialize as null: a
    ``missing`` metric has ``value=None``, ``confidence=0.0`` and a ``note``
    saying why. Every other field path always carries a non-null value.
    """

    value: Optional[float] = None
    unit: str = ""
    confidence: float = 0.0
    status: MetricStatus = "missing"
    note: Text = ""

    @model_validator(mode="before")
    @classmethod
    def _from_scalar(cls, data: Any) -> Any:
        if isinstance(data, bool):
            return {}
        if isinstance(data, (int, float)):
            return {"value": float(data), "confidence": 0.6, "status": "estimated"}
        if isinstance(data, str):
            return cls.parse(data, confidence=0.6, status="estimated").model_dump()
        return data

    @classmethod
    def parse(cls, text: str, *, confidence: float, status: MetricStatus = "estimated") -> "Metric":
        """Parse free text like '£2.5B' or '12%'. Unparseable text becomes a missing metric."""
        match = NUMBER_PATTERN.search(text or "")
        if not match:
            return cls.missing(note=(text or "").strip())
        try:
            number = float(match.group("number").replace(",", ""))
        except ValueError:
            return cls.missing(note=text.strip())
        unit_parts = []
        currency = match.group("currency")
        if currency:
            unit_parts.append(CURRENCY_UNITS[currency])
        magnitude = (match.group("magnitude") or "").lower()
        if magnitude:
            unit_parts.append(MAGNITUDE_UNITS[magnitude])
        return cls(
            value=number,
            unit=" ".join(unit_parts),
            confidence=confidence,
            status=status,
            note=text.strip(),
        )

    @classmethod
    def missing(cls, note: str = PLACEHOLDER) -> "Metric":
        return cls(value=None, unit="", confidence=0.0, status="missing", note=note or PLACEHOLDER)

    @classmethod
    def measured(cls, value: float, unit: str = "", note: str = "") -> "Metric":
        return cls(value=float(value), unit=unit, confidence=1.0, status="measured", note=note)


def _missing_metric() -> Metric:
    return Metric.missing()


# --- Executive snapshot ---


class SnapshotMetrics(Section):
    market_share: Metric = Field(default_factory=_missing_metric)
    brand_value: Metric = Field(default_factory=_missing_metric)
    growth_rate: Metric = Field(default_factory=_missing_metric)


class CompanyInfo(Section):
    size: Text = PLACEHOLDER
    employees: Metric = Field(default_factory=_missing_metric)
    revenue: Metric = Field(default_factory=_missing_metric)
    founded: Text = PLACEHOLDER
    headquarters: Text = PLACEHOLDER
    public_private: Text = PLACEHOLDER
    key_executives: TextList = Field(default_factory=list)


class BusinessModel(Section):
    primary_model: Text = PLACEHOLDER
    revenue_streams: TextList = Field(default_factory=list)
    value_proposition: Text = PLACEHOLDER
    key_partners: TextList = Field(default_factory=list)


class MarketingMethods(Section):
    primary_channels: TextList = Field(default_factory=list)
    marketing_spend: Metric = Field(default_factory=_missing_metric)
    brand_strategy: Text = PLACEHOLDER
    customer_acquisition: TextList = Field(default_factory=list)


class ExecutiveSnapshot(Section):
    key_insight: Text = PLACEHOLDER
    summary: Text = PLACEHOLDER
    metrics: SnapshotMetrics = Field(default_factory=SnapshotMetrics)
    company_info: CompanyInfo = Field(default_factory=CompanyInfo)
    business_model: BusinessModel = Field(default_factory=BusinessModel)
    marketing_methods: MarketingMethods = Field(default_factory=MarketingMethods)


# --- Business challenge ---


class MacroFactors(Section):
    headwinds: TextList = Field(default_factory=list)
    tailwinds: TextList = Field(default_factory=list)


class BusinessChallenge(Section):
    commercial_objective: Text = PLACEHOLDER
    top_challenges: TextList = Field(default_factory=list)
    strengths: TextList = Field(default_factory=list)
    weaknesses: TextList = Field(default_factory=list)
    macro_factors: MacroFactors = Field(default_factory=MacroFactors)


# --- Brand X-ray ---


class MusicGenre(Section):
    genre: Text = PLACEHOLDER
    reasoning: Text = PLACEHOLDER


class BrandXRay(Section):
    peak_moment: Text = PLACEHOLDER
    sacred_cows: TextList = Field(default_factory=list)
    surprising_truths: TextList = Field(default_factory=list)
    unexpected_endorser: Text = PLACEHOLDER
    elephant_in_room: Text = PLACEHOLDER
    sworn_enemy: Text = PLACEHOLDER
    music_genre: MusicGenre = Field(default_factory=MusicGenre)
    future_redefinition: Text = PLACEHOLDER


# --- Audience ---


class Demographics(Section):
    income: Text = PLACEHOLDER
    location: Text = PLACEHOLDER
    education: Text = PLACEHOLDER
    family_status: Text = PLACEHOLDER


class Psychographics(Section):
    values: TextList = Field(default_factory=list)
    lifestyle: Text = PLACEHOLDER
    interests: TextList = Field(default_factory=list)
    aspirations: TextList = Field(default_factory=list)


class MediaConsumption(Section):
    platforms: TextList = Field(default_factory=list)
    content: TextList = Field(default_factory=list)
    influencers: TextList = Field(default_factory=list)
    channels: TextList = Field(default_factory=list)


class BrandRelationship(Section):
    current_perception: Text = PLACEHOLDER
    desired_relationship: Text = PLACEHOLDER
    touchpoints: TextList = Field(default_factory=list)


class Persona(Section):
    name: Text = PLACEHOLDER
    percentage: Text = PLACEHOLDER
    age: Text = PLACEHOLDER
    title: Text = PLACEHOLDER
    description: Text = PLACEHOLDER
    demographics: Demographics = Field(default_factory=Demographics)
    psychographics: Psychographics = Field(default_factory=Psychographics)
    needs: TextList = Field(default_factory=list)
    pain_points: TextList = Field(default_factory=list)
    behaviors: TextList = Field(default_factory=list)
    media_consumption: MediaConsumption = Field(default_factory=MediaConsumption)
    brand_relationship: BrandRelationship = Field(default_factory=BrandRelationship)


class Audience(Section):
    core_personas: list[Persona] = Field(default_factory=list)
    market_differences: Text = PLACEHOLDER
    sub_cultures: TextList = Field(default_factory=list)
    adjacent_audiences: TextList = Field(default_factory=list)
    consumer_quotes: TextList = Field(default_factory=list)
    day_in_life: Text = PLACEHOLDER


# --- Competition ---


class MarketSize(Section):
    yoy_trends: Text = PLACEHOLDER
    market_value: Metric = Field(default_factory=_missing_metric)
    market_description: Text = PLACEHOLDER


class Competitor(Section):
    name: Text = PLACEHOLDER
    market_share: Metric = Field(default_factory=_missing_metric)
    revenue: Metric = Field(default_factory=_missing_metric)
    position: Text = PLACEHOLDER
    strengths: TextList = Field(default_factory=list)
    weaknesses: TextList = Field(default_factory=list)
    strategy: Text = PLACEHOLDER
    recent_moves: TextList = Field(default_factory=list)
    threat: Text = "UNKNOWN"
    differentiation: Text = PLACEHOLDER


class CategoryCompetition(Section):
    overview: Text = PLACEHOLDER
    market_size: MarketSize = Field(default_factory=MarketSize)
    top_competitors: list[Competitor] = Field(default_factory=list)
    emerging_trends: TextList = Field(default_factory=list)
    whitespace: Text = PLACEHOLDER


# --- Culture ---


class GenerationalInsights(Section):
    gen_z: Text = PLACEHOLDER
    millennial: Text = PLACEHOLDER
    gen_x: Text = PLACEHOLDER
    boomer: Text = PLACEHOLDER


class TimelyOpportunity(Section):
    title: Text = PLACEHOLDER
    description: Text = PLACEHOLDER
    urgency: Text = "UNKNOWN"
    timeline: Text = PLACEHOLDER


class CultureContext(Section):
    cultural_white_space: Text = PLACEHOLDER
    relevant_moments: TextList = Field(default_factory=list)
    cultural_trends: TextList = Field(default_factory=list)
    generational_insights: GenerationalInsights = Field(default_factory=GenerationalInsights)
    social_movements: TextList = Field(default_factory=list)
    timely_opportunities: list[TimelyOpportunity] = Field(default_factory=list)


# --- Opportunities, social listening, methodology ---


class StrategicOpportunity(Section):
    priority: Text = "UNKNOWN"
    title: Text = PLACEHOLDER
    description: Text = PLACEHOLDER
    impact: Text = PLACEHOLDER
    feasibility: Text = PLACEHOLDER
    timeline: Text = PLACEHOLDER
    resources: Text = PLACEHOLDER
    risks: Text = PLACEHOLDER


class Sentiment(Section):
    positive: int = 0
    negative: int = 0
    neutral: int = 0


GENERIC_KEYWORDS = ("quality", "innovative", "reliable", "premium", "authentic", "sustainable")


def generate_top_keywords(subject: str) -> list[str]:
    brand_specific = [subject.lower().strip(), "brand", "product", "service", "experience"]
    return [word for word in brand_specific if word] + list(GENERIC_KEYWORDS)


class SocialListening(Section):
    source: Text = "synthetic"
    is_synthetic: bool = True
    mentions: Metric = Field(default_factory=_missing_metric)
    sentiment: Sentiment = Field(default_factory=Sentiment)
    volume: dict[str, int] = Field(default_factory=dict)
    gender: dict[str, int] = Field(default_factory=dict)
    top_keywords: TextList = Field(default_factory=list)
    engagement_rate: Metric = Field(default_factory=_missing_metric)
    share_of_voice: Metric = Field(default_factory=_missing_metric)
    note: Text = "Synthetic placeholder: no social listening data was retrieved"

    @classmethod
    def synthetic(cls, subject: str) -> "SocialListening":
        """Labelled default payload used whenever no real mentions are available."""
        return cls(
            source="synthetic",
            is_synthetic=True,
            top_keywords=generate_top_keywords(subject),
            note=f"Synthetic placeholder: no social listening data was retrieved for {subject}",
        )


class Methodology(Section):
    data_sources: TextList = Field(default_factory=list)
    limitations: Text = PLACEHOLDER
    next_steps: TextList = Field(default_factory=list)


class ReportMeta(Section):
    subject: Text = ""
    category: Text = ""
    timeframe: Text = ""
    markets: TextList = Field(default_factory=list)
    provider: Text = ""
    generated_by: Text = "fallback"  # extraction | fallback
    extraction_strategy: Text = ""
    extraction_trace: list[dict[str, Any]] = Field(default_factory=list)
    confidence: float = 0.0
    analysis_date: Text = ""


class StructuredReport(Section):
    executive_snapshot: ExecutiveSnapshot = Field(default_factory=ExecutiveSnapshot)
    business_challenge: BusinessChallenge = Field(default_factory=BusinessChallenge)
    brand_x_ray: BrandXRay = Field(default_factory=BrandXRay)
    audience: Audience = Field(default_factory=Audience)
    category_competition: CategoryCompetition = Field(default_factory=CategoryCompetition)
    culture_context: CultureContext = Field(default_factory=CultureContext)
    strategic_opportunities: list[StrategicOpportunity] = Field(default_factory=list)
    social_listening: SocialListening = Field(default_factory=SocialListening)
    methodology: Methodology = Field(default_factory=Methodology)
    citations: TextList = Field(default_factory=list)
    meta: ReportMeta = Field(default_factory=ReportMeta)

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


# Keys a provider payload must carry at least one of to count as a report.
EXPECTED_TOP_LEVEL_KEYS = frozenset(
    {
        "executiveSnapshot",
        "businessChallenge",
        "brandXRay",
        "audience",
        "categoryCompetition",
        "cultureContext",
        "strategicOpportunities",
    }
)


def coerce_report(data: dict[str, Any]) -> StructuredReport:
    """Build a fully-populated report from an extracted provider payload."""
    return StructuredReport.model_validate(data)


def _model_of(annotation: Any) -> type[Section] | None:
    if isinstance(annotation, type) and issubclass(annotation, Section):
        return annotation
    return None


def _allows_none(annotation: Any) -> bool:
    return get_origin(annotation) is Union and type(None) in get_args(annotation)


def _shape_ok(annotation: Any, value: Any) -> bool:
    origin = get_origin(annotation) or annotation
    if origin is Union:
        return any(_shape_ok(arg, value) for arg in get_args(annotation) if arg is not type(None))
    if origin is Literal:
        return value in get_args(annotation)
    if origin is list:
        return isinstance(value, list)
    if origin is dict:
        return isinstance(value, dict)
    if origin is bool:
        return isinstance(value, bool)
    if origin in (int, float):
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if origin is str:
        return isinstance(value, str)
    return True


def missing_paths(payload: Any, model: type[Section] = StructuredReport, prefix: str = "") -> list[str]:
    """Return every schema path absent from or wrongly shaped in ``payload``.

    ``payload`` is a by-alias dump. List items that are sections are checked
    recursively; an empty list is a valid value.
    """
    if not isinstance(payload, dict):
        return [prefix.rstrip(".") or "<root>"]

    problems: list[str] = []
    for name, info in model.model_fields.items():
        key = info.alias or name
        path = f"{prefix}{key}"
        if key not in payload:
            problems.append(path)
            continue
        value = payload[key]
        annotation = info.annotation
        if value is None:
            if not _allows_none(annotation):
                problems.append(path)
            continue

        nested = _model_of(annotation)
        if nested is not None:
            problems.extend(missing_paths(value, nested, f"{path}."))
            continue

        if get_origin(annotation) is list:
            item_model = _model_of(get_args(annotation)[0])
            if not isinstance(value, list):
                problems.append(path)
            elif item_model is not None:
                for index, item in enumerate(value):
                    problems.extend(missing_paths(item, item_model, f"{path}[{index}]."))
            continue

        if not _shape_ok(annotation, value):
            problems.append(path)
    return problems
