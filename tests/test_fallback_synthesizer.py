from __future__ import annotations

import pytest

from brandintel.models.report import PLACEHOLDER, missing_paths
from brandintel.models.research import ProviderKind, ResearchRequest
from brandintel.research_core.fallback.synthesizer import (
    find_citations,
    find_metric,
    split_sentences,
    synthesize_report,
)

PROSE = """**Acme Outdoor brand analysis**

Acme Outdoor is a heritage brand founded in 1972 and headquartered in Leeds.
Its market share is 12% in the UK, and revenue reached £340m last year.
The biggest challenge is relevance with younger shoppers. A key strength is its repair programme.
Competitors like Patagonia and The North Face dominate premium price points.
There is an opportunity to lead on rental and resale. Sources: https://example.com/acme-annual-report.
"""

REQUESTS = [
    ResearchRequest(subject="Acme Outdoor", category="Outdoor apparel", purpose="Win the pitch", markets=["UK", "US"]),
    ResearchRequest(subject="Zed", category="Fintech", purpose="Growth plan", provider=ProviderKind.SYNC),
]

RAW_TEXTS = [
    "",
    PROSE,
    '{"executiveSnapshot": {"keyInsight": ',
    "No useful content at all",
    "```json\n[1, 2\n```",
]


@pytest.mark.parametrize("raw_text", RAW_TEXTS)
@pytest.mark.parametrize("request_", REQUESTS)
def test_output_covers_every_schema_path(raw_text, request_):
    report = synthesize_report(raw_text, request_)

    assert missing_paths(report.to_payload()) == []


@pytest.mark.parametrize("raw_text", RAW_TEXTS)
def test_identical_inputs_yield_identical_output(raw_text):
    first = synthesize_report(raw_text, REQUESTS[0])
    second = synthesize_report(raw_text, REQUESTS[0])

    assert first.to_payload() == second.to_payload()


def test_request_context_is_threaded_through():
    report = synthesize_report("", REQUESTS[0])

    assert report.meta.subject == "Acme Outdoor"
    assert report.meta.category == "Outdoor apparel"
    assert report.meta.generated_by == "fallback"
    assert report.meta.confidence == 0.0
    assert "Acme Outdoor" in report.executive_snapshot.key_insight
    assert "Outdoor apparel" in report.executive_snapshot.key_insight
    assert report.business_challenge.commercial_objective == "Win the pitch"
    assert report.audience.market_differences == "Market-specific analysis needed for UK, US"
    assert report.methodology.data_sources == ["No provider response"]
    assert report.social_listening.is_synthetic is True


def test_keyword_heuristics_pick_nearest_sentences_and_numbers():
    report = synthesize_report(PROSE, REQUESTS[0])

    challenges = report.business_challenge.top_challenges
    assert challenges and "challenge" in challenges[0].lower()
    assert any("strength" in s.lower() for s in report.business_challenge.strengths)
    assert report.category_competition.top_competitors[0].differentiation.startswith("Competitors like Patagonia")

    share = report.executive_snapshot.metrics.market_share
    assert share.value == 12.0
    assert share.unit == "%"
    assert share.status == "estimated"
    assert share.confidence == 0.3

    revenue = report.executive_snapshot.company_info.revenue
    assert revenue.value == 340.0
    assert revenue.unit == "GBP million"

    assert report.citations == ["https://example.com/acme-annual-report"]
    assert report.meta.confidence == 0.3


def test_unmatched_fields_get_placeholders_of_the_right_shape():
    report = synthesize_report("No useful content at all", REQUESTS[1])

    assert report.brand_x_ray.peak_moment == PLACEHOLDER
    assert report.brand_x_ray.surprising_truths == []
    assert report.executive_snapshot.metrics.brand_value.status == "missing"
    assert report.executive_snapshot.metrics.brand_value.value is None
    assert len(report.audience.core_personas) == 1
    assert report.audience.market_differences == PLACEHOLDER


def test_split_sentences_drops_markup_and_fragments():
    sentences = split_sentences("## Title\n**Bold** lead sentence here. ok.\n- bullet point sentence here")

    assert "ok." not in sentences
    assert any(s.startswith("Bold lead sentence") for s in sentences)
    assert "bullet point sentence here" in sentences


def test_find_metric_returns_missing_without_nearby_number():
    metric = find_metric("The market share is not disclosed.", ("market share",))

    assert metric.status == "missing"


def test_find_citations_deduplicates_urls():
    text = "See https://a.example/x. Also https://a.example/x and (https://b.example/y)"

    assert find_citations(text) == ["https://a.example/x", "https://b.example/y"]
