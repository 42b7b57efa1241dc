from __future__ import annotations

import pytest
from pydantic import ValidationError

from brandintel.models.report import (
    PLACEHOLDER,
    Metric,
    SocialListening,
    StructuredReport,
    coerce_report,
    missing_paths,
)
from brandintel.models.research import ResearchRequest


def test_empty_payload_coerces_to_full_report():
    report = coerce_report({})

    assert missing_paths(report.to_payload()) == []
    assert report.executive_snapshot.key_insight == PLACEHOLDER
    assert report.executive_snapshot.metrics.market_share.status == "missing"


def test_badly_shaped_provider_values_are_coerced_or_defaulted():
    report = coerce_report(
        {
            "executiveSnapshot": {
                "keyInsight": ["Heritage brand", "losing Gen Z"],
                "metrics": {"marketShare": "12%", "brandValue": 4.2, "growthRate": None},
                "companyInfo": {"founded": 1964, "keyExecutives": "Jane Doe"},
            },
            "audience": {"corePersonas": "not a list"},
            "strategicOpportunities": [{"title": "Go direct", "priority": "HIGH"}],
            "citations": "https://example.com/report",
            "unexpectedSection": {"ignored": True},
        }
    )

    snapshot = report.executive_snapshot
    assert snapshot.key_insight == "Heritage brand; losing Gen Z"
    assert snapshot.metrics.market_share.value == 12.0
    assert snapshot.metrics.market_share.unit == "%"
    assert snapshot.metrics.market_share.status == "estimated"
    assert snapshot.metrics.brand_value.value == 4.2
    assert snapshot.metrics.growth_rate.status == "missing"
    assert snapshot.company_info.founded == "1964"
    assert snapshot.company_info.key_executives == ["Jane Doe"]
    assert report.audience.core_personas == []
    assert report.strategic_opportunities[0].title == "Go direct"
    assert report.strategic_opportunities[0].impact == PLACEHOLDER
    assert report.citations == ["https://example.com/report"]
    assert missing_paths(report.to_payload()) == []


def test_metric_parse_handles_currency_and_magnitude():
    metric = Metric.parse("£2.5bn in annual revenue", confidence=0.6)

    assert metric.value == 2.5
    assert metric.unit == "GBP billion"
    assert metric.confidence == 0.6
    assert metric.status == "estimated"


def test_metric_parse_without_number_is_missing():
    metric = Metric.parse("not disclosed", confidence=0.6)

    assert metric.value is None
    assert metric.status == "missing"
    assert metric.confidence == 0.0
    assert metric.note == "not disclosed"


def test_measured_metric_is_fully_trusted():
    metric = Metric.measured(1520, unit="mentions")

    assert metric.value == 1520.0
    assert metric.confidence == 1.0
    assert metric.status == "measured"


def test_missing_paths_reports_absent_and_misshaped_fields():
    payload = StructuredReport().to_payload()
    del payload["executiveSnapshot"]["metrics"]["marketShare"]
    payload["citations"] = "not a list"
    payload["audience"]["corePersonas"] = [{"name": "Ana"}]

    problems = missing_paths(payload)

    assert "executiveSnapshot.metrics.marketShare" in problems
    assert "citations" in problems
    assert "audience.corePersonas[0].demographics" in problems


def test_synthetic_social_listening_is_labelled_and_honest():
    social = SocialListening.synthetic("Acme")

    assert social.is_synthetic is True
    assert social.source == "synthetic"
    assert social.mentions.status == "missing"
    assert "acme" in social.top_keywords
    assert "Acme" in social.note


def _null_paths(node, path=""):
    if node is None:
        return [path]
    if isinstance(node, dict):
        return [p for key, value in node.items() for p in _null_paths(value, f"{path}.{key}" if path else key)]
    if isinstance(node, list):
        return [p for index, value in enumerate(node) for p in _null_paths(value, f"{path}[{index}]")]
    return []


def test_missing_metric_value_is_the_only_null_leaf():
    payload = StructuredReport().to_payload()

    nulls = _null_paths(payload)

    assert nulls
    assert all(path.endswith(".value") for path in nulls)
    assert payload["executiveSnapshot"]["metrics"]["marketShare"] == {
        "value": None,
        "unit": "",
        "confidence": 0.0,
        "status": "missing",
        "note": PLACEHOLDER,
    }


def test_request_markets_cannot_be_changed_after_issue():
    request = ResearchRequest(subject="Acme", category="Footwear", purpose="Pitch", markets=["UK", "US"])

    assert request.markets == ("UK", "US")
    with pytest.raises(AttributeError):
        request.markets.append("DE")
    with pytest.raises(ValidationError):
        request.markets = ("DE",)
