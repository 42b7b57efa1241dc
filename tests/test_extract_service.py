from __future__ import annotations

import pytest

from brandintel.research_core.extract.service import (
    MAX_CANDIDATE_DEPTH,
    ReportExtractor,
    find_object_candidates,
    fix_bracket_citations,
    repair_json_candidate,
    strip_leading_markup,
    truncate_at_balanced_brace,
)


def test_fenced_json_after_bold_header_discards_trailing_text():
    raw = '**HEADER**\n```json\n{"a":1}\n```\ntrailing text'

    outcome = ReportExtractor().extract(raw)

    assert outcome.ok
    assert outcome.data == {"a": 1}
    assert outcome.strategy == "tagged_fence"
    assert [a.strategy for a in outcome.attempts] == ["direct_parse", "tagged_fence"]
    assert outcome.attempts[0].succeeded is False


def test_bracket_citations_are_repaired_before_parse():
    raw = (
        'Here is the analysis: {"executiveSnapshot": {"keyInsight": "Strong heritage"}, '
        '"citations": [1][2][3]} Hope this helps.'
    )

    outcome = ReportExtractor().extract(raw)

    assert outcome.ok
    assert outcome.strategy == "largest_candidate"
    assert outcome.data["citations"] == ["Citation 1", "Citation 2", "Citation 3"]
    assert outcome.data["executiveSnapshot"]["keyInsight"] == "Strong heritage"


def test_fix_bracket_citations_rewrites_tokens_only():
    assert (
        fix_bracket_citations('{"citations": [1][2][3]}')
        == '{"citations": ["Citation 1", "Citation 2", "Citation 3"]}'
    )
    assert fix_bracket_citations('{"citations": [4], [5]}') == '{"citations": ["Citation 4", "Citation 5"]}'
    # Already valid arrays are left alone.
    assert fix_bracket_citations('{"citations": [1, 2]}') == '{"citations": [1, 2]}'


def test_trailing_garbage_after_balanced_object_is_ignored():
    outcome = ReportExtractor(expected_keys=None).extract('{"x":1} garbage after')

    assert outcome.data == {"x": 1}
    assert truncate_at_balanced_brace('{"x":1} garbage after') == '{"x":1}'


def test_truncation_ignores_braces_inside_strings():
    text = '{"a": "}{", "b": {"c": 2}} and then some prose }'

    assert truncate_at_balanced_brace(text) == '{"a": "}{", "b": {"c": 2}}'
    assert repair_json_candidate("  " + text) == '{"a": "}{", "b": {"c": 2}}'


def test_direct_parse_wins_over_fenced_block():
    raw = r'{"note": "```json {\"b\": 2} ```", "a": 1}'

    outcome = ReportExtractor().extract(raw)

    assert outcome.strategy == "direct_parse"
    assert outcome.data["a"] == 1
    assert len(outcome.attempts) == 1


def test_untagged_fence_is_used_when_no_json_tag():
    raw = 'Result:\n```\n{"brandXRay": {"peakMoment": "1984 launch"}}\n```\nDone.'

    outcome = ReportExtractor().extract(raw)

    assert outcome.strategy == "untagged_fence"
    assert outcome.data == {"brandXRay": {"peakMoment": "1984 launch"}}


def test_largest_candidate_requires_an_expected_top_level_key():
    outcome = ReportExtractor().extract('Some notes {"x": 1} and {"y": 2}')

    assert not outcome.ok
    assert [a.strategy for a in outcome.attempts] == [
        "direct_parse",
        "tagged_fence",
        "untagged_fence",
        "largest_candidate",
    ]
    assert all(not a.succeeded for a in outcome.attempts)


def test_largest_candidate_prefers_the_longest_plausible_object():
    raw = 'Preface {"audience": {"marketDifferences": "UK vs US"}, "strategicOpportunities": []} {"audience": {}}'

    outcome = ReportExtractor().extract(raw)

    assert outcome.data["audience"]["marketDifferences"] == "UK vs US"


def test_empty_and_non_object_input_fail_without_raising():
    empty = ReportExtractor().extract("   ")
    assert not empty.ok
    assert empty.attempts[0].reason == "empty input"

    array = ReportExtractor().extract("[1, 2, 3]")
    assert not array.ok
    assert "expected a JSON object" in array.attempts[0].reason


def test_strip_leading_markup_removes_headers():
    assert strip_leading_markup('**Brand Report**\n## Summary\n{"a": 1}') == '{"a": 1}'


def test_find_object_candidates_sorted_longest_first():
    candidates = find_object_candidates('{"a": {"b": 1}} {"c": 2}')

    assert candidates[0] == '{"a": {"b": 1}}'
    assert set(candidates[1:]) == {'{"b": 1}', '{"c": 2}'}


@pytest.mark.parametrize(
    "raw",
    [
        "[" * 100000,
        '{"a":' * 100000,
        '{"audience":' * 5000 + "1" + "}" * 5000,
    ],
)
def test_deeply_nested_text_fails_without_raising(raw):
    outcome = ReportExtractor().extract(raw)

    assert not outcome.ok
    assert outcome.attempts[-1].strategy == "largest_candidate"
    assert all(not attempt.succeeded for attempt in outcome.attempts)


def test_candidates_skip_objects_nested_beyond_the_depth_limit():
    text = "{" * 20 + "}" * 20

    candidates = find_object_candidates(text)

    assert len(candidates) == MAX_CANDIDATE_DEPTH
    assert candidates[0] == text


def test_stray_quote_in_prose_does_not_hide_objects():
    outcome = ReportExtractor().extract('He said "we lead. {"audience": {"dayInLife": "runs"}}')

    assert outcome.strategy == "largest_candidate"
    assert outcome.data["audience"]["dayInLife"] == "runs"
