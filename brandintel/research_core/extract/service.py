from __future__ import annotations

import json
import re
from typing import Any, Callable, Iterable

from loguru import logger

from brandintel.models.report import EXPECTED_TOP_LEVEL_KEYS
from brandintel.models.research import ExtractionAttempt, ExtractionOutcome

LEADING_MARKUP_PATTERN = re.compile(r"^\s*(?:\*\*[^\n]*?\*\*|#{1,6}[^\n]*)[ \t]*\n?")
TAGGED_FENCE_PATTERN = re.compile(r"```[ \t]*json[ \t]*\n?(.*?)```", re.IGNORECASE | re.DOTALL)
UNTAGGED_FENCE_PATTERN = re.compile(r"```[ \t]*\n(.*?)```", re.DOTALL)
BRACKET_CITATIONS_PATTERN = re.compile(
    r'("citations"\s*:\s*)(\[\s*\d+\s*\](?:\s*,?\s*\[\s*\d+\s*\])+)'
)
MAX_CANDIDATE_DEPTH = 8


def strip_leading_markup(text: str) -> str:
    """Drop leading bold headers (``**TITLE**``) and markdown headings."""
    cleaned = text.strip()
    while True:
        stripped = LEADING_MARKUP_PATTERN.sub("", cleaned, count=1).strip()
        if stripped == cleaned:
            return cleaned
        cleaned = stripped


def _balanced_end(text: str, start: int) -> int:
    """Index of the brace closing the one at ``start``, or -1.

    Braces inside JSON string literals are ignored.
    """
    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return index
    return -1


def truncate_at_balanced_brace(text: str) -> str:
    """Cut everything after the brace that balances the first opening brace."""
    start = text.find("{")
    if start < 0:
        return text
    end = _balanced_end(text, start)
    if end < 0:
        return text[start:]
    return text[start : end + 1]


def fix_bracket_citations(text: str) -> str:
    """Rewrite ``"citations": [1][2][3]`` into a JSON array of strings."""

    def rewrite(match: re.Match[str]) -> str:
        numbers = re.findall(r"\d+", match.group(2))
        items = ", ".join(f'"Citation {n}"' for n in numbers)
        return f"{match.group(1)}[{items}]"

    return BRACKET_CITATIONS_PATTERN.sub(rewrite, text)


def repair_json_candidate(text: str) -> str:
    """Repair pass applied before every fenced or scanned parse attempt."""
    return fix_bracket_citations(truncate_at_balanced_brace(text.strip()))


def find_object_candidates(text: str) -> list[str]:
    """Balanced ``{...}`` substrings nested at most ``MAX_CANDIDATE_DEPTH`` deep, longest first.

    One pass over the text. Braces inside string literals of an open object
    are ignored; quotes in prose outside any object are not tracked.
    """
    open_braces: list[int] = []
    pairs: list[tuple[int, int]] = []
    in_string = False
    escaped = False
    for index, char in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"' and open_braces:
            in_string = True
        elif char == "{":
            open_braces.append(index)
        elif char == "}" and open_braces:
            start = open_braces.pop()
            if len(open_braces) < MAX_CANDIDATE_DEPTH:
                pairs.append((start, index))

    seen: set[str] = set()
    candidates: list[str] = []
    for start, end in sorted(pairs):
        candidate = text[start : end + 1]
        if candidate in seen:
            continue
        seen.add(candidate)
        candidates.append(candidate)
    # sorted() is stable, so equal lengths keep document order
    return sorted(candidates, key=len, reverse=True)


def _parse_object(text: str) -> dict[str, Any]:
    try:
        parsed = json.loads(text)
    except RecursionError as exc:
        raise ValueError("JSON nested too deeply to parse") from exc
    if not isinstance(parsed, dict):
        raise ValueError(f"expected a JSON object, got {type(parsed).__name__}")
    return parsed


class ExtractionStrategyFailed(Exception):
    """Internal signal that one strategy did not recover an object."""


class ReportExtractor:
    """Recover a JSON object from free-form provider text.

    Strategies run in a fixed order and the first success wins:
    direct parse, ``json``-tagged fence, untagged fence, largest balanced
    object. Never raises; failure comes back as an outcome with the trace.
    """

    def __init__(self, *, expected_keys: Iterable[str] | None = EXPECTED_TOP_LEVEL_KEYS):
        self.expected_keys = frozenset(expected_keys) if expected_keys is not None else None

    def extract(self, raw_text: str) -> ExtractionOutcome:
        text = strip_leading_markup(raw_text or "")
        strategies: list[tuple[str, Callable[[str], dict[str, Any]]]] = [
            ("direct_parse", self._direct_parse),
            ("tagged_fence", self._tagged_fence),
            ("untagged_fence", self._untagged_fence),
            ("largest_candidate", self._largest_candidate),
        ]
        attempts: list[ExtractionAttempt] = []

        if not text:
            attempts.append(ExtractionAttempt(strategy="direct_parse", succeeded=False, reason="empty input"))
            return ExtractionOutcome(data=None, attempts=attempts)

        for name, strategy in strategies:
            try:
                data = strategy(text)
            except (ExtractionStrategyFailed, ValueError) as exc:
                # json.JSONDecodeError is a ValueError
                attempts.append(ExtractionAttempt(strategy=name, succeeded=False, reason=str(exc)))
                continue
            attempts.append(ExtractionAttempt(strategy=name, succeeded=True))
            logger.debug(f"Extraction succeeded with strategy={name} keys={sorted(data)[:8]}")
            return ExtractionOutcome(data=data, attempts=attempts)

        logger.info(f"Extraction failed after {len(attempts)} strategies")
        return ExtractionOutcome(data=None, attempts=attempts)

    def _direct_parse(self, text: str) -> dict[str, Any]:
        return _parse_object(text)

    def _tagged_fence(self, text: str) -> dict[str, Any]:
        return self._parse_fence(text, TAGGED_FENCE_PATTERN, "json-tagged")

    def _untagged_fence(self, text: str) -> dict[str, Any]:
        return self._parse_fence(text, UNTAGGED_FENCE_PATTERN, "untagged")

    def _parse_fence(self, text: str, pattern: re.Pattern[str], label: str) -> dict[str, Any]:
        match = pattern.search(text)
        if not match:
            raise ExtractionStrategyFailed(f"no {label} fenced block")
        body = match.group(1)
        if "{" not in body:
            raise ExtractionStrategyFailed(f"{label} fenced block holds no object")
        return _parse_object(repair_json_candidate(body))

    def _largest_candidate(self, text: str) -> dict[str, Any]:
        candidates = find_object_candidates(text)
        if not candidates:
            raise ExtractionStrategyFailed("no balanced object in text")
        for candidate in candidates:
            try:
                parsed = _parse_object(repair_json_candidate(candidate))
            except ValueError:
                continue
            if self._looks_like_report(parsed):
                return parsed
        raise ExtractionStrategyFailed(f"none of {len(candidates)} candidates parsed with expected keys")

    def _looks_like_report(self, parsed: dict[str, Any]) -> bool:
        if self.expected_keys is None:
            return True
        return bool(self.expected_keys.intersection(parsed))
