"""
Parsers for free-text LLM replies.

The model output is treated as a wire format, so every parser fails closed:
a reply that does not match the requested shape produces a tagged failure
instead of a best-effort guess. None of the functions raise.
"""
import re
from typing import Optional, Tuple

from interfaces.enrichmentModels import (
    ExplanationsParseResult,
    ParseStatus,
    RiskScoreParseResult,
    SummaryParseResult,
)

INTEGER_PATTERN = re.compile(r"[+-]?\d+")


def parse_summary(text: Optional[str]) -> SummaryParseResult:
    summary = (text or "").strip()
    if not summary:
        return SummaryParseResult(status=ParseStatus.EMPTY)
    return SummaryParseResult(status=ParseStatus.OK, summary=summary)


def _strip_label(segment: str) -> str:
    # "Sugar: Sugar is..." -> "Sugar is..."
    if ":" not in segment:
        return segment
    return segment.split(":", 1)[1].strip()


def parse_ingredient_explanations(
    text: Optional[str],
    expected_count: int,
    delimiter: str = "###",
    labeled: bool = False,
) -> ExplanationsParseResult:
    """
    Split a delimited reply into one explanation per ingredient.

    The result is OK only when the number of non-blank segments equals
    `expected_count`; a different count is a protocol violation and is never
    truncated or padded.
    """
    segments = [segment.strip() for segment in (text or "").split(delimiter)]
    segments = [segment for segment in segments if segment]
    if labeled:
        segments = [_strip_label(segment) for segment in segments]
        segments = [segment for segment in segments if segment]

    if len(segments) == expected_count:
        return ExplanationsParseResult(
            status=ParseStatus.OK,
            explanations=segments,
            expected_count=expected_count,
            actual_count=len(segments),
        )
    status = ParseStatus.EMPTY if not segments else ParseStatus.COUNT_MISMATCH
    return ExplanationsParseResult(status=status, expected_count=expected_count, actual_count=len(segments))


def parse_risk_score(text: Optional[str], score_range: Tuple[int, int]) -> RiskScoreParseResult:
    """Accept a bare integer inside the inclusive range. Out-of-range values are not clamped."""
    raw = (text or "").strip()
    if not INTEGER_PATTERN.fullmatch(raw):
        return RiskScoreParseResult(status=ParseStatus.INVALID_FORMAT, raw=raw)
    score = int(raw)
    low, high = score_range
    if score < low or score > high:
        return RiskScoreParseResult(status=ParseStatus.INVALID_FORMAT, raw=raw)
    return RiskScoreParseResult(status=ParseStatus.OK, score=score, raw=raw)
