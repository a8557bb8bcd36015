"""Numeric candidate extraction and heuristic scoring.

The extractor runs every enabled strategy over one pass' normalised text
and unions the results:

* maximal digit runs whose length falls inside ``run_lengths``;
* digits anchored shortly after an ``odo`` label;
* digits immediately followed by a ``km`` unit;
* fixed-length windows slid over the concatenated digit stream, which
  recovers readings the engine split into several tokens.

Scores only depend on the digit string and its position in the text.
Agreement between passes is rewarded later, during aggregation.
"""

from __future__ import annotations

import re
from functools import lru_cache
from typing import List, Optional, Pattern, Tuple

from .models import Candidate
from .settings import (
    STRATEGY_DIGIT_RUN,
    STRATEGY_KM_ANCHOR,
    STRATEGY_ODO_ANCHOR,
    STRATEGY_SLIDING_WINDOW,
    ExtractionSettings,
    ScoringWeights,
)


_DIGIT_RUN: Pattern[str] = re.compile(r"[0-9]+")


@lru_cache(maxsize=None)
def _odo_pattern(min_len: int, max_len: int, gap: int) -> Pattern[str]:
    return re.compile(
        rf"odo[^0-9]{{0,{gap}}}(?P<digits>[0-9]{{{min_len},{max_len}}})(?![0-9])",
        re.IGNORECASE,
    )


@lru_cache(maxsize=None)
def _km_pattern(min_len: int, max_len: int) -> Pattern[str]:
    return re.compile(
        rf"(?<![0-9])(?P<digits>[0-9]{{{min_len},{max_len}}})[^\S\r\n]*km",
        re.IGNORECASE,
    )


def _in_range(value: int, bounds: Optional[Tuple[int, int]]) -> bool:
    if bounds is None:
        return False
    low, high = bounds
    return low <= value <= high


def _near_keyword(context: str, start: int, end: int, keyword: str) -> bool:
    return keyword in context[max(0, start) : max(0, end)]


def score_candidate(
    raw: str,
    position: int,
    text: str,
    strategy: str,
    weights: ScoringWeights,
) -> int:
    """Return the heuristic score of ``raw`` found at ``position`` in ``text``."""

    value = int(raw)
    score = weights.base_score(strategy)

    score += weights.length_bonus.get(len(raw), weights.default_length_bonus)

    if _in_range(value, weights.narrow_range):
        score += weights.narrow_range_bonus
    elif _in_range(value, weights.broad_range):
        score += weights.broad_range_bonus

    if weights.position_divisor:
        score += position // weights.position_divisor

    if weights.odo_bonus or weights.km_bonus:
        lowered = text.lower()
        start = position - weights.keyword_window
        end = position + len(raw) + weights.keyword_window
        if weights.odo_bonus and _near_keyword(lowered, start, end, "odo"):
            score += weights.odo_bonus
        if weights.km_bonus and _near_keyword(lowered, start, end, "km"):
            score += weights.km_bonus

    if weights.diversity_cap:
        score += min(len(set(raw)), weights.diversity_cap)

    if weights.leading_zero_penalty and raw.startswith("0"):
        score -= weights.leading_zero_penalty

    return score


def extract_candidates(
    text: str,
    *,
    settings: ExtractionSettings,
    weights: ScoringWeights,
    pass_index: int = 0,
) -> List[Candidate]:
    """Collect every scored candidate found in normalised ``text``."""

    candidates: List[Candidate] = []
    if not text:
        return candidates

    def add(raw: str, position: int, strategy: str) -> None:
        value = int(raw)
        if weights.value_bounds is not None and not _in_range(value, weights.value_bounds):
            return
        candidates.append(
            Candidate(
                value=value,
                raw=raw,
                position=position,
                score=score_candidate(raw, position, text, strategy, weights),
                strategy=strategy,
                pass_index=pass_index,
            )
        )

    min_len, max_len = settings.run_lengths
    for match in _DIGIT_RUN.finditer(text):
        if min_len <= len(match.group(0)) <= max_len:
            add(match.group(0), match.start(), STRATEGY_DIGIT_RUN)

    if settings.odo_anchor_lengths is not None:
        pattern = _odo_pattern(*settings.odo_anchor_lengths, settings.odo_anchor_gap)
        for match in pattern.finditer(text):
            add(match.group("digits"), match.start("digits"), STRATEGY_ODO_ANCHOR)

    if settings.km_anchor_lengths is not None:
        pattern = _km_pattern(*settings.km_anchor_lengths)
        for match in pattern.finditer(text):
            add(match.group("digits"), match.start("digits"), STRATEGY_KM_ANCHOR)

    if settings.window_lengths is not None:
        positions = [index for index, char in enumerate(text) if "0" <= char <= "9"]
        stream = "".join(text[index] for index in positions)
        low, high = settings.window_lengths
        for length in range(low, high + 1):
            for offset in range(0, len(stream) - length + 1):
                add(stream[offset : offset + length], positions[offset], STRATEGY_SLIDING_WINDOW)

    return candidates


__all__ = ["extract_candidates", "score_candidate"]
