"""Merge candidates from every pass and rank them.

Values that are rediscovered by several preprocessing/segmentation
combinations gain ``occurrence_weight`` per pass, so an ensemble of weak
passes can outvote a single confident misread.
"""

from __future__ import annotations

from collections import OrderedDict
from typing import Dict, Iterable, List, Set, Tuple

from .models import AggregatedCandidate, Candidate, Ranking


def rank_key(entry: AggregatedCandidate) -> Tuple[int, int, int]:
    """Sort key: rank score, then occurrence count, then value (all descending)."""

    return (-entry.score, -entry.count, -entry.value)


def aggregate_candidates(
    candidates: Iterable[Candidate],
    *,
    occurrence_weight: int,
) -> Ranking:
    """Group ``candidates`` by value and return them ranked best first."""

    best_scores: Dict[int, int] = {}
    passes: Dict[int, Set[int]] = {}
    hits: Dict[int, int] = {}
    strategies: "OrderedDict[int, List[str]]" = OrderedDict()
    hit_count = 0

    for candidate in candidates:
        hit_count += 1
        value = candidate.value
        if value not in best_scores or candidate.score > best_scores[value]:
            best_scores[value] = candidate.score
        passes.setdefault(value, set()).add(candidate.pass_index)
        hits[value] = hits.get(value, 0) + 1
        seen = strategies.setdefault(value, [])
        if candidate.strategy not in seen:
            seen.append(candidate.strategy)

    entries: List[AggregatedCandidate] = []
    for value, found_by in strategies.items():
        count = len(passes[value])
        entries.append(
            AggregatedCandidate(
                value=value,
                count=count,
                best_score=best_scores[value],
                score=best_scores[value] + count * occurrence_weight,
                hits=hits[value],
                strategies=found_by,
            )
        )

    entries.sort(key=rank_key)
    return Ranking(entries=entries, hit_count=hit_count)


__all__ = ["aggregate_candidates", "rank_key"]
