"""Data models shared across extraction modules.

Candidates are produced per recognition pass and are cheap, immutable
records: the scorer looks at a digit string and its surroundings in
isolation, while everything that depends on agreement between passes is
computed by :mod:`extract.aggregate` on top of these records.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass(frozen=True)
class Candidate:
    """A numeric string found in the text of one pass."""

    value: int
    raw: str
    position: int
    score: int
    strategy: str
    pass_index: int = 0

    def __post_init__(self) -> None:
        if not self.raw or not self.raw.isdigit():
            raise ValueError(f"Candidate digits must be ASCII digits only: {self.raw!r}")
        if self.value < 0:
            raise ValueError(f"Candidate value must be non-negative: {self.value}")


@dataclass
class AggregatedCandidate:
    """Candidates of one value merged across every pass."""

    value: int
    count: int
    best_score: int
    score: int
    hits: int = 1
    strategies: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, int]:
        return {"value": self.value, "count": self.count, "score": self.score}


@dataclass
class Ranking:
    """Ordered aggregation outcome."""

    entries: List[AggregatedCandidate] = field(default_factory=list)
    hit_count: int = 0

    @property
    def selected(self) -> Optional[AggregatedCandidate]:
        return self.entries[0] if self.entries else None

    @property
    def value(self) -> Optional[int]:
        """Return the selected reading or ``None`` when nothing was found."""

        selected = self.selected
        return selected.value if selected is not None else None


__all__ = ["AggregatedCandidate", "Candidate", "Ranking"]
