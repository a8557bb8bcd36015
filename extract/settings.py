"""Tunable parameters for text normalisation, extraction and scoring.

Two historical parameter sets exist for the odometer reader and neither is
authoritative, so every constant that shapes extraction lives here and is
injected by the caller.  :mod:`reader.settings` assembles the presets.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple


STRATEGY_DIGIT_RUN = "digit_run"
STRATEGY_ODO_ANCHOR = "odo_anchor"
STRATEGY_KM_ANCHOR = "km_anchor"
STRATEGY_SLIDING_WINDOW = "sliding_window"

STRATEGIES = (
    STRATEGY_DIGIT_RUN,
    STRATEGY_ODO_ANCHOR,
    STRATEGY_KM_ANCHOR,
    STRATEGY_SLIDING_WINDOW,
)


@dataclass(frozen=True)
class ExtractionSettings:
    """Which strategies run and which digit lengths they accept.

    Attributes
    ----------
    fold_confusables:
        Replace letters that digit-biased fonts yield for digits
        (``O`` -> ``0``, ``I``/``l``/``|`` -> ``1``, ``S`` -> ``5``,
        ``B`` -> ``8``).
    digits_only:
        Drop every non-digit character during normalisation.  Used by the
        single-pass deployment whose engine only emits digits anyway.
    run_lengths:
        Inclusive ``(min, max)`` length of maximal digit runs.
    odo_anchor_lengths / km_anchor_lengths:
        Inclusive length windows for keyword anchored matches.  ``None``
        disables the strategy.
    odo_anchor_gap:
        Maximum number of non-digit characters between ``odo`` and the
        anchored digits.
    window_lengths:
        Inclusive lengths of the windows slid over the concatenated digit
        stream.  ``None`` disables the strategy.
    """

    fold_confusables: bool = True
    digits_only: bool = False
    run_lengths: Tuple[int, int] = (4, 8)
    odo_anchor_lengths: Optional[Tuple[int, int]] = (4, 8)
    odo_anchor_gap: int = 8
    km_anchor_lengths: Optional[Tuple[int, int]] = (4, 8)
    window_lengths: Optional[Tuple[int, int]] = (5, 7)


@dataclass(frozen=True)
class ScoringWeights:
    """Additive heuristic weights; higher scores are better."""

    base_scores: Dict[str, int] = field(
        default_factory=lambda: {
            STRATEGY_DIGIT_RUN: 30,
            STRATEGY_ODO_ANCHOR: 80,
            STRATEGY_KM_ANCHOR: 50,
            STRATEGY_SLIDING_WINDOW: 5,
        }
    )
    length_bonus: Dict[int, int] = field(
        default_factory=lambda: {5: 120, 6: 120, 7: 120, 8: 40}
    )
    default_length_bonus: int = 5
    narrow_range: Optional[Tuple[int, int]] = (50_000, 500_000)
    narrow_range_bonus: int = 35
    broad_range: Optional[Tuple[int, int]] = (10_000, 999_999)
    broad_range_bonus: int = 20
    value_bounds: Optional[Tuple[int, int]] = (10_000, 9_999_999)
    position_divisor: Optional[int] = 8
    keyword_window: int = 24
    odo_bonus: int = 40
    km_bonus: int = 12
    diversity_cap: Optional[int] = None
    leading_zero_penalty: int = 0
    occurrence_weight: int = 20

    def base_score(self, strategy: str) -> int:
        return int(self.base_scores.get(strategy, 0))


__all__ = [
    "ExtractionSettings",
    "STRATEGIES",
    "STRATEGY_DIGIT_RUN",
    "STRATEGY_KM_ANCHOR",
    "STRATEGY_ODO_ANCHOR",
    "STRATEGY_SLIDING_WINDOW",
    "ScoringWeights",
]
