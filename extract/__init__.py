"""Text normalisation, candidate extraction and ranking helpers."""

from .aggregate import aggregate_candidates, rank_key
from .candidates import extract_candidates, score_candidate
from .models import AggregatedCandidate, Candidate, Ranking
from .normalize import normalize_ocr_text
from .settings import ExtractionSettings, ScoringWeights

__all__ = [
    "AggregatedCandidate",
    "Candidate",
    "ExtractionSettings",
    "Ranking",
    "ScoringWeights",
    "aggregate_candidates",
    "extract_candidates",
    "normalize_ocr_text",
    "rank_key",
    "score_candidate",
]
