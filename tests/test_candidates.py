"""Tests for candidate extraction and scoring."""

from __future__ import annotations

import pytest

from extract.aggregate import aggregate_candidates
from extract.candidates import extract_candidates, score_candidate
from extract.normalize import normalize_ocr_text
from extract.settings import (
    STRATEGY_DIGIT_RUN,
    STRATEGY_KM_ANCHOR,
    STRATEGY_ODO_ANCHOR,
    STRATEGY_SLIDING_WINDOW,
    ExtractionSettings,
    ScoringWeights,
)
from reader.settings import minimal_settings


THOROUGH_EXTRACTION = ExtractionSettings()
THOROUGH_WEIGHTS = ScoringWeights()


def _extract(raw: str, **kwargs):
    text = normalize_ocr_text(raw)
    return extract_candidates(
        text,
        settings=kwargs.get("settings", THOROUGH_EXTRACTION),
        weights=kwargs.get("weights", THOROUGH_WEIGHTS),
        pass_index=kwargs.get("pass_index", 0),
    )


def _best(candidates, value):
    return max(candidate.score for candidate in candidates if candidate.value == value)


def test_odo_label_beats_distractors_of_unusual_length():
    candidates = _extract("ODO 123456 KM\nFUEL 01234567 TEMP 4321")

    strategies = {c.strategy for c in candidates if c.value == 123456}
    assert {STRATEGY_DIGIT_RUN, STRATEGY_ODO_ANCHOR, STRATEGY_KM_ANCHOR} <= strategies

    distractors = [c.score for c in candidates if len(c.raw) not in (5, 6, 7)]
    assert distractors, "expected the 8 digit run to be extracted"
    assert _best(candidates, 123456) > max(distractors)


def test_odo_anchor_uses_base_and_keyword_bonuses():
    candidates = _extract("ODO 123456 KM")
    anchored = [c for c in candidates if c.strategy == STRATEGY_ODO_ANCHOR]

    assert len(anchored) == 1
    assert anchored[0].value == 123456
    assert anchored[0].position == 4
    # base 80 + length 120 + narrow range 35 + position 0 + odo 40 + km 12
    assert anchored[0].score == 287


def test_sliding_windows_recover_split_digits():
    candidates = _extract("118 502")

    assert not [c for c in candidates if c.strategy == STRATEGY_DIGIT_RUN]
    windows = {c.value: c for c in candidates if c.strategy == STRATEGY_SLIDING_WINDOW}
    assert set(windows) == {11850, 18502, 118502}
    assert windows[118502].position == 0
    assert windows[18502].position == 1


def test_values_outside_bounds_are_discarded():
    candidates = _extract("0000 0123")
    assert candidates == []


def test_text_without_long_numbers_has_no_candidates():
    assert _extract("TEMP 12 km 7") == []
    assert _extract("") == []


def test_candidates_are_clean_integers_tagged_with_their_pass():
    candidates = _extract("odo: ll85O2 km  99 88", pass_index=7)

    assert candidates
    for candidate in candidates:
        assert candidate.raw.isdigit()
        assert candidate.value == int(candidate.raw)
        assert candidate.pass_index == 7
    assert 118502 in {c.value for c in candidates}


def test_position_bias_favours_later_text():
    text = "x" * 120
    early = score_candidate("118502", 0, text, STRATEGY_DIGIT_RUN, THOROUGH_WEIGHTS)
    late = score_candidate("118502", 80, text, STRATEGY_DIGIT_RUN, THOROUGH_WEIGHTS)
    assert late - early == 10


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("118502", 30 + 120 + 35),
        ("18502", 30 + 120 + 20),
        ("1185020", 30 + 120),
        ("11850200", 30 + 40),
    ],
)
def test_length_and_range_preferences(raw, expected):
    assert score_candidate(raw, 0, raw, STRATEGY_DIGIT_RUN, THOROUGH_WEIGHTS) == expected


def test_keyword_outside_window_is_ignored():
    text = "odo" + " " * 40 + "118502"
    position = text.index("118502")
    score = score_candidate("118502", position, text, STRATEGY_DIGIT_RUN, THOROUGH_WEIGHTS)
    assert score == 30 + 120 + 35 + position // 8


@pytest.mark.parametrize(
    "raw,expected",
    [
        # length 12 + narrow range 4 + five distinct digits
        ("118502", 21),
        # length 12 + narrow range 4 + one distinct digit
        ("111111", 17),
        # length 12 + broad range 2 + four distinct digits - leading zero
        ("011850", 17),
        # length 2 + three distinct digits
        ("123", 5),
    ],
)
def test_minimal_scorer_rewards_diversity_and_penalises_leading_zero(raw, expected):
    weights = minimal_settings().scoring
    assert score_candidate(raw, 0, raw, STRATEGY_DIGIT_RUN, weights) == expected


def _minimal_extract(raw: str):
    settings = minimal_settings()
    text = normalize_ocr_text(
        raw,
        fold_letters=settings.extraction.fold_confusables,
        digits_only=settings.extraction.digits_only,
    )
    return extract_candidates(text, settings=settings.extraction, weights=settings.scoring)


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("118502", [118502]),
        ("12  118502", [118502]),
        ("ab 118 502", [118, 502]),
        ("1234567890", []),
    ],
)
def test_minimal_extraction_keeps_three_to_nine_digit_tokens_apart(raw, expected):
    candidates = _minimal_extract(raw)

    assert [c.value for c in candidates] == expected
    assert all(c.strategy == STRATEGY_DIGIT_RUN for c in candidates)


def test_minimal_diversity_bonus_outranks_a_repeated_digit_artifact():
    candidates = _minimal_extract("333333  118502")
    scores = {c.value: c.score for c in candidates}

    # both are six digits inside the narrow range; only diversity differs
    assert scores == {333333: 17, 118502: 21}
    ranking = aggregate_candidates(candidates, occurrence_weight=20)
    assert ranking.value == 118502


def test_minimal_leading_zero_penalty_breaks_an_otherwise_equal_score():
    candidates = _minimal_extract("98076543 09876543")
    scores = {c.raw: c.score for c in candidates}

    assert scores == {"98076543": 12, "09876543": 11}
    ranking = aggregate_candidates(candidates, occurrence_weight=20)
    assert ranking.value == 98076543
