"""Tests for preset selection and configuration overrides."""

from __future__ import annotations

import logging

import pytest

from extract.settings import STRATEGY_DIGIT_RUN
from reader.settings import (
    THOROUGH_VARIANTS,
    load_settings,
    minimal_settings,
    thorough_settings,
)


@pytest.fixture
def logger():
    logger = logging.getLogger("test-settings")
    logger.setLevel(logging.INFO)
    return logger


def test_thorough_preset_defaults():
    settings = thorough_settings()

    assert settings.name == "thorough"
    assert len(settings.variants) == 17
    assert settings.segmentation_modes == (6, 7, 8, 11, 12, 13)
    assert settings.original_mode == 6
    assert settings.scoring.occurrence_weight == 20
    assert settings.scoring.value_bounds == (10_000, 9_999_999)
    assert settings.extraction.fold_confusables is True
    assert settings.preview_length == 180
    assert settings.trace_candidate_limit == 20


def test_minimal_preset_is_a_single_pass_reader():
    settings = minimal_settings()

    assert settings.name == "minimal"
    assert [recipe.label for recipe in settings.variants] == ["meter_crop_1600"]
    assert settings.segmentation_modes == (6,)
    assert settings.original_mode is None
    assert settings.whitelist == "0123456789"
    assert settings.extraction.digits_only is True
    assert settings.extraction.run_lengths == (3, 9)
    assert settings.scoring.base_scores == {STRATEGY_DIGIT_RUN: 0}


def test_load_settings_defaults_to_thorough(logger):
    settings = load_settings({}, logger=logger)

    assert settings.name == "thorough"
    assert settings.variants == THOROUGH_VARIANTS


def test_preset_argument_overrides_config(logger):
    settings = load_settings({"preset": "thorough"}, preset="Minimal", logger=logger)
    assert settings.name == "minimal"


def test_unknown_preset_is_rejected(logger):
    with pytest.raises(ValueError) as excinfo:
        load_settings({"preset": "turbo"}, logger=logger)
    assert "minimal, thorough" in str(excinfo.value)


def test_overrides_are_applied(logger):
    settings = load_settings(
        {
            "max_workers": "2",
            "pass_timeout": 12,
            "segmentation_modes": [6, 11],
            "original_mode": None,
            "tesseract_path": "/usr/local/bin/tesseract",
            "ocr_lang": "deu",
            "extraction": {"window_lengths": None, "fold_confusables": "no"},
            "scoring": {"occurrence_weight": 35, "narrow_range": [60000, 400000]},
        },
        logger=logger,
    )

    assert settings.max_workers == 2
    assert settings.pass_timeout == 12.0
    assert settings.segmentation_modes == (6, 11)
    assert settings.original_mode is None
    assert settings.extraction.window_lengths is None
    assert settings.extraction.fold_confusables is False
    assert settings.scoring.occurrence_weight == 35
    assert settings.scoring.narrow_range == (60000, 400000)
    engine_config = settings.engine_config()
    assert engine_config["tesseract_path"] == "/usr/local/bin/tesseract"
    assert engine_config["ocr_lang"] == "deu"
    assert engine_config["max_workers"] == 2


@pytest.mark.parametrize(
    "config,attribute,expected",
    [
        ({"max_workers": "lots"}, "max_workers", 4),
        ({"max_workers": 0}, "max_workers", 4),
        ({"pass_timeout": "soon"}, "pass_timeout", None),
        ({"segmentation_modes": [6, 42]}, "segmentation_modes", (6, 7, 8, 11, 12, 13)),
        ({"segmentation_modes": []}, "segmentation_modes", (6, 7, 8, 11, 12, 13)),
        ({"original_mode": "x"}, "original_mode", 6),
    ],
)
def test_invalid_top_level_values_keep_defaults(config, attribute, expected, logger, caplog):
    caplog.set_level(logging.WARNING, logger=logger.name)

    settings = load_settings(config, logger=logger)

    assert getattr(settings, attribute) == expected
    assert caplog.messages


def test_invalid_section_values_are_logged_and_ignored(logger, caplog):
    caplog.set_level(logging.WARNING, logger=logger.name)

    settings = load_settings(
        {
            "extraction": {"run_lengths": [8, 4], "colour": "red"},
            "scoring": {"odo_bonus": "plenty", "length_bonus": [1, 2]},
        },
        logger=logger,
    )

    defaults = thorough_settings()
    assert settings.extraction == defaults.extraction
    assert settings.scoring == defaults.scoring
    assert any("Unknown extraction setting 'colour'" in message for message in caplog.messages)
    assert any("Invalid scoring.odo_bonus" in message for message in caplog.messages)
    assert any("Invalid extraction.run_lengths" in message for message in caplog.messages)
    assert any("Invalid scoring.length_bonus" in message for message in caplog.messages)


def test_non_mapping_section_is_ignored(logger, caplog):
    caplog.set_level(logging.WARNING, logger=logger.name)

    settings = load_settings({"scoring": [1, 2, 3]}, logger=logger)

    assert settings.scoring == thorough_settings().scoring
    assert any("Ignoring scoring overrides" in message for message in caplog.messages)


def test_only_thorough_renders_a_full_frame_variant():
    assert any(recipe.crop is None for recipe in thorough_settings().variants)
    assert all(recipe.crop is not None for recipe in minimal_settings().variants)
