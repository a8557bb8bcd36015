"""Tests for the Tesseract adapter."""

from __future__ import annotations

import logging
import threading

import pytesseract
from PIL import Image

from ocr.ocr_engine import (
    CANCELLED_MESSAGE,
    DEFAULT_MAX_WORKERS,
    OCREngine,
    PassPlan,
    build_tesseract_config,
    plan_passes,
)
from ocr.variants import Variant, VariantRecipe


def _variant(label: str, original: bool = False) -> Variant:
    recipe = None if original else VariantRecipe(label=label)
    return Variant(label=label, image=Image.new("L", (20, 10), color=255), recipe=recipe)


def _engine(config=None, name="test-ocr-engine") -> OCREngine:
    logger = logging.getLogger(name)
    logger.handlers.clear()
    logger.setLevel(logging.INFO)
    return OCREngine(config or {}, logger=logger)


def test_build_tesseract_config_strips_whitespace_from_whitelist():
    config = build_tesseract_config(7, whitelist="0123 456")

    assert config == "--psm 7 -c tessedit_char_whitelist=0123456 -c preserve_interword_spaces=1"
    assert build_tesseract_config(6, preserve_interword_spaces=False) == "--psm 6"


def test_plan_passes_crosses_variants_with_modes_and_adds_original():
    variants = [_variant("original", original=True), _variant("a"), _variant("b")]

    plans = plan_passes(variants, (6, 7), original_mode=6)

    assert [(plan.label, plan.mode) for plan in plans] == [
        ("a", 6),
        ("a", 7),
        ("b", 6),
        ("b", 7),
        ("original", 6),
    ]
    assert [plan.index for plan in plans] == [0, 1, 2, 3, 4]
    assert [plan.label for plan in plan_passes(variants, (6,), None)] == ["a", "b"]


def test_image_to_text_uses_configured_settings(monkeypatch):
    engine = _engine({"ocr_lang": "eng", "whitelist": "0123456789", "pass_timeout": 5})
    captured = {}

    def fake_to_string(image, lang=None, config=None, timeout=None):  # pragma: no cover
        captured.update(lang=lang, config=config, timeout=timeout)
        return "  118502 \n"

    monkeypatch.setattr("ocr.ocr_engine.pytesseract.image_to_string", fake_to_string)

    text = engine.image_to_text(Image.new("L", (10, 10)), 8)

    assert text == "118502"
    assert captured["lang"] == "eng"
    assert "--psm 8" in captured["config"]
    assert "tessedit_char_whitelist=0123456789" in captured["config"]
    assert captured["timeout"] == 5.0


def test_default_whitelist_covers_odometer_labels(monkeypatch):
    engine = _engine()
    captured = {}

    def fake_to_string(image, lang=None, config=None, timeout=None):  # pragma: no cover
        captured["config"] = config
        return ""

    monkeypatch.setattr("ocr.ocr_engine.pytesseract.image_to_string", fake_to_string)
    engine.image_to_text(Image.new("L", (10, 10)), 6)

    assert "tessedit_char_whitelist=0123456789kmKMODOodo.:-/" in captured["config"]


def test_run_passes_isolates_failures(monkeypatch, caplog):
    engine = _engine({"max_workers": 3}, name="test-pass-failures")

    def fake_to_string(image, lang=None, config=None, timeout=None):  # pragma: no cover
        if "--psm 7" in config:
            raise RuntimeError("Tesseract process timeout")
        return "118502 km\n"

    monkeypatch.setattr("ocr.ocr_engine.pytesseract.image_to_string", fake_to_string)
    caplog.set_level(logging.WARNING, logger="test-pass-failures")

    plans = plan_passes([_variant("a"), _variant("b")], (6, 7, 8))
    results = engine.run_passes(plans)

    assert [result.index for result in results] == [plan.index for plan in plans]
    failed = [result for result in results if not result.success]
    assert [(result.label, result.mode) for result in failed] == [("a", 7), ("b", 7)]
    assert all(result.error == "Tesseract process timeout" for result in failed)
    assert all(result.text == "118502 km" for result in results if result.success)
    assert sum("failed" in message for message in caplog.messages) == 2


def test_run_passes_skips_everything_after_cancellation(monkeypatch):
    engine = _engine()
    calls = []

    def fake_to_string(*args, **kwargs):  # pragma: no cover
        calls.append(args)
        return "118502"

    monkeypatch.setattr("ocr.ocr_engine.pytesseract.image_to_string", fake_to_string)
    cancel = threading.Event()
    cancel.set()

    results = engine.run_passes(plan_passes([_variant("a")], (6, 7)), cancel_event=cancel)

    assert calls == []
    assert [result.error for result in results] == [CANCELLED_MESSAGE, CANCELLED_MESSAGE]
    assert not any(result.success for result in results)


def test_run_pass_records_the_variant_label():
    class FixedEngine(OCREngine):
        def image_to_text(self, image, mode):
            return f"{mode}"

    engine = FixedEngine({})
    result = engine.run_pass(PassPlan(index=3, variant=_variant("band"), mode=11))

    assert (result.index, result.label, result.mode, result.text) == (3, "band", 11, "11")
    assert result.success and result.error is None
    assert result.duration is not None


def test_invalid_max_workers_falls_back_to_default(caplog):
    engine = _engine({"max_workers": "many"}, name="test-max-workers")
    caplog.set_level(logging.WARNING, logger="test-max-workers")

    assert engine._get_max_workers() == DEFAULT_MAX_WORKERS
    assert any("Invalid max_workers" in message for message in caplog.messages)


def test_tesseract_path_is_applied(monkeypatch):
    monkeypatch.setattr(pytesseract.pytesseract, "tesseract_cmd", "tesseract")

    _engine({"tesseract_path": "/opt/tesseract/bin/tesseract"})

    assert pytesseract.pytesseract.tesseract_cmd == "/opt/tesseract/bin/tesseract"
