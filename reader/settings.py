"""Pipeline configuration and the bundled presets.

``minimal`` reproduces the single-pass reader: one centre-bottom crop,
one segmentation mode, a digits-only engine and a short-run scorer with a
digit-diversity bonus.  ``thorough`` is the multi-pass reader: full frame,
bottom band, display panel and two narrow digit bands, each under six
segmentation modes plus one pass over the unmodified photo.

``load_settings`` layers the values of a ``config.yaml`` mapping over a
preset.  Invalid values are logged and ignored, never fatal.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from extract.settings import (
    STRATEGY_DIGIT_RUN,
    ExtractionSettings,
    ScoringWeights,
)
from ocr.ocr_engine import DEFAULT_WHITELIST
from ocr.variants import CropBox, VariantRecipe


LOGGER = logging.getLogger(__name__)

DEFAULT_PRESET = "thorough"
DEFAULT_PREVIEW_LENGTH = 180
DEFAULT_TRACE_CANDIDATES = 20
MAX_PSM = 13


@dataclass(frozen=True)
class PipelineSettings:
    name: str
    variants: Tuple[VariantRecipe, ...]
    segmentation_modes: Tuple[int, ...]
    original_mode: Optional[int] = None
    extraction: ExtractionSettings = field(default_factory=ExtractionSettings)
    scoring: ScoringWeights = field(default_factory=ScoringWeights)
    ocr_lang: str = "eng"
    whitelist: Optional[str] = DEFAULT_WHITELIST
    max_workers: int = 4
    pass_timeout: Optional[float] = None
    tesseract_path: Optional[str] = None
    preview_length: int = DEFAULT_PREVIEW_LENGTH
    trace_candidate_limit: int = DEFAULT_TRACE_CANDIDATES

    def engine_config(self) -> Dict[str, object]:
        """Return the mapping understood by :class:`ocr.ocr_engine.OCREngine`."""

        return {
            "ocr_lang": self.ocr_lang,
            "whitelist": self.whitelist,
            "max_workers": self.max_workers,
            "pass_timeout": self.pass_timeout,
            "tesseract_path": self.tesseract_path,
        }


# ---------------------------------------------------------------------------
# Presets
# ---------------------------------------------------------------------------


BOTTOM_BAND = CropBox(left=0.0, top=0.45, width=1.0, height=0.55)
DISPLAY_PANEL = CropBox(left=0.18, top=0.34, width=0.64, height=0.52)
DIGIT_BAND_UPPER = CropBox(left=0.25, top=0.60, width=0.50, height=0.14)
DIGIT_BAND_LOWER = CropBox(left=0.22, top=0.64, width=0.56, height=0.12)
METER_AREA = CropBox(left=0.18, top=0.48, width=0.64, height=0.34)


def _recipe(
    label: str,
    width: int,
    crop: Optional[CropBox] = None,
    threshold: Optional[int] = None,
    invert: bool = False,
) -> VariantRecipe:
    return VariantRecipe(
        label=label,
        crop=crop,
        target_width=width,
        threshold=threshold,
        invert=invert,
    )


THOROUGH_VARIANTS: Tuple[VariantRecipe, ...] = (
    _recipe("full_gray_norm_1400", 1400),
    _recipe("full_thresh_160_1800", 1800, threshold=160),
    _recipe("full_thresh_190_1800", 1800, threshold=190),
    _recipe("full_invert_thresh_160_1800", 1800, threshold=160, invert=True),
    _recipe("bottom_bw_2400", 2400, BOTTOM_BAND),
    _recipe("bottom_thresh_170_2600", 2600, BOTTOM_BAND, threshold=170),
    _recipe("bottom_invert_thresh_150_2600", 2600, BOTTOM_BAND, threshold=150, invert=True),
    _recipe("panel_bw_2600", 2600, DISPLAY_PANEL),
    _recipe("panel_thresh_165_2800", 2800, DISPLAY_PANEL, threshold=165),
    _recipe("panel_invert_thresh_165_2800", 2800, DISPLAY_PANEL, threshold=165, invert=True),
    _recipe("odo_band1_bw_3200", 3200, DIGIT_BAND_UPPER),
    _recipe("odo_band1_thresh_140_3400", 3400, DIGIT_BAND_UPPER, threshold=140),
    _recipe("odo_band1_thresh_190_3400", 3400, DIGIT_BAND_UPPER, threshold=190),
    _recipe("odo_band1_invert_160_3400", 3400, DIGIT_BAND_UPPER, threshold=160, invert=True),
    _recipe("odo_band2_bw_3400", 3400, DIGIT_BAND_LOWER),
    _recipe("odo_band2_thresh_155_3600", 3600, DIGIT_BAND_LOWER, threshold=155),
    _recipe("odo_band2_invert_155_3600", 3600, DIGIT_BAND_LOWER, threshold=155, invert=True),
)

MINIMAL_VARIANTS: Tuple[VariantRecipe, ...] = (
    VariantRecipe(
        label="meter_crop_1600",
        crop=METER_AREA,
        target_width=1600,
        normalize=False,
        sharpen=False,
        contrast=1.45,
        brightness=1.1,
    ),
)


def thorough_settings() -> PipelineSettings:
    return PipelineSettings(
        name="thorough",
        variants=THOROUGH_VARIANTS,
        segmentation_modes=(6, 7, 8, 11, 12, 13),
        original_mode=6,
        extraction=ExtractionSettings(),
        scoring=ScoringWeights(),
    )


def minimal_settings() -> PipelineSettings:
    return PipelineSettings(
        name="minimal",
        variants=MINIMAL_VARIANTS,
        segmentation_modes=(6,),
        original_mode=None,
        extraction=ExtractionSettings(
            fold_confusables=False,
            digits_only=True,
            run_lengths=(3, 9),
            odo_anchor_lengths=None,
            km_anchor_lengths=None,
            window_lengths=None,
        ),
        scoring=ScoringWeights(
            base_scores={STRATEGY_DIGIT_RUN: 0},
            length_bonus={4: 6, 5: 10, 6: 12, 7: 10, 8: 6},
            default_length_bonus=2,
            narrow_range=(100_000, 400_000),
            narrow_range_bonus=4,
            broad_range=(10_000, 999_999),
            broad_range_bonus=2,
            value_bounds=None,
            position_divisor=None,
            odo_bonus=0,
            km_bonus=0,
            diversity_cap=6,
            leading_zero_penalty=1,
            occurrence_weight=20,
        ),
        whitelist="0123456789",
        max_workers=1,
    )


PRESETS: Dict[str, Callable[[], PipelineSettings]] = {
    "minimal": minimal_settings,
    "thorough": thorough_settings,
}


# ---------------------------------------------------------------------------
# Loading from configuration mappings
# ---------------------------------------------------------------------------


_BOOL_FIELDS = {"fold_confusables", "digits_only"}
_RANGE_FIELDS = {
    "run_lengths",
    "odo_anchor_lengths",
    "km_anchor_lengths",
    "window_lengths",
    "narrow_range",
    "broad_range",
    "value_bounds",
}
_REQUIRED_RANGE_FIELDS = {"run_lengths"}
_OPTIONAL_INT_FIELDS = {"position_divisor", "diversity_cap"}
_MAPPING_FIELDS = {"base_scores", "length_bonus"}


def _to_bool(value: object) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "y", "on"}
    if isinstance(value, (int, float)):
        return bool(value)
    raise ValueError(f"not a boolean: {value!r}")


def _to_range(value: object) -> Tuple[int, int]:
    if not isinstance(value, (list, tuple)) or len(value) != 2:
        raise ValueError(f"expected a [low, high] pair, got {value!r}")
    low, high = int(value[0]), int(value[1])
    if low > high:
        raise ValueError(f"range lower bound {low} exceeds upper bound {high}")
    return low, high


def _coerce_field(name: str, value: Any, current: Any) -> Any:
    if name in _BOOL_FIELDS:
        return _to_bool(value)
    if name in _RANGE_FIELDS:
        if value is None and name not in _REQUIRED_RANGE_FIELDS:
            return None
        return _to_range(value)
    if name in _OPTIONAL_INT_FIELDS:
        return None if value is None else int(value)
    if name in _MAPPING_FIELDS:
        if not isinstance(value, Mapping):
            raise ValueError(f"expected a mapping, got {value!r}")
        if name == "length_bonus":
            return {int(key): int(item) for key, item in value.items()}
        return {str(key): int(item) for key, item in value.items()}
    if isinstance(current, bool):
        return _to_bool(value)
    if isinstance(current, int):
        return int(value)
    raise ValueError(f"unsupported setting {name!r}")


def _apply_overrides(section: str, target, overrides: object, logger: logging.Logger):
    if overrides is None:
        return target
    if not isinstance(overrides, Mapping):
        logger.warning("Ignoring %s overrides: expected a mapping, got %r", section, overrides)
        return target

    known = {item.name for item in dataclasses.fields(target)}
    changes: Dict[str, Any] = {}
    for name, value in overrides.items():
        if name not in known:
            logger.warning("Unknown %s setting %r; ignoring.", section, name)
            continue
        try:
            changes[name] = _coerce_field(name, value, getattr(target, name))
        except (TypeError, ValueError) as exc:
            logger.warning("Invalid %s.%s=%r (%s); keeping %r", section, name, value, exc, getattr(target, name))
    return dataclasses.replace(target, **changes) if changes else target


def _positive_int(config: Mapping[str, Any], key: str, default: int, logger: logging.Logger) -> int:
    value = config.get(key)
    if value is None:
        return default
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        logger.warning("Invalid %s=%r; falling back to %s", key, value, default)
        return default
    if parsed <= 0:
        logger.warning("Configured %s=%s is not positive; using %s", key, parsed, default)
        return default
    return parsed


def _psm(value: object) -> int:
    mode = int(value)
    if not 0 <= mode <= MAX_PSM:
        raise ValueError(f"segmentation mode {mode} is outside 0..{MAX_PSM}")
    return mode


def load_settings(
    config: Optional[Mapping[str, Any]] = None,
    *,
    preset: Optional[str] = None,
    logger: Optional[logging.Logger] = None,
) -> PipelineSettings:
    """Build :class:`PipelineSettings` from a preset and ``config`` overrides."""

    logger = logger or LOGGER
    config = config or {}
    name = str(preset or config.get("preset") or DEFAULT_PRESET).strip().lower()
    if name not in PRESETS:
        raise ValueError(
            f"Unknown preset '{name}'. Choose one of: {', '.join(sorted(PRESETS))}."
        )
    settings = PRESETS[name]()
    changes: Dict[str, Any] = {}

    if "max_workers" in config:
        changes["max_workers"] = _positive_int(config, "max_workers", settings.max_workers, logger)

    if "pass_timeout" in config:
        raw_timeout = config.get("pass_timeout")
        try:
            timeout = None if raw_timeout is None else float(raw_timeout)
        except (TypeError, ValueError):
            logger.warning("Invalid pass_timeout=%r; passes will not time out.", raw_timeout)
            timeout = None
        if timeout is not None and timeout <= 0:
            timeout = None
        changes["pass_timeout"] = timeout

    if "segmentation_modes" in config:
        raw_modes = config.get("segmentation_modes")
        try:
            modes = tuple(_psm(mode) for mode in raw_modes)  # type: ignore[union-attr]
        except (TypeError, ValueError) as exc:
            logger.warning("Invalid segmentation_modes=%r (%s); keeping %s", raw_modes, exc, settings.segmentation_modes)
        else:
            if modes:
                changes["segmentation_modes"] = modes
            else:
                logger.warning("segmentation_modes is empty; keeping %s", settings.segmentation_modes)

    if "original_mode" in config:
        raw_mode = config.get("original_mode")
        try:
            changes["original_mode"] = None if raw_mode is None else _psm(raw_mode)
        except (TypeError, ValueError) as exc:
            logger.warning("Invalid original_mode=%r (%s); keeping %s", raw_mode, exc, settings.original_mode)

    if config.get("tesseract_path"):
        changes["tesseract_path"] = str(config["tesseract_path"])
    if config.get("ocr_lang"):
        changes["ocr_lang"] = str(config["ocr_lang"])
    if "whitelist" in config:
        whitelist = config.get("whitelist")
        changes["whitelist"] = str(whitelist) if whitelist else None

    changes["extraction"] = _apply_overrides("extraction", settings.extraction, config.get("extraction"), logger)
    changes["scoring"] = _apply_overrides("scoring", settings.scoring, config.get("scoring"), logger)

    return dataclasses.replace(settings, **changes)


__all__ = [
    "DEFAULT_PRESET",
    "PRESETS",
    "PipelineSettings",
    "load_settings",
    "minimal_settings",
    "thorough_settings",
]
