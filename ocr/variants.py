"""Image decoding and deterministic preprocessing variants.

A single phone photo of an instrument cluster rarely OCRs well as-is:
the odometer is small, glare-affected and surrounded by other text.  The
reader therefore derives a fixed, ordered list of variants from the photo
(full frame and crops around the usual display location, upscaled and
contrast-normalised, optionally inverted and binarised) and runs the
recognition engine on each of them.

Crop rectangles are expressed as fractions of the oriented image so the
same recipe fits any resolution.  EXIF orientation is applied while
decoding, before any crop is computed.
"""

from __future__ import annotations

import io
import logging
import math
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import numpy as np
from PIL import Image, ImageOps, UnidentifiedImageError

from .errors import DependencyError, ImageDecodeError, InputError


LOGGER = logging.getLogger(__name__)

ORIGINAL_LABEL = "original"
_EXIF_ORIENTATION_TAG = 0x0112

_SHARPEN_KERNEL = np.array([[0, -1, 0], [-1, 5, -1], [0, -1, 0]], dtype=np.float32)

_cv2_module = None


def load_cv2():
    """Import OpenCV lazily and fail with an actionable message."""

    global _cv2_module
    if _cv2_module is None:
        try:
            import cv2  # pylint: disable=import-outside-toplevel
        except ImportError as exc:  # pragma: no cover - exercised via error handling tests
            message = (
                "OpenCV (cv2) is required for image preprocessing. Install it via "
                "`pip install opencv-python-headless`."
            )
            LOGGER.error(message)
            raise DependencyError(message) from exc
        _cv2_module = cv2
    return _cv2_module


# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CropBox:
    """Crop rectangle as fractions of the image width/height."""

    left: float
    top: float
    width: float
    height: float


@dataclass(frozen=True)
class VariantRecipe:
    """Transform applied to the source image to obtain one variant.

    Steps run in a fixed order: crop, resize to ``target_width`` (aspect
    ratio preserved), grayscale, contrast/brightness, min-max
    normalisation, inversion, binary ``threshold`` and sharpening.
    """

    label: str
    crop: Optional[CropBox] = None
    target_width: Optional[int] = None
    grayscale: bool = True
    normalize: bool = True
    threshold: Optional[int] = None
    invert: bool = False
    sharpen: bool = True
    contrast: float = 1.0
    brightness: float = 1.0


@dataclass
class SourceImage:
    """Decoded, orientation-corrected input photo."""

    image: Image.Image
    mime_type: Optional[str] = None
    filename: Optional[str] = None
    size: int = 0
    orientation: Optional[int] = None

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height


@dataclass
class Variant:
    label: str
    image: Image.Image
    recipe: Optional[VariantRecipe] = None
    steps: List[str] = field(default_factory=list)

    @property
    def is_original(self) -> bool:
        return self.recipe is None


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------


def decode_image(
    data: bytes,
    *,
    mime_type: Optional[str] = None,
    filename: Optional[str] = None,
) -> SourceImage:
    """Decode ``data`` into an upright RGB :class:`SourceImage`."""

    if not data:
        raise InputError("The uploaded file is empty.")
    if mime_type and not mime_type.lower().startswith("image/"):
        raise InputError(f"Expected an image upload, got content type '{mime_type}'.")

    try:
        with Image.open(io.BytesIO(data)) as opened:
            opened.load()
            orientation = opened.getexif().get(_EXIF_ORIENTATION_TAG)
            upright = ImageOps.exif_transpose(opened)
            image = upright.convert("RGB")
    except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError) as exc:
        raise ImageDecodeError(
            "The image could not be decoded. Upload a JPEG or PNG photo."
        ) from exc

    if image.width <= 0 or image.height <= 0:
        raise ImageDecodeError("The decoded image has no pixels.")

    return SourceImage(
        image=image,
        mime_type=mime_type,
        filename=filename,
        size=len(data),
        orientation=orientation,
    )


# ---------------------------------------------------------------------------
# Geometry
# ---------------------------------------------------------------------------


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


def clamp_crop(crop: CropBox, width: int, height: int) -> Optional[Tuple[int, int, int, int]]:
    """Convert ``crop`` into a pixel box ``(left, top, right, bottom)``.

    The rectangle is clamped to the image bounds; ``None`` is returned when
    nothing of it remains.
    """

    left = _clamp(int(math.floor(crop.left * width)), 0, width)
    top = _clamp(int(math.floor(crop.top * height)), 0, height)
    right = _clamp(int(math.floor((crop.left + crop.width) * width)), 0, width)
    bottom = _clamp(int(math.floor((crop.top + crop.height) * height)), 0, height)
    if right - left <= 0 or bottom - top <= 0:
        return None
    return left, top, right, bottom


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


def _array_to_pil(array: np.ndarray) -> Image.Image:
    if array.dtype != np.uint8:
        array = np.clip(array, 0, 255).astype("uint8")
    return Image.fromarray(array)


def render_variant(source: SourceImage, recipe: VariantRecipe) -> Optional[Variant]:
    """Apply ``recipe`` to ``source``; ``None`` when the crop is empty."""

    cv2 = load_cv2()
    image = source.image
    steps: List[str] = []

    if recipe.crop is not None:
        box = clamp_crop(recipe.crop, source.width, source.height)
        if box is None:
            return None
        image = image.crop(box)
        steps.append("crop:%d,%d,%d,%d" % box)

    working = np.array(image)

    if recipe.target_width:
        height, width = working.shape[:2]
        target_height = max(1, int(round(height * recipe.target_width / float(width))))
        interpolation = cv2.INTER_CUBIC if recipe.target_width > width else cv2.INTER_AREA
        working = cv2.resize(
            working, (int(recipe.target_width), target_height), interpolation=interpolation
        )
        steps.append(f"resize:{recipe.target_width}")

    if recipe.grayscale and working.ndim == 3:
        working = cv2.cvtColor(working, cv2.COLOR_RGB2GRAY)
        steps.append("grayscale")

    if recipe.contrast != 1.0 or recipe.brightness != 1.0:
        adjusted = (working.astype(np.float32) - 128.0) * recipe.contrast + 128.0
        adjusted *= recipe.brightness
        working = np.clip(adjusted, 0, 255).astype("uint8")
        steps.append(f"contrast:{recipe.contrast:g}:brightness:{recipe.brightness:g}")

    if recipe.normalize:
        working = cv2.normalize(working, None, 0, 255, cv2.NORM_MINMAX)
        steps.append("normalize")

    if recipe.invert:
        working = cv2.bitwise_not(working)
        steps.append("invert")

    if recipe.threshold is not None:
        if working.ndim == 3:
            working = cv2.cvtColor(working, cv2.COLOR_RGB2GRAY)
        # Pixels at or above the level become white.
        _, working = cv2.threshold(working, int(recipe.threshold) - 1, 255, cv2.THRESH_BINARY)
        steps.append(f"threshold:{recipe.threshold}")

    if recipe.sharpen:
        working = cv2.filter2D(working, -1, _SHARPEN_KERNEL)
        steps.append("sharpen")

    return Variant(label=recipe.label, image=_array_to_pil(working), recipe=recipe, steps=steps)


def generate_variants(
    source: SourceImage,
    recipes: Sequence[VariantRecipe],
    *,
    logger: Optional[logging.Logger] = None,
) -> List[Variant]:
    """Return the unmodified image followed by one variant per usable recipe."""

    logger = logger or LOGGER
    variants: List[Variant] = [Variant(label=ORIGINAL_LABEL, image=source.image)]
    for recipe in recipes:
        variant = render_variant(source, recipe)
        if variant is None:
            logger.info(
                "Skipping variant %s: crop %s is empty on a %sx%s image",
                recipe.label,
                recipe.crop,
                source.width,
                source.height,
            )
            continue
        variants.append(variant)
    return variants


__all__ = [
    "CropBox",
    "ORIGINAL_LABEL",
    "SourceImage",
    "Variant",
    "VariantRecipe",
    "clamp_crop",
    "decode_image",
    "generate_variants",
    "load_cv2",
    "render_variant",
]
