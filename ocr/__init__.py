"""Image decoding, preprocessing variants and the Tesseract adapter."""

from .errors import (
    DependencyError,
    ImageDecodeError,
    InputError,
    OdometerReadError,
    ReadCancelled,
)
from .ocr_engine import OCREngine, PassPlan, RecognitionPass, plan_passes
from .variants import (
    CropBox,
    SourceImage,
    Variant,
    VariantRecipe,
    clamp_crop,
    decode_image,
    generate_variants,
)

__all__ = [
    "CropBox",
    "DependencyError",
    "ImageDecodeError",
    "InputError",
    "OCREngine",
    "OdometerReadError",
    "PassPlan",
    "ReadCancelled",
    "RecognitionPass",
    "SourceImage",
    "Variant",
    "VariantRecipe",
    "clamp_crop",
    "decode_image",
    "generate_variants",
    "plan_passes",
]
