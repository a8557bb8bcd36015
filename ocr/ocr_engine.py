"""Recognition engine adapter built on Tesseract.

Every (variant, segmentation mode) combination is one independent pass.
Passes run concurrently on a thread pool (each pass is a separate
``tesseract`` process) and a failing pass is recorded instead of raised,
so one bad combination never aborts its siblings.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

import pytesseract
from PIL import Image

from .variants import Variant


LOGGER = logging.getLogger(__name__)

DEFAULT_LANG = "eng"
DEFAULT_WHITELIST = "0123456789kmKMODOodo.:-/"
DEFAULT_MAX_WORKERS = 4
CANCELLED_MESSAGE = "cancelled before start"


@dataclass
class RecognitionPass:
    """Outcome of one engine invocation."""

    index: int
    label: str
    mode: int
    text: str = ""
    success: bool = True
    error: Optional[str] = None
    duration: Optional[float] = None


@dataclass(frozen=True)
class PassPlan:
    index: int
    variant: Variant
    mode: int

    @property
    def label(self) -> str:
        return self.variant.label


def plan_passes(
    variants: Sequence[Variant],
    modes: Sequence[int],
    original_mode: Optional[int] = None,
) -> List[PassPlan]:
    """Schedule every processed variant under every mode.

    The unmodified original gets a single pass at ``original_mode``, or no
    pass at all when ``original_mode`` is ``None``.
    """

    plans: List[PassPlan] = []
    for variant in variants:
        if variant.is_original:
            continue
        for mode in modes:
            plans.append(PassPlan(index=len(plans), variant=variant, mode=int(mode)))
    if original_mode is not None:
        for variant in variants:
            if variant.is_original:
                plans.append(PassPlan(index=len(plans), variant=variant, mode=int(original_mode)))
    return plans


def build_tesseract_config(
    mode: int,
    *,
    whitelist: Optional[str] = None,
    preserve_interword_spaces: bool = True,
) -> str:
    """Return the ``config`` string passed to pytesseract.

    The whitelist must not contain whitespace: pytesseract splits the
    string with :mod:`shlex`.
    """

    parts = [f"--psm {int(mode)}"]
    if whitelist:
        parts.append(f"-c tessedit_char_whitelist={''.join(whitelist.split())}")
    if preserve_interword_spaces:
        parts.append("-c preserve_interword_spaces=1")
    return " ".join(parts)


class OCREngine:
    """Runs recognition passes with per-pass failure isolation."""

    def __init__(
        self,
        config: Optional[Dict[str, object]] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.config = dict(config or {})
        self.logger = logger or LOGGER
        self._configure_tesseract()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def image_to_text(self, image: Image.Image, mode: int) -> str:
        """Invoke Tesseract once and return the trimmed text."""

        text = pytesseract.image_to_string(
            image,
            lang=str(self.config.get("ocr_lang") or DEFAULT_LANG),
            config=build_tesseract_config(
                mode,
                whitelist=self._get_whitelist(),
                preserve_interword_spaces=bool(
                    self.config.get("preserve_interword_spaces", True)
                ),
            ),
            timeout=self._get_timeout(),
        )
        return (text or "").strip()

    def run_pass(self, plan: PassPlan) -> RecognitionPass:
        started = time.monotonic()
        try:
            text = self.image_to_text(plan.variant.image, plan.mode)
        except Exception as exc:
            self.logger.warning(
                "Recognition pass %s (psm %s) failed: %s", plan.label, plan.mode, exc
            )
            return RecognitionPass(
                index=plan.index,
                label=plan.label,
                mode=plan.mode,
                success=False,
                error=str(exc) or exc.__class__.__name__,
                duration=time.monotonic() - started,
            )
        return RecognitionPass(
            index=plan.index,
            label=plan.label,
            mode=plan.mode,
            text=text,
            duration=time.monotonic() - started,
        )

    def run_passes(
        self,
        plans: Sequence[PassPlan],
        *,
        cancel_event: Optional[threading.Event] = None,
    ) -> List[RecognitionPass]:
        """Run ``plans`` concurrently and return results in plan order."""

        def task(plan: PassPlan) -> RecognitionPass:
            if cancel_event is not None and cancel_event.is_set():
                return RecognitionPass(
                    index=plan.index,
                    label=plan.label,
                    mode=plan.mode,
                    success=False,
                    error=CANCELLED_MESSAGE,
                )
            return self.run_pass(plan)

        workers = min(self._get_max_workers(), max(1, len(plans)))
        if workers <= 1:
            return [task(plan) for plan in plans]

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="ocr-pass") as executor:
            futures = [executor.submit(task, plan) for plan in plans]
            return [future.result() for future in futures]

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _configure_tesseract(self) -> None:
        tesseract_path = self.config.get("tesseract_path")
        if tesseract_path:
            pytesseract.pytesseract.tesseract_cmd = str(tesseract_path)

    def _get_whitelist(self) -> Optional[str]:
        if "whitelist" not in self.config:
            return DEFAULT_WHITELIST
        whitelist = self.config.get("whitelist")
        return str(whitelist) if whitelist else None

    def _get_max_workers(self) -> int:
        value = self.config.get("max_workers")
        if value is None:
            return DEFAULT_MAX_WORKERS
        try:
            parsed = int(value)
        except (TypeError, ValueError):
            self.logger.warning(
                "Invalid max_workers=%r; falling back to %s", value, DEFAULT_MAX_WORKERS
            )
            return DEFAULT_MAX_WORKERS
        if parsed <= 0:
            self.logger.warning(
                "Configured max_workers=%s is not positive; using %s",
                parsed,
                DEFAULT_MAX_WORKERS,
            )
            return DEFAULT_MAX_WORKERS
        return parsed

    def _get_timeout(self) -> float:
        value = self.config.get("pass_timeout")
        if value is None:
            return 0
        try:
            timeout = float(value)
        except (TypeError, ValueError):
            self.logger.warning("Invalid pass_timeout=%r; passes will not time out.", value)
            return 0
        return max(0.0, timeout)


__all__ = [
    "CANCELLED_MESSAGE",
    "DEFAULT_MAX_WORKERS",
    "DEFAULT_WHITELIST",
    "OCREngine",
    "PassPlan",
    "RecognitionPass",
    "build_tesseract_config",
    "plan_passes",
]
