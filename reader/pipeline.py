"""Odometer reading pipeline.

``OdometerReader.read`` turns the bytes of one photo into a
:class:`ReadResult`::

    photo -> variants -> (variant x segmentation mode) passes
          -> normalised text -> scored candidates -> ranking

Fatal problems (not an image, undecodable bytes, OpenCV missing) raise an
:class:`~ocr.errors.OdometerReadError` before any pass runs.  Failed
passes are recorded in the trace and skipped.  A photo that yields no
candidate produces a normal result whose ``value`` is ``None``.
"""

from __future__ import annotations

import logging
import mimetypes
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from extract.aggregate import aggregate_candidates
from extract.candidates import extract_candidates
from extract.models import AggregatedCandidate, Candidate, Ranking
from extract.normalize import normalize_ocr_text
from ocr.errors import InputError, OdometerReadError, ReadCancelled
from ocr.ocr_engine import OCREngine, RecognitionPass, plan_passes
from ocr.variants import SourceImage, decode_image, generate_variants

from .settings import PipelineSettings, thorough_settings


LOGGER = logging.getLogger(__name__)

STATUS_FOUND = "found"
STATUS_NOT_FOUND = "not_found"
NOT_FOUND_MESSAGE = "No odometer reading could be extracted from the photo."
TEXT_SEPARATOR = "\n---\n"


# ---------------------------------------------------------------------------
# Result structures
# ---------------------------------------------------------------------------


@dataclass
class FileInfo:
    name: Optional[str]
    type: Optional[str]
    size: int
    width: int
    height: int

    @classmethod
    def from_source(cls, source: SourceImage) -> "FileInfo":
        return cls(
            name=source.filename,
            type=source.mime_type,
            size=source.size,
            width=source.width,
            height=source.height,
        )

    def to_dict(self) -> Dict[str, object]:
        return {
            "name": self.name,
            "type": self.type,
            "size": self.size,
            "width": self.width,
            "height": self.height,
        }


@dataclass
class PassTrace:
    """Diagnostics kept for one recognition pass."""

    label: str
    mode: int
    text: str
    success: bool
    error: Optional[str] = None
    candidates: List[Candidate] = field(default_factory=list)

    def candidate_values(self, limit: Optional[int] = None) -> List[int]:
        values = list(dict.fromkeys(candidate.value for candidate in self.candidates))
        return values if limit is None else values[:limit]

    def to_dict(self, *, preview_length: int, candidate_limit: int) -> Dict[str, object]:
        payload: Dict[str, object] = {
            "label": self.label,
            "mode": self.mode,
            "textPreview": self.text[:preview_length],
            "candidates": self.candidate_values(candidate_limit),
        }
        if self.error is not None:
            payload["error"] = self.error
        return payload


@dataclass
class DebugTrace:
    """Structured trace filled in while the pipeline runs."""

    file: Optional[FileInfo] = None
    variants: List[str] = field(default_factory=list)
    passes: List[PassTrace] = field(default_factory=list)
    ranked: List[AggregatedCandidate] = field(default_factory=list)

    @property
    def failed_passes(self) -> List[PassTrace]:
        return [item for item in self.passes if not item.success]

    def to_dict(self, *, preview_length: int, candidate_limit: int) -> Dict[str, object]:
        return {
            "file": self.file.to_dict() if self.file else None,
            "variants": list(self.variants),
            "passes": [
                item.to_dict(preview_length=preview_length, candidate_limit=candidate_limit)
                for item in self.passes
            ],
            "ranked": [entry.to_dict() for entry in self.ranked],
        }


@dataclass
class ReadResult:
    value: Optional[int]
    ranking: Ranking
    trace: DebugTrace
    preview_length: int = 180
    candidate_limit: int = 20

    @property
    def found(self) -> bool:
        return self.value is not None

    @property
    def status(self) -> str:
        return STATUS_FOUND if self.found else STATUS_NOT_FOUND

    @property
    def texts(self) -> List[str]:
        return [item.text for item in self.trace.passes if item.text]

    def to_payload(self) -> Tuple[int, Dict[str, Any]]:
        """Return ``(http_status, json_body)`` for the request handler."""

        payload: Dict[str, Any] = {
            "ok": self.found,
            "odo": self.value,
            "value": self.value,
            "text": str(self.value) if self.found else TEXT_SEPARATOR.join(self.texts),
            "textCount": len(self.texts),
            "hitCount": self.ranking.hit_count,
            "debug": self.trace.to_dict(
                preview_length=self.preview_length,
                candidate_limit=self.candidate_limit,
            ),
        }
        if not self.found:
            payload["error"] = NOT_FOUND_MESSAGE
            return 422, payload
        return 200, payload


def error_payload(exc: Exception) -> Tuple[int, Dict[str, Any]]:
    """Map a fatal exception to ``(http_status, json_body)``."""

    status = getattr(exc, "status_code", 500) if isinstance(exc, OdometerReadError) else 500
    message = str(exc) or "OCR failed"
    return status, {"ok": False, "error": message}


# ---------------------------------------------------------------------------
# Reader
# ---------------------------------------------------------------------------


class OdometerReader:
    """Configured, reusable odometer reading pipeline."""

    def __init__(
        self,
        settings: Optional[PipelineSettings] = None,
        engine: Optional[OCREngine] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.settings = settings or thorough_settings()
        self.logger = logger or LOGGER
        self.engine = engine or OCREngine(self.settings.engine_config(), logger=self.logger)

    def read(
        self,
        data: bytes,
        *,
        mime_type: Optional[str] = None,
        filename: Optional[str] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> ReadResult:
        """Extract the odometer reading from the photo in ``data``."""

        source = decode_image(data, mime_type=mime_type, filename=filename)
        trace = DebugTrace(file=FileInfo.from_source(source))
        self.logger.info(
            "Reading %s (%sx%s, %s bytes) with the %s preset",
            filename or "<upload>",
            source.width,
            source.height,
            source.size,
            self.settings.name,
        )

        variants = generate_variants(source, self.settings.variants, logger=self.logger)
        trace.variants = [variant.label for variant in variants]

        plans = plan_passes(
            variants,
            self.settings.segmentation_modes,
            self.settings.original_mode,
        )
        passes = self.engine.run_passes(plans, cancel_event=cancel_event)
        if cancel_event is not None and cancel_event.is_set():
            raise ReadCancelled("The read was cancelled by the caller.")

        candidates: List[Candidate] = []
        for recognition in passes:
            found = self.extract(recognition)
            trace.passes.append(
                PassTrace(
                    label=recognition.label,
                    mode=recognition.mode,
                    text=recognition.text,
                    success=recognition.success,
                    error=recognition.error,
                    candidates=found,
                )
            )
            if self.logger.isEnabledFor(logging.DEBUG):
                self.logger.debug(
                    "Pass %s psm %s -> %s | %r",
                    recognition.label,
                    recognition.mode,
                    trace.passes[-1].candidate_values(self.settings.trace_candidate_limit),
                    recognition.text[:120],
                )
            candidates.extend(found)

        ranking = aggregate_candidates(
            candidates, occurrence_weight=self.settings.scoring.occurrence_weight
        )
        trace.ranked = ranking.entries

        self.logger.info(
            "Ran %s passes over %s variants (%s failed); %s hits, selected %s",
            len(passes),
            len(variants),
            len(trace.failed_passes),
            ranking.hit_count,
            ranking.value,
        )
        return ReadResult(
            value=ranking.value,
            ranking=ranking,
            trace=trace,
            preview_length=self.settings.preview_length,
            candidate_limit=self.settings.trace_candidate_limit,
        )

    def read_path(self, path: Union[str, Path], **kwargs: Any) -> ReadResult:
        """Read a photo from disk, guessing its content type from the name."""

        path = Path(path)
        if not path.is_file():
            raise InputError(f"Image not found: {path}")
        mime_type = mimetypes.guess_type(path.name)[0]
        return self.read(path.read_bytes(), mime_type=mime_type, filename=path.name, **kwargs)

    def extract(self, recognition: RecognitionPass) -> List[Candidate]:
        """Normalise the text of one pass and return its scored candidates."""

        if not recognition.success:
            return []
        extraction = self.settings.extraction
        text = normalize_ocr_text(
            recognition.text,
            fold_letters=extraction.fold_confusables,
            digits_only=extraction.digits_only,
        )
        return extract_candidates(
            text,
            settings=extraction,
            weights=self.settings.scoring,
            pass_index=recognition.index,
        )


def read_odometer(
    data: bytes,
    *,
    mime_type: Optional[str] = None,
    filename: Optional[str] = None,
    settings: Optional[PipelineSettings] = None,
    logger: Optional[logging.Logger] = None,
) -> ReadResult:
    """One-shot helper around :class:`OdometerReader`."""

    reader = OdometerReader(settings=settings, logger=logger)
    return reader.read(data, mime_type=mime_type, filename=filename)


__all__ = [
    "DebugTrace",
    "FileInfo",
    "NOT_FOUND_MESSAGE",
    "OdometerReader",
    "PassTrace",
    "ReadResult",
    "STATUS_FOUND",
    "STATUS_NOT_FOUND",
    "error_payload",
    "read_odometer",
]
