"""Command line interface for reading an odometer value from a photo."""

from __future__ import annotations

import argparse
import importlib
import json
import logging
import shutil
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml

from ocr.errors import DependencyError, InputError, OdometerReadError
from reader.pipeline import OdometerReader, error_payload
from reader.settings import PRESETS, load_settings


DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent / "config.yaml"
DEFAULT_LOG_PATH = Path("logs") / "odometer_reader.log"

EXIT_FOUND = 0
EXIT_UNEXPECTED = 1
EXIT_FATAL = 2
EXIT_NOT_FOUND = 3


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Extract the odometer reading from a photo of an instrument cluster.",
    )
    parser.add_argument("image", help="Path to the JPEG/PNG photo.")
    parser.add_argument(
        "--preset",
        choices=sorted(PRESETS),
        help="Pipeline preset (overrides config.yaml).",
    )
    parser.add_argument(
        "--config",
        default=str(DEFAULT_CONFIG_PATH),
        help="Path to the YAML configuration file.",
    )
    parser.add_argument(
        "--output",
        help="Write the JSON result to this file instead of stdout.",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable verbose logging for troubleshooting.",
    )
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)

    try:
        config = load_config(Path(args.config))
    except Exception as exc:  # pragma: no cover - fatal configuration issues
        logging.basicConfig(level=logging.ERROR, format="%(levelname)s: %(message)s")
        logging.error("Failed to load configuration: %s", exc)
        return EXIT_FATAL

    log_path = Path(config.get("log_path", DEFAULT_LOG_PATH))
    logger = configure_logging(debug=args.debug, log_path=log_path)
    logger.debug("Configuration loaded from %s", args.config)

    try:
        return run(args=args, config=config, logger=logger)
    except (DependencyError, InputError) as exc:
        logger.error("%s", exc)
        write_payload(error_payload(exc)[1], args.output)
        return EXIT_FATAL
    except OdometerReadError as exc:
        logger.error("%s", exc)
        write_payload(error_payload(exc)[1], args.output)
        return EXIT_UNEXPECTED
    except Exception as exc:
        logger.exception("Unhandled error during processing")
        write_payload(error_payload(exc)[1], args.output)
        return EXIT_UNEXPECTED


def run(*, args: argparse.Namespace, config: Dict[str, object], logger: logging.Logger) -> int:
    configure_dependencies(config, logger=logger)
    try:
        settings = load_settings(config, preset=args.preset, logger=logger)
    except ValueError as exc:
        logger.error("Invalid configuration: %s", exc)
        return EXIT_FATAL

    reader = OdometerReader(settings=settings, logger=logger)

    result = reader.read_path(Path(args.image).expanduser())
    status, payload = result.to_payload()
    write_payload(payload, args.output)

    if result.found:
        logger.info("Odometer reading: %s", result.value)
        return EXIT_FOUND
    logger.warning("No odometer candidate found (status %s); enter the value manually.", status)
    return EXIT_NOT_FOUND


def write_payload(payload: Dict[str, Any], output: Optional[str]) -> None:
    text = json.dumps(payload, ensure_ascii=False, indent=2)
    if output:
        path = Path(output)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text + "\n", encoding="utf-8")
    else:
        sys.stdout.write(text + "\n")


def configure_logging(*, debug: bool, log_path: Path) -> logging.Logger:
    log_path.parent.mkdir(parents=True, exist_ok=True)
    level = logging.DEBUG if debug else logging.INFO
    logger = logging.getLogger()
    logger.setLevel(level)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    formatter = logging.Formatter("%(asctime)s - %(levelname)s - %(name)s - %(message)s")

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(level)
    console.setFormatter(formatter)
    logger.addHandler(console)

    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setLevel(level)
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    logging.captureWarnings(True)
    return logger


def load_config(path: Path) -> Dict[str, object]:
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, dict):
        raise ValueError("config.yaml must define a mapping")
    return data


def configure_dependencies(config: Dict[str, object], *, logger: logging.Logger) -> None:
    config["tesseract_path"] = resolve_tesseract_path(config.get("tesseract_path"))
    ensure_opencv()
    logger.debug("Tesseract binary: %s", config["tesseract_path"])


def ensure_opencv() -> None:
    try:
        importlib.import_module("cv2")
    except ImportError as exc:
        raise DependencyError(
            "OpenCV (cv2) is required for image preprocessing. Install it via "
            "`pip install opencv-python-headless`."
        ) from exc


def resolve_tesseract_path(value: Optional[object]) -> str:
    candidates: List[Path] = []
    if value:
        candidates.append(Path(str(value)))
    which = shutil.which("tesseract")
    if which:
        candidates.append(Path(which))
    for candidate in candidates:
        if candidate.exists():
            return str(candidate)
    raise DependencyError("Tesseract executable not found. Update config.yaml or adjust PATH.")


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    sys.exit(main())
