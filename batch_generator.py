from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Mapping, Sequence

from certificate_config import GeneratorConfig, LogSettings, load_config
from certificate_errors import (
    CertificateError,
    OutputDirectoryError,
    RenderError,
    TemplateNotFoundError,
    ValidationError,
)
from certificate_overlay import CertificateBuilder
from recipients import read_recipients

LOGGER_NAME = "certificates"
LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(message)s"


@dataclass(frozen=True)
class RecipientError:
    recipient: Mapping[str, str]
    error: str


@dataclass
class BatchResult:
    total_recipients: int = 0
    processed: int = 0
    errors: list[RecipientError] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return not self.errors


# ---------------------------------------------------------------------------
# Run log
# ---------------------------------------------------------------------------


def open_run_log(settings: LogSettings, name: str = LOGGER_NAME) -> logging.Logger:
    """Attach stdout (and optionally a truncated log file) handlers for one run.

    Raises OSError when the log file cannot be created; the logger is left
    without handlers in that case.
    """
    log = logging.getLogger(name)
    log.setLevel(logging.INFO)
    log.propagate = False
    close_run_log(log)

    if not settings.enabled:
        log.addHandler(logging.NullHandler())
        return log

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if settings.log_to_file:
        settings.log_file_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(settings.log_file_path, mode="w", encoding="utf-8"))

    formatter = logging.Formatter(LOG_FORMAT)
    for handler in handlers:
        handler.setFormatter(formatter)
        log.addHandler(handler)
    return log


def close_run_log(log: logging.Logger) -> None:
    for handler in list(log.handlers):
        handler.flush()
        handler.close()
        log.removeHandler(handler)


# ---------------------------------------------------------------------------
# Batch
# ---------------------------------------------------------------------------


def ensure_directory_exists(dir_path: Path, log: logging.Logger) -> None:
    if not dir_path.exists():
        try:
            dir_path.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise OutputDirectoryError(f"Cannot create output directory {dir_path}: {exc.strerror or exc}") from exc
        log.info(f"Created directory: {dir_path}")


def run_batch(config: GeneratorConfig, log: logging.Logger) -> BatchResult:
    """Generate one certificate per CSV row, in file order.

    Per-recipient failures are collected in the result. A missing template or
    an unreadable CSV raises before any further rows are processed.
    """
    if not config.template_path.is_file():
        raise TemplateNotFoundError(f"Template file not found: {config.template_path}")

    ensure_directory_exists(config.output_dir, log)

    recipients = list(read_recipients(config.csv_path, config.csv_delimiter))
    log.info(f"Found {len(recipients)} recipients in CSV file")

    builder = CertificateBuilder(config, log)
    result = BatchResult(total_recipients=len(recipients))
    for recipient in recipients:
        try:
            builder.build(recipient)
        except (ValidationError, RenderError) as exc:
            result.errors.append(RecipientError(recipient=recipient, error=str(exc)))
        else:
            result.processed += 1

    log.info(f"Processed {result.processed} certificates with {len(result.errors)} errors")
    if result.errors:
        log.warning("Some certificates could not be generated:")
        for item in result.errors:
            log.warning(f"- {item.recipient.get('name') or 'Unknown'}: {item.error}")
    return result


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Generate one certificate PDF per CSV row by overlaying text onto a template PDF."
    )
    parser.add_argument("--template", help="Path to the template PDF.")
    parser.add_argument("--csv", dest="csv_path", help="Path to the recipients CSV (needs a 'name' column).")
    parser.add_argument("--delimiter", help="CSV field delimiter (single character).")
    parser.add_argument("--output-dir", help="Directory certificates are written into.")
    parser.add_argument("--issuer", help="Issuer/instructor text printed on every certificate.")
    parser.add_argument("--styles", help="Path to JSON file overriding name/date/issuer styles.")
    parser.add_argument("--log-file", help="Log file path (truncated on each run).")
    parser.add_argument(
        "--no-log-file",
        action="store_true",
        help="Log to stdout only.",
    )
    return parser.parse_args(argv)


def config_from_args(args: argparse.Namespace, env: Mapping[str, str] | None = None) -> GeneratorConfig:
    config = load_config(env=env, styles_path=Path(args.styles) if args.styles else None)

    updates: dict = {}
    if args.template:
        updates["template_path"] = Path(args.template)
    if args.csv_path:
        updates["csv_path"] = Path(args.csv_path)
    if args.delimiter:
        updates["csv_delimiter"] = args.delimiter
    if args.output_dir:
        updates["output_dir"] = Path(args.output_dir)
    if args.issuer:
        updates["issuer_text"] = args.issuer

    log_updates: dict = {}
    if args.log_file:
        log_updates["log_file_path"] = Path(args.log_file)
    if args.no_log_file:
        log_updates["log_to_file"] = False
    if log_updates:
        updates["logging"] = replace(config.logging, **log_updates)

    return replace(config, **updates) if updates else config


def main(argv: Sequence[str] | None = None, env: Mapping[str, str] | None = None) -> int:
    args = parse_args(argv)
    try:
        config = config_from_args(args, env)
    except (OSError, ValueError) as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return 2

    try:
        log = open_run_log(config.logging)
    except OSError as exc:
        print(f"Cannot open log file {config.logging.log_file_path}: {exc.strerror or exc}", file=sys.stderr)
        return 2

    try:
        log.info("Starting certificate generation process")
        try:
            result = run_batch(config, log)
        except CertificateError as exc:
            log.error(f"Certificate generation failed: {exc}")
            return 1

        log.info("Certificate generation completed")
        log.info(f"Total recipients: {result.total_recipients}")
        log.info(f"Successfully processed: {result.processed}")
        log.info(f"Errors: {len(result.errors)}")
        return 0
    finally:
        close_run_log(log)


if __name__ == "__main__":
    sys.exit(main())
