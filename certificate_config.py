from __future__ import annotations

import json
import os
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Any, Mapping

from dotenv import load_dotenv


class FontFamily(str, Enum):
    """Base-14 PDF text fonts. Values are the names reportlab knows them by."""

    COURIER = "Courier"
    COURIER_BOLD = "Courier-Bold"
    COURIER_OBLIQUE = "Courier-Oblique"
    COURIER_BOLD_OBLIQUE = "Courier-BoldOblique"
    HELVETICA = "Helvetica"
    HELVETICA_BOLD = "Helvetica-Bold"
    HELVETICA_OBLIQUE = "Helvetica-Oblique"
    HELVETICA_BOLD_OBLIQUE = "Helvetica-BoldOblique"
    TIMES_ROMAN = "Times-Roman"
    TIMES_BOLD = "Times-Bold"
    TIMES_ITALIC = "Times-Italic"
    TIMES_BOLD_ITALIC = "Times-BoldItalic"


def _normalize_font_name(name: str) -> str:
    return "".join(ch for ch in name.lower() if ch.isalnum())


# Also accepts the pdf-lib style spellings ("TimesRomanBold") used by older configs.
_FONT_ALIASES: dict[str, FontFamily] = {
    _normalize_font_name(font.value): font for font in FontFamily
}
_FONT_ALIASES.update(
    {
        "timesromanbold": FontFamily.TIMES_BOLD,
        "timesromanitalic": FontFamily.TIMES_ITALIC,
        "timesromanbolditalic": FontFamily.TIMES_BOLD_ITALIC,
    }
)


def parse_font_family(value: str | FontFamily) -> FontFamily:
    if isinstance(value, FontFamily):
        return value
    font = _FONT_ALIASES.get(_normalize_font_name(str(value)))
    if font is None:
        choices = ", ".join(f.value for f in FontFamily)
        raise ValueError(f"Unknown font '{value}'. Choose one of: {choices}")
    return font


def normalize_color(color: Any, fallback: tuple[float, float, float]) -> tuple[float, float, float]:
    if not isinstance(color, (list, tuple)) or len(color) != 3:
        return fallback
    try:
        r = max(0.0, min(1.0, float(color[0])))
        g = max(0.0, min(1.0, float(color[1])))
        b = max(0.0, min(1.0, float(color[2])))
    except (TypeError, ValueError):
        return fallback
    return (r, g, b)


@dataclass(frozen=True)
class StyleDescriptor:
    """Where and how one text field is drawn. ``x`` is the horizontal center."""

    x: float
    y: float
    font_size: float
    font: FontFamily = FontFamily.HELVETICA
    color: tuple[float, float, float] = (0.0, 0.0, 0.0)
    min_font_size: float | None = None

    def __post_init__(self) -> None:
        if self.font_size <= 0:
            raise ValueError(f"font_size must be positive, got {self.font_size}")
        if self.min_font_size is not None and not 0 < self.min_font_size <= self.font_size:
            raise ValueError(
                f"min_font_size must be in (0, font_size], got {self.min_font_size} "
                f"for font_size {self.font_size}"
            )


@dataclass(frozen=True)
class LogSettings:
    enabled: bool = True
    log_to_file: bool = True
    log_file_path: Path = Path("./certificate-generation.log")


@dataclass(frozen=True)
class GeneratorConfig:
    template_path: Path = Path("./template.pdf")
    output_dir: Path = Path("./certificates")
    csv_path: Path = Path("./recipients.csv")
    csv_delimiter: str = ","
    issuer_text: str = "Sanket Dhokte"
    name_style: StyleDescriptor = StyleDescriptor(
        x=415,
        y=380,
        font_size=36,
        min_font_size=24,
        font=FontFamily.TIMES_BOLD,
        color=(0.0, 0.0, 0.7),
    )
    date_style: StyleDescriptor = StyleDescriptor(
        x=670,
        y=260,
        font_size=18,
        font=FontFamily.TIMES_ROMAN,
        color=(0.3, 0.3, 0.3),
    )
    issuer_style: StyleDescriptor = StyleDescriptor(
        x=150,
        y=260,
        font_size=18,
        font=FontFamily.TIMES_ROMAN,
        color=(0.3, 0.3, 0.3),
    )
    logging: LogSettings = field(default_factory=LogSettings)

    def __post_init__(self) -> None:
        if len(self.csv_delimiter) != 1:
            raise ValueError(f"CSV delimiter must be a single character, got {self.csv_delimiter!r}")


DEFAULT_CONFIG = GeneratorConfig()


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _parse_bool(name: str, value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean (true/false), got {value!r}")


def apply_env(config: GeneratorConfig, env: Mapping[str, str]) -> GeneratorConfig:
    """Overlay CERT_* environment variables onto ``config``."""
    updates: dict[str, Any] = {}
    if env.get("CERT_TEMPLATE_PATH"):
        updates["template_path"] = Path(env["CERT_TEMPLATE_PATH"])
    if env.get("CERT_OUTPUT_DIR"):
        updates["output_dir"] = Path(env["CERT_OUTPUT_DIR"])
    if env.get("CERT_CSV_PATH"):
        updates["csv_path"] = Path(env["CERT_CSV_PATH"])
    if env.get("CERT_CSV_DELIMITER"):
        updates["csv_delimiter"] = env["CERT_CSV_DELIMITER"]
    if env.get("CERT_ISSUER"):
        updates["issuer_text"] = env["CERT_ISSUER"]

    log_updates: dict[str, Any] = {}
    if env.get("CERT_LOGGING"):
        log_updates["enabled"] = _parse_bool("CERT_LOGGING", env["CERT_LOGGING"])
    if env.get("CERT_LOG_TO_FILE"):
        log_updates["log_to_file"] = _parse_bool("CERT_LOG_TO_FILE", env["CERT_LOG_TO_FILE"])
    if env.get("CERT_LOG_FILE"):
        log_updates["log_file_path"] = Path(env["CERT_LOG_FILE"])
    if log_updates:
        updates["logging"] = replace(config.logging, **log_updates)

    return replace(config, **updates) if updates else config


def _style_number(section: str, key: str, value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise ValueError(f"Style '{section}.{key}' must be a number, got {value!r}")
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"Style '{section}.{key}' must be a number, got {value!r}") from None


def style_from_dict(raw: Any, base: StyleDescriptor, section: str = "style") -> StyleDescriptor:
    if not isinstance(raw, Mapping):
        raise ValueError(f"Style '{section}' must be a JSON object, got {type(raw).__name__}")
    updates: dict[str, Any] = {}
    if "x" in raw:
        updates["x"] = _style_number(section, "x", raw["x"])
    if "y" in raw:
        updates["y"] = _style_number(section, "y", raw["y"])
    if "size" in raw:
        updates["font_size"] = _style_number(section, "size", raw["size"])
    if "min_size" in raw:
        min_size = raw["min_size"]
        updates["min_font_size"] = _style_number(section, "min_size", min_size) if min_size is not None else None
    if "font" in raw:
        updates["font"] = parse_font_family(raw["font"])
    if "color" in raw:
        updates["color"] = normalize_color(raw["color"], base.color)
    return replace(base, **updates)


def load_styles(path: Path, config: GeneratorConfig) -> GeneratorConfig:
    """Apply a styles JSON file with optional ``name``, ``date`` and ``issuer`` objects."""
    with path.open("r", encoding="utf-8") as f:
        raw = json.load(f)
    if not isinstance(raw, dict):
        raise ValueError(f"Styles file {path} must contain a JSON object.")
    return replace(
        config,
        name_style=style_from_dict(raw.get("name", {}), config.name_style, "name"),
        date_style=style_from_dict(raw.get("date", {}), config.date_style, "date"),
        issuer_style=style_from_dict(raw.get("issuer", {}), config.issuer_style, "issuer"),
    )


def load_config(
    env: Mapping[str, str] | None = None,
    styles_path: Path | None = None,
    base: GeneratorConfig = DEFAULT_CONFIG,
) -> GeneratorConfig:
    """Build the run configuration: defaults, then environment, then styles file.

    When ``env`` is not given the process environment is used, after
    ``load_dotenv()`` has pulled in a local ``.env`` file.
    """
    if env is None:
        load_dotenv()
        env = os.environ
    config = apply_env(base, env)
    if styles_path is not None:
        config = load_styles(styles_path, config)
    return config
