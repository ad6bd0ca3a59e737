from __future__ import annotations

import io
import logging
import re
from dataclasses import replace
from pathlib import Path
from typing import Iterable, Mapping

from pypdf import PdfReader, PdfWriter
from pypdf.errors import PyPdfError
from reportlab.lib.colors import Color
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfgen import canvas

from certificate_config import GeneratorConfig, StyleDescriptor
from certificate_errors import RenderError, ValidationError

LONG_TEXT_THRESHOLD = 20
CERTIFICATE_EXTENSION = ".pdf"
BASE14_ENCODING = "cp1252"

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9]")


def fit_text_style(text: str, style: StyleDescriptor) -> StyleDescriptor:
    """Shrink the font for text longer than LONG_TEXT_THRESHOLD characters.

    The size scales by ``20 / len(text)`` and is floored at ``min_font_size``,
    or half the nominal size when no floor is configured. ``style`` itself is
    never modified.
    """
    length = len(text)
    if length <= LONG_TEXT_THRESHOLD:
        return style
    reduction = min(1.0, LONG_TEXT_THRESHOLD / length)
    floor = style.min_font_size if style.min_font_size else style.font_size / 2
    return replace(style, font_size=max(style.font_size * reduction, floor))


def draw_text(c: canvas.Canvas, text: str | None, style: StyleDescriptor) -> None:
    """Draw ``text`` horizontally centered on ``(style.x, style.y)``. Empty text is skipped."""
    if not text:
        return
    resolved = fit_text_style(text, style)
    font_name = resolved.font.value
    # Base-14 fonts are WinAnsi encoded; anything outside it renders as boxes.
    try:
        text.encode(BASE14_ENCODING)
    except UnicodeEncodeError as exc:
        raise RenderError(f"Cannot encode {text!r} in {font_name}") from exc
    text_width = pdfmetrics.stringWidth(text, font_name, resolved.font_size)
    c.setFont(font_name, resolved.font_size)
    c.setFillColor(Color(*resolved.color))
    c.drawString(resolved.x - text_width / 2.0, resolved.y, text)


def draw_overlay(
    page_w: float,
    page_h: float,
    fields: Iterable[tuple[str | None, StyleDescriptor]],
) -> bytes:
    packet = io.BytesIO()
    # invariant=1 keeps timestamps/ids out so identical input gives identical bytes.
    c = canvas.Canvas(packet, pagesize=(page_w, page_h), invariant=1)
    for text, style in fields:
        draw_text(c, text, style)
    c.showPage()
    c.save()
    packet.seek(0)
    return packet.read()


def sanitize_filename(name: str) -> str:
    return _UNSAFE_FILENAME_CHARS.sub("_", name).lower()


def certificate_filename(name: str) -> str:
    # Distinct names can collide here ("Jo!" and "Jo?"); the later write wins.
    return f"Certificate_{sanitize_filename(name)}{CERTIFICATE_EXTENSION}"


def certificate_fields(
    record: Mapping[str, str], config: GeneratorConfig
) -> list[tuple[str | None, StyleDescriptor]]:
    return [
        (record.get("name"), config.name_style),
        (record.get("date"), config.date_style),
        (config.issuer_text, config.issuer_style),
    ]


def render_certificate(template_path: Path, record: Mapping[str, str], config: GeneratorConfig) -> bytes:
    """Load a fresh copy of the template, overlay the recipient's fields on page 0, return PDF bytes."""
    try:
        reader = PdfReader(str(template_path))
        if len(reader.pages) == 0:
            raise RenderError(f"Template {template_path} has no pages.")
        writer = PdfWriter()
        for i, page in enumerate(reader.pages):
            # Merge onto the writer's copy; the reader page stays pristine.
            target = writer.add_page(page)
            if i == 0:
                page_w = float(target.mediabox.width)
                page_h = float(target.mediabox.height)
                overlay_bytes = draw_overlay(page_w, page_h, certificate_fields(record, config))
                overlay_page = PdfReader(io.BytesIO(overlay_bytes)).pages[0]
                target.merge_page(overlay_page)

        out = io.BytesIO()
        writer.write(out)
        return out.getvalue()
    except (PyPdfError, OSError, ValueError) as exc:
        raise RenderError(f"Could not render template {template_path}: {exc}") from exc


class CertificateBuilder:
    """Turns one recipient row into one certificate file under ``config.output_dir``."""

    def __init__(self, config: GeneratorConfig, log: logging.Logger) -> None:
        self.config = config
        self.log = log

    def build(self, record: Mapping[str, str]) -> Path:
        name = record.get("name")
        if not name:
            raise ValidationError("Missing name field")

        try:
            pdf_bytes = render_certificate(self.config.template_path, record, self.config)
            output_path = self.config.output_dir / certificate_filename(name)
            try:
                output_path.write_bytes(pdf_bytes)
            except OSError as exc:
                raise RenderError(f"Could not write {output_path}: {exc.strerror or exc}") from exc
        except RenderError as exc:
            self.log.error(f"Failed to generate certificate for {name}: {exc}")
            raise

        self.log.info(f"Generated certificate for {name}: {output_path}")
        return output_path
