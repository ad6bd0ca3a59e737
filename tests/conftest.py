import csv
import logging
import pathlib
import sys
from dataclasses import replace

import pytest
from reportlab.pdfgen import canvas

PROJECT_ROOT = pathlib.Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from certificate_config import DEFAULT_CONFIG, LogSettings


@pytest.fixture
def template_pdf(tmp_path):
    path = tmp_path / "template.pdf"
    c = canvas.Canvas(str(path), pagesize=(842, 595))
    c.rect(20, 20, 802, 555)
    c.showPage()
    c.save()
    return path


@pytest.fixture
def write_csv(tmp_path):
    def _write(rows, name="recipients.csv", delimiter=","):
        path = tmp_path / name
        with path.open("w", newline="", encoding="utf-8") as f:
            csv.writer(f, delimiter=delimiter).writerows(rows)
        return path

    return _write


@pytest.fixture
def make_config(tmp_path, template_pdf):
    def _make(csv_path, **overrides):
        config = replace(
            DEFAULT_CONFIG,
            template_path=template_pdf,
            output_dir=tmp_path / "out",
            csv_path=csv_path,
            logging=LogSettings(enabled=True, log_to_file=True, log_file_path=tmp_path / "run.log"),
        )
        return replace(config, **overrides) if overrides else config

    return _make


@pytest.fixture
def log():
    return logging.getLogger("certificate_tests")
