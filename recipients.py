from __future__ import annotations

import csv
from pathlib import Path
from types import MappingProxyType
from typing import IO, Iterator, Mapping

from certificate_errors import SourceIOError, StreamError

RecipientRecord = Mapping[str, str]


def read_recipients(path: Path, delimiter: str = ",") -> Iterator[RecipientRecord]:
    """Open ``path`` and return a single-pass iterator of recipient rows.

    The first row is the header. Rows shorter than the header are padded with
    empty strings; cells past the last header column are dropped. Opening
    happens here, so a missing file fails before any row is requested.
    """
    try:
        handle = Path(path).open("r", newline="", encoding="utf-8-sig")
    except OSError as exc:
        raise SourceIOError(f"Cannot open CSV file {path}: {exc.strerror or exc}") from exc
    return _iter_rows(handle, path, delimiter)


def _iter_rows(handle: IO[str], path: Path, delimiter: str) -> Iterator[RecipientRecord]:
    with handle:
        reader = csv.DictReader(handle, delimiter=delimiter, restval="")
        try:
            for row in reader:
                # Overflow cells land under the None key.
                row.pop(None, None)
                yield MappingProxyType(dict(row))
        except (csv.Error, UnicodeDecodeError, OSError) as exc:
            raise StreamError(f"Error reading CSV file {path}: {exc}") from exc
