"""
app/services/csv_reader.py

Reads uploaded CSV bytes into headers and row dictionaries.
"""

from __future__ import annotations

import csv
import io
from dataclasses import dataclass, field
from typing import BinaryIO

DELIMITER_CANDIDATES: tuple[str, ...] = (",", "\t", ";")


class CSVFormatError(ValueError):
    """
    Raised when an uploaded file cannot be read as CSV.
    """


@dataclass(frozen=True)
class ParsedCSV:
    headers: tuple[str, ...]
    rows: list[dict[str, str]] = field(default_factory=list)
    delimiter: str = ","


def detect_delimiter(header_line: str) -> str:
    """
    Pick the candidate that splits the header line into the most fields.

    Ties keep the earlier candidate, so plain single-column files read as
    comma separated.
    """

    best_delimiter = DELIMITER_CANDIDATES[0]
    best_count = -1
    for delimiter in DELIMITER_CANDIDATES:
        count = len(header_line.split(delimiter))
        if count > best_count:
            best_count = count
            best_delimiter = delimiter
    return best_delimiter


def read_csv_stream(raw_file: BinaryIO, *, max_bytes: int | None = None) -> ParsedCSV:
    """
    Decode and parse one CSV upload.

    Blank lines and rows whose cells are all empty are dropped; cell values
    are whitespace-trimmed and short rows are padded with empty strings.
    """

    raw_file.seek(0)
    content = raw_file.read() if max_bytes is None else raw_file.read(max_bytes + 1)
    if max_bytes is not None and len(content) > max_bytes:
        raise CSVFormatError(f"File exceeds the {max_bytes // (1024 * 1024)} MB upload limit.")

    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise CSVFormatError("CSV must be UTF-8 encoded.") from exc

    lines = [line for line in text.splitlines() if line.strip()]
    if not lines:
        return ParsedCSV(headers=())

    delimiter = detect_delimiter(lines[0])
    try:
        reader = csv.reader(io.StringIO("\n".join(lines)), delimiter=delimiter)
        header_cells = next(reader)
        headers = tuple(cell.strip() for cell in header_cells)
        if not any(headers):
            raise CSVFormatError("CSV header row is missing.")
        if len(set(headers)) != len(headers):
            raise CSVFormatError("CSV header names must be unique.")

        rows: list[dict[str, str]] = []
        for cells in reader:
            record = {
                header: (cells[index].strip() if index < len(cells) else "")
                for index, header in enumerate(headers)
            }
            if any(value != "" for value in record.values()):
                rows.append(record)
    except csv.Error as exc:
        raise CSVFormatError(f"Invalid CSV format: {exc}") from exc

    return ParsedCSV(headers=headers, rows=rows, delimiter=delimiter)
