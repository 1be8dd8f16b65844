"""
Delimited-text (CSV) codec.

Every field is quoted and embedded quotes are doubled. Decoding handles
quoted fields containing the delimiter, doubled quotes and line breaks.
"""

import csv
import io
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .base import TabularEncoder, TabularDecoder, resolve_columns, cell_text, build_row, non_blank_rows
from ..models.job import ExportFormat
from ..core.exceptions import DecodeError


class CsvEncoder(TabularEncoder):
    """Writes RFC 4180 style CSV with all fields quoted."""

    format = ExportFormat.CSV
    content_type = "text/csv"

    def __init__(self, delimiter: str = ","):
        self.delimiter = delimiter

    def encode(self, rows: Sequence[Mapping[str, Any]], title: str = "") -> bytes:
        columns = resolve_columns(rows)
        buffer = io.StringIO()
        writer = csv.writer(buffer, delimiter=self.delimiter, quoting=csv.QUOTE_ALL, lineterminator="\r\n")

        writer.writerow(columns)
        for row in rows:
            writer.writerow([cell_text(row.get(column)) for column in columns])

        return buffer.getvalue().encode("utf-8")


class CsvDecoder(TabularDecoder):
    """Reads CSV uploads; the first record is the header."""

    extensions = (".csv",)

    def __init__(self, delimiter: str = ","):
        self.delimiter = delimiter

    def decode(self, data: bytes, header_aliases: Optional[Mapping[str, str]] = None) -> List[Dict[str, str]]:
        try:
            text = data.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise DecodeError("csv", f"file is not valid UTF-8 ({e.reason})")

        try:
            records = [record for record in csv.reader(io.StringIO(text), delimiter=self.delimiter) if record]
        except csv.Error as e:
            raise DecodeError("csv", str(e))

        if not records:
            return []

        headers = records[0]
        return non_blank_rows(build_row(headers, values, header_aliases) for values in records[1:])
