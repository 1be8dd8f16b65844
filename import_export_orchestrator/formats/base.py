"""
Base tabular codec interfaces.

Encoders turn an ordered sequence of column -> value mappings into a file
payload; decoders turn an uploaded payload back into row mappings keyed by
column header.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from ..models.job import ExportFormat


# Record housekeeping columns that are never handed to row processors.
HOUSEKEEPING_COLUMNS = frozenset({
    "history",
    "id",
    "createdat", "created date", "created at",
    "updatedat", "updated date", "updated at",
    "deletedat", "deleted date", "deleted at",
})


class TabularEncoder(ABC):
    """Writes rows to one output format."""

    format: ExportFormat
    content_type: str = "application/octet-stream"

    @abstractmethod
    def encode(self, rows: Sequence[Mapping[str, Any]], title: str) -> bytes:
        """
        Encode rows to bytes.

        Args:
            rows: Row mappings; the first row's key order defines the columns
            title: Document/sheet title (usually the entity type)

        Returns:
            Encoded file content
        """

    @property
    def extension(self) -> str:
        return self.format.extension


class TabularDecoder(ABC):
    """Parses one uploaded file format into row mappings."""

    extensions: Tuple[str, ...] = ()

    @abstractmethod
    def decode(self, data: bytes, header_aliases: Optional[Mapping[str, str]] = None) -> List[Dict[str, str]]:
        """
        Decode a payload into rows keyed by (aliased) header.

        Housekeeping columns are dropped and blank rows are discarded.
        """


def resolve_columns(rows: Sequence[Mapping[str, Any]]) -> List[str]:
    """Column order of an export: the key order of the first row."""
    if not rows:
        return []
    return list(rows[0].keys())


def cell_text(value: Any) -> str:
    """Render one value as cell text; None renders as an empty cell."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, datetime):
        return value.isoformat(sep=" ")
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, Decimal):
        return format(value, "f")
    return str(value)


def is_housekeeping(header: str) -> bool:
    return header.strip().lower() in HOUSEKEEPING_COLUMNS


def build_row(headers: Sequence[str], values: Sequence[Any],
              header_aliases: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    """
    Pair headers with values.

    Blank and housekeeping headers are skipped, aliases rename the remaining
    headers and cell text is trimmed. Values beyond the header count, and
    headers beyond the value count, are ignored.
    """
    aliases = header_aliases or {}
    row: Dict[str, str] = {}
    for header, value in zip(headers, values):
        header = (header or "").strip()
        if not header or is_housekeeping(header):
            continue
        row[aliases.get(header, header)] = cell_text(value).strip()
    return row


def is_blank_row(row: Mapping[str, str]) -> bool:
    return not any(value.strip() for value in row.values())


def non_blank_rows(rows: Iterable[Dict[str, str]]) -> List[Dict[str, str]]:
    return [row for row in rows if not is_blank_row(row)]
