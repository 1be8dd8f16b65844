"""Structured-text (JSON) encoder."""

import json
from typing import Any, Mapping, Sequence

from .base import TabularEncoder, resolve_columns
from ..models.job import ExportFormat


class JsonEncoder(TabularEncoder):
    """Indented JSON array of row objects, keys in export column order."""

    format = ExportFormat.JSON
    content_type = "application/json"

    def encode(self, rows: Sequence[Mapping[str, Any]], title: str = "") -> bytes:
        columns = resolve_columns(rows)
        documents = [{column: row.get(column) for column in columns} for row in rows]
        return json.dumps(documents, indent=2, default=str, ensure_ascii=False).encode("utf-8")
