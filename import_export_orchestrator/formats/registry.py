"""
Codec lookup by export format or by uploaded file name.
"""

from pathlib import PurePosixPath
from typing import Any, Dict, Tuple

from .base import TabularEncoder, TabularDecoder
from .excel import ExcelEncoder, ExcelDecoder
from .csv_format import CsvEncoder, CsvDecoder
from .pdf import PdfEncoder
from .json_format import JsonEncoder
from ..models.job import ExportFormat
from ..core.exceptions import UnsupportedFormatError


_ENCODERS: Dict[ExportFormat, TabularEncoder] = {
    ExportFormat.EXCEL: ExcelEncoder(),
    ExportFormat.CSV: CsvEncoder(),
    ExportFormat.PDF: PdfEncoder(),
    ExportFormat.JSON: JsonEncoder(),
}

_DECODERS: Tuple[TabularDecoder, ...] = (CsvDecoder(), ExcelDecoder())


def supported_export_formats():
    return [fmt.value for fmt in _ENCODERS]


def supported_import_extensions():
    return [ext for decoder in _DECODERS for ext in decoder.extensions]


def get_encoder(export_format: Any) -> TabularEncoder:
    """
    Encoder for an export format.

    Raises:
        UnsupportedFormatError: If the format is unknown
    """
    try:
        fmt = ExportFormat.parse(export_format)
    except ValueError:
        raise UnsupportedFormatError(str(export_format), supported_export_formats())
    return _ENCODERS[fmt]


def file_extension(file_name: str) -> str:
    return PurePosixPath((file_name or "").replace("\\", "/")).suffix.lower()


def get_decoder(file_name: str) -> TabularDecoder:
    """
    Decoder chosen by the uploaded file's extension.

    Raises:
        UnsupportedFormatError: If no decoder handles the extension
    """
    extension = file_extension(file_name)
    for decoder in _DECODERS:
        if extension in decoder.extensions:
            return decoder
    raise UnsupportedFormatError(extension or file_name, supported_import_extensions())


def import_format_name(file_name: str) -> str:
    """Format label recorded on import history rows."""
    return ExportFormat.CSV.value if file_extension(file_name) == ".csv" else ExportFormat.EXCEL.value
