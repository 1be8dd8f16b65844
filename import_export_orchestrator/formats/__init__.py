"""
Tabular codecs: export encoders, import decoders and import templates.
"""

from .base import TabularEncoder, TabularDecoder, HOUSEKEEPING_COLUMNS
from .excel import ExcelEncoder, ExcelDecoder, encode_error_report, ERROR_REPORT_COLUMNS
from .csv_format import CsvEncoder, CsvDecoder
from .pdf import PdfEncoder
from .json_format import JsonEncoder
from .registry import get_encoder, get_decoder, import_format_name
from .templates import generate_import_template

__all__ = [
    "TabularEncoder",
    "TabularDecoder",
    "HOUSEKEEPING_COLUMNS",
    "ExcelEncoder",
    "ExcelDecoder",
    "encode_error_report",
    "ERROR_REPORT_COLUMNS",
    "CsvEncoder",
    "CsvDecoder",
    "PdfEncoder",
    "JsonEncoder",
    "get_encoder",
    "get_decoder",
    "import_format_name",
    "generate_import_template",
]
