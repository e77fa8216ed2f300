# ==============================================================================
# bonus_app/calculator/validator.py
# ------------------------------------------------------------------------------
# Reads uploaded workbooks into row mappings and checks the sales export's
# structure. Only the first sheet of a workbook is read.
# ==============================================================================

import io
from datetime import date, datetime, time
import logging

import pandas as pd

from .exceptions import ImportFormatError
from .schema import FALLBACK_ITEM_NAME_COLUMN, FALLBACK_POINTS_COLUMN

# Compound File Binary header shared by legacy .xls workbooks.
OLE2_SIGNATURE = b'\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1'

LEGACY_ERROR_MARKERS = ('Record', '0x', 'BOF', 'xlrd', 'OLE2', 'Excel xls')

LEGACY_FORMAT_MESSAGE = "無法讀取此舊版 Excel (.xls) 格式。請將檔案另存為 .xlsx 格式後再試一次。"


def _read_bytes(source):
    if isinstance(source, (bytes, bytearray)):
        return bytes(source)
    if hasattr(source, 'read'):
        return source.read()
    with open(source, 'rb') as f:
        return f.read()


def _plain_value(value):
    # Rows are stored as JSON: date and time cells travel as ISO strings, other
    # non-JSON cell types (durations, for one) as their text.
    if value is None or isinstance(value, (str, bool, int, float)):
        return value
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    return str(value)


def frame_to_rows(df):
    """Converts a DataFrame to a list of dicts, with blank cells as None and fully empty rows dropped."""
    df = df.dropna(how='all')
    df.columns = [str(c).strip() for c in df.columns]
    df = df.astype(object).where(df.notna(), None)
    return [{column: _plain_value(value) for column, value in record.items()}
            for record in df.to_dict(orient='records')]


def read_excel_rows(source):
    """
    Reads the first sheet of an .xlsx workbook.

    Args:
        source: A path, a file-like object, or raw bytes.

    Returns:
        list: One dict per data row, keyed by header.

    Raises:
        ImportFormatError: If the workbook is a legacy binary file, is empty, or
            cannot be parsed. ``legacy_format`` tells the two cases apart.
    """
    try:
        data = _read_bytes(source)
    except OSError as e:
        raise ImportFormatError(f"檔案讀取錯誤: {e}")

    if data.startswith(OLE2_SIGNATURE):
        logging.warning("Rejected legacy .xls workbook.")
        error = ImportFormatError(LEGACY_FORMAT_MESSAGE)
        error.legacy_format = True
        raise error

    try:
        xls = pd.ExcelFile(io.BytesIO(data), engine='openpyxl')
        if not xls.sheet_names:
            raise ValueError("Excel file is empty")
        df = pd.read_excel(xls, sheet_name=xls.sheet_names[0], dtype=object)
    except Exception as e:
        logging.error(f"Excel parsing error: {e}", exc_info=True)
        message = str(e)
        if any(marker in message for marker in LEGACY_ERROR_MARKERS):
            error = ImportFormatError(LEGACY_FORMAT_MESSAGE)
            error.legacy_format = True
        else:
            error = ImportFormatError(f"讀取失敗: {message or '未知錯誤'}")
        raise error from e

    rows = frame_to_rows(df)
    logging.info(f"Read {len(rows)} rows from sheet '{xls.sheet_names[0]}'.")
    return rows


def missing_columns(rows, config):
    """
    Lists the configured sales-export columns absent from the batch.

    Missing columns do not block the import (affected fields read as 0 or
    empty), but the operator is warned.
    """
    present = set()
    for row in rows:
        present.update(row.keys())
    fallbacks = {'POINTS': FALLBACK_POINTS_COLUMN, 'ITEM_NAME': FALLBACK_ITEM_NAME_COLUMN}
    return [name for field, name in config.COLUMN_HEADERS.items()
            if name not in present and fallbacks.get(field) not in present]
