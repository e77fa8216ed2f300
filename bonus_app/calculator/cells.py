# ==============================================================================
# bonus_app/calculator/cells.py
# ------------------------------------------------------------------------------
# Tolerant accessors for raw spreadsheet cells. Malformed or missing values
# become '' or 0 so a bad row is excluded or zero-valued instead of aborting
# the whole batch.
# ==============================================================================

import math
import pandas as pd

from .schema import UNKNOWN_DATE


def is_blank(value):
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ''
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def to_number(value):
    """Converts a cell to int (when integral) or float. Anything unparseable is 0."""
    if is_blank(value) or isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        number = value
    else:
        try:
            number = float(str(value).replace(',', '').strip())
        except ValueError:
            return 0
    if isinstance(number, float):
        if math.isnan(number) or math.isinf(number):
            return 0
        if number.is_integer():
            return int(number)
    return number


def to_text(value):
    """Converts a cell to a stripped string; integral floats lose their '.0'."""
    if is_blank(value):
        return ''
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def get_text(row, column):
    return to_text(row.get(column))


def get_number(row, column):
    return to_number(row.get(column))


def get_first_number(row, *columns):
    """Returns the first non-zero numeric value among the given columns."""
    for column in columns:
        number = get_number(row, column)
        if number:
            return number
    return 0


def get_first_text(row, *columns):
    for column in columns:
        text = get_text(row, column)
        if text:
            return text
    return ''


def has_customer_id(value):
    text = to_text(value)
    return bool(text) and text != 'undefined'


def floor_div(value, divisor):
    """Floor division that treats a zero divisor as 1."""
    return math.floor(value / (divisor or 1))


def ticket_date(ticket_no):
    """Two-character day taken from offset 5-7 of the ticket number."""
    ticket_no = to_text(ticket_no)
    if len(ticket_no) < 7:
        return UNKNOWN_DATE
    return ticket_no[5:7]
