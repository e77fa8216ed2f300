# ==============================================================================
# bonus_app/calculator/points.py
# ------------------------------------------------------------------------------
# Point Engine. calculated_points is always derived from
# (original_points, category, quantity, status, role) by recalculate_points;
# both row construction and status edits go through it.
# ==============================================================================

import logging

from .cells import floor_div, get_first_number
from .schema import (CATEGORY_CASH_PEDIATRIC, CATEGORY_DISPENSING, COUNTED_STATUSES,
                     DEFAULT_COLUMN_HEADERS, FALLBACK_POINTS_COLUMN, PHARMACIST_DIVIDED_CATEGORIES,
                     ROLE_PHARMACIST, SALES_DIVIDED_CATEGORIES, STATUS_DELETE, STATUS_REPURCHASE)


def _base_points(row, raw_rows, columns):
    """original_points, or the source cell when a legacy row lacks it."""
    base = row.get('original_points')
    if base is not None:
        return base
    raw_index = row.get('raw_index')
    if raw_rows is None or raw_index is None or not 0 <= raw_index < len(raw_rows):
        logging.debug(f"Row {row.get('id')} has no original points and no raw record; using 0.")
        return 0
    columns = columns or DEFAULT_COLUMN_HEADERS
    return get_first_number(raw_rows[raw_index], columns['POINTS'], FALLBACK_POINTS_COLUMN)


def recalculate_points(row, role, raw_rows=None, columns=None):
    """
    Computes calculated_points for a Stage-1 row.

    Args:
        row (dict): The Stage-1 row. Only original_points, category, quantity
            and status are read (raw_index when original_points is missing).
        role (str): ROLE_SALES or ROLE_PHARMACIST.
        raw_rows (list, optional): The raw batch, for the legacy fallback.
        columns (dict, optional): Column header mapping for the fallback.

    Returns:
        int | float: The derived points.
    """
    status = row.get('status')
    if status == STATUS_DELETE:
        return 0

    base = _base_points(row, raw_rows, columns)
    category = row.get('category')
    quantity = row.get('quantity') or 0

    if role == ROLE_PHARMACIST:
        if category == CATEGORY_DISPENSING:
            return base
        if category in PHARMACIST_DIVIDED_CATEGORIES:
            base = floor_div(base, quantity)
    else:
        if category == CATEGORY_CASH_PEDIATRIC:
            return 0
        if category in SALES_DIVIDED_CATEGORIES:
            base = floor_div(base, quantity)

    if status == STATUS_REPURCHASE:
        return floor_div(base, 2)
    return base


def stage1_total(rows):
    """Sum of calculated points over develop, half-year and repurchase rows."""
    return sum(row['calculated_points'] for row in rows if row.get('status') in COUNTED_STATUSES)


def repurchase_total(rows):
    return sum(row['calculated_points'] for row in rows if row.get('status') == STATUS_REPURCHASE)
