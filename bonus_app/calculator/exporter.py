# ==============================================================================
# bonus_app/calculator/exporter.py
# ------------------------------------------------------------------------------
# Builds the bonus report workbook: one sheet per selected, bonus-eligible
# person plus a cross-person repurchase summary when any repurchase rows exist.
# ==============================================================================

import logging
from datetime import date
from io import BytesIO

from openpyxl import Workbook
from openpyxl.utils import get_column_letter

from .engine import person_name_key
from .exceptions import ValidationError
from .points import stage1_total
from .processors import effective_reward, stage2_totals
from .schema import (CATEGORY_CASH_PEDIATRIC, CATEGORY_DISPENSING, FORMAT_VOUCHER,
                     INVALID_SHEET_NAME_CHARS, PERSON_SHEET_WIDTHS, REPURCHASE_HEADERS,
                     REPURCHASE_SHEET_NAME, REPURCHASE_SHEET_WIDTHS, ROLE_NO_BONUS, ROLE_PHARMACIST,
                     SHEET_NAME_MAX_LENGTH, STAGE1_HEADERS_PHARMACIST, STAGE1_HEADERS_SALES,
                     STAGE2_HEADERS_PHARMACIST, STAGE2_HEADERS_SALES, STAGE3_HEADERS, STATUS_DELETE,
                     STATUS_REPURCHASE, UNKNOWN_PERSON)


def _safe(value):
    return '' if value is None else value


def sanitize_sheet_name(name):
    """Replaces characters Excel forbids in sheet names and truncates to 31 characters."""
    cleaned = ''.join('_' if ch in INVALID_SHEET_NAME_CHARS else ch for ch in str(name))
    return cleaned[:SHEET_NAME_MAX_LENGTH] or UNKNOWN_PERSON


def unique_sheet_name(base, existing):
    """Appends (1), (2), ... until the name is unused. Excel compares names case-insensitively."""
    taken = {title.lower() for title in existing}
    title = base
    count = 1
    while title.lower() in taken:
        suffix = f"({count})"
        title = f"{base[:SHEET_NAME_MAX_LENGTH - len(suffix)]}{suffix}"
        count += 1
    return title


def default_export_filename(prefix, today=None):
    today = today or date.today()
    return f"{prefix}_{today.isoformat()}.xlsx"


def _stage1_line(row, role):
    if role == ROLE_PHARMACIST:
        note = '' if row['category'] == CATEGORY_DISPENSING else row['status']
        points = row['calculated_points']
    else:
        note = row['status']
        points = '' if row['category'] == CATEGORY_CASH_PEDIATRIC else row['calculated_points']
    return [_safe(row['category']), _safe(row['date']), _safe(row['customer_id']),
            _safe(row['item_id']), _safe(row['item_name']), _safe(row['quantity']),
            _safe(note), _safe(points)]


def _repurchase_line(row):
    return [_safe(row['category']), _safe(row['date']), _safe(row['customer_id']),
            _safe(row['item_id']), _safe(row['item_name']), _safe(row['quantity']),
            _safe(row['calculated_points'])]


def _reward_display(row):
    if row['format'] == FORMAT_VOUCHER:
        return f"{row['quantity']}張{_safe(row['reward_label'])}"
    return f"{effective_reward(row)}元"


def person_sheet_rows(bundle):
    """
    Lays out one person's sheet as a list of rows.

    Returns:
        tuple: (rows, repurchase_rows). Repurchase rows are left out of the
            person's point block and collected for the summary sheet instead.
    """
    role = bundle['role']
    rows = []
    repurchase_rows = []

    rows.append([f"【第一階段：點數表】 {stage1_total(bundle['stage1'])}點"])
    rows.append(list(STAGE1_HEADERS_PHARMACIST if role == ROLE_PHARMACIST else STAGE1_HEADERS_SALES))
    for row in bundle['stage1']:
        if row['status'] == STATUS_DELETE:
            continue
        if row['status'] == STATUS_REPURCHASE:
            repurchase_rows.append(row)
            continue
        rows.append(_stage1_line(row, role))

    rows.extend([[], []])

    if role == ROLE_PHARMACIST:
        rows.append(["【第二階段：當月調劑件數】"])
        rows.append(list(STAGE2_HEADERS_PHARMACIST))
        for row in bundle['stage2']:
            rows.append([_safe(row['item_id']), _safe(row['item_name']),
                         f"{_safe(row['quantity'])}{_safe(row['reward_label'])}"])
    else:
        totals = stage2_totals(bundle['stage2'])
        rows.append([f"【第二階段：現金獎勵表】 現金${totals['cash']:,} 禮券{totals['vouchers']}張"])
        rows.append(list(STAGE2_HEADERS_SALES))
        for row in bundle['stage2']:
            if row['is_deleted']:
                continue
            rows.append([_safe(row['category']), _safe(row['display_date']), _safe(row['customer_id']),
                         _safe(row['item_id']), _safe(row['item_name']), _safe(row['quantity']),
                         _safe(row['note']), _reward_display(row)])

    rows.extend([[], []])

    if role != ROLE_PHARMACIST:
        rows.append(["【第三階段：美妝金額】"])
        rows.append(list(STAGE3_HEADERS))
        for row in bundle['stage3']['rows']:
            rows.append([_safe(row['category_name']), _safe(row['sub_total'])])
        rows.append(["總金額", _safe(bundle['stage3']['total'])])

    return rows, repurchase_rows


def repurchase_sheet_rows(repurchase_by_person):
    rows = []
    for person in sorted(repurchase_by_person):
        group = repurchase_by_person[person]
        total = sum(r['calculated_points'] for r in group)
        rows.append([f"{person}    回購：{total}"])
        rows.append(list(REPURCHASE_HEADERS))
        rows.extend(_repurchase_line(r) for r in group)
        rows.append([])
    return rows


def _write_sheet(ws, rows, widths):
    for row in rows:
        ws.append(row)
    for index, width in enumerate(widths, start=1):
        ws.column_dimensions[get_column_letter(index)].width = width


def build_export_workbook(bundles, selected):
    """
    Builds the report workbook.

    Args:
        bundles (dict): Person name -> bundle.
        selected (iterable): Names chosen for export.

    Returns:
        Workbook: The populated openpyxl workbook.

    Raises:
        ValidationError: If no selected person is eligible for export.
    """
    selected = set(selected)
    wb = Workbook()
    wb.remove(wb.active)
    repurchase_by_person = {}

    for person in sorted(bundles, key=person_name_key):
        bundle = bundles[person]
        if person not in selected or bundle['role'] == ROLE_NO_BONUS:
            continue
        rows, repurchase_rows = person_sheet_rows(bundle)
        if repurchase_rows:
            repurchase_by_person[person] = repurchase_rows
        title = unique_sheet_name(sanitize_sheet_name(person), wb.sheetnames)
        _write_sheet(wb.create_sheet(title), rows, PERSON_SHEET_WIDTHS)
        logging.info(f"Exported sheet '{title}' ({len(rows)} rows).")

    if not wb.worksheets:
        raise ValidationError("請選擇銷售人員")

    if repurchase_by_person:
        title = unique_sheet_name(REPURCHASE_SHEET_NAME, wb.sheetnames)
        _write_sheet(wb.create_sheet(title), repurchase_sheet_rows(repurchase_by_person),
                     REPURCHASE_SHEET_WIDTHS)

    return wb


def build_export_stream(bundles, selected):
    """Returns a BytesIO holding the saved workbook, ready for send_file()."""
    wb = build_export_workbook(bundles, selected)
    out = BytesIO()
    wb.save(out)
    wb.close()
    out.seek(0)
    return out
