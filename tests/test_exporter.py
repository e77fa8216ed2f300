# tests/test_exporter.py

import copy
from datetime import date

import pytest
from openpyxl import load_workbook

from bonus_app.calculator.engine import build_bundles
from bonus_app.calculator.exceptions import ValidationError
from bonus_app.calculator.exporter import (build_export_stream, build_export_workbook,
                                           default_export_filename, person_sheet_rows,
                                           sanitize_sheet_name, unique_sheet_name)


@pytest.fixture
def bundles(sales_rows, roles, reference, config):
    return build_bundles(sales_rows, roles, reference, config)


def set_status(bundles, person, index, status, points):
    bundles = copy.deepcopy(bundles)
    row = bundles[person]['stage1'][index]
    row['status'] = status
    row['calculated_points'] = points
    return bundles


def test_sheet_names_are_sanitised_and_truncated():
    assert sanitize_sheet_name('a/b:c*d?') == 'a_b_c_d_'
    assert len(sanitize_sheet_name('名' * 40)) == 31
    assert sanitize_sheet_name('') == 'Unknown'


def test_sheet_name_collisions_get_numeric_suffixes():
    assert unique_sheet_name('王小明', ['王小明']) == '王小明(1)'
    assert unique_sheet_name('王小明', ['王小明', '王小明(1)']) == '王小明(2)'
    assert unique_sheet_name('Amy', ['amy']) == 'Amy(1)'
    long_name = 'x' * 31
    assert len(unique_sheet_name(long_name, [long_name])) == 31


def test_long_sheet_names_stay_within_the_limit_past_nine_collisions():
    long_name = 'x' * 31
    existing = [long_name] + [f"{'x' * 28}({n})" for n in range(1, 10)]
    title = unique_sheet_name(long_name, existing)
    assert title == f"{'x' * 27}(10)"
    assert len(title) == 31


def test_default_filename():
    assert default_export_filename('獎金計算報表', date(2024, 10, 31)) == '獎金計算報表_2024-10-31.xlsx'


def test_sales_sheet_layout(bundles):
    rows, repurchase = person_sheet_rows(bundles['王小明'])
    assert repurchase == []
    assert rows[0] == ['【第一階段：點數表】 16點']
    assert rows[1][-1] == '計算點數'
    # cash pediatric points are left blank
    pediatric = next(r for r in rows if r and r[0] == '現金-小兒銷售')
    assert pediatric[-1] == ''
    assert rows[7:9] == [[], []]
    assert rows[9] == ['【第二階段：現金獎勵表】 現金$100 禮券3張']
    assert rows[11][-1] == '100元'
    assert rows[12][-1] == '3張100'
    assert rows[13:15] == [[], []]
    assert rows[15] == ['【第三階段：美妝金額】']
    assert rows[-1] == ['總金額', 850]


def test_pharmacist_sheet_has_no_cosmetics_block(bundles):
    rows, _ = person_sheet_rows(bundles['李藥師'])
    assert rows[0] == ['【第一階段：點數表】 12點']
    dispensing = next(r for r in rows if r and r[0] == '調劑點數')
    assert dispensing[6] == ''
    assert ['001727', '自費調劑', '3件'] in rows
    assert not any(r and r[0] == '【第三階段：美妝金額】' for r in rows)


def test_deleted_and_repurchase_rows_leave_the_point_block(bundles):
    bundles = set_status(bundles, '王小明', 0, '回購', 2)
    bundles = set_status(bundles, '王小明', 1, '刪除', 0)
    rows, repurchase = person_sheet_rows(bundles['王小明'])
    assert rows[0] == ['【第一階段：點數表】 7點']
    assert [r['customer_id'] for r in repurchase] == ['C1']
    assert not any(r and r[2] in ('C1', 'C2') for r in rows[2:7])


def test_deleted_reward_rows_are_not_exported(bundles):
    bundles = copy.deepcopy(bundles)
    bundles['王小明']['stage2'][1]['is_deleted'] = True
    rows, _ = person_sheet_rows(bundles['王小明'])
    assert ['【第二階段：現金獎勵表】 現金$100 禮券0張'] in rows
    assert not any(r and r[-1] == '3張100' for r in rows)


def test_workbook_sheets_without_repurchase(bundles):
    wb = build_export_workbook(bundles, ['王小明', '李藥師'])
    assert wb.sheetnames == ['王小明', '李藥師']
    assert '回購總表' not in wb.sheetnames
    assert wb['王小明'].column_dimensions['E'].width == 25


def test_repurchase_summary_sheet(bundles):
    bundles = set_status(bundles, '王小明', 0, '回購', 2)
    wb = build_export_workbook(bundles, ['王小明', '李藥師'])
    assert wb.sheetnames[-1] == '回購總表'
    ws = wb['回購總表']
    assert ws['A1'].value == '王小明    回購：2'
    assert ws['A3'].value == '成人奶粉'


def test_only_selected_and_eligible_persons_are_exported(bundles):
    bundles = copy.deepcopy(bundles)
    bundles['陳無獎'] = dict(bundles['王小明'], role='NO_BONUS')
    wb = build_export_workbook(bundles, ['李藥師', '陳無獎'])
    assert wb.sheetnames == ['李藥師']


def test_empty_selection_is_rejected(bundles):
    with pytest.raises(ValidationError):
        build_export_workbook(bundles, [])


def test_stream_round_trips_through_openpyxl(bundles):
    stream = build_export_stream(bundles, ['李藥師'])
    wb = load_workbook(stream)
    assert wb.sheetnames == ['李藥師']
    assert wb['李藥師']['A1'].value == '【第一階段：點數表】 12點'
