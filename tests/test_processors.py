# tests/test_processors.py

import pytest

from bonus_app.calculator.processors import (PharmacistProcessor, SalesProcessor, aggregate_cosmetics,
                                             effective_reward, get_processor, stage2_totals)
from bonus_app.calculator.reference import ReferenceData


def raw(**overrides):
    """A qualifying sales-export row keyed by the default column headers."""
    row = {
        '銷售人員': '王小明', '客戶編號': 'C1', '客戶名稱': '陳一', '品項編號': 'A100',
        '品項名稱': '成人奶粉A', '數量': 2, '單位': '罐', '單價': 100, '小計': 200,
        '積點': 10, '欠款': 0, '分類一': '05-1', '分類二': None,
        '單號': 'S2410150001', '銷售日期': '2024-10-15',
    }
    row.update(overrides)
    return row


@pytest.fixture
def sales(reference, config):
    return SalesProcessor(reference, config)


@pytest.fixture
def pharmacist(reference, config):
    return PharmacistProcessor(reference, config)

# --- Classifier ---

def test_pharmacist_adult_milk_powder_scenario(pharmacist):
    rows = pharmacist.build_stage1([raw()])
    assert len(rows) == 1
    row = rows[0]
    assert row['category'] == '成人奶粉'
    assert row['calculated_points'] == 5
    assert row['date'] == '15'
    assert row['status'] == '開發'
    assert row['raw_index'] == 0


@pytest.mark.parametrize("processor_name", ['sales', 'pharmacist'])
def test_positive_debt_is_excluded_for_every_role(processor_name, request):
    processor = request.getfixturevalue(processor_name)
    assert processor.build_stage1([raw(欠款=5)]) == []


@pytest.mark.parametrize("overrides", [
    {'客戶編號': None},
    {'客戶編號': '  '},
    {'客戶編號': 'undefined'},
    {'積點': 0},
    {'積點': 'abc'},
])
def test_common_gates(sales, overrides):
    assert sales.classify(raw(**overrides))['include'] is False


def test_fallback_points_column_is_used(sales):
    row = raw()
    del row['積點']
    row['點數'] = 8
    assert sales.build_stage1([row])[0]['original_points'] == 8


def test_sales_gates(sales):
    assert sales.classify(raw(單價=0))['reason'] == 'zero unit price'
    assert sales.classify(raw(分類一='05-2', 單位='瓶'))['reason'] == 'container deposit'
    assert sales.classify(raw(品項編號='P001', 分類一='01-1'))['reason'] == 'dispensing item'


def test_cash_pediatric_is_not_a_container_deposit_without_container_unit(sales):
    verdict = sales.classify(raw(分類一='05-2', 單位='盒'))
    assert verdict == {'include': True, 'category': '現金-小兒銷售', 'reason': None}


@pytest.mark.parametrize("cat1, item_name, expected", [
    ('05-1', '成人奶粉A', '成人奶粉'),
    ('05-4', '成人奶水', '成人奶水'),
    ('05-3', '嬰兒米精', '嬰幼兒米麥精'),
    ('05-3', '嬰兒麥精', '嬰幼兒米麥精'),
    ('05-3', '嬰兒副食品', '其他'),
    ('99-9', '雜貨', '其他'),
])
def test_sales_category_derivation(sales, cat1, item_name, expected):
    assert sales.category_of(raw(分類一=cat1, 品項名稱=item_name)) == expected


def test_pharmacist_has_no_sales_gates(pharmacist):
    assert pharmacist.classify(raw(單價=0))['include'] is True
    assert pharmacist.classify(raw(分類一='05-2', 單位='罐', 品項編號='P001'))['include'] is True


def test_pharmacist_list_categories_fold_to_other(pharmacist):
    assert pharmacist.classify(raw(分類一='01-1', 品項編號='P001'))['category'] == '調劑點數'
    assert pharmacist.classify(raw(分類一='01-1', 品項編號='X900'))['category'] == '其他'
    assert pharmacist.classify(raw(分類一='01-1', 品項編號='Z999'))['include'] is False


def test_short_ticket_number_gives_unknown_date(sales):
    assert sales.build_stage1([raw(單號='S24')])[0]['date'] == '??'


def test_sales_stage1_sort_by_category_then_date(sales):
    rows = sales.build_stage1([
        raw(分類一='99-9', 單號='S2410200001'),
        raw(分類一='05-3', 品項名稱='米精', 單號='S2410050002'),
        raw(分類一='05-1', 單號='S2410300003'),
        raw(分類一='99-9', 單號='S2410010004'),
    ])
    assert [(r['category'], r['date']) for r in rows] == [
        ('成人奶粉', '30'), ('嬰幼兒米麥精', '05'), ('其他', '01'), ('其他', '20'),
    ]


def test_pharmacist_stage1_sort(pharmacist):
    rows = pharmacist.build_stage1([
        raw(分類一='01-1', 品項編號='P001', 單號='S2410010001'),
        raw(分類一='01-1', 品項編號='X900', 單號='S2410020002'),
        raw(單號='S2410030003'),
    ])
    assert [r['category'] for r in rows] == ['成人奶粉', '其他', '調劑點數']


def test_row_ids_are_unique(sales):
    rows = sales.build_stage1([raw(), raw(), raw()])
    assert len({r['id'] for r in rows}) == 3

# --- Reward Engine ---

def test_sales_reward_rows(sales):
    rows = sales.build_stage2([
        raw(品項編號='V600', 數量=3, 單號='S2410130009'),
        raw(品項編號='R500', 數量=2, 單號='S2410200006'),
        raw(品項編號='R500', 數量=1, 單號='S2410100007'),
        raw(品項編號='NONE'),
    ])
    assert [(r['item_id'], r['display_date']) for r in rows] == [
        ('R500', '10'), ('V600', '13'), ('R500', '20'),
    ]
    assert rows[0]['reward'] == 50
    assert rows[1]['format'] == '禮券'
    assert all(r['is_deleted'] is False and r['custom_reward'] is None for r in rows)


def test_sales_reward_gates_apply_independently_of_points(sales):
    # Zero points does not block a reward row; the other gates do.
    assert len(sales.build_stage2([raw(品項編號='R500', 積點=0)])) == 1
    assert sales.build_stage2([raw(品項編號='R500', 欠款=1)]) == []
    assert sales.build_stage2([raw(品項編號='R500', 單價=0)]) == []
    assert sales.build_stage2([raw(品項編號='R500', 客戶編號='undefined')]) == []
    assert sales.build_stage2([raw(品項編號='R500', 分類一='05-2', 單位='罐')]) == []


def test_effective_reward_and_override_clearing():
    row = {'quantity': 3, 'reward': 50, 'custom_reward': None}
    assert effective_reward(row) == 150
    assert effective_reward(dict(row, custom_reward=80)) == 80
    assert effective_reward(dict(row, custom_reward=0)) == 0


def test_stage2_totals_split_cash_and_vouchers():
    rows = [
        {'quantity': 2, 'reward': 50, 'custom_reward': None, 'format': '現金', 'is_deleted': False},
        {'quantity': 1, 'reward': 50, 'custom_reward': 30, 'format': '現金', 'is_deleted': False},
        {'quantity': 3, 'reward': 100, 'custom_reward': None, 'format': '禮券', 'is_deleted': False},
        {'quantity': 9, 'reward': 99, 'custom_reward': None, 'format': '現金', 'is_deleted': True},
    ]
    assert stage2_totals(rows) == {'cash': 130, 'vouchers': 3}


def test_pharmacist_dispensing_aggregation(pharmacist):
    rows = pharmacist.build_stage2([
        raw(品項編號='001727', 數量=2),
        raw(品項編號='001727', 數量=1),
        raw(品項編號='A100', 數量=5),
    ])
    assert len(rows) == 1
    assert rows[0]['item_name'] == '自費調劑'
    assert rows[0]['quantity'] == 3
    assert rows[0]['reward_label'] == '件'
    assert rows[0]['format'] == '統計'


def test_pharmacist_zero_totals_are_omitted(pharmacist):
    assert pharmacist.build_stage2([raw(品項編號='001345', 數量=0)]) == []


def test_last_reward_rule_wins_for_duplicate_item_ids(config):
    reference = ReferenceData(
        items=[{'item_id': 'P001', 'category': '調劑點數'}],
        reward_rules=[
            {'item_id': 'R500', 'note': '', 'category': 'A', 'reward': 10, 'reward_label': '10', 'format': '現金'},
            {'item_id': 'R500', 'note': '', 'category': 'B', 'reward': 70, 'reward_label': '70', 'format': '現金'},
        ])
    rows = SalesProcessor(reference, config).build_stage2([raw(品項編號='R500', 數量=1)])
    assert rows[0]['reward'] == 70
    assert rows[0]['category'] == 'B'

# --- Cosmetic Aggregator ---

def test_cosmetics_are_zero_filled_in_display_order(config):
    summary = aggregate_cosmetics([
        raw(分類二='08-1', 小計=400),
        raw(分類二='08-1', 小計=100),
        raw(分類二='08-9', 小計='1,200'),
        raw(分類二='07-1', 小計=999),
    ], '王小明', config)
    assert [r['category_name'] for r in summary['rows']] == config.COSMETIC_DISPLAY_ORDER
    totals = {r['category_name']: r['sub_total'] for r in summary['rows']}
    assert totals['理膚寶水'] == 500
    assert totals['其他美妝'] == 1200
    assert totals['薇姿'] == 0
    assert summary['total'] == sum(totals.values()) == 1700


def test_pharmacist_gets_empty_cosmetics(pharmacist):
    assert pharmacist.build_stage3([raw(分類二='08-1', 小計=400)], '李藥師')['rows'] == []


def test_no_bonus_has_no_processor(reference, config):
    with pytest.raises(ValueError):
        get_processor('NO_BONUS', reference, config)
