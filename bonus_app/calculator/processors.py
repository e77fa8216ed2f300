# ==============================================================================
# bonus_app/calculator/processors.py
# ------------------------------------------------------------------------------
# Role-specific stage processors. Each staff member's rows go through exactly
# one processor, chosen once from the role, so role checks do not leak into
# every rule below.
#
#   Stage 1: classification + points   (classify, build_stage1)
#   Stage 2: reward rows               (build_stage2)
#   Stage 3: cosmetic brand totals     (build_stage3, sales only)
# ==============================================================================

import logging
import uuid

from .cells import (get_first_number, get_first_text, get_number, get_text, has_customer_id,
                    ticket_date)
from .points import recalculate_points
from .schema import (ADULT_MILK_POWDER_CODE, CATEGORY_ADULT_MILK_POWDER, CATEGORY_DISPENSING,
                     CATEGORY_INFANT_CEREAL, CATEGORY_OTHER, CONTAINER_DEPOSIT_CODE, CONTAINER_UNITS,
                     DISPENSING_SERVICE_CATEGORY, FALLBACK_ITEM_NAME_COLUMN, FALLBACK_POINTS_COLUMN,
                     FORMAT_STATISTIC, FORMAT_VOUCHER, INFANT_FOOD_CODE, ROLE_PHARMACIST, ROLE_SALES,
                     STATUS_DEVELOP, UNKNOWN_PERSON, UNSORTED_PRIORITY)


def _new_id():
    return str(uuid.uuid4())


def effective_reward(row):
    """The override when set, otherwise quantity * reward."""
    if row.get('custom_reward') is not None:
        return row['custom_reward']
    return row['quantity'] * row['reward']


def stage2_totals(rows):
    """Cash sum and voucher count over rows that are not soft-deleted."""
    totals = {'cash': 0, 'vouchers': 0}
    for row in rows:
        if row.get('is_deleted'):
            continue
        if row.get('format') == FORMAT_VOUCHER:
            totals['vouchers'] += row['quantity']
        else:
            totals['cash'] += effective_reward(row)
    return totals


def aggregate_cosmetics(rows, person, config):
    """
    Sums the subtotal column per cosmetic brand bucket.

    The result always lists every bucket in display order, zero-filled when a
    brand had no sales, so export columns stay stable.
    """
    columns = config.COLUMN_HEADERS
    brand_totals = {}
    for row in rows:
        brand = config.COSMETIC_CODES.get(get_text(row, columns['CAT_2']))
        if not brand:
            continue
        brand_totals[brand] = brand_totals.get(brand, 0) + get_number(row, columns['SUBTOTAL'])

    summary_rows = [{'category_name': brand, 'sub_total': brand_totals.get(brand, 0)}
                    for brand in config.COSMETIC_DISPLAY_ORDER]
    return {
        'sales_person': person,
        'rows': summary_rows,
        'total': sum(r['sub_total'] for r in summary_rows),
    }


def empty_stage3(person):
    return {'sales_person': person, 'rows': [], 'total': 0}


class StageProcessor:
    """Shared gates and row construction. Subclasses supply the role rules."""

    role = None
    sort_order_setting = None

    def __init__(self, reference, config):
        self.reference = reference
        self.config = config
        self.columns = config.COLUMN_HEADERS

    # --- raw field access ---

    def points_of(self, row):
        return get_first_number(row, self.columns['POINTS'], FALLBACK_POINTS_COLUMN)

    def person_of(self, row):
        return get_text(row, self.columns['SALES_PERSON']) or UNKNOWN_PERSON

    def _base_fields(self, row):
        return {
            'sales_person': self.person_of(row),
            'date': ticket_date(row.get(self.columns['TICKET_NO'])),
            'customer_id': get_text(row, self.columns['CUSTOMER_ID']),
            'customer_name': get_text(row, self.columns['CUSTOMER_NAME']),
            'item_id': get_text(row, self.columns['ITEM_ID']),
            'item_name': get_first_text(row, self.columns['ITEM_NAME'], FALLBACK_ITEM_NAME_COLUMN),
            'quantity': get_number(row, self.columns['QUANTITY']),
        }

    def _common_exclusion(self, row):
        """Gates every role shares. Returns the exclusion reason or None."""
        if not has_customer_id(row.get(self.columns['CUSTOMER_ID'])):
            return 'no customer id'
        if self.points_of(row) == 0:
            return 'zero points'
        if get_number(row, self.columns['DEBT']) > 0:
            return 'outstanding debt'
        return None

    def _is_container_deposit(self, row):
        return (get_text(row, self.columns['CAT_1']) == CONTAINER_DEPOSIT_CODE
                and get_text(row, self.columns['UNIT']) in CONTAINER_UNITS)

    # --- stage contracts ---

    def classify(self, row):
        """Returns {'include': bool, 'category': str | None, 'reason': str | None}."""
        raise NotImplementedError

    def compute_points(self, stage1_row):
        return recalculate_points(stage1_row, self.role)

    def sort_stage1(self, rows):
        order = getattr(self.config, self.sort_order_setting)
        return sorted(rows, key=lambda r: (order.get(r['category'], UNSORTED_PRIORITY), r['date']))

    def build_stage1(self, rows, indexes=None):
        """
        Turns one person's raw rows into point-table rows.

        Args:
            rows (list): Raw record dicts.
            indexes (list, optional): Position of each row in the full raw batch,
                stored as raw_index for later recomputation.
        """
        if indexes is None:
            indexes = range(len(rows))
        processed = []
        for raw_index, row in zip(indexes, rows):
            verdict = self.classify(row)
            if not verdict['include']:
                logging.debug(f"Stage 1 skip (raw row {raw_index}): {verdict['reason']}")
                continue
            stage1_row = self._base_fields(row)
            stage1_row.update({
                'id': _new_id(),
                'original_points': self.points_of(row),
                'category': verdict['category'],
                'status': STATUS_DEVELOP,
                'raw_index': raw_index,
            })
            stage1_row['calculated_points'] = self.compute_points(stage1_row)
            processed.append(stage1_row)
        return self.sort_stage1(processed)

    def build_stage2(self, rows):
        raise NotImplementedError

    def build_stage3(self, rows, person):
        return empty_stage3(person)


class SalesProcessor(StageProcessor):
    role = ROLE_SALES
    sort_order_setting = 'SALES_SORT_ORDER'

    def __init__(self, reference, config):
        super().__init__(reference, config)
        self.dispensing_ids = reference.dispensing_item_ids()
        self.rule_map = reference.reward_map()

    def _sales_exclusion(self, row):
        """Unit price and container deposit gates, shared by stage 1 and stage 2."""
        if get_number(row, self.columns['UNIT_PRICE']) == 0:
            return 'zero unit price'
        if self._is_container_deposit(row):
            return 'container deposit'
        return None

    def category_of(self, row):
        cat1 = get_text(row, self.columns['CAT_1'])
        category = self.config.CATEGORY_MAPPING.get(cat1, CATEGORY_OTHER)
        if cat1 == INFANT_FOOD_CODE:
            item_name = get_first_text(row, self.columns['ITEM_NAME'], FALLBACK_ITEM_NAME_COLUMN)
            if any(keyword in item_name for keyword in self.config.CEREAL_KEYWORDS):
                category = CATEGORY_INFANT_CEREAL
        return category

    def classify(self, row):
        reason = self._common_exclusion(row) or self._sales_exclusion(row)
        if reason is None and get_text(row, self.columns['ITEM_ID']) in self.dispensing_ids:
            reason = 'dispensing item'
        if reason:
            return {'include': False, 'category': None, 'reason': reason}
        return {'include': True, 'category': self.category_of(row), 'reason': None}

    def build_stage2(self, rows):
        """One reward row per raw record whose item id has a reward rule."""
        processed = []
        for row in rows:
            item_id = get_text(row, self.columns['ITEM_ID'])
            rule = self.rule_map.get(item_id)
            if not rule:
                continue
            if not has_customer_id(row.get(self.columns['CUSTOMER_ID'])):
                continue
            if get_number(row, self.columns['DEBT']) > 0 or self._sales_exclusion(row):
                continue

            base = self._base_fields(row)
            processed.append({
                'id': _new_id(),
                'sales_person': base['sales_person'],
                'display_date': base['date'],
                'sort_date': get_text(row, self.columns['SALES_DATE']),
                'customer_id': base['customer_id'],
                'customer_name': base['customer_name'],
                'item_id': item_id,
                'item_name': base['item_name'],
                'quantity': base['quantity'],
                'category': rule['category'],
                'note': rule['note'],
                'reward': rule['reward'],
                'reward_label': rule['reward_label'],
                'format': rule['format'],
                'is_deleted': False,
                'custom_reward': None,
            })
        return sorted(processed, key=lambda r: (r['category'], r['display_date']))

    def build_stage3(self, rows, person):
        return aggregate_cosmetics(rows, person, self.config)


class PharmacistProcessor(StageProcessor):
    role = ROLE_PHARMACIST
    sort_order_setting = 'PHARMACIST_SORT_ORDER'

    def __init__(self, reference, config):
        super().__init__(reference, config)
        self.point_map = reference.pharmacist_point_map()

    def classify(self, row):
        reason = self._common_exclusion(row)
        if reason:
            return {'include': False, 'category': None, 'reason': reason}

        if get_text(row, self.columns['CAT_1']) == ADULT_MILK_POWDER_CODE:
            return {'include': True, 'category': CATEGORY_ADULT_MILK_POWDER, 'reason': None}

        item_id = get_text(row, self.columns['ITEM_ID'])
        if item_id in self.point_map:
            # Any list category other than dispensing points is folded into Other.
            category = CATEGORY_DISPENSING if self.point_map[item_id] == CATEGORY_DISPENSING else CATEGORY_OTHER
            return {'include': True, 'category': category, 'reason': None}
        return {'include': False, 'category': None, 'reason': 'not adult milk powder or listed item'}

    def build_stage2(self, rows):
        """Aggregates the dispensing service items into one row each; zero totals are omitted."""
        services = self.config.DISPENSING_SERVICE_ITEMS
        quantities = {service['item_id']: 0 for service in services}
        person = UNKNOWN_PERSON
        for row in rows:
            person = get_text(row, self.columns['SALES_PERSON']) or person
            item_id = get_text(row, self.columns['ITEM_ID'])
            if item_id in quantities:
                quantities[item_id] += get_number(row, self.columns['QUANTITY'])

        results = []
        for service in services:
            quantity = quantities[service['item_id']]
            if quantity <= 0:
                continue
            results.append({
                'id': _new_id(),
                'sales_person': person,
                'display_date': '',
                'sort_date': '',
                'customer_id': '',
                'customer_name': '',
                'item_id': service['item_id'],
                'item_name': service['item_name'],
                'quantity': quantity,
                'category': DISPENSING_SERVICE_CATEGORY,
                'note': '',
                'reward': 0,
                'reward_label': service['unit_label'],
                'format': FORMAT_STATISTIC,
                'is_deleted': False,
                'custom_reward': None,
            })
        return results


PROCESSORS = {
    ROLE_SALES: SalesProcessor,
    ROLE_PHARMACIST: PharmacistProcessor,
}


def get_processor(role, reference, config):
    """Returns the processor for a bonus-eligible role; NO_BONUS has none."""
    try:
        processor_class = PROCESSORS[role]
    except KeyError:
        raise ValueError(f"No stage processor for role '{role}'.")
    return processor_class(reference, config)
