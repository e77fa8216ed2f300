# ==============================================================================
# bonus_app/calculator/reference.py
# ------------------------------------------------------------------------------
# Reference Data Store: the pharmacist point list (also used as the sales
# exclusion list) and the reward rule list, keyed by item id.
# ==============================================================================

import logging

from .cells import to_number, to_text
from .schema import CATEGORY_DISPENSING, FORMAT_CASH, REFERENCE_LIST_HEADERS, REWARD_RULE_HEADERS


def _pick(row, names):
    """Returns the first present, non-blank value among the accepted header names."""
    for name in names:
        value = to_text(row.get(name))
        if value:
            return value
    return ''


def load_reference_items(rows):
    """
    Normalises point-list rows into {'item_id', 'category'} dicts.

    When none of the known item id headers has a value, the first column of the
    row is taken as the item id. Rows without an item id are dropped.
    """
    items = []
    for row in rows:
        item_id = _pick(row, REFERENCE_LIST_HEADERS['item_id']) or to_text(next(iter(row.values()), None))
        if not item_id:
            continue
        items.append({
            'item_id': item_id,
            'category': _pick(row, REFERENCE_LIST_HEADERS['category']),
        })
    logging.info(f"Loaded {len(items)} point-list items.")
    return items


def load_reward_rules(rows):
    """Normalises reward-list rows into rule dicts. A missing format means cash."""
    rules = []
    for row in rows:
        item_id = _pick(row, REWARD_RULE_HEADERS['item_id'])
        if not item_id:
            continue
        reward_cell = _pick(row, REWARD_RULE_HEADERS['reward'])
        rules.append({
            'item_id': item_id,
            'note': _pick(row, REWARD_RULE_HEADERS['note']),
            'category': _pick(row, REWARD_RULE_HEADERS['category']),
            'reward': to_number(reward_cell),
            'reward_label': reward_cell,
            'format': _pick(row, REWARD_RULE_HEADERS['format']) or FORMAT_CASH,
        })
    logging.info(f"Loaded {len(rules)} reward rules.")
    return rules


class ReferenceData:
    """
    Holds both reference lists for one session.

    Lists keep their source order. Lookups are built with plain dict
    assignment, so when an item id appears more than once the last entry wins.
    """

    def __init__(self, items=None, reward_rules=None):
        self.items = list(items or [])
        self.reward_rules = list(reward_rules or [])

    def reward_map(self):
        return {rule['item_id']: rule for rule in self.reward_rules}

    def pharmacist_point_map(self):
        return {item['item_id']: item['category'] for item in self.items}

    def dispensing_item_ids(self):
        return {item['item_id'] for item in self.items if item['category'] == CATEGORY_DISPENSING}

    def is_complete(self):
        return bool(self.items) and bool(self.reward_rules)

    def to_dict(self):
        return {'items': self.items, 'reward_rules': self.reward_rules}

    @classmethod
    def from_dict(cls, data):
        data = data or {}
        return cls(items=data.get('items'), reward_rules=data.get('reward_rules'))
