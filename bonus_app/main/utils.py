# ==============================================================================
# bonus_app/main/utils.py
# ------------------------------------------------------------------------------
# Shapes the session state into the summaries the templates display.
# ==============================================================================

from bonus_app.calculator.points import repurchase_total, stage1_total
from bonus_app.calculator.processors import stage2_totals
from bonus_app.calculator.schema import ROLE_LABELS, ROLE_PHARMACIST
from bonus_app.calculator.session import ordered_persons, reference_of

TABS = ('stage1', 'stage2', 'stage3')


def _person_summary(state, person):
    bundle = state['bundles'][person]
    totals = stage2_totals(bundle['stage2'])
    return {
        'name': person,
        'role': bundle['role'],
        'role_label': ROLE_LABELS.get(bundle['role'], bundle['role']),
        'selected': person in state['selected'],
        'active': person == state['active_person'],
        'stage1_total': stage1_total(bundle['stage1']),
        'repurchase_total': repurchase_total(bundle['stage1']),
        'cash': totals['cash'],
        'vouchers': totals['vouchers'],
        'cosmetics_total': bundle['stage3']['total'],
    }


def prepare_overview(state):
    """
    Summary for the start page: which reference lists are loaded, how big the
    current batch is, and one line per staff member in display order.
    """
    reference = reference_of(state)
    return {
        'reference_items': len(reference.items),
        'reward_rules': len(reference.reward_rules),
        'references_ready': reference.is_complete(),
        'raw_row_count': len(state['raw_rows']),
        'persons': [_person_summary(state, p) for p in ordered_persons(state)],
        'selected_count': len(state['selected']),
    }


def prepare_person_view(state, person, tab='stage1'):
    """Everything the person page needs. Returns None if the person has no bundle."""
    if person not in state['bundles']:
        return None
    if tab not in TABS:
        tab = 'stage1'
    bundle = state['bundles'][person]
    is_pharmacist = bundle['role'] == ROLE_PHARMACIST
    # Pharmacists have no cosmetics block
    if is_pharmacist and tab == 'stage3':
        tab = 'stage1'

    return {
        'summary': _person_summary(state, person),
        'bundle': bundle,
        'tab': tab,
        'tabs': TABS[:2] if is_pharmacist else TABS,
        'is_pharmacist': is_pharmacist,
        'active_stage2_count': sum(1 for r in bundle['stage2'] if not r.get('is_deleted')),
        'persons': [_person_summary(state, p) for p in ordered_persons(state)],
    }
