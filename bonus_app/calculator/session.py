# ==============================================================================
# bonus_app/calculator/session.py
# ------------------------------------------------------------------------------
# The operator's working session as a plain, JSON-serialisable dict, and the
# transitions that act on it. Every transition returns a new state and leaves
# its input untouched; edits aimed at rows that no longer exist return the
# state unchanged.
#
# Import workflow:  (no pending batch) --start_import--> PENDING_CLASSIFICATION
#                   PENDING_CLASSIFICATION --confirm_classification--> CLASSIFIED
#                   PENDING_CLASSIFICATION --cancel_classification--> previous state
# ==============================================================================

import logging

from .cells import is_blank, to_number
from .engine import build_bundles, extract_persons, sort_persons
from .exceptions import StaleReferenceError, ValidationError
from .points import recalculate_points
from .reference import ReferenceData
from .schema import ROLE_PHARMACIST, ROLE_SALES, ROLES, STATUSES

PHASE_EMPTY = 'EMPTY'
PHASE_PENDING_CLASSIFICATION = 'PENDING_CLASSIFICATION'
PHASE_CLASSIFIED = 'CLASSIFIED'

SNAPSHOT_KEYS = ('reference', 'raw_rows', 'bundles', 'active_person', 'selected', 'roles')


def new_session():
    return {
        'reference': {'items': [], 'reward_rules': []},
        'raw_rows': [],
        'bundles': {},
        'active_person': '',
        'selected': [],
        'roles': {},
        'pending_rows': None,
    }


def phase(state):
    if state.get('pending_rows') is not None:
        return PHASE_PENDING_CLASSIFICATION
    if state['bundles'] or state['raw_rows']:
        return PHASE_CLASSIFIED
    return PHASE_EMPTY


def has_data(state):
    """True when replacing the state would discard an imported batch or manual edits."""
    return bool(state['raw_rows'])


def reference_of(state):
    return ReferenceData.from_dict(state['reference'])

# --- Reference lists ---

def set_reference_items(state, items):
    reference = dict(state['reference'], items=list(items))
    return dict(state, reference=reference)


def set_reward_rules(state, rules):
    reference = dict(state['reference'], reward_rules=list(rules))
    return dict(state, reference=reference)

# --- Import and classification ---

def start_import(state, raw_rows, config, confirm=False):
    """
    Stages a new sales batch for role assignment.

    The current bundles stay in place until the classification is confirmed,
    so cancelling leaves the session exactly as it was.

    Raises:
        ValidationError: If the reference lists are missing, existing data would
            be replaced without confirmation, or the batch names no staff.
    """
    if not reference_of(state).is_complete():
        raise ValidationError("請先匯入藥師點數與獎勵清單！")
    if has_data(state) and not confirm:
        raise ValidationError("匯入新的銷售報表將清除目前所有的篩選進度與手動修改紀錄，請確認後再匯入。")

    persons = extract_persons(raw_rows, config)
    if not persons:
        raise ValidationError("找不到銷售人員資料")

    logging.info(f"Sales batch staged: {len(raw_rows)} rows, {len(persons)} staff awaiting roles.")
    return dict(state, pending_rows=list(raw_rows))


def pending_persons(state, config):
    """Names awaiting a role, with the previous assignment (or SALES) pre-filled."""
    if state.get('pending_rows') is None:
        return []
    names = extract_persons(state['pending_rows'], config)
    return [(name, state['roles'].get(name, ROLE_SALES)) for name in names]


def confirm_classification(state, roles, config):
    """
    Builds bundles for the pending batch and replaces the session's batch,
    bundles, selection and active person wholesale.
    """
    if state.get('pending_rows') is None:
        logging.debug("Classification confirmed with no pending batch; ignored.")
        return state
    for name, role in roles.items():
        if role not in ROLES:
            raise ValueError(f"Unknown role '{role}' for '{name}'.")

    raw_rows = state['pending_rows']
    bundles = build_bundles(raw_rows, roles, reference_of(state), config)
    ordered = sort_persons(bundles)
    return dict(
        state,
        raw_rows=raw_rows,
        bundles=bundles,
        roles=dict(roles),
        selected=list(ordered),
        active_person=ordered[0] if ordered else '',
        pending_rows=None,
    )


def cancel_classification(state):
    return dict(state, pending_rows=None)

# --- Selection ---

def set_active_person(state, person):
    if person not in state['bundles']:
        return _stale(state, f"active person '{person}' not found", False)
    return dict(state, active_person=person)


def toggle_selection(state, person):
    if person not in state['bundles']:
        return _stale(state, f"selection target '{person}' not found", False)
    if person in state['selected']:
        selected = [p for p in state['selected'] if p != person]
    else:
        selected = state['selected'] + [person]
    return dict(state, selected=selected)


def ordered_persons(state):
    return sort_persons(state['bundles'])

# --- Row edits ---

def _stale(state, what, strict):
    if strict:
        raise StaleReferenceError(f"Stale reference: {what}")
    logging.debug(f"Ignoring edit, {what}.")
    return state


def _update_row(state, person, stage, row_id, transform, strict):
    bundle = state['bundles'].get(person)
    if bundle is None:
        return _stale(state, f"person '{person}' not found", strict)

    rows = bundle[stage]
    for index, row in enumerate(rows):
        if row['id'] != row_id:
            continue
        new_rows = list(rows)
        new_rows[index] = transform(bundle, row)
        bundles = dict(state['bundles'])
        bundles[person] = dict(bundle, **{stage: new_rows})
        return dict(state, bundles=bundles)

    return _stale(state, f"{stage} row '{row_id}' not found for '{person}'", strict)


def set_stage1_status(state, person, row_id, status, config=None, strict=False):
    """Sets a point row's status and immediately recomputes its points."""
    if status not in STATUSES:
        raise ValueError(f"Unknown status '{status}'.")
    columns = config.COLUMN_HEADERS if config is not None else None

    def transform(bundle, row):
        updated = dict(row, status=status)
        updated['calculated_points'] = recalculate_points(updated, bundle['role'], state['raw_rows'], columns)
        return updated

    return _update_row(state, person, 'stage1', row_id, transform, strict)


def _reward_rows_editable(state, person, strict):
    bundle = state['bundles'].get(person)
    # Pharmacist reward rows are batch aggregates and cannot be edited.
    if bundle is not None and bundle['role'] == ROLE_PHARMACIST:
        _stale(state, f"reward rows of pharmacist '{person}' are read-only", strict)
        return False
    return True


def toggle_stage2_deleted(state, person, row_id, strict=False):
    """Flips the soft-delete flag; stored reward fields are not touched."""
    if not _reward_rows_editable(state, person, strict):
        return state
    return _update_row(state, person, 'stage2', row_id,
                       lambda bundle, row: dict(row, is_deleted=not row['is_deleted']), strict)


def set_stage2_custom_reward(state, person, row_id, value, strict=False):
    """Sets the reward override; a blank value clears it."""
    if not _reward_rows_editable(state, person, strict):
        return state
    custom_reward = None if is_blank(value) else to_number(value)
    return _update_row(state, person, 'stage2', row_id,
                       lambda bundle, row: dict(row, custom_reward=custom_reward), strict)

# --- Snapshots ---

def to_snapshot(state):
    return {key: state[key] for key in SNAPSHOT_KEYS}


def restore_snapshot(state, snapshot, confirm=False):
    """
    Replaces the session with a saved snapshot.

    Raises:
        ValidationError: If unsaved data would be discarded without confirmation.
    """
    if has_data(state) and not confirm:
        raise ValidationError("讀取存檔將覆蓋目前資料，請確認後再讀取。")
    restored = new_session()
    restored.update({key: snapshot[key] for key in SNAPSHOT_KEYS if key in snapshot})
    return restored
