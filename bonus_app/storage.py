# ==============================================================================
# bonus_app/storage.py
# ------------------------------------------------------------------------------
# Save/load of operator sessions. The live session is kept in the 'working'
# slot between requests; an explicit save copies it into the 'saved' slot.
# Failures surface as PersistenceError and never alter the in-memory state.
# ==============================================================================

import logging
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError

from bonus_app import db
from bonus_app.calculator.exceptions import PersistenceError
from bonus_app.calculator.session import has_data, new_session, to_snapshot
from bonus_app.models import SessionSnapshot

WORKING_SLOT = 'working'
SAVED_SLOT = 'saved'


def _write_slot(slot, payload):
    try:
        record = SessionSnapshot.query.filter_by(slot=slot).first()
        if record is None:
            record = SessionSnapshot(slot=slot)
            db.session.add(record)
        record.set_payload(payload)
        record.saved_at = datetime.utcnow()
        db.session.commit()
        return record.saved_at
    except (SQLAlchemyError, TypeError, ValueError) as e:
        db.session.rollback()
        logging.error(f"Could not write session slot '{slot}': {e}", exc_info=True)
        raise PersistenceError("儲存失敗，可能是儲存空間不足或資料庫無法使用。") from e


def _read_slot(slot):
    try:
        record = SessionSnapshot.query.filter_by(slot=slot).first()
        if record is None:
            return None, None
        return record.get_payload(), record.saved_at
    except (SQLAlchemyError, ValueError) as e:
        db.session.rollback()
        logging.error(f"Could not read session slot '{slot}': {e}", exc_info=True)
        raise PersistenceError("讀取存檔失敗。") from e


def load_working_state():
    """The live session, or a fresh one if nothing has been stored yet."""
    payload, _ = _read_slot(WORKING_SLOT)
    if payload is None:
        return new_session()
    state = new_session()
    state.update(payload)
    return state


def store_working_state(state):
    _write_slot(WORKING_SLOT, state)


def save_session(state):
    """
    Saves a snapshot of the session for later restore.

    Returns:
        datetime: When the snapshot was written.

    Raises:
        PersistenceError: If there is nothing to save or the write fails.
    """
    if not has_data(state):
        raise PersistenceError("目前無資料可儲存")
    snapshot = to_snapshot(state)
    snapshot['timestamp'] = datetime.utcnow().isoformat()
    saved_at = _write_slot(SAVED_SLOT, snapshot)
    logging.info(f"Session saved at {saved_at}.")
    return saved_at


def load_saved_session():
    """
    Returns:
        tuple: (snapshot dict, saved_at datetime).

    Raises:
        PersistenceError: If no snapshot exists or it cannot be read.
    """
    snapshot, saved_at = _read_slot(SAVED_SLOT)
    if snapshot is None:
        raise PersistenceError("找不到存檔")
    return snapshot, saved_at


def saved_session_time():
    """Timestamp of the saved snapshot, or None. Read errors count as no snapshot."""
    try:
        record = SessionSnapshot.query.filter_by(slot=SAVED_SLOT).first()
    except SQLAlchemyError as e:
        db.session.rollback()
        logging.warning(f"Could not check for a saved session: {e}")
        return None
    return record.saved_at if record else None


def has_saved_session():
    return saved_session_time() is not None
