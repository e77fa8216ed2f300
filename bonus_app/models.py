# ==============================================================================
# bonus_app/models.py
# ------------------------------------------------------------------------------
# Defines the database schema using SQLAlchemy ORM models.
# ==============================================================================

from datetime import datetime
from bonus_app import db
import json


class SessionSnapshot(db.Model):
    """
    Stores one serialised operator session per slot.

    The 'working' slot holds the live session between requests; the 'saved'
    slot holds the last snapshot the operator saved explicitly.
    """
    __tablename__ = 'session_snapshot'
    id = db.Column(db.Integer, primary_key=True)
    slot = db.Column(db.String(32), unique=True, nullable=False, index=True)
    saved_at = db.Column(db.DateTime, index=True, default=datetime.utcnow)

    # Full session state (reference lists, raw batch, bundles, selection, roles) as JSON
    payload_json = db.Column(db.Text, nullable=False)

    def __repr__(self):
        return f'<SessionSnapshot {self.slot} @ {self.saved_at}>'

    def get_payload(self):
        return json.loads(self.payload_json)

    def set_payload(self, payload):
        self.payload_json = json.dumps(payload, ensure_ascii=False)


class AppSetting(db.Model):
    """
    Stores key-value pairs for all business rules: column names, category
    mappings, sort orders and brand buckets. This makes the rules editable
    through the settings page instead of being hardcoded.
    """
    __tablename__ = 'app_setting'
    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(128), unique=True, nullable=False, index=True)
    value = db.Column(db.Text, nullable=False)
    description = db.Column(db.String(512)) # For hints in the settings page
    value_type = db.Column(db.String(32), default='string') # e.g., 'float', 'int', 'string', 'json'

    def __repr__(self):
        return f'<AppSetting {self.key}: {self.value}>'

    def get_value(self):
        """Casts the string value to its correct Python type."""
        if self.value_type == 'float':
            return float(self.value)
        if self.value_type == 'int':
            return int(self.value)
        if self.value_type == 'json':
            return json.loads(self.value)
        return self.value
