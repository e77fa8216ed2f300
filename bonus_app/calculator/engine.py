# ==============================================================================
# bonus_app/calculator/engine.py
# ------------------------------------------------------------------------------
# Loads the business rules and runs the three-stage pipeline over an imported
# sales batch, producing one bundle per bonus-eligible staff member.
# ==============================================================================

import logging

import icu

from .cells import get_text
from .processors import get_processor
from .schema import (DEFAULT_CATEGORY_MAPPING, DEFAULT_CEREAL_KEYWORDS, DEFAULT_COLUMN_HEADERS,
                     DEFAULT_COSMETIC_CODES, DEFAULT_COSMETIC_DISPLAY_ORDER,
                     DEFAULT_DISPENSING_SERVICE_ITEMS, DEFAULT_PHARMACIST_SORT_ORDER,
                     DEFAULT_SALES_SORT_ORDER, ROLE_NO_BONUS, ROLE_PRIORITY, ROLE_SALES)

# --- Configuration Loader Class ---

class CalculationConfig:
    """
    A singleton class to load and hold all business rules from the database.
    This ensures the database is queried only once per application lifecycle.
    """
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            logging.info("Creating and loading CalculationConfig instance...")
            instance = super(CalculationConfig, cls).__new__(cls)
            try:
                instance.load_settings()
                logging.info("CalculationConfig loaded successfully.")
            except Exception as e:
                logging.error(f"FATAL: Could not load settings from database. Engine cannot run. Error: {e}", exc_info=True)
                raise
            cls._instance = instance
        return cls._instance

    @classmethod
    def from_settings(cls, settings_dict=None):
        """Builds a standalone (non-cached) config from a plain settings dict."""
        instance = super(CalculationConfig, cls).__new__(cls)
        instance.load_settings(settings_dict or {})
        return instance

    @classmethod
    def reset(cls):
        cls._instance = None

    def load_settings(self, settings_dict=None):
        """Loads all settings from the AppSetting table into attributes."""
        if settings_dict is None:
            from bonus_app.models import AppSetting
            settings = AppSetting.query.all()
            settings_dict = {s.key: s.get_value() for s in settings}

        # Partial header overrides keep the defaults for the columns they do not name.
        self.COLUMN_HEADERS = dict(DEFAULT_COLUMN_HEADERS, **settings_dict.get('COLUMN_HEADERS', {}))
        self.CATEGORY_MAPPING = settings_dict.get('CATEGORY_MAPPING', DEFAULT_CATEGORY_MAPPING)
        self.CEREAL_KEYWORDS = settings_dict.get('CEREAL_KEYWORDS', DEFAULT_CEREAL_KEYWORDS)
        self.SALES_SORT_ORDER = settings_dict.get('SALES_SORT_ORDER', DEFAULT_SALES_SORT_ORDER)
        self.PHARMACIST_SORT_ORDER = settings_dict.get('PHARMACIST_SORT_ORDER', DEFAULT_PHARMACIST_SORT_ORDER)
        self.COSMETIC_CODES = settings_dict.get('COSMETIC_CODES', DEFAULT_COSMETIC_CODES)
        self.COSMETIC_DISPLAY_ORDER = settings_dict.get('COSMETIC_DISPLAY_ORDER', DEFAULT_COSMETIC_DISPLAY_ORDER)
        self.DISPENSING_SERVICE_ITEMS = settings_dict.get('DISPENSING_SERVICE_ITEMS', DEFAULT_DISPENSING_SERVICE_ITEMS)

# --- Person grouping ---

# Traditional Chinese collation: Han characters by stroke count, Latin letters case-insensitively.
NAME_COLLATOR = icu.Collator.createInstance(icu.Locale('zh_TW'))


def person_name_key(name):
    """Locale-aware sort key for staff names."""
    return NAME_COLLATOR.getSortKey(str(name))


def extract_persons(raw_rows, config):
    """Distinct staff names found in the batch, sorted for display."""
    column = config.COLUMN_HEADERS['SALES_PERSON']
    names = {get_text(row, column) for row in raw_rows}
    names.discard('')
    return sorted(names, key=person_name_key)


def group_rows_by_person(raw_rows, config):
    """Maps each staff name to the positions of its rows in the batch, in source order."""
    column = config.COLUMN_HEADERS['SALES_PERSON']
    grouped = {}
    for index, row in enumerate(raw_rows):
        person = get_text(row, column)
        if person:
            grouped.setdefault(person, []).append(index)
    return grouped


def sort_persons(bundles):
    """Sales staff first, then pharmacists, then anything else; names break ties."""
    return sorted(
        bundles,
        key=lambda name: (ROLE_PRIORITY.get(bundles[name]['role'], 3), person_name_key(name))
    )

# --- Main Calculation Orchestrator ---

def build_person_bundle(person, role, rows, indexes, reference, config):
    """Runs stages 1-3 over one person's raw rows."""
    processor = get_processor(role, reference, config)
    stage1 = processor.build_stage1(rows, indexes)
    stage2 = processor.build_stage2(rows)
    stage3 = processor.build_stage3(rows, person)
    logging.info(
        f"  - {person} ({role}): {len(rows)} raw rows -> "
        f"{len(stage1)} point rows, {len(stage2)} reward rows, cosmetics total {stage3['total']:,}"
    )
    return {'role': role, 'stage1': stage1, 'stage2': stage2, 'stage3': stage3}


def build_bundles(raw_rows, roles, reference, config):
    """
    Builds a bundle for every person in the role map who earns a bonus.

    Args:
        raw_rows (list): The full imported batch.
        roles (dict): Person name -> role. Persons missing from the map are not
            processed; NO_BONUS persons get no bundle at all.
        reference (ReferenceData): Point list and reward rules.
        config (CalculationConfig): Business rules.

    Returns:
        dict: Person name -> bundle.
    """
    logging.info("=" * 80)
    logging.info(f"STARTING BONUS CALCULATION: {len(raw_rows)} raw rows, {len(roles)} staff")
    logging.info("=" * 80)

    grouped = group_rows_by_person(raw_rows, config)
    bundles = {}
    for person, indexes in grouped.items():
        if person not in roles:
            continue
        role = roles.get(person) or ROLE_SALES
        if role == ROLE_NO_BONUS:
            logging.info(f"  - {person}: no bonus, skipped.")
            continue
        rows = [raw_rows[i] for i in indexes]
        bundles[person] = build_person_bundle(person, role, rows, indexes, reference, config)

    logging.info(f"--- Calculation finished. Built {len(bundles)} bundles. ---")
    return bundles
