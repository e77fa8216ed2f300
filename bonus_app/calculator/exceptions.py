# ==============================================================================
# bonus_app/calculator/exceptions.py
# ------------------------------------------------------------------------------
# Error types raised by the calculator and the persistence layer.
# ==============================================================================


class BonusAppError(Exception):
    """Base class for all errors the operator is told about."""
    def __init__(self, message):
        super().__init__(message)
        self.message = message


class ImportFormatError(BonusAppError):
    """Raised when a workbook cannot be read, e.g. a legacy .xls the reader cannot parse."""
    legacy_format = False


class ValidationError(BonusAppError):
    """Raised when an imported batch cannot be used (no staff found, reference lists missing)."""


class PersistenceError(BonusAppError):
    """Raised when a session snapshot cannot be saved or restored."""


class StaleReferenceError(BonusAppError):
    """Raised in strict mode when an edit targets a row or person that no longer exists."""
