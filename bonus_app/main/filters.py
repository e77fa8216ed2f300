# ==============================================================================
# bonus_app/main/filters.py
# ------------------------------------------------------------------------------
# Defines custom Jinja2 template filters for the application.
# ==============================================================================

from bonus_app.main import bp
from bonus_app.calculator.schema import CATEGORY_CASH_PEDIATRIC, ROLE_SALES, STATUS_DELETE

@bp.app_template_filter('thousands')
def thousands_filter(s):
    """
    Formats a number with thousands separators.
    Example: 1234567 -> "1,234,567"
    """
    try:
        return "{:,}".format(int(round(float(s))))
    except (ValueError, TypeError):
        return s

@bp.app_template_filter('points_display')
def points_display_filter(row, role):
    """Points as shown in the point table: '-' where sales points are suppressed, 0 once deleted."""
    if row.get('status') == STATUS_DELETE:
        return 0
    if role == ROLE_SALES and row.get('category') == CATEGORY_CASH_PEDIATRIC:
        return '-'
    return row.get('calculated_points')
