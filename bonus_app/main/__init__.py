from flask import Blueprint
from datetime import datetime

from bonus_app.calculator.schema import STATUSES

bp = Blueprint('main', __name__)

# Values every page template can rely on
@bp.app_context_processor
def inject_globals():
    return {'now': datetime.utcnow(), 'statuses': STATUSES}

# Import routes, filters, and forms at the bottom
from bonus_app.main import routes, filters, forms
