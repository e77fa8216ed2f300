# ==============================================================================
# run.py
# ------------------------------------------------------------------------------
# The main entry point to launch the Flask application.
# ==============================================================================

from bonus_app import create_app, db
from bonus_app.models import AppSetting, SessionSnapshot

# Create the Flask application instance using the factory function
app = create_app()

@app.shell_context_processor
def make_shell_context():
    """Provides a shell context for the `flask shell` command."""
    return {
        'db': db,
        'AppSetting': AppSetting,
        'SessionSnapshot': SessionSnapshot
    }

if __name__ == '__main__':
    app.run(debug=True)
