"""
Flask-Migrate / Alembic entry point.

Usage:
    export FLASK_APP=wsgi.py
    flask db upgrade
    flask run
"""

from amsf_filing import create_app

app = create_app()
