"""
Flask-Migrate / Alembic entry point.

Usage:
    flask db upgrade
    flask db migrate -m "description"
"""

from workday import create_app

app = create_app()
