"""
Workday Close Service
Database handle shared by every model module.

Usage:
    from workday.models import db
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
