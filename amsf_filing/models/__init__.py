"""
AMSF Survey Filer
SQLAlchemy instance shared by every model module.

Usage:
    from amsf_filing.models import db
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
