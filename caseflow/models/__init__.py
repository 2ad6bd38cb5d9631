"""
Case Schedule Engine
SQLAlchemy extension instance shared by every model module.

Model modules are imported by the app factory so that ``db.create_all()``
and Alembic see every table.
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
