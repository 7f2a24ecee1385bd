"""
SQLAlchemy models.

Every model module imports the shared ``db`` handle from here; the app
factory imports the model modules so metadata is complete before
``db.create_all()`` and Alembic autogenerate run.
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
