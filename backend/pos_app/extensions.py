# Overview: Shared Flask extension instances (database session, Alembic migrations).

from pathlib import Path

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

MIGRATIONS_DIR = Path(__file__).resolve().parent.parent / "migrations"

db = SQLAlchemy()
migrate = Migrate(directory=str(MIGRATIONS_DIR))
