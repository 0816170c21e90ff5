"""Durable key-value store behind the ledger.

Each key holds a whole collection as JSON and every save replaces it.
"""

import json
import logging
import os

from flask_migrate import upgrade
from sqlalchemy.exc import SQLAlchemyError

from errors import StoreError
from models import StoreEntry, db

logger = logging.getLogger(__name__)


def init_db(app, migration_dir=None):
    """Create or migrate the schema for ``app``."""
    migration_dir = migration_dir or os.path.join(os.path.dirname(os.path.abspath(__file__)), 'migrations')
    with app.app_context():
        if os.path.exists(migration_dir):
            try:
                upgrade(directory=migration_dir)
                logger.info("Database migrated successfully.")
                return
            except Exception as e:
                logger.warning("Migration failed: %s. Attempting db.create_all() as fallback.", e)
        db.create_all()
        logger.info("Database tables ensured with db.create_all().")


class SqlStore:
    """Store backed by the ``store_entries`` table; needs an app context."""

    def load(self, key):
        try:
            entry = db.session.get(StoreEntry, key)
        except SQLAlchemyError as e:
            logger.warning("Store unavailable while loading '%s': %s", key, e)
            db.session.rollback()
            return None
        if entry is None:
            return None
        try:
            return json.loads(entry.value)
        except ValueError as e:
            logger.warning("Stored '%s' is not valid JSON: %s", key, e)
            return None

    def save(self, key, value):
        payload = json.dumps(value, ensure_ascii=False)
        try:
            entry = db.session.get(StoreEntry, key)
            if entry:
                entry.value = payload
            else:
                db.session.add(StoreEntry(key=key, value=payload))
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error("Failed to save '%s': %s", key, e)
            raise StoreError(key, str(e)) from e


class MemoryStore:
    """Dict-backed store holding the same serialized text as SqlStore."""

    def __init__(self, initial=None):
        self.data = {k: json.dumps(v) for k, v in (initial or {}).items()}
        self.saves = []

    def load(self, key):
        raw = self.data.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError as e:
            logger.warning("Stored '%s' is not valid JSON: %s", key, e)
            return None

    def save(self, key, value):
        self.data[key] = json.dumps(value, ensure_ascii=False)
        self.saves.append(key)
