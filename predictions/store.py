"""
Prediction Store
SQLite key-value table holding the whole prediction list as one JSON
document. Every mutation rewrites the full document.
"""

import json
import logging
import os
import sqlite3
from typing import Dict, List

from prediction_config import PREDICTION_CONFIG

logger = logging.getLogger(__name__)

DB_PATH = PREDICTION_CONFIG['db_path']
STORAGE_KEY = PREDICTION_CONFIG['storage_key']


class PredictionStore:
    def __init__(self, db_path: str = DB_PATH, storage_key: str = STORAGE_KEY):
        self.db_path = db_path
        self.storage_key = storage_key
        self._ensure_db_dir()
        self._init_db()

    def _ensure_db_dir(self):
        directory = os.path.dirname(self.db_path)
        if directory and not os.path.exists(directory):
            os.makedirs(directory)

    def _get_conn(self):
        return sqlite3.connect(self.db_path)

    def _init_db(self):
        """Initialize database schema."""
        try:
            conn = self._get_conn()
            cursor = conn.cursor()

            cursor.execute('''
            CREATE TABLE IF NOT EXISTS kv_store (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL
            )
            ''')

            conn.commit()
            conn.close()
            logger.debug(f"Prediction store ready at {self.db_path}")
        except Exception as e:
            logger.error(f"Failed to initialize prediction store: {e}")
            raise

    def load(self) -> List[Dict]:
        """Full prediction list ([] when missing or unreadable)."""
        try:
            conn = self._get_conn()
            cursor = conn.cursor()
            cursor.execute("SELECT value FROM kv_store WHERE key = ?", (self.storage_key,))
            row = cursor.fetchone()
            conn.close()
        except Exception as e:
            logger.error(f"[PREDICTIONS] Load error: {e}")
            return []

        if not row:
            return []

        try:
            data = json.loads(row[0])
        except ValueError as e:
            logger.warning(f"[PREDICTIONS] Stored document is not valid JSON, starting empty: {e}")
            return []

        if not isinstance(data, list):
            logger.warning("[PREDICTIONS] Stored document is not a list, starting empty")
            return []
        return data

    def save(self, predictions: List[Dict]) -> bool:
        """Overwrite the stored list. Returns False (and logs) on failure."""
        try:
            payload = json.dumps(predictions)
            conn = self._get_conn()
            cursor = conn.cursor()
            cursor.execute(
                "INSERT OR REPLACE INTO kv_store (key, value) VALUES (?, ?)",
                (self.storage_key, payload),
            )
            conn.commit()
            conn.close()
            return True
        except Exception as e:
            logger.error(f"[PREDICTIONS] Save error: {e}")
            return False
