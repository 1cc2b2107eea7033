"""Contract collection storage using SQLite.

This module provides SQLiteContractStore, which keeps each named contract
collection as a single JSON document row, plus an events table recording
every save for audit purposes.
"""

import sqlite3
import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Sequence
from pathlib import Path

from loguru import logger

from workflow.error_handling import (
    STORE_RETRY_CONFIG,
    RetryConfig,
    StoreError,
    handle_errors,
    retry_with_backoff,
)
from workflow.models import Contract, decode_contracts, encode_contracts

DEFAULT_COLLECTION = "cms_contracts"


class SQLiteContractStore:
    """Contract store using SQLite for persistent storage.

    Supports:
    - Full-collection load and overwrite
    - Event logging for audit trails
    - Retry on transient lock contention
    """

    def __init__(
        self,
        db_path: str = "contracts.db",
        collection: str = DEFAULT_COLLECTION,
        timeout: float = 5.0,
        retry_config: RetryConfig = STORE_RETRY_CONFIG,
    ):
        """Initialize the SQLite contract store.

        Args:
            db_path: Path to SQLite database file
            collection: Name of the collection row holding the contracts
            timeout: Seconds to wait on a locked database before failing
            retry_config: Backoff policy for transient operational errors
        """
        self.db_path = db_path
        self.collection = collection
        self.timeout = timeout
        self.retry_config = retry_config
        self._ensure_database_exists()
        logger.info(f"SQLiteContractStore initialized with db_path={db_path}, collection={collection}")

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path, timeout=self.timeout)

    def _ensure_database_exists(self):
        """Create database and tables if they don't exist."""
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        with self._connect() as conn:
            cursor = conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS collections (
                    name TEXT PRIMARY KEY,
                    payload TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)

            # Events table for audit trail
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS events (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    collection TEXT NOT NULL,
                    event_type TEXT NOT NULL,
                    event_data TEXT NOT NULL,
                    timestamp TEXT NOT NULL
                )
            """)

            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_events_collection
                ON events(collection)
            """)

            conn.commit()
            logger.debug("Database schema initialized successfully")

    def load_all(self) -> List[Contract]:
        """Load the whole contract collection.

        Returns:
            Contracts in stored order, empty if the collection was never saved

        Raises:
            StoreError: If the database cannot be read
        """
        return self._with_retry(self._load_all)

    def save_all(self, contracts: Sequence[Contract]) -> None:
        """Overwrite the contract collection.

        Args:
            contracts: Complete collection to store

        Raises:
            StoreError: If the write fails after retries
        """
        self._with_retry(self._save_all, contracts)

    @handle_errors(StoreError)
    def _with_retry(self, func, *args):
        return retry_with_backoff(self.retry_config, exceptions=(sqlite3.OperationalError,))(func)(*args)

    def _load_all(self) -> List[Contract]:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT payload FROM collections WHERE name = ?", (self.collection,))
            row = cursor.fetchone()

        if not row:
            logger.debug(f"Collection {self.collection} is empty")
            return []
        return decode_contracts(row[0])

    def _save_all(self, contracts: Sequence[Contract]) -> None:
        now = datetime.now(timezone.utc).isoformat()
        payload = encode_contracts(list(contracts)).decode()

        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                INSERT INTO collections (name, payload, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(name) DO UPDATE SET
                    payload = excluded.payload,
                    updated_at = excluded.updated_at
            """, (self.collection, payload, now))
            cursor.execute("""
                INSERT INTO events (collection, event_type, event_data, timestamp)
                VALUES (?, ?, ?, ?)
            """, (
                self.collection,
                "collection_saved",
                json.dumps({"count": len(contracts)}),
                now,
            ))
            conn.commit()

        logger.debug(f"Collection {self.collection} saved with {len(contracts)} contracts")

    def get_events(self) -> List[Dict[str, Any]]:
        """Retrieve all save events for this collection, oldest first.

        Returns:
            List of event dictionaries
        """
        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                cursor.execute("""
                    SELECT event_type, event_data, timestamp
                    FROM events
                    WHERE collection = ?
                    ORDER BY id ASC
                """, (self.collection,))

                return [
                    {
                        "event_type": row[0],
                        "event_data": json.loads(row[1]),
                        "timestamp": row[2],
                    }
                    for row in cursor.fetchall()
                ]

        except Exception as e:
            logger.error(f"Failed to get events for collection {self.collection}: {e}")
            raise StoreError(f"Event retrieval failed: {e}")
