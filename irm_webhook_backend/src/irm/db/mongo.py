from __future__ import annotations

import logging
from threading import RLock
from typing import Optional

from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import PyMongoError

logger = logging.getLogger(__name__)


DEFAULT_DB_NAME = "irm"


class MongoManager:
    """MongoDB connection manager: one tz-aware MongoClient for the alert store database."""

    def __init__(self, mongo_uri: str, db_name: str = DEFAULT_DB_NAME):
        self._mongo_uri = mongo_uri
        self._db_name = db_name
        self._client: Optional[MongoClient] = None
        self._lock = RLock()

    def connect(self) -> None:
        """Initialize the Mongo client if needed."""
        with self._lock:
            if self._client is not None:
                return
            # MongoClient is thread-safe and manages internal pooling.
            self._client = MongoClient(self._mongo_uri, connect=True, tz_aware=True)

    # PUBLIC_INTERFACE
    def ping(self, timeout_ms: int = 1500) -> bool:
        """
        Ping the configured MongoDB to validate connectivity.

        Used by startup validation and the /healthz endpoint.
        """
        try:
            if self._client is None:
                self.connect()
            assert self._client is not None
            self._client.admin.command("ping", maxTimeMS=int(max(250, timeout_ms)))
            return True
        except PyMongoError:
            logger.exception("Mongo ping failed (PyMongoError)")
            return False
        except Exception:
            logger.exception("Mongo ping failed (unexpected)")
            return False

    def close(self) -> None:
        """Close the Mongo client."""
        with self._lock:
            if self._client is not None:
                try:
                    self._client.close()
                except Exception:
                    logger.exception("Error closing MongoClient")
                self._client = None

    def db(self) -> Database:
        """Return the alert store database handle."""
        if self._client is None:
            self.connect()
        assert self._client is not None
        return self._client[self._db_name]

    def alerts(self) -> Collection:
        """Return the alerts collection."""
        return self.db()["alerts"]

    def init_indexes(self) -> None:
        """
        Create required indexes (idempotent).

        The unique fingerprint index is what settles concurrent first inserts of the same alert.
        """
        col = self.alerts()
        col.create_index([("fingerprint", ASCENDING)], unique=True, name="uniq_alerts_fingerprint")
        col.create_index([("status", ASCENDING)], name="idx_alerts_status")
        col.create_index([("createdAt", DESCENDING)], name="idx_alerts_createdAt_desc")
