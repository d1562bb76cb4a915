"""
Database lifecycle for the case ledger.

``Database.initialize`` opens the shared connection and creates the schema;
``Database.shutdown`` closes it. The ``CaseRepo`` instance handed out by
``Database.cases`` shares the same connection and performance monitor.
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Dict
import time

from modledger.database.case_repo import CaseRepo
from modledger.database.db_connection import ConnectionManager, db_connection
from modledger.database.db_perf_mon import DatabasePerformanceMonitor
from modledger.database.db_schema import SchemaManager
from modledger.util.logger import get_logger

logger = get_logger("database")


class Database:
    """
    Coordinates connection, schema and the case ledger repository.

    Lifecycle:
        1. ``await initialize(path)`` at program startup
        2. Use ``cases`` for ledger operations
        3. ``await shutdown()`` at program end
    """

    def __init__(
        self,
        connection: ConnectionManager = db_connection,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._connection = connection
        self.db_perf_mon = DatabasePerformanceMonitor()
        self.cases = CaseRepo(connection, clock=clock, performance=self.db_perf_mon)
        self._initialized = False

    async def initialize(self, db_path: Path) -> bool:
        """
        Open the database and create the schema. Returns True on success.
        """
        if self._initialized:
            logger.debug("[DATABASE] Already initialized, skipping")
            return True

        try:
            await self._connection.open(db_path)
            await SchemaManager.initialize_schema(self._connection.connection)
        except Exception as e:
            logger.error("[DATABASE] Database initialization failed: %s", e)
            return False

        self._initialized = True
        logger.info("[DATABASE] Database initialized at %s", db_path)
        return True

    async def shutdown(self) -> None:
        if not self._initialized:
            return
        await self._connection.close()
        self._initialized = False
        logger.info("[DATABASE] Database shutdown complete")

    def get_db_performance_stats(self) -> Dict[str, Dict[str, float]]:
        return self.db_perf_mon.get_statistics()


# Global Database instance
database = Database()


def get_db() -> Database:
    """Return the global Database instance."""
    return database
