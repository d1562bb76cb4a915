"""
Case ledger: persistent storage and queries for moderation cases.

Every enforcement or utility action becomes one row in ``cases``. Rows are
never deleted here and only ``reason`` is ever updated. Tempban expiry
bookkeeping lives in the ``tempban_expiries`` side table so the original
``tempban`` row stays untouched after the scheduler lifts the ban.

Not-found lookups return ``None``/``False``. Storage failures
(``aiosqlite.Error``, or ``RuntimeError`` when the connection is closed)
propagate to the caller.
"""

from __future__ import annotations

import time
from typing import Callable, Dict, List, Optional

import aiosqlite

from modledger.database.db_connection import ConnectionManager, db_connection
from modledger.database.db_perf_mon import DatabasePerformanceMonitor
from modledger.datatypes.case_datatypes import Case, CaseStats, CaseType, NewCase, UTILITY_CASE_TYPES
from modledger.datatypes.discord_datatypes import DiscordUsername, GuildID, UserID
from modledger.util.logger import get_logger

logger = get_logger("case_repo")

SECONDS_PER_DAY = 86400

# Category reported for warnings issued without one
DEFAULT_WARNING_CATEGORY = "general"

_CASE_COLUMNS = (
    "id, type, user_id, user_tag, moderator_id, moderator_tag, reason, duration, "
    "created_at, category, expires_at, threshold_triggered, guild_id"
)

# Same columns qualified for queries that join on ``cases c``
_JOINED_CASE_COLUMNS = ", ".join(
    f"c.{column} AS {column}" for column in (part.strip() for part in _CASE_COLUMNS.split(","))
)

_UTILITY_VALUES = tuple(sorted(case_type.value for case_type in UTILITY_CASE_TYPES))
_UTILITY_PLACEHOLDERS = ", ".join("?" for _ in _UTILITY_VALUES)


def row_to_case(row: aiosqlite.Row) -> Case:
    """Convert a ``cases`` row into a ``Case``."""
    return Case(
        id=int(row["id"]),
        case_type=CaseType(row["type"]),
        subject_id=UserID(row["user_id"]),
        subject_tag=DiscordUsername(row["user_tag"]),
        actor_id=UserID(row["moderator_id"]),
        actor_tag=DiscordUsername(row["moderator_tag"]),
        reason=row["reason"],
        duration_seconds=row["duration"],
        created_at=float(row["created_at"]),
        category=row["category"],
        expires_at=row["expires_at"],
        threshold_triggered=bool(row["threshold_triggered"]),
        guild_id=GuildID(row["guild_id"]) if row["guild_id"] else None,
    )


class CaseRepo:
    """
    Query surface over the ``cases`` table.

    Args:
        connection: Connection manager to read and write through.
        clock: Returns the current unix time in seconds. Injected so tests
            can place cases in the past.
        performance: Optional monitor that times every query.
    """

    def __init__(
        self,
        connection: ConnectionManager = db_connection,
        clock: Callable[[], float] = time.time,
        performance: DatabasePerformanceMonitor | None = None,
    ) -> None:
        self._connection = connection
        self._clock = clock
        self._performance = performance or DatabasePerformanceMonitor()

    @property
    def performance(self) -> DatabasePerformanceMonitor:
        return self._performance

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create_case(self, new_case: NewCase) -> int:
        """
        Insert a case and return its id. ``created_at`` is taken from the clock.

        Raises:
            ValueError: If the fields break the per-type invariants.
        """
        new_case.validate()
        created_at = self._clock()

        with self._performance.timed("create_case"):
            async with self._connection.transaction() as conn:
                cursor = await conn.execute(
                    """
                    INSERT INTO cases (type, user_id, user_tag, moderator_id, moderator_tag, reason,
                                       duration, created_at, category, expires_at, threshold_triggered, guild_id)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        new_case.case_type.value,
                        str(new_case.subject.user_id),
                        str(new_case.subject.tag),
                        str(new_case.actor.user_id),
                        str(new_case.actor.tag),
                        new_case.reason,
                        new_case.duration_seconds,
                        created_at,
                        new_case.category,
                        new_case.expires_at,
                        int(new_case.threshold_triggered),
                        str(new_case.guild_id) if new_case.guild_id is not None else None,
                    ),
                )
                case_id = int(cursor.lastrowid)

        logger.debug(
            "[CASE LEDGER] Created case #%d: %s on %s by %s",
            case_id,
            new_case.case_type.value,
            new_case.subject.user_id,
            new_case.actor.user_id,
        )
        return case_id

    async def update_reason(self, case_id: int, new_reason: str) -> bool:
        """Overwrite the reason of a case. Returns False if the case does not exist."""
        with self._performance.timed("update_reason"):
            async with self._connection.transaction() as conn:
                cursor = await conn.execute(
                    "UPDATE cases SET reason = ? WHERE id = ?",
                    (new_reason, case_id),
                )
                updated = cursor.rowcount > 0

        if updated:
            logger.debug("[CASE LEDGER] Updated reason of case #%d", case_id)
        return updated

    async def mark_tempban_processed(
        self,
        case_id: int,
        outcome: str,
        unban_case_id: Optional[int] = None,
    ) -> None:
        """Record that the expiry scheduler has handled a tempban case."""
        with self._performance.timed("mark_tempban_processed"):
            async with self._connection.transaction() as conn:
                await conn.execute(
                    """
                    INSERT INTO tempban_expiries (case_id, processed_at, outcome, unban_case_id)
                    VALUES (?, ?, ?, ?)
                    ON CONFLICT(case_id) DO UPDATE SET
                        processed_at  = excluded.processed_at,
                        outcome       = excluded.outcome,
                        unban_case_id = excluded.unban_case_id
                    """,
                    (case_id, self._clock(), outcome, unban_case_id),
                )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def _fetch_cases(self, query_name: str, sql: str, params: tuple = ()) -> List[Case]:
        with self._performance.timed(query_name):
            async with self._connection.read() as conn:
                cursor = await conn.execute(sql, params)
                rows = await cursor.fetchall()
        return [row_to_case(row) for row in rows]

    async def get_case(self, case_id: int) -> Optional[Case]:
        cases = await self._fetch_cases(
            "get_case",
            f"SELECT {_CASE_COLUMNS} FROM cases WHERE id = ?",
            (case_id,),
        )
        return cases[0] if cases else None

    async def query_cases_by_user(self, subject_id: UserID) -> List[Case]:
        """All cases for a subject, newest first."""
        return await self._fetch_cases(
            "query_cases_by_user",
            f"SELECT {_CASE_COLUMNS} FROM cases WHERE user_id = ? ORDER BY created_at DESC, id DESC",
            (str(subject_id),),
        )

    async def get_active_warnings(
        self,
        subject_id: UserID,
        decay_days: int = 0,
        category: Optional[str] = None,
    ) -> List[Case]:
        """
        ``warn`` cases that still count towards escalation, newest first.

        Args:
            subject_id: The warned user.
            decay_days: Warnings older than this many days are excluded.
                ``0`` disables decay so every warning counts.
            category: Restrict to warnings issued in this category.
        """
        sql = f"SELECT {_CASE_COLUMNS} FROM cases WHERE user_id = ? AND type = ?"
        params: list = [str(subject_id), CaseType.WARN.value]

        if decay_days > 0:
            sql += " AND created_at > ?"
            params.append(self._clock() - decay_days * SECONDS_PER_DAY)

        if category:
            sql += " AND category = ?"
            params.append(category)

        sql += " ORDER BY created_at DESC, id DESC"
        return await self._fetch_cases("get_active_warnings", sql, tuple(params))

    async def get_warning_counts_by_category(self, subject_id: UserID, decay_days: int = 0) -> Dict[str, int]:
        """Active warning counts per category; uncategorised warnings count as ``general``."""
        counts: Dict[str, int] = {}
        for warning in await self.get_active_warnings(subject_id, decay_days):
            key = warning.category or DEFAULT_WARNING_CATEGORY
            counts[key] = counts.get(key, 0) + 1
        return counts

    async def get_punishment_cases(self, subject_id: UserID) -> List[Case]:
        """Cases for a subject excluding purge, lock and unlock, newest first."""
        return await self._fetch_cases(
            "get_punishment_cases",
            f"SELECT {_CASE_COLUMNS} FROM cases WHERE user_id = ? AND type NOT IN ({_UTILITY_PLACEHOLDERS}) "
            "ORDER BY created_at DESC, id DESC",
            (str(subject_id), *_UTILITY_VALUES),
        )

    async def get_utility_actions(self, actor_id: Optional[UserID] = None) -> List[Case]:
        """Purge, lock and unlock cases, optionally only those performed by ``actor_id``."""
        sql = f"SELECT {_CASE_COLUMNS} FROM cases WHERE type IN ({_UTILITY_PLACEHOLDERS})"
        params: list = list(_UTILITY_VALUES)
        if actor_id is not None:
            sql += " AND moderator_id = ?"
            params.append(str(actor_id))
        sql += " ORDER BY created_at DESC, id DESC"
        return await self._fetch_cases("get_utility_actions", sql, tuple(params))

    async def get_expired_tempbans(self, now: Optional[float] = None) -> List[Case]:
        """
        ``tempban`` cases whose ``expires_at`` is at or before ``now`` and which
        the expiry scheduler has not processed yet, oldest expiry first.
        """
        if now is None:
            now = self._clock()
        return await self._fetch_cases(
            "get_expired_tempbans",
            f"""
            SELECT {_JOINED_CASE_COLUMNS}
            FROM cases c
            LEFT JOIN tempban_expiries e ON e.case_id = c.id
            WHERE c.type = ? AND c.expires_at IS NOT NULL AND c.expires_at <= ? AND e.case_id IS NULL
            ORDER BY c.expires_at ASC, c.id ASC
            """,
            (CaseType.TEMPBAN.value, now),
        )

    async def list_all_cases(self) -> List[Case]:
        return await self._fetch_cases(
            "list_all_cases",
            f"SELECT {_CASE_COLUMNS} FROM cases ORDER BY created_at DESC, id DESC",
        )

    async def get_case_stats(self, now: Optional[float] = None) -> CaseStats:
        """Totals by type plus the number of cases created in the last 24 hours."""
        if now is None:
            now = self._clock()

        with self._performance.timed("get_case_stats"):
            async with self._connection.read() as conn:
                cursor = await conn.execute("SELECT type, COUNT(*) FROM cases GROUP BY type")
                by_type = {row[0]: int(row[1]) for row in await cursor.fetchall()}
                cursor = await conn.execute(
                    "SELECT COUNT(*) FROM cases WHERE created_at >= ?",
                    (now - SECONDS_PER_DAY,),
                )
                recent_row = await cursor.fetchone()

        return CaseStats(
            total=sum(by_type.values()),
            bans=by_type.get(CaseType.BAN.value, 0),
            kicks=by_type.get(CaseType.KICK.value, 0),
            warns=by_type.get(CaseType.WARN.value, 0),
            timeouts=by_type.get(CaseType.TIMEOUT.value, 0),
            last_24h=int(recent_row[0]) if recent_row else 0,
        )
