"""User registry and per-day usage statistics.

Key-value style contract over PostgreSQL:
- bot_users: one row per Telegram user (profile + first/last activity)
- user_sets: named id sets ("all", "lang:it", "lang:es", "lang:en")
- daily_stats: (date, field) -> counter, dates bucketed in STATS_TIMEZONE

An empty DSN means the registry is not configured; every operation then
raises RegistryNotConfiguredError so callers can report it distinctly.
Driver failures surface as RegistryUnavailableError (its base class).
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Iterator, Literal, Protocol

import psycopg2
from psycopg2.extensions import cursor as PgCursor

from .db import fetchall, fetchone, txn
from .time import last_n_days, local_today, utc_now

StatField = Literal["new_users", "interactions", "stars_earned"]

STAT_FIELDS: tuple[StatField, ...] = ("new_users", "interactions", "stars_earned")

ALL_USERS_SET = "all"


def locale_set(locale: str) -> str:
    """Name of the id set holding users of one locale."""
    return f"lang:{locale}"


class RegistryUnavailableError(Exception):
    """Raised when the registry cannot serve a request."""


class RegistryNotConfiguredError(RegistryUnavailableError):
    """Raised when the registry has no backing database configured."""

    def __init__(self) -> None:
        super().__init__(
            "Registry is not configured. Set DATABASE_URL to enable users and statistics."
        )


@dataclass
class UserProfile:
    """Registry view of a Telegram user."""

    id: int
    first_name: str | None = None
    last_name: str | None = None
    username: str | None = None
    language_code: str = "en"
    started_at: datetime | None = None
    last_active_at: datetime | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "languageCode": self.language_code,
            "startedAt": self.started_at.isoformat() if self.started_at else None,
            "lastActiveAt": self.last_active_at.isoformat() if self.last_active_at else None,
        }


@dataclass
class DailyStats:
    """Counters for one statistics day."""

    date: date
    new_users: int = 0
    interactions: int = 0
    stars_earned: int = 0

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "newUsers": self.new_users,
            "interactions": self.interactions,
            "starsEarned": self.stars_earned,
        }


@dataclass
class Totals:
    """All-time aggregates."""

    total_users: int = 0
    total_interactions: int = 0
    total_stars: int = 0

    def to_dict(self) -> dict:
        return {
            "totalUsers": self.total_users,
            "totalInteractions": self.total_interactions,
            "totalStars": self.total_stars,
        }


class Registry(Protocol):
    """Operations the dispatcher and broadcast engine rely on."""

    def is_configured(self) -> bool: ...

    def upsert_user(self, profile: UserProfile) -> bool: ...

    def get_user(self, user_id: int) -> UserProfile | None: ...

    def get_all_users(self) -> list[UserProfile]: ...

    def add_to_set(self, set_name: str, user_id: int) -> None: ...

    def set_members(self, set_name: str) -> set[int]: ...

    def get_all_user_ids(self) -> set[int]: ...

    def get_user_ids_by_locale(self, locale: str) -> set[int]: ...

    def increment_stat(self, stat: StatField, amount: int = 1, day: date | None = None) -> None: ...

    def get_daily_stats(self, day: date) -> DailyStats: ...

    def get_stats_for_period(self, days: int, today: date | None = None) -> list[DailyStats]: ...

    def get_totals(self) -> Totals: ...


_INSERT_USER_SQL = """
INSERT INTO bot_users (id, username, first_name, last_name, language_code, started_at, last_active_at)
VALUES (%s, %s, %s, %s, %s, %s, %s)
ON CONFLICT (id) DO NOTHING
"""

_UPDATE_USER_SQL = """
UPDATE bot_users
SET username = %s, first_name = %s, last_name = %s, language_code = %s, last_active_at = %s
WHERE id = %s
"""

_SELECT_USER_COLUMNS = (
    "id, first_name, last_name, username, language_code, started_at, last_active_at"
)

_ADD_TO_SET_SQL = """
INSERT INTO user_sets (set_name, user_id)
VALUES (%s, %s)
ON CONFLICT (set_name, user_id) DO NOTHING
"""

_INCREMENT_STAT_SQL = """
INSERT INTO daily_stats (stat_date, field, value)
VALUES (%s, %s, %s)
ON CONFLICT (stat_date, field) DO UPDATE SET value = daily_stats.value + EXCLUDED.value
"""


def _row_to_profile(row: tuple) -> UserProfile:
    return UserProfile(
        id=int(row[0]),
        first_name=row[1],
        last_name=row[2],
        username=row[3],
        language_code=row[4],
        started_at=row[5],
        last_active_at=row[6],
    )


@dataclass
class PostgresRegistry:
    """Registry backed by PostgreSQL tables (see migrations/sql/001_registry.sql)."""

    dsn: str = ""
    tz_name: str = "Europe/Madrid"
    _today: date | None = field(default=None, repr=False)

    def is_configured(self) -> bool:
        return bool(self.dsn)

    @contextmanager
    def _session(self) -> Iterator[PgCursor]:
        """Transaction on the registry database; driver errors become RegistryUnavailableError."""
        if not self.dsn:
            raise RegistryNotConfiguredError()
        try:
            with txn(self.dsn) as cur:
                yield cur
        except psycopg2.Error as e:
            raise RegistryUnavailableError(f"registry query failed: {type(e).__name__}") from e

    def today(self) -> date:
        """Current statistics day."""
        return self._today or local_today(self.tz_name)

    def upsert_user(self, profile: UserProfile) -> bool:
        """Insert or refresh a user profile.

        First sight of a user also adds them to the "all" set and to the set
        of their locale, and counts a new user for today.

        Returns:
            True if the user was created by this call.
        """
        now = utc_now()
        with self._session() as cur:
            cur.execute(
                _INSERT_USER_SQL,
                (
                    profile.id,
                    profile.username,
                    profile.first_name,
                    profile.last_name,
                    profile.language_code,
                    now,
                    now,
                ),
            )
            created = cur.rowcount == 1
            if created:
                cur.execute(_ADD_TO_SET_SQL, (ALL_USERS_SET, profile.id))
                cur.execute(_ADD_TO_SET_SQL, (locale_set(profile.language_code), profile.id))
                cur.execute(_INCREMENT_STAT_SQL, (self.today(), "new_users", 1))
            else:
                cur.execute(
                    _UPDATE_USER_SQL,
                    (
                        profile.username,
                        profile.first_name,
                        profile.last_name,
                        profile.language_code,
                        now,
                        profile.id,
                    ),
                )
        return created

    def get_user(self, user_id: int) -> UserProfile | None:
        with self._session() as cur:
            row = fetchone(
                cur,
                f"SELECT {_SELECT_USER_COLUMNS} FROM bot_users WHERE id = %s",
                (user_id,),
            )
        return _row_to_profile(row) if row else None

    def get_all_users(self) -> list[UserProfile]:
        """All known users, most recently active first."""
        with self._session() as cur:
            rows = fetchall(
                cur,
                f"SELECT {_SELECT_USER_COLUMNS} FROM bot_users "
                "ORDER BY last_active_at DESC NULLS LAST",
            )
        return [_row_to_profile(row) for row in rows]

    def add_to_set(self, set_name: str, user_id: int) -> None:
        with self._session() as cur:
            cur.execute(_ADD_TO_SET_SQL, (set_name, user_id))

    def set_members(self, set_name: str) -> set[int]:
        with self._session() as cur:
            rows = fetchall(
                cur, "SELECT user_id FROM user_sets WHERE set_name = %s", (set_name,)
            )
        return {int(row[0]) for row in rows}

    def get_all_user_ids(self) -> set[int]:
        return self.set_members(ALL_USERS_SET)

    def get_user_ids_by_locale(self, locale: str) -> set[int]:
        return self.set_members(locale_set(locale))

    def increment_stat(self, stat: StatField, amount: int = 1, day: date | None = None) -> None:
        if stat not in STAT_FIELDS:
            raise ValueError(f"Unknown statistic: {stat}")
        with self._session() as cur:
            cur.execute(_INCREMENT_STAT_SQL, (day or self.today(), stat, amount))

    def get_daily_stats(self, day: date) -> DailyStats:
        return self.get_stats_for_period(1, today=day)[0]

    def get_stats_for_period(self, days: int, today: date | None = None) -> list[DailyStats]:
        """Per-day counters for the `days` days ending today, oldest first.

        Days without any recorded activity are returned as zeros.
        """
        if days < 1:
            raise ValueError("days must be >= 1")
        dates = last_n_days(days, today or self.today())
        by_date = {day: DailyStats(date=day) for day in dates}
        with self._session() as cur:
            rows = fetchall(
                cur,
                "SELECT stat_date, field, value FROM daily_stats "
                "WHERE stat_date BETWEEN %s AND %s",
                (dates[0], dates[-1]),
            )
        for stat_date, stat, value in rows:
            bucket = by_date.get(stat_date)
            if bucket is not None and stat in STAT_FIELDS:
                setattr(bucket, stat, int(value))
        return [by_date[day] for day in dates]

    def get_totals(self) -> Totals:
        with self._session() as cur:
            user_row = fetchone(
                cur, "SELECT COUNT(*) FROM user_sets WHERE set_name = %s", (ALL_USERS_SET,)
            )
            rows = fetchall(
                cur, "SELECT field, COALESCE(SUM(value), 0) FROM daily_stats GROUP BY field"
            )
        sums = {stat: int(value) for stat, value in rows}
        return Totals(
            total_users=int(user_row[0]) if user_row else 0,
            total_interactions=sums.get("interactions", 0),
            total_stars=sums.get("stars_earned", 0),
        )
