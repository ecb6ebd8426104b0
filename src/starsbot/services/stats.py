"""Usage statistics report for the stats endpoint."""

from __future__ import annotations

from typing import Any

from starsbot.infra.registry import DailyStats, Registry


def calculate_change(current: int, previous: int) -> int:
    """Percentage change, rounded. A start from zero counts as +100%."""
    if previous == 0:
        return 100 if current > 0 else 0
    return round((current - previous) / previous * 100)


def _sum(stats: list[DailyStats], attr: str) -> int:
    return sum(getattr(day, attr) for day in stats)


def build_stats_report(registry: Registry, days: int) -> dict[str, Any]:
    """Totals, the last `days` days and their change against the days before.

    Raises:
        RegistryUnavailableError: If the registry cannot be read.
    """
    totals = registry.get_totals()
    window = registry.get_stats_for_period(days * 2)
    previous, current = window[:days], window[days:]
    users = registry.get_all_users()

    period: dict[str, Any] = {"days": days}
    changes: dict[str, int] = {}
    for attr, key in (
        ("new_users", "newUsers"),
        ("interactions", "interactions"),
        ("stars_earned", "starsEarned"),
    ):
        period[key] = _sum(current, attr)
        changes[key] = calculate_change(period[key], _sum(previous, attr))
    period["changes"] = changes

    return {
        "configured": True,
        "total": totals.to_dict(),
        "period": period,
        "dailyStats": [day.to_dict() for day in current],
        "users": [user.to_dict() for user in users],
    }
