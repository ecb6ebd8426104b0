"""Shared test doubles for bot tests.

These are NOT fixtures - conftest.py wraps them. Test modules may also build
them directly when they need non-default behavior.
"""

from __future__ import annotations

import logging
import random
from datetime import date, timedelta
from typing import Any

from starsbot.domain.catalog import Advertisement, ContentCatalog
from starsbot.infra.registry import (
    ALL_USERS_SET,
    STAT_FIELDS,
    DailyStats,
    RegistryNotConfiguredError,
    RegistryUnavailableError,
    Totals,
    UserProfile,
    locale_set,
)
from starsbot.infra.time import last_n_days
from starsbot.telegram.client import TelegramAPIError

ADMIN_ID = 1000
CHANNEL_ID = -100123

TEST_PRICES = {"photo": 50, "audio": 75, "video": 150}


class FakeTelegram:
    """Records every Bot API call as (method, args dict).

    - fail_for: chat ids whose sends raise TelegramAPIError
    - reject_for: chat ids whose sends return {"ok": false}
    - member_status: user id -> getChatMember status (missing means "left")
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.fail_for: set[int] = set()
        self.reject_for: set[int] = set()
        self.fail_methods: set[str] = set()
        self.member_status: dict[int, str] = {}
        self._next_message_id = 500

    def _respond(self, method: str, chat_id: int | None, **args: Any) -> dict[str, Any]:
        self.calls.append((method, {"chat_id": chat_id, **args}))
        if method in self.fail_methods or chat_id in self.fail_for:
            raise TelegramAPIError(method, "ConnectionError")
        if chat_id in self.reject_for:
            return {"ok": False, "error_code": 403, "description": "Forbidden: bot was blocked"}
        self._next_message_id += 1
        return {"ok": True, "result": {"message_id": self._next_message_id}}

    def calls_to(self, method: str) -> list[dict[str, Any]]:
        return [args for name, args in self.calls if name == method]

    @property
    def methods(self) -> list[str]:
        return [name for name, _ in self.calls]

    def send_text(self, chat_id, text, reply_markup=None):
        return self._respond("sendMessage", chat_id, text=text, reply_markup=reply_markup)

    def send_text_with_buttons(self, chat_id, text, buttons):
        return self._respond("sendMessage", chat_id, text=text, buttons=list(buttons))

    def delete_message(self, chat_id, message_id):
        return self._respond("deleteMessage", chat_id, message_id=message_id)

    def send_photo(self, chat_id, file_id, caption):
        return self._respond("sendPhoto", chat_id, file_id=file_id, caption=caption)

    def send_audio(self, chat_id, file_id, caption):
        return self._respond("sendAudio", chat_id, file_id=file_id, caption=caption)

    def send_video(self, chat_id, file_id, caption):
        return self._respond("sendVideo", chat_id, file_id=file_id, caption=caption)

    def send_paid_media(self, chat_id, *, media_type, file_id, caption, star_count, payload):
        return self._respond(
            "sendPaidMedia",
            chat_id,
            media_type=media_type,
            file_id=file_id,
            caption=caption,
            star_count=star_count,
            payload=payload,
        )

    def send_photo_with_button(self, chat_id, file_id, caption, button_text, button_url):
        return self._respond(
            "sendPhotoWithButton",
            chat_id,
            file_id=file_id,
            caption=caption,
            button_text=button_text,
            button_url=button_url,
        )

    def get_chat_member(self, chat_id, user_id):
        self.calls.append(("getChatMember", {"chat_id": chat_id, "user_id": user_id}))
        if "getChatMember" in self.fail_methods:
            raise TelegramAPIError("getChatMember", "Timeout")
        status = self.member_status.get(user_id, "left")
        return {"ok": True, "result": {"status": status, "user": {"id": user_id}}}

    def answer_pre_checkout_query(self, query_id, ok, error_message=None):
        self.calls.append(("answerPreCheckoutQuery", {"query_id": query_id, "ok": ok}))
        return {"ok": True, "result": True}


class InMemoryRegistry:
    """Dict-backed registry with the same contract as PostgresRegistry."""

    def __init__(self, configured: bool = True, today: date = date(2026, 3, 10)) -> None:
        self.configured = configured
        self.broken = False
        self.today_value = today
        self.users: dict[int, UserProfile] = {}
        self.sets: dict[str, set[int]] = {}
        self.stats: dict[tuple[date, str], int] = {}

    def _check(self) -> None:
        if not self.configured:
            raise RegistryNotConfiguredError()
        if self.broken:
            raise RegistryUnavailableError("registry query failed: OperationalError")

    def is_configured(self) -> bool:
        return self.configured

    def today(self) -> date:
        return self.today_value

    def upsert_user(self, profile: UserProfile) -> bool:
        self._check()
        created = profile.id not in self.users
        self.users[profile.id] = profile
        if created:
            self.sets.setdefault(ALL_USERS_SET, set()).add(profile.id)
            self.sets.setdefault(locale_set(profile.language_code), set()).add(profile.id)
            self.increment_stat("new_users")
        return created

    def get_user(self, user_id: int) -> UserProfile | None:
        self._check()
        return self.users.get(user_id)

    def get_all_users(self) -> list[UserProfile]:
        self._check()
        return list(self.users.values())

    def add_to_set(self, set_name: str, user_id: int) -> None:
        self._check()
        self.sets.setdefault(set_name, set()).add(user_id)

    def set_members(self, set_name: str) -> set[int]:
        self._check()
        return set(self.sets.get(set_name, set()))

    def get_all_user_ids(self) -> set[int]:
        return self.set_members(ALL_USERS_SET)

    def get_user_ids_by_locale(self, locale: str) -> set[int]:
        return self.set_members(locale_set(locale))

    def increment_stat(self, stat, amount=1, day=None) -> None:
        self._check()
        if stat not in STAT_FIELDS:
            raise ValueError(f"Unknown statistic: {stat}")
        key = (day or self.today_value, stat)
        self.stats[key] = self.stats.get(key, 0) + amount

    def get_daily_stats(self, day: date) -> DailyStats:
        return self.get_stats_for_period(1, today=day)[0]

    def get_stats_for_period(self, days: int, today: date | None = None) -> list[DailyStats]:
        self._check()
        if days < 1:
            raise ValueError("days must be >= 1")
        return [
            DailyStats(
                date=day,
                new_users=self.stats.get((day, "new_users"), 0),
                interactions=self.stats.get((day, "interactions"), 0),
                stars_earned=self.stats.get((day, "stars_earned"), 0),
            )
            for day in last_n_days(days, today or self.today_value)
        ]

    def get_totals(self) -> Totals:
        self._check()
        sums: dict[str, int] = {}
        for (_, stat), value in self.stats.items():
            sums[stat] = sums.get(stat, 0) + value
        return Totals(
            total_users=len(self.sets.get(ALL_USERS_SET, set())),
            total_interactions=sums.get("interactions", 0),
            total_stars=sums.get("stars_earned", 0),
        )

    def seed(self, user_id: int, locale: str = "en") -> None:
        """Register a user without touching statistics."""
        self.users[user_id] = UserProfile(id=user_id, language_code=locale)
        self.sets.setdefault(ALL_USERS_SET, set()).add(user_id)
        self.sets.setdefault(locale_set(locale), set()).add(user_id)

    def stat(self, stat: str, day: date | None = None) -> int:
        return self.stats.get((day or self.today_value, stat), 0)


def make_catalog(seed: int = 7) -> ContentCatalog:
    """One asset per pool so picks are deterministic."""
    advertisements = {
        locale: Advertisement(
            file_id=f"adv-{locale}",
            caption=f"<b>Ad {locale}</b><br>line two",
            cta="Join",
            url="https://t.me/example",
        )
        for locale in ("it", "es", "en")
    }
    return ContentCatalog(
        photos=("photo-1",),
        videos=("video-1",),
        audio={"it": ("audio-it",), "es": ("audio-es",), "en": ("audio-en",)},
        captions={"it": ("Guarda qui",), "es": ("Mira esto",), "en": ("Look at this",)},
        start_messages={"it": "Ciao", "es": "Hola", "en": "Hi"},
        advertisements=advertisements,
        prices=dict(TEST_PRICES),
        rng=random.Random(seed),
    )


class FakeClock:
    """Manually advanced clock for scheduler tests."""

    def __init__(self, start) -> None:
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class LogRecorder(logging.Handler):
    """Collects records from a logger that does not propagate."""

    def __init__(self) -> None:
        super().__init__(level=logging.DEBUG)
        self.records: list[logging.LogRecord] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(record)

    @property
    def messages(self) -> list[str]:
        return [record.getMessage() for record in self.records]
