"""Access policy: locale normalization, admin detection and channel gating."""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal, Protocol

from starsbot.observability.logging import get_logger
from starsbot.observability.redaction import hash_identifier, safe_log_context
from starsbot.telegram.client import TelegramAPIError, is_ok

logger = get_logger(__name__)

Locale = Literal["it", "es", "en"]

SUPPORTED_LOCALES: tuple[Locale, ...] = ("it", "es", "en")

MEMBER_STATUSES = frozenset({"member", "administrator", "creator"})


def resolve_locale(language_code: str | None) -> Locale:
    """Map a Telegram language code to a supported locale.

    Only exact "it" and "es" are recognized; everything else, including a
    missing code, is "en".
    """
    if language_code == "it":
        return "it"
    if language_code == "es":
        return "es"
    return "en"


class AccessTier(str, Enum):
    ADMIN = "admin"
    SUBSCRIBED = "subscribed"
    UNSUBSCRIBED = "unsubscribed"


class MembershipLookup(Protocol):
    def get_chat_member(self, chat_id: int, user_id: int) -> dict[str, Any]: ...


class AccessPolicy:
    """Resolves the access tier of a sender.

    The admin is a single configured user id and never triggers a membership
    lookup. Everybody else must be a member of the gating channel; a failed
    lookup counts as not subscribed.
    """

    def __init__(
        self,
        telegram: MembershipLookup,
        *,
        admin_user_id: int | None,
        channel_id: int,
    ) -> None:
        self._telegram = telegram
        self._admin_user_id = admin_user_id
        self._channel_id = channel_id

    @property
    def admin_user_id(self) -> int | None:
        return self._admin_user_id

    def is_admin(self, user_id: int) -> bool:
        return self._admin_user_id is not None and user_id == self._admin_user_id

    def is_subscribed(self, user_id: int) -> bool:
        try:
            response = self._telegram.get_chat_member(self._channel_id, user_id)
        except TelegramAPIError as e:
            logger.warning(
                "membership lookup failed, treating as unsubscribed",
                extra={
                    "extra_fields": safe_log_context(
                        user_hash=hash_identifier(user_id), error=str(e)
                    )
                },
            )
            return False
        if not is_ok(response):
            return False
        result = response.get("result") or {}
        return result.get("status") in MEMBER_STATUSES

    def resolve_tier(self, user_id: int) -> AccessTier:
        if self.is_admin(user_id):
            return AccessTier.ADMIN
        if self.is_subscribed(user_id):
            return AccessTier.SUBSCRIBED
        return AccessTier.UNSUBSCRIBED
