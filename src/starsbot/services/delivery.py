"""Delivery engine: send one content item, paid or free.

Admins get the plain media message (no Stars, never retracted). Everybody
else gets a paid-media message priced per content kind; its message id is
returned so the caller can schedule retraction.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Protocol

from starsbot.domain.access import AccessTier
from starsbot.domain.catalog import ContentKind
from starsbot.infra.time import epoch_millis, utc_now
from starsbot.observability.logging import get_logger
from starsbot.observability.redaction import hash_identifier, safe_log_context
from starsbot.telegram.client import TelegramAPIError, is_ok, result_message_id

logger = get_logger(__name__)


class DeliveryError(Exception):
    """Raised when the content could not be delivered."""

    def __init__(self, kind: ContentKind, reason: str) -> None:
        super().__init__(f"{kind.value} delivery failed: {reason}")
        self.kind = kind
        self.reason = reason


class MediaSender(Protocol):
    def send_photo(self, chat_id: int, file_id: str, caption: str) -> dict[str, Any]: ...

    def send_audio(self, chat_id: int, file_id: str, caption: str) -> dict[str, Any]: ...

    def send_video(self, chat_id: int, file_id: str, caption: str) -> dict[str, Any]: ...

    def send_paid_media(
        self,
        chat_id: int,
        *,
        media_type: str,
        file_id: str,
        caption: str,
        star_count: int,
        payload: str,
    ) -> dict[str, Any]: ...


@dataclass(frozen=True)
class DeliveryRequest:
    chat_id: int
    kind: ContentKind
    asset: str
    caption: str
    tier: AccessTier


@dataclass(frozen=True)
class DeliveryReceipt:
    """Outcome of a delivery.

    `message_id` is only set for paid (non-admin) deliveries, which are the
    only ones eligible for retraction.
    """

    success: bool
    message_id: int | None = None

    @property
    def retractable(self) -> bool:
        return self.success and self.message_id is not None


def payment_payload(kind: ContentKind, chat_id: int, now: datetime | None = None) -> str:
    """Per-send payload token: "<kind>_<chat_id>_<epoch ms>"."""
    return f"{kind.value}_{chat_id}_{epoch_millis(now)}"


class DeliveryEngine:
    def __init__(
        self,
        telegram: MediaSender,
        prices: dict[str, int],
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._telegram = telegram
        self._prices = prices
        self._clock = clock

    def _send_free(self, request: DeliveryRequest) -> dict[str, Any]:
        senders = {
            ContentKind.PHOTO: self._telegram.send_photo,
            ContentKind.AUDIO: self._telegram.send_audio,
            ContentKind.VIDEO: self._telegram.send_video,
        }
        return senders[request.kind](request.chat_id, request.asset, request.caption)

    def _send_paid(self, request: DeliveryRequest) -> dict[str, Any]:
        return self._telegram.send_paid_media(
            request.chat_id,
            media_type=request.kind.value,
            file_id=request.asset,
            caption=request.caption,
            star_count=self._prices[request.kind.value],
            payload=payment_payload(request.kind, request.chat_id, self._clock()),
        )

    def deliver(self, request: DeliveryRequest) -> DeliveryReceipt:
        """Send the content described by `request`.

        Raises:
            DeliveryError: If the Bot API call failed or was rejected.
        """
        is_admin = request.tier is AccessTier.ADMIN
        log_ctx = safe_log_context(
            chat_hash=hash_identifier(request.chat_id),
            kind=request.kind.value,
            paid=not is_admin,
        )

        try:
            response = self._send_free(request) if is_admin else self._send_paid(request)
        except TelegramAPIError as e:
            raise DeliveryError(request.kind, e.reason) from e

        if not is_ok(response):
            raise DeliveryError(request.kind, str(response.get("description", "not ok")))

        logger.info("content delivered", extra={"extra_fields": log_ctx})

        if is_admin:
            return DeliveryReceipt(success=True)
        return DeliveryReceipt(success=True, message_id=result_message_id(response))
