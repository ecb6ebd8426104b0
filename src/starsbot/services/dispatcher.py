"""Command dispatcher: route one inbound event to its handler.

Classification order (first match wins):
1. pre-checkout query       -> approve
2. no chat message          -> nothing to do
3. successful payment       -> record Stars earned, stop
4. everything else          -> record interaction + profile, then route the
                               text behind a "working" placeholder

Each event is handled independently. Errors never escape dispatch().
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator, Protocol

from starsbot.domain.access import AccessPolicy, AccessTier, Locale
from starsbot.domain.catalog import CatalogError, ContentCatalog, ContentKind
from starsbot.domain.commands import (
    Broadcast,
    Command,
    ContentRequest,
    SendAdvertisement,
    StartInfo,
    bypasses_gatekeeping,
    parse_command,
)
from starsbot.infra.registry import RegistryUnavailableError, StatField, UserProfile
from starsbot.observability.logging import get_logger
from starsbot.observability.redaction import hash_identifier, safe_log_context
from starsbot.telegram import texts
from starsbot.telegram.client import TelegramAPIError, result_message_id
from starsbot.telegram.models import ChatMessage, InboundEvent, PreCheckoutQuery

from .broadcast import BroadcastEngine
from .cleanup import RetractionScheduler
from .delivery import DeliveryEngine, DeliveryError, DeliveryRequest

logger = get_logger(__name__)


class DispatchTelegram(Protocol):
    def send_text(self, chat_id: int, text: str, reply_markup: dict[str, Any] | None = None) -> dict[str, Any]: ...

    def send_text_with_buttons(self, chat_id: int, text: str, buttons: list[tuple[str, str]]) -> dict[str, Any]: ...

    def delete_message(self, chat_id: int, message_id: int) -> dict[str, Any]: ...

    def answer_pre_checkout_query(
        self, query_id: str, ok: bool, error_message: str | None = None
    ) -> dict[str, Any]: ...


class StatsRegistry(Protocol):
    def is_configured(self) -> bool: ...

    def upsert_user(self, profile: UserProfile) -> bool: ...

    def increment_stat(self, stat: StatField, amount: int = 1) -> None: ...


class CommandDispatcher:
    def __init__(
        self,
        *,
        telegram: DispatchTelegram,
        registry: StatsRegistry,
        access: AccessPolicy,
        catalog: ContentCatalog,
        delivery: DeliveryEngine,
        broadcast: BroadcastEngine,
        retractions: RetractionScheduler,
        channel_link: str,
        contact_link: str,
    ) -> None:
        self._telegram = telegram
        self._registry = registry
        self._access = access
        self._catalog = catalog
        self._delivery = delivery
        self._broadcast = broadcast
        self._retractions = retractions
        self._channel_link = channel_link
        self._contact_link = contact_link

    # -- entry point -------------------------------------------------------

    def dispatch(self, event: InboundEvent | None) -> None:
        """Handle one normalized update. Never raises."""
        try:
            if isinstance(event, PreCheckoutQuery):
                self._approve_pre_checkout(event)
                return
            if event is None:
                return
            if event.payment is not None:
                self._record_payment(event)
                return

            self._record_interaction(event)
            with self._working_placeholder(event.chat_id):
                self._route(event)
        except Exception:
            logger.exception(
                "dispatch failed",
                extra={"extra_fields": safe_log_context(event_type=type(event).__name__)},
            )

    # -- payments ----------------------------------------------------------

    def _approve_pre_checkout(self, query: PreCheckoutQuery) -> None:
        # The price was fixed when the paid media was sent; always accept
        try:
            self._telegram.answer_pre_checkout_query(query.query_id, True)
        except TelegramAPIError as e:
            logger.error(
                "failed to answer pre-checkout query",
                extra={"extra_fields": safe_log_context(error=e.reason)},
            )

    def _record_payment(self, message: ChatMessage) -> None:
        amount = message.payment.total_amount
        logger.info(
            "payment received",
            extra={
                "extra_fields": safe_log_context(
                    user_hash=hash_identifier(message.sender.id),
                    amount=amount,
                    currency=message.payment.currency,
                )
            },
        )
        self._increment("stars_earned", amount)

    # -- statistics --------------------------------------------------------

    def _increment(self, stat: StatField, amount: int = 1) -> None:
        if not self._registry.is_configured():
            return
        try:
            self._registry.increment_stat(stat, amount)
        except RegistryUnavailableError as e:
            logger.warning(
                "failed to record statistic",
                extra={"extra_fields": safe_log_context(stat=stat, error=str(e))},
            )

    def _record_interaction(self, message: ChatMessage) -> None:
        if not self._registry.is_configured():
            return
        self._increment("interactions")
        sender = message.sender
        try:
            self._registry.upsert_user(
                UserProfile(
                    id=sender.id,
                    first_name=sender.first_name,
                    last_name=sender.last_name,
                    username=sender.username,
                    language_code=sender.locale,
                )
            )
        except RegistryUnavailableError as e:
            logger.warning(
                "failed to save user",
                extra={
                    "extra_fields": safe_log_context(
                        user_hash=hash_identifier(sender.id), error=str(e)
                    )
                },
            )

    # -- routing -----------------------------------------------------------

    @contextmanager
    def _working_placeholder(self, chat_id: int) -> Iterator[None]:
        """Show a placeholder while the request runs; always delete it."""
        placeholder_id = None
        try:
            placeholder_id = result_message_id(
                self._telegram.send_text(chat_id, texts.WORKING_PLACEHOLDER)
            )
        except TelegramAPIError as e:
            logger.warning(
                "failed to send placeholder",
                extra={"extra_fields": safe_log_context(error=e.reason)},
            )
        try:
            yield
        finally:
            if placeholder_id is not None:
                try:
                    self._telegram.delete_message(chat_id, placeholder_id)
                except TelegramAPIError as e:
                    logger.warning(
                        "failed to delete placeholder",
                        extra={"extra_fields": safe_log_context(error=e.reason)},
                    )

    def _route(self, message: ChatMessage) -> None:
        sender = message.sender
        locale = sender.locale
        is_admin = self._access.is_admin(sender.id)
        command: Command = parse_command(message.text, is_admin)

        tier = AccessTier.ADMIN if is_admin else None
        if not is_admin and not bypasses_gatekeeping(command):
            tier = self._access.resolve_tier(sender.id)
            if tier is AccessTier.UNSUBSCRIBED:
                self._send_subscription_prompt(message.chat_id, locale)
                return

        logger.info(
            "routing message",
            extra={
                "extra_fields": safe_log_context(
                    user_hash=hash_identifier(sender.id),
                    command=type(command).__name__,
                    locale=locale,
                    tier=tier.value if tier else "bypass",
                )
            },
        )

        if isinstance(command, StartInfo):
            self._handle_start(message.chat_id, locale, is_admin)
        elif isinstance(command, Broadcast):
            self._broadcast.broadcast(sender.id, command.body, command.partition)
        elif isinstance(command, SendAdvertisement):
            self._broadcast.send_advertisement(sender.id, test_only=command.test_only)
        elif isinstance(command, ContentRequest):
            self._handle_content(message, command.kind, locale, tier)

    def _send_subscription_prompt(self, chat_id: int, locale: Locale) -> None:
        self._telegram.send_text_with_buttons(
            chat_id,
            texts.localized("subscription_required", locale),
            [(texts.CHANNEL_BUTTON, self._channel_link)],
        )

    def _handle_start(self, chat_id: int, locale: Locale, is_admin: bool) -> None:
        self._telegram.send_text(chat_id, self._catalog.start_message(locale))
        if is_admin:
            self._telegram.send_text(
                chat_id,
                texts.admin_panel(self._catalog.prices, self._registry.is_configured()),
            )

    # -- content -----------------------------------------------------------

    def _handle_content(
        self,
        message: ChatMessage,
        kind: ContentKind,
        locale: Locale,
        tier: AccessTier,
    ) -> None:
        try:
            asset = self._catalog.pick_asset(kind, locale)
            caption = self._catalog.pick_caption(locale)
            if kind is not ContentKind.AUDIO:
                caption = texts.format_caption(caption, message.sender.first_name)
            receipt = self._delivery.deliver(
                DeliveryRequest(
                    chat_id=message.chat_id,
                    kind=kind,
                    asset=asset,
                    caption=caption,
                    tier=tier,
                )
            )
        except (DeliveryError, CatalogError) as e:
            logger.error(
                "content delivery failed",
                extra={
                    "extra_fields": safe_log_context(
                        chat_hash=hash_identifier(message.chat_id),
                        kind=kind.value,
                        error=str(e),
                    )
                },
            )
            self._apologize(message.chat_id, locale)
            self._notify_admin(
                "Failed to send content",
                {"chatId": message.chat_id, "messageText": message.text, "error": str(e)},
            )
            return

        if receipt.retractable:
            self._retractions.schedule_retraction(message.chat_id, receipt.message_id)

    def _apologize(self, chat_id: int, locale: Locale) -> None:
        try:
            self._telegram.send_text_with_buttons(
                chat_id,
                texts.localized("delivery_error", locale),
                [
                    (texts.CONTACT_BUTTON, self._contact_link),
                    (texts.TELEGRAM_BUTTON, self._channel_link),
                ],
            )
        except TelegramAPIError as e:
            logger.warning(
                "failed to send error reply",
                extra={"extra_fields": safe_log_context(error=e.reason)},
            )

    def _notify_admin(self, error: str, context: dict[str, Any]) -> None:
        admin_id = self._access.admin_user_id
        if admin_id is None:
            return
        try:
            self._telegram.send_text(admin_id, texts.admin_error_report(error, context))
        except TelegramAPIError as e:
            logger.warning(
                "failed to notify admin",
                extra={"extra_fields": safe_log_context(error=e.reason)},
            )
