"""Broadcast engine: fan a text out to an audience partition.

Sends are sequential and independent; one failed recipient only bumps the
failure counter. The requester never receives their own broadcast and gets
a report once the loop is done.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

from starsbot.domain.catalog import ContentCatalog
from starsbot.domain.partitions import Partition, RecipientSource, resolve_recipients
from starsbot.infra.registry import RegistryUnavailableError
from starsbot.observability.logging import get_logger
from starsbot.observability.redaction import hash_identifier, safe_log_context
from starsbot.telegram import texts
from starsbot.telegram.client import TelegramAPIError, is_ok

logger = get_logger(__name__)


class BroadcastSender(Protocol):
    def send_text(self, chat_id: int, text: str, reply_markup: dict[str, Any] | None = None) -> dict[str, Any]: ...

    def send_photo_with_button(
        self,
        chat_id: int,
        file_id: str,
        caption: str,
        button_text: str,
        button_url: str,
    ) -> dict[str, Any]: ...


class BroadcastRegistry(RecipientSource, Protocol):
    def is_configured(self) -> bool: ...


@dataclass(frozen=True)
class BroadcastReport:
    target: str
    succeeded: int = 0
    failed: int = 0
    configuration_error: bool = False

    @property
    def attempted(self) -> int:
        return self.succeeded + self.failed


class BroadcastEngine:
    def __init__(
        self,
        telegram: BroadcastSender,
        registry: BroadcastRegistry,
        catalog: ContentCatalog,
    ) -> None:
        self._telegram = telegram
        self._registry = registry
        self._catalog = catalog

    def _notify(self, chat_id: int, text: str) -> None:
        """Best-effort message to the requester."""
        try:
            self._telegram.send_text(chat_id, text)
        except TelegramAPIError as e:
            logger.warning(
                "failed to notify broadcast requester",
                extra={"extra_fields": safe_log_context(error=e.reason)},
            )

    def _configuration_error(self, requester_id: int, target: str, text: str) -> BroadcastReport:
        logger.warning(
            "broadcast aborted, registry unavailable",
            extra={"extra_fields": safe_log_context(target=target)},
        )
        self._notify(requester_id, text)
        return BroadcastReport(target=target, configuration_error=True)

    def broadcast(self, requester_id: int, body: str, partition: Partition) -> BroadcastReport:
        """Send `body` to every recipient of `partition` except the requester."""
        if not self._registry.is_configured():
            return self._configuration_error(
                requester_id, partition.value, texts.BROADCAST_NOT_CONFIGURED
            )
        try:
            recipients = resolve_recipients(partition, self._registry)
        except RegistryUnavailableError:
            return self._configuration_error(
                requester_id, partition.value, texts.BROADCAST_NOT_CONFIGURED
            )

        succeeded = failed = 0
        for user_id in sorted(recipients):
            if user_id == requester_id:
                continue
            try:
                response = self._telegram.send_text(user_id, body)
            except TelegramAPIError:
                failed += 1
                continue
            if is_ok(response):
                succeeded += 1
            else:
                failed += 1

        report = BroadcastReport(target=partition.value, succeeded=succeeded, failed=failed)
        logger.info(
            "broadcast finished",
            extra={
                "extra_fields": safe_log_context(
                    target=report.target, succeeded=succeeded, failed=failed
                )
            },
        )
        self._notify(requester_id, texts.broadcast_report(partition.value, succeeded, failed))
        return report

    def send_advertisement(self, requester_id: int, test_only: bool = False) -> BroadcastReport:
        """Send the advertisement photo with its call-to-action button.

        In test mode only the requester receives it and no report is sent;
        the registry is not needed. Otherwise every known user receives it
        (requester included) and the requester gets a report.
        """
        if test_only:
            recipients = {requester_id}
        else:
            if not self._registry.is_configured():
                return self._configuration_error(
                    requester_id, "advertisement", texts.ADVERTISEMENT_NOT_CONFIGURED
                )
            try:
                recipients = self._registry.get_all_user_ids()
            except RegistryUnavailableError:
                return self._configuration_error(
                    requester_id, "advertisement", texts.ADVERTISEMENT_NOT_CONFIGURED
                )

        adv = self._catalog.advertisement("en")
        caption = texts.parse_html_content(adv.caption)
        succeeded = failed = 0
        for user_id in sorted(recipients):
            try:
                response = self._telegram.send_photo_with_button(
                    user_id, adv.file_id, caption, adv.cta, adv.url
                )
            except TelegramAPIError:
                failed += 1
                continue
            if is_ok(response):
                succeeded += 1
            else:
                failed += 1

        logger.info(
            "advertisement finished",
            extra={
                "extra_fields": safe_log_context(
                    requester_hash=hash_identifier(requester_id),
                    test_only=test_only,
                    succeeded=succeeded,
                    failed=failed,
                )
            },
        )
        if not test_only:
            self._notify(requester_id, texts.advertisement_report(succeeded, failed))
        return BroadcastReport(target="advertisement", succeeded=succeeded, failed=failed)
