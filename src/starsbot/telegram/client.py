"""Telegram Bot API client.

Every method is a single POST returning the decoded `{"ok": ..., "result": ...}`
body. Non-ok bodies are logged and returned as-is; transport failures and
undecodable bodies raise TelegramAPIError. Nothing is retried.

Security: NEVER log message text, captions or the bot token. Chat ids are
logged as hashes.
"""

from __future__ import annotations

from typing import Any

import requests

from starsbot.observability.correlation import get_correlation_id
from starsbot.observability.logging import get_logger
from starsbot.observability.redaction import hash_identifier, safe_log_context
from starsbot.settings import BotSettings

from .texts import parse_html_content

logger = get_logger(__name__)


class TelegramAPIError(Exception):
    """Raised when a Bot API call could not be completed."""

    def __init__(self, method: str, reason: str) -> None:
        super().__init__(f"{method} failed: {reason}")
        self.method = method
        self.reason = reason


def is_ok(response: dict[str, Any] | None) -> bool:
    """True if a Bot API response reports success."""
    return bool(response) and bool(response.get("ok"))


def result_message_id(response: dict[str, Any] | None) -> int | None:
    """Extract result.message_id from a successful send, if present."""
    if not is_ok(response):
        return None
    result = response.get("result")
    if isinstance(result, dict) and isinstance(result.get("message_id"), int):
        return result["message_id"]
    return None


def _url_button(text: str, url: str) -> dict[str, Any]:
    return {"inline_keyboard": [[{"text": text, "url": url}]]}


class TelegramClient:
    """Thin wrapper over the Bot API methods the bot uses.

    Usage:
        client = TelegramClient.from_settings(get_settings())
        client.send_text(chat_id, "hello")
    """

    def __init__(
        self,
        token: str,
        *,
        api_base: str = "https://api.telegram.org",
        timeout: int = 10,
        session: requests.Session | None = None,
    ) -> None:
        if not token:
            raise RuntimeError("Missing Telegram config: TELEGRAM_BOT_TOKEN required")
        self._base_url = f"{api_base.rstrip('/')}/bot{token}"
        self._timeout = timeout
        self._session = session or requests.Session()

    @classmethod
    def from_settings(cls, settings: BotSettings) -> "TelegramClient":
        return cls(
            settings.bot_token,
            api_base=settings.api_base,
            timeout=settings.http_timeout,
        )

    def call(self, method: str, body: dict[str, Any]) -> dict[str, Any]:
        """POST one Bot API method.

        Raises:
            TelegramAPIError: On network errors, timeouts or non-JSON bodies.
        """
        log_ctx = safe_log_context(
            correlationId=get_correlation_id(),
            method=method,
            chat_hash=hash_identifier(body["chat_id"]) if "chat_id" in body else None,
        )

        try:
            resp = self._session.post(
                f"{self._base_url}/{method}", json=body, timeout=self._timeout
            )
        except requests.RequestException as e:
            logger.error(
                "telegram request failed",
                extra={"extra_fields": {**log_ctx, "error_type": type(e).__name__}},
            )
            raise TelegramAPIError(method, type(e).__name__) from e

        try:
            data = resp.json()
        except ValueError as e:
            logger.error(
                "telegram response not json",
                extra={"extra_fields": {**log_ctx, "status_code": str(resp.status_code)}},
            )
            raise TelegramAPIError(method, f"HTTP {resp.status_code}") from e

        if not isinstance(data, dict):
            raise TelegramAPIError(method, "unexpected response shape")

        if not data.get("ok"):
            logger.warning(
                "telegram api error",
                extra={
                    "extra_fields": {
                        **log_ctx,
                        **safe_log_context(
                            error_code=data.get("error_code"),
                            description=data.get("description", ""),
                        ),
                    }
                },
            )
        return data

    # -- messages ---------------------------------------------------------

    def send_text(
        self,
        chat_id: int,
        text: str,
        reply_markup: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {
            "chat_id": chat_id,
            "text": parse_html_content(text),
            "parse_mode": "HTML",
            "disable_web_page_preview": True,
        }
        if reply_markup:
            body["reply_markup"] = reply_markup
        return self.call("sendMessage", body)

    def send_text_with_buttons(
        self,
        chat_id: int,
        text: str,
        buttons: list[tuple[str, str]],
    ) -> dict[str, Any]:
        """Send text with one URL button per row."""
        keyboard = {"inline_keyboard": [[{"text": label, "url": url}] for label, url in buttons]}
        return self.send_text(chat_id, text, reply_markup=keyboard)

    def delete_message(self, chat_id: int, message_id: int) -> dict[str, Any]:
        return self.call("deleteMessage", {"chat_id": chat_id, "message_id": message_id})

    # -- media ------------------------------------------------------------

    def _send_media(self, method: str, field: str, chat_id: int, file_id: str, caption: str) -> dict[str, Any]:
        return self.call(
            method,
            {
                "chat_id": chat_id,
                field: file_id,
                "caption": parse_html_content(caption),
                "parse_mode": "HTML",
                "protect_content": True,
            },
        )

    def send_photo(self, chat_id: int, file_id: str, caption: str) -> dict[str, Any]:
        return self._send_media("sendPhoto", "photo", chat_id, file_id, caption)

    def send_audio(self, chat_id: int, file_id: str, caption: str) -> dict[str, Any]:
        return self._send_media("sendAudio", "audio", chat_id, file_id, caption)

    def send_video(self, chat_id: int, file_id: str, caption: str) -> dict[str, Any]:
        return self._send_media("sendVideo", "video", chat_id, file_id, caption)

    def send_paid_media(
        self,
        chat_id: int,
        *,
        media_type: str,
        file_id: str,
        caption: str,
        star_count: int,
        payload: str,
    ) -> dict[str, Any]:
        """Send content that unlocks after paying `star_count` Stars."""
        return self.call(
            "sendPaidMedia",
            {
                "chat_id": chat_id,
                "star_count": star_count,
                "media": [{"type": media_type, "media": file_id}],
                "caption": parse_html_content(caption),
                "parse_mode": "HTML",
                "payload": payload,
                "protect_content": True,
            },
        )

    def send_photo_with_button(
        self,
        chat_id: int,
        file_id: str,
        caption: str,
        button_text: str,
        button_url: str,
    ) -> dict[str, Any]:
        return self.call(
            "sendPhoto",
            {
                "chat_id": chat_id,
                "photo": file_id,
                "caption": parse_html_content(caption),
                "parse_mode": "HTML",
                "protect_content": True,
                "reply_markup": _url_button(button_text, button_url),
            },
        )

    # -- membership and payments -----------------------------------------

    def get_chat_member(self, chat_id: int, user_id: int) -> dict[str, Any]:
        return self.call("getChatMember", {"chat_id": chat_id, "user_id": user_id})

    def answer_pre_checkout_query(
        self,
        query_id: str,
        ok: bool,
        error_message: str | None = None,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {"pre_checkout_query_id": query_id, "ok": ok}
        if error_message:
            body["error_message"] = error_message
        return self.call("answerPreCheckoutQuery", body)

    def set_webhook(self, url: str, secret_token: str | None = None) -> dict[str, Any]:
        body: dict[str, Any] = {
            "url": url,
            "allowed_updates": ["message", "pre_checkout_query"],
        }
        if secret_token:
            body["secret_token"] = secret_token
        return self.call("setWebhook", body)
