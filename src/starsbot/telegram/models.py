"""Normalized inbound events, independent of the Telegram wire format."""

from dataclasses import dataclass
from typing import Union

from starsbot.domain.access import Locale, resolve_locale


@dataclass(frozen=True)
class Sender:
    """Identity of the user behind an event."""

    id: int
    first_name: str = ""
    last_name: str | None = None
    username: str | None = None
    language_code: str | None = None

    @property
    def locale(self) -> Locale:
        return resolve_locale(self.language_code)


@dataclass(frozen=True)
class PaymentConfirmation:
    """Completed Stars payment attached to a chat message."""

    currency: str
    total_amount: int
    payload: str


@dataclass(frozen=True)
class ChatMessage:
    """Inbound chat message. `text` is empty when the message has none."""

    update_id: int
    message_id: int
    chat_id: int
    sender: Sender
    text: str = ""
    payment: PaymentConfirmation | None = None


@dataclass(frozen=True)
class PreCheckoutQuery:
    """Pending payment awaiting approval."""

    update_id: int
    query_id: str
    sender: Sender
    currency: str
    total_amount: int
    payload: str


InboundEvent = Union[ChatMessage, PreCheckoutQuery]
