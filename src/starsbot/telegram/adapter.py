"""Telegram update adapter - validate and normalize webhook payloads."""

from typing import Any

from pydantic import ValidationError

from .models import ChatMessage, InboundEvent, PaymentConfirmation, PreCheckoutQuery, Sender
from .schemas import TelegramUpdate, TelegramUser


class InvalidUpdateError(Exception):
    """Raised when the webhook body is not a Telegram update."""

    pass


def parse_update(payload: Any) -> TelegramUpdate:
    """Validate the raw JSON body.

    Raises:
        InvalidUpdateError: If the body does not have the shape of an update.
    """
    if not isinstance(payload, dict):
        raise InvalidUpdateError("update must be a JSON object")
    try:
        return TelegramUpdate.model_validate(payload)
    except ValidationError as e:
        raise InvalidUpdateError(f"invalid update: {e.error_count()} validation error(s)") from e


def _to_sender(user: TelegramUser) -> Sender:
    return Sender(
        id=user.id,
        first_name=user.first_name,
        last_name=user.last_name,
        username=user.username,
        language_code=user.language_code,
    )


def normalize(update: TelegramUpdate) -> InboundEvent | None:
    """Turn a validated update into an InboundEvent.

    Pre-checkout queries take precedence over messages. Updates carrying
    neither (edited messages, channel posts, ...) and messages without a
    sender normalize to None.
    """
    query = update.pre_checkout_query
    if query is not None:
        return PreCheckoutQuery(
            update_id=update.update_id,
            query_id=query.id,
            sender=_to_sender(query.from_),
            currency=query.currency,
            total_amount=query.total_amount,
            payload=query.invoice_payload,
        )

    message = update.message
    if message is None or message.from_ is None:
        return None

    payment = None
    if message.successful_payment is not None:
        paid = message.successful_payment
        payment = PaymentConfirmation(
            currency=paid.currency,
            total_amount=paid.total_amount,
            payload=paid.invoice_payload,
        )

    return ChatMessage(
        update_id=update.update_id,
        message_id=message.message_id,
        chat_id=message.chat.id,
        sender=_to_sender(message.from_),
        text=message.text or "",
        payment=payment,
    )
