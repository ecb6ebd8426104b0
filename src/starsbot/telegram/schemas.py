"""Pydantic models for the subset of Telegram webhook updates the bot reads."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class TelegramUser(BaseModel):
    """Sender of a message or pre-checkout query."""

    id: int
    is_bot: bool = False
    first_name: str = ""
    last_name: Optional[str] = None
    username: Optional[str] = None
    language_code: Optional[str] = None


class TelegramChat(BaseModel):
    """Chat the message belongs to."""

    id: int
    type: Optional[str] = None


class TelegramSuccessfulPayment(BaseModel):
    """Service message content for a completed Stars payment."""

    currency: str
    total_amount: int
    invoice_payload: str = ""


class TelegramMessage(BaseModel):
    """Incoming chat message."""

    model_config = ConfigDict(populate_by_name=True)

    message_id: int
    from_: Optional[TelegramUser] = Field(default=None, alias="from")
    chat: TelegramChat
    text: Optional[str] = None
    successful_payment: Optional[TelegramSuccessfulPayment] = None


class TelegramPreCheckoutQuery(BaseModel):
    """Payment confirmation request sent before charging the user."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    from_: TelegramUser = Field(alias="from")
    currency: str
    total_amount: int
    invoice_payload: str = ""


class TelegramUpdate(BaseModel):
    """Top-level Telegram update payload."""

    update_id: int
    message: Optional[TelegramMessage] = None
    pre_checkout_query: Optional[TelegramPreCheckoutQuery] = None
