"""End-to-end scenarios for the command dispatcher with in-memory doubles."""

from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from starsbot.runtime import build_runtime
from starsbot.settings import BotSettings
from starsbot.telegram import texts
from starsbot.telegram.client import TelegramAPIError
from starsbot.telegram.models import ChatMessage, PaymentConfirmation, PreCheckoutQuery, Sender

from .helpers import ADMIN_ID, CHANNEL_ID, FakeClock, FakeTelegram, InMemoryRegistry

START = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)
CHANNEL_LINK = "https://t.me/+channel"
CONTACT_LINK = "https://example.com/contact"


class PlaceholderFailingTelegram(FakeTelegram):
    def send_text(self, chat_id, text, reply_markup=None):
        if text == texts.WORKING_PLACEHOLDER:
            raise TelegramAPIError("sendMessage", "Timeout")
        return super().send_text(chat_id, text, reply_markup)


@pytest.fixture
def clock():
    return FakeClock(START)


@pytest.fixture
def runtime(telegram, registry, catalog, clock):
    settings = BotSettings(
        admin_user_id=ADMIN_ID,
        channel_id=CHANNEL_ID,
        channel_link=CHANNEL_LINK,
        contact_link=CONTACT_LINK,
        retraction_delay_minutes=60,
    )
    return build_runtime(settings, telegram=telegram, registry=registry, catalog=catalog, clock=clock)


def _message(text, user_id=42, language_code="en", first_name="Anna", payment=None):
    return ChatMessage(
        update_id=1,
        message_id=10,
        chat_id=user_id,
        sender=Sender(id=user_id, first_name=first_name, language_code=language_code),
        text=text,
        payment=payment,
    )


def _non_placeholder_texts(telegram):
    return [
        call for call in telegram.calls_to("sendMessage") if call["text"] != texts.WORKING_PLACEHOLDER
    ]


class TestPaymentsAndIgnoredEvents:
    def test_pre_checkout_always_approved(self, runtime, telegram):
        query = PreCheckoutQuery(
            update_id=1,
            query_id="q-1",
            sender=Sender(id=42),
            currency="XTR",
            total_amount=50,
            payload="photo_42_1",
        )
        runtime.dispatcher.dispatch(query)
        assert telegram.calls == [("answerPreCheckoutQuery", {"query_id": "q-1", "ok": True})]

    def test_none_is_ignored(self, runtime, telegram, registry):
        runtime.dispatcher.dispatch(None)
        assert telegram.calls == []
        assert registry.stats == {}

    def test_payment_confirmation_never_routes(self, runtime, telegram, registry):
        """A payment message only records Stars, even if its text looks like a command."""
        paid = PaymentConfirmation(currency="XTR", total_amount=75, payload="audio_42_1")
        runtime.dispatcher.dispatch(_message("video", payment=paid))

        assert telegram.calls == []
        assert registry.stat("stars_earned") == 75
        assert registry.stat("interactions") == 0


class TestGatekeeping:
    def test_unsubscribed_user_gets_prompt_only(self, runtime, telegram):
        runtime.dispatcher.dispatch(_message("photo"))

        assert telegram.calls_to("sendPaidMedia") == []
        (prompt,) = _non_placeholder_texts(telegram)
        assert prompt["text"] == texts.localized("subscription_required", "en")
        assert prompt["buttons"] == [(texts.CHANNEL_BUTTON, CHANNEL_LINK)]

    def test_prompt_is_localized(self, runtime, telegram):
        runtime.dispatcher.dispatch(_message("foto", language_code="it"))
        (prompt,) = _non_placeholder_texts(telegram)
        assert prompt["text"] == texts.localized("subscription_required", "it")

    def test_start_bypasses_membership(self, runtime, telegram):
        runtime.dispatcher.dispatch(_message("/start"))
        assert telegram.calls_to("getChatMember") == []
        assert [c["text"] for c in _non_placeholder_texts(telegram)] == ["Hi"]

    def test_unsubscribed_non_admin_broadcast_attempt(self, runtime, telegram):
        runtime.dispatcher.dispatch(_message("!toEveryone! hi"))
        assert telegram.calls_to("sendPaidMedia") == []
        assert all(c["chat_id"] == 42 for c in telegram.calls_to("sendMessage"))


class TestContentRequests:
    def test_subscribed_user_gets_paid_photo(self, runtime, telegram):
        telegram.member_status[42] = "member"
        runtime.dispatcher.dispatch(_message("hello"))

        (paid,) = telegram.calls_to("sendPaidMedia")
        assert paid["media_type"] == "photo"
        assert paid["star_count"] == 50
        assert paid["caption"] == "Anna, look at this"

    def test_paid_delivery_is_retracted_after_an_hour(self, runtime, telegram, clock):
        telegram.member_status[42] = "member"
        runtime.dispatcher.dispatch(_message("video please"))

        (pending,) = runtime.retractions.pending_retractions()
        assert pending.chat_id == 42
        assert pending.fire_at == START + timedelta(minutes=60)

        clock.advance(minutes=60)
        runtime.scheduler.run_due()
        deletes = telegram.calls_to("deleteMessage")
        assert {"chat_id": 42, "message_id": pending.message_id} in deletes

    def test_audio_caption_not_personalized(self, runtime, telegram):
        telegram.member_status[42] = "member"
        runtime.dispatcher.dispatch(_message("audio", language_code="es"))
        (paid,) = telegram.calls_to("sendPaidMedia")
        assert paid["file_id"] == "audio-es"
        assert paid["caption"] == "Mira esto"

    def test_non_admin_broadcast_syntax_is_photo_request(self, runtime, telegram):
        telegram.member_status[42] = "member"
        runtime.dispatcher.dispatch(_message("!toEveryone! hi"))
        (paid,) = telegram.calls_to("sendPaidMedia")
        assert paid["media_type"] == "photo"

    def test_unknown_language_uses_english(self, runtime, telegram):
        telegram.member_status[42] = "member"
        runtime.dispatcher.dispatch(_message("audio", language_code="de"))
        (paid,) = telegram.calls_to("sendPaidMedia")
        assert paid["file_id"] == "audio-en"

    def test_admin_gets_free_content_never_retracted(self, runtime, telegram):
        runtime.dispatcher.dispatch(_message("video", user_id=ADMIN_ID))
        assert telegram.calls_to("sendPaidMedia") == []
        assert len(telegram.calls_to("sendVideo")) == 1
        assert runtime.retractions.pending_retractions() == []

    def test_delivery_failure_apologizes_and_notifies_admin(self, runtime, telegram):
        telegram.member_status[42] = "member"
        telegram.fail_methods.add("sendPaidMedia")
        runtime.dispatcher.dispatch(_message("photo"))

        user_msgs = [c for c in _non_placeholder_texts(telegram) if c["chat_id"] == 42]
        (apology,) = user_msgs
        assert apology["text"] == texts.localized("delivery_error", "en")
        assert apology["buttons"] == [
            (texts.CONTACT_BUTTON, CONTACT_LINK),
            (texts.TELEGRAM_BUTTON, CHANNEL_LINK),
        ]
        (report,) = [c for c in telegram.calls_to("sendMessage") if c["chat_id"] == ADMIN_ID]
        assert "Failed to send content" in report["text"]
        assert runtime.retractions.pending_retractions() == []


class TestPlaceholder:
    def test_placeholder_sent_first_and_deleted_last(self, runtime, telegram):
        telegram.member_status[42] = "member"
        runtime.dispatcher.dispatch(_message("photo"))

        first_method, first = telegram.calls[0]
        assert first_method == "sendMessage"
        assert first["text"] == texts.WORKING_PLACEHOLDER
        last_method, last = telegram.calls[-1]
        assert last_method == "deleteMessage"
        assert last["chat_id"] == 42

    def test_placeholder_deleted_on_unexpected_error(self, runtime, telegram):
        with patch.object(runtime.catalog.__class__, "start_message", side_effect=RuntimeError("boom")):
            runtime.dispatcher.dispatch(_message("/start"))
        assert telegram.methods[0] == "sendMessage"
        assert telegram.methods[-1] == "deleteMessage"

    def test_placeholder_send_failure_still_routes(self, registry, catalog, clock):
        telegram = PlaceholderFailingTelegram()
        runtime = build_runtime(
            BotSettings(admin_user_id=ADMIN_ID, channel_id=CHANNEL_ID),
            telegram=telegram,
            registry=registry,
            catalog=catalog,
            clock=clock,
        )
        runtime.dispatcher.dispatch(_message("/start"))
        assert telegram.calls_to("deleteMessage") == []
        assert [c["text"] for c in telegram.calls_to("sendMessage")] == ["Hi"]


class TestAdminCommands:
    def test_start_shows_admin_panel(self, runtime, telegram, catalog):
        runtime.dispatcher.dispatch(_message("/start", user_id=ADMIN_ID))
        sent = [c["text"] for c in _non_placeholder_texts(telegram)]
        assert sent == ["Hi", texts.admin_panel(catalog.prices, True)]

    def test_broadcast_excludes_admin(self, runtime, telegram, registry):
        registry.seed(1, "en")
        registry.seed(2, "it")
        runtime.dispatcher.dispatch(_message("!toEveryone! hi all", user_id=ADMIN_ID))

        hi = [c["chat_id"] for c in telegram.calls_to("sendMessage") if c["text"] == "hi all"]
        assert sorted(hi) == [1, 2]

    def test_testadv_only_to_admin_without_report(self, runtime, telegram, registry):
        registry.seed(1, "en")
        runtime.dispatcher.dispatch(_message("/testadv", user_id=ADMIN_ID))

        assert [c["chat_id"] for c in telegram.calls_to("sendPhotoWithButton")] == [ADMIN_ID]
        assert _non_placeholder_texts(telegram) == []


class TestStatistics:
    def test_interaction_and_new_user_recorded(self, runtime, registry):
        runtime.dispatcher.dispatch(_message("/start", language_code="it"))
        assert registry.stat("interactions") == 1
        assert registry.stat("new_users") == 1
        assert registry.get_user_ids_by_locale("it") == {42}

    def test_returning_user_not_counted_twice(self, runtime, registry):
        runtime.dispatcher.dispatch(_message("/start"))
        runtime.dispatcher.dispatch(_message("/info"))
        assert registry.stat("interactions") == 2
        assert registry.stat("new_users") == 1

    def test_broken_registry_does_not_block_replies(self, runtime, telegram, registry):
        registry.broken = True
        runtime.dispatcher.dispatch(_message("/start"))
        assert [c["text"] for c in _non_placeholder_texts(telegram)] == ["Hi"]

    def test_unconfigured_registry_skips_statistics(self, telegram, catalog, clock):
        registry = InMemoryRegistry(configured=False)
        runtime = build_runtime(
            BotSettings(admin_user_id=ADMIN_ID, channel_id=CHANNEL_ID),
            telegram=telegram,
            registry=registry,
            catalog=catalog,
            clock=clock,
        )
        runtime.dispatcher.dispatch(_message("/start"))
        assert registry.stats == {}
        assert [c["text"] for c in _non_placeholder_texts(telegram)] == ["Hi"]
