"""Localized bot texts and HTML helpers.

Texts are keyed by name, then by locale ("it", "es", "en"). Every lookup
falls back to "en".
"""

import html
import json
import re
from typing import Any

WORKING_PLACEHOLDER = "💬"

_LINE_BREAKS = [
    (re.compile(r"<br\s*/?>", re.IGNORECASE), "\n"),
    (re.compile(r"\\n"), "\n"),
    (re.compile(r"/n"), "\n"),
]

LOCALIZED: dict[str, dict[str, str]] = {
    "subscription_required": {
        "it": (
            "⚠💋 Per giocare con me, devi essere iscritto al canale ufficiale di Cleo e Leo:\n"
            "✨ Iscriviti subito cliccando il bottone qui sotto👇🏻\n\n"
            "⚠🔞 Attenzione, cliccando il bottone per iscriverti al canale dichiari di essere "
            "maggiorenne. I contenuti del canale di Cleo e Leo, e quelli che ti verranno inviati "
            "attraverso questo bot sono contenuti erotici, esclusivamente per un pubblico adulto."
        ),
        "es": (
            "⚠💋 Para jugar conmigo, debes estar suscrito al canal oficial de Cleo y Leo:\n"
            "✨ ¡Suscríbete ahora haciendo clic en el botón de abajo👇🏻\n\n"
            "⚠🔞 Atención, al hacer clic en el botón para suscribirte al canal declaras ser mayor "
            "de edad. Los contenidos del canal de Cleo y Leo, y los que te serán enviados a través "
            "de este bot son contenidos eróticos, exclusivamente para un público adulto."
        ),
        "en": (
            "⚠💋 To play with me, you must be subscribed to the official Cleo and Leo channel:\n"
            "✨ Subscribe now by clicking the button below👇🏻\n\n"
            "⚠🔞 Warning, by clicking the button to subscribe to the channel you declare that you "
            "are of legal age. The contents of the Cleo and Leo channel, and those that will be "
            "sent to you through this bot are erotic content, exclusively for an adult audience."
        ),
    },
    "delivery_error": {
        "it": "Mi dispiace, c'è stato un errore. Prova più tardi o contatta Cleo e Leo:",
        "es": "Lo siento, hubo un error. Inténtalo más tarde o contacta a Cleo y Leo:",
        "en": "I'm sorry, there was an error. Try again later or contact Cleo and Leo:",
    },
}

CHANNEL_BUTTON = "✨ Accedi al Canale 🔞"
CONTACT_BUTTON = "🔗 OnlyFans"
TELEGRAM_BUTTON = "📱 Telegram"

PARTITION_LABELS: dict[str, str] = {
    "all": "all chats",
    "it": "Italian chats",
    "es": "Spanish chats",
    "other": "English/other chats",
}

BROADCAST_NOT_CONFIGURED = (
    "❌ Database not configured. Cannot send broadcast.\n\n"
    "Please configure the DATABASE_URL environment variable."
)

ADVERTISEMENT_NOT_CONFIGURED = (
    "❌ Database not configured. Cannot send advertisement to all users.\n\n"
    "Please configure the DATABASE_URL environment variable."
)

_ADMIN_PANEL = """
<b>👑 Admin Commands:</b>

<b>Broadcast Messages:</b>
• <code>!toEveryone!</code> - Send to all users
• <code>!toEveryIt!</code> - Send to Italian users
• <code>!toEveryEs!</code> - Send to Spanish users
• <code>!toEveryEn!</code> - Send to other users

<b>Advertisement:</b>
• <code>/sendadv</code> - Send ad to all users
• <code>/testadv</code> - Test ad (send only to you)

<b>Example:</b>
<code>!toEveryone! Hello everyone!</code>

<b>Prices:</b>
• Photo: {photo} ⭐
• Audio: {audio} ⭐
• Video: {video} ⭐

<b>Database Status:</b> {db_status}
"""


def localized(name: str, locale: str) -> str:
    """Look up a localized text, falling back to English."""
    texts = LOCALIZED[name]
    return texts.get(locale) or texts["en"]


def parse_html_content(text: str) -> str:
    """Normalize line breaks written as <br>, literal \\n or /n."""
    for pattern, replacement in _LINE_BREAKS:
        text = pattern.sub(replacement, text)
    return text


def format_caption(caption: str, first_name: str | None = None) -> str:
    """Personalize a caption with the user's first name.

    "Look at this" -> "Anna, look at this"; without a name the caption is
    returned capitalized.
    """
    if not caption:
        return caption
    if first_name:
        return f"{html.escape(first_name)}, {caption[0].lower()}{caption[1:]}"
    return caption[0].upper() + caption[1:]


def admin_panel(prices: dict[str, int], registry_configured: bool) -> str:
    return _ADMIN_PANEL.format(
        photo=prices.get("photo", 0),
        audio=prices.get("audio", 0),
        video=prices.get("video", 0),
        db_status="✅ Connected" if registry_configured else "❌ Not configured",
    )


def broadcast_report(partition: str, succeeded: int, failed: int) -> str:
    label = PARTITION_LABELS.get(partition, partition)
    return (
        f"Message sent to {label}:\n"
        f"✔️ Successfully sent to {succeeded} chats\n"
        f"❌ Failed for {failed} chats"
    )


def advertisement_report(succeeded: int, failed: int) -> str:
    return (
        "Advertisement sent:\n"
        f"✔️ Successfully sent to {succeeded} chats\n"
        f"❌ Failed for {failed} chats"
    )


def admin_error_report(error: str, context: dict[str, Any]) -> str:
    """Error notification for the admin chat."""
    details = html.escape(json.dumps(context, indent=2, default=str, ensure_ascii=False))
    return (
        "🚨 <b>Error Report</b>\n\n"
        f"<b>Error:</b> {html.escape(error)}\n\n"
        f"<b>Context:</b>\n<code>{details}</code>"
    )
