"""Register the bot's public webhook URL with Telegram.

Usage:
    TELEGRAM_BOT_TOKEN=... python scripts/set_webhook.py https://example.com/webhooks/telegram

Requires:
    - TELEGRAM_BOT_TOKEN
    - TELEGRAM_WEBHOOK_SECRET (optional) is registered as the secret token
"""

from __future__ import annotations

import os
import sys


def main() -> None:
    if len(sys.argv) < 2:
        print("Usage: python scripts/set_webhook.py <public_webhook_url>")
        sys.exit(2)

    url = sys.argv[1]
    if not url.startswith("https://"):
        print("ERROR: Telegram only delivers webhooks to https:// URLs")
        sys.exit(1)

    if not os.environ.get("TELEGRAM_BOT_TOKEN"):
        print("ERROR: TELEGRAM_BOT_TOKEN not set")
        sys.exit(1)

    # Import after env validation so a missing token doesn't blow up on import
    from starsbot.settings import get_settings
    from starsbot.telegram.client import TelegramAPIError, TelegramClient, is_ok

    settings = get_settings()
    client = TelegramClient.from_settings(settings)

    print(f"Registering webhook {url} ...")
    try:
        response = client.set_webhook(url, secret_token=settings.webhook_secret or None)
    except TelegramAPIError as e:
        print(f"ERROR: {e}")
        sys.exit(1)

    if not is_ok(response):
        print(f"ERROR: Telegram rejected the webhook: {response.get('description')}")
        sys.exit(1)

    print("Webhook registered.")


if __name__ == "__main__":
    main()
