"""Telegram webhook routes.

Telegram retries any non-2xx answer, so every well-formed update is
acknowledged with 200 regardless of what handling it produced. Only bodies
that are not Telegram updates at all are rejected.
"""

import hmac
from typing import Any

from fastapi import APIRouter, Depends, Header, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from starsbot.api.dependencies import get_runtime
from starsbot.observability.correlation import (
    correlation_id_for_update,
    correlation_scope,
    get_correlation_id,
)
from starsbot.observability.logging import get_logger
from starsbot.observability.redaction import safe_log_context
from starsbot.runtime import BotRuntime
from starsbot.telegram.adapter import InvalidUpdateError, normalize, parse_update

router = APIRouter(prefix="/webhooks/telegram", tags=["webhooks"])

logger = get_logger(__name__)

SECRET_HEADER = "X-Telegram-Bot-Api-Secret-Token"


def _rejected() -> JSONResponse:
    return JSONResponse(status_code=400, content={"ok": False})


@router.post("")
async def telegram_webhook(
    request: Request,
    runtime: BotRuntime = Depends(get_runtime),
    x_secret_token: str | None = Header(None, alias=SECRET_HEADER),
) -> JSONResponse:
    """Receive one Telegram update.

    Returns:
        200 {"ok": true} once the update has been handled (or ignored).
        400 {"ok": false} if the body is not a Telegram update.
    """
    expected_secret = runtime.settings.webhook_secret
    if expected_secret and not (
        x_secret_token and hmac.compare_digest(x_secret_token, expected_secret)
    ):
        logger.warning(
            "telegram webhook secret mismatch",
            extra={"extra_fields": safe_log_context(correlationId=get_correlation_id())},
        )
        return JSONResponse(status_code=200, content={"ok": True})

    try:
        payload: Any = await request.json()
    except ValueError:
        logger.warning(
            "invalid json body",
            extra={"extra_fields": safe_log_context(correlationId=get_correlation_id())},
        )
        return _rejected()

    try:
        update = parse_update(payload)
    except InvalidUpdateError as e:
        logger.warning(
            "invalid telegram update shape",
            extra={
                "extra_fields": safe_log_context(
                    correlationId=get_correlation_id(), error=str(e)
                )
            },
        )
        return _rejected()

    with correlation_scope(correlation_id_for_update(update.update_id)):
        event = normalize(update)
        logger.info(
            "telegram update received",
            extra={
                "extra_fields": safe_log_context(
                    correlationId=get_correlation_id(),
                    event_type=type(event).__name__,
                )
            },
        )
        # Telegram and database calls block; keep them off the event loop
        await run_in_threadpool(runtime.dispatcher.dispatch, event)

    return JSONResponse(status_code=200, content={"ok": True})


@router.get("")
def telegram_webhook_status(runtime: BotRuntime = Depends(get_runtime)) -> dict:
    """Liveness of the webhook plus registry state."""
    return {
        "status": "active",
        "message": "Telegram webhook endpoint",
        "database": "connected" if runtime.registry.is_configured() else "not configured",
    }
