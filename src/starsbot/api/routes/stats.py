"""Usage statistics endpoint."""

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from starsbot.api.auth import verify_bearer
from starsbot.api.dependencies import get_runtime
from starsbot.infra.registry import RegistryNotConfiguredError, RegistryUnavailableError
from starsbot.observability.logging import get_logger
from starsbot.observability.redaction import safe_log_context
from starsbot.runtime import BotRuntime
from starsbot.services.stats import build_stats_report

router = APIRouter(tags=["stats"])

logger = get_logger(__name__)

_NOT_CONFIGURED = {
    "error": "Database not configured",
    "message": "Set DATABASE_URL to enable user tracking and statistics.",
    "configured": False,
}


@router.get("/stats")
def get_stats(
    request: Request,
    days: int = Query(7, ge=1, le=365),
    runtime: BotRuntime = Depends(get_runtime),
) -> JSONResponse:
    """Totals, the last `days` days and their change over the previous period.

    Returns:
        200 with the report.
        401 if STATS_API_TOKEN is set and the bearer token does not match.
        503 if the registry is not configured.
        500 if the registry cannot be read.
    """
    if not verify_bearer(request, runtime.settings.stats_api_token):
        return JSONResponse(status_code=401, content={"error": "unauthorized"})

    if not runtime.registry.is_configured():
        return JSONResponse(status_code=503, content=_NOT_CONFIGURED)

    try:
        report = build_stats_report(runtime.registry, days)
    except RegistryNotConfiguredError:
        return JSONResponse(status_code=503, content=_NOT_CONFIGURED)
    except RegistryUnavailableError as e:
        logger.error(
            "failed to fetch stats",
            extra={"extra_fields": safe_log_context(error=str(e))},
        )
        return JSONResponse(
            status_code=500,
            content={"error": "Failed to fetch stats", "message": str(e)},
        )

    return JSONResponse(status_code=200, content=report)
