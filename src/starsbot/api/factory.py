"""FastAPI application factory."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response

from starsbot.observability.correlation import (
    CORRELATION_ID_HEADER,
    correlation_scope,
    generate_correlation_id,
)
from starsbot.observability.logging import get_logger
from starsbot.runtime import BotRuntime, build_runtime
from starsbot.settings import get_settings

from .routers import public
from .routes import stats, webhooks_telegram

logger = get_logger(__name__)


def create_app(runtime: BotRuntime | None = None) -> FastAPI:
    """Create the FastAPI app.

    Args:
        runtime: Prebuilt object graph. If None, it is built from the
                 environment when the app starts.

    Returns:
        Configured FastAPI application.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        bot = runtime or build_runtime(get_settings())
        app.state.runtime = bot
        bot.start()
        logger.info("bot runtime started")
        try:
            yield
        finally:
            bot.shutdown()
            logger.info("bot runtime stopped")

    app = FastAPI(
        title="Stars Bot",
        docs_url=None,
        redoc_url=None,
        lifespan=lifespan,
    )
    if runtime is not None:
        app.state.runtime = runtime

    @app.middleware("http")
    async def correlation_id_middleware(request: Request, call_next) -> Response:
        cid = request.headers.get(CORRELATION_ID_HEADER) or generate_correlation_id()
        with correlation_scope(cid):
            response = await call_next(request)
        response.headers[CORRELATION_ID_HEADER] = cid
        return response

    app.include_router(public.router)
    app.include_router(webhooks_telegram.router)
    app.include_router(stats.router)

    return app
