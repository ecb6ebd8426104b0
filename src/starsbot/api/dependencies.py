"""Request-scoped accessors for the bot runtime."""

from fastapi import Request

from starsbot.runtime import BotRuntime


def get_runtime(request: Request) -> BotRuntime:
    """Runtime installed by the app lifespan."""
    return request.app.state.runtime
