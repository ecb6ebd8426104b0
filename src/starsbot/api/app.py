"""ASGI entry point: uvicorn starsbot.api.app:app"""

from .factory import create_app

app = create_app()
