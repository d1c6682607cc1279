"""FastAPI application exposing the collaborative scenario editor."""

from .app import create_app
from .settings import ScenarioApiSettings

__all__ = ["create_app", "ScenarioApiSettings"]
