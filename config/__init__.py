"""Configuration package for the live interview service."""
from .routes import (
    DIALOGUE_ROUTE_KEY,
    SCORING_ROUTE_KEY,
    AppConfig,
    LlmRoute,
    load_config,
    load_route,
    resolve_route,
)
from .settings import Settings, settings

__all__ = [
    "DIALOGUE_ROUTE_KEY",
    "SCORING_ROUTE_KEY",
    "AppConfig",
    "LlmRoute",
    "load_config",
    "load_route",
    "resolve_route",
    "Settings",
    "settings",
]
