"""Shared rate limiter for the expensive generation routes."""

from slowapi import Limiter
from slowapi.util import get_remote_address

from scenecast.core.config import get_settings

limiter = Limiter(
    key_func=get_remote_address,
    enabled=get_settings().rate_limit_enabled,
)


def generation_rate_limit() -> str:
    """Limit string for model-backed routes, read from settings at request time."""
    return get_settings().generation_rate_limit
