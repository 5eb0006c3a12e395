"""Core infrastructure: settings, logging, exceptions and retry helpers."""

from scenecast.core.exceptions import SceneCastError
from scenecast.core.logging_config import get_logger, setup_logging, LogLevel

__all__ = ["SceneCastError", "get_logger", "setup_logging", "LogLevel"]
