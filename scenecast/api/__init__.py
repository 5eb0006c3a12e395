"""SceneCast HTTP API."""

from scenecast.api.main import app, start_server

__all__ = ["app", "start_server"]
