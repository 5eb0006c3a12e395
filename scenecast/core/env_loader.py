"""
Centralized environment variable loading for SceneCast.

Loads ``.env`` once so provider keys are visible to the settings layer
and to the CLI before the app starts.

Usage:
    from scenecast.core.env_loader import ensure_env_loaded
    ensure_env_loaded()
"""

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

_env_loaded = False


def get_project_root() -> Path:
    """Get the project root directory (where .env is located)."""
    # scenecast/core/env_loader.py -> two levels up
    return Path(__file__).parent.parent.parent


def ensure_env_loaded(override: bool = False) -> bool:
    """
    Ensure environment variables from .env are loaded.

    Args:
        override: If True, .env values replace variables already set

    Returns:
        True if .env was loaded now, False if already loaded or not found
    """
    global _env_loaded

    if _env_loaded:
        return False

    env_path = get_project_root() / ".env"
    if not env_path.exists():
        env_path = Path.cwd() / ".env"
        if not env_path.exists():
            return False

    load_dotenv(env_path, override=override)
    _env_loaded = True
    return True


def get_api_key(key_name: str, fallback_keys: Optional[list[str]] = None) -> Optional[str]:
    """
    Get an API key from the environment, with fallback options.

    Args:
        key_name: Primary environment variable name
        fallback_keys: Fallback variable names to try in order

    Returns:
        API key value or None if not found
    """
    ensure_env_loaded()

    value = os.getenv(key_name)
    if value:
        return value

    for fallback in fallback_keys or []:
        value = os.getenv(fallback)
        if value:
            return value

    return None
