"""
Startup validation and environment checks.

Validates provider keys and storage configuration before the server starts.
"""

from dataclasses import dataclass, field
from typing import List

from scenecast.core.config import Settings


@dataclass
class ValidationResult:
    """Result of environment validation."""
    valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


BLOB_BACKENDS = ("local", "supabase")


def validate_environment(settings: Settings) -> ValidationResult:
    """
    Validate the loaded settings.

    Checks:
    - At least one text provider key is set (scene streaming needs one)
    - The blob backend is known and, for Supabase, fully configured
    - Image provider keys are present (warnings only; requests may carry keys)
    """
    errors = []
    warnings = []

    providers = get_available_text_providers(settings)
    if not providers:
        errors.append(
            "No text provider API key found. Set OPENAI_API_KEY or GEMINI_API_KEY."
        )

    if settings.blob_backend not in BLOB_BACKENDS:
        errors.append(
            f"Unknown BLOB_BACKEND '{settings.blob_backend}'. "
            f"Expected one of: {', '.join(BLOB_BACKENDS)}"
        )
    elif settings.blob_backend == "supabase":
        if not settings.supabase_url or not settings.supabase_service_key:
            errors.append(
                "BLOB_BACKEND is 'supabase' but SUPABASE_URL or SUPABASE_SERVICE_KEY is not set"
            )

    if not settings.gemini_api_key:
        warnings.append("GEMINI_API_KEY not set - Gemini image generation needs a per-request key")
    if not settings.together_api_key:
        warnings.append("TOGETHER_API_KEY not set - Together image generation needs a per-request key")

    return ValidationResult(valid=len(errors) == 0, errors=errors, warnings=warnings)


def get_available_text_providers(settings: Settings) -> List[str]:
    """Text providers that have a configured API key."""
    providers = []
    if settings.openai_api_key:
        providers.append("openai")
    if settings.gemini_api_key:
        providers.append("gemini")
    return providers
