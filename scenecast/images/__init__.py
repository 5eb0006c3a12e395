"""Image generation clients, style templates and storage glue."""

from scenecast.images.providers import (
    GeminiImageClient,
    GeneratedImage,
    ImageClient,
    TogetherImageClient,
    truncate_prompt,
)
from scenecast.images.service import ImageService, StoredImage
from scenecast.images.templates import build_image_prompt, list_templates

__all__ = [
    "GeminiImageClient",
    "GeneratedImage",
    "ImageClient",
    "TogetherImageClient",
    "truncate_prompt",
    "ImageService",
    "StoredImage",
    "build_image_prompt",
    "list_templates",
]
