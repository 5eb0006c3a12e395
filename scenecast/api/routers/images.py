"""
Images router.

Single-image generation against Gemini and Together AI, plus the list of
style templates.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, ConfigDict, Field

from scenecast.api.deps import ImageClientFactory, get_blob_store, get_image_client_factory
from scenecast.api.limits import generation_rate_limit, limiter
from scenecast.core.exceptions import (
    ImageGenerationError,
    InvalidBlobKeyError,
    MissingConfigError,
    StorageError,
    TemplateNotFoundError,
)
from scenecast.core.logging_config import get_logger
from scenecast.images.service import ImageService
from scenecast.images.templates import list_templates
from scenecast.storage.blob_store import BlobStore

logger = get_logger("api.images")

router = APIRouter()


class GenerateImageRequest(BaseModel):
    """Request body for Gemini image generation."""
    model_config = ConfigDict(populate_by_name=True)

    prompt: str
    negative_prompt: Optional[str] = Field(default=None, alias="negativePrompt")
    seed: Optional[int] = None
    steps: Optional[int] = None
    api_key: Optional[str] = Field(default=None, alias="apiKey")
    project_name: Optional[str] = Field(default=None, alias="projectName")
    template_id: Optional[str] = Field(default=None, alias="templateId")


class TogetherImageRequest(GenerateImageRequest):
    """Request body for Together AI image generation."""
    width: Optional[int] = None
    height: Optional[int] = None
    model: Optional[str] = None


async def _generate(
    provider: str,
    body: GenerateImageRequest,
    client_factory: ImageClientFactory,
    store: BlobStore,
    **options,
) -> dict:
    if not body.prompt or not body.prompt.strip():
        raise HTTPException(status_code=400, detail="Prompt is required")

    try:
        client = client_factory(provider, api_key=body.api_key)
    except MissingConfigError:
        raise HTTPException(
            status_code=400,
            detail="No API key available. Please add an API key in settings.",
        )

    try:
        stored = await ImageService(client, store).generate(
            body.prompt,
            negative_prompt=body.negative_prompt,
            template_id=body.template_id,
            project_name=(body.project_name or "").strip() or None,
            seed=body.seed,
            steps=body.steps,
            **options,
        )
    except (TemplateNotFoundError, InvalidBlobKeyError) as e:
        raise HTTPException(status_code=400, detail=e.message)
    except ImageGenerationError as e:
        logger.error(f"{provider} image generation failed: {e}")
        raise HTTPException(status_code=500, detail=e.message)
    except StorageError as e:
        logger.error(f"Storing generated image failed: {e}")
        raise HTTPException(status_code=500, detail="Failed to store generated image")
    finally:
        await client.aclose()

    return stored.to_response()


@router.post("/generate-image")
@limiter.limit(generation_rate_limit)
async def generate_image(
    request: Request,
    body: GenerateImageRequest,
    client_factory: ImageClientFactory = Depends(get_image_client_factory),
    store: BlobStore = Depends(get_blob_store),
):
    """Generate one image with Gemini and store it."""
    return await _generate("gemini", body, client_factory, store)


@router.post("/generate-image-together")
@limiter.limit(generation_rate_limit)
async def generate_image_together(
    request: Request,
    body: TogetherImageRequest,
    client_factory: ImageClientFactory = Depends(get_image_client_factory),
    store: BlobStore = Depends(get_blob_store),
):
    """Generate one image with Together AI and store it."""
    return await _generate(
        "together", body, client_factory, store,
        width=body.width, height=body.height, model=body.model,
    )


@router.get("/templates")
async def get_templates():
    """Available style templates."""
    return {"templates": list_templates()}
