"""
Story router.

Scene streaming, story segmentation and single-scene prompt regeneration.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, ConfigDict, Field

from scenecast.api.deps import TextGatewayFactory, get_app_settings, get_text_gateway_factory
from scenecast.api.limits import generation_rate_limit, limiter
from scenecast.api.routers.sse import sse_response
from scenecast.core.config import Settings
from scenecast.core.exceptions import InvalidRequestError, LLMError, MissingConfigError
from scenecast.core.logging_config import get_logger
from scenecast.llm.gateway import ModelProvider
from scenecast.scenes.orchestrator import GenerationOrchestrator, SceneStreamRequest
from scenecast.scenes.prompts import REGENERATE_TEMPERATURE, build_regenerate_prompt
from scenecast.scenes.segmentation import StorySegmenter

logger = get_logger("api.story")

router = APIRouter()


class ProcessStoryRequest(BaseModel):
    """Request body for story segmentation."""
    model_config = ConfigDict(populate_by_name=True)

    story: str
    scene_count: int = Field(alias="sceneCount")
    section_only: bool = Field(default=False, alias="sectionOnly")
    model_provider: ModelProvider = Field(default=ModelProvider.OPENAI, alias="modelProvider")
    api_key: Optional[str] = Field(default=None, alias="apiKey")


class RegeneratePromptRequest(BaseModel):
    """Request body for prompt regeneration."""
    model_config = ConfigDict(populate_by_name=True)

    scene_content: str = Field(alias="sceneContent")
    model_provider: ModelProvider = Field(default=ModelProvider.OPENAI, alias="modelProvider")
    api_key: Optional[str] = Field(default=None, alias="apiKey")


def _missing_key_detail(error: MissingConfigError) -> str:
    return f"No API key available for {error.setting}. Please add an API key in settings."


@router.post("/generate-story-prompts")
@limiter.limit(generation_rate_limit)
async def generate_story_prompts(
    request: Request,
    body: SceneStreamRequest,
    settings: Settings = Depends(get_app_settings),
    gateway_factory: TextGatewayFactory = Depends(get_text_gateway_factory),
):
    """Stream scenes for a story as Server-Sent Events."""
    try:
        body.validate_for_run()
        gateway = gateway_factory(body.model_provider, api_key=body.api_key)
    except InvalidRequestError as e:
        raise HTTPException(status_code=400, detail=e.message)
    except MissingConfigError as e:
        raise HTTPException(status_code=400, detail=_missing_key_detail(e))

    orchestrator = GenerationOrchestrator(
        gateway,
        temperature=settings.stream_temperature,
        max_tokens=settings.stream_max_tokens,
        max_buffer_chars=settings.max_buffer_chars,
    )
    return sse_response(orchestrator.stream_sse(body), on_close=gateway.aclose)


@router.post("/process-story")
@limiter.limit(generation_rate_limit)
async def process_story(
    request: Request,
    body: ProcessStoryRequest,
    gateway_factory: TextGatewayFactory = Depends(get_text_gateway_factory),
):
    """Split a story into segments, optionally with an image prompt per segment."""
    if not body.story or not body.story.strip():
        raise HTTPException(status_code=400, detail="Story content is required")
    if body.scene_count < 1:
        raise HTTPException(status_code=400, detail="sceneCount must be a positive integer")

    try:
        gateway = gateway_factory(body.model_provider, api_key=body.api_key)
    except MissingConfigError as e:
        raise HTTPException(status_code=400, detail=_missing_key_detail(e))

    try:
        result = await StorySegmenter(gateway).process(
            body.story, body.scene_count, section_only=body.section_only
        )
    except LLMError as e:
        logger.error(f"Error processing story: {e}")
        raise HTTPException(status_code=500, detail="Failed to process story")
    finally:
        await gateway.aclose()

    response = {
        "scenes": [
            segment.model_dump(by_alias=True, exclude_none=True) for segment in result.segments
        ]
    }
    if not body.section_only:
        response["failedScenes"] = result.failed_scenes
    return response


@router.post("/regenerate-prompt")
@limiter.limit(generation_rate_limit)
async def regenerate_prompt(
    request: Request,
    body: RegeneratePromptRequest,
    settings: Settings = Depends(get_app_settings),
    gateway_factory: TextGatewayFactory = Depends(get_text_gateway_factory),
):
    """Produce a fresh image prompt for one scene."""
    if not body.scene_content or not body.scene_content.strip():
        raise HTTPException(status_code=400, detail="Scene content is required")

    model = settings.openai_prompt_model if body.model_provider == ModelProvider.OPENAI else None
    try:
        gateway = gateway_factory(body.model_provider, api_key=body.api_key, model=model)
    except MissingConfigError as e:
        raise HTTPException(status_code=400, detail=_missing_key_detail(e))

    try:
        text = await gateway.generate_text(
            build_regenerate_prompt(body.scene_content), temperature=REGENERATE_TEMPERATURE
        )
    except LLMError as e:
        logger.error(f"Error regenerating prompt: {e}")
        raise HTTPException(status_code=500, detail="Failed to regenerate prompt")
    finally:
        await gateway.aclose()

    return {"prompt": text.strip()}
