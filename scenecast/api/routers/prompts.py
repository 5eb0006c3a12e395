"""Prompt enhancement router (streamed)."""

from typing import AsyncIterator, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, ConfigDict, Field

from scenecast.api.deps import TextGatewayFactory, get_app_settings, get_text_gateway_factory
from scenecast.api.limits import generation_rate_limit, limiter
from scenecast.api.routers.sse import sse_data, sse_response
from scenecast.core.config import Settings
from scenecast.core.exceptions import MissingConfigError
from scenecast.core.logging_config import get_logger
from scenecast.llm.gateway import ModelProvider, TextGateway
from scenecast.scenes.prompts import ENHANCE_TEMPERATURE, ScenePromptLibrary, build_enhance_prompt

logger = get_logger("api.prompts")

router = APIRouter()


class EnhancePromptRequest(BaseModel):
    """Request body for prompt enhancement."""
    model_config = ConfigDict(populate_by_name=True)

    prompt: str
    api_key: Optional[str] = Field(default=None, alias="apiKey")
    model_provider: ModelProvider = Field(default=ModelProvider.OPENAI, alias="modelProvider")


async def enhance_events(gateway: TextGateway, prompt: str) -> AsyncIterator[str]:
    """SSE ``{content}`` chunks; a failure mid-stream becomes one ``{error}`` event."""
    fragments = gateway.stream_text(
        build_enhance_prompt(prompt),
        system=ScenePromptLibrary.ENHANCE_SYSTEM,
        temperature=ENHANCE_TEMPERATURE,
    )
    try:
        async for fragment in fragments:
            yield sse_data({"content": fragment})
    except Exception as e:
        logger.error(f"Error in enhance stream: {e}", exc_info=True)
        yield sse_data({"error": "Error processing stream"})
    finally:
        await fragments.aclose()


@router.post("/enhance-prompt")
@limiter.limit(generation_rate_limit)
async def enhance_prompt(
    request: Request,
    body: EnhancePromptRequest,
    settings: Settings = Depends(get_app_settings),
    gateway_factory: TextGatewayFactory = Depends(get_text_gateway_factory),
):
    """Stream an enhanced version of an image prompt."""
    if not body.prompt or not body.prompt.strip():
        raise HTTPException(status_code=400, detail="Prompt is required")

    model = settings.openai_prompt_model if body.model_provider == ModelProvider.OPENAI else None
    try:
        gateway = gateway_factory(body.model_provider, api_key=body.api_key, model=model)
    except MissingConfigError:
        raise HTTPException(
            status_code=400,
            detail="API key is required. Please add an API key in settings.",
        )

    return sse_response(enhance_events(gateway, body.prompt), on_close=gateway.aclose)
