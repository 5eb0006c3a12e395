"""
SceneCast Generation Orchestrator

Runs one scene-stream request: validates it, streams model output through
the frame parser and sequencer, and turns the result into SSE events.

Event order for a healthy run:
    progress (initial) -> [scene, progress]* -> progress (100) -> complete
Any failure after the stream opens ends it with a single error event.
"""

from typing import AsyncIterator, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from scenecast.core.exceptions import InvalidRequestError, SceneCastError
from scenecast.core.logging_config import get_logger
from scenecast.llm.gateway import ModelProvider, TextGateway
from scenecast.scenes.frame_parser import FrameParser
from scenecast.scenes.prompts import build_scene_stream_prompt, get_prompt_variant
from scenecast.scenes.sequencer import Scene, SceneSequencer

logger = get_logger("scenes.orchestrator")

STREAM_FAILURE_MESSAGE = "Failed to generate story prompts"


# =============================================================================
# EVENTS
# =============================================================================

class StreamEvent(BaseModel):
    """Base SSE event; serialized as one ``data:`` line."""
    model_config = ConfigDict(populate_by_name=True)

    def to_sse(self) -> str:
        return f"data: {self.model_dump_json(by_alias=True)}\n\n"


class ProgressEvent(StreamEvent):
    type: Literal["progress"] = "progress"
    progress: float
    message: str


class SceneEvent(StreamEvent):
    type: Literal["scene"] = "scene"
    scene: Scene


class CompleteEvent(StreamEvent):
    type: Literal["complete"] = "complete"
    total_scenes: int = Field(alias="totalScenes")
    is_complete: bool = Field(alias="isComplete")


class ErrorEvent(StreamEvent):
    type: Literal["error"] = "error"
    message: str


SceneStreamEvent = Union[ProgressEvent, SceneEvent, CompleteEvent, ErrorEvent]


# =============================================================================
# REQUEST
# =============================================================================

class SceneStreamRequest(BaseModel):
    """Body of a scene-stream request."""
    model_config = ConfigDict(populate_by_name=True)

    story: str
    scene_count: int = Field(alias="sceneCount")
    continue_from: Optional[int] = Field(default=None, alias="continueFrom")
    model_provider: ModelProvider = Field(default=ModelProvider.OPENAI, alias="modelProvider")
    prompt_variant: Optional[str] = Field(default=None, alias="promptVariant")
    api_key: Optional[str] = Field(default=None, alias="apiKey")

    def validate_for_run(self) -> None:
        """
        Check the request before any stream opens.

        Raises:
            InvalidRequestError: On a blank story, a non-positive scene count,
                an out-of-range continueFrom or an unknown prompt variant
        """
        if not self.story or not self.story.strip():
            raise InvalidRequestError("Story content is required", field="story")
        if self.scene_count < 1:
            raise InvalidRequestError("sceneCount must be a positive integer", field="sceneCount")
        if self.continue_from is not None:
            if self.continue_from < 0:
                raise InvalidRequestError("continueFrom cannot be negative", field="continueFrom")
            if self.continue_from >= self.scene_count:
                raise InvalidRequestError(
                    f"continueFrom must be less than sceneCount ({self.scene_count})",
                    field="continueFrom",
                )
        get_prompt_variant(self.prompt_variant)


# =============================================================================
# ORCHESTRATOR
# =============================================================================

class GenerationOrchestrator:
    """
    Drives one scene-stream run against a text gateway.

    The gateway is supplied by the caller, already bound to a provider
    config; the orchestrator never resolves credentials itself.
    """

    def __init__(
        self,
        gateway: TextGateway,
        temperature: float = 0.7,
        max_tokens: int = 4000,
        max_buffer_chars: int = 200_000,
    ):
        self.gateway = gateway
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.max_buffer_chars = max_buffer_chars

    async def run(self, request: SceneStreamRequest) -> AsyncIterator[SceneStreamEvent]:
        """Yield the events of one run. Validation errors raise before the first event."""
        request.validate_for_run()

        variant = get_prompt_variant(request.prompt_variant)
        resume_from = request.continue_from or 0
        total = request.scene_count
        display = self.gateway.display_name

        sequencer = SceneSequencer(total, resume_from=resume_from)
        parser = FrameParser(variant.grammar)

        if resume_from:
            opening = f"Continuing from scene {resume_from + 1} using {display}..."
        else:
            opening = f"Analyzing story structure using {display}..."
        yield ProgressEvent(progress=sequencer.initial_progress, message=opening)

        logger.info(
            f"Scene stream started: {total} scenes, resume_from={resume_from}, "
            f"provider={self.gateway.config.provider.value}, variant={variant.name}"
        )

        try:
            prompt = build_scene_stream_prompt(request.story, total, resume_from, variant)
            fragments = self.gateway.stream_text(
                prompt, temperature=self.temperature, max_tokens=self.max_tokens
            )
            try:
                async for fragment in fragments:
                    for candidate in parser.feed(fragment):
                        scene = sequencer.offer(candidate)
                        if scene is None:
                            continue
                        yield SceneEvent(scene=scene)
                        yield ProgressEvent(
                            progress=sequencer.progress,
                            message=f"Generated scene {scene.scene_number} of {total} using {display}...",
                        )
                    if len(parser.buffer) > self.max_buffer_chars:
                        raise SceneCastError(
                            "Unparsed model output exceeded buffer limit",
                            {"buffer_chars": len(parser.buffer)},
                        )
            finally:
                await fragments.aclose()

            parser.close()
            summary = sequencer.finalize()
        except Exception as e:
            logger.error(f"Scene stream failed after scene {sequencer.highest_emitted}: {e}", exc_info=True)
            yield ErrorEvent(message=STREAM_FAILURE_MESSAGE)
            return

        if summary.is_complete:
            closing = "Generation complete!"
        else:
            closing = f"Generated {summary.total_scenes} scenes. You can continue generating more."

        logger.info(
            f"Scene stream finished: {summary.total_scenes}/{total} scenes, complete={summary.is_complete}"
        )
        yield ProgressEvent(progress=100, message=closing)
        yield CompleteEvent(total_scenes=summary.total_scenes, is_complete=summary.is_complete)

    async def stream_sse(self, request: SceneStreamRequest) -> AsyncIterator[str]:
        """Same as run(), encoded as SSE frames."""
        events = self.run(request)
        try:
            async for event in events:
                yield event.to_sse()
        finally:
            await events.aclose()
