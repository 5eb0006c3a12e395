"""
SceneCast Scene Sequencer

Decides which parsed frames become emitted scenes. Scene numbers only move
forward within a run: duplicates and stragglers below the high-water mark
are dropped, which keeps numbering idempotent when a model repeats itself
or a run is resumed.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from scenecast.core.exceptions import SceneCastError
from scenecast.core.logging_config import get_logger
from scenecast.scenes.frame_parser import SceneCandidate

logger = get_logger("scenes.sequencer")

# Progress shown while streaming never reaches 100 until the run finalizes
STREAMING_PROGRESS_CAP = 95.0


class Scene(BaseModel):
    """An emitted scene."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    scene_number: int = Field(alias="sceneNumber", ge=1)
    content: str
    prompt: str


@dataclass(frozen=True)
class RunSummary:
    """Outcome of a finished run."""
    total_scenes: int
    is_complete: bool


class SceneSequencer:
    """
    Per-run acceptance filter and scene store.

    Args:
        requested_scene_count: N, the number of scenes the run should produce
        resume_from: Highest scene number a previous run already delivered
    """

    def __init__(self, requested_scene_count: int, resume_from: Optional[int] = None):
        if requested_scene_count < 1:
            raise ValueError("requested_scene_count must be positive")
        self.requested_scene_count = requested_scene_count
        self.resume_from = resume_from or 0
        self.highest_emitted = self.resume_from
        self._scenes: Dict[int, Scene] = {}
        self._summary: Optional[RunSummary] = None

    @property
    def initial_progress(self) -> float:
        return self.resume_from / self.requested_scene_count * 100

    @property
    def progress(self) -> float:
        return min(
            STREAMING_PROGRESS_CAP,
            self.highest_emitted / self.requested_scene_count * 100,
        )

    @property
    def scenes(self) -> List[Scene]:
        """Scenes emitted in this run, ordered by number."""
        return [self._scenes[number] for number in sorted(self._scenes)]

    @property
    def finalized(self) -> bool:
        return self._summary is not None

    def offer(self, candidate: SceneCandidate) -> Optional[Scene]:
        """
        Accept or drop a candidate.

        Returns:
            The emitted Scene, or None when the candidate was dropped
        """
        if self._summary is not None:
            raise SceneCastError("Run already finalized", {"scene_number": candidate.scene_number})

        number = candidate.scene_number
        if number <= self.highest_emitted:
            logger.debug(f"Dropping scene {number}: already at scene {self.highest_emitted}")
            return None
        if number > self.requested_scene_count:
            logger.warning(
                f"Dropping scene {number}: run only asked for {self.requested_scene_count} scenes"
            )
            return None

        scene = Scene(scene_number=number, content=candidate.content, prompt=candidate.prompt)
        self._scenes[number] = scene
        self.highest_emitted = number
        return scene

    def replace(self, scene: Scene) -> None:
        """Overwrite a scene by number (regeneration). The high-water mark is unchanged."""
        if scene.scene_number > self.requested_scene_count:
            raise SceneCastError(
                "Scene number outside run", {"scene_number": scene.scene_number}
            )
        self._scenes[scene.scene_number] = scene

    def finalize(self) -> RunSummary:
        """Close the run. Callable exactly once."""
        if self._summary is not None:
            raise SceneCastError("Run already finalized")
        self._summary = RunSummary(
            total_scenes=self.highest_emitted,
            is_complete=self.highest_emitted >= self.requested_scene_count,
        )
        return self._summary
