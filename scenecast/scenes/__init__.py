"""Scene streaming, sequencing and story segmentation."""

from scenecast.scenes.frame_parser import FrameGrammar, FrameParser, SceneCandidate, parse_frames
from scenecast.scenes.sequencer import RunSummary, Scene, SceneSequencer
from scenecast.scenes.orchestrator import GenerationOrchestrator, SceneStreamRequest
from scenecast.scenes.segmentation import Segment, StorySegmenter, fallback_split

__all__ = [
    "FrameGrammar",
    "FrameParser",
    "SceneCandidate",
    "parse_frames",
    "RunSummary",
    "Scene",
    "SceneSequencer",
    "GenerationOrchestrator",
    "SceneStreamRequest",
    "Segment",
    "StorySegmenter",
    "fallback_split",
]
