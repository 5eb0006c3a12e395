"""
SceneCast Story Segmentation

Splits a story into N contiguous segments with one sectioning completion,
falling back to a deterministic splitter whenever the model's JSON cannot
be used. Optionally synthesizes an image prompt per segment.
"""

import asyncio
import json
import math
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from scenecast.core.exceptions import LLMError, SegmentParseError
from scenecast.core.logging_config import get_logger
from scenecast.llm.gateway import TextGateway
from scenecast.scenes.prompts import (
    ANALYSIS_TEMPERATURE,
    SECTIONING_TEMPERATURE,
    SEGMENT_PROMPT_TEMPERATURE,
    build_analysis_prompt,
    build_sectioning_prompt,
    build_segment_prompt_request,
)

logger = get_logger("scenes.segmentation")

PARAGRAPH_BREAK = re.compile(r"\n\s*\n+")
SENTENCE_BREAK = re.compile(r"(?<=[.!?])\s+")
CODE_FENCE = re.compile(r"```(?:json)?\s*", re.IGNORECASE)
TRAILING_COMMA = re.compile(r",\s*([}\]])")

# Sentences shorter than this are folded into a neighbour
MIN_SENTENCE_CHARS = 20


class Segment(BaseModel):
    """A contiguous slice of the story."""
    model_config = ConfigDict(populate_by_name=True)

    scene_number: int = Field(alias="sceneNumber")
    content: str
    summary: str = ""
    prompt: Optional[str] = None
    error: Optional[str] = None


@dataclass
class PromptOutcome:
    """Result of one per-segment prompt synthesis."""
    scene_number: int
    prompt: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class SegmentationResult:
    """Segments plus the scene numbers whose prompt synthesis failed."""
    segments: List[Segment]
    used_fallback: bool = False
    failed_scenes: List[int] = field(default_factory=list)


# =============================================================================
# JSON REPAIR
# =============================================================================

def _strip_code_fences(text: str) -> str:
    return CODE_FENCE.sub("", text).strip()


def _slice_outer_object(text: str) -> str:
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end == -1 or end < start:
        return ""
    return text[start:end + 1]


def _repair_json_text(text: str) -> str:
    """Conservative repair of common model JSON mistakes."""
    repaired = TRAILING_COMMA.sub(r"\1", text)
    return (
        repaired.replace("“", '"')
        .replace("”", '"')
        .replace("‘", "'")
        .replace("’", "'")
    )


def _extract_first_object(text: str) -> str:
    """First balanced ``{...}`` in text, respecting string literals."""
    start = text.find("{")
    if start == -1:
        return ""

    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start:index + 1]
    return ""


def extract_json_object(raw: str) -> Dict[str, Any]:
    """
    Parse a JSON object out of model output.

    Tries, in order: fenced/sliced text as-is, the repaired text, then the
    first balanced object of the repaired text.

    Raises:
        SegmentParseError: If no attempt yields a JSON object
    """
    cleaned = _strip_code_fences(raw or "")
    sliced = _slice_outer_object(cleaned)
    if not sliced:
        raise SegmentParseError("no JSON object found", cleaned)

    candidates = [sliced]
    repaired = _repair_json_text(sliced)
    if repaired != sliced:
        candidates.append(repaired)
    balanced = _extract_first_object(repaired)
    if balanced and balanced not in candidates:
        candidates.append(balanced)

    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed

    raise SegmentParseError("JSON could not be decoded", sliced)


def _coerce_scene_number(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return 0


def _coerce_text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def parse_segment_json(raw: str) -> List[Segment]:
    """
    Turn a sectioning response into segments.

    Raises:
        SegmentParseError: On undecodable JSON or a missing/empty ``scenes`` list
    """
    data = extract_json_object(raw)
    scenes = data.get("scenes")
    if not isinstance(scenes, list) or not scenes:
        raise SegmentParseError("response has no 'scenes' list", raw)

    segments = []
    for item in scenes:
        if not isinstance(item, dict):
            item = {}
        segments.append(Segment(
            scene_number=_coerce_scene_number(item.get("sceneNumber")),
            content=_coerce_text(item.get("content")),
            summary=_coerce_text(item.get("summary")),
        ))
    return segments


# =============================================================================
# FALLBACK SPLITTER
# =============================================================================

def _auto_summary(scene_number: int) -> str:
    return f"Scene {scene_number} (automatically generated)"


def _bisect_at_whitespace(text: str) -> Optional[tuple]:
    """Split text at the whitespace run nearest its midpoint, or None if it has none."""
    middle = len(text) // 2
    best = None
    for match in re.finditer(r"\s+", text):
        distance = abs(match.start() - middle)
        if best is None or distance < abs(best.start() - middle):
            best = match
    if best is None:
        return None
    return text[:best.start()], text[best.end():]


def _split_by_paragraphs(paragraphs: List[str], total_words: int, scene_count: int) -> List[Segment]:
    words_per_scene = max(1, math.ceil(total_words / scene_count))
    segments: List[Segment] = []
    current: List[str] = []
    word_count = 0

    for paragraph in paragraphs:
        paragraph_words = len(paragraph.split())
        target = (len(segments) + 1) * words_per_scene
        if current and word_count + paragraph_words > target:
            number = len(segments) + 1
            segments.append(Segment(
                scene_number=number, content="\n\n".join(current), summary=_auto_summary(number)
            ))
            current = []
        current.append(paragraph)
        word_count += paragraph_words

    if current:
        number = len(segments) + 1
        segments.append(Segment(
            scene_number=number, content="\n\n".join(current), summary=_auto_summary(number)
        ))

    while len(segments) < scene_count:
        longest_index = max(range(len(segments)), key=lambda i: len(segments[i].content))
        longest = segments[longest_index]
        halves = _bisect_at_whitespace(longest.content)
        if halves is None:
            logger.warning(
                f"Fallback split stopped at {len(segments)} segments: nothing left to bisect"
            )
            break

        first, second = halves
        segments[longest_index:longest_index + 1] = [
            Segment(scene_number=0, content=first,
                    summary=f"Part 1 of split scene {longest.scene_number}"),
            Segment(scene_number=0, content=second,
                    summary=f"Part 2 of split scene {longest.scene_number}"),
        ]
        for index, segment in enumerate(segments):
            segment.scene_number = index + 1

    return segments


def _sentence_units(story: str, scene_count: int) -> List[str]:
    sentences = [s.strip() for s in SENTENCE_BREAK.split(story.strip()) if s.strip()]

    units: List[str] = []
    pending: List[str] = []
    for sentence in sentences:
        if len(sentence) < MIN_SENTENCE_CHARS:
            if units:
                units[-1] = f"{units[-1]} {sentence}"
            else:
                pending.append(sentence)
            continue
        units.append(" ".join(pending + [sentence]))
        pending = []

    # Folding short fragments must not cost segments
    if len(units) >= scene_count:
        return units
    return sentences


def _split_by_sentences(story: str, scene_count: int) -> List[Segment]:
    units = _sentence_units(story, scene_count)
    count = min(scene_count, len(units))
    segments = []
    for index in range(count):
        start = index * len(units) // count
        end = (index + 1) * len(units) // count
        number = index + 1
        segments.append(Segment(
            scene_number=number,
            content=" ".join(units[start:end]),
            summary=_auto_summary(number),
        ))
    return segments


def fallback_split(story: str, scene_count: int) -> List[Segment]:
    """
    Deterministically split a story into ``scene_count`` segments.

    Paragraph boundaries are preferred; segments are bisected until the
    count is reached. A story without blank-line breaks is split on
    sentence boundaries instead.
    """
    story = story.strip()
    if not story:
        return []

    paragraphs = [p.strip() for p in PARAGRAPH_BREAK.split(story) if p.strip()]
    if len(paragraphs) > 1:
        return _split_by_paragraphs(paragraphs, len(story.split()), scene_count)
    return _split_by_sentences(story, scene_count)


# =============================================================================
# SEGMENTER
# =============================================================================

class StorySegmenter:
    """
    Sections stories and synthesizes per-segment image prompts.

    Args:
        gateway: Gateway used for analysis, sectioning and prompt synthesis
    """

    def __init__(self, gateway: TextGateway):
        self.gateway = gateway

    async def analyze(self, story: str) -> str:
        """Short structural analysis fed into the sectioning prompt. Failures are non-fatal."""
        try:
            return await self.gateway.generate_text(
                build_analysis_prompt(story), temperature=ANALYSIS_TEMPERATURE
            )
        except LLMError as e:
            logger.warning(f"Story analysis failed, sectioning without it: {e}")
            return ""

    async def segment(self, story: str, scene_count: int) -> SegmentationResult:
        analysis = await self.analyze(story)
        raw = await self.gateway.generate_text(
            build_sectioning_prompt(story, scene_count, analysis),
            temperature=SECTIONING_TEMPERATURE,
        )

        try:
            segments = parse_segment_json(raw)
        except SegmentParseError as e:
            logger.warning(f"Sectioning response unusable ({e.details.get('reason')}), using fallback splitter")
            return SegmentationResult(segments=fallback_split(story, scene_count), used_fallback=True)

        if len(segments) != scene_count:
            logger.warning(f"Model returned {len(segments)} segments, {scene_count} requested")
        return SegmentationResult(segments=segments)

    async def _synthesize_one(self, segment: Segment) -> PromptOutcome:
        try:
            text = await self.gateway.generate_text(
                build_segment_prompt_request(segment.content, segment.summary),
                temperature=SEGMENT_PROMPT_TEMPERATURE,
            )
        except LLMError as e:
            logger.error(f"Prompt synthesis failed for scene {segment.scene_number}: {e}")
            return PromptOutcome(segment.scene_number, error=e.message)
        return PromptOutcome(segment.scene_number, prompt=text.strip())

    async def synthesize_prompts(self, segments: List[Segment]) -> List[PromptOutcome]:
        """One prompt per segment, issued concurrently, returned in segment order."""
        return list(await asyncio.gather(*(self._synthesize_one(s) for s in segments)))

    async def process(self, story: str, scene_count: int, section_only: bool = False) -> SegmentationResult:
        result = await self.segment(story, scene_count)
        if section_only:
            return result

        outcomes = await self.synthesize_prompts(result.segments)
        for segment, outcome in zip(result.segments, outcomes):
            if outcome.ok:
                segment.prompt = outcome.prompt
            else:
                segment.prompt = ""
                segment.error = outcome.error
                result.failed_scenes.append(segment.scene_number)

        if result.failed_scenes:
            logger.warning(f"Prompt synthesis failed for scenes {result.failed_scenes}")
        return result
