"""
SceneCast Frame Parser

Recognises scene frames in streamed model output:

    SCENE_START_<n>
    STORY_CONTENT: <short label>
    PROMPT: <image prompt>
    SCENE_END

The content label is configurable per prompt variant. Fields may appear
in either order. A frame is only emitted once its end sentinel arrives,
so text split across chunk boundaries is handled by rescanning the open
frame on the next chunk.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Set, Tuple

from scenecast.core.logging_config import get_logger

logger = get_logger("scenes.frame_parser")

# Chars rescanned behind the resume point when no frame is open, enough to
# catch a start sentinel split across two chunks.
TAIL_RESCAN_CHARS = 32


class ParserState(Enum):
    """Frame parser state."""
    IDLE = "idle"
    IN_FRAME = "in_frame"


class TokenKind(Enum):
    START = "start"
    LABEL = "label"
    END = "end"


@dataclass(frozen=True)
class FrameGrammar:
    """Sentinel and label names for one prompt variant."""
    content_label: str = "STORY_CONTENT"
    prompt_label: str = "PROMPT"
    start_sentinel: str = "SCENE_START_"
    end_sentinel: str = "SCENE_END"

    @property
    def pattern(self) -> "re.Pattern":
        return _compile_grammar(self)


_PATTERN_CACHE: dict = {}


def _compile_grammar(grammar: FrameGrammar) -> "re.Pattern":
    if grammar not in _PATTERN_CACHE:
        labels = "|".join(
            re.escape(label) for label in (grammar.content_label, grammar.prompt_label)
        )
        _PATTERN_CACHE[grammar] = re.compile(
            rf"(?P<start>{re.escape(grammar.start_sentinel)}\[?(?P<number>\d+)\]?)"
            rf"|(?P<end>{re.escape(grammar.end_sentinel)})"
            rf"|(?P<label>\b(?P<label_name>{labels}):)"
        )
    return _PATTERN_CACHE[grammar]


DEFAULT_GRAMMAR = FrameGrammar()


@dataclass
class Token:
    """A sentinel or label occurrence in the buffer."""
    kind: TokenKind
    start: int
    end: int
    name: str = ""
    number: int = 0


@dataclass(frozen=True)
class SceneCandidate:
    """A complete frame pulled out of the buffer, not yet sequenced."""
    scene_number: int
    content: str
    prompt: str


@dataclass(frozen=True)
class MalformedFrame:
    """A frame that could not be turned into a scene."""
    scene_number: int
    reason: str
    text: str


@dataclass
class FrameScan:
    """Result of scanning a buffer."""
    scenes: List[SceneCandidate] = field(default_factory=list)
    buffer: str = ""
    malformed: List[MalformedFrame] = field(default_factory=list)
    open_frame_start: Optional[int] = None
    resume_at: int = 0

    @property
    def state(self) -> ParserState:
        if self.open_frame_start is None:
            return ParserState.IDLE
        return ParserState.IN_FRAME


def tokenize(buffer: str, start: int = 0, grammar: FrameGrammar = DEFAULT_GRAMMAR) -> List[Token]:
    """Lex sentinel and label tokens from ``buffer[start:]``."""
    tokens = []
    for match in grammar.pattern.finditer(buffer, start):
        if match.group("start"):
            tokens.append(Token(
                TokenKind.START, match.start(), match.end(),
                number=int(match.group("number"))
            ))
        elif match.group("end"):
            tokens.append(Token(TokenKind.END, match.start(), match.end()))
        else:
            tokens.append(Token(
                TokenKind.LABEL, match.start(), match.end(),
                name=match.group("label_name")
            ))
    return tokens


def _field_value(buffer: str, labels: List[Token], end_token: Token, name: str) -> Optional[str]:
    """Value of the first ``name`` label, running to the next distinct label or the end sentinel."""
    for index, label in enumerate(labels):
        if label.name != name:
            continue
        stop = labels[index + 1].start if index + 1 < len(labels) else end_token.start
        return buffer[label.end:stop].strip()
    return None


def parse_frames(
    buffer: str,
    start: int = 0,
    grammar: FrameGrammar = DEFAULT_GRAMMAR,
) -> FrameScan:
    """
    Extract every closed frame from a buffer.

    Pure: the result depends only on the arguments. Scanning begins at
    ``start`` in the idle state; text before it is kept verbatim.

    Args:
        buffer: Accumulated model output
        start: Offset to begin lexing from
        grammar: Sentinel and label names

    Returns:
        FrameScan with the scenes found, the buffer with exactly those
        frames removed, malformed frames seen, and the offset (in the new
        buffer) a later scan can resume from.
    """
    scan = FrameScan()
    consumed: List[Tuple[int, int]] = []

    open_start: Optional[Token] = None
    labels: List[Token] = []

    for token in tokenize(buffer, start, grammar):
        if token.kind == TokenKind.START:
            if open_start is not None:
                scan.malformed.append(MalformedFrame(
                    open_start.number,
                    f"superseded by scene {token.number} before {grammar.end_sentinel}",
                    buffer[open_start.start:token.start],
                ))
            open_start = token
            labels = []
            continue

        if open_start is None:
            # Stray labels or end sentinels outside a frame are plain text
            continue

        if token.kind == TokenKind.LABEL:
            # Only the first occurrence of a label bounds a field
            if all(label.name != token.name for label in labels):
                labels.append(token)
            continue

        content = _field_value(buffer, labels, token, grammar.content_label)
        prompt = _field_value(buffer, labels, token, grammar.prompt_label)
        if content is None or prompt is None:
            missing = grammar.content_label if content is None else grammar.prompt_label
            scan.malformed.append(MalformedFrame(
                open_start.number,
                f"missing {missing}: field",
                buffer[open_start.start:token.end],
            ))
        else:
            scan.scenes.append(SceneCandidate(open_start.number, content, prompt))
            consumed.append((open_start.start, token.end))

        open_start = None
        labels = []

    pieces = []
    cursor = 0
    for span_start, span_end in consumed:
        pieces.append(buffer[cursor:span_start])
        cursor = span_end
    pieces.append(buffer[cursor:])
    scan.buffer = "".join(pieces)

    removed = sum(span_end - span_start for span_start, span_end in consumed)
    if open_start is not None:
        # Every consumed span closes before the open frame begins
        scan.open_frame_start = open_start.start - removed
        scan.resume_at = scan.open_frame_start
    else:
        # Consumed spans all lie after start, so offsets before it are unchanged
        scan.resume_at = max(start, len(scan.buffer) - TAIL_RESCAN_CHARS, 0)

    return scan


class FrameParser:
    """
    Incremental frame parser for one stream.

    Feeds chunks into a buffer and rescans only the open frame (or a short
    tail) each time, so long streams are not rescanned from the start.
    """

    def __init__(self, grammar: FrameGrammar = DEFAULT_GRAMMAR):
        self.grammar = grammar
        self.buffer = ""
        self._resume_at = 0
        self._open_frame_start: Optional[int] = None
        self._reported: Set[Tuple[int, str]] = set()

    @property
    def state(self) -> ParserState:
        if self._open_frame_start is None:
            return ParserState.IDLE
        return ParserState.IN_FRAME

    def feed(self, chunk: str) -> List[SceneCandidate]:
        """Append a chunk and return the frames it completed."""
        if not chunk:
            return []

        self.buffer += chunk
        scan = parse_frames(self.buffer, self._resume_at, self.grammar)
        self.buffer = scan.buffer
        self._resume_at = scan.resume_at
        self._open_frame_start = scan.open_frame_start

        for frame in scan.malformed:
            self._report(frame)

        return scan.scenes

    def close(self) -> Optional[MalformedFrame]:
        """
        Finish the stream. Returns (and logs) a frame left open at the end,
        which can never be emitted.
        """
        if self._open_frame_start is None:
            return None

        text = self.buffer[self._open_frame_start:]
        match = self.grammar.pattern.match(text)
        number = int(match.group("number")) if match and match.group("number") else 0
        frame = MalformedFrame(
            number, f"stream ended before {self.grammar.end_sentinel}", text
        )
        self._report(frame)
        self._open_frame_start = None
        return frame

    def _report(self, frame: MalformedFrame) -> None:
        key = (frame.scene_number, frame.text)
        if key in self._reported:
            return
        self._reported.add(key)
        logger.warning(
            f"Malformed frame for scene {frame.scene_number}: {frame.reason} "
            f"({len(frame.text)} chars left in buffer)"
        )
