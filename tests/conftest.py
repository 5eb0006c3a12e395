"""
Pytest Configuration and Fixtures

Shared fixtures for all tests.
"""

import shutil
import tempfile
from pathlib import Path
from typing import AsyncIterator, List, Optional

import pytest

from scenecast.core.exceptions import LLMProviderError
from scenecast.llm.gateway import ModelProvider, ProviderConfig, TextGateway


class FakeGateway(TextGateway):
    """
    Scripted text gateway.

    ``chunks`` are streamed in order; ``fail_after`` raises a provider error
    once that many chunks have been yielded. ``completions`` are returned by
    generate_text one per call (an Exception instance is raised instead).
    """

    def __init__(
        self,
        chunks: Optional[List[str]] = None,
        completions: Optional[list] = None,
        fail_after: Optional[int] = None,
        provider: ModelProvider = ModelProvider.OPENAI,
    ):
        super().__init__(ProviderConfig(
            provider=provider, api_key="test-key", model="test-model", base_url="http://test"
        ))
        self.chunks = chunks or []
        self.completions = list(completions or [])
        self.fail_after = fail_after
        self.prompts: List[str] = []
        self.stream_closed = False
        self.closed = False

    async def stream_text(
        self,
        prompt: str,
        system: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 4000,
    ) -> AsyncIterator[str]:
        self.prompts.append(prompt)
        try:
            for index, chunk in enumerate(self.chunks):
                if self.fail_after is not None and index >= self.fail_after:
                    raise LLMProviderError(self.config.provider.value, "connection reset")
                yield chunk
        finally:
            self.stream_closed = True

    async def _complete_once(self, prompt, system, temperature, max_tokens) -> str:
        self.prompts.append(prompt)
        if not self.completions:
            raise LLMProviderError(self.config.provider.value, "no scripted completion", status_code=400)
        result = self.completions.pop(0)
        if isinstance(result, Exception):
            raise result
        return result

    async def aclose(self) -> None:
        self.closed = True


def frame(number: int, content: str = "Dark forest", prompt: str = "A lone figure walks.") -> str:
    """One well-formed scene frame."""
    return f"SCENE_START_{number}\nSTORY_CONTENT: {content}\nPROMPT: {prompt}\nSCENE_END\n"


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    temp_path = tempfile.mkdtemp()
    yield Path(temp_path)
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def sample_story() -> str:
    """Short multi-paragraph story."""
    return (
        "Mara found the lighthouse door unlocked on the night of the storm.\n\n"
        "Inside, the spiral stairs were wet with footprints that were not her own.\n\n"
        "At the top, the great lamp turned slowly, though no keeper had lit it in years.\n\n"
        "She looked out over the sea and saw a ship that should have sunk a century ago."
    )


@pytest.fixture
def single_paragraph_story() -> str:
    """Story with no blank-line breaks."""
    return (
        "The train stopped in a town that was not on any map. "
        "Eli stepped onto the platform and the doors closed behind him. "
        "Every clock in the station showed a different hour. "
        "A woman in a grey coat handed him a ticket with his own name on it. "
        "When he looked up again, the train had gone and the town was silent."
    )


@pytest.fixture
def fake_gateway_factory():
    """Build FakeGateway instances inline."""
    return FakeGateway
