"""
Tests for prompt templates and variants.
"""

import pytest

from scenecast.core.exceptions import InvalidRequestError
from scenecast.scenes.prompts import (
    DEFAULT_VARIANT,
    PROMPT_VARIANTS,
    build_enhance_prompt,
    build_regenerate_prompt,
    build_scene_stream_prompt,
    build_sectioning_prompt,
    build_segment_prompt_request,
    get_prompt_variant,
)


class TestPromptVariants:
    """Tests for variant lookup."""

    def test_default(self):
        assert get_prompt_variant(None).name == DEFAULT_VARIANT

    def test_known_variants(self):
        assert set(PROMPT_VARIANTS) == {"cinematic", "horror", "storyboard"}

    def test_unknown(self):
        with pytest.raises(InvalidRequestError):
            get_prompt_variant("western")


class TestSceneStreamPrompt:
    """Tests for build_scene_stream_prompt."""

    def test_fresh_run(self):
        prompt = build_scene_stream_prompt("A story {with braces}.", 5)
        assert "A story {with braces}." in prompt
        assert "SCENE_START_[NUMBER]" in prompt
        assert "STORY_CONTENT:" in prompt
        assert "SCENE_END" in prompt
        assert "Generate all 5 scenes now (1 through 5):" in prompt

    def test_resume(self):
        prompt = build_scene_stream_prompt("Story.", 10, continue_from=6)
        assert "Scenes 1 to 6 already exist." in prompt
        assert "Continue generating scenes 7 through 10 now:" in prompt
        assert "from 7 to 10" in prompt

    @pytest.mark.parametrize("name", sorted(PROMPT_VARIANTS))
    def test_prompt_matches_grammar(self, name):
        """Each variant asks for the labels its grammar parses."""
        variant = PROMPT_VARIANTS[name]
        prompt = build_scene_stream_prompt("Story.", 3, variant=variant)
        assert f"{variant.grammar.content_label}:" in prompt
        assert f"{variant.grammar.prompt_label}:" in prompt
        assert variant.grammar.start_sentinel in prompt


class TestOtherPrompts:
    """Tests for the one-shot prompt builders."""

    def test_sectioning_includes_count_and_analysis(self):
        prompt = build_sectioning_prompt("Story.", 4, "Three acts.")
        assert "exactly 4" in prompt
        assert "Three acts." in prompt
        assert '"scenes"' in prompt

    def test_segment_prompt(self):
        prompt = build_segment_prompt_request("She runs.", "")
        assert "She runs." in prompt
        assert "No summary available" in prompt

    def test_regenerate(self):
        assert "The cellar door" in build_regenerate_prompt("The cellar door")

    def test_enhance(self):
        assert 'Original prompt: "a cat"' in build_enhance_prompt("a cat")
