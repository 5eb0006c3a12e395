"""
Tests for story segmentation: JSON repair, the fallback splitter and the
segmenter's prompt synthesis.
"""

import json

import pytest
from conftest import FakeGateway

from scenecast.core.exceptions import LLMProviderError, SegmentParseError
from scenecast.scenes.segmentation import (
    StorySegmenter,
    extract_json_object,
    fallback_split,
    parse_segment_json,
)


def sectioning_json(count: int) -> str:
    return json.dumps({
        "scenes": [
            {"sceneNumber": n, "content": f"Part {n} of the story.", "summary": f"Summary {n}"}
            for n in range(1, count + 1)
        ]
    })


def normalized(text: str) -> str:
    return " ".join(text.split())


class TestJsonExtraction:
    """Tests for extract_json_object and parse_segment_json."""

    def test_plain_object(self):
        assert extract_json_object('{"a": 1}') == {"a": 1}

    def test_code_fence_and_prose(self):
        raw = 'Here is the breakdown:\n```json\n{"scenes": []}\n```\nHope this helps!'
        assert extract_json_object(raw) == {"scenes": []}

    def test_trailing_comma_repaired(self):
        raw = '{"scenes": [{"sceneNumber": 1, "content": "x",},]}'
        assert extract_json_object(raw)["scenes"][0]["content"] == "x"

    def test_curly_quotes_repaired(self):
        raw = "{“scenes”: []}"
        assert extract_json_object(raw) == {"scenes": []}

    def test_first_balanced_object(self):
        raw = '{"scenes": [{"sceneNumber": 1, "content": "a"}]} and then {"extra": true}'
        assert extract_json_object(raw)["scenes"][0]["sceneNumber"] == 1

    def test_no_object(self):
        with pytest.raises(SegmentParseError):
            extract_json_object("no json here")

    def test_parse_segments_coerces_fields(self):
        raw = '{"scenes": [{"sceneNumber": "2", "content": "Hello", "summary": null}]}'
        segments = parse_segment_json(raw)
        assert segments[0].scene_number == 2
        assert segments[0].summary == ""

    def test_empty_scenes_rejected(self):
        with pytest.raises(SegmentParseError) as excinfo:
            parse_segment_json('{"scenes": []}')
        assert "scenes" in excinfo.value.details["reason"]


class TestFallbackSplit:
    """Tests for the deterministic splitter."""

    @pytest.mark.parametrize("count", [1, 2, 3, 4, 6])
    def test_paragraph_coverage(self, sample_story, count):
        segments = fallback_split(sample_story, count)
        assert len(segments) == count
        assert [s.scene_number for s in segments] == list(range(1, count + 1))
        joined = " ".join(s.content for s in segments)
        assert normalized(joined) == normalized(sample_story)

    @pytest.mark.parametrize("count", [1, 2, 3, 5])
    def test_sentence_coverage(self, single_paragraph_story, count):
        segments = fallback_split(single_paragraph_story, count)
        assert len(segments) == count
        joined = " ".join(s.content for s in segments)
        assert normalized(joined) == normalized(single_paragraph_story)

    def test_more_scenes_than_sentences(self):
        story = "One short line here. Another one follows it."
        segments = fallback_split(story, 5)
        assert len(segments) == 2

    def test_short_sentences_folded(self):
        story = (
            "It rained. The old house at the end of the lane leaned into the wind. "
            "Nobody came. By morning the river had reached the front steps."
        )
        segments = fallback_split(story, 2)
        assert segments[0].content.startswith("It rained. The old house")
        assert "Nobody came." in segments[0].content

    def test_summaries(self, sample_story):
        segments = fallback_split(sample_story, 2)
        assert segments[0].summary == "Scene 1 (automatically generated)"

    def test_split_summary_names_parent(self):
        story = "First paragraph has several words in it.\n\nSecond one is short."
        segments = fallback_split(story, 4)
        assert len(segments) == 4
        assert any(s.summary.startswith("Part 1 of split scene") for s in segments)

    def test_empty_story(self):
        assert fallback_split("   ", 3) == []

    def test_deterministic(self, sample_story):
        assert fallback_split(sample_story, 3) == fallback_split(sample_story, 3)


class TestStorySegmenter:
    """Tests for StorySegmenter."""

    @pytest.mark.asyncio
    async def test_section_only(self, sample_story):
        gateway = FakeGateway(completions=["analysis", sectioning_json(3)])
        result = await StorySegmenter(gateway).process(sample_story, 3, section_only=True)
        assert [s.scene_number for s in result.segments] == [1, 2, 3]
        assert all(s.prompt is None for s in result.segments)
        assert not result.used_fallback

    @pytest.mark.asyncio
    async def test_with_prompts(self, sample_story):
        gateway = FakeGateway(completions=[
            "analysis", sectioning_json(2), " prompt one ", "prompt two",
        ])
        result = await StorySegmenter(gateway).process(sample_story, 2)
        assert [s.prompt for s in result.segments] == ["prompt one", "prompt two"]
        assert result.failed_scenes == []

    @pytest.mark.asyncio
    async def test_failed_prompt_recorded(self, sample_story):
        gateway = FakeGateway(completions=[
            "analysis",
            sectioning_json(2),
            "prompt one",
            LLMProviderError("openai", "bad request", status_code=400),
        ])
        result = await StorySegmenter(gateway).process(sample_story, 2)
        assert result.segments[0].prompt == "prompt one"
        assert result.segments[1].prompt == ""
        assert result.segments[1].error
        assert result.failed_scenes == [2]

    @pytest.mark.asyncio
    async def test_unparseable_sectioning_uses_fallback(self, sample_story):
        gateway = FakeGateway(completions=["analysis", "I cannot do that."])
        result = await StorySegmenter(gateway).process(sample_story, 2, section_only=True)
        assert result.used_fallback
        assert len(result.segments) == 2

    @pytest.mark.asyncio
    async def test_analysis_failure_is_not_fatal(self, sample_story):
        gateway = FakeGateway(completions=[
            LLMProviderError("openai", "bad request", status_code=400),
            sectioning_json(2),
        ])
        result = await StorySegmenter(gateway).process(sample_story, 2, section_only=True)
        assert len(result.segments) == 2
        assert "No analysis available" in gateway.prompts[1]

    @pytest.mark.asyncio
    async def test_sectioning_failure_propagates(self, sample_story):
        gateway = FakeGateway(completions=[
            "analysis",
            LLMProviderError("openai", "bad request", status_code=400),
        ])
        with pytest.raises(LLMProviderError):
            await StorySegmenter(gateway).process(sample_story, 2)


class TestShortSentenceFallback:
    """Short sentences with an unusable sectioning response."""

    @pytest.mark.asyncio
    async def test_four_short_sentences_two_scenes(self):
        story = "He ran. She hid. It rained. They met."
        gateway = FakeGateway(completions=["analysis", "not json at all"])
        result = await StorySegmenter(gateway).process(story, 2, section_only=True)

        assert result.used_fallback
        assert [s.scene_number for s in result.segments] == [1, 2]
        assert result.segments[0].content == "He ran. She hid."
        assert result.segments[1].content == "It rained. They met."
