"""
Tests for the frame parser.

Covers single-pass parsing, incremental feeding across chunk boundaries,
malformed frames and the configurable grammar.
"""

from conftest import frame

from scenecast.scenes.frame_parser import (
    FrameGrammar,
    FrameParser,
    ParserState,
    TokenKind,
    parse_frames,
    tokenize,
)


class TestTokenize:
    """Tests for the lexer."""

    def test_token_kinds(self):
        tokens = tokenize(frame(3))
        assert [t.kind for t in tokens] == [
            TokenKind.START, TokenKind.LABEL, TokenKind.LABEL, TokenKind.END
        ]
        assert tokens[0].number == 3
        assert tokens[1].name == "STORY_CONTENT"

    def test_bracketed_number(self):
        tokens = tokenize("SCENE_START_[12]\n")
        assert tokens[0].number == 12

    def test_label_inside_word_is_ignored(self):
        tokens = tokenize("XPROMPT: nothing")
        assert tokens == []


class TestParseFrames:
    """Tests for parse_frames."""

    def test_single_frame(self):
        scan = parse_frames(frame(1, "Storm", "Lightning over a castle."))
        assert len(scan.scenes) == 1
        scene = scan.scenes[0]
        assert scene.scene_number == 1
        assert scene.content == "Storm"
        assert scene.prompt == "Lightning over a castle."
        assert scan.buffer.strip() == ""
        assert scan.state == ParserState.IDLE

    def test_multiple_frames_with_noise(self):
        text = "Sure, here you go:\n" + frame(1) + "some chatter\n" + frame(2)
        scan = parse_frames(text)
        assert [s.scene_number for s in scan.scenes] == [1, 2]
        assert "Sure, here you go:" in scan.buffer
        assert "some chatter" in scan.buffer
        assert "SCENE_START" not in scan.buffer

    def test_fields_in_either_order(self):
        text = "SCENE_START_4\nPROMPT: Wide shot.\nSTORY_CONTENT: The bridge\nSCENE_END"
        scan = parse_frames(text)
        assert scan.scenes[0].content == "The bridge"
        assert scan.scenes[0].prompt == "Wide shot."

    def test_multiline_prompt(self):
        prompt = "Main Subject: a fox.\n\nScene Context: a snowy field.\n\nComposition: low angle."
        scan = parse_frames(frame(1, "Fox", prompt))
        assert scan.scenes[0].prompt == prompt

    def test_first_label_occurrence_wins(self):
        text = (
            "SCENE_START_1\nSTORY_CONTENT: First\nPROMPT: one\n"
            "STORY_CONTENT: Second\nSCENE_END"
        )
        scan = parse_frames(text)
        assert scan.scenes[0].content == "First"
        assert scan.scenes[0].prompt == "one\nSTORY_CONTENT: Second"

    def test_repeated_label_text_stays_in_field(self):
        text = (
            "SCENE_START_1\nSTORY_CONTENT: Fox\n"
            "PROMPT: A fox in snow. Negative PROMPT: text, watermark\nSCENE_END"
        )
        scan = parse_frames(text)
        assert scan.scenes[0].content == "Fox"
        assert scan.scenes[0].prompt == "A fox in snow. Negative PROMPT: text, watermark"

    def test_repeated_label_with_fields_reversed(self):
        text = (
            "SCENE_START_2\nPROMPT: Low angle. Avoid PROMPT: blur\n"
            "STORY_CONTENT: The bridge\nSCENE_END"
        )
        scan = parse_frames(text)
        assert scan.scenes[0].prompt == "Low angle. Avoid PROMPT: blur"
        assert scan.scenes[0].content == "The bridge"

    def test_open_frame_is_kept(self):
        text = frame(1) + "SCENE_START_2\nSTORY_CONTENT: Half"
        scan = parse_frames(text)
        assert [s.scene_number for s in scan.scenes] == [1]
        assert scan.state == ParserState.IN_FRAME
        assert scan.buffer[scan.open_frame_start:].startswith("SCENE_START_2")
        assert scan.resume_at == scan.open_frame_start

    def test_missing_prompt_is_malformed(self):
        text = "SCENE_START_1\nSTORY_CONTENT: Only a label\nSCENE_END"
        scan = parse_frames(text)
        assert scan.scenes == []
        assert scan.malformed[0].scene_number == 1
        assert "PROMPT" in scan.malformed[0].reason
        assert scan.buffer == text

    def test_superseded_frame_is_malformed(self):
        text = "SCENE_START_1\nSTORY_CONTENT: lost\n" + frame(2)
        scan = parse_frames(text)
        assert [s.scene_number for s in scan.scenes] == [2]
        assert scan.malformed[0].scene_number == 1
        assert "superseded" in scan.malformed[0].reason

    def test_stray_end_outside_frame(self):
        scan = parse_frames("SCENE_END\n" + frame(1))
        assert [s.scene_number for s in scan.scenes] == [1]

    def test_start_offset_keeps_prefix(self):
        text = frame(1) + frame(2)
        first_len = len(frame(1))
        scan = parse_frames(text, start=first_len)
        assert [s.scene_number for s in scan.scenes] == [2]
        assert scan.buffer == frame(1) + "\n"

    def test_pure(self):
        text = frame(1) + "SCENE_START_2\n"
        assert parse_frames(text) == parse_frames(text)


class TestFrameParser:
    """Tests for incremental feeding."""

    def test_frame_split_across_chunks(self):
        parser = FrameParser()
        text = frame(1, "Harbor", "Boats at dawn.")
        emitted = []
        for index in range(0, len(text), 5):
            emitted.extend(parser.feed(text[index:index + 5]))
        assert len(emitted) == 1
        assert emitted[0].content == "Harbor"
        assert emitted[0].prompt == "Boats at dawn."

    def test_every_split_point(self):
        """Any two-chunk split of a stream yields the same scenes."""
        text = "intro\n" + frame(1) + frame(2, "Cliff", "A figure on the edge.")
        for cut in range(len(text) + 1):
            parser = FrameParser()
            scenes = parser.feed(text[:cut]) + parser.feed(text[cut:])
            assert [s.scene_number for s in scenes] == [1, 2], cut
            assert scenes[1].prompt == "A figure on the edge."

    def test_state_tracks_open_frame(self):
        parser = FrameParser()
        parser.feed("SCENE_START_1\nSTORY_CONTENT: a\n")
        assert parser.state == ParserState.IN_FRAME
        parser.feed("PROMPT: b\nSCENE_END")
        assert parser.state == ParserState.IDLE

    def test_empty_chunk(self):
        parser = FrameParser()
        assert parser.feed("") == []

    def test_close_reports_unterminated_frame(self):
        parser = FrameParser()
        parser.feed("SCENE_START_7\nSTORY_CONTENT: cut off\nPROMPT: never fin")
        leftover = parser.close()
        assert leftover is not None
        assert leftover.scene_number == 7
        assert parser.state == ParserState.IDLE

    def test_close_when_idle(self):
        parser = FrameParser()
        parser.feed(frame(1))
        assert parser.close() is None

    def test_malformed_warned_once(self, caplog):
        parser = FrameParser()
        parser.feed("SCENE_START_1\nSTORY_CONTENT: x\nSCENE_END")
        parser.feed(" more text")
        parser.feed(" and more")
        warnings = [r for r in caplog.records if "Malformed frame" in r.getMessage()]
        assert len(warnings) <= 1

    def test_buffer_does_not_grow_with_consumed_frames(self):
        parser = FrameParser()
        for number in range(1, 21):
            parser.feed(frame(number))
        assert "SCENE_START" not in parser.buffer
        assert len(parser.buffer) < 50


class TestCustomGrammar:
    """Tests for a non-default content label."""

    def test_summary_label(self):
        grammar = FrameGrammar(content_label="SCENE_SUMMARY")
        text = "SCENE_START_1\nSCENE_SUMMARY: She runs.\nPROMPT: Motion blur.\nSCENE_END"
        scan = parse_frames(text, grammar=grammar)
        assert scan.scenes[0].content == "She runs."

    def test_default_label_not_recognised(self):
        grammar = FrameGrammar(content_label="SCENE_SUMMARY")
        scan = parse_frames(frame(1), grammar=grammar)
        assert scan.scenes == []
        assert scan.malformed
