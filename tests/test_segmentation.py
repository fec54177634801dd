from __future__ import annotations

from dataclasses import asdict
import json
import unittest

from interview_scribe.components.segmentation import (
    DEFAULT_RULES,
    FALLBACK_SPEAKER,
    SimpleNameRule,
    clean_speaker_name,
    is_metadata_line,
    parse_transcript,
)


class LineHeuristicTests(unittest.TestCase):
    def test_immediate_timestamp_turns_with_continuation(self) -> None:
        raw = "김민수 0:05 안녕하세요\n반갑습니다\n이지은 0:10 네 안녕하세요"

        transcript = parse_transcript(raw)

        self.assertEqual(len(transcript.segments), 2)
        first, second = transcript.segments
        self.assertEqual((first.speaker, first.timestamp, first.text), ("김민수", "0:05", "안녕하세요\n반갑습니다"))
        self.assertEqual((second.speaker, second.timestamp, second.text), ("이지은", "0:10", "네 안녕하세요"))
        self.assertEqual(transcript.headers, [])

    def test_any_newline_convention_splits_lines(self) -> None:
        expected = [
            ("김민수", "0:05", "안녕하세요\n반갑습니다"),
            ("이지은", "0:10", "네 안녕하세요"),
        ]
        for separator in ("\r\n", "\r"):
            raw = separator.join(["김민수 0:05 안녕하세요", "반갑습니다", "이지은 0:10 네 안녕하세요"])

            transcript = parse_transcript(raw)

            self.assertEqual([(s.speaker, s.timestamp, s.text) for s in transcript.segments], expected)
            self.assertEqual(transcript.raw_content, raw)

    def test_empty_input_yields_no_segments(self) -> None:
        transcript = parse_transcript("")

        self.assertEqual(transcript.segments, [])
        self.assertEqual(transcript.headers, [])
        self.assertEqual(transcript.title, "Transcript")

    def test_malformed_structured_input_falls_back_to_system_segment(self) -> None:
        raw = "[{speaker: 'A'"

        transcript = parse_transcript(raw)

        self.assertEqual(len(transcript.segments), 1)
        segment = transcript.segments[0]
        self.assertEqual(segment.speaker, FALLBACK_SPEAKER)
        self.assertEqual(segment.timestamp, "00:00")
        self.assertEqual(segment.text, raw)

    def test_deeply_nested_brackets_fall_back_to_system_segment(self) -> None:
        raw = "[" * 100000 + "]" * 100000

        transcript = parse_transcript(raw)

        self.assertEqual(len(transcript.segments), 1)
        self.assertEqual(transcript.segments[0].speaker, FALLBACK_SPEAKER)
        self.assertEqual(transcript.segments[0].text, raw)

    def test_simple_name_turn_spans_continuation_lines(self) -> None:
        transcript = parse_transcript("Alice: Hello there\nthis continues")

        self.assertEqual(len(transcript.segments), 1)
        self.assertEqual(transcript.segments[0].speaker, "Alice")
        self.assertEqual(transcript.segments[0].timestamp, "00:00")
        self.assertEqual(transcript.segments[0].text, "Hello there\nthis continues")

    def test_general_turn_formats(self) -> None:
        raw = "\n".join(
            [
                "Speaker 1 [00:05]: Hello",
                "Lenny (00:00:36): Welcome to the show",
                "Speaker 00:41: formatted by the segment provider",
            ]
        )

        segments = parse_transcript(raw).segments

        self.assertEqual([s.speaker for s in segments], ["Speaker 1", "Lenny", "Speaker"])
        self.assertEqual([s.timestamp for s in segments], ["00:05", "00:00:36", "00:41"])
        self.assertEqual(
            [s.text for s in segments],
            ["Hello", "Welcome to the show", "formatted by the segment provider"],
        )

    def test_time_inside_utterance_is_not_a_speaker_turn(self) -> None:
        segments = parse_transcript("Alice: we met at 10:30 today").segments

        self.assertEqual(len(segments), 1)
        self.assertEqual(segments[0].speaker, "Alice")
        self.assertEqual(segments[0].text, "we met at 10:30 today")

    def test_simple_name_reuses_current_timestamp(self) -> None:
        segments = parse_transcript("Bob 1:15 First\nAlice: Reply").segments

        self.assertEqual([(s.speaker, s.timestamp) for s in segments], [("Bob", "1:15"), ("Alice", "1:15")])

    def test_long_names_and_comment_markers_are_not_speakers(self) -> None:
        raw = "Host: intro\nThis is a very long sentence prefix: with a colon\nhttp: //example"

        segments = parse_transcript(raw).segments

        self.assertEqual(len(segments), 1)
        self.assertEqual(segments[0].text, "intro\nThis is a very long sentence prefix: with a colon\nhttp: //example")

    def test_metadata_lines_go_to_headers_only(self) -> None:
        raw = "2024년 3월 5일\nRecording 1\n00:15\nAlice: hi\n12분 30초\nmore"

        transcript = parse_transcript(raw)

        self.assertEqual(transcript.headers, ["2024년 3월 5일", "Recording 1", "00:15", "12분 30초"])
        self.assertEqual(len(transcript.segments), 1)
        self.assertEqual(transcript.segments[0].text, "hi\nmore")
        for header in transcript.headers:
            self.assertNotIn(header, transcript.segments[0].text)

    def test_orphan_lines_become_headers_and_seed_transcript_bucket(self) -> None:
        transcript = parse_transcript("Intro without speaker\nfollow-up text\nSpeaker 1: hi")

        self.assertEqual(transcript.headers, ["Intro without speaker"])
        self.assertEqual([s.speaker for s in transcript.segments], ["Transcript", "Speaker 1"])
        self.assertEqual(transcript.segments[0].text, "follow-up text")
        self.assertEqual(transcript.segments[1].timestamp, "00:00")

    def test_plain_text_without_speakers_keeps_raw_content(self) -> None:
        raw = "just one line of notes"

        transcript = parse_transcript(raw)

        self.assertEqual(len(transcript.segments), 1)
        self.assertEqual(transcript.segments[0].speaker, FALLBACK_SPEAKER)
        self.assertEqual(transcript.segments[0].text, raw)

    def test_custom_rule_order_is_respected(self) -> None:
        rules = tuple(rule for rule in DEFAULT_RULES if not isinstance(rule, SimpleNameRule))

        transcript = parse_transcript("Alice: hi", rules=rules)

        self.assertEqual(transcript.segments[0].speaker, FALLBACK_SPEAKER)


class StructuredSniffTests(unittest.TestCase):
    def test_json_array_with_surrounding_prose(self) -> None:
        raw = 'Here is the transcript:\n[{"speaker": "A", "timestamp": "00:01", "text": "Hi"}]\nDone.'

        transcript = parse_transcript(raw, "Interview")

        self.assertEqual(transcript.title, "Interview")
        self.assertEqual(transcript.headers, [])
        self.assertEqual([(s.speaker, s.text) for s in transcript.segments], [("A", "Hi")])

    def test_object_with_segments_key(self) -> None:
        raw = json.dumps({"segments": [{"role": "Interviewer", "start": 3725, "content": "Long run"}]})

        segments = parse_transcript(raw).segments

        self.assertEqual(segments[0].speaker, "Interviewer")
        self.assertEqual(segments[0].timestamp, "01:02:05")
        self.assertEqual(segments[0].text, "Long run")

    def test_structured_round_trip_preserves_segments(self) -> None:
        original = parse_transcript("김민수 0:05 안녕하세요\n이지은 0:10 네").segments
        serialized = json.dumps([asdict(s) for s in original], ensure_ascii=False)

        reparsed = parse_transcript(serialized).segments

        self.assertEqual(
            [(s.speaker, s.timestamp, s.text) for s in reparsed],
            [(s.speaker, s.timestamp, s.text) for s in original],
        )


class ParserPropertiesTests(unittest.TestCase):
    SAMPLES = (
        "",
        "Speaker 1 [00:00]: hi\nSpeaker 2 [00:03]: hello",
        "[{speaker: 'A'",
        "2024.01.02\nnotes only",
        '```json\n[{"speaker": "Speaker 1", "text": "fenced"}]\n```',
    )

    def test_parse_is_idempotent_and_non_destructive(self) -> None:
        for raw in self.SAMPLES:
            first = parse_transcript(raw, "T")
            second = parse_transcript(raw, "T")
            self.assertEqual(first, second)
            self.assertEqual(first.raw_content, raw)
            if raw:
                self.assertGreaterEqual(len(first.segments), 1)
            for segment in first.segments:
                self.assertTrue(segment.speaker)
                self.assertTrue(segment.text)

    def test_speaker_name_cleanup(self) -> None:
        self.assertEqual(clean_speaker_name(" Lenny (: "), "Lenny")
        self.assertEqual(clean_speaker_name("Speaker 1]:"), "Speaker 1")

    def test_metadata_detection(self) -> None:
        self.assertTrue(is_metadata_line("2024-03-05 meeting"))
        self.assertTrue(is_metadata_line("1시간 20분"))
        self.assertTrue(is_metadata_line("녹음녹화 시작"))
        self.assertFalse(is_metadata_line("Alice: 2024 was great"))


if __name__ == "__main__":
    unittest.main()
