from pathlib import Path
import tempfile
import unittest

from interview_scribe.contracts.artifacts import (
    CanonicalTranscript,
    MediaReference,
    RawTranscriptionResult,
    SpeakerInfo,
    TimedSegment,
    TranscriptionRequest,
    TranscriptSegment,
)
from interview_scribe.contracts.errors import InputValidationError


class ArtifactDefaultsTests(unittest.TestCase):
    def test_artifact_construction_defaults(self) -> None:
        media = MediaReference(location="https://cdn/a.mp3", mime_type="audio/mpeg")
        self.assertIsNone(media.local_path)
        self.assertTrue(media.is_remote)
        self.assertIsNone(media.local_file())

        request = TranscriptionRequest(media=media)
        self.assertEqual(request.speaker_count, 2)
        self.assertEqual(request.interviewer_name_hint, "")

        result = RawTranscriptionResult(raw="x", mode="text")
        self.assertEqual(result.strategy, "")
        self.assertIsNone(result.prompt_sha256)

        timed = TimedSegment(text="hi")
        self.assertIsNone(timed.start_s)
        self.assertIsNone(timed.end_s)

        transcript = CanonicalTranscript(title="T")
        self.assertEqual(transcript.headers, [])
        self.assertEqual(transcript.segments, [])
        self.assertEqual(transcript.raw_content, "")

    def test_request_rejects_invalid_speaker_counts(self) -> None:
        media = MediaReference(location="a.mp3", mime_type="audio/mpeg")
        for bad in (0, -2, True):
            with self.assertRaises(InputValidationError):
                TranscriptionRequest(media=media, speaker_count=bad)
        with self.assertRaises(InputValidationError):
            TranscriptionRequest(media=MediaReference(location="a.mp3", mime_type=""))

    def test_local_file_prefers_explicit_copy(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            copy = Path(tmp) / "copy.mp3"
            copy.write_bytes(b"x")
            media = MediaReference(location="gs://bucket/a.mp3", mime_type="audio/mpeg", local_path=copy)
            self.assertEqual(media.local_file(), copy)

    def test_transcript_speakers_and_dict_shape(self) -> None:
        transcript = CanonicalTranscript(
            title="T",
            segments=[
                TranscriptSegment(id="seg-0", speaker="B", timestamp="00:00", text="one"),
                TranscriptSegment(id="seg-1", speaker="A", timestamp="00:02", text="two"),
                TranscriptSegment(id="seg-2", speaker="B", timestamp="00:05", text="three"),
            ],
            raw_content="raw",
        )

        self.assertEqual(transcript.speakers, ["B", "A"])
        data = transcript.to_dict()
        self.assertEqual(data["segments"][1], {"id": "seg-1", "speaker": "A", "timestamp": "00:02", "text": "two"})

    def test_roster_maps_interviewer_hint_and_roles(self) -> None:
        transcript = CanonicalTranscript(
            title="T",
            segments=[
                TranscriptSegment(id="seg-0", speaker="Host", timestamp="00:00", text="hi"),
                TranscriptSegment(id="seg-1", speaker="Guest", timestamp="00:02", text="hello"),
                TranscriptSegment(id="seg-2", speaker="Co-Interviewer", timestamp="00:05", text="one more"),
            ],
        )

        self.assertEqual(
            transcript.roster("Kim"),
            [
                SpeakerInfo(id="Host", name="Kim", role="interviewer"),
                SpeakerInfo(id="Guest", name="Guest", role="participant"),
                SpeakerInfo(id="Co-Interviewer", name="Co-Interviewer", role="interviewer"),
            ],
        )
        self.assertEqual(transcript.roster()[0].name, "Host")
        self.assertEqual(CanonicalTranscript(title="T").roster("Kim"), [])


if __name__ == "__main__":
    unittest.main()
