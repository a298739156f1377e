"""
Tests for annostudio/audio_utils.py: segment list editing and (de)serialisation.
"""

import json
import unittest

from annostudio import audio_utils
from annostudio.models import AudioSegment


def _seg(sid, start, end, label="speech", transcription=""):
    return AudioSegment(id=sid, start_time=start, end_time=end, label=label, transcription=transcription)


class TestAddSegment(unittest.TestCase):

    def test_adds_labelled_segment(self):
        segs = audio_utils.add_segment([], 1.0, 2.5, "speech", "hello")
        self.assertEqual(len(segs), 1)
        s = segs[0]
        self.assertTrue(s.id.startswith("temp_"))
        self.assertEqual((s.start_time, s.end_time, s.label, s.transcription), (1.0, 2.5, "speech", "hello"))
        self.assertAlmostEqual(s.duration, 1.5)

    def test_label_required(self):
        with self.assertRaises(ValueError):
            audio_utils.add_segment([], 0.0, 1.0, "")
        with self.assertRaises(ValueError):
            audio_utils.add_segment([], 0.0, 1.0, "   ")

    def test_zero_length_discarded(self):
        existing = [_seg("a", 0, 1)]
        self.assertEqual(audio_utils.add_segment(existing, 3.0, 3.0, "noise"), existing)
        self.assertEqual(audio_utils.add_segment(existing, 4.0, 2.0, "noise"), existing)

    def test_ids_unique(self):
        segs = audio_utils.add_segment([], 0, 1, "a")
        segs = audio_utils.add_segment(segs, 1, 2, "b")
        self.assertNotEqual(segs[0].id, segs[1].id)


class TestEditing(unittest.TestCase):

    def setUp(self):
        self.segs = [_seg("a", 0, 2), _seg("b", 5, 8, "music")]

    def test_remove(self):
        self.assertEqual([s.id for s in audio_utils.remove_segment(self.segs, "a")], ["b"])

    def test_remove_from_stored_value(self):
        value = audio_utils.dump_segments(self.segs)
        left = audio_utils.remove_from_value(value, "a")
        self.assertEqual([s.id for s in audio_utils.load_segments(left)], ["b"])
        self.assertEqual(audio_utils.remove_from_value(left, "b"), "")
        self.assertEqual(audio_utils.remove_from_value(value, "missing"), value)

    def test_edit(self):
        out = audio_utils.edit_segment(self.segs, "b", label="noise", transcription="bang")
        self.assertEqual((out[1].label, out[1].transcription), ("noise", "bang"))
        self.assertEqual(self.segs[1].label, "music")

    def test_segment_at(self):
        self.assertEqual(audio_utils.segment_at(self.segs, 1.0).id, "a")
        self.assertEqual(audio_utils.segment_at(self.segs, 5.0).id, "b")
        self.assertIsNone(audio_utils.segment_at(self.segs, 3.0))

    def test_sort(self):
        out = audio_utils.sort_segments([self.segs[1], self.segs[0]])
        self.assertEqual([s.id for s in out], ["a", "b"])

    def test_timeline_share(self):
        left, width = audio_utils.timeline_share(self.segs[1], 10.0)
        self.assertAlmostEqual(left, 50.0)
        self.assertAlmostEqual(width, 30.0)
        self.assertEqual(audio_utils.timeline_share(self.segs[1], 0), (0.0, 0.0))


class TestFormatTime(unittest.TestCase):

    def test_format(self):
        self.assertEqual(audio_utils.format_time(0), "0:00")
        self.assertEqual(audio_utils.format_time(65.7), "1:05")
        self.assertEqual(audio_utils.format_time(600), "10:00")
        self.assertEqual(audio_utils.format_time(float("nan")), "0:00")


class TestSerialisation(unittest.TestCase):

    def test_dump_uses_camel_case(self):
        raw = json.loads(audio_utils.dump_segments([_seg("a", 0, 1)]))
        self.assertEqual(raw[0]["startTime"], 0)
        self.assertEqual(raw[0]["endTime"], 1)

    def test_load_roundtrip_and_bad_input(self):
        text = audio_utils.dump_segments([_seg("a", 0.5, 1.5, "x", "hi")])
        self.assertEqual(audio_utils.load_segments(text)[0].transcription, "hi")
        self.assertEqual(audio_utils.load_segments("not json"), [])
        self.assertEqual(audio_utils.load_segments('{"a": 1}'), [])
        self.assertEqual(audio_utils.load_segments(None), [])
        mixed = [{"id": "ok", "startTime": 0, "endTime": 1}, {"id": "bad"}, "junk"]
        self.assertEqual([s.id for s in audio_utils.load_segments(mixed)], ["ok"])


if __name__ == "__main__":
    unittest.main()
