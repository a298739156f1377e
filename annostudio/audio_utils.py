from __future__ import annotations

import json
import logging
import math
import time
import uuid
from typing import Any, Optional

from annostudio.models import AudioSegment

logger = logging.getLogger(__name__)


def _segment_id() -> str:
    return f"temp_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


def add_segment(
    segments: list[AudioSegment], start: float, end: float, label: str, transcription: str = ""
) -> list[AudioSegment]:
    """
    Append a labelled segment.

    Raises ValueError without a label; a zero/negative-length recording is discarded.
    """
    if not (label or "").strip():
        raise ValueError("Please select a label first")
    if end <= start:
        return list(segments)
    seg = AudioSegment(id=_segment_id(), start_time=float(start), end_time=float(end), label=label, transcription=transcription)
    return [*segments, seg]


def remove_segment(segments: list[AudioSegment], segment_id: str) -> list[AudioSegment]:
    return [s for s in segments if s.id != segment_id]


def edit_segment(segments: list[AudioSegment], segment_id: str, *, label: str, transcription: str) -> list[AudioSegment]:
    return [
        s.model_copy(update={"label": label, "transcription": transcription}) if s.id == segment_id else s for s in segments
    ]


def segment_at(segments: list[AudioSegment], t: float) -> Optional[AudioSegment]:
    return next((s for s in segments if s.start_time <= t <= s.end_time), None)


def sort_segments(segments: list[AudioSegment]) -> list[AudioSegment]:
    return sorted(segments, key=lambda s: (s.start_time, s.end_time))


def format_time(seconds: float) -> str:
    if seconds is None or not math.isfinite(seconds) or seconds < 0:
        seconds = 0
    minutes = int(seconds // 60)
    secs = int(seconds % 60)
    return f"{minutes}:{secs:02d}"


def timeline_share(seg: AudioSegment, duration: float) -> tuple[float, float]:
    """(left %, width %) of a segment on a timeline of ``duration`` seconds."""
    if not duration or duration <= 0:
        return 0.0, 0.0
    return seg.start_time / duration * 100, seg.duration / duration * 100


def dump_segments(segments: list[AudioSegment]) -> str:
    return json.dumps([s.to_payload() for s in segments], ensure_ascii=False)


def load_segments(value: Any) -> list[AudioSegment]:
    """Segments stored in a row cell (JSON text or an already-decoded list); bad data yields []."""
    if not value:
        return []
    raw = value
    if isinstance(value, str):
        try:
            raw = json.loads(value)
        except json.JSONDecodeError:
            logger.warning("Ignoring malformed audio segments: %.60s", value)
            return []
    if not isinstance(raw, list):
        return []
    out: list[AudioSegment] = []
    for item in raw:
        if isinstance(item, dict):
            try:
                out.append(AudioSegment.model_validate(item))
            except ValueError:
                logger.warning("Skipping invalid audio segment: %s", item)
    return out


def segments_value(segments: list[AudioSegment]) -> str:
    """Field value for a segment list; ``""`` when there are none."""
    return dump_segments(segments) if segments else ""


def remove_from_value(value: Any, segment_id: str) -> str:
    return segments_value(remove_segment(load_segments(value), segment_id))
