"""Stitch sparse per-segment clips into contiguous track buffers."""

import logging
from collections.abc import Sequence

import numpy as np

from radioplay.constants import PCM_FULL_SCALE, SAMPLE_RATE
from radioplay.dsp import place
from radioplay.effects import apply_reverb
from radioplay.models import AudioTracks, Segment, Timeline

logger = logging.getLogger(__name__)


def _to_float(clip: np.ndarray) -> np.ndarray:
    if clip.dtype == np.int16:
        return clip.astype(np.float32) / PCM_FULL_SCALE
    return clip.astype(np.float32)


def _buffer(total_duration: float, sample_rate: int) -> np.ndarray:
    return np.zeros(int(np.ceil(total_duration * sample_rate)), dtype=np.float32)


def stitch(
    target: np.ndarray,
    clips: Sequence[np.ndarray | None],
    start_times: Sequence[float],
    segments: list[Segment],
    narrator: bool,
    replace: bool = False,
    sample_rate: int = SAMPLE_RATE,
) -> None:
    """Write each owned clip of the selected speaker class at its offset.

    replace=True overwrites the target range (the dry character pass);
    otherwise clips are summed in (the narrator pass goes over the reverb).
    """
    for i, seg in enumerate(segments):
        clip = clips[i]
        if clip is None or len(clip) == 0 or seg.is_narrator != narrator:
            continue
        start = int(start_times[i] * sample_rate)
        if start >= len(target):
            continue
        samples = _to_float(clip)
        if replace:
            end = min(start + len(samples), len(target))
            target[start:end] = samples[: end - start]
        else:
            place(target, samples, start)


def compose_dialogue_track(
    segments: list[Segment],
    speech_clips: Sequence[np.ndarray | None],
    timeline: Timeline,
    sample_rate: int = SAMPLE_RATE,
) -> np.ndarray:
    """Characters dry, then reverb over the whole bus, then narrator on top."""
    dialogue = _buffer(timeline.total_duration, sample_rate)
    stitch(dialogue, speech_clips, timeline.start_times, segments,
           narrator=False, replace=True, sample_rate=sample_rate)
    dialogue = apply_reverb(dialogue, sample_rate=sample_rate)
    stitch(dialogue, speech_clips, timeline.start_times, segments,
           narrator=True, sample_rate=sample_rate)
    return dialogue


def compose_sfx_track(
    segments: list[Segment],
    effect_clips: dict[str, np.ndarray],
    timeline: Timeline,
    sample_rate: int = SAMPLE_RATE,
) -> np.ndarray:
    """Place the rendered effect for every segment carrying a keyword."""
    sfx = _buffer(timeline.total_duration, sample_rate)
    for seg, start_time in zip(segments, timeline.start_times):
        if not seg.sfx:
            continue
        clip = effect_clips.get(seg.sfx.strip().lower())
        if clip is None:
            logger.warning("No rendered effect for '%s', skipping", seg.sfx)
            continue
        place(sfx, _to_float(clip), int(start_time * sample_rate))
    return sfx


def _fit(audio: np.ndarray, length: int) -> np.ndarray:
    """Pad with silence or truncate to exactly length samples."""
    out = np.zeros(length, dtype=np.float32)
    n = min(length, len(audio))
    out[:n] = audio[:n]
    return out


def build_tracks(
    dialogue: np.ndarray,
    score: np.ndarray,
    ambience: np.ndarray,
    sfx: np.ndarray,
    duration: float,
    sample_rate: int = SAMPLE_RATE,
) -> AudioTracks:
    """Freeze the four buffers into one immutable AudioTracks bundle.

    Dialogue and sfx are fitted to the mix duration; score and ambience keep
    their own (loop) length.
    """
    length = len(_buffer(duration, sample_rate))
    buffers = {
        "dialogue": _fit(dialogue, length),
        "score": np.asarray(score, dtype=np.float32).copy(),
        "ambience": np.asarray(ambience, dtype=np.float32).copy(),
        "sfx": _fit(sfx, length),
    }
    for buf in buffers.values():
        buf.flags.writeable = False
    return AudioTracks(duration=duration, sample_rate=sample_rate, **buffers)
