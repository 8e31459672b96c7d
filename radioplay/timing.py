"""Place variable-length speech clips on a shared timeline."""

from collections.abc import Sequence

import numpy as np

from radioplay.constants import SAMPLE_RATE, SEGMENT_GAP_SECONDS, TAIL_SECONDS
from radioplay.models import Segment, SpeechTask, Timeline


def assign_speech_durations(
    task: SpeechTask,
    segments: list[Segment],
    clip: np.ndarray,
    voice: str,
    sample_rate: int = SAMPLE_RATE,
) -> None:
    """Split a task's clip length across its segments by character count.

    Only the task's first segment owns the samples; the others are silent
    placeholders whose time slot is still reserved on the timeline.
    """
    total = len(clip) / sample_rate
    total_chars = sum(len(segments[i].text) for i in task.indices)
    for i in task.indices:
        seg = segments[i]
        seg.assigned_voice = voice
        share = len(seg.text) / total_chars if total_chars else 1.0 / len(task.indices)
        seg.speech_duration = total * share


def compute_timeline(
    segments: list[Segment],
    speech_clips: Sequence[np.ndarray | None],
    effect_lengths: Sequence[float] | None = None,
    sample_rate: int = SAMPLE_RATE,
) -> Timeline:
    """Start offset per segment and total mix duration.

    The running time advances by each segment's speech duration (falling
    back to its own clip length), plus SEGMENT_GAP_SECONDS when that is
    nonzero. Total duration covers both the running time and the end of
    every clip a segment owns (speech or effect), plus TAIL_SECONDS.
    """
    current = 0.0
    max_end = 0.0
    start_times = []

    for i, seg in enumerate(segments):
        start_times.append(current)
        clip = speech_clips[i]
        raw = len(clip) / sample_rate if clip is not None else 0.0
        effect = effect_lengths[i] if effect_lengths is not None else 0.0
        max_end = max(max_end, current + raw, current + effect)

        content = seg.speech_duration or raw
        current += content
        if content > 0:
            current += SEGMENT_GAP_SECONDS

    return Timeline(start_times=start_times, total_duration=max(max_end, current) + TAIL_SECONDS)
