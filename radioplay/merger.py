"""Group consecutive segments into speech synthesis requests."""

from radioplay.models import Segment, SpeechTask


def _can_merge(task: SpeechTask, segment: Segment, segments: list[Segment]) -> bool:
    """Same speaker and narrator flag, and no effect on either side of the join."""
    last = segments[task.indices[-1]]
    return (
        segment.speaker == task.speaker
        and segment.is_narrator == task.is_narrator
        and not segment.sfx
        and not last.sfx
    )


def build_speech_tasks(segments: list[Segment]) -> list[SpeechTask]:
    """Merge runs of same-speaker lines into single requests.

    Fewer, longer requests keep prosody continuous across sentences. A
    segment with an effect keyword always starts and ends its own task so
    its sound and its line get separately timed clips.
    """
    tasks = []
    current = None

    for index, seg in enumerate(segments):
        if current is not None and _can_merge(current, seg, segments):
            current.indices.append(index)
            current.text += " " + seg.text
            continue

        if current is not None:
            tasks.append(current)
        current = SpeechTask(
            start_index=index,
            indices=[index],
            text=seg.text,
            speaker=seg.speaker,
            is_narrator=seg.is_narrator,
        )

    if current is not None:
        tasks.append(current)
    return tasks


def unique_effects(segments: list[Segment]) -> list[str]:
    """Distinct effect keywords in first-appearance order."""
    seen = set()
    keywords = []
    for seg in segments:
        if not seg.sfx:
            continue
        key = seg.sfx.strip().lower()
        if key and key not in seen:
            seen.add(key)
            keywords.append(seg.sfx)
    return keywords
