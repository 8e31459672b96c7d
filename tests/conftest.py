"""Shared fixtures for radioplay tests."""

import numpy as np
import pytest

from radioplay.constants import SAMPLE_RATE
from radioplay.models import Scene, Segment
from radioplay.tts import encode_pcm16


class FakeSpeechService:
    """Speech service returning a loud tone, 50 ms per character of text.

    Records every request; raises for texts listed in fail_on.
    """

    def __init__(self, fail_on=()):
        self.calls = []
        self.fail_on = set(fail_on)

    async def synthesize(self, text, voice, instruction):
        self.calls.append((text, voice, instruction))
        if text in self.fail_on:
            raise RuntimeError(f"service unavailable for {text!r}")
        n = int(len(text) * 0.05 * SAMPLE_RATE)
        tone = np.sin(2 * np.pi * 220 * np.arange(n) / SAMPLE_RATE) * 8000
        return encode_pcm16(tone.astype(np.int16))


class FakeClock:
    """Manually advanced audio clock, in seconds."""

    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


@pytest.fixture
def speech_service():
    return FakeSpeechService()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sample_segments():
    """Narration, two lines from Alice, a creak, then Bob."""
    return [
        Segment(text="It was dark.", speaker="Narrator", is_narrator=True,
                emotion="Matter-of-fact"),
        Segment(text="Who's there?", speaker="Alice", is_narrator=False,
                gender="female", emotion="Fearful"),
        Segment(text="Show yourself.", speaker="Alice", is_narrator=False,
                gender="female", emotion="Fearful"),
        Segment(text="The door creaked open.", speaker="Narrator", is_narrator=True,
                emotion="Matter-of-fact", sfx="creak"),
        Segment(text="Only me.", speaker="Bob", is_narrator=False, gender="male",
                emotion="Neutral"),
    ]


@pytest.fixture
def sample_scene():
    return Scene(location="Hallway", time_of_day="Night", mood="Tense",
                 score_style="tense", ambient_sounds=["wind", "clock"])


@pytest.fixture
def failing_speech_service():
    """Factory for a speech service that fails on the given texts."""
    return lambda *texts: FakeSpeechService(fail_on=texts)
