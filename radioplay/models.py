"""Data models for scene analysis, speech generation and the track mix."""

from dataclasses import dataclass, field

import numpy as np

from radioplay.constants import SAMPLE_RATE


@dataclass
class Segment:
    text: str
    speaker: str                     # character name or "Narrator"
    is_narrator: bool
    gender: str = "neutral"          # "male", "female" or "neutral"
    emotion: str = ""
    sfx: str | None = None           # effect keyword, if the line has one
    original_text: str = ""          # verbatim span of the analyzed input
    assigned_voice: str = ""         # populated once speech is generated
    speech_duration: float = 0.0     # seconds, share of the owning task's clip


@dataclass
class SpeechTask:
    start_index: int
    indices: list[int]
    text: str
    speaker: str
    is_narrator: bool


@dataclass
class VoiceProfile:
    name: str
    gender: str
    voice_id: str


@dataclass
class Scene:
    location: str = "Unknown"
    time_of_day: str = "Day"
    mood: str = "Calm"
    room_tone: str = "quiet_room"    # quiet_room, nature, city, industrial, silence
    bg_noise: str = "none"           # rain, wind, crowd, machinery, none
    score_style: str = "neutral"     # happy, sad, tense, mysterious, romantic, neutral
    narrative_perspective: str = "third_person"
    protagonist_name: str | None = None
    ambient_sounds: list[str] = field(default_factory=list)


@dataclass
class AnalysisResult:
    segments: list[Segment]
    scene: Scene


@dataclass
class Timeline:
    start_times: list[float]
    total_duration: float


@dataclass(frozen=True)
class AudioTracks:
    dialogue: np.ndarray
    score: np.ndarray
    ambience: np.ndarray
    sfx: np.ndarray
    duration: float
    sample_rate: int = SAMPLE_RATE

    def track(self, name: str) -> np.ndarray:
        return getattr(self, name)
