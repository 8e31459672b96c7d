"""Voice casting and delivery instructions for speech synthesis."""

import json
import logging
import os
import random

from radioplay.constants import (
    DEFAULT_VOICE,
    FIRST_PERSON_SUFFIX,
    NARRATOR_INSTRUCTION,
    NARRATOR_NAME,
    NARRATOR_VOICE,
)
from radioplay.models import Scene, Segment, SpeechTask, VoiceProfile

logger = logging.getLogger(__name__)

# Hardcoded English voice pool (avoids network call at startup)
VOICE_POOL = [
    ("en-US-AriaNeural", "female"),
    ("en-US-DavisNeural", "male"),
    ("en-US-TonyNeural", "male"),
    ("en-US-JennyNeural", "female"),
    ("en-US-SaraNeural", "female"),
    ("en-GB-SoniaNeural", "female"),
    ("en-GB-ThomasNeural", "male"),
    ("en-AU-NatashaNeural", "female"),
    ("en-AU-WilliamNeural", "male"),
    ("en-CA-ClaraNeural", "female"),
    ("en-CA-LiamNeural", "male"),
    ("en-IN-NeerjaNeural", "female"),
    ("en-IN-PrabhatNeural", "male"),
    ("en-IE-EmilyNeural", "female"),
    (NARRATOR_VOICE, "male"),
]

_PROTAGONIST_FALLBACKS = ("I", "Me")


def load_cast(story_path: str) -> dict:
    """Load .cast.json sidecar file if it exists.

    Returns cast dict or empty dict if not found or malformed.
    """
    base = os.path.splitext(story_path)[0]
    cast_path = base + ".cast.json"
    if not os.path.exists(cast_path):
        return {}
    try:
        with open(cast_path) as f:
            return json.load(f)
    except json.JSONDecodeError:
        logger.warning("Malformed cast file: %s, using random casting", cast_path)
        return {}


def _resolve_cast_voice(speaker: str, cast: dict) -> str | None:
    """Voice pinned for a speaker (by name or alias) in the cast sidecar."""
    wanted = speaker.lower()
    for name, info in cast.get("cast", {}).items():
        aliases = [a.lower() for a in info.get("aliases", [])]
        if name.lower() == wanted or wanted in aliases:
            return info.get("voice")
    return None


def _voice_pool(gender: str, third_person: bool) -> list[str]:
    """Voices matching gender; neutral matches all. Falls back to the full pool."""
    pool = [
        voice for voice, voice_gender in VOICE_POOL
        if (gender == "neutral" or voice_gender == gender)
        and not (third_person and voice == NARRATOR_VOICE)
    ]
    if not pool:
        pool = [voice for voice, _ in VOICE_POOL]
    return pool


def build_profiles(
    segments: list[Segment],
    scene: Scene,
    cast: dict | None = None,
    rng: random.Random | None = None,
) -> list[VoiceProfile]:
    """Cast every distinct speaker, then the narrator.

    Characters get a random voice from the gender-matched pool (their gender
    is taken from their first segment) unless the cast file pins one. The
    narrator uses the dedicated narrator voice in third person, and borrows
    the protagonist's voice in first person.
    """
    if cast is None:
        cast = {}
    rng = rng or random.Random()
    third_person = scene.narrative_perspective != "first_person"

    profiles = []
    seen = set()
    for seg in segments:
        if seg.is_narrator or seg.speaker == NARRATOR_NAME or seg.speaker in seen:
            continue
        seen.add(seg.speaker)
        voice = _resolve_cast_voice(seg.speaker, cast)
        if not voice:
            voice = rng.choice(_voice_pool(seg.gender, third_person))
        profiles.append(VoiceProfile(name=seg.speaker, gender=seg.gender, voice_id=voice))

    narrator_voice = cast.get("narrator", {}).get("voice")
    if not narrator_voice:
        narrator_voice = _narrator_voice(profiles, scene)
    profiles.append(VoiceProfile(name=NARRATOR_NAME, gender="male", voice_id=narrator_voice))
    return profiles


def _narrator_voice(profiles: list[VoiceProfile], scene: Scene) -> str:
    if scene.narrative_perspective != "first_person":
        return NARRATOR_VOICE

    by_name = {p.name: p for p in profiles}
    protagonist = by_name.get(scene.protagonist_name or "")
    if protagonist is None:
        for fallback in _PROTAGONIST_FALLBACKS:
            if fallback in by_name:
                protagonist = by_name[fallback]
                break
    if protagonist is None:
        logger.info("No protagonist voice found for first-person narration, using default")
        return DEFAULT_VOICE
    return protagonist.voice_id


def voice_for(task: SpeechTask, profiles: list[VoiceProfile]) -> str:
    """Voice id for a speech task; unknown speakers get the default voice."""
    name = NARRATOR_NAME if task.is_narrator else task.speaker
    for profile in profiles:
        if profile.name == name:
            return profile.voice_id
    return DEFAULT_VOICE


def delivery_instruction(task: SpeechTask, segments: list[Segment], scene: Scene) -> str:
    """Instruction passed to the speech service alongside the text."""
    if task.is_narrator:
        instruction = NARRATOR_INSTRUCTION
        if scene.narrative_perspective == "first_person":
            instruction += FIRST_PERSON_SUFFIX
        return instruction

    emotion = segments[task.start_index].emotion or "Neutral"
    return (
        f"Character: {task.speaker}. Emotion: {emotion}. "
        "Act out the text naturally based on context."
    )
