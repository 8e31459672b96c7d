"""Tests for voice casting and delivery instructions."""

import json
import random

from radioplay.constants import (
    DEFAULT_VOICE,
    FIRST_PERSON_SUFFIX,
    NARRATOR_INSTRUCTION,
    NARRATOR_VOICE,
)
from radioplay.merger import build_speech_tasks
from radioplay.models import Scene, Segment, SpeechTask, VoiceProfile
from radioplay.voices import (
    VOICE_POOL,
    build_profiles,
    delivery_instruction,
    load_cast,
    voice_for,
)

FEMALE = {v for v, g in VOICE_POOL if g == "female"}
MALE = {v for v, g in VOICE_POOL if g == "male"}


def _profiles(segments, scene=None, cast=None, seed=0):
    return build_profiles(segments, scene or Scene(), cast, random.Random(seed))


def test_each_speaker_cast_once(sample_segments):
    profiles = _profiles(sample_segments)
    names = [p.name for p in profiles]
    assert names == ["Alice", "Bob", "Narrator"]


def test_voice_matches_gender(sample_segments):
    for seed in range(20):
        by_name = {p.name: p for p in _profiles(sample_segments, seed=seed)}
        assert by_name["Alice"].voice_id in FEMALE
        assert by_name["Bob"].voice_id in MALE


def test_third_person_narrator_voice_reserved(sample_segments):
    for seed in range(30):
        by_name = {p.name: p for p in _profiles(sample_segments, seed=seed)}
        assert by_name["Narrator"].voice_id == NARRATOR_VOICE
        assert by_name["Bob"].voice_id != NARRATOR_VOICE


def test_first_person_narrator_borrows_protagonist():
    segments = [
        Segment(text="I looked up.", speaker="Narrator", is_narrator=True),
        Segment(text="Hello.", speaker="Maya", is_narrator=False, gender="female"),
    ]
    scene = Scene(narrative_perspective="first_person", protagonist_name="Maya")
    by_name = {p.name: p for p in _profiles(segments, scene)}
    assert by_name["Narrator"].voice_id == by_name["Maya"].voice_id


def test_first_person_falls_back_to_i_speaker():
    segments = [Segment(text="Hi.", speaker="I", is_narrator=False, gender="male")]
    scene = Scene(narrative_perspective="first_person")
    by_name = {p.name: p for p in _profiles(segments, scene)}
    assert by_name["Narrator"].voice_id == by_name["I"].voice_id


def test_first_person_without_protagonist_uses_default():
    segments = [Segment(text="Hi.", speaker="Stranger", is_narrator=False)]
    scene = Scene(narrative_perspective="first_person")
    by_name = {p.name: p for p in _profiles(segments, scene)}
    assert by_name["Narrator"].voice_id == DEFAULT_VOICE


def test_cast_pins_voice_by_alias(sample_segments):
    cast = {"cast": {"Alice Smith": {"voice": "en-GB-SoniaNeural", "aliases": ["alice"]}}}
    by_name = {p.name: p for p in _profiles(sample_segments, cast=cast)}
    assert by_name["Alice"].voice_id == "en-GB-SoniaNeural"


def test_cast_narrator_override(sample_segments):
    cast = {"narrator": {"voice": "en-US-DavisNeural"}}
    by_name = {p.name: p for p in _profiles(sample_segments, cast=cast)}
    assert by_name["Narrator"].voice_id == "en-US-DavisNeural"


def test_load_cast_file(tmp_path):
    story = tmp_path / "story.txt"
    story.write_text("x")
    (tmp_path / "story.cast.json").write_text(json.dumps({"narrator": {"voice": "v"}}))
    assert load_cast(str(story)) == {"narrator": {"voice": "v"}}


def test_load_cast_missing_file(tmp_path):
    assert load_cast(str(tmp_path / "story.txt")) == {}


def test_load_cast_malformed_json(tmp_path):
    story = tmp_path / "story.txt"
    (tmp_path / "story.cast.json").write_text("{not json")
    assert load_cast(str(story)) == {}


def test_voice_for_unknown_speaker_gets_default():
    task = SpeechTask(start_index=0, indices=[0], text="Hi", speaker="Ghost", is_narrator=False)
    profiles = [VoiceProfile(name="Alice", gender="female", voice_id="a")]
    assert voice_for(task, profiles) == DEFAULT_VOICE


def test_voice_for_narrator_task(sample_segments):
    profiles = _profiles(sample_segments)
    task = build_speech_tasks(sample_segments)[0]
    assert voice_for(task, profiles) == NARRATOR_VOICE


def test_narrator_instruction(sample_segments):
    task = build_speech_tasks(sample_segments)[0]
    assert delivery_instruction(task, sample_segments, Scene()) == NARRATOR_INSTRUCTION
    first_person = Scene(narrative_perspective="first_person")
    instruction = delivery_instruction(task, sample_segments, first_person)
    assert instruction.endswith(FIRST_PERSON_SUFFIX)


def test_character_instruction_names_emotion(sample_segments):
    task = build_speech_tasks(sample_segments)[1]
    instruction = delivery_instruction(task, sample_segments, Scene())
    assert "Character: Alice." in instruction
    assert "Emotion: Fearful." in instruction
