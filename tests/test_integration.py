"""Integration tests: text in, rendered mix and exported project out."""

import asyncio
import json
import os
import random
from unittest.mock import MagicMock, patch

import numpy as np
from pydub import AudioSegment

from radioplay.cli import main
from radioplay.constants import SAMPLE_RATE
from radioplay.parser import LocalAnalyzer
from radioplay.playback import render_mix
from radioplay.studio import Studio

STORY = (
    "The storm broke over the old house at midnight. Thunder shook the windows "
    "and the wind howled through the halls.\n\n"
    '"Did you hear that?" Clara whispered, her hands trembling.\n\n'
    '"It is only the wind," said Henry. "Go back to sleep."\n\n'
    "Somewhere below, a door creaked open. Footsteps climbed the stairs.\n\n"
    '"Henry," she gasped. "Someone is in the house."'
)


def _mock_tts_communicate():
    """Create a mock edge_tts.Communicate factory."""
    def factory(text, voice, **kwargs):
        mock = MagicMock()
        async def save(path):
            AudioSegment.silent(duration=100).export(path, format="mp3")
        mock.save = save
        return mock
    return factory


def test_story_analysis():
    result = asyncio.run(LocalAnalyzer().analyze(STORY))
    assert "".join(s.original_text for s in result.segments) == STORY
    speakers = {s.speaker for s in result.segments if not s.is_narrator}
    assert {"Clara", "Henry"} <= speakers
    effects = {s.sfx for s in result.segments if s.sfx}
    assert {"thunder", "creak", "footsteps"} <= effects
    assert result.scene.time_of_day == "Night"
    assert "wind" in result.scene.ambient_sounds


def test_studio_end_to_end(speech_service):
    """Analyze, generate and render: every effect and line lands in the mix."""
    studio = Studio(speech_service=speech_service, rng=random.Random(3))

    async def scenario():
        await studio.analyze(STORY)
        return await studio.generate_audio()

    tracks = asyncio.run(scenario())
    segments = studio.analysis.segments
    requested = {text for text, _, _ in speech_service.calls}
    assert len(requested) == len(speech_service.calls)
    assert all(seg.assigned_voice for seg in segments)

    for seg, start in zip(segments, studio.timeline.start_times):
        assert start + seg.speech_duration <= tracks.duration

    mix = render_mix(tracks, studio.volumes, speed=1.0)
    assert len(mix) == int(np.ceil(tracks.duration * SAMPLE_RATE))
    assert np.all(np.isfinite(mix))
    assert np.max(np.abs(mix)) > 0
    studio.close()


@patch("radioplay.tts.edge_tts.Communicate")
@patch("shutil.which", return_value="/usr/bin/ffmpeg")
def test_pipeline_from_cli(mock_which, mock_comm, tmp_path, monkeypatch):
    """new then run produces a playable MP3 with a manifest."""
    monkeypatch.setattr("radioplay.cli.OUTPUT_DIR", str(tmp_path / "output"))
    monkeypatch.setattr("radioplay.artifacts.OUTPUT_DIR", str(tmp_path / "output"))
    mock_comm.side_effect = _mock_tts_communicate()
    story = tmp_path / "the_storm.txt"
    story.write_text(STORY)

    with patch("sys.argv", ["radioplay", "new", str(story)]):
        main()
    with patch("sys.argv", ["radioplay", "set", "the_storm", "speed", "2.0"]):
        main()
    with patch("sys.argv", ["radioplay", "run", "the_storm"]):
        main()

    project_dir = tmp_path / "output" / "the_storm"
    final_mp3 = project_dir / "final" / "the_storm.mp3"
    assert final_mp3.exists()
    assert len(AudioSegment.from_mp3(str(final_mp3))) > 0

    with open(project_dir / "final" / "output.json") as f:
        manifest = json.load(f)
    assert manifest["settings"]["speed"] == 2.0
    assert manifest["stats"]["segments"] > 0
    assert os.path.exists(project_dir / "stems" / "dialogue.wav")
