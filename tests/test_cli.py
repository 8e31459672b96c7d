"""Tests for the CLI."""

import json
import os
from unittest.mock import MagicMock, patch

import pytest
from pydub import AudioSegment

from radioplay.artifacts import load_artifact
from radioplay.cli import main


# --- Helpers ---

def _create_story_file(tmp_path, name="story.txt", content=None):
    """Create a test story file."""
    if content is None:
        content = 'It was dark. The door creaked open. "Hello," said Alice. "Who is there?"'
    path = tmp_path / name
    path.write_text(content)
    return str(path)


def _use_output_dir(tmp_path, monkeypatch):
    monkeypatch.setattr("radioplay.cli.OUTPUT_DIR", str(tmp_path / "output"))
    monkeypatch.setattr("radioplay.artifacts.OUTPUT_DIR", str(tmp_path / "output"))
    return tmp_path / "output"


def _mock_tts_communicate():
    """Create a mock edge_tts.Communicate factory."""
    def factory(text, voice, **kwargs):
        mock = MagicMock()
        async def save(path):
            AudioSegment.silent(duration=100).export(path, format="mp3")
        mock.save = save
        return mock
    return factory


def _run(*argv):
    with patch("sys.argv", ["radioplay", *argv]):
        main()


def _new_project(tmp_path, monkeypatch):
    output = _use_output_dir(tmp_path, monkeypatch)
    _run("new", _create_story_file(tmp_path))
    return output / "story"


# --- new ---

def test_cli_new_creates_project(tmp_path, monkeypatch, capsys):
    """new writes script, cast and mix artifacts."""
    project_dir = _new_project(tmp_path, monkeypatch)
    for name in ("script.json", "cast.json", "mix.json"):
        assert (project_dir / name).exists()
    script = load_artifact(str(project_dir), "script.json")
    assert any(s["sfx"] == "creak" for s in script["segments"])
    assert "Created project: story" in capsys.readouterr().out


def test_cli_new_already_exists(tmp_path, monkeypatch):
    _new_project(tmp_path, monkeypatch)
    with pytest.raises(SystemExit):
        _run("new", str(tmp_path / "story.txt"))


def test_cli_new_missing_file(tmp_path, monkeypatch):
    _use_output_dir(tmp_path, monkeypatch)
    with pytest.raises(SystemExit):
        _run("new", str(tmp_path / "nope.txt"))


def test_cli_new_empty_file(tmp_path, monkeypatch):
    _use_output_dir(tmp_path, monkeypatch)
    with pytest.raises(SystemExit):
        _run("new", _create_story_file(tmp_path, content="  \n"))


def test_cli_new_from_saved_analysis(tmp_path, monkeypatch):
    output = _use_output_dir(tmp_path, monkeypatch)
    analysis = tmp_path / "analysis.json"
    analysis.write_text(json.dumps({
        "segments": [{"text": "Rain.", "speaker": "Narrator", "sfx": "thunder"}],
        "scene": {"score_style": "sad"},
    }))
    _run("new", _create_story_file(tmp_path), "--analysis", str(analysis))
    script = load_artifact(str(output / "story"), "script.json")
    assert script["segments"][0]["sfx"] == "thunder"
    assert script["scene"]["score_style"] == "sad"


def test_cli_new_bad_analysis(tmp_path, monkeypatch):
    _use_output_dir(tmp_path, monkeypatch)
    analysis = tmp_path / "analysis.json"
    analysis.write_text("{}")
    with pytest.raises(SystemExit):
        _run("new", _create_story_file(tmp_path), "--analysis", str(analysis))


# --- run ---

@patch("radioplay.tts.edge_tts.Communicate")
@patch("shutil.which", return_value="/usr/bin/ffmpeg")
def test_cli_run_basic(mock_which, mock_comm, tmp_path, monkeypatch):
    """run produces stems, the final MP3 and the manifest."""
    mock_comm.side_effect = _mock_tts_communicate()
    project_dir = _new_project(tmp_path, monkeypatch)
    _run("run", "story")
    assert (project_dir / "final" / "story.mp3").exists()
    assert (project_dir / "final" / "output.json").exists()
    for track in ("dialogue", "score", "ambience", "sfx"):
        assert (project_dir / "stems" / f"{track}.wav").exists()


@patch("radioplay.tts.edge_tts.Communicate")
@patch("shutil.which", return_value="/usr/bin/ffmpeg")
def test_cli_run_skips_when_done(mock_which, mock_comm, tmp_path, monkeypatch, capsys):
    mock_comm.side_effect = _mock_tts_communicate()
    _new_project(tmp_path, monkeypatch)
    _run("run", "story")
    calls = mock_comm.call_count
    _run("run", "story")
    assert "[skip] Export" in capsys.readouterr().out
    assert mock_comm.call_count == calls


@patch("radioplay.tts.edge_tts.Communicate")
@patch("shutil.which", return_value="/usr/bin/ffmpeg")
def test_cli_volume_change_reuses_stems(mock_which, mock_comm, tmp_path, monkeypatch, capsys):
    """Changing a volume only re-renders the mix, without new speech."""
    mock_comm.side_effect = _mock_tts_communicate()
    project_dir = _new_project(tmp_path, monkeypatch)
    _run("run", "story")
    calls = mock_comm.call_count
    _run("set", "story", "volume", "score", "0.3")
    assert not (project_dir / "final" / "story.mp3").exists()
    _run("run", "story")
    assert "[skip] Stems" in capsys.readouterr().out
    assert mock_comm.call_count == calls
    assert (project_dir / "final" / "story.mp3").exists()


@patch("radioplay.tts.edge_tts.Communicate")
@patch("shutil.which", return_value="/usr/bin/ffmpeg")
def test_cli_run_force(mock_which, mock_comm, tmp_path, monkeypatch):
    mock_comm.side_effect = _mock_tts_communicate()
    _new_project(tmp_path, monkeypatch)
    _run("run", "story")
    calls = mock_comm.call_count
    _run("run", "story", "--force")
    assert mock_comm.call_count > calls


def test_cli_run_nonexistent_project(tmp_path, monkeypatch):
    _use_output_dir(tmp_path, monkeypatch)
    with pytest.raises(SystemExit):
        with patch("shutil.which", return_value="/usr/bin/ffmpeg"):
            _run("run", "nonexistent")


def test_cli_run_needs_ffmpeg(tmp_path, monkeypatch):
    _new_project(tmp_path, monkeypatch)
    with pytest.raises(SystemExit):
        with patch("shutil.which", return_value=None):
            _run("run", "story")


# --- status / set / list / voices ---

def test_cli_status_shows_state(tmp_path, monkeypatch, capsys):
    _new_project(tmp_path, monkeypatch)
    capsys.readouterr()
    _run("status", "story")
    out = capsys.readouterr().out
    assert "Project: story" in out
    assert "Effects: creak" in out
    assert "[done] analysis" in out
    assert "[----] export" in out


def test_cli_status_nonexistent(tmp_path, monkeypatch):
    _use_output_dir(tmp_path, monkeypatch)
    with pytest.raises(SystemExit):
        _run("status", "nonexistent")


def test_cli_set_voice(tmp_path, monkeypatch):
    project_dir = _new_project(tmp_path, monkeypatch)
    _run("set", "story", "voice", "alice", "en-US-TonyNeural")
    cast = load_artifact(str(project_dir), "cast.json")
    alice = next(v for v in cast["voices"] if v["name"] == "Alice")
    assert alice["voice_id"] == "en-US-TonyNeural"


def test_cli_set_voice_unknown_speaker_added(tmp_path, monkeypatch, capsys):
    project_dir = _new_project(tmp_path, monkeypatch)
    _run("set", "story", "voice", "Ghost", "en-US-TonyNeural")
    cast = load_artifact(str(project_dir), "cast.json")
    assert {"name": "Ghost", "gender": "neutral", "voice_id": "en-US-TonyNeural"} in cast["voices"]
    assert "not in cast" in capsys.readouterr().err


def test_cli_set_speed(tmp_path, monkeypatch):
    project_dir = _new_project(tmp_path, monkeypatch)
    _run("set", "story", "speed", "1.5")
    assert load_artifact(str(project_dir), "mix.json")["speed"] == 1.5


@pytest.mark.parametrize("argv", [
    ["speed", "9"],
    ["speed", "fast"],
    ["volume", "vocals", "0.5"],
    ["volume", "score", "-1"],
    ["voice", "alice"],
    ["title", "x"],
])
def test_cli_set_rejects_bad_values(argv, tmp_path, monkeypatch):
    _new_project(tmp_path, monkeypatch)
    with pytest.raises(SystemExit):
        _run("set", "story", *argv)


def test_cli_list(tmp_path, monkeypatch, capsys):
    _new_project(tmp_path, monkeypatch)
    _run("list")
    assert "[----] story" in capsys.readouterr().out


def test_cli_list_empty(tmp_path, monkeypatch, capsys):
    _use_output_dir(tmp_path, monkeypatch)
    _run("list")
    assert "No projects found." in capsys.readouterr().out


def test_cli_voices_filter(capsys):
    _run("voices", "--filter", "female")
    out = capsys.readouterr().out
    assert "en-US-AriaNeural" in out
    assert "en-US-DavisNeural" not in out


def test_cli_no_command_prints_help(capsys):
    _run()
    assert "usage: radioplay" in capsys.readouterr().out
