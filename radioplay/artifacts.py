"""Output directory management, JSON artifacts and invalidation."""

import dataclasses
import json
import os
import re
import shutil

from radioplay.constants import DEFAULT_VOLUMES, OUTPUT_DIR
from radioplay.models import AnalysisResult, VoiceProfile
from radioplay.parser import parse_analysis

SUBDIRS = ["stems", "final"]

# Invalidation map: setting key → list of subdirs to delete
INVALIDATION_MAP = {
    "voice": ["stems", "final"],
    "volume": ["final"],
    "speed": ["final"],
}


def slug_from_path(story_path: str) -> str:
    """Convert story filename to output directory slug.

    "Tell-Tale Heart.txt" → "tell_tale_heart"
    "/path/to/The Open Window.txt" → "the_open_window"
    """
    basename = os.path.splitext(os.path.basename(story_path))[0]
    return re.sub(r"[^a-zA-Z0-9]+", "_", basename).strip("_").lower()


def init_output_dir(story_path: str, output_base: str = OUTPUT_DIR) -> str:
    """Create output/<slug>/ with its subdirectories. Returns the project dir."""
    project_dir = os.path.join(output_base, slug_from_path(story_path))
    for subdir in SUBDIRS:
        os.makedirs(os.path.join(project_dir, subdir), exist_ok=True)
    return project_dir


def write_artifact(project_dir: str, filename: str, data: dict) -> str:
    """Write JSON artifact to project_dir/filename. Returns its path."""
    path = os.path.join(project_dir, filename)
    with open(path, "w") as f:
        json.dump(data, f, indent=2)
    return path


def load_artifact(project_dir: str, filename: str) -> dict | None:
    """Read JSON artifact. Returns None if file doesn't exist."""
    path = os.path.join(project_dir, filename)
    if not os.path.exists(path):
        return None
    with open(path) as f:
        return json.load(f)


# --- artifact payloads ---

def script_to_dict(result: AnalysisResult, source: str = "") -> dict:
    return {
        "source": source,
        "scene": dataclasses.asdict(result.scene),
        "segments": [
            {
                "text": seg.text,
                "original_text": seg.original_text,
                "speaker": seg.speaker,
                "is_narrator": seg.is_narrator,
                "gender": seg.gender,
                "emotion": seg.emotion,
                "sfx": seg.sfx,
            }
            for seg in result.segments
        ],
    }


def script_from_dict(data: dict) -> AnalysisResult:
    return parse_analysis(data)


def cast_to_dict(profiles: list[VoiceProfile]) -> dict:
    return {"voices": [dataclasses.asdict(p) for p in profiles]}


def cast_from_dict(data: dict) -> list[VoiceProfile]:
    return [VoiceProfile(**entry) for entry in data.get("voices", [])]


def default_mix() -> dict:
    return {"volumes": dict(DEFAULT_VOLUMES), "speed": 1.0}


def invalidate_downstream(project_dir: str, setting_key: str) -> list[str]:
    """Empty the subdirectories that depend on a setting.

    Returns list of emptied subdirectory names.
    """
    deleted = []
    for subdir in INVALIDATION_MAP.get(setting_key, []):
        path = os.path.join(project_dir, subdir)
        if os.path.exists(path):
            shutil.rmtree(path)
            os.makedirs(path, exist_ok=True)  # recreate empty dir
            deleted.append(subdir)
    return deleted


def _has_files(path: str, suffix: str) -> int:
    if not os.path.isdir(path):
        return 0
    return len([f for f in os.listdir(path) if f.endswith(suffix)])


def get_project_status(project_dir: str) -> dict:
    """Return dict describing current state of each pipeline step."""
    status = {}

    script = load_artifact(project_dir, "script.json")
    if script is not None:
        status["analysis"] = {"state": "done", "segments": len(script.get("segments", []))}
    else:
        status["analysis"] = {"state": "pending"}

    cast = load_artifact(project_dir, "cast.json")
    if cast is not None:
        status["cast"] = {"state": "done", "voices": len(cast.get("voices", []))}
    else:
        status["cast"] = {"state": "pending"}

    stems = _has_files(os.path.join(project_dir, "stems"), ".wav")
    status["stems"] = {"state": "done", "files": stems} if stems else {"state": "pending"}

    final = _has_files(os.path.join(project_dir, "final"), ".mp3")
    status["export"] = {"state": "done" if final else "pending"}
    return status


def list_projects(output_base: str = OUTPUT_DIR) -> list[str]:
    """Sorted slugs of every directory under output_base with a script.json."""
    if not os.path.exists(output_base):
        return []
    projects = []
    for name in os.listdir(output_base):
        if os.path.exists(os.path.join(output_base, name, "script.json")):
            projects.append(name)
    return sorted(projects)
