"""Export track stems as WAV and the final mix as MP3 with a manifest."""

import json
import os
from datetime import datetime, timezone

import numpy as np
from pydub import AudioSegment

from radioplay.constants import OUTPUT_BITRATE, SAMPLE_RATE, TRACK_NAMES, VERSION
from radioplay.models import AudioTracks

PCM_SCALE = 32767         # float full scale to int16, both directions


def to_audio_segment(samples: np.ndarray, sample_rate: int = SAMPLE_RATE) -> AudioSegment:
    """Float samples in [-1, 1] to a mono 16-bit pydub AudioSegment."""
    pcm = (np.clip(samples, -1.0, 1.0) * PCM_SCALE).astype("<i2")
    return AudioSegment(
        data=pcm.tobytes(),
        sample_width=2,
        frame_rate=sample_rate,
        channels=1,
    )


def export_stems(tracks: AudioTracks, project_dir: str) -> list[str]:
    """Write stems/<track>.wav for each of the four tracks.

    Score and ambience are written as their loop, not the full duration, so
    the mix duration is kept beside them in stems/stems.json.
    """
    stems_dir = os.path.join(project_dir, "stems")
    os.makedirs(stems_dir, exist_ok=True)
    paths = []
    for name in TRACK_NAMES:
        path = os.path.join(stems_dir, f"{name}.wav")
        to_audio_segment(tracks.track(name), tracks.sample_rate).export(path, format="wav")
        paths.append(path)
    with open(os.path.join(stems_dir, "stems.json"), "w") as f:
        json.dump({"duration": tracks.duration, "sample_rate": tracks.sample_rate}, f, indent=2)
    return paths


def load_stems(project_dir: str) -> AudioTracks | None:
    """Rebuild AudioTracks from stems/, or None if any stem is missing."""
    meta_path = os.path.join(project_dir, "stems", "stems.json")
    if not os.path.exists(meta_path):
        return None
    with open(meta_path) as f:
        meta = json.load(f)
    buffers = {}
    for name in TRACK_NAMES:
        path = os.path.join(project_dir, "stems", f"{name}.wav")
        if not os.path.exists(path):
            return None
        audio = AudioSegment.from_file(path)
        samples = np.array(audio.get_array_of_samples(), dtype=np.float32) / PCM_SCALE
        samples.flags.writeable = False
        buffers[name] = samples
    return AudioTracks(duration=meta["duration"], sample_rate=meta["sample_rate"], **buffers)


def export(
    mix: np.ndarray,
    project_dir: str,
    slug: str,
    cast_data: dict,
    settings: dict,
    segment_count: int,
    source: str = "",
    sample_rate: int = SAMPLE_RATE,
) -> str:
    """Export the rendered mix as MP3.

    Creates:
      - output/<slug>/final/<slug>.mp3 (the production)
      - output/<slug>/final/output.json (provenance manifest)

    Returns path to the final MP3 file.
    """
    final_dir = os.path.join(project_dir, "final")
    os.makedirs(final_dir, exist_ok=True)

    output_path = os.path.join(final_dir, f"{slug}.mp3")
    to_audio_segment(mix, sample_rate).export(
        output_path,
        format="mp3",
        bitrate=OUTPUT_BITRATE,
        tags={"title": slug.replace("_", " ").title()},
    )

    manifest = {
        "project": slug,
        "source": source,
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "producer_version": VERSION,
        "cast": cast_data,
        "settings": settings,
        "stats": {
            "segments": segment_count,
            "duration_seconds": round(len(mix) / sample_rate, 1),
            "voices": len(cast_data.get("voices", [])),
        },
    }

    manifest_path = os.path.join(final_dir, "output.json")
    with open(manifest_path, "w") as f:
        json.dump(manifest, f, indent=2)

    return output_path
