"""CLI interface with subcommand routing and pipeline orchestration."""

import argparse
import asyncio
import logging
import os
import shutil
import sys

from radioplay.artifacts import (
    SUBDIRS,
    cast_from_dict,
    cast_to_dict,
    default_mix,
    get_project_status,
    init_output_dir,
    invalidate_downstream,
    list_projects,
    load_artifact,
    script_from_dict,
    script_to_dict,
    slug_from_path,
    write_artifact,
)
from radioplay.constants import MAX_SPEED, MIN_SPEED, OUTPUT_DIR, TRACK_NAMES, VERSION
from radioplay.errors import RadioplayError
from radioplay.exporter import export, export_stems, load_stems
from radioplay.parser import FileAnalyzer, LocalAnalyzer
from radioplay.playback import render_mix
from radioplay.studio import Studio
from radioplay.voices import VOICE_POOL, load_cast


def _check_ffmpeg():
    """Verify ffmpeg is installed."""
    if not shutil.which("ffmpeg"):
        print("Error: ffmpeg is required but not found.", file=sys.stderr)
        print("Install with: brew install ffmpeg", file=sys.stderr)
        raise SystemExit(1)


def _fail(message: str):
    print(f"Error: {message}", file=sys.stderr)
    raise SystemExit(1)


def _get_project_dir(slug: str) -> str:
    """Get project directory path, verify it exists."""
    project_dir = os.path.join(OUTPUT_DIR, slug)
    if not os.path.isdir(project_dir):
        print(f"Error: Project '{slug}' not found.", file=sys.stderr)
        print("Run 'radioplay new <file>' to create a project.", file=sys.stderr)
        raise SystemExit(1)
    if not os.path.exists(os.path.join(project_dir, "script.json")):
        _fail(f"Project '{slug}' is incomplete (no script.json).")
    return project_dir


def cmd_new(args):
    """Create a new project from a text file."""
    file_path = args.file
    if not os.path.exists(file_path):
        _fail(f"File not found: {file_path}")

    with open(file_path) as f:
        text = f.read()
    if not text.strip():
        _fail(f"File is empty: {file_path}")

    slug = slug_from_path(file_path)
    project_dir = os.path.join(OUTPUT_DIR, slug)
    if os.path.exists(os.path.join(project_dir, "script.json")):
        print(f"Error: Project '{slug}' already exists.", file=sys.stderr)
        print(f"Use 'radioplay run {slug}' to generate audio, or 'radioplay set {slug} ...' to adjust.",
              file=sys.stderr)
        raise SystemExit(1)

    analyzer = FileAnalyzer(args.analysis) if args.analysis else LocalAnalyzer()
    studio = Studio(analyzer=analyzer, cast=load_cast(file_path), auto_prefetch=False)
    try:
        result = asyncio.run(studio.analyze(text))
    except RadioplayError as e:
        _fail(str(e))

    project_dir = init_output_dir(file_path, output_base=OUTPUT_DIR)
    write_artifact(project_dir, "script.json", script_to_dict(result, os.path.abspath(file_path)))
    write_artifact(project_dir, "cast.json", cast_to_dict(studio.profiles))
    write_artifact(project_dir, "mix.json", default_mix())

    narration = sum(1 for s in result.segments if s.is_narrator)
    effects = sum(1 for s in result.segments if s.sfx)
    print(f"Created project: {slug}")
    print(f"Analyzed {len(result.segments)} segments "
          f"({narration} narration, {len(result.segments) - narration} dialogue, {effects} effects)")
    print(f"Scene: {result.scene.location}, {result.scene.time_of_day.lower()}, "
          f"{result.scene.score_style} score, {result.scene.narrative_perspective.replace('_', ' ')}")
    print(f"Cast written to {OUTPUT_DIR}/{slug}/cast.json")
    print(f"Run 'radioplay status {slug}' to review, or 'radioplay run {slug}' to generate audio.")


def cmd_run(args):
    """Generate the four tracks, write stems, render and export the mix."""
    _check_ffmpeg()
    if args.verbose:
        logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    slug = args.slug
    project_dir = _get_project_dir(slug)
    script = load_artifact(project_dir, "script.json")
    cast_data = load_artifact(project_dir, "cast.json")
    mix = load_artifact(project_dir, "mix.json") or default_mix()

    if args.force:
        for subdir in SUBDIRS:
            path = os.path.join(project_dir, subdir)
            if os.path.exists(path):
                shutil.rmtree(path)
            os.makedirs(path, exist_ok=True)

    final_path = os.path.join(project_dir, "final", f"{slug}.mp3")
    if os.path.exists(final_path):
        print(f"[skip] Export: {final_path} is up to date (use --force to regenerate)")
        return

    try:
        analysis = script_from_dict(script)
        tracks = load_stems(project_dir)
        if tracks is not None:
            print("[skip] Stems: up to date")
        else:
            profiles = cast_from_dict(cast_data) if cast_data else None
            studio = Studio(auto_prefetch=False)
            studio.load(analysis, profiles)
            print(f"Generating speech and effects for {len(analysis.segments)} segments...")
            tracks = asyncio.run(studio.generate_audio())
            export_stems(tracks, project_dir)
            cast_data = cast_to_dict(studio.profiles)
            write_artifact(project_dir, "cast.json", cast_data)

        if args.verbose:
            print(f"Rendering {tracks.duration:.1f}s mix at {mix['speed']}x...")
        rendered = render_mix(tracks, mix["volumes"], mix["speed"])
    except RadioplayError as e:
        _fail(str(e))

    output_path = export(
        rendered, project_dir, slug,
        cast_data or {},
        mix,
        len(analysis.segments),
        source=script.get("source", ""),
        sample_rate=tracks.sample_rate,
    )
    print(f"Done: {output_path}")


def cmd_status(args):
    """Show project status."""
    slug = args.slug
    project_dir = _get_project_dir(slug)

    script = load_artifact(project_dir, "script.json")
    cast_data = load_artifact(project_dir, "cast.json")
    mix = load_artifact(project_dir, "mix.json") or default_mix()
    status = get_project_status(project_dir)

    print(f"Project: {slug}")
    print(f"Source:  {script.get('source') or 'unknown'}")

    segments = script.get("segments", [])
    narration = sum(1 for s in segments if s.get("is_narrator"))
    effects = sorted({s["sfx"] for s in segments if s.get("sfx")})
    print(f"Segments: {len(segments)} ({narration} narration, {len(segments) - narration} dialogue)")
    if effects:
        print(f"Effects: {', '.join(effects)}")
    scene = script.get("scene", {})
    print(f"Scene: {scene.get('location', 'Unknown')} / {scene.get('score_style', 'neutral')} score"
          f" / ambience: {', '.join(scene.get('ambient_sounds', [])) or 'none'}")

    if cast_data:
        print("Cast:")
        for voice in cast_data.get("voices", []):
            print(f"  {voice['name']:<15} → {voice['voice_id']}")

    print("Mix:")
    for track in TRACK_NAMES:
        print(f"  {track:<10} {mix['volumes'].get(track, 0):.2f}")
    print(f"  speed      {mix['speed']:.2f}x")

    print("Steps:")
    for step in ("analysis", "cast", "stems", "export"):
        info = status.get(step, {"state": "pending"})
        marker = "[done]" if info["state"] == "done" else "[----]"
        details = ""
        if "segments" in info:
            details = f" ({info['segments']} segments)"
        elif "files" in info:
            details = f" ({info['files']} files)"
        elif "voices" in info:
            details = f" ({info['voices']} voices)"
        print(f"  {marker} {step:<12}{details}")


def _parse_float(value: str, label: str) -> float:
    try:
        return float(value)
    except ValueError:
        _fail(f"Invalid {label}: {value}")


def cmd_set(args):
    """Update project settings."""
    slug = args.slug
    project_dir = _get_project_dir(slug)
    key = args.key
    values = args.values

    valid_keys = {"voice", "volume", "speed"}
    if key not in valid_keys:
        print(f"Error: Invalid setting key: {key}", file=sys.stderr)
        print(f"Valid keys: {', '.join(sorted(valid_keys))}", file=sys.stderr)
        raise SystemExit(1)

    if key == "voice":
        if len(values) < 2:
            _fail("'set voice' requires <speaker> and <voice_id>")
        speaker, voice_id = values[0], values[1]
        cast_data = load_artifact(project_dir, "cast.json") or {"voices": []}
        for entry in cast_data.setdefault("voices", []):
            if entry["name"].lower() == speaker.lower():
                entry["voice_id"] = voice_id
                break
        else:
            print(f"Warning: Speaker '{speaker}' not in cast. Adding.", file=sys.stderr)
            cast_data["voices"].append({"name": speaker, "gender": "neutral", "voice_id": voice_id})
        write_artifact(project_dir, "cast.json", cast_data)
        print(f"Updated: {speaker} → {voice_id}")

    elif key == "volume":
        if len(values) < 2:
            _fail("'set volume' requires <track> and <float>")
        track = values[0]
        if track not in TRACK_NAMES:
            _fail(f"Unknown track '{track}'. Tracks: {', '.join(TRACK_NAMES)}")
        level = _parse_float(values[1], "volume")
        if level < 0:
            _fail(f"Volume must be >= 0, got {level}")
        mix = load_artifact(project_dir, "mix.json") or default_mix()
        mix["volumes"][track] = level
        write_artifact(project_dir, "mix.json", mix)
        print(f"Updated: {track} volume → {level}")

    elif key == "speed":
        if not values:
            _fail("'set speed' requires <float>")
        speed = _parse_float(values[0], "speed")
        if not MIN_SPEED <= speed <= MAX_SPEED:
            _fail(f"Speed must be between {MIN_SPEED} and {MAX_SPEED}, got {speed}")
        mix = load_artifact(project_dir, "mix.json") or default_mix()
        mix["speed"] = speed
        write_artifact(project_dir, "mix.json", mix)
        print(f"Updated: speed → {speed}x")

    deleted = invalidate_downstream(project_dir, key)
    if deleted:
        print(f"Invalidated: {', '.join(deleted)} (will regenerate on next run)")


def cmd_list(args):
    """List all projects."""
    projects = list_projects(output_base=OUTPUT_DIR)
    if not projects:
        print("No projects found.")
        return
    print("Projects:")
    for name in projects:
        status = get_project_status(os.path.join(OUTPUT_DIR, name))
        marker = "[done]" if status.get("export", {}).get("state") == "done" else "[----]"
        print(f"  {marker} {name}")


def cmd_voices(args):
    """List available voices."""
    filter_str = args.filter.lower() if args.filter else None
    voices = VOICE_POOL
    if filter_str:
        voices = [(v, g) for v, g in voices if filter_str in v.lower() or filter_str == g]
    if not voices:
        print("No matching voices found.")
        return
    print("Available voices:")
    for voice, gender in voices:
        print(f"  {voice:<24} {gender}")


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="radioplay",
        description="Radioplay: turn prose into a four-track radio drama mix",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    new_parser = subparsers.add_parser("new", help="Create a new project from a text file")
    new_parser.add_argument("file", help="Path to the story text file")
    new_parser.add_argument("--analysis", help="Use a saved analysis JSON payload instead of the local analyzer")
    new_parser.set_defaults(func=cmd_new)

    run_parser = subparsers.add_parser("run", help="Generate audio and export the mix")
    run_parser.add_argument("slug", help="Project slug (from filename)")
    run_parser.add_argument("-v", "--verbose", action="store_true", help="Log every pipeline stage")
    run_parser.add_argument("--force", action="store_true", help="Force re-run (delete generated artifacts)")
    run_parser.set_defaults(func=cmd_run)

    status_parser = subparsers.add_parser("status", help="Show project status")
    status_parser.add_argument("slug", help="Project slug")
    status_parser.set_defaults(func=cmd_status)

    set_parser = subparsers.add_parser("set", help="Update project settings")
    set_parser.add_argument("slug", help="Project slug")
    set_parser.add_argument("key", help="Setting key: voice, volume or speed")
    set_parser.add_argument("values", nargs="*", help="Setting value(s)")
    set_parser.set_defaults(func=cmd_set)

    list_parser = subparsers.add_parser("list", help="List all projects")
    list_parser.set_defaults(func=cmd_list)

    voices_parser = subparsers.add_parser("voices", help="List available voices")
    voices_parser.add_argument("--filter", help="Filter voices by substring or gender")
    voices_parser.set_defaults(func=cmd_voices)

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return

    args.func(args)


if __name__ == "__main__":
    main()
