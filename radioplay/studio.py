"""Studio session: analysis -> speech and effects -> timeline -> four tracks -> transport."""

import copy
import functools
import logging
import random
import time

from radioplay.ambience import generate_ambience
from radioplay.assembly import build_tracks, compose_dialogue_track, compose_sfx_track
from radioplay.cache import effect_key, speech_key
from radioplay.constants import DEFAULT_VOLUMES, NARRATOR_EMOTION, NARRATOR_NAME, SAMPLE_RATE
from radioplay.errors import (
    AnalysisError,
    EmptyInputError,
    GenerationError,
    RadioplayError,
    TransportError,
)
from radioplay.merger import build_speech_tasks, unique_effects
from radioplay.models import AnalysisResult, AudioTracks, Timeline
from radioplay.music import generate_score
from radioplay.parser import LocalAnalyzer
from radioplay.playback import Transport
from radioplay.scheduler import GenerationScheduler
from radioplay.sfx import render_sfx
from radioplay.timing import assign_speech_durations, compute_timeline
from radioplay.tts import EdgeSpeechService, synthesize_clip
from radioplay.voices import build_profiles, delivery_instruction, voice_for

logger = logging.getLogger(__name__)

STATUSES = ("idle", "analyzing", "reviewing", "generating_speech", "mixing", "playing", "error")


class Studio:
    """One editing session over one analyzed text.

    analyze() and generate_audio() must run inside an event loop. Status
    moves idle -> analyzing -> reviewing -> generating_speech -> mixing ->
    playing; any failure lands in error until the next analyze().
    """

    def __init__(
        self,
        analyzer=None,
        speech_service=None,
        scheduler: GenerationScheduler | None = None,
        cast: dict | None = None,
        rng: random.Random | None = None,
        context_factory=None,
        auto_prefetch: bool = True,
    ):
        self.analyzer = analyzer or LocalAnalyzer()
        self.speech_service = speech_service or EdgeSpeechService()
        self.scheduler = scheduler or GenerationScheduler()
        self.cast = cast or {}
        self.rng = rng or random.Random()
        self.context_factory = context_factory
        self.auto_prefetch = auto_prefetch

        self.status = "idle"
        self.error: str | None = None
        self.analysis: AnalysisResult | None = None
        self.profiles = []
        self.timeline: Timeline | None = None
        self.tracks: AudioTracks | None = None
        self.transport: Transport | None = None
        self.volumes = dict(DEFAULT_VOLUMES)
        self.speed = 1.0
        self._memo: dict[str, AnalysisResult] = {}
        self._background = set()

    def _fail(self, message: str) -> None:
        self.status = "error"
        self.error = message
        logger.error(message)

    # --- analysis ---

    async def analyze(self, text: str) -> AnalysisResult:
        """Analyze text into segments and a scene, then cast voices.

        Identical input (ignoring surrounding whitespace) is answered from a
        memo; callers always get their own copy.
        """
        key = text.strip()
        if not key:
            raise EmptyInputError("Please enter some text to analyze")

        self._release_mix()
        self.analysis = None
        self.error = None
        self.status = "analyzing"

        if key in self._memo:
            logger.info("Analysis memo hit (%d chars)", len(key))
            result = copy.deepcopy(self._memo[key])
        else:
            try:
                result = await self.analyzer.analyze(text)
            except AnalysisError as e:
                self._fail(f"Analysis failed: {e}")
                raise
            except Exception as e:
                self._fail(f"Analysis failed: {e}")
                raise AnalysisError(str(e)) from e
            if result is None or not result.segments:
                self._fail("Analysis failed: no segments returned")
                raise AnalysisError("Analysis returned no segments")
            self._memo[key] = copy.deepcopy(result)

        for seg in result.segments:
            if seg.is_narrator:
                seg.speaker = NARRATOR_NAME
                seg.emotion = NARRATOR_EMOTION

        self.analysis = result
        self.profiles = build_profiles(result.segments, result.scene, self.cast, self.rng)
        self.status = "reviewing"
        logger.info("Cast %d voices for %d segments", len(self.profiles), len(result.segments))
        if self.auto_prefetch:
            self.prefetch()
        return result

    def load(self, analysis: AnalysisResult, profiles=None) -> None:
        """Adopt a saved analysis (and optionally its cast) without re-analyzing."""
        self._release_mix()
        self.analysis = analysis
        self.profiles = profiles or build_profiles(
            analysis.segments, analysis.scene, self.cast, self.rng)
        self.error = None
        self.status = "reviewing"

    # --- generation ---

    def _submit_speech(self, tasks):
        submitted = []
        for task in tasks:
            if not task.text.strip():
                continue
            voice = voice_for(task, self.profiles)
            instruction = delivery_instruction(task, self.analysis.segments, self.analysis.scene)
            producer = functools.partial(
                synthesize_clip, self.speech_service, task.text, voice, instruction)
            handle = self.scheduler.submit_speech(speech_key(voice, instruction, task.text), producer)
            submitted.append((task, voice, handle))
        return submitted

    def _submit_effects(self, segments):
        handles = {}
        for keyword in unique_effects(segments):
            producer = functools.partial(self._render_effect, keyword)
            handles[keyword.strip().lower()] = self.scheduler.submit_effect(effect_key(keyword), producer)
        return handles

    async def _render_effect(self, keyword: str):
        return render_sfx(keyword, self.rng)

    def prefetch(self) -> None:
        """Queue every speech and effect request in the background.

        Failures are only logged; the cache evicts them, so generate_audio()
        retries those requests while reusing everything that succeeded.
        """
        if self.analysis is None:
            return
        tasks = build_speech_tasks(self.analysis.segments)
        handles = [handle for _, _, handle in self._submit_speech(tasks)]
        handles += list(self._submit_effects(self.analysis.segments).values())
        for handle in handles:
            if handle in self._background:
                continue
            self._background.add(handle)
            handle.add_done_callback(self._prefetch_done)
        logger.info("Prefetching %d requests", len(handles))

    def _prefetch_done(self, handle) -> None:
        self._background.discard(handle)
        if not handle.cancelled() and handle.exception() is not None:
            logger.warning("Prefetch failed: %s", handle.exception())

    async def generate_audio(self) -> AudioTracks:
        """Produce the four tracks for the current analysis.

        Waits for every speech and effect request before mixing; any failure
        aborts the whole mix with GenerationError.
        """
        if self.analysis is None:
            raise GenerationError("Nothing to generate: analyze some text first")

        segments = self.analysis.segments
        scene = self.analysis.scene
        self._release_mix()
        self.error = None
        self.status = "generating_speech"
        started = time.monotonic()

        for seg in segments:
            seg.assigned_voice = ""
            seg.speech_duration = 0.0

        tasks = build_speech_tasks(segments)
        try:
            speech = self._submit_speech(tasks)
            effects = self._submit_effects(segments)
            clips = await self.scheduler.join([handle for _, _, handle in speech])
            rendered = await self.scheduler.join(list(effects.values()))
        except GenerationError as e:
            self._fail(f"Generation failed: {e}")
            raise
        except Exception as e:
            self._fail(f"Generation failed: {e}")
            raise GenerationError(str(e)) from e
        logger.info("Generated %d speech clips and %d effects in %.1fs",
                    len(clips), len(rendered), time.monotonic() - started)

        speech_clips = [None] * len(segments)
        for (task, voice, _), clip in zip(speech, clips):
            speech_clips[task.start_index] = clip
            assign_speech_durations(task, segments, clip, voice)
        for task in tasks:
            if not task.text.strip():
                for i in task.indices:
                    segments[i].assigned_voice = voice_for(task, self.profiles)

        effect_clips = dict(zip(effects.keys(), rendered))
        effect_lengths = [
            len(effect_clips[seg.sfx.strip().lower()]) / SAMPLE_RATE
            if seg.sfx and seg.sfx.strip().lower() in effect_clips else 0.0
            for seg in segments
        ]

        self.status = "mixing"
        try:
            timeline = compute_timeline(segments, speech_clips, effect_lengths)
            dialogue = compose_dialogue_track(segments, speech_clips, timeline)
            sfx = compose_sfx_track(segments, effect_clips, timeline)
            score = generate_score(timeline.total_duration, scene.score_style, self.rng)
            ambience = generate_ambience(timeline.total_duration, scene.ambient_sounds, self.rng)
            tracks = build_tracks(dialogue, score, ambience, sfx, timeline.total_duration)
        except RadioplayError as e:
            self._fail(f"Mixing failed: {e}")
            raise
        except Exception as e:
            self._fail(f"Mixing failed: {e}")
            raise GenerationError(str(e)) from e

        self.timeline = timeline
        self.tracks = tracks
        self.transport = Transport(tracks, self.context_factory, self.volumes, self.speed)
        self.status = "playing"
        logger.info("Mixed %.1fs of audio in %.1fs", tracks.duration, time.monotonic() - started)
        return tracks

    # --- transport controls ---

    def _require_transport(self) -> Transport:
        if self.transport is None:
            raise TransportError("No audio generated yet")
        return self.transport

    def play(self) -> None:
        self._require_transport().play()

    def pause(self) -> None:
        self._require_transport().pause()

    def seek(self, seconds: float) -> None:
        self._require_transport().seek(seconds)

    def set_speed(self, speed: float) -> None:
        if self.transport is not None:
            self.transport.set_speed(speed)
        else:
            Transport.validate_speed(speed)
        self.speed = float(speed)

    def set_volume(self, track: str, value: float) -> None:
        if self.transport is not None:
            self.transport.set_volume(track, value)
        elif track not in self.volumes or value < 0:
            raise TransportError(f"Invalid volume {value} for track '{track}'")
        self.volumes[track] = float(value)

    def progress(self) -> float:
        if self.transport is None:
            return 0.0
        return self.transport.progress()

    def _release_mix(self) -> None:
        if self.transport is not None:
            self.transport.close()
        self.transport = None
        self.tracks = None
        self.timeline = None

    def close(self) -> None:
        """End the session: stop playback and drop the playback context."""
        self._release_mix()
        self.status = "idle"
