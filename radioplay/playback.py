"""Four-track playback transport with seek, pause and variable speed.

The transport does not talk to an audio device. A sink (or render_mix, for
export) pulls mixed blocks with Transport.render_block(); the clock that
drives elapsed time comes from the PlaybackContext.
"""

import logging
from collections.abc import Callable

import numpy as np

from radioplay.constants import (
    DEFAULT_VOLUMES,
    LOOPED_TRACKS,
    MASTER_ATTACK_MS,
    MASTER_RATIO,
    MASTER_RELEASE_MS,
    MASTER_THRESHOLD_DB,
    MAX_SPEED,
    MIN_SPEED,
    MIX_BLOCK_FRAMES,
    TRACK_NAMES,
)
from radioplay.effects import compress, make_compressor
from radioplay.errors import TransportError
from radioplay.models import AudioTracks

logger = logging.getLogger(__name__)


class PlaybackContext:
    """Audio clock plus the master bus compressor.

    By default the clock is the number of frames rendered so far; a sink
    with its own clock (seconds, monotonic) can pass it in instead.
    """

    def __init__(self, sample_rate: int, clock: Callable[[], float] | None = None):
        self.sample_rate = sample_rate
        self._clock = clock
        self._frames = 0
        self.master = make_compressor(
            MASTER_THRESHOLD_DB, MASTER_RATIO, MASTER_ATTACK_MS, MASTER_RELEASE_MS,
        )
        self.closed = False

    @property
    def current_time(self) -> float:
        if self._clock is not None:
            return self._clock()
        return self._frames / self.sample_rate

    def advance(self, frames: int) -> None:
        self._frames += frames

    def process(self, block: np.ndarray) -> np.ndarray:
        """Master bus: the compressor keeps its state from block to block."""
        return compress(block, self.master, self.sample_rate, reset=False)

    def close(self) -> None:
        self.master.reset()
        self.closed = True


class Transport:
    """stopped <-> playing state machine over one AudioTracks bundle."""

    def __init__(
        self,
        tracks: AudioTracks,
        context_factory: Callable[[int], PlaybackContext] | None = None,
        volumes: dict[str, float] | None = None,
        speed: float = 1.0,
    ):
        self.tracks = tracks
        self._context_factory = context_factory or PlaybackContext
        self.context: PlaybackContext | None = None
        self.volumes = dict(DEFAULT_VOLUMES)
        for name, value in (volumes or {}).items():
            self.set_volume(name, value)
        self.speed = self.validate_speed(speed)
        self.playing = False
        self.start_time = 0.0
        self.pause_time = 0.0

    @property
    def duration(self) -> float:
        return self.tracks.duration

    def _get_context(self) -> PlaybackContext:
        if self.context is None:
            self.context = self._context_factory(self.tracks.sample_rate)
        return self.context

    def _now(self) -> float:
        return self._get_context().current_time

    def play(self) -> None:
        if self.playing:
            return
        if self.duration <= 0:
            raise TransportError("Nothing to play: the mix is empty")
        offset = self.pause_time % self.duration
        self.start_time = self._now() - offset / self.speed
        self.playing = True
        logger.info("Playing from %.2fs at %.2fx", offset, self.speed)

    def pause(self) -> None:
        if not self.playing:
            return
        self.pause_time = (self._now() - self.start_time) * self.speed
        self.playing = False
        logger.info("Paused at %.2fs", self.pause_time)

    def stop(self) -> None:
        """Stop and rewind to the start."""
        self.playing = False
        self.pause_time = 0.0

    def seek(self, seconds: float) -> None:
        position = min(max(seconds, 0.0), self.duration)
        self.pause_time = position
        if self.playing:
            self.start_time = self._now() - position / self.speed

    def set_speed(self, speed: float) -> None:
        """Change playback rate; elapsed time stays continuous while playing."""
        speed = self.validate_speed(speed)
        if self.playing:
            now = self._now()
            elapsed = (now - self.start_time) * self.speed
            self.start_time = now - elapsed / speed
        self.speed = speed

    def set_volume(self, track: str, value: float) -> None:
        if track not in TRACK_NAMES:
            raise TransportError(f"Unknown track '{track}', expected one of {', '.join(TRACK_NAMES)}")
        if value < 0:
            raise TransportError(f"Volume must be >= 0, got {value}")
        self.volumes[track] = float(value)

    @staticmethod
    def validate_speed(speed: float) -> float:
        if not MIN_SPEED <= speed <= MAX_SPEED:
            raise TransportError(f"Speed must be between {MIN_SPEED} and {MAX_SPEED}, got {speed}")
        return float(speed)

    def elapsed(self) -> float:
        """Playhead position in track seconds."""
        if self.playing:
            return (self._now() - self.start_time) * self.speed
        return self.pause_time

    def progress(self) -> float:
        """Percent in [0, 100]. Reaching the end stops playback and rewinds."""
        if self.duration <= 0:
            return 0.0
        elapsed = self.elapsed()
        if self.playing and elapsed >= self.duration:
            self.stop()
            return 100.0
        return min(elapsed / self.duration * 100, 100.0)

    def _read(self, name: str, positions: np.ndarray) -> np.ndarray:
        """Sample a track at fractional positions with linear interpolation."""
        track = self.tracks.track(name)
        if len(track) == 0:
            return np.zeros(len(positions))
        if name in LOOPED_TRACKS:
            positions = np.mod(positions, len(track))
            nxt = (np.floor(positions).astype(np.int64) + 1) % len(track)
        else:
            nxt = np.floor(positions).astype(np.int64) + 1
        idx = np.floor(positions).astype(np.int64)
        frac = positions - idx
        valid = idx < len(track)
        out = np.zeros(len(positions))
        i = idx[valid]
        j = np.minimum(nxt[valid], len(track) - 1)
        out[valid] = track[i] * (1 - frac[valid]) + track[j] * frac[valid]
        return out

    def render_block(self, frames: int = MIX_BLOCK_FRAMES) -> np.ndarray:
        """Mix the next block of output frames.

        All tracks read from the same playhead; score and ambience wrap
        around their loop length. Silence while stopped.
        """
        context = self._get_context()
        if not self.playing:
            context.advance(frames)
            return np.zeros(frames, dtype=np.float32)

        sr = self.tracks.sample_rate
        start = self.elapsed() * sr
        positions = start + np.arange(frames) * self.speed
        block = np.zeros(frames)
        for name in TRACK_NAMES:
            gain = self.volumes[name]
            if gain:
                block += gain * self._read(name, positions)
        context.advance(frames)
        return context.process(block)

    def close(self) -> None:
        self.playing = False
        if self.context is not None:
            self.context.close()
            self.context = None


def render_mix(
    tracks: AudioTracks,
    volumes: dict[str, float] | None = None,
    speed: float = 1.0,
    block_frames: int = MIX_BLOCK_FRAMES,
) -> np.ndarray:
    """Render the whole mix offline through the same block mixer as playback."""
    transport = Transport(tracks, volumes=volumes, speed=speed)
    total = int(np.ceil(tracks.duration * tracks.sample_rate / transport.speed))
    if total <= 0:
        return np.zeros(0, dtype=np.float32)
    blocks = []
    rendered = 0
    try:
        transport.play()
        while rendered < total:
            frames = min(block_frames, total - rendered)
            blocks.append(transport.render_block(frames))
            rendered += frames
    finally:
        transport.close()
    return np.concatenate(blocks).astype(np.float32)
