"""Synthesis primitives shared by the procedural generators.

Oscillators, noise, breakpoint envelopes, filters (fixed and swept) and a
feedback delay, all rendering offline into float arrays at SAMPLE_RATE.
"""

from functools import lru_cache

import numpy as np
from scipy import signal as sps

from radioplay.constants import SAMPLE_RATE

NOISE_SECONDS = 10        # length of the shared noise buffer
_MIN_LEVEL = 1e-4         # floor for exponential ramps (they cannot reach zero)


@lru_cache(maxsize=1)
def shared_noise(sample_rate: int = SAMPLE_RATE) -> np.ndarray:
    """Brown-ish noise, generated once and reused by every generator."""
    white = np.random.default_rng().uniform(-1.0, 1.0, NOISE_SECONDS * sample_rate)
    # y[n] = (y[n-1] + 0.02 * x[n]) / 1.02
    brown = sps.lfilter([0.02 / 1.02], [1.0, -1.0 / 1.02], white)
    return (brown * 3.5).astype(np.float32)


def noise(n: int, sample_rate: int = SAMPLE_RATE) -> np.ndarray:
    """n samples of noise, tiled from the shared buffer."""
    base = shared_noise(sample_rate)
    reps = n // len(base) + 1
    return np.tile(base, reps)[:n].astype(np.float64)


def seconds_to_samples(seconds: float, sample_rate: int = SAMPLE_RATE) -> int:
    return max(0, int(round(seconds * sample_rate)))


def automation(points: list[tuple], n: int, sample_rate: int = SAMPLE_RATE) -> np.ndarray:
    """Render a parameter curve from breakpoints.

    points: (time, value) or (time, value, "lin"|"exp") tuples in time order.
    The curve holds the first value before the first point, ramps into each
    point with that point's shape, and holds the last value afterwards.
    """
    t = np.arange(n) / sample_rate
    out = np.full(n, float(points[0][1]))
    for prev, point in zip(points, points[1:]):
        t0, v0 = prev[0], float(prev[1])
        t1, v1 = point[0], float(point[1])
        shape = point[2] if len(point) > 2 else "lin"
        mask = (t >= t0) & (t < t1)
        if not mask.any():
            continue
        frac = (t[mask] - t0) / (t1 - t0)
        if shape == "exp":
            a, b = max(v0, _MIN_LEVEL), max(v1, _MIN_LEVEL)
            out[mask] = a * (b / a) ** frac
        else:
            out[mask] = v0 + (v1 - v0) * frac
    out[t >= points[-1][0]] = float(points[-1][1])
    return out


def oscillator(
    kind: str,
    freq,
    n: int,
    sample_rate: int = SAMPLE_RATE,
    detune_cents: float = 0.0,
) -> np.ndarray:
    """Sine, square, sawtooth or triangle at a fixed or per-sample frequency."""
    freq = np.broadcast_to(np.asarray(freq, dtype=np.float64), (n,))
    freq = freq * 2 ** (detune_cents / 1200)
    phase = 2 * np.pi * np.cumsum(freq) / sample_rate
    if kind == "square":
        return sps.square(phase)
    if kind == "sawtooth":
        return sps.sawtooth(phase)
    if kind == "triangle":
        return sps.sawtooth(phase, 0.5)
    return np.sin(phase)


@lru_cache(maxsize=512)
def _design(kind: str, low: float, high: float) -> np.ndarray:
    if kind == "bandpass":
        return sps.butter(1, [low, high], btype="bandpass", output="sos")
    return sps.butter(2, low, btype=kind, output="sos")


def _normalized(kind: str, freq: float, q: float, sample_rate: int) -> tuple[float, float]:
    nyquist = sample_rate / 2
    if kind == "bandpass":
        width = freq / max(q, 0.1)
        low = max(freq - width / 2, 10.0)
        high = max(min(freq + width / 2, nyquist * 0.99), low + 50.0)
        return round(low / nyquist, 4), round(min(high / nyquist, 0.99), 4)
    return round(min(max(freq / nyquist, 1e-4), 0.99), 4), 0.0


def apply_filter(
    audio: np.ndarray,
    kind: str,
    freq: float,
    q: float = 1.0,
    sample_rate: int = SAMPLE_RATE,
) -> np.ndarray:
    """Fixed lowpass, highpass or bandpass (Butterworth, causal)."""
    sos = _design(kind, *_normalized(kind, freq, q, sample_rate))
    return sps.sosfilt(sos, audio)


def apply_swept_filter(
    audio: np.ndarray,
    kind: str,
    freq_curve: np.ndarray,
    q: float = 1.0,
    sample_rate: int = SAMPLE_RATE,
    block: int = 256,
) -> np.ndarray:
    """Filter whose cutoff follows freq_curve, redesigned every block.

    Filter state carries across blocks so the sweep has no clicks.
    """
    out = np.empty(len(audio))
    zi = None
    for start in range(0, len(audio), block):
        stop = min(start + block, len(audio))
        sos = _design(kind, *_normalized(kind, float(freq_curve[start]), q, sample_rate))
        if zi is None:
            zi = np.zeros((sos.shape[0], 2))
        out[start:stop], zi = sps.sosfilt(sos, audio[start:stop], zi=zi)
    return out


def feedback_delay(
    audio: np.ndarray,
    delay_seconds: float,
    feedback: float,
    sample_rate: int = SAMPLE_RATE,
) -> np.ndarray:
    """Wet output of a delay line whose output feeds back into itself.

    y[n] = x[n - d] + feedback * y[n - d]
    """
    d = max(1, seconds_to_samples(delay_seconds, sample_rate))
    b = np.zeros(d + 1)
    b[d] = 1.0
    a = np.zeros(d + 1)
    a[0] = 1.0
    a[d] = -feedback
    return sps.lfilter(b, a, audio)


def place(target: np.ndarray, clip: np.ndarray, start: int) -> None:
    """Add clip into target at sample offset start, clipped to target length."""
    if start >= len(target) or len(clip) == 0:
        return
    end = min(start + len(clip), len(target))
    target[start:end] += clip[: end - start]


def fade_edges(audio: np.ndarray, fade_samples: int) -> np.ndarray:
    """Linear fade-in and fade-out of the same length, in place."""
    fade_samples = min(fade_samples, len(audio) // 2)
    if fade_samples <= 0:
        return audio
    ramp = np.arange(fade_samples) / fade_samples
    audio[:fade_samples] *= ramp
    audio[len(audio) - fade_samples:] *= ramp[::-1]
    return audio
