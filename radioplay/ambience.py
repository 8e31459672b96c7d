"""Procedural ambience: a noise bed plus layers picked by scene keywords.

The result is a short loop (at most AMBIENCE_MAX_SECONDS) with faded edges,
meant to be looped by the playback transport.
"""

import logging
import random
import re

import numpy as np

from radioplay.constants import (
    AMBIENCE_FADE_SECONDS,
    AMBIENCE_MAX_LAYERS,
    AMBIENCE_MAX_SECONDS,
)
from radioplay.dsp import (
    apply_filter,
    apply_swept_filter,
    automation,
    fade_edges,
    noise,
    oscillator,
    place,
    seconds_to_samples,
)

logger = logging.getLogger(__name__)

BED_CUTOFF_HZ = 150
BED_GAIN = 0.12


def _time(n):
    return np.arange(n) / seconds_to_samples(1.0)


def _wind(n, span, rng):
    freq = 300 + 200 * np.sin(2 * np.pi * 0.2 * _time(n))
    return apply_swept_filter(noise_for(n, rng), "bandpass", freq) * 0.15


def _birds(n, span, rng):
    out = np.zeros(n)
    chirp_len = seconds_to_samples(0.1)
    envelope = automation([(0, 0), (0.02, 0.1), (0.1, 0)], chirp_len)
    for _ in range(int(span / 2)):
        start = rng.uniform(2000, 3000)
        freq = automation([(0, start), (0.1, 1500, "exp")], chirp_len)
        place(out, oscillator("sine", freq, chirp_len) * envelope,
              seconds_to_samples(rng.random() * span))
    return out * 0.05


def _crickets(n, span, rng):
    out = np.zeros(n)
    chirp_len = seconds_to_samples(0.1)
    chirp = oscillator("sine", 4000, chirp_len) * automation(
        [(0, 0), (0.01, 0.1), (0.05, 0.05)], chirp_len)
    for i in range(int(span * 3)):
        place(out, chirp, seconds_to_samples(i * 0.3 + rng.random() * 0.1))
    return out * 0.03


def _water(n, span, rng):
    return apply_filter(noise_for(n, rng), "lowpass", 600) * 0.2


def _traffic(n, span, rng):
    swell = 0.25 + 0.1 * np.sin(2 * np.pi * 0.1 * _time(n))
    return apply_filter(noise_for(n, rng), "lowpass", 200) * swell


def _crowd(n, span, rng):
    wobble = apply_filter(noise_for(n, rng), "lowpass", 5) * 1000
    freq = np.maximum(700 + wobble, 100)
    return apply_swept_filter(noise_for(n, rng), "bandpass", freq, q=2) * 0.15


def _siren(n, span, rng):
    freq = automation([(0, 600), (2.0, 800)], n)
    return oscillator("sawtooth", freq, n) * 0.05


def _hum(n, span, rng):
    mains = oscillator("sine", 60, n) * 0.05
    fan = apply_filter(noise_for(n, rng), "lowpass", 200) * 0.08
    return mains + fan


def _announcements(n, span, rng):
    out = np.zeros(n)
    voice_len = seconds_to_samples(3.0)
    envelope = automation([(0, 0), (0.5, 1.0), (3.0, 0)], voice_len)
    for _ in range(int(span / 15)):
        babble = apply_filter(noise(voice_len), "bandpass", 1500, q=8) * envelope
        place(out, babble, seconds_to_samples(5 + rng.random() * (span - 10)))
    return out * 0.08


def _clock(n, span, rng):
    out = np.zeros(n)
    tick_len = seconds_to_samples(0.05)
    tick = oscillator("square", 1000, tick_len) * automation(
        [(0, 0.05), (0.05, 0.001, "exp")], tick_len)
    for start in range(0, n, seconds_to_samples(1.0)):
        place(out, tick, start)
    return out * 0.05


def noise_for(n: int, rng: random.Random) -> np.ndarray:
    """Noise of n samples, rotated by a random amount so layers decorrelate."""
    base = noise(n)
    return np.roll(base, rng.randrange(n)) if n else base


def _has(*words):
    pattern = re.compile(r"\b(?:%s)" % "|".join(words))
    return lambda keyword: bool(pattern.search(keyword))


# First matching predicate wins; keywords with no match add nothing.
LAYERS = [
    (_has("wind", "breeze", "air"), _wind),
    (_has("bird", "chirp", "forest"), _birds),
    (_has("cricket", "insect", "night"), _crickets),
    (_has("water", "stream", "river", "wave"), _water),
    (_has("traffic", "car", "city", "distant"), _traffic),
    (_has("crowd", "talk", "chat", "murmur"), _crowd),
    (_has("siren", "alarm"), _siren),
    (_has("hum", "machine", "fan", "server"), _hum),
    (_has("announcement", "speaker", "pa"), _announcements),
    (_has("clock", "tick"), _clock),
]


def layers_for(ambient_sounds: list[str]) -> list:
    """Distinct layers for the keywords, in keyword order, at most AMBIENCE_MAX_LAYERS."""
    chosen = []
    for keyword in ambient_sounds:
        lowered = keyword.lower()
        for matches, layer in LAYERS:
            if matches(lowered):
                if layer not in chosen:
                    chosen.append(layer)
                break
        if len(chosen) == AMBIENCE_MAX_LAYERS:
            break
    return chosen


def generate_ambience(
    duration: float,
    ambient_sounds: list[str],
    rng: random.Random | None = None,
) -> np.ndarray:
    """Render the ambience loop for a scene as float32."""
    rng = rng or random.Random()
    loop_seconds = min(max(duration, 0.0), AMBIENCE_MAX_SECONDS)
    n = seconds_to_samples(loop_seconds)
    if n == 0:
        return np.zeros(0, dtype=np.float32)

    # Scheduling span runs past the loop so late events are still drawn.
    span = loop_seconds + 2
    out = apply_filter(noise_for(n, rng), "lowpass", BED_CUTOFF_HZ) * BED_GAIN
    layers = layers_for(ambient_sounds)
    for layer in layers:
        out += layer(n, span, rng)
    logger.info("Ambience: %.1fs loop, layers %s", loop_seconds,
                [layer.__name__.lstrip("_") for layer in layers])

    fade_edges(out, seconds_to_samples(AMBIENCE_FADE_SECONDS))
    return out.astype(np.float32)
