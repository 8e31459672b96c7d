"""Procedural sound effects, one recipe per family of keywords.

Every effect is synthesized from noise and oscillators (no sampled assets),
rendered for SFX_SECONDS and passed through a light compressor.
"""

import logging
import random

import numpy as np

from radioplay.constants import (
    SAMPLE_RATE,
    SFX_COMPRESSOR_RATIO,
    SFX_COMPRESSOR_THRESHOLD_DB,
    SFX_SECONDS,
)
from radioplay.dsp import (
    apply_filter,
    apply_swept_filter,
    automation,
    noise,
    oscillator,
    place,
    seconds_to_samples,
)
from radioplay.effects import compress, make_compressor

logger = logging.getLogger(__name__)


def _noise(n: int, rng: random.Random) -> np.ndarray:
    """Noise starting at a random point of the shared buffer."""
    source = noise(seconds_to_samples(SFX_SECONDS + 1.0))
    offset = rng.randrange(0, len(source) - n) if len(source) > n else 0
    return source[offset:offset + n]


def _thunder(n, rng):
    rumble = apply_swept_filter(
        _noise(n, rng), "lowpass", automation([(0, 400), (2.5, 50, "exp")], n))
    return rumble * automation([(0, 0), (0.1, 0.8), (3.5, 0.01, "exp")], n)


def _wind(n, rng):
    base = rng.uniform(250, 350)
    freq = automation([(0, base), (1.5, base * 2), (3.5, base * 0.8)], n)
    howl = apply_swept_filter(_noise(n, rng), "bandpass", freq, q=4)
    return howl * automation([(0, 0), (1.5, 0.6), (3.5, 0)], n)


def _creak(n, rng):
    base = rng.uniform(130, 170)
    freq = automation([(0, base), (0.5, base - 20), (1.0, base - 10), (1.5, base - 40)], n)
    groan = apply_filter(oscillator("sawtooth", freq, n), "bandpass", 800, q=3)
    return groan * automation([(0, 0), (0.2, 0.3), (1.0, 0.2), (1.5, 0)], n)


def _footsteps(n, rng):
    out = np.zeros(n)
    step_len = seconds_to_samples(0.3)
    for i in range(3):
        at = i * rng.uniform(0.5, 0.65)
        thud = apply_filter(_noise(step_len, rng), "lowpass", rng.uniform(100, 180))
        thud = thud * automation([(0, 0), (0.02, 0.5), (0.2, 0.001, "exp")], step_len)
        place(out, thud, seconds_to_samples(at))
    return out


def _shatter(n, rng):
    return _noise(n, rng) * automation([(0, 0.8), (0.3, 0.01, "exp")], n)


def _breath(n, rng):
    air = apply_filter(_noise(n, rng), "lowpass", 800)
    return air * automation([(0, 0), (0.2, 0.2), (0.8, 0.001, "exp")], n)


def _rustle(n, rng):
    fabric = apply_filter(_noise(n, rng), "highpass", 1200)
    return fabric * automation([(0, 0), (0.1, 0.15), (0.4, 0.001, "exp")], n)


def _impact(n, rng):
    knock = apply_filter(_noise(n, rng), "lowpass", 300)
    return knock * automation([(0, 0.5), (0.5, 0.001, "exp")], n)


def _has(*words):
    return lambda keyword: any(word in keyword for word in words)


# First matching predicate wins; _impact is the fallback.
RECIPES = [
    (_has("thunder", "explosion", "boom"), _thunder),
    (_has("wind", "howl"), _wind),
    (_has("creak", "door", "squeak"), _creak),
    (_has("footstep", "step", "walk"), _footsteps),
    (_has("shatter", "glass", "crash"), _shatter),
    (_has("breath", "sigh", "gasp"), _breath),
    (_has("rustle", "cloth", "shift"), _rustle),
]


def recipe_for(keyword: str):
    lowered = keyword.lower()
    for matches, recipe in RECIPES:
        if matches(lowered):
            return recipe
    return _impact


def render_sfx(keyword: str, rng: random.Random | None = None) -> np.ndarray:
    """Render the effect for a keyword as a float32 clip of SFX_SECONDS."""
    rng = rng or random.Random()
    recipe = recipe_for(keyword)
    logger.info("Rendering sound effect '%s' with %s", keyword, recipe.__name__.lstrip("_"))
    n = seconds_to_samples(SFX_SECONDS)
    raw = recipe(n, rng)
    board = make_compressor(SFX_COMPRESSOR_THRESHOLD_DB, SFX_COMPRESSOR_RATIO)
    return compress(raw, board, SAMPLE_RATE).astype(np.float32)
