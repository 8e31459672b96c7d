"""Audio effects: convolution reverb on dialogue and bus compression."""

from functools import lru_cache

import numpy as np
import pedalboard
from scipy import signal as sps

from radioplay.constants import (
    REVERB_DECAY,
    REVERB_IR_CUTOFF_HZ,
    REVERB_IR_SECONDS,
    REVERB_WET,
    SAMPLE_RATE,
)
from radioplay.dsp import apply_filter


@lru_cache(maxsize=4)
def impulse_response(
    duration: float = REVERB_IR_SECONDS,
    decay: float = REVERB_DECAY,
    sample_rate: int = SAMPLE_RATE,
) -> np.ndarray:
    """Band-limited noise with a (1 - n)^decay envelope, unit energy.

    Generated once per process and reused for every mix.
    """
    length = int(sample_rate * duration)
    n = np.arange(length) / length
    raw = np.random.default_rng().uniform(-1.0, 1.0, length)
    raw = apply_filter(raw, "lowpass", REVERB_IR_CUTOFF_HZ, sample_rate=sample_rate)
    ir = raw * (1.0 - n) ** decay
    energy = np.sqrt(np.sum(ir ** 2))
    if energy > 0:
        ir = ir / energy
    ir.flags.writeable = False
    return ir


def apply_reverb(
    dry: np.ndarray,
    wet_level: float = REVERB_WET,
    sample_rate: int = SAMPLE_RATE,
) -> np.ndarray:
    """Mix a dry buffer with its convolution against the shared impulse.

    Output has the same length as the input; the tail past the end is
    dropped (the timeline reserves room for it).
    """
    if len(dry) == 0:
        return dry.astype(np.float32)
    ir = impulse_response(sample_rate=sample_rate)
    wet = sps.fftconvolve(dry, ir)[: len(dry)]
    return ((1.0 - wet_level) * dry + wet_level * wet).astype(np.float32)


def make_compressor(
    threshold_db: float,
    ratio: float,
    attack_ms: float = 3.0,
    release_ms: float = 250.0,
) -> pedalboard.Pedalboard:
    """Single-plugin board, usable offline or block by block (reset=False)."""
    return pedalboard.Pedalboard([
        pedalboard.Compressor(
            threshold_db=threshold_db,
            ratio=ratio,
            attack_ms=attack_ms,
            release_ms=release_ms,
        ),
    ])


def compress(
    audio: np.ndarray,
    board: pedalboard.Pedalboard,
    sample_rate: int = SAMPLE_RATE,
    reset: bool = True,
) -> np.ndarray:
    """Run a mono float buffer through a pedalboard chain."""
    samples = np.asarray(audio, dtype=np.float32).reshape((1, -1))
    processed = board(samples, sample_rate, reset=reset)
    return processed.flatten()
