"""Tests for reverb and compression."""

import numpy as np
import pytest

from radioplay.constants import REVERB_IR_SECONDS, SAMPLE_RATE
from radioplay.effects import apply_reverb, compress, impulse_response, make_compressor


def _rms(x):
    return float(np.sqrt(np.mean(np.square(x))))


def test_impulse_response_cached_and_frozen():
    ir = impulse_response()
    assert impulse_response() is ir
    assert not ir.flags.writeable
    assert len(ir) == int(REVERB_IR_SECONDS * SAMPLE_RATE)


def test_impulse_response_unit_energy_and_decays():
    ir = impulse_response()
    assert np.sum(ir ** 2) == pytest.approx(1.0)
    half = len(ir) // 2
    assert np.sum(ir[:half] ** 2) > 10 * np.sum(ir[half:] ** 2)


def test_reverb_keeps_length_and_mixes_dry():
    dry = np.zeros(SAMPLE_RATE, dtype=np.float32)
    dry[100] = 1.0
    out = apply_reverb(dry, wet_level=0.1)
    assert len(out) == len(dry)
    assert out.dtype == np.float32
    # tail after the impulse comes from the wet path only
    assert np.any(out[200:] != 0.0)


def test_reverb_of_silence_is_silence():
    assert not np.any(apply_reverb(np.zeros(4800, dtype=np.float32)))


def test_reverb_empty_input():
    assert len(apply_reverb(np.zeros(0, dtype=np.float32))) == 0


def test_compressor_reduces_loud_signal():
    t = np.arange(SAMPLE_RATE) / SAMPLE_RATE
    loud = (0.9 * np.sin(2 * np.pi * 220 * t)).astype(np.float32)
    out = compress(loud, make_compressor(-20.0, 4.0))
    assert out.shape == loud.shape
    assert _rms(out[SAMPLE_RATE // 2:]) < _rms(loud[SAMPLE_RATE // 2:])


def test_compressor_leaves_quiet_signal():
    t = np.arange(SAMPLE_RATE) / SAMPLE_RATE
    quiet = (0.01 * np.sin(2 * np.pi * 220 * t)).astype(np.float32)
    out = compress(quiet, make_compressor(-20.0, 4.0))
    assert _rms(out) == pytest.approx(_rms(quiet), rel=0.1)
