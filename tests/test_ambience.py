"""Tests for the ambience loop."""

import random

import numpy as np
import pytest

from radioplay import ambience
from radioplay.constants import AMBIENCE_MAX_SECONDS, SAMPLE_RATE


def test_loop_length_follows_short_duration():
    out = ambience.generate_ambience(3.0, ["wind"], random.Random(0))
    assert out.dtype == np.float32
    assert len(out) == 3 * SAMPLE_RATE


def test_loop_capped():
    out = ambience.generate_ambience(100.0, [], random.Random(0))
    assert len(out) == int(AMBIENCE_MAX_SECONDS * SAMPLE_RATE)


def test_zero_duration_is_empty():
    assert len(ambience.generate_ambience(0.0, ["wind"])) == 0


def test_loop_edges_fade_to_silence():
    out = ambience.generate_ambience(2.0, ["crickets", "water"], random.Random(4))
    assert out[0] == 0.0
    assert np.max(np.abs(out)) > 0


def test_layers_in_keyword_order_without_repeats():
    layers = ambience.layers_for(["clock ticking", "Wind", "breeze", "birds"])
    assert layers == [ambience._clock, ambience._wind, ambience._birds]


def test_layers_capped_at_four():
    layers = ambience.layers_for(["wind", "birds", "crickets", "river", "siren", "hum"])
    assert len(layers) == 4


def test_unmatched_keywords_add_nothing():
    assert ambience.layers_for(["silence", "lava"]) == []


def test_every_layer_renders():
    n = SAMPLE_RATE * 2 + 49
    for _, layer in ambience.LAYERS:
        audio = layer(n, 4.0, random.Random(5))
        assert len(audio) == n, layer.__name__
        assert np.all(np.isfinite(audio))


def test_noise_for_returns_exact_length():
    for n in (27, 49, 54, 61, 120001):
        assert len(ambience.noise_for(n, random.Random(0))) == n


@pytest.mark.parametrize("n", [49, SAMPLE_RATE + 49, 5 * SAMPLE_RATE + 1])
def test_every_keyword_renders_at_odd_lengths(n):
    keywords = ["wind", "birds", "crickets", "river", "traffic",
                "crowd", "siren", "hum", "announcement", "clock"]
    for keyword in keywords:
        out = ambience.generate_ambience(n / SAMPLE_RATE, [keyword], random.Random(2))
        assert len(out) == n, keyword
        assert np.all(np.isfinite(out))
