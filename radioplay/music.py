"""Procedural musical score in 4/4, driven by the scene's score style."""

import logging
import math
import random

import numpy as np

from radioplay.constants import (
    SCORE_FAST_TEMPO,
    SCORE_MASTER_GAIN,
    SCORE_MAX_SECONDS,
    SCORE_SLOW_TEMPO,
)
from radioplay.dsp import (
    apply_filter,
    automation,
    feedback_delay,
    oscillator,
    place,
    seconds_to_samples,
)

logger = logging.getLogger(__name__)

NOTES = {
    "C2": 65.41, "D2": 73.42, "E2": 82.41, "F2": 87.31, "G2": 98.00, "A2": 110.00, "B2": 123.47,
    "C3": 130.81, "D3": 146.83, "E3": 164.81, "F3": 174.61, "G3": 196.00, "A3": 220.00,
    "Bb3": 233.08, "B3": 246.94,
    "C4": 261.63, "D4": 293.66, "E4": 329.63, "F4": 349.23, "G4": 392.00, "A4": 440.00,
    "B4": 493.88,
    "C5": 523.25,
}


def _notes(*names):
    return [NOTES[name] for name in names]


SCALES = {
    "sad": _notes("A2", "C3", "E3", "A3", "B3", "C4"),
    "tense": _notes("C2", "C3", "F2", "F3", "G2"),
    "happy": _notes("C3", "E3", "G3", "C4", "D4", "E4"),
    "mysterious": _notes("D3", "F3", "A3", "Bb3", "C4"),
    "romantic": _notes("F3", "A3", "C4", "E4", "G4"),
    "neutral": _notes("C3", "G3"),
}

# Chord per measure, as indices into the style's scale (wrapping).
PROGRESSIONS = {
    "happy": [[0, 2, 4], [3, 5, 0], [4, 6, 1], [0, 2, 4]],
    "sad": [[0, 2, 4], [5, 0, 2], [3, 5, 0], [4, 6, 1]],
    "tense": [[0, 1, 3], [0, 2, 4], [0, 1, 3], [0, 1, 4]],
    "mysterious": [[0, 3], [1, 4], [2, 5], [0, 3]],
    "romantic": [[0, 2, 4], [3, 5, 0], [1, 3, 5], [4, 6, 1]],
    "neutral": [[0, 2], [1, 3], [0, 2], [1, 3]],
}

CHORD_LEVEL = 0.08
BASS_LEVEL = 0.12
BASS_CUTOFF_HZ = 400
MELODY_GAIN = 0.55
MELODY_NOTE_CHANCE = 0.6
DELAY_FEEDBACK = 0.2
RHYTHM_GAIN = 0.06
HAT_CUTOFF_HZ = 5000


def tempo_for(style: str) -> int:
    return SCORE_FAST_TEMPO if style in ("tense", "happy") else SCORE_SLOW_TEMPO


def _chords(out, chord, start, beat, voice, rng):
    n = seconds_to_samples(beat * 4)
    envelope = automation(
        [(0, 0), (beat, CHORD_LEVEL), (beat * 3, CHORD_LEVEL), (beat * 4, 0)], n)
    for freq in chord:
        tone = oscillator(voice, freq, n, detune_cents=rng.uniform(-4, 4))
        place(out, tone * envelope, seconds_to_samples(start))


def _bass(out, root, start, beat, pattern):
    n = seconds_to_samples(beat * 4)
    points = [(0, 0)]
    for offset in pattern:
        t = offset * beat
        points += [(t, points[-1][1]), (t + 1e-4, BASS_LEVEL), (t + beat * 0.4, 0.001, "exp")]
    tone = apply_filter(oscillator("square", root / 2, n), "lowpass", BASS_CUTOFF_HZ)
    place(out, tone * automation(points, n), seconds_to_samples(start))


def _melody(out, scale, start, beat, voice, rng, last_index):
    note_len = seconds_to_samples(0.4)
    envelope = automation([(0, 0), (0.05, 0.5), (0.35, 0.001, "exp")], note_len)
    for i in range(8):
        if rng.random() >= MELODY_NOTE_CHANCE:
            continue
        last_index = min(max(last_index + rng.randint(-1, 1), 0), len(scale) - 1)
        tone = oscillator(voice, scale[last_index] * 2, note_len) * envelope
        place(out, tone, seconds_to_samples(start + i * beat / 2))
    return last_index


def _hats(out, hat, start, beat):
    sixteenth = beat / 4
    for i in range(16):
        level = 0.6 if i % 4 == 0 else 0.3
        envelope = automation([(0, level), (0.05, 0.001, "exp")], len(hat))
        place(out, hat * envelope, seconds_to_samples(start + i * sixteenth))


def generate_score(
    duration: float,
    style: str,
    rng: random.Random | None = None,
) -> np.ndarray:
    """Render the score loop for a style as float32.

    Neutral yields silence of the requested duration. Other styles are capped
    at SCORE_MAX_SECONDS and rounded up to whole measures.
    """
    if style not in SCALES or style == "neutral":
        return np.zeros(seconds_to_samples(duration), dtype=np.float32)

    rng = rng or random.Random()
    beat = 60 / tempo_for(style)
    measure = beat * 4
    measures = math.ceil(min(duration, SCORE_MAX_SECONDS) / measure)
    n = seconds_to_samples(measures * measure)

    scale = SCALES[style]
    progression = PROGRESSIONS[style]
    voice = "sawtooth" if style == "tense" else "triangle"
    bass_pattern = [i / 2 for i in range(8)] if style == "tense" else [0, 2]
    with_melody = style != "mysterious"

    harmony = np.zeros(n)
    melody = np.zeros(n)
    rhythm = np.zeros(n)
    hat_len = seconds_to_samples(0.2)
    hat = apply_filter(_white_noise(hat_len, rng), "highpass", HAT_CUTOFF_HZ)
    last_index = 0

    for m in range(measures):
        start = m * measure
        chord = [scale[i % len(scale)] for i in progression[m % len(progression)]]
        _chords(harmony, chord, start, beat, voice, rng)
        _bass(harmony, chord[0], start, beat, bass_pattern)
        if with_melody:
            last_index = _melody(melody, scale, start, beat, voice, rng, last_index)
            _hats(rhythm, hat, start, beat)

    melody *= MELODY_GAIN
    mix = harmony + melody + feedback_delay(melody, beat * 0.75, DELAY_FEEDBACK) + rhythm * RHYTHM_GAIN
    logger.info("Score: %s, %d measures at %d BPM", style, measures, tempo_for(style))
    return (mix * SCORE_MASTER_GAIN).astype(np.float32)


def _white_noise(n: int, rng: random.Random) -> np.ndarray:
    """White noise drawn from the score's own random source."""
    seed = rng.getrandbits(32)
    return np.random.default_rng(seed).uniform(-1.0, 1.0, n)
