"""Speech synthesis via edge-tts, PCM16 wire format and silence trimming."""

import base64
import logging
import os
import tempfile

import edge_tts
import numpy as np
from pydub import AudioSegment

from radioplay.constants import (
    MIN_TRIMMED_SECONDS,
    SAMPLE_RATE,
    SILENCE_THRESHOLD,
    TTS_RATE,
)
from radioplay.errors import GenerationError

logger = logging.getLogger(__name__)

# Emotion words in a delivery instruction -> (rate, pitch) for edge-tts.
# First match wins.
PROSODY_RULES = [
    (("whisper", "murmur", "hush"), ("-20%", "-5Hz")),
    (("shout", "angry", "furious", "yell", "retort"), ("+5%", "+10Hz")),
    (("fear", "scared", "trembl", "nervous", "anxious"), ("+5%", "+15Hz")),
    (("sad", "grief", "sorrow", "tired"), ("-20%", "-10Hz")),
    (("happy", "excited", "joy", "cheer", "laugh"), ("+10%", "+5Hz")),
]


def encode_pcm16(samples: np.ndarray) -> bytes:
    """Serialize samples as mono 16-bit signed little-endian PCM."""
    return np.asarray(samples, dtype="<i2").tobytes()


def decode_pcm16(data: bytes) -> np.ndarray:
    """Parse mono 16-bit signed little-endian PCM into an int16 array."""
    if len(data) % 2:
        raise ValueError(f"PCM16 payload has odd length: {len(data)} bytes")
    return np.frombuffer(data, dtype="<i2").astype(np.int16)


def decode_pcm16_base64(payload: str) -> np.ndarray:
    """Decode a base64 PCM16 payload (inline audio data of a service response)."""
    return decode_pcm16(base64.b64decode(payload))


def trim_silence(samples: np.ndarray, threshold: int = SILENCE_THRESHOLD) -> np.ndarray:
    """Strip near-silent samples from head and tail.

    If what remains is shorter than MIN_TRIMMED_SECONDS the clip is returned
    untouched, so very short lines are never destroyed. Trimming is
    idempotent: a trimmed clip starts and ends above the threshold.
    """
    loud = np.flatnonzero(np.abs(samples.astype(np.int32)) >= threshold)
    if len(loud) == 0:
        return samples
    start, end = int(loud[0]), int(loud[-1]) + 1
    if end - start < SAMPLE_RATE * MIN_TRIMMED_SECONDS:
        return samples
    return samples[start:end]


def prosody_for(instruction: str) -> tuple[str, str]:
    """Map a free-text delivery instruction onto edge-tts rate and pitch."""
    lowered = instruction.lower()
    for words, prosody in PROSODY_RULES:
        if any(word in lowered for word in words):
            return prosody
    return TTS_RATE, "+0Hz"


class EdgeSpeechService:
    """Speech Synthesis Service backed by edge-tts.

    synthesize() returns raw mono PCM16 LE bytes at SAMPLE_RATE. edge-tts
    has no free-text instruction input, so the instruction only selects
    rate and pitch.
    """

    def __init__(self, sample_rate: int = SAMPLE_RATE):
        self.sample_rate = sample_rate

    async def synthesize(self, text: str, voice: str, instruction: str) -> bytes:
        rate, pitch = prosody_for(instruction)
        with tempfile.TemporaryDirectory() as tmp_dir:
            path = os.path.join(tmp_dir, "line.mp3")
            communicate = edge_tts.Communicate(text, voice, rate=rate, pitch=pitch)
            await communicate.save(path)

            # 0-byte file counts as failure
            if not os.path.exists(path) or os.path.getsize(path) == 0:
                raise GenerationError(f"TTS produced 0-byte file for: {text[:50]}...")

            audio = AudioSegment.from_file(path)
        audio = audio.set_frame_rate(self.sample_rate).set_channels(1).set_sample_width(2)
        return audio.raw_data


async def synthesize_clip(service, text: str, voice: str, instruction: str) -> np.ndarray:
    """Request one line from a speech service and return the trimmed clip."""
    logger.info("Synthesizing %d chars with %s", len(text), voice)
    raw = await service.synthesize(text, voice, instruction)
    if not raw:
        raise GenerationError(f"No audio returned for: {text[:50]}...")
    return trim_silence(decode_pcm16(raw))
