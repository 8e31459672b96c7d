"""All magic numbers and configuration constants."""

SAMPLE_RATE = 24000                 # Hz, native rate of the speech service output
PCM_FULL_SCALE = 32768              # int16 full scale
SILENCE_THRESHOLD = 327             # ~1% of full scale, for head/tail trimming
MIN_TRIMMED_SECONDS = 0.05          # trimmed clips shorter than this are left untouched

SEGMENT_GAP_SECONDS = 0.12          # pause after every segment that has speech
TAIL_SECONDS = 1.0                  # room for effect and reverb tails at the end

SPEECH_CONCURRENCY = 16             # speech synthesis pool slots
EFFECTS_CONCURRENCY = 8             # sound effect pool slots

REVERB_IR_SECONDS = 1.5             # impulse response length
REVERB_DECAY = 3.0                  # power-law decay exponent of the impulse response
REVERB_WET = 0.1                    # wet share of the dialogue reverb (dry = 1 - wet)
REVERB_IR_CUTOFF_HZ = 8000          # band limit of the impulse response noise

SFX_SECONDS = 4.0                   # render length of every sound effect
SFX_COMPRESSOR_THRESHOLD_DB = -20.0
SFX_COMPRESSOR_RATIO = 4.0

AMBIENCE_MAX_SECONDS = 32.0         # ambience is a short loop
AMBIENCE_MAX_LAYERS = 4             # keyword layers on top of the noise bed
AMBIENCE_FADE_SECONDS = 0.1         # loop-click protection

SCORE_MAX_SECONDS = 64.0            # score is a loop
SCORE_FAST_TEMPO = 120              # BPM for happy and tense
SCORE_SLOW_TEMPO = 70               # BPM for everything else
SCORE_MASTER_GAIN = 0.8

MASTER_THRESHOLD_DB = -24.0         # playback bus compressor
MASTER_RATIO = 12.0
MASTER_ATTACK_MS = 3.0
MASTER_RELEASE_MS = 250.0
MIX_BLOCK_FRAMES = 1024             # frames rendered per mixing call

DEFAULT_VOLUMES = {
    "dialogue": 0.8,
    "score": 0.15,
    "ambience": 0.5,
    "sfx": 0.5,
}
TRACK_NAMES = ("dialogue", "score", "ambience", "sfx")
LOOPED_TRACKS = ("score", "ambience")
MIN_SPEED = 0.25
MAX_SPEED = 4.0

NARRATOR_NAME = "Narrator"
NARRATOR_EMOTION = "Matter-of-fact"
NARRATOR_VOICE = "en-US-RogerNeural"         # dedicated third-person narrator
DEFAULT_VOICE = "en-US-GuyNeural"            # fallback when no profile matches
NARRATOR_INSTRUCTION = "Narration. Read in a clear, neutral, matter-of-fact tone."
FIRST_PERSON_SUFFIX = " You are the protagonist."
TTS_RATE = "-10%"                            # base speech rate for edge-tts
OUTPUT_BITRATE = "192k"                      # MP3 bitrate of the final mix

OUTPUT_DIR = "output"
VERSION = "0.1.0"
