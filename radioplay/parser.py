"""Text analysis: prose into narrator/dialogue segments plus a scene descriptor.

LocalAnalyzer is a heuristic stand-in for a hosted Text Analysis Service.
parse_analysis() validates the JSON payload such a service returns.
"""

import json
import logging
import re

from radioplay.constants import NARRATOR_EMOTION, NARRATOR_NAME
from radioplay.errors import AnalysisError
from radioplay.models import AnalysisResult, Scene, Segment

logger = logging.getLogger(__name__)

# Speech verbs for attribution detection, with the emotion each implies
SPEECH_VERBS = {
    "said": "Neutral", "replied": "Neutral", "answered": "Neutral",
    "called": "Neutral", "added": "Neutral", "continued": "Neutral",
    "remarked": "Neutral", "announced": "Neutral", "declared": "Neutral",
    "asked": "Curious", "wondered": "Curious", "inquired": "Curious",
    "whispered": "Whispering", "murmured": "Whispering",
    "muttered": "Whispering", "hissed": "Whispering",
    "shouted": "Shouting", "yelled": "Shouting", "screamed": "Shouting",
    "shrieked": "Shouting", "roared": "Shouting", "bellowed": "Shouting",
    "exclaimed": "Excited",
    "snapped": "Angry", "growled": "Angry", "demanded": "Angry", "retorted": "Angry",
    "sobbed": "Sad", "wept": "Sad", "moaned": "Sad", "groaned": "Tired", "sighed": "Sad",
    "cried": "Distressed",
    "laughed": "Happy", "chuckled": "Happy", "giggled": "Happy",
    "gasped": "Fearful", "stammered": "Fearful", "stuttered": "Fearful",
    "pleaded": "Fearful", "begged": "Fearful",
    "warned": "Tense", "urged": "Tense",
}

_VERB_PATTERN = "|".join(re.escape(v) for v in SPEECH_VERBS)
_NAME = r"(?:I|(?i:he|she)|(?i:the)\s+[a-z]+(?:\s+[a-z]+)?|[A-Z][\w'-]*(?:\s+[A-Z][\w'-]*)?)"

# "Hello," said John. / "Hello," said the old man.
_POST_VERB_FIRST_RE = re.compile(rf"^\s*(?P<verb>{_VERB_PATTERN})\s+(?P<name>{_NAME})\b")

# "Hello," John said. / "Stop!" I cried.
_POST_NAME_FIRST_RE = re.compile(rf"^\s*(?P<name>{_NAME})\s+(?P<verb>{_VERB_PATTERN})\b")

# John said, "Hello." / the old man cried out, "Hello."
_PRE_ATTR_RE = re.compile(
    rf"\b(?P<name>{_NAME})\s+(?P<verb>{_VERB_PATTERN})(?:\s+\w+){{0,2}}\s*[,:]?\s*$"
)

# Dialogue in straight or curly quotes
_QUOTE_RE = re.compile(r'"[^"\n]+"|“[^”\n]+”')

# Sentence with its trailing whitespace; the pieces concatenate to the input
_SENTENCE_RE = re.compile(r"[^.!?]+(?:[.!?]+[\"')\]”]*|$)\s*|[.!?]+\s*")

_PRONOUN_GENDER = {"he": "male", "him": "male", "his": "male",
                   "she": "female", "her": "female", "hers": "female"}

# Narration words that mark a sound effect, as (pattern, effect keyword)
SFX_CUES = [
    (r"thunder", "thunder"), (r"explo(?:de|ded|sion)", "explosion"), (r"boom", "boom"),
    (r"howl", "howl"), (r"creak", "creak"), (r"squeak", "squeak"),
    (r"footsteps?\b", "footsteps"), (r"shatter", "shatter"), (r"crash", "crash"),
    (r"sigh(?:s|ed|ing)?\b", "sigh"), (r"gasp", "gasp"), (r"rustl", "rustle"),
    (r"slam", "door"), (r"knock", "knock"),
]

STYLE_CUES = {
    "tense": ("danger", "fear", "blood", "scream", "chase", "gun", "knife", "run", "panic"),
    "sad": ("tears", "grief", "funeral", "alone", "sorrow", "mourn", "lost"),
    "happy": ("laugh", "smile", "joy", "celebrat", "danc", "sunshine", "cheer"),
    "mysterious": ("shadow", "secret", "strange", "mist", "fog", "unknown", "whisper"),
    "romantic": ("love", "kiss", "heart", "embrace", "tender"),
}
STYLE_MOODS = {
    "tense": "Tense", "sad": "Melancholy", "happy": "Cheerful",
    "mysterious": "Eerie", "romantic": "Warm", "neutral": "Calm",
}

AMBIENT_CUES = (
    "wind", "breeze", "rain", "bird", "forest", "cricket", "insect", "night",
    "water", "stream", "river", "wave", "traffic", "car", "city", "crowd",
    "siren", "alarm", "machine", "fan", "server", "announcement", "clock",
)
MAX_AMBIENT_SOUNDS = 5

ROOM_TONES = [
    ("nature", ("forest", "field", "river", "garden", "woods", "bird")),
    ("city", ("street", "city", "traffic", "car", "crowd")),
    ("industrial", ("factory", "machine", "warehouse", "server", "engine")),
]
BACKGROUND_NOISES = [
    ("rain", ("rain", "storm", "drizzle")),
    ("wind", ("wind", "gale", "breeze")),
    ("crowd", ("crowd", "chatter", "market")),
    ("machinery", ("machine", "engine", "factory")),
]
TIMES_OF_DAY = [
    ("Night", ("night", "midnight", "moon", "dark")),
    ("Morning", ("morning", "dawn", "sunrise")),
    ("Evening", ("evening", "dusk", "sunset")),
]

_LOCATION_RE = re.compile(r"\b(?:in|at|inside|into)\s+the\s+([a-z]+(?:\s+(?:room|house|hall|station|street|forest))?)\b")
FIRST_PERSON_MIN_COUNT = 3


def _words(text: str, cue: str) -> int:
    return len(re.findall(rf"\b{cue}\w*", text))


def _split_sentences(text: str) -> list[str]:
    """Split narration into sentences that concatenate back to text."""
    pieces = _SENTENCE_RE.findall(text)
    if "".join(pieces) != text:
        return [text]
    return pieces


def _detect_sfx(sentence: str) -> str | None:
    lowered = sentence.lower()
    for pattern, keyword in SFX_CUES:
        if re.search(rf"\b{pattern}", lowered):
            return keyword
    return None


def _gender_near(text: str) -> str:
    """Gender of the first personal pronoun in text, else neutral."""
    match = re.search(r"\b(he|him|his|she|her|hers)\b", text, re.IGNORECASE)
    return _PRONOUN_GENDER[match.group(1).lower()] if match else "neutral"


class _Attribution:
    def __init__(self, name: str, verb: str, context: str):
        self.name = name
        self.verb = verb.lower()
        self.context = context


def _attribute(before: str, after: str) -> _Attribution | None:
    """Find the speaker tag right after a quote, else right before it."""
    after = after.split("\n", 1)[0]
    for regex in (_POST_VERB_FIRST_RE, _POST_NAME_FIRST_RE):
        match = regex.match(after.lstrip(",. "))
        if match:
            return _Attribution(match.group("name"), match.group("verb"), after)
    before = before.rsplit("\n", 1)[-1]
    match = _PRE_ATTR_RE.search(before)
    if match:
        return _Attribution(match.group("name"), match.group("verb"), before)
    return None


class LocalAnalyzer:
    """Heuristic Text Analysis Service.

    Quoted spans become dialogue; everything else is narration, one segment
    per sentence. Segment original_text values concatenate to the input.
    """

    async def analyze(self, text: str) -> AnalysisResult:
        return analyze_text(text)


def _narration_is_first_person(narration: str) -> bool:
    return len(re.findall(r"\bI\b", narration)) >= FIRST_PERSON_MIN_COUNT


def analyze_text(text: str) -> AnalysisResult:
    if not text.strip():
        raise AnalysisError("Nothing to analyze: input is blank")

    quotes = list(_QUOTE_RE.finditer(text))
    narration = _QUOTE_RE.sub(" ", text)
    first_person = _narration_is_first_person(narration)

    segments: list[Segment] = []
    pending_ws = ""
    genders: dict[str, str] = {}
    last_by_gender: dict[str, str] = {}

    def add(seg: Segment) -> None:
        nonlocal pending_ws
        seg.original_text = pending_ws + seg.original_text
        pending_ws = ""
        segments.append(seg)

    def add_narration(chunk: str) -> None:
        nonlocal pending_ws
        for sentence in _split_sentences(chunk):
            if not sentence.strip():
                if segments:
                    segments[-1].original_text += sentence
                else:
                    pending_ws += sentence
                continue
            add(Segment(
                text=sentence.strip(),
                speaker=NARRATOR_NAME,
                is_narrator=True,
                emotion=NARRATOR_EMOTION,
                sfx=_detect_sfx(sentence),
                original_text=sentence,
            ))

    pos = 0
    for match in quotes:
        add_narration(text[pos:match.start()])
        spoken = match.group(0)[1:-1].strip()
        attribution = _attribute(text[max(0, match.start() - 80):match.start()],
                                 text[match.end():match.end() + 120])
        speaker, gender, emotion = _resolve_speaker(
            attribution, genders, last_by_gender)
        add(Segment(
            text=spoken,
            speaker=speaker,
            is_narrator=False,
            gender=gender,
            emotion=emotion,
            original_text=match.group(0),
        ))
        pos = match.end()
    add_narration(text[pos:])
    if pending_ws and segments:
        segments[-1].original_text += pending_ws

    # A speaker keeps the first gender that was resolved for them
    for seg in segments:
        if not seg.is_narrator:
            seg.gender = genders.get(seg.speaker, seg.gender)

    if not segments:
        raise AnalysisError("Analysis produced no segments")

    scene = _describe_scene(narration, first_person)
    logger.info("Analyzed %d chars into %d segments (%s, %s)",
                len(text), len(segments), scene.narrative_perspective, scene.score_style)
    return AnalysisResult(segments=segments, scene=scene)


def _resolve_speaker(attribution, genders, last_by_gender):
    if attribution is None:
        return "Unknown", "neutral", "Neutral"

    emotion = SPEECH_VERBS.get(attribution.verb, "Neutral")
    name = attribution.name
    lowered = name.lower()
    if lowered in ("he", "she"):
        gender = _PRONOUN_GENDER[lowered]
        return last_by_gender.get(gender, "Unknown"), gender, emotion
    if name == "I":
        return "I", genders.get("I", "neutral"), emotion

    if lowered.startswith("the "):
        name = name[4:]
    speaker = name.strip().title()
    gender = genders.get(speaker) or _gender_near(attribution.context)
    if gender != "neutral":
        genders.setdefault(speaker, gender)
        last_by_gender[gender] = speaker
    return speaker, gender, emotion


def _pick(text: str, table, default: str) -> str:
    for value, cues in table:
        if any(_words(text, cue) for cue in cues):
            return value
    return default


def _describe_scene(narration: str, first_person: bool) -> Scene:
    lowered = narration.lower()

    counts = {style: sum(_words(lowered, cue) for cue in cues)
              for style, cues in STYLE_CUES.items()}
    best = max(counts, key=counts.get)
    style = best if counts[best] >= 2 else "neutral"

    ambient = [cue for cue in AMBIENT_CUES if re.search(rf"\b{cue}s?\b", lowered)]

    location = "Unknown"
    match = _LOCATION_RE.search(lowered)
    if match:
        location = match.group(1).title()

    return Scene(
        location=location,
        time_of_day=_pick(lowered, TIMES_OF_DAY, "Day"),
        mood=STYLE_MOODS[style],
        room_tone=_pick(lowered, ROOM_TONES, "quiet_room"),
        bg_noise=_pick(lowered, BACKGROUND_NOISES, "none"),
        score_style=style,
        narrative_perspective="first_person" if first_person else "third_person",
        protagonist_name=None,
        ambient_sounds=ambient[:MAX_AMBIENT_SOUNDS],
    )


# --- external payloads ---

GENDERS = ("male", "female", "neutral")
SCORE_STYLES = ("happy", "sad", "tense", "mysterious", "romantic", "neutral")
ROOM_TONE_VALUES = ("quiet_room", "nature", "city", "industrial", "silence")
BG_NOISE_VALUES = ("rain", "wind", "crowd", "machinery", "none")
PERSPECTIVES = ("first_person", "third_person")


def _field(data: dict, snake: str, default=None):
    """Read a key in snake_case or camelCase."""
    if snake in data:
        return data[snake]
    head, *rest = snake.split("_")
    camel = head + "".join(part.title() for part in rest)
    return data.get(camel, default)


def _choice(value, allowed: tuple, default: str, label: str) -> str:
    if value is None:
        return default
    if not isinstance(value, str):
        raise AnalysisError(f"Scene field '{label}' must be a string, got {type(value).__name__}")
    value = value.strip().lower()
    if value not in allowed:
        logger.warning("Unknown %s '%s', using '%s'", label, value, default)
        return default
    return value


def _parse_segment(raw, index: int) -> Segment:
    if not isinstance(raw, dict):
        raise AnalysisError(f"Segment {index} is not an object")
    text = raw.get("text")
    speaker = raw.get("speaker")
    if not isinstance(text, str) or not isinstance(speaker, str):
        raise AnalysisError(f"Segment {index} needs string 'text' and 'speaker'")

    is_narrator = bool(_field(raw, "is_narrator", False)) or speaker.strip().lower() == "narrator"
    sfx = raw.get("sfx")
    if sfx is not None and not isinstance(sfx, str):
        raise AnalysisError(f"Segment {index} has a non-string 'sfx'")

    return Segment(
        text=text,
        speaker=NARRATOR_NAME if is_narrator else speaker.strip(),
        is_narrator=is_narrator,
        gender=_choice(raw.get("gender"), GENDERS, "neutral", "gender"),
        emotion=NARRATOR_EMOTION if is_narrator else str(raw.get("emotion") or "Neutral"),
        sfx=(sfx.strip() or None) if sfx else None,
        original_text=_field(raw, "original_text") or text,
    )


def parse_analysis(payload) -> AnalysisResult:
    """Validate an analysis payload (dict or JSON string) into an AnalysisResult.

    Accepts snake_case or camelCase keys. Narrator segments always get the
    matter-of-fact emotion. Raises AnalysisError on malformed or empty payloads.
    """
    if isinstance(payload, (str, bytes)):
        try:
            payload = json.loads(payload)
        except json.JSONDecodeError as e:
            raise AnalysisError(f"Analysis response is not valid JSON: {e}") from e
    if not isinstance(payload, dict):
        raise AnalysisError("Analysis response must be a JSON object")

    raw_segments = payload.get("segments")
    if not isinstance(raw_segments, list) or not raw_segments:
        raise AnalysisError("Analysis response has no segments")
    segments = [_parse_segment(raw, i) for i, raw in enumerate(raw_segments)]

    raw_scene = _field(payload, "scene") or _field(payload, "scene_context") or {}
    if not isinstance(raw_scene, dict):
        raise AnalysisError("Analysis scene must be an object")
    ambient = _field(raw_scene, "ambient_sounds") or []
    if not isinstance(ambient, list):
        raise AnalysisError("Scene ambient_sounds must be a list")

    scene = Scene(
        location=str(raw_scene.get("location") or "Unknown"),
        time_of_day=str(_field(raw_scene, "time_of_day") or "Day"),
        mood=str(raw_scene.get("mood") or "Calm"),
        room_tone=_choice(_field(raw_scene, "room_tone"), ROOM_TONE_VALUES, "quiet_room", "room_tone"),
        bg_noise=_choice(_field(raw_scene, "bg_noise"), BG_NOISE_VALUES, "none", "bg_noise"),
        score_style=_choice(_field(raw_scene, "score_style"), SCORE_STYLES, "neutral", "score_style"),
        narrative_perspective=_choice(
            _field(raw_scene, "narrative_perspective"), PERSPECTIVES, "third_person",
            "narrative_perspective"),
        protagonist_name=_field(raw_scene, "protagonist_name") or None,
        ambient_sounds=[str(s) for s in ambient],
    )
    return AnalysisResult(segments=segments, scene=scene)


def load_analysis(path: str) -> AnalysisResult:
    """Read an analysis payload from a JSON file."""
    try:
        with open(path) as f:
            payload = f.read()
    except OSError as e:
        raise AnalysisError(f"Cannot read analysis file {path}: {e}") from e
    return parse_analysis(payload)


class FileAnalyzer:
    """Text Analysis Service that replays a saved JSON payload."""

    def __init__(self, path: str):
        self.path = path

    async def analyze(self, text: str) -> AnalysisResult:
        return load_analysis(self.path)
