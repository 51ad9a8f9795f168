"""Per-language keyword lexicon and cultural-context phrase tables.

Static configuration data, loaded once and never mutated. Category order
is significant: indicators are reported in this order.

Bump LEXICON_VERSION in config.py whenever a phrase list changes.
"""
from types import MappingProxyType
from typing import FrozenSet, Mapping, Tuple

from carewatch.shared.models import Language

# Category names, in reporting order
DISTRESS = "distress"
EMERGENCY = "emergency"
DEPRESSION = "depression"
ANXIETY = "anxiety"
ISOLATION = "isolation"
ACADEMIC = "academic"
POSITIVE = "positive"

CATEGORIES: Tuple[str, ...] = (
    DISTRESS,
    EMERGENCY,
    DEPRESSION,
    ANXIETY,
    ISOLATION,
    ACADEMIC,
    POSITIVE,
)

# Cultural-context tags
FAMILY_PRESSURE = "family_pressure"
ACADEMIC_CULTURE = "academic_culture"
SOCIAL_EXPECTATION = "social_expectation"

CONTEXT_TAGS: Tuple[str, ...] = (
    FAMILY_PRESSURE,
    ACADEMIC_CULTURE,
    SOCIAL_EXPECTATION,
)

Lexicon = Mapping[str, Tuple[str, ...]]


_ENGLISH_LEXICON: Lexicon = MappingProxyType({
    DISTRESS: (
        "hopeless", "helpless", "worthless", "useless", "terrible", "awful",
        "miserable", "depressed", "sad", "upset", "frustrated", "angry",
        "hate myself", "can't do this", "give up", "want to quit",
    ),
    EMERGENCY: (
        "want to die", "kill myself", "end it all", "suicide", "hurt myself",
        "self-harm", "cutting", "no point living", "better off dead",
    ),
    DEPRESSION: (
        "empty", "numb", "nothing matters", "pointless", "tired all the time",
        "can't sleep", "no energy", "lost interest", "don't care anymore",
    ),
    ANXIETY: (
        "panic", "worried", "scared", "afraid", "nervous", "anxious",
        "can't breathe", "heart racing", "overwhelming", "stressed out",
    ),
    ISOLATION: (
        "alone", "lonely", "no friends", "nobody cares", "isolated",
        "left out", "don't belong", "no one understands",
    ),
    ACADEMIC: (
        "failing", "can't understand", "too hard", "stupid", "behind everyone",
        "not smart enough", "going to fail", "disappointed parents",
    ),
    POSITIVE: (
        "good", "great", "happy", "excited", "love", "enjoy", "fun",
        "better", "improving", "confident", "proud", "successful",
    ),
})

_LITHUANIAN_LEXICON: Lexicon = MappingProxyType({
    DISTRESS: (
        "beviltiškas", "bejėgis", "bevertas", "nenaudingas", "baisus", "siaubingas",
        "nelaimingas", "prislėgtas", "liūdnas", "supykęs", "pykstu", "nekenčiu savęs",
        "negaliu to padaryti", "pasiduodu", "noriu mesti",
    ),
    EMERGENCY: (
        "noriu mirti", "nusižudyti", "baigti viską", "savižudybė", "susižaloti",
        "save žalojimas", "pjaustymas", "nėra prasmės gyventi", "geriau būčiau miręs",
    ),
    DEPRESSION: (
        "tuščias", "nejuntu nieko", "nieko nerūpi", "beprasmis", "visada pavargęs",
        "negaliu miegoti", "nėra energijos", "praradau susidomėjimą", "daugiau nerūpi",
    ),
    ANXIETY: (
        "panika", "nerimas", "bijau", "baisu", "nervuojuosi", "nervingas",
        "negaliu kvėpuoti", "širdis plaka", "perdaug", "įtemptas",
    ),
    ISOLATION: (
        "vienas", "vienišas", "nėra draugų", "niekas nesirūpina", "izoliuotas",
        "paliktas nuošalyje", "nepriklausau", "niekas nesupranta",
    ),
    ACADEMIC: (
        "nepavyksta", "nesuprantu", "per sunku", "kvailas", "atsilieku nuo visų",
        "nepakankamai protingas", "nepavyks", "nuvyliau tėvus",
    ),
    POSITIVE: (
        "gerai", "puiku", "laimingas", "džiaugiuosi", "mėgstu", "smagu",
        "geriau", "gerėju", "pasitikiu savimi", "didžiuojuosi", "sėkmingas",
    ),
})

LEXICONS: Mapping[Language, Lexicon] = MappingProxyType({
    Language.ENGLISH: _ENGLISH_LEXICON,
    Language.LITHUANIAN: _LITHUANIAN_LEXICON,
})

# Short terms that only match as whole words ("numb" is not "number",
# "fun" is not "funeral")
WHOLE_WORD_TERMS: Mapping[Language, FrozenSet[str]] = MappingProxyType({
    Language.ENGLISH: frozenset({"numb", "sad", "fun", "good"}),
    Language.LITHUANIAN: frozenset(),
})


CULTURAL_CONTEXTS: Mapping[Language, Mapping[str, Tuple[str, ...]]] = MappingProxyType({
    Language.ENGLISH: MappingProxyType({
        FAMILY_PRESSURE: ("parents disappointed", "family expectations", "shame family"),
        ACADEMIC_CULTURE: ("need to be perfect", "everyone else better", "failure"),
        SOCIAL_EXPECTATION: ("what will people think", "should be", "have to"),
    }),
    Language.LITHUANIAN: MappingProxyType({
        FAMILY_PRESSURE: ("tėvai nusivylė", "šeimos lūkesčiai", "gėda šeimai"),
        ACADEMIC_CULTURE: ("reikia būti geriausiam", "visi geriau moka", "nesėkmė"),
        SOCIAL_EXPECTATION: ("kas pagalvos", "turėčiau", "privalau"),
    }),
})


def lexicon_for(language: Language) -> Lexicon:
    """Return the keyword lexicon for a supported language.

    Raises:
        ValueError: If the language has no lexicon
    """
    try:
        return LEXICONS[language]
    except KeyError:
        raise ValueError(f"No lexicon for language: {language.value}") from None
