"""Heuristic language detection for feedback text.

Counts language markers (common function words, plus distinctive
diacritics for Lithuanian). The strictly higher count wins; ties fall
back to character classes before giving up with UNKNOWN.
"""
import logging
import re
from typing import Dict, FrozenSet, Tuple

from carewatch.shared.models import Language

logger = logging.getLogger(__name__)


ENGLISH_MARKER_WORDS: FrozenSet[str] = frozenset({
    "the", "and", "but", "that", "this", "with", "for", "are", "was",
    "i", "i'm", "to", "it", "my", "me", "is", "of", "in", "not", "have",
    "you", "we", "they", "am", "be",
})

LITHUANIAN_MARKER_WORDS: FrozenSet[str] = frozenset({
    "kad", "ir", "bet", "tai", "yra", "aš", "man", "mane", "mano", "nes",
    "ne", "su", "į", "iš", "jau", "labai", "esu", "buvo", "kaip", "čia",
})

LITHUANIAN_DIACRITICS: FrozenSet[str] = frozenset("ąčęėįšųūž")

_TOKEN_PATTERN = re.compile(r"[^\W\d_]+(?:'[^\W\d_]+)?", re.UNICODE)


class LanguageDetector:
    """Deterministic marker-count language detector.

    Runs in O(len(text) x marker-set size) and holds no mutable state,
    so one instance can be shared across threads.
    """

    def detect(self, text: str) -> Language:
        """Return the detected language for text, or Language.UNKNOWN."""
        language, _ = self.detect_with_scores(text)
        return language

    def detect_with_scores(self, text: str) -> Tuple[Language, Dict[str, int]]:
        """Detect language and return the per-language marker scores.

        Args:
            text: Raw feedback text (may be empty)

        Returns:
            Tuple of (language, {"en": score, "lt": score})
        """
        scores = {Language.ENGLISH.value: 0, Language.LITHUANIAN.value: 0}
        if not text or not text.strip():
            return Language.UNKNOWN, scores

        lowered = text.lower().replace("’", "'")
        tokens = set(_TOKEN_PATTERN.findall(lowered))

        en_score = len(tokens & ENGLISH_MARKER_WORDS)
        lt_score = (
            len(tokens & LITHUANIAN_MARKER_WORDS)
            + len(LITHUANIAN_DIACRITICS.intersection(lowered))
        )
        scores = {Language.ENGLISH.value: en_score, Language.LITHUANIAN.value: lt_score}

        if lt_score > en_score:
            return Language.LITHUANIAN, scores
        if en_score > lt_score:
            return Language.ENGLISH, scores

        # Tie (including 0-0): distinctive characters decide first
        if LITHUANIAN_DIACRITICS.intersection(lowered):
            return Language.LITHUANIAN, scores
        if en_score > 0:
            return Language.ENGLISH, scores

        logger.debug(
            "LANGUAGE_UNDETERMINED",
            extra={"token_count": len(tokens), "text_length": len(text)}
        )
        return Language.UNKNOWN, scores
