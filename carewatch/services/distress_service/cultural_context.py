"""Cultural-context tagging for feedback text.

Tags describe the pressure a student writes about (family, academic
culture, social expectations) rather than how severe it is, so this runs
independently of the risk scorer and only shapes the recommendations.
"""
import re
from typing import Dict, List, Optional, Tuple

from carewatch.shared.models import Language
from .lexicon import CONTEXT_TAGS, CULTURAL_CONTEXTS
from .scorer import compile_term, normalize_text


class CulturalContextExtractor:
    """Matches per-language context phrases and returns their tags."""

    def __init__(self, contexts=None):
        tables = contexts if contexts is not None else CULTURAL_CONTEXTS
        self._patterns: Dict[Language, List[Tuple[str, List[re.Pattern]]]] = {
            language: [
                (tag, [compile_term(phrase) for phrase in table[tag]])
                for tag in CONTEXT_TAGS
                if tag in table
            ]
            for language, table in tables.items()
        }

    def extract(self, text: str, language: Optional[Language]) -> Tuple[str, ...]:
        """Return matched context tags, deduplicated, in table order.

        Unsupported languages and empty text yield no tags.
        """
        if not text or language not in self._patterns:
            return ()

        normalized = normalize_text(text)
        return tuple(
            tag for tag, patterns in self._patterns[language]
            if any(p.search(normalized) for p in patterns)
        )
