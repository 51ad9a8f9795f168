"""Recommendation generation from risk level, language and context."""
import logging
from typing import Iterable, List, Mapping, Optional, Tuple

from carewatch.shared.models import Language, RiskLevel
from .resources import (
    CONTEXT_ACTIONS,
    MANDATORY_CRITICAL_ACTIONS,
    RECOMMENDATION_TEMPLATES,
    RESUBMIT_RECOMMENDATION,
    RecommendationTemplates,
)

logger = logging.getLogger(__name__)


class RecommendationGenerator:
    """Builds the ordered, localized action list for an analysis.

    Templates may be customized per deployment, but a critical result
    always carries the mandatory crisis actions for its language: any
    that a custom template leaves out are put back at the front.
    """

    def __init__(
        self,
        templates: Optional[Mapping[Language, RecommendationTemplates]] = None,
        context_actions: Optional[Mapping[Language, Mapping[str, str]]] = None,
    ):
        self.templates = templates if templates is not None else RECOMMENDATION_TEMPLATES
        self.context_actions = (
            context_actions if context_actions is not None else CONTEXT_ACTIONS
        )

    def generate(
        self,
        risk_level: RiskLevel,
        language: Language,
        context_tags: Iterable[str] = (),
    ) -> Tuple[str, ...]:
        """Generate recommendations.

        Args:
            risk_level: Classified risk
            language: Detected language
            context_tags: Cultural-context tags found in the text

        Returns:
            Ordered tuple of recommendation strings
        """
        if not language.is_supported:
            return (RESUBMIT_RECOMMENDATION,)

        base = list(self.templates.get(language, {}).get(risk_level, ()))

        if risk_level == RiskLevel.CRITICAL:
            base = self._with_mandatory_actions(base, language)

        actions = self.context_actions.get(language, {})
        for tag in context_tags:
            action = actions.get(tag)
            if action and action not in base:
                base.append(action)

        return tuple(base)

    @staticmethod
    def _with_mandatory_actions(base: List[str], language: Language) -> List[str]:
        required = MANDATORY_CRITICAL_ACTIONS.get(language, ())
        missing = [action for action in required if action not in base]
        if missing:
            logger.warning(
                "CRITICAL_TEMPLATE_MISSING_ACTIONS",
                extra={"language": language.value, "missing_count": len(missing)}
            )
        return missing + base
