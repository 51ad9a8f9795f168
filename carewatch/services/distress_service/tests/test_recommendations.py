"""Tests for RecommendationGenerator and crisis resources."""
from types import MappingProxyType

import pytest

from carewatch.shared.models import Language, RiskLevel
from carewatch.services.distress_service.cultural_context import CulturalContextExtractor
from carewatch.services.distress_service.recommendations import RecommendationGenerator
from carewatch.services.distress_service.resources import (
    MANDATORY_CRITICAL_ACTIONS,
    RESUBMIT_RECOMMENDATION,
    get_crisis_resources,
)


@pytest.fixture
def generator():
    return RecommendationGenerator()


class TestGenerate:
    """Tests for generate()."""

    def test_unknown_language_asks_for_resubmission(self, generator):
        recs = generator.generate(RiskLevel.CRITICAL, Language.UNKNOWN)

        assert recs == (RESUBMIT_RECOMMENDATION,)

    def test_critical_english_includes_hotline(self, generator):
        recs = generator.generate(RiskLevel.CRITICAL, Language.ENGLISH)

        assert recs[:3] == MANDATORY_CRITICAL_ACTIONS[Language.ENGLISH]
        assert any("988" in r for r in recs)

    def test_critical_lithuanian_includes_hotline(self, generator):
        recs = generator.generate(RiskLevel.CRITICAL, Language.LITHUANIAN)

        assert recs[:3] == MANDATORY_CRITICAL_ACTIONS[Language.LITHUANIAN]
        assert any("8 800 28 888" in r for r in recs)

    def test_low_has_no_base_actions(self, generator):
        assert generator.generate(RiskLevel.LOW, Language.ENGLISH) == ()

    def test_high_english(self, generator):
        recs = generator.generate(RiskLevel.HIGH, Language.ENGLISH)

        assert recs[0] == "Consider speaking with a school counselor or psychologist"
        assert len(recs) == 3

    def test_medium_lithuanian(self, generator):
        recs = generator.generate(RiskLevel.MEDIUM, Language.LITHUANIAN)

        assert "Ieškokite pagalbos mokymosi klausimais" in recs

    def test_context_action_appended(self, generator):
        recs = generator.generate(RiskLevel.MEDIUM, Language.ENGLISH, ("family_pressure",))

        assert len(recs) == 4
        assert recs[-1] == "Discuss family expectations and your personal capabilities"

    def test_context_actions_not_duplicated(self, generator):
        recs = generator.generate(
            RiskLevel.LOW, Language.ENGLISH, ("academic_culture", "academic_culture")
        )

        assert recs == ("Remember that setbacks are part of the learning process",)

    def test_unknown_context_tag_ignored(self, generator):
        assert generator.generate(RiskLevel.LOW, Language.ENGLISH, ("weather",)) == ()

    def test_custom_template_keeps_mandatory_actions(self):
        templates = MappingProxyType({
            Language.ENGLISH: MappingProxyType({
                RiskLevel.CRITICAL: ("Stay with the student",),
            }),
        })
        generator = RecommendationGenerator(templates=templates)

        recs = generator.generate(RiskLevel.CRITICAL, Language.ENGLISH)

        assert recs[:3] == MANDATORY_CRITICAL_ACTIONS[Language.ENGLISH]
        assert recs[3] == "Stay with the student"


class TestCulturalContext:
    """Tests for CulturalContextExtractor."""

    @pytest.fixture
    def extractor(self):
        return CulturalContextExtractor()

    def test_family_pressure(self, extractor):
        tags = extractor.extract(
            "My parents disappointed again, family expectations are huge", Language.ENGLISH
        )

        assert tags == ("family_pressure",)

    def test_multiple_tags_in_table_order(self, extractor):
        tags = extractor.extract(
            "I need to be perfect, what will people think, shame family", Language.ENGLISH
        )

        assert tags == ("family_pressure", "academic_culture", "social_expectation")

    def test_lithuanian(self, extractor):
        assert extractor.extract("Tėvai nusivylė manimi", Language.LITHUANIAN) == (
            "family_pressure",
        )

    def test_unknown_language_has_no_tags(self, extractor):
        assert extractor.extract("family expectations", Language.UNKNOWN) == ()


class TestCrisisResources:
    """Tests for get_crisis_resources()."""

    def test_english(self):
        resources = get_crisis_resources(Language.ENGLISH)

        assert {h.number for h in resources.hotlines} == {"741741", "988"}

    def test_lithuanian(self):
        resources = get_crisis_resources(Language.LITHUANIAN)

        assert resources.hotlines[0].name == "Jaunimo linija"
        assert resources.hotlines[0].number == "8 800 28 888"
        assert any(w.url == "https://vpsc.lt" for w in resources.websites)

    def test_unknown_falls_back_to_english(self):
        assert get_crisis_resources(Language.UNKNOWN) == get_crisis_resources(Language.ENGLISH)

    def test_to_dict(self):
        data = get_crisis_resources(Language.ENGLISH).to_dict()

        assert data["language"] == "en"
        assert data["hotlines"][1]["number"] == "988"
