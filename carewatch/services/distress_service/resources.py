"""Localized recommendation templates and crisis resources.

Critical recommendations always open with the three mandatory actions
for the language (immediate help, crisis hotline, nearest crisis
service). Hotline numbers here must match what school staff publish.
"""
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping, Tuple

from carewatch.shared.models import Language, RiskLevel
from .lexicon import ACADEMIC_CULTURE, FAMILY_PRESSURE, SOCIAL_EXPECTATION

RecommendationTemplates = Mapping[RiskLevel, Tuple[str, ...]]


MANDATORY_CRITICAL_ACTIONS: Mapping[Language, Tuple[str, ...]] = MappingProxyType({
    Language.ENGLISH: (
        "Seek immediate help from a trusted adult or mental health professional",
        "Call crisis helpline: 988 (US) or local emergency services",
        "Contact your nearest mental health crisis center",
    ),
    Language.LITHUANIAN: (
        "Nedelsiant kreipkitės į artimą asmenį arba psichikos sveikatos specialistą",
        "Skambinkite pagalbos telefonu: 8 800 28 888 (nemokamas)",
        "Kreipkitės į artimiausią psichikos sveikatos centrą",
    ),
})

RECOMMENDATION_TEMPLATES: Mapping[Language, RecommendationTemplates] = MappingProxyType({
    Language.ENGLISH: MappingProxyType({
        RiskLevel.CRITICAL: MANDATORY_CRITICAL_ACTIONS[Language.ENGLISH],
        RiskLevel.HIGH: (
            "Consider speaking with a school counselor or psychologist",
            "Talk to a trusted adult about how you're feeling",
            "Consider discussing with parents or guardians",
        ),
        RiskLevel.MEDIUM: (
            "Try talking to a friend or family member about your difficulties",
            "Seek academic support if struggling with studies",
            "Engage in activities you enjoy to boost mood",
        ),
        RiskLevel.LOW: (),
    }),
    Language.LITHUANIAN: MappingProxyType({
        RiskLevel.CRITICAL: MANDATORY_CRITICAL_ACTIONS[Language.LITHUANIAN],
        RiskLevel.HIGH: (
            "Rekomenduojama pasitarti su mokyklos psichologu",
            "Aptarkite savo jausmus su patikimu suaugusiuoju",
            "Apsvarstykite pokalbį su tėvais ar globėjais",
        ),
        RiskLevel.MEDIUM: (
            "Pabandykite aptarti sunkumus su draugu ar šeimos nariu",
            "Ieškokite pagalbos mokymosi klausimais",
            "Skirkite laiko veiklai, kuri jums patinka",
        ),
        RiskLevel.LOW: (),
    }),
})

CONTEXT_ACTIONS: Mapping[Language, Mapping[str, str]] = MappingProxyType({
    Language.ENGLISH: MappingProxyType({
        FAMILY_PRESSURE: "Discuss family expectations and your personal capabilities",
        ACADEMIC_CULTURE: "Remember that setbacks are part of the learning process",
        SOCIAL_EXPECTATION: "Talk about which expectations feel most pressing and which can be let go",
    }),
    Language.LITHUANIAN: MappingProxyType({
        FAMILY_PRESSURE: "Aptarkite šeimos lūkesčius ir savo galimybes",
        ACADEMIC_CULTURE: "Prisiminkite, kad nesėkmės yra mokymosi proceso dalis",
        SOCIAL_EXPECTATION: "Aptarkite, kurie lūkesčiai jums atrodo svarbiausi ir kurių galima atsisakyti",
    }),
})

RESUBMIT_RECOMMENDATION = "Please provide feedback in English or Lithuanian for better analysis"
UNKNOWN_LANGUAGE_INDICATOR = "Text language could not be determined"


@dataclass(frozen=True)
class Hotline:
    name: str
    number: str
    description: str

    def to_dict(self) -> Dict[str, str]:
        return {"name": self.name, "number": self.number, "description": self.description}


@dataclass(frozen=True)
class Website:
    name: str
    url: str

    def to_dict(self) -> Dict[str, str]:
        return {"name": self.name, "url": self.url}


@dataclass(frozen=True)
class CrisisResources:
    """Hotlines and websites to show alongside a critical result."""
    language: Language
    hotlines: Tuple[Hotline, ...] = ()
    websites: Tuple[Website, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "language": self.language.value,
            "hotlines": [h.to_dict() for h in self.hotlines],
            "websites": [w.to_dict() for w in self.websites],
        }


CRISIS_RESOURCES: Mapping[Language, CrisisResources] = MappingProxyType({
    Language.ENGLISH: CrisisResources(
        language=Language.ENGLISH,
        hotlines=(
            Hotline("Crisis Text Line", "741741", "Text HOME to 741741"),
            Hotline("National Suicide Prevention Lifeline", "988", "24/7 crisis support"),
        ),
        websites=(
            Website("Crisis Text Line", "https://www.crisistextline.org"),
            Website("National Alliance on Mental Illness", "https://www.nami.org"),
        ),
    ),
    Language.LITHUANIAN: CrisisResources(
        language=Language.LITHUANIAN,
        hotlines=(
            Hotline("Jaunimo linija", "8 800 28 888", "Nemokama pagalba jaunimui"),
            Hotline("Vaikų linija", "116 111", "Pagalba vaikams ir paaugliams"),
        ),
        websites=(
            Website("Jaunimo linija", "https://jaunimolinija.lt"),
            Website("Vilniaus psichikos sveikatos centras", "https://vpsc.lt"),
        ),
    ),
})


def get_crisis_resources(language: Language) -> CrisisResources:
    """Crisis resources for a language; English when it is unsupported."""
    return CRISIS_RESOURCES.get(language, CRISIS_RESOURCES[Language.ENGLISH])
