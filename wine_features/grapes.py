"""
Wine Feature Engine - Grape Metadata.

Static per-variety data the feature engine reads: colour,
fragility, oxidation proneness, base characteristics and the
aging profile that drives bottle aging.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional

from .types import GrapeColor, WineCharacteristics


@dataclass(frozen=True)
class AgingProfile:
    """Bottle aging curve of a variety, in years."""

    early_peak: float   # end of fast development
    late_peak: float    # end of moderate development, plateau after
    age_worthiness: str = "medium"


@dataclass(frozen=True)
class GrapeProfile:
    name: str
    color: GrapeColor
    fragile: float              # 0 robust - 1 fragile
    prone_to_oxidation: float   # 0 stable - 1 very prone
    natural_yield: float
    base_characteristics: WineCharacteristics
    aging_profile: AgingProfile
    description: str = ""


GRAPES: Dict[str, GrapeProfile] = {
    "Barbera": GrapeProfile(
        name="Barbera",
        color=GrapeColor.RED,
        fragile=0.4,
        prone_to_oxidation=0.4,
        natural_yield=0.7,
        base_characteristics=WineCharacteristics(
            acidity=0.7, aroma=0.5, body=0.6, spice=0.5, sweetness=0.5, tannins=0.6
        ),
        aging_profile=AgingProfile(early_peak=3, late_peak=7, age_worthiness="medium"),
        description="High acidity and moderate tannins, medium-bodied wines.",
    ),
    "Chardonnay": GrapeProfile(
        name="Chardonnay",
        color=GrapeColor.WHITE,
        fragile=0.6,
        prone_to_oxidation=0.7,
        natural_yield=0.8,
        base_characteristics=WineCharacteristics(
            acidity=0.4, aroma=0.65, body=0.75, spice=0.5, sweetness=0.5, tannins=0.35
        ),
        aging_profile=AgingProfile(early_peak=2, late_peak=5, age_worthiness="medium"),
        description="Aromatic, medium-bodied wines with moderate acidity.",
    ),
    "Pinot Noir": GrapeProfile(
        name="Pinot Noir",
        color=GrapeColor.RED,
        fragile=0.7,
        prone_to_oxidation=0.8,
        natural_yield=0.6,
        base_characteristics=WineCharacteristics(
            acidity=0.65, aroma=0.6, body=0.35, spice=0.5, sweetness=0.5, tannins=0.4
        ),
        aging_profile=AgingProfile(early_peak=3, late_peak=7, age_worthiness="high"),
        description="Light-bodied, aromatic wines with high acidity and soft tannins.",
    ),
    "Primitivo": GrapeProfile(
        name="Primitivo",
        color=GrapeColor.RED,
        fragile=0.3,
        prone_to_oxidation=0.3,
        natural_yield=0.9,
        base_characteristics=WineCharacteristics(
            acidity=0.5, aroma=0.7, body=0.7, spice=0.5, sweetness=0.7, tannins=0.7
        ),
        aging_profile=AgingProfile(early_peak=4, late_peak=10, age_worthiness="high"),
        description="Full-bodied, aromatic wines with natural sweetness and high tannins.",
    ),
    "Sauvignon Blanc": GrapeProfile(
        name="Sauvignon Blanc",
        color=GrapeColor.WHITE,
        fragile=0.5,
        prone_to_oxidation=0.9,
        natural_yield=0.75,
        base_characteristics=WineCharacteristics(
            acidity=0.8, aroma=0.75, body=0.3, spice=0.6, sweetness=0.4, tannins=0.3
        ),
        aging_profile=AgingProfile(early_peak=1, late_peak=3, age_worthiness="low"),
        description="Crisp, aromatic, light-bodied wines with high acidity.",
    ),
    "Tempranillo": GrapeProfile(
        name="Tempranillo",
        color=GrapeColor.RED,
        fragile=0.45,
        prone_to_oxidation=0.5,
        natural_yield=0.65,
        base_characteristics=WineCharacteristics(
            acidity=0.55, aroma=0.6, body=0.65, spice=0.55, sweetness=0.45, tannins=0.65
        ),
        aging_profile=AgingProfile(early_peak=3, late_peak=8, age_worthiness="high"),
        description="Structured wines with balanced fruit and tannins.",
    ),
}


def get_grape(name: Optional[str]) -> Optional[GrapeProfile]:
    """Look up a grape profile by variety name."""
    if not name:
        return None
    return GRAPES.get(name)


def get_aging_profile(name: Optional[str]) -> Optional[AgingProfile]:
    grape = get_grape(name)
    return grape.aging_profile if grape else None


def all_grape_names() -> List[str]:
    return list(GRAPES.keys())
