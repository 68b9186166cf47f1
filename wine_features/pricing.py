"""
Wine Feature Engine - Quality and Price Derivation.

============================================================
PURPOSE
============================================================
Derives wine score and estimated price from a batch's
feature-adjusted quality and base balance.

    wine_score = (effective_quality + balance) / 2
    price      = wine_score * base_rate
                 * quality_multiplier(wine_score)
                 * company prestige factor
                 * vineyard prestige factor

============================================================
REPRODUCIBILITY
============================================================
calculate_estimated_price is a pure function of the batch's
quality, characteristics, features and the prestige inputs.
Calling it on a copy with no features gives the "without
faults" price for comparison displays.

============================================================
"""

import logging
from typing import Callable, Dict, Iterable, Optional, Tuple

from .config import PricingConfig, WineFeatureConfig
from .effects import calculate_effective_quality
from .types import (
    Characteristic,
    FeatureDefinition,
    PriceImpact,
    Vineyard,
    WineBatch,
    WineCharacteristics,
    squash_normalize_tail,
)


logger = logging.getLogger(__name__)


BASE_BALANCED_RANGES: Dict[Characteristic, Tuple[float, float]] = {
    Characteristic.ACIDITY: (0.4, 0.6),
    Characteristic.AROMA: (0.3, 0.7),
    Characteristic.BODY: (0.4, 0.8),
    Characteristic.SPICE: (0.35, 0.65),
    Characteristic.SWEETNESS: (0.4, 0.6),
    Characteristic.TANNINS: (0.35, 0.65),
}


# ============================================================
# BALANCE
# ============================================================


def calculate_wine_balance(characteristics: WineCharacteristics) -> float:
    """
    Balance score in [0, 1] from distance to the balanced ranges.

    Per characteristic: distance to the range midpoint, plus twice the
    distance outside the range. Score = max(0, 1 - 2 * mean distance).
    """
    total = 0.0
    for characteristic, (low, high) in BASE_BALANCED_RANGES.items():
        value = characteristics.get(characteristic)
        midpoint = (low + high) / 2
        inside = abs(value - midpoint)
        if value < low:
            outside = low - value
        elif value > high:
            outside = value - high
        else:
            outside = 0.0
        total += inside + 2 * outside

    average = total / len(BASE_BALANCED_RANGES)
    return max(0.0, 1.0 - average * 2)


# ============================================================
# MULTIPLIERS
# ============================================================


def calculate_extreme_quality_multiplier(value: float) -> float:
    """
    Piecewise price multiplier rewarding exceptional wines.

    < 0.50  ->  1.0 - 1.2
    < 0.70  ->  1.1 - 1.2
    < 0.90  ->  1.25 - 3
    < 0.95  ->  3 - 10
    < 0.98  ->  10 - 50
    >= 0.98 ->  50 * 10000 ** ((v - 0.98) * 5)
    """
    v = min(0.99999, max(0.0, value or 0.0))

    if v < 0.5:
        return 1.0 + v * 0.4
    if v < 0.7:
        return 1.1 + (v - 0.5) * 0.5
    if v < 0.9:
        return 1.25 + (v - 0.7) * 8.75
    if v < 0.95:
        return 3.0 + (v - 0.9) * 140
    if v < 0.98:
        return 10.0 + (v - 0.95) * 1333.33
    return 50.0 * 10000 ** ((v - 0.98) * 5)


def normalize_prestige(prestige: Optional[float], reference: float = 1000.0) -> float:
    """Prestige scaled against `reference` into [0, 1) with a soft tail."""
    if not prestige or prestige <= 0 or reference <= 0:
        return 0.0
    return squash_normalize_tail(prestige / reference)


# ============================================================
# SCORE AND PRICE
# ============================================================


def calculate_wine_score(
    batch: WineBatch,
    config: Optional[WineFeatureConfig] = None,
    configs: Optional[Iterable[FeatureDefinition]] = None,
) -> float:
    """
    Mean of effective quality and balance.

    Balance is taken from the base characteristics; features move the
    score through effective quality only.
    """
    quality = calculate_effective_quality(batch, config, configs)
    balance = calculate_wine_balance(batch.characteristics)
    return (quality + balance) / 2


def calculate_estimated_price(
    batch: WineBatch,
    vineyard: Optional[Vineyard] = None,
    prestige: Optional[float] = None,
    vineyard_prestige: Optional[float] = None,
    config: Optional[WineFeatureConfig] = None,
    configs: Optional[Iterable[FeatureDefinition]] = None,
) -> float:
    """
    Estimated price per bottle.

    Args:
        batch: Batch to price (features included)
        vineyard: Source vineyard, supplies vineyard prestige when not given
        prestige: Company prestige
        vineyard_prestige: Vineyard prestige override
        config: Engine configuration
        configs: Feature definitions, defaults to the registry

    Returns:
        Price rounded to cents and capped at the configured maximum
    """
    config = config or WineFeatureConfig()
    pricing: PricingConfig = config.pricing

    if vineyard_prestige is None and vineyard is not None:
        vineyard_prestige = vineyard.vineyard_prestige

    wine_score = calculate_wine_score(batch, config, configs)

    price = wine_score * pricing.base_rate_per_bottle
    price *= calculate_extreme_quality_multiplier(wine_score)
    price *= 1.0 + pricing.company_prestige_weight * normalize_prestige(
        prestige, pricing.prestige_reference
    )
    price *= 1.0 + pricing.vineyard_prestige_weight * normalize_prestige(
        vineyard_prestige, pricing.prestige_reference
    )

    return round(min(pricing.max_price, max(0.0, price)), 2)


def calculate_price_impact(
    batch: WineBatch,
    vineyard_lookup: Callable[[str], Optional[Vineyard]],
    prestige: Optional[float] = None,
    config: Optional[WineFeatureConfig] = None,
    configs: Optional[Iterable[FeatureDefinition]] = None,
) -> Optional[PriceImpact]:
    """
    Price with and without the batch's current features.

    A failing or empty vineyard lookup is logged and reported as
    None (price impact unavailable).
    """
    try:
        vineyard = vineyard_lookup(batch.vineyard_id)
    except Exception as e:
        logger.warning(f"Vineyard lookup failed for batch {batch.id}: {e}")
        return None

    if vineyard is None:
        logger.warning(f"Vineyard {batch.vineyard_id} not found for batch {batch.id}")
        return None

    with_features = calculate_estimated_price(batch, vineyard, prestige, None, config, configs)
    without_features = calculate_estimated_price(
        batch.copy_with(features=[]), vineyard, prestige, None, config, configs
    )
    return PriceImpact(with_features=with_features, without_features=without_features)
