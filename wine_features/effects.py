"""
Wine Feature Engine - Effect Composition.

============================================================
PURPOSE
============================================================
Turns the feature instances of a batch into quality and
characteristic effects, and builds the display view of a
batch's active, evolving and at-risk features.

============================================================
QUALITY IMPACT
============================================================
linear:  amount * severity          (or amount(severity))
power:   -base_penalty * (1 + severity ** exponent)
bonus:   amount                     (or amount(severity))

Power impacts are fractions of quality; when applied to a
batch they are scaled by the born quality. Linear and bonus
impacts are quality points.

============================================================
AGGREGATION
============================================================
All sums are signed and unclamped. Only the final applied
quality and characteristic values are clamped to [0, 1].

============================================================
"""

import logging
import math
from typing import Dict, Iterable, List, Optional

from .config import WineFeatureConfig
from .registry import get_all_feature_configs
from .severity import (
    BOTTLE_AGING_ID,
    get_feature_display_severity,
    get_weekly_growth_rate,
)
from .types import (
    ActiveFeatureEffect,
    BonusEffect,
    Computed,
    CustomerType,
    EvolvingFeature,
    FeatureDefinition,
    FeatureDisplayData,
    LinearEffect,
    PowerEffect,
    QualityEffect,
    RiskFeature,
    RiskStrategy,
    Value,
    WineBatch,
    WineCharacteristics,
    clamp01,
    resolve,
)


logger = logging.getLogger(__name__)


# ============================================================
# EVALUATION
# ============================================================


def evaluate_quality_impact(effect: Optional[QualityEffect], severity: float) -> float:
    """
    Quality impact of one feature at a given severity.

    Args:
        effect: LinearEffect | PowerEffect | BonusEffect, or None
        severity: Current severity in [0, 1]

    Returns:
        Signed impact (negative for faults)
    """
    if effect is None:
        return 0.0

    if isinstance(effect, LinearEffect):
        if isinstance(effect.amount, Computed):
            return resolve(effect.amount, severity)
        return resolve(effect.amount, severity) * severity

    if isinstance(effect, PowerEffect):
        return -effect.base_penalty * (1.0 + severity ** effect.exponent)

    if isinstance(effect, BonusEffect):
        return resolve(effect.amount, severity)

    logger.warning(f"Unknown quality effect {type(effect).__name__}, treating as no impact")
    return 0.0


def evaluate_characteristic_modifier(modifier: Value, severity: float) -> float:
    """Constant modifiers scale with severity; computed ones receive it."""
    if isinstance(modifier, Computed):
        return resolve(modifier, severity)
    return resolve(modifier, severity) * severity


def quality_points(effect: Optional[QualityEffect], impact: float, born_quality: float) -> float:
    """Convert an impact into points of grape quality."""
    if isinstance(effect, PowerEffect):
        return impact * born_quality
    return impact


def _characteristic_effects(definition: FeatureDefinition, severity: float) -> Dict[str, float]:
    effects: Dict[str, float] = {}
    for entry in definition.effects.characteristics:
        key = entry.characteristic.value
        effects[key] = effects.get(key, 0.0) + evaluate_characteristic_modifier(entry.modifier, severity)
    return effects


def _add_into(total: Dict[str, float], deltas: Dict[str, float]) -> None:
    for key, value in deltas.items():
        total[key] = total.get(key, 0.0) + value


def _definitions(configs: Optional[Iterable[FeatureDefinition]]) -> List[FeatureDefinition]:
    definitions = get_all_feature_configs() if configs is None else list(configs)
    return sorted(definitions, key=lambda d: d.display_priority)


# ============================================================
# DISPLAY DATA
# ============================================================


def _next_week_severity(
    definition: FeatureDefinition,
    batch: WineBatch,
    severity: float,
    config: WineFeatureConfig,
) -> float:
    if definition.id == BOTTLE_AGING_ID:
        # Aging is synced to the counter, so project the counter forward
        aged = batch.copy_with(aging_progress=batch.aging_progress + 1)
        return get_feature_display_severity(aged, definition.id, config)

    growth = definition.risk_accumulation.severity_growth
    rate = get_weekly_growth_rate(definition, batch)
    if growth is None or rate <= 0:
        return severity
    return clamp01(min(growth.cap, severity + rate))


def get_feature_display_data(
    batch: WineBatch,
    config: Optional[WineFeatureConfig] = None,
    configs: Optional[Iterable[FeatureDefinition]] = None,
) -> FeatureDisplayData:
    """
    Build the aggregated feature view for a batch.

    Args:
        batch: Batch to describe (not mutated)
        config: Engine configuration
        configs: Feature definitions, defaults to the registry

    Returns:
        FeatureDisplayData with active, evolving and risk features
    """
    config = config or WineFeatureConfig()

    active: List[ActiveFeatureEffect] = []
    evolving: List[EvolvingFeature] = []
    risks: List[RiskFeature] = []
    combined_active: Dict[str, float] = {}
    combined_weekly: Dict[str, float] = {}
    total_quality = 0.0

    for definition in _definitions(configs):
        instance = batch.get_feature(definition.id)
        if instance is None:
            continue

        if instance.is_present:
            severity = get_feature_display_severity(batch, definition.id, config)
            quality_effect = definition.effects.quality
            impact = evaluate_quality_impact(quality_effect, severity)
            char_effects = _characteristic_effects(definition, severity)

            active.append(ActiveFeatureEffect(
                feature_id=definition.id,
                name=definition.name,
                icon=definition.icon,
                kind=definition.kind,
                severity=severity,
                quality_impact=impact,
                quality_delta=quality_points(quality_effect, impact, batch.born_grape_quality),
                characteristic_effects=char_effects,
            ))
            _add_into(combined_active, char_effects)
            total_quality += impact

            if not definition.is_graduated:
                continue

            next_severity = _next_week_severity(definition, batch, severity, config)
            growth_rate = next_severity - severity
            if growth_rate <= 0:
                continue

            next_effects = _characteristic_effects(definition, next_severity)
            weekly_effects = {
                key: next_effects.get(key, 0.0) - char_effects.get(key, 0.0)
                for key in set(next_effects) | set(char_effects)
            }
            evolving.append(EvolvingFeature(
                feature_id=definition.id,
                name=definition.name,
                icon=definition.icon,
                severity=severity,
                weekly_growth_rate=growth_rate,
                weekly_effects=weekly_effects,
                weekly_quality_effect=(
                    evaluate_quality_impact(quality_effect, next_severity) - impact
                ),
            ))
            _add_into(combined_weekly, weekly_effects)

        elif instance.risk > 0 and definition.strategy not in (
            RiskStrategy.INDEPENDENT, RiskStrategy.NONE
        ):
            expected_weeks = None
            if definition.strategy.accumulates_weekly:
                weeks = math.ceil(1.0 / instance.risk)
                if weeks < config.risk_display.expected_weeks_cap:
                    expected_weeks = weeks
            risks.append(RiskFeature(
                feature_id=definition.id,
                name=definition.name,
                icon=definition.icon,
                kind=definition.kind,
                risk=instance.risk,
                expected_weeks=expected_weeks,
            ))

    return FeatureDisplayData(
        active_features=active,
        evolving_features=evolving,
        risk_features=risks,
        combined_active_effects=combined_active,
        combined_weekly_effects=combined_weekly,
        total_quality_effect=total_quality,
    )


def get_feature_impacts(
    batch: WineBatch,
    config: Optional[WineFeatureConfig] = None,
    configs: Optional[Iterable[FeatureDefinition]] = None,
) -> List[ActiveFeatureEffect]:
    """Per-feature impacts of every active feature."""
    return get_feature_display_data(batch, config, configs).active_features


# ============================================================
# APPLICATION
# ============================================================


def calculate_effective_quality(
    batch: WineBatch,
    config: Optional[WineFeatureConfig] = None,
    configs: Optional[Iterable[FeatureDefinition]] = None,
) -> float:
    """Born quality plus every active feature's quality points, clamped."""
    impacts = get_feature_impacts(batch, config, configs)
    return clamp01(batch.born_grape_quality + sum(i.quality_delta for i in impacts))


def calculate_effective_characteristics(
    batch: WineBatch,
    config: Optional[WineFeatureConfig] = None,
    configs: Optional[Iterable[FeatureDefinition]] = None,
) -> WineCharacteristics:
    """Base characteristics plus combined active effects, clamped."""
    display = get_feature_display_data(batch, config, configs)
    return batch.characteristics.with_deltas(display.combined_active_effects)


def apply_feature_effects_to_batch(
    batch: WineBatch,
    config: Optional[WineFeatureConfig] = None,
    configs: Optional[Iterable[FeatureDefinition]] = None,
) -> WineBatch:
    """
    Return a copy of the batch with feature-adjusted grape quality.

    Base characteristics are left untouched; effective values are
    derived on read with calculate_effective_characteristics.
    """
    quality = calculate_effective_quality(batch, config, configs)
    if abs(quality - batch.grape_quality) > 1e-12:
        logger.debug(
            f"Batch {batch.id} quality {batch.grape_quality:.4f} -> {quality:.4f} from features"
        )
    return batch.copy_with(grape_quality=quality)


def calculate_feature_price_multiplier(
    batch: WineBatch,
    customer_type: CustomerType,
    config: Optional[WineFeatureConfig] = None,
    configs: Optional[Iterable[FeatureDefinition]] = None,
) -> float:
    """
    Price multiplier from a customer segment's sensitivity to features.

    Binary features apply their sensitivity in full; graduated ones
    are scaled by severity (1 + (sensitivity - 1) * severity).
    """
    multiplier = 1.0
    for definition in _definitions(configs):
        instance = batch.get_feature(definition.id)
        if instance is None or not instance.is_present:
            continue

        sensitivity = definition.customer_sensitivity.get(customer_type, 1.0)
        if definition.is_graduated:
            severity = get_feature_display_severity(batch, definition.id, config)
            sensitivity = 1.0 + (sensitivity - 1.0) * severity
        multiplier *= sensitivity

    return multiplier
