"""
Wine Feature Engine - Severity Evolution.

Weekly severity growth for manifested graduated features:

    growth   = severity_growth.rate * state_multiplier(batch)
    severity = min(cap, severity + growth)

Bottle aging does not grow on its own; its severity is always
read from the batch's aging counter (see aging.py).
"""

import logging
from typing import Iterable, List, Optional

from .aging import get_bottle_aging_severity
from .config import WineFeatureConfig
from .registry import get_all_feature_configs
from .types import (
    FeatureDefinition,
    FeatureInstance,
    WineBatch,
    clamp01,
    resolve_state_multiplier,
)


logger = logging.getLogger(__name__)


BOTTLE_AGING_ID = "bottle_aging"


def get_weekly_growth_rate(definition: FeatureDefinition, batch: WineBatch) -> float:
    """Severity added per week in the batch's current state (0 if none)."""
    growth = definition.risk_accumulation.severity_growth
    if growth is None or not definition.is_graduated:
        return 0.0
    return max(0.0, growth.rate * resolve_state_multiplier(growth.state_multipliers, batch))


def get_synced_bottle_aging_severity(
    batch: WineBatch,
    config: Optional[WineFeatureConfig] = None,
) -> float:
    """
    Bottle aging severity derived from the aging counter.

    Floored at the seed severity so a freshly bottled wine keeps a
    visible, non-zero trait.
    """
    config = config or WineFeatureConfig()
    instance = batch.get_feature(BOTTLE_AGING_ID)
    if instance is None or not instance.is_present:
        return 0.0
    synced = get_bottle_aging_severity(batch, config.aging)
    return clamp01(max(config.manifestation.min_seed_severity, synced))


def get_feature_display_severity(
    batch: WineBatch,
    feature_id: str,
    config: Optional[WineFeatureConfig] = None,
) -> float:
    """
    Severity to show and to evaluate effects with.

    Always use this rather than reading `instance.severity` directly.
    """
    if feature_id == BOTTLE_AGING_ID:
        return get_synced_bottle_aging_severity(batch, config)

    instance = batch.get_feature(feature_id)
    if instance is None or not instance.is_present:
        return 0.0
    return instance.severity


def sync_feature_severities(
    batch: WineBatch,
    config: Optional[WineFeatureConfig] = None,
) -> List[FeatureInstance]:
    """
    Copies of the batch's instances with synced severities written back.

    No growth is applied; use this after events that change the batch
    state or aging counter.
    """
    updated = []
    for instance in batch.features:
        instance = instance.copy()
        if instance.id == BOTTLE_AGING_ID and instance.is_present:
            instance.severity = get_synced_bottle_aging_severity(batch, config)
        updated.append(instance)
    return updated


def advance_feature_severity(
    batch: WineBatch,
    config: Optional[WineFeatureConfig] = None,
    configs: Optional[Iterable[FeatureDefinition]] = None,
) -> List[FeatureInstance]:
    """
    Grow the severity of every manifested graduated feature by one week.

    Args:
        batch: Batch to read (not mutated)
        config: Engine configuration (aging curve, seed severity)
        configs: Feature definitions, defaults to the registry

    Returns:
        Updated copies of the batch's feature instances
    """
    definitions = {
        d.id: d for d in (get_all_feature_configs() if configs is None else configs)
    }

    updated = []
    for instance in batch.features:
        instance = instance.copy()
        definition = definitions.get(instance.id)

        if definition is not None and instance.is_present and definition.is_graduated:
            if instance.id == BOTTLE_AGING_ID:
                instance.severity = get_synced_bottle_aging_severity(batch, config)
            else:
                growth = definition.risk_accumulation.severity_growth
                rate = get_weekly_growth_rate(definition, batch)
                if growth is not None and rate > 0:
                    instance.severity = clamp01(min(growth.cap, instance.severity + rate))
                    logger.debug(
                        f"{instance.id} severity +{rate:.4f} -> {instance.severity:.4f} "
                        f"(batch {batch.id})"
                    )

        if not instance.is_present:
            instance.severity = 0.0
        updated.append(instance)

    return updated
