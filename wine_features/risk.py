"""
Wine Feature Engine - Risk Accumulation.

============================================================
PURPOSE
============================================================
Advances per-feature risk for a batch on each weekly tick or
production event, and decides when a feature manifests.

============================================================
STRATEGIES
============================================================
TIME_BASED / CUMULATIVE (weekly tick):
    rate = base_rate * state_multiplier(batch)
           [* (1 + risk) if compound]
           [* prone_to_oxidation if scaled]
    risk = min(1, risk + rate)

EVENT_TRIGGERED / CUMULATIVE (event):
    risk = min(1, risk + Σ applicable trigger increases)

INDEPENDENT (event):
    one fresh draw with probability = Σ trigger increases;
    risk is reset to 0 when the draw fails

SEVERITY_GROWTH:
    risk only matters for the spawning trigger; growth itself
    is handled by the severity engine

NONE:
    no-op

============================================================
MANIFESTATION
============================================================
Manifestation is decided by a ManifestationPolicy so callers
can inject a seeded RNG or a deterministic threshold.

Seed severity on manifestation:
- BINARY features:                 1.0
- GRADUATED, severity growth:      min_seed_severity
- GRADUATED, event driven:         max(min_seed_severity, risk)

============================================================
"""

import logging
import random
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Dict, Iterable, List, Optional, Tuple

from .config import ManifestationConfig, WineFeatureConfig
from .registry import get_all_feature_configs
from .types import (
    FeatureDefinition,
    FeatureInstance,
    RiskAdvanceResult,
    RiskStrategy,
    RiskWarning,
    TriggerContext,
    WineBatch,
    WineEvent,
    clamp01,
    resolve,
    resolve_state_multiplier,
)


logger = logging.getLogger(__name__)


# ============================================================
# MANIFESTATION POLICIES
# ============================================================


class ManifestationPolicy(ABC):
    """Decides whether a feature with a given risk manifests now."""

    @abstractmethod
    def should_manifest(self, risk: float) -> bool:
        pass


class BernoulliManifestation(ManifestationPolicy):
    """
    One uniform draw per check: manifests when draw < risk.

    Risk of 0 never draws; risk of 1 always manifests.
    """

    def __init__(self, rng: Optional[random.Random] = None, seed: Optional[int] = None):
        self._rng = rng or random.Random(seed)

    def should_manifest(self, risk: float) -> bool:
        if risk <= 0:
            return False
        if risk >= 1.0:
            return True
        return self._rng.random() < risk


class ThresholdManifestation(ManifestationPolicy):
    """Manifests once risk reaches a fixed threshold. No randomness."""

    def __init__(self, threshold: float = 1.0):
        self.threshold = threshold

    def should_manifest(self, risk: float) -> bool:
        return risk > 0 and risk >= self.threshold


def create_manifestation_policy(config: Optional[ManifestationConfig] = None) -> ManifestationPolicy:
    """Build the policy named in the configuration."""
    config = config or ManifestationConfig()
    if config.policy == "threshold":
        return ThresholdManifestation(config.threshold)
    return BernoulliManifestation(seed=config.rng_seed)


# ============================================================
# RISK CALCULATIONS
# ============================================================


def calculate_weekly_risk_increase(
    definition: FeatureDefinition,
    current_risk: float,
    batch: WineBatch,
) -> float:
    """
    Risk added by one weekly tick.

    Zero for strategies that do not accumulate weekly.
    """
    if not definition.strategy.accumulates_weekly:
        return 0.0

    params = definition.risk_accumulation
    rate = params.base_rate * resolve_state_multiplier(params.state_multipliers, batch)

    if params.compound_effect:
        rate *= 1.0 + current_risk
    if params.scale_by_oxidation_proneness:
        rate *= batch.prone_to_oxidation

    return max(0.0, rate)


def calculate_event_risk_increase(
    definition: FeatureDefinition,
    event: WineEvent,
    context: TriggerContext,
) -> Tuple[float, bool]:
    """
    Risk added by an event.

    Returns:
        (increase, fired) - fired is False when no trigger applied
    """
    increase = 0.0
    fired = False
    for trigger in definition.risk_accumulation.triggers_for(event):
        if not trigger.applies(context):
            continue
        fired = True
        increase += resolve(trigger.risk_increase, context)
    return max(0.0, increase), fired


def get_seed_severity(definition: FeatureDefinition, risk: float, min_seed: float) -> float:
    """Initial severity of a feature that has just manifested."""
    if not definition.is_graduated:
        return 1.0
    if definition.strategy == RiskStrategy.SEVERITY_GROWTH:
        return min_seed
    return clamp01(max(min_seed, risk))


def initialize_batch_features(
    configs: Optional[Iterable[FeatureDefinition]] = None,
    config: Optional[WineFeatureConfig] = None,
) -> List[FeatureInstance]:
    """
    One instance per definition for a newly created batch.

    Definitions marked spawn_active start present at the seed severity.
    """
    config = config or WineFeatureConfig()
    definitions = get_all_feature_configs() if configs is None else list(configs)

    instances = []
    for definition in definitions:
        instance = FeatureInstance.blank(definition)
        if definition.spawn_active:
            instance.is_present = True
            instance.severity = get_seed_severity(
                definition, 0.0, config.manifestation.min_seed_severity
            )
        instances.append(instance)
    return instances


# ============================================================
# ENGINE
# ============================================================


class RiskAccumulationEngine:
    """
    Advances risk and manifestation for the features of a batch.

    ============================================================
    USAGE
    ============================================================
        engine = RiskAccumulationEngine(policy=ThresholdManifestation(0.5))

        weekly = engine.advance(batch)
        crushed = engine.advance(
            batch,
            WineEvent.CRUSHING,
            TriggerContext(batch=batch, options=CrushingOptions()),
        )

    ============================================================
    """

    def __init__(
        self,
        config: Optional[WineFeatureConfig] = None,
        policy: Optional[ManifestationPolicy] = None,
        configs: Optional[Iterable[FeatureDefinition]] = None,
    ):
        self.config = config or WineFeatureConfig()
        self._policy = policy or create_manifestation_policy(self.config.manifestation)
        self._configs = get_all_feature_configs() if configs is None else list(configs)

    @property
    def policy(self) -> ManifestationPolicy:
        return self._policy

    def advance(
        self,
        batch: WineBatch,
        event: Optional[WineEvent] = None,
        context: Optional[TriggerContext] = None,
    ) -> RiskAdvanceResult:
        """
        Run one accumulation pass.

        Args:
            batch: Batch to read (not mutated)
            event: Production event, or None for a weekly tick
            context: Trigger context for events (vineyard, options, season)

        Returns:
            RiskAdvanceResult with updated copies of every feature instance
        """
        instances: Dict[str, FeatureInstance] = {f.id: f.copy() for f in batch.features}
        order = [f.id for f in batch.features]

        if context is None:
            context = TriggerContext(batch=batch)
        elif context.batch is None:
            context = replace(context, batch=batch)

        manifested: List[str] = []
        warnings: List[RiskWarning] = []

        for definition in self._configs:
            instance = instances.get(definition.id)
            if instance is None:
                instance = FeatureInstance.blank(definition)
                instances[definition.id] = instance
                order.append(definition.id)

            # Manifested features no longer accumulate
            if instance.is_present:
                continue

            previous_risk = instance.risk
            if event is None:
                did_manifest = self._accumulate_weekly(definition, instance, batch)
            else:
                did_manifest = self._apply_event(definition, instance, event, context)

            warnings.extend(self._check_warnings(batch, definition, previous_risk, instance.risk))

            if did_manifest:
                manifested.append(definition.id)
                logger.info(
                    f"{definition.name} manifested in batch {batch.id} "
                    f"(risk {instance.risk:.1%}, severity {instance.severity:.3f})"
                )

        return RiskAdvanceResult(
            features=[instances[feature_id] for feature_id in order],
            manifested=manifested,
            warnings=warnings,
        )

    # --------------------------------------------------
    # Strategies
    # --------------------------------------------------

    def _accumulate_weekly(
        self,
        definition: FeatureDefinition,
        instance: FeatureInstance,
        batch: WineBatch,
    ) -> bool:
        if not definition.strategy.accumulates_weekly:
            return False

        increase = calculate_weekly_risk_increase(definition, instance.risk, batch)
        instance.risk = clamp01(instance.risk + increase)
        logger.debug(f"{definition.id} risk +{increase:.4f} -> {instance.risk:.4f} (batch {batch.id})")

        return self._try_manifest(definition, instance)

    def _apply_event(
        self,
        definition: FeatureDefinition,
        instance: FeatureInstance,
        event: WineEvent,
        context: TriggerContext,
    ) -> bool:
        strategy = definition.strategy
        if strategy == RiskStrategy.NONE:
            return False

        increase, fired = calculate_event_risk_increase(definition, event, context)
        if not fired:
            return False

        if strategy.stacks_event_risk:
            instance.risk = clamp01(instance.risk + increase)
            return self._try_manifest(definition, instance)

        # Independent chance for this event only
        instance.risk = clamp01(increase)
        if self._try_manifest(definition, instance):
            return True
        instance.risk = 0.0
        return False

    def _try_manifest(self, definition: FeatureDefinition, instance: FeatureInstance) -> bool:
        if not self._policy.should_manifest(instance.risk):
            return False

        instance.is_present = True
        instance.severity = get_seed_severity(
            definition, instance.risk, self.config.manifestation.min_seed_severity
        )
        return True

    def _check_warnings(
        self,
        batch: WineBatch,
        definition: FeatureDefinition,
        previous_risk: float,
        new_risk: float,
    ) -> List[RiskWarning]:
        # Severity-growth traits are spawned, not risked
        if definition.strategy == RiskStrategy.SEVERITY_GROWTH:
            return []

        warnings = []
        for threshold in self.config.risk_display.warning_thresholds:
            if previous_risk < threshold <= new_risk:
                warning = RiskWarning(
                    batch_id=batch.id,
                    feature_id=definition.id,
                    feature_name=definition.name,
                    threshold=threshold,
                    risk=new_risk,
                )
                logger.warning(warning.message)
                warnings.append(warning)
        return warnings


# ============================================================
# CONVENIENCE FUNCTIONS
# ============================================================


def advance_feature_risk(
    batch: WineBatch,
    event: Optional[WineEvent] = None,
    context: Optional[TriggerContext] = None,
    config: Optional[WineFeatureConfig] = None,
    policy: Optional[ManifestationPolicy] = None,
    configs: Optional[Iterable[FeatureDefinition]] = None,
) -> List[FeatureInstance]:
    """
    Advance risk for one batch and return the updated feature instances.

    For repeated ticks, prefer a persistent RiskAccumulationEngine so
    the manifestation RNG keeps its stream.
    """
    engine = RiskAccumulationEngine(config=config, policy=policy, configs=configs)
    return engine.advance(batch, event, context).features
