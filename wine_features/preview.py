"""
Wine Feature Engine - Risk Preview.

============================================================
PURPOSE
============================================================
Read-only projections answering "what would happen to my
features if I did X now?" for the harvest panel (vineyard
context) and the winery action panels (winery context).

============================================================
PROJECTIONS
============================================================
Each relevant feature yields exactly one of:
- a single new-risk value for the actual context
- risk_combinations: one value per discrete option combination
- risk_ranges: min/max risk per option group over a
  continuous input (ripeness, pressing intensity, harvest week)

Stacked strategies project min(1, current + increase).
Independent strategies project the increase alone.

============================================================
GUARANTEES
============================================================
- Never mutates batches, vineyards or feature instances
- Missing context returns an empty list, never raises

============================================================
"""

import logging
from typing import Dict, Iterable, List, Optional, Tuple

from .config import RiskDisplayConfig, WineFeatureConfig
from .effects import evaluate_quality_impact
from .registry import get_all_feature_configs, get_feature_config
from .risk import (
    calculate_event_risk_increase,
    calculate_weekly_risk_increase,
    get_seed_severity,
)
from .types import (
    BatchState,
    CrushingOptions,
    CumulativeRisk,
    FeatureDefinition,
    FeatureInstance,
    FeatureKind,
    FeatureRiskContext,
    FeatureRiskDisplayData,
    FeatureRiskItem,
    FermentationOptions,
    PreviewMode,
    RiskCombination,
    RiskRange,
    RiskStrategy,
    Season,
    TriggerContext,
    Vineyard,
    WineBatch,
    WineEvent,
    WineryAction,
    clamp01,
)


logger = logging.getLogger(__name__)


_NEXT_ACTION_BY_STATE = {
    BatchState.GRAPES: WineryAction.CRUSH,
    BatchState.MUST_READY: WineryAction.FERMENT,
    BatchState.MUST_FERMENTING: WineryAction.BOTTLE,
}


def get_next_winery_action(batch: Optional[WineBatch]) -> Optional[WineryAction]:
    """The winery action that moves a batch to its next state."""
    if batch is None:
        return None
    return _NEXT_ACTION_BY_STATE.get(batch.state)


# ============================================================
# LABELS
# ============================================================


def get_risk_severity_label(risk: float, config: Optional[RiskDisplayConfig] = None) -> str:
    """Minimal / Low / Moderate / High / Critical."""
    config = config or RiskDisplayConfig()
    if risk < config.minimal_below:
        return "Minimal"
    if risk < config.low_below:
        return "Low"
    if risk < config.moderate_below:
        return "Moderate"
    if risk < config.high_below:
        return "High"
    return "Critical"


def format_feature_risk_warning(item: FeatureRiskItem, config: Optional[RiskDisplayConfig] = None) -> str:
    """One-line warning text for a projected feature risk."""
    label = get_risk_severity_label(item.new_risk, config)
    text = f"{item.icon} {item.name}: {label} risk ({item.new_risk:.1%})".strip()
    if item.context_info:
        text += f" {item.context_info}"
    return text


# ============================================================
# PROJECTION HELPERS
# ============================================================


def _project_risk(definition: FeatureDefinition, current: float, increase: float, fired: bool) -> float:
    if definition.strategy.stacks_event_risk:
        return clamp01(current + (increase if fired else 0.0))
    return clamp01(increase if fired else 0.0)


def _projected_quality_impact(
    definition: FeatureDefinition,
    risk: float,
    min_seed: float,
) -> float:
    severity = get_seed_severity(definition, risk, min_seed)
    return evaluate_quality_impact(definition.effects.quality, severity)


def _context_info(event: Optional[WineEvent], context: TriggerContext) -> str:
    if event == WineEvent.HARVEST and context.vineyard is not None:
        info = f"(Ripeness: {context.vineyard.ripeness:.0%}"
        if context.season is not None:
            info += f", {context.season.value} week {context.week or 0}"
        return info + ")"

    batch = context.batch
    if batch is None:
        return ""

    if event == WineEvent.CRUSHING:
        info = f"(Fragile: {batch.fragile:.0%}, {batch.grape_color.value} grape"
        if isinstance(context.options, CrushingOptions):
            info += f", {context.options.method.value}"
        return info + ")"

    if event == WineEvent.FERMENTATION:
        options = context.options if isinstance(context.options, FermentationOptions) \
            else batch.fermentation_options
        if options is None:
            return "(No fermentation options chosen)"
        return f"({options.method.value}, {options.temperature.value})"

    return f"(Prone to oxidation: {batch.prone_to_oxidation:.0%})"


def _combinations(
    definition: FeatureDefinition,
    event: WineEvent,
    context: TriggerContext,
    current: float,
) -> List[RiskCombination]:
    preview = definition.preview_for(event)
    if preview.scenarios is None:
        return []

    combinations = []
    for scenario in preview.scenarios(context):
        increase, fired = calculate_event_risk_increase(definition, event, scenario.context)
        combinations.append(RiskCombination(
            label=scenario.label,
            risk=_project_risk(definition, current, increase, fired),
            options=dict(scenario.options),
        ))
    return sorted(combinations, key=lambda c: c.risk, reverse=True)


def _ranges(
    definition: FeatureDefinition,
    event: WineEvent,
    context: TriggerContext,
    current: float,
) -> List[RiskRange]:
    preview = definition.preview_for(event)
    if preview.scenarios is None:
        return []

    bounds: Dict[str, Tuple[float, float]] = {}
    for scenario in preview.scenarios(context):
        increase, fired = calculate_event_risk_increase(definition, event, scenario.context)
        risk = _project_risk(definition, current, increase, fired)
        low, high = bounds.get(scenario.group, (risk, risk))
        bounds[scenario.group] = (min(low, risk), max(high, risk))

    ranges = [RiskRange(group=g, min_risk=lo, max_risk=hi) for g, (lo, hi) in bounds.items()]
    return sorted(ranges, key=lambda r: r.max_risk, reverse=True)


def _current_instance(batch: Optional[WineBatch], definition: FeatureDefinition) -> FeatureInstance:
    if batch is not None:
        instance = batch.get_feature(definition.id)
        if instance is not None:
            return instance
    return FeatureInstance.blank(definition)


# ============================================================
# PREVIEWS
# ============================================================


def preview_feature_risks(
    batch: Optional[WineBatch],
    event: WineEvent,
    context: Optional[TriggerContext] = None,
    config: Optional[WineFeatureConfig] = None,
    configs: Optional[Iterable[FeatureDefinition]] = None,
) -> List[FeatureRiskItem]:
    """
    Project the risk every event-triggered feature would have after `event`.

    Features already present on the batch are skipped.
    """
    config = config or WineFeatureConfig()
    definitions = get_all_feature_configs() if configs is None else list(configs)
    context = context or TriggerContext(batch=batch)
    min_seed = config.manifestation.min_seed_severity

    items = []
    for definition in definitions:
        if definition.strategy == RiskStrategy.NONE:
            continue
        if not definition.risk_accumulation.triggers_for(event):
            continue

        instance = _current_instance(batch, definition)
        if instance.is_present:
            continue

        increase, fired = calculate_event_risk_increase(definition, event, context)
        new_risk = _project_risk(definition, instance.risk, increase, fired)

        mode = definition.preview_for(event).mode
        items.append(FeatureRiskItem(
            feature_id=definition.id,
            name=definition.name,
            icon=definition.icon,
            kind=definition.kind,
            current_risk=instance.risk,
            new_risk=new_risk,
            risk_increase=new_risk - instance.risk if definition.strategy.stacks_event_risk else new_risk,
            is_present=False,
            quality_impact=_projected_quality_impact(definition, new_risk, min_seed),
            description=definition.description,
            context_info=_context_info(event, context),
            risk_combinations=(
                _combinations(definition, event, context, instance.risk)
                if mode == PreviewMode.COMBINATIONS else []
            ),
            risk_ranges=(
                _ranges(definition, event, context, instance.risk)
                if mode == PreviewMode.RANGES else []
            ),
        ))

    return items


def _weekly_projections(
    batch: WineBatch,
    definitions: Iterable[FeatureDefinition],
    config: WineFeatureConfig,
) -> List[FeatureRiskItem]:
    items = []
    min_seed = config.manifestation.min_seed_severity
    for definition in definitions:
        if not definition.strategy.accumulates_weekly:
            continue
        instance = _current_instance(batch, definition)
        if instance.is_present:
            continue

        increase = calculate_weekly_risk_increase(definition, instance.risk, batch)
        new_risk = clamp01(instance.risk + increase)
        items.append(FeatureRiskItem(
            feature_id=definition.id,
            name=definition.name,
            icon=definition.icon,
            kind=definition.kind,
            current_risk=instance.risk,
            new_risk=new_risk,
            risk_increase=new_risk - instance.risk,
            quality_impact=_projected_quality_impact(definition, new_risk, min_seed),
            description=definition.description,
            context_info=_context_info(None, TriggerContext(batch=batch)),
        ))
    return items


def _spawn_influences(
    definitions: Iterable[FeatureDefinition],
    config: WineFeatureConfig,
) -> List[FeatureRiskItem]:
    items = []
    for definition in definitions:
        if not definition.spawn_active:
            continue
        severity = get_seed_severity(definition, 0.0, config.manifestation.min_seed_severity)
        items.append(FeatureRiskItem(
            feature_id=definition.id,
            name=definition.name,
            icon=definition.icon,
            kind=definition.kind,
            current_risk=0.0,
            new_risk=0.0,
            risk_increase=0.0,
            quality_impact=evaluate_quality_impact(definition.effects.quality, severity),
            description=definition.description,
            context_info="(Develops from harvest)",
        ))
    return items


def get_feature_risks_for_display(
    context: FeatureRiskContext,
    config: Optional[WineFeatureConfig] = None,
    configs: Optional[Iterable[FeatureDefinition]] = None,
) -> FeatureRiskDisplayData:
    """
    Feature risks and influences for a vineyard or winery panel.

    Args:
        context: Where the preview is requested from
        config: Engine configuration
        configs: Feature definitions, defaults to the registry

    Returns:
        FeatureRiskDisplayData (empty features when context is incomplete)
    """
    config = config or WineFeatureConfig()
    definitions = get_all_feature_configs() if configs is None else list(configs)

    show_for_next_action = context.type == "winery" and context.next_action is not None
    event = context.next_action.event if show_for_next_action else context.event
    empty = FeatureRiskDisplayData(
        features=[],
        show_for_next_action=show_for_next_action,
        next_action=context.next_action,
    )

    if context.type == "winery" and context.batch is None:
        logger.debug("Winery risk preview requested without a batch")
        return empty
    if context.type == "vineyard" and context.vineyard is None:
        logger.debug("Vineyard risk preview requested without a vineyard")
        return empty
    if context.type not in ("winery", "vineyard"):
        logger.debug(f"Unknown risk preview context type {context.type!r}")
        return empty

    trigger_context = TriggerContext(
        batch=context.batch,
        vineyard=context.vineyard,
        options=context.options,
        season=context.season,
        week=context.week,
    )

    features: List[FeatureRiskItem] = []
    if event is not None:
        features.extend(preview_feature_risks(context.batch, event, trigger_context, config, definitions))

    if context.type == "winery":
        seen = {item.feature_id for item in features}
        features.extend(
            item for item in _weekly_projections(context.batch, definitions, config)
            if item.feature_id not in seen
        )

    if event == WineEvent.HARVEST:
        features.extend(_spawn_influences(definitions, config))

    return FeatureRiskDisplayData(
        features=features,
        show_for_next_action=show_for_next_action,
        next_action=context.next_action,
    )


def get_harvest_risks(
    vineyard: Optional[Vineyard],
    season: Optional[Season] = None,
    week: Optional[int] = None,
    config: Optional[WineFeatureConfig] = None,
) -> List[FeatureRiskItem]:
    """Faults a harvest from this vineyard could introduce."""
    display = get_feature_risks_for_display(
        FeatureRiskContext(
            type="vineyard", event=WineEvent.HARVEST, vineyard=vineyard, season=season, week=week
        ),
        config,
    )
    return [item for item in display.features if item.kind == FeatureKind.FAULT]


def get_harvest_influences(
    vineyard: Optional[Vineyard],
    season: Optional[Season] = None,
    week: Optional[int] = None,
    config: Optional[WineFeatureConfig] = None,
) -> List[FeatureRiskItem]:
    """Traits a harvest from this vineyard would carry."""
    display = get_feature_risks_for_display(
        FeatureRiskContext(
            type="vineyard", event=WineEvent.HARVEST, vineyard=vineyard, season=season, week=week
        ),
        config,
    )
    return [item for item in display.features if item.kind == FeatureKind.TRAIT]


# ============================================================
# BATCH QUERIES
# ============================================================


def calculate_cumulative_risk(
    batch: WineBatch,
    feature_id: str,
    new_increase: float,
    source: str,
) -> Optional[CumulativeRisk]:
    """
    Break down how a risk increase combines with existing risk.

    Independent features keep only the new risk; stacked ones add.
    Returns None for unknown feature ids.
    """
    definition = get_feature_config(feature_id)
    if definition is None:
        return None

    instance = _current_instance(batch, definition)
    previous = instance.risk
    if definition.strategy.stacks_event_risk or definition.strategy.accumulates_weekly:
        total = clamp01(previous + new_increase)
    else:
        total = clamp01(new_increase)

    return CumulativeRisk(
        feature_id=feature_id,
        previous_risk=previous,
        new_risk=new_increase,
        total_risk=total,
        source=source,
    )


def get_present_features_info(
    batch: WineBatch,
) -> List[Tuple[FeatureInstance, FeatureDefinition]]:
    """Manifested features with their definitions."""
    info = []
    for instance in batch.features:
        definition = get_feature_config(instance.id)
        if definition is not None and instance.is_present:
            info.append((instance, definition))
    return info


def get_at_risk_features_info(
    batch: WineBatch,
    threshold: float = 0.05,
) -> List[Tuple[FeatureInstance, FeatureDefinition]]:
    """Latent features whose risk is at or above `threshold`."""
    info = []
    for instance in batch.features:
        definition = get_feature_config(instance.id)
        if definition is None or instance.is_present:
            continue
        if definition.strategy in (RiskStrategy.INDEPENDENT, RiskStrategy.NONE):
            continue
        if instance.risk >= threshold:
            info.append((instance, definition))
    return sorted(info, key=lambda pair: pair[0].risk, reverse=True)
