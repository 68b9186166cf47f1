"""
Wine Feature Engine - Feature Registry.

============================================================
PURPOSE
============================================================
The static catalogue of wine features and the lookups the
rest of the engine uses to find them.

Faults:
1. OXIDATION - weekly, compounding exposure to oxygen
2. GREEN_FLAVOR - underripe harvest and rough crushing
3. STUCK_FERMENTATION - one-off chance at fermentation start

Traits:
4. TERROIR - present from harvest, grows with winemaking
5. BOTTLE_AGING - starts at bottling, tracks bottle age
6. LATE_HARVEST - sweetness from late-season picking

============================================================
DESIGN PRINCIPLES
============================================================
- Pure functions over static data, safe to cache
- Catalogue order is stable (display priority order)
- Strategy inference never raises; unknown shapes map to NONE

============================================================
"""

import logging
from dataclasses import replace
from typing import Iterable, List, Optional, Tuple

from .types import (
    BatchState,
    BonusEffect,
    Characteristic,
    CharacteristicEffect,
    Computed,
    Constant,
    CrushingMethod,
    CrushingOptions,
    CustomerType,
    EventTrigger,
    FeatureDefinition,
    FeatureEffects,
    FeatureKind,
    FermentationMethod,
    FermentationOptions,
    FermentationTemperature,
    GrapeColor,
    LinearEffect,
    ManifestationStyle,
    PowerEffect,
    PreviewMode,
    PreviewScenario,
    RiskAccumulation,
    RiskPreview,
    RiskStrategy,
    Season,
    SeverityGrowth,
    TriggerContext,
    WineBatch,
    WineEvent,
)


logger = logging.getLogger(__name__)


# ============================================================
# STRATEGY INFERENCE
# ============================================================


def infer_risk_accumulation_strategy(risk_accumulation: object) -> RiskStrategy:
    """
    Derive the accumulation strategy from the shape of the parameters.

    Order of precedence:
    1. Positive severity growth          -> SEVERITY_GROWTH
    2. Positive base rate with triggers  -> CUMULATIVE
    3. Positive base rate                -> TIME_BASED
    4. Triggers marked independent       -> INDEPENDENT
    5. Other triggers                    -> EVENT_TRIGGERED
    6. Anything else                     -> NONE (no-op)

    Args:
        risk_accumulation: A RiskAccumulation (anything else maps to NONE)

    Returns:
        The inferred RiskStrategy
    """
    if not isinstance(risk_accumulation, RiskAccumulation):
        logger.warning(
            f"Unrecognised risk accumulation shape {type(risk_accumulation).__name__}, "
            f"falling back to {RiskStrategy.NONE.value}"
        )
        return RiskStrategy.NONE

    growth = risk_accumulation.severity_growth
    if growth is not None and growth.rate > 0:
        return RiskStrategy.SEVERITY_GROWTH

    if risk_accumulation.base_rate > 0:
        if risk_accumulation.event_triggers:
            return RiskStrategy.CUMULATIVE
        return RiskStrategy.TIME_BASED

    if risk_accumulation.event_triggers:
        if risk_accumulation.independent_events:
            return RiskStrategy.INDEPENDENT
        return RiskStrategy.EVENT_TRIGGERED

    return RiskStrategy.NONE


# ============================================================
# STATE MULTIPLIERS AND TRIGGER FUNCTIONS
# ============================================================


def _oxidation_fermenting_multiplier(batch: WineBatch) -> float:
    """CO2 protects fermenting must; long skin contact and heat expose it."""
    options = batch.fermentation_options
    if options is None:
        return 0.8

    method_factor = {
        FermentationMethod.BASIC: 1.0,
        FermentationMethod.TEMPERATURE_CONTROLLED: 0.75,
        FermentationMethod.EXTENDED_MACERATION: 1.25,
    }.get(options.method, 1.0)
    temperature_factor = {
        FermentationTemperature.COOL: 0.9,
        FermentationTemperature.AMBIENT: 1.0,
        FermentationTemperature.WARM: 1.2,
    }.get(options.temperature, 1.0)

    return 0.8 * method_factor * temperature_factor


def _green_flavor_harvest_risk(context: TriggerContext) -> float:
    ripeness = context.vineyard.ripeness if context.vineyard else 0.0
    return max(0.0, (0.5 - ripeness) * 0.6)


def _is_underripe(context: TriggerContext) -> bool:
    return context.vineyard is not None and context.vineyard.ripeness < 0.5


_CRUSHING_BASE_RATES = {
    CrushingMethod.HAND_PRESS: 0.05,
    CrushingMethod.MECHANICAL_PRESS: 0.15,
    CrushingMethod.PNEUMATIC_PRESS: 0.10,
}


def _green_flavor_crushing_risk(context: TriggerContext) -> float:
    options = context.options if isinstance(context.options, CrushingOptions) else CrushingOptions()
    batch = context.batch

    intensity = max(0.0, min(1.0, options.pressing_intensity))
    fragile = batch.fragile if batch else 0.0

    risk = _CRUSHING_BASE_RATES.get(options.method, 0.10)
    risk *= 0.5 + intensity
    risk *= 0.5 if options.destemming else 1.0
    risk *= 1.0 + fragile * intensity * 0.8
    if batch is not None and batch.grape_color == GrapeColor.WHITE:
        risk *= 1.3

    return min(0.45, risk)


def _fermentation_options(context: TriggerContext) -> Optional[FermentationOptions]:
    if isinstance(context.options, FermentationOptions):
        return context.options
    if context.batch is not None:
        return context.batch.fermentation_options
    return None


def _stuck_fermentation_risk(context: TriggerContext) -> float:
    options = _fermentation_options(context)
    if options is None or context.batch is None:
        return 0.0

    is_red = context.batch.grape_color == GrapeColor.RED
    risk = 0.08 if is_red else 0.03

    # Cool reds struggle; warm whites struggle
    if is_red:
        temperature_factor = {
            FermentationTemperature.COOL: 2.5,
            FermentationTemperature.AMBIENT: 1.0,
            FermentationTemperature.WARM: 0.5,
        }
    else:
        temperature_factor = {
            FermentationTemperature.COOL: 0.8,
            FermentationTemperature.AMBIENT: 1.0,
            FermentationTemperature.WARM: 1.5,
        }
    risk *= temperature_factor.get(options.temperature, 1.0)

    if options.method == FermentationMethod.EXTENDED_MACERATION and is_red:
        risk *= 1.5
    elif options.method == FermentationMethod.TEMPERATURE_CONTROLLED:
        risk *= 0.7

    return min(0.30, risk)


def _is_late_harvest(context: TriggerContext) -> bool:
    if context.season == Season.WINTER:
        return True
    return context.season == Season.FALL and (context.week or 0) >= 7


def _late_harvest_risk(context: TriggerContext) -> float:
    week = context.week or 0
    if context.season == Season.FALL:
        return max(0.0, (week - 6) / 12)
    if context.season == Season.WINTER:
        return min(1.0, 0.5 + week / 12)
    return 0.0


# ============================================================
# PREVIEW SCENARIOS
# ============================================================


def _ripeness_sweep(context: TriggerContext) -> Iterable[PreviewScenario]:
    if context.vineyard is None:
        return []
    return [
        PreviewScenario(
            group="Ripeness",
            label=f"{ripeness:.0%} ripeness",
            context=replace(context, vineyard=replace(context.vineyard, ripeness=ripeness)),
            options={"ripeness": ripeness},
        )
        for ripeness in (0.0, 1.0)
    ]


def _late_harvest_weeks(context: TriggerContext) -> Iterable[PreviewScenario]:
    scenarios = []
    for season, weeks in ((Season.FALL, range(7, 13)), (Season.WINTER, range(1, 13))):
        for week in weeks:
            scenarios.append(PreviewScenario(
                group=season.value,
                label=f"{season.value} week {week}",
                context=replace(context, season=season, week=week),
                options={"season": season.value, "week": week},
            ))
    return scenarios


def _crushing_grid(context: TriggerContext) -> Iterable[PreviewScenario]:
    scenarios = []
    for method in CrushingMethod:
        for destemming in (True, False):
            for cold_soak in (False, True):
                group = (
                    f"{method.value}, "
                    f"{'destemmed' if destemming else 'whole cluster'}"
                    f"{', cold soak' if cold_soak else ''}"
                )
                for intensity in (0.0, 1.0):
                    options = CrushingOptions(
                        method=method,
                        destemming=destemming,
                        cold_soak=cold_soak,
                        pressing_intensity=intensity,
                    )
                    scenarios.append(PreviewScenario(
                        group=group,
                        label=f"{group} @ {intensity:.0%} pressure",
                        context=replace(context, options=options),
                        options={
                            "method": method.value,
                            "destemming": destemming,
                            "cold_soak": cold_soak,
                            "pressing_intensity": intensity,
                        },
                    ))
    return scenarios


def _fermentation_grid(context: TriggerContext) -> Iterable[PreviewScenario]:
    scenarios = []
    for method in FermentationMethod:
        for temperature in FermentationTemperature:
            options = FermentationOptions(method=method, temperature=temperature)
            label = f"{method.value} / {temperature.value}"
            scenarios.append(PreviewScenario(
                group=method.value,
                label=label,
                context=replace(context, options=options),
                options={"method": method.value, "temperature": temperature.value},
            ))
    return scenarios


# ============================================================
# CATALOGUE
# ============================================================


def _sensitivity(restaurant: float, shop: float, collector: float, chain: float):
    return {
        CustomerType.RESTAURANT: restaurant,
        CustomerType.WINE_SHOP: shop,
        CustomerType.PRIVATE_COLLECTOR: collector,
        CustomerType.CHAIN_STORE: chain,
    }


def _scaled(factor: float) -> Computed:
    """Characteristic modifier proportional to severity."""
    return Computed(lambda severity: severity * factor, description=f"severity * {factor}")


OXIDATION = FeatureDefinition(
    id="oxidation",
    name="Oxidation",
    icon="⚠️",
    description="Wine exposed to oxygen, resulting in flavor degradation and browning",
    kind=FeatureKind.FAULT,
    manifestation=ManifestationStyle.BINARY,
    risk_accumulation=RiskAccumulation(
        base_rate=0.02,
        compound_effect=True,
        state_multipliers={
            BatchState.GRAPES: Constant(3.0),
            BatchState.MUST_READY: Constant(1.5),
            BatchState.MUST_FERMENTING: Computed(
                _oxidation_fermenting_multiplier, description="fermentation options"
            ),
            BatchState.BOTTLED: Constant(0.3),
        },
        scale_by_oxidation_proneness=True,
    ),
    effects=FeatureEffects(
        quality=PowerEffect(base_penalty=0.25, exponent=1.5),
        characteristics=(
            CharacteristicEffect(Characteristic.AROMA, Constant(-0.20)),
            CharacteristicEffect(Characteristic.ACIDITY, Constant(-0.12)),
            CharacteristicEffect(Characteristic.BODY, Constant(-0.08)),
            CharacteristicEffect(Characteristic.SWEETNESS, Constant(0.08)),
        ),
    ),
    customer_sensitivity=_sensitivity(0.85, 0.80, 0.60, 0.90),
    display_priority=1,
    badge_color="destructive",
    tips=("Move grapes to crushing quickly; sealed bottles are far safer.",),
)


GREEN_FLAVOR = FeatureDefinition(
    id="green_flavor",
    name="Green Flavors",
    icon="🌿",
    description="Herbaceous, vegetal flavors from underripe grapes or rough handling during crushing",
    kind=FeatureKind.FAULT,
    manifestation=ManifestationStyle.BINARY,
    risk_accumulation=RiskAccumulation(
        event_triggers=(
            EventTrigger(
                event=WineEvent.HARVEST,
                condition=_is_underripe,
                risk_increase=Computed(_green_flavor_harvest_risk, description="ripeness"),
            ),
            EventTrigger(
                event=WineEvent.CRUSHING,
                risk_increase=Computed(_green_flavor_crushing_risk, description="crushing options"),
            ),
        ),
    ),
    effects=FeatureEffects(
        quality=LinearEffect(Constant(-0.20)),
        characteristics=(
            CharacteristicEffect(Characteristic.AROMA, Constant(-0.15)),
            CharacteristicEffect(Characteristic.SWEETNESS, Constant(-0.10)),
            CharacteristicEffect(Characteristic.TANNINS, Constant(0.12)),
        ),
    ),
    customer_sensitivity=_sensitivity(0.90, 0.85, 0.70, 0.95),
    display_priority=2,
    risk_preview={
        WineEvent.HARVEST: RiskPreview(PreviewMode.RANGES, _ripeness_sweep),
        WineEvent.CRUSHING: RiskPreview(PreviewMode.RANGES, _crushing_grid),
    },
    tips=(
        "Wait for ripeness of at least 50% to avoid green flavor risk.",
        "Enable destemming and press gently to reduce green flavor risk.",
    ),
)


STUCK_FERMENTATION = FeatureDefinition(
    id="stuck_fermentation",
    name="Stuck Fermentation",
    icon="🧫",
    description="Fermentation stops early, leaving residual sugar and a flat, unfinished wine",
    kind=FeatureKind.FAULT,
    manifestation=ManifestationStyle.BINARY,
    risk_accumulation=RiskAccumulation(
        event_triggers=(
            EventTrigger(
                event=WineEvent.FERMENTATION,
                risk_increase=Computed(_stuck_fermentation_risk, description="fermentation options"),
            ),
        ),
        independent_events=True,
    ),
    effects=FeatureEffects(
        quality=LinearEffect(Constant(-0.35)),
        characteristics=(
            CharacteristicEffect(Characteristic.SWEETNESS, Constant(0.25)),
            CharacteristicEffect(Characteristic.BODY, Constant(-0.18)),
            CharacteristicEffect(Characteristic.AROMA, Constant(-0.12)),
        ),
    ),
    customer_sensitivity=_sensitivity(0.75, 0.70, 0.50, 0.85),
    display_priority=3,
    risk_preview={
        WineEvent.FERMENTATION: RiskPreview(PreviewMode.COMBINATIONS, _fermentation_grid),
    },
    tips=("Reds ferment best warm; whites best cool or temperature controlled.",),
)


TERROIR = FeatureDefinition(
    id="terroir",
    name="Terroir Expression",
    icon="🏔️",
    description="Distinctive character of the vineyard that develops through winemaking",
    kind=FeatureKind.TRAIT,
    manifestation=ManifestationStyle.GRADUATED,
    risk_accumulation=RiskAccumulation(
        severity_growth=SeverityGrowth(
            rate=0.005,
            cap=1.0,
            state_multipliers={
                BatchState.GRAPES: Constant(0.01),
                BatchState.MUST_READY: Constant(3.0),
                BatchState.MUST_FERMENTING: Constant(5.0),
                BatchState.BOTTLED: Constant(0.3),
            },
        ),
    ),
    effects=FeatureEffects(
        quality=BonusEffect(Computed(lambda severity: severity * 0.15, description="severity * 0.15")),
        characteristics=(
            CharacteristicEffect(Characteristic.AROMA, _scaled(0.12)),
            CharacteristicEffect(Characteristic.BODY, _scaled(0.08)),
            CharacteristicEffect(Characteristic.TANNINS, _scaled(0.10)),
            CharacteristicEffect(Characteristic.SPICE, _scaled(0.06)),
            CharacteristicEffect(Characteristic.ACIDITY, _scaled(-0.04)),
        ),
    ),
    customer_sensitivity=_sensitivity(1.15, 1.25, 1.35, 1.05),
    display_priority=10,
    badge_color="success",
    spawn_active=True,
    harvest_context=True,
)


BOTTLE_AGING = FeatureDefinition(
    id="bottle_aging",
    name="Bottle Aging",
    icon="🍾",
    description="Complexity gained while the wine rests in bottle",
    kind=FeatureKind.TRAIT,
    manifestation=ManifestationStyle.GRADUATED,
    risk_accumulation=RiskAccumulation(
        event_triggers=(
            EventTrigger(event=WineEvent.BOTTLING, risk_increase=Constant(1.0)),
        ),
        # Severity is synced from aging progress each week; the growth block
        # only marks the strategy as severity growth
        severity_growth=SeverityGrowth(
            rate=0.003,
            cap=1.0,
            state_multipliers={
                BatchState.GRAPES: Constant(0.0),
                BatchState.MUST_READY: Constant(0.0),
                BatchState.MUST_FERMENTING: Constant(0.0),
            },
        ),
    ),
    effects=FeatureEffects(
        quality=BonusEffect(Computed(lambda severity: severity * 0.10, description="severity * 0.10")),
        characteristics=(
            CharacteristicEffect(Characteristic.ACIDITY, _scaled(-0.08)),
            CharacteristicEffect(Characteristic.AROMA, _scaled(0.10)),
            CharacteristicEffect(Characteristic.SPICE, _scaled(0.08)),
            CharacteristicEffect(Characteristic.SWEETNESS, _scaled(0.06)),
            CharacteristicEffect(Characteristic.BODY, _scaled(-0.04)),
        ),
    ),
    customer_sensitivity=_sensitivity(1.10, 1.15, 1.30, 1.00),
    display_priority=11,
    badge_color="success",
)


LATE_HARVEST = FeatureDefinition(
    id="late_harvest",
    name="Late Harvest",
    icon="🍯",
    description="Grapes picked late in the season with concentrated sugar and softer acidity",
    kind=FeatureKind.TRAIT,
    manifestation=ManifestationStyle.GRADUATED,
    risk_accumulation=RiskAccumulation(
        event_triggers=(
            EventTrigger(
                event=WineEvent.HARVEST,
                condition=_is_late_harvest,
                risk_increase=Computed(_late_harvest_risk, description="harvest week"),
            ),
        ),
        independent_events=True,
    ),
    effects=FeatureEffects(
        quality=BonusEffect(Constant(0.0)),
        characteristics=(
            CharacteristicEffect(Characteristic.SWEETNESS, _scaled(0.90)),
            CharacteristicEffect(Characteristic.ACIDITY, _scaled(-0.90)),
        ),
    ),
    customer_sensitivity=_sensitivity(1.0, 1.0, 1.0, 1.0),
    display_priority=12,
    badge_color="info",
    harvest_context=True,
    risk_preview={
        WineEvent.HARVEST: RiskPreview(PreviewMode.RANGES, _late_harvest_weeks),
    },
)


_CATALOGUE: Tuple[FeatureDefinition, ...] = (
    OXIDATION, GREEN_FLAVOR, STUCK_FERMENTATION, TERROIR, BOTTLE_AGING, LATE_HARVEST
)


# ============================================================
# LOOKUPS
# ============================================================


def get_all_feature_configs() -> List[FeatureDefinition]:
    """
    Return the full feature catalogue.

    The order is stable across calls.
    """
    return list(_CATALOGUE)


def get_feature_config(feature_id: str) -> Optional[FeatureDefinition]:
    """Return one definition by id, or None if unknown."""
    for definition in _CATALOGUE:
        if definition.id == feature_id:
            return definition
    return None


def get_time_based_features(
    configs: Optional[Iterable[FeatureDefinition]] = None,
) -> List[FeatureDefinition]:
    """Definitions whose risk grows every weekly tick."""
    pool = _CATALOGUE if configs is None else configs
    return [d for d in pool if d.strategy.accumulates_weekly]


def get_event_triggered_features(
    event: WineEvent,
    configs: Optional[Iterable[FeatureDefinition]] = None,
) -> List[FeatureDefinition]:
    """Definitions with at least one trigger for `event`."""
    pool = _CATALOGUE if configs is None else configs
    return [d for d in pool if d.risk_accumulation.triggers_for(event)]
