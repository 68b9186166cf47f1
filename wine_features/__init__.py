"""
Wine Feature Engine - Package.

============================================================
PURPOSE
============================================================
Models the hidden features of wine batches: how faults and
traits accumulate risk, manifest, evolve in severity and feed
back into quality, characteristics and price.

============================================================
WHAT IT IS
============================================================
- A synchronous, in-process library operating on batch copies
- Deterministic given a seeded or threshold manifestation policy
- Read-only preview projections for UI panels

============================================================
WHAT IT IS NOT
============================================================
- NOT a persistence layer (callers load and save batches)
- NOT a UI (schemas.py only shapes payloads)
- NOT a prestige or finance system

============================================================
COMPONENTS
============================================================
1. REGISTRY: feature catalogue and strategy inference
2. RISK: per-tick / per-event accumulation and manifestation
3. SEVERITY: weekly growth of graduated features
4. EFFECTS: quality and characteristic composition
5. PREVIEW: "what if I did X now" risk projections
6. PRICING: wine score and estimated price

============================================================
USAGE
============================================================
    from wine_features import (
        WineFeatureEngine,
        WineEvent,
        Season,
        Vineyard,
        CrushingOptions,
        format_feature_summary,
        get_seeded_config,
    )

    engine = WineFeatureEngine(config=get_seeded_config(7))
    vineyard = Vineyard(id="v1", name="Colline", grape="Barbera", ripeness=0.45)

    batch = engine.create_batch("b1", vineyard, quality=0.7, quantity=500)
    batch = engine.process_event(
        batch, WineEvent.HARVEST, vineyard=vineyard, season=Season.FALL, week=4
    ).batch
    batch = engine.process_event(batch, WineEvent.CRUSHING, options=CrushingOptions()).batch

    for _ in range(4):
        batch = engine.process_week(batch).batch

    print(format_feature_summary(engine.get_display_data(batch), batch))
    print(engine.estimate_price(batch, vineyard))

============================================================
"""

# Types
from .types import (
    # Enums
    FeatureKind,
    ManifestationStyle,
    RiskStrategy,
    BatchState,
    WineEvent,
    WineryAction,
    Characteristic,
    CustomerType,
    GrapeColor,
    Season,
    FermentationMethod,
    FermentationTemperature,
    CrushingMethod,
    PreviewMode,

    # Configuration values
    Constant,
    Computed,
    resolve,

    # Definitions
    EventTrigger,
    SeverityGrowth,
    RiskAccumulation,
    LinearEffect,
    PowerEffect,
    BonusEffect,
    CharacteristicEffect,
    FeatureEffects,
    RiskPreview,
    PreviewScenario,
    FeatureDefinition,

    # Entities and inputs
    FeatureInstance,
    WineBatch,
    WineCharacteristics,
    Vineyard,
    FermentationOptions,
    CrushingOptions,
    TriggerContext,
    FeatureRiskContext,

    # Output types
    RiskWarning,
    RiskAdvanceResult,
    ActiveFeatureEffect,
    EvolvingFeature,
    RiskFeature,
    FeatureDisplayData,
    RiskCombination,
    RiskRange,
    FeatureRiskItem,
    FeatureRiskDisplayData,
    CumulativeRisk,
    AgingStatus,
    PriceImpact,
    FeatureTickResult,

    # Exceptions
    WineFeatureError,
    InvalidBatchError,
    FeatureEngineError,
    VineyardLookupError,
)

# Configuration
from .config import (
    ManifestationConfig,
    RiskDisplayConfig,
    AgingConfig,
    PricingConfig,
    WineFeatureConfig,
    get_default_config,
    get_seeded_config,
    get_deterministic_config,
)

# Registry
from .registry import (
    get_all_feature_configs,
    get_feature_config,
    get_time_based_features,
    get_event_triggered_features,
    infer_risk_accumulation_strategy,
)

# Risk
from .risk import (
    ManifestationPolicy,
    BernoulliManifestation,
    ThresholdManifestation,
    create_manifestation_policy,
    RiskAccumulationEngine,
    advance_feature_risk,
    initialize_batch_features,
)

# Aging and severity
from .aging import (
    calculate_aging_status,
    get_bottle_aging_severity,
    process_weekly_aging,
)
from .severity import (
    advance_feature_severity,
    get_feature_display_severity,
    get_weekly_growth_rate,
)

# Effects
from .effects import (
    evaluate_quality_impact,
    evaluate_characteristic_modifier,
    get_feature_display_data,
    get_feature_impacts,
    calculate_effective_quality,
    calculate_effective_characteristics,
    apply_feature_effects_to_batch,
    calculate_feature_price_multiplier,
)

# Preview
from .preview import (
    get_feature_risks_for_display,
    preview_feature_risks,
    calculate_cumulative_risk,
    get_next_winery_action,
    get_harvest_risks,
    get_harvest_influences,
    get_risk_severity_label,
    format_feature_risk_warning,
)

# Pricing
from .pricing import (
    calculate_wine_balance,
    calculate_wine_score,
    calculate_estimated_price,
    calculate_price_impact,
)

# Engine
from .engine import (
    WineFeatureEngine,
    process_weekly_features,
    format_feature_summary,
)


__all__ = [
    # Enums
    "FeatureKind",
    "ManifestationStyle",
    "RiskStrategy",
    "BatchState",
    "WineEvent",
    "WineryAction",
    "Characteristic",
    "CustomerType",
    "GrapeColor",
    "Season",
    "FermentationMethod",
    "FermentationTemperature",
    "CrushingMethod",
    "PreviewMode",

    # Configuration values
    "Constant",
    "Computed",
    "resolve",

    # Definitions
    "EventTrigger",
    "SeverityGrowth",
    "RiskAccumulation",
    "LinearEffect",
    "PowerEffect",
    "BonusEffect",
    "CharacteristicEffect",
    "FeatureEffects",
    "RiskPreview",
    "PreviewScenario",
    "FeatureDefinition",

    # Entities and inputs
    "FeatureInstance",
    "WineBatch",
    "WineCharacteristics",
    "Vineyard",
    "FermentationOptions",
    "CrushingOptions",
    "TriggerContext",
    "FeatureRiskContext",

    # Output types
    "RiskWarning",
    "RiskAdvanceResult",
    "ActiveFeatureEffect",
    "EvolvingFeature",
    "RiskFeature",
    "FeatureDisplayData",
    "RiskCombination",
    "RiskRange",
    "FeatureRiskItem",
    "FeatureRiskDisplayData",
    "CumulativeRisk",
    "AgingStatus",
    "PriceImpact",
    "FeatureTickResult",

    # Exceptions
    "WineFeatureError",
    "InvalidBatchError",
    "FeatureEngineError",
    "VineyardLookupError",

    # Configuration
    "ManifestationConfig",
    "RiskDisplayConfig",
    "AgingConfig",
    "PricingConfig",
    "WineFeatureConfig",
    "get_default_config",
    "get_seeded_config",
    "get_deterministic_config",

    # Registry
    "get_all_feature_configs",
    "get_feature_config",
    "get_time_based_features",
    "get_event_triggered_features",
    "infer_risk_accumulation_strategy",

    # Risk
    "ManifestationPolicy",
    "BernoulliManifestation",
    "ThresholdManifestation",
    "create_manifestation_policy",
    "RiskAccumulationEngine",
    "advance_feature_risk",
    "initialize_batch_features",

    # Aging and severity
    "calculate_aging_status",
    "get_bottle_aging_severity",
    "process_weekly_aging",
    "advance_feature_severity",
    "get_feature_display_severity",
    "get_weekly_growth_rate",

    # Effects
    "evaluate_quality_impact",
    "evaluate_characteristic_modifier",
    "get_feature_display_data",
    "get_feature_impacts",
    "calculate_effective_quality",
    "calculate_effective_characteristics",
    "apply_feature_effects_to_batch",
    "calculate_feature_price_multiplier",

    # Preview
    "get_feature_risks_for_display",
    "preview_feature_risks",
    "calculate_cumulative_risk",
    "get_next_winery_action",
    "get_harvest_risks",
    "get_harvest_influences",
    "get_risk_severity_label",
    "format_feature_risk_warning",

    # Pricing
    "calculate_wine_balance",
    "calculate_wine_score",
    "calculate_estimated_price",
    "calculate_price_impact",

    # Engine
    "WineFeatureEngine",
    "process_weekly_features",
    "format_feature_summary",
]


__version__ = "1.0.0"
