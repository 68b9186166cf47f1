"""
Wine Feature Engine - Type Definitions.

============================================================
PURPOSE
============================================================
Data contracts for the Wine Feature Engine.

This module defines all enums, value combinators, feature
definitions, batch entities and output contracts used by the
feature system. Every other module in the package speaks in
these types.

============================================================
DESIGN PRINCIPLES
============================================================
- Feature definitions are immutable configuration
- Feature instances are small mutable records owned by a batch
- Configuration values are Constant | Computed, never raw lambdas
- Quality effects are a closed set: Linear | Power | Bonus
- Output contracts are frozen dataclasses

============================================================
FEATURE KINDS
============================================================
FAULT  - degrades quality (oxidation, green flavor, ...)
TRAIT  - neutral or positive (terroir, bottle aging, ...)

Manifestation:
- BINARY: present at full severity (1.0) once manifested
- GRADUATED: severity starts small and grows over time

============================================================
"""

import math
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Union


# ============================================================
# ENUMS
# ============================================================


class FeatureKind(str, Enum):
    """Whether a feature hurts (fault) or helps (trait) a wine."""

    FAULT = "fault"
    TRAIT = "trait"


class ManifestationStyle(str, Enum):
    """
    How a feature expresses itself once manifested.

    - BINARY: severity jumps straight to 1.0
    - GRADUATED: severity is seeded small and evolves week by week
    """

    BINARY = "binary"
    GRADUATED = "graduated"


class RiskStrategy(str, Enum):
    """
    Risk accumulation strategy, inferred from a definition's shape.

    NONE is the no-op fallback for shapes that cannot be classified.
    """

    TIME_BASED = "time_based"
    EVENT_TRIGGERED = "event_triggered"
    INDEPENDENT = "independent"
    CUMULATIVE = "cumulative"
    SEVERITY_GROWTH = "severity_growth"
    NONE = "none"

    @property
    def accumulates_weekly(self) -> bool:
        """True for strategies that grow risk every tick."""
        return self in (RiskStrategy.TIME_BASED, RiskStrategy.CUMULATIVE)

    @property
    def stacks_event_risk(self) -> bool:
        """True for strategies where event risk adds to prior risk."""
        return self in (RiskStrategy.EVENT_TRIGGERED, RiskStrategy.CUMULATIVE)


class BatchState(str, Enum):
    """Production stage of a wine batch."""

    GRAPES = "grapes"
    MUST_READY = "must_ready"
    MUST_FERMENTING = "must_fermenting"
    BOTTLED = "bottled"

    @classmethod
    def production_order(cls) -> List["BatchState"]:
        """Return states in the order a batch moves through them."""
        return [cls.GRAPES, cls.MUST_READY, cls.MUST_FERMENTING, cls.BOTTLED]


class WineEvent(str, Enum):
    """Discrete production events that can trigger feature risk."""

    HARVEST = "harvest"
    CRUSHING = "crushing"
    FERMENTATION = "fermentation"
    BOTTLING = "bottling"


class WineryAction(str, Enum):
    """Next winery action available for a batch."""

    CRUSH = "crush"
    FERMENT = "ferment"
    BOTTLE = "bottle"

    @property
    def event(self) -> WineEvent:
        """The production event this action performs."""
        return {
            WineryAction.CRUSH: WineEvent.CRUSHING,
            WineryAction.FERMENT: WineEvent.FERMENTATION,
            WineryAction.BOTTLE: WineEvent.BOTTLING,
        }[self]


class Characteristic(str, Enum):
    """The six wine characteristics tracked per batch."""

    ACIDITY = "acidity"
    AROMA = "aroma"
    BODY = "body"
    SPICE = "spice"
    SWEETNESS = "sweetness"
    TANNINS = "tannins"


class CustomerType(str, Enum):
    """Buyer segments with different sensitivity to wine features."""

    RESTAURANT = "Restaurant"
    WINE_SHOP = "Wine Shop"
    PRIVATE_COLLECTOR = "Private Collector"
    CHAIN_STORE = "Chain Store"


class GrapeColor(str, Enum):
    RED = "red"
    WHITE = "white"


class Season(str, Enum):
    SPRING = "Spring"
    SUMMER = "Summer"
    FALL = "Fall"
    WINTER = "Winter"


class FermentationMethod(str, Enum):
    BASIC = "Basic"
    TEMPERATURE_CONTROLLED = "Temperature Controlled"
    EXTENDED_MACERATION = "Extended Maceration"


class FermentationTemperature(str, Enum):
    AMBIENT = "Ambient"
    COOL = "Cool"
    WARM = "Warm"


class CrushingMethod(str, Enum):
    HAND_PRESS = "Hand Press"
    MECHANICAL_PRESS = "Mechanical Press"
    PNEUMATIC_PRESS = "Pneumatic Press"


class PreviewMode(str, Enum):
    """
    How the preview engine presents a feature's projected risk.

    - SINGLE: one projected value for the actual context
    - COMBINATIONS: one value per discrete option combination
    - RANGES: min/max risk per option group over a continuous input
    """

    SINGLE = "single"
    COMBINATIONS = "combinations"
    RANGES = "ranges"


# ============================================================
# CONFIGURATION VALUES
# ============================================================


@dataclass(frozen=True)
class Constant:
    """A configuration value that does not depend on context."""

    value: float


@dataclass(frozen=True)
class Computed:
    """
    A configuration value computed from a context.

    The context is whatever the caller resolves against: a batch
    for state multipliers, a TriggerContext for event triggers,
    a severity for effect modifiers.
    """

    fn: Callable[[Any], float]
    description: str = ""


Value = Union[Constant, Computed]


def resolve(value: Union[Value, float, int, None], context: Any) -> float:
    """
    Resolve a configuration value against a context.

    Args:
        value: Constant, Computed, or a plain number
        context: Passed to Computed functions

    Returns:
        The resolved float (0.0 for None)
    """
    if value is None:
        return 0.0
    if isinstance(value, Computed):
        return float(value.fn(context))
    if isinstance(value, Constant):
        return float(value.value)
    return float(value)


def resolve_state_multiplier(
    multipliers: Dict["BatchState", Value],
    batch: "WineBatch",
) -> float:
    """Resolve the multiplier for the batch's state; unknown states give 1.0."""
    value = multipliers.get(batch.state)
    if value is None:
        return 1.0
    return resolve(value, batch)


def clamp01(value: float) -> float:
    """Clamp a value into [0, 1]."""
    return max(0.0, min(1.0, value))


def squash_normalize_tail(
    value: float,
    threshold: float = 0.9,
    max_target: float = 0.9999,
    alpha: float = 8.0,
) -> float:
    """
    Map [0, inf) onto [0, max_target).

    Identity up to `threshold`; above it the value is squashed
    exponentially so it approaches `max_target` without reaching it.
    """
    if value <= 0:
        return 0.0
    if value <= threshold:
        return value

    tail = max_target - threshold
    return threshold + tail * (1.0 - math.exp(-alpha * (value - threshold)))


# ============================================================
# BATCH INPUTS
# ============================================================


@dataclass(frozen=True)
class WineCharacteristics:
    """Characteristic values of a wine, each in [0, 1]."""

    acidity: float = 0.5
    aroma: float = 0.5
    body: float = 0.5
    spice: float = 0.5
    sweetness: float = 0.5
    tannins: float = 0.5

    def get(self, characteristic: Characteristic) -> float:
        return getattr(self, Characteristic(characteristic).value)

    def with_deltas(self, deltas: Dict[Characteristic, float]) -> "WineCharacteristics":
        """Return a copy with deltas added and every value clamped to [0, 1]."""
        values = self.to_dict()
        for characteristic, delta in deltas.items():
            key = Characteristic(characteristic).value
            values[key] = values[key] + delta
        return WineCharacteristics(**{k: clamp01(v) for k, v in values.items()})

    def to_dict(self) -> Dict[str, float]:
        return {c.value: getattr(self, c.value) for c in Characteristic}

    @classmethod
    def from_dict(cls, values: Dict[str, float]) -> "WineCharacteristics":
        return cls(**{c.value: float(values.get(c.value, 0.5)) for c in Characteristic})


@dataclass(frozen=True)
class FermentationOptions:
    """Options chosen when fermentation starts."""

    method: FermentationMethod = FermentationMethod.BASIC
    temperature: FermentationTemperature = FermentationTemperature.AMBIENT


@dataclass(frozen=True)
class CrushingOptions:
    """Options chosen when grapes are crushed."""

    method: CrushingMethod = CrushingMethod.PNEUMATIC_PRESS
    destemming: bool = True
    cold_soak: bool = False
    pressing_intensity: float = 0.5  # 0 (gentle) - 1 (hard)


@dataclass(frozen=True)
class Vineyard:
    """
    Vineyard entity, owned by the vineyard subsystem.

    The feature engine only reads it.
    """

    id: str
    name: str
    grape: Optional[str] = None
    country: str = ""
    region: str = ""
    ripeness: float = 0.5
    vineyard_prestige: float = 0.0


# ============================================================
# FEATURE DEFINITIONS
# ============================================================


@dataclass(frozen=True)
class TriggerContext:
    """Everything an event trigger may look at."""

    batch: Optional["WineBatch"] = None
    vineyard: Optional[Vineyard] = None
    options: Any = None
    season: Optional[Season] = None
    week: Optional[int] = None


TriggerCondition = Callable[[TriggerContext], bool]


@dataclass(frozen=True)
class EventTrigger:
    """
    Risk added when a production event happens.

    A trigger without a condition always fires for its event.
    """

    event: WineEvent
    risk_increase: Value
    condition: Optional[TriggerCondition] = None

    def applies(self, context: TriggerContext) -> bool:
        if self.condition is None:
            return True
        return bool(self.condition(context))


@dataclass(frozen=True)
class SeverityGrowth:
    """Weekly severity growth for graduated features."""

    rate: float
    cap: float = 1.0
    state_multipliers: Dict[BatchState, Value] = field(default_factory=dict)


@dataclass(frozen=True)
class RiskAccumulation:
    """
    Shape of a feature's risk model.

    The strategy is never declared here; it is inferred from which
    fields are populated.
    """

    base_rate: float = 0.0
    compound_effect: bool = False
    state_multipliers: Dict[BatchState, Value] = field(default_factory=dict)
    event_triggers: Tuple[EventTrigger, ...] = ()
    severity_growth: Optional[SeverityGrowth] = None

    # Each triggering event is a fresh, independent chance
    independent_events: bool = False

    # Weekly rate is multiplied by the grape's oxidation proneness
    scale_by_oxidation_proneness: bool = False

    def triggers_for(self, event: WineEvent) -> List[EventTrigger]:
        return [t for t in self.event_triggers if t.event == event]


@dataclass(frozen=True)
class LinearEffect:
    """Quality impact = amount * severity."""

    amount: Value


@dataclass(frozen=True)
class PowerEffect:
    """
    Quality impact = -base_penalty * (1 + severity ** exponent).

    The impact is a fraction of quality, so premium wines lose
    more absolute quality than poor ones.
    """

    base_penalty: float
    exponent: float


@dataclass(frozen=True)
class BonusEffect:
    """Quality impact = amount (or amount(severity) when computed)."""

    amount: Value


QualityEffect = Union[LinearEffect, PowerEffect, BonusEffect]


@dataclass(frozen=True)
class CharacteristicEffect:
    """Modifier on one characteristic, evaluated at current severity."""

    characteristic: Characteristic
    modifier: Value


@dataclass(frozen=True)
class FeatureEffects:
    quality: Optional[QualityEffect] = None
    characteristics: Tuple[CharacteristicEffect, ...] = ()


@dataclass(frozen=True)
class PreviewScenario:
    """One hypothetical context the preview engine evaluates."""

    group: str
    label: str
    context: TriggerContext
    options: Dict[str, Any] = field(default_factory=dict)


ScenarioBuilder = Callable[[TriggerContext], Iterable[PreviewScenario]]


@dataclass(frozen=True)
class RiskPreview:
    """Preview presentation for one event."""

    mode: PreviewMode = PreviewMode.SINGLE
    scenarios: Optional[ScenarioBuilder] = None


@dataclass(frozen=True)
class FeatureDefinition:
    """
    Immutable feature configuration.

    ============================================================
    STRATEGY
    ============================================================
    The risk accumulation strategy is inferred once when the
    definition is created and stored on `strategy`; callers
    never re-infer it.

    ============================================================
    """

    id: str
    name: str
    kind: FeatureKind
    manifestation: ManifestationStyle
    risk_accumulation: RiskAccumulation
    effects: FeatureEffects = field(default_factory=FeatureEffects)
    icon: str = ""
    description: str = ""
    customer_sensitivity: Dict[CustomerType, float] = field(default_factory=dict)
    display_priority: int = 0
    badge_color: str = "warning"
    tips: Tuple[str, ...] = ()

    # Present from batch creation (e.g. terroir)
    spawn_active: bool = False

    # Shown as a harvest-time influence rather than a risk
    harvest_context: bool = False

    # Preview presentation per event
    risk_preview: Dict[WineEvent, RiskPreview] = field(default_factory=dict)

    strategy: Optional[RiskStrategy] = None

    def __post_init__(self) -> None:
        if self.strategy is None:
            # Local import keeps types.py free of registry dependencies
            from .registry import infer_risk_accumulation_strategy
            object.__setattr__(
                self, "strategy", infer_risk_accumulation_strategy(self.risk_accumulation)
            )

    @property
    def is_fault(self) -> bool:
        return self.kind == FeatureKind.FAULT

    @property
    def is_graduated(self) -> bool:
        return self.manifestation == ManifestationStyle.GRADUATED

    def preview_for(self, event: Optional[WineEvent]) -> RiskPreview:
        if event is None:
            return RiskPreview()
        return self.risk_preview.get(event, RiskPreview())


# ============================================================
# BATCH ENTITIES
# ============================================================


@dataclass
class FeatureInstance:
    """
    Per-batch state of one feature.

    Invariants: risk and severity in [0, 1]; severity is 0 while
    the feature is not present.
    """

    id: str
    name: str = ""
    icon: str = ""
    risk: float = 0.0
    is_present: bool = False
    severity: float = 0.0

    @classmethod
    def blank(cls, definition: FeatureDefinition) -> "FeatureInstance":
        """Zero instance for a definition the batch has never tracked."""
        return cls(id=definition.id, name=definition.name, icon=definition.icon)

    def copy(self) -> "FeatureInstance":
        return replace(self)


@dataclass
class WineBatch:
    """
    Wine batch entity, owned by the inventory subsystem.

    The feature engine returns updated copies rather than mutating
    batches it is handed.
    """

    id: str
    vineyard_id: str
    vineyard_name: str
    grape: str
    state: BatchState = BatchState.GRAPES
    quantity: int = 0
    born_grape_quality: float = 0.5
    grape_quality: float = 0.5
    characteristics: WineCharacteristics = field(default_factory=WineCharacteristics)
    features: List[FeatureInstance] = field(default_factory=list)
    fermentation_options: Optional[FermentationOptions] = None
    grape_color: GrapeColor = GrapeColor.RED
    fragile: float = 0.0
    prone_to_oxidation: float = 0.0
    aging_progress: int = 0  # weeks since bottling

    def get_feature(self, feature_id: str) -> Optional[FeatureInstance]:
        for instance in self.features:
            if instance.id == feature_id:
                return instance
        return None

    def copy_with(self, **changes: Any) -> "WineBatch":
        """Copy the batch, deep-copying the feature list."""
        if "features" not in changes:
            changes["features"] = [f.copy() for f in self.features]
        return replace(self, **changes)


# ============================================================
# OUTPUT CONTRACTS
# ============================================================


@dataclass(frozen=True)
class RiskWarning:
    """Raised when a feature's risk crosses a warning threshold."""

    batch_id: str
    feature_id: str
    feature_name: str
    threshold: float
    risk: float

    @property
    def message(self) -> str:
        return (
            f"{self.feature_name} risk for batch {self.batch_id} reached "
            f"{self.risk:.1%} (threshold {self.threshold:.0%})"
        )


@dataclass(frozen=True)
class RiskAdvanceResult:
    """Result of one risk accumulation pass."""

    features: List[FeatureInstance]
    manifested: List[str] = field(default_factory=list)
    warnings: List[RiskWarning] = field(default_factory=list)


@dataclass(frozen=True)
class ActiveFeatureEffect:
    feature_id: str
    name: str
    icon: str
    kind: FeatureKind
    severity: float
    quality_impact: float
    quality_delta: float
    characteristic_effects: Dict[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class EvolvingFeature:
    feature_id: str
    name: str
    icon: str
    severity: float
    weekly_growth_rate: float
    weekly_effects: Dict[str, float] = field(default_factory=dict)
    weekly_quality_effect: float = 0.0


@dataclass(frozen=True)
class RiskFeature:
    feature_id: str
    name: str
    icon: str
    kind: FeatureKind
    risk: float
    expected_weeks: Optional[int] = None


@dataclass(frozen=True)
class FeatureDisplayData:
    """
    Aggregated feature view for a batch.

    Combined effects are signed sums over active features.
    """

    active_features: List[ActiveFeatureEffect] = field(default_factory=list)
    evolving_features: List[EvolvingFeature] = field(default_factory=list)
    risk_features: List[RiskFeature] = field(default_factory=list)
    combined_active_effects: Dict[str, float] = field(default_factory=dict)
    combined_weekly_effects: Dict[str, float] = field(default_factory=dict)
    total_quality_effect: float = 0.0

    @property
    def has_features(self) -> bool:
        return bool(self.active_features or self.risk_features)


@dataclass(frozen=True)
class RiskCombination:
    label: str
    risk: float
    options: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class RiskRange:
    group: str
    min_risk: float
    max_risk: float


@dataclass(frozen=True)
class FeatureRiskItem:
    """Projected risk of one feature for an upcoming event."""

    feature_id: str
    name: str
    icon: str
    kind: FeatureKind
    current_risk: float
    new_risk: float
    risk_increase: float
    is_present: bool = False
    quality_impact: Optional[float] = None
    description: str = ""
    context_info: str = ""
    risk_combinations: List[RiskCombination] = field(default_factory=list)
    risk_ranges: List[RiskRange] = field(default_factory=list)


@dataclass(frozen=True)
class FeatureRiskContext:
    """
    Where a preview is requested from.

    `type` is "vineyard" (harvest preview) or "winery" (batch action).
    """

    type: str
    event: Optional[WineEvent] = None
    batch: Optional[WineBatch] = None
    vineyard: Optional[Vineyard] = None
    next_action: Optional[WineryAction] = None
    options: Any = None
    season: Optional[Season] = None
    week: Optional[int] = None


@dataclass(frozen=True)
class FeatureRiskDisplayData:
    features: List[FeatureRiskItem] = field(default_factory=list)
    show_for_next_action: bool = False
    next_action: Optional[WineryAction] = None


@dataclass(frozen=True)
class CumulativeRisk:
    """Breakdown of a risk update from one source."""

    feature_id: str
    previous_risk: float
    new_risk: float
    total_risk: float
    source: str


@dataclass(frozen=True)
class AgingStatus:
    age_years: float
    stage: str
    peak_status: str
    progress: float


@dataclass(frozen=True)
class PriceImpact:
    """Estimated price with and without current features."""

    with_features: float
    without_features: float

    @property
    def difference(self) -> float:
        return round(self.with_features - self.without_features, 2)

    @property
    def percent_change(self) -> float:
        if self.without_features == 0:
            return 0.0
        return (self.with_features - self.without_features) / self.without_features


@dataclass(frozen=True)
class FeatureTickResult:
    """Result of one engine pass (weekly tick or event)."""

    batch: WineBatch
    manifested: List[str] = field(default_factory=list)
    warnings: List[RiskWarning] = field(default_factory=list)


# ============================================================
# ERROR TYPES
# ============================================================


class WineFeatureError(Exception):
    """Base exception for wine feature errors."""

    def __init__(self, message: str, batch_id: Optional[str] = None) -> None:
        super().__init__(message)
        self.batch_id = batch_id


class InvalidBatchError(WineFeatureError):
    """Raised when a batch cannot be processed at all."""
    pass


class FeatureEngineError(WineFeatureError):
    """Raised when an engine pass fails unexpectedly."""
    pass


class VineyardLookupError(WineFeatureError):
    """Raised by vineyard lookups that cannot resolve a vineyard."""
    pass
