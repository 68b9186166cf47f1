"""
Pydantic schemas for handing feature views to the UI layer.
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .types import FeatureDisplayData, FeatureRiskDisplayData, PriceImpact


# =======================
# COMMON
# =======================

class BaseResponse(BaseModel):
    success: bool = True
    message: Optional[str] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

# =======================
# 1. FEATURE DISPLAY
# =======================

class ActiveFeatureSchema(BaseModel):
    model_config = ConfigDict(frozen=True)

    feature_id: str
    name: str
    icon: str
    kind: str  # fault, trait
    severity: float
    quality_impact: float
    quality_delta: float
    characteristic_effects: Dict[str, float]

class EvolvingFeatureSchema(BaseModel):
    model_config = ConfigDict(frozen=True)

    feature_id: str
    name: str
    icon: str
    severity: float
    weekly_growth_rate: float
    weekly_effects: Dict[str, float]
    weekly_quality_effect: float

class RiskFeatureSchema(BaseModel):
    model_config = ConfigDict(frozen=True)

    feature_id: str
    name: str
    icon: str
    kind: str
    risk: float
    expected_weeks: Optional[int] = None

class FeatureDisplaySchema(BaseModel):
    active_features: List[ActiveFeatureSchema]
    evolving_features: List[EvolvingFeatureSchema]
    risk_features: List[RiskFeatureSchema]
    combined_active_effects: Dict[str, float]
    combined_weekly_effects: Dict[str, float]
    total_quality_effect: float

class FeatureDisplayResponse(BaseResponse):
    batch_id: str
    data: FeatureDisplaySchema

    @classmethod
    def from_display_data(cls, batch_id: str, display: FeatureDisplayData) -> "FeatureDisplayResponse":
        data = FeatureDisplaySchema(
            active_features=[
                ActiveFeatureSchema(
                    feature_id=f.feature_id,
                    name=f.name,
                    icon=f.icon,
                    kind=f.kind.value,
                    severity=f.severity,
                    quality_impact=f.quality_impact,
                    quality_delta=f.quality_delta,
                    characteristic_effects=dict(f.characteristic_effects),
                )
                for f in display.active_features
            ],
            evolving_features=[
                EvolvingFeatureSchema(
                    feature_id=f.feature_id,
                    name=f.name,
                    icon=f.icon,
                    severity=f.severity,
                    weekly_growth_rate=f.weekly_growth_rate,
                    weekly_effects=dict(f.weekly_effects),
                    weekly_quality_effect=f.weekly_quality_effect,
                )
                for f in display.evolving_features
            ],
            risk_features=[
                RiskFeatureSchema(
                    feature_id=f.feature_id,
                    name=f.name,
                    icon=f.icon,
                    kind=f.kind.value,
                    risk=f.risk,
                    expected_weeks=f.expected_weeks,
                )
                for f in display.risk_features
            ],
            combined_active_effects=dict(display.combined_active_effects),
            combined_weekly_effects=dict(display.combined_weekly_effects),
            total_quality_effect=display.total_quality_effect,
        )
        return cls(batch_id=batch_id, data=data)

# =======================
# 2. RISK PREVIEW
# =======================

class RiskCombinationSchema(BaseModel):
    label: str
    risk: float
    options: Dict[str, Any] = {}

class RiskRangeSchema(BaseModel):
    group: str
    min_risk: float
    max_risk: float

class FeatureRiskSchema(BaseModel):
    feature_id: str
    name: str
    icon: str
    kind: str
    current_risk: float
    new_risk: float
    risk_increase: float
    is_present: bool
    quality_impact: Optional[float] = None
    description: str = ""
    context_info: str = ""
    risk_combinations: List[RiskCombinationSchema] = []
    risk_ranges: List[RiskRangeSchema] = []

class FeatureRiskDisplayResponse(BaseResponse):
    features: List[FeatureRiskSchema]
    show_for_next_action: bool
    next_action: Optional[str] = None  # crush, ferment, bottle

    @classmethod
    def from_risk_display_data(cls, data: FeatureRiskDisplayData) -> "FeatureRiskDisplayResponse":
        return cls(
            features=[
                FeatureRiskSchema(
                    feature_id=item.feature_id,
                    name=item.name,
                    icon=item.icon,
                    kind=item.kind.value,
                    current_risk=item.current_risk,
                    new_risk=item.new_risk,
                    risk_increase=item.risk_increase,
                    is_present=item.is_present,
                    quality_impact=item.quality_impact,
                    description=item.description,
                    context_info=item.context_info,
                    risk_combinations=[
                        RiskCombinationSchema(label=c.label, risk=c.risk, options=dict(c.options))
                        for c in item.risk_combinations
                    ],
                    risk_ranges=[
                        RiskRangeSchema(group=r.group, min_risk=r.min_risk, max_risk=r.max_risk)
                        for r in item.risk_ranges
                    ],
                )
                for item in data.features
            ],
            show_for_next_action=data.show_for_next_action,
            next_action=data.next_action.value if data.next_action else None,
        )

# =======================
# 3. PRICE IMPACT
# =======================

class PriceImpactResponse(BaseResponse):
    batch_id: str
    available: bool
    with_features: Optional[float] = None
    without_features: Optional[float] = None
    difference: Optional[float] = None

    @classmethod
    def from_price_impact(cls, batch_id: str, impact: Optional[PriceImpact]) -> "PriceImpactResponse":
        if impact is None:
            return cls(batch_id=batch_id, available=False, message="Price impact unavailable")
        return cls(
            batch_id=batch_id,
            available=True,
            with_features=impact.with_features,
            without_features=impact.without_features,
            difference=impact.difference,
        )
