"""
Wine Feature Engine - Configuration.

============================================================
PURPOSE
============================================================
Defines all configuration dataclasses for the Wine Feature
Engine: manifestation policy, risk display thresholds, bottle
aging curve and price derivation constants.

Feature definitions themselves live in the registry; this
module only holds engine-wide tunables.

============================================================
DESIGN PRINCIPLES
============================================================
- Immutable configurations
- Every threshold documented where it is declared
- Environment overrides via WINE_FEATURES_* variables
- Presets for production and deterministic (test/replay) use

============================================================
"""

import os
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from dotenv import load_dotenv


MANIFESTATION_POLICIES = ("bernoulli", "threshold")


# ============================================================
# MANIFESTATION CONFIGURATION
# ============================================================


@dataclass(frozen=True)
class ManifestationConfig:
    """
    Configuration for turning risk into a manifested feature.

    ============================================================
    POLICIES
    ============================================================
    bernoulli:  one uniform draw per check, manifests if draw < risk
    threshold:  manifests only once risk >= `threshold`

    Risk of 1.0 always manifests under either policy.
    ============================================================
    """

    policy: str = "bernoulli"
    rng_seed: Optional[int] = None          # None = nondeterministic
    threshold: float = 1.0                  # used by the threshold policy

    # Initial severity of graduated features
    min_seed_severity: float = 0.001

    def to_dict(self) -> Dict[str, Any]:
        return {
            "policy": self.policy,
            "rng_seed": self.rng_seed,
            "threshold": self.threshold,
            "min_seed_severity": self.min_seed_severity,
        }


# ============================================================
# RISK DISPLAY CONFIGURATION
# ============================================================


@dataclass(frozen=True)
class RiskDisplayConfig:
    """
    Thresholds for risk warnings and risk labels.

    Label cutoffs (upper bounds, exclusive):
    - Minimal  < 5%
    - Low      < 8%
    - Moderate < 15%
    - High     < 30%
    - Critical otherwise
    """

    # Crossing any of these logs a warning for the batch
    warning_thresholds: Tuple[float, ...] = (0.10, 0.30)

    minimal_below: float = 0.05
    low_below: float = 0.08
    moderate_below: float = 0.15
    high_below: float = 0.30

    # Expected weeks to manifestation are shown only under this
    expected_weeks_cap: int = 50

    def to_dict(self) -> Dict[str, Any]:
        return {
            "warning_thresholds": list(self.warning_thresholds),
            "minimal_below": self.minimal_below,
            "low_below": self.low_below,
            "moderate_below": self.moderate_below,
            "high_below": self.high_below,
            "expected_weeks_cap": self.expected_weeks_cap,
        }


# ============================================================
# AGING CONFIGURATION
# ============================================================


@dataclass(frozen=True)
class AgingConfig:
    """
    Bottle aging curve.

    Progress is age / late peak, passed through a tail squash so
    it approaches but never reaches 1.0.
    """

    weeks_per_year: int = 52
    tail_threshold: float = 0.9
    tail_max_target: float = 0.9999
    tail_alpha: float = 8.0

    # Used when the grape has no aging profile
    default_early_peak: float = 2.0
    default_late_peak: float = 5.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "weeks_per_year": self.weeks_per_year,
            "tail_threshold": self.tail_threshold,
            "tail_max_target": self.tail_max_target,
            "tail_alpha": self.tail_alpha,
            "default_early_peak": self.default_early_peak,
            "default_late_peak": self.default_late_peak,
        }


# ============================================================
# PRICING CONFIGURATION
# ============================================================


@dataclass(frozen=True)
class PricingConfig:
    """
    Estimated price derivation.

    price = wine_score * base_rate_per_bottle
            * quality_multiplier(wine_score)
            * (1 + company_prestige_weight * norm(prestige))
            * (1 + vineyard_prestige_weight * norm(vineyard_prestige))
    """

    base_rate_per_bottle: float = 25.0
    max_price: float = 99_999_999.99
    company_prestige_weight: float = 0.25
    vineyard_prestige_weight: float = 0.25

    # Prestige at which the normalised value reaches its tail
    prestige_reference: float = 1000.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "base_rate_per_bottle": self.base_rate_per_bottle,
            "max_price": self.max_price,
            "company_prestige_weight": self.company_prestige_weight,
            "vineyard_prestige_weight": self.vineyard_prestige_weight,
            "prestige_reference": self.prestige_reference,
        }


# ============================================================
# MASTER CONFIGURATION
# ============================================================


@dataclass(frozen=True)
class WineFeatureConfig:
    """
    Master configuration for the Wine Feature Engine.

    Aggregates all sub-configs and engine settings.
    """

    manifestation: ManifestationConfig = field(default_factory=ManifestationConfig)
    risk_display: RiskDisplayConfig = field(default_factory=RiskDisplayConfig)
    aging: AgingConfig = field(default_factory=AgingConfig)
    pricing: PricingConfig = field(default_factory=PricingConfig)

    # Engine settings
    engine_version: str = "1.0.0"
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "WineFeatureConfig":
        """
        Load configuration from environment variables (and .env).

        Environment variables:
        - WINE_FEATURES_MANIFESTATION_POLICY   bernoulli | threshold
        - WINE_FEATURES_MANIFESTATION_THRESHOLD
        - WINE_FEATURES_RNG_SEED
        - WINE_FEATURES_MIN_SEED_SEVERITY
        - WINE_FEATURES_WARNING_THRESHOLDS     comma separated, e.g. "0.1,0.3"
        - WINE_FEATURES_BASE_PRICE
        - WINE_FEATURES_MAX_PRICE
        - WINE_FEATURES_LOG_LEVEL
        """
        load_dotenv()

        defaults = cls()

        policy = os.getenv("WINE_FEATURES_MANIFESTATION_POLICY", defaults.manifestation.policy)
        policy = policy.strip().lower()
        if policy not in MANIFESTATION_POLICIES:
            raise ValueError(
                f"WINE_FEATURES_MANIFESTATION_POLICY must be one of "
                f"{MANIFESTATION_POLICIES}, got {policy!r}"
            )

        seed = os.getenv("WINE_FEATURES_RNG_SEED")
        manifestation = ManifestationConfig(
            policy=policy,
            rng_seed=int(seed) if seed else None,
            threshold=float(os.getenv(
                "WINE_FEATURES_MANIFESTATION_THRESHOLD", defaults.manifestation.threshold
            )),
            min_seed_severity=float(os.getenv(
                "WINE_FEATURES_MIN_SEED_SEVERITY", defaults.manifestation.min_seed_severity
            )),
        )

        risk_display = defaults.risk_display
        thresholds = os.getenv("WINE_FEATURES_WARNING_THRESHOLDS")
        if thresholds:
            risk_display = RiskDisplayConfig(
                warning_thresholds=tuple(
                    sorted(float(t) for t in thresholds.split(",") if t.strip())
                ),
            )

        pricing = PricingConfig(
            base_rate_per_bottle=float(os.getenv(
                "WINE_FEATURES_BASE_PRICE", defaults.pricing.base_rate_per_bottle
            )),
            max_price=float(os.getenv("WINE_FEATURES_MAX_PRICE", defaults.pricing.max_price)),
        )

        return cls(
            manifestation=manifestation,
            risk_display=risk_display,
            pricing=pricing,
            log_level=os.getenv("WINE_FEATURES_LOG_LEVEL", defaults.log_level).upper(),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "manifestation": self.manifestation.to_dict(),
            "risk_display": self.risk_display.to_dict(),
            "aging": self.aging.to_dict(),
            "pricing": self.pricing.to_dict(),
            "engine_version": self.engine_version,
            "log_level": self.log_level,
        }


# ============================================================
# PRESETS
# ============================================================


def get_default_config() -> WineFeatureConfig:
    """Return the default configuration (random manifestation draws)."""
    return WineFeatureConfig()


def get_seeded_config(seed: int) -> WineFeatureConfig:
    """
    Return a configuration with a seeded manifestation RNG.

    Same seed and same inputs give the same manifestations.
    """
    return WineFeatureConfig(manifestation=ManifestationConfig(rng_seed=seed))


def get_deterministic_config(threshold: float = 1.0) -> WineFeatureConfig:
    """
    Return a configuration without randomness.

    Features manifest only once their risk reaches `threshold`.
    """
    return WineFeatureConfig(
        manifestation=ManifestationConfig(policy="threshold", threshold=threshold),
    )
