"""
Tests for configuration and API schemas.
"""

import pytest
from unittest.mock import patch

from wine_features.config import (
    WineFeatureConfig,
    get_default_config,
    get_deterministic_config,
    get_seeded_config,
)
from wine_features.effects import get_feature_display_data
from wine_features.preview import get_feature_risks_for_display
from wine_features.risk import BernoulliManifestation, create_manifestation_policy
from wine_features.schemas import (
    FeatureDisplayResponse,
    FeatureRiskDisplayResponse,
    PriceImpactResponse,
)
from wine_features.types import (
    BatchState,
    FeatureInstance,
    FeatureRiskContext,
    PriceImpact,
    WineBatch,
    WineryAction,
)


ENV_VARS = (
    "WINE_FEATURES_MANIFESTATION_POLICY",
    "WINE_FEATURES_MANIFESTATION_THRESHOLD",
    "WINE_FEATURES_RNG_SEED",
    "WINE_FEATURES_MIN_SEED_SEVERITY",
    "WINE_FEATURES_WARNING_THRESHOLDS",
    "WINE_FEATURES_BASE_PRICE",
    "WINE_FEATURES_MAX_PRICE",
    "WINE_FEATURES_LOG_LEVEL",
)


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def clean_env(monkeypatch):
    """Environment without any WINE_FEATURES_* overrides."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.fixture
def batch():
    """Fermenting batch with an active fault and an evolving trait."""
    return WineBatch(
        id="batch-1",
        vineyard_id="v-1",
        vineyard_name="Colline",
        grape="Barbera",
        state=BatchState.MUST_FERMENTING,
        born_grape_quality=0.7,
        grape_quality=0.7,
        features=[
            FeatureInstance(id="oxidation", risk=0.3, is_present=True, severity=1.0),
            FeatureInstance(id="green_flavor", risk=0.12),
            FeatureInstance(id="terroir", is_present=True, severity=0.2),
        ],
    )


# ============================================================
# CONFIGURATION TESTS
# ============================================================

class TestConfig:
    """Tests for configuration defaults, presets and environment loading."""

    def test_defaults(self):
        """Test the default configuration."""
        config = get_default_config()

        assert config.manifestation.policy == "bernoulli"
        assert config.manifestation.min_seed_severity == 0.001
        assert config.risk_display.warning_thresholds == (0.10, 0.30)
        assert config.pricing.base_rate_per_bottle == 25.0
        assert config.aging.weeks_per_year == 52

    def test_to_dict(self):
        """Test serialisation of the full configuration."""
        data = WineFeatureConfig().to_dict()

        assert set(data) == {
            "manifestation", "risk_display", "aging", "pricing", "engine_version", "log_level"
        }
        assert data["risk_display"]["warning_thresholds"] == [0.10, 0.30]

    def test_presets(self):
        """Test seeded and deterministic presets."""
        seeded = get_seeded_config(7)
        deterministic = get_deterministic_config(0.25)

        assert seeded.manifestation.rng_seed == 7
        assert deterministic.manifestation.policy == "threshold"
        assert deterministic.manifestation.threshold == 0.25

    def test_seeded_policies_replay(self):
        """Test two policies from the same seeded config draw identically."""
        config = get_seeded_config(11)
        first = create_manifestation_policy(config.manifestation)
        second = create_manifestation_policy(config.manifestation)

        assert isinstance(first, BernoulliManifestation)
        assert [first.should_manifest(0.3) for _ in range(30)] == [
            second.should_manifest(0.3) for _ in range(30)
        ]

    def test_from_env_defaults(self, clean_env):
        """Test from_env without overrides matches the defaults."""
        with patch("wine_features.config.load_dotenv"):
            config = WineFeatureConfig.from_env()

        assert config.manifestation == get_default_config().manifestation
        assert config.pricing == get_default_config().pricing

    def test_from_env_overrides(self, clean_env):
        """Test environment overrides are applied."""
        clean_env.setenv("WINE_FEATURES_MANIFESTATION_POLICY", "Threshold")
        clean_env.setenv("WINE_FEATURES_MANIFESTATION_THRESHOLD", "0.6")
        clean_env.setenv("WINE_FEATURES_RNG_SEED", "99")
        clean_env.setenv("WINE_FEATURES_WARNING_THRESHOLDS", "0.5, 0.2")
        clean_env.setenv("WINE_FEATURES_BASE_PRICE", "30")
        clean_env.setenv("WINE_FEATURES_LOG_LEVEL", "debug")

        with patch("wine_features.config.load_dotenv") as mock_load:
            config = WineFeatureConfig.from_env()

        mock_load.assert_called_once()
        assert config.manifestation.policy == "threshold"
        assert config.manifestation.threshold == 0.6
        assert config.manifestation.rng_seed == 99
        assert config.risk_display.warning_thresholds == (0.2, 0.5)
        assert config.pricing.base_rate_per_bottle == 30.0
        assert config.log_level == "DEBUG"

    def test_from_env_rejects_unknown_policy(self, clean_env):
        """Test an unknown manifestation policy is rejected."""
        clean_env.setenv("WINE_FEATURES_MANIFESTATION_POLICY", "coin-flip")

        with patch("wine_features.config.load_dotenv"):
            with pytest.raises(ValueError):
                WineFeatureConfig.from_env()


# ============================================================
# SCHEMA TESTS
# ============================================================

class TestSchemas:
    """Tests for pydantic response schemas."""

    def test_feature_display_response(self, batch):
        """Test display data converts to a response payload."""
        response = FeatureDisplayResponse.from_display_data(batch.id, get_feature_display_data(batch))

        assert response.success
        assert response.batch_id == "batch-1"
        assert [f.feature_id for f in response.data.active_features] == ["oxidation", "terroir"]
        assert response.data.active_features[0].kind == "fault"
        assert response.data.evolving_features[0].feature_id == "terroir"
        assert response.data.risk_features[0].feature_id == "green_flavor"

        payload = response.model_dump()
        assert payload["data"]["total_quality_effect"] == pytest.approx(
            response.data.total_quality_effect
        )

    def test_feature_risk_display_response(self, batch):
        """Test preview data converts to a response payload."""
        ready = batch.copy_with(state=BatchState.MUST_READY)
        data = get_feature_risks_for_display(FeatureRiskContext(
            type="winery", batch=ready, next_action=WineryAction.FERMENT
        ))

        response = FeatureRiskDisplayResponse.from_risk_display_data(data)

        assert response.next_action == "ferment"
        assert response.show_for_next_action
        assert len(response.features[0].risk_combinations) == 9
        assert response.features[0].risk_combinations[0].options["temperature"] == "Cool"

    def test_price_impact_response(self):
        """Test available and unavailable price impacts."""
        available = PriceImpactResponse.from_price_impact(
            "batch-1", PriceImpact(with_features=10.0, without_features=12.5)
        )
        unavailable = PriceImpactResponse.from_price_impact("batch-1", None)

        assert available.available
        assert available.difference == -2.5
        assert not unavailable.available
        assert unavailable.with_features is None
