"""
Tests for Quality and Price Derivation.
"""

import pytest
from unittest.mock import MagicMock

from wine_features.config import PricingConfig, WineFeatureConfig
from wine_features.effects import get_feature_display_data
from wine_features.pricing import (
    calculate_estimated_price,
    calculate_extreme_quality_multiplier,
    calculate_price_impact,
    calculate_wine_balance,
    calculate_wine_score,
    normalize_prestige,
)
from wine_features.types import (
    BatchState,
    FeatureInstance,
    PriceImpact,
    Vineyard,
    VineyardLookupError,
    WineBatch,
    WineCharacteristics,
)


# Midpoints of every balanced range: balance is exactly 1.0 here
BALANCED = WineCharacteristics(
    acidity=0.5, aroma=0.5, body=0.6, spice=0.5, sweetness=0.5, tannins=0.5
)


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def vineyard():
    """Vineyard with some prestige."""
    return Vineyard(id="v-1", name="Colline", grape="Barbera", vineyard_prestige=200.0)


@pytest.fixture
def clean_batch():
    """Balanced batch without features."""
    return WineBatch(
        id="batch-1",
        vineyard_id="v-1",
        vineyard_name="Colline",
        grape="Barbera",
        state=BatchState.MUST_FERMENTING,
        born_grape_quality=0.6,
        grape_quality=0.6,
        characteristics=BALANCED,
    )


@pytest.fixture
def oxidized_batch(clean_batch):
    """The same batch with oxidation present."""
    return clean_batch.copy_with(
        features=[FeatureInstance(id="oxidation", risk=0.3, is_present=True, severity=1.0)]
    )


# ============================================================
# BALANCE AND MULTIPLIER TESTS
# ============================================================

class TestBalance:
    """Tests for wine balance."""

    def test_midpoints_are_perfectly_balanced(self):
        """Test midpoint characteristics score 1.0."""
        assert calculate_wine_balance(BALANCED) == pytest.approx(1.0)

    def test_out_of_range_is_penalised(self):
        """Test distance outside a range counts twice."""
        characteristics = WineCharacteristics(
            acidity=0.8, aroma=0.5, body=0.6, spice=0.5, sweetness=0.5, tannins=0.5
        )

        assert calculate_wine_balance(characteristics) == pytest.approx(1 - 2 * (0.7 / 6))

    def test_balance_floor(self):
        """Test balance never goes negative."""
        extreme = WineCharacteristics(
            acidity=0.0, aroma=1.0, body=0.0, spice=1.0, sweetness=0.0, tannins=1.0
        )

        assert calculate_wine_balance(extreme) == 0.0


class TestMultipliers:
    """Tests for the extreme quality multiplier and prestige normalisation."""

    @pytest.mark.parametrize("value,expected", [
        (0.0, 1.0),
        (0.6, 1.15),
        (0.8, 2.125),
        (0.98, 50.0),
    ])
    def test_extreme_quality_multiplier(self, value, expected):
        """Test multiplier segments."""
        assert calculate_extreme_quality_multiplier(value) == pytest.approx(expected)

    def test_multiplier_explodes_above_098(self):
        """Test only near-perfect wines get astronomical multipliers."""
        assert calculate_extreme_quality_multiplier(0.95) == pytest.approx(10.0)
        assert calculate_extreme_quality_multiplier(0.99) == pytest.approx(50 * 10000 ** 0.05)
        assert calculate_extreme_quality_multiplier(1.5) == calculate_extreme_quality_multiplier(0.99999)

    def test_normalize_prestige(self):
        """Test prestige normalisation."""
        assert normalize_prestige(None) == 0.0
        assert normalize_prestige(0) == 0.0
        assert normalize_prestige(500) == pytest.approx(0.5)
        assert 0.9 < normalize_prestige(10_000) < 1.0


# ============================================================
# PRICE TESTS
# ============================================================

class TestEstimatedPrice:
    """Tests for score and price derivation."""

    def test_score_of_clean_batch(self, clean_batch):
        """Test score is the mean of quality and balance."""
        assert calculate_wine_score(clean_batch) == pytest.approx(0.8)

    def test_price_is_reproducible(self, oxidized_batch, vineyard):
        """Test identical inputs give identical prices."""
        first = calculate_estimated_price(oxidized_batch, vineyard, prestige=300)
        second = calculate_estimated_price(oxidized_batch, vineyard, prestige=300)

        assert first == second

    def test_faults_lower_price(self, clean_batch, oxidized_batch, vineyard):
        """Test a fault never raises the price of a balanced wine."""
        assert calculate_estimated_price(oxidized_batch, vineyard) < calculate_estimated_price(
            clean_batch, vineyard
        )

    def test_faults_lower_price_of_unbalanced_wine(self, vineyard):
        """Test fault characteristic shifts cannot buy back balance."""
        base = WineCharacteristics(aroma=1.0, body=1.0, sweetness=0.3)
        batch = WineBatch(
            id="batch-2",
            vineyard_id="v-1",
            vineyard_name="Colline",
            grape="Barbera",
            state=BatchState.MUST_FERMENTING,
            born_grape_quality=0.8,
            grape_quality=0.8,
            characteristics=base,
            features=[FeatureInstance(id="stuck_fermentation", risk=0.2, is_present=True, severity=1.0)],
        )
        clean = batch.copy_with(features=[])

        assert get_feature_display_data(batch).total_quality_effect == pytest.approx(-0.35)
        assert calculate_wine_score(batch) == pytest.approx((0.45 + calculate_wine_balance(base)) / 2)
        assert calculate_estimated_price(batch, vineyard) < calculate_estimated_price(clean, vineyard)

    def test_clean_price(self, clean_batch):
        """Test the price formula without prestige."""
        expected = round(0.8 * 25.0 * 2.125, 2)

        assert calculate_estimated_price(clean_batch) == pytest.approx(expected)

    def test_prestige_raises_price(self, clean_batch, vineyard):
        """Test company and vineyard prestige add to the price."""
        base = calculate_estimated_price(clean_batch)

        assert calculate_estimated_price(clean_batch, prestige=500) > base
        assert calculate_estimated_price(clean_batch, vineyard) > base
        assert calculate_estimated_price(clean_batch, vineyard, vineyard_prestige=0.0) == base

    def test_price_is_capped(self, clean_batch):
        """Test the configured maximum price applies."""
        config = WineFeatureConfig(pricing=PricingConfig(base_rate_per_bottle=1e12))

        assert calculate_estimated_price(clean_batch, config=config) == 99_999_999.99


class TestPriceImpact:
    """Tests for with/without feature price comparison."""

    def test_price_impact(self, oxidized_batch, vineyard):
        """Test the impact of a fault is negative."""
        lookup = MagicMock(return_value=vineyard)

        impact = calculate_price_impact(oxidized_batch, lookup)

        lookup.assert_called_once_with("v-1")
        assert isinstance(impact, PriceImpact)
        assert impact.difference < 0
        assert impact.percent_change < 0

    def test_failed_lookup(self, oxidized_batch):
        """Test a failing vineyard lookup reports unavailable."""
        lookup = MagicMock(side_effect=VineyardLookupError("vineyard store offline"))

        assert calculate_price_impact(oxidized_batch, lookup) is None

    def test_missing_vineyard(self, oxidized_batch):
        """Test an unknown vineyard reports unavailable."""
        assert calculate_price_impact(oxidized_batch, MagicMock(return_value=None)) is None
