"""
Tests for Risk Accumulation.

============================================================
PURPOSE
============================================================
Covers weekly and event risk accumulation, manifestation
policies, seed severity and risk warnings.

Deterministic tests use ThresholdManifestation so no random
draw is involved.

============================================================
"""

import pytest

from wine_features.config import WineFeatureConfig, get_deterministic_config
from wine_features.registry import get_all_feature_configs, get_feature_config
from wine_features.risk import (
    BernoulliManifestation,
    RiskAccumulationEngine,
    ThresholdManifestation,
    advance_feature_risk,
    create_manifestation_policy,
    get_seed_severity,
    initialize_batch_features,
)
from wine_features.types import (
    BatchState,
    Constant,
    CrushingOptions,
    EventTrigger,
    FeatureDefinition,
    FeatureInstance,
    FeatureKind,
    FermentationOptions,
    ManifestationStyle,
    RiskAccumulation,
    Season,
    TriggerContext,
    Vineyard,
    WineBatch,
    WineEvent,
)


NEVER = ThresholdManifestation(threshold=2.0)


def _time_based(base_rate, compound=False, multipliers=None, feature_id="test_fault"):
    return FeatureDefinition(
        id=feature_id,
        name="Test Fault",
        kind=FeatureKind.FAULT,
        manifestation=ManifestationStyle.BINARY,
        risk_accumulation=RiskAccumulation(
            base_rate=base_rate,
            compound_effect=compound,
            state_multipliers=multipliers or {},
        ),
    )


def _batch(state=BatchState.GRAPES, features=None, **kwargs):
    return WineBatch(
        id="batch-1",
        vineyard_id="v-1",
        vineyard_name="Colline",
        grape="Barbera",
        state=state,
        features=features or [],
        **kwargs,
    )


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def fermenting_definition():
    """Compounding fault with a 1.5x multiplier while fermenting."""
    return _time_based(0.02, compound=True, multipliers={BatchState.MUST_FERMENTING: Constant(1.5)})


@pytest.fixture
def vineyard():
    """Slightly underripe vineyard."""
    return Vineyard(id="v-1", name="Colline", grape="Barbera", ripeness=0.3)


# ============================================================
# WEEKLY ACCUMULATION TESTS
# ============================================================

class TestWeeklyAccumulation:
    """Tests for time-based risk accumulation."""

    def test_compound_trajectory(self, fermenting_definition):
        """Test risk follows r' = r + base * multiplier * (1 + r)."""
        engine = RiskAccumulationEngine(policy=NEVER, configs=[fermenting_definition])
        batch = _batch(state=BatchState.MUST_FERMENTING)

        expected = 0.0
        for _ in range(5):
            batch = batch.copy_with(features=engine.advance(batch).features)
            expected = expected + 0.02 * 1.5 * (1 + expected)
            assert batch.get_feature("test_fault").risk == pytest.approx(expected, abs=1e-9)

        assert batch.get_feature("test_fault").risk == pytest.approx(0.1593, abs=1e-3)

    def test_compound_grows_faster_than_linear(self):
        """Test compounding outpaces a flat rate."""
        compound = _time_based(0.05, compound=True)
        linear = _time_based(0.05, compound=False)

        results = {}
        for name, definition in (("compound", compound), ("linear", linear)):
            engine = RiskAccumulationEngine(policy=NEVER, configs=[definition])
            batch = _batch()
            for _ in range(10):
                batch = batch.copy_with(features=engine.advance(batch).features)
            results[name] = batch.get_feature("test_fault").risk

        assert results["compound"] > results["linear"]
        assert results["linear"] == pytest.approx(0.5)

    def test_risk_is_clamped(self):
        """Test risk never leaves [0, 1]."""
        definition = _time_based(0.9, compound=True, multipliers={BatchState.GRAPES: Constant(3.0)})
        engine = RiskAccumulationEngine(policy=NEVER, configs=[definition])
        batch = _batch()

        for _ in range(3):
            batch = batch.copy_with(features=engine.advance(batch).features)
            assert 0.0 <= batch.get_feature("test_fault").risk <= 1.0

        assert batch.get_feature("test_fault").risk == 1.0

    def test_risk_is_monotonic(self):
        """Test latent risk never decreases across ticks."""
        engine = RiskAccumulationEngine(policy=NEVER, configs=[_time_based(0.03)])
        batch = _batch()

        previous = 0.0
        for _ in range(20):
            batch = batch.copy_with(features=engine.advance(batch).features)
            risk = batch.get_feature("test_fault").risk
            assert risk >= previous
            previous = risk

    def test_oxidation_scaled_by_proneness(self):
        """Test oxidation risk scales with the grape's proneness."""
        oxidation = get_feature_config("oxidation")
        engine = RiskAccumulationEngine(policy=NEVER, configs=[oxidation])

        stable = engine.advance(_batch(prone_to_oxidation=0.0)).features[0]
        prone = engine.advance(_batch(prone_to_oxidation=0.5)).features[0]

        assert stable.risk == 0.0
        assert prone.risk == pytest.approx(0.02 * 3.0 * 0.5)

    def test_oxidation_while_fermenting_uses_options(self):
        """Test the fermenting multiplier reads the stored fermentation options."""
        oxidation = get_feature_config("oxidation")
        engine = RiskAccumulationEngine(policy=NEVER, configs=[oxidation])

        without_options = _batch(state=BatchState.MUST_FERMENTING, prone_to_oxidation=1.0)
        with_options = without_options.copy_with(fermentation_options=FermentationOptions())

        assert engine.advance(without_options).features[0].risk == pytest.approx(0.016)
        assert engine.advance(with_options).features[0].risk == pytest.approx(0.016)

    def test_weekly_tick_ignores_event_features(self):
        """Test event-only features are untouched by weekly ticks."""
        engine = RiskAccumulationEngine(policy=NEVER)
        batch = _batch(prone_to_oxidation=0.5)

        result = engine.advance(batch)
        risks = {f.id: f.risk for f in result.features}

        assert risks["green_flavor"] == 0.0
        assert risks["stuck_fermentation"] == 0.0
        assert risks["oxidation"] > 0.0


# ============================================================
# EVENT ACCUMULATION TESTS
# ============================================================

class TestEventAccumulation:
    """Tests for event-triggered, independent and cumulative strategies."""

    def test_event_risk_stacks(self, vineyard):
        """Test harvest and crushing risk add up for green flavor."""
        engine = RiskAccumulationEngine(policy=NEVER, configs=[get_feature_config("green_flavor")])
        batch = _batch()

        batch = batch.copy_with(features=engine.advance(
            batch, WineEvent.HARVEST, TriggerContext(vineyard=vineyard)
        ).features)
        assert batch.get_feature("green_flavor").risk == pytest.approx(0.12)

        batch = batch.copy_with(features=engine.advance(
            batch, WineEvent.CRUSHING, TriggerContext(options=CrushingOptions())
        ).features)
        assert batch.get_feature("green_flavor").risk == pytest.approx(0.17)

    def test_non_applicable_event_is_noop(self):
        """Test a ripe harvest leaves green flavor risk alone."""
        engine = RiskAccumulationEngine(policy=NEVER, configs=[get_feature_config("green_flavor")])
        batch = _batch(features=[FeatureInstance(id="green_flavor", risk=0.2)])

        result = engine.advance(
            batch, WineEvent.HARVEST, TriggerContext(vineyard=Vineyard(id="v", name="V", ripeness=0.9))
        )

        assert result.features[0].risk == pytest.approx(0.2)

    def test_independent_failed_draw_leaves_no_risk(self):
        """Test an independent chance that does not manifest resets to zero."""
        engine = RiskAccumulationEngine(
            policy=ThresholdManifestation(1.0),
            configs=[get_feature_config("stuck_fermentation")],
        )
        batch = _batch(
            state=BatchState.MUST_READY,
            features=[FeatureInstance(id="stuck_fermentation", risk=0.25)],
        )

        result = engine.advance(
            batch, WineEvent.FERMENTATION, TriggerContext(options=FermentationOptions())
        )

        assert result.manifested == []
        assert result.features[0].risk == 0.0
        assert not result.features[0].is_present

    def test_independent_does_not_stack(self):
        """Test independent chances use this event's increase only."""
        policy = ThresholdManifestation(0.5)
        engine = RiskAccumulationEngine(policy=policy, configs=[get_feature_config("late_harvest")])
        batch = _batch(features=[FeatureInstance(id="late_harvest", risk=0.45)])

        result = engine.advance(
            batch, WineEvent.HARVEST, TriggerContext(season=Season.FALL, week=9)
        )

        # 0.45 + 0.25 would cross the threshold; 0.25 alone does not
        assert result.manifested == []
        assert result.features[0].risk == 0.0

    def test_cumulative_strategy(self):
        """Test a cumulative feature grows weekly and stacks event risk."""
        definition = FeatureDefinition(
            id="cumulative",
            name="Cumulative",
            kind=FeatureKind.FAULT,
            manifestation=ManifestationStyle.BINARY,
            risk_accumulation=RiskAccumulation(
                base_rate=0.01,
                event_triggers=(EventTrigger(WineEvent.CRUSHING, Constant(0.1)),),
            ),
        )
        engine = RiskAccumulationEngine(policy=NEVER, configs=[definition])
        batch = _batch()

        batch = batch.copy_with(features=engine.advance(batch, WineEvent.CRUSHING).features)
        batch = batch.copy_with(features=engine.advance(batch).features)

        assert batch.get_feature("cumulative").risk == pytest.approx(0.11)

    def test_none_strategy_is_noop(self):
        """Test unclassifiable features never change."""
        definition = FeatureDefinition(
            id="inert",
            name="Inert",
            kind=FeatureKind.TRAIT,
            manifestation=ManifestationStyle.BINARY,
            risk_accumulation=RiskAccumulation(),
        )
        engine = RiskAccumulationEngine(policy=ThresholdManifestation(0.0), configs=[definition])
        batch = _batch()

        for event in (None, WineEvent.HARVEST, WineEvent.BOTTLING):
            result = engine.advance(batch, event)
            assert result.features[0].risk == 0.0
            assert not result.features[0].is_present


# ============================================================
# MANIFESTATION TESTS
# ============================================================

class TestManifestation:
    """Tests for manifestation policies and seed severity."""

    def test_bernoulli_bounds(self):
        """Test zero risk never manifests and full risk always does."""
        policy = BernoulliManifestation(seed=1)

        assert not any(policy.should_manifest(0.0) for _ in range(100))
        assert all(policy.should_manifest(1.0) for _ in range(100))

    def test_bernoulli_seeded_reproducible(self):
        """Test the same seed gives the same manifestation sequence."""
        first = BernoulliManifestation(seed=42)
        second = BernoulliManifestation(seed=42)

        draws_a = [first.should_manifest(0.5) for _ in range(50)]
        draws_b = [second.should_manifest(0.5) for _ in range(50)]

        assert draws_a == draws_b
        assert any(draws_a) and not all(draws_a)

    def test_threshold_policy(self):
        """Test the threshold policy fires at and above its threshold only."""
        policy = ThresholdManifestation(0.3)

        assert not policy.should_manifest(0.29)
        assert policy.should_manifest(0.3)
        assert not ThresholdManifestation(0.0).should_manifest(0.0)

    def test_create_policy_from_config(self):
        """Test the configured policy is built."""
        assert isinstance(create_manifestation_policy(), BernoulliManifestation)
        policy = create_manifestation_policy(get_deterministic_config(0.4).manifestation)
        assert isinstance(policy, ThresholdManifestation)
        assert policy.threshold == 0.4

    def test_binary_manifests_at_full_severity(self):
        """Test binary features start at severity 1.0."""
        engine = RiskAccumulationEngine(policy=ThresholdManifestation(0.01), configs=[_time_based(0.05)])

        result = engine.advance(_batch())
        instance = result.features[0]

        assert result.manifested == ["test_fault"]
        assert instance.is_present
        assert instance.severity == 1.0

    def test_manifested_features_are_frozen(self):
        """Test present features no longer accumulate risk."""
        engine = RiskAccumulationEngine(policy=NEVER, configs=[_time_based(0.05)])
        batch = _batch(features=[FeatureInstance(id="test_fault", risk=0.4, is_present=True, severity=1.0)])

        for _ in range(5):
            batch = batch.copy_with(features=engine.advance(batch).features)

        instance = batch.get_feature("test_fault")
        assert instance.risk == pytest.approx(0.4)
        assert instance.severity == 1.0

    def test_graduated_event_seed_uses_risk(self):
        """Test an event-driven graduated feature seeds severity from its risk."""
        engine = RiskAccumulationEngine(
            policy=ThresholdManifestation(0.5),
            configs=[get_feature_config("late_harvest")],
        )

        result = engine.advance(_batch(), WineEvent.HARVEST, TriggerContext(season=Season.FALL, week=12))

        assert result.manifested == ["late_harvest"]
        assert result.features[0].severity == pytest.approx(0.5)

    def test_severity_growth_seed_is_minimal(self):
        """Test bottle aging starts at the minimal seed severity."""
        engine = RiskAccumulationEngine(configs=[get_feature_config("bottle_aging")])

        result = engine.advance(_batch(state=BatchState.MUST_FERMENTING), WineEvent.BOTTLING)

        assert result.manifested == ["bottle_aging"]
        assert result.features[0].severity == pytest.approx(0.001)

    def test_get_seed_severity(self):
        """Test the seed severity rules directly."""
        assert get_seed_severity(get_feature_config("oxidation"), 0.2, 0.001) == 1.0
        assert get_seed_severity(get_feature_config("terroir"), 0.9, 0.001) == 0.001
        assert get_seed_severity(get_feature_config("late_harvest"), 0.0, 0.001) == 0.001
        assert get_seed_severity(get_feature_config("late_harvest"), 0.7, 0.001) == pytest.approx(0.7)


# ============================================================
# ENGINE BEHAVIOUR TESTS
# ============================================================

class TestRiskEngine:
    """Tests for the risk engine pass itself."""

    def test_input_batch_not_mutated(self):
        """Test the engine works on copies."""
        batch = _batch(prone_to_oxidation=0.5, features=initialize_batch_features())
        snapshot = batch.copy_with()

        RiskAccumulationEngine(policy=NEVER).advance(batch)

        assert batch == snapshot

    def test_missing_instances_are_synthesized(self):
        """Test a batch without instances gets one per definition."""
        features = advance_feature_risk(_batch(), policy=NEVER)

        assert [f.id for f in features] == [d.id for d in get_all_feature_configs()]

    def test_warning_on_threshold_crossing(self):
        """Test a warning is emitted once per crossed threshold."""
        engine = RiskAccumulationEngine(policy=NEVER, configs=[_time_based(0.2)])
        batch = _batch()

        first = engine.advance(batch)
        batch = batch.copy_with(features=first.features)
        second = engine.advance(batch)
        batch = batch.copy_with(features=second.features)
        third = engine.advance(batch)

        assert [w.threshold for w in first.warnings] == [0.10]
        assert [w.threshold for w in second.warnings] == [0.30]
        assert third.warnings == []
        assert "Test Fault" in first.warnings[0].message

    def test_no_warning_for_spawned_traits(self, caplog):
        """Test bottling spawns bottle aging without risk warnings."""
        engine = RiskAccumulationEngine(configs=[get_feature_config("bottle_aging")])

        with caplog.at_level("WARNING", logger="wine_features.risk"):
            result = engine.advance(_batch(state=BatchState.MUST_FERMENTING), WineEvent.BOTTLING)

        assert result.manifested == ["bottle_aging"]
        assert result.warnings == []
        assert "Bottle Aging" not in caplog.text

    def test_initialize_batch_features(self):
        """Test spawn-active traits start present at the seed severity."""
        features = {f.id: f for f in initialize_batch_features(config=WineFeatureConfig())}

        assert features["terroir"].is_present
        assert features["terroir"].severity == pytest.approx(0.001)
        assert not features["oxidation"].is_present
        assert features["oxidation"].severity == 0.0
