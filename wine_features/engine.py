"""
Wine Feature Engine - Main Orchestrator.

============================================================
PURPOSE
============================================================
The WineFeatureEngine is the main entry point for advancing
the features of wine batches.

It orchestrates, per weekly tick:
1. Input validation
2. Risk accumulation and manifestation
3. Bottle aging counter
4. Severity evolution
5. Effect application (feature-adjusted quality)

and, per production event, the same pipeline with the
event's triggers and the resulting state transition.

============================================================
DESIGN PRINCIPLES
============================================================
- Single responsibility: orchestration only
- Risk runs before severity, severity before effects
- Batches handed in are never mutated; copies are returned
- Batches are independent; no cross-batch state

============================================================
USAGE
============================================================
    from wine_features import WineFeatureEngine, WineEvent, Vineyard

    engine = WineFeatureEngine()

    batch = engine.create_batch("b-1", vineyard, quality=0.72, quantity=800)
    batch = engine.process_event(
        batch, WineEvent.HARVEST, vineyard=vineyard, season=Season.FALL, week=3
    ).batch

    result = engine.process_week(batch)
    print(format_feature_summary(engine.get_display_data(result.batch)))

============================================================
"""

import logging
from dataclasses import replace
from typing import Any, Callable, Iterable, List, Optional

from .aging import process_weekly_aging
from .config import WineFeatureConfig
from .effects import apply_feature_effects_to_batch, get_feature_display_data
from .grapes import get_grape
from .preview import get_feature_risks_for_display
from .pricing import calculate_estimated_price, calculate_price_impact
from .registry import get_all_feature_configs
from .risk import (
    ManifestationPolicy,
    RiskAccumulationEngine,
    initialize_batch_features,
)
from .severity import advance_feature_severity, sync_feature_severities
from .types import (
    BatchState,
    FeatureDefinition,
    FeatureDisplayData,
    FeatureEngineError,
    FeatureInstance,
    FeatureRiskContext,
    FeatureRiskDisplayData,
    FeatureTickResult,
    FermentationOptions,
    InvalidBatchError,
    PriceImpact,
    Season,
    TriggerContext,
    Vineyard,
    WineBatch,
    WineCharacteristics,
    WineEvent,
    WineFeatureError,
)


logger = logging.getLogger(__name__)


_STATE_AFTER_EVENT = {
    WineEvent.HARVEST: BatchState.GRAPES,
    WineEvent.CRUSHING: BatchState.MUST_READY,
    WineEvent.FERMENTATION: BatchState.MUST_FERMENTING,
    WineEvent.BOTTLING: BatchState.BOTTLED,
}


def get_state_after_event(event: WineEvent) -> BatchState:
    """Production state a batch is in once `event` has happened."""
    return _STATE_AFTER_EVENT[event]


def is_backward_transition(current: BatchState, target: BatchState) -> bool:
    """True when `target` comes before `current` in production order."""
    order = BatchState.production_order()
    return order.index(target) < order.index(current)


class WineFeatureEngine:
    """
    Main orchestrator for the Wine Feature Engine.

    ============================================================
    RESPONSIBILITIES
    ============================================================
    1. Create feature slots for new batches
    2. Run weekly ticks and production events
    3. Keep stored severities in sync with the aging counter
    4. Apply feature effects to grape quality
    5. Expose display, preview and pricing views

    ============================================================
    STATE MANAGEMENT
    ============================================================
    The only state kept between calls is the manifestation
    policy (and its RNG stream). Reuse one engine per game so a
    seeded policy replays identically.

    ============================================================
    """

    def __init__(
        self,
        config: Optional[WineFeatureConfig] = None,
        configs: Optional[Iterable[FeatureDefinition]] = None,
        policy: Optional[ManifestationPolicy] = None,
    ):
        """
        Initialize the Wine Feature Engine.

        Args:
            config: Engine configuration. Uses defaults if not provided.
            configs: Feature definitions. Uses the registry if not provided.
            policy: Manifestation policy. Built from config if not provided.
        """
        self.config = config or WineFeatureConfig()
        self._configs: List[FeatureDefinition] = (
            get_all_feature_configs() if configs is None else list(configs)
        )
        self._risk_engine = RiskAccumulationEngine(
            config=self.config, policy=policy, configs=self._configs
        )

    # --------------------------------------------------
    # Batch creation
    # --------------------------------------------------

    def create_batch_features(self) -> List[FeatureInstance]:
        """Feature slots for a newly harvested batch."""
        return initialize_batch_features(self._configs, self.config)

    def create_batch(
        self,
        batch_id: str,
        vineyard: Vineyard,
        quality: float,
        quantity: int = 0,
        grape: Optional[str] = None,
    ) -> WineBatch:
        """
        Create a batch of grapes from a vineyard.

        Grape traits (colour, fragility, oxidation proneness, base
        characteristics) come from the grape profile when known.
        """
        grape_name = grape or vineyard.grape or ""
        profile = get_grape(grape_name)

        batch = WineBatch(
            id=batch_id,
            vineyard_id=vineyard.id,
            vineyard_name=vineyard.name,
            grape=grape_name,
            state=BatchState.GRAPES,
            quantity=quantity,
            born_grape_quality=quality,
            grape_quality=quality,
            characteristics=profile.base_characteristics if profile else WineCharacteristics(),
            features=self.create_batch_features(),
        )
        if profile is not None:
            batch = replace(
                batch,
                grape_color=profile.color,
                fragile=profile.fragile,
                prone_to_oxidation=profile.prone_to_oxidation,
            )

        logger.info(f"Created batch {batch_id} of {grape_name or 'unknown grape'} from {vineyard.name}")
        return batch

    # --------------------------------------------------
    # Tick and event processing
    # --------------------------------------------------

    def process_week(self, batch: WineBatch) -> FeatureTickResult:
        """
        Advance a batch by one week.

        Args:
            batch: Batch to advance (not mutated)

        Returns:
            FeatureTickResult with the updated batch copy

        Raises:
            InvalidBatchError: If the batch cannot be processed
            FeatureEngineError: On unexpected failure
        """
        try:
            # --------------------------------------------------
            # Step 1: Validate input
            # --------------------------------------------------
            self._validate_batch(batch)

            # --------------------------------------------------
            # Step 2: Risk accumulation and manifestation
            # --------------------------------------------------
            risk_result = self._risk_engine.advance(batch)
            updated = batch.copy_with(features=risk_result.features)

            # --------------------------------------------------
            # Step 3: Bottle aging counter
            # --------------------------------------------------
            updated = process_weekly_aging([updated])[0]

            # --------------------------------------------------
            # Step 4: Severity evolution
            # --------------------------------------------------
            updated = updated.copy_with(
                features=advance_feature_severity(updated, self.config, self._configs)
            )

            # --------------------------------------------------
            # Step 5: Apply effects
            # --------------------------------------------------
            updated = apply_feature_effects_to_batch(updated, self.config, self._configs)

            return FeatureTickResult(
                batch=updated,
                manifested=risk_result.manifested,
                warnings=risk_result.warnings,
            )

        except InvalidBatchError:
            raise
        except Exception as e:
            raise FeatureEngineError(
                f"Weekly feature tick failed: {str(e)}",
                batch_id=getattr(batch, "id", None),
            ) from e

    def process_event(
        self,
        batch: WineBatch,
        event: WineEvent,
        options: Any = None,
        vineyard: Optional[Vineyard] = None,
        season: Optional[Season] = None,
        week: Optional[int] = None,
    ) -> FeatureTickResult:
        """
        Apply a production event to a batch.

        The batch moves to the state that follows the event. Chosen
        fermentation options are stored on the batch.
        Events that would move the batch backwards in production order
        are logged and ignored.

        Args:
            batch: Batch the event happens to (not mutated)
            event: Production event
            options: CrushingOptions / FermentationOptions for the event
            vineyard: Source vineyard (harvest triggers)
            season: Season of the event
            week: Week of the season

        Returns:
            FeatureTickResult with the updated batch copy

        Raises:
            InvalidBatchError: If the batch cannot be processed
            FeatureEngineError: On unexpected failure
        """
        try:
            # --------------------------------------------------
            # Step 1: Validate input
            # --------------------------------------------------
            self._validate_batch(batch)

            new_state = get_state_after_event(event)
            if is_backward_transition(batch.state, new_state):
                logger.warning(
                    f"Ignoring {event.value} for batch {batch.id}: "
                    f"already {batch.state.value}"
                )
                return FeatureTickResult(batch=batch.copy_with())

            # --------------------------------------------------
            # Step 2: Record chosen options
            # --------------------------------------------------
            if isinstance(options, FermentationOptions):
                batch = batch.copy_with(fermentation_options=options)

            # --------------------------------------------------
            # Step 3: Event triggers and manifestation
            # --------------------------------------------------
            context = TriggerContext(
                batch=batch, vineyard=vineyard, options=options, season=season, week=week
            )
            risk_result = self._risk_engine.advance(batch, event, context)

            # --------------------------------------------------
            # Step 4: State transition
            # --------------------------------------------------
            updated = batch.copy_with(features=risk_result.features, state=new_state)
            if new_state != batch.state:
                logger.info(
                    f"Batch {batch.id} {event.value}: {batch.state.value} -> {new_state.value}"
                )

            # --------------------------------------------------
            # Step 5: Severity sync and effects
            # --------------------------------------------------
            updated = updated.copy_with(features=sync_feature_severities(updated, self.config))
            updated = apply_feature_effects_to_batch(updated, self.config, self._configs)

            return FeatureTickResult(
                batch=updated,
                manifested=risk_result.manifested,
                warnings=risk_result.warnings,
            )

        except InvalidBatchError:
            raise
        except Exception as e:
            raise FeatureEngineError(
                f"Feature event {getattr(event, 'value', event)} failed: {str(e)}",
                batch_id=getattr(batch, "id", None),
            ) from e

    def _validate_batch(self, batch: WineBatch) -> None:
        """
        Validate a batch has the fields the pipeline needs.

        Raises:
            InvalidBatchError: If the batch is missing or malformed
        """
        if batch is None:
            raise InvalidBatchError("Batch is None")
        if not batch.id:
            raise InvalidBatchError("Batch id is required")
        if not isinstance(batch.state, BatchState):
            raise InvalidBatchError(f"Unknown batch state {batch.state!r}", batch_id=batch.id)

    # --------------------------------------------------
    # Views
    # --------------------------------------------------

    def get_display_data(self, batch: WineBatch) -> FeatureDisplayData:
        return get_feature_display_data(batch, self.config, self._configs)

    def preview(self, context: FeatureRiskContext) -> FeatureRiskDisplayData:
        return get_feature_risks_for_display(context, self.config, self._configs)

    def estimate_price(
        self,
        batch: WineBatch,
        vineyard: Optional[Vineyard] = None,
        prestige: Optional[float] = None,
        vineyard_prestige: Optional[float] = None,
    ) -> float:
        return calculate_estimated_price(
            batch, vineyard, prestige, vineyard_prestige, self.config, self._configs
        )

    def price_impact(
        self,
        batch: WineBatch,
        vineyard_lookup: Callable[[str], Optional[Vineyard]],
        prestige: Optional[float] = None,
    ) -> Optional[PriceImpact]:
        return calculate_price_impact(batch, vineyard_lookup, prestige, self.config, self._configs)

    def get_config(self) -> WineFeatureConfig:
        """Return the current engine configuration."""
        return self.config


# ============================================================
# CONVENIENCE FUNCTIONS
# ============================================================


def process_weekly_features(
    batches: Iterable[WineBatch],
    config: Optional[WineFeatureConfig] = None,
    policy: Optional[ManifestationPolicy] = None,
) -> List[FeatureTickResult]:
    """
    Run one weekly tick over many batches.

    Batches are independent; a failing batch is logged and returned
    unchanged so the rest of the week still advances.
    """
    engine = WineFeatureEngine(config=config, policy=policy)
    results = []
    for batch in batches:
        try:
            results.append(engine.process_week(batch))
        except WineFeatureError as e:
            logger.error(f"Skipping batch {e.batch_id} this week: {e}")
            results.append(FeatureTickResult(batch=batch))
    return results


def format_feature_summary(display: FeatureDisplayData, batch: Optional[WineBatch] = None) -> str:
    """
    Format a human-readable feature summary.

    Useful for logging and debugging.
    """
    lines = [
        "=" * 50,
        "WINE FEATURE SUMMARY" + (f" - {batch.id}" if batch else ""),
        "=" * 50,
        f"Total Quality Effect: {display.total_quality_effect:+.3f}",
        "",
        "Active Features:",
    ]
    if not display.active_features:
        lines.append("  (none)")
    for feature in display.active_features:
        lines.append(
            f"  {feature.name:<20} severity {feature.severity:.3f}  "
            f"quality {feature.quality_impact:+.3f}"
        )

    lines.extend(["", "Evolving:"])
    if not display.evolving_features:
        lines.append("  (none)")
    for feature in display.evolving_features:
        lines.append(f"  {feature.name:<20} +{feature.weekly_growth_rate:.4f}/week")

    lines.extend(["", "At Risk:"])
    if not display.risk_features:
        lines.append("  (none)")
    for feature in display.risk_features:
        weeks = f" (~{feature.expected_weeks} weeks)" if feature.expected_weeks else ""
        lines.append(f"  {feature.name:<20} {feature.risk:.1%}{weeks}")

    if display.combined_active_effects:
        lines.extend(["", "Characteristic Effects:"])
        for key, value in sorted(display.combined_active_effects.items()):
            lines.append(f"  {key:<20} {value:+.3f}")

    lines.append("=" * 50)
    return "\n".join(lines)
