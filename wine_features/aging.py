"""
Wine Feature Engine - Bottle Aging.

Owns the bottle-age counter (`WineBatch.aging_progress`, weeks since
bottling) and the curve that turns it into bottle aging severity.
The severity engine reads `get_bottle_aging_severity` instead of
growing bottle aging on its own.
"""

import logging
from typing import Iterable, List, Optional

from .config import AgingConfig
from .grapes import get_aging_profile
from .types import AgingStatus, BatchState, WineBatch, clamp01, squash_normalize_tail


logger = logging.getLogger(__name__)


def _peaks(batch: WineBatch, config: AgingConfig):
    profile = get_aging_profile(batch.grape)
    if profile is None:
        return config.default_early_peak, config.default_late_peak
    return profile.early_peak, profile.late_peak


def calculate_aging_status(
    batch: WineBatch,
    config: Optional[AgingConfig] = None,
) -> AgingStatus:
    """
    Describe where a bottled batch sits on its aging curve.

    Args:
        batch: Batch to inspect (unbottled batches report age 0)
        config: Aging curve configuration

    Returns:
        AgingStatus with age in years, stage, peak status and progress
    """
    config = config or AgingConfig()

    if batch.state != BatchState.BOTTLED:
        return AgingStatus(age_years=0.0, stage="Not bottled", peak_status="n/a", progress=0.0)

    early_peak, late_peak = _peaks(batch, config)
    age_years = batch.aging_progress / config.weeks_per_year

    if age_years < early_peak:
        stage, peak_status = "Young", "Developing"
    elif age_years < late_peak:
        stage, peak_status = "Maturing", "At Peak"
    else:
        stage, peak_status = "Mature", "Past Peak"

    progress = squash_normalize_tail(
        age_years / late_peak if late_peak > 0 else 1.0,
        threshold=config.tail_threshold,
        max_target=config.tail_max_target,
        alpha=config.tail_alpha,
    )

    return AgingStatus(
        age_years=age_years,
        stage=stage,
        peak_status=peak_status,
        progress=clamp01(progress),
    )


def get_bottle_aging_severity(
    batch: WineBatch,
    config: Optional[AgingConfig] = None,
) -> float:
    """Severity of bottle aging, always derived from the aging counter."""
    if batch.state != BatchState.BOTTLED:
        return 0.0
    return calculate_aging_status(batch, config).progress


def process_weekly_aging(batches: Iterable[WineBatch]) -> List[WineBatch]:
    """
    Advance the aging counter of every bottled batch by one week.

    Returns copies; unbottled batches are returned unchanged.
    """
    updated = []
    for batch in batches:
        if batch.state == BatchState.BOTTLED:
            batch = batch.copy_with(aging_progress=batch.aging_progress + 1)
            logger.debug(f"Batch {batch.id} aged to {batch.aging_progress} weeks")
        updated.append(batch)
    return updated
