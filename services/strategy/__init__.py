"""
Strategy helpers that run client-side: harvest sequence planning and drift checks.
"""

from .harvest import (
    MAX_HARVEST_STEPS,
    MIN_HARVEST_STEP,
    REMAINING_FLOOR,
    HarvestConfig,
    HarvestPlan,
    SequenceDrift,
    as_sequence,
    detect_sequence_drift,
    extract_persisted_sequence,
    plan_harvest,
    plan_harvest_sequence,
)

__all__ = [
    "MAX_HARVEST_STEPS",
    "MIN_HARVEST_STEP",
    "REMAINING_FLOOR",
    "HarvestConfig",
    "HarvestPlan",
    "SequenceDrift",
    "as_sequence",
    "detect_sequence_drift",
    "extract_persisted_sequence",
    "plan_harvest",
    "plan_harvest_sequence",
]
