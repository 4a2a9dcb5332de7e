"""
Harvest sequence planner.

A harvest strategy closes a position in partial steps. At step ``n`` the
loss band is ``(tp * n + tp / divisor) * remaining`` and it is compared
against a fixed reinvestable profit ``contracts * tp * harvest_fraction``.
While the band is larger, a percentage of the remaining contracts is closed
(rounded down to one decimal, at least 0.1). Once the profit covers the band
everything left is closed and the sequence ends.

The result must be bit-for-bit reproducible: it is compared against the
sequence persisted by the strategy runtime to detect configuration drift.
"""

import json
import math
from typing import Any, List, Optional, Sequence

from pydantic import AliasChoices, BaseModel, Field

from core.schemas.entities import MirrorBaseModel

MAX_HARVEST_STEPS = 20
MIN_HARVEST_STEP = 0.1
# Contracts at or below this count as fully closed
REMAINING_FLOOR = 0.05


class HarvestPlan(BaseModel):
    steps: List[float] = Field(default_factory=list)
    # The step cap cut the sequence and the remainder was emitted as one step
    truncated: bool = False

    @property
    def total(self) -> float:
        return math.fsum(self.steps)


def _round1(value: float) -> float:
    # Half-up to one decimal; round() would use banker's rounding
    return math.floor(value * 10 + 0.5) / 10


def _floor1(value: float) -> float:
    return math.floor(value * 10) / 10


def _is_degenerate(contracts: float, tp_points: float, band_divisor: float, harvest_fraction: float) -> bool:
    if not all(math.isfinite(v) for v in (contracts, tp_points, band_divisor, harvest_fraction)):
        return True
    # A zero harvest fraction is a valid setting: every step is the forced minimum
    return contracts <= 0 or tp_points <= 0 or band_divisor <= 0 or harvest_fraction < 0


def plan_harvest(
    contracts: float,
    tp_points: float,
    band_divisor: float,
    harvest_fraction: float,
) -> HarvestPlan:
    """Compute the partial-close sizes for one harvest cycle.

    Non-finite inputs, non-positive contracts, points or divisor and a negative
    harvest fraction give an empty plan rather than an error.
    """
    try:
        contracts = float(contracts)
        tp_points = float(tp_points)
        band_divisor = float(band_divisor)
        harvest_fraction = float(harvest_fraction)
    except (TypeError, ValueError):
        return HarvestPlan()

    if _is_degenerate(contracts, tp_points, band_divisor, harvest_fraction):
        return HarvestPlan()

    steps: List[float] = []
    truncated = False
    band = tp_points / band_divisor
    reinvestable = contracts * tp_points * harvest_fraction

    remaining = contracts
    n = 1
    while remaining > REMAINING_FLOOR:
        loss = (tp_points * n + band) * remaining

        if reinvestable < loss:
            pct = math.floor(reinvestable * 100 / loss)
            step = _floor1(remaining * pct / 100)
            if step <= 0:
                step = MIN_HARVEST_STEP
            steps.append(step)
            remaining = _round1(remaining - step)
            n += 1
        else:
            final = _round1(remaining)
            if final > 0:
                steps.append(final)
            remaining = 0.0

        if n > MAX_HARVEST_STEPS:
            if remaining > 0:
                steps.append(_round1(remaining))
                truncated = True
            break

    return HarvestPlan(steps=steps, truncated=truncated)


def plan_harvest_sequence(
    contracts: float,
    tp_points: float,
    band_divisor: float,
    harvest_fraction: float,
) -> List[float]:
    return plan_harvest(contracts, tp_points, band_divisor, harvest_fraction).steps


class HarvestConfig(MirrorBaseModel):
    """Harvest parameters of one instrument as edited before being committed."""
    epic: Optional[str] = None
    contracts: float = Field(validation_alias=AliasChoices("defaultContracts", "contracts"))
    tp_points: float = Field(validation_alias=AliasChoices("defaultTPPoints", "tpPoints", "tp_points"))
    order_distance_divisor: float = Field(
        validation_alias=AliasChoices("orderDistanceDivisor", "order_distance_divisor")
    )
    # 0-100, as shown to the user
    harvest_percentage: float = Field(
        ge=0, le=100, validation_alias=AliasChoices("harvestPercentage", "harvest_percentage")
    )

    @property
    def harvest_fraction(self) -> float:
        return self.harvest_percentage / 100

    def plan(self) -> HarvestPlan:
        return plan_harvest(
            self.contracts, self.tp_points, self.order_distance_divisor, self.harvest_fraction
        )

    def preview(self) -> List[float]:
        return self.plan().steps


class SequenceDrift(BaseModel):
    matches: bool
    mismatched_steps: List[int] = Field(default_factory=list)
    planned_total: float = 0.0
    persisted_total: float = 0.0


def detect_sequence_drift(planned: Sequence[float], persisted: Sequence[float]) -> SequenceDrift:
    """Exact step-by-step comparison; a length difference counts from the first missing index."""
    mismatched = [
        index
        for index in range(max(len(planned), len(persisted)))
        if index >= len(planned) or index >= len(persisted) or planned[index] != persisted[index]
    ]
    return SequenceDrift(
        matches=not mismatched,
        mismatched_steps=mismatched,
        planned_total=math.fsum(planned),
        persisted_total=math.fsum(persisted),
    )


def as_sequence(value: Any) -> Optional[List[float]]:
    """Return ``value`` as a list of step sizes, or None if it is not one."""
    if not isinstance(value, list):
        return None
    if not all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in value):
        return None
    return [float(v) for v in value]


def extract_persisted_sequence(instrument: Any) -> Optional[List[float]]:
    """Pull the persisted harvest sequence out of an instrument record.

    The strategy runtime stores it under ``metadata.strategyConfig.pascalFalciArray``;
    ``metadata`` is either an object or that object serialized as a JSON string.
    Returns None when the record carries no usable sequence.
    """
    if not isinstance(instrument, dict):
        return None
    metadata = instrument.get("metadata")
    if isinstance(metadata, str):
        try:
            metadata = json.loads(metadata)
        except ValueError:
            return None
    if not isinstance(metadata, dict):
        return None
    strategy_config = metadata.get("strategyConfig")
    if not isinstance(strategy_config, dict):
        return None
    return as_sequence(strategy_config.get("pascalFalciArray"))
