"""
Scheduler Parameters

The FSRS weight table and the per-retention scheduler configuration.

Weights are a replaceable calibration table: any FSRS-5 family parameter set
can be passed to the scheduler without touching the update rules.

    w[0..3]   seed stability for Again/Hard/Good/Easy
    w[4..5]   seed difficulty
    w[6..7]   difficulty step and mean reversion
    w[8..10]  recall stability growth
    w[11..14] post-lapse stability
    w[15..16] hard penalty / easy bonus
    w[17..18] short-term factors (cap on post-lapse stability)
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import timedelta
from numbers import Real
from typing import Optional, Sequence

from loguru import logger

from kstudy.fsrs.constants import (
    DEFAULT_DESIRED_RETENTION,
    MAXIMUM_INTERVAL,
    RELEARNING_STEP,
    RETENTION_CEILING,
    RETENTION_FLOOR,
)
from kstudy.fsrs.errors import InvalidConfig


# FSRS-5 default weights
DEFAULT_WEIGHTS = (
    0.40255, 1.18385, 3.173, 15.69105,
    7.1949, 0.5345,
    1.4604, 0.0046,
    1.54575, 0.1192, 1.01925,
    1.9395, 0.11, 0.29605, 2.2698,
    0.2315, 2.9898,
    0.51655, 0.6621,
)

WEIGHT_COUNT = len(DEFAULT_WEIGHTS)


@dataclass(frozen=True)
class FSRSParameters:
    """Immutable weight table for the memory model."""
    weights: tuple[float, ...] = DEFAULT_WEIGHTS

    def __post_init__(self):
        weights = tuple(self.weights)
        if len(weights) != WEIGHT_COUNT:
            raise InvalidConfig(
                f"Expected {WEIGHT_COUNT} FSRS weights, got {len(weights)}"
            )
        if not all(isinstance(w, Real) and math.isfinite(w) for w in weights):
            raise InvalidConfig("FSRS weights must be finite numbers")
        object.__setattr__(self, "weights", tuple(float(w) for w in weights))

    def __getitem__(self, index: int) -> float:
        return self.weights[index]


def normalize_retention(desired_retention) -> float:
    """
    Validate a desired retention and saturate it into the supported range.

    Args:
        desired_retention: Target recall probability

    Returns:
        Retention clamped to [RETENTION_FLOOR, RETENTION_CEILING]

    Raises:
        InvalidConfig: If the value is not a real number in (0, 1)
    """
    if isinstance(desired_retention, bool) or not isinstance(desired_retention, Real):
        raise InvalidConfig(f"Desired retention must be a number, got {desired_retention!r}")
    value = float(desired_retention)
    if not (0.0 < value < 1.0):
        raise InvalidConfig(f"Desired retention must be in (0, 1), got {value}")
    return max(RETENTION_FLOOR, min(RETENTION_CEILING, value))


def retention_key(desired_retention) -> float:
    """Cache key for a retention: normalized and rounded to 3 decimals."""
    return round(normalize_retention(desired_retention), 3)


@dataclass(frozen=True)
class SchedulerConfig:
    """Everything the updater needs besides the state and the rating."""
    parameters: FSRSParameters = field(default_factory=FSRSParameters)
    desired_retention: float = DEFAULT_DESIRED_RETENTION
    maximum_interval: int = MAXIMUM_INTERVAL
    relearning_step: timedelta = RELEARNING_STEP

    def __post_init__(self):
        object.__setattr__(
            self, "desired_retention", normalize_retention(self.desired_retention)
        )
        if self.maximum_interval < 1:
            raise InvalidConfig(
                f"Maximum interval must be at least 1 day, got {self.maximum_interval}"
            )
        if self.relearning_step < timedelta(0):
            raise InvalidConfig("Relearning step cannot be negative")


class ConfigCache:
    """
    Append-only cache of SchedulerConfig keyed by rounded retention.

    Entries are immutable and rebuilding one yields an equal value, so a
    concurrent double insert is harmless. Nothing is ever evicted.
    """

    def __init__(
        self,
        parameters: Optional[FSRSParameters] = None,
        maximum_interval: int = MAXIMUM_INTERVAL,
        relearning_step: timedelta = RELEARNING_STEP,
    ):
        self.parameters = parameters if parameters is not None else FSRSParameters()
        self.maximum_interval = maximum_interval
        self.relearning_step = relearning_step
        self._configs: dict[float, SchedulerConfig] = {}

    def get(self, desired_retention: float = DEFAULT_DESIRED_RETENTION) -> SchedulerConfig:
        key = retention_key(desired_retention)
        config = self._configs.get(key)
        if config is None:
            logger.debug("Building scheduler config for retention {}", key)
            config = SchedulerConfig(
                parameters=self.parameters,
                desired_retention=key,
                maximum_interval=self.maximum_interval,
                relearning_step=self.relearning_step,
            )
            config = self._configs.setdefault(key, config)
        return config

    def keys(self) -> Sequence[float]:
        return tuple(self._configs)

    def __len__(self) -> int:
        return len(self._configs)

    def __contains__(self, desired_retention) -> bool:
        return retention_key(desired_retention) in self._configs
