"""Learning-rate schedules."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Protocol

from ..core.types import ScheduleParams


class Schedule(Protocol):
    def __call__(self, params: ScheduleParams) -> float:
        """Return the learning rate for ``params``."""


@dataclass(frozen=True)
class ConstantRate:
    lr: float = 1e-3

    def __call__(self, params: ScheduleParams) -> float:
        return self.lr


@dataclass(frozen=True)
class WarmupCosine:
    """Linear warm-up over ``warmup_epochs``, then cosine decay towards zero."""

    base_lr: float = 2e-4
    warmup_epochs: int = 5

    def __call__(self, params: ScheduleParams) -> float:
        epoch = params.epoch
        if epoch < self.warmup_epochs:
            return self.base_lr * (epoch + 1) / self.warmup_epochs
        span = max(1, params.total_epochs - self.warmup_epochs)
        progress = min(1.0, (epoch - self.warmup_epochs) / span)
        return self.base_lr * 0.5 * (1.0 + math.cos(math.pi * progress))


def make_schedule(name: str, *, lr: float, warmup_epochs: int = 5) -> Schedule:
    if name == "constant":
        return ConstantRate(lr=lr)
    if name == "warmup_cosine":
        return WarmupCosine(base_lr=lr, warmup_epochs=warmup_epochs)
    raise ValueError(f"Unknown schedule: {name!r}")


__all__ = ["ConstantRate", "Schedule", "WarmupCosine", "make_schedule"]
