"""Gradient sanitisation and global-norm clipping."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

import numpy as np

from .types import Array


def sanitize(grads: Mapping[str, Array]) -> int:
    """Zero every non-finite element in place and return how many there were."""

    count = 0
    for grad in grads.values():
        bad = ~np.isfinite(grad)
        n_bad = int(np.count_nonzero(bad))
        if n_bad:
            grad[bad] = 0.0
            count += n_bad
    return count


def global_norm(grads: Mapping[str, Array]) -> float:
    return float(np.sqrt(sum(float(np.sum(np.square(g))) for g in grads.values())))


@dataclass(frozen=True)
class ClipReport:
    norm: float
    scale: float
    sanitized: int

    @property
    def clipped(self) -> bool:
        return self.scale != 1.0


@dataclass
class GradientClipper:
    """Sanitise, then rescale a gradient set so its L2 norm is at most ``max_norm``."""

    max_norm: float = 1.0
    epsilon: float = 1e-8

    def __call__(self, grads: Mapping[str, Array]) -> ClipReport:
        sanitized = sanitize(grads)
        norm = global_norm(grads)
        scale = 1.0
        if norm > self.max_norm:
            scale = self.max_norm / (norm + self.epsilon)
            for grad in grads.values():
                grad *= scale
        return ClipReport(norm=norm, scale=scale, sanitized=sanitized)


__all__ = ["ClipReport", "GradientClipper", "global_norm", "sanitize"]
