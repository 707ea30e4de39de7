"""Loss registry pairing each output head with its error signal."""

from __future__ import annotations

from dataclasses import dataclass
from functools import partial
from typing import Callable, Dict, Iterable

import numpy as np

from ..core.types import Array

LossFn = Callable[[Array, Array], tuple[float, Array]]


@dataclass(frozen=True)
class Loss:
    """Loss wrapper returning both the scalar loss and dL/dlogits.

    Losses receive head probabilities and a dense target vector of the same
    length for a single sample.
    """

    name: str
    fn: LossFn

    def __call__(self, probs: Array, target: Array) -> tuple[float, Array]:
        return self.fn(probs, target)


class LossRegistry:
    """Central registry for loss functions."""

    def __init__(self) -> None:
        self._registry: Dict[str, Loss] = {}

    def register(self, name: str, fn: LossFn) -> None:
        self._registry[name] = Loss(name, fn)

    def get(self, name: str) -> Loss:
        try:
            return self._registry[name]
        except KeyError as exc:
            raise KeyError(f"Unknown loss: {name}") from exc

    def names(self) -> Iterable[str]:
        return sorted(self._registry)

    def resolve(self, name: str, *, mode: str, **options: object) -> Loss:
        if name == "auto":
            if mode == "single_label":
                name = "ce"
            elif mode == "multi_label":
                name = "bce"
            else:
                raise ValueError(f"Unknown classifier mode: {mode}")
        if name not in self._registry:
            available = ", ".join(sorted(self._registry))
            raise KeyError(f"Unknown loss {name!r}. Available losses: {available}")
        loss = self._registry[name]
        if options:
            return Loss(name, partial(loss.fn, **options))
        return loss


REGISTRY = LossRegistry()

_EPS = 1e-10


def _cross_entropy(probs: Array, target: Array) -> tuple[float, Array]:
    # Closed form for softmax followed by cross-entropy.
    p = np.clip(probs, _EPS, 1.0)
    loss = float(-np.sum(target * np.log(p)))
    return loss, probs - target


def _bce(probs: Array, target: Array, reduction: str = "sum") -> tuple[float, Array]:
    p = np.clip(probs, _EPS, 1.0 - _EPS)
    per_class = -(target * np.log(p) + (1.0 - target) * np.log(1.0 - p))
    grad = probs - target
    if reduction == "mean":
        return float(np.mean(per_class)), grad / probs.shape[0]
    if reduction == "sum":
        return float(np.sum(per_class)), grad
    raise ValueError(f"Unknown reduction: {reduction!r}")


def _weighted_bce(
    probs: Array,
    target: Array,
    pos_weight: float = 3.0,
    neg_weight: float = 1.0,
    reduction: str = "mean",
) -> tuple[float, Array]:
    p = np.clip(probs, _EPS, 1.0 - _EPS)
    per_class = -(pos_weight * target * np.log(p) + neg_weight * (1.0 - target) * np.log(1.0 - p))
    grad = neg_weight * (1.0 - target) * probs - pos_weight * target * (1.0 - probs)
    if reduction == "mean":
        return float(np.mean(per_class)), grad / probs.shape[0]
    if reduction == "sum":
        return float(np.sum(per_class)), grad
    raise ValueError(f"Unknown reduction: {reduction!r}")


REGISTRY.register("ce", _cross_entropy)
REGISTRY.register("bce", _bce)
REGISTRY.register("weighted_bce", _weighted_bce)

__all__ = ["Loss", "LossRegistry", "REGISTRY"]
