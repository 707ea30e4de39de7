"""Hidden-layer normalisation strategies and their backward rules."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Protocol

import numpy as np

from .params import NormParams
from .types import Array


class NormGradient(Protocol):
    """Maps dL/d(normalised z) to dL/dz for one hidden layer."""

    def backward(self, grad: Array, z: Array, params: Optional[NormParams], epsilon: float) -> Array:
        ...


@dataclass(frozen=True)
class PassThroughGradient:
    """Treat the normalisation's local gradient as the identity."""

    def backward(self, grad: Array, z: Array, params: Optional[NormParams], epsilon: float) -> Array:
        return grad


@dataclass(frozen=True)
class ScaledGradient:
    """Differentiate through ``scale * (z - mean) / sqrt(var + eps)``.

    The running statistics are treated as constants, so this is the exact
    gradient of the transform applied at inference time.
    """

    def backward(self, grad: Array, z: Array, params: Optional[NormParams], epsilon: float) -> Array:
        if params is None:
            return grad
        return grad * params.scale / np.sqrt(params.running_var + epsilon)


class Normalizer(Protocol):
    """Protocol implemented by hidden-layer normalisers."""

    uses_params: bool
    gradient: NormGradient
    epsilon: float

    def forward(self, z: Array, params: Optional[NormParams], *, training: bool) -> Array:
        ...


@dataclass(frozen=True)
class IdentityNorm:
    """No normalisation; used by the multi-label variant."""

    uses_params: bool = False
    gradient: NormGradient = field(default_factory=PassThroughGradient)
    epsilon: float = 0.0

    def forward(self, z: Array, params: Optional[NormParams], *, training: bool) -> Array:
        return z


@dataclass(frozen=True)
class RunningStatsNorm:
    """Per-unit normalisation against exponentially averaged statistics.

    Training calls see one sample at a time, so the variance update always
    folds in 1.0 rather than a real batch variance. Training updates the
    running statistics in place before normalising with them; inference only
    reads them. A unit whose pre-activation is not finite keeps its previous
    statistics.
    """

    momentum: float = 0.99
    epsilon: float = 1e-5
    gradient: NormGradient = field(default_factory=PassThroughGradient)
    uses_params: bool = True

    def forward(self, z: Array, params: Optional[NormParams], *, training: bool) -> Array:
        if params is None:
            raise ValueError("RunningStatsNorm needs normalisation params")
        if training:
            finite = np.isfinite(z)
            mean, var = params.running_mean, params.running_var
            mean[finite] = self.momentum * mean[finite] + (1.0 - self.momentum) * z[finite]
            var[finite] = self.momentum * var[finite] + (1.0 - self.momentum)
        normalized = (z - params.running_mean) / np.sqrt(params.running_var + self.epsilon)
        return params.scale * normalized + params.shift


NORM_GRADIENTS = {"pass_through": PassThroughGradient, "scaled": ScaledGradient}


def make_normalizer(
    kind: str,
    *,
    momentum: float = 0.99,
    epsilon: float = 1e-5,
    backward: str = "pass_through",
) -> Normalizer:
    if backward not in NORM_GRADIENTS:
        raise ValueError(f"Unknown normalisation backward rule: {backward!r}")
    gradient = NORM_GRADIENTS[backward]()
    if kind == "none":
        return IdentityNorm(gradient=gradient)
    if kind == "running_stats":
        return RunningStatsNorm(momentum=momentum, epsilon=epsilon, gradient=gradient)
    raise ValueError(f"Unknown normalisation: {kind!r}")


__all__ = [
    "IdentityNorm",
    "NORM_GRADIENTS",
    "NormGradient",
    "Normalizer",
    "PassThroughGradient",
    "RunningStatsNorm",
    "ScaledGradient",
    "make_normalizer",
]
