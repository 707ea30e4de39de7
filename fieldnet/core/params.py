"""Trainable tensors and optimiser moments owned by a classifier."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

import numpy as np

from .errors import ShapeMismatchError
from .types import Array, LayerDims

TRAINABLE_NAMES = ("W1", "b1", "W2", "b2", "W3", "b3")


@dataclass
class NormParams:
    """Scale/shift and running statistics for one normalised hidden layer."""

    scale: Array
    shift: Array
    running_mean: Array
    running_var: Array

    @classmethod
    def fresh(cls, size: int) -> "NormParams":
        return cls(
            scale=np.ones(size),
            shift=np.zeros(size),
            running_mean=np.zeros(size),
            running_var=np.ones(size),
        )

    def copy(self) -> "NormParams":
        return NormParams(
            scale=self.scale.copy(),
            shift=self.shift.copy(),
            running_mean=self.running_mean.copy(),
            running_var=self.running_var.copy(),
        )


@dataclass
class WeightStore:
    """Weight matrices (``[fan_in, fan_out]``), biases and optional norm params."""

    weights: List[Array]
    biases: List[Array]
    norms: Optional[List[NormParams]] = None

    @property
    def dims(self) -> LayerDims:
        return LayerDims(
            self.weights[0].shape[0],
            self.weights[0].shape[1],
            self.weights[1].shape[1],
            self.weights[2].shape[1],
        )

    @property
    def has_norms(self) -> bool:
        return self.norms is not None

    def trainable(self) -> Dict[str, Array]:
        """Return the live trainable arrays keyed ``W1, b1, ..., b3``."""

        params: Dict[str, Array] = {}
        for idx, (W, b) in enumerate(zip(self.weights, self.biases), start=1):
            params[f"W{idx}"] = W
            params[f"b{idx}"] = b
        return params

    def validate(self, dims: LayerDims) -> None:
        """Raise :class:`ShapeMismatchError` unless every tensor fits ``dims``."""

        if len(self.weights) != 3 or len(self.biases) != 3:
            raise ShapeMismatchError("A weight store holds exactly three dense layers")
        for idx, (fan_in, fan_out) in enumerate(dims.layer_shapes()):
            W, b = self.weights[idx], self.biases[idx]
            if W.shape != (fan_in, fan_out):
                raise ShapeMismatchError(
                    f"W{idx + 1} has shape {W.shape}, expected {(fan_in, fan_out)}"
                )
            if b.shape != (fan_out,):
                raise ShapeMismatchError(
                    f"b{idx + 1} has shape {b.shape}, expected {(fan_out,)}"
                )
        if self.norms is not None:
            if len(self.norms) != 2:
                raise ShapeMismatchError("Normalisation params are needed for both hidden layers")
            for idx, (norm, size) in enumerate(
                zip(self.norms, (dims.hidden1_size, dims.hidden2_size)), start=1
            ):
                for name in ("scale", "shift", "running_mean", "running_var"):
                    shape = getattr(norm, name).shape
                    if shape != (size,):
                        raise ShapeMismatchError(
                            f"{name}{idx} has shape {shape}, expected {(size,)}"
                        )

    def copy(self) -> "WeightStore":
        return WeightStore(
            weights=[W.copy() for W in self.weights],
            biases=[b.copy() for b in self.biases],
            norms=[n.copy() for n in self.norms] if self.norms is not None else None,
        )

    def all_finite(self) -> bool:
        arrays = list(self.weights) + list(self.biases)
        for norm in self.norms or []:
            arrays.extend([norm.scale, norm.shift, norm.running_mean, norm.running_var])
        return all(bool(np.all(np.isfinite(a))) for a in arrays)


@dataclass
class OptimizerState:
    """First/second moment accumulators shaped like the trainable tensors."""

    m: Dict[str, Array] = field(default_factory=dict)
    v: Dict[str, Array] = field(default_factory=dict)
    t: int = 0

    @classmethod
    def zeros_like(cls, params: Mapping[str, Array]) -> "OptimizerState":
        return cls(
            m={name: np.zeros_like(p) for name, p in params.items()},
            v={name: np.zeros_like(p) for name, p in params.items()},
            t=0,
        )


__all__ = ["NormParams", "OptimizerState", "TRAINABLE_NAMES", "WeightStore"]
