"""Variance-scaled weight initialisation."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Tuple

import numpy as np

from .heads import OutputHead
from .params import NormParams, OptimizerState, WeightStore
from .types import Array, LayerDims

logger = logging.getLogger(__name__)


def box_muller(rng: np.random.Generator, shape: Tuple[int, ...], stddev: float) -> Array:
    """Zero-mean Gaussian samples built from two independent uniform draws."""

    # ``1 - U[0, 1)`` lies in (0, 1], keeping the log finite.
    u1 = 1.0 - rng.random(shape)
    u2 = rng.random(shape)
    z0 = np.sqrt(-2.0 * np.log(u1)) * np.cos(2.0 * np.pi * u2)
    return z0 * stddev


@dataclass
class Initializer:
    """Build a fresh :class:`WeightStore` for ``LayerDims``.

    Hidden layers use He scaling corrected for the leaky rectifier's slope;
    the output layer takes its scale from the head.
    """

    rng: np.random.Generator
    alpha: float = 0.01
    hidden_bias: float = 0.01

    def he_stddev(self, fan_in: int) -> float:
        return float(np.sqrt(2.0 / ((1.0 + self.alpha**2) * fan_in)))

    def __call__(
        self, dims: LayerDims, head: OutputHead, *, normalization: bool = False
    ) -> WeightStore:
        (in1, out1), (in2, out2), (in3, out3) = dims.layer_shapes()
        weights = [
            box_muller(self.rng, (in1, out1), self.he_stddev(in1)),
            box_muller(self.rng, (in2, out2), self.he_stddev(in2)),
            box_muller(self.rng, (in3, out3), head.output_stddev(in3, out3)),
        ]
        biases = [
            np.full(out1, self.hidden_bias),
            np.full(out2, self.hidden_bias),
            np.zeros(out3),
        ]
        norms = (
            [NormParams.fresh(out1), NormParams.fresh(out2)] if normalization else None
        )
        logger.debug("Weights initialised: %s (%s head)", "->".join(map(str, dims.as_list())), head.name)
        return WeightStore(weights=weights, biases=biases, norms=norms)

    def with_state(
        self, dims: LayerDims, head: OutputHead, *, normalization: bool = False
    ) -> Tuple[WeightStore, OptimizerState]:
        store = self(dims, head, normalization=normalization)
        return store, OptimizerState.zeros_like(store.trainable())


__all__ = ["Initializer", "box_muller"]
