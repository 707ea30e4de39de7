"""Backpropagation for the three-layer network."""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np

from .activations import leaky_relu_deriv
from .norm import NormGradient, PassThroughGradient
from .params import WeightStore
from .types import Array, ForwardCache, Gradients


@dataclass
class BackPropagator:
    """Turn an output error signal into per-tensor gradients.

    ``error`` is dL/dlogits, produced by the loss paired with the head. The
    normalisation backward rule is a separate strategy so an exact rule can
    replace the pass-through default without touching this class.
    """

    alpha: float = 0.01
    norm_gradient: NormGradient = field(default_factory=PassThroughGradient)
    norm_epsilon: float = 1e-5

    def backward(self, cache: ForwardCache, error: Array, store: WeightStore) -> Gradients:
        grads: Gradients = {}
        delta = np.asarray(error, dtype=np.float64)
        grads["W3"] = np.outer(cache.layer_inputs[2], delta)
        grads["b3"] = delta.copy()

        for idx in (1, 0):
            grad_h = delta @ store.weights[idx + 1].T
            mask = cache.masks[idx]
            if mask is not None:
                grad_h = grad_h * mask / cache.keep_probs[idx]
            grad_zn = grad_h * leaky_relu_deriv(cache.normalized[idx], self.alpha)
            params = store.norms[idx] if store.norms else None
            delta = self.norm_gradient.backward(
                grad_zn, cache.pre_activations[idx], params, self.norm_epsilon
            )
            grads[f"W{idx + 1}"] = np.outer(cache.layer_inputs[idx], delta)
            grads[f"b{idx + 1}"] = delta.copy()
        return grads


__all__ = ["BackPropagator"]
