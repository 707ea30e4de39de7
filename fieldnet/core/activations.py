"""Activation utilities for fieldnet."""

from __future__ import annotations

import numpy as np

from .types import Array


def leaky_relu(x: Array, alpha: float = 0.01) -> Array:
    """Return ``x`` where positive, ``alpha * x`` elsewhere."""

    return np.where(x > 0, x, alpha * x)


def leaky_relu_deriv(x: Array, alpha: float = 0.01) -> Array:
    return np.where(x > 0, 1.0, alpha)


def softmax(logits: Array, epsilon: float = 1e-10) -> Array:
    """Max-shifted normalised exponential over the last axis."""

    shifted = logits - np.max(logits, axis=-1, keepdims=True)
    exp = np.exp(shifted)
    return exp / (np.sum(exp, axis=-1, keepdims=True) + epsilon)


def sigmoid(x: Array) -> Array:
    """Logistic function, branching on sign so ``exp`` never overflows."""

    x = np.asarray(x, dtype=np.float64)
    out = np.empty_like(x)
    pos = x >= 0
    out[pos] = 1.0 / (1.0 + np.exp(-x[pos]))
    exp_x = np.exp(x[~pos])
    out[~pos] = exp_x / (1.0 + exp_x)
    return out


__all__ = ["leaky_relu", "leaky_relu_deriv", "softmax", "sigmoid"]
