"""Output heads: the closed set of output transforms a classifier can use.

A head is picked once, when the classifier is built, and decides three
things that differ between single-label and multi-label models:

* how raw output scores become probabilities,
* the standard deviation used to initialise the output layer,
* which classes a probability vector predicts.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Protocol, Tuple

import numpy as np

from .activations import sigmoid, softmax
from .types import Array


class OutputHead(Protocol):
    """Protocol implemented by output heads."""

    name: str

    def transform(self, logits: Array) -> Array:
        """Map raw output scores to probabilities."""

    def output_stddev(self, fan_in: int, fan_out: int) -> float:
        """Standard deviation for the output layer's initial weights."""

    def decide(
        self, probs: Array, *, threshold: float, top_k: int
    ) -> Tuple[Optional[int], float, List[int]]:
        """Return ``(predicted index or None, confidence, ranked candidate indices)``."""


def _ranked(probs: Array) -> List[int]:
    # Stable sort keeps the lower class index first on ties.
    return [int(i) for i in np.argsort(-probs, kind="stable")]


@dataclass(frozen=True)
class SoftmaxHead:
    """Single-label head: one probability simplex over all classes."""

    epsilon: float = 1e-10
    name: str = "softmax"

    def transform(self, logits: Array) -> Array:
        return softmax(logits, epsilon=self.epsilon)

    def output_stddev(self, fan_in: int, fan_out: int) -> float:
        return float(np.sqrt(1.0 / fan_in))

    def decide(
        self, probs: Array, *, threshold: float, top_k: int
    ) -> Tuple[Optional[int], float, List[int]]:
        order = _ranked(probs)
        best = order[0]
        return best, float(probs[best]), order[:top_k]


@dataclass(frozen=True)
class SigmoidHead:
    """Multi-label head: an independent probability per class."""

    name: str = "sigmoid"

    def transform(self, logits: Array) -> Array:
        return sigmoid(logits)

    def output_stddev(self, fan_in: int, fan_out: int) -> float:
        return float(np.sqrt(2.0 / (fan_in + fan_out)))

    def decide(
        self, probs: Array, *, threshold: float, top_k: int
    ) -> Tuple[Optional[int], float, List[int]]:
        order = _ranked(probs)
        best = order[0]
        confidence = float(probs[best])
        if confidence < threshold:
            return None, confidence, []
        return best, confidence, [idx for idx in order if probs[idx] >= threshold]


HEADS = {"single_label": SoftmaxHead, "multi_label": SigmoidHead}


def make_head(mode: str) -> OutputHead:
    try:
        return HEADS[mode]()
    except KeyError as exc:
        raise ValueError(f"Unknown classifier mode: {mode!r}") from exc


__all__ = ["HEADS", "OutputHead", "SigmoidHead", "SoftmaxHead", "make_head"]
