"""Pure in-memory synthetic datasets."""

from __future__ import annotations

from typing import Tuple

import numpy as np


def _centers(rng: np.random.Generator, classes: int, d: int, separation: float) -> np.ndarray:
    return rng.normal(0.0, separation, size=(classes, d))


def make_blobs(
    n: int,
    d: int,
    classes: int,
    seed: int = 0,
    spread: float = 0.3,
    separation: float = 3.0,
) -> Tuple[np.ndarray, np.ndarray]:
    """Gaussian clusters, one per class; returns features and class indices."""

    if n <= 0 or d <= 0 or classes <= 1:
        raise ValueError("make_blobs needs n > 0, d > 0 and at least two classes")
    rng = np.random.default_rng(seed)
    centers = _centers(rng, classes, d, separation)
    labels = np.arange(n) % classes
    rng.shuffle(labels)
    x = centers[labels] + spread * rng.standard_normal((n, d))
    return x.astype(np.float64), labels.astype(np.int64)


def make_multilabel(
    n: int,
    d: int,
    classes: int,
    seed: int = 0,
    spread: float = 0.3,
    separation: float = 3.0,
    pair_rate: float = 0.3,
) -> Tuple[np.ndarray, np.ndarray]:
    """Samples with one or two active classes; returns features and 0/1 targets.

    A sample with two active classes sits at the midpoint of their centers.
    """

    if n <= 0 or d <= 0 or classes <= 1:
        raise ValueError("make_multilabel needs n > 0, d > 0 and at least two classes")
    rng = np.random.default_rng(seed)
    centers = _centers(rng, classes, d, separation)
    x = np.empty((n, d))
    y = np.zeros((n, classes))
    for i in range(n):
        primary = int(rng.integers(classes))
        active = [primary]
        if rng.random() < pair_rate:
            secondary = int(rng.integers(classes - 1))
            active.append(secondary if secondary < primary else secondary + 1)
        y[i, active] = 1.0
        x[i] = centers[active].mean(axis=0) + spread * rng.standard_normal(d)
    return x, y


__all__ = ["make_blobs", "make_multilabel"]
