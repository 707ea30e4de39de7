"""Splitting, batching and seeding helpers."""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Iterator, Mapping

import numpy as np

from ..core.types import Batch


def seed_everything(seed: int) -> np.random.Generator:
    """Seed Python and NumPy RNGs and return a generator."""

    random.seed(seed)
    np.random.seed(seed % (2**32 - 1))
    return np.random.default_rng(seed)


@dataclass(frozen=True)
class SplitIndices:
    """Indices for train/validation/test partitions."""

    train: np.ndarray
    val: np.ndarray
    test: np.ndarray

    @property
    def sizes(self) -> Mapping[str, int]:
        return {
            "train": int(self.train.size),
            "val": int(self.val.size),
            "test": int(self.test.size),
        }


def deterministic_split(
    n_samples: int,
    *,
    val_split: float = 0.1,
    test_split: float = 0.2,
    seed: int = 0,
) -> SplitIndices:
    """Return deterministic indices for the requested split ratios."""

    if not 0 <= val_split < 1:
        raise ValueError("val_split must be in [0, 1)")
    if not 0 <= test_split < 1:
        raise ValueError("test_split must be in [0, 1)")
    if val_split + test_split >= 1:
        raise ValueError("val_split + test_split must be < 1")

    rng = np.random.default_rng(seed)
    indices = np.arange(n_samples)
    rng.shuffle(indices)

    test_size = min(max(int(round(n_samples * test_split)), 1 if test_split > 0 else 0), n_samples)
    remaining = n_samples - test_size
    val_size = min(max(int(round(n_samples * val_split)), 1 if val_split > 0 else 0), remaining)
    if n_samples - val_size - test_size <= 0:
        raise ValueError("Not enough samples for the requested splits")

    return SplitIndices(
        train=indices[test_size + val_size :],
        val=indices[test_size : test_size + val_size],
        test=indices[:test_size],
    )


def iter_batches(
    features: np.ndarray,
    targets: np.ndarray,
    *,
    batch_size: int,
    seed: int,
) -> Iterator[Batch]:
    """Yield one shuffled pass over the data in non-overlapping chunks.

    The final chunk holds the remainder and may be smaller than ``batch_size``.
    """

    if batch_size <= 0:
        raise ValueError("batch_size must be positive")
    order = np.random.default_rng(seed).permutation(features.shape[0])
    for start in range(0, order.size, batch_size):
        idx = order[start : start + batch_size]
        yield Batch(inputs=features[idx], targets=targets[idx])


__all__ = ["SplitIndices", "deterministic_split", "iter_batches", "seed_everything"]
