"""Forward propagation through the three dense layers."""

from __future__ import annotations

from typing import List, Optional, Sequence

import numpy as np

from .activations import leaky_relu
from .errors import ShapeMismatchError
from .heads import OutputHead
from .norm import Normalizer
from .params import WeightStore
from .types import Array, ForwardCache


def check_features(features: Array, input_size: int) -> Array:
    x = np.asarray(features, dtype=np.float64)
    if x.ndim != 1 or x.shape[0] != input_size:
        raise ShapeMismatchError(
            f"Expected a feature vector of length {input_size}, got shape {x.shape}"
        )
    return x


def forward(
    features: Array,
    store: WeightStore,
    head: OutputHead,
    normalizer: Normalizer,
    *,
    alpha: float = 0.01,
    dropout: Sequence[float] = (0.0, 0.0),
    training: bool = False,
    rng: Optional[np.random.Generator] = None,
) -> ForwardCache:
    """Run one feature vector through the network.

    In training mode the normaliser may update its running statistics and
    inverted dropout is applied to each hidden layer with a non-zero rate.
    """

    x = check_features(features, store.weights[0].shape[0])
    if training and any(rate > 0 for rate in dropout) and rng is None:
        raise ValueError("Dropout in training mode needs a random generator")

    layer_inputs: List[Array] = [x]
    pre_activations: List[Array] = []
    normalized: List[Array] = []
    masks: List[Optional[Array]] = []
    keep_probs: List[float] = []

    h = x
    for idx in range(2):
        z = h @ store.weights[idx] + store.biases[idx]
        params = store.norms[idx] if normalizer.uses_params and store.norms else None
        zn = normalizer.forward(z, params, training=training)
        h = leaky_relu(zn, alpha)
        rate = float(dropout[idx])
        mask = None
        keep = 1.0
        if training and rate > 0:
            keep = 1.0 - rate
            mask = (rng.random(h.shape) >= rate).astype(np.float64)
            h = h * mask / keep
        pre_activations.append(z)
        normalized.append(zn)
        masks.append(mask)
        keep_probs.append(keep)
        layer_inputs.append(h)

    logits = h @ store.weights[2] + store.biases[2]
    probs = head.transform(logits)
    return ForwardCache(
        layer_inputs=layer_inputs,
        pre_activations=pre_activations,
        normalized=normalized,
        masks=masks,
        keep_probs=keep_probs,
        logits=logits,
        probs=probs,
    )


__all__ = ["check_features", "forward"]
