"""One mini-batch update: forward, loss, backward, clip, Adam."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict

import numpy as np

from ..core.backward import BackPropagator
from ..core.clipping import GradientClipper, sanitize
from ..core.forward import forward
from ..core.heads import OutputHead
from ..core.norm import Normalizer
from ..core.optim import AdamOptimizer
from ..core.params import OptimizerState, WeightStore
from ..core.types import Array, Batch, ScheduleParams, TrainStep
from .losses import Loss
from .schedule import Schedule

logger = logging.getLogger(__name__)


def encode_target(target, output_size: int) -> Array:
    """Return a dense target vector; class indices become one-hot vectors."""

    arr = np.asarray(target)
    if arr.ndim == 0:
        index = int(arr)
        if not 0 <= index < output_size:
            raise ValueError(f"Class index {index} outside [0, {output_size})")
        onehot = np.zeros(output_size)
        onehot[index] = 1.0
        return onehot
    vector = arr.astype(np.float64).reshape(-1)
    if vector.shape[0] != output_size:
        raise ValueError(
            f"Target vector has length {vector.shape[0]}, expected {output_size}"
        )
    return vector


def is_correct(probs: Array, target: Array) -> bool:
    return bool(target[int(np.argmax(probs))] >= 0.5)


@dataclass
class TrainingLoop:
    head: OutputHead
    normalizer: Normalizer
    loss: Loss
    backprop: BackPropagator
    clipper: GradientClipper
    optimizer: AdamOptimizer
    schedule: Schedule
    rng: np.random.Generator
    alpha: float = 0.01
    dropout: tuple = (0.0, 0.0)
    max_batch_size: int = 32

    def train_batch(
        self,
        store: WeightStore,
        state: OptimizerState,
        batch: Batch,
        params: ScheduleParams,
    ) -> TrainStep:
        """Apply one averaged, clipped Adam update computed from ``batch``.

        Gradients are summed sample by sample, each sample's contribution is
        sanitised before it is added, and the sum is divided by the batch
        size before clipping.
        """

        size = len(batch)
        if size == 0:
            raise ValueError("Cannot train on an empty batch")
        if size > self.max_batch_size:
            raise ValueError(
                f"Batch of {size} samples exceeds max_batch_size={self.max_batch_size}"
            )
        output_size = store.weights[2].shape[1]
        live = store.trainable()
        totals: Dict[str, Array] = {name: np.zeros_like(p) for name, p in live.items()}
        loss_sum = 0.0
        correct = 0
        sanitized = 0

        for i in range(size):
            target = encode_target(batch.targets[i], output_size)
            cache = forward(
                batch.inputs[i],
                store,
                self.head,
                self.normalizer,
                alpha=self.alpha,
                dropout=self.dropout,
                training=True,
                rng=self.rng,
            )
            sample_loss, error = self.loss(cache.probs, target)
            if np.isfinite(sample_loss):
                loss_sum += sample_loss
            correct += int(is_correct(cache.probs, target))
            grads = self.backprop.backward(cache, error, store)
            sanitized += sanitize(grads)
            for name, grad in grads.items():
                totals[name] += grad

        for grad in totals.values():
            grad /= size
        report = self.clipper(totals)
        sanitized += report.sanitized
        if sanitized:
            logger.warning("Zeroed %d non-finite gradient elements", sanitized)

        lr = float(self.schedule(params))
        self.optimizer.step(live, totals, state, lr)
        return TrainStep(
            mean_loss=loss_sum / size,
            mean_accuracy=correct / size,
            learning_rate=lr,
            grad_norm=report.norm,
            sanitized=sanitized,
            batch_size=size,
        )


__all__ = ["TrainingLoop", "encode_target", "is_correct"]
