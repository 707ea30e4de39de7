"""Deterministic epoch loop around :class:`FieldClassifier`."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Mapping, Sequence, Tuple

import numpy as np

from ..core.params import WeightStore
from ..core.types import Array, Batch, RunResult, ScheduleParams
from ..data.utils import iter_batches
from .metrics import default_metrics, evaluate

if TYPE_CHECKING:  # pragma: no cover
    from ..classifier import FieldClassifier

logger = logging.getLogger(__name__)


class Trainer:
    """Shuffle, batch and train for a number of epochs.

    Validation loss (training loss when no validation split is given) decides
    the best epoch; its weights are restored once the run ends.
    """

    def __init__(
        self,
        classifier: "FieldClassifier",
        callbacks: Sequence[object] | None = None,
    ) -> None:
        self.classifier = classifier
        self.callbacks = list(callbacks or [])

    def run(
        self,
        inputs: Array,
        targets: Array,
        epochs: int,
        *,
        batch_size: int = 32,
        seed: int = 0,
        val: Tuple[Array, Array] | None = None,
        metric_names: Sequence[str] | None = None,
        early_stopping_patience: int | None = None,
        min_delta: float = 1e-4,
        checkpoint_dir: str | Path | None = None,
        split_loggers: Mapping[str, Sequence[object]] | None = None,
    ) -> RunResult:
        if epochs <= 0:
            raise ValueError("epochs must be positive")
        inputs = np.asarray(inputs, dtype=np.float64)
        targets = np.asarray(targets)
        if inputs.shape[0] == 0:
            raise ValueError("Cannot train on an empty dataset")
        batch_size = min(int(batch_size), self.classifier.config.max_batch_size)
        names = list(metric_names or default_metrics(
            self.classifier.config.mode, num_classes=self.classifier.dims.output_size
        ))
        split_loggers = split_loggers or {}
        val_batch = Batch(np.asarray(val[0], dtype=np.float64), np.asarray(val[1])) if val else None
        ckpt_dir = Path(checkpoint_dir) if checkpoint_dir is not None else None
        if ckpt_dir is not None:
            ckpt_dir.mkdir(parents=True, exist_ok=True)

        best_loss = float("inf")
        best_epoch = 0
        best_store: WeightStore | None = None
        epochs_no_improve = 0
        stopped_early = False
        epoch = 0

        for epoch in range(1, epochs + 1):
            train_metrics = self._train_epoch(
                inputs, targets, batch_size, seed + epoch, ScheduleParams(epoch - 1, epochs)
            )
            self._emit_epoch("train", epoch, train_metrics, split_loggers)

            target_metrics = train_metrics
            if val_batch is not None:
                val_metrics = evaluate(self.classifier, val_batch, names)
                self._emit_epoch("val", epoch, val_metrics, split_loggers)
                target_metrics = val_metrics

            current_loss = float(target_metrics.get("loss", 0.0))
            if current_loss < best_loss - min_delta:
                best_loss = current_loss
                best_epoch = epoch
                epochs_no_improve = 0
                best_store = self.classifier.snapshot()
                if ckpt_dir is not None:
                    self.classifier.save(ckpt_dir / "best.json")
            else:
                epochs_no_improve += 1
                if early_stopping_patience and epochs_no_improve >= early_stopping_patience:
                    logger.info(
                        "Early stopping at epoch %d; best epoch %d (loss %.4f)",
                        epoch,
                        best_epoch,
                        best_loss,
                    )
                    stopped_early = True
                    break

        model_path = ""
        if ckpt_dir is not None:
            model_path = str(self.classifier.save(ckpt_dir / "last.json"))
        if best_store is not None:
            self.classifier.restore(best_store)
        return RunResult(
            epochs=epoch,
            best_epoch=best_epoch,
            best_val_loss=best_loss,
            stopped_early=stopped_early,
            model_path=model_path,
        )

    # ------------------------------------------------------------------
    # Internal helpers

    def _train_epoch(
        self,
        inputs: Array,
        targets: Array,
        batch_size: int,
        seed: int,
        params: ScheduleParams,
    ) -> Mapping[str, float]:
        loss_sum = 0.0
        acc_sum = 0.0
        seen = 0
        sanitized = 0
        lr = 0.0
        for batch in iter_batches(inputs, targets, batch_size=batch_size, seed=seed):
            step = self.classifier.train(batch, params)
            loss_sum += step.mean_loss * step.batch_size
            acc_sum += step.mean_accuracy * step.batch_size
            seen += step.batch_size
            sanitized += step.sanitized
            lr = step.learning_rate
        return {
            "loss": loss_sum / seen,
            "accuracy": acc_sum / seen,
            "lr": lr,
            "sanitized": float(sanitized),
        }

    def _emit_epoch(
        self,
        split: str,
        epoch: int,
        metrics: Mapping[str, float],
        loggers: Mapping[str, Sequence[object]],
    ) -> None:
        for callback in self.callbacks:
            if hasattr(callback, "on_epoch"):
                callback.on_epoch(epoch, metrics)  # type: ignore[attr-defined]
        for callback in loggers.get(split, []):
            if hasattr(callback, "on_epoch"):
                callback.on_epoch(epoch, metrics)  # type: ignore[attr-defined]
            elif callable(callback):
                callback(epoch, metrics)


__all__ = ["Trainer"]
