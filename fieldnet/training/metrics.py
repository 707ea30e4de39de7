"""Evaluation metrics over probability matrices."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, Iterable, List, Mapping

import numpy as np

from ..core.types import Array, Batch
from .loop import encode_target

if TYPE_CHECKING:  # pragma: no cover
    from ..classifier import FieldClassifier


@dataclass(frozen=True)
class MetricResult:
    name: str
    value: float


def default_metrics(mode: str, *, num_classes: int | None = None) -> List[str]:
    if mode == "single_label":
        metrics = ["accuracy", "top_3_accuracy", "mean_confidence"]
        if num_classes and num_classes <= 50:
            metrics.append("macro_f1")
        return metrics
    if mode == "multi_label":
        return ["accuracy", "mean_confidence"]
    raise ValueError(f"Unknown classifier mode: {mode}")


def dense_targets(targets: Array, num_classes: int) -> Array:
    """Stack targets into a ``(n, num_classes)`` matrix."""

    return np.stack([encode_target(t, num_classes) for t in targets])


def accuracy(probs: Array, targets: Array) -> float:
    pred_idx = np.argmax(probs, axis=1)
    hits = targets[np.arange(len(pred_idx)), pred_idx] >= 0.5
    return float(np.mean(hits)) if len(hits) else 0.0


def top_k_accuracy(probs: Array, targets: Array, k: int = 3) -> float:
    if not len(probs):
        return 0.0
    k = min(k, probs.shape[1])
    top = np.argsort(-probs, axis=1, kind="stable")[:, :k]
    hits = [bool(np.any(targets[i, top[i]] >= 0.5)) for i in range(len(probs))]
    return float(np.mean(hits))


def mean_confidence(probs: Array, targets: Array) -> tuple[float, float]:
    """Mean probability assigned to true classes and to every other class."""

    positive = targets >= 0.5
    true_conf = float(np.mean(probs[positive])) if np.any(positive) else 0.0
    other_conf = float(np.mean(probs[~positive])) if np.any(~positive) else 0.0
    return true_conf, other_conf


def macro_f1(probs: Array, targets: Array) -> float:
    num_classes = probs.shape[1]
    pred_idx = np.argmax(probs, axis=1)
    targ_idx = np.argmax(targets, axis=1)
    f1_scores = []
    for cls in range(num_classes):
        tp = np.sum((pred_idx == cls) & (targ_idx == cls))
        fp = np.sum((pred_idx == cls) & (targ_idx != cls))
        fn = np.sum((pred_idx != cls) & (targ_idx == cls))
        if tp + fp + fn == 0:
            continue
        precision = tp / (tp + fp + 1e-9)
        recall = tp / (tp + fn + 1e-9)
        f1_scores.append(2 * precision * recall / (precision + recall + 1e-9))
    return float(np.mean(f1_scores)) if f1_scores else 0.0


def compute_metric(name: str, probs: Array, targets: Array) -> List[MetricResult]:
    key = name.lower()
    if key == "accuracy":
        return [MetricResult(key, accuracy(probs, targets))]
    if key.startswith("top_") and key.endswith("_accuracy"):
        k = int(key[len("top_") : -len("_accuracy")])
        return [MetricResult(key, top_k_accuracy(probs, targets, k))]
    if key == "mean_confidence":
        true_conf, other_conf = mean_confidence(probs, targets)
        return [
            MetricResult("confidence_true", true_conf),
            MetricResult("confidence_other", other_conf),
        ]
    if key == "macro_f1":
        return [MetricResult(key, macro_f1(probs, targets))]
    raise KeyError(f"Unknown metric: {name}")


def compute_metrics(names: Iterable[str], probs: Array, targets: Array) -> Mapping[str, float]:
    probs = np.asarray(probs, dtype=np.float64)
    targets = np.asarray(targets)
    if targets.ndim == 1:
        targets = dense_targets(targets, probs.shape[1])
    results: Dict[str, float] = {}
    for name in names:
        for metric in compute_metric(name, probs, targets):
            results[metric.name] = metric.value
    return results


def evaluate(
    classifier: "FieldClassifier",
    batch: Batch,
    metric_names: Iterable[str] | None = None,
) -> Mapping[str, float]:
    """Run inference-mode forward passes over ``batch`` and score them.

    ``batch`` may hold any number of samples; the training batch-size limit
    does not apply here.
    """

    output_size = classifier.dims.output_size
    names = list(metric_names) if metric_names is not None else default_metrics(
        classifier.config.mode, num_classes=output_size
    )
    probs = np.stack([classifier.predict_proba(x) for x in batch.inputs])
    targets = dense_targets(batch.targets, output_size)
    losses = [classifier.loss(p, t)[0] for p, t in zip(probs, targets)]
    finite = [value for value in losses if np.isfinite(value)]
    metrics: Dict[str, float] = {"loss": float(np.sum(finite) / len(losses)) if losses else 0.0}
    metrics.update(compute_metrics(names, probs, targets))
    return metrics


__all__ = [
    "MetricResult",
    "accuracy",
    "compute_metrics",
    "default_metrics",
    "evaluate",
    "macro_f1",
    "mean_confidence",
    "top_k_accuracy",
]
