"""Core typing contracts for fieldnet."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence, Union

import numpy as np

from .errors import ShapeMismatchError

Array = np.ndarray

UNKNOWN_LABEL = "unknown"


@dataclass(frozen=True)
class LayerDims:
    """Sizes of the three dense layers: input -> hidden1 -> hidden2 -> output."""

    input_size: int
    hidden1_size: int
    hidden2_size: int
    output_size: int

    def __post_init__(self) -> None:
        for name in ("input_size", "hidden1_size", "hidden2_size", "output_size"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, np.integer)) or value <= 0:
                raise ShapeMismatchError(f"{name} must be a positive integer, got {value!r}")

    def as_list(self) -> List[int]:
        return [self.input_size, self.hidden1_size, self.hidden2_size, self.output_size]

    def layer_shapes(self) -> List[tuple[int, int]]:
        """Return ``(fan_in, fan_out)`` for each dense layer."""

        dims = self.as_list()
        return list(zip(dims[:-1], dims[1:]))

    def parameter_count(self) -> int:
        return int(sum(fan_in * fan_out + fan_out for fan_in, fan_out in self.layer_shapes()))

    @classmethod
    def from_sequence(cls, dims: Sequence[int]) -> "LayerDims":
        if len(dims) != 4:
            raise ShapeMismatchError(f"Expected 4 layer sizes, got {len(dims)}")
        return cls(*(int(d) for d in dims))


Target = Union[int, Array]


@dataclass(frozen=True)
class Sample:
    """A single feature vector and its target."""

    features: Array
    target: Target


@dataclass(frozen=True)
class Batch:
    """A single mini-batch of data.

    ``targets`` holds class indices with shape ``(n,)`` or target vectors with
    shape ``(n, output_size)``.
    """

    inputs: Array
    targets: Array

    def __len__(self) -> int:
        return int(self.inputs.shape[0])

    @classmethod
    def from_samples(cls, samples: Sequence[Sample]) -> "Batch":
        if not samples:
            raise ValueError("A batch needs at least one sample")
        inputs = np.stack([np.asarray(s.features, dtype=np.float64) for s in samples])
        targets = np.asarray([s.target for s in samples])
        return cls(inputs=inputs, targets=targets)

    def samples(self) -> List[Sample]:
        return [Sample(self.inputs[i], self.targets[i]) for i in range(len(self))]


@dataclass(frozen=True)
class ScheduleParams:
    """Where training is within its run, for learning-rate schedules."""

    epoch: int = 0
    total_epochs: int = 50


@dataclass
class ForwardCache:
    """Intermediate values captured by one forward pass.

    ``layer_inputs[i]`` is the vector fed into dense layer ``i`` (after dropout
    for hidden layers). ``masks[i]`` is ``None`` when dropout was not applied.
    """

    layer_inputs: List[Array]
    pre_activations: List[Array]
    normalized: List[Array]
    masks: List[Optional[Array]]
    keep_probs: List[float]
    logits: Array
    probs: Array


Gradients = Dict[str, Array]


@dataclass(frozen=True)
class Prediction:
    """Result of classifying one feature vector."""

    label: str
    confidence: float
    candidates: Mapping[str, float] = field(default_factory=dict)
    index: Optional[int] = None

    @property
    def is_unknown(self) -> bool:
        return self.index is None

    @classmethod
    def unknown(cls, confidence: float = 0.0) -> "Prediction":
        return cls(label=UNKNOWN_LABEL, confidence=float(confidence), candidates={}, index=None)


@dataclass(frozen=True)
class TrainStep:
    """Observability record returned by one mini-batch update."""

    mean_loss: float
    mean_accuracy: float
    learning_rate: float
    grad_norm: float = 0.0
    sanitized: int = 0
    batch_size: int = 0


@dataclass(frozen=True)
class RunResult:
    """Summary returned by :meth:`fieldnet.training.trainer.Trainer.run`."""

    epochs: int
    best_epoch: int
    best_val_loss: float
    stopped_early: bool = False
    metrics_path: str = ""
    manifest_path: str = ""
    summary_path: str = ""
    model_path: str = ""


__all__ = [
    "Array",
    "Batch",
    "ForwardCache",
    "Gradients",
    "LayerDims",
    "Prediction",
    "RunResult",
    "Sample",
    "ScheduleParams",
    "Target",
    "TrainStep",
    "UNKNOWN_LABEL",
]
