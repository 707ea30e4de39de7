"""Classifier hyperparameters.

The two presets mirror the two shipped model generations: a single-label
softmax network with running-statistics normalisation and dropout, and a
leaner multi-label sigmoid network.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields, replace
from typing import Any, Dict, Mapping, Tuple

_MODES = {"single_label", "multi_label"}
_NORMALIZATION = {"none", "running_stats"}
_NORM_BACKWARD = {"pass_through", "scaled"}
_SCHEDULES = {"constant", "warmup_cosine"}
_REDUCTIONS = {"sum", "mean"}


@dataclass(frozen=True)
class ClassifierConfig:
    mode: str = "single_label"
    leaky_alpha: float = 0.01
    dropout: Tuple[float, float] = (0.3, 0.2)
    normalization: str = "running_stats"
    norm_momentum: float = 0.99
    norm_epsilon: float = 1e-5
    norm_backward: str = "pass_through"
    learning_rate: float = 2e-4
    schedule: str = "warmup_cosine"
    warmup_epochs: int = 5
    weight_decay: float = 1e-4
    clip_norm: float = 1.0
    beta1: float = 0.9
    beta2: float = 0.999
    adam_epsilon: float = 1e-8
    max_batch_size: int = 32
    threshold: float = 0.35
    top_k: int = 5
    loss: str = "auto"
    pos_weight: float = 1.0
    neg_weight: float = 1.0
    loss_reduction: str = "sum"
    auto_initialize: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "dropout", tuple(float(r) for r in self.dropout))
        self.validate()

    def validate(self) -> None:
        _check_choice("mode", self.mode, _MODES)
        _check_choice("normalization", self.normalization, _NORMALIZATION)
        _check_choice("norm_backward", self.norm_backward, _NORM_BACKWARD)
        _check_choice("schedule", self.schedule, _SCHEDULES)
        _check_choice("loss_reduction", self.loss_reduction, _REDUCTIONS)
        if self.mode == "multi_label" and self.normalization != "none":
            raise ValueError("Normalisation is only supported by the single_label mode")
        if len(self.dropout) != 2 or not all(0.0 <= r < 1.0 for r in self.dropout):
            raise ValueError(f"dropout must be two rates in [0, 1), got {self.dropout!r}")
        if self.max_batch_size <= 0:
            raise ValueError("max_batch_size must be positive")
        if self.clip_norm <= 0:
            raise ValueError("clip_norm must be positive")
        if not 0.0 <= self.threshold <= 1.0:
            raise ValueError("threshold must be within [0, 1]")
        if self.top_k <= 0:
            raise ValueError("top_k must be positive")

    @property
    def uses_normalization(self) -> bool:
        return self.normalization != "none"

    def loss_options(self) -> Dict[str, object]:
        if self.mode != "multi_label":
            return {}
        if self.loss == "weighted_bce":
            return {
                "pos_weight": self.pos_weight,
                "neg_weight": self.neg_weight,
                "reduction": self.loss_reduction,
            }
        return {"reduction": self.loss_reduction}

    @classmethod
    def single_label(cls, **overrides: Any) -> "ClassifierConfig":
        return cls(**overrides)

    @classmethod
    def multi_label(cls, **overrides: Any) -> "ClassifierConfig":
        base = dict(
            mode="multi_label",
            dropout=(0.0, 0.0),
            normalization="none",
            learning_rate=1e-3,
            schedule="constant",
        )
        base.update(overrides)
        return cls(**base)

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> "ClassifierConfig":
        """Build a config from a plain mapping, starting from the mode's preset."""

        known = {f.name for f in fields(cls)}
        unknown = set(mapping) - known
        if unknown:
            raise KeyError(f"Unknown classifier settings: {', '.join(sorted(unknown))}")
        values = dict(mapping)
        if "dropout" in values:
            values["dropout"] = tuple(values["dropout"])
        if values.get("mode", "single_label") == "multi_label":
            return cls.multi_label(**values)
        return cls.single_label(**values)

    def with_overrides(self, **overrides: Any) -> "ClassifierConfig":
        return replace(self, **overrides)

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["dropout"] = list(self.dropout)
        return payload


def _check_choice(name: str, value: str, allowed: set) -> None:
    if value not in allowed:
        raise ValueError(f"{name} must be one of {sorted(allowed)}, got {value!r}")


__all__ = ["ClassifierConfig"]
