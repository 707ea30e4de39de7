"""Turn output probabilities into a labelled prediction."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from .core.heads import OutputHead
from .core.types import Array, Prediction
from .vocab import LabelVocabulary


@dataclass
class InferenceEngine:
    """Threshold and rank a probability vector.

    Single-label heads always predict their argmax and report the top
    ``top_k`` classes. Multi-label heads predict their best class only when it
    reaches ``threshold`` and otherwise return an ``unknown`` prediction whose
    confidence is that best probability.
    """

    head: OutputHead
    vocabulary: LabelVocabulary
    threshold: float = 0.35
    top_k: int = 5

    def decide(self, probs: Array) -> Prediction:
        probs = np.asarray(probs, dtype=np.float64)
        index, confidence, ranked = self.head.decide(
            probs, threshold=self.threshold, top_k=self.top_k
        )
        if index is None:
            return Prediction.unknown(confidence)
        candidates = {self.vocabulary.label_of(i): float(probs[i]) for i in ranked}
        return Prediction(
            label=self.vocabulary.label_of(index),
            confidence=confidence,
            candidates=candidates,
            index=int(index),
        )


__all__ = ["InferenceEngine"]
