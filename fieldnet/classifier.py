"""Public facade owning one model's weights, optimiser state and strategies."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence

import numpy as np

from .config import ClassifierConfig
from .core.backward import BackPropagator
from .core.clipping import GradientClipper
from .core.errors import ShapeMismatchError, UninitializedModelError
from .core.forward import check_features, forward
from .core.heads import make_head
from .core.init import Initializer
from .core.norm import make_normalizer
from .core.optim import AdamOptimizer
from .core.params import OptimizerState, WeightStore
from .core.types import Array, Batch, LayerDims, Prediction, Sample, ScheduleParams, TrainStep
from .inference import InferenceEngine
from .serialization import ModelSerializer
from .training.loop import TrainingLoop
from .training.losses import REGISTRY as LOSS_REGISTRY
from .training.schedule import Schedule, make_schedule
from .vocab import LabelVocabulary

logger = logging.getLogger(__name__)


class FieldClassifier:
    """Three-layer form-field classifier.

    Every strategy (head, normaliser, loss, schedule) is chosen once here from
    :class:`ClassifierConfig`. Arrays handed in by callers are copied, never
    retained.
    """

    def __init__(
        self,
        dims: LayerDims | Sequence[int],
        vocabulary: Optional[LabelVocabulary] = None,
        config: Optional[ClassifierConfig] = None,
        rng: Optional[np.random.Generator] = None,
        *,
        seed: int = 0,
    ) -> None:
        self.dims = dims if isinstance(dims, LayerDims) else LayerDims.from_sequence(dims)
        self.config = config or ClassifierConfig()
        self.rng = rng if rng is not None else np.random.default_rng(seed)
        self.vocabulary = vocabulary or LabelVocabulary.anonymous(self.dims.output_size)
        if len(self.vocabulary) != self.dims.output_size:
            raise ShapeMismatchError(
                f"Vocabulary has {len(self.vocabulary)} labels but the output layer has "
                f"{self.dims.output_size} units"
            )

        cfg = self.config
        self.head = make_head(cfg.mode)
        self.normalizer = make_normalizer(
            cfg.normalization,
            momentum=cfg.norm_momentum,
            epsilon=cfg.norm_epsilon,
            backward=cfg.norm_backward,
        )
        self.loss = LOSS_REGISTRY.resolve(cfg.loss, mode=cfg.mode, **cfg.loss_options())
        self.schedule: Schedule = make_schedule(
            cfg.schedule, lr=cfg.learning_rate, warmup_epochs=cfg.warmup_epochs
        )
        self.engine = InferenceEngine(
            head=self.head, vocabulary=self.vocabulary, threshold=cfg.threshold, top_k=cfg.top_k
        )
        self.serializer = ModelSerializer(self.dims, cfg.mode)
        self.loop = TrainingLoop(
            head=self.head,
            normalizer=self.normalizer,
            loss=self.loss,
            backprop=BackPropagator(
                alpha=cfg.leaky_alpha,
                norm_gradient=self.normalizer.gradient,
                norm_epsilon=cfg.norm_epsilon,
            ),
            clipper=GradientClipper(max_norm=cfg.clip_norm),
            optimizer=AdamOptimizer(
                beta1=cfg.beta1,
                beta2=cfg.beta2,
                epsilon=cfg.adam_epsilon,
                weight_decay=cfg.weight_decay,
            ),
            schedule=self.schedule,
            rng=self.rng,
            alpha=cfg.leaky_alpha,
            dropout=cfg.dropout,
            max_batch_size=cfg.max_batch_size,
        )
        self._store: Optional[WeightStore] = None
        self._state: Optional[OptimizerState] = None

    # ------------------------------------------------------------------
    # Lifecycle

    @property
    def is_ready(self) -> bool:
        return self._store is not None

    @property
    def store(self) -> WeightStore:
        if self._store is None:
            raise UninitializedModelError("Model weights are not initialised")
        return self._store

    @property
    def optimizer_state(self) -> Optional[OptimizerState]:
        return self._state

    def initialize(self) -> None:
        initializer = Initializer(self.rng, alpha=self.config.leaky_alpha)
        self._store, self._state = initializer.with_state(
            self.dims, self.head, normalization=self.config.uses_normalization
        )

    def parameter_count(self) -> int:
        return self.dims.parameter_count()

    # ------------------------------------------------------------------
    # Training

    def train(
        self,
        batch: Batch | Sequence[Sample],
        schedule: Optional[ScheduleParams] = None,
    ) -> TrainStep:
        if not isinstance(batch, Batch):
            batch = Batch.from_samples(batch)
        if self._store is None:
            if not self.config.auto_initialize:
                raise UninitializedModelError("Call initialize() or import_model() before training")
            self.initialize()
        if self._state is None:
            self._state = OptimizerState.zeros_like(self._store.trainable())
        inputs = np.asarray(batch.inputs, dtype=np.float64)
        if inputs.ndim != 2 or inputs.shape[1] != self.dims.input_size:
            raise ShapeMismatchError(
                f"Expected inputs of shape (n, {self.dims.input_size}), got {inputs.shape}"
            )
        return self.loop.train_batch(
            self._store,
            self._state,
            Batch(inputs=inputs, targets=np.asarray(batch.targets)),
            schedule or ScheduleParams(),
        )

    # ------------------------------------------------------------------
    # Inference

    def predict_proba(self, features: Array) -> Array:
        store = self.store
        x = check_features(features, self.dims.input_size)
        cache = forward(
            x, store, self.head, self.normalizer, alpha=self.config.leaky_alpha, training=False
        )
        return cache.probs

    def predict(self, features: Array) -> Prediction:
        if self._store is None:
            logger.warning("predict() called before the model was initialised")
            return Prediction.unknown()
        return self.engine.decide(self.predict_proba(features))

    # ------------------------------------------------------------------
    # Persistence

    def export_model(self) -> Dict[str, Any]:
        return self.serializer.export_store(self.store)

    def import_model(self, record: Mapping[str, Any]) -> None:
        """Replace the live weights with ``record``.

        Raises :class:`SerializationError` or :class:`ShapeMismatchError`
        without touching the current model when the record is rejected.
        """

        store = self.serializer.import_store(
            record, normalization=self.config.uses_normalization
        )
        self._install(store)

    def save(self, path: str | Path) -> Path:
        return self.serializer.save(self.store, path)

    def load(self, path: str | Path) -> None:
        self._install(self.serializer.load(path, normalization=self.config.uses_normalization))

    def snapshot(self) -> WeightStore:
        return self.store.copy()

    def restore(self, store: WeightStore) -> None:
        store.validate(self.dims)
        self._store = store.copy()

    def _install(self, store: WeightStore) -> None:
        self._store = store
        self._state = OptimizerState.zeros_like(store.trainable())


__all__ = ["FieldClassifier"]
