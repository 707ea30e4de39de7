"""fieldnet: a from-scratch numpy classifier for form-field descriptors."""

from .classifier import FieldClassifier
from .config import ClassifierConfig
from .core.errors import (
    FieldNetError,
    SerializationError,
    ShapeMismatchError,
    UninitializedModelError,
)
from .core.types import Batch, LayerDims, Prediction, Sample, ScheduleParams, TrainStep
from .vocab import DEFAULT_FIELD_TYPES, LabelVocabulary

__version__ = "0.1.0"

__all__ = [
    "Batch",
    "ClassifierConfig",
    "DEFAULT_FIELD_TYPES",
    "FieldClassifier",
    "FieldNetError",
    "LabelVocabulary",
    "LayerDims",
    "Prediction",
    "Sample",
    "ScheduleParams",
    "SerializationError",
    "ShapeMismatchError",
    "TrainStep",
    "UninitializedModelError",
]
