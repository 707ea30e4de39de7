"""Versioned, JSON-safe snapshots of a :class:`WeightStore`."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import numpy as np

from .core.errors import SerializationError, ShapeMismatchError
from .core.params import NormParams, WeightStore
from .core.types import LayerDims

logger = logging.getLogger(__name__)

FORMAT_VERSION = 1

_NORM_FIELDS = (
    ("normalization_scale", "scale"),
    ("normalization_shift", "shift"),
    ("running_mean", "running_mean"),
    ("running_variance", "running_var"),
)


def _to_array(record: Mapping[str, Any], key: str) -> np.ndarray:
    if key not in record:
        raise SerializationError(f"Model record is missing {key!r}")
    try:
        array = np.asarray(record[key], dtype=np.float64)
    except (TypeError, ValueError) as exc:
        raise SerializationError(f"{key!r} is not a numeric tensor") from exc
    if not np.all(np.isfinite(array)):
        raise SerializationError(f"{key!r} contains non-finite values")
    return array


class ModelSerializer:
    """Convert weight stores to plain records and back.

    ``import_store`` never touches the caller's live model: it returns a new
    store only after every tensor has passed validation.
    """

    def __init__(self, dims: LayerDims, mode: str) -> None:
        self.dims = dims
        self.mode = mode

    def export_store(self, store: WeightStore) -> Dict[str, Any]:
        record: Dict[str, Any] = {
            "format_version": FORMAT_VERSION,
            "mode": self.mode,
            "layer_dims": self.dims.as_list(),
        }
        for idx, (W, b) in enumerate(zip(store.weights, store.biases), start=1):
            record[f"weight_matrix{idx}"] = W.tolist()
            record[f"bias_vector{idx}"] = b.tolist()
        for idx, norm in enumerate(store.norms or [], start=1):
            for prefix, attr in _NORM_FIELDS:
                record[f"{prefix}{idx}"] = getattr(norm, attr).tolist()
        return record

    def import_store(
        self, record: Mapping[str, Any], *, normalization: bool
    ) -> WeightStore:
        if not isinstance(record, Mapping):
            raise SerializationError("A model record must be a mapping")
        version = record.get("format_version")
        if version != FORMAT_VERSION:
            raise SerializationError(
                f"Unsupported model format version {version!r}; expected {FORMAT_VERSION}"
            )
        mode = record.get("mode", self.mode)
        if mode != self.mode:
            raise SerializationError(f"Record was exported by a {mode} model, not {self.mode}")
        if "layer_dims" in record:
            try:
                layer_dims = list(record["layer_dims"])
            except TypeError as exc:
                raise SerializationError(f"Malformed layer_dims: {record['layer_dims']!r}") from exc
            if layer_dims != self.dims.as_list():
                raise ShapeMismatchError(
                    f"Record layer dims {layer_dims} != {self.dims.as_list()}"
                )

        weights = [_to_array(record, f"weight_matrix{i}") for i in (1, 2, 3)]
        biases = [_to_array(record, f"bias_vector{i}") for i in (1, 2, 3)]
        norms: Optional[list] = None
        if normalization:
            norms = []
            for idx in (1, 2):
                values = {attr: _to_array(record, f"{prefix}{idx}") for prefix, attr in _NORM_FIELDS}
                norms.append(NormParams(**values))
        store = WeightStore(weights=weights, biases=biases, norms=norms)
        store.validate(self.dims)
        return store

    def save(self, store: WeightStore, path: str | Path) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(self.export_store(store)))
        logger.info("Saved model to %s", path)
        return path

    def load(self, path: str | Path, *, normalization: bool) -> WeightStore:
        path = Path(path)
        try:
            record = json.loads(path.read_text())
        except (OSError, json.JSONDecodeError) as exc:
            raise SerializationError(f"Could not read model file {path}: {exc}") from exc
        store = self.import_store(record, normalization=normalization)
        logger.info("Loaded model from %s", path)
        return store


__all__ = ["FORMAT_VERSION", "ModelSerializer"]
