"""Labelled feature records stored as JSON."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Iterable, Mapping, Tuple

import numpy as np

from ..core.errors import ShapeMismatchError
from ..vocab import LabelVocabulary


def parse_records(
    records: Iterable[Mapping[str, Any]], vocabulary: LabelVocabulary
) -> Tuple[np.ndarray, np.ndarray]:
    """Turn ``{"features": [...], "label": "..."}`` records into arrays.

    Records carrying a ``labels`` list instead are multi-label; if any record
    does, every target becomes a 0/1 vector over the vocabulary.
    """

    rows = list(records)
    if not rows:
        raise ValueError("No records to parse")
    features = []
    label_sets = []
    multi = False
    for row in rows:
        features.append(np.asarray(row["features"], dtype=np.float64))
        if "labels" in row:
            multi = True
            label_sets.append([vocabulary.index_of(label) for label in row["labels"]])
        else:
            label_sets.append([vocabulary.index_of(row["label"])])

    width = features[0].shape
    for idx, vec in enumerate(features):
        if vec.ndim != 1 or vec.shape != width:
            raise ShapeMismatchError(f"Record {idx} has features of shape {vec.shape}, expected {width}")
    inputs = np.stack(features)

    if multi:
        targets = np.zeros((len(rows), len(vocabulary)))
        for i, active in enumerate(label_sets):
            targets[i, active] = 1.0
    else:
        targets = np.asarray([active[0] for active in label_sets], dtype=np.int64)
    return inputs, targets


def load_records(path: str | Path, vocabulary: LabelVocabulary) -> Tuple[np.ndarray, np.ndarray]:
    data = json.loads(Path(path).read_text())
    if isinstance(data, Mapping):
        data = data.get("samples", [])
    return parse_records(data, vocabulary)


__all__ = ["load_records", "parse_records"]
