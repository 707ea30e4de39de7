"""Dataset helpers for fieldnet."""

from .records import load_records, parse_records
from .synthetic import make_blobs, make_multilabel
from .utils import deterministic_split, iter_batches, seed_everything

__all__ = [
    "deterministic_split",
    "iter_batches",
    "load_records",
    "make_blobs",
    "make_multilabel",
    "parse_records",
    "seed_everything",
]
