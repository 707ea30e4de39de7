"""Core numerical primitives for fieldnet."""

from . import activations, backward, clipping, errors, forward, heads, init, norm, optim, params, types

__all__ = [
    "activations",
    "backward",
    "clipping",
    "errors",
    "forward",
    "heads",
    "init",
    "norm",
    "optim",
    "params",
    "types",
]
