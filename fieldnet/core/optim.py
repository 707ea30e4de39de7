"""Adam with decoupled L2 weight decay."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Tuple

import numpy as np

from .params import OptimizerState
from .types import Array


@dataclass
class AdamOptimizer:
    """Adaptive-moment updates with a step counter shared by all tensors."""

    beta1: float = 0.9
    beta2: float = 0.999
    epsilon: float = 1e-8
    weight_decay: float = 1e-4

    def bias_corrections(self, t: int) -> Tuple[float, float]:
        return 1.0 - self.beta1**t, 1.0 - self.beta2**t

    def step(
        self,
        params: Mapping[str, Array],
        grads: Mapping[str, Array],
        state: OptimizerState,
        lr: float,
    ) -> None:
        """Update every parameter with a gradient in place, advancing ``state.t`` once.

        Weight decay applies to weight matrices only; bias vectors are not
        decayed.
        """

        state.t += 1
        bc1, bc2 = self.bias_corrections(state.t)
        for name, param in params.items():
            grad = grads.get(name)
            if grad is None:
                continue
            if name not in state.m:
                state.m[name] = np.zeros_like(param)
                state.v[name] = np.zeros_like(param)
            m, v = state.m[name], state.v[name]
            m *= self.beta1
            m += (1.0 - self.beta1) * grad
            v *= self.beta2
            v += (1.0 - self.beta2) * np.square(grad)
            m_hat = m / bc1
            v_hat = v / bc2
            param -= lr * m_hat / (np.sqrt(v_hat) + self.epsilon)
            if param.ndim > 1:
                param -= lr * self.weight_decay * param


__all__ = ["AdamOptimizer"]
