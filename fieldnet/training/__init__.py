"""Training components: losses, schedules, the mini-batch loop and the epoch trainer.

``pipelines`` is imported on demand since it depends on the classifier facade.
"""

from .losses import REGISTRY as LOSS_REGISTRY
from .loop import TrainingLoop
from .schedule import ConstantRate, WarmupCosine, make_schedule
from .trainer import Trainer

__all__ = [
    "ConstantRate",
    "LOSS_REGISTRY",
    "Trainer",
    "TrainingLoop",
    "WarmupCosine",
    "make_schedule",
]
