"""
Training hyperparameters.
"""
import math
from dataclasses import asdict, dataclass, fields
from typing import Any

from .exceptions import ConfigurationError

__all__ = ["TrainingConfig"]


@dataclass
class TrainingConfig:
    """
    Hyperparameters of one training run.

    Attributes:
        win_rate: Initial learning rate of the winning node.
        other_rate: Initial learning rate of the other nodes in the neighborhood.
        win_rate_decay: Decay constant of ``win_rate``.
        other_rate_decay: Decay constant of ``other_rate``.
        radius_decay: Decay constant of the neighborhood radius.
        radius_factor: Initial neighborhood radius as a fraction of the grid diagonal.
        seed: Seed for the initial node values. ``None`` or ``0`` seeds from the clock.
        convergence_threshold: Training stops once ``win_rate`` drops below this.
    """
    win_rate: float = 0.95
    other_rate: float = 0.90
    win_rate_decay: float = 0.9980
    other_rate_decay: float = 0.9975
    radius_decay: float = 0.99
    radius_factor: float = 0.50
    seed: int | None = None
    convergence_threshold: float = 0.5

    def __post_init__(self):
        for name in ("win_rate", "other_rate", "win_rate_decay", "other_rate_decay",
                     "radius_decay", "radius_factor", "convergence_threshold"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
                raise ConfigurationError(f"{name} must be a finite number. Got {value!r}")
        if self.convergence_threshold <= 0:
            raise ConfigurationError(
                f"convergence_threshold must be positive. Got {self.convergence_threshold}"
            )
        if self.seed is not None and (isinstance(self.seed, bool) or not isinstance(self.seed, int) or self.seed < 0):
            raise ConfigurationError(f"seed must be None or a non-negative integer. Got {self.seed!r}")

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, values: dict[str, Any]) -> "TrainingConfig":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(values) - known)
        if unknown:
            raise ConfigurationError(f"Unknown training parameters: {', '.join(unknown)}")
        return cls(**values)
