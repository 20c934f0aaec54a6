"""
Epoch orchestration, parameter decay and convergence for SOM training.
"""
import dataclasses
import logging
import math
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum

import torch

from .config import TrainingConfig
from .exceptions import ConfigurationError, DimensionMismatchError, TrainingError
from .grid import Position, SomGrid
from .samples import InputSample

logger = logging.getLogger(__name__)


class EngineStatus(Enum):
    UNINITIALIZED = "uninitialized"
    TRAINING = "training"
    CONVERGED = "converged"


@dataclass
class TrainingState:
    """Scalar state of one training run."""
    win_rate: float
    other_rate: float
    neighborhood_radius: float
    win_rate_decay: float
    other_rate_decay: float
    radius_decay: float
    initial_radius: float
    epoch: int = 0
    converged: bool = False


@dataclass
class EpochReport:
    """Everything a caller reads back after an epoch."""
    converged: bool
    epoch: int
    neighborhood_radius: float
    node_positions: torch.Tensor   # (x_size, y_size, 3)
    synaptic_weights: torch.Tensor # (x_size, y_size, dimension)
    input_positions: list[Position | None]


class TrainingEngine:
    """
    Drives training of a ``SomGrid`` over a list of ``InputSample``.

    Usage is two-phase: ``configure(grid, samples)`` once per run, then
    ``run_epoch(grid, samples)`` until ``converged``. ``reset()`` discards
    the run.
    """

    def __init__(self, config: TrainingConfig | None = None):
        self.config = config if config is not None else TrainingConfig()
        self._status = EngineStatus.UNINITIALIZED
        self._state: TrainingState | None = None
        self._grid_shape: tuple[int, int] | None = None

    @property
    def status(self) -> EngineStatus:
        return self._status

    @property
    def converged(self) -> bool:
        return self._status is EngineStatus.CONVERGED

    @property
    def training_state(self) -> TrainingState | None:
        """A copy of the current training state, or ``None`` before ``configure``."""
        if self._state is None:
            return None
        return dataclasses.replace(self._state)

    def configure(self, grid: SomGrid, samples: Sequence[InputSample]) -> TrainingState:
        """
        Starts a new run on ``grid``.

        The initial neighborhood radius is the grid diagonal
        ``sqrt(x_size**2 + y_size**2)`` scaled by ``config.radius_factor``.
        """
        self._check_samples(grid, samples)
        config = self.config
        initial_radius = math.sqrt(grid.x_size ** 2 + grid.y_size ** 2) * config.radius_factor
        self._state = TrainingState(
            win_rate=config.win_rate,
            other_rate=config.other_rate,
            neighborhood_radius=initial_radius,
            win_rate_decay=config.win_rate_decay,
            other_rate_decay=config.other_rate_decay,
            radius_decay=config.radius_decay,
            initial_radius=initial_radius,
        )
        self._grid_shape = grid.shape
        self._status = EngineStatus.UNINITIALIZED
        logger.debug("Configured %dx%d grid with %d samples, initial radius %.4f",
                     grid.x_size, grid.y_size, len(samples), initial_radius)
        return self.training_state

    def run_epoch(self, grid: SomGrid, samples: Sequence[InputSample]) -> TrainingState:
        """
        Presents every sample once, commits the grid and decays the rates.

        Winner search for every sample reads the committed node values
        only, which stay fixed until ``grid.commit()``. Once converged this
        is a no-op returning the final state.
        """
        if self._state is None:
            raise TrainingError("run_epoch() called before configure()")
        if self.converged:
            return self.training_state
        if grid.shape != self._grid_shape:
            raise TrainingError(f"Grid shape changed from {self._grid_shape} to {grid.shape}; call configure() again")
        self._check_samples(grid, samples)

        self._status = EngineStatus.TRAINING
        state = self._state

        for sample in samples:
            winner = grid.find_winner(sample)
            sample.matched_node = winner
            sample.matched_position = grid.position(*winner)
            grid.accumulate(winner, sample, state.win_rate, state.other_rate, state.neighborhood_radius)

        grid.commit()
        self._decay(state)

        logger.debug("Epoch %d: win_rate=%.6f other_rate=%.6f radius=%.4f",
                     state.epoch, state.win_rate, state.other_rate, state.neighborhood_radius)

        if state.win_rate < self.config.convergence_threshold:
            state.converged = True
            self._status = EngineStatus.CONVERGED
            logger.info("Converged after %d epochs (win_rate=%.6f)", state.epoch, state.win_rate)

        return self.training_state

    def train(self,
              grid: SomGrid,
              samples: Sequence[InputSample],
              max_epochs: int | None = None,
              should_stop: Callable[[TrainingState], bool] | None = None
             ) -> TrainingState:
        """
        Runs epochs until convergence.

        Args:
            grid (SomGrid): The configured grid.
            samples (Sequence[InputSample]): The configured samples.
            max_epochs (int | None): Upper bound on epochs run by this call.
            should_stop (Callable | None): Called with the state after every
                                           epoch; returning True stops training.

        Returns:
            TrainingState: The state after the last epoch run.
        """
        if self._state is None:
            raise TrainingError("train() called before configure()")
        config = self.config
        if max_epochs is None and config.win_rate_decay >= 1 and config.win_rate >= config.convergence_threshold:
            raise ConfigurationError(
                f"win_rate_decay={config.win_rate_decay} never brings win_rate below "
                f"{config.convergence_threshold}; pass max_epochs"
            )

        epochs_run = 0
        while not self.converged:
            if max_epochs is not None and epochs_run >= max_epochs:
                break
            state = self.run_epoch(grid, samples)
            epochs_run += 1
            if should_stop is not None and should_stop(state):
                logger.info("Training stopped by caller at epoch %d", state.epoch)
                break
        return self.training_state

    def report(self, grid: SomGrid, samples: Sequence[InputSample]) -> EpochReport:
        if self._state is None:
            raise TrainingError("report() called before configure()")
        return EpochReport(
            converged=self._state.converged,
            epoch=self._state.epoch,
            neighborhood_radius=self._state.neighborhood_radius,
            node_positions=grid.positions(),
            synaptic_weights=grid.weights(),
            input_positions=[sample.matched_position for sample in samples],
        )

    def reset(self):
        self._status = EngineStatus.UNINITIALIZED
        self._state = None
        self._grid_shape = None

    @staticmethod
    def _decay(state: TrainingState):
        # Linear-in-epoch multipliers applied to the current value, so the decay compounds
        epoch = state.epoch
        state.win_rate *= 1 - epoch * (1 - state.win_rate_decay)
        state.other_rate *= 1 - epoch * (1 - state.other_rate_decay)
        state.neighborhood_radius = state.initial_radius * (1 - epoch * (1 - state.radius_decay))
        state.epoch += 1

    @staticmethod
    def _check_samples(grid: SomGrid, samples: Sequence[InputSample]):
        if len(samples) == 0:
            raise ConfigurationError("At least one input sample is required.")
        for index, sample in enumerate(samples):
            if sample.dimension != grid.dimension:
                raise DimensionMismatchError(
                    f"Input {index} has {sample.dimension} features, grid nodes have {grid.dimension}"
                )
