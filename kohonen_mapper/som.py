import logging
from collections.abc import Callable

import torch

from .config import TrainingConfig
from .engine import EngineStatus, EpochReport, TrainingEngine, TrainingState
from .exceptions import ConfigurationError, DimensionMismatchError, TrainingError
from .grid import SomGrid, make_generator
from .samples import InputSample, samples_from_vectors
from .vector import DTYPE, Vector

logger = logging.getLogger(__name__)


class SOM:
    """
    A Kohonen Self-Organizing Map on a rectangular grid.

    This class bundles the node grid, the training engine and the loaded
    training samples. Training presents every sample once per epoch,
    stages the neighborhood updates and commits them at the end of the
    epoch, decaying the learning rates until the winner rate falls below
    the convergence threshold.
    """
    def __init__(self,
                 map_size: tuple[int, int],
                 input_dim: int,
                 spacing: float = 1.0,
                 config: TrainingConfig | None = None,
                 random_seed: int | None = None
                ):
        """
        Initializes the Self-Organizing Map.

        Args:
            map_size (tuple[int, int]): Dimensions (rows, cols) of the SOM grid.
            input_dim (int): Dimensionality of the input data.
            spacing (float): Distance between neighbouring node positions in map space.
            config (TrainingConfig | None): Training hyperparameters. Defaults are used if omitted.
            random_seed (int | None): Seed for node initialization. Overrides ``config.seed``.
        """
        self.map_rows, self.map_cols = map_size
        self.num_neurons = self.map_rows * self.map_cols
        self.input_dim = input_dim
        self.spacing = spacing
        self.config = config if config is not None else TrainingConfig()
        self.random_seed = random_seed if random_seed is not None else self.config.seed

        self.grid = SomGrid.initialize(self.map_rows, self.map_cols, self.input_dim,
                                       spacing=self.spacing, generator=make_generator(self.random_seed))
        self.engine = TrainingEngine(self.config)
        self.samples: list[InputSample] = []

    @property
    def status(self) -> EngineStatus:
        return self.engine.status

    @property
    def converged(self) -> bool:
        return self.engine.converged

    @property
    def state(self) -> TrainingState | None:
        return self.engine.training_state

    def prepare(self, data) -> list[InputSample]:
        """
        Loads training data and configures a new training run.

        A run that has already started, or converged, must be discarded with
        ``reset()`` first.

        Args:
            data (torch.Tensor | Sequence[Sequence[float]]): Input data of shape (num_samples, input_dim).

        Returns:
            list[InputSample]: The loaded samples.
        """
        if self.engine.status is not EngineStatus.UNINITIALIZED:
            raise TrainingError(
                f"Training run is {self.engine.status.value}; call reset() before preparing a new run"
            )
        samples = samples_from_vectors(self._as_data(data), dimension=self.input_dim)
        self.engine.configure(self.grid, samples)
        self.samples = samples
        logger.info("Prepared %d samples on a %dx%d map (seed=%s)",
                    len(samples), self.map_rows, self.map_cols,
                    self.random_seed if self.random_seed else "clock")
        return samples

    def train_epoch(self) -> TrainingState:
        """Performs a single training epoch over the prepared samples."""
        if not self.samples:
            raise TrainingError("train_epoch() called before prepare()")
        return self.engine.run_epoch(self.grid, self.samples)

    def train(self,
              data,
              max_epochs: int | None = None,
              should_stop: Callable[[TrainingState], bool] | None = None
             ) -> TrainingState:
        """
        Trains the SOM on ``data`` until it converges.

        Args:
            data (torch.Tensor | Sequence[Sequence[float]]): Input data of shape (num_samples, input_dim).
            max_epochs (int | None): Stop after this many epochs even if not converged.
            should_stop (Callable | None): Called with the training state after every
                                           epoch; returning True stops training.
        """
        self.prepare(data)
        return self.engine.train(self.grid, self.samples, max_epochs=max_epochs, should_stop=should_stop)

    def reset(self):
        """Discards training progress and re-initializes the grid from the seed."""
        self.grid = SomGrid.initialize(self.map_rows, self.map_cols, self.input_dim,
                                       spacing=self.spacing, generator=make_generator(self.random_seed))
        self.engine.reset()
        self.samples = []

    def report(self) -> EpochReport:
        return self.engine.report(self.grid, self.samples)

    def get_weights(self) -> torch.Tensor:
        """Returns a copy of the current SOM weights, shape (num_neurons, input_dim)."""
        return self.grid.weights().reshape(self.num_neurons, self.input_dim)

    def get_neuron_locations(self) -> torch.Tensor:
        """Returns the (row, col) grid locations of the neurons, shape (num_neurons, 2)."""
        rows = torch.arange(self.map_rows, dtype=DTYPE)
        cols = torch.arange(self.map_cols, dtype=DTYPE)
        grid_x, grid_y = torch.meshgrid(rows, cols, indexing='ij')
        return torch.stack([grid_x.flatten(), grid_y.flatten()], dim=1)

    def get_node_positions(self) -> torch.Tensor:
        """Returns the neuron positions in map space, shape (num_neurons, 3)."""
        return self.grid.positions().reshape(self.num_neurons, 3)

    def map_to_bmu_indices(self, data) -> torch.Tensor:
        """
        Maps input data points to their Best Matching Unit (BMU) indices.

        Args:
            data (torch.Tensor): Input data of shape (num_samples, input_dim).

        Returns:
            torch.Tensor: A 1D tensor of row-major BMU indices, one per data point.
        """
        data = self._as_data(data)
        indices = []
        for row in data:
            i, j = self.grid.find_winner(Vector(row))
            indices.append(i * self.map_cols + j)
        return torch.tensor(indices, dtype=torch.long)

    def map_to_bmu_locations(self, data) -> torch.Tensor:
        """
        Maps input data points to the (row, col) grid coordinates of their BMUs.

        Returns:
            torch.Tensor: Shape (num_samples, 2).
        """
        bmu_indices = self.map_to_bmu_indices(data)
        return self.get_neuron_locations()[bmu_indices]

    def quantization_error(self, data) -> float:
        """
        Calculates the quantization error for the given data.
        Quantization error is the average distance between each data vector and its BMU.
        """
        data = self._as_data(data)
        bmu_weights = self.get_weights()[self.map_to_bmu_indices(data)]
        return torch.linalg.norm(data - bmu_weights, dim=1).mean().item()

    def _as_data(self, data) -> torch.Tensor:
        if len(data) == 0:
            raise ConfigurationError("At least one input vector is required.")
        try:
            data = torch.as_tensor(data, dtype=DTYPE)
        except ValueError as err:
            raise DimensionMismatchError(f"Input rows must all have {self.input_dim} features") from err
        if data.dim() != 2 or data.shape[1] != self.input_dim:
            raise DimensionMismatchError(f"Input data must be 2D with {self.input_dim} features. Got shape {tuple(data.shape)}")
        return data

    def __repr__(self) -> str:
        return f"SOM(map_size=({self.map_rows}, {self.map_cols}), input_dim={self.input_dim}, status='{self.status.value}')"
