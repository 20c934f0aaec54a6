"""
Rectangular grid of map nodes with double-buffered synaptic vectors.

Every node holds a *committed* vector, which is what winner search sees,
and a *staged* vector that collects this epoch's learning updates. Both
live in ``(x_size, y_size, dimension)`` float64 tensors owned by the grid;
``commit()`` folds the staged values into the committed ones.
"""
from collections.abc import Iterator

import torch

from .exceptions import ConfigurationError, DimensionMismatchError
from .samples import InputSample
from .vector import DTYPE, Vector

Position = tuple[float, float, float]


def make_generator(seed: int | None = None) -> torch.Generator:
    """
    Returns a CPU generator seeded with ``seed``, or from the clock when
    ``seed`` is ``None`` or ``0``.
    """
    generator = torch.Generator()
    if seed:
        generator.manual_seed(seed)
    else:
        generator.seed()
    return generator


class MapNode:
    """
    View on one cell of a ``SomGrid``.

    ``committed`` and ``staged`` are ``Vector`` views into the grid's
    storage, so in-place vector operations on them modify the grid.
    """
    __slots__ = ("index", "position", "committed", "staged")

    def __init__(self, index: tuple[int, int], position: Position, committed: Vector, staged: Vector):
        self.index = index
        self.position = position
        self.committed = committed
        self.staged = staged

    def __repr__(self) -> str:
        return f"MapNode(index={self.index}, position={self.position}, committed={self.committed.tolist()})"


class SomGrid:
    """
    A ``x_size`` by ``y_size`` map of nodes with ``dimension``-long synaptic vectors.
    """

    def __init__(self, weights: torch.Tensor, spacing: float = 1.0):
        """
        Builds a grid around existing node values.

        Args:
            weights (torch.Tensor): Committed node values of shape (x_size, y_size, dimension).
                                    The tensor is copied.
            spacing (float): Distance between neighbouring node positions.
        """
        if weights.dim() != 3:
            raise ConfigurationError(f"Grid weights must be 3D (x_size, y_size, dimension). Got shape {tuple(weights.shape)}")
        x_size, y_size, dimension = weights.shape
        _check_sizes(x_size, y_size, dimension)

        self.x_size = x_size
        self.y_size = y_size
        self.dimension = dimension
        self.spacing = float(spacing)

        self._committed = weights.detach().to(DTYPE).clone()
        self._staged = self._committed.clone()

        # Integer grid coordinates, used for topological distances
        rows = torch.arange(x_size, dtype=DTYPE)
        cols = torch.arange(y_size, dtype=DTYPE)
        grid_i, grid_j = torch.meshgrid(rows, cols, indexing='ij')
        self._coords = torch.stack([grid_i, grid_j], dim=-1)

    @classmethod
    def initialize(cls,
                   x_size: int,
                   y_size: int,
                   dimension: int,
                   spacing: float = 1.0,
                   seed: int | None = None,
                   generator: torch.Generator | None = None
                  ) -> "SomGrid":
        """
        Allocates a grid whose committed values are uniform [0, 1) draws.

        Values are drawn node by node in row-major order (i, then j), so a
        given seed always yields the same grid.

        Args:
            x_size (int): Number of nodes along the first axis.
            y_size (int): Number of nodes along the second axis.
            dimension (int): Length of every synaptic vector.
            spacing (float): Distance between neighbouring node positions.
            seed (int | None): Seed for the values. ``None`` or ``0`` seeds from the clock.
            generator (torch.Generator | None): Random source to use instead of ``seed``.
        """
        _check_sizes(x_size, y_size, dimension)
        if generator is None:
            generator = make_generator(seed)
        weights = torch.rand(x_size, y_size, dimension, generator=generator, dtype=DTYPE)
        return cls(weights, spacing=spacing)

    @classmethod
    def from_weights(cls, weights: torch.Tensor, spacing: float = 1.0) -> "SomGrid":
        return cls(torch.as_tensor(weights, dtype=DTYPE), spacing=spacing)

    @property
    def shape(self) -> tuple[int, int]:
        return (self.x_size, self.y_size)

    @property
    def num_nodes(self) -> int:
        return self.x_size * self.y_size

    def position(self, i: int, j: int) -> Position:
        return (i * self.spacing, j * self.spacing, 0.0)

    def node(self, i: int, j: int) -> MapNode:
        self._check_index(i, j)
        return MapNode(
            index=(i, j),
            position=self.position(i, j),
            committed=Vector(self._committed[i, j]),
            staged=Vector(self._staged[i, j]),
        )

    def nodes(self) -> Iterator[MapNode]:
        """Iterates all nodes in row-major order."""
        for i in range(self.x_size):
            for j in range(self.y_size):
                yield self.node(i, j)

    def weights(self) -> torch.Tensor:
        """Returns a copy of the committed values, shape (x_size, y_size, dimension)."""
        return self._committed.clone()

    def positions(self) -> torch.Tensor:
        """Returns node positions in map space, shape (x_size, y_size, 3)."""
        planar = self._coords * self.spacing
        return torch.cat([planar, torch.zeros(self.x_size, self.y_size, 1, dtype=DTYPE)], dim=-1)

    def find_winner(self, sample: "InputSample | Vector") -> tuple[int, int]:
        """
        Finds the node whose committed vector is closest to ``sample``.

        Every node is checked. Ties go to the first node in row-major
        order, since ``torch.argmin`` returns the first minimal index.
        """
        features = self._features(sample)
        flat = self._committed.reshape(-1, self.dimension)
        distances = torch.sqrt(torch.sum((flat - features.data) ** 2, dim=1))
        index = int(torch.argmin(distances))
        return divmod(index, self.y_size)

    def accumulate(self,
                   winner: tuple[int, int],
                   sample: "InputSample | Vector",
                   win_rate: float,
                   other_rate: float,
                   neighborhood_radius: float):
        """
        Stages one sample's learning update.

        The winner moves by ``win_rate * (sample - committed)``. Any other
        node whose grid distance ``r`` to the winner is at most
        ``neighborhood_radius`` moves by ``(other_rate / r) * (sample - committed)``.
        Nodes further away are left alone. Only the staged values change.
        """
        features = self._features(sample)
        wi, wj = winner
        self._check_index(wi, wj)

        offsets = self._coords - torch.tensor([wi, wj], dtype=DTYPE)
        radii = torch.sqrt(torch.sum(offsets ** 2, dim=-1))

        in_reach = radii <= neighborhood_radius
        in_reach[wi, wj] = True
        rates = other_rate / radii
        rates[wi, wj] = win_rate

        delta = features.data - self._committed[in_reach]
        self._staged[in_reach] += rates[in_reach].unsqueeze(-1) * delta

    def commit(self):
        """Makes the staged values current and restarts staging from them."""
        self._committed.copy_(self._staged)
        self._staged.copy_(self._committed)

    def _features(self, sample: "InputSample | Vector") -> Vector:
        features = sample.features if isinstance(sample, InputSample) else sample
        if features.dimension != self.dimension:
            raise DimensionMismatchError(
                f"Sample has {features.dimension} features, grid nodes have {self.dimension}"
            )
        return features

    def _check_index(self, i: int, j: int):
        if not (0 <= i < self.x_size and 0 <= j < self.y_size):
            raise IndexError(f"Node ({i}, {j}) is outside the {self.x_size}x{self.y_size} grid")

    def __repr__(self) -> str:
        return f"SomGrid(x_size={self.x_size}, y_size={self.y_size}, dimension={self.dimension}, spacing={self.spacing})"


def _check_sizes(x_size: int, y_size: int, dimension: int):
    if x_size <= 0 or y_size <= 0:
        raise ConfigurationError(f"Grid sizes must be positive. Got ({x_size}, {y_size})")
    if dimension <= 0:
        raise ConfigurationError(f"Dimension must be positive. Got {dimension}")
