"""
Fixed-length numeric vectors backed by 1-D float64 tensors.

All arithmetic happens in place on the receiver so that a ``Vector`` built
around a view of a larger tensor (for example one node of a grid) writes
straight through to the underlying storage.
"""
from collections.abc import Iterator, Sequence

import torch

from .exceptions import DimensionMismatchError

DTYPE = torch.float64


class Vector:
    """
    An N-dimensional vector of real numbers.

    A float64 tensor is wrapped without copying. Any other input (lists,
    tuples, tensors of another dtype) is copied into a new float64 tensor.
    """
    __slots__ = ("_data",)

    def __init__(self, values: "torch.Tensor | Sequence[float] | Vector"):
        if isinstance(values, Vector):
            values = values._data
        if isinstance(values, torch.Tensor):
            data = values if values.dtype == DTYPE else values.to(DTYPE)
        else:
            data = torch.tensor(values, dtype=DTYPE)
        if data.dim() != 1:
            raise DimensionMismatchError(f"Vector values must be 1-D. Got shape {tuple(data.shape)}")
        self._data = data

    @classmethod
    def zeros(cls, dimension: int) -> "Vector":
        return cls(torch.zeros(dimension, dtype=DTYPE))

    @classmethod
    def random(cls, dimension: int, generator: torch.Generator) -> "Vector":
        """Uniform [0, 1) values drawn from ``generator``."""
        return cls(torch.rand(dimension, generator=generator, dtype=DTYPE))

    @property
    def data(self) -> torch.Tensor:
        """The backing tensor (not a copy)."""
        return self._data

    @property
    def dimension(self) -> int:
        return self._data.shape[0]

    def __len__(self) -> int:
        return self.dimension

    def __getitem__(self, index: int) -> float:
        return float(self._data[index])

    def __iter__(self) -> Iterator[float]:
        return iter(self.tolist())

    def __repr__(self) -> str:
        return f"Vector({self.tolist()})"

    def tolist(self) -> list[float]:
        return self._data.tolist()

    def _check(self, other: "Vector") -> None:
        if self.dimension != other.dimension:
            raise DimensionMismatchError(
                f"Vector dimensions differ: {self.dimension} != {other.dimension}"
            )

    def distance(self, other: "Vector") -> float:
        """Euclidean (L2) distance to ``other``."""
        self._check(other)
        return torch.sqrt(torch.sum((other._data - self._data) ** 2)).item()

    def add(self, other: "Vector") -> "Vector":
        self._check(other)
        self._data.add_(other._data)
        return self

    def subtract(self, other: "Vector") -> "Vector":
        self._check(other)
        self._data.sub_(other._data)
        return self

    def scale(self, factor: float) -> "Vector":
        self._data.mul_(factor)
        return self

    def copy_from(self, other: "Vector") -> "Vector":
        """Overwrite this vector's values with ``other``'s."""
        self._check(other)
        self._data.copy_(other._data)
        return self

    def copy(self) -> "Vector":
        return Vector(self._data.clone())


def distance(a: Vector, b: Vector) -> float:
    """Euclidean distance between two vectors of equal length."""
    return a.distance(b)
