"""
Training inputs and helpers to build them from raw feature vectors.
"""
from collections.abc import Sequence

import torch

from .exceptions import ConfigurationError, DimensionMismatchError
from .vector import DTYPE, Vector


class InputSample:
    """
    One training vector plus the position of the node it currently maps to.

    The feature vector is copied on construction and never modified by
    training. ``matched_node`` and ``matched_position`` are refreshed by the
    engine every epoch and stay ``None`` until the first epoch has run.
    """

    def __init__(self, values: "torch.Tensor | Sequence[float] | Vector"):
        self._features = Vector(values).copy()
        self.matched_node: tuple[int, int] | None = None
        self.matched_position: tuple[float, float, float] | None = None

    @property
    def features(self) -> Vector:
        """A copy of the feature vector; the sample's own values never change."""
        return self._features.copy()

    @property
    def dimension(self) -> int:
        return self._features.dimension

    def __repr__(self) -> str:
        return f"InputSample(features={self._features.tolist()}, matched_position={self.matched_position})"


def samples_from_vectors(vectors, dimension: int | None = None) -> list[InputSample]:
    """
    Builds input samples from a 2-D tensor or a sequence of feature vectors.

    Args:
        vectors: Tensor of shape (num_samples, dimension) or a sequence of
                 equal-length sequences of numbers.
        dimension (int | None): Expected feature length. Inferred from the
                                first vector when omitted.

    Returns:
        list[InputSample]: One sample per input vector, in input order.
    """
    if isinstance(vectors, torch.Tensor):
        if vectors.dim() != 2:
            raise DimensionMismatchError(f"Input data must be 2D. Got shape {tuple(vectors.shape)}")
        vectors = vectors.to(DTYPE)
    if len(vectors) == 0:
        raise ConfigurationError("At least one input vector is required.")

    samples = [InputSample(values) for values in vectors]
    expected = samples[0].dimension if dimension is None else dimension
    if expected <= 0:
        raise ConfigurationError(f"Feature dimension must be positive. Got {expected}")
    for index, sample in enumerate(samples):
        if sample.dimension != expected:
            raise DimensionMismatchError(
                f"Input {index} has {sample.dimension} features, expected {expected}"
            )
    return samples
