"""
Exception hierarchy for kohonen_mapper.
"""


class KohonenError(Exception):
    """Base exception for kohonen_mapper."""
    pass


class ConfigurationError(KohonenError, ValueError):
    """Raised when grid sizes, hyperparameters or inputs are invalid."""
    pass


class DimensionMismatchError(KohonenError, ValueError):
    """Raised when two vectors of different length are combined."""
    pass


class TrainingError(KohonenError, RuntimeError):
    """Raised when the training lifecycle is used out of order."""
    pass
