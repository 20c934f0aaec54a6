"""
kohonen-mapper - Kohonen Self-Organizing Map training on a rectangular grid with PyTorch.
"""
from .config import TrainingConfig
from .engine import EngineStatus, EpochReport, TrainingEngine, TrainingState
from .exceptions import ConfigurationError, DimensionMismatchError, KohonenError, TrainingError
from .grid import MapNode, SomGrid, make_generator
from .logging_config import setup_logging
from .samples import InputSample, samples_from_vectors
from .som import SOM
from .vector import Vector, distance

__version__ = "0.1.0"

__all__ = [
    "SOM",
    "TrainingConfig",
    "TrainingEngine",
    "TrainingState",
    "EngineStatus",
    "EpochReport",
    "SomGrid",
    "MapNode",
    "InputSample",
    "Vector",
    "distance",
    "samples_from_vectors",
    "make_generator",
    "setup_logging",
    "KohonenError",
    "ConfigurationError",
    "DimensionMismatchError",
    "TrainingError",
]
