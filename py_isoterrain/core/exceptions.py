"""
Error types raised by terrain generation and mesh assembly.

Two kinds are kept apart:
- configuration errors: the caller handed over bad input (width, noise
  parameters, a cell array of the wrong length, a broken biome zone list).
  They are raised before any generation or assembly work starts.
- invariant errors: the generation algorithm produced something it should
  never produce. They abort the current build.
"""


class TerrainError(Exception):
    """Base class for all terrain errors."""


class TerrainConfigError(TerrainError, ValueError):
    """Invalid configuration or input supplied by the caller."""


class TerrainInvariantError(TerrainError, RuntimeError):
    """Internal invariant of the generation algorithm was violated."""
