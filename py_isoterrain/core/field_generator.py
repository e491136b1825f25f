"""
Elevation and moisture field generation over a square grid.

Elevation comes from 2-D Perlin noise, truncated to integer steps and then
smoothed in raster order: each new cell is pulled to within one step of the
neighbours generated before it (left, up-left, up, up-right). Moisture comes
from an independent noise sample, discretised to 0-5.
"""

import math
import time
from dataclasses import dataclass
from enum import IntEnum
from numbers import Integral, Real
from typing import Callable, List, Optional, Sequence

import numpy as np
import structlog
from noise import pnoise2

from .alea_prng import AleaPRNG
from .exceptions import TerrainConfigError, TerrainInvariantError

logger = structlog.get_logger()

NoiseFunction = Callable[[float, float], float]

DEFAULT_WIDTH = 64
DEFAULT_AMPLITUDE = 15
DEFAULT_FREQUENCY = 0.1

# Largest elevation spread allowed among the already generated neighbours
MAX_NEIGHBOR_SPREAD = 2
MAX_MOISTURE = 5


class CellShape(IntEnum):
    """Canonical tile geometries."""

    FLAT = 0
    SLOPE = 1
    CORNER_UP = 2
    CORNER_DOWN = 3


@dataclass
class Cell:
    """One grid position."""

    elevation: int
    moisture: int
    x: int
    z: int
    shape: CellShape = CellShape.FLAT  # Set by the mesh builder
    turns: int = 0  # Quarter turns applied to the tile's UVs


@dataclass
class TerrainField:
    """Generated cells in raster order plus their elevation range."""

    width: int
    cells: List[Cell]
    min_elev: int
    max_elev: int

    def cell_at(self, x: int, z: int) -> Cell:
        return self.cells[z * self.width + x]

    def elevations(self) -> np.ndarray:
        """Elevations as a (width, width) array indexed [z, x]."""
        return np.array([c.elevation for c in self.cells], dtype=np.int32).reshape(
            self.width, self.width
        )

    def moistures(self) -> np.ndarray:
        """Moisture levels as a (width, width) array indexed [z, x]."""
        return np.array([c.moisture for c in self.cells], dtype=np.int32).reshape(
            self.width, self.width
        )

    @classmethod
    def from_cells(cls, width: int, cells: List[Cell]) -> "TerrainField":
        """Wrap externally built cells, computing the elevation range."""
        if not cells:
            raise TerrainConfigError("A terrain field needs at least one cell")
        elevations = [c.elevation for c in cells]
        return cls(width, cells, min(elevations), max(elevations))


@dataclass
class FieldConfig:
    """Configuration for field generation."""

    width: int = DEFAULT_WIDTH
    amplitude: float = DEFAULT_AMPLITUDE
    frequency: float = DEFAULT_FREQUENCY
    seed: Optional[str] = None
    elevation_step: float = 1 / 32  # Noise units per cell for elevation
    moisture_step: float = 0.15  # Noise units per cell for moisture


@dataclass
class NoiseParameters:
    """Noise base and sampling offsets; the defaults are the unseeded set."""

    base: int = 0
    offset_x: float = 13.0
    offset_z: float = 23.0

    @classmethod
    def from_seed(cls, seed: Optional[str]) -> "NoiseParameters":
        if seed is None:
            return cls()
        prng = AleaPRNG(seed)
        return cls(
            base=prng.randint(0, 255),
            offset_x=prng.uniform(0.0, 256.0),
            offset_z=prng.uniform(0.0, 256.0),
        )


def perlin_noise(base: int = 0) -> NoiseFunction:
    """Single-octave 2-D Perlin noise in roughly [-1, 1]."""

    def sample(x: float, z: float) -> float:
        return pnoise2(x, z, base=base)

    return sample


def validate_width(width) -> int:
    """Reject widths that are not positive integers."""
    if isinstance(width, bool) or not isinstance(width, Integral):
        raise TerrainConfigError(
            f"Width must be a positive integer, got {width!r}"
        )
    if width <= 0:
        raise TerrainConfigError(f"Width must be a positive integer, got {width}")
    return int(width)


def _require_positive(name: str, value) -> None:
    if (
        isinstance(value, bool)
        or not isinstance(value, Real)
        or not math.isfinite(value)
        or value <= 0
    ):
        raise TerrainConfigError(
            f"{name} must be a finite positive number, got {value!r}"
        )


def validate_config(config: FieldConfig) -> None:
    """Check every generation parameter before any work begins."""
    validate_width(config.width)
    _require_positive("amplitude", config.amplitude)
    _require_positive("frequency", config.frequency)
    _require_positive("elevation_step", config.elevation_step)
    _require_positive("moisture_step", config.moisture_step)
    if config.seed is not None and not isinstance(config.seed, str):
        raise TerrainConfigError(f"Seed must be a string, got {config.seed!r}")


def constrain_elevation(elevation: int, neighbors: Sequence[int]) -> int:
    """
    Pull an elevation to within one step of every prior neighbour.

    The result is at most one above the lowest neighbour and at least one
    below the highest. Neighbours spread more than two steps apart cannot
    come out of this function, so meeting them means an earlier cell broke
    the rule.

    Raises:
        TerrainInvariantError: If the neighbours span more than two steps
    """
    low = min(neighbors)
    high = max(neighbors)
    if high - low > MAX_NEIGHBOR_SPREAD:
        raise TerrainInvariantError(
            f"Elevation range around a cell is too great: {low}..{high}"
        )
    elevation = min(elevation, low + 1)
    elevation = max(elevation, high - 1)
    return elevation


def fill_pits(elevations: np.ndarray) -> int:
    """
    Raise cells that have three or four higher orthogonal neighbours.

    A pit is lifted to the lowest of its higher sides, and the pass repeats
    until no pit is left, since a raised cell can turn a neighbour into a
    new pit. Neighbours outside the grid count as level with the cell.
    Every neighbour of a pit is within one step of it and at least as high,
    so raising it by one keeps the one-step adjacency bound.

    Args:
        elevations: (width, width) integer array indexed [z, x], changed in
            place

    Returns:
        Number of raises applied
    """
    raised = 0
    ceiling = np.iinfo(elevations.dtype).max
    while True:
        padded = np.pad(elevations, 1, mode="edge")
        sides = np.stack(
            [
                padded[1:-1, :-2],  # left
                padded[:-2, 1:-1],  # top
                padded[1:-1, 2:],  # right
                padded[2:, 1:-1],  # bottom
            ]
        )
        higher = sides > elevations
        pits = higher.sum(axis=0) >= 3
        if not pits.any():
            return raised
        lowest_higher = np.where(higher, sides, ceiling).min(axis=0)
        elevations[pits] = lowest_higher[pits]
        raised += int(pits.sum())


class FieldGenerator:
    """
    Generates terrain fields from noise.

    The noise function is injectable; any deterministic function of
    (x, z) returning values in [-1, 1] will do.
    """

    def __init__(
        self,
        config: Optional[FieldConfig] = None,
        noise: Optional[NoiseFunction] = None,
    ):
        """
        Initialize the field generator.

        Args:
            config: Generation configuration
            noise: Optional noise function replacing seeded Perlin noise

        Raises:
            TerrainConfigError: If the configuration is invalid
        """
        self.config = config or FieldConfig()
        validate_config(self.config)
        self.params = NoiseParameters.from_seed(self.config.seed)
        self.noise = noise or perlin_noise(self.params.base)

    def _prior_neighbors(
        self, cells: List[Cell], i: int, x: int, z: int, width: int
    ) -> List[int]:
        neighbors = []
        if x > 0:
            neighbors.append(cells[i - 1].elevation)
            if z > 0:
                neighbors.append(cells[i - width - 1].elevation)
        if z > 0:
            neighbors.append(cells[i - width].elevation)
            if x < width - 1:
                neighbors.append(cells[i - width + 1].elevation)
        return neighbors

    def _moisture(self, x: int, z: int) -> int:
        step = self.config.moisture_step
        moisture = int(6 * (self.noise(z * step, x * step) + 1) / 2)
        return max(0, min(MAX_MOISTURE, moisture))

    def generate(self, width: Optional[int] = None) -> TerrainField:
        """
        Generate a width x width field.

        After raster-order smoothing, single-cell pits are filled so that no
        cell has more than two higher orthogonal neighbours.

        Args:
            width: Grid width; defaults to the configured width

        Returns:
            TerrainField with cells in raster order (row-major, top-left
            origin) and the elevation range over all cells

        Raises:
            TerrainConfigError: If width is not a positive integer
            TerrainInvariantError: If smoothing meets an impossible neighbourhood
        """
        width = validate_width(self.config.width if width is None else width)
        start = time.perf_counter()

        half_amplitude = math.floor(self.config.amplitude / 2)
        step = self.config.elevation_step
        cells: List[Cell] = []

        for i in range(width * width):
            x = i % width
            z = i // width

            raw = self.noise(
                self.params.offset_x + x * step, self.params.offset_z + z * step
            )
            # int() truncates toward zero
            elevation = int(half_amplitude * raw)

            neighbors = self._prior_neighbors(cells, i, x, z, width)
            if neighbors:
                elevation = constrain_elevation(elevation, neighbors)

            cells.append(Cell(elevation, self._moisture(x, z), x, z))

        elevations = np.array([c.elevation for c in cells], dtype=np.int64).reshape(
            width, width
        )
        pits_filled = fill_pits(elevations)
        if pits_filled:
            for cell, elevation in zip(cells, elevations.ravel()):
                cell.elevation = int(elevation)

        result = TerrainField(
            width, cells, int(elevations.min()), int(elevations.max())
        )

        logger.info(
            "Terrain field generated",
            width=width,
            amplitude=self.config.amplitude,
            frequency=self.config.frequency,
            seeded=self.config.seed is not None,
            min_elev=result.min_elev,
            max_elev=result.max_elev,
            pits_filled=pits_filled,
            elapsed_ms=round((time.perf_counter() - start) * 1000, 2),
        )
        return result


def generate_field(
    width: int = DEFAULT_WIDTH,
    amplitude: float = DEFAULT_AMPLITUDE,
    frequency: float = DEFAULT_FREQUENCY,
    seed: Optional[str] = None,
) -> TerrainField:
    """Generate a field with Perlin noise in one call."""
    config = FieldConfig(
        width=width, amplitude=amplitude, frequency=frequency, seed=seed
    )
    return FieldGenerator(config).generate()
