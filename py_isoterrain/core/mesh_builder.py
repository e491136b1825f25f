"""
Triangle mesh assembly for isometric terrain.

Each cell is compared with its eight neighbours and classified as one of
four tile shapes (flat, slope, corner up, corner down) with a quarter-turn
rotation. The cell then becomes a fan of four triangles around its centre.
Triangles never share vertices, so every face carries its own normal and
UVs; the buffers form a non-indexed triangle list.
"""

import math
import time
from collections import Counter
from dataclasses import dataclass
from typing import Dict, NamedTuple, Optional, Sequence, Tuple

import numpy as np
import structlog

from .biomes import DEFAULT_BIOME_TABLE, BiomeTable
from .exceptions import TerrainConfigError, TerrainInvariantError
from .field_generator import CellShape, TerrainField, validate_width

logger = structlog.get_logger()

# Side indices: 0=left, 1=top, 2=right, 3=bottom
# Corner indices: 0=upper-left (A), 1=upper-right (B), 2=lower-right (C),
# 3=lower-left (D)
SIDE_CORNERS = ((0, 3), (1, 0), (2, 1), (3, 2))

# Heights are scaled so slope faces keep the same grade at any cell pitch
HEIGHT_SCALE = 1 / math.sqrt(2)
SLOPE_LIFT = 0.5

VERTICES_PER_CELL = 12
UP = np.array([0.0, 1.0, 0.0])

# Higher-side bitmask (bit i set when side i is higher) -> (shape, turns).
# Mask 0 is resolved by the corners; masks with three or four bits have
# no tile.
SIDE_TABLE: Dict[int, Tuple[CellShape, int]] = {
    0b0001: (CellShape.SLOPE, 1),
    0b0010: (CellShape.SLOPE, 0),
    0b0100: (CellShape.SLOPE, 3),
    0b1000: (CellShape.SLOPE, 2),
    0b0011: (CellShape.CORNER_DOWN, 0),
    0b0110: (CellShape.CORNER_DOWN, -1),
    0b1100: (CellShape.CORNER_DOWN, 2),
    0b1001: (CellShape.CORNER_DOWN, 1),
    0b0101: (CellShape.CORNER_DOWN, 0),
    0b1010: (CellShape.CORNER_DOWN, -1),
}

# Higher-corner bitmask with no higher side -> (shape, turns)
CORNER_TABLE: Dict[int, Tuple[CellShape, int]] = {
    mask: (CellShape.FLAT, 0) for mask in range(16)
}
CORNER_TABLE.update({1 << corner: (CellShape.CORNER_UP, -corner) for corner in range(4)})

# Atlas quadrant owned by each shape
UV_OFFSETS = {
    CellShape.FLAT: (0.0, 0.0),
    CellShape.SLOPE: (0.0, 0.5),
    CellShape.CORNER_UP: (0.5, 0.5),
    CellShape.CORNER_DOWN: (0.5, 0.0),
}
TILE_UV = 0.5

# Vertex order A, B, C, D, E; local (x, z) relative to the cell centre
LOCAL_XZ = np.array(
    [[-0.5, -0.5], [0.5, -0.5], [0.5, 0.5], [-0.5, 0.5], [0.0, 0.0]]
)
# Fan from E clockwise from upper-left: EBA, ECB, EDC, EAD
TRIANGLES = np.array([[4, 1, 0], [4, 2, 1], [4, 3, 2], [4, 0, 3]])


class CellClassification(NamedTuple):
    """Tile shape, rotation, and pre-scaling heights of one cell."""

    shape: CellShape
    turns: int
    corners: Tuple[float, float, float, float]  # A, B, C, D
    center: float


def _mask(values: Sequence[float], reference: float) -> int:
    mask = 0
    for index, value in enumerate(values):
        if value > reference:
            mask |= 1 << index
    return mask


def classify_cell(
    center: float, sides: Sequence[float], corners: Sequence[float]
) -> CellClassification:
    """
    Classify a cell from its neighbours' elevations.

    Args:
        center: The cell's own elevation
        sides: Left, top, right, bottom neighbour elevations
        corners: Upper-left, upper-right, lower-right, lower-left neighbour
            elevations

    Returns:
        CellClassification with corner and centre heights before scaling

    Raises:
        TerrainInvariantError: If three or four sides are higher
    """
    side_mask = _mask(sides, center)

    if side_mask == 0:
        heights = [center] * 4
        corner_mask = _mask(corners, center)
        shape, turns = CORNER_TABLE[corner_mask]
        if shape == CellShape.CORNER_UP:
            corner = corner_mask.bit_length() - 1
            heights[corner] = corners[corner]
        return CellClassification(shape, turns, tuple(heights), center)

    if side_mask not in SIDE_TABLE:
        raise TerrainInvariantError(
            f"Cannot classify a cell with higher sides mask {side_mask:04b} "
            f"(center={center}, sides={list(sides)})"
        )

    shape, turns = SIDE_TABLE[side_mask]
    higher = [side for side in range(4) if side_mask & (1 << side)]
    # Corners not raised below keep their diagonal neighbour's height
    heights = list(corners)

    if shape == CellShape.SLOPE:
        side = higher[0]
        for corner in SIDE_CORNERS[side]:
            heights[corner] = sides[side]
        return CellClassification(shape, turns, tuple(heights), center + SLOPE_LIFT)

    high_side = max(sides)
    for side in higher:
        for corner in SIDE_CORNERS[side]:
            heights[corner] = high_side
    return CellClassification(shape, turns, tuple(heights), high_side)


def neighborhood(
    elevations: np.ndarray, x: int, z: int
) -> Tuple[int, Tuple[int, ...], Tuple[int, ...]]:
    """
    Centre, side, and corner elevations around (x, z).

    Neighbours outside the grid take the centre's elevation.
    """
    width = elevations.shape[0]
    center = int(elevations[z, x])

    def at(dx: int, dz: int) -> int:
        nx, nz = x + dx, z + dz
        if 0 <= nx < width and 0 <= nz < width:
            return int(elevations[nz, nx])
        return center

    sides = (at(-1, 0), at(0, -1), at(1, 0), at(0, 1))
    corners = (at(-1, -1), at(1, -1), at(1, 1), at(-1, 1))
    return center, sides, corners


def rotate_uv(uv: np.ndarray, turns: int, around: np.ndarray) -> np.ndarray:
    """Rotate UV points by quarter turns (clockwise for positive turns)."""
    angle = math.radians(turns * -90)
    cos = math.cos(angle)
    sin = math.sin(angle)
    offset = uv - around
    rotated = np.stack(
        [cos * offset[:, 0] - sin * offset[:, 1], cos * offset[:, 1] + sin * offset[:, 0]],
        axis=1,
    )
    return rotated + around


def tile_uvs(shape: CellShape, turns: int) -> np.ndarray:
    """UVs of A, B, C, D, E for a shape's atlas quadrant and rotation."""
    u, v = UV_OFFSETS[shape]
    corners = np.array(
        [[u, v + TILE_UV], [u + TILE_UV, v + TILE_UV], [u + TILE_UV, v], [u, v]]
    )
    center = np.array([u + TILE_UV / 2, v + TILE_UV / 2])
    return np.vstack([rotate_uv(corners, turns, center), center])


def face_normals(triangles: np.ndarray) -> np.ndarray:
    """
    Unit normals of (n, 3, 3) triangles.

    Degenerate triangles get the up axis.
    """
    cross = np.cross(
        triangles[:, 1] - triangles[:, 0], triangles[:, 2] - triangles[:, 0]
    )
    length = np.linalg.norm(cross, axis=1)
    normals = np.tile(UP, (len(triangles), 1))
    valid = length > 1e-12
    normals[valid] = cross[valid] / length[valid, None]
    return normals


@dataclass
class TerrainMesh:
    """Flat float32 attribute buffers of a non-indexed triangle list."""

    positions: np.ndarray  # 3 floats per vertex
    normals: np.ndarray  # 3 floats per vertex
    uvs: np.ndarray  # 2 floats per vertex
    colors: np.ndarray  # 3 floats per vertex

    @property
    def vertex_count(self) -> int:
        return len(self.positions) // 3

    @property
    def triangle_count(self) -> int:
        return self.vertex_count // 3

    def as_dict(self) -> Dict[str, np.ndarray]:
        return {
            "position": self.positions,
            "normal": self.normals,
            "uv": self.uvs,
            "color": self.colors,
        }


class MeshBuilder:
    """Builds terrain meshes from generated fields."""

    def __init__(self, biome_table: Optional[BiomeTable] = None):
        self.biome_table = biome_table or DEFAULT_BIOME_TABLE
        self._uv_cache: Dict[Tuple[CellShape, int], np.ndarray] = {}

    def _uvs(self, shape: CellShape, turns: int) -> np.ndarray:
        key = (shape, turns)
        if key not in self._uv_cache:
            self._uv_cache[key] = tile_uvs(shape, turns)[TRIANGLES].reshape(-1, 2)
        return self._uv_cache[key]

    def _validate(self, width, field: TerrainField) -> int:
        width = validate_width(width)
        if field is None or field.cells is None:
            raise TerrainConfigError("A terrain field must be supplied")
        if len(field.cells) != width * width:
            raise TerrainConfigError(
                f"Field has {len(field.cells)} cells, expected {width * width} "
                f"for width {width}"
            )
        return width

    def build(self, width: int, field: TerrainField) -> TerrainMesh:
        """
        Build the mesh for a field.

        Args:
            width: Grid width
            field: Field whose cells are in raster order

        Returns:
            TerrainMesh with 12 vertices per cell, centred on the origin

        Raises:
            TerrainConfigError: If width is invalid or disagrees with the field
            TerrainInvariantError: If a cell cannot be classified
        """
        width = self._validate(width, field)
        start = time.perf_counter()

        n_vertices = VERTICES_PER_CELL * width * width
        positions = np.zeros((n_vertices, 3), dtype=np.float32)
        normals = np.zeros((n_vertices, 3), dtype=np.float32)
        uvs = np.zeros((n_vertices, 2), dtype=np.float32)
        colors = np.zeros((n_vertices, 3), dtype=np.float32)

        elevations = np.array(
            [cell.elevation for cell in field.cells], dtype=np.int64
        ).reshape(width, width)
        origin = (width - 1) / 2

        for i, cell in enumerate(field.cells):
            x = i % width
            z = i // width

            center, sides, corners = neighborhood(elevations, x, z)
            classification = classify_cell(center, sides, corners)

            heights = np.array(
                [*classification.corners, classification.center]
            ) * HEIGHT_SCALE
            local = np.column_stack([LOCAL_XZ[:, 0], heights, LOCAL_XZ[:, 1]])
            triangles = local[TRIANGLES]

            rows = slice(i * VERTICES_PER_CELL, (i + 1) * VERTICES_PER_CELL)
            positions[rows] = (triangles + [x - origin, 0.0, z - origin]).reshape(-1, 3)
            normals[rows] = np.repeat(face_normals(triangles), 3, axis=0)
            uvs[rows] = self._uvs(classification.shape, classification.turns)
            colors[rows] = self.biome_table.zone_for_cell(
                cell, field.min_elev, field.max_elev
            ).rgb

            cell.shape = classification.shape
            cell.turns = classification.turns

        mesh = TerrainMesh(
            positions=positions.ravel(),
            normals=normals.ravel(),
            uvs=uvs.ravel(),
            colors=colors.ravel(),
        )

        logger.info(
            "Terrain mesh built",
            width=width,
            cells=len(field.cells),
            vertices=mesh.vertex_count,
            shapes=shape_histogram(field),
            elapsed_ms=round((time.perf_counter() - start) * 1000, 2),
        )
        return mesh


def shape_histogram(field: TerrainField) -> Dict[str, int]:
    """Count cells per recorded shape."""
    counts = Counter(CellShape(cell.shape).name for cell in field.cells)
    return dict(counts)


def build_mesh(field: TerrainField, biome_table: Optional[BiomeTable] = None) -> TerrainMesh:
    """Build a mesh for a field using its own width."""
    return MeshBuilder(biome_table).build(field.width, field)
