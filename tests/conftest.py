"""
Shared fixtures for terrain tests.
"""

import pytest

from py_isoterrain.core.field_generator import Cell, TerrainField


def field_from_rows(rows, moisture=0):
    """Build a field from a square list of elevation rows (indexed [z][x])."""
    width = len(rows)
    assert all(len(row) == width for row in rows)
    cells = [
        Cell(elevation=rows[z][x], moisture=moisture, x=x, z=z)
        for z in range(width)
        for x in range(width)
    ]
    return TerrainField.from_cells(width, cells)


def steep_ramp(x, z):
    """Noise rising steeply along x only, clamped to [-1, 1]."""
    return max(-1.0, min(1.0, (x - 13.0) * 8 - 1))


@pytest.fixture
def make_field():
    return field_from_rows


@pytest.fixture
def ramp_noise():
    return steep_ramp
