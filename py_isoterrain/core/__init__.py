"""
Core terrain generation functionality.
"""

from .biomes import BiomeTable, BiomeZone, TerrainZone, get_terrain_zone
from .exceptions import TerrainConfigError, TerrainError, TerrainInvariantError
from .field_generator import (
    Cell,
    CellShape,
    FieldConfig,
    FieldGenerator,
    TerrainField,
    fill_pits,
    generate_field,
)
from .mesh_builder import MeshBuilder, TerrainMesh, build_mesh, classify_cell

__all__ = ['BiomeTable', 'BiomeZone', 'TerrainZone', 'get_terrain_zone',
           'TerrainConfigError', 'TerrainError', 'TerrainInvariantError',
           'Cell', 'CellShape', 'FieldConfig', 'FieldGenerator', 'TerrainField',
           'fill_pits', 'generate_field', 'MeshBuilder', 'TerrainMesh', 'build_mesh',
           'classify_cell']
