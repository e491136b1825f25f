"""
Biome lookup keyed by elevation tier and moisture level.

This module implements:
- The declarative list of terrain zones, each owning a moisture range at
  one elevation tier
- A dense [tier][moisture] lookup table validated at construction
- Elevation tier derivation from a cell's elevation and the field's range
"""

import math
import structlog
from collections import Counter
from dataclasses import dataclass
from enum import IntEnum
from typing import Dict, Iterable, List, Optional, Tuple

from .exceptions import TerrainConfigError

logger = structlog.get_logger()

# Elevation tiers 0-3, moisture levels 0-5
ELEVATION_TIERS = 4
MOISTURE_LEVELS = 6
MAX_TIER = ELEVATION_TIERS - 1
MAX_MOISTURE = MOISTURE_LEVELS - 1


class TerrainZone(IntEnum):
    """Terrain zones, highest tier first."""

    SNOW = 0
    TUNDRA = 1
    BARE = 2
    SCORCHED = 3
    TAIGA = 4
    SHRUBLAND = 5
    DESERT_TEMPERATE = 6
    RAINFOREST_TEMPERATE = 7
    FOREST_DECIDUOUS = 8
    GRASSLAND = 9
    DESERT_TEMPERATE_LOW = 10
    RAINFOREST_TROPICAL = 11
    FOREST_TROPICAL_SEASONAL = 12
    GRASSLAND_LOW = 13
    DESERT_SUBTROPICAL = 14


@dataclass(frozen=True)
class BiomeZone:
    """A named terrain classification owning a moisture range at one tier."""

    description: str
    moisture_min: int
    moisture_max: int
    elevation: int  # Elevation tier, 0-3
    color: int  # 0xRRGGBB

    @property
    def rgb(self) -> Tuple[float, float, float]:
        """Display color as three floats in [0, 1]."""
        return (
            ((self.color >> 16) & 0xFF) / 255.0,
            ((self.color >> 8) & 0xFF) / 255.0,
            (self.color & 0xFF) / 255.0,
        )


TERRAIN_ZONES: Dict[TerrainZone, BiomeZone] = {
    TerrainZone.SNOW: BiomeZone("Snow", 3, 5, 3, 0xF8F8F8),
    TerrainZone.TUNDRA: BiomeZone("Tundra", 2, 2, 3, 0xDDDDBB),
    TerrainZone.BARE: BiomeZone("Bare", 1, 1, 3, 0xBBBBBB),
    TerrainZone.SCORCHED: BiomeZone("Scorched", 0, 0, 3, 0x999999),
    TerrainZone.TAIGA: BiomeZone("Taiga", 4, 5, 2, 0xCCD4BB),
    TerrainZone.SHRUBLAND: BiomeZone("Shrubland", 2, 3, 2, 0xC4CCBB),
    TerrainZone.DESERT_TEMPERATE: BiomeZone("Temperate desert", 0, 1, 2, 0xE4E8CA),
    TerrainZone.RAINFOREST_TEMPERATE: BiomeZone(
        "Temperate rainforest", 5, 5, 1, 0xA4C4A8
    ),
    TerrainZone.FOREST_DECIDUOUS: BiomeZone(
        "Temperate deciduous forest", 3, 4, 1, 0xB4C9A9
    ),
    TerrainZone.GRASSLAND: BiomeZone("Grassland", 1, 2, 1, 0xC4D4AA),
    TerrainZone.DESERT_TEMPERATE_LOW: BiomeZone(
        "Temperate desert (low)", 0, 0, 1, 0xE4E8CA
    ),
    TerrainZone.RAINFOREST_TROPICAL: BiomeZone(
        "Tropical rainforest", 4, 5, 0, 0x9CBBA9
    ),
    TerrainZone.FOREST_TROPICAL_SEASONAL: BiomeZone(
        "Tropical seasonal forest", 2, 3, 0, 0xA9CCA4
    ),
    TerrainZone.GRASSLAND_LOW: BiomeZone("Grassland (low)", 1, 1, 0, 0xC4D4AA),
    TerrainZone.DESERT_SUBTROPICAL: BiomeZone(
        "Subtropical desert", 0, 0, 0, 0xE9DDC7
    ),
}


def elevation_tier(elevation: int, min_elev: int, max_elev: int) -> int:
    """
    Map an elevation onto one of the four coarse tiers.

    The elevation is normalised against the field's range, scaled by 4,
    rounded half up and clamped to 0-3. A field with no elevation range
    (every cell at the same height) is tier 0 throughout.
    """
    span = max_elev - min_elev
    if span <= 0:
        return 0
    tier = math.floor((elevation - min_elev) / span * ELEVATION_TIERS + 0.5)
    return max(0, min(MAX_TIER, tier))


class BiomeTable:
    """
    Dense [tier][moisture] lookup built from a list of biome zones.

    Every (tier, moisture) pair must be owned by exactly one zone; a gap or
    an overlap raises TerrainConfigError at construction.
    """

    def __init__(self, zones: Optional[Iterable[BiomeZone]] = None):
        """
        Build the lookup table.

        Args:
            zones: Zone declarations; defaults to TERRAIN_ZONES
        """
        self.zones: List[BiomeZone] = list(
            TERRAIN_ZONES.values() if zones is None else zones
        )
        self._table = self._build(self.zones)
        logger.debug("Biome table built", zones=len(self.zones))

    @staticmethod
    def _build(zones: List[BiomeZone]) -> Tuple[Tuple[BiomeZone, ...], ...]:
        owners: List[List[List[BiomeZone]]] = [
            [[] for _ in range(MOISTURE_LEVELS)] for _ in range(ELEVATION_TIERS)
        ]

        for zone in zones:
            if not 0 <= zone.elevation <= MAX_TIER:
                raise TerrainConfigError(
                    f"Zone '{zone.description}' has elevation tier "
                    f"{zone.elevation}, expected 0-{MAX_TIER}"
                )
            if not 0 <= zone.moisture_min <= zone.moisture_max <= MAX_MOISTURE:
                raise TerrainConfigError(
                    f"Zone '{zone.description}' has moisture range "
                    f"[{zone.moisture_min}, {zone.moisture_max}], expected a "
                    f"range within [0, {MAX_MOISTURE}]"
                )
            for moisture in range(zone.moisture_min, zone.moisture_max + 1):
                owners[zone.elevation][moisture].append(zone)

        gaps = []
        overlaps = []
        for tier, row in enumerate(owners):
            for moisture, claimed in enumerate(row):
                if not claimed:
                    gaps.append((tier, moisture))
                elif len(claimed) > 1:
                    overlaps.append((tier, moisture))

        if gaps or overlaps:
            raise TerrainConfigError(
                f"Biome zones must cover every (tier, moisture) pair exactly "
                f"once: gaps={gaps}, overlaps={overlaps}"
            )

        return tuple(tuple(claimed[0] for claimed in row) for row in owners)

    def lookup(self, tier: int, moisture: int) -> BiomeZone:
        """
        Return the zone owning an elevation tier and moisture level.

        Raises:
            IndexError: If tier is outside 0-3 or moisture outside 0-5
        """
        if not 0 <= tier <= MAX_TIER:
            raise IndexError(f"Elevation tier {tier} outside 0-{MAX_TIER}")
        if not 0 <= moisture <= MAX_MOISTURE:
            raise IndexError(f"Moisture {moisture} outside 0-{MAX_MOISTURE}")
        return self._table[tier][moisture]

    def zone_for_cell(self, cell, min_elev: int, max_elev: int) -> BiomeZone:
        """Resolve the zone for a cell given its field's elevation range."""
        tier = elevation_tier(cell.elevation, min_elev, max_elev)
        return self.lookup(tier, cell.moisture)


# Built at import so a broken zone list fails on startup
DEFAULT_BIOME_TABLE = BiomeTable()


def get_terrain_zone(tier: int, moisture: int) -> BiomeZone:
    """Look up a zone in the default table."""
    return DEFAULT_BIOME_TABLE.lookup(tier, moisture)


def biome_histogram(field, table: Optional[BiomeTable] = None) -> Dict[str, int]:
    """Count the cells of a field per zone description."""
    table = table or DEFAULT_BIOME_TABLE
    counts = Counter(
        table.zone_for_cell(cell, field.min_elev, field.max_elev).description
        for cell in field.cells
    )
    return dict(counts)
