"""
Greyscale elevation and moisture preview maps.
"""

from pathlib import Path
from typing import Dict, Union

import matplotlib.pyplot as plt
import numpy as np
import structlog

from .field_generator import TerrainField

logger = structlog.get_logger()

# Moisture 4 maps to full white; 5 saturates
MOISTURE_PREVIEW_DIVISOR = 4


def elevation_preview(field: TerrainField) -> np.ndarray:
    """Elevations stretched over 0-255, indexed [z, x]."""
    elevations = field.elevations().astype(np.float64)
    span = field.max_elev - field.min_elev
    if span <= 0:
        return np.zeros_like(elevations, dtype=np.uint8)
    scaled = np.round((elevations - field.min_elev) / span * 255)
    return np.clip(scaled, 0, 255).astype(np.uint8)


def moisture_preview(field: TerrainField) -> np.ndarray:
    """Moisture levels as grey, indexed [z, x]."""
    scaled = np.round(255 * field.moistures() / MOISTURE_PREVIEW_DIVISOR)
    return np.clip(scaled, 0, 255).astype(np.uint8)


def save_previews(
    field: TerrainField, output_dir: Union[str, Path]
) -> Dict[str, Path]:
    """
    Write elevation and moisture previews as PNG files.

    Returns:
        Mapping of preview name to the written path
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    paths = {}
    for name, image in (
        ("elevation", elevation_preview(field)),
        ("moisture", moisture_preview(field)),
    ):
        path = output_dir / f"{name}_map.png"
        plt.imsave(path, image, cmap="gray", vmin=0, vmax=255)
        paths[name] = path

    logger.info("Map previews saved", **{k: str(v) for k, v in paths.items()})
    return paths
