"""
Generate a terrain once and hand the results to disk.

Writes the mesh buffers (positions, normals, uvs, colors) and the field
(elevations, moistures) to a compressed .npz file a renderer can load, plus
the elevation and moisture preview PNGs.
"""

import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

import numpy as np
import structlog

from .config import settings
from .core.biomes import biome_histogram
from .core.exceptions import TerrainError
from .core.field_generator import FieldConfig, FieldGenerator, NoiseFunction, TerrainField
from .core.mesh_builder import MeshBuilder, TerrainMesh, shape_histogram
from .core.preview import save_previews

logger = structlog.get_logger()

MESH_FILENAME = "terrain_mesh.npz"


def configure_logging(level: str = "INFO", log_format: str = "json") -> None:
    """Configure structlog on top of the stdlib logging module."""
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level.upper())

    renderer = (
        structlog.dev.ConsoleRenderer()
        if log_format == "console"
        else structlog.processors.JSONRenderer()
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


@dataclass
class RunResult:
    """Everything produced by one generation run."""

    field: TerrainField
    mesh: TerrainMesh
    mesh_path: Path
    preview_paths: Dict[str, Path]


def save_mesh(mesh: TerrainMesh, field: TerrainField, path: Path) -> Path:
    """Write mesh buffers and field arrays to a compressed .npz file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    np.savez_compressed(
        path,
        positions=mesh.positions,
        normals=mesh.normals,
        uvs=mesh.uvs,
        colors=mesh.colors,
        elevations=field.elevations(),
        moistures=field.moistures(),
        elevation_range=np.array([field.min_elev, field.max_elev]),
    )
    return path


def run(
    config: FieldConfig,
    output_dir: Path,
    previews: bool = True,
    noise: Optional[NoiseFunction] = None,
) -> RunResult:
    """Generate a field, build its mesh, and write the outputs."""
    output_dir = Path(output_dir)

    field = FieldGenerator(config, noise=noise).generate()
    mesh = MeshBuilder().build(field.width, field)

    mesh_path = save_mesh(mesh, field, output_dir / MESH_FILENAME)
    preview_paths = save_previews(field, output_dir) if previews else {}

    logger.info(
        "Terrain run complete",
        width=field.width,
        vertices=mesh.vertex_count,
        triangles=mesh.triangle_count,
        shapes=shape_histogram(field),
        biomes=biome_histogram(field),
        mesh_path=str(mesh_path),
    )
    return RunResult(field, mesh, mesh_path, preview_paths)


def main(argv: Optional[List[str]] = None) -> int:
    """Main function."""
    import argparse

    parser = argparse.ArgumentParser(
        description="Generate an isometric terrain mesh and map previews"
    )
    parser.add_argument("--width", type=int, default=settings.default_width)
    parser.add_argument("--amplitude", type=float, default=settings.default_amplitude)
    parser.add_argument("--frequency", type=float, default=settings.default_frequency)
    parser.add_argument(
        "--seed", default=settings.default_seed, help="Noise seed (unset keeps fixed offsets)"
    )
    parser.add_argument("--output-dir", type=Path, default=Path(settings.output_dir))
    parser.add_argument(
        "--no-previews", action="store_true", help="Skip writing the preview PNGs"
    )
    args = parser.parse_args(argv)

    configure_logging(settings.log_level, settings.log_format)

    config = FieldConfig(
        width=args.width,
        amplitude=args.amplitude,
        frequency=args.frequency,
        seed=args.seed,
    )
    try:
        run(config, args.output_dir, previews=not args.no_previews)
    except TerrainError as e:
        logger.error("Terrain generation failed", error=str(e), kind=type(e).__name__)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
