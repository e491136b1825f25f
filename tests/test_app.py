"""
Tests for the generate-once entry point and settings.
"""

import numpy as np
import pytest

from py_isoterrain.app import MESH_FILENAME, main, run
from py_isoterrain.config import Settings
from py_isoterrain.core.field_generator import FieldConfig


class TestRun:
    """Test a full generation run."""

    def test_run_writes_outputs(self, ramp_noise, tmp_path):
        result = run(FieldConfig(width=16), tmp_path, noise=ramp_noise)

        assert result.mesh.vertex_count == 12 * 16 * 16
        assert result.mesh_path == tmp_path / MESH_FILENAME
        assert set(result.preview_paths) == {"elevation", "moisture"}

        with np.load(result.mesh_path) as data:
            assert data["positions"].shape == (36 * 16 * 16,)
            assert data["uvs"].shape == (24 * 16 * 16,)
            assert data["elevations"].shape == (16, 16)
            np.testing.assert_array_equal(
                data["elevation_range"],
                [result.field.min_elev, result.field.max_elev],
            )
            np.testing.assert_array_equal(data["normals"], result.mesh.normals)

    def test_run_without_previews(self, ramp_noise, tmp_path):
        result = run(FieldConfig(width=4), tmp_path, previews=False, noise=ramp_noise)

        assert result.preview_paths == {}
        assert not (tmp_path / "elevation_map.png").exists()


class TestMain:
    """Test the command line."""

    def test_main_success(self, tmp_path):
        code = main(["--width", "2", "--output-dir", str(tmp_path), "--no-previews"])

        assert code == 0
        assert (tmp_path / MESH_FILENAME).exists()

    def test_main_seeded(self, tmp_path):
        code = main(
            ["--width", "2", "--seed", "cli", "--output-dir", str(tmp_path)]
        )

        assert code == 0
        assert (tmp_path / "elevation_map.png").exists()
        assert (tmp_path / "moisture_map.png").exists()

    @pytest.mark.parametrize("seed", ["s0", "s1", "s2", "demo"])
    def test_main_seeded_full_width(self, tmp_path, seed):
        code = main(
            ["--width", "64", "--seed", seed, "--output-dir", str(tmp_path), "--no-previews"]
        )

        assert code == 0
        with np.load(tmp_path / MESH_FILENAME) as data:
            assert data["positions"].shape == (36 * 64 * 64,)

    def test_main_config_error(self, tmp_path):
        code = main(["--width", "0", "--output-dir", str(tmp_path)])

        assert code == 1
        assert not (tmp_path / MESH_FILENAME).exists()

    def test_main_rejects_non_numeric_width(self, tmp_path):
        with pytest.raises(SystemExit):
            main(["--width", "wide", "--output-dir", str(tmp_path)])


class TestSettings:
    """Test environment-driven settings."""

    def test_defaults(self, monkeypatch):
        for name in ("ISOTERRAIN_DEFAULT_WIDTH", "ISOTERRAIN_DEFAULT_SEED"):
            monkeypatch.delenv(name, raising=False)
        settings = Settings()

        assert settings.default_width == 64
        assert settings.default_amplitude == 15
        assert settings.default_frequency == 0.1
        assert settings.default_seed is None

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("ISOTERRAIN_DEFAULT_WIDTH", "32")
        monkeypatch.setenv("ISOTERRAIN_DEFAULT_SEED", "env-seed")
        settings = Settings()

        assert settings.default_width == 32
        assert settings.default_seed == "env-seed"

    def test_invalid_width_rejected(self, monkeypatch):
        monkeypatch.setenv("ISOTERRAIN_DEFAULT_WIDTH", "0")
        with pytest.raises(ValueError):
            Settings()
