"""Tests for mesh loading, placement and rescaling."""
import numpy as np
import pytest

from mesh_loading import UNIT_TO_MM, load_mesh, prepare_for_slicing, scale_to_height
from parts import ConfigurationError, GeometryInitializationError


class TestLoadMesh:

    def test_loads_stl(self, box_mesh_file):
        mesh = load_mesh(box_mesh_file)
        np.testing.assert_allclose(mesh.extents, [100, 100, 100])

    def test_missing_file(self, tmp_path):
        with pytest.raises(GeometryInitializationError, match="not found"):
            load_mesh(str(tmp_path / "missing.stl"))

    def test_file_without_geometry(self, tmp_path):
        path = tmp_path / "empty.obj"
        path.write_text("# nothing here\n")
        with pytest.raises(GeometryInitializationError):
            load_mesh(str(path))


class TestPlacement:

    def test_centred_and_on_floor(self, box_mesh):
        prepared = prepare_for_slicing(box_mesh)
        np.testing.assert_allclose(prepared.bounds, [[-50, 0, -50], [50, 100, 50]])

    def test_source_untouched(self, box_mesh):
        before = box_mesh.bounds.copy()
        prepare_for_slicing(box_mesh)
        np.testing.assert_array_equal(box_mesh.bounds, before)


class TestScaleToHeight:

    @pytest.mark.parametrize("unit", sorted(UNIT_TO_MM))
    def test_height_in_unit(self, box_mesh, unit):
        scaled = scale_to_height(box_mesh, 2.0, unit)
        assert scaled.extents[1] == pytest.approx(2.0 * UNIT_TO_MM[unit])

    def test_uniform_scale(self, slab_mesh):
        scaled = scale_to_height(slab_mesh, 200.0)
        np.testing.assert_allclose(scaled.extents, [200.0, 200.0, 8.0])

    def test_unknown_unit(self, box_mesh):
        with pytest.raises(ConfigurationError):
            scale_to_height(box_mesh, 10.0, "furlong")

    def test_non_positive_height(self, box_mesh):
        with pytest.raises(ConfigurationError):
            scale_to_height(box_mesh, 0.0)
