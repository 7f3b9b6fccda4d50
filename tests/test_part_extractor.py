"""Tests for per-cell extraction."""
import numpy as np

from boolean_evaluator import BooleanOp
from geometry_primitives import BoundingBox
from mesh_normalizer import normalize_mesh
from part_extractor import extract_part
from volume_partitioner import Cell


def _cell(lo, hi, index=(0, 0, 0)):
    return Cell(index=index, bounds=BoundingBox(lo, hi))


class TestExtractPart:

    def test_intersects_with_cell_box(self, box_mesh, fake_evaluator):
        base = normalize_mesh(box_mesh)
        part, issue = extract_part(base, _cell([0, 0, 0], [60, 60, 60]), "a.stl", fake_evaluator)

        assert issue is None
        assert part.name == "a.stl"
        assert part.index == (0, 0, 0)
        assert fake_evaluator.ops() == [BooleanOp.INTERSECTION]
        np.testing.assert_allclose(part.mesh.bounds, [[0, 0, 0], [60, 60, 60]])

    def test_empty_intersection_is_not_a_failure(self, box_mesh, fake_evaluator):
        base = normalize_mesh(box_mesh)
        part, issue = extract_part(base, _cell([200, 0, 0], [260, 60, 60]), "b.stl", fake_evaluator)

        assert part is None
        assert issue.operation == "empty_cell"
        assert not issue.is_failure

    def test_degenerate_cell_skips_evaluator(self, box_mesh, fake_evaluator):
        base = normalize_mesh(box_mesh)
        part, issue = extract_part(base, _cell([0, 0, 0], [0.05, 60, 60]), "c.stl", fake_evaluator)

        assert part is None
        assert issue.operation == "degenerate_cell"
        assert fake_evaluator.calls == 0

    def test_evaluator_failure_drops_cell(self, box_mesh, bounds_evaluator_cls):
        base = normalize_mesh(box_mesh)
        evaluator = bounds_evaluator_cls(fail_on={BooleanOp.INTERSECTION})
        part, issue = extract_part(base, _cell([0, 0, 0], [60, 60, 60], (0, 1, 0)), "d.stl", evaluator)

        assert part is None
        assert issue.operation == "extract"
        assert issue.cell_index == (0, 1, 0)
        assert issue.is_failure
