"""
Shared test fixtures for the part splitter.
"""
import sys
import warnings
from pathlib import Path

# Suppress trimesh internal RuntimeWarning for degenerate triangles
# (divide-by-zero when normals are computed on collapsed faces).
warnings.filterwarnings(
    "ignore",
    message="invalid value encountered in divide",
    category=RuntimeWarning,
    module=r"trimesh\.triangles",
)

import numpy as np
import pytest
import trimesh

# Add src/ to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from boolean_evaluator import BooleanEvaluator, BooleanOp
from geometry_primitives import BoundingBox, make_box


class BoundsEvaluator(BooleanEvaluator):
    """Deterministic stand-in for a CSG kernel.

    - intersection: box of the overlapping AABBs (exact for box solids)
    - union: concatenation of both operands
    - subtraction: first operand unchanged

    ``fail_on`` holds ops (or 1-based call numbers) that raise instead.
    """

    def __init__(self, fail_on=()):
        super().__init__()
        self.fail_on = set(fail_on)
        self.log = []

    @property
    def name(self) -> str:
        return "bounds"

    def _evaluate(self, mesh_a, mesh_b, op):
        self.log.append((op, BoundingBox.from_mesh(mesh_a), BoundingBox.from_mesh(mesh_b)))
        if op in self.fail_on or self.calls in self.fail_on:
            raise RuntimeError(f"scripted {op.value} failure")
        if op == BooleanOp.INTERSECTION:
            overlap = BoundingBox.from_mesh(mesh_a).intersection(BoundingBox.from_mesh(mesh_b))
            if np.any(overlap.size <= 0.0):
                return None
            return make_box(overlap)
        if op == BooleanOp.UNION:
            return trimesh.util.concatenate([mesh_a, mesh_b])
        return mesh_a.copy()

    def ops(self):
        return [entry[0] for entry in self.log]


@pytest.fixture
def bounds_evaluator_cls():
    return BoundsEvaluator


@pytest.fixture
def fake_evaluator():
    return BoundsEvaluator()


@pytest.fixture
def cube_mesh():
    """A 200x200x200 cube standing on Y=0, centred on X/Z."""
    mesh = trimesh.creation.box(extents=[200, 200, 200])
    mesh.apply_translation([0, 100, 0])
    return mesh


@pytest.fixture
def box_mesh():
    """A 100x100x100mm box with its min corner at the origin."""
    mesh = trimesh.creation.box(extents=[100, 100, 100])
    mesh.apply_translation([50, 50, 50])
    return mesh


@pytest.fixture
def slab_mesh():
    """A thin 100 x 100 x 4 slab (thin along Z)."""
    mesh = trimesh.creation.box(extents=[100, 100, 4])
    mesh.apply_translation([50, 50, 2])
    return mesh


@pytest.fixture
def box_mesh_file(box_mesh, tmp_path):
    path = tmp_path / "box.stl"
    box_mesh.export(str(path))
    return str(path)
