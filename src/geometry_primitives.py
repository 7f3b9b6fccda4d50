"""
Core geometry types for part splitting.

Built on trimesh. Provides BoundingBox (axis-aligned extents of a mesh or a
partition cell) and the primitive solids the splitter feeds to the boolean
evaluator: cell boxes, connector cylinders and label plates.

World units are millimetres and the vertical axis is Y.
"""
from dataclasses import dataclass
from typing import Iterable, List, Sequence, Tuple

import numpy as np
import trimesh

AXIS_X = 0
AXIS_Y = 1
AXIS_Z = 2
VERTICAL_AXIS = AXIS_Y
AXIS_NAMES = ("x", "y", "z")

CYLINDER_SECTIONS = 16

CellIndex = Tuple[int, int, int]


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned min/max corners. Recomputed, never edited in place."""
    min_corner: np.ndarray  # (3,)
    max_corner: np.ndarray  # (3,)

    def __post_init__(self):
        object.__setattr__(self, "min_corner", np.array(self.min_corner, dtype=float))
        object.__setattr__(self, "max_corner", np.array(self.max_corner, dtype=float))

    @classmethod
    def from_points(cls, points: np.ndarray) -> "BoundingBox":
        pts = np.asarray(points, dtype=float).reshape(-1, 3)
        if len(pts) == 0:
            raise ValueError("Cannot compute bounds of an empty point set")
        return cls(pts.min(axis=0), pts.max(axis=0))

    @classmethod
    def from_mesh(cls, mesh: trimesh.Trimesh) -> "BoundingBox":
        return cls.from_points(mesh.vertices)

    @property
    def size(self) -> np.ndarray:
        return self.max_corner - self.min_corner

    @property
    def center(self) -> np.ndarray:
        return (self.min_corner + self.max_corner) / 2.0

    def bottom_center(self) -> np.ndarray:
        """Centre of the footprint at the lowest point along Y."""
        point = self.center.copy()
        point[VERTICAL_AXIS] = self.min_corner[VERTICAL_AXIS]
        return point

    def intersection(self, other: "BoundingBox") -> "BoundingBox":
        lo = np.maximum(self.min_corner, other.min_corner)
        hi = np.minimum(self.max_corner, other.max_corner)
        return BoundingBox(lo, np.maximum(lo, hi))

    def to_dict(self) -> dict:
        return {
            "min": [float(v) for v in self.min_corner],
            "max": [float(v) for v in self.max_corner],
            "size": [float(v) for v in self.size],
        }


def make_box(bounds: BoundingBox) -> trimesh.Trimesh:
    """Box mesh exactly covering *bounds*."""
    box = trimesh.creation.box(extents=bounds.size)
    box.apply_translation(bounds.center)
    return box


def make_cylinder(
    radius: float,
    height: float,
    axis: int,
    center: Sequence[float],
    sections: int = CYLINDER_SECTIONS,
) -> trimesh.Trimesh:
    """Cylinder of *height* along world *axis*, centred on *center*.

    trimesh builds cylinders along +Z; X and Y cylinders are rotated into
    place before translation.
    """
    cyl = trimesh.creation.cylinder(radius=radius, height=height, sections=sections)
    if axis == AXIS_X:
        cyl.apply_transform(
            trimesh.transformations.rotation_matrix(np.pi / 2.0, [0.0, 1.0, 0.0])
        )
    elif axis == AXIS_Y:
        cyl.apply_transform(
            trimesh.transformations.rotation_matrix(np.pi / 2.0, [1.0, 0.0, 0.0])
        )
    elif axis != AXIS_Z:
        raise ValueError(f"Unknown axis: {axis}")
    cyl.apply_translation(np.asarray(center, dtype=float))
    return cyl


def make_plate(extents: Sequence[float], center: Sequence[float]) -> trimesh.Trimesh:
    """Rectangular plate with the given (x, y, z) extents."""
    plate = trimesh.creation.box(extents=np.asarray(extents, dtype=float))
    plate.apply_translation(np.asarray(center, dtype=float))
    return plate


def merge_meshes(meshes: Iterable[trimesh.Trimesh]) -> trimesh.Trimesh:
    """Concatenate meshes into a single (possibly disjoint) mesh."""
    parts: List[trimesh.Trimesh] = [m for m in meshes if len(m.vertices) > 0]
    if not parts:
        return trimesh.Trimesh()
    if len(parts) == 1:
        return parts[0].copy()
    return trimesh.util.concatenate(parts)


def axis_unit(axis: int, sign: float = 1.0) -> np.ndarray:
    vec = np.zeros(3, dtype=float)
    vec[axis] = 1.0 if sign >= 0 else -1.0
    return vec
