"""
Alignment connector synthesis.

For every cut face shared with a neighbouring cell, the part on the low-index
side receives pegs (cylinders unioned onto the face) and the part on the
high-index side receives matching sockets (slightly wider cylinders
subtracted from the face). Each pair of neighbours therefore carries exactly
one peg set and one socket set per shared face.

Candidate centres form a regular grid symmetric about the face centre. Each
candidate is checked with two short ray probes before it is used:
1. From just outside the face, looking inward: the surface must be there.
2. From just inside the face, looking inward: no opposite wall may be closer
   than ``length * min_depth_factor`` (the feature would break through a
   thin wall).
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np
import trimesh

from boolean_evaluator import BooleanEvaluator, BooleanOp
from geometry_primitives import (
    AXIS_NAMES,
    AXIS_X,
    AXIS_Y,
    AXIS_Z,
    BoundingBox,
    axis_unit,
    make_cylinder,
    merge_meshes,
)
from mesh_normalizer import WELD_EPSILON, prepare_operand
from parts import BooleanEvaluationError, ConfigurationError, Part, SkippedItem
from volume_partitioner import has_neighbor

logger = logging.getLogger(__name__)

MIN_SPACING = 5.0
PROBE_OFFSET = 0.5       # surface probe starts this far outside the face
PROBE_REACH = 1.0        # and must hit within this distance
PROBE_INSET = 0.1        # depth probe starts this far inside the face

# In-plane (horizontal, vertical) axes for each face normal axis.
FACE_PLANE_AXES = {
    AXIS_X: (AXIS_Z, AXIS_Y),
    AXIS_Y: (AXIS_X, AXIS_Z),
    AXIS_Z: (AXIS_X, AXIS_Y),
}


@dataclass
class ConnectorConfig:
    """Peg/socket geometry and placement grid."""
    enabled: bool = True
    diameter: float = 6.0
    length: float = 12.0
    tolerance: float = 0.3        # radial clearance added to sockets
    spacing: float = 50.0
    edge_margin: float = 15.0
    min_depth_factor: float = 0.7  # fraction of length that must be solid behind the face

    @property
    def peg_radius(self) -> float:
        return self.diameter / 2.0

    @property
    def socket_radius(self) -> float:
        return self.peg_radius + max(0.0, self.tolerance)

    @property
    def effective_spacing(self) -> float:
        return max(MIN_SPACING, self.spacing)

    @property
    def min_depth(self) -> float:
        return self.length * self.min_depth_factor

    def validate(self) -> None:
        if not self.enabled:
            return
        if self.diameter <= 0.0:
            raise ConfigurationError(f"Connector diameter must be > 0, got {self.diameter}")
        if self.length <= 0.0:
            raise ConfigurationError(f"Connector length must be > 0, got {self.length}")
        if self.tolerance < 0.0:
            raise ConfigurationError(f"Connector tolerance must be >= 0, got {self.tolerance}")
        if self.spacing <= 0.0:
            raise ConfigurationError(f"Connector spacing must be > 0, got {self.spacing}")
        if self.edge_margin < 0.0:
            raise ConfigurationError(f"Edge margin must be >= 0, got {self.edge_margin}")


# ─── Candidate layout ────────────────────────────────────────────────────────

def face_dimensions(size: Sequence[float], axis: int) -> Tuple[float, float]:
    """(width, height) of the face whose normal is *axis*."""
    h_axis, v_axis = FACE_PLANE_AXES[axis]
    return float(size[h_axis]), float(size[v_axis])


def candidate_counts(
    face_w: float, face_h: float, margin: float, spacing: float
) -> Tuple[int, int]:
    """Grid intervals along each face direction; candidates are count + 1."""
    count_h = max(0, int(np.floor((face_w - 2.0 * margin) / spacing)))
    count_v = max(0, int(np.floor((face_h - 2.0 * margin) / spacing)))
    return count_h, count_v


def candidate_offsets(count: int, spacing: float) -> np.ndarray:
    """``count + 1`` offsets, evenly spaced and symmetric about zero."""
    return np.arange(count + 1, dtype=float) * spacing - count * spacing / 2.0


def face_candidates(
    bounds: BoundingBox, axis: int, outward: int, config: ConnectorConfig
) -> np.ndarray:
    """World-space candidate centres on the +/- *axis* face of *bounds*."""
    spacing = config.effective_spacing
    h_axis, v_axis = FACE_PLANE_AXES[axis]
    face_w, face_h = face_dimensions(bounds.size, axis)
    count_h, count_v = candidate_counts(face_w, face_h, config.edge_margin, spacing)

    center = bounds.center
    face_coord = bounds.max_corner[axis] if outward > 0 else bounds.min_corner[axis]

    points = []
    for h_off in candidate_offsets(count_h, spacing):
        for v_off in candidate_offsets(count_v, spacing):
            point = center.copy()
            point[axis] = face_coord
            point[h_axis] += h_off
            point[v_axis] += v_off
            points.append(point)
    return np.array(points, dtype=float).reshape(-1, 3)


# ─── Placement probe ─────────────────────────────────────────────────────────

def _hit_distances(
    mesh: trimesh.Trimesh, origin: np.ndarray, direction: np.ndarray
) -> np.ndarray:
    locations, _ray_idx, _tri_idx = mesh.ray.intersects_location(
        ray_origins=origin.reshape(1, 3),
        ray_directions=direction.reshape(1, 3),
    )
    if len(locations) == 0:
        return np.zeros(0, dtype=float)
    return np.linalg.norm(np.asarray(locations) - origin, axis=1)


def is_valid_placement(
    mesh: trimesh.Trimesh,
    point: np.ndarray,
    normal: np.ndarray,
    min_depth: float,
) -> bool:
    """Return True if a connector centred at *point* fits the local surface.

    *normal* is the outward face normal. This is a two-ray heuristic, not a
    wall-thickness measurement.
    """
    n = np.asarray(normal, dtype=float)
    n = n / max(float(np.linalg.norm(n)), 1e-12)
    point = np.asarray(point, dtype=float)

    surface = _hit_distances(mesh, point + PROBE_OFFSET * n, -n)
    if not np.any(surface <= PROBE_REACH):
        return False

    depth = _hit_distances(mesh, point - PROBE_INSET * n, -n)
    return not np.any(depth <= min_depth)


# ─── Synthesis ───────────────────────────────────────────────────────────────

def apply_connectors(
    part: Part,
    steps: Sequence[int],
    config: ConnectorConfig,
    evaluator: BooleanEvaluator,
    weld_epsilon: float = WELD_EPSILON,
) -> List[SkippedItem]:
    """Add pegs toward higher-index neighbours and sockets toward lower ones.

    Replaces ``part.mesh`` face by face. A failed face leaves the geometry
    from before that face and is reported; the remaining faces still run.
    """
    skipped: List[SkippedItem] = []
    working = prepare_operand(part.mesh, weld_epsilon)
    if working is None:
        skipped.append(SkippedItem(part.index, "connectors", "part mesh is empty"))
        return skipped
    part.mesh = working

    # Candidate layout uses the bounds before any feature is added.
    bounds = part.bounds
    for axis in (AXIS_X, AXIS_Y, AXIS_Z):
        if has_neighbor(part.index, steps, axis, +1):
            issue = _apply_face(part, bounds, axis, True, config, evaluator, weld_epsilon)
            if issue is not None:
                skipped.append(issue)
        if has_neighbor(part.index, steps, axis, -1):
            issue = _apply_face(part, bounds, axis, False, config, evaluator, weld_epsilon)
            if issue is not None:
                skipped.append(issue)

    return skipped


def _apply_face(
    part: Part,
    bounds: BoundingBox,
    axis: int,
    is_peg: bool,
    config: ConnectorConfig,
    evaluator: BooleanEvaluator,
    weld_epsilon: float,
) -> Optional[SkippedItem]:
    outward = 1 if is_peg else -1
    normal = axis_unit(axis, outward)
    radius = config.peg_radius if is_peg else config.socket_radius
    feature = "pegs" if is_peg else "sockets"
    operation = f"connector_{feature}"
    face_label = f"{'+' if is_peg else '-'}{AXIS_NAMES[axis]}"

    candidates = face_candidates(bounds, axis, outward, config)
    accepted = [
        c for c in candidates
        if is_valid_placement(part.mesh, c, normal, config.min_depth)
    ]
    rejected = len(candidates) - len(accepted)
    if rejected:
        part.bump("rejected_candidates", rejected)
        logger.debug(
            "Cell %s face %s: %d/%d connector candidates rejected by surface probe",
            part.index, face_label, rejected, len(candidates),
        )
    if not accepted:
        return None

    tools = prepare_operand(
        merge_meshes(
            make_cylinder(radius, config.length, axis, center) for center in accepted
        ),
        weld_epsilon,
    )
    if tools is None:
        return SkippedItem(part.index, operation, f"face {face_label}: tool mesh is empty")

    op = BooleanOp.UNION if is_peg else BooleanOp.SUBTRACTION
    try:
        result = evaluator.evaluate(part.mesh, tools, op)
    except BooleanEvaluationError as exc:
        logger.warning(
            "Connector %s failed for cell %s face %s: %s",
            feature, part.index, face_label, exc,
        )
        return SkippedItem(part.index, operation, f"face {face_label}: {exc}")

    updated = prepare_operand(result, weld_epsilon)
    if updated is None:
        logger.warning(
            "Connector %s for cell %s face %s produced no volume; keeping part",
            feature, part.index, face_label,
        )
        return SkippedItem(part.index, operation, f"face {face_label}: produced no volume")

    part.mesh = updated
    part.bump(feature, len(accepted))
    return None
