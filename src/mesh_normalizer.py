"""
Canonical mesh form for boolean evaluation.

Every operand handed to the boolean evaluator goes through normalize_mesh():
the input is flattened to a triangle soup, stripped to positions, re-welded
within a small epsilon and rebuilt as a fresh indexed Trimesh. Any prior
indexing, visuals, per-vertex attributes or metadata are discarded, and
normals/bounds are derived from the new topology.
"""

import logging
import math
from typing import Optional

import numpy as np
import trimesh

from parts import GeometryInitializationError

logger = logging.getLogger(__name__)

WELD_EPSILON = 1e-4
MAX_INDEXED_VERTICES = int(np.iinfo(np.uint32).max)


def empty_mesh() -> trimesh.Trimesh:
    """Explicit zero-vertex mesh returned for unusable input."""
    return trimesh.Trimesh(
        vertices=np.zeros((0, 3), dtype=float),
        faces=np.zeros((0, 3), dtype=np.int64),
        process=False,
    )


def is_empty(mesh: Optional[trimesh.Trimesh]) -> bool:
    return mesh is None or len(mesh.vertices) == 0 or len(mesh.faces) == 0


def normalize_mesh(
    mesh: Optional[trimesh.Trimesh],
    weld_epsilon: float = WELD_EPSILON,
) -> trimesh.Trimesh:
    """Return the canonical indexed, position-only copy of *mesh*.

    Zero-vertex input yields ``empty_mesh()`` rather than an error; callers
    must check the vertex count. Raises GeometryInitializationError when the
    welded mesh cannot be addressed with 32-bit indices. Normalizing an already-normalized mesh keeps
    its vertex and triangle counts and moves no vertex.
    """
    if mesh is None or len(mesh.vertices) == 0:
        return empty_mesh()

    soup = np.asarray(mesh.triangles, dtype=float).reshape(-1, 3)
    if len(soup) == 0:
        return empty_mesh()

    identity = np.arange(len(soup), dtype=np.int64).reshape(-1, 3)
    try:
        vertices, faces = _weld(soup, identity, weld_epsilon)
    except Exception as exc:
        logger.warning("Vertex welding failed, keeping unwelded soup: %s", exc)
        vertices, faces = soup, identity

    if len(vertices) > MAX_INDEXED_VERTICES:
        raise GeometryInitializationError(
            f"{len(vertices)} vertices do not fit a 32-bit index buffer"
        )
    return trimesh.Trimesh(vertices=vertices, faces=faces, process=False)


def prepare_operand(
    mesh: Optional[trimesh.Trimesh],
    weld_epsilon: float = WELD_EPSILON,
) -> Optional[trimesh.Trimesh]:
    """Normalize *mesh* for the evaluator; None when nothing usable remains."""
    normalized = normalize_mesh(mesh, weld_epsilon)
    if is_empty(normalized):
        return None
    return normalized


def _weld(soup: np.ndarray, faces: np.ndarray, weld_epsilon: float):
    welded = trimesh.Trimesh(vertices=soup, faces=faces, process=False)
    welded.merge_vertices(digits_vertex=_digits_for_epsilon(weld_epsilon))

    new_faces = np.asarray(welded.faces, dtype=np.int64)
    # Triangles collapsed by welding have a repeated corner.
    keep = (
        (new_faces[:, 0] != new_faces[:, 1])
        & (new_faces[:, 1] != new_faces[:, 2])
        & (new_faces[:, 0] != new_faces[:, 2])
    )
    if not np.any(keep):
        raise ValueError("welding collapsed every triangle")
    if not np.all(keep):
        welded.update_faces(keep)
        welded.remove_unreferenced_vertices()

    return (
        np.array(welded.vertices, dtype=float),
        np.array(welded.faces, dtype=np.int64),
    )


def _digits_for_epsilon(weld_epsilon: float) -> int:
    if weld_epsilon <= 0.0:
        return 8
    return max(0, int(round(-math.log10(weld_epsilon))))
