"""
Input side of the splitter: load a mesh file and place it for slicing.

Loaded meshes are centred on X/Z and dropped so their lowest point sits on
Y = 0, which is the frame the hollowing drain hole and label plates assume.
"""

import logging
import os

import numpy as np
import trimesh

from geometry_primitives import VERTICAL_AXIS, BoundingBox
from parts import ConfigurationError, GeometryInitializationError

logger = logging.getLogger(__name__)

UNIT_TO_MM = {"mm": 1.0, "cm": 10.0, "in": 25.4, "ft": 304.8}


def load_mesh(path: str) -> trimesh.Trimesh:
    """Load a mesh file (STL, OBJ, PLY, GLB...) as a single Trimesh.

    Scenes are flattened with their transforms; if that yields nothing the
    largest geometry by face count is used.
    """
    if not os.path.isfile(path):
        raise GeometryInitializationError(f"Mesh file not found: {path}")
    try:
        scene_or_mesh = trimesh.load(path)
    except Exception as exc:
        raise GeometryInitializationError(f"Failed to parse mesh {path}: {exc}") from exc

    if isinstance(scene_or_mesh, trimesh.Scene):
        mesh = scene_or_mesh.to_mesh() if scene_or_mesh.geometry else None
        if not isinstance(mesh, trimesh.Trimesh) or len(mesh.faces) == 0:
            meshes = [
                g for g in scene_or_mesh.geometry.values()
                if isinstance(g, trimesh.Trimesh)
            ]
            mesh = max(meshes, key=lambda m: len(m.faces)) if meshes else None
    else:
        mesh = scene_or_mesh

    if not isinstance(mesh, trimesh.Trimesh) or len(mesh.vertices) == 0:
        raise GeometryInitializationError(f"Mesh file contains no geometry: {path}")
    logger.info(
        "Loaded %s: %d vertices, %d faces, extents %s",
        os.path.basename(path), len(mesh.vertices), len(mesh.faces),
        np.round(mesh.extents, 2).tolist(),
    )
    return mesh


def prepare_for_slicing(mesh: trimesh.Trimesh) -> trimesh.Trimesh:
    """Copy of *mesh* centred on the horizontal axes with its floor at Y = 0."""
    prepared = mesh.copy()
    bounds = BoundingBox.from_mesh(prepared)
    shift = -bounds.center
    shift[VERTICAL_AXIS] = -bounds.min_corner[VERTICAL_AXIS]
    prepared.apply_translation(shift)
    return prepared


def scale_to_height(
    mesh: trimesh.Trimesh, target_height: float, unit: str = "mm"
) -> trimesh.Trimesh:
    """Uniformly scale *mesh* so its Y extent equals *target_height* in *unit*."""
    if unit not in UNIT_TO_MM:
        raise ConfigurationError(f"Unknown unit {unit!r}; expected one of {sorted(UNIT_TO_MM)}")
    if target_height <= 0.0:
        raise ConfigurationError(f"Target height must be > 0, got {target_height}")

    current = float(BoundingBox.from_mesh(mesh).size[VERTICAL_AXIS])
    if current <= 0.0:
        logger.warning("Mesh has no height; scaling skipped")
        return mesh.copy()

    factor = target_height * UNIT_TO_MM[unit] / current
    scaled = mesh.copy()
    scaled.apply_scale(factor)
    logger.info("Scaled mesh by %.4f to %.1f mm tall", factor, current * factor)
    return scaled
