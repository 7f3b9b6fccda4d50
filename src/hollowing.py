"""
Shell hollowing for resin/FDM material savings.

The inner cavity is a copy of the solid scaled about its bounding-box centre
so that each axis shrinks by twice the wall thickness. Subtracting it leaves
a shell; an optional drain hole is then punched up through the base.
"""
import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np
import trimesh

from boolean_evaluator import BooleanEvaluator, BooleanOp
from geometry_primitives import VERTICAL_AXIS, BoundingBox, make_cylinder
from mesh_normalizer import WELD_EPSILON, prepare_operand
from parts import BooleanEvaluationError, ConfigurationError, SkippedItem

logger = logging.getLogger(__name__)

MIN_SCALE_FACTOR = 0.01
DRAIN_HOLE_OVERSIZE = 100.0


@dataclass
class HollowConfig:
    """Shell hollowing parameters."""
    enabled: bool = False
    wall_thickness: float = 2.5
    drain_hole_enabled: bool = True
    drain_hole_diameter: float = 8.0

    def validate(self) -> None:
        if not self.enabled:
            return
        if self.wall_thickness <= 0.0:
            raise ConfigurationError(
                f"Wall thickness must be > 0, got {self.wall_thickness}"
            )
        if self.drain_hole_enabled and self.drain_hole_diameter <= 0.0:
            raise ConfigurationError(
                f"Drain hole diameter must be > 0, got {self.drain_hole_diameter}"
            )


def hollow_scale_factors(size: np.ndarray, wall_thickness: float) -> np.ndarray:
    """Per-axis inner-shell scale, clamped to MIN_SCALE_FACTOR.

    Walls at or beyond half an axis clamp to the minimum instead of going to
    zero or negative. A flat (zero-size) axis is left unscaled.
    """
    size = np.asarray(size, dtype=float)
    factors = np.ones(3, dtype=float)
    nonzero = size > 0.0
    factors[nonzero] = (size[nonzero] - 2.0 * wall_thickness) / size[nonzero]
    factors[nonzero] = np.maximum(MIN_SCALE_FACTOR, factors[nonzero])
    return factors


def build_inner_shell(
    solid: trimesh.Trimesh, bounds: BoundingBox, wall_thickness: float
) -> trimesh.Trimesh:
    """Copy of *solid* scaled about the bounds centre by the shell factors."""
    factors = hollow_scale_factors(bounds.size, wall_thickness)
    center = bounds.center
    inner = solid.copy()
    inner.apply_translation(-center)
    inner.apply_transform(np.diag(np.append(factors, 1.0)))
    inner.apply_translation(center)
    return inner


def build_drain_hole(bounds: BoundingBox, diameter: float) -> trimesh.Trimesh:
    """Vertical cylinder through the bottom centre, oversized to punch through."""
    height = float(bounds.size[VERTICAL_AXIS]) + DRAIN_HOLE_OVERSIZE
    return make_cylinder(
        radius=diameter / 2.0,
        height=height,
        axis=VERTICAL_AXIS,
        center=bounds.bottom_center(),
    )


def hollow_solid(
    solid: trimesh.Trimesh,
    bounds: BoundingBox,
    config: HollowConfig,
    evaluator: BooleanEvaluator,
    weld_epsilon: float = WELD_EPSILON,
) -> Tuple[trimesh.Trimesh, List[SkippedItem]]:
    """Return the hollowed solid and any steps that had to be skipped.

    Shell subtraction always runs before the drain hole. A failure in either
    step falls back to the geometry from before that step.
    """
    skipped: List[SkippedItem] = []
    if not config.enabled:
        return solid, skipped

    inner = prepare_operand(
        build_inner_shell(solid, bounds, config.wall_thickness), weld_epsilon
    )
    if inner is None:
        logger.warning("Inner shell is degenerate; skipping hollowing")
        skipped.append(SkippedItem(None, "hollow", "inner shell is degenerate"))
        return solid, skipped

    try:
        shelled = evaluator.evaluate(solid, inner, BooleanOp.SUBTRACTION)
    except BooleanEvaluationError as exc:
        logger.warning("Hollowing failed, keeping solid model: %s", exc)
        skipped.append(SkippedItem(None, "hollow", str(exc)))
        return solid, skipped

    result = prepare_operand(shelled, weld_epsilon)
    if result is None:
        logger.warning("Hollowing produced no volume; keeping solid model")
        skipped.append(SkippedItem(None, "hollow", "shell subtraction produced no volume"))
        return solid, skipped

    if config.drain_hole_enabled:
        result = _punch_drain_hole(result, bounds, config, evaluator, weld_epsilon, skipped)

    logger.info(
        "Hollowed model with %.2f wall (scale %s)",
        config.wall_thickness,
        np.round(hollow_scale_factors(bounds.size, config.wall_thickness), 4).tolist(),
    )
    return result, skipped


def _punch_drain_hole(
    shelled: trimesh.Trimesh,
    bounds: BoundingBox,
    config: HollowConfig,
    evaluator: BooleanEvaluator,
    weld_epsilon: float,
    skipped: List[SkippedItem],
) -> trimesh.Trimesh:
    hole = prepare_operand(build_drain_hole(bounds, config.drain_hole_diameter), weld_epsilon)
    if hole is None:
        skipped.append(SkippedItem(None, "drain_hole", "drain cylinder is degenerate"))
        return shelled

    try:
        drained = evaluator.evaluate(shelled, hole, BooleanOp.SUBTRACTION)
    except BooleanEvaluationError as exc:
        logger.warning("Drain hole failed, keeping undrained shell: %s", exc)
        skipped.append(SkippedItem(None, "drain_hole", str(exc)))
        return shelled

    result: Optional[trimesh.Trimesh] = prepare_operand(drained, weld_epsilon)
    if result is None:
        skipped.append(SkippedItem(None, "drain_hole", "drain subtraction produced no volume"))
        return shelled
    return result
