"""Identification plate added under each part."""

import logging
from dataclasses import dataclass
from typing import Optional

import trimesh

from boolean_evaluator import BooleanEvaluator, BooleanOp
from geometry_primitives import VERTICAL_AXIS, BoundingBox, make_plate
from mesh_normalizer import WELD_EPSILON, prepare_operand
from parts import BooleanEvaluationError, ConfigurationError, Part, SkippedItem

logger = logging.getLogger(__name__)


@dataclass
class LabelConfig:
    enabled: bool = True
    plate_size: float = 15.0
    thickness: float = 2.0

    def validate(self) -> None:
        if not self.enabled:
            return
        if self.plate_size <= 0.0:
            raise ConfigurationError(f"Label plate size must be > 0, got {self.plate_size}")
        if self.thickness <= 0.0:
            raise ConfigurationError(f"Label thickness must be > 0, got {self.thickness}")


def build_label_plate(bounds: BoundingBox, config: LabelConfig) -> trimesh.Trimesh:
    """``plate_size x thickness x plate_size/2`` plate resting on the part's lowest point."""
    center = bounds.center.copy()
    center[VERTICAL_AXIS] = bounds.min_corner[VERTICAL_AXIS] + config.thickness / 2.0
    return make_plate(
        (config.plate_size, config.thickness, config.plate_size / 2.0), center
    )


def apply_label(
    part: Part,
    config: LabelConfig,
    evaluator: BooleanEvaluator,
    weld_epsilon: float = WELD_EPSILON,
) -> Optional[SkippedItem]:
    """Union the plate onto *part*; on failure the part is left as it was."""
    base = prepare_operand(part.mesh, weld_epsilon)
    plate = prepare_operand(build_label_plate(part.bounds, config), weld_epsilon)
    if base is None or plate is None:
        return SkippedItem(part.index, "label", "part or plate mesh is empty")

    try:
        result = evaluator.evaluate(base, plate, BooleanOp.UNION)
    except BooleanEvaluationError as exc:
        logger.warning("Label failed for cell %s: %s", part.index, exc)
        return SkippedItem(part.index, "label", str(exc))

    labelled = prepare_operand(result, weld_epsilon)
    if labelled is None:
        return SkippedItem(part.index, "label", "label union produced no volume")

    part.mesh = labelled
    part.bump("labels")
    return None
