"""Cell extraction: intersect the base solid with one partition cell."""

import logging
from typing import Optional, Tuple

import trimesh

from boolean_evaluator import BooleanEvaluator, BooleanOp
from geometry_primitives import make_box
from mesh_normalizer import WELD_EPSILON, is_empty, prepare_operand
from parts import BooleanEvaluationError, Part, SkippedItem
from volume_partitioner import Cell

logger = logging.getLogger(__name__)


def extract_part(
    base: trimesh.Trimesh,
    cell: Cell,
    name: str,
    evaluator: BooleanEvaluator,
    weld_epsilon: float = WELD_EPSILON,
) -> Tuple[Optional[Part], Optional[SkippedItem]]:
    """Return the Part for *cell*, or a SkippedItem explaining why not.

    An empty intersection is an empty cell, not an error. Evaluator failures
    drop only this cell.
    """
    if cell.is_degenerate:
        logger.debug("Cell %s is degenerate (%s); skipping", cell.index, cell.size)
        return None, SkippedItem(cell.index, "degenerate_cell", "cell dimension below minimum")

    box = prepare_operand(make_box(cell.bounds), weld_epsilon)
    if box is None:
        return None, SkippedItem(cell.index, "extract", "cell box is degenerate")

    try:
        result = evaluator.evaluate(base, box, BooleanOp.INTERSECTION)
    except BooleanEvaluationError as exc:
        logger.warning("Extraction failed for cell %s: %s", cell.index, exc)
        return None, SkippedItem(cell.index, "extract", str(exc))

    if is_empty(result):
        logger.debug("Cell %s does not intersect the solid", cell.index)
        return None, SkippedItem(cell.index, "empty_cell", "no geometry inside cell")

    return Part(mesh=result, index=cell.index, name=name), None
