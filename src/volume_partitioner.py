"""
Volume partitioning: split a bounding volume into printable cells.

Two modes:
1. Grid: each axis is cut into ``ceil(total / envelope)`` steps of the
   printer envelope, the last step absorbing the remainder.
2. Manual: each enabled axis is cut once at a user offset, giving two
   segments; a disabled axis stays whole.

Cells are produced as the full cartesian product in i-outer, j-middle,
k-inner order. Neighbours are found by index arithmetic only.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import List, Sequence, Tuple

import numpy as np

from geometry_primitives import AXIS_NAMES, BoundingBox, CellIndex
from parts import ConfigurationError

logger = logging.getLogger(__name__)

MAX_PARTS = 500
MIN_CELL_DIMENSION = 0.1
SLICING_MODES = ("grid", "manual")


@dataclass
class SlicingConfig:
    """How to cut the bounding volume."""
    mode: str = "grid"
    # Grid mode: printer build envelope per axis.
    printer_x: float = 120.0
    printer_y: float = 120.0
    printer_z: float = 120.0
    # Manual mode: split offset from the min corner, and whether the axis is cut.
    manual_x: float = 60.0
    manual_y: float = 60.0
    manual_z: float = 60.0
    split_x: bool = False
    split_y: bool = False
    split_z: bool = False

    @property
    def envelope(self) -> Tuple[float, float, float]:
        return (self.printer_x, self.printer_y, self.printer_z)

    @property
    def manual_offsets(self) -> Tuple[float, float, float]:
        return (self.manual_x, self.manual_y, self.manual_z)

    @property
    def manual_enabled(self) -> Tuple[bool, bool, bool]:
        return (self.split_x, self.split_y, self.split_z)

    def validate(self) -> None:
        if self.mode not in SLICING_MODES:
            raise ConfigurationError(
                f"Unknown slicing mode {self.mode!r}; expected one of {SLICING_MODES}"
            )
        if self.mode == "grid":
            for name, value in zip(AXIS_NAMES, self.envelope):
                if not (value > 0.0) or not math.isfinite(value):
                    raise ConfigurationError(
                        f"Printer envelope {name} must be > 0, got {value}"
                    )
        else:
            for name, value, enabled in zip(
                AXIS_NAMES, self.manual_offsets, self.manual_enabled
            ):
                if enabled and not math.isfinite(value):
                    raise ConfigurationError(f"Manual split {name} must be finite")


@dataclass
class Cell:
    """One partition cell."""
    index: CellIndex
    bounds: BoundingBox

    @property
    def size(self) -> np.ndarray:
        return self.bounds.size

    @property
    def is_degenerate(self) -> bool:
        return bool(np.any(self.size < MIN_CELL_DIMENSION))


@dataclass
class Partition:
    """Ordered cells plus per-axis step counts."""
    mode: str
    steps: Tuple[int, int, int]
    extents: Tuple[List[float], List[float], List[float]]
    cells: List[Cell] = field(default_factory=list)

    @property
    def cell_count(self) -> int:
        return len(self.cells)


def grid_steps(total: float, envelope: float) -> int:
    """Number of envelope-sized steps needed to cover *total*."""
    if envelope <= 0.0:
        raise ConfigurationError(f"Envelope must be > 0, got {envelope}")
    return max(1, int(math.ceil(total / envelope)))


def grid_extents(total: float, envelope: float) -> List[float]:
    """Cell sizes along one axis: envelope-sized, remainder in the last."""
    steps = grid_steps(total, envelope)
    sizes = [float(envelope)] * (steps - 1)
    sizes.append(float(total - (steps - 1) * envelope))
    return sizes


def manual_extents(total: float, offset: float, enabled: bool) -> List[float]:
    """Cell sizes along one axis for a single manual cut."""
    if not enabled:
        return [float(total)]
    return [float(offset), float(total - offset)]


def has_neighbor(
    index: CellIndex, steps: Sequence[int], axis: int, direction: int
) -> bool:
    """True if the cell at ``index[axis] + direction`` exists."""
    target = index[axis] + direction
    return 0 <= target < steps[axis]


def axis_extents(
    bounds: BoundingBox, config: SlicingConfig
) -> Tuple[List[float], List[float], List[float]]:
    size = bounds.size
    if config.mode == "grid":
        return tuple(
            grid_extents(float(size[a]), float(config.envelope[a])) for a in range(3)
        )
    return tuple(
        manual_extents(
            float(size[a]), float(config.manual_offsets[a]), config.manual_enabled[a]
        )
        for a in range(3)
    )


def count_cells(bounds: BoundingBox, config: SlicingConfig) -> int:
    """Cell count without materialising the cells (exact, never overflows)."""
    size = bounds.size
    if config.mode == "grid":
        return math.prod(grid_steps(float(size[a]), config.envelope[a]) for a in range(3))
    return math.prod(2 if enabled else 1 for enabled in config.manual_enabled)


def partition_volume(
    bounds: BoundingBox,
    config: SlicingConfig,
    max_parts: int = MAX_PARTS,
) -> Partition:
    """Build the ordered cell list covering *bounds*.

    Raises:
        ConfigurationError: invalid config, or grid mode would produce more
            than *max_parts* cells. Checked before any cell is built.
    """
    config.validate()

    if config.mode == "grid":
        total = count_cells(bounds, config)
        if total > max_parts:
            raise ConfigurationError(
                f"Part count {total} exceeds safety limit ({max_parts}). "
                "Increase printer volume size."
            )

    extents = axis_extents(bounds, config)
    steps = tuple(len(e) for e in extents)
    offsets = [np.concatenate([[0.0], np.cumsum(e)[:-1]]) for e in extents]
    origin = bounds.min_corner

    cells: List[Cell] = []
    for i in range(steps[0]):
        for j in range(steps[1]):
            for k in range(steps[2]):
                lo = origin + np.array([offsets[0][i], offsets[1][j], offsets[2][k]])
                size = np.array([extents[0][i], extents[1][j], extents[2][k]])
                cells.append(Cell(index=(i, j, k), bounds=BoundingBox(lo, lo + size)))

    logger.info(
        "Partitioned %s volume %s into %d cells (%d x %d x %d)",
        config.mode,
        np.round(bounds.size, 2).tolist(),
        len(cells),
        *steps,
    )
    return Partition(mode=config.mode, steps=steps, extents=extents, cells=cells)
