"""
Part data model and error taxonomy for the splitter.

A Part is one printable fragment: its mesh, the partition cell it came from
and the file name it will be exported under. Recoverable problems are
collected as SkippedItem records; fatal ones raise a DecompositionError.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import trimesh

from geometry_primitives import BoundingBox, CellIndex


class DecompositionError(Exception):
    """Base exception for fatal splitter errors."""
    pass


class ConfigurationError(DecompositionError, ValueError):
    """Invalid configuration, including the part-count safety limit."""
    pass


class GeometryInitializationError(DecompositionError):
    """Source geometry is empty or the base solid could not be built."""
    pass


class BooleanEvaluationError(DecompositionError):
    """A single boolean evaluation failed."""
    pass


MODE_PREFIX = {"grid": "P", "manual": "M"}
NON_FAILURE_OPERATIONS = frozenset({"empty_cell", "degenerate_cell"})


def part_name(base_name: str, index: CellIndex, mode: str = "grid") -> str:
    """Export file name, e.g. ``statue_P0-1-0.stl``."""
    prefix = MODE_PREFIX.get(mode, "P")
    i, j, k = index
    return f"{base_name}_{prefix}{i}-{j}-{k}.stl"


@dataclass
class Part:
    """One extracted fragment.

    The mesh is replaced (never edited) by the connector and label passes.
    """
    mesh: trimesh.Trimesh
    index: CellIndex
    name: str
    stats: Dict[str, int] = field(default_factory=dict)

    @property
    def bounds(self) -> BoundingBox:
        return BoundingBox.from_mesh(self.mesh)

    def bump(self, key: str, amount: int = 1) -> None:
        self.stats[key] = self.stats.get(key, 0) + amount

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "index": list(self.index),
            "vertices": int(len(self.mesh.vertices)),
            "faces": int(len(self.mesh.faces)),
            "bounds": self.bounds.to_dict() if len(self.mesh.vertices) else None,
            "stats": dict(self.stats),
        }


@dataclass
class SkippedItem:
    """A recoverable failure: which cell, which step, and why."""
    cell_index: Optional[CellIndex]
    operation: str
    reason: str

    @property
    def is_failure(self) -> bool:
        """Empty and degenerate cells are expected outcomes, not failures."""
        return self.operation not in NON_FAILURE_OPERATIONS

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cell_index": list(self.cell_index) if self.cell_index is not None else None,
            "operation": self.operation,
            "reason": self.reason,
        }
