"""
Boolean mesh evaluator interface.

The splitter never computes unions/intersections itself; it asks an injected
BooleanEvaluator. Implementations only supply ``_evaluate``; the public
``evaluate`` checks operands, wraps backend failures into
BooleanEvaluationError and turns "no volume" into an empty mesh.

An evaluator instance is not reentrant. Parallel callers must each own one.
"""
import logging
import threading
from abc import ABC, abstractmethod
from enum import Enum
from typing import Optional

import trimesh

from mesh_normalizer import empty_mesh, is_empty
from parts import BooleanEvaluationError

logger = logging.getLogger(__name__)


class BooleanOp(Enum):
    """Supported boolean operations."""
    UNION = "union"
    SUBTRACTION = "subtraction"
    INTERSECTION = "intersection"


class BooleanEvaluator(ABC):
    """Abstract boolean backend: ``evaluate(a, b, op) -> mesh``."""

    def __init__(self):
        self._busy = threading.Lock()
        self.calls = 0

    @property
    @abstractmethod
    def name(self) -> str:
        """Backend identifier used in logs."""
        ...

    @abstractmethod
    def _evaluate(
        self, mesh_a: trimesh.Trimesh, mesh_b: trimesh.Trimesh, op: BooleanOp
    ) -> Optional[trimesh.Trimesh]:
        """Backend-specific evaluation. May raise anything."""
        ...

    def evaluate(
        self, mesh_a: trimesh.Trimesh, mesh_b: trimesh.Trimesh, op: BooleanOp
    ) -> trimesh.Trimesh:
        """Evaluate ``mesh_a <op> mesh_b``.

        Raises:
            BooleanEvaluationError: operands are empty, the evaluator is
                already busy, or the backend failed.
        """
        if is_empty(mesh_a) or is_empty(mesh_b):
            raise BooleanEvaluationError(f"{op.value}: empty operand")
        if not self._busy.acquire(blocking=False):
            raise BooleanEvaluationError(
                f"{self.name} evaluator is not reentrant; use one instance per worker"
            )

        try:
            self.calls += 1
            result = self._evaluate(mesh_a, mesh_b, op)
        except BooleanEvaluationError:
            raise
        except Exception as exc:
            raise BooleanEvaluationError(f"{self.name} {op.value} failed: {exc}") from exc
        finally:
            self._busy.release()

        if result is None or is_empty(result):
            logger.debug("%s %s produced no volume", self.name, op.value)
            return empty_mesh()
        return result


class TrimeshBooleanEvaluator(BooleanEvaluator):
    """Evaluator backed by ``trimesh.boolean`` (manifold3d by default)."""

    def __init__(self, engine: Optional[str] = "manifold", check_volume: bool = False):
        super().__init__()
        self.engine = engine
        self.check_volume = check_volume

    @property
    def name(self) -> str:
        return f"trimesh[{self.engine or 'default'}]"

    def _evaluate(self, mesh_a, mesh_b, op):
        operands = [mesh_a, mesh_b]
        kwargs = {"engine": self.engine, "check_volume": self.check_volume}
        if op == BooleanOp.UNION:
            return trimesh.boolean.union(operands, **kwargs)
        if op == BooleanOp.SUBTRACTION:
            return trimesh.boolean.difference(operands, **kwargs)
        if op == BooleanOp.INTERSECTION:
            return trimesh.boolean.intersection(operands, **kwargs)
        raise BooleanEvaluationError(f"Unsupported boolean op: {op}")
