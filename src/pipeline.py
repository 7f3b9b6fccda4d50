"""Split pipeline: solid -> hollow -> cells -> parts with connectors and labels."""

from __future__ import annotations

import logging
import os
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass, field, replace
from typing import Any, Callable, Dict, List, Optional, Tuple

import trimesh

from boolean_evaluator import BooleanEvaluator, TrimeshBooleanEvaluator
from connector_synthesizer import ConnectorConfig, apply_connectors
from geometry_primitives import BoundingBox
from hollowing import HollowConfig, hollow_solid
from label_synthesizer import LabelConfig, apply_label
from mesh_loading import load_mesh, prepare_for_slicing, scale_to_height
from mesh_normalizer import WELD_EPSILON, normalize_mesh, prepare_operand
from part_export import (
    create_run_folder,
    export_parts,
    package_parts,
    point_latest_at,
    stage_input,
    write_report,
)
from part_extractor import extract_part
from parts import (
    ConfigurationError,
    GeometryInitializationError,
    Part,
    SkippedItem,
    part_name,
)
from volume_partitioner import MAX_PARTS, Cell, Partition, SlicingConfig, partition_volume

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str], None]
EvaluatorFactory = Callable[[], BooleanEvaluator]


@dataclass
class DecompositionConfig:
    slicing: SlicingConfig = field(default_factory=SlicingConfig)
    connectors: ConnectorConfig = field(default_factory=ConnectorConfig)
    hollow: HollowConfig = field(default_factory=HollowConfig)
    labels: LabelConfig = field(default_factory=LabelConfig)
    base_name: str = "part"
    max_parts: int = MAX_PARTS
    weld_epsilon: float = WELD_EPSILON
    max_workers: int = 1

    def validate(self) -> None:
        self.slicing.validate()
        self.connectors.validate()
        self.hollow.validate()
        self.labels.validate()
        if self.max_parts < 1:
            raise ConfigurationError(f"max_parts must be >= 1, got {self.max_parts}")
        if self.weld_epsilon <= 0.0:
            raise ConfigurationError(f"weld_epsilon must be > 0, got {self.weld_epsilon}")
        if self.max_workers < 1:
            raise ConfigurationError(f"max_workers must be >= 1, got {self.max_workers}")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "DecompositionConfig":
        sections = {
            "slicing": SlicingConfig,
            "connectors": ConnectorConfig,
            "hollow": HollowConfig,
            "labels": LabelConfig,
        }
        kwargs: Dict[str, Any] = {}
        for key, value in payload.items():
            if key in sections:
                try:
                    kwargs[key] = sections[key](**(value or {}))
                except TypeError as exc:
                    raise ConfigurationError(f"Invalid {key} config: {exc}") from exc
            elif key in cls.__dataclass_fields__:
                kwargs[key] = value
            else:
                raise ConfigurationError(f"Unknown config key: {key}")
        return cls(**kwargs)


@dataclass
class CellTask:
    """One entry of the work list."""
    cell: Cell
    ordinal: int
    total: int
    name: str


@dataclass
class DecompositionResult:
    parts: List[Part]
    skipped: List[SkippedItem]
    partition: Partition
    hollowed: bool
    elapsed_s: float

    @property
    def failures(self) -> List[SkippedItem]:
        return [s for s in self.skipped if s.is_failure]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mode": self.partition.mode,
            "steps": list(self.partition.steps),
            "cell_count": self.partition.cell_count,
            "part_count": len(self.parts),
            "hollowed": self.hollowed,
            "elapsed_s": round(self.elapsed_s, 3),
            "parts": [p.to_dict() for p in self.parts],
            "skipped": [s.to_dict() for s in self.skipped],
        }

    def summary(self) -> str:
        steps = " x ".join(str(s) for s in self.partition.steps)
        lines = [
            f"- Mode: {self.partition.mode} ({steps})",
            f"- Cells: {self.partition.cell_count}",
            f"- Parts: {len(self.parts)}",
            f"- Hollowed: {'yes' if self.hollowed else 'no'}",
            f"- Duration: {self.elapsed_s:.2f}s",
            f"- Failures: {len(self.failures)}",
        ]
        for item in self.failures[:12]:
            where = f" {item.cell_index}" if item.cell_index is not None else ""
            lines.append(f"  - [{item.operation}]{where}: {item.reason}")
        return "\n".join(lines) + "\n"


def _notify(on_progress: Optional[ProgressCallback], message: str) -> None:
    logger.debug(message)
    if on_progress is not None:
        on_progress(message)


def build_work_list(partition: Partition, base_name: str) -> List[CellTask]:
    total = partition.cell_count
    return [
        CellTask(
            cell=cell,
            ordinal=n,
            total=total,
            name=part_name(base_name, cell.index, partition.mode),
        )
        for n, cell in enumerate(partition.cells, start=1)
    ]


def decompose_solid(
    mesh: trimesh.Trimesh,
    config: Optional[DecompositionConfig] = None,
    evaluator: Optional[BooleanEvaluator] = None,
    on_progress: Optional[ProgressCallback] = None,
    evaluator_factory: Optional[EvaluatorFactory] = None,
) -> DecompositionResult:
    """Split *mesh* into printable parts.

    The cell-count limit is checked before any geometry is normalized.
    Per-cell and per-feature failures are collected in
    ``DecompositionResult.skipped``; only initialization and configuration
    problems raise.

    Raises:
        ConfigurationError: invalid config or too many cells.
        GeometryInitializationError: empty source or unusable base solid.
    """
    if config is None:
        config = DecompositionConfig()
    config.validate()
    started = time.perf_counter()

    if mesh is None or len(mesh.vertices) == 0:
        raise GeometryInitializationError("Source mesh has no vertices")
    bounds = BoundingBox.from_mesh(mesh)
    _notify(on_progress, "Partitioning volume...")
    partition = partition_volume(bounds, config.slicing, config.max_parts)

    _notify(on_progress, "Preparing geometry...")
    base = prepare_operand(mesh, config.weld_epsilon)
    if base is None:
        raise GeometryInitializationError("Could not initialize geometry for boolean evaluation")

    if evaluator is None:
        if evaluator_factory is None:
            evaluator_factory = TrimeshBooleanEvaluator
        evaluator = evaluator_factory()

    skipped: List[SkippedItem] = []
    hollowed = False
    if config.hollow.enabled:
        _notify(on_progress, "Hollowing model...")
        base, issues = hollow_solid(base, bounds, config.hollow, evaluator, config.weld_epsilon)
        hollowed = not any(i.operation == "hollow" for i in issues)
        skipped.extend(issues)

    tasks = build_work_list(partition, config.base_name)
    if config.max_workers > 1 and evaluator_factory is not None:
        outcomes = _run_pool(tasks, base, partition, config, evaluator_factory, on_progress)
    else:
        if config.max_workers > 1:
            logger.warning(
                "max_workers=%d needs an evaluator factory; running sequentially",
                config.max_workers,
            )
        outcomes = [
            _process_cell(task, base, partition, config, evaluator, on_progress)
            for task in tasks
        ]

    parts: List[Part] = []
    for part, issues in outcomes:
        if part is not None:
            parts.append(part)
        skipped.extend(issues)
    parts.sort(key=lambda p: p.index)

    elapsed = time.perf_counter() - started
    _notify(on_progress, f"Done: {len(parts)} parts")
    logger.info(
        "Split into %d parts from %d cells in %.2fs (%d failures)",
        len(parts), partition.cell_count, elapsed,
        sum(1 for s in skipped if s.is_failure),
    )
    return DecompositionResult(
        parts=parts,
        skipped=skipped,
        partition=partition,
        hollowed=hollowed,
        elapsed_s=elapsed,
    )


def _process_cell(
    task: CellTask,
    base: trimesh.Trimesh,
    partition: Partition,
    config: DecompositionConfig,
    evaluator: BooleanEvaluator,
    on_progress: Optional[ProgressCallback],
) -> Tuple[Optional[Part], List[SkippedItem]]:
    verb = "Slicing" if partition.mode == "grid" else "Cutting"
    _notify(on_progress, f"{verb} fragment {task.ordinal}/{task.total}...")

    eps = config.weld_epsilon
    try:
        part, issue = extract_part(base, task.cell, task.name, evaluator, eps)
        if part is None:
            return None, [issue] if issue is not None else []

        issues: List[SkippedItem] = []
        if config.connectors.enabled:
            issues.extend(apply_connectors(part, partition.steps, config.connectors, evaluator, eps))
        if config.labels.enabled:
            issue = apply_label(part, config.labels, evaluator, eps)
            if issue is not None:
                issues.append(issue)

        part.mesh = normalize_mesh(part.mesh, eps)
        return part, issues
    except Exception as exc:
        logger.warning("Fragment %d %s processing failed: %s", task.ordinal, task.cell.index, exc)
        return None, [SkippedItem(task.cell.index, "cell", str(exc))]


def _run_pool(
    tasks: List[CellTask],
    base: trimesh.Trimesh,
    partition: Partition,
    config: DecompositionConfig,
    evaluator_factory: EvaluatorFactory,
    on_progress: Optional[ProgressCallback],
) -> List[Tuple[Optional[Part], List[SkippedItem]]]:
    """Process cells on a thread pool; each worker thread owns an evaluator."""
    local = threading.local()

    def worker(task: CellTask):
        if getattr(local, "evaluator", None) is None:
            local.evaluator = evaluator_factory()
        return _process_cell(task, base, partition, config, local.evaluator, on_progress)

    logger.info("Processing %d cells on %d workers", len(tasks), config.max_workers)
    with ThreadPoolExecutor(max_workers=config.max_workers) as pool:
        return list(pool.map(worker, tasks))


# ─── File-based runs ─────────────────────────────────────────────────────────

@dataclass
class SplitRunConfig:
    runs_dir: str = "runs"
    design_name: Optional[str] = None
    prepare_input: bool = True
    scale_height: Optional[float] = None
    scale_unit: str = "mm"
    write_zip: bool = True
    decomposition: DecompositionConfig = field(default_factory=DecompositionConfig)


@dataclass
class SplitRunResult:
    run_id: str
    run_dir: str
    parts_dir: str
    part_paths: List[str]
    zip_path: Optional[str]
    manifest_path: str
    metrics_path: str
    summary_path: str
    decomposition: DecompositionResult


def run_split_from_file(
    mesh_path: str,
    config: Optional[SplitRunConfig] = None,
    on_progress: Optional[ProgressCallback] = None,
    evaluator_factory: Optional[EvaluatorFactory] = None,
) -> SplitRunResult:
    """Load *mesh_path*, split it and write a run folder.

    Parts land in ``parts/`` (plus ``<name>_package.zip`` unless disabled);
    manifest.json, metrics.json and summary.md describe the run.
    """
    if not os.path.isfile(mesh_path):
        raise FileNotFoundError(f"Mesh file not found: {mesh_path}")
    if config is None:
        config = SplitRunConfig()

    design_name = config.design_name or os.path.splitext(os.path.basename(mesh_path))[0]
    folder = create_run_folder(config.runs_dir, design_name)
    staged = stage_input(mesh_path, folder)

    mesh = load_mesh(str(staged))
    if config.prepare_input:
        mesh = prepare_for_slicing(mesh)
    if config.scale_height is not None:
        mesh = scale_to_height(mesh, config.scale_height, config.scale_unit)

    decomposition_config = config.decomposition
    if decomposition_config.base_name == DecompositionConfig().base_name:
        decomposition_config = replace(decomposition_config, base_name=design_name)

    logger.info("Splitting %s into run %s", staged.name, folder.run_id)
    result = decompose_solid(
        mesh,
        decomposition_config,
        on_progress=on_progress,
        evaluator_factory=evaluator_factory,
    )

    part_paths = [str(p) for p in export_parts(result.parts, folder.parts_dir)]
    zip_path = None
    if config.write_zip:
        packed = package_parts(result.parts, folder.package_path(decomposition_config.base_name))
        zip_path = str(packed) if packed is not None else None

    manifest = {
        "run_id": folder.run_id,
        "design_name": design_name,
        "input_mesh": str(staged),
        "created_utc": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
        "prepared": config.prepare_input,
        "scale": (
            {"height": config.scale_height, "unit": config.scale_unit}
            if config.scale_height is not None else None
        ),
        "config": decomposition_config.to_dict(),
        "parts": part_paths,
        "package": zip_path,
    }
    write_report(folder, manifest, result.to_dict(), result.summary())
    point_latest_at(config.runs_dir, folder)

    return SplitRunResult(
        run_id=folder.run_id,
        run_dir=str(folder.root),
        parts_dir=str(folder.parts_dir),
        part_paths=part_paths,
        zip_path=zip_path,
        manifest_path=str(folder.manifest_path),
        metrics_path=str(folder.metrics_path),
        summary_path=str(folder.summary_path),
        decomposition=result,
    )
