"""
Output side of the splitter: run folders, per-part STL files, zip package.

A run folder looks like::

    <runs_root>/<stamp>_<slug>/
        input/<source mesh>
        parts/<base>_P0-0-0.stl ...
        <base>_package.zip
        manifest.json  metrics.json  summary.md
    <runs_root>/latest -> most recent run
"""

from __future__ import annotations

import json
import os
import re
import shutil
import zipfile
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from parts import Part


@dataclass
class RunFolder:
    run_id: str
    root: Path
    input_dir: Path
    parts_dir: Path

    @property
    def manifest_path(self) -> Path:
        return self.root / "manifest.json"

    @property
    def metrics_path(self) -> Path:
        return self.root / "metrics.json"

    @property
    def summary_path(self) -> Path:
        return self.root / "summary.md"

    def package_path(self, base_name: str) -> Path:
        return self.root / f"{base_name}_package.zip"


def slugify(value: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-")
    return slug or "run"


def create_run_folder(runs_root: str, design_name: str) -> RunFolder:
    """Make a fresh, timestamped run folder under *runs_root*."""
    run_id = "{}_{}".format(
        datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S"), slugify(design_name)
    )
    root = Path(runs_root) / run_id
    folder = RunFolder(
        run_id=run_id,
        root=root,
        input_dir=root / "input",
        parts_dir=root / "parts",
    )
    for directory in (folder.input_dir, folder.parts_dir):
        directory.mkdir(parents=True, exist_ok=True)
    return folder


def stage_input(mesh_path: str, folder: RunFolder) -> Path:
    """Copy the source mesh into the run so the run is self-contained."""
    source = Path(mesh_path)
    staged = folder.input_dir / source.name
    if source.resolve() != staged.resolve():
        shutil.copy2(source, staged)
    return staged


def write_report(
    folder: RunFolder,
    manifest: Dict[str, Any],
    metrics: Dict[str, Any],
    summary: str,
) -> None:
    """Write manifest.json, metrics.json and summary.md."""
    for path, payload in ((folder.manifest_path, manifest), (folder.metrics_path, metrics)):
        path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    folder.summary_path.write_text(f"# Run {folder.run_id}\n\n{summary}", encoding="utf-8")


def point_latest_at(runs_root: str, folder: RunFolder) -> None:
    """Make ``<runs_root>/latest`` refer to *folder*.

    Uses a relative symlink; where symlinks are unavailable ``latest`` is a
    directory holding ``latest_run.txt`` with the run id.
    """
    latest = Path(runs_root) / "latest"
    if latest.is_symlink() or latest.is_file():
        latest.unlink()
    elif latest.is_dir():
        shutil.rmtree(latest)

    try:
        latest.symlink_to(os.path.relpath(folder.root, runs_root))
    except OSError:
        latest.mkdir(parents=True, exist_ok=True)
        (latest / "latest_run.txt").write_text(folder.run_id, encoding="utf-8")


def export_parts(parts: Sequence[Part], out_dir: Path) -> List[Path]:
    """Write one binary STL per part, named by ``Part.name``."""
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    written: List[Path] = []
    for part in parts:
        target = out_dir / part.name
        part.mesh.export(str(target), file_type="stl")
        written.append(target)
    return written


def package_parts(parts: Sequence[Part], zip_path: Path) -> Optional[Path]:
    """Bundle every part's STL into one zip; None when there is nothing to pack."""
    if not parts:
        return None
    zip_path = Path(zip_path)
    zip_path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(zip_path, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for part in parts:
            archive.writestr(part.name, part.mesh.export(file_type="stl"))
    return zip_path
