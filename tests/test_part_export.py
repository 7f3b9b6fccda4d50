"""Tests for run folders and part export."""
import json
import zipfile

import numpy as np
import trimesh

from part_export import (
    create_run_folder,
    export_parts,
    package_parts,
    point_latest_at,
    slugify,
    stage_input,
    write_report,
)
from parts import Part


def _parts(box_mesh):
    shifted = box_mesh.copy()
    shifted.apply_translation([100, 0, 0])
    return [
        Part(mesh=box_mesh, index=(0, 0, 0), name="vase_P0-0-0.stl"),
        Part(mesh=shifted, index=(1, 0, 0), name="vase_P1-0-0.stl"),
    ]


def test_slugify():
    assert slugify("My Statue (v2)") == "my-statue-v2"
    assert slugify("***") == "run"


def test_create_run_folder(tmp_path):
    folder = create_run_folder(str(tmp_path), "Big Vase")
    assert folder.run_id.endswith("_big-vase")
    assert folder.input_dir.is_dir()
    assert folder.parts_dir.is_dir()
    assert folder.package_path("vase").name == "vase_package.zip"
    assert folder.manifest_path.parent == folder.root


def test_stage_input_and_report(tmp_path, box_mesh_file):
    folder = create_run_folder(str(tmp_path / "runs"), "box")
    staged = stage_input(box_mesh_file, folder)
    assert staged.parent == folder.input_dir
    assert staged.read_bytes() == open(box_mesh_file, "rb").read()

    write_report(folder, {"run_id": folder.run_id}, {"part_count": 0}, "- Parts: 0\n")
    assert json.loads(folder.manifest_path.read_text())["run_id"] == folder.run_id
    assert json.loads(folder.metrics_path.read_text()) == {"part_count": 0}
    assert folder.summary_path.read_text() == f"# Run {folder.run_id}\n\n- Parts: 0\n"


def test_export_parts_writes_stl(tmp_path, box_mesh):
    paths = export_parts(_parts(box_mesh), tmp_path / "parts")
    assert [p.name for p in paths] == ["vase_P0-0-0.stl", "vase_P1-0-0.stl"]

    reloaded = trimesh.load(str(paths[1]), force="mesh")
    np.testing.assert_allclose(reloaded.bounds, [[100, 0, 0], [200, 100, 100]])


def test_package_parts(tmp_path, box_mesh):
    zip_path = package_parts(_parts(box_mesh), tmp_path / "vase_package.zip")
    with zipfile.ZipFile(zip_path) as archive:
        assert archive.namelist() == ["vase_P0-0-0.stl", "vase_P1-0-0.stl"]
        assert all(archive.getinfo(n).file_size > 0 for n in archive.namelist())


def test_no_package_without_parts(tmp_path):
    assert package_parts([], tmp_path / "empty.zip") is None
    assert not (tmp_path / "empty.zip").exists()


def test_latest_pointer_moves(tmp_path):
    first = create_run_folder(str(tmp_path), "a")
    point_latest_at(str(tmp_path), first)
    second = create_run_folder(str(tmp_path), "b")
    point_latest_at(str(tmp_path), second)

    latest = tmp_path / "latest"
    if latest.is_symlink():
        assert latest.resolve() == second.root.resolve()
    else:
        assert (latest / "latest_run.txt").read_text() == second.run_id
