#!/usr/bin/env python3
"""
Split an oversized mesh into printer-sized parts.

Cuts the model on a printer-envelope grid (or at manual split points),
optionally hollows it, and adds alignment pegs/sockets and label plates so
the parts reassemble predictably.

Usage:
    python scripts/split_mesh.py --input statue.stl
    python scripts/split_mesh.py --input statue.stl --printer 200 200 180 --hollow --wall 3
    python scripts/split_mesh.py --input vase.obj --mode manual --split-y 80 --no-connectors
    python scripts/split_mesh.py --input model.stl --config split.json --runs-dir runs/
"""
import sys
import json
import argparse
import logging
from dataclasses import replace
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from parts import DecompositionError
from pipeline import DecompositionConfig, SplitRunConfig, run_split_from_file


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Split a mesh into printable parts with connectors and labels.",
    )
    parser.add_argument(
        "--input", required=True,
        help="Path to input mesh file (STL, OBJ, GLB, PLY)",
    )
    parser.add_argument(
        "--runs-dir", default="runs",
        help="Root folder for run output (default: runs)",
    )
    parser.add_argument("--name", default=None, help="Base name for part files")
    parser.add_argument(
        "--config", default=None,
        help="JSON file with a DecompositionConfig dict; flags override it",
    )
    parser.add_argument("--mode", choices=["grid", "manual"], default=None)
    parser.add_argument(
        "--printer", type=float, nargs=3, metavar=("X", "Y", "Z"), default=None,
        help="Printer build envelope in mm (grid mode)",
    )
    for axis in "xyz":
        parser.add_argument(
            f"--split-{axis}", type=float, default=None,
            help=f"Manual cut offset along {axis.upper()} from the min corner",
        )
    parser.add_argument("--no-connectors", action="store_true", help="Skip pegs/sockets")
    parser.add_argument("--peg-diameter", type=float, default=None)
    parser.add_argument("--peg-length", type=float, default=None)
    parser.add_argument("--tolerance", type=float, default=None)
    parser.add_argument("--spacing", type=float, default=None)
    parser.add_argument("--edge-margin", type=float, default=None)
    parser.add_argument("--hollow", action="store_true", help="Hollow the model first")
    parser.add_argument("--wall", type=float, default=None, help="Hollow wall thickness")
    parser.add_argument("--no-drain", action="store_true", help="Skip the drain hole")
    parser.add_argument("--drain-diameter", type=float, default=None)
    parser.add_argument("--no-labels", action="store_true", help="Skip label plates")
    parser.add_argument(
        "--scale-height", type=float, default=None,
        help="Rescale so the model is this tall (see --unit)",
    )
    parser.add_argument("--unit", choices=["mm", "cm", "in", "ft"], default="mm")
    parser.add_argument(
        "--keep-placement", action="store_true",
        help="Do not recentre the model / drop it to Y=0",
    )
    parser.add_argument("--no-zip", action="store_true", help="Skip the zip package")
    parser.add_argument("--workers", type=int, default=None, help="Parallel cell workers")
    parser.add_argument(
        "--verbose", "-v", action="store_true",
        help="Enable verbose logging",
    )
    return parser


def config_from_args(args) -> DecompositionConfig:
    if args.config:
        with open(args.config, "r", encoding="utf-8") as f:
            config = DecompositionConfig.from_dict(json.load(f))
    else:
        config = DecompositionConfig()

    slicing = config.slicing
    if args.mode:
        slicing = replace(slicing, mode=args.mode)
    if args.printer:
        px, py, pz = args.printer
        slicing = replace(slicing, printer_x=px, printer_y=py, printer_z=pz)
    for axis in "xyz":
        value = getattr(args, f"split_{axis}")
        if value is not None:
            slicing = replace(slicing, **{f"manual_{axis}": value, f"split_{axis}": True})

    connectors = config.connectors
    if args.no_connectors:
        connectors = replace(connectors, enabled=False)
    for flag, key in [
        ("peg_diameter", "diameter"),
        ("peg_length", "length"),
        ("tolerance", "tolerance"),
        ("spacing", "spacing"),
        ("edge_margin", "edge_margin"),
    ]:
        value = getattr(args, flag)
        if value is not None:
            connectors = replace(connectors, **{key: value})

    hollow = config.hollow
    if args.hollow:
        hollow = replace(hollow, enabled=True)
    if args.wall is not None:
        hollow = replace(hollow, wall_thickness=args.wall)
    if args.no_drain:
        hollow = replace(hollow, drain_hole_enabled=False)
    if args.drain_diameter is not None:
        hollow = replace(hollow, drain_hole_diameter=args.drain_diameter)

    labels = config.labels
    if args.no_labels:
        labels = replace(labels, enabled=False)

    config = replace(config, slicing=slicing, connectors=connectors, hollow=hollow, labels=labels)
    if args.name:
        config = replace(config, base_name=args.name)
    if args.workers:
        config = replace(config, max_workers=args.workers)
    return config


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    input_path = Path(args.input).resolve()
    if not input_path.is_file():
        parser.error(f"Input file not found: {input_path}")

    run_config = SplitRunConfig(
        runs_dir=args.runs_dir,
        design_name=args.name,
        prepare_input=not args.keep_placement,
        scale_height=args.scale_height,
        scale_unit=args.unit,
        write_zip=not args.no_zip,
        decomposition=config_from_args(args),
    )

    try:
        result = run_split_from_file(str(input_path), run_config, on_progress=print)
    except DecompositionError as exc:
        print(f"Split failed: {exc}", file=sys.stderr)
        return 1

    print(f"\nRun ID: {result.run_id}")
    print(result.decomposition.summary())
    for path in result.part_paths:
        print(f"  {path}")
    if result.zip_path:
        print(f"Package: {result.zip_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
