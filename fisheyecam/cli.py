#!/usr/bin/env python
"""
Fisheye point distortion tool.

Applies or removes the lens distortion of a saved camera model to a list of
points, either in pixel coordinates or in normalized camera-plane coordinates.

Usage:
    # Undistort pixel coordinates (one "u v" pair per line)
    fisheye-points --camera camera.yaml --points pixels.txt

    # Distort normalized camera-plane points, write to a CSV file
    fisheye-points --camera camera.json --points rays.csv \\
        --mode distort --space camera --output distorted.csv

    # Take defaults from a YAML config (section "points")
    fisheye-points --camera camera.yaml --points pixels.txt --config configs/points.yaml

Config file:
    points:
      mode: undistort      # distort | undistort
      space: pixel         # pixel | camera
      precision: 6         # decimals written to the output
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

import numpy as np
import yaml

from .calibration.camera_types import MalformedIntrinsicError
from .calibration.serialization import load_intrinsic
from .utils.config_loader import get_nested, load_yaml
from .utils.logger import ROOT_LOGGER_NAME, setup_logger

MODES = ("distort", "undistort")
SPACES = ("pixel", "camera")

DEFAULT_MODE = "undistort"
DEFAULT_SPACE = "pixel"
DEFAULT_PRECISION = 6


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fisheye-points",
        description="Apply or remove fisheye distortion on a list of points",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--camera",
        type=str,
        required=True,
        help="Camera file (.yaml, .yml or .json)",
    )
    parser.add_argument(
        "--points",
        type=str,
        required=True,
        help="Text file with one point per line (whitespace or comma separated)",
    )
    parser.add_argument(
        "--mode",
        choices=MODES,
        default=None,
        help=f"Add or remove distortion (default: {DEFAULT_MODE})",
    )
    parser.add_argument(
        "--space",
        choices=SPACES,
        default=None,
        help=f"Coordinate space of the points (default: {DEFAULT_SPACE})",
    )
    parser.add_argument(
        "--precision",
        type=int,
        default=None,
        help=f"Decimals written to the output (default: {DEFAULT_PRECISION})",
    )
    parser.add_argument(
        "--output",
        type=str,
        default=None,
        help="Output file (default: stdout)",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="YAML file with defaults under the 'points' section",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Logging level",
    )
    return parser


def load_points(path: Path) -> np.ndarray:
    """
    Read an (N, 2) point array from a text file.

    Raises:
        ValueError: If the file does not hold two columns of numbers.
    """
    delimiter = "," if path.suffix.lower() == ".csv" else None
    points = np.loadtxt(path, delimiter=delimiter, ndmin=2, dtype=np.float64)
    if points.size == 0:
        return np.empty((0, 2))
    if points.shape[1] != 2:
        raise ValueError(f"Expected 2 columns in {path}, got {points.shape[1]}")
    return points


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logger = setup_logger(ROOT_LOGGER_NAME, level=args.log_level, stream=sys.stderr)

    config = {}
    if args.config:
        try:
            config = load_yaml(args.config)
        except (FileNotFoundError, ValueError, yaml.YAMLError) as e:
            logger.error(f"Cannot read config: {e}")
            return 1

    # Command line flags win over the config file
    mode = args.mode or get_nested(config, "points.mode", DEFAULT_MODE)
    space = args.space or get_nested(config, "points.space", DEFAULT_SPACE)
    precision = args.precision
    if precision is None:
        precision = get_nested(config, "points.precision", DEFAULT_PRECISION)

    if mode not in MODES or space not in SPACES:
        logger.error(f"Invalid configuration: mode={mode!r}, space={space!r}")
        return 1
    if isinstance(precision, bool) or not isinstance(precision, int) or precision < 0:
        logger.error(f"Invalid precision {precision!r}: expected a non-negative integer")
        return 1

    try:
        camera = load_intrinsic(args.camera)
    except (FileNotFoundError, MalformedIntrinsicError, ValueError) as e:
        logger.error(f"Cannot load camera: {e}")
        return 1

    points_path = Path(args.points)
    if not points_path.exists():
        logger.error(f"Points file not found: {points_path}")
        return 1
    try:
        points = load_points(points_path)
    except ValueError as e:
        logger.error(f"Cannot read points: {e}")
        return 1

    logger.info(f"Camera: {camera!r}")
    logger.info(f"{mode.capitalize()} {len(points)} points in {space} space")

    if space == "pixel":
        transform = camera.get_d_pixel if mode == "distort" else camera.get_ud_pixel
    else:
        transform = camera.add_disto if mode == "distort" else camera.remove_disto

    result = transform(points) if len(points) else points

    fmt = f"%.{precision}f"
    if args.output:
        output_path = Path(args.output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        np.savetxt(output_path, result, fmt=fmt)
        logger.info(f"Wrote {len(result)} points to {output_path}")
    else:
        np.savetxt(sys.stdout, result, fmt=fmt)

    return 0


if __name__ == "__main__":
    sys.exit(main())
