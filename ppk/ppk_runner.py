"""
PPK Runner (RTKLIB convbin + rnx2rtkp wrapper)

PURPOSE:
Post-process base and rover GNSS data into a position solution. The user
provides an RTKLIB configuration template, base and rover data (RINEX v3
observations, ZIP archives holding UBX captures, or UBX captures directly)
and, optionally, a navigation file and antenna calibration data.

PIPELINE:
1. Validate arguments and input files (nothing is staged on failure)
2. Stage inputs into a temporary directory with base/ and rover/
3. Materialize the configuration (antenna, solution format/static)
4. Extract archives and convert UBX captures when RINEX is not present
5. Run rnx2rtkp once on rover, base and navigation files
6. Copy position-<timestamp>.pos and its sibling files to ppk-<timestamp>/

USAGE:
  ppk -i 15 -c conf/ppk.conf -r rover/rover.obs -b base/base.obs -n base/base.nav \\
      -f ant/AS-ANT2BCAL.atx -t AS-ANT2BCAL -H 2

ENVIRONMENT:
  RTKLIB_HOME     RTKLIB install root used to locate rnx2rtkp/convbin
  PPK_OUTPUT_DIR  Default directory for results and the error log
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import shutil
import sys
from dataclasses import asdict, dataclass, field, replace
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Sequence

from conf_materializer import (
    DEFAULT_SOLUTION_FORMAT,
    DEFAULT_SOLUTION_MODE,
    ConfOverrides,
    get_profile_settings,
    load_conf_profiles,
    materialize,
)
from format_normalizer import DEFAULT_TIME_ADJUST, normalize
from input_classifier import find_observation, resolve_navigation
from ppk_errors import (
    InputFileNotFoundError,
    InvalidOptionError,
    MissingRequiredArgumentError,
    PPKError,
)
from result_collector import collect
from rtklib_tools import find_tool, format_number
from solver import run_rnx2rtkp
from workspace import WorkingDirectory, stage_inputs, staging_directory

logger = logging.getLogger("ppk")

# ----------------------------
# Constants / Defaults
# ----------------------------

TIMESTAMP_FORMAT = "%Y%m%dT%H%M%S"
DEFAULT_INTERVAL_SEC = 15.0
DEFAULT_TIMEOUT_SEC = 600
DEFAULT_OUTPUT_DIR = Path(os.getenv("PPK_OUTPUT_DIR", "."))

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"


# ----------------------------
# Data Structures
# ----------------------------


@dataclass
class PPKInputs:
    """Validated inputs of one run."""

    conf_file: Path
    rover_file: Path
    base_file: Path
    nav_file: Optional[Path] = None
    antenna_file: Optional[Path] = None
    interval: float = DEFAULT_INTERVAL_SEC
    time_adjust: Optional[float] = DEFAULT_TIME_ADJUST
    timeout_sec: int = DEFAULT_TIMEOUT_SEC
    overrides: ConfOverrides = field(default_factory=ConfOverrides)


@dataclass
class RunManifest:
    """Metadata for a single run."""

    run_id: str
    timestamp: str
    rtklib_binary: str = ""
    config_file: str = ""
    rover_file: str = ""
    base_file: str = ""
    nav_files: List[str] = field(default_factory=list)
    interval_sec: float = DEFAULT_INTERVAL_SEC
    solution_format: str = DEFAULT_SOLUTION_FORMAT
    solution_mode: str = DEFAULT_SOLUTION_MODE
    converted: bool = False
    missing_conf_keys: List[str] = field(default_factory=list)
    solver_returncode: Optional[int] = None
    success: bool = False
    duration_sec: float = 0.0


# ----------------------------
# Utility Functions
# ----------------------------


def _now_timestamp() -> str:
    return datetime.now().strftime(TIMESTAMP_FORMAT)


def _write_json(path: Path, obj) -> None:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(obj, f, indent=2, default=str)


def setup_logging(log_path: Path, verbose: bool = False) -> List[logging.Handler]:
    """
    Log to the console, and diagnostics (WARNING and above) to ``log_path``.

    The log file is only created once something is written to it.
    """
    formatter = logging.Formatter(LOG_FORMAT, datefmt="%H:%M:%S")

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)

    file_handler = logging.FileHandler(log_path, delay=True)
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    file_handler.setLevel(logging.WARNING)

    root = logging.getLogger()
    root.setLevel(logging.DEBUG if verbose else logging.INFO)
    handlers = [console_handler, file_handler]
    for handler in handlers:
        root.addHandler(handler)
    return handlers


def teardown_logging(handlers: Sequence[logging.Handler]) -> None:
    root = logging.getLogger()
    for handler in handlers:
        root.removeHandler(handler)
        handler.close()


# ----------------------------
# Argument Parsing
# ----------------------------


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="ppk",
        description=(
            "Post-process base and rover GNSS data with RTKLIB rnx2rtkp. Base and rover "
            "may be RINEX v3 observation files, ZIP files containing UBX captures, or UBX "
            "captures directly. Requires RTKLIB (demo5) installed on the computer."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # RINEX files
  ppk -i 15 -c conf/ppk.conf -r example-rinex/rover/2022-02-25_13-26-06_GNSS-1.obs \\
      -b example-rinex/base/2022-02-25_00-00-00_GNSS-1.obs \\
      -n example-rinex/base/2022-02-25_00-00-00_GNSS-1.nav \\
      -f ant/AS-ANT2BCAL.atx -t AS-ANT2BCAL -H 2

  # ZIP files, ENU output
  ppk -i 15 -c conf/ppk.conf -r example-zip/2022-02-25_13-26-06_GNSS-1.ubx.zip \\
      -b example-zip/2022-02-25_00-00-00_GNSS-1.ubx.zip \\
      -f ant/AS-ANT2BCAL.atx -t AS-ANT2BCAL -H 2 -s enu

  # UBX files, all solutions enumerated
  ppk -i 15 -c conf/ppk.conf -r example-ubx/rover/2022-02-25_13-26-06_GNSS-1.ubx \\
      -b example-ubx/base/2022-02-25_00-00-00_GNSS-1.ubx \\
      -f ant/AS-ANT2BCAL.atx -t AS-ANT2BCAL -H 2 -o all
        """,
    )

    parser.add_argument("-i", dest="interval", type=float, default=None,
                        help=f"Time interval in seconds for computing solutions [{DEFAULT_INTERVAL_SEC:g}]")
    parser.add_argument("-c", dest="conf_file", help="Configuration file (required)")
    parser.add_argument("-r", dest="rover_file", help="Rover file (required)")
    parser.add_argument("-b", dest="base_file", help="Base file (required)")
    parser.add_argument("-n", dest="nav_file", help="Navigation file [searched in base, then rover data]")
    parser.add_argument("-f", dest="antenna_file", help="Antenna calibration file")
    parser.add_argument("-t", dest="antenna_type", help="Antenna type")
    parser.add_argument("-H", dest="antenna_height", type=float, help="Antenna height in meters, i.e. pole height")
    parser.add_argument("-s", dest="solution_format", default=None,
                        help=f"Output solution format (llh;enu;xyz;nmea) [{DEFAULT_SOLUTION_FORMAT}]")
    parser.add_argument("-o", dest="solution_mode", default=None,
                        help=f"Output solution static (all;single) [{DEFAULT_SOLUTION_MODE}]")

    parser.add_argument("--output-dir", default=str(DEFAULT_OUTPUT_DIR),
                        help="Directory receiving ppk-<timestamp>/ and the error log (default: current directory)")
    parser.add_argument("--timeout-sec", type=int, default=DEFAULT_TIMEOUT_SEC,
                        help=f"Timeout for each RTKLIB execution in seconds (default: {DEFAULT_TIMEOUT_SEC})")
    parser.add_argument("--profile", help="Named option profile applied on top of the configuration")
    parser.add_argument("--profiles-file",
                        help="YAML file with option profiles (default: the bundled ppk_profiles.yaml, "
                             "installed next to the modules or under <prefix>/share/ppk)")
    parser.add_argument("--no-time-adjust", action="store_true",
                        help="Do not pass the receiver clock adjustment (-TADJ) to convbin")
    parser.add_argument("--verbose", action="store_true", help="Debug logging")

    return parser.parse_args(argv)


def _existing_file(value: Optional[str], label: str, required: bool) -> Optional[Path]:
    if not value:
        if required:
            raise MissingRequiredArgumentError(f"{label}: required argument not provided. Exiting")
        return None
    path = Path(value).expanduser().resolve()
    if not path.is_file():
        raise InputFileNotFoundError(f"{label}: file {value} not found")
    logger.info(f"  {label}: {value}")
    return path


def validate_inputs(args: argparse.Namespace) -> PPKInputs:
    """
    Check every argument before anything is staged.

    Raises:
        PPKError: on the first failed precondition
    """
    if args.interval is None:
        logger.info(f"  Time interval: argument not provided, using default ({DEFAULT_INTERVAL_SEC:g} seconds)")
        interval = DEFAULT_INTERVAL_SEC
    else:
        interval = args.interval
        if interval <= 0:
            raise InvalidOptionError(f"Time interval must be positive, got {format_number(interval)}")
        logger.info(f"  Time interval: {format_number(interval)} seconds")

    conf_file = _existing_file(args.conf_file, "Configuration file", required=True)
    rover_file = _existing_file(args.rover_file, "Rover source file", required=True)
    base_file = _existing_file(args.base_file, "Base source file", required=True)

    nav_file = _existing_file(args.nav_file, "Navigation file", required=False)
    if nav_file is None:
        logger.info("  Navigation file: argument not provided, will try finding one within ZIP or UBX files")

    antenna_file = _existing_file(args.antenna_file, "Antenna calibration file", required=False)
    if antenna_file is None:
        logger.info("  Antenna calibration file: argument not provided, using default")

    if args.antenna_type:
        logger.info(f"  Antenna type: {args.antenna_type}")
    else:
        logger.info("  Antenna type: argument not provided, using default")
    if args.antenna_height is not None:
        logger.info(f"  Antenna height, i.e. pole height: {format_number(args.antenna_height)} (meters)")
    else:
        logger.info("  Antenna height (i.e. pole height): none provided")

    extra = {}
    if args.profile:
        profiles_file = Path(args.profiles_file).expanduser() if args.profiles_file else None
        extra = get_profile_settings(load_conf_profiles(profiles_file), args.profile)
        logger.info(f"  Option profile: {args.profile} ({len(extra)} options)")

    overrides = ConfOverrides(
        antenna_type=args.antenna_type,
        antenna_height=args.antenna_height,
        solution_format=args.solution_format or DEFAULT_SOLUTION_FORMAT,
        solution_mode=args.solution_mode or DEFAULT_SOLUTION_MODE,
        extra=extra,
    )
    overrides.validate()
    logger.info(f"  Output solution format: {overrides.solution_format}")
    logger.info(f"  Output solution static: {overrides.solution_mode}")

    return PPKInputs(
        conf_file=conf_file,
        rover_file=rover_file,
        base_file=base_file,
        nav_file=nav_file,
        antenna_file=antenna_file,
        interval=interval,
        time_adjust=None if args.no_time_adjust else DEFAULT_TIME_ADJUST,
        timeout_sec=args.timeout_sec,
        overrides=overrides,
    )


# ----------------------------
# Pipeline
# ----------------------------


def _solve_in(
    workdir: WorkingDirectory,
    inputs: PPKInputs,
    manifest: RunManifest,
    rnx2rtkp_bin: Path,
) -> None:
    stage_inputs(workdir, inputs.base_file, inputs.rover_file, inputs.nav_file)

    overrides = inputs.overrides
    if inputs.antenna_file:
        shutil.copy2(inputs.antenna_file, workdir.antenna_file)
        overrides = replace(overrides, antenna_file=workdir.antenna_file)
    manifest.missing_conf_keys = materialize(inputs.conf_file, workdir.conf_file, overrides)

    manifest.converted = normalize(workdir, inputs.interval, inputs.time_adjust, inputs.timeout_sec)

    rover_obs = find_observation(workdir.rover)
    base_obs = find_observation(workdir.base)
    nav_files = resolve_navigation(workdir.base, workdir.rover)
    manifest.nav_files = [p.name for p in nav_files]

    result = run_rnx2rtkp(
        rover_obs=rover_obs,
        base_obs=base_obs,
        nav_files=nav_files,
        conf_file=workdir.conf_file,
        interval=inputs.interval,
        out_pos=workdir.solution_file,
        log_path=workdir.solver_log,
        timeout_sec=inputs.timeout_sec,
        rnx2rtkp_bin=rnx2rtkp_bin,
    )
    manifest.solver_returncode = result.returncode
    manifest.duration_sec = result.elapsed_sec
    manifest.success = workdir.solution_file.exists()


def run_pipeline(
    inputs: PPKInputs,
    output_dir: Path,
    timestamp: str,
    rnx2rtkp_bin: Path,
) -> List[Path]:
    """
    Run the full pipeline in a scoped staging directory.

    Returns:
        Files copied to ``output_dir/ppk-<timestamp>``
    """
    manifest = RunManifest(
        run_id=f"ppk-{timestamp}",
        timestamp=datetime.now().isoformat(),
        rtklib_binary=str(rnx2rtkp_bin),
        config_file=str(inputs.conf_file),
        rover_file=str(inputs.rover_file),
        base_file=str(inputs.base_file),
        interval_sec=inputs.interval,
        solution_format=inputs.overrides.solution_format,
        solution_mode=inputs.overrides.solution_mode,
    )

    with staging_directory(timestamp) as workdir:
        _solve_in(workdir, inputs, manifest, rnx2rtkp_bin)
        _write_json(workdir.manifest_file, asdict(manifest))
        return collect(workdir.root, output_dir / manifest.run_id, timestamp)


# ----------------------------
# Main Entry Point
# ----------------------------


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    timestamp = _now_timestamp()

    output_dir = Path(args.output_dir).expanduser().resolve()
    output_dir.mkdir(parents=True, exist_ok=True)
    handlers = setup_logging(output_dir / f"errors-{timestamp}.log", args.verbose)

    try:
        inputs = validate_inputs(args)
        rnx2rtkp_bin = find_tool("rnx2rtkp")
        copied = run_pipeline(inputs, output_dir, timestamp, rnx2rtkp_bin)
    except PPKError as e:
        logger.error(e.diagnostic())
        return e.exit_code
    finally:
        teardown_logging(handlers)

    print(f"[OK] Output written to: {output_dir / f'ppk-{timestamp}'}")
    for path in copied:
        print(f"     {path.name}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
