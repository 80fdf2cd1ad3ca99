"""
Batch solutions for a prepared session directory.

For every rover/*.ubx capture:
  - export the receiver's real-time solution to <root>-rtk.kml (pos2kml)
  - convert observations to RINEX 3.03 <root>.obs (convbin)

For every rover/*.obs:
  - post-process against base/rinex_v211/merged.obs with the navigation
    data from base/rinex_v303 into <name>-ppk.pos (rnx2rtkp)
  - export the PPK solution to KML (pos2kml)

The base position is given on the command line, either as latitude,
longitude and height (l) or as ECEF coordinates in meters (r).
"""

from __future__ import annotations

import argparse
import logging
import re
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from ppk_errors import InputFileNotFoundError, MissingNavigationError, PPKError
from rtklib_tools import find_tool, run_tool

logger = logging.getLogger(__name__)

SOLUTION_TYPES = {"1": "fix", "2": "float"}
BASE_POSITION_TYPES = {"l": "latitude/longitude/height", "r": "ecef pos in m"}


def capture_root_name(name: str) -> str:
    """Strip lowercase suffixes (extensions, -x tags) from a capture file name."""
    return re.sub(r"(-[a-z])*([.a-z]*)", "", name)


def convert_rover_captures(rover_dir: Path, soltype: str, timeout_sec: Optional[int] = None) -> List[Path]:
    """Export KML tracks and RINEX 3.03 observations for each rover capture."""
    pos2kml = find_tool("pos2kml")
    convbin = find_tool("convbin")

    observations = []
    for ubx in sorted(rover_dir.glob("*.ubx")):
        root = capture_root_name(ubx.name)
        run_tool([pos2kml, "-q", soltype, "-o", f"{root}-rtk.kml", ubx.name], cwd=rover_dir, timeout_sec=timeout_sec)
        run_tool([convbin, "-v", "3.03", "-os", "-o", f"{root}.obs", ubx.name], cwd=rover_dir, timeout_sec=timeout_sec)
        obs = rover_dir / f"{root}.obs"
        if obs.exists():
            observations.append(obs)
        else:
            logger.warning(f"convbin did not produce {obs.name}")
    return observations


def base_inputs(base_dir: Path) -> List[Path]:
    """Base observation file followed by the navigation/companion files."""
    merged = base_dir / "rinex_v211" / "merged.obs"
    if not merged.is_file():
        raise InputFileNotFoundError(f"{merged} not found; run ppk-merge-base first")

    v303 = base_dir / "rinex_v303"
    nav = sorted(v303.glob("*MN.rnx"))
    if not nav:
        raise MissingNavigationError(f"No *MN.rnx navigation file in {v303}")
    companions = sorted(v303.glob("*.[0-9]*P"))
    return [merged] + nav + companions


def ppk_output_name(obs: Path) -> Path:
    return obs.with_name(obs.name.replace(".obs", "-ppk.pos", 1))


def run_batch(
    session_dir: Path,
    soltype: str,
    conf_file: Path,
    base_position_type: str,
    base_position: Sequence[str],
    timeout_sec: Optional[int] = None,
) -> List[Path]:
    """
    Run the batch over ``session_dir``.

    Returns:
        The PPK solution files that were produced
    """
    if not conf_file.is_file():
        raise InputFileNotFoundError(f"Configuration file {conf_file} not found")

    rover_dir = session_dir / "rover"
    convert_rover_captures(rover_dir, soltype, timeout_sec)

    base_files = base_inputs(session_dir / "base")
    rnx2rtkp = find_tool("rnx2rtkp")
    pos2kml = find_tool("pos2kml")

    solutions = []
    for obs in sorted(rover_dir.glob("*.obs")):
        out_pos = ppk_output_name(obs)
        cmd = [rnx2rtkp, "-o", out_pos, "-k", conf_file, f"-{base_position_type}", *base_position, obs, *base_files]
        run_tool(cmd, timeout_sec=timeout_sec)
        if not out_pos.exists():
            logger.warning(f"No solution produced for {obs.name}")
            continue
        run_tool([pos2kml, "-q", soltype, out_pos], timeout_sec=timeout_sec)
        solutions.append(out_pos)

    logger.info(f"Produced {len(solutions)} PPK solution(s)")
    return solutions


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Convert rover captures and compute PPK solutions for a session",
        epilog="solution_type (1:fix,2:float); base_position_type (l:latitude/longitude/height,r:ecef pos in m)",
    )
    parser.add_argument("solution_type", choices=sorted(SOLUTION_TYPES))
    parser.add_argument("conf_file")
    parser.add_argument("base_position_type", choices=sorted(BASE_POSITION_TYPES))
    parser.add_argument("base_position", nargs=3, metavar="basepos")
    parser.add_argument("--session-dir", default=".", help="Prepared session directory (default: current)")
    parser.add_argument("--timeout-sec", type=int, default=600)
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s", datefmt="%H:%M:%S")

    try:
        run_batch(
            Path(args.session_dir).expanduser().resolve(),
            args.solution_type,
            Path(args.conf_file).expanduser().resolve(),
            args.base_position_type,
            args.base_position,
            args.timeout_sec,
        )
    except PPKError as e:
        logger.error(e.diagnostic())
        return e.exit_code
    return 0


if __name__ == "__main__":
    sys.exit(main())
