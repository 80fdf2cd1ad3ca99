"""
Prepare a field session directory for batch processing.

Creates:
  base/real_time/   RTCM corrections logged during the session (*.rtcm3)
  base/rinex_v211/  base station hourly observables, RINEX 2.11 (ZIP)
  base/rinex_v303/  base station daily observables + ephemeris, RINEX 3.03 (ZIP)
  rover/            rover u-blox captures (*.ubx)

and moves *.ubx and *.rtcm3 files found in the session directory into place.
Existing files are never overwritten.
"""

from __future__ import annotations

import argparse
import logging
import shutil
import sys
from pathlib import Path
from typing import List, Optional, Sequence

logger = logging.getLogger(__name__)

SESSION_DIRS = ("base/real_time", "base/rinex_v211", "base/rinex_v303", "rover")

BASE_DATA_GUIDANCE = """\
Now, copy the files of the base station.

For this, download the base data from the base station repo, and copy to the
"base/rinex_v211" directory the "Observables" (no ephemeris) files in RINEX
v2.11 of a time range encompassing the time of the data collected, using the
dataset of "Continuous 60 Min." recording with Measurements 1 Sec. Positions
1 Min. (B directory).

Also, from the base station repo, download "Observables and combined
ephemeris" files in RINEX v3.03 format of the entire day collection, using
the dataset of "Continuous 1440 Min." recording with "Measurements 15 Sec.
Positions 5 Min." (DEFAULT directory), into "base/rinex_v303".
"""


def create_session_dirs(session_dir: Path) -> None:
    for name in SESSION_DIRS:
        (session_dir / name).mkdir(parents=True, exist_ok=True)


def move_without_clobber(files: Sequence[Path], target_dir: Path) -> List[Path]:
    """Move ``files`` into ``target_dir``, skipping names already there."""
    moved = []
    for src in files:
        dst = target_dir / src.name
        if dst.exists():
            logger.warning(f"{dst} already exists, leaving {src.name} in place")
            continue
        shutil.move(str(src), str(dst))
        moved.append(dst)
    return moved


def prepare_session(session_dir: Path) -> dict:
    """
    Lay out ``session_dir`` and sort the capture files into it.

    Returns:
        Mapping of "rover" / "real_time" to the moved files
    """
    create_session_dirs(session_dir)

    ubx_files = sorted(session_dir.glob("*.ubx"))
    rtcm_files = sorted(session_dir.glob("*.rtcm3"))

    if ubx_files:
        rover = move_without_clobber(ubx_files, session_dir / "rover")
        logger.info(f"Moved {len(rover)} rover file(s) to rover/")
        print(BASE_DATA_GUIDANCE)
    else:
        rover = []
        logger.warning(
            "Couldn't find the rover files (*.ubx) in this directory. Place the rover files "
            "in this directory and run again, or place them in the 'rover' directory."
        )

    if rtcm_files:
        real_time = move_without_clobber(rtcm_files, session_dir / "base" / "real_time")
        logger.info(f"Moved {len(real_time)} RTCM file(s) to base/real_time/")
    else:
        real_time = []
        logger.warning(
            "Couldn't find the base RTCM correction files (*.rtcm3). Place them in this "
            "directory and run again, or place them in the 'base/real_time' directory."
        )

    return {"rover": rover, "real_time": real_time}


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Create the base/rover layout of a PPK session")
    parser.add_argument("session_dir", nargs="?", default=".", help="Session directory (default: current)")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s", datefmt="%H:%M:%S")
    prepare_session(Path(args.session_dir).expanduser().resolve())
    return 0


if __name__ == "__main__":
    sys.exit(main())
