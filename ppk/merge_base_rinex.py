"""
Unpack and merge base station RINEX downloads.

RINEX 2.11 (base/rinex_v211/*.zip):
  hourly observation files (*<yy>O) are extracted, spliced with
  `teqc -phc` into base/rinex_v211/merged.obs, then removed.

RINEX 3.03 (base/rinex_v303/*.zip):
  the mixed navigation file (*MN.rnx) and precise/observation companions
  (*.<yy>P) are extracted as they are.
"""

from __future__ import annotations

import argparse
import fnmatch
import logging
import re
import shutil
import sys
import zipfile
from pathlib import Path
from typing import List, Optional, Sequence

from ppk_errors import ConversionFailedError, InvalidOptionError, PPKError
from rtklib_tools import find_tool, run_tool

logger = logging.getLogger(__name__)

MERGED_NAME = "merged.obs"


def extract_members(archive: Path, directory: Path, patterns: Sequence[str]) -> List[Path]:
    """Extract members of ``archive`` whose file name matches any of ``patterns``."""
    extracted = []
    with zipfile.ZipFile(archive, "r") as zip_ref:
        for member in zip_ref.infolist():
            name = Path(member.filename).name
            if member.is_dir() or not any(fnmatch.fnmatchcase(name, p) for p in patterns):
                continue
            target = directory / name
            with zip_ref.open(member) as f_in, open(target, "wb") as f_out:
                shutil.copyfileobj(f_in, f_out)
            extracted.append(target)
    return extracted


def merge_v211(v211_dir: Path, year: str, timeout_sec: Optional[int] = None) -> Path:
    """Extract the hourly observation files and splice them into merged.obs."""
    hourly: List[Path] = []
    for archive in sorted(v211_dir.glob("*.zip")):
        hourly.extend(extract_members(archive, v211_dir, [f"*{year}O"]))
    if not hourly:
        raise ConversionFailedError(f"No *{year}O observation files in {v211_dir}/*.zip")

    merged = v211_dir / MERGED_NAME
    try:
        result = run_tool([find_tool("teqc"), "-phc", *sorted(set(hourly))], timeout_sec=timeout_sec)
        if not result.ok or not result.stdout.strip():
            raise ConversionFailedError(f"teqc could not merge {len(hourly)} file(s) in {v211_dir}")
        merged.write_text(result.stdout, encoding="utf-8")
    finally:
        for path in set(hourly):
            path.unlink(missing_ok=True)

    logger.info(f"Merged {len(set(hourly))} hourly file(s) into {merged}")
    return merged


def extract_v303(v303_dir: Path, year: str) -> List[Path]:
    extracted: List[Path] = []
    for archive in sorted(v303_dir.glob("*.zip")):
        extracted.extend(extract_members(archive, v303_dir, ["*MN.rnx", f"*.{year}P"]))
    logger.info(f"Extracted {len(extracted)} RINEX 3.03 file(s) into {v303_dir}")
    return extracted


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Unzip and merge base station RINEX files")
    parser.add_argument("year", help="Two-digit year of the data, e.g. 22")
    parser.add_argument("--session-dir", default=".", help="Directory holding base/ (default: current)")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s", datefmt="%H:%M:%S")

    base_dir = Path(args.session_dir).expanduser().resolve() / "base"
    try:
        if not re.fullmatch(r"\d{2}", args.year):
            raise InvalidOptionError(f"Year must have two digits, got '{args.year}'")
        merge_v211(base_dir / "rinex_v211", args.year)
        extract_v303(base_dir / "rinex_v303", args.year)
    except PPKError as e:
        logger.error(e.diagnostic())
        return e.exit_code
    return 0


if __name__ == "__main__":
    sys.exit(main())
