"""
Format Normalizer

Brings the staged base and rover directories to RINEX observation and
navigation files:
1. If each directory already holds one observation file and navigation
   data is resolvable, nothing is done.
2. Otherwise, per directory, archives are extracted in place (existing
   files are kept) and u-blox captures are converted with RTKLIB convbin.
3. Each directory must then resolve to exactly one observation file.
"""

from __future__ import annotations

import gzip
import logging
import shutil
import zipfile
from pathlib import Path
from typing import List, Optional

from input_classifier import (
    FileKind,
    classify,
    describe,
    find_observation,
    resolve_navigation,
)
from ppk_errors import ConversionFailedError, MissingNavigationError
from rtklib_tools import find_tool, format_number, run_tool
from workspace import WorkingDirectory

logger = logging.getLogger(__name__)

DEFAULT_TIME_ADJUST = 1.0


def is_normalized(workdir: WorkingDirectory) -> bool:
    """True when base and rover each hold one observation file and nav data exists."""
    rover_obs = classify(workdir.rover, FileKind.OBSERVATION)
    base_obs = classify(workdir.base, FileKind.OBSERVATION)
    if len(rover_obs) != 1 or len(base_obs) != 1:
        return False
    try:
        resolve_navigation(workdir.base, workdir.rover)
    except MissingNavigationError:
        return False
    return True


# ----------------------------
# Archives
# ----------------------------


def _extract_zip(archive: Path, directory: Path) -> List[Path]:
    extracted = []
    try:
        with zipfile.ZipFile(archive, "r") as zip_ref:
            logger.debug(f"Zip contents: {zip_ref.namelist()}")
            for member in zip_ref.infolist():
                if member.is_dir():
                    continue
                target = directory / Path(member.filename).name
                if target.exists():
                    logger.info(f"Skipping existing file: {target.name}")
                    continue
                with zip_ref.open(member) as f_in, open(target, "wb") as f_out:
                    shutil.copyfileobj(f_in, f_out)
                extracted.append(target)
    except zipfile.BadZipFile as e:
        raise ConversionFailedError(f"Invalid zip file {archive.name}: {e}") from e
    return extracted


def _extract_gzip(archive: Path, directory: Path) -> List[Path]:
    target = directory / archive.stem
    if target.exists():
        logger.info(f"Skipping existing file: {target.name}")
        return []
    try:
        with gzip.open(archive, "rb") as f_in, open(target, "wb") as f_out:
            shutil.copyfileobj(f_in, f_out)
    except (OSError, EOFError) as e:
        target.unlink(missing_ok=True)
        raise ConversionFailedError(f"Decompression failed for {archive.name}: {e}") from e
    return [target]


def _extract_with_7z(archive: Path, directory: Path, timeout_sec: Optional[int]) -> List[Path]:
    before = set(directory.iterdir())
    # e: flat extraction, -aos: skip existing files
    result = run_tool(
        [find_tool("7z"), "e", "-aos", f"-o{directory}", archive],
        timeout_sec=timeout_sec,
    )
    if not result.ok:
        raise ConversionFailedError(f"7z could not extract {archive.name}")
    return sorted(set(directory.iterdir()) - before)


def extract_archive(
    archive: Path,
    directory: Path,
    timeout_sec: Optional[int] = None,
) -> List[Path]:
    """
    Extract ``archive`` into ``directory`` without directory structure.

    Files already present are never overwritten.

    Returns:
        The newly written files
    """
    suffix = archive.suffix.lower()
    if suffix == ".zip":
        extracted = _extract_zip(archive, directory)
    elif suffix in (".gz", ".gzip"):
        extracted = _extract_gzip(archive, directory)
    else:
        extracted = _extract_with_7z(archive, directory, timeout_sec)

    logger.info(f"Extracted {len(extracted)} file(s) from {archive.name}")
    return extracted


# ----------------------------
# Raw receiver captures
# ----------------------------


def convert_raw_capture(
    raw_file: Path,
    directory: Path,
    interval: float,
    time_adjust: Optional[float] = DEFAULT_TIME_ADJUST,
    log_path: Optional[Path] = None,
    timeout_sec: Optional[int] = None,
) -> List[Path]:
    """
    Convert a u-blox capture to RINEX with convbin.

    Command:
      convbin -d <dir> -ti <interval> -ro -TADJ=<n> <capture>

    ``time_adjust`` is the receiver clock adjustment passed to the u-blox
    decoder; None leaves receiver time untouched.

    Returns:
        The observation/navigation files that appeared in ``directory``
    """
    cmd = [find_tool("convbin"), "-d", directory, "-ti", format_number(interval)]
    if time_adjust is not None:
        cmd += ["-ro", f"-TADJ={format_number(time_adjust)}"]
    cmd.append(raw_file)

    before = set(directory.iterdir())
    run_tool(cmd, log_path=log_path, timeout_sec=timeout_sec)
    produced = sorted(set(directory.iterdir()) - before)

    logger.info(f"convbin produced {len(produced)} file(s) from {raw_file.name}")
    return produced


def _normalize_directory(
    directory: Path,
    interval: float,
    time_adjust: Optional[float],
    log_path: Optional[Path],
    timeout_sec: Optional[int],
) -> None:
    for archive in classify(directory, FileKind.ARCHIVE):
        logger.info(f"Extracting {describe(FileKind.ARCHIVE)} file: {archive.name}")
        extract_archive(archive, directory, timeout_sec)

    for raw in classify(directory, FileKind.RAW_CAPTURE):
        logger.info(f"Converting {describe(FileKind.RAW_CAPTURE)} file: {raw.name}")
        convert_raw_capture(raw, directory, interval, time_adjust, log_path, timeout_sec)


def normalize(
    workdir: WorkingDirectory,
    interval: float,
    time_adjust: Optional[float] = DEFAULT_TIME_ADJUST,
    timeout_sec: Optional[int] = None,
) -> bool:
    """
    Normalize the staged inputs.

    Returns:
        True if conversion ran, False if the inputs were already RINEX

    Raises:
        ConversionFailedError: if a directory has no observation file afterwards
        AmbiguousInputError: if a directory has more than one
    """
    if is_normalized(workdir):
        logger.info("RINEX observation and navigation files found, skipping conversion")
        return False

    for directory in (workdir.rover, workdir.base):
        _normalize_directory(directory, interval, time_adjust, workdir.solver_log, timeout_sec)

    for directory in (workdir.rover, workdir.base):
        try:
            find_observation(directory)
        except ConversionFailedError as e:
            raise ConversionFailedError(
                f"{e.message}. Check that the input holds RINEX, ZIP or UBX data"
            ) from e
    return True
