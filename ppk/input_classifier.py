"""
Input Classifier

Decides what each staged file is from its name alone:
- ARCHIVE:      .zip / .7z / .rar / .gzip / .gz
- RAW_CAPTURE:  u-blox binary logs (.ubx)
- OBSERVATION:  RINEX observations (.yyO, *MO.rnx, .obs)
- NAVIGATION:   RINEX navigation (.yyN/.yyG/.yyL, *MN.rnx, *nav)

Matching is case-insensitive and patterns are tried in the order above,
so a name resolves to exactly one kind.
"""

from __future__ import annotations

import logging
import re
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional

from ppk_errors import (
    AmbiguousInputError,
    ConversionFailedError,
    EmptyDirectoryError,
    MissingNavigationError,
)

logger = logging.getLogger(__name__)


class FileKind(Enum):
    ARCHIVE = "archive"
    RAW_CAPTURE = "raw_capture"
    OBSERVATION = "observation"
    NAVIGATION = "navigation"


FILE_PATTERNS: Dict[FileKind, re.Pattern] = {
    FileKind.ARCHIVE: re.compile(r"\.zip$|\.7z$|\.rar$|\.gzip$|\.gz$", re.IGNORECASE),
    FileKind.RAW_CAPTURE: re.compile(r"\.ubx$", re.IGNORECASE),
    FileKind.OBSERVATION: re.compile(r"\.[0-2][0-9]o$|mo\.rnx$|\.obs$", re.IGNORECASE),
    FileKind.NAVIGATION: re.compile(r"\.[0-2][0-9][gln]$|mn\.rnx$|nav$", re.IGNORECASE),
}

KIND_LABELS = {
    FileKind.ARCHIVE: "ZIP",
    FileKind.RAW_CAPTURE: "u-blox",
    FileKind.OBSERVATION: "RINEX observations",
    FileKind.NAVIGATION: "RINEX navigation",
}


def describe(kind: FileKind) -> str:
    """Human-readable label for a file kind."""
    return KIND_LABELS[kind]


def kind_of(name: str) -> Optional[FileKind]:
    """Return the first kind whose pattern matches ``name``, or None."""
    for kind, pattern in FILE_PATTERNS.items():
        if pattern.search(name):
            return kind
    return None


def classify(directory: Path, kind: FileKind) -> List[Path]:
    """
    List the files of ``directory`` that resolve to ``kind``.

    Order follows the directory listing, sorted by name for stable runs.

    Raises:
        EmptyDirectoryError: if the directory holds no files at all
    """
    entries = sorted(p for p in directory.iterdir() if p.is_file())
    if not entries:
        raise EmptyDirectoryError(f"No files available in {directory}")
    return [p for p in entries if kind_of(p.name) is kind]


def find_observation(directory: Path) -> Path:
    """Return the single observation file of ``directory``."""
    matches = classify(directory, FileKind.OBSERVATION)
    if not matches:
        raise ConversionFailedError(
            f"No {describe(FileKind.OBSERVATION)} file in {directory} after normalization"
        )
    if len(matches) > 1:
        names = ", ".join(p.name for p in matches)
        raise AmbiguousInputError(
            f"Expected one {describe(FileKind.OBSERVATION)} file in {directory}, found {len(matches)}: {names}"
        )
    return matches[0]


def resolve_navigation(base_dir: Path, rover_dir: Path) -> List[Path]:
    """
    Select the navigation files handed to the solver.

    Base navigation data wins; rover navigation is used only when the base
    directory has none.
    """
    base_nav = classify(base_dir, FileKind.NAVIGATION)
    if base_nav:
        return base_nav

    rover_nav = classify(rover_dir, FileKind.NAVIGATION)
    if rover_nav:
        logger.info("No navigation file in base directory, using rover navigation data")
        return rover_nav

    raise MissingNavigationError("No navigation file in base directory or rover directory")
