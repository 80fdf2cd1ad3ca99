"""
Staging area for a single PPK run.

All intermediate files live in a uniquely named temporary directory with
``base/`` and ``rover/`` subdirectories. The directory is removed when the
``staging_directory`` context exits, whatever the exit path.
"""

from __future__ import annotations

import logging
import shutil
import tempfile
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional

from input_classifier import classify, FileKind

logger = logging.getLogger(__name__)

BASE_DIRNAME = "base"
ROVER_DIRNAME = "rover"


@dataclass(frozen=True)
class WorkingDirectory:
    """Absolute paths of one run's staging area."""

    root: Path
    timestamp: str

    @property
    def base(self) -> Path:
        return self.root / BASE_DIRNAME

    @property
    def rover(self) -> Path:
        return self.root / ROVER_DIRNAME

    @property
    def conf_file(self) -> Path:
        return self.root / f"conf-file-{self.timestamp}.conf"

    @property
    def antenna_file(self) -> Path:
        return self.root / f"ant-file-{self.timestamp}.atx"

    @property
    def solution_file(self) -> Path:
        return self.root / f"position-{self.timestamp}.pos"

    @property
    def solver_log(self) -> Path:
        return self.root / f"solver-{self.timestamp}.log"

    @property
    def manifest_file(self) -> Path:
        return self.root / f"manifest-{self.timestamp}.json"


@contextmanager
def staging_directory(timestamp: str, parent: Optional[Path] = None) -> Iterator[WorkingDirectory]:
    """Create the staging tree and remove it on exit."""
    root = Path(tempfile.mkdtemp(prefix=f"ppk-{timestamp}-", dir=parent)).resolve()
    workdir = WorkingDirectory(root=root, timestamp=timestamp)
    try:
        workdir.base.mkdir()
        workdir.rover.mkdir()
        logger.debug(f"Staging directory: {root}")
        yield workdir
    finally:
        shutil.rmtree(root, ignore_errors=True)
        logger.debug(f"Removed staging directory: {root}")


def stage_inputs(
    workdir: WorkingDirectory,
    base_file: Path,
    rover_file: Path,
    nav_file: Optional[Path] = None,
) -> None:
    """
    Copy the user's inputs into the staging tree.

    An explicit navigation file goes next to the base data, where it takes
    precedence during navigation resolution.
    """
    shutil.copy2(base_file, workdir.base)
    if nav_file:
        shutil.copy2(nav_file, workdir.base)
    shutil.copy2(rover_file, workdir.rover)

    # Raises EmptyDirectoryError if a copy left a directory empty
    for directory in (workdir.base, workdir.rover):
        classify(directory, FileKind.OBSERVATION)
