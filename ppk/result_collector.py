"""
Result Collector

Copies a run's outputs from the staging area to a permanent directory,
but only when the solver actually produced a solution file.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import List

from ppk_errors import NoOutputProducedError

logger = logging.getLogger(__name__)

SOLUTION_GLOB = "*.pos"


def collect(workdir_root: Path, destination: Path, timestamp: str) -> List[Path]:
    """
    Copy every file of ``workdir_root`` whose name contains ``timestamp``.

    Raises:
        NoOutputProducedError: if no solution file exists; ``destination``
            is not created in that case
    """
    solutions = sorted(workdir_root.glob(SOLUTION_GLOB))
    if not solutions:
        raise NoOutputProducedError("No position file generated")

    logger.info(f"Position file generated. Copying to directory {destination}")
    destination.mkdir(parents=True, exist_ok=True)

    copied = []
    for path in sorted(workdir_root.iterdir()):
        if path.is_file() and timestamp in path.name:
            target = destination / path.name
            shutil.copy2(path, target)
            copied.append(target)
    return copied
