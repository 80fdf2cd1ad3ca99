"""
Locating and running the external GNSS command-line tools.

Binary search order:
1. RTKLIB_HOME environment variable
2. System PATH
3. Common installation locations
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Sequence

from ppk_errors import ToolNotFoundError

logger = logging.getLogger(__name__)

# Return code recorded when a tool is killed by the timeout
TIMEOUT_RETURNCODE = -1


def format_number(value: float) -> str:
    """Render a number for a tool argument or option value without losing digits."""
    value = float(value)
    if value.is_integer():
        return str(int(value))
    return repr(value)


@dataclass
class ToolResult:
    """Outcome of one external tool invocation."""

    command: List[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""
    elapsed_sec: float = 0.0

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def find_tool(bin_name: str) -> Path:
    """
    Find an RTKLIB (or helper) binary.

    Raises:
        ToolNotFoundError: if the binary cannot be found anywhere
    """
    rtklib_home = os.getenv("RTKLIB_HOME")
    if rtklib_home:
        candidates = [
            Path(rtklib_home) / "app" / bin_name / "gcc" / bin_name,
            Path(rtklib_home) / "bin" / bin_name,
            Path(rtklib_home) / bin_name,
        ]
        for candidate in candidates:
            if candidate.exists() and os.access(candidate, os.X_OK):
                return candidate

    result = shutil.which(bin_name)
    if result:
        return Path(result)

    common_paths = [
        Path.home() / "tools" / "RTKLIB" / "app" / bin_name / "gcc" / bin_name,
        Path("/usr/local/bin") / bin_name,
        Path("/usr/bin") / bin_name,
    ]
    for p in common_paths:
        if p.exists() and os.access(p, os.X_OK):
            return p

    raise ToolNotFoundError(
        f"Unable to find '{bin_name}'. Set RTKLIB_HOME or ensure '{bin_name}' is on PATH."
    )


def append_tool_log(log_path: Path, result: ToolResult) -> None:
    """Append a tool's command line and captured output to ``log_path``."""
    with open(log_path, "a", encoding="utf-8") as f:
        f.write(f"# {datetime.now().isoformat()} $ {' '.join(result.command)}\n")
        if result.stdout:
            f.write(result.stdout)
            if not result.stdout.endswith("\n"):
                f.write("\n")
        if result.stderr:
            f.write(result.stderr)
            if not result.stderr.endswith("\n"):
                f.write("\n")
        f.write(f"# exit status {result.returncode}\n")


def run_tool(
    cmd: Sequence[str],
    log_path: Optional[Path] = None,
    timeout_sec: Optional[int] = None,
    cwd: Optional[Path] = None,
) -> ToolResult:
    """
    Run an external tool, capturing stdout and stderr.

    A timeout does not raise; it is reported with TIMEOUT_RETURNCODE so the
    caller can decide from the produced files.
    """
    command = [str(c) for c in cmd]
    logger.info(f"Running: {' '.join(command)}")

    start = time.time()
    try:
        proc = subprocess.run(
            command,
            capture_output=True,
            text=True,
            timeout=timeout_sec,
            cwd=str(cwd) if cwd else None,
        )
        result = ToolResult(command, proc.returncode, proc.stdout or "", proc.stderr or "")
    except subprocess.TimeoutExpired:
        result = ToolResult(command, TIMEOUT_RETURNCODE, stderr=f"Timed out after {timeout_sec}s")
    result.elapsed_sec = time.time() - start

    if log_path:
        append_tool_log(log_path, result)
    if not result.ok:
        logger.warning(f"{Path(command[0]).name} exited with code {result.returncode}")
        if result.stderr:
            logger.warning(f"STDERR: {result.stderr[:500]}")

    return result
