"""
Solver Invoker (RTKLIB rnx2rtkp wrapper)

Command:
  rnx2rtkp -k <conf> -ti <interval> -o <out.pos> <rover.obs> <base.obs> <nav...>

RTKLIB argument ordering:
  rnx2rtkp [options] rover [base] [nav...]

A non-zero exit status is recorded, not raised: the presence of the
solution file decides whether the run succeeded.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Sequence

from rtklib_tools import ToolResult, find_tool, format_number, run_tool

logger = logging.getLogger(__name__)


def build_rnx2rtkp_command(
    rnx2rtkp_bin: Path,
    rover_obs: Path,
    base_obs: Path,
    nav_files: Sequence[Path],
    conf_file: Path,
    interval: float,
    out_pos: Path,
) -> list:
    cmd = [
        str(rnx2rtkp_bin),
        "-k",
        str(conf_file),
        "-ti",
        format_number(interval),
        "-o",
        str(out_pos),
        str(rover_obs),
        str(base_obs),
    ]
    cmd.extend(str(nav) for nav in nav_files)
    return cmd


def run_rnx2rtkp(
    rover_obs: Path,
    base_obs: Path,
    nav_files: Sequence[Path],
    conf_file: Path,
    interval: float,
    out_pos: Path,
    log_path: Optional[Path] = None,
    timeout_sec: Optional[int] = None,
    rnx2rtkp_bin: Optional[Path] = None,
) -> ToolResult:
    """Run rnx2rtkp once, appending its output to ``log_path``."""
    if rnx2rtkp_bin is None:
        rnx2rtkp_bin = find_tool("rnx2rtkp")

    cmd = build_rnx2rtkp_command(
        rnx2rtkp_bin, rover_obs, base_obs, nav_files, conf_file, interval, out_pos
    )
    result = run_tool(cmd, log_path=log_path, timeout_sec=timeout_sec)

    if result.ok:
        logger.info(f"rnx2rtkp finished in {result.elapsed_sec:.1f}s")
    else:
        logger.warning("rnx2rtkp reported errors; checking for a solution file anyway")
    return result
