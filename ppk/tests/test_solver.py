"""
Tests for solver.py and rtklib_tools.py

Tests cover:
1. rnx2rtkp command ordering
2. Non-zero exit / timeout are reported, not raised
3. Tool output appended to the run log
4. Binary lookup through RTKLIB_HOME
"""

import subprocess
import sys
from pathlib import Path
from unittest import mock

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from ppk_errors import ToolNotFoundError
from rtklib_tools import TIMEOUT_RETURNCODE, find_tool, format_number, run_tool
from solver import build_rnx2rtkp_command, run_rnx2rtkp


class TestBuildCommand:
    """Tests for rnx2rtkp argument ordering."""

    def test_rover_base_nav_order(self):
        cmd = build_rnx2rtkp_command(
            Path("/opt/rtklib/bin/rnx2rtkp"),
            rover_obs=Path("/w/rover/rover.obs"),
            base_obs=Path("/w/base/base.obs"),
            nav_files=[Path("/w/base/base.nav"), Path("/w/base/base.22g")],
            conf_file=Path("/w/conf-file.conf"),
            interval=15,
            out_pos=Path("/w/position.pos"),
        )

        assert cmd == [
            "/opt/rtklib/bin/rnx2rtkp",
            "-k", "/w/conf-file.conf",
            "-ti", "15",
            "-o", "/w/position.pos",
            "/w/rover/rover.obs",
            "/w/base/base.obs",
            "/w/base/base.nav",
            "/w/base/base.22g",
        ]

    def test_fractional_interval(self):
        cmd = build_rnx2rtkp_command(
            Path("rnx2rtkp"), Path("r.obs"), Path("b.obs"), [Path("n.nav")],
            Path("c.conf"), 0.2, Path("o.pos"),
        )
        assert cmd[cmd.index("-ti") + 1] == "0.2"

    def test_large_interval_not_rounded(self):
        cmd = build_rnx2rtkp_command(
            Path("rnx2rtkp"), Path("r.obs"), Path("b.obs"), [Path("n.nav")],
            Path("c.conf"), 1234567.0, Path("o.pos"),
        )
        assert cmd[cmd.index("-ti") + 1] == "1234567"


class TestFormatNumber:
    """Tests for numeric tool arguments."""

    @pytest.mark.parametrize("value,expected", [
        (15, "15"),
        (15.0, "15"),
        (0.2, "0.2"),
        (1234567.0, "1234567"),
        (10.12345, "10.12345"),
        (-0.035, "-0.035"),
    ])
    def test_full_precision(self, value, expected):
        assert format_number(value) == expected


class TestRunRnx2rtkp:
    """Tests for running the solver."""

    def test_output_written_and_logged(self, tmp_path, fake_tools):
        out_pos = tmp_path / "position.pos"
        log = tmp_path / "solver.log"

        result = run_rnx2rtkp(
            tmp_path / "rover.obs", tmp_path / "base.obs", [tmp_path / "base.nav"],
            tmp_path / "conf.conf", 15, out_pos, log_path=log,
        )

        assert result.ok
        assert out_pos.exists()
        log_text = log.read_text()
        assert "rnx2rtkp done" in log_text
        assert "# exit status 0" in log_text

    def test_nonzero_exit_is_not_raised(self, tmp_path, fake_tools):
        fake_tools.returncodes["rnx2rtkp"] = 3
        fake_tools.produce_solution = False

        result = run_rnx2rtkp(
            tmp_path / "rover.obs", tmp_path / "base.obs", [tmp_path / "base.nav"],
            tmp_path / "conf.conf", 15, tmp_path / "position.pos",
        )

        assert result.returncode == 3
        assert not result.ok

    def test_log_appended_across_calls(self, tmp_path, fake_tools):
        log = tmp_path / "solver.log"
        run_tool(["echo", "one"], log_path=log)
        run_tool(["echo", "two"], log_path=log)

        assert log.read_text().count("# exit status") == 2


class TestRunTool:
    """Tests for the generic tool runner."""

    def test_timeout_reported(self, tmp_path):
        with mock.patch("subprocess.run", side_effect=subprocess.TimeoutExpired(cmd="rnx2rtkp", timeout=5)):
            result = run_tool(["rnx2rtkp"], log_path=tmp_path / "log", timeout_sec=5)

        assert result.returncode == TIMEOUT_RETURNCODE
        assert "Timed out" in result.stderr
        assert "Timed out" in (tmp_path / "log").read_text()

    def test_arguments_stringified(self):
        with mock.patch("subprocess.run") as run:
            run.return_value = subprocess.CompletedProcess([], 0, stdout="", stderr="")
            run_tool([Path("/bin/tool"), "-ti", 15], cwd=Path("/tmp"))

        args, kwargs = run.call_args
        assert args[0] == ["/bin/tool", "-ti", "15"]
        assert kwargs["cwd"] == "/tmp"
        assert kwargs["capture_output"] is True


class TestFindTool:
    """Tests for binary lookup."""

    def test_rtklib_home_bin(self, rtklib_home):
        assert find_tool("rnx2rtkp") == rtklib_home / "bin" / "rnx2rtkp"

    def test_rtklib_home_app_layout(self, tmp_path, monkeypatch):
        app_bin = tmp_path / "RTKLIB" / "app" / "convbin" / "gcc" / "convbin"
        app_bin.parent.mkdir(parents=True)
        app_bin.write_text("#!/bin/sh\n")
        app_bin.chmod(0o755)
        monkeypatch.setenv("RTKLIB_HOME", str(tmp_path / "RTKLIB"))

        assert find_tool("convbin") == app_bin

    def test_not_found(self, tmp_path, monkeypatch):
        monkeypatch.delenv("RTKLIB_HOME", raising=False)
        monkeypatch.setattr("shutil.which", lambda name: None)

        with pytest.raises(ToolNotFoundError):
            find_tool("no-such-gnss-tool")
