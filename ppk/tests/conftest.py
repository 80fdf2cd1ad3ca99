"""
Shared fixtures: RINEX-looking sample files and a fake RTKLIB install.

External tools are never executed. ``fake_tools`` replaces subprocess.run
and emulates the files each tool would write.
"""

import os
import subprocess
import sys
from pathlib import Path

import pytest

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))


OBS_CONTENT = """\
     3.03           OBSERVATION DATA    M (MIXED)           RINEX VERSION / TYPE
                                                            END OF HEADER
"""

NAV_CONTENT = """\
     3.03           N: GNSS NAV DATA    M (MIXED)           RINEX VERSION / TYPE
                                                            END OF HEADER
"""

POS_CONTENT = """\
% program   : RTKLIB ver.demo5 b34g
%  GPST                  latitude(deg) longitude(deg)  height(m)   Q  ns   sdn(m)   sde(m)   sdu(m)  sdne(m)  sdeu(m)  sdun(m) age(s)  ratio
2022/02/25 13:26:15.000   18.461946338  -69.911489517    41.6528   1  14   0.0051   0.0043   0.0112  -0.0021   0.0017  -0.0031   1.00   12.4
"""

TOOL_NAMES = ("rnx2rtkp", "convbin", "pos2kml", "teqc", "7z")


class FakeTools:
    """Stand-in for subprocess.run that emulates RTKLIB tool outputs."""

    def __init__(self):
        self.calls = []
        self.returncodes = {}
        self.produce_solution = True
        self.handlers = {
            "convbin": self._convbin,
            "rnx2rtkp": self._rnx2rtkp,
            "teqc": self._teqc,
        }

    def __call__(self, cmd, **kwargs):
        name = Path(cmd[0]).name
        cwd = kwargs.get("cwd")
        self.calls.append((name, list(cmd), cwd))
        stdout = f"{name} done\n"
        handler = self.handlers.get(name)
        if handler:
            stdout = handler(cmd, cwd) or stdout
        return subprocess.CompletedProcess(cmd, self.returncodes.get(name, 0), stdout=stdout, stderr="")

    def names(self):
        return [call[0] for call in self.calls]

    def commands(self, name):
        return [call[1] for call in self.calls if call[0] == name]

    def _convbin(self, cmd, cwd):
        if "-d" in cmd:
            out_dir = Path(cmd[cmd.index("-d") + 1])
            raw = Path(cmd[-1])
            (out_dir / f"{raw.stem}.obs").write_text(OBS_CONTENT)
            (out_dir / f"{raw.stem}.nav").write_text(NAV_CONTENT)
        else:
            (Path(cwd) / cmd[cmd.index("-o") + 1]).write_text(OBS_CONTENT)

    def _rnx2rtkp(self, cmd, cwd):
        if self.produce_solution:
            Path(cmd[cmd.index("-o") + 1]).write_text(POS_CONTENT)

    def _teqc(self, cmd, cwd):
        return "".join(Path(p).read_text() for p in cmd[2:])


@pytest.fixture
def rtklib_home(tmp_path, monkeypatch):
    """RTKLIB_HOME with executable stubs for every tool."""
    home = tmp_path / "rtklib"
    bin_dir = home / "bin"
    bin_dir.mkdir(parents=True)
    for name in TOOL_NAMES:
        stub = bin_dir / name
        stub.write_text("#!/bin/sh\nexit 0\n")
        stub.chmod(0o755)
    monkeypatch.setenv("RTKLIB_HOME", str(home))
    return home


@pytest.fixture
def fake_tools(rtklib_home, monkeypatch):
    tools = FakeTools()
    monkeypatch.setattr(subprocess, "run", tools)
    return tools


@pytest.fixture
def conf_template(tmp_path):
    """Options template with the keys the materializer rewrites."""
    template = tmp_path / "ppk.conf"
    template.write_text(
        "pos1-posmode       =kinematic  # (0:single,1:dgps,2:kinematic)\n"
        "ant1-anttype       =\n"
        "ant1-antdelu       =0          # (m)\n"
        "out-solformat      =llh        # (0:llh,1:xyz,2:enu,3:nmea)\n"
        "out-solstatic      =all        # (0:all,1:single)\n"
        "ant2-anttype       =\n"
        "file-rcvantfile    =\n"
    )
    return template
