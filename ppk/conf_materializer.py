"""
Configuration Materializer

Copies an RTKLIB options template into the staging area and rewrites the
value of a few option lines in the copy:

  ant1-anttype       =<antenna type>
  file-rcvantfile    =<antenna calibration file>
  ant1-antdelu       =<antenna height>          # (m)
  out-solformat      =<llh|enu|xyz|nmea>        # (0:llh,1:xyz,2:enu,3:nmea)
  out-solstatic      =<all|single>              # (0:all,1:single)

Only the first line of each key is touched; key padding, the spacing before
a trailing comment and the comment itself are kept. The template itself is
never modified.
"""

from __future__ import annotations

import logging
import re
import shutil
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from ppk_errors import InputFileNotFoundError, InvalidOptionError
from rtklib_tools import format_number

logger = logging.getLogger(__name__)

KEY_ANTENNA_TYPE = "ant1-anttype"
KEY_ANTENNA_FILE = "file-rcvantfile"
KEY_ANTENNA_HEIGHT = "ant1-antdelu"
KEY_SOLUTION_FORMAT = "out-solformat"
KEY_SOLUTION_STATIC = "out-solstatic"

SOLUTION_FORMATS = ("llh", "enu", "xyz", "nmea")
SOLUTION_MODES = ("all", "single")

DEFAULT_SOLUTION_FORMAT = "llh"
DEFAULT_SOLUTION_MODE = "single"

PROFILES_FILENAME = "ppk_profiles.yaml"
DEFAULT_PROFILES_FILE = Path(__file__).parent / PROFILES_FILENAME


@dataclass
class ConfOverrides:
    """Values written into the materialized configuration."""

    antenna_type: Optional[str] = None
    antenna_file: Optional[Path] = None
    antenna_height: Optional[float] = None
    solution_format: str = DEFAULT_SOLUTION_FORMAT
    solution_mode: str = DEFAULT_SOLUTION_MODE
    extra: Dict[str, str] = field(default_factory=dict)

    def validate(self) -> None:
        if self.solution_format not in SOLUTION_FORMATS:
            raise InvalidOptionError(
                f"Output solution format '{self.solution_format}' is not one of {', '.join(SOLUTION_FORMATS)}"
            )
        if self.solution_mode not in SOLUTION_MODES:
            raise InvalidOptionError(
                f"Output solution static '{self.solution_mode}' is not one of {', '.join(SOLUTION_MODES)}"
            )

    def as_settings(self) -> Dict[str, str]:
        """Ordered key -> value map, profile extras first so explicit flags win."""
        settings = {key: str(value) for key, value in self.extra.items()}
        if self.antenna_type:
            settings[KEY_ANTENNA_TYPE] = self.antenna_type
        if self.antenna_file:
            settings[KEY_ANTENNA_FILE] = str(self.antenna_file)
        if self.antenna_height is not None:
            settings[KEY_ANTENNA_HEIGHT] = format_number(self.antenna_height)
        settings[KEY_SOLUTION_FORMAT] = self.solution_format
        settings[KEY_SOLUTION_STATIC] = self.solution_mode
        return settings


def _key_line(key: str) -> re.Pattern:
    # prefix, value, spacing before the comment, comment
    return re.compile(rf"(\s*{re.escape(key)}\s*=)([^#]*?)(\s*)(#.*)?")


def rewrite_option(lines: List[str], key: str, value: str) -> bool:
    """
    Replace the value of the first ``key`` line in place.

    Returns:
        False if the key does not occur in ``lines``
    """
    pattern = _key_line(key)
    for i, line in enumerate(lines):
        body = line.rstrip("\r\n")
        match = pattern.fullmatch(body)
        if not match:
            continue
        prefix, _, spacing, comment = match.groups()
        new_line = f"{prefix}{value}"
        if comment:
            new_line += f"{spacing or ' '}{comment}"
        else:
            new_line += spacing
        lines[i] = new_line + line[len(body):]
        return True
    return False


def materialize(template: Path, destination: Path, overrides: ConfOverrides) -> List[str]:
    """
    Copy ``template`` to ``destination`` and apply ``overrides`` to the copy.

    Returns:
        Keys that were not found in the template (their values were not written)
    """
    if not template.is_file():
        raise InputFileNotFoundError(f"Configuration file {template} not found")
    overrides.validate()

    shutil.copy2(template, destination)
    with open(destination, "r", encoding="utf-8", newline="") as f:
        lines = f.readlines()

    missing = []
    for key, value in overrides.as_settings().items():
        if rewrite_option(lines, key, value):
            logger.debug(f"Set {key}={value}")
        else:
            missing.append(key)
            logger.warning(f"Option '{key}' not present in {template.name}; value '{value}' not applied")

    with open(destination, "w", encoding="utf-8", newline="") as f:
        f.writelines(lines)

    logger.info(f"Materialized configuration: {destination.name}")
    return missing


# ----------------------------
# Configuration profiles
# ----------------------------


def default_profiles_file() -> Path:
    """
    Locate the bundled profiles file.

    Next to this module in a source checkout or editable install, otherwise
    under ``<prefix>/share/ppk`` where a regular install puts it.
    """
    installed = Path(sys.prefix) / "share" / "ppk" / PROFILES_FILENAME
    if not DEFAULT_PROFILES_FILE.exists() and installed.exists():
        return installed
    return DEFAULT_PROFILES_FILE


def load_conf_profiles(profiles_path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load named option profiles from YAML.

    Args:
        profiles_path: Path to a profiles file. If None, uses the bundled ppk_profiles.yaml.

    Returns:
        Dictionary of profile name -> option mapping
    """
    if profiles_path is None:
        profiles_path = default_profiles_file()

    if not profiles_path.exists():
        raise InputFileNotFoundError(f"Profiles file {profiles_path} not found; pass --profiles-file")

    with open(profiles_path, "r", encoding="utf-8") as f:
        try:
            profiles = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise InvalidOptionError(f"Cannot parse profiles file {profiles_path}: {e}") from e

    if not isinstance(profiles, dict):
        raise InvalidOptionError(f"Profiles file {profiles_path} must map profile names to options")
    return profiles


def get_profile_settings(profiles: Dict[str, Any], name: str) -> Dict[str, str]:
    """RTKLIB options of profile ``name``, without its description."""
    if name not in profiles:
        available = ", ".join(sorted(profiles)) or "none"
        raise InvalidOptionError(f"Unknown profile '{name}' (available: {available})")

    settings = {}
    for key, value in (profiles[name] or {}).items():
        if key == "description":
            continue
        # YAML reads bare on/off as booleans and empty values as null
        if isinstance(value, bool):
            value = "on" if value else "off"
        elif value is None:
            value = ""
        settings[key] = str(value)
    return settings
