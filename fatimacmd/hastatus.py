"""Show or change the HA (active/standby) and PS (primary/secondary) package status."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from typing import Sequence

from .values import is_file_exist

ENV_FATIMA_HOME = "FATIMA_HOME"

_HA_USAGE = """usage: {prog} [-h] [set] [status]

show/control package status

positional arguments:
  set         set package status
  status      active/standby

optional arguments:
  -h, --help  show this help message and exit
"""

_PS_USAGE = """usage: {prog} [-h] [set] [status]

show/control package primary/secondary status

positional arguments:
  set         set package PS status
  status      primary/secondary

optional arguments:
  -h, --help  show this help message and exit
"""

_HELP_FLAGS = ("-h", "-help", "--h", "--help")


@dataclass(frozen=True)
class StatusFile:
    """A one-digit status file below the fatima home directory."""

    kind: str
    relative_path: str
    labels: tuple[str, str]

    def path(self, fatima_home: str) -> str:
        return os.path.join(fatima_home or os.sep, *self.relative_path.split("/"))

    def read(self, fatima_home: str) -> str:
        """Label of the stored status, or ``UNKNOWN`` for unexpected content."""
        path = self.path(fatima_home)
        if not is_file_exist(path):
            raise FileNotFoundError(f"{self.kind} file not found")
        with open(path, encoding="utf-8", errors="replace") as fh:
            content = fh.read().strip("\r\n\t ")
        return {"1": self.labels[0], "2": self.labels[1]}.get(content, "UNKNOWN")

    def write(self, fatima_home: str, value: int) -> None:
        """Store ``value`` in an existing status file."""
        path = self.path(fatima_home)
        if not is_file_exist(path):
            raise FileNotFoundError(f"{self.kind} file not found")
        with open(path, "w", encoding="utf-8") as fh:
            fh.write(str(value))

    def _value_of(self, label: str) -> int | None:
        label = label.upper()
        if label in self.labels:
            return self.labels.index(label) + 1
        return None


HA_FILE = StatusFile("ha", "package/cfm/ha/system.ha", ("ACTIVE", "STANDBY"))
PS_FILE = StatusFile("ps", "package/cfm/ha/system.ps", ("PRIMARY", "SECONDARY"))


def _print_status(status_file: StatusFile, fatima_home: str) -> None:
    try:
        print(status_file.read(fatima_home))
    except FileNotFoundError as exc:
        print(str(exc))
    except OSError as exc:
        print(f"fail to read {status_file.kind} file : {exc}")


def _run(status_file: StatusFile, usage: str, argv: Sequence[str] | None) -> int:
    args = list(sys.argv[1:] if argv is None else argv)
    fatima_home = os.environ.get(ENV_FATIMA_HOME, "")

    if not args:
        _print_status(status_file, fatima_home)
        return 0

    if args[0] in _HELP_FLAGS or len(args) < 2 or args[0] != "set":
        print(usage, end="")
        return 0

    value = status_file._value_of(args[1])
    if value is None:
        print(usage, end="")
        return 0

    try:
        status_file.write(fatima_home, value)
    except FileNotFoundError as exc:
        print(str(exc))
    except OSError as exc:
        print(f"fail to write {status_file.kind} file : {exc}", end="")
        return 1

    print(f"set to {status_file.labels[value - 1]}")
    return 0


def main_ha(argv: Sequence[str] | None = None) -> int:
    return _run(HA_FILE, _HA_USAGE.format(prog="lcha"), argv)


def main_ps(argv: Sequence[str] | None = None) -> int:
    return _run(PS_FILE, _PS_USAGE.format(prog="lcps"), argv)