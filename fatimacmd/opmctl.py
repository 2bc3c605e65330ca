"""Start or stop the opm programs (jupiter, juno, saturn) of a package."""

from __future__ import annotations

import argparse
import os
import re
import signal
import subprocess
import sys
import time
from typing import Sequence, TextIO

from .values import is_file_exist

ENV_FATIMA_HOME = "FATIMA_HOME"
RO_PROGRAMS = ("jupiter", "juno", "saturn")

_INT_PATTERN = re.compile(r"[+-]?\d+")


def program_path(fatima_home: str, proc: str) -> str | None:
    """Start script of ``proc`` (``proc`` or ``proc.sh``), or None when absent."""
    base = f"{fatima_home}/app/{proc}/{proc}"
    for candidate in (base, base + ".sh"):
        if is_file_exist(candidate):
            return candidate
    return None


def read_pid(fatima_home: str, proc: str) -> int:
    """Pid recorded in the pid file of ``proc``, or 0."""
    pid_file = f"{fatima_home}/app/{proc}/proc/{proc}.pid"
    if not is_file_exist(pid_file):
        return 0
    try:
        with open(pid_file, encoding="utf-8", errors="replace") as fh:
            content = fh.read()
    except OSError as exc:
        print(f"fail to read pid file : {exc}")
        return 0

    trimmed = content.strip("\r\n\t ")
    if not _INT_PATTERN.fullmatch(trimmed):
        print(f"invalid pid content : [{content}]")
        return 0
    return int(trimmed)


def start_program(fatima_home: str, proc: str) -> int | None:
    """Launch ``proc`` from its application directory; return its pid."""
    print(f"check process {proc}")
    path = program_path(fatima_home, proc)
    if path is None:
        return None

    working_dir = f"{fatima_home}/app/{proc}"
    child = subprocess.Popen(
        ["bash", "-c", os.path.basename(path)],
        cwd=working_dir,
        stderr=subprocess.PIPE,
    )
    with child.stderr:
        output = child.stderr.read()
    print(output.decode("utf-8", errors="replace"))
    print(f"process {proc} STARTED. pid={child.pid}")
    time.sleep(1)
    return child.pid


def stop_program(fatima_home: str, proc: str) -> int | None:
    """Send SIGTERM to the recorded pid of ``proc``; return that pid."""
    print(f"check process {proc}")
    pid = read_pid(fatima_home, proc)
    if pid == 0:
        return None
    print(f"try to kill {proc}. pid {pid}")
    os.kill(pid, signal.SIGTERM)
    return pid


def confirm(prompt: str, stream: TextIO) -> bool:
    """Ask ``prompt`` until answered y or n; end of input counts as no."""
    while True:
        print(prompt, end="", flush=True)
        text = stream.readline()
        if not text:
            return False
        answer = text.strip("\r\n\t ").lower()
        if answer == "n":
            return False
        if answer == "y":
            return True


def _parse(prog: str, args: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog=prog)
    parser.add_argument("-y", action="store_true", help="yes all")
    parser.add_argument("args", nargs="*")
    return parser.parse_args(args)


def _prepare(prog: str, banner: str, question: str, argv: Sequence[str] | None) -> str | None:
    args = list(sys.argv[1:] if argv is None else argv)
    print(banner)
    fatima_home = os.environ.get(ENV_FATIMA_HOME, "")
    if not fatima_home:
        print(f"env {ENV_FATIMA_HOME} missing")
        return None
    options = _parse(prog, args)
    if not options.y and not confirm(question, sys.stdin):
        return None
    return fatima_home


def main_start(argv: Sequence[str] | None = None) -> int:
    fatima_home = _prepare(
        "startro", "STARTING OPM PROGRAMS...", "start all programs? (y/n) ", argv
    )
    if fatima_home is None:
        return 0
    for proc in RO_PROGRAMS:
        try:
            start_program(fatima_home, proc)
        except OSError as exc:
            print(f"fail to execute {proc} : {exc}")
    return 0


def main_stop(argv: Sequence[str] | None = None) -> int:
    fatima_home = _prepare(
        "stopro", "STOPPING OPM PROGRAMS...", "stop all programs? (y/n) ", argv
    )
    if fatima_home is None:
        return 0
    for proc in RO_PROGRAMS:
        try:
            stop_program(fatima_home, proc)
        except OSError:
            pass
    return 0