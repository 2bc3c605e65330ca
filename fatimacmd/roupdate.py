"""Command that updates the fatima tools and opm processes from a package archive."""

from __future__ import annotations

import subprocess
import sys
from typing import Sequence

from .updater import UpdateContext

USAGE = """usage: {prog} [option] command

fatima package update tool

version : 2023-09-19.v1

command :
  all    update tool binaries and opm processes
  bin    update only tool binaries
  opm    update only opm processes

optional arguments:
  -u string
        fatima packaging file url
"""

_HELP_FLAGS = ("-h", "-help", "--h", "--help")
_STEP_ERRORS = (OSError, ValueError, RuntimeError, subprocess.SubprocessError)


def _parse(args: list[str]) -> tuple[str, list[str]]:
    """Split flags from positional arguments.

    Raises KeyError when help is asked for and LookupError on a bad flag.
    """
    artifact_url = ""
    rest = list(args)
    while rest:
        arg = rest[0]
        if arg == "--":
            rest.pop(0)
            break
        if not arg.startswith("-") or arg == "-":
            break
        rest.pop(0)
        if arg in _HELP_FLAGS:
            raise KeyError("help")
        name, eq, value = arg.lstrip("-").partition("=")
        if name != "u":
            raise LookupError(f"flag provided but not defined: {arg}")
        if not eq:
            if not rest:
                raise LookupError(f"flag needs an argument: {arg}")
            value = rest.pop(0)
        artifact_url = value
    return artifact_url, rest


def main(argv: Sequence[str] | None = None) -> int:
    args = list(sys.argv[1:] if argv is None else argv)
    usage = USAGE.format(prog="roupdate")

    try:
        artifact_url, positional = _parse(args)
    except KeyError:
        print(usage, end="")
        return 0
    except LookupError as exc:
        print(exc.args[0])
        print(usage, end="")
        return 2

    if not positional:
        print(usage, end="")
        return 0

    try:
        ctx = UpdateContext.create(positional[0], artifact_url)
    except (OSError, ValueError) as exc:
        print(f"packaging error : {exc}", end="", file=sys.stderr)
        return 0

    with ctx:
        for executor in ctx.executors:
            print(f"\n>>> {executor.name}...")
            try:
                executor.execute(ctx)
            except _STEP_ERRORS as exc:
                print(f"[{executor.name}] {exc}")
                return 0
    return 0