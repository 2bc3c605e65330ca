"""Remove stale revisions and backup files from the fatima app directory."""

from __future__ import annotations

import os
import shutil
import sys
from typing import Iterator, Sequence

ENV_FATIMA_HOME = "FATIMA_HOME"
FOLDER_APP = "app"

USAGE = """usage: {prog} [-h] 

clear fatima app directories

positional arguments:

optional arguments:
  -h, --help  show this help message and exit
"""

_BACKUP_SUFFIXES = (".backup", ".old")


def _walk(root: str) -> Iterator[str]:
    """Every path below ``root`` (itself included), lexical and depth first."""
    yield root
    if os.path.islink(root) or not os.path.isdir(root):
        return
    try:
        names = sorted(os.listdir(root))
    except OSError:
        return
    for name in names:
        yield from _walk(os.path.join(root, name))


def find_backup_files(app_dir: str) -> list[str]:
    """Paths below ``app_dir`` ending in ``.backup`` or ``.old``."""
    return [path for path in _walk(app_dir) if path.endswith(_BACKUP_SUFFIXES)]


def clear_backup_files(app_dir: str) -> list[str]:
    """Remove backup files (and empty backup directories); return their paths."""
    files = find_backup_files(app_dir)
    for path in files:
        try:
            if os.path.isdir(path) and not os.path.islink(path):
                os.rmdir(path)
            else:
                os.remove(path)
        except OSError:
            pass
        print(f"removed : {path}")
    return files


def stale_revision_dirs(link_path: str) -> list[str]:
    """Siblings of the revision that ``link_path`` resolves to."""
    resolved = os.path.realpath(link_path)
    if not os.path.exists(resolved):
        raise FileNotFoundError(f"fail to read linke ({link_path}) : no such file {resolved}")
    base_dir = os.path.dirname(resolved)
    origin_name = os.path.basename(resolved)
    return [
        os.path.join(base_dir, name)
        for name in sorted(os.listdir(base_dir))
        if name != origin_name
    ]


def _remove_dir(path: str) -> bool:
    try:
        if os.path.isdir(path) and not os.path.islink(path):
            shutil.rmtree(path)
        elif os.path.lexists(path):
            os.remove(path)
    except OSError as exc:
        print(f"[{path}] fail to remove dir : {exc}", end="")
        return False
    print(f"removed dir : {path}")
    return True


def clear_app_links(app_dir: str) -> list[str]:
    """For each linked application, remove every revision but the linked one."""
    try:
        names = sorted(os.listdir(app_dir))
    except OSError as exc:
        print(f"fail to read dir {app_dir} : {exc}")
        return []

    removed = []
    for name in names:
        path = os.path.join(app_dir, name)
        try:
            os.lstat(path)
        except OSError as exc:
            print(f"fail Lstat ({path}) : {exc}", end="")
            continue
        if not os.path.islink(path):
            continue
        try:
            stale = stale_revision_dirs(path)
        except OSError as exc:
            print(str(exc))
            continue
        removed.extend(p for p in stale if _remove_dir(p))
    return removed


def main(argv: Sequence[str] | None = None) -> int:
    args = list(sys.argv[1:] if argv is None else argv)
    if any(arg in ("-h", "-help", "--h", "--help") for arg in args):
        print(USAGE.format(prog="lcappclear"), end="")
        return 0

    app_dir = os.path.join(os.environ.get(ENV_FATIMA_HOME, ""), FOLDER_APP)
    clear_app_links(app_dir)
    clear_backup_files(app_dir)
    return 0