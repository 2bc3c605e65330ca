"""Display or change the revision of a process, or duplicate a process."""

from __future__ import annotations

import json
import os
import re
import shutil
import subprocess
import sys
from dataclasses import dataclass, field, replace
from datetime import datetime
from glob import glob
from typing import Any, Mapping, Sequence

ENV_FATIMA_HOME = "FATIMA_HOME"
FOLDER_APP = "app"
FOLDER_REVISION = "revision"
FOLDER_APP_PROC = "proc"

RO_PROGRAMS = ("jupiter", "juno", "saturn")

DEPLOYMENT_JSON_FILE = "deployment.json"
_DTIME_FORMAT = "%Y-%m-%d %H:%M:%S"
_TAG_TIME_FORMAT = "%Y.%m.%d-%H.%M"
_TRIM_LENGTH = 32
_INT_PATTERN = re.compile(r"[+-]?\d+")

SUFFIX_LIST = (
    "properties", "xml", "json", "yaml", "sh", "yml", "dat", "p8", "rb", "rbw", "lua",
)

USAGE = """usage: {prog} process command [parameter]

display/control process version, duplicate process

positional arguments:
  process\t\tprocess name
  command\t\tversion/dup

example :

lcproc mypgm version\t\t: display mypgm revision versions
lcproc mypgm version R017\t: change mypgm revision to R017
lcproc mypgm dup mypgm2\t\t: duplicate mypgm to mypgm2
"""

_RO_DENIED = "not permitted ro programs (e.g juno,jupiter,saturn)"


def _parse_int(text: str) -> int:
    if not _INT_PATTERN.fullmatch(text):
        raise ValueError(f"invalid integer : {text!r}")
    return int(text)


def _str_field(data: Mapping[str, Any], key: str) -> str:
    val = data.get(key)
    if val is None:
        return ""
    if not isinstance(val, str):
        raise ValueError(f"field {key} must be a string")
    return val


def _obj_field(data: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    val = data.get(key)
    if val is None:
        return {}
    if not isinstance(val, Mapping):
        raise ValueError(f"field {key} must be an object")
    return val


@dataclass(frozen=True)
class DeploymentBuildGit:
    """Git information recorded when a revision was built."""

    branch: str = ""
    commit: str = ""
    message: str = ""

    def has_message(self) -> bool:
        return bool(self.message)

    def __str__(self) -> str:
        return f"Branch=[{self.branch}], Commit=[{self.commit}]"


@dataclass(frozen=True)
class DeploymentBuild:
    """Build information of a revision."""

    git: DeploymentBuildGit = field(default_factory=DeploymentBuildGit)
    build_time: str = ""
    build_user: str = ""

    def has_git(self) -> bool:
        return bool(self.git.branch)


@dataclass(frozen=True)
class Deployment:
    """Content of a revision's deployment.json."""

    process: str = ""
    process_type: str = ""
    build: DeploymentBuild = field(default_factory=DeploymentBuild)

    def has_build_info(self) -> bool:
        return bool(self.build.build_time)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Deployment":
        if not isinstance(data, Mapping):
            raise ValueError("deployment must be an object")
        build = _obj_field(data, "build")
        git = _obj_field(build, "git")
        return cls(
            process=_str_field(data, "process"),
            process_type=_str_field(data, "process_type"),
            build=DeploymentBuild(
                git=DeploymentBuildGit(
                    branch=_str_field(git, "branch"),
                    commit=_str_field(git, "commit"),
                    message=_str_field(git, "message"),
                ),
                build_time=_str_field(build, "time"),
                build_user=_str_field(build, "user"),
            ),
        )


@dataclass(frozen=True)
class Revision:
    """One revision directory of a process."""

    dir: str = ""
    revision: str = ""
    number: int = 0
    use: bool = False
    create_dtime: str = ""
    deployment: DeploymentBuild = field(default_factory=DeploymentBuild)

    def relative_path(self) -> str:
        idx = self.dir.rfind(FOLDER_REVISION)
        if idx < 0:
            raise ValueError(f"not a revision path : {self.dir}")
        return self.dir[idx:]

    def build_summary(self) -> str:
        parts = [self.create_dtime, f"{self.deployment.build_user:>10}"]
        if self.deployment.has_git():
            git = self.deployment.git
            parts.append(f"{git.branch:>10}")
            parts.append(git.commit)
            if git.has_message():
                parts.append(get_trimmed_message(git.message))
        return " | ".join(parts)


def _trim_string(msg: str) -> str:
    msg = msg.lstrip(" ")
    positions = [p for p in (msg.find("\r"), msg.find("\n")) if p >= 0]
    if positions and min(positions) > 0:
        return msg[: min(positions)]
    return msg


def get_trimmed_message(msg: str) -> str:
    """First line of ``msg``, cut to 32 characters with an ellipsis."""
    msg = _trim_string(msg)
    if len(msg) <= _TRIM_LENGTH:
        return msg
    return msg[:_TRIM_LENGTH] + "..."


def is_ro_program(proc: str) -> bool:
    return proc.lower() in RO_PROGRAMS


def _app_dir(fatima_home: str) -> str:
    return os.path.join(fatima_home, FOLDER_APP)


def revision_path(fatima_home: str, proc: str) -> str:
    return os.path.join(fatima_home, FOLDER_APP, FOLDER_REVISION, proc)


def is_exist_revision(rev_folder: str) -> bool:
    try:
        os.stat(rev_folder)
    except OSError:
        return False
    return True


def read_revision(revision: Revision) -> Revision:
    """Fill in the creation time and build information of ``revision``."""
    try:
        st = os.stat(revision.dir)
    except OSError as exc:
        print(f"fail to open {revision.dir} : {exc}", end="")
        return revision
    if not os.path.isdir(revision.dir):
        print(f"revision path is not directory {revision.dir}", end="")
        return revision

    revision = replace(
        revision, create_dtime=datetime.fromtimestamp(st.st_mtime).strftime(_DTIME_FORMAT)
    )

    deployment_file = os.path.join(revision.dir, DEPLOYMENT_JSON_FILE)
    try:
        with open(deployment_file, encoding="utf-8") as fh:
            raw = fh.read()
    except OSError as exc:
        print(f"readfile {deployment_file} err : {exc}")
        return revision

    try:
        deployment = Deployment.from_dict(json.loads(raw))
    except ValueError as exc:
        print(f"json unmarshal err : {exc}")
        return revision

    return replace(revision, deployment=deployment.build)


def get_revisions(rev_folder: str) -> list[Revision]:
    """Revisions found in ``rev_folder``, newest number first."""
    revisions = []
    for path in sorted(glob(os.path.join(rev_folder, "*_R[0-9]*"))):
        idx = path.rfind("R")
        try:
            number = _parse_int(path[idx + 1:])
        except ValueError:
            continue
        revisions.append(read_revision(Revision(dir=path, revision=path[idx:], number=number)))
    return sorted(revisions, key=lambda r: r.number, reverse=True)


def get_current_revision(fatima_home: str, proc: str) -> int:
    """Revision number the application link of ``proc`` points to."""
    app_proc = os.path.join(_app_dir(fatima_home), proc)
    if not os.path.islink(app_proc):
        os.lstat(app_proc)
        raise ValueError("not symbolic link path")

    link_path = os.readlink(app_proc)
    idx = link_path.rfind("R")
    if idx < 1:
        raise ValueError("invalid link name")
    try:
        return _parse_int(link_path[idx + 1:])
    except ValueError:
        raise ValueError("invalid revision number format") from None


def find_version(revisions: Sequence[Revision], new_version: str) -> Revision | None:
    return next((r for r in revisions if r.revision == new_version), None)


def read_pid_from_file(fatima_home: str, proc: str) -> int:
    """Pid recorded for ``proc``, or 0 when unknown."""
    pid_file = os.path.join(_app_dir(fatima_home), proc, FOLDER_APP_PROC, f"{proc}.pid")
    try:
        with open(pid_file, encoding="utf-8") as fh:
            content = fh.read()
    except OSError:
        return 0
    try:
        return _parse_int(content.strip("\r\n"))
    except ValueError:
        return 0


def is_pid_exist(pid: int) -> bool:
    """Whether ``pid`` appears in ``ps`` output; assumed true if ps fails."""
    try:
        result = subprocess.run(
            ["/bin/sh", "-c", "ps"], capture_output=True, text=True, check=True
        )
    except (OSError, subprocess.CalledProcessError) as exc:
        print(f"fail to execute command : {exc}")
        return True

    for line in result.stdout.splitlines():
        items = line.lstrip("\r\t\n ").split(" ")
        try:
            if _parse_int(items[0]) == pid:
                return True
        except ValueError:
            continue
    return False


def link_revision(fatima_home: str, proc: str, revision: Revision) -> None:
    """Point the application link of ``proc`` at ``revision`` (relative link)."""
    app_dir = _app_dir(fatima_home)
    app_link = os.path.join(app_dir, proc)
    print(f"remove applink : {app_link}")
    try:
        os.remove(app_link)
    except FileNotFoundError:
        pass
    except OSError as exc:
        raise OSError(f"fail to remove applink : {exc}") from exc

    try:
        rel_path = os.path.relpath(revision.dir, app_dir)
    except ValueError as exc:
        raise OSError(f"fail to create relative link : {exc}") from exc

    command = f"ln -s {rel_path} {proc}"
    print(f"create applink : {command}")
    try:
        os.symlink(rel_path, app_link)
    except OSError as exc:
        raise OSError(f"fail to process link. command=[{command}], err=[{exc}]") from exc


def is_app_exist(fatima_home: str, proc: str) -> bool:
    for path in (os.path.join(_app_dir(fatima_home), proc), revision_path(fatima_home, proc)):
        try:
            os.stat(path)
            return True
        except OSError:
            continue
    return False


def create_revision_tag(now: datetime | None = None) -> str:
    """Tag of a first revision, e.g. ``2018.08.14-08.35_R001``."""
    now = now or datetime.now()
    return f"{now.strftime(_TAG_TIME_FORMAT)}_R001"


def create_revision_app(fatima_home: str, proc: str) -> Revision:
    """Create the first revision directory for ``proc``."""
    rev_dir = os.path.join(revision_path(fatima_home, proc), create_revision_tag())
    os.makedirs(rev_dir, mode=0o755, exist_ok=True)
    return Revision(dir=rev_dir, revision="R001", number=1, use=True)


def select_source_files(app_dir: str, proc: str) -> list[str]:
    """Files of a process directory that belong in a duplicate."""
    selected = []
    for entry in sorted(os.scandir(app_dir), key=lambda e: e.name):
        if entry.is_dir():
            continue
        name = entry.name
        if name.startswith(proc) or any(name.endswith(s) for s in SUFFIX_LIST):
            selected.append(os.path.join(app_dir, name))
    return selected


def copy_to_dest(fatima_home: str, proc: str, target_proc: str, target_path: str) -> list[str]:
    """Copy the files of ``proc`` into ``target_path``, renamed for ``target_proc``."""
    app_link = os.path.join(_app_dir(fatima_home), proc)
    sources = select_source_files(app_link, proc)
    if not sources:
        raise FileNotFoundError("there is no source files...")

    copied = []
    for src in sources:
        file_name = os.path.basename(src)
        if file_name.startswith(proc):
            file_name = file_name.replace(proc, target_proc, 1)
        resolved = os.path.join(target_path, file_name)
        print(f"copying to {resolved}")
        try:
            shutil.copy(src, resolved)
        except OSError as exc:
            raise OSError(f"copy fail [{src} -> {target_path}] : {exc}") from exc
        copied.append(resolved)

    print(f"total {len(sources)} files copied")
    return copied


def _duplicate(fatima_home: str, proc: str, target_proc: str) -> None:
    if not is_app_exist(fatima_home, proc):
        print(f"{proc} process doesn't exist")
        return
    if is_app_exist(fatima_home, target_proc):
        print(f"{target_proc} process dir exist")
        return

    try:
        revision = create_revision_app(fatima_home, target_proc)
    except OSError as exc:
        print(f"fail to create process for {target_proc} : {exc}")
        return

    print(f"targetPath : {revision.dir}")
    try:
        copy_to_dest(fatima_home, proc, target_proc, revision.dir)
    except OSError as exc:
        print(f"fail to duplicate process for {proc} : {exc}")
        return

    print(f"successfully duplicated {proc} to {target_proc}")

    try:
        link_revision(fatima_home, target_proc, revision)
    except OSError as exc:
        print(f"fail to link revision for {target_proc} : {exc}")
        return

    print("\nyou have to add process in config using roproc command")


def _confirm(proc: str, new_version: str) -> bool:
    while True:
        print(f"{proc} :: reset to revision {new_version}? (y/n) ", end="", flush=True)
        text = sys.stdin.readline()
        if not text:
            return False
        answer = text.strip("\r\n\t ").lower()
        if answer == "n":
            return False
        if answer == "y":
            return True


def _versioning(fatima_home: str, proc: str, new_version: str | None) -> None:
    if is_ro_program(proc):
        print(_RO_DENIED)
        return

    rev_folder = revision_path(fatima_home, proc)
    if not is_exist_revision(rev_folder):
        print(f"{proc} revision folder doesn't exist")
        return

    try:
        current = get_current_revision(fatima_home, proc)
    except (OSError, ValueError) as exc:
        print(f"error : {exc}")
        return

    revisions = get_revisions(rev_folder)

    if new_version is None:
        print(f"{proc} revisions...")
        for r in revisions:
            marker = "[O] " if r.number == current else "    "
            print(f"{r.revision} {marker}{r.build_summary()}")
        return

    new_version = new_version.upper()
    if not new_version.startswith("R"):
        print(f"Invalid new revision : {new_version}")
        return

    new_revision = find_version(revisions, new_version)
    if new_revision is None:
        print(f"Not found revision {new_version}")
        return

    if not _confirm(proc, new_version):
        return

    pid = read_pid_from_file(fatima_home, proc)
    if pid > 0 and is_pid_exist(pid):
        print(f"pid {pid} exist. firstly, you have to stop process")
        return

    try:
        link_revision(fatima_home, proc, new_revision)
    except OSError as exc:
        print(f"fail to link revision to {new_version} : {exc}")
        return

    print(f"process {proc} tagged to {new_revision.revision} revision. start process")


def main(argv: Sequence[str] | None = None) -> int:
    args = list(sys.argv[1:] if argv is None else argv)
    usage = USAGE.format(prog="lcproc")
    if len(args) < 2:
        print(usage, end="")
        return 0

    proc = args[0].lower()
    if is_ro_program(proc):
        print(_RO_DENIED)
        return 0

    fatima_home = os.environ.get(ENV_FATIMA_HOME, "")
    command = args[1].lower()
    if command == "version":
        _versioning(fatima_home, proc, args[2] if len(args) > 2 else None)
    elif command == "dup":
        if len(args) < 3:
            print(usage, end="")
        else:
            _duplicate(fatima_home, proc, args[2])
    else:
        print(usage, end="")
    return 0