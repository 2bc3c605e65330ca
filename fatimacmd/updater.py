"""Steps that download a fatima package and update the local installation."""

from __future__ import annotations

import errno
import json
import os
import platform
import shutil
import stat
import subprocess
import tempfile
import threading
import time
from dataclasses import dataclass, field
from typing import Any, ClassVar, Iterator, Mapping

import yaml

ENV_FATIMA_HOME = "FATIMA_HOME"
FATIMA_REPO_URL = "https://github.com/fatima-go/fatima-download/raw/main"
FATIMA_BASE_PACKING_NAME = "fatima-package"
PACKING_FILE_NAME = "packing-info.json"
FATIMA_FILE_PROC_CONFIG = "fatima-package.yaml"

DEFAULT_OPM_PROCESSES = frozenset({"jupiter", "juno", "saturn"})

_COPY_TIMEOUT = 1.0
_ARCH_NAMES = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "aarch64": "arm64",
    "arm64": "arm64",
    "i386": "386",
    "i686": "386",
    "armv7l": "arm",
}

__all__ = [
    "PlatformInfo",
    "PackingInfo",
    "UpdateContext",
    "ExecuteDownload",
    "ExecuteUpdateBin",
    "ExecuteUpdateOpm",
    "ExecuteReportPacking",
    "PackageConfig",
    "execute_shell",
    "check_file_exist",
    "files_in_dir",
    "copy_file",
    "copy_to_temp",
    "remove_unknown_extends_files",
]


@dataclass(frozen=True)
class PlatformInfo:
    """Operating system and architecture of the running host."""

    os: str = ""
    architecture: str = ""

    @classmethod
    def current(cls) -> "PlatformInfo":
        machine = platform.machine().lower()
        return cls(os=platform.system().lower(), architecture=_ARCH_NAMES.get(machine, machine))


@dataclass(frozen=True)
class PackingInfo:
    """Who built the downloaded package, and when."""

    user: str = ""
    build_time: str = ""


class _UpdateExecutor:
    name: ClassVar[str] = ""

    def execute(self, ctx: "UpdateContext") -> None:
        raise NotImplementedError


@dataclass
class UpdateContext:
    """State shared by the update steps."""

    platform: PlatformInfo = field(default_factory=PlatformInfo)
    working_dir: str = ""
    fatima_home_dir: str = ""
    executors: list = field(default_factory=list)
    packing: PackingInfo = field(default_factory=PackingInfo)
    artifact_url: str = ""

    @classmethod
    def create(cls, command: str, artifact_url: str = "") -> "UpdateContext":
        """Prepare the steps for ``command`` (bin, opm or all) and a temp directory."""
        steps: dict[str, list[_UpdateExecutor]] = {
            "bin": [ExecuteUpdateBin()],
            "opm": [ExecuteUpdateOpm()],
            "all": [ExecuteUpdateBin(), ExecuteUpdateOpm()],
        }
        if command not in steps:
            raise ValueError(f"undefined command {command}")
        executors = [ExecuteDownload(), *steps[command], ExecuteReportPacking()]

        fatima_home = os.environ.get(ENV_FATIMA_HOME, "")
        if not fatima_home:
            raise ValueError(f"env {ENV_FATIMA_HOME} missing")

        try:
            working_dir = tempfile.mkdtemp(prefix=FATIMA_BASE_PACKING_NAME)
        except OSError as exc:
            raise OSError(f"fail to prepare temp dir : {exc}") from exc

        return cls(
            platform=PlatformInfo.current(),
            working_dir=working_dir,
            fatima_home_dir=fatima_home,
            executors=executors,
            artifact_url=artifact_url,
        )

    def download_url(self) -> str:
        if self.artifact_url:
            return self.artifact_url
        return (
            f"{FATIMA_REPO_URL}/fatima-package."
            f"{self.platform.os}-{self.platform.architecture}.tar.gz"
        )

    def packing_dir(self) -> str:
        return os.path.join(self.working_dir, FATIMA_BASE_PACKING_NAME)

    def load_packing_info(self) -> bool:
        """Read packing-info.json of the unpacked package into ``packing``."""
        path = os.path.join(self.packing_dir(), PACKING_FILE_NAME)
        try:
            with open(path, encoding="utf-8") as fh:
                raw = fh.read()
        except OSError as exc:
            print(f"not found {PACKING_FILE_NAME} : {exc}")
            return False

        try:
            data = json.loads(raw)
            if not isinstance(data, Mapping):
                raise ValueError("packing info must be an object")
            values = {}
            for key in ("user", "build_time"):
                val = data.get(key)
                if val is None:
                    val = ""
                if not isinstance(val, str):
                    raise ValueError(f"field {key} must be a string")
                values[key] = val
        except ValueError as exc:
            print(f"fail to unmarshal packing-info : {exc}")
            return False

        self.packing = PackingInfo(user=values["user"], build_time=values["build_time"])
        return True

    def close(self) -> None:
        if self.working_dir:
            shutil.rmtree(self.working_dir, ignore_errors=True)

    def __enter__(self) -> "UpdateContext":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


def execute_shell(wd: str, command: str) -> None:
    """Run ``command`` with /bin/sh in ``wd``; raises CalledProcessError on failure."""
    if not command:
        raise ValueError("empty command")
    subprocess.run(["/bin/sh", "-c", command], cwd=wd or None, check=True)


def check_file_exist(path: str) -> None:
    """Raise unless ``path`` exists and is not a directory."""
    try:
        st = os.stat(path)
    except FileNotFoundError:
        raise FileNotFoundError(errno.ENOENT, f"not exist file : {path}") from None
    except OSError as exc:
        raise OSError(exc.errno, f"error checking : {path} ({exc})") from exc
    if stat.S_ISDIR(st.st_mode):
        raise IsADirectoryError(errno.EISDIR, "exist but it is directory")


def files_in_dir(path: str) -> list[str]:
    """Sorted names of the non-directory entries of ``path``."""
    try:
        entries = sorted(os.scandir(path), key=lambda e: e.name)
    except OSError as exc:
        print(f"fail to read dir {path} : {exc}", end="")
        return []
    return [e.name for e in entries if not e.is_dir()]


def copy_file(src: str, dst: str) -> None:
    """Copy the content of ``src`` over ``dst`` and flush it to disk."""
    try:
        fin = open(src, "rb")
    except OSError as exc:
        raise OSError(exc.errno, f"open {src} error : {exc.strerror or exc}") from exc
    with fin:
        try:
            fout = open(dst, "wb")
        except OSError as exc:
            raise OSError(exc.errno, f"create {dst} error : {exc.strerror or exc}") from exc
        with fout:
            try:
                shutil.copyfileobj(fin, fout)
            except OSError as exc:
                raise OSError(exc.errno, f"copy error : {exc.strerror or exc}") from exc
            try:
                fout.flush()
                os.fsync(fout.fileno())
            except OSError as exc:
                raise OSError(exc.errno, f"sync error : {exc.strerror or exc}") from exc


def copy_to_temp(src: str, dst: str) -> str:
    """Copy ``src`` into the temp directory under the base name of ``dst``."""
    target = os.path.join(tempfile.gettempdir(), os.path.basename(dst))
    try:
        copy_file(src, target)
    except OSError as exc:
        print(f"\ncopy to temp [{target}] : {exc}")
    return target


def _walk(root: str) -> Iterator[str]:
    yield root
    if os.path.islink(root) or not os.path.isdir(root):
        return
    try:
        names = sorted(os.listdir(root))
    except OSError:
        return
    for name in names:
        yield from _walk(os.path.join(root, name))


def remove_unknown_extends_files(packing_dir: str) -> list[str]:
    """Remove every file or empty directory whose name starts with '.'.

    BSD tar adds '._' entries that GNU tar unpacks as junk files.
    """
    targets = [
        path
        for path in _walk(packing_dir)
        if len(os.path.basename(path)) > 1 and os.path.basename(path).startswith(".")
    ]
    for path in targets:
        try:
            if os.path.isdir(path) and not os.path.islink(path):
                os.rmdir(path)
            else:
                os.remove(path)
        except OSError:
            pass
    return targets


def _is_text_busy(exc: OSError) -> bool:
    busy = getattr(errno, "ETXTBSY", None)
    return (busy is not None and exc.errno == busy) or "text file busy" in str(exc).lower()


def _copy_binary_file(src: str, dst: str) -> str:
    try:
        copy_file(src, dst)
    except OSError as exc:
        if not _is_text_busy(exc):
            raise
        return copy_to_temp(src, dst)
    return dst


def _copy_fatima_binary(src: str, dst: str) -> str:
    """Copy a binary; a busy or slow target is copied to the temp directory instead."""
    outcome: dict[str, Any] = {}

    def work() -> None:
        try:
            outcome["path"] = _copy_binary_file(src, dst)
        except OSError as exc:
            outcome["error"] = exc

    worker = threading.Thread(target=work, daemon=True)
    worker.start()
    worker.join(_COPY_TIMEOUT)
    if worker.is_alive():
        return copy_to_temp(src, dst)
    if "error" in outcome:
        raise outcome["error"]
    return outcome["path"]


class ExecuteDownload(_UpdateExecutor):
    """Download and unpack the package archive."""

    name = "downloading artifact...."

    def execute(self, ctx: UpdateContext) -> None:
        url = ctx.download_url()
        execute_shell(ctx.working_dir, f"wget {url}")

        filename = os.path.basename(url)
        try:
            check_file_exist(os.path.join(ctx.working_dir, filename))
        except OSError:
            raise RuntimeError(f"artifact downloading fail : {url}") from None

        execute_shell(ctx.working_dir, f"gzip -cd {filename} | tar xvf -")
        remove_unknown_extends_files(ctx.packing_dir())

        try:
            check_file_exist(os.path.join(ctx.packing_dir(), "bin", "rodis"))
        except OSError:
            raise RuntimeError(f"artifact unzip fail : {url}") from None


class ExecuteUpdateBin(_UpdateExecutor):
    """Copy the tool binaries into $FATIMA_HOME/bin."""

    name = "update fatima tool binaries..."

    def execute(self, ctx: UpdateContext) -> None:
        artifact_bin_dir = os.path.join(ctx.packing_dir(), "bin")
        current_bin_dir = os.path.join(ctx.fatima_home_dir, "bin")
        targets = files_in_dir(artifact_bin_dir)
        if not targets:
            raise RuntimeError("not found target bin files")

        moved_to_temp = []
        for name in targets:
            src = os.path.join(artifact_bin_dir, name)
            dst = os.path.join(current_bin_dir, name)
            try:
                copied = _copy_fatima_binary(src, dst)
            except OSError as exc:
                raise OSError(exc.errno, f"copyfile fail : {exc}") from exc
            if copied != dst:
                moved_to_temp.append(copied)

            try:
                mode = os.stat(copied).st_mode
                if not mode & stat.S_IXUSR:
                    os.chmod(copied, stat.S_IMODE(mode) | stat.S_IRWXU)
            except OSError:
                pass
            print(f"{name} ", end="")
        print()

        for path in moved_to_temp:
            print(f"\n>>> binary copied to {path}. YOU HAVE TO MOVE IT")
            print(f"\n$ cp {path} $FATIMA_HOME/bin")


class ExecuteUpdateOpm(_UpdateExecutor):
    """Stop the opm processes, replace their binaries and start them again."""

    name = "update opm processes"

    def execute(self, ctx: UpdateContext) -> None:
        targets = self.target_bins(ctx)
        if not targets:
            raise RuntimeError("not found target opm process")

        try:
            self._stop_opm(ctx)
        except (OSError, ValueError, subprocess.SubprocessError) as exc:
            raise RuntimeError(f"fail to stop opm : {exc}") from exc

        print("wait until opm process down...")
        time.sleep(3)

        for name in targets:
            print(f"opm : {name}")
            src = os.path.join(ctx.packing_dir(), "app", name, name)
            dst = os.path.join(ctx.fatima_home_dir, "app", name, name)
            try:
                copy_file(src, dst)
            except OSError as exc:
                raise OSError(exc.errno, f"copyfile fail : {exc}") from exc
        print()

        self._start_opm(ctx)

    def _stop_opm(self, ctx: UpdateContext) -> None:
        print("- stop opm process")
        execute_shell(ctx.working_dir, "lcslack false")
        time.sleep(1)
        execute_shell(ctx.working_dir, "stopro -y")

    def _start_opm(self, ctx: UpdateContext) -> None:
        print("- start opm process")
        execute_shell(ctx.working_dir, "startro -y")
        time.sleep(1)
        execute_shell(ctx.working_dir, "lcslack true")

    def target_bins(self, ctx: UpdateContext) -> list[str]:
        """Opm processes configured in $FATIMA_HOME/conf/fatima-package.yaml."""
        path = os.path.join(ctx.fatima_home_dir, "conf", FATIMA_FILE_PROC_CONFIG)
        try:
            with open(path, encoding="utf-8") as fh:
                text = fh.read()
        except OSError as exc:
            print(f"fail to open {path} : {exc}", end="")
            return []

        try:
            config = PackageConfig.from_yaml(text)
        except ValueError as exc:
            print(f"fail to yaml unmarshal {path} : {exc}", end="")
            return []

        gid = config.opm_gid()
        if gid < 0:
            print(f"not found opm gid {path}", end="")
            return []
        return config.process_list(gid)


class ExecuteReportPacking(_UpdateExecutor):
    """Report who built the installed package."""

    name = "find packing-info"

    def execute(self, ctx: UpdateContext) -> None:
        if not ctx.load_packing_info():
            return
        print(f"\n- Package updated from {ctx.packing.user} ({ctx.packing.build_time})")


@dataclass(frozen=True)
class _GroupItem:
    id: int = 0
    name: str = ""


@dataclass(frozen=True)
class _ProcessItem:
    gid: int = 0
    name: str = ""
    loglevel: str = ""
    hb: bool = False
    path: str = ""
    grep: str = ""
    startmode: int = 0


def _yaml_field(data: Mapping[str, Any], key: str, kind: type, default: Any) -> Any:
    val = data.get(key)
    if val is None:
        return default
    if kind is int and (isinstance(val, bool) or not isinstance(val, int)):
        raise ValueError(f"field {key} must be an integer")
    if kind is not int and not isinstance(val, kind):
        raise ValueError(f"field {key} must be {kind.__name__}")
    return val


def _yaml_items(data: Mapping[str, Any], key: str) -> list:
    val = data.get(key)
    if val is None:
        return []
    if not isinstance(val, list):
        raise ValueError(f"field {key} must be a list")
    for item in val:
        if not isinstance(item, Mapping):
            raise ValueError(f"entries of {key} must be mappings")
    return val


@dataclass(frozen=True)
class PackageConfig:
    """Groups and processes declared in fatima-package.yaml."""

    groups: tuple[_GroupItem, ...] = ()
    processes: tuple[_ProcessItem, ...] = ()

    @classmethod
    def from_yaml(cls, text: str) -> "PackageConfig":
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ValueError(str(exc)) from exc
        if data is None:
            return cls()
        if not isinstance(data, Mapping):
            raise ValueError("package config must be a mapping")

        groups = tuple(
            _GroupItem(id=_yaml_field(g, "id", int, 0), name=str(_yaml_field(g, "name", str, "")))
            for g in _yaml_items(data, "group")
        )
        processes = tuple(
            _ProcessItem(
                gid=_yaml_field(p, "gid", int, 0),
                name=_yaml_field(p, "name", str, ""),
                loglevel=_yaml_field(p, "loglevel", str, ""),
                hb=_yaml_field(p, "hb", bool, False),
                path=_yaml_field(p, "path", str, ""),
                grep=_yaml_field(p, "grep", str, ""),
                startmode=_yaml_field(p, "startmode", int, 0),
            )
            for p in _yaml_items(data, "process")
        )
        return cls(groups=groups, processes=processes)

    def opm_gid(self) -> int:
        """Id of the OPM group, or -1."""
        return next((g.id for g in self.groups if g.name.upper() == "OPM"), -1)

    def process_list(self, gid: int) -> list[str]:
        """Standard opm processes that belong to group ``gid``."""
        return [
            p.name for p in self.processes if p.gid == gid and p.name in DEFAULT_OPM_PROCESSES
        ]