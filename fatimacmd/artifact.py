"""Prepare 'far' package archives for the platform of the target host."""

from __future__ import annotations

import json
import os
import shutil
import stat
import tempfile
import time
import zipfile
from datetime import datetime
from typing import Iterator, Sequence

from .ropack import RopackResp

PLATFORM_DIR_NAME = "platform"
DEPLOYMENT_JSON = "deployment.json"

_DTIME_FORMAT = "%Y-%m-%d %H:%M:%S"
_EXECUTABLE_MODE = 0o755
_DEFAULT_FILE_MODE = 0o666


def _now() -> str:
    return datetime.now().strftime(_DTIME_FORMAT)


def _is_include_directory(zipfile_path: str, dirname: str) -> bool:
    try:
        with zipfile.ZipFile(zipfile_path) as archive:
            return any(
                info.is_dir() and info.filename == dirname for info in archive.infolist()
            )
    except (OSError, zipfile.BadZipFile):
        return False


def has_platform_support(zipfile_path: str) -> bool:
    """Whether the archive carries a ``/platform/`` directory entry."""
    return _is_include_directory(zipfile_path, f"/{PLATFORM_DIR_NAME}/")


def has_platform(zipfile_path: str, platform: str) -> bool:
    """Whether the archive carries binaries for ``platform`` (e.g. linux_amd64)."""
    return _is_include_directory(zipfile_path, f"/{PLATFORM_DIR_NAME}/{platform}/")


def unzip(source_far_file: str, dest_dir: str) -> None:
    """Extract ``source_far_file`` below ``dest_dir``; rejects paths escaping it."""
    try:
        archive = zipfile.ZipFile(source_far_file)
    except (OSError, zipfile.BadZipFile) as exc:
        raise OSError(f"fail to open zip reader {source_far_file} : {exc}") from exc

    root = os.path.normpath(dest_dir) + os.sep
    with archive:
        for info in archive.infolist():
            if info.filename == "/":
                continue
            file_path = os.path.normpath(os.path.join(dest_dir, info.filename.lstrip("/")))
            if not file_path.startswith(root):
                raise ValueError("invalid file path")

            if info.is_dir():
                os.makedirs(file_path, exist_ok=True)
                continue

            os.makedirs(os.path.dirname(file_path), exist_ok=True)
            mode = (info.external_attr >> 16) & 0o777 or _DEFAULT_FILE_MODE
            try:
                fd = os.open(file_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
            except OSError as exc:
                raise OSError(f"fail to open {file_path} : {exc}") from exc
            with os.fdopen(fd, "wb") as dst, archive.open(info) as src:
                try:
                    shutil.copyfileobj(src, dst)
                except OSError as exc:
                    raise OSError(f"fail to copy {file_path} : {exc}") from exc


def _walk(root: str) -> Iterator[tuple[str, bool]]:
    """Every path below ``root`` (itself included) in lexical order, with its dir flag."""
    is_dir = os.path.isdir(root) and not os.path.islink(root)
    yield root, is_dir
    if not is_dir:
        return
    for name in sorted(os.listdir(root)):
        yield from _walk(os.path.join(root, name))


def _entry_name(base_dir: str, path: str, is_dir: bool) -> str:
    rel = os.path.relpath(path, base_dir)
    name = "" if rel == os.curdir else "/" + rel.replace(os.sep, "/")
    return name + "/" if is_dir else name


def zip_artifact(base_dir: str, artifact_file: str, executable_names: Sequence[str]) -> None:
    """Archive ``base_dir`` into ``artifact_file`` with names rooted at '/'.

    Entries whose base name is in ``executable_names`` are stored with mode 0755.
    """
    entries = list(_walk(base_dir))
    executables = set(executable_names)
    stamp = time.localtime(time.time())[:6]

    with zipfile.ZipFile(artifact_file, "w") as zw:
        for path, is_dir in entries:
            name = _entry_name(base_dir, path, is_dir)
            info = zipfile.ZipInfo(name, date_time=stamp)
            info.compress_type = zipfile.ZIP_DEFLATED
            base_name = os.path.basename(name.rstrip("/")) or "/"
            if base_name in executables:
                info.external_attr = (stat.S_IFREG | _EXECUTABLE_MODE) << 16
            if is_dir:
                zw.writestr(info, b"")
                continue
            with open(path, "rb") as src, zw.open(info, "w") as dst:
                shutil.copyfileobj(src, dst)


def mark_deploy_user(working_dir: str, username: str) -> bool:
    """Record ``username`` as build user in the deployment.json of ``working_dir``."""
    path = os.path.join(working_dir, DEPLOYMENT_JSON)
    try:
        with open(path, encoding="utf-8") as fh:
            raw = fh.read()
    except OSError:
        print("not found deployment json")
        return False

    try:
        data = json.loads(raw)
    except ValueError as exc:
        print(f"fail to unmarshal deployment json : {exc}", end="")
        return False

    if not isinstance(data, dict) or not isinstance(data.get("build"), dict):
        return False
    data["build"]["user"] = username

    try:
        with open(path, "w", encoding="utf-8") as fh:
            fh.write(json.dumps(data, separators=(",", ":"), sort_keys=True, ensure_ascii=False))
    except OSError:
        return False
    return True


def reform_artifact(origin_far_file: str, platform: str, username: str) -> str:
    """Rebuild the archive keeping only the binaries of ``platform``.

    The binaries of the target platform are moved to the archive root and the
    platform directory is dropped. Returns the path of the new archive, which
    lives in a fresh temporary directory that the caller removes.
    """
    expose_name = os.path.basename(origin_far_file)
    try:
        working_dir = tempfile.mkdtemp(prefix=expose_name)
    except OSError as exc:
        raise OSError(f"fail to create tmp dir : {exc}") from exc

    try:
        try:
            unzip(origin_far_file, working_dir)
        except (OSError, ValueError) as exc:
            raise OSError(f"fail to unzip : {exc}") from exc

        platform_base_dir = os.path.join(working_dir, PLATFORM_DIR_NAME)
        platform_target_dir = os.path.join(platform_base_dir, platform)
        try:
            names = sorted(os.listdir(platform_target_dir))
        except OSError as exc:
            raise OSError(f"fail to read dir {platform_target_dir} : {exc}") from exc

        for name in names:
            src = os.path.join(platform_target_dir, name)
            dst = os.path.join(working_dir, name)
            try:
                shutil.copyfile(src, dst)
            except OSError as exc:
                raise OSError(f"fail to copy {src} : {exc}") from exc
            try:
                os.chmod(dst, _EXECUTABLE_MODE)
            except OSError:
                pass

        shutil.rmtree(platform_base_dir, ignore_errors=True)
        mark_deploy_user(working_dir, username)

        artifact_file = os.path.join(working_dir, expose_name)
        zip_artifact(working_dir, artifact_file, names)
    except BaseException:
        shutil.rmtree(working_dir, ignore_errors=True)
        raise
    return artifact_file


def find_platform(ropack: RopackResp, user_package: str, group: str) -> str:
    """Platform (os_arch) of the host the package is deployed to.

    Chosen by explicit host, then the only host, then the first host of the
    group, then the host whose endpoint matches the local address.
    Raises LookupError when no host qualifies.
    """
    summary = ropack.summary

    if user_package:
        deploy = summary.find_deploy_by_host(user_package)
        print(f"{_now()} target {deploy.host}::{deploy.platform}")
        return str(deploy.platform)

    if summary.is_empty_deployment():
        raise LookupError("deployment is empty")

    if not summary.has_multiple_host():
        deploy = summary.first_deployment_host()
        print(f"{_now()} target {deploy.host}:{deploy.platform}")
        return str(deploy.platform)

    if group:
        deployment = summary.deployment_by_group(group)
        if not deployment.deploy:
            raise LookupError(f"empty deploy for group {group}")
        first = deployment.deploy[0]
        print(f"{_now()} target group {deployment.group_name}::{first.platform}")
        return str(first.platform)

    deploy = summary.find_deploy_by_local_ipaddress()
    print(f"{_now()} target {deploy.host}::{deploy.platform}")
    return str(deploy.platform)