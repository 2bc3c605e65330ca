"""Reading and printing fatima API responses."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Sequence

from tabulate import tabulate

from .values import get_list, get_string, get_string_from_header


@dataclass
class PackageInfo:
    """Identity of the package that answered a request."""

    group: str = ""
    host: str = ""
    name: str = "default"
    platform: str = ""

    def valid(self) -> bool:
        return bool(self.group) and bool(self.host)

    def __str__(self) -> str:
        if not self.platform:
            return f"[{self.group}] {self.host}:{self.name}"
        return f"[{self.group}] {self.host}:{self.name} {self.platform}"


def _text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def new_package_info(m: Mapping[str, Any] | None) -> PackageInfo:
    """Build a :class:`PackageInfo` from a response body."""
    info = PackageInfo()
    if m is None:
        return info

    info.group = get_string(m, "package_group")
    info.host = get_string(m, "package_host")

    summary = m.get("summary")
    if not isinstance(summary, dict):
        return info
    info.name = get_string(summary, "package_name")

    platform = m.get("platform")
    if isinstance(platform, dict):
        info.platform = f"({_text(platform.get('os'))}_{_text(platform.get('architecture'))})"
    return info


def get_summary_message(m: Mapping[str, Any]) -> str:
    summary = m.get("summary")
    if summary is None:
        print("Not found summary message from server", end="")
        return ""
    if isinstance(summary, dict):
        return get_string(summary, "message")
    print("Not found message in summary", end="")
    return ""


def get_summary_history(m: Mapping[str, Any]) -> list:
    summary = m.get("summary")
    if summary is None:
        print("Not found summary message from server", end="")
        return []
    if isinstance(summary, dict):
        return get_list(summary, "history")
    print("Not found message in summary", end="")
    return []


def _print_string(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", errors="replace")
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        return str(int(value)) if math.isfinite(value) else str(value)
    if isinstance(value, int):
        return str(value)
    return str(value)


def get_key_in_map(source_map: Mapping[str, Any], finding_key: str) -> str:
    """Look up a dotted path such as ``data.sub.myKey``; empty string if absent."""
    keys = finding_key.split(".")
    current: Any = source_map
    for position, key in enumerate(keys):
        if key not in current:
            return ""
        found = current[key]
        if position == len(keys) - 1:
            return _print_string(found)
        if not isinstance(found, dict):
            return ""
        current = found
    return ""


def get_system_message(m: Mapping[str, Any]) -> str:
    system = m.get("system")
    if system is None:
        print("Not found summary message from server", end="")
        return ""
    if isinstance(system, dict):
        return get_string(system, "message")
    print("Not found message in system", end="")
    return ""


def print_preface(headers: Mapping[str, Any] | None, body: Mapping[str, Any] | None) -> None:
    """Print response time, timezone and, when known, the answering package."""
    info = new_package_info(body)
    response_time = get_string_from_header(headers, "Fatima-Response-Time")
    timezone = get_string_from_header(headers, "Fatima-Timezone")
    print(f"{response_time} ({timezone})")
    if info.valid():
        print(info)


def _header_title(name: str) -> str:
    return name.replace("_", " ").replace(".", " ").upper()


def print_table(headers: Sequence[str], data: Iterable[Sequence[str]]) -> None:
    """Print rows as a bordered, left-aligned table."""
    rows = [list(row) for row in data]
    table = tabulate(
        rows,
        headers=[_header_title(h) for h in headers],
        tablefmt="pretty",
        stralign="left",
        numalign="left",
        disable_numparse=True,
    )
    print(table)