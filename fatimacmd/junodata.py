"""Process, log level and cron job data reported by the juno server."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Mapping

from .values import as_ha_string, as_int, as_ps_string, as_string, get_int


@dataclass
class ProcessInfo:
    """One process row of a package listing."""

    index: int = 0
    cpu: str = "-"
    fd: str = "-"
    thread: str = "-"
    group: str = "-"
    ic: str = "-"
    mem: str = "-"
    name: str = "-"
    pid: str = "-"
    qcount: str = "-"
    qkey: str = "-"
    start_time: str = "-"
    status: str = ""

    def to_list(self) -> list[str]:
        return [
            self.name,
            self.pid,
            self.status,
            self.cpu,
            self.mem,
            self.fd,
            self.thread,
            self.start_time,
            self.ic,
            self.group,
        ]


_PROCESS_STRING_FIELDS = {
    "cpu": "cpu",
    "fd": "fd",
    "thread": "thread",
    "group": "group",
    "ic": "ic",
    "mem": "mem",
    "name": "name",
    "pid": "pid",
    "qcount": "qcount",
    "qkey": "qkey",
    "start_time": "start_time",
    "status": "status",
}


def build_process_info(m: Mapping[str, Any]) -> ProcessInfo:
    info = ProcessInfo()
    for key, value in m.items():
        if key == "index":
            info.index = as_int(value)
        elif key in _PROCESS_STRING_FIELDS:
            setattr(info, _PROCESS_STRING_FIELDS[key], as_string(value))
    return info


def build_process_info_list(data: Any) -> list[ProcessInfo]:
    """Process rows from a list of objects, ordered by index."""
    if not isinstance(data, list):
        return []
    infos = [build_process_info(m) for m in data if isinstance(m, dict)]
    return sorted(infos, key=lambda p: p.index)


@dataclass
class LogLevel:
    """Log level of one process."""

    name: str = "-"
    level: str = "-"

    def to_list(self) -> list[str]:
        return [self.name, self.level]


def build_log_level_info(m: Mapping[str, Any]) -> LogLevel:
    level = LogLevel()
    if "name" in m:
        level.name = as_string(m["name"])
    if "level" in m:
        level.level = as_string(m["level"])
    return level


def build_log_level_info_list(data: Any) -> list[LogLevel]:
    """Log levels from a list of objects, ordered by name."""
    if not isinstance(data, list):
        return []
    levels = [build_log_level_info(m) for m in data if isinstance(m, dict)]
    return sorted(levels, key=lambda lv: lv.name)


def _str_field(data: Mapping[str, Any], key: str) -> str:
    val = data.get(key)
    if val is None:
        return ""
    if not isinstance(val, str):
        raise ValueError(f"field {key} must be a string")
    return val


def _list_field(data: Mapping[str, Any], key: str) -> list:
    val = data.get(key)
    if val is None:
        return []
    if not isinstance(val, list):
        raise ValueError(f"field {key} must be a list")
    return val


def _object(data: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise ValueError(f"{what} must be an object")
    return data


@dataclass(frozen=True)
class CronJob:
    desc: str = ""
    name: str = ""
    sample: str = ""


@dataclass(frozen=True)
class CronCommand:
    jobs: tuple[CronJob, ...] = ()
    process: str = ""


@dataclass(frozen=True)
class FatimaCronCommands:
    """Cron jobs registered per process."""

    commands: tuple[CronCommand, ...] = field(default_factory=tuple)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FatimaCronCommands":
        data = _object(data, "cron commands")
        commands = []
        for raw_command in _list_field(data, "commands"):
            raw_command = _object(raw_command, "command")
            jobs = []
            for raw_job in _list_field(raw_command, "jobs"):
                raw_job = _object(raw_job, "job")
                jobs.append(
                    CronJob(
                        desc=_str_field(raw_job, "desc"),
                        name=_str_field(raw_job, "name"),
                        sample=_str_field(raw_job, "sample"),
                    )
                )
            commands.append(CronCommand(jobs=tuple(jobs), process=_str_field(raw_command, "process")))
        return cls(commands=tuple(commands))


def parse_cron_commands(raw: str | bytes) -> FatimaCronCommands:
    """Parse JSON of the form ``{"commands": [...]}``."""
    try:
        return FatimaCronCommands.from_dict(json.loads(raw))
    except ValueError as exc:
        raise ValueError(f"invalid cron command sturcture : {exc}") from exc


def package_summary_line(summary: Mapping[str, Any], resp: Mapping[str, Any]) -> str:
    """Closing line of a package listing."""
    return (
        f"Total:{get_int(summary, 'total')} "
        f"(Alive:{get_int(summary, 'alive')}, Dead:{get_int(summary, 'dead')}), "
        f"system is {as_ha_string(get_int(resp, 'system_status'))}"
        f"/{as_ps_string(get_int(resp, 'system_ps_status'))}"
    )