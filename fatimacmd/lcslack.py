"""Show or toggle the slack webhook notifications of a package."""

from __future__ import annotations

import json
import os
import sys
from dataclasses import dataclass
from typing import Any, Mapping, Sequence

ENV_FATIMA_HOME = "FATIMA_HOME"

USAGE = """usage: {prog} [options]

display/control slack notification for package
examples)
lcslack 
lcslack alarm true
lcslack event false
lcslack true
lcslack false
"""

_JSON_ESCAPES = {
    "<": "\\u003c",
    ">": "\\u003e",
    "&": "\\u0026",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}


@dataclass
class SlackConfig:
    """One webhook destination."""

    active: bool = False
    url: str = ""
    channel: str = ""

    def __str__(self) -> str:
        active = "true" if self.active else "false"
        if self.channel:
            return f"activate: [{active}], hookUri: [{self.url}], channel: [{self.channel}]"
        return f"activate: [{active}], hookUri: [{self.url}]"


def _config_from_dict(data: Any) -> SlackConfig:
    if not isinstance(data, Mapping):
        raise ValueError("slack config entry must be an object")
    active = data.get("active", False)
    if active is None:
        active = False
    if not isinstance(active, bool):
        raise ValueError("field active must be a boolean")
    fields = {}
    for key in ("url", "channel"):
        val = data.get(key)
        if val is None:
            val = ""
        if not isinstance(val, str):
            raise ValueError(f"field {key} must be a string")
        fields[key] = val
    return SlackConfig(active=active, **fields)


def _config_to_dict(config: SlackConfig) -> dict:
    data: dict[str, Any] = {"active": config.active, "url": config.url}
    if config.channel:
        data["channel"] = config.channel
    return data


def webhook_config_path(fatima_home: str) -> str:
    return os.path.join(fatima_home or os.sep, "data", "saturn", "webhook.slack")


def load_config(path: str) -> dict[str, SlackConfig]:
    """Read the webhook file; raises OSError or ValueError."""
    with open(path, encoding="utf-8") as fh:
        data = json.loads(fh.read())
    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise ValueError("slack webhook config must be an object")
    return {key: _config_from_dict(value) for key, value in data.items()}


def save_config(path: str, config: Mapping[str, SlackConfig]) -> None:
    """Write the webhook file as tab-indented JSON with sorted keys."""
    data = {key: _config_to_dict(config[key]) for key in sorted(config)}
    text = json.dumps(data, indent="\t", ensure_ascii=False)
    for char, escaped in _JSON_ESCAPES.items():
        text = text.replace(char, escaped)
    with open(path, "w", encoding="utf-8") as fh:
        fh.write(text)


def status_lines(config: Mapping[str, SlackConfig]) -> list[str]:
    lines = [f"{key}: {value}" for key, value in config.items()]
    if "alarm" not in config:
        lines.append("not found alarm config")
    if "event" not in config:
        lines.append("not found event config")
    return lines


def _load(path: str) -> dict[str, SlackConfig]:
    try:
        return load_config(path)
    except OSError as exc:
        raise OSError(f"fail to load slack webhook file : {exc}") from exc
    except ValueError as exc:
        raise ValueError(f"fail to load slack webhook file : {exc}") from exc


def _save(path: str, config: Mapping[str, SlackConfig]) -> None:
    try:
        save_config(path, config)
    except (OSError, ValueError) as exc:
        raise OSError(f"fail to save config : {exc}") from exc


def set_all_status(path: str, turn_on: bool) -> dict[str, SlackConfig]:
    """Switch every webhook on or off and save the file."""
    config = _load(path)
    for value in config.values():
        value.active = turn_on
    _save(path, config)
    return config


def set_status(path: str, part_name: str, turn_on: bool) -> dict[str, SlackConfig]:
    """Switch one webhook on or off and save the file."""
    config = _load(path)
    part = config.get(part_name)
    if part is None:
        raise LookupError(f"not found {part_name} part in config")
    part.active = turn_on
    _save(path, config)
    return config


def _print_status(path: str) -> None:
    try:
        config = load_config(path)
    except (OSError, ValueError) as exc:
        print(f"fail to load slack webhook file : {exc}")
        return
    for line in status_lines(config):
        print(line)


def _parse_switch(text: str) -> bool | None:
    return {"true": True, "false": False}.get(text.lower())


def main(argv: Sequence[str] | None = None) -> int:
    args = list(sys.argv[1:] if argv is None else argv)
    usage = USAGE.format(prog="lcslack")
    path = webhook_config_path(os.environ.get(ENV_FATIMA_HOME, ""))

    if not args:
        _print_status(path)
        return 0

    if len(args) == 1:
        turn_on = _parse_switch(args[0])
        if turn_on is None:
            print(usage, end="")
            return 0
        try:
            set_all_status(path, turn_on)
        except (OSError, ValueError) as exc:
            print(str(exc))
            return 0
        print("successfully saved")
        _print_status(path)
        return 0

    if len(args) != 2:
        print(usage, end="")
        return 0

    part_name = args[0].lower()
    turn_on = _parse_switch(args[1])
    if turn_on is None:
        print(usage, end="")
        return 0

    try:
        set_status(path, part_name, turn_on)
    except (OSError, ValueError, LookupError) as exc:
        print(str(exc))
        return 0
    print(f"set {part_name} to {'true' if turn_on else 'false'}")
    _print_status(path)
    return 0