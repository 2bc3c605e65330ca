"""Package deployment listing returned by the jupiter server."""

from __future__ import annotations

import ipaddress
import json
import re
import socket
from dataclasses import dataclass, field
from typing import Any, Mapping
from urllib.parse import urlsplit

import psutil

_FALLBACK_IP = "127.0.0.1"
_ORDER_PATTERN = re.compile(r"[+-]?\d+")

_HEADERS = ("host", "name", "endpoint", "regist_date", "status", "platform")


def _require_object(data: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise ValueError(f"{what} must be an object")
    return data


def _field_str(data: Mapping[str, Any], key: str) -> str:
    val = data.get(key)
    if val is None:
        return ""
    if not isinstance(val, str):
        raise ValueError(f"field {key} must be a string")
    return val


def _field_int(data: Mapping[str, Any], key: str) -> int:
    val = data.get(key)
    if val is None:
        return 0
    if isinstance(val, bool):
        raise ValueError(f"field {key} must be a number")
    if isinstance(val, int):
        return val
    if isinstance(val, float) and val.is_integer():
        return int(val)
    raise ValueError(f"field {key} must be an integer")


def _field_obj(data: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    val = data.get(key)
    if val is None:
        return {}
    return _require_object(val, key)


def _field_list(data: Mapping[str, Any], key: str) -> list:
    val = data.get(key)
    if val is None:
        return []
    if not isinstance(val, list):
        raise ValueError(f"field {key} must be a list")
    return val


@dataclass(frozen=True)
class PlatformResp:
    """Operating system and architecture of a deployed host."""

    architecture: str = ""
    os: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PlatformResp":
        data = _require_object(data, "platform")
        return cls(architecture=_field_str(data, "architecture"), os=_field_str(data, "os"))

    def __str__(self) -> str:
        return f"{self.os}_{self.architecture}"


@dataclass(frozen=True)
class DeployResp:
    """One host a package is deployed to."""

    endpoint: str = ""
    host: str = ""
    name: str = ""
    regist_date: str = ""
    status: str = ""
    platform: PlatformResp = field(default_factory=PlatformResp)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DeployResp":
        data = _require_object(data, "deploy")
        return cls(
            endpoint=_field_str(data, "endpoint"),
            host=_field_str(data, "host"),
            name=_field_str(data, "name"),
            regist_date=_field_str(data, "regist_date"),
            status=_field_str(data, "status"),
            platform=PlatformResp.from_dict(_field_obj(data, "platform")),
        )

    def endpoint_ipaddress(self) -> str:
        """Host part of the endpoint URL without port, or an empty string."""
        try:
            parts = urlsplit(self.endpoint)
        except ValueError:
            return ""
        host = parts.netloc.rpartition("@")[2]
        return host.split(":", 1)[0]


@dataclass(frozen=True)
class DeploymentResp:
    """Hosts belonging to one deployment group."""

    deploy: tuple[DeployResp, ...] = ()
    group_name: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DeploymentResp":
        data = _require_object(data, "deployment")
        return cls(
            deploy=tuple(DeployResp.from_dict(d) for d in _field_list(data, "deploy")),
            group_name=_field_str(data, "group_name"),
        )

    def headers(self) -> list[str]:
        return list(_HEADERS)

    def rows(self) -> list[list[str]]:
        """Table rows, with '-' standing for empty values."""
        return [
            [
                d.host or "-",
                d.name or "-",
                d.endpoint or "-",
                d.regist_date or "-",
                d.status or "-",
                str(d.platform),
            ]
            for d in self.deploy
        ]


@dataclass(frozen=True)
class SummaryResp:
    """Summary of every deployment group known to the server."""

    deployment: tuple[DeploymentResp, ...] = ()
    group_count: int = 0
    host_count: int = 0
    package_count: int = 0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SummaryResp":
        data = _require_object(data, "summary")
        return cls(
            deployment=tuple(DeploymentResp.from_dict(d) for d in _field_list(data, "deployment")),
            group_count=_field_int(data, "group_count"),
            host_count=_field_int(data, "host_count"),
            package_count=_field_int(data, "package_count"),
        )

    def deployment_by_group(self, group_name: str) -> DeploymentResp:
        target = group_name.lower()
        for deployment in self.deployment:
            if deployment.group_name.lower() == target:
                return deployment
        raise LookupError(f"not found deployment by group {group_name}")

    def is_empty_deployment(self) -> bool:
        return not self.deployment

    def has_multiple_host(self) -> bool:
        if self.is_empty_deployment():
            return False
        if len(self.deployment) > 1:
            return True
        return len(self.deployment[0].deploy) > 1

    def first_deployment_host(self) -> DeployResp:
        if self.is_empty_deployment():
            raise LookupError("empty deployment")
        if not self.deployment[0].deploy:
            raise LookupError("empty deploy")
        return self.deployment[0].deploy[0]

    def find_deploy_by_local_ipaddress(self) -> DeployResp:
        return self.find_deploy_by_ipaddress(default_ip_address())

    def find_deploy_by_host(self, host: str) -> DeployResp:
        target = host.lower()
        for deployment in self.deployment:
            for deploy in deployment.deploy:
                if deploy.host.lower() == target:
                    return deploy
        raise LookupError(f"not found deploy by host {host}")

    def find_deploy_by_ipaddress(self, ipaddress: str) -> DeployResp:
        for deployment in self.deployment:
            for deploy in deployment.deploy:
                if deploy.endpoint_ipaddress() == ipaddress:
                    return deploy
        raise LookupError(f"not found deploy by ip {ipaddress}")


@dataclass(frozen=True)
class RopackResp:
    """Top-level package listing response."""

    summary: SummaryResp = field(default_factory=SummaryResp)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RopackResp":
        data = _require_object(data, "response")
        return cls(summary=SummaryResp.from_dict(_field_obj(data, "summary")))


def parse_ropack(raw: str | bytes) -> RopackResp:
    """Parse a JSON package listing; raises ValueError on malformed input."""
    try:
        return RopackResp.from_dict(json.loads(raw))
    except ValueError as exc:
        raise ValueError(f"invalid repsonse message sturcture : {exc}") from exc


def _interface_order(name: str) -> int:
    suffix = name[3:] if name.startswith("eth") else name[2:]
    return int(suffix) if _ORDER_PATTERN.fullmatch(suffix) else 0


def default_ip_address() -> str:
    """IPv4 address of the lowest numbered ethN/enN broadcast interface."""
    try:
        interfaces = psutil.net_if_addrs()
    except OSError:
        return _FALLBACK_IP

    lowest = 100
    ordered: dict[int, str] = {}
    for name, addrs in interfaces.items():
        if not any(getattr(a, "broadcast", None) for a in addrs):
            continue
        if not (name.startswith("eth") or name.startswith("en")):
            continue
        ip_addrs = [a for a in addrs if a.family in (socket.AF_INET, socket.AF_INET6)]
        if not ip_addrs:
            continue
        order = _interface_order(name)
        for addr in ip_addrs:
            if addr.family != socket.AF_INET:
                continue
            try:
                ip = ipaddress.ip_address(addr.address)
            except ValueError:
                continue
            if ip.is_loopback:
                continue
            ordered[order] = str(ip)
            lowest = min(lowest, order)
            break

    if not ordered:
        return _FALLBACK_IP
    return ordered.get(lowest, "")