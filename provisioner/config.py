"""Layered provisioning settings: CLI flags, stored profile, environment, defaults."""

from __future__ import annotations

import os
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, cast

import yaml

DEFAULT_PROFILE_PATH = "provision-profile.yaml"

FLOATING_IP_DISABLED = "-1"
FLOATING_IP_AUTO = "auto"

# Profile sections are flattened into one key namespace.
_PROFILE_SECTIONS = ("openstack", "server", "bootstrap")

_ENVIRONMENT_KEYS = {
    "password": "OS_PASSWORD",
    "winrm_password": "WINRM_PASSWORD",
    "ssh_password": "SSH_PASSWORD",
}

BUILTIN_DEFAULTS: dict[str, Any] = {
    "user_domain_name": "Default",
    "project_domain_name": "Default",
    "insecure": False,
    "node_name_prefix": "os",
    "bootstrap_protocol": "ssh",
    "winrm_user": "Administrator",
    "ssh_user": "root",
    "ssh_port": 22,
    "private_network": False,
    "floating_ip": FLOATING_IP_DISABLED,
    "server_create_timeout": 600,
    "delete_server_on_failure": False,
    "bootstrap_command": "knife bootstrap",
}


def resolve_setting(sources: Sequence[Mapping[str, Any]], key: str) -> Any | None:
    """Return the first present, non-None value for key across sources in order."""
    for source in sources:
        value = source.get(key)
        if value is not None:
            return value
    return None


class ConfigResolver:
    """Resolves named settings against precedence-ordered sources."""

    def __init__(self, sources: Sequence[Mapping[str, Any]]) -> None:
        self._sources = tuple(sources)

    def lookup(self, key: str, default: Any | None = None) -> Any | None:
        value = resolve_setting(self._sources, key)
        return default if value is None else value

    @classmethod
    def layered(
        cls,
        *,
        explicit: Mapping[str, Any] | None = None,
        profile_path: str = DEFAULT_PROFILE_PATH,
        environ: Mapping[str, str] | None = None,
    ) -> ConfigResolver:
        environment = os.environ if environ is None else environ
        return cls(
            [
                dict(explicit or {}),
                load_profile(profile_path),
                _environment_source(environment),
                BUILTIN_DEFAULTS,
            ]
        )


@dataclass(frozen=True, slots=True)
class ProvisionSettings:
    auth_url: str = ""
    username: str = ""
    password: str = ""
    project_name: str = ""
    user_domain_name: str = "Default"
    project_domain_name: str = "Default"
    region: str | None = None
    compute_url: str | None = None
    insecure: bool = False
    node_name: str | None = None
    node_name_prefix: str = "os"
    image: str | None = None
    flavor: str | None = None
    security_groups: tuple[str, ...] = ()
    availability_zone: str | None = None
    metadata: Mapping[str, str] = field(default_factory=dict)
    ssh_key_name: str | None = None
    user_data: str | None = None
    network_ids: tuple[str, ...] = ()
    bootstrap_protocol: str | None = "ssh"
    image_os_type: str | None = None
    winrm_user: str = "Administrator"
    winrm_password: str | None = None
    ssh_user: str = "root"
    ssh_password: str | None = None
    ssh_port: int = 22
    identity_file: str | None = None
    bootstrap_network: str | None = None
    floating_ip: str | None = FLOATING_IP_DISABLED
    server_create_timeout: int = 600
    delete_server_on_failure: bool = False
    bootstrap_command: str | None = "knife bootstrap"

    @property
    def floating_ip_disabled(self) -> bool:
        return self.floating_ip == FLOATING_IP_DISABLED

    @classmethod
    def from_resolver(cls, resolver: ConfigResolver) -> ProvisionSettings:
        bootstrap_network = _optional_str(resolver.lookup("bootstrap_network"))
        if _as_bool(resolver.lookup("private_network", False)):
            bootstrap_network = "private"

        return cls(
            auth_url=str(resolver.lookup("auth_url", "")),
            username=str(resolver.lookup("username", "")),
            password=str(resolver.lookup("password", "")),
            project_name=str(resolver.lookup("project_name", "")),
            user_domain_name=str(resolver.lookup("user_domain_name", "Default")),
            project_domain_name=str(resolver.lookup("project_domain_name", "Default")),
            region=_optional_str(resolver.lookup("region")),
            compute_url=_optional_str(resolver.lookup("compute_url")),
            insecure=_as_bool(resolver.lookup("insecure", False)),
            node_name=_optional_str(resolver.lookup("node_name")),
            node_name_prefix=str(resolver.lookup("node_name_prefix", "os")),
            image=_optional_str(resolver.lookup("image")),
            flavor=_optional_str(resolver.lookup("flavor")),
            security_groups=_as_str_tuple(resolver.lookup("security_groups"), "security_groups"),
            availability_zone=_optional_str(resolver.lookup("availability_zone")),
            metadata=_as_metadata(resolver.lookup("metadata")),
            ssh_key_name=_optional_str(resolver.lookup("ssh_key_name")),
            user_data=_optional_str(resolver.lookup("user_data")),
            network_ids=_as_str_tuple(resolver.lookup("network_ids"), "network_ids"),
            bootstrap_protocol=_optional_str(resolver.lookup("bootstrap_protocol")),
            image_os_type=_optional_str(resolver.lookup("image_os_type")),
            winrm_user=str(resolver.lookup("winrm_user", "Administrator")),
            winrm_password=_optional_str(resolver.lookup("winrm_password")),
            ssh_user=str(resolver.lookup("ssh_user", "root")),
            ssh_password=_optional_str(resolver.lookup("ssh_password")),
            ssh_port=_as_int(resolver.lookup("ssh_port", 22), "ssh_port"),
            identity_file=_optional_str(resolver.lookup("identity_file")),
            bootstrap_network=bootstrap_network,
            floating_ip=normalize_floating_ip(resolver.lookup("floating_ip")),
            server_create_timeout=max(
                1,
                _as_int(resolver.lookup("server_create_timeout", 600), "server_create_timeout"),
            ),
            delete_server_on_failure=_as_bool(
                resolver.lookup("delete_server_on_failure", False)
            ),
            bootstrap_command=_optional_str(resolver.lookup("bootstrap_command")),
        )


def normalize_floating_ip(value: Any | None) -> str | None:
    """Map a raw floating IP request to an address, the disabled sentinel or None (auto)."""
    if value is None:
        return None
    normalized = str(value).strip()
    if not normalized or normalized.lower() == FLOATING_IP_AUTO:
        return None
    return normalized


def load_profile(profile_path: str) -> dict[str, Any]:
    path = Path(profile_path.strip() or DEFAULT_PROFILE_PATH)
    if not path.exists() or not path.is_file():
        return {}

    parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
    if not isinstance(parsed, dict):
        return {}

    flattened: dict[str, Any] = {}
    for key, value in parsed.items():
        if key in _PROFILE_SECTIONS and isinstance(value, dict):
            continue
        flattened[str(key)] = value
    for section in _PROFILE_SECTIONS:
        section_cfg = parsed.get(section)
        if isinstance(section_cfg, dict):
            flattened.update(cast(dict[str, Any], section_cfg))
    return flattened


def _environment_source(environ: Mapping[str, str]) -> dict[str, Any]:
    source: dict[str, Any] = {}
    for key, variable in _ENVIRONMENT_KEYS.items():
        value = environ.get(variable, "")
        if value:
            source[key] = value
    return source


def _optional_str(value: Any | None) -> str | None:
    if value is None:
        return None
    normalized = str(value).strip()
    return normalized or None


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def _as_int(value: Any, name: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{name} must be an integer (received {value!r})") from exc


def _as_str_tuple(value: Any | None, name: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        items: list[Any] = value.split(",")
    elif isinstance(value, (list, tuple)):
        items = list(value)
    else:
        raise ValueError(f"{name} must be a list or comma-separated string")
    return tuple(item.strip() for item in map(str, items) if item.strip())


def _as_metadata(value: Any | None) -> dict[str, str]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"metadata must be a mapping (received {type(value).__name__})")
    return {str(key): str(item) for key, item in value.items()}
