"""Provider-agnostic server creation request."""

from __future__ import annotations

import base64
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from provisioner.config import ProvisionSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ServerSpec:
    name: str
    image_ref: str
    flavor_ref: str
    security_groups: tuple[str, ...] = ()
    availability_zone: str | None = None
    metadata: Mapping[str, str] = field(default_factory=dict)
    key_name: str | None = None
    user_data: str | None = None
    networks: tuple[dict[str, str], ...] = ()

    def to_request(self) -> dict[str, Any]:
        """Render the compute API body; unset optional fields are left out entirely."""
        server: dict[str, Any] = {
            "name": self.name,
            "imageRef": self.image_ref,
            "flavorRef": self.flavor_ref,
        }
        if self.security_groups:
            server["security_groups"] = [{"name": group} for group in self.security_groups]
        if self.availability_zone:
            server["availability_zone"] = self.availability_zone
        if self.metadata:
            server["metadata"] = dict(self.metadata)
        if self.key_name:
            server["key_name"] = self.key_name
        if self.user_data:
            server["user_data"] = base64.b64encode(self.user_data.encode("utf-8")).decode("ascii")
        if self.networks:
            server["networks"] = [dict(network) for network in self.networks]
        return {"server": server}


def build_server_spec(settings: ProvisionSettings, *, name: str) -> ServerSpec:
    if not name.strip():
        raise ValueError("server name cannot be empty")
    if not settings.image:
        raise ValueError("image is required")
    if not settings.flavor:
        raise ValueError("flavor is required")

    spec = ServerSpec(
        name=name.strip(),
        image_ref=settings.image,
        flavor_ref=settings.flavor,
        security_groups=settings.security_groups,
        availability_zone=settings.availability_zone,
        metadata=dict(settings.metadata),
        key_name=settings.ssh_key_name,
        user_data=settings.user_data or None,
        networks=tuple({"uuid": network_id} for network_id in settings.network_ids),
    )
    logger.debug("create server params server_def=%s", _redacted(spec))
    return spec


def _redacted(spec: ServerSpec) -> dict[str, Any]:
    body = spec.to_request()["server"]
    if "user_data" in body:
        body["user_data"] = f"<{len(spec.user_data or '')} bytes>"
    return body
