"""Cloud provider interface and normalized server/address models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from provisioner.server_request import ServerSpec

# network label -> [{"version": 4, "addr": "203.0.113.10"}, ...]
AddressSet = dict[str, list[dict[str, Any]]]


@dataclass(slots=True)
class ProvisioningResult:
    instance_id: str
    name: str
    addresses: AddressSet = field(default_factory=dict)
    status: str = ""
    flavor_id: str | None = None
    image_id: str | None = None
    key_name: str | None = None
    availability_zone: str | None = None
    admin_password: str | None = None


@dataclass(frozen=True, slots=True)
class AddressPoolEntry:
    ip: str
    fixed_ip: str | None = None
    pool: str | None = None
    instance_id: str | None = None

    @property
    def is_free(self) -> bool:
        return self.fixed_ip is None


class CloudProvider(Protocol):
    provider_name: str

    def create_server(self, spec: ServerSpec, *, timeout_seconds: int) -> ProvisioningResult:
        """Create a server and wait up to timeout_seconds for it to become active."""

    def associate_address(self, instance_id: str, address: str) -> None:
        """Attach a floating address to the instance."""

    def list_address_pool(self) -> list[AddressPoolEntry]:
        """Return the project's floating addresses in provider order."""

    def destroy_server(self, instance_id: str) -> None:
        """Delete the instance."""

    def get_generated_password(self, instance_id: str) -> str | None:
        """Return the provider-generated admin password, if any."""


class CloudProviderError(Exception):
    """Base provider exception for remote call failures."""

    error_code = "provider_error"

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        instance_id: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        # Set when the server was created before the call failed.
        self.instance_id = instance_id


class ProviderAuthError(CloudProviderError):
    error_code = "provider_auth_error"


class ProviderNotFoundError(CloudProviderError):
    error_code = "provider_not_found"


class ProviderRequestError(CloudProviderError):
    error_code = "provider_request_error"


class ProviderTimeoutError(CloudProviderError):
    error_code = "provider_timeout"
