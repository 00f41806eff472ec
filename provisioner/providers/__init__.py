"""Cloud providers."""

from provisioner.providers.base import (
    AddressPoolEntry,
    CloudProvider,
    CloudProviderError,
    ProviderAuthError,
    ProviderNotFoundError,
    ProviderRequestError,
    ProviderTimeoutError,
    ProvisioningResult,
)
from provisioner.providers.factory import create_cloud_provider

__all__ = [
    "AddressPoolEntry",
    "CloudProvider",
    "CloudProviderError",
    "ProviderAuthError",
    "ProviderNotFoundError",
    "ProviderRequestError",
    "ProviderTimeoutError",
    "ProvisioningResult",
    "create_cloud_provider",
]
