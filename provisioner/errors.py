"""Provisioning-level domain errors."""

from __future__ import annotations

from collections.abc import Sequence


class CloudError(Exception):
    """Base exception for provisioning lifecycle failures."""

    error_code = "cloud_error"


class ValidationError(CloudError):
    """Raised before any remote call when resolved settings are inconsistent."""

    error_code = "validation_error"

    def __init__(self, errors: Sequence[str]) -> None:
        self.errors = tuple(errors)
        super().__init__(" ".join(f"{error}." for error in self.errors))


class ServerSetupError(CloudError):
    """Raised after a server exists but before it is usable."""

    error_code = "server_setup_error"


class BootstrapError(CloudError):
    """Raised when a provisioned server cannot be handed to bootstrap."""

    error_code = "bootstrap_error"
