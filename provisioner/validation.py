"""Pre-flight validation of resolved provisioning settings."""

from __future__ import annotations

from provisioner.config import ProvisionSettings
from provisioner.errors import ValidationError
from provisioner.reporting import UserReporter

SUPPORTED_BOOTSTRAP_PROTOCOLS = ("ssh", "winrm")
SUPPORTED_IMAGE_OS_TYPES = ("windows", "linux")


def collect_validation_errors(settings: ProvisionSettings) -> list[str]:
    errors: list[str] = []

    if settings.bootstrap_protocol == "winrm":
        if settings.winrm_password is None:
            errors.append("You must provide Winrm Password")
    elif settings.bootstrap_protocol != "ssh":
        errors.append(
            "You must provide a valid bootstrap protocol. options [ssh/winrm]. "
            "For linux type images, options [ssh]"
        )

    if settings.image_os_type not in SUPPORTED_IMAGE_OS_TYPES:
        errors.append("You must provide --image-os-type option [windows/linux]")

    return errors


class ConfigValidator:
    """Reports every violated constraint, then raises one aggregated error."""

    def __init__(self, reporter: UserReporter) -> None:
        self._reporter = reporter

    def validate(self, settings: ProvisionSettings) -> None:
        errors = collect_validation_errors(settings)
        if not errors:
            return
        for error in errors:
            self._reporter.error(error)
        raise ValidationError(errors)
