from __future__ import annotations

from collections.abc import Callable

import pytest

from provisioner.config import ProvisionSettings
from provisioner.errors import ValidationError
from provisioner.validation import ConfigValidator, collect_validation_errors
from stubs import RecordingReporter


def test_valid_ssh_linux_settings_pass(
    make_settings: Callable[..., ProvisionSettings],
    reporter: RecordingReporter,
) -> None:
    ConfigValidator(reporter).validate(make_settings())

    assert reporter.messages == []


def test_winrm_requires_password(make_settings: Callable[..., ProvisionSettings]) -> None:
    settings = make_settings(bootstrap_protocol="winrm", image_os_type="windows")

    assert collect_validation_errors(settings) == ["You must provide Winrm Password"]
    assert collect_validation_errors(
        make_settings(
            bootstrap_protocol="winrm",
            image_os_type="windows",
            winrm_password="s3cret",
        )
    ) == []


def test_every_violation_is_reported_in_one_error(
    make_settings: Callable[..., ProvisionSettings],
    reporter: RecordingReporter,
) -> None:
    settings = make_settings(bootstrap_protocol="telnet", image_os_type="solaris")

    with pytest.raises(ValidationError) as exc_info:
        ConfigValidator(reporter).validate(settings)

    errors = exc_info.value.errors
    assert len(errors) == 2
    assert "options [ssh/winrm]" in errors[0]
    assert "--image-os-type option [windows/linux]" in errors[1]
    assert reporter.of_kind("error") == list(errors)
    assert str(exc_info.value) == f"{errors[0]}. {errors[1]}."


def test_winrm_without_password_and_missing_os_type_collects_both(
    make_settings: Callable[..., ProvisionSettings],
    reporter: RecordingReporter,
) -> None:
    settings = make_settings(bootstrap_protocol="winrm", image_os_type=None)

    with pytest.raises(ValidationError) as exc_info:
        ConfigValidator(reporter).validate(settings)

    assert exc_info.value.errors == (
        "You must provide Winrm Password",
        "You must provide --image-os-type option [windows/linux]",
    )


def test_missing_protocol_is_rejected(make_settings: Callable[..., ProvisionSettings]) -> None:
    errors = collect_validation_errors(make_settings(bootstrap_protocol=None))

    assert len(errors) == 1
    assert "valid bootstrap protocol" in errors[0]
