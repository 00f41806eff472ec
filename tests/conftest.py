from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from provisioner.config import ProvisionSettings
from stubs import RecordingBootstrapper, RecordingReporter, StubProvider


@pytest.fixture()
def stub_provider() -> StubProvider:
    return StubProvider()


@pytest.fixture()
def reporter() -> RecordingReporter:
    return RecordingReporter()


@pytest.fixture()
def bootstrapper() -> RecordingBootstrapper:
    return RecordingBootstrapper()


@pytest.fixture()
def make_settings() -> Callable[..., ProvisionSettings]:
    def factory(**overrides: Any) -> ProvisionSettings:
        base: dict[str, Any] = {
            "auth_url": "https://identity.example.net:5000/v3",
            "username": "deploy",
            "password": "os-secret",
            "project_name": "infra",
            "node_name": "web-1",
            "image": "image-1",
            "flavor": "m1.small",
            "bootstrap_protocol": "ssh",
            "image_os_type": "linux",
            "floating_ip": None,
        }
        base.update(overrides)
        return ProvisionSettings(**base)

    return factory
