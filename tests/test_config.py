from __future__ import annotations

from pathlib import Path

import pytest

from provisioner.config import (
    BUILTIN_DEFAULTS,
    FLOATING_IP_DISABLED,
    ConfigResolver,
    ProvisionSettings,
    load_profile,
    normalize_floating_ip,
    resolve_setting,
)


def _write_profile(tmp_path: Path, content: str) -> Path:
    profile = tmp_path / "provision-profile.yaml"
    profile.write_text(content, encoding="utf-8")
    return profile


def test_resolve_setting_returns_first_present_value() -> None:
    sources = [{"image": None}, {"image": "from-profile"}, {"image": "default"}]

    assert resolve_setting(sources, "image") == "from-profile"
    assert resolve_setting(sources, "flavor") is None


def test_resolve_setting_keeps_falsy_non_none_values() -> None:
    sources = [{"insecure": False}, {"insecure": True}]

    assert resolve_setting(sources, "insecure") is False


def test_lookup_prefers_explicit_flag_over_profile(tmp_path: Path) -> None:
    profile = _write_profile(
        tmp_path,
        """
server:
  flavor: m1.large
  image: profile-image
""",
    )

    resolver = ConfigResolver.layered(
        explicit={"flavor": "m1.small"},
        profile_path=str(profile),
        environ={},
    )

    assert resolver.lookup("flavor") == "m1.small"
    assert resolver.lookup("image") == "profile-image"
    assert resolver.lookup("ssh_user") == "root"
    assert resolver.lookup("availability_zone", "nova") == "nova"


def test_environment_secrets_sit_below_profile(tmp_path: Path) -> None:
    profile = _write_profile(tmp_path, "openstack:\n  password: from-profile\n")

    resolver = ConfigResolver.layered(
        profile_path=str(profile),
        environ={"OS_PASSWORD": "from-env", "WINRM_PASSWORD": "winrm-env"},
    )

    assert resolver.lookup("password") == "from-profile"
    assert resolver.lookup("winrm_password") == "winrm-env"


def test_load_profile_flattens_sections_and_keeps_top_level_keys(tmp_path: Path) -> None:
    profile = _write_profile(
        tmp_path,
        """
region: RegionOne
openstack:
  auth_url: https://identity.example.net:5000/v3
bootstrap:
  ssh_user: ubuntu
""",
    )

    assert load_profile(str(profile)) == {
        "region": "RegionOne",
        "auth_url": "https://identity.example.net:5000/v3",
        "ssh_user": "ubuntu",
    }


def test_load_profile_missing_or_non_mapping_is_empty(tmp_path: Path) -> None:
    assert load_profile(str(tmp_path / "missing.yaml")) == {}

    profile = _write_profile(tmp_path, "- just\n- a list\n")
    assert load_profile(str(profile)) == {}


def test_settings_defaults_disable_floating_ip() -> None:
    settings = ProvisionSettings.from_resolver(ConfigResolver([BUILTIN_DEFAULTS]))

    assert settings.floating_ip == FLOATING_IP_DISABLED
    assert settings.floating_ip_disabled is True
    assert settings.bootstrap_protocol == "ssh"
    assert settings.server_create_timeout == 600
    assert settings.security_groups == ()
    assert settings.network_ids == ()
    assert settings.metadata == {}


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        (None, None),
        ("", None),
        ("auto", None),
        ("AUTO", None),
        ("-1", "-1"),
        (" 203.0.113.7 ", "203.0.113.7"),
    ],
)
def test_normalize_floating_ip(raw: str | None, expected: str | None) -> None:
    assert normalize_floating_ip(raw) == expected


def test_settings_coerce_profile_types(tmp_path: Path) -> None:
    profile = _write_profile(
        tmp_path,
        """
server:
  security_groups: default, ssh
  network_ids: [net-a, net-b]
  metadata:
    role: web
    tier: 1
  server_create_timeout: "120"
  delete_server_on_failure: "yes"
  floating_ip: auto
""",
    )
    resolver = ConfigResolver.layered(profile_path=str(profile), environ={})

    settings = ProvisionSettings.from_resolver(resolver)

    assert settings.security_groups == ("default", "ssh")
    assert settings.network_ids == ("net-a", "net-b")
    assert settings.metadata == {"role": "web", "tier": "1"}
    assert settings.server_create_timeout == 120
    assert settings.delete_server_on_failure is True
    assert settings.floating_ip is None


def test_private_network_flag_selects_private_bootstrap_network() -> None:
    resolver = ConfigResolver(
        [{"private_network": True, "bootstrap_network": "tenant-net"}, BUILTIN_DEFAULTS]
    )

    settings = ProvisionSettings.from_resolver(resolver)

    assert settings.bootstrap_network == "private"


def test_settings_reject_malformed_values() -> None:
    with pytest.raises(ValueError, match="server_create_timeout must be an integer"):
        ProvisionSettings.from_resolver(
            ConfigResolver([{"server_create_timeout": "soon"}, BUILTIN_DEFAULTS])
        )

    with pytest.raises(ValueError, match="metadata must be a mapping"):
        ProvisionSettings.from_resolver(
            ConfigResolver([{"metadata": ["role=web"]}, BUILTIN_DEFAULTS])
        )
