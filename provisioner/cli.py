"""Command-line entry point: create one OpenStack server and bootstrap it."""

from __future__ import annotations

import argparse
import sys
from collections.abc import Callable, Sequence
from typing import Any, TypeAlias

from provisioner.addresses import primary_private_ip_address, primary_public_ip_address
from provisioner.bootstrap import Bootstrapper, NullBootstrapper, create_bootstrapper
from provisioner.config import (
    DEFAULT_PROFILE_PATH,
    FLOATING_IP_AUTO,
    ConfigResolver,
    ProvisionSettings,
)
from provisioner.errors import CloudError, ValidationError
from provisioner.orchestrator import ProvisioningOrchestrator, ProvisioningReport
from provisioner.providers import CloudProvider, CloudProviderError, create_cloud_provider
from provisioner.reporting import ConsoleReporter, UserReporter, configure_logging
from provisioner.validation import ConfigValidator

ProviderFactory: TypeAlias = Callable[[ProvisionSettings], CloudProvider]

EXIT_OK = 0
EXIT_PROVISIONING_FAILED = 1
EXIT_INVALID_INPUT = 2

# Flags that are parser-only and never part of the settings namespace.
_NON_SETTING_ARGS = frozenset({"profile", "verbose", "no_bootstrap"})


def main(
    argv: Sequence[str] | None = None,
    *,
    provider_factory: ProviderFactory | None = None,
    bootstrapper: Bootstrapper | None = None,
    reporter: UserReporter | None = None,
) -> int:
    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    configure_logging(verbose=args.verbose)
    ui = reporter or ConsoleReporter()

    try:
        resolver = ConfigResolver.layered(
            explicit=_explicit_settings(args),
            profile_path=args.profile,
        )
        settings = ProvisionSettings.from_resolver(resolver)
        validator = ConfigValidator(ui)
        validator.validate(settings)
        provider = (provider_factory or create_cloud_provider)(settings)
        handoff = bootstrapper
        if handoff is None:
            handoff = NullBootstrapper() if args.no_bootstrap else create_bootstrapper(settings)

        orchestrator = ProvisioningOrchestrator(
            settings=settings,
            provider=provider,
            bootstrapper=handoff,
            reporter=ui,
            validator=validator,
        )
        report = orchestrator.run()
    except ValidationError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_INVALID_INPUT
    except ValueError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_INVALID_INPUT
    except (CloudError, CloudProviderError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_PROVISIONING_FAILED

    _print_report(report, ui)
    return EXIT_OK


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="openstack-provision",
        description="Create an OpenStack server and hand it to a bootstrap command.",
    )
    parser.add_argument("--profile", default=DEFAULT_PROFILE_PATH)
    parser.add_argument("-v", "--verbose", action="store_true")
    parser.add_argument(
        "--no-bootstrap",
        action="store_true",
        help="stop after selecting the bootstrap address",
    )

    openstack = parser.add_argument_group("openstack")
    openstack.add_argument("--auth-url", dest="auth_url")
    openstack.add_argument("--username", dest="username")
    openstack.add_argument("--project-name", dest="project_name")
    openstack.add_argument("--user-domain-name", dest="user_domain_name")
    openstack.add_argument("--project-domain-name", dest="project_domain_name")
    openstack.add_argument("--region", dest="region")
    openstack.add_argument("--compute-url", dest="compute_url")
    openstack.add_argument("--insecure", dest="insecure", action="store_const", const=True)

    server = parser.add_argument_group("server")
    server.add_argument("-N", "--node-name", dest="node_name")
    server.add_argument("--node-name-prefix", dest="node_name_prefix")
    server.add_argument("-I", "--image", dest="image")
    server.add_argument("-f", "--flavor", dest="flavor")
    server.add_argument(
        "--security-group",
        dest="security_groups",
        action="append",
        help="repeatable",
    )
    server.add_argument("-Z", "--availability-zone", dest="availability_zone")
    server.add_argument(
        "--metadata",
        dest="metadata",
        action="append",
        type=_parse_metadata_pair,
        help="KEY=VALUE, repeatable",
    )
    server.add_argument("--ssh-key-name", dest="ssh_key_name")
    server.add_argument("--user-data", dest="user_data", type=_read_user_data, help="path to file")
    server.add_argument("--network-id", dest="network_ids", action="append", help="repeatable")
    server.add_argument(
        "-a",
        "--floating-ip",
        dest="floating_ip",
        nargs="?",
        const=FLOATING_IP_AUTO,
        metavar="ADDRESS",
        help="associate ADDRESS, or the first free pool address when omitted; -1 disables",
    )
    server.add_argument("--server-create-timeout", dest="server_create_timeout", type=int)
    server.add_argument(
        "--delete-server-on-failure",
        dest="delete_server_on_failure",
        action="store_const",
        const=True,
    )

    bootstrap = parser.add_argument_group("bootstrap")
    bootstrap.add_argument("--bootstrap-protocol", dest="bootstrap_protocol")
    bootstrap.add_argument("--image-os-type", dest="image_os_type")
    bootstrap.add_argument("--bootstrap-network", dest="bootstrap_network")
    bootstrap.add_argument(
        "--private-network",
        dest="private_network",
        action="store_const",
        const=True,
        help="bootstrap over the private network",
    )
    bootstrap.add_argument("-x", "--ssh-user", dest="ssh_user")
    bootstrap.add_argument("-p", "--ssh-port", dest="ssh_port", type=int)
    bootstrap.add_argument("-i", "--identity-file", dest="identity_file")
    bootstrap.add_argument("--winrm-user", dest="winrm_user")
    bootstrap.add_argument("--bootstrap-command", dest="bootstrap_command")

    return parser


def _explicit_settings(args: argparse.Namespace) -> dict[str, Any]:
    explicit: dict[str, Any] = {}
    for key, value in vars(args).items():
        if key in _NON_SETTING_ARGS or value is None:
            continue
        if key == "metadata":
            value = dict(value)
        explicit[key] = value
    return explicit


def _parse_metadata_pair(raw: str) -> tuple[str, str]:
    key, separator, value = raw.partition("=")
    if not separator or not key.strip():
        raise argparse.ArgumentTypeError(f"metadata must be KEY=VALUE (received {raw!r})")
    return key.strip(), value


def _read_user_data(path: str) -> str:
    try:
        with open(path, encoding="utf-8") as handle:
            return handle.read()
    except OSError as exc:
        raise argparse.ArgumentTypeError(f"cannot read user data file {path}: {exc}") from exc


def _print_report(report: ProvisioningReport, ui: UserReporter) -> None:
    result = report.result
    ui.msg_pair("Instance ID", result.instance_id)
    ui.msg_pair("Name", result.name)
    public_ip = primary_public_ip_address(result.addresses)
    if public_ip:
        ui.msg_pair("Public IP Address", public_ip)
    private_ip = primary_private_ip_address(result.addresses)
    if private_ip:
        ui.msg_pair("Private IP Address", private_ip)
    if report.floating_ip:
        ui.msg_pair("Floating IP Address", report.floating_ip)


if __name__ == "__main__":
    raise SystemExit(main())
