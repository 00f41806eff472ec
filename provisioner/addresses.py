"""Floating address allocation and bootstrap address selection."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from provisioner.config import FLOATING_IP_DISABLED
from provisioner.errors import BootstrapError, ServerSetupError
from provisioner.providers.base import (
    AddressPoolEntry,
    CloudProvider,
    ProvisioningResult,
)
from provisioner.reporting import UserReporter

logger = logging.getLogger(__name__)

PUBLIC_NETWORK = "public"
PRIVATE_NETWORK = "private"

NO_FREE_FLOATING_IP_MESSAGE = "Unable to assign a Floating IP from allocated IPs."
NO_BOOTSTRAP_ADDRESS_MESSAGE = "No IP address available for bootstrapping."

AddressEntries = Mapping[str, Sequence[Mapping[str, Any]]]


def primary_network_ip_address(addresses: AddressEntries, network: str) -> str | None:
    entries = addresses.get(network) or ()
    for entry in entries:
        address = entry.get("addr")
        if isinstance(address, str) and address:
            return address
    return None


def primary_public_ip_address(addresses: AddressEntries) -> str | None:
    return primary_network_ip_address(addresses, PUBLIC_NETWORK)


def primary_private_ip_address(addresses: AddressEntries) -> str | None:
    return primary_network_ip_address(addresses, PRIVATE_NETWORK)


def first_ip_address(addresses: AddressEntries) -> str | None:
    for network in addresses:
        address = primary_network_ip_address(addresses, network)
        if address is not None:
            return address
    return None


def address_entry(address: str, *, version: int = 4) -> dict[str, Any]:
    return {"version": version, "addr": address}


def first_free_address(pool: Sequence[AddressPoolEntry]) -> AddressPoolEntry | None:
    """First-fit: the first pool entry not attached to any fixed IP, in listed order."""
    for entry in pool:
        if entry.is_free:
            return entry
    return None


class FloatingAddressAllocator:
    def __init__(self, provider: CloudProvider, reporter: UserReporter) -> None:
        self._provider = provider
        self._reporter = reporter

    def allocate(self, result: ProvisioningResult, requested: str | None) -> str | None:
        """Associate a floating address with the instance.

        requested is a specific address, the disabled sentinel, or None for
        automatic first-fit allocation from the shared pool. Returns the
        associated address, or None when allocation is disabled.

        Raises:
            ServerSetupError: automatic allocation found no free address.
        """
        logger.debug("floating IP address requested %s", requested)
        if requested == FLOATING_IP_DISABLED:
            return None

        address = requested
        if address is None:
            entry = first_free_address(self._provider.list_address_pool())
            if entry is None:
                self._reporter.fatal(NO_FREE_FLOATING_IP_MESSAGE)
                raise ServerSetupError(NO_FREE_FLOATING_IP_MESSAGE)
            address = entry.ip

        self._provider.associate_address(result.instance_id, address)
        # A full server refresh is slow; record the association locally in the
        # same shape the provider reports it.
        result.addresses.setdefault(PUBLIC_NETWORK, []).append(address_entry(address))
        logger.debug("addresses after association %s", result.addresses)
        return address


class BootstrapAddressSelector:
    def __init__(self, reporter: UserReporter) -> None:
        self._reporter = reporter

    def select(self, addresses: AddressEntries, network: str | None = None) -> str:
        try:
            return select_bootstrap_address(addresses, network)
        except BootstrapError as exc:
            self._reporter.error(str(exc))
            raise


def select_bootstrap_address(addresses: AddressEntries, network: str | None = None) -> str:
    if network:
        address = primary_network_ip_address(addresses, network)
        logger.debug("bootstrap network %s", network)
    else:
        address = (
            primary_public_ip_address(addresses)
            or primary_private_ip_address(addresses)
            or first_ip_address(addresses)
        )
        logger.debug("no bootstrap network configured")

    if address is None:
        raise BootstrapError(NO_BOOTSTRAP_ADDRESS_MESSAGE)
    logger.debug("bootstrap IP address %s", address)
    return address
