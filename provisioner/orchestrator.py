"""Single-server provisioning lifecycle and its failure policy."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum

from provisioner.addresses import (
    BootstrapAddressSelector,
    FloatingAddressAllocator,
    primary_public_ip_address,
)
from provisioner.bootstrap import BootstrapTarget, Bootstrapper, build_bootstrap_target
from provisioner.config import ProvisionSettings
from provisioner.errors import ServerSetupError
from provisioner.naming import resolve_node_name
from provisioner.providers.base import CloudProvider, CloudProviderError, ProvisioningResult
from provisioner.reporting import UserReporter
from provisioner.server_request import ServerSpec, build_server_spec
from provisioner.validation import ConfigValidator

logger = logging.getLogger(__name__)


class ProvisioningStage(StrEnum):
    VALIDATING = "validating"
    BUILDING = "building"
    CREATING = "creating"
    ALLOCATING_ADDRESS = "allocating_address"
    SELECTING_BOOTSTRAP_ADDRESS = "selecting_bootstrap_address"
    HANDOFF = "handoff"
    DONE = "done"
    FAILED = "failed"


STAGE_ORDER: tuple[ProvisioningStage, ...] = (
    ProvisioningStage.VALIDATING,
    ProvisioningStage.BUILDING,
    ProvisioningStage.CREATING,
    ProvisioningStage.ALLOCATING_ADDRESS,
    ProvisioningStage.SELECTING_BOOTSTRAP_ADDRESS,
    ProvisioningStage.HANDOFF,
    ProvisioningStage.DONE,
)


class InvalidStageTransitionError(RuntimeError):
    def __init__(self, current: ProvisioningStage, new: ProvisioningStage) -> None:
        super().__init__(f"cannot transition provisioning from {current.value} to {new.value}")
        self.current_stage = current
        self.new_stage = new


def can_transition_stage(current: ProvisioningStage, new: ProvisioningStage) -> bool:
    if current is ProvisioningStage.FAILED or current is ProvisioningStage.DONE:
        return False
    if new is ProvisioningStage.FAILED:
        return True
    return STAGE_ORDER.index(new) == STAGE_ORDER.index(current) + 1


@dataclass(slots=True)
class ProvisioningReport:
    result: ProvisioningResult
    bootstrap_target: BootstrapTarget
    floating_ip: str | None
    stage: ProvisioningStage


class ProvisioningOrchestrator:
    """Runs validate, build, create, allocate, select and handoff in order.

    The created server is destroyed when floating address allocation fails
    with ServerSetupError. With delete_server_on_failure set, the same
    teardown applies to any failure after the server exists, including a
    server that was accepted but never became active.
    """

    def __init__(
        self,
        *,
        settings: ProvisionSettings,
        provider: CloudProvider,
        bootstrapper: Bootstrapper,
        reporter: UserReporter,
        validator: ConfigValidator | None = None,
        allocator: FloatingAddressAllocator | None = None,
        selector: BootstrapAddressSelector | None = None,
    ) -> None:
        self._settings = settings
        self._provider = provider
        self._bootstrapper = bootstrapper
        self._reporter = reporter
        self._validator = validator or ConfigValidator(reporter)
        self._allocator = allocator or FloatingAddressAllocator(provider, reporter)
        self._selector = selector or BootstrapAddressSelector(reporter)
        self._stage = ProvisioningStage.VALIDATING
        self._history: list[ProvisioningStage] = [ProvisioningStage.VALIDATING]

    @property
    def stage(self) -> ProvisioningStage:
        return self._stage

    @property
    def history(self) -> tuple[ProvisioningStage, ...]:
        return tuple(self._history)

    def run(self) -> ProvisioningReport:
        if self._stage is not ProvisioningStage.VALIDATING:
            raise InvalidStageTransitionError(self._stage, ProvisioningStage.VALIDATING)

        try:
            self._validator.validate(self._settings)

            self._advance(ProvisioningStage.BUILDING)
            spec = build_server_spec(
                self._settings,
                name=resolve_node_name(self._settings.node_name, self._settings.node_name_prefix),
            )

            self._advance(ProvisioningStage.CREATING)
            result = self._create_server(spec)
        except CloudProviderError as exc:
            self._advance(ProvisioningStage.FAILED)
            if exc.instance_id is not None and self._settings.delete_server_on_failure:
                self._cleanup_on_failure(exc.instance_id, exc)
            raise
        except Exception:
            self._advance(ProvisioningStage.FAILED)
            raise

        try:
            return self._finish_provisioning(result)
        except ServerSetupError as exc:
            self._advance(ProvisioningStage.FAILED)
            self._cleanup_on_failure(result.instance_id, exc)
            raise
        except Exception as exc:
            self._advance(ProvisioningStage.FAILED)
            if self._settings.delete_server_on_failure:
                self._cleanup_on_failure(result.instance_id, exc)
            raise

    def _create_server(self, spec: ServerSpec) -> ProvisioningResult:
        result = self._provider.create_server(
            spec,
            timeout_seconds=self._settings.server_create_timeout,
        )
        logger.debug("server created instance_id=%s addresses=%s", result.instance_id, result.addresses)
        return result

    def _finish_provisioning(self, result: ProvisioningResult) -> ProvisioningReport:
        self._advance(ProvisioningStage.ALLOCATING_ADDRESS)
        floating_ip = self._allocator.allocate(result, self._settings.floating_ip)
        if floating_ip is not None:
            public_ip = primary_public_ip_address(result.addresses)
            logger.debug("public IP address actual %s", public_ip)

        self._advance(ProvisioningStage.SELECTING_BOOTSTRAP_ADDRESS)
        address = self._selector.select(result.addresses, self._settings.bootstrap_network)

        self._advance(ProvisioningStage.HANDOFF)
        target = build_bootstrap_target(
            address=address,
            settings=self._settings,
            provider=self._provider,
            result=result,
        )
        self._reporter.msg_pair("Bootstrap IP Address", address)
        self._bootstrapper.bootstrap(target)

        self._advance(ProvisioningStage.DONE)
        return ProvisioningReport(
            result=result,
            bootstrap_target=target,
            floating_ip=floating_ip,
            stage=self._stage,
        )

    def _cleanup_on_failure(self, instance_id: str, cause: Exception) -> None:
        logger.warning(
            "destroying server instance_id=%s after failure: %s",
            instance_id,
            cause,
        )
        try:
            self._provider.destroy_server(instance_id)
        except Exception as exc:
            logger.error(
                "failed to destroy server instance_id=%s: %s",
                instance_id,
                exc,
            )
            cause.add_note(f"cleanup of server {instance_id} failed: {exc}")
            return
        self._reporter.info(f"Deleted server {instance_id}")

    def _advance(self, new_stage: ProvisioningStage) -> None:
        if not can_transition_stage(self._stage, new_stage):
            raise InvalidStageTransitionError(self._stage, new_stage)
        logger.debug("provisioning stage %s -> %s", self._stage.value, new_stage.value)
        self._stage = new_stage
        self._history.append(new_stage)
