"""OpenStack Keystone v3 + Nova compute adapter."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any

import httpx

from provisioner.providers.base import (
    AddressPoolEntry,
    AddressSet,
    CloudProviderError,
    ProviderAuthError,
    ProviderNotFoundError,
    ProviderRequestError,
    ProviderTimeoutError,
    ProvisioningResult,
)
from provisioner.server_request import ServerSpec

logger = logging.getLogger(__name__)

HTTPClientFactory = Callable[..., httpx.Client]

_ACTIVE_STATUS = "ACTIVE"
_ERROR_STATUS = "ERROR"


class OpenStackProvider:
    provider_name = "openstack"

    def __init__(
        self,
        *,
        auth_url: str,
        username: str,
        password: str,
        project_name: str,
        user_domain_name: str = "Default",
        project_domain_name: str = "Default",
        region: str | None = None,
        compute_url: str | None = None,
        verify_ssl: bool = True,
        timeout_seconds: float = 30.0,
        poll_interval_seconds: float = 5.0,
        http_client_factory: HTTPClientFactory = httpx.Client,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._auth_url = auth_url.rstrip("/")
        self._username = username
        self._password = password
        self._project_name = project_name
        self._user_domain_name = user_domain_name
        self._project_domain_name = project_domain_name
        self._region = region
        self._compute_url = compute_url.rstrip("/") if compute_url else None
        self._verify_ssl = verify_ssl
        self._timeout_seconds = timeout_seconds
        self._poll_interval_seconds = poll_interval_seconds
        self._http_client_factory = http_client_factory
        self._sleep = sleep
        self._clock = clock
        self._token: str | None = None
        self._admin_passwords: dict[str, str] = {}

    def create_server(self, spec: ServerSpec, *, timeout_seconds: int) -> ProvisioningResult:
        response = self._compute_request("POST", "/servers", json_body=spec.to_request())
        self._raise_for_status(response, default_message=f"failed to create server name={spec.name}")
        created = _parse_json_object(response).get("server")
        if not isinstance(created, dict) or not isinstance(created.get("id"), str):
            raise ProviderRequestError(
                "create server response did not include a server id",
                status_code=response.status_code,
            )

        instance_id = created["id"]
        admin_password = created.get("adminPass")
        if isinstance(admin_password, str) and admin_password:
            self._admin_passwords[instance_id] = admin_password

        try:
            server = self._wait_for_active(instance_id, timeout_seconds)
        except CloudProviderError as exc:
            # The server exists from here on.
            if exc.instance_id is None:
                exc.instance_id = instance_id
            raise
        return _server_to_result(server, admin_password=self._admin_passwords.get(instance_id))

    def _wait_for_active(self, instance_id: str, timeout_seconds: int) -> dict[str, Any]:
        logger.debug("waiting for server instance_id=%s timeout=%ss", instance_id, timeout_seconds)
        deadline = self._clock() + timeout_seconds
        while True:
            server = self._get_server(instance_id)
            status = str(server.get("status", "")).upper()
            if status == _ACTIVE_STATUS:
                return server
            if status == _ERROR_STATUS:
                fault = server.get("fault")
                detail = fault.get("message") if isinstance(fault, dict) else None
                raise ProviderRequestError(
                    f"server instance_id={instance_id} entered ERROR state"
                    + (f": {detail}" if detail else ""),
                    instance_id=instance_id,
                )
            if self._clock() >= deadline:
                raise ProviderTimeoutError(
                    f"server instance_id={instance_id} not active after {timeout_seconds}s "
                    f"(last status={status or 'unknown'})",
                    instance_id=instance_id,
                )
            self._sleep(self._poll_interval_seconds)

    def associate_address(self, instance_id: str, address: str) -> None:
        response = self._compute_request(
            "POST",
            f"/servers/{instance_id}/action",
            json_body={"addFloatingIp": {"address": address}},
        )
        if response.status_code == 404:
            raise ProviderNotFoundError(
                f"server or floating IP not found instance_id={instance_id} address={address}",
                status_code=response.status_code,
            )
        self._raise_for_status(
            response,
            default_message=f"failed to associate floating IP address={address}",
        )

    def list_address_pool(self) -> list[AddressPoolEntry]:
        response = self._compute_request("GET", "/os-floating-ips")
        self._raise_for_status(response, default_message="failed to list floating IPs")
        floating_ips = _parse_json_object(response).get("floating_ips")
        if not isinstance(floating_ips, list):
            return []

        entries: list[AddressPoolEntry] = []
        for item in floating_ips:
            if not isinstance(item, dict) or not isinstance(item.get("ip"), str):
                continue
            entries.append(
                AddressPoolEntry(
                    ip=item["ip"],
                    fixed_ip=_optional_str(item.get("fixed_ip")),
                    pool=_optional_str(item.get("pool")),
                    instance_id=_optional_str(item.get("instance_id")),
                )
            )
        return entries

    def destroy_server(self, instance_id: str) -> None:
        response = self._compute_request("DELETE", f"/servers/{instance_id}")
        if response.status_code == 404:
            raise ProviderNotFoundError(
                f"server not found instance_id={instance_id}",
                status_code=response.status_code,
            )
        self._raise_for_status(
            response,
            default_message=f"failed to delete server instance_id={instance_id}",
        )
        self._admin_passwords.pop(instance_id, None)

    def get_generated_password(self, instance_id: str) -> str | None:
        cached = self._admin_passwords.get(instance_id)
        if cached:
            return cached

        response = self._compute_request("GET", f"/servers/{instance_id}/os-server-password")
        if response.status_code == 404:
            return None
        self._raise_for_status(
            response,
            default_message=f"failed to read server password instance_id={instance_id}",
        )
        return _optional_str(_parse_json_object(response).get("password"))

    def _get_server(self, instance_id: str) -> dict[str, Any]:
        response = self._compute_request("GET", f"/servers/{instance_id}")
        if response.status_code == 404:
            raise ProviderNotFoundError(
                f"server not found instance_id={instance_id}",
                status_code=response.status_code,
            )
        self._raise_for_status(
            response,
            default_message=f"failed to read server instance_id={instance_id}",
        )
        server = _parse_json_object(response).get("server")
        if not isinstance(server, dict):
            raise ProviderRequestError(
                f"server response payload missing 'server' (status={response.status_code})",
                status_code=response.status_code,
            )
        return server

    def _authenticate(self) -> None:
        payload = {
            "auth": {
                "identity": {
                    "methods": ["password"],
                    "password": {
                        "user": {
                            "name": self._username,
                            "domain": {"name": self._user_domain_name},
                            "password": self._password,
                        }
                    },
                },
                "scope": {
                    "project": {
                        "name": self._project_name,
                        "domain": {"name": self._project_domain_name},
                    }
                },
            }
        }
        with self._http_client_factory(
            base_url=self._auth_url,
            timeout=self._timeout_seconds,
            verify=self._verify_ssl,
        ) as client:
            try:
                response = client.post("/auth/tokens", json=payload)
            except httpx.HTTPError as exc:
                raise ProviderRequestError(f"identity request failed: {exc}") from exc

        self._raise_for_status(response, default_message="failed to authenticate with identity service")
        token = response.headers.get("X-Subject-Token", "").strip()
        if not token:
            raise ProviderAuthError(
                "identity response did not include X-Subject-Token",
                status_code=response.status_code,
            )
        self._token = token

        if self._compute_url is None:
            token_body = _parse_json_object(response).get("token")
            catalog = token_body.get("catalog") if isinstance(token_body, dict) else None
            self._compute_url = _find_compute_endpoint(catalog, region=self._region)

    def _compute_request(
        self,
        method: str,
        path: str,
        *,
        json_body: dict[str, Any] | None = None,
    ) -> httpx.Response:
        if self._token is None:
            self._authenticate()

        with self._http_client_factory(
            base_url=self._compute_url or "",
            headers={"X-Auth-Token": self._token or ""},
            timeout=self._timeout_seconds,
            verify=self._verify_ssl,
        ) as client:
            try:
                return client.request(method, path, json=json_body)
            except httpx.HTTPError as exc:
                raise ProviderRequestError(f"compute request failed: {exc}") from exc

    def _raise_for_status(self, response: httpx.Response, *, default_message: str) -> None:
        if response.status_code < 400:
            return

        status_code = response.status_code
        if status_code in {401, 403}:
            raise ProviderAuthError(
                f"openstack authentication failed with status={status_code}",
                status_code=status_code,
            )

        response_text = response.text.strip()
        detail = f"{default_message}; status={status_code}"
        if response_text:
            detail = f"{detail}; body={response_text[:240]}"
        raise ProviderRequestError(detail, status_code=status_code)


def _find_compute_endpoint(catalog: Any, *, region: str | None) -> str:
    if not isinstance(catalog, list):
        raise ProviderRequestError("identity token did not include a service catalog")

    for service in catalog:
        if not isinstance(service, dict) or service.get("type") != "compute":
            continue
        for endpoint in service.get("endpoints", []):
            if not isinstance(endpoint, dict) or endpoint.get("interface") != "public":
                continue
            if region and region not in {endpoint.get("region"), endpoint.get("region_id")}:
                continue
            url = endpoint.get("url")
            if isinstance(url, str) and url.strip():
                return url.strip().rstrip("/")

    raise ProviderRequestError(
        "no public compute endpoint in service catalog"
        + (f" for region={region}" if region else "")
    )


def _server_to_result(server: dict[str, Any], *, admin_password: str | None) -> ProvisioningResult:
    return ProvisioningResult(
        instance_id=str(server["id"]),
        name=str(server.get("name", "")),
        addresses=_extract_addresses(server),
        status=str(server.get("status", "")),
        flavor_id=_nested_id(server.get("flavor")),
        image_id=_nested_id(server.get("image")),
        key_name=_optional_str(server.get("key_name")),
        availability_zone=_optional_str(server.get("OS-EXT-AZ:availability_zone")),
        admin_password=admin_password,
    )


def _extract_addresses(server: dict[str, Any]) -> AddressSet:
    raw = server.get("addresses")
    if not isinstance(raw, dict):
        return {}

    addresses: AddressSet = {}
    for network, entries in raw.items():
        if not isinstance(entries, list):
            continue
        normalized: list[dict[str, Any]] = []
        for entry in entries:
            if not isinstance(entry, dict) or not isinstance(entry.get("addr"), str):
                continue
            normalized.append({"version": int(entry.get("version", 4)), "addr": entry["addr"]})
        addresses[str(network)] = normalized
    return addresses


def _nested_id(value: Any) -> str | None:
    if isinstance(value, dict):
        return _optional_str(value.get("id"))
    return _optional_str(value)


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    normalized = str(value).strip()
    return normalized or None


def _parse_json_object(response: httpx.Response) -> dict[str, Any]:
    try:
        data = response.json()
    except ValueError as exc:
        raise ProviderRequestError(
            f"openstack response was not valid JSON (status={response.status_code})",
            status_code=response.status_code,
        ) from exc

    if not isinstance(data, dict):
        raise ProviderRequestError(
            f"openstack response payload must be an object (status={response.status_code})",
            status_code=response.status_code,
        )
    return data
