"""Cloud provider construction from resolved settings."""

from __future__ import annotations

from provisioner.config import ProvisionSettings
from provisioner.providers.base import CloudProvider
from provisioner.providers.openstack import OpenStackProvider


def create_cloud_provider(settings: ProvisionSettings) -> CloudProvider:
    auth_url = settings.auth_url.strip()
    if not auth_url:
        raise ValueError("auth_url is required (--auth-url or openstack.auth_url)")
    username = settings.username.strip()
    if not username:
        raise ValueError("username is required (--username or openstack.username)")
    if not settings.password:
        raise ValueError("password is required (OS_PASSWORD or openstack.password)")
    project_name = settings.project_name.strip()
    if not project_name:
        raise ValueError("project_name is required (--project-name or openstack.project_name)")

    return OpenStackProvider(
        auth_url=auth_url,
        username=username,
        password=settings.password,
        project_name=project_name,
        user_domain_name=settings.user_domain_name,
        project_domain_name=settings.project_domain_name,
        region=settings.region,
        compute_url=settings.compute_url,
        verify_ssl=not settings.insecure,
    )
