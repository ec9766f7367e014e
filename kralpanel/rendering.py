# kralpanel/rendering.py
# -*- coding: utf-8 -*-
"""
Descriptors for generated files and the functions that render them.

Rendering is pure: these functions take descriptors and templates and return
text. Writing the files is left to the steps.
"""

from pathlib import Path
from typing import Dict, List

from pydantic import BaseModel, Field

from kralpanel.config_models import (
    KRALPANEL_VERSION,
    AppSettings,
    FrontendSettings,
    ProxySettings,
)
from kralpanel.context import AcquiredArtifact

RESTART_POLICY = "always"


class ServiceDescriptor(BaseModel):
    """What the service manager needs to run the backend."""

    name: str
    description: str
    exec_start: Path
    working_directory: Path
    restart_policy: str = RESTART_POLICY
    user: str = "root"
    environment: Dict[str, str] = Field(default_factory=dict)

    @property
    def unit_file_name(self) -> str:
        return f"{self.name}.service"


class ProxyRoute(BaseModel):
    path: str
    upstream: str


class ProxyRouteTable(BaseModel):
    server_name: str
    listen_port: int = 80
    routes: List[ProxyRoute]


def build_service_descriptor(
    app_settings: AppSettings, artifact: AcquiredArtifact
) -> ServiceDescriptor:
    service = app_settings.service
    return ServiceDescriptor(
        name=service.name,
        description=service.description,
        exec_start=artifact.backend_executable,
        working_directory=artifact.backend_dir,
        user=service.user,
        environment=dict(service.environment),
    )


def _quote_environment(key: str, value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'Environment="{key}={escaped}"'


def render_service_unit(
    descriptor: ServiceDescriptor, template: str
) -> str:
    environment_lines = "".join(
        _quote_environment(key, value) + "\n"
        for key, value in sorted(descriptor.environment.items())
    )
    return template.format(
        service_name=descriptor.name,
        description=descriptor.description,
        exec_start=descriptor.exec_start,
        working_directory=descriptor.working_directory,
        restart_policy=descriptor.restart_policy,
        user=descriptor.user,
        environment_lines=environment_lines,
        version=KRALPANEL_VERSION,
    )


def build_route_table(
    proxy: ProxySettings, frontend: FrontendSettings, server_name: str
) -> ProxyRouteTable:
    """
    The two static routes: the API prefix to the backend and everything
    else to the frontend. The server name never affects the routes.
    """
    api_prefix = "/" + proxy.api_prefix.strip("/")
    return ProxyRouteTable(
        server_name=server_name,
        listen_port=proxy.listen_port,
        routes=[
            ProxyRoute(
                path="/",
                upstream=f"http://{proxy.upstream_host}:{frontend.port}",
            ),
            ProxyRoute(
                path=api_prefix,
                upstream=f"http://{proxy.upstream_host}:{proxy.backend_port}",
            ),
        ],
    )


def render_nginx_site(
    table: ProxyRouteTable,
    site_name: str,
    site_template: str,
    location_template: str,
) -> str:
    locations = "".join(
        location_template.format(path=route.path, upstream=route.upstream)
        for route in table.routes
    )
    return site_template.format(
        site_name=site_name,
        listen_port=table.listen_port,
        server_name=table.server_name,
        locations=locations,
        version=KRALPANEL_VERSION,
    )


def render_frontend_env(
    frontend: FrontendSettings, backend_port: int, public_ip: str
) -> str:
    return frontend.env_template.format(
        public_ip=public_ip,
        frontend_port=frontend.port,
        backend_port=backend_port,
        version=KRALPANEL_VERSION,
    )
