# kralpanel/steps/service.py
# -*- coding: utf-8 -*-
"""
Registers the backend as a systemd service and starts it.
"""

import subprocess

from common.command_utils import log_message, run_elevated_command
from common.file_utils import write_file_atomic
from common.system_utils import is_service_active, systemd_reload
from kralpanel.acquisition import artifact_layout
from kralpanel.base_step import BaseStep
from kralpanel.context import ProvisionContext
from kralpanel.errors import ServiceStartError
from kralpanel.registry import StepRegistry
from kralpanel.rendering import build_service_descriptor, render_service_unit


@StepRegistry.register(
    name="service",
    metadata={
        "dependencies": ["artifact"],
        "description": "Write the systemd unit for the backend, enable and start it",
    },
)
class ServiceRegistrationStep(BaseStep):
    """
    The unit file is rewritten on every run. The service is restarted rather
    than started so that a re-run picks up a rebuilt executable.
    """

    def run(self, context: ProvisionContext) -> None:
        service_settings = self.app_settings.service
        artifact = context.artifact or artifact_layout(self.app_settings.artifact)
        descriptor = build_service_descriptor(self.app_settings, artifact)

        if descriptor.user == "root":
            log_message(
                f"{self.symbols.get('warning', '!')} Service '{descriptor.name}' will run as root. "
                "Set service.user to an unprivileged account to reduce exposure.",
                "warning",
                self.logger,
                self.app_settings,
            )

        unit_path = service_settings.unit_dir / descriptor.unit_file_name
        log_message(
            f"{self.symbols.get('gear', '⚙️')} Configuring systemd unit {unit_path}...",
            "info",
            self.logger,
            self.app_settings,
        )
        try:
            write_file_atomic(
                unit_path,
                render_service_unit(descriptor, service_settings.unit_template),
                app_settings=self.app_settings,
                current_logger=self.logger,
            )
        except (OSError, KeyError) as e:
            raise ServiceStartError(
                f"Failed to write systemd unit {unit_path}: {e}", step=self.name
            ) from e

        try:
            systemd_reload(self.app_settings, self.logger)
            run_elevated_command(
                ["systemctl", "enable", "-q", descriptor.unit_file_name],
                self.app_settings,
                current_logger=self.logger,
            )
            run_elevated_command(
                ["systemctl", "restart", descriptor.unit_file_name],
                self.app_settings,
                current_logger=self.logger,
            )
        except (subprocess.CalledProcessError, OSError) as e:
            raise ServiceStartError(
                f"Failed to start service {descriptor.name}: {e}", step=self.name
            ) from e

        if not is_service_active(
            descriptor.unit_file_name, self.app_settings, self.logger
        ):
            raise ServiceStartError(
                f"Service {descriptor.name} is not active after start. "
                f"Check 'journalctl -u {descriptor.name}'.",
                step=self.name,
            )

        log_message(
            f"{self.symbols.get('success', '✅')} Service {descriptor.name} is running.",
            "info",
            self.logger,
            self.app_settings,
        )
