# kralpanel/steps/frontend.py
# -*- coding: utf-8 -*-
"""
Frontend bring-up: runtime env file, npm dependencies and the pm2 process.
"""

import logging
import subprocess
from typing import Optional

from common.command_utils import log_message, run_command
from common.file_utils import write_file_atomic
from common.network_utils import lookup_public_ip
from common.system_utils import get_primary_ip_address
from kralpanel.acquisition import artifact_layout
from kralpanel.base_step import BaseStep
from kralpanel.config_models import AppSettings
from kralpanel.context import ProvisionContext
from kralpanel.errors import FrontendError
from kralpanel.registry import StepRegistry
from kralpanel.rendering import render_frontend_env


def resolve_public_ip(
    app_settings: AppSettings,
    context: ProvisionContext,
    logger: Optional[logging.Logger] = None,
) -> Optional[str]:
    """
    Returns the address clients should use to reach this host, caching it on
    the context. Order: configured override, external lookup service, the
    primary interface address.
    """
    if context.public_ip:
        return context.public_ip
    frontend = app_settings.frontend
    ip = (
        frontend.public_ip_override
        or lookup_public_ip(
            frontend.public_ip_lookup_url,
            timeout=frontend.public_ip_timeout,
            app_settings=app_settings,
            current_logger=logger,
        )
        or get_primary_ip_address(app_settings, logger)
    )
    context.public_ip = ip
    return ip


@StepRegistry.register(
    name="frontend",
    metadata={
        "dependencies": ["service"],
        "description": "Write the frontend env file, install dependencies and start it under pm2",
    },
)
class FrontendStep(BaseStep):
    def run(self, context: ProvisionContext) -> None:
        frontend = self.app_settings.frontend
        artifact = context.artifact or artifact_layout(self.app_settings.artifact)
        frontend_dir = artifact.frontend_dir

        if not frontend_dir.is_dir():
            raise FrontendError(
                f"Frontend directory {frontend_dir} does not exist.", step=self.name
            )

        public_ip = resolve_public_ip(self.app_settings, context, self.logger)
        if not public_ip:
            raise FrontendError(
                "Could not determine the public IP address of this host. "
                "Set frontend.public_ip_override.",
                step=self.name,
            )
        log_message(
            f"{self.symbols.get('info', 'ℹ️')} Public address: {public_ip}",
            "info",
            self.logger,
            self.app_settings,
        )

        env_path = frontend_dir / frontend.env_file_name
        try:
            write_file_atomic(
                env_path,
                render_frontend_env(
                    frontend, self.app_settings.proxy.backend_port, public_ip
                ),
                app_settings=self.app_settings,
                current_logger=self.logger,
            )
        except (OSError, KeyError) as e:
            raise FrontendError(
                f"Failed to write {env_path}: {e}", step=self.name
            ) from e

        env = context.command_env(PORT=str(frontend.port))
        cwd = str(frontend_dir)
        try:
            log_message(
                "Installing frontend dependencies...",
                "info",
                self.logger,
                self.app_settings,
            )
            run_command(
                ["npm", "install", "--quiet"],
                self.app_settings,
                current_logger=self.logger,
                cwd=cwd,
                env=env,
            )
            if artifact.built_from_source or frontend.build:
                log_message(
                    "Building Frontend UI...",
                    "info",
                    self.logger,
                    self.app_settings,
                )
                run_command(
                    ["npm", "run", "build", "--quiet"],
                    self.app_settings,
                    current_logger=self.logger,
                    cwd=cwd,
                    env=env,
                )
            # A missing process is not an error here.
            run_command(
                ["pm2", "delete", frontend.process_name],
                self.app_settings,
                check=False,
                capture_output=True,
                current_logger=self.logger,
                env=env,
            )
            run_command(
                ["pm2", "start", "npm", "--name", frontend.process_name, "--", "start"],
                self.app_settings,
                current_logger=self.logger,
                cwd=cwd,
                env=env,
            )
            run_command(
                ["pm2", "save", "--silent"],
                self.app_settings,
                current_logger=self.logger,
                env=env,
            )
        except (subprocess.CalledProcessError, OSError) as e:
            raise FrontendError(
                f"Failed to start frontend '{frontend.process_name}': {e}",
                step=self.name,
            ) from e

        log_message(
            f"{self.symbols.get('success', '✅')} Frontend '{frontend.process_name}' started under pm2.",
            "info",
            self.logger,
            self.app_settings,
        )
