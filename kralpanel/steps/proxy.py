# kralpanel/steps/proxy.py
# -*- coding: utf-8 -*-
"""
nginx reverse-proxy site for the panel.
"""

import subprocess

from common.command_utils import log_message, run_elevated_command
from common.file_utils import replace_symlink, write_file_atomic
from kralpanel.base_step import BaseStep
from kralpanel.context import ProvisionContext
from kralpanel.errors import ProxyConfigError
from kralpanel.registry import StepRegistry
from kralpanel.rendering import build_route_table, render_nginx_site
from kralpanel.steps.frontend import resolve_public_ip


@StepRegistry.register(
    name="proxy",
    metadata={
        "dependencies": ["frontend"],
        "description": "Configure nginx to proxy / to the frontend and /api to the backend",
    },
)
class ProxyConfigStep(BaseStep):
    def run(self, context: ProvisionContext) -> None:
        proxy = self.app_settings.proxy
        server_name = resolve_public_ip(self.app_settings, context, self.logger) or "_"
        table = build_route_table(proxy, self.app_settings.frontend, server_name)

        conf_path = proxy.sites_available_dir / proxy.site_name
        symlink_path = proxy.sites_enabled_dir / proxy.site_name
        log_message(
            f"{self.symbols.get('gear', '⚙️')} Configuring Nginx site {conf_path}...",
            "info",
            self.logger,
            self.app_settings,
        )
        try:
            write_file_atomic(
                conf_path,
                render_nginx_site(
                    table,
                    proxy.site_name,
                    proxy.site_template,
                    proxy.location_template,
                ),
                app_settings=self.app_settings,
                current_logger=self.logger,
            )
            replace_symlink(
                conf_path,
                symlink_path,
                app_settings=self.app_settings,
                current_logger=self.logger,
            )
            if proxy.disable_default_site:
                default_link = proxy.sites_enabled_dir / "default"
                if default_link.is_symlink() or default_link.exists():
                    default_link.unlink()
        except (OSError, KeyError) as e:
            raise ProxyConfigError(
                f"Failed to write Nginx site {conf_path}: {e}", step=self.name
            ) from e

        try:
            run_elevated_command(
                ["nginx", "-t"],
                self.app_settings,
                capture_output=True,
                current_logger=self.logger,
            )
        except (subprocess.CalledProcessError, OSError) as e:
            raise ProxyConfigError(
                f"Nginx configuration test failed: {e}", step=self.name
            ) from e

        try:
            run_elevated_command(
                ["systemctl", "reload-or-restart", "nginx.service"],
                self.app_settings,
                current_logger=self.logger,
            )
        except (subprocess.CalledProcessError, OSError) as e:
            raise ProxyConfigError(
                f"Failed to reload Nginx: {e}", step=self.name
            ) from e

        log_message(
            f"{self.symbols.get('success', '✅')} Nginx proxying / -> {table.routes[0].upstream}, "
            f"{table.routes[1].path} -> {table.routes[1].upstream}",
            "info",
            self.logger,
            self.app_settings,
        )
