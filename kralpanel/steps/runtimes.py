# kralpanel/steps/runtimes.py
# -*- coding: utf-8 -*-
"""
Go and Node.js runtime installation.

Each runtime is installed only when its executable cannot be found on the
search path of the current run. Directories added for new runtimes are
recorded on the context instead of being exported into the process
environment.
"""

import subprocess
import tempfile
from pathlib import Path

from common.command_utils import (
    command_exists,
    log_message,
    run_command,
    run_elevated_command,
)
from common.debian.apt_manager import AptManager
from common.file_utils import cleanup_directory, extract_archive
from common.network_utils import DownloadError, download_file
from kralpanel.base_step import BaseStep
from kralpanel.context import ProvisionContext
from kralpanel.errors import RuntimeInstallationError
from kralpanel.registry import StepRegistry


@StepRegistry.register(
    name="runtimes",
    metadata={
        "dependencies": ["dependencies"],
        "description": "Install the Go and Node.js runtimes and global npm tools",
    },
)
class RuntimeInstallStep(BaseStep):
    def run(self, context: ProvisionContext) -> None:
        self.ensure_go(context)
        self.ensure_nodejs(context)
        self.install_npm_global_packages(context)

    def ensure_go(self, context: ProvisionContext) -> None:
        runtimes = self.app_settings.runtimes
        go_bin_dir = runtimes.go_bin_dir

        if command_exists("go", context.search_path()):
            log_message(
                f"{self.symbols.get('info', 'ℹ️')} Go already available. Skipping installation.",
                "info",
                self.logger,
                self.app_settings,
            )
            return
        if (go_bin_dir / "go").is_file():
            # Installed by an earlier run but not on PATH.
            context.add_to_path(go_bin_dir)
            log_message(
                f"{self.symbols.get('info', 'ℹ️')} Found Go in {go_bin_dir}. Skipping installation.",
                "info",
                self.logger,
                self.app_settings,
            )
            return

        log_message(
            f"{self.symbols.get('package', '📦')} Installing Go {runtimes.go_version}...",
            "info",
            self.logger,
            self.app_settings,
        )
        try:
            with tempfile.TemporaryDirectory(prefix="kralpanel-go-") as tmp_dir:
                tarball = download_file(
                    runtimes.go_download_url,
                    Path(tmp_dir) / f"go{runtimes.go_version}.linux-amd64.tar.gz",
                    self.app_settings,
                    current_logger=self.logger,
                )
                cleanup_directory(
                    runtimes.go_install_root / "go",
                    self.app_settings,
                    current_logger=self.logger,
                )
                extract_archive(
                    tarball,
                    runtimes.go_install_root,
                    app_settings=self.app_settings,
                    current_logger=self.logger,
                )
        except (DownloadError, OSError, ValueError) as e:
            raise RuntimeInstallationError(
                f"Failed to install Go {runtimes.go_version}: {e}", step=self.name
            ) from e

        if not (go_bin_dir / "go").is_file():
            raise RuntimeInstallationError(
                f"Go archive did not contain {go_bin_dir / 'go'}.", step=self.name
            )
        context.add_to_path(go_bin_dir)
        log_message(
            f"{self.symbols.get('success', '✅')} Go {runtimes.go_version} installed in {go_bin_dir.parent}.",
            "info",
            self.logger,
            self.app_settings,
        )

    def ensure_nodejs(self, context: ProvisionContext) -> None:
        if command_exists("node", context.search_path()):
            log_message(
                f"{self.symbols.get('info', 'ℹ️')} Node.js already available. Skipping installation.",
                "info",
                self.logger,
                self.app_settings,
            )
            return

        setup_url = self.app_settings.runtimes.nodesource_setup_url
        log_message(
            f"{self.symbols.get('package', '📦')} Installing Node.js from NodeSource ({setup_url})...",
            "info",
            self.logger,
            self.app_settings,
        )
        try:
            curl_res = run_command(
                ["curl", "-fsSL", setup_url],
                self.app_settings,
                capture_output=True,
                check=True,
                current_logger=self.logger,
            )
            run_elevated_command(
                ["bash", "-"],
                self.app_settings,
                cmd_input=curl_res.stdout,
                current_logger=self.logger,
                env=AptManager.noninteractive_env(),
            )
            apt_manager = AptManager(logger=self.logger)
        except (subprocess.CalledProcessError, OSError) as e:
            raise RuntimeInstallationError(
                f"Failed to set up the NodeSource repository: {e}", step=self.name
            ) from e

        if not apt_manager.install("nodejs", self.app_settings, update_first=False):
            raise RuntimeInstallationError(
                "Failed to install the nodejs package.", step=self.name
            )
        if not command_exists("node", context.search_path()):
            raise RuntimeInstallationError(
                "nodejs was installed but 'node' is not on PATH.", step=self.name
            )
        log_message(
            f"{self.symbols.get('success', '✅')} Node.js installed.",
            "info",
            self.logger,
            self.app_settings,
        )

    def install_npm_global_packages(self, context: ProvisionContext) -> None:
        packages = self.app_settings.runtimes.npm_global_packages
        if not packages:
            return
        try:
            run_elevated_command(
                ["npm", "install", "-g", "--silent"] + list(packages),
                self.app_settings,
                current_logger=self.logger,
                env=context.command_env(),
            )
        except (subprocess.CalledProcessError, OSError) as e:
            raise RuntimeInstallationError(
                f"Failed to install global npm packages ({', '.join(packages)}): {e}",
                step=self.name,
            ) from e
