# common/debian/apt_manager.py
# -*- coding: utf-8 -*-
import logging
import os
import subprocess
from typing import Dict, List, Optional, Union

from common.command_utils import (
    command_exists,
    run_command,
    run_elevated_command,
)
from kralpanel.config_models import AppSettings


class AptManager:
    """
    A thin manager around apt-get/dpkg-query for non-interactive package
    installation on Debian and Ubuntu hosts.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        """
        Args:
            logger: An optional logging object.

        Raises:
            FileNotFoundError: apt-get is not available on this host.
        """
        self.logger = logger or logging.getLogger(__name__)
        if not command_exists("apt-get"):
            self.logger.critical(
                "'apt-get' command not found. This manager cannot function."
            )
            raise FileNotFoundError(
                "'apt-get' not found. Is this a Debian-based system?"
            )

    @staticmethod
    def noninteractive_env() -> Dict[str, str]:
        """The current environment with DEBIAN_FRONTEND=noninteractive."""
        env = dict(os.environ)
        env["DEBIAN_FRONTEND"] = "noninteractive"
        return env

    def update(
        self, app_settings: AppSettings, raise_error: bool = False
    ) -> bool:
        """
        Updates the list of available packages using 'apt-get update'.

        Args:
            app_settings: The application settings.
            raise_error: Whether to raise an exception on failure.

        Returns:
            True if successful, False otherwise.
        """
        self.logger.info("Updating apt package lists via 'apt-get update'...")
        try:
            run_elevated_command(
                ["apt-get", "update", "-yq"],
                app_settings,
                current_logger=self.logger,
                env=self.noninteractive_env(),
            )
            self.logger.info("Apt package lists updated successfully.")
            return True
        except (subprocess.CalledProcessError, OSError) as e:
            self.logger.error(f"Failed to update apt cache: {e}")
            if raise_error:
                raise
            return False

    def is_installed(self, pkg_name: str, app_settings: AppSettings) -> bool:
        """
        True when dpkg reports the package as installed. Unknown packages
        make dpkg-query exit non-zero, which is an answer here, not a failure.
        """
        result = run_command(
            ["dpkg-query", "-W", "-f=${db:Status-Status}", pkg_name],
            app_settings,
            capture_output=True,
            check=False,
            current_logger=self.logger,
        )
        return result.returncode == 0 and result.stdout.strip() == "installed"

    def install(
        self,
        packages: Union[List[str], str],
        app_settings: AppSettings,
        update_first: bool = True,
    ) -> bool:
        """
        Installs one or more packages using 'apt-get install', skipping the
        ones already installed.

        Args:
            packages: A single package name or a list of package names.
            app_settings: The application settings.
            update_first: Whether to update the package lists before installing.

        Returns:
            True if successful, False otherwise.
        """
        if not isinstance(packages, list):
            packages = [packages]

        if update_first:
            if not self.update(app_settings):
                return False

        packages_to_install = []
        for pkg_name in packages:
            if self.is_installed(pkg_name, app_settings):
                self.logger.info(
                    f"Package '{pkg_name}' is already installed. Skipping."
                )
            else:
                self.logger.info(
                    f"Marking package for installation: {pkg_name}"
                )
                packages_to_install.append(pkg_name)

        if not packages_to_install:
            self.logger.info("All requested packages are already installed.")
            return True

        self.logger.info(
            f"Committing installation for: {', '.join(packages_to_install)}"
        )
        try:
            cmd = ["apt-get", "install", "-yq"] + packages_to_install
            run_elevated_command(
                cmd,
                app_settings,
                current_logger=self.logger,
                env=self.noninteractive_env(),
            )
            self.logger.info("Packages installed successfully.")
            return True
        except (subprocess.CalledProcessError, OSError) as e:
            self.logger.error(f"Failed to install packages: {e}")
            return False
