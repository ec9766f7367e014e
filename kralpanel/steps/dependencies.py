# kralpanel/steps/dependencies.py
# -*- coding: utf-8 -*-
"""
Installs the package sets of the install manifest with apt.
"""

from common.command_utils import log_message
from common.debian.apt_manager import AptManager
from kralpanel.base_step import BaseStep
from kralpanel.context import ProvisionContext
from kralpanel.errors import PackageInstallationError
from kralpanel.registry import StepRegistry


@StepRegistry.register(
    name="dependencies",
    metadata={
        "dependencies": ["os_detection"],
        "description": "Install system packages from the install manifest",
    },
)
class DependencyInstallStep(BaseStep):
    """
    Installs every package set in manifest order.

    The package lists are refreshed once up front. The first set that fails
    stops the run, since later steps assume earlier packages exist; sets
    installed before it are left in place.
    """

    def run(self, context: ProvisionContext) -> None:
        try:
            apt_manager = AptManager(logger=self.logger)
        except FileNotFoundError as e:
            raise PackageInstallationError(str(e), step=self.name) from e

        log_message(
            f"{self.symbols.get('package', '📦')} Updating system and installing base components...",
            "info",
            self.logger,
            self.app_settings,
        )
        if not apt_manager.update(self.app_settings):
            raise PackageInstallationError(
                "Failed to update apt package lists.", step=self.name
            )

        manifest = self.app_settings.manifest
        for index, package_set in enumerate(manifest, start=1):
            if not package_set.packages:
                continue
            log_message(
                f"{self.symbols.get('step', '➡️')} [{index}/{len(manifest)}] Installing package set '{package_set.name}': "
                f"{', '.join(package_set.packages)}",
                "info",
                self.logger,
                self.app_settings,
            )
            if not apt_manager.install(
                package_set.packages, self.app_settings, update_first=False
            ):
                raise PackageInstallationError(
                    f"Failed to install package set '{package_set.name}' "
                    f"({', '.join(package_set.packages)}).",
                    step=self.name,
                )

        log_message(
            f"{self.symbols.get('success', '✅')} All package sets installed.",
            "info",
            self.logger,
            self.app_settings,
        )
