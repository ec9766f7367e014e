# kralpanel/steps/os_detection.py
# -*- coding: utf-8 -*-
"""
Platform detection against the configured allow-list of distributions.
"""

from common.command_utils import log_message
from common.system_utils import read_os_release
from kralpanel.base_step import BaseStep
from kralpanel.context import OsInfo, ProvisionContext
from kralpanel.errors import UnsupportedPlatformError
from kralpanel.registry import StepRegistry


@StepRegistry.register(
    name="os_detection",
    metadata={
        "dependencies": ["privilege"],
        "description": "Detect the operating system and check it is supported",
    },
)
class OsDetectionStep(BaseStep):
    """
    Reads the os-release file and records the result on the context.

    Only the ``ID`` field is matched against the allow-list; derivatives that
    merely list a supported distribution in ``ID_LIKE`` are rejected.
    """

    def run(self, context: ProvisionContext) -> None:
        os_settings = self.app_settings.os
        try:
            values = read_os_release(os_settings.os_release_path)
        except FileNotFoundError as e:
            raise UnsupportedPlatformError(
                f"Unable to detect OS: {os_settings.os_release_path} not found.",
                step=self.name,
            ) from e
        except OSError as e:
            raise UnsupportedPlatformError(
                f"Unable to detect OS: cannot read {os_settings.os_release_path}: {e}",
                step=self.name,
            ) from e

        os_info = OsInfo.from_os_release(values)
        supported = [s.lower() for s in os_settings.supported_ids]
        if not os_info.id or os_info.id not in supported:
            raise UnsupportedPlatformError(
                f"KralPanel currently only supports {', '.join(os_settings.supported_ids)}. "
                f"Detected: {os_info.id or 'unknown'}",
                step=self.name,
            )

        context.os_info = os_info
        log_message(
            f"{self.symbols.get('info', 'ℹ️')} Detected OS: {os_info.name} {os_info.version}".rstrip(),
            "info",
            self.logger,
            self.app_settings,
        )
