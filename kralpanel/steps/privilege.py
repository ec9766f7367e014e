# kralpanel/steps/privilege.py
# -*- coding: utf-8 -*-
"""
Superuser check. Runs first and changes nothing on the host.
"""

from common.command_utils import log_message
from common.system_utils import is_superuser
from kralpanel.base_step import BaseStep
from kralpanel.context import ProvisionContext
from kralpanel.errors import PrivilegeError
from kralpanel.registry import StepRegistry


@StepRegistry.register(
    name="privilege",
    metadata={
        "dependencies": [],
        "description": "Verify the installer runs with superuser privileges",
    },
)
class PrivilegeCheckStep(BaseStep):
    def run(self, context: ProvisionContext) -> None:
        if not is_superuser():
            raise PrivilegeError(
                "You must have superuser privileges to install KralPanel.",
                step=self.name,
            )
        log_message(
            f"{self.symbols.get('success', '✅')} Running with superuser privileges.",
            "debug",
            self.logger,
            self.app_settings,
        )
