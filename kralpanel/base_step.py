# kralpanel/base_step.py
# -*- coding: utf-8 -*-
"""
Base class for provisioning steps.

Each step performs one stage of host setup. A step signals failure by raising
a ProvisionError subclass; returning normally means success.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from kralpanel.config_models import AppSettings
from kralpanel.context import ProvisionContext


class BaseStep(ABC):
    """
    Base class for all provisioning steps.

    Subclasses are registered with StepRegistry.register, which records the
    step name and its metadata (dependencies and description) on the class.
    """

    name: str = ""
    metadata: Dict[str, Any] = {
        "dependencies": [],
        "description": "",
    }

    def __init__(
        self,
        app_settings: AppSettings,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Args:
            app_settings: The installer settings.
            logger: Optional logger instance. If not provided, a new logger will be created.
        """
        self.app_settings = app_settings
        self.logger = logger or logging.getLogger(self.__class__.__name__)

    @property
    def symbols(self) -> Dict[str, str]:
        return self.app_settings.symbols

    @abstractmethod
    def run(self, context: ProvisionContext) -> None:
        """
        Perform the step.

        Args:
            context: State produced by earlier steps; the step may record
                its own outputs on it.

        Raises:
            ProvisionError: The step failed and the run must stop.
        """

    def get_description(self) -> str:
        return str(self.metadata.get("description", ""))
