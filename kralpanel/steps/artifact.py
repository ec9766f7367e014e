# kralpanel/steps/artifact.py
# -*- coding: utf-8 -*-
"""
Acquires the application payload with the configured strategy.
"""

import logging
from typing import Optional

from common.command_utils import log_message
from kralpanel.acquisition import build_strategy
from kralpanel.base_step import BaseStep
from kralpanel.config_models import AppSettings
from kralpanel.context import ProvisionContext
from kralpanel.credentials import CredentialProvider
from kralpanel.errors import ArtifactAcquisitionError
from kralpanel.registry import StepRegistry


@StepRegistry.register(
    name="artifact",
    metadata={
        "dependencies": ["runtimes"],
        "description": "Fetch a pre-built archive or clone and build from source",
    },
)
class ArtifactAcquisitionStep(BaseStep):
    def __init__(
        self,
        app_settings: AppSettings,
        logger: Optional[logging.Logger] = None,
        credential_provider: Optional[CredentialProvider] = None,
    ):
        super().__init__(app_settings, logger)
        self.credential_provider = credential_provider

    def run(self, context: ProvisionContext) -> None:
        settings = self.app_settings.artifact
        log_message(
            f"{self.symbols.get('step', '➡️')} Setting up application ({settings.strategy}) in {settings.install_dir}...",
            "info",
            self.logger,
            self.app_settings,
        )
        try:
            strategy = build_strategy(
                self.app_settings, self.logger, self.credential_provider
            )
        except ValueError as e:
            raise ArtifactAcquisitionError(str(e), step=self.name) from e

        try:
            context.artifact = strategy.acquire(context)
        except ArtifactAcquisitionError as e:
            e.step = self.name
            raise

        log_message(
            f"{self.symbols.get('success', '✅')} Application ready: backend {context.artifact.backend_executable}",
            "info",
            self.logger,
            self.app_settings,
        )
