# kralpanel/credentials.py
# -*- coding: utf-8 -*-
"""
Credential providers for the source-control access token.

The source acquisition strategy asks a provider for the token instead of
reading the terminal itself, so the same flow works from an environment
variable, a secret file or an interactive prompt.
"""

import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional

import click

from kralpanel.config_models import CredentialSettings
from kralpanel.errors import ArtifactAcquisitionError

module_logger = logging.getLogger(__name__)


class CredentialProvider(ABC):
    """Supplies a secret, or None when this source has nothing to offer."""

    description: str = "credential"

    @abstractmethod
    def get(self) -> Optional[str]:
        """Return the stripped credential, or None if unavailable."""


class EnvCredentialProvider(CredentialProvider):
    def __init__(self, env_var: str):
        self.env_var = env_var
        self.description = f"environment variable {env_var}"

    def get(self) -> Optional[str]:
        value = os.environ.get(self.env_var, "").strip()
        return value or None


class FileCredentialProvider(CredentialProvider):
    """Reads the first line of a secret file."""

    def __init__(self, file_path: Path):
        self.file_path = Path(file_path)
        self.description = f"secret file {self.file_path}"

    def get(self) -> Optional[str]:
        try:
            content = self.file_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            raise ArtifactAcquisitionError(
                f"Could not read secret file {self.file_path}: {e}"
            ) from e
        lines = content.strip().splitlines()
        if not lines:
            return None
        return lines[0].strip() or None


class PromptCredentialProvider(CredentialProvider):
    """Asks on the terminal with hidden input."""

    def __init__(self, prompt_text: str):
        self.prompt_text = prompt_text
        self.description = "interactive prompt"

    def get(self) -> Optional[str]:
        click.secho(
            "A Personal Access Token is required if the repository is private.",
            fg="yellow",
            err=True,
        )
        try:
            value = click.prompt(
                self.prompt_text,
                default="",
                show_default=False,
                hide_input=True,
                err=True,
            )
        except click.Abort:
            return None
        return value.strip() or None


class ChainCredentialProvider(CredentialProvider):
    """Returns the first credential any of its providers supplies."""

    def __init__(
        self,
        providers: List[CredentialProvider],
        logger: Optional[logging.Logger] = None,
    ):
        self.providers = providers
        self.logger = logger or module_logger
        self.description = " -> ".join(p.description for p in providers)

    def get(self) -> Optional[str]:
        for provider in self.providers:
            value = provider.get()
            if value:
                self.logger.info(f"Using credential from {provider.description}.")
                return value
        return None


def build_credential_provider(
    settings: CredentialSettings,
    logger: Optional[logging.Logger] = None,
) -> CredentialProvider:
    """Create the provider described by the credential settings."""
    env_provider = EnvCredentialProvider(settings.env_var)
    prompt_provider = PromptCredentialProvider(settings.prompt_text)

    if settings.source == "env":
        return env_provider
    if settings.source == "file":
        if settings.file_path is None:
            raise ValueError("credential.file_path is required when source is 'file'")
        return FileCredentialProvider(settings.file_path)
    if settings.source == "prompt":
        return prompt_provider

    providers: List[CredentialProvider] = [env_provider]
    if settings.file_path is not None:
        providers.append(FileCredentialProvider(settings.file_path))
    providers.append(prompt_provider)
    return ChainCredentialProvider(providers, logger)
