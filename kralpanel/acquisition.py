# kralpanel/acquisition.py
# -*- coding: utf-8 -*-
"""
Artifact acquisition strategies.

Both strategies produce the same on-disk layout under the install directory:

    <install_dir>/<backend_subdir>/<backend_executable_name>
    <install_dir>/<frontend_subdir>/

``prebuilt`` downloads and unpacks a release archive; ``source`` clones the
repository with an access token and builds the backend with Go. Both clear
the install directory first, so a re-run replaces rather than merges.
"""

import logging
import subprocess
import tarfile
import tempfile
import zipfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional

from common.command_utils import command_exists, log_message, run_command
from common.file_utils import cleanup_directory, extract_archive
from common.network_utils import DownloadError, download_file
from kralpanel.config_models import AppSettings, ArtifactSettings
from kralpanel.context import AcquiredArtifact, ProvisionContext
from kralpanel.credentials import CredentialProvider, build_credential_provider
from kralpanel.errors import ArtifactAcquisitionError


def artifact_layout(
    settings: ArtifactSettings, built_from_source: bool = False
) -> AcquiredArtifact:
    """The expected artifact paths for the configured install directory."""
    backend_dir = settings.install_dir / settings.backend_subdir
    return AcquiredArtifact(
        install_dir=settings.install_dir,
        backend_dir=backend_dir,
        backend_executable=backend_dir / settings.backend_executable_name,
        frontend_dir=settings.install_dir / settings.frontend_subdir,
        built_from_source=built_from_source,
    )


class AcquisitionStrategy(ABC):
    """Puts the application payload into the install directory."""

    strategy_name: str = ""

    def __init__(
        self,
        app_settings: AppSettings,
        logger: Optional[logging.Logger] = None,
    ):
        self.app_settings = app_settings
        self.settings = app_settings.artifact
        self.logger = logger or logging.getLogger(self.__class__.__name__)

    @abstractmethod
    def acquire(self, context: ProvisionContext) -> AcquiredArtifact:
        """
        Raises:
            ArtifactAcquisitionError: Any part of the acquisition failed.
        """

    def _verify_backend(self, artifact: AcquiredArtifact) -> AcquiredArtifact:
        if not artifact.backend_executable.is_file():
            raise ArtifactAcquisitionError(
                f"Backend executable not found at {artifact.backend_executable}."
            )
        return artifact

    def _clear_install_dir(self) -> None:
        try:
            cleanup_directory(
                self.settings.install_dir,
                self.app_settings,
                current_logger=self.logger,
            )
        except OSError as e:
            raise ArtifactAcquisitionError(
                f"Could not clear install directory {self.settings.install_dir}: {e}"
            ) from e


class PrebuiltArchiveStrategy(AcquisitionStrategy):
    """Downloads a release archive and extracts it into the install directory."""

    strategy_name = "prebuilt"

    def acquire(self, context: ProvisionContext) -> AcquiredArtifact:
        url = str(self.settings.archive_url)
        with tempfile.TemporaryDirectory(prefix="kralpanel-artifact-") as tmp_dir:
            archive_name = url.rstrip("/").rsplit("/", 1)[-1] or "artifact"
            try:
                archive_path = download_file(
                    url,
                    Path(tmp_dir) / archive_name,
                    self.app_settings,
                    expected_sha256=self.settings.archive_sha256,
                    timeout=self.settings.download_timeout,
                    current_logger=self.logger,
                )
            except DownloadError as e:
                raise ArtifactAcquisitionError(str(e)) from e

            # Only clear the old install once a good archive is on disk.
            self._clear_install_dir()
            try:
                extract_archive(
                    archive_path,
                    self.settings.install_dir,
                    strip_components=self.settings.archive_strip_components,
                    app_settings=self.app_settings,
                    current_logger=self.logger,
                )
            except (OSError, ValueError) as e:
                raise ArtifactAcquisitionError(
                    f"Failed to extract {archive_name}: {e}"
                ) from e
            except (tarfile.TarError, zipfile.BadZipFile) as e:
                raise ArtifactAcquisitionError(
                    f"Corrupt archive {archive_name}: {e}"
                ) from e

        return self._verify_backend(artifact_layout(self.settings))


class SourceBuildStrategy(AcquisitionStrategy):
    """Clones the repository with an access token and builds the backend."""

    strategy_name = "source"

    def __init__(
        self,
        app_settings: AppSettings,
        logger: Optional[logging.Logger] = None,
        credential_provider: Optional[CredentialProvider] = None,
    ):
        super().__init__(app_settings, logger)
        self.credential_provider = (
            credential_provider
            or build_credential_provider(self.settings.credential, self.logger)
        )

    def _repo_path(self) -> str:
        repo_url = self.settings.repo_url
        for scheme in ("https://", "http://"):
            if repo_url.startswith(scheme):
                repo_url = repo_url[len(scheme):]
        return repo_url

    def public_url(self) -> str:
        return f"https://{self._repo_path()}"

    def authenticated_url(self, token: str) -> str:
        return f"https://{token}@{self._repo_path()}"

    def acquire(self, context: ProvisionContext) -> AcquiredArtifact:
        token = self.credential_provider.get()
        if not token:
            raise ArtifactAcquisitionError(
                "Token cannot be empty for private repository."
            )

        self._clear_install_dir()
        self.settings.install_dir.parent.mkdir(parents=True, exist_ok=True)

        log_message(
            f"Cloning from {self.settings.repo_url}...",
            "info",
            self.logger,
            self.app_settings,
        )
        clone_cmd: List[str] = ["git", "clone", "-q", "--depth", "1"]
        if self.settings.repo_branch:
            clone_cmd += ["--branch", self.settings.repo_branch]
        clone_cmd += [self.authenticated_url(token), str(self.settings.install_dir)]
        try:
            run_command(
                clone_cmd,
                self.app_settings,
                current_logger=self.logger,
                env=context.command_env(GIT_TERMINAL_PROMPT="0"),
                secrets=[token],
            )
        except (subprocess.CalledProcessError, OSError) as e:
            raise ArtifactAcquisitionError(
                "Failed to clone repository. Check your Token and URL."
            ) from e
        self._scrub_remote_credentials(token, context)

        artifact = artifact_layout(self.settings, built_from_source=True)
        self.build_backend(artifact, context)
        return self._verify_backend(artifact)

    def _scrub_remote_credentials(
        self, token: str, context: ProvisionContext
    ) -> None:
        """Point origin back at the token-free URL so .git/config holds no secret."""
        try:
            run_command(
                [
                    "git",
                    "-C",
                    str(self.settings.install_dir),
                    "remote",
                    "set-url",
                    "origin",
                    self.public_url(),
                ],
                self.app_settings,
                current_logger=self.logger,
                env=context.command_env(GIT_TERMINAL_PROMPT="0"),
                secrets=[token],
            )
        except (subprocess.CalledProcessError, OSError) as e:
            # Never leave a checkout behind that still embeds the token.
            self._clear_install_dir()
            raise ArtifactAcquisitionError(
                "Failed to remove the access token from the cloned repository's remote."
            ) from e

    def _ensure_go_on_path(self, context: ProvisionContext) -> None:
        go_bin_dir = self.app_settings.runtimes.go_bin_dir
        if command_exists("go", context.search_path()):
            return
        if (go_bin_dir / "go").is_file():
            context.add_to_path(go_bin_dir)

    def build_backend(
        self, artifact: AcquiredArtifact, context: ProvisionContext
    ) -> None:
        log_message(
            "Building Backend API...", "info", self.logger, self.app_settings
        )
        self._ensure_go_on_path(context)
        try:
            run_command(
                [
                    "go",
                    "build",
                    "-o",
                    self.settings.backend_executable_name,
                    self.settings.build_target,
                ],
                self.app_settings,
                current_logger=self.logger,
                cwd=str(artifact.backend_dir),
                env=context.command_env(),
            )
        except (subprocess.CalledProcessError, OSError) as e:
            raise ArtifactAcquisitionError(
                f"Failed to build backend in {artifact.backend_dir}: {e}"
            ) from e


STRATEGIES = {
    PrebuiltArchiveStrategy.strategy_name: PrebuiltArchiveStrategy,
    SourceBuildStrategy.strategy_name: SourceBuildStrategy,
}


def build_strategy(
    app_settings: AppSettings,
    logger: Optional[logging.Logger] = None,
    credential_provider: Optional[CredentialProvider] = None,
) -> AcquisitionStrategy:
    """Instantiate the strategy selected by artifact.strategy."""
    name = app_settings.artifact.strategy
    if name == SourceBuildStrategy.strategy_name:
        return SourceBuildStrategy(app_settings, logger, credential_provider)
    if name in STRATEGIES:
        return STRATEGIES[name](app_settings, logger)
    raise ValueError(f"Unknown acquisition strategy '{name}'")
