# kralpanel/errors.py
# -*- coding: utf-8 -*-
"""
Exception hierarchy raised by provisioning steps.

Every error is fatal for the current run. The Provisioner converts the first
one raised into a failed ProvisionResult.
"""

from typing import Optional


class ProvisionError(Exception):
    """Base class for all provisioning failures."""

    def __init__(self, message: str, step: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.step = step


class ConfigurationError(ProvisionError):
    """The installer settings could not be loaded or validated."""


class PrivilegeError(ProvisionError):
    """The installer is not running with superuser privileges."""


class ConcurrentRunError(ProvisionError):
    """Another installer run holds the lock on this host."""


class UnsupportedPlatformError(ProvisionError):
    """The host OS is missing identification or is not in the allow-list."""


class PackageInstallationError(ProvisionError):
    """A package set from the install manifest could not be installed."""


class RuntimeInstallationError(PackageInstallationError):
    """A language runtime or global tool could not be installed."""


class ArtifactAcquisitionError(ProvisionError):
    """Download, extraction, clone or build of the application failed."""


class ServiceStartError(ProvisionError):
    """The backend service could not be registered or started."""


class FrontendError(ProvisionError):
    """The frontend could not be prepared or started under pm2."""


class ProxyConfigError(ProvisionError):
    """The nginx site could not be written, validated or reloaded."""
