"""
KralPanel host provisioner.

This package installs and configures everything the KralPanel hosting panel
needs on an Ubuntu host, as an ordered series of registered steps.
"""

from kralpanel.base_step import BaseStep
from kralpanel.registry import StepRegistry

__all__ = ["BaseStep", "StepRegistry"]
