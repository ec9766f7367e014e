# kralpanel/context.py
# -*- coding: utf-8 -*-
"""
Data handed from one provisioning step to the next.

Steps never mutate os.environ or change the working directory; anything a
later step needs (extra PATH entries, the acquired artifact, the detected
address) is recorded on the ProvisionContext.
"""

import os
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class OsInfo(BaseModel):
    """Fields of interest from /etc/os-release."""

    id: str
    version_id: str = ""
    name: str = ""
    version: str = ""
    id_like: List[str] = Field(default_factory=list)

    @classmethod
    def from_os_release(cls, values: Dict[str, str]) -> "OsInfo":
        return cls(
            id=values.get("ID", "").strip().lower(),
            version_id=values.get("VERSION_ID", ""),
            name=values.get("NAME", ""),
            version=values.get("VERSION", ""),
            id_like=values.get("ID_LIKE", "").lower().split(),
        )


class AcquiredArtifact(BaseModel):
    """Where the application payload ended up on disk."""

    install_dir: Path
    backend_dir: Path
    backend_executable: Path
    frontend_dir: Path
    built_from_source: bool = False


class ProvisionContext(BaseModel):
    """Explicit state shared between steps of a single run."""

    os_info: Optional[OsInfo] = None
    extra_path: List[str] = Field(default_factory=list)
    artifact: Optional[AcquiredArtifact] = None
    public_ip: Optional[str] = None

    def add_to_path(self, directory: Path) -> None:
        entry = str(directory)
        if entry not in self.extra_path:
            self.extra_path.append(entry)

    def search_path(self) -> str:
        """PATH to use for executable discovery and child processes."""
        base = os.environ.get("PATH", os.defpath)
        return os.pathsep.join(self.extra_path + [base])

    def command_env(self, **overrides: str) -> Dict[str, str]:
        """Environment for child processes with extra_path applied."""
        env = dict(os.environ)
        env["PATH"] = self.search_path()
        env.update(overrides)
        return env


class ProvisionResult(BaseModel):
    """Outcome of a Provisioner run."""

    success: bool
    failed_step: Optional[str] = None
    message: str = ""
    completed_steps: List[str] = Field(default_factory=list)
