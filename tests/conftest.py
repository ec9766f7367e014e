# tests/conftest.py
import logging
from unittest.mock import MagicMock

import pytest

from kralpanel.config_models import AppSettings
from kralpanel.provisioner import load_all_steps

# Register the real steps once, before any test swaps the registry contents.
load_all_steps()


@pytest.fixture
def mock_logger():
    """Fixture to create a mock logger for testing."""
    return MagicMock(spec=logging.Logger)


@pytest.fixture
def app_settings(tmp_path):
    """Settings with every host path redirected under tmp_path."""
    return AppSettings(
        lock_file=tmp_path / "run" / "kralpanel-install.lock",
        os={"os_release_path": tmp_path / "os-release"},
        runtimes={"go_install_root": tmp_path / "usr-local"},
        artifact={"install_dir": tmp_path / "opt" / "kralpanel"},
        service={"unit_dir": tmp_path / "systemd"},
        proxy={
            "sites_available_dir": tmp_path / "nginx" / "sites-available",
            "sites_enabled_dir": tmp_path / "nginx" / "sites-enabled",
        },
    )
