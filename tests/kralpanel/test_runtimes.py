import subprocess
from unittest.mock import ANY, MagicMock

import pytest

from common.network_utils import DownloadError
from kralpanel.context import ProvisionContext
from kralpanel.errors import RuntimeInstallationError
from kralpanel.steps.runtimes import RuntimeInstallStep


@pytest.fixture
def mocks(mocker):
    return {
        "command_exists": mocker.patch(
            "kralpanel.steps.runtimes.command_exists", return_value=True
        ),
        "download_file": mocker.patch("kralpanel.steps.runtimes.download_file"),
        "extract_archive": mocker.patch("kralpanel.steps.runtimes.extract_archive"),
        "cleanup_directory": mocker.patch(
            "kralpanel.steps.runtimes.cleanup_directory"
        ),
        "run_command": mocker.patch("kralpanel.steps.runtimes.run_command"),
        "run_elevated_command": mocker.patch(
            "kralpanel.steps.runtimes.run_elevated_command"
        ),
        "AptManager": mocker.patch("kralpanel.steps.runtimes.AptManager"),
    }


def test_present_runtimes_are_not_reinstalled(app_settings, mock_logger, mocks):
    RuntimeInstallStep(app_settings, mock_logger).run(ProvisionContext())

    mocks["download_file"].assert_not_called()
    mocks["run_command"].assert_not_called()
    mocks["run_elevated_command"].assert_called_once_with(
        ["npm", "install", "-g", "--silent", "pm2"],
        app_settings,
        current_logger=mock_logger,
        env=ANY,
    )


def test_go_found_in_install_root_is_added_to_path(app_settings, mock_logger, mocks):
    mocks["command_exists"].return_value = False
    go_bin_dir = app_settings.runtimes.go_bin_dir
    go_bin_dir.mkdir(parents=True)
    (go_bin_dir / "go").write_text("")
    context = ProvisionContext()

    RuntimeInstallStep(app_settings, mock_logger).ensure_go(context)

    assert context.extra_path == [str(go_bin_dir)]
    mocks["download_file"].assert_not_called()


def test_go_is_downloaded_and_extracted(app_settings, mock_logger, mocks):
    mocks["command_exists"].return_value = False
    runtimes = app_settings.runtimes
    go_bin_dir = runtimes.go_bin_dir

    def fake_extract(archive, destination, **kwargs):
        go_bin_dir.mkdir(parents=True)
        (go_bin_dir / "go").write_text("")
        return destination

    mocks["extract_archive"].side_effect = fake_extract
    context = ProvisionContext()

    RuntimeInstallStep(app_settings, mock_logger).ensure_go(context)

    assert (
        mocks["download_file"].call_args.args[0]
        == "https://go.dev/dl/go1.22.0.linux-amd64.tar.gz"
    )
    mocks["cleanup_directory"].assert_called_once_with(
        runtimes.go_install_root / "go", app_settings, current_logger=mock_logger
    )
    assert mocks["extract_archive"].call_args.args[1] == runtimes.go_install_root
    assert context.extra_path == [str(go_bin_dir)]
    assert str(go_bin_dir) in context.command_env()["PATH"].split(":")


def test_go_download_failure(app_settings, mock_logger, mocks):
    mocks["command_exists"].return_value = False
    mocks["download_file"].side_effect = DownloadError("Timeout")

    with pytest.raises(RuntimeInstallationError, match="Failed to install Go"):
        RuntimeInstallStep(app_settings, mock_logger).ensure_go(ProvisionContext())
    mocks["extract_archive"].assert_not_called()


def test_go_archive_without_binary(app_settings, mock_logger, mocks):
    mocks["command_exists"].return_value = False

    with pytest.raises(RuntimeInstallationError, match="did not contain"):
        RuntimeInstallStep(app_settings, mock_logger).ensure_go(ProvisionContext())


def test_nodejs_installed_from_nodesource(app_settings, mock_logger, mocks):
    mocks["command_exists"].side_effect = [False, True]
    mocks["run_command"].return_value = MagicMock(stdout="#!/bin/bash\necho setup\n")
    mocks["AptManager"].return_value.install.return_value = True

    RuntimeInstallStep(app_settings, mock_logger).ensure_nodejs(ProvisionContext())

    assert mocks["run_command"].call_args.args[0] == [
        "curl",
        "-fsSL",
        "https://deb.nodesource.com/setup_20.x",
    ]
    mocks["run_elevated_command"].assert_called_once_with(
        ["bash", "-"],
        app_settings,
        cmd_input="#!/bin/bash\necho setup\n",
        current_logger=mock_logger,
        env=ANY,
    )
    mocks["AptManager"].return_value.install.assert_called_once_with(
        "nodejs", app_settings, update_first=False
    )


def test_nodejs_setup_script_failure(app_settings, mock_logger, mocks):
    mocks["command_exists"].return_value = False
    mocks["run_command"].side_effect = subprocess.CalledProcessError(22, "curl")

    with pytest.raises(RuntimeInstallationError, match="NodeSource"):
        RuntimeInstallStep(app_settings, mock_logger).ensure_nodejs(
            ProvisionContext()
        )
    mocks["AptManager"].return_value.install.assert_not_called()


def test_nodejs_package_failure(app_settings, mock_logger, mocks):
    mocks["command_exists"].return_value = False
    mocks["run_command"].return_value = MagicMock(stdout="")
    mocks["AptManager"].return_value.install.return_value = False

    with pytest.raises(RuntimeInstallationError, match="nodejs"):
        RuntimeInstallStep(app_settings, mock_logger).ensure_nodejs(
            ProvisionContext()
        )


def test_npm_global_failure(app_settings, mock_logger, mocks):
    mocks["run_elevated_command"].side_effect = subprocess.CalledProcessError(
        1, "npm"
    )

    with pytest.raises(RuntimeInstallationError, match="pm2"):
        RuntimeInstallStep(app_settings, mock_logger).run(ProvisionContext())
