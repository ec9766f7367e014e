import subprocess
from unittest.mock import MagicMock

import pytest

from common.command_utils import (
    REDACTED,
    command_exists,
    log_message,
    redact,
    run_command,
    run_elevated_command,
)

TOKEN = "ghp_s3cr3tT0ken"
CLONE_URL = f"https://{TOKEN}@github.com/kubilayyil/mimipanel.git"


@pytest.fixture
def mock_subprocess_run(mocker):
    return mocker.patch("common.command_utils.subprocess.run")


def _all_logged_text(mock_logger):
    calls = (
        mock_logger.debug.call_args_list
        + mock_logger.info.call_args_list
        + mock_logger.warning.call_args_list
        + mock_logger.error.call_args_list
    )
    return "\n".join(str(c.args[0]) for c in calls)


def test_redact_masks_every_occurrence():
    """Test that each secret is replaced wherever it appears."""
    text = f"clone {CLONE_URL} failed for {TOKEN}"
    assert redact(text, [TOKEN]) == (
        f"clone https://{REDACTED}@github.com/kubilayyil/mimipanel.git failed for {REDACTED}"
    )


def test_redact_ignores_empty_secrets():
    assert redact("nothing to hide", ["", None]) == "nothing to hide"
    assert redact("nothing to hide", None) == "nothing to hide"


def test_log_message_levels(mock_logger):
    """Test that named levels map to logger methods."""
    log_message("careful", "warning", mock_logger)
    log_message("done", "success", mock_logger)
    log_message("broken", "error", mock_logger)

    mock_logger.warning.assert_called_once_with("careful", exc_info=False)
    mock_logger.info.assert_called_once_with("done", exc_info=False)
    mock_logger.error.assert_called_once_with("broken", exc_info=False)


def test_run_command_logs_command_with_secrets_masked(
    mock_subprocess_run, mock_logger
):
    """Test that a token inside an argument never reaches the log."""
    mock_subprocess_run.return_value = MagicMock(
        returncode=0, stdout=f"cloned {CLONE_URL}", stderr=""
    )

    run_command(
        ["git", "clone", CLONE_URL, "/opt/kralpanel"],
        None,
        capture_output=True,
        current_logger=mock_logger,
        secrets=[TOKEN],
    )

    logged = _all_logged_text(mock_logger)
    assert TOKEN not in logged
    assert REDACTED in logged
    # The real command still carries the credential.
    assert mock_subprocess_run.call_args.args[0][2] == CLONE_URL


def test_run_command_failure_masks_secrets_in_exception(
    mock_subprocess_run, mock_logger
):
    """Test that the re-raised error does not carry the raw token."""
    mock_subprocess_run.side_effect = subprocess.CalledProcessError(
        128,
        ["git", "clone", CLONE_URL, "/opt/kralpanel"],
        output="",
        stderr=f"fatal: could not read from {CLONE_URL}",
    )

    with pytest.raises(subprocess.CalledProcessError) as excinfo:
        run_command(
            ["git", "clone", CLONE_URL, "/opt/kralpanel"],
            None,
            current_logger=mock_logger,
            secrets=[TOKEN],
        )

    assert excinfo.value.returncode == 128
    assert TOKEN not in str(excinfo.value)
    assert TOKEN not in _all_logged_text(mock_logger)


def test_run_command_failure_without_secrets_reraises_original(
    mock_subprocess_run, mock_logger
):
    error = subprocess.CalledProcessError(1, ["false"])
    mock_subprocess_run.side_effect = error

    with pytest.raises(subprocess.CalledProcessError) as excinfo:
        run_command(["false"], None, current_logger=mock_logger)

    assert excinfo.value is error
    mock_logger.error.assert_called()


def test_run_command_not_found(mock_subprocess_run, mock_logger):
    """Test that a missing executable is logged and re-raised."""
    mock_subprocess_run.side_effect = FileNotFoundError(
        2, "No such file or directory", "nosuchtool"
    )

    with pytest.raises(FileNotFoundError):
        run_command(["nosuchtool"], None, current_logger=mock_logger)

    assert "nosuchtool" in mock_logger.error.call_args.args[0]


def test_run_command_passes_cwd_env_and_input(mock_subprocess_run):
    mock_subprocess_run.return_value = MagicMock(returncode=0)

    run_command(
        ["bash", "-"],
        None,
        cmd_input="echo hi",
        cwd="/tmp",
        env={"PATH": "/usr/bin"},
    )

    kwargs = mock_subprocess_run.call_args.kwargs
    assert kwargs["input"] == "echo hi"
    assert kwargs["cwd"] == "/tmp"
    assert kwargs["env"] == {"PATH": "/usr/bin"}
    assert kwargs["check"] is True


def test_run_elevated_command_adds_sudo_when_not_root(mocker):
    mocker.patch("common.command_utils.os.geteuid", return_value=1000)
    mock_run = mocker.patch("common.command_utils.run_command")

    run_elevated_command(["systemctl", "daemon-reload"], None)

    assert mock_run.call_args.args[0] == ["sudo", "systemctl", "daemon-reload"]


def test_run_elevated_command_as_root_runs_directly(mocker):
    mocker.patch("common.command_utils.os.geteuid", return_value=0)
    mock_run = mocker.patch("common.command_utils.run_command")

    run_elevated_command(["systemctl", "daemon-reload"], None)

    assert mock_run.call_args.args[0] == ["systemctl", "daemon-reload"]


def test_command_exists_honours_search_path(tmp_path):
    """Test that discovery uses the given PATH rather than the process one."""
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    tool = bin_dir / "kralpanel-test-tool"
    tool.write_text("#!/bin/sh\n")
    tool.chmod(0o755)

    assert command_exists("kralpanel-test-tool", str(bin_dir)) is True
    assert command_exists("kralpanel-test-tool", str(tmp_path)) is False

