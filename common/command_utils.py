# common/command_utils.py
# -*- coding: utf-8 -*-
"""
Utilities for executing shell commands and logging their output.
"""

import logging
import os
import shutil
import subprocess
from typing import Dict, List, Optional, Sequence, Union

from kralpanel.config_models import SYMBOLS_DEFAULT, AppSettings

module_logger = logging.getLogger(__name__)

REDACTED = "********"


def log_message(
    message: str,
    level: str = "info",
    current_logger: Optional[logging.Logger] = None,
    app_settings: Optional[AppSettings] = None,
    exc_info: bool = False,
) -> None:
    """
    Logs a message at a named level.

    Args:
        message (str): The log message to be recorded.
        level (str): "debug", "info", "success", "warning", "error" or
            "critical". Unknown levels, including "success", map to info.
        current_logger (Optional[logging.Logger]): Logger to use. Falls back to
            the module logger.
        app_settings (Optional[AppSettings]): Accepted for call-site symmetry
            with the command helpers.
        exc_info (bool): Include exception information.
    """
    effective_logger = current_logger if current_logger else module_logger

    if level == "warning":
        effective_logger.warning(message, exc_info=exc_info)
    elif level == "error":
        effective_logger.error(message, exc_info=exc_info)
    elif level == "critical":
        effective_logger.critical(message, exc_info=exc_info)
    elif level == "debug":
        effective_logger.debug(message, exc_info=exc_info)
    else:
        effective_logger.info(message, exc_info=exc_info)


def get_symbols(app_settings: Optional[AppSettings]) -> Dict[str, str]:
    """Return the configured log symbols or the defaults."""
    if app_settings is not None and getattr(app_settings, "symbols", None):
        return app_settings.symbols
    return SYMBOLS_DEFAULT


def redact(text: str, secrets: Optional[Sequence[str]]) -> str:
    """Replace every non-empty secret in text with a fixed mask."""
    if not secrets:
        return text
    for secret in secrets:
        if secret:
            text = text.replace(secret, REDACTED)
    return text


def _get_elevated_command_prefix() -> List[str]:
    """
    Returns ["sudo"] when the process is not running as root, else [].
    """
    return [] if os.geteuid() == 0 else ["sudo"]


def run_command(
    command: Union[List[str], str],
    app_settings: Optional[AppSettings],
    check: bool = True,
    shell: bool = False,
    capture_output: bool = False,
    text: bool = True,
    cmd_input: Optional[str] = None,
    current_logger: Optional[logging.Logger] = None,
    cwd: Optional[str] = None,
    env: Optional[Dict[str, str]] = None,
    secrets: Optional[Sequence[str]] = None,
) -> subprocess.CompletedProcess:
    """
    Executes a system command and logs the command, its captured output and
    any failure.

    Args:
        command: The command to execute, as a list or a string. A list is
            joined when shell is True.
        app_settings: Settings providing log symbols.
        check: Raise CalledProcessError on a non-zero exit code.
        shell: Run through the shell.
        capture_output: Capture stdout and stderr.
        text: Decode output streams as text.
        cmd_input: Data sent to the command's standard input.
        current_logger: Logger to use. Falls back to the module logger.
        cwd: Working directory for the command.
        env: Full environment for the command. Inherits the parent's when None.
        secrets: Values masked in every logged line, e.g. access tokens
            embedded in a URL argument.

    Returns:
        subprocess.CompletedProcess: The completed process.

    Raises:
        subprocess.CalledProcessError: Non-zero exit with check=True.
        FileNotFoundError: The executable is not installed.
    """
    effective_logger = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)
    command_to_run: Union[List[str], str]

    if shell:
        if isinstance(command, list):
            command_to_run = " ".join(command)
        else:
            command_to_run = command
        command_to_log_str = str(command_to_run)
    else:
        if isinstance(command, str):
            log_message(
                f"{symbols.get('warning', '!')} Running string command '{redact(command, secrets)}' without shell=True. Consider list format.",
                "warning",
                effective_logger,
                app_settings,
            )
            command_to_run = command.split()
            command_to_log_str = command
        else:
            command_to_run = command
            command_to_log_str = subprocess.list2cmdline(command)

    command_to_log_str = redact(command_to_log_str, secrets)
    log_message(
        f"{symbols.get('gear', '⚙️')} Executing: {command_to_log_str} {f'(in {cwd})' if cwd else ''}",
        "info",
        effective_logger,
        app_settings,
    )
    try:
        result = subprocess.run(
            command_to_run,
            check=check,
            shell=shell,
            capture_output=capture_output,
            text=text,
            input=cmd_input,
            cwd=cwd,
            env=env,
        )
        if capture_output and text:
            if result.stdout and result.stdout.strip():
                log_message(
                    f"   stdout: {redact(result.stdout.strip(), secrets)}",
                    "debug",
                    effective_logger,
                    app_settings,
                )
            if result.stderr and result.stderr.strip():
                log_message(
                    f"   stderr: {redact(result.stderr.strip(), secrets)}",
                    "debug",
                    effective_logger,
                    app_settings,
                )
        return result
    except subprocess.CalledProcessError as e:
        log_message(
            f"{symbols.get('error', '❌')} Command `{command_to_log_str}` failed (rc {e.returncode}).",
            "error",
            effective_logger,
            app_settings,
        )
        for stream_name, stream in (("stdout", e.stdout), ("stderr", e.stderr)):
            if stream and hasattr(stream, "strip") and stream.strip():
                log_message(
                    f"   {stream_name}: {redact(stream.strip(), secrets)}",
                    "error",
                    effective_logger,
                    app_settings,
                )
        if secrets:
            # The exception text includes the raw argv.
            raise subprocess.CalledProcessError(
                e.returncode, command_to_log_str, e.stdout, e.stderr
            ) from None
        raise
    except FileNotFoundError as e:
        log_message(
            f"{symbols.get('error', '❌')} Command not found: {e.filename}. Ensure it's installed and in PATH.",
            "error",
            effective_logger,
            app_settings,
        )
        raise


def run_elevated_command(
    command: List[str],
    app_settings: Optional[AppSettings],
    check: bool = True,
    capture_output: bool = False,
    cmd_input: Optional[str] = None,
    current_logger: Optional[logging.Logger] = None,
    cwd: Optional[str] = None,
    env: Optional[Dict[str, str]] = None,
    secrets: Optional[Sequence[str]] = None,
) -> subprocess.CompletedProcess:
    """
    Executes a command with elevated permissions, prefixing it with sudo when
    the process is not already root. See run_command for the arguments.
    """
    prefix = _get_elevated_command_prefix()
    elevated_command_list = prefix + list(command)
    return run_command(
        elevated_command_list,
        app_settings,
        check=check,
        shell=False,
        capture_output=capture_output,
        text=True,
        cmd_input=cmd_input,
        current_logger=current_logger,
        cwd=cwd,
        env=env,
        secrets=secrets,
    )


def command_exists(
    command_name: str, search_path: Optional[str] = None
) -> bool:
    """
    Check if a command is discoverable on a PATH.

    Parameters:
        command_name (str): The executable name.
        search_path (Optional[str]): os.pathsep-separated directories to
            search. Uses the process PATH when None.

    Returns:
        bool: True if an executable is found.
    """
    return shutil.which(command_name, path=search_path) is not None

