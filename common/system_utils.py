# common/system_utils.py
# -*- coding: utf-8 -*-
"""
System-level utility functions: privilege and platform detection, systemd
control, and local address discovery.
"""

import logging
import os
import socket
from pathlib import Path
from typing import Dict, Optional

from kralpanel.config_models import AppSettings

from .command_utils import get_symbols, log_message, run_elevated_command

module_logger = logging.getLogger(__name__)


def is_superuser() -> bool:
    """True when the effective uid is 0."""
    return os.geteuid() == 0


def parse_os_release(content: str) -> Dict[str, str]:
    """
    Parses os-release(5) content into a dict.

    Lines are KEY=VALUE; values may be single- or double-quoted. Comments and
    malformed lines are ignored.
    """
    values: Dict[str, str] = {}
    for raw_line in content.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
            value = value[1:-1]
            value = (
                value.replace('\\"', '"')
                .replace("\\$", "$")
                .replace("\\`", "`")
                .replace("\\\\", "\\")
            )
        values[key.strip()] = value
    return values


def read_os_release(os_release_path: Path) -> Dict[str, str]:
    """
    Reads and parses an os-release file.

    Raises:
        FileNotFoundError: The file does not exist.
    """
    with open(os_release_path, "r", encoding="utf-8") as f:
        return parse_os_release(f.read())


def systemd_reload(
    app_settings: AppSettings, current_logger: Optional[logging.Logger] = None
) -> None:
    """
    Reloads the systemd manager configuration.

    Raises:
        subprocess.CalledProcessError: systemctl failed.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)
    log_message(
        f"{symbols.get('gear', '⚙️')} Reloading systemd daemon...",
        "info",
        logger_to_use,
        app_settings,
    )
    run_elevated_command(
        ["systemctl", "daemon-reload"],
        app_settings,
        current_logger=logger_to_use,
    )


def is_service_active(
    service_name: str,
    app_settings: AppSettings,
    current_logger: Optional[logging.Logger] = None,
) -> bool:
    """True when `systemctl is-active` reports the unit active."""
    result = run_elevated_command(
        ["systemctl", "is-active", service_name],
        app_settings,
        capture_output=True,
        check=False,
        current_logger=current_logger,
    )
    return result.returncode == 0


def get_primary_ip_address(
    app_settings: Optional[AppSettings] = None,
    current_logger: Optional[logging.Logger] = None,
) -> Optional[str]:
    """
    Get the address of the interface used for the default route.

    A UDP socket is "connected" to an external address (no packet is sent)
    and the local end of it is read back.

    Returns:
        The address as a string, or None if it cannot be determined.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as s:
            s.connect(("8.8.8.8", 80))
            return str(s.getsockname()[0])
    except OSError as e:
        log_message(
            f"{symbols.get('warning', '!')} Could not determine primary IP address: {e}",
            "warning",
            logger_to_use,
            app_settings,
        )
        return None
