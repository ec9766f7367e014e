# common/network_utils.py
# -*- coding: utf-8 -*-
"""
Network helpers: streamed downloads and public IP discovery.
"""

import hashlib
import ipaddress
import logging
from pathlib import Path
from typing import Optional, Union

import requests

from kralpanel.config_models import AppSettings

from .command_utils import get_symbols, log_message

module_logger = logging.getLogger(__name__)

DOWNLOAD_CHUNK_SIZE = 1024 * 64


class DownloadError(Exception):
    """Raised when a download fails or its checksum does not match."""


def download_file(
    url: str,
    destination: Union[str, Path],
    app_settings: Optional[AppSettings] = None,
    expected_sha256: Optional[str] = None,
    timeout: int = 300,
    current_logger: Optional[logging.Logger] = None,
) -> Path:
    """
    Streams url to destination, optionally verifying a SHA-256 checksum.

    Args:
        url: Source URL.
        destination: File path to write. Parent directories are created.
        app_settings: Settings providing log symbols.
        expected_sha256: Hex digest the payload must match.
        timeout: Connect/read timeout in seconds.
        current_logger: Logger to use.

    Returns:
        Path: The downloaded file.

    Raises:
        DownloadError: HTTP, connection or checksum failure. A partially
            written file is removed.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)
    dest = Path(destination)
    dest.parent.mkdir(parents=True, exist_ok=True)

    log_message(
        f"{symbols.get('info', 'ℹ️')} Downloading {url} ...",
        "info",
        logger_to_use,
        app_settings,
    )
    digest = hashlib.sha256()
    try:
        with requests.get(url, stream=True, timeout=timeout) as response:
            response.raise_for_status()
            with open(dest, "wb") as f:
                for chunk in response.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
                    if chunk:
                        f.write(chunk)
                        digest.update(chunk)
    except requests.exceptions.HTTPError as http_err:
        dest.unlink(missing_ok=True)
        raise DownloadError(f"HTTP error downloading {url}: {http_err}") from http_err
    except requests.exceptions.ConnectionError as conn_err:
        dest.unlink(missing_ok=True)
        raise DownloadError(f"Connection error downloading {url}: {conn_err}") from conn_err
    except requests.exceptions.Timeout as timeout_err:
        dest.unlink(missing_ok=True)
        raise DownloadError(f"Timeout downloading {url}: {timeout_err}") from timeout_err
    except requests.exceptions.RequestException as req_err:
        dest.unlink(missing_ok=True)
        raise DownloadError(f"Error downloading {url}: {req_err}") from req_err

    if expected_sha256:
        actual = digest.hexdigest()
        if actual.lower() != expected_sha256.strip().lower():
            dest.unlink(missing_ok=True)
            raise DownloadError(
                f"Checksum mismatch for {url}: expected {expected_sha256}, got {actual}"
            )

    log_message(
        f"{symbols.get('success', '✅')} Downloaded {url} to {dest}",
        "info",
        logger_to_use,
        app_settings,
    )
    return dest


def lookup_public_ip(
    lookup_url: str,
    timeout: int = 10,
    app_settings: Optional[AppSettings] = None,
    current_logger: Optional[logging.Logger] = None,
) -> Optional[str]:
    """
    Asks an external "what is my IP" service for this host's public address.

    Returns:
        The address, or None when the service is unreachable or answers with
        something that is not an IP address.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)
    try:
        response = requests.get(lookup_url, timeout=timeout)
        response.raise_for_status()
        candidate = response.text.strip()
        ipaddress.ip_address(candidate)
        return candidate
    except requests.exceptions.RequestException as e:
        log_message(
            f"{symbols.get('warning', '!')} Public IP lookup via {lookup_url} failed: {e}",
            "warning",
            logger_to_use,
            app_settings,
        )
    except ValueError:
        log_message(
            f"{symbols.get('warning', '!')} Public IP lookup via {lookup_url} returned an invalid address.",
            "warning",
            logger_to_use,
            app_settings,
        )
    return None
