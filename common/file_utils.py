# common/file_utils.py
# -*- coding: utf-8 -*-
"""
File system utility functions: cleaning directories, atomic writes and
symlink swaps, archive extraction and the run lock.
"""

import contextlib
import errno
import fcntl
import logging
import os
import shutil
import stat
import tarfile
import tempfile
import zipfile
from pathlib import Path, PurePosixPath
from typing import Iterator, Optional, Union

from kralpanel.config_models import AppSettings

from .command_utils import get_symbols, log_message

module_logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class LockHeldError(RuntimeError):
    """Raised when the run lock is already held by another process."""


def cleanup_directory(
    directory_path: Path,
    app_settings: Optional[AppSettings],
    ensure_dir_exists_after: bool = False,
    current_logger: Optional[logging.Logger] = None,
) -> None:
    """
    Removes a directory and all of its contents, optionally recreating it
    empty.

    Parameters:
        directory_path (Path): The directory to remove.
        app_settings (Optional[AppSettings]): Settings providing log symbols.
        ensure_dir_exists_after (bool): Recreate the directory afterwards.
        current_logger (Optional[logging.Logger]): Logger to use.

    Raises:
        NotADirectoryError: The path exists but is not a directory.
        OSError: Removal or creation failed.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)

    if directory_path.is_symlink() or directory_path.is_file():
        raise NotADirectoryError(
            f"Path {directory_path} exists but is not a directory."
        )
    if directory_path.exists():
        shutil.rmtree(directory_path)
        log_message(
            f"{symbols.get('success', '✅')} Removed directory and its contents: {directory_path}",
            "info",
            logger_to_use,
            app_settings,
        )
    else:
        log_message(
            f"Directory {directory_path} does not exist. No cleanup needed.",
            "debug",
            logger_to_use,
            app_settings,
        )

    if ensure_dir_exists_after:
        directory_path.mkdir(parents=True, exist_ok=True)


def write_file_atomic(
    file_path: PathLike,
    content: str,
    mode: int = 0o644,
    app_settings: Optional[AppSettings] = None,
    current_logger: Optional[logging.Logger] = None,
) -> Path:
    """
    Writes content to a temporary file beside file_path and renames it into
    place, so readers see either the old or the new file, never a partial one.

    Returns:
        Path: The written path.
    """
    logger_to_use = current_logger if current_logger else module_logger
    target = Path(file_path)
    target.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{target.name}.", suffix=".tmp", dir=str(target.parent)
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        os.chmod(tmp_name, mode)
        os.replace(tmp_name, target)
    except BaseException:
        with contextlib.suppress(FileNotFoundError):
            os.unlink(tmp_name)
        raise

    log_message(
        f"Wrote {target} ({len(content)} bytes)",
        "debug",
        logger_to_use,
        app_settings,
    )
    return target


def replace_symlink(
    target: PathLike,
    link_path: PathLike,
    app_settings: Optional[AppSettings] = None,
    current_logger: Optional[logging.Logger] = None,
) -> Path:
    """
    Points link_path at target by renaming a freshly created symlink over it.
    """
    logger_to_use = current_logger if current_logger else module_logger
    link = Path(link_path)
    link.parent.mkdir(parents=True, exist_ok=True)
    tmp_link = link.with_name(f".{link.name}.{os.getpid()}.tmp")

    with contextlib.suppress(FileNotFoundError):
        os.unlink(tmp_link)
    os.symlink(str(target), tmp_link)
    try:
        os.replace(tmp_link, link)
    except BaseException:
        with contextlib.suppress(FileNotFoundError):
            os.unlink(tmp_link)
        raise

    log_message(
        f"Linked {link} -> {target}", "debug", logger_to_use, app_settings
    )
    return link


def _safe_member_path(
    name: str, destination: Path, strip_components: int
) -> Optional[Path]:
    """
    Maps an archive member name onto destination. Returns None for members
    consumed entirely by strip_components.

    Raises:
        ValueError: The member would land outside destination.
    """
    parts = [p for p in PurePosixPath(name).parts if p not in ("", ".")]
    if parts and parts[0] == "/":
        parts = parts[1:]
    parts = parts[strip_components:]
    if not parts:
        return None
    if ".." in parts:
        raise ValueError(f"Archive member escapes destination: {name}")
    resolved = destination.joinpath(*parts)
    if destination.resolve() not in resolved.resolve().parents:
        raise ValueError(f"Archive member escapes destination: {name}")
    return resolved


def _write_symlink(
    name: str, link_target: str, member_path: Path, destination: Path
) -> None:
    """
    Creates member_path as a symlink to link_target.

    Raises:
        ValueError: The link would point outside destination.
    """
    resolved = (member_path.parent / link_target).resolve()
    if destination.resolve() not in resolved.parents:
        raise ValueError(f"Archive symlink escapes destination: {name}")
    member_path.parent.mkdir(parents=True, exist_ok=True)
    if member_path.is_symlink() or member_path.exists():
        member_path.unlink()
    os.symlink(link_target, member_path)


def _open_for_write(member_path: Path):
    member_path.parent.mkdir(parents=True, exist_ok=True)
    # Never write through a link left by an earlier member.
    if member_path.is_symlink():
        member_path.unlink()
    return open(member_path, "wb")


def extract_archive(
    archive_path: PathLike,
    destination: PathLike,
    strip_components: int = 0,
    app_settings: Optional[AppSettings] = None,
    current_logger: Optional[logging.Logger] = None,
) -> Path:
    """
    Extracts a .tar, .tar.gz/.tgz or .zip archive into destination.

    Regular files, directories and in-tree symlinks are extracted; file modes
    are preserved. Hard links, device nodes, FIFOs and members resolving
    outside destination are rejected.

    Raises:
        ValueError: Unsupported format, unsupported member type or unsafe
            member path.
        tarfile.TarError, zipfile.BadZipFile: Corrupt archive.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)
    archive = Path(archive_path)
    dest = Path(destination)
    dest.mkdir(parents=True, exist_ok=True)

    log_message(
        f"{symbols.get('package', '📦')} Extracting {archive.name} into {dest}",
        "info",
        logger_to_use,
        app_settings,
    )

    if zipfile.is_zipfile(archive):
        with zipfile.ZipFile(archive, "r") as zip_ref:
            for info in zip_ref.infolist():
                member_path = _safe_member_path(
                    info.filename, dest, strip_components
                )
                if member_path is None:
                    continue
                if info.is_dir():
                    member_path.mkdir(parents=True, exist_ok=True)
                    continue
                unix_mode = info.external_attr >> 16
                if stat.S_ISLNK(unix_mode):
                    link_target = zip_ref.read(info).decode("utf-8")
                    _write_symlink(info.filename, link_target, member_path, dest)
                    continue
                # Archivers that record no unix attributes leave the type as 0.
                if stat.S_IFMT(unix_mode) not in (0, stat.S_IFREG):
                    raise ValueError(
                        f"Unsupported archive member type: {info.filename}"
                    )
                with zip_ref.open(info) as src, _open_for_write(member_path) as dst:
                    shutil.copyfileobj(src, dst)
                if unix_mode & 0o7777:
                    os.chmod(member_path, unix_mode & 0o7777)
        return dest

    if tarfile.is_tarfile(archive):
        with tarfile.open(archive, "r:*") as tar_ref:
            for member in tar_ref.getmembers():
                member_path = _safe_member_path(
                    member.name, dest, strip_components
                )
                if member_path is None:
                    continue
                if member.isdir():
                    member_path.mkdir(parents=True, exist_ok=True)
                elif member.isfile():
                    extracted = tar_ref.extractfile(member)
                    if extracted is None:
                        raise ValueError(
                            f"Archive member has no data: {member.name}"
                        )
                    with extracted as src, _open_for_write(member_path) as dst:
                        shutil.copyfileobj(src, dst)
                    os.chmod(member_path, member.mode & 0o7777)
                elif member.issym():
                    _write_symlink(member.name, member.linkname, member_path, dest)
                else:
                    raise ValueError(
                        f"Unsupported archive member type: {member.name}"
                    )
        return dest

    raise ValueError(f"Unsupported archive format: {archive}")


@contextlib.contextmanager
def exclusive_lock(lock_path: PathLike) -> Iterator[Path]:
    """
    Holds a non-blocking exclusive flock on lock_path for the duration of the
    block.

    Raises:
        LockHeldError: Another process holds the lock.
    """
    path = Path(lock_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd = os.open(str(path), os.O_RDWR | os.O_CREAT, 0o600)
    try:
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except OSError as e:
            if e.errno in (errno.EAGAIN, errno.EACCES):
                raise LockHeldError(f"Lock {path} is held by another process") from e
            raise
        os.ftruncate(fd, 0)
        os.write(fd, f"{os.getpid()}\n".encode())
        try:
            yield path
        finally:
            fcntl.flock(fd, fcntl.LOCK_UN)
    finally:
        os.close(fd)
