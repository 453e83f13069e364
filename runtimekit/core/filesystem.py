"""
File system utilities for RuntimeKit.

This module provides:
- In-memory archive unpacking (tar.gz, tar.xz, tar.bz2, tar.zst, zip) with
  leading path components stripped
- Safe file operations (atomic writes, safe deletion)

Archive formats are detected from the content, never from a file name, since
the buffers come straight from a download.
"""

import io
import logging
import os
import shutil
import stat
import tarfile
import tempfile
import zipfile
from pathlib import Path, PurePosixPath
from typing import Optional, Union

import zstandard

from runtimekit.core.exceptions import ExtractionFailedError, RuntimeKitError

logger = logging.getLogger(__name__)

IS_WINDOWS = os.name == "nt"

ZSTD_MAGIC = b"\x28\xb5\x2f\xfd"
ZIP_MAGIC = b"PK\x03\x04"


class FilesystemError(RuntimeKitError):
    """Base exception for filesystem operations."""

    pass


# ============================================================================
# Path Utilities
# ============================================================================


def is_relative_to(path: Path, parent: Path) -> bool:
    try:
        path.relative_to(parent)
        return True
    except ValueError:
        return False


def _strip_components(name: str, strip: int) -> Optional[PurePosixPath]:
    """
    Drop ``strip`` leading segments from an archive member name.

    Returns None for members that disappear entirely (e.g. the top-level
    directory itself).
    """
    parts = [p for p in name.replace("\\", "/").split("/") if p not in ("", ".")]
    if len(parts) <= strip:
        return None
    return PurePosixPath(*parts[strip:])


def _safe_target(destination: Path, relative: PurePosixPath) -> Path:
    """Resolve a member path under destination, refusing traversal."""
    if relative.is_absolute() or ".." in relative.parts:
        raise ExtractionFailedError(
            f"Archive member '{relative}' attempts directory traversal. "
            "This is a security risk and extraction has been blocked."
        )
    target = destination.joinpath(*relative.parts)
    if not is_relative_to(target.resolve(), destination.resolve()):
        raise ExtractionFailedError(
            f"Archive member '{relative}' resolves outside {destination}"
        )
    return target


# ============================================================================
# Archive Extraction
# ============================================================================


def _remove_stale_staging(destination: Path) -> None:
    # Staging directories of extractions killed before the final rename
    prefix = f".{destination.name}."
    for entry in destination.parent.iterdir():
        if entry.name.startswith(prefix) and entry.is_dir():
            logger.debug(f"Removing stale staging directory {entry}")
            shutil.rmtree(entry, ignore_errors=True)


def unpack_archive(content: bytes, destination: Union[str, Path], strip: int) -> None:
    """
    Unpack an archive held in memory into ``destination``.

    Entries are written into a staging directory next to ``destination``
    which is renamed into place once every entry is on disk. If anything
    fails the staging directory is removed, so an interpreter at its known
    path inside ``destination`` always means extraction finished, even if
    the process dies half way.

    Args:
        content: Archive bytes (already verified)
        destination: Install directory
        strip: Number of leading path components to remove from every entry

    Raises:
        ExtractionFailedError: On malformed archives, traversal attempts,
            I/O errors or insufficient permissions

    Example:
        >>> unpack_archive(data, Path("~/.runtimekit/py/cpython@3.10.11"), 1)
    """
    destination = Path(destination)
    staging = None

    try:
        destination.parent.mkdir(parents=True, exist_ok=True)
        _remove_stale_staging(destination)
        staging = Path(
            tempfile.mkdtemp(dir=destination.parent, prefix=f".{destination.name}.")
        )
        if content.startswith(ZIP_MAGIC):
            _unpack_zip(content, staging, strip)
        elif content.startswith(ZSTD_MAGIC):
            _unpack_tar_zst(content, staging, strip)
        else:
            with tarfile.open(fileobj=io.BytesIO(content), mode="r:*") as tar:
                _unpack_tar(tar, staging, strip)

        if not IS_WINDOWS:
            # mkdtemp creates the directory as 0700
            os.chmod(staging, 0o755)
        # Leftovers of an interrupted earlier attempt
        if destination.exists():
            shutil.rmtree(destination)
        os.replace(staging, destination)
    except Exception as e:
        logger.error(f"Extraction into {destination} failed: {e}")
        if staging is not None:
            shutil.rmtree(staging, ignore_errors=True)
        if isinstance(e, ExtractionFailedError):
            raise
        raise ExtractionFailedError(
            f"Failed to extract archive into {destination}: {e}"
        ) from e

    logger.debug(f"Extracted archive into {destination}")


def _unpack_tar_zst(content: bytes, destination: Path, strip: int) -> None:
    decompressor = zstandard.ZstdDecompressor()
    with decompressor.stream_reader(io.BytesIO(content)) as reader:
        # Stream mode: zstd frames are not seekable
        with tarfile.open(fileobj=reader, mode="r|") as tar:
            _unpack_tar(tar, destination, strip)


def _unpack_tar(tar: tarfile.TarFile, destination: Path, strip: int) -> None:
    # Links are created after regular files so that hard links have a target
    deferred_links = []

    for member in tar:
        relative = _strip_components(member.name, strip)
        if relative is None:
            continue
        target = _safe_target(destination, relative)

        if member.isdir():
            target.mkdir(parents=True, exist_ok=True)
        elif member.isfile():
            target.parent.mkdir(parents=True, exist_ok=True)
            source = tar.extractfile(member)
            if source is None:
                raise ExtractionFailedError(f"Cannot read archive member {member.name}")
            with source, open(target, "wb") as f:
                shutil.copyfileobj(source, f)
            _apply_mode(target, member.mode)
        elif member.issym() or member.islnk():
            deferred_links.append((member, target))
        else:
            logger.debug(f"Skipping special archive member {member.name}")

    for member, target in deferred_links:
        target.parent.mkdir(parents=True, exist_ok=True)
        if target.exists() or target.is_symlink():
            target.unlink()
        if member.issym():
            link_target = PurePosixPath(member.linkname)
            resolved = (target.parent / link_target).resolve()
            if link_target.is_absolute() or not is_relative_to(
                resolved, destination.resolve()
            ):
                raise ExtractionFailedError(
                    f"Symlink '{member.name}' points outside the archive"
                )
            os.symlink(member.linkname, target)
        else:
            link_relative = _strip_components(member.linkname, strip)
            if link_relative is None:
                raise ExtractionFailedError(
                    f"Hard link '{member.name}' has no target after stripping"
                )
            os.link(_safe_target(destination, link_relative), target)


def _unpack_zip(content: bytes, destination: Path, strip: int) -> None:
    with zipfile.ZipFile(io.BytesIO(content)) as zf:
        for info in zf.infolist():
            relative = _strip_components(info.filename, strip)
            if relative is None:
                continue
            target = _safe_target(destination, relative)

            if info.is_dir():
                target.mkdir(parents=True, exist_ok=True)
                continue

            target.parent.mkdir(parents=True, exist_ok=True)
            with zf.open(info) as source, open(target, "wb") as f:
                shutil.copyfileobj(source, f)

            # Unix permission bits live in the upper half of external_attr
            mode = (info.external_attr >> 16) & 0o7777
            if mode:
                _apply_mode(target, mode)


def _apply_mode(path: Path, mode: int) -> None:
    if IS_WINDOWS:
        return
    os.chmod(path, stat.S_IMODE(mode) | stat.S_IRUSR | stat.S_IWUSR)


# ============================================================================
# Safe File Operations
# ============================================================================


def atomic_write(
    file_path: Union[str, Path], content: Union[str, bytes], encoding: str = "utf-8"
) -> None:
    """
    Write file atomically using temp file + rename.

    This ensures the file is never in a partially-written state.
    If the write fails, the original file (if any) remains unchanged.

    Example:
        >>> atomic_write('tool-version.txt', '3')
    """
    file_path = Path(file_path)
    file_path.parent.mkdir(parents=True, exist_ok=True)

    # Create temp file in same directory (ensures same filesystem)
    temp_fd, temp_path_str = tempfile.mkstemp(
        dir=file_path.parent, prefix=f".{file_path.name}.", suffix=".tmp"
    )
    temp_path = Path(temp_path_str)

    try:
        if isinstance(content, str):
            with open(temp_fd, "w", encoding=encoding) as f:
                f.write(content)
        else:
            with open(temp_fd, "wb") as f:
                f.write(content)

        temp_path.replace(file_path)

    except Exception:
        try:
            temp_path.unlink(missing_ok=True)
        except OSError:
            pass
        raise


def safe_rmtree(
    path: Union[str, Path], require_prefix: Optional[Union[str, Path]] = None
) -> None:
    """
    Remove a directory tree with safeguards.

    Args:
        path: Directory to remove
        require_prefix: If specified, path must be under this directory

    Raises:
        ValueError: If path is not under require_prefix
        FilesystemError: If deletion fails

    Example:
        >>> safe_rmtree(app_dir / "self", require_prefix=app_dir)
    """
    path = Path(path).resolve()

    if require_prefix is not None:
        require_prefix = Path(require_prefix).resolve()
        if not is_relative_to(path, require_prefix):
            raise ValueError(
                f"Refusing to delete '{path}': not under required prefix '{require_prefix}'"
            )

    if not path.exists():
        return

    if not path.is_dir():
        raise FilesystemError(f"Path is not a directory: {path}")

    try:
        if IS_WINDOWS:

            def handle_remove_readonly(func, path, exc):
                """Error handler for Windows read-only files."""
                if not os.access(path, os.W_OK):
                    os.chmod(path, 0o777)
                    func(path)
                else:
                    raise

            shutil.rmtree(path, onerror=handle_remove_readonly)
        else:
            shutil.rmtree(path)

    except Exception as e:
        raise FilesystemError(f"Failed to remove directory '{path}': {e}") from e
