"""SILK Voice Converter - Atomic I/O utilities.

Implements the atomic publish rule for every staged artifact:
1. Write to temp path in same directory
2. Flush + best-effort fsync
3. Rename temp -> final (the publish boundary)

This ensures that the final path either contains complete valid data
or does not exist. Partial writes only affect the temp file, and the temp
file is removed on any failure.
"""

from __future__ import annotations

import logging
import os
import uuid
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import BinaryIO

logger = logging.getLogger(__name__)

TEMP_SUFFIX = ".tmp"


def unique_temp_suffix() -> str:
    """Return a per-writer temp suffix so concurrent writers never share a temp file."""
    return f".{uuid.uuid4().hex}{TEMP_SUFFIX}"


def temp_path_for(final_path: str | Path, temp_suffix: str = TEMP_SUFFIX) -> Path:
    """Get the temp path used while writing final_path."""
    final_path = Path(final_path)
    return final_path.parent / f"{final_path.name}{temp_suffix}"


def _write_all(fd: int, data: bytes) -> None:
    """Write all bytes to a file descriptor, handling partial writes.

    Loops until all bytes are written, handling short writes and EINTR.

    Args:
        fd: File descriptor to write to.
        data: Bytes to write.

    Raises:
        OSError: If write fails or returns 0 bytes unexpectedly.
    """
    total_written = 0
    data_len = len(data)

    while total_written < data_len:
        try:
            written = os.write(fd, data[total_written:])
            if written == 0:
                # os.write() should never return 0 for non-empty data
                raise OSError("os.write() returned 0 bytes unexpectedly")
            total_written += written
        except InterruptedError:
            # EINTR: interrupted system call, retry the write
            continue


def _fsync_directory(dir_path: Path) -> None:
    """Best-effort fsync on a directory.

    Helps rename durability on some filesystems. Errors are ignored.
    """
    try:
        fd = os.open(dir_path, os.O_RDONLY | os.O_DIRECTORY)
        try:
            os.fsync(fd)
        finally:
            os.close(fd)
    except (OSError, AttributeError):
        # O_DIRECTORY may not be available on all platforms
        pass


def _remove_quietly(path: Path) -> bool:
    """Remove path, logging failures. Returns True if this call removed it."""
    try:
        path.unlink()
    except FileNotFoundError:
        return False
    except OSError:
        logger.warning("Failed to remove temp file %s", path, exc_info=True)
        return False
    return True


class AtomicFileWriter:
    """Incremental writer that publishes to final_path only on clean exit.

    Usage:
        with AtomicFileWriter(path) as writer:
            for chunk in chunks:
                writer.write(chunk)

    Any exception raised inside the block (including ones unrelated to I/O,
    such as a size limit check) discards the temp file and leaves final_path
    untouched.
    """

    def __init__(self, final_path: str | Path, temp_suffix: str = TEMP_SUFFIX):
        self.final_path = Path(final_path)
        self.temp_path = temp_path_for(self.final_path, temp_suffix)
        self.bytes_written = 0
        self._fd: int | None = None

    def __enter__(self) -> AtomicFileWriter:
        self.final_path.parent.mkdir(parents=True, exist_ok=True)
        self._fd = os.open(self.temp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o644)
        return self

    def write(self, data: bytes) -> None:
        if self._fd is None:
            raise OSError("AtomicFileWriter is not open")
        if isinstance(data, str):
            data = data.encode("utf-8")
        _write_all(self._fd, data)
        self.bytes_written += len(data)

    def __exit__(self, exc_type, exc, tb) -> None:
        fd, self._fd = self._fd, None
        if exc_type is not None:
            if fd is not None:
                os.close(fd)
            _remove_quietly(self.temp_path)
            return

        try:
            os.fsync(fd)
        except OSError:
            os.close(fd)
            _remove_quietly(self.temp_path)
            raise
        os.close(fd)

        try:
            os.replace(self.temp_path, self.final_path)
        except OSError:
            _remove_quietly(self.temp_path)
            raise

        _fsync_directory(self.final_path.parent)


def atomic_write_bytes(
    final_path: str | Path,
    data: bytes,
    temp_suffix: str = TEMP_SUFFIX,
) -> None:
    """Atomically write bytes to a file.

    Never corrupts final path - atomic rename ensures all-or-nothing.

    Args:
        final_path: The target path for the final file.
        data: Bytes to write.
        temp_suffix: Suffix for the temporary file (default: ".tmp").

    Raises:
        OSError: If directory creation, write, or rename fails.
    """
    with AtomicFileWriter(final_path, temp_suffix) as writer:
        writer.write(data)


def atomic_stream_to_file(
    stream: BinaryIO,
    final_path: str | Path,
    temp_suffix: str = TEMP_SUFFIX,
    chunk_size: int = 65536,
) -> int:
    """Atomically write a stream to a file.

    Used for multipart uploads where data comes from a file-like object.

    Args:
        stream: File-like object with read() method.
        final_path: Target path for the output file.
        temp_suffix: Suffix for the temporary file (default: ".tmp").
        chunk_size: Buffer size for reading (default: 64KB).

    Returns:
        Total bytes written.

    Raises:
        OSError: If write or rename fails.
    """
    with AtomicFileWriter(final_path, temp_suffix) as writer:
        while True:
            chunk = stream.read(chunk_size)
            if not chunk:
                break
            writer.write(chunk)
    return writer.bytes_written


def publish_file(staged_path: str | Path, final_path: str | Path) -> Path:
    """Atomically publish an already-written file to final_path.

    Used for files produced by external tools (the codec), which cannot be
    routed through AtomicFileWriter. The staged file must live on the same
    filesystem as final_path.

    Returns:
        The final path.

    Raises:
        FileNotFoundError: If the staged file does not exist.
        OSError: If fsync or rename fails.
    """
    staged_path = Path(staged_path)
    final_path = Path(final_path)
    final_path.parent.mkdir(parents=True, exist_ok=True)

    fd = os.open(staged_path, os.O_RDONLY)
    try:
        os.fsync(fd)
    finally:
        os.close(fd)

    os.replace(staged_path, final_path)
    _fsync_directory(final_path.parent)
    return final_path


def cleanup_orphan_temp_files(directory: str | Path, temp_suffix: str = TEMP_SUFFIX) -> int:
    """Clean up orphan temp files in a directory.

    Called during startup to remove incomplete writes from a crashed process.

    Args:
        directory: Directory to scan for temp files.
        temp_suffix: Suffix pattern to match (default: ".tmp").

    Returns:
        Number of files removed.
    """
    directory = Path(directory)
    removed = 0

    if not directory.exists():
        return 0

    for temp_file in directory.glob(f"*{temp_suffix}"):
        if _remove_quietly(temp_file):
            removed += 1

    return removed
