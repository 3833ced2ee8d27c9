"""
Durable, atomic replacement of a file's contents.

Pattern:
  1. Capture the existing target's mode (only when preserve_mode is set)
  2. Create a staging file ``.<name>.XXXXXX.tmp`` in the target's directory
  3. Write the content, flush, fsync
  4. Apply the captured mode (permission-denied degrades to the default mode)
  5. os.replace the staging file onto the target
  6. fsync the containing directory so the rename survives a crash

Readers opening the target at any moment see either the complete old file or
the complete new file. The staging file is removed on every failure path.
"""
from __future__ import annotations

import logging
import os
import stat
import tempfile
from contextlib import contextmanager, suppress
from pathlib import Path
from typing import BinaryIO, Iterator, Optional, Union

from planck.config import settings
from planck.errors import (
    DurabilityError,
    PathError,
    PermissionRestoreError,
    RenameError,
    WriteError,
    classified,
    classify,
)

logger = logging.getLogger(__name__)

StrPath = Union[str, os.PathLike]

# Mode tempfile.mkstemp creates staging files with
_MKSTEMP_MODE = 0o600


def atomic_write(path: StrPath, content: bytes, preserve_mode: bool = False) -> None:
    """
    Atomically replace the file at *path* with *content*.

    The containing directory must already exist. With *preserve_mode*, the
    permission bits of an existing target are copied onto the new file;
    otherwise the file gets ``settings.DEFAULT_MODE`` (0o600).

    Raises a planck.errors stage error (also an instance of the underlying
    OSError subclass) on failure. On DurabilityError the new content is
    already visible but the rename may not survive a crash.
    """
    if isinstance(content, str):
        raise TypeError("content must be bytes-like; use atomic_write_text() for str")

    target = Path(path)
    directory = target.parent
    captured_mode = _capture_mode(target) if preserve_mode else None

    with _staging_file(target) as staging:
        handle, tmp_path = staging.handle, staging.path
        with classified(WriteError):
            if settings.DEFAULT_MODE != _MKSTEMP_MODE:
                os.chmod(tmp_path, settings.DEFAULT_MODE)
            handle.write(content)
            handle.flush()
            # Data must be on disk before the rename makes it visible
            os.fsync(handle.fileno())
            handle.close()

        if captured_mode is not None:
            _restore_mode(tmp_path, captured_mode)

        staging.promote(target)

    _fsync_directory(directory)
    logger.debug("Atomically wrote %d bytes to %s", memoryview(content).nbytes, target)


def atomic_write_text(
    path: StrPath,
    text: str,
    encoding: str = "utf-8",
    preserve_mode: bool = False,
) -> None:
    """Atomically write *text* encoded with *encoding*. See atomic_write()."""
    atomic_write(path, text.encode(encoding), preserve_mode=preserve_mode)


# ─── Internal ──────────────────────────────────────────────────────────────────


def _capture_mode(target: Path) -> Optional[int]:
    """Return the permission bits of *target*, or None if it does not exist."""
    try:
        st = target.stat()
    except FileNotFoundError:
        return None
    except OSError as exc:
        raise classify(PathError, exc) from exc
    return stat.S_IMODE(st.st_mode)


class _StagingFile:
    """An open staging file; promote() renames it onto the target."""

    def __init__(self, handle: BinaryIO, path: Path) -> None:
        self.handle = handle
        self.path = path
        self.renamed = False

    def promote(self, target: Path) -> None:
        with classified(RenameError):
            os.replace(self.path, target)
        # The name is free from here on and may already belong to another writer
        self.renamed = True


@contextmanager
def _staging_file(target: Path) -> Iterator[_StagingFile]:
    """
    Create a uniquely named staging file next to *target*.

    The file is removed on exit unless the body promoted it.
    """
    # Same directory as the target: a rename within one directory never crosses filesystems
    with classified(PathError):
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{target.name}.",
            suffix=settings.TEMP_SUFFIX,
            dir=str(target.parent),
        )
    tmp_path = Path(tmp_name)

    try:
        handle = os.fdopen(fd, "wb")
    except BaseException:
        os.close(fd)
        _discard(tmp_path)
        raise

    staging = _StagingFile(handle, tmp_path)
    try:
        yield staging
    finally:
        if not handle.closed:
            # Only reached when the body failed; its exception is the one to report
            with suppress(OSError):
                handle.close()
        if not staging.renamed:
            _discard(tmp_path)


def _discard(tmp_path: Path) -> None:
    try:
        os.unlink(tmp_path)
    except FileNotFoundError:
        pass
    except OSError as exc:
        logger.warning("Could not remove staging file %s: %s", tmp_path, exc)


def _restore_mode(tmp_path: Path, mode: int) -> None:
    """Apply *mode* to the staging file; lacking privilege keeps the default mode."""
    try:
        os.chmod(tmp_path, mode)
    except PermissionError as exc:
        logger.warning(
            "Cannot preserve mode %s on %s (%s); using default permissions",
            oct(mode), tmp_path, exc.strerror or exc,
        )
    except OSError as exc:
        raise classify(PermissionRestoreError, exc) from exc


def _fsync_directory(directory: Path) -> None:
    """Flush the directory entry so the rename itself is durable."""
    if os.name == "nt":
        logger.debug("Directory fsync not supported on Windows; skipping %s", directory)
        return

    flags = os.O_RDONLY
    if hasattr(os, "O_DIRECTORY"):
        flags |= os.O_DIRECTORY

    with classified(DurabilityError):
        dir_fd = os.open(str(directory), flags)
        try:
            os.fsync(dir_fd)
        finally:
            os.close(dir_fd)
