"""
Error taxonomy for the durable-replace protocol.

Every failure is raised as a stage error that is *also* an instance of the
concrete OSError subclass that caused it:

  PathError: containing directory missing/inaccessible, stat of target
  WriteError: writing or fsyncing the staging file
  PermissionRestoreError: chmod of a preserved mode (permission-denied excluded)
  RenameError: os.replace of the staging file onto the target
  DurabilityError: fsync of the containing directory after the rename

So ``except FileNotFoundError`` and ``except PathError`` both catch a missing
directory, and ``exc.errno`` / ``exc.__cause__`` expose the original failure.
"""
from __future__ import annotations

import functools
from contextlib import contextmanager
from typing import Iterator, Optional


class AtomicWriteError(OSError):
    """Base class for every failure surfaced by planck.atomic."""

    stage = "write"

    def __reduce__(self):
        # Bound classes are built at runtime; pickle by (stage, cause kind) instead
        stage_error, os_error = getattr(type(self), "_bound", (type(self), OSError))
        return (
            _rebuild,
            (stage_error, os_error, self.errno, self.strerror, self.filename, self.filename2, self.args),
        )


class PathError(AtomicWriteError):
    stage = "path"


class WriteError(AtomicWriteError):
    stage = "write"


class PermissionRestoreError(AtomicWriteError):
    stage = "permission-restore"


class RenameError(AtomicWriteError):
    stage = "rename"


class DurabilityError(AtomicWriteError):
    """The rename happened but the directory entry may not survive a crash."""

    stage = "durability"


@functools.lru_cache(maxsize=None)
def _bind(stage_error: type[AtomicWriteError], os_error: type[OSError]) -> type[AtomicWriteError]:
    """Return a class deriving from both *stage_error* and *os_error*."""
    if issubclass(stage_error, os_error):
        return stage_error
    return type(
        stage_error.__name__,
        (stage_error, os_error),
        {
            "__module__": stage_error.__module__,
            "__qualname__": stage_error.__qualname__,
            "_bound": (stage_error, os_error),
        },
    )


def _rebuild(
    stage_error: type[AtomicWriteError],
    os_error: type[OSError],
    code: Optional[int],
    strerror: Optional[str],
    filename: object,
    filename2: object,
    args: tuple,
) -> AtomicWriteError:
    cls = _bind(stage_error, os_error)
    if code is None:
        return cls(*args)
    return cls(code, strerror, filename, None, filename2)


def classify(stage_error: type[AtomicWriteError], exc: OSError) -> AtomicWriteError:
    """Build a *stage_error* instance carrying the errno and filenames of *exc*."""
    return _rebuild(
        stage_error, type(exc), exc.errno, exc.strerror, exc.filename, exc.filename2, exc.args
    )


@contextmanager
def classified(stage_error: type[AtomicWriteError]) -> Iterator[None]:
    """Re-raise any OSError from the block as *stage_error*, chained to the cause."""
    try:
        yield
    except AtomicWriteError:
        raise
    except OSError as exc:
        raise classify(stage_error, exc) from exc
