"""
Shared pytest fixtures.

Settings fixture
----------------
The `planck_settings` fixture hands out the module-level `planck.config.settings`
singleton and restores every field after the test, so tests can mutate it the
same way an embedding process would through PLANCK_* environment variables.
"""
from __future__ import annotations

import errno
import os
import stat
import tempfile
from pathlib import Path

import pytest


# ─── Platform checks ──────────────────────────────────────────────────────────

requires_posix = pytest.mark.skipif(
    os.name != "posix",
    reason="permission bits and directory fsync are POSIX behaviour",
)

requires_non_root = pytest.mark.skipif(
    hasattr(os, "geteuid") and os.geteuid() == 0,
    reason="root bypasses directory permission checks",
)


# ─── Directories ──────────────────────────────────────────────────────────────

@pytest.fixture
def tmp_dir():
    """Create and clean up a temporary directory."""
    with tempfile.TemporaryDirectory(prefix="planck") as d:
        yield Path(d)


# ─── Settings patch ───────────────────────────────────────────────────────────

@pytest.fixture()
def planck_settings():
    """Yield the live settings singleton, restoring original values afterwards."""
    from planck.config import settings

    originals = settings.model_dump()

    yield settings

    for k, v in originals.items():
        setattr(settings, k, v)


# ─── Fault injection helpers ──────────────────────────────────────────────────

def mode_of(path: Path) -> int:
    return stat.S_IMODE(path.stat().st_mode)


def staging_leftovers(directory: Path, target_name: str) -> list[str]:
    """Names in *directory* that follow the staging-file convention for *target_name*."""
    prefix = f".{target_name}"
    return sorted(n for n in os.listdir(directory) if n.startswith(prefix))


def raising(exc_type: type[OSError], code: int):
    """Return a callable that raises *exc_type* with *code* whatever it is called with."""

    def _raise(*args, **kwargs):
        raise exc_type(code, os.strerror(code))

    return _raise


def fail_directory_fsync(code: int = errno.EIO):
    """Return an os.fsync replacement that fails only for directory descriptors."""
    real_fsync = os.fsync

    def _fsync(fd):
        if stat.S_ISDIR(os.fstat(fd).st_mode):
            raise OSError(code, os.strerror(code))
        return real_fsync(fd)

    return _fsync


def fail_file_fsync(code: int = errno.EIO):
    """Return an os.fsync replacement that fails only for regular files."""
    real_fsync = os.fsync

    def _fsync(fd):
        if stat.S_ISREG(os.fstat(fd).st_mode):
            raise OSError(code, os.strerror(code))
        return real_fsync(fd)

    return _fsync
