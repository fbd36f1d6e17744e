"""Per-invocation work directory for driver scripts and transcripts."""

from __future__ import annotations

import shutil
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from vcvars_bridge.logging import get_logger
from vcvars_bridge.settings import BridgeSettings

__all__ = ["work_directory"]

logger = get_logger("bridge.workdir")


@contextmanager
def work_directory(settings: BridgeSettings) -> Iterator[Path]:
    """Yield a scratch directory removed on every exit path.

    In debug mode the fixed ``settings.debug_dir`` is used instead and left in
    place so its artifacts can be inspected.
    """
    if settings.debug:
        path = settings.debug_dir
        path.mkdir(parents=True, exist_ok=True)
        logger.debug(f"Debug mode: keeping artifacts in {path}")
        yield path
        return

    settings.tmp_dir.mkdir(parents=True, exist_ok=True)
    path = Path(tempfile.mkdtemp(prefix="vv-", dir=settings.tmp_dir))
    try:
        yield path
    finally:
        shutil.rmtree(path, ignore_errors=True)
