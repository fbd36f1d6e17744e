"""Fingerprinted pre-import baseline.

The baseline is the serialized pre-import snapshot, persisted to a file, plus
a marker variable recording ``"<md5> *<path>"`` (the format ``md5sum`` prints).
Revert trusts the file only while its checksum still matches the marker.
"""

from __future__ import annotations

import hashlib
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path

from vcvars_bridge.errors import IntegrityError
from vcvars_bridge.logging import get_logger

from .snapshot import Snapshot

__all__ = [
    "Baseline",
    "file_checksum",
]

logger = get_logger("env.baseline")

_SEPARATOR = " *"


def file_checksum(path: str | Path) -> str | None:
    """md5 hex digest of a file's bytes, or None if it cannot be read."""
    try:
        data = Path(path).read_bytes()
    except OSError:
        return None
    return hashlib.md5(data).hexdigest()


@dataclass(frozen=True)
class Baseline:
    """A persisted snapshot and its recorded fingerprint.

    Attributes:
        path: Location of the serialized snapshot.
        checksum: md5 hex digest recorded when the file was written.
    """

    path: Path
    checksum: str

    @classmethod
    def record(cls, snapshot: Snapshot, directory: str | Path) -> Baseline:
        """Persist ``snapshot`` to a new file in ``directory``."""
        directory = Path(directory)
        directory.mkdir(parents=True, exist_ok=True)
        fd, name = tempfile.mkstemp(prefix="vv-baseline-", suffix=".env", dir=directory)
        os.close(fd)
        try:
            path = snapshot.write(name)
            checksum = file_checksum(path)
            if checksum is None:
                raise OSError(f"cannot read back baseline file {path}")
        except Exception:
            Path(name).unlink(missing_ok=True)
            raise
        logger.debug(f"Recorded baseline {path} ({len(snapshot)} variables)")
        return cls(path=path, checksum=checksum)

    @property
    def marker(self) -> str:
        """Value stored in the baseline marker variable."""
        return f"{self.checksum}{_SEPARATOR}{self.path}"

    @classmethod
    def from_marker(cls, marker: str) -> Baseline:
        """Parse a marker value.

        Raises:
            IntegrityError: If the marker is not ``"<md5> *<path>"``.
        """
        checksum, sep, path = marker.partition(_SEPARATOR)
        if not sep or not path or len(checksum) != 32:
            raise IntegrityError(marker, expected=marker, actual=None)
        return cls(path=Path(path), checksum=checksum)

    def verify(self) -> Snapshot:
        """Check the file against the fingerprint and load it.

        Raises:
            IntegrityError: If the file is missing, altered or unreadable.
        """
        actual = file_checksum(self.path)
        if actual != self.checksum:
            raise IntegrityError(self.path, expected=self.checksum, actual=actual)
        try:
            return Snapshot.read(self.path)
        except ValueError as e:
            raise IntegrityError(self.path, expected=self.checksum, actual=actual) from e

    def discard(self) -> None:
        """Delete the baseline file if it still exists."""
        try:
            self.path.unlink()
            logger.debug(f"Removed baseline {self.path}")
        except FileNotFoundError:
            pass
