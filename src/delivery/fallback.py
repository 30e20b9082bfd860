"""
Durable local storage for blobs that could not be uploaded.

One flat directory holds pending files named exactly like their blobs.
Writes go to a hidden temporary file first and are renamed into place, so a
concurrent drain never reads a partial file.
"""

from __future__ import annotations

import logging
import os
import tempfile
from typing import List, Optional


class FallbackStore:
    """Flat directory of pending blobs."""

    def __init__(self, directory: str):
        self.directory = directory

    def ensure_directory(self) -> str:
        """Create the directory if needed; concurrent creation is harmless."""
        os.makedirs(self.directory, exist_ok=True)
        return self.directory

    def path_for(self, name: str) -> str:
        if os.path.basename(name) != name or name.startswith("."):
            raise ValueError(f"Invalid blob name: {name!r}")
        return os.path.join(self.directory, name)

    def save(self, name: str, data: bytes) -> str:
        """Atomically write `data` under `name`; returns the final path."""
        path = self.path_for(name)
        self.ensure_directory()
        fd, tmp_path = tempfile.mkstemp(prefix=f".{name}.", suffix=".tmp", dir=self.directory)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, path)
        except BaseException:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise
        return path

    def list_pending(self) -> List[str]:
        """Names of pending blobs, oldest name first. A missing directory means no backlog."""
        try:
            names = os.listdir(self.directory)
        except FileNotFoundError:
            return []
        return sorted(
            n for n in names
            if not n.startswith(".") and os.path.isfile(os.path.join(self.directory, n))
        )

    def count(self) -> int:
        return len(self.list_pending())

    def read(self, name: str) -> Optional[bytes]:
        """Return the file's bytes, or None if it vanished (e.g. drained concurrently)."""
        try:
            with open(self.path_for(name), "rb") as f:
                return f.read()
        except FileNotFoundError:
            logging.debug(f"Pending file already gone: {name}")
            return None

    def remove(self, name: str) -> bool:
        """Delete a pending file; False if it was already gone."""
        try:
            os.remove(self.path_for(name))
            return True
        except FileNotFoundError:
            logging.debug(f"Pending file already removed: {name}")
            return False
