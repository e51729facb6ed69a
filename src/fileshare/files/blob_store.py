"""Opaque blob storage keyed by location.

Locations are generated names (``<uuid><suffix>``); callers never pick
them. Both stores are synchronous and are driven from the async service
layer through ``asyncio.to_thread``.
"""

from __future__ import annotations

import os
import uuid
from pathlib import Path

from ..observability import get_logger

logger = get_logger(__name__)


def _new_location(suffix: str) -> str:
    suffix = suffix.lower()
    if suffix and not suffix.startswith("."):
        suffix = f".{suffix}"
    # Only keep a plain extension; never let a client name leak in.
    if not suffix[1:].isalnum():
        suffix = ""
    return f"{uuid.uuid4().hex}{suffix}"


class LocalBlobStore:
    """Stores blobs as files under one root directory."""

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root).resolve()
        self._root.mkdir(parents=True, exist_ok=True)

    def _path(self, location: str) -> Path:
        path = (self._root / location).resolve()
        if path.parent != self._root:
            raise ValueError(f"invalid blob location: {location!r}")
        return path

    def write(self, data: bytes, *, suffix: str = "") -> str:
        location = _new_location(suffix)
        path = self._path(location)
        tmp = path.with_name(f".{location}.tmp")
        tmp.write_bytes(data)
        os.replace(tmp, path)
        return location

    def read(self, location: str) -> bytes:
        return self._path(location).read_bytes()

    def delete(self, location: str) -> None:
        try:
            self._path(location).unlink()
        except FileNotFoundError:
            logger.debug("blob_already_deleted", location=location)

    def exists(self, location: str) -> bool:
        return self._path(location).is_file()


class InMemoryBlobStore:
    def __init__(self) -> None:
        self.blobs: dict[str, bytes] = {}

    def write(self, data: bytes, *, suffix: str = "") -> str:
        location = _new_location(suffix)
        self.blobs[location] = bytes(data)
        return location

    def read(self, location: str) -> bytes:
        try:
            return self.blobs[location]
        except KeyError:
            raise FileNotFoundError(location) from None

    def delete(self, location: str) -> None:
        self.blobs.pop(location, None)

    def exists(self, location: str) -> bool:
        return location in self.blobs
