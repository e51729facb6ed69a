"""Upload admission limits: maximum size and extension allow-list."""

from __future__ import annotations

from dataclasses import dataclass

from ..errors import FileTooLarge, FileTypeNotAllowed
from ..settings import DEFAULT_ALLOWED_FILE_TYPES, DEFAULT_MAX_FILE_SIZE


def file_extension(name: str) -> str:
    """Lower-cased extension including the dot, or ``""``."""
    base = name.rsplit("/", 1)[-1]
    stem, dot, ext = base.rpartition(".")
    if not dot or not stem:
        return ""
    return f".{ext.lower()}"


@dataclass(frozen=True, slots=True)
class UploadPolicy:
    """Checked before any upload bytes are compressed or stored.

    Attributes:
        max_file_size: Largest accepted upload in bytes.
        allowed_file_types: Accepted extensions, lower-case with dot.
    """

    max_file_size: int = DEFAULT_MAX_FILE_SIZE
    allowed_file_types: tuple[str, ...] = DEFAULT_ALLOWED_FILE_TYPES

    @classmethod
    def from_settings(cls, settings) -> UploadPolicy:
        return cls(
            max_file_size=settings.max_file_size,
            allowed_file_types=settings.allowed_file_types,
        )

    def check_name(self, name: str) -> None:
        ext = file_extension(name)
        if ext not in self.allowed_file_types:
            raise FileTypeNotAllowed(ext, self.allowed_file_types)

    def check_size(self, name: str, size: int) -> None:
        if size > self.max_file_size:
            raise FileTooLarge(name, self.max_file_size)

    def check(self, name: str, size: int) -> None:
        self.check_name(name)
        self.check_size(name, size)
