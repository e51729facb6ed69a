"""File sharing service configuration.

ShareSettings is the single configuration object accepted by create_app()
and by the services it wires. It is a plain dataclass (not env-coupled)
so tests can inject config without touching os.environ.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timedelta

_TRUTHY = frozenset({"1", "true", "yes", "on"})

DEFAULT_MAX_FILE_SIZE = 50 * 1024 * 1024
DEFAULT_ALLOWED_FILE_TYPES: tuple[str, ...] = (
    ".pdf", ".png", ".jpg", ".jpeg", ".gif", ".csv", ".xlsx", ".xls",
    ".doc", ".docx", ".txt", ".zip", ".mp4", ".mp3",
)


def _extensions(raw: str) -> tuple[str, ...]:
    return tuple(t.strip().lower() for t in raw.split(",") if t.strip())


@dataclass(frozen=True, slots=True)
class ShareSettings:
    """Configuration for the file sharing core and its routing adapter.

    All fields have sensible defaults for local development.
    Non-local environments must supply real values for supabase_url,
    supabase_service_role_key, and jwt_secret.
    """

    # ── Environment ────────────────────────────────────────────────
    environment: str = "local"
    """One of: local, dev, staging, production."""

    # ── Supabase ───────────────────────────────────────────────────
    supabase_url: str = ""
    supabase_service_role_key: str = ""
    """Service-role key for PostgREST calls. Never log this."""

    # ── Auth ───────────────────────────────────────────────────────
    jwt_secret: str = ""
    """HS256 secret used to verify bearer tokens."""

    # ── Storage ────────────────────────────────────────────────────
    upload_path: str = "./uploads"
    public_url: str = "http://localhost:5173"
    """Base URL used to build full share-link URLs."""

    # ── Upload limits ──────────────────────────────────────────────
    max_file_size: int = DEFAULT_MAX_FILE_SIZE
    allowed_file_types: tuple[str, ...] = DEFAULT_ALLOWED_FILE_TYPES
    """Lower-case extensions including the dot."""

    # ── Compression ────────────────────────────────────────────────
    compression_floor_bytes: int = 100 * 1024
    image_quality: int = 80
    png_compress_level: int = 8
    archive_non_images: bool = False
    archive_threshold: float = 0.9

    # ── Link tokens ────────────────────────────────────────────────
    link_token_bytes: int = 16
    """128-bit tokens, hex encoded to 32 chars."""

    link_token_max_attempts: int = 5

    # ── Sweep ──────────────────────────────────────────────────────
    share_retention_days: int = 30
    sweep_interval_seconds: float = 3600.0

    # ── Pagination ─────────────────────────────────────────────────
    default_page_size: int = 20
    max_page_size: int = 100

    @property
    def is_local(self) -> bool:
        return self.environment == "local"

    @property
    def share_retention(self) -> timedelta:
        return timedelta(days=self.share_retention_days)

    def validate(self) -> list[str]:
        """Return a list of configuration errors. Empty means valid."""
        errors: list[str] = []
        if not self.is_local:
            if not self.supabase_url:
                errors.append(f"{self.environment}: supabase_url is required")
            if not self.supabase_service_role_key:
                errors.append(
                    f"{self.environment}: supabase_service_role_key is required"
                )
            if not self.jwt_secret or len(self.jwt_secret) < 32:
                errors.append(
                    f"{self.environment}: jwt_secret must be >= 32 characters"
                )
        if self.max_file_size < 1:
            errors.append("max_file_size must be >= 1")
        if not self.allowed_file_types:
            errors.append("allowed_file_types must not be empty")
        elif any(not t.startswith(".") for t in self.allowed_file_types):
            errors.append("allowed_file_types entries must start with '.'")
        if not 1 <= self.image_quality <= 100:
            errors.append("image_quality must be between 1 and 100")
        if not 0 <= self.png_compress_level <= 9:
            errors.append("png_compress_level must be between 0 and 9")
        if not 0 < self.archive_threshold <= 1:
            errors.append("archive_threshold must be in (0, 1]")
        if self.link_token_bytes < 16:
            errors.append("link_token_bytes must be >= 16 (128 bits)")
        if self.link_token_max_attempts < 1:
            errors.append("link_token_max_attempts must be >= 1")
        if self.default_page_size < 1 or self.max_page_size < self.default_page_size:
            errors.append("page sizes must satisfy 1 <= default <= max")
        return errors

    @classmethod
    def from_env(cls, env: dict[str, str] | None = None) -> ShareSettings:
        """Build settings from environment variables.

        This is a convenience factory for production use. Tests should
        construct ShareSettings directly.
        """
        if env is None:
            env = dict(os.environ)

        defaults = cls()
        return cls(
            environment=env.get("ENVIRONMENT", "local"),
            supabase_url=env.get("SUPABASE_URL", ""),
            supabase_service_role_key=env.get("SUPABASE_SERVICE_ROLE_KEY", ""),
            jwt_secret=env.get("JWT_SECRET", ""),
            upload_path=env.get("UPLOAD_PATH", defaults.upload_path),
            public_url=env.get("FRONTEND_URL", defaults.public_url).rstrip("/"),
            max_file_size=int(env.get("MAX_FILE_SIZE", defaults.max_file_size)),
            allowed_file_types=(
                _extensions(env["ALLOWED_FILE_TYPES"])
                if env.get("ALLOWED_FILE_TYPES")
                else defaults.allowed_file_types
            ),
            compression_floor_bytes=int(
                env.get("COMPRESSION_FLOOR_BYTES", defaults.compression_floor_bytes)
            ),
            image_quality=int(env.get("IMAGE_QUALITY", defaults.image_quality)),
            png_compress_level=int(
                env.get("PNG_COMPRESS_LEVEL", defaults.png_compress_level)
            ),
            archive_non_images=(
                env.get("ARCHIVE_NON_IMAGES", "").strip().lower() in _TRUTHY
            ),
            archive_threshold=float(
                env.get("ARCHIVE_THRESHOLD", defaults.archive_threshold)
            ),
            link_token_bytes=int(
                env.get("LINK_TOKEN_BYTES", defaults.link_token_bytes)
            ),
            link_token_max_attempts=int(
                env.get("LINK_TOKEN_MAX_ATTEMPTS", defaults.link_token_max_attempts)
            ),
            share_retention_days=int(
                env.get("SHARE_RETENTION_DAYS", defaults.share_retention_days)
            ),
            sweep_interval_seconds=float(
                env.get("SWEEP_INTERVAL_SECONDS", defaults.sweep_interval_seconds)
            ),
        )
