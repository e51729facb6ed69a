"""Ingestion-time compression decision pipeline.

Applied once per upload, before the File record is committed:

  - Uploads below the size floor (100 KiB by default) are left alone.
  - JPEG / PNG / WebP images are re-encoded with Pillow (quality 80 for
    lossy formats, compress level 8 plus palette reduction for PNG). The
    re-encoded bytes replace the upload only if strictly smaller.
  - Other ``image/*`` types pass through untouched.
  - Non-images pass through unless archiving is enabled, in which case a
    zip archive replaces the upload only if it is below 90% of the
    original size.

All work happens in memory, so the stored bytes are always either the
untouched upload or a complete transform output. A failing transform is
reported in the result (``error``) and the upload is kept.
"""

from __future__ import annotations

import io
import zipfile
from dataclasses import dataclass
from functools import partial
from typing import Callable, Mapping

from PIL import Image

from ..errors import CompressionFailed
from ..observability import get_logger
from ..observability.metrics import COMPRESSION_OUTCOMES_TOTAL

logger = get_logger(__name__)

DEFAULT_FLOOR_BYTES = 100 * 1024
DEFAULT_QUALITY = 80
DEFAULT_PNG_COMPRESS_LEVEL = 8
DEFAULT_ARCHIVE_THRESHOLD = 0.9
ZIP_CONTENT_TYPE = "application/zip"

ImageTransform = Callable[[bytes], bytes]
ArchiveTransform = Callable[[bytes, str], bytes]


# ── Transforms ────────────────────────────────────────────────────────


def encode_jpeg(data: bytes, *, quality: int = DEFAULT_QUALITY) -> bytes:
    with Image.open(io.BytesIO(data)) as img:
        img.load()
        if img.mode not in ("RGB", "L"):
            img = img.convert("RGB")
        out = io.BytesIO()
        img.save(out, format="JPEG", quality=quality, optimize=True, progressive=True)
    return out.getvalue()


def encode_png(data: bytes, *, compress_level: int = DEFAULT_PNG_COMPRESS_LEVEL) -> bytes:
    with Image.open(io.BytesIO(data)) as img:
        img.load()
        if img.mode != "P":
            if img.mode in ("RGBA", "LA"):
                img = img.convert("RGBA").quantize(256, method=Image.Quantize.FASTOCTREE)
            else:
                img = img.convert("RGB").quantize(256)
        out = io.BytesIO()
        img.save(out, format="PNG", compress_level=compress_level)
    return out.getvalue()


def encode_webp(data: bytes, *, quality: int = DEFAULT_QUALITY) -> bytes:
    with Image.open(io.BytesIO(data)) as img:
        img.load()
        out = io.BytesIO()
        img.save(out, format="WEBP", quality=quality)
    return out.getvalue()


def zip_archive(data: bytes, member_name: str) -> bytes:
    out = io.BytesIO()
    with zipfile.ZipFile(
        out, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=9,
    ) as zf:
        zf.writestr(member_name or "file", data)
    return out.getvalue()


def default_image_transforms(
    quality: int = DEFAULT_QUALITY,
    png_compress_level: int = DEFAULT_PNG_COMPRESS_LEVEL,
) -> dict[str, ImageTransform]:
    jpeg = partial(encode_jpeg, quality=quality)
    return {
        "image/jpeg": jpeg,
        "image/jpg": jpeg,
        "image/png": partial(encode_png, compress_level=png_compress_level),
        "image/webp": partial(encode_webp, quality=quality),
    }


# ── Result ────────────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class CompressionResult:
    """Outcome of one compression decision.

    Attributes:
        kept: True if the transformed output replaced the upload.
        original_size: Upload size in bytes.
        final_size: Size of ``data``.
        data: Bytes to store (transformed or original).
        content_type: Content type of ``data``.
        error: Failure description when a transform raised.
    """

    kept: bool
    original_size: int
    final_size: int
    data: bytes
    content_type: str
    error: str | None = None

    @property
    def ratio(self) -> float:
        if not self.original_size:
            return 1.0
        return self.final_size / self.original_size

    @property
    def failed(self) -> bool:
        return self.error is not None

    @classmethod
    def passthrough(
        cls, data: bytes, content_type: str, error: str | None = None,
    ) -> CompressionResult:
        return cls(
            kept=False,
            original_size=len(data),
            final_size=len(data),
            data=data,
            content_type=content_type,
            error=error,
        )


# ── Pipeline ──────────────────────────────────────────────────────────


class CompressionPipeline:
    """Decides per upload whether a transformed representation is stored.

    Args:
        floor_bytes: Uploads smaller than this are never transformed.
        image_transforms: Content type to transform mapping. Defaults to
            the Pillow encoders above.
        archive_non_images: Try the archive transform on non-images.
        archive_threshold: Archive output must be below this fraction of
            the original to be kept.
        archive_transform: Replacement for ``zip_archive``.
    """

    def __init__(
        self,
        *,
        floor_bytes: int = DEFAULT_FLOOR_BYTES,
        image_transforms: Mapping[str, ImageTransform] | None = None,
        archive_non_images: bool = False,
        archive_threshold: float = DEFAULT_ARCHIVE_THRESHOLD,
        archive_transform: ArchiveTransform | None = None,
    ) -> None:
        self._floor_bytes = floor_bytes
        self._image_transforms = dict(
            image_transforms if image_transforms is not None
            else default_image_transforms()
        )
        self._archive_non_images = archive_non_images
        self._archive_threshold = archive_threshold
        self._archive_transform = archive_transform or zip_archive

    @classmethod
    def from_settings(cls, settings) -> CompressionPipeline:
        return cls(
            floor_bytes=settings.compression_floor_bytes,
            image_transforms=default_image_transforms(
                settings.image_quality, settings.png_compress_level,
            ),
            archive_non_images=settings.archive_non_images,
            archive_threshold=settings.archive_threshold,
        )

    def is_eligible(self, content_type: str) -> bool:
        content_type = content_type.lower()
        if content_type.startswith("image/"):
            return content_type in self._image_transforms
        return self._archive_non_images

    def compress(
        self,
        data: bytes,
        content_type: str,
        *,
        filename: str = "file",
    ) -> CompressionResult:
        """Return the bytes to store for an upload and how they were chosen."""
        original_size = len(data)
        if original_size < self._floor_bytes or not self.is_eligible(content_type):
            COMPRESSION_OUTCOMES_TOTAL.labels(outcome="skipped").inc()
            return CompressionResult.passthrough(data, content_type)

        mime = content_type.lower()
        is_image = mime.startswith("image/")
        try:
            if is_image:
                output = self._image_transforms[mime](data)
                out_type = content_type
                limit = original_size
            else:
                output = self._archive_transform(data, filename)
                out_type = ZIP_CONTENT_TYPE
                limit = original_size * self._archive_threshold
        except Exception as exc:
            failure = CompressionFailed(f"{type(exc).__name__}: {exc}")
            COMPRESSION_OUTCOMES_TOTAL.labels(outcome="failed").inc()
            logger.warning(
                failure.code,
                content_type=content_type,
                original_size=original_size,
                reason=failure.message,
            )
            return CompressionResult.passthrough(data, content_type, error=failure.message)

        if len(output) >= limit:
            COMPRESSION_OUTCOMES_TOTAL.labels(outcome="discarded").inc()
            logger.debug(
                "compression_discarded",
                content_type=content_type,
                original_size=original_size,
                transformed_size=len(output),
            )
            return CompressionResult.passthrough(data, content_type)

        COMPRESSION_OUTCOMES_TOTAL.labels(outcome="kept").inc()
        logger.info(
            "compression_applied",
            content_type=content_type,
            original_size=original_size,
            final_size=len(output),
        )
        return CompressionResult(
            kept=True,
            original_size=original_size,
            final_size=len(output),
            data=output,
            content_type=out_type,
        )
