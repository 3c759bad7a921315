"""
Photocat Backend — Image Transcoder
=====================================

What:  Normalizes uploaded raster images before they reach the blob store.
How:   Pillow decodes the buffer, applies the EXIF orientation, shrinks the
       image to fit a bounding box and re-encodes it in one lossy format.
Who:   Called by UploadService (in a worker thread) for every upload.

Rules:
    - SVG (vector) input is passed through byte-for-byte.
    - Raster input is bounded to max_width × max_height with the aspect ratio
      preserved. Smaller images keep their dimensions (no upscaling).
    - Output is a single format (WebP by default) at a fixed quality.
    - Metadata is not carried over: no EXIF, no ICC profile, no comments.

The transcoder holds only its configuration, so one instance is shared by
all concurrent uploads.
"""

import io
import logging
from dataclasses import dataclass
from typing import Optional

from PIL import Image, ImageOps, UnidentifiedImageError

from photocat.exceptions import ProcessingError, UnsupportedFormatError

logger = logging.getLogger(__name__)

# Pillow format name → MIME type of the encoded output
OUTPUT_FORMATS = {
    "webp": ("WEBP", "image/webp"),
    "jpeg": ("JPEG", "image/jpeg"),
}

PASSTHROUGH_TYPES = frozenset({"image/svg+xml"})


@dataclass(frozen=True)
class TranscodeResult:
    data: bytes
    content_type: str
    width: Optional[int] = None
    height: Optional[int] = None


class ImageTranscoder:
    """Decode → orient → bound → re-encode, or pass vector input through."""

    def __init__(
        self,
        max_width: int = 800,
        max_height: int = 800,
        quality: int = 85,
        output_format: str = "webp",
    ):
        if output_format not in OUTPUT_FORMATS:
            raise ValueError(
                f"Unsupported output format '{output_format}'. "
                f"Choose one of: {', '.join(sorted(OUTPUT_FORMATS))}"
            )
        if not 0 <= quality <= 100:
            raise ValueError("quality must be between 0 and 100")
        self.max_width = max_width
        self.max_height = max_height
        self.quality = quality
        self.pil_format, self.output_content_type = OUTPUT_FORMATS[output_format]

    def transcode(self, data: bytes, content_type: str) -> TranscodeResult:
        """
        Produce the bytes that will be stored for an upload.

        Args:
            data:          Raw uploaded bytes
            content_type:  Declared MIME type of the upload (already allow-listed)

        Returns:
            TranscodeResult with the output bytes, output MIME type and,
            for raster images, the output dimensions.

        Raises:
            UnsupportedFormatError: bytes are not a decodable image
            ProcessingError:        decoding worked but re-encoding failed
        """
        if content_type in PASSTHROUGH_TYPES:
            logger.debug("Vector image passed through unchanged (%d bytes)", len(data))
            return TranscodeResult(data=data, content_type=content_type)

        image = self._decode(data, content_type)
        try:
            original_size = image.size
            image = ImageOps.exif_transpose(image)
            # thumbnail() only ever shrinks and keeps the aspect ratio
            image.thumbnail((self.max_width, self.max_height), Image.Resampling.LANCZOS)
            image = self._normalize_mode(image)

            out = io.BytesIO()
            save_kwargs = {"format": self.pil_format, "quality": self.quality}
            if self.pil_format == "JPEG":
                save_kwargs["optimize"] = True
            image.save(out, **save_kwargs)
        except Exception as e:
            logger.error("Transcoding failed for %s input: %s", content_type, str(e), exc_info=True)
            raise ProcessingError(
                message="Failed to process the uploaded image.",
                context={"content_type": content_type, "error_type": type(e).__name__},
            ) from e

        result = out.getvalue()
        logger.info(
            "Transcoded %s %dx%d (%d bytes) → %s %dx%d (%d bytes)",
            content_type,
            original_size[0],
            original_size[1],
            len(data),
            self.output_content_type,
            image.width,
            image.height,
            len(result),
        )
        return TranscodeResult(
            data=result,
            content_type=self.output_content_type,
            width=image.width,
            height=image.height,
        )

    def _decode(self, data: bytes, content_type: str) -> Image.Image:
        try:
            image = Image.open(io.BytesIO(data))
            image.load()
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError, ValueError) as e:
            logger.warning("Could not decode %s upload: %s", content_type, str(e))
            raise UnsupportedFormatError(
                context={"content_type": content_type, "error_type": type(e).__name__},
            ) from e
        return image

    def _normalize_mode(self, image: Image.Image) -> Image.Image:
        """Convert to a pixel mode the output encoder accepts."""
        has_alpha = image.mode in ("RGBA", "LA") or (
            image.mode == "P" and "transparency" in image.info
        )
        if self.pil_format == "WEBP":
            target = "RGBA" if has_alpha else "RGB"
        else:
            target = "RGB"
        if image.mode != target:
            image = image.convert(target)
        return image
