"""
Photocat Backend — Image Transcoder Unit Tests
================================================

What:  Bounding-box resize, output format, orientation, metadata stripping,
       vector passthrough and the undecodable-input path.
How:   Images are generated with Pillow in memory; no fixtures on disk.
"""

import io

import pytest
from PIL import Image

from photocat.exceptions import UnsupportedFormatError
from photocat.services.image_transcoder import ImageTranscoder

SVG = b'<svg xmlns="http://www.w3.org/2000/svg" width="4000" height="10"><rect width="4000" height="10"/></svg>'


def open_result(data: bytes) -> Image.Image:
    image = Image.open(io.BytesIO(data))
    image.load()
    return image


class TestBoundingBox:
    def setup_method(self):
        self.transcoder = ImageTranscoder(max_width=800, max_height=800)

    def test_landscape_is_bounded_by_width(self, make_image):
        result = self.transcoder.transcode(make_image((1600, 1200)), "image/png")

        image = open_result(result.data)
        assert image.size == (800, 600)
        assert (result.width, result.height) == (800, 600)

    def test_portrait_is_bounded_by_height(self, make_image):
        result = self.transcoder.transcode(make_image((600, 1800)), "image/png")

        image = open_result(result.data)
        assert image.height == 800
        assert abs(image.width - 267) <= 1

    def test_small_image_is_not_upscaled(self, make_image):
        result = self.transcoder.transcode(make_image((320, 200)), "image/png")

        assert open_result(result.data).size == (320, 200)

    def test_exact_box_is_unchanged(self, make_image):
        result = self.transcoder.transcode(make_image((800, 800)), "image/png")

        assert open_result(result.data).size == (800, 800)


class TestOutputFormat:
    def test_default_output_is_webp(self, make_image):
        result = ImageTranscoder().transcode(make_image(fmt="JPEG"), "image/jpeg")

        assert result.content_type == "image/webp"
        assert open_result(result.data).format == "WEBP"

    def test_jpeg_output(self, make_image):
        transcoder = ImageTranscoder(output_format="jpeg")
        result = transcoder.transcode(make_image(fmt="PNG"), "image/png")

        assert result.content_type == "image/jpeg"
        assert open_result(result.data).format == "JPEG"

    def test_alpha_is_kept_for_webp(self, make_image):
        png = make_image((100, 100), mode="RGBA", color=(0, 0, 255, 128))
        result = ImageTranscoder().transcode(png, "image/png")

        assert open_result(result.data).mode == "RGBA"

    def test_alpha_is_flattened_for_jpeg(self, make_image):
        png = make_image((100, 100), mode="RGBA", color=(0, 0, 255, 128))
        result = ImageTranscoder(output_format="jpeg").transcode(png, "image/png")

        assert open_result(result.data).mode == "RGB"

    def test_invalid_output_format_rejected(self):
        with pytest.raises(ValueError, match="Unsupported output format"):
            ImageTranscoder(output_format="gif")

    def test_invalid_quality_rejected(self):
        with pytest.raises(ValueError):
            ImageTranscoder(quality=101)


class TestOrientationAndMetadata:
    def _jpeg_with_orientation(self, orientation: int) -> bytes:
        image = Image.new("RGB", (400, 200), (10, 120, 10))
        exif = Image.Exif()
        exif[0x0112] = orientation
        out = io.BytesIO()
        image.save(out, format="JPEG", exif=exif)
        return out.getvalue()

    def test_exif_orientation_is_applied(self):
        # Orientation 6: stored landscape, displayed rotated 90°
        result = ImageTranscoder().transcode(self._jpeg_with_orientation(6), "image/jpeg")

        assert open_result(result.data).size == (200, 400)

    def test_exif_is_not_carried_over(self):
        result = ImageTranscoder(output_format="jpeg").transcode(
            self._jpeg_with_orientation(6), "image/jpeg"
        )

        assert len(open_result(result.data).getexif()) == 0


class TestPassthroughAndErrors:
    def test_svg_passes_through_unchanged(self):
        result = ImageTranscoder().transcode(SVG, "image/svg+xml")

        assert result.data == SVG
        assert result.content_type == "image/svg+xml"
        assert result.width is None

    def test_garbage_bytes_raise_unsupported_format(self):
        with pytest.raises(UnsupportedFormatError):
            ImageTranscoder().transcode(b"definitely not an image", "image/png")

    def test_truncated_image_raises_unsupported_format(self, make_image):
        png = make_image((400, 400))
        with pytest.raises(UnsupportedFormatError):
            ImageTranscoder().transcode(png[: len(png) // 3], "image/png")

    def test_declared_type_mismatch_still_decodes(self, make_image):
        # The declared type only gates the allow-list; Pillow sniffs the bytes
        result = ImageTranscoder().transcode(make_image(fmt="PNG"), "image/jpeg")

        assert result.content_type == "image/webp"
