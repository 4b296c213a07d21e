# tests/unit/compression/test_compression_service.py
import io
from unittest.mock import patch

import pytest
from PIL import Image

from src.compression.exceptions import PresetNotFoundError, UnsupportedSourceError
from src.compression.schemas import (
    FitMode,
    ImageFormat,
    PresetCompressionResult,
    ServerCompressionOptions,
)
from src.compression.service import (
    ImageCompressor,
    compress_image_buffer,
    create_image_variants,
    resize_image,
    validate_image_buffer,
)


@pytest.fixture
def compressor():
    return ImageCompressor()


def open_result(buffer: bytes) -> Image.Image:
    return Image.open(io.BytesIO(buffer))


# --- Test ID: CMP-01 ---
class TestResizeImage:
    """Fit-mode geometry against an 800x600 source."""

    @pytest.fixture
    def source(self):
        return Image.new("RGB", (800, 600), (10, 120, 200))

    @pytest.mark.parametrize(
        "fit, expected",
        [
            (FitMode.COVER, (400, 400)),
            (FitMode.CONTAIN, (400, 400)),
            (FitMode.FILL, (400, 400)),
            (FitMode.INSIDE, (400, 300)),
            (FitMode.OUTSIDE, (533, 400)),
        ],
    )
    def test_fit_modes(self, source, fit, expected):
        """CMP-01-TC-01: Each fit mode relates the source to a 400x400 box."""
        options = ServerCompressionOptions(width=400, height=400, fit=fit)
        assert resize_image(source, options).size == expected

    def test_default_fit_is_inside(self, source):
        """CMP-01-TC-02: No fit given behaves like inside."""
        options = ServerCompressionOptions(width=400, height=400)
        assert resize_image(source, options).size == (400, 300)

    def test_contain_pads_with_black(self, source):
        """CMP-01-TC-03: Letterbox bands are black."""
        options = ServerCompressionOptions(width=400, height=400, fit=FitMode.CONTAIN)
        resized = resize_image(source, options)
        assert resized.getpixel((200, 0)) == (0, 0, 0)
        assert resized.getpixel((200, 200)) == (10, 120, 200)

    def test_single_dimension_keeps_aspect_ratio(self, source):
        """CMP-01-TC-04: Only width given derives the height."""
        assert resize_image(source, ServerCompressionOptions(width=200)).size == (200, 150)
        assert resize_image(source, ServerCompressionOptions(height=300)).size == (400, 300)

    def test_no_dimensions_is_a_no_op(self, source):
        """CMP-01-TC-05: Without a box the image is untouched."""
        assert resize_image(source, ServerCompressionOptions(quality=50)) is source

    @pytest.mark.parametrize("fit", list(FitMode))
    def test_without_enlargement_never_upscales(self, fit):
        """CMP-01-TC-06: Small sources keep their size under every fit."""
        small = Image.new("RGB", (100, 50))
        options = ServerCompressionOptions(width=400, height=400, fit=fit, without_enlargement=True)
        width, height = resize_image(small, options).size
        assert width <= 100 and height <= 50

    def test_enlargement_when_explicitly_allowed(self):
        """CMP-01-TC-07: without_enlargement=False lets inside scale up."""
        small = Image.new("RGB", (100, 50))
        options = ServerCompressionOptions(
            width=400, height=400, fit=FitMode.INSIDE, without_enlargement=False
        )
        assert resize_image(small, options).size == (400, 200)

    def test_cover_on_small_source_is_cropped_not_enlarged(self):
        """CMP-01-TC-08: cover crops to the box even when scaling is clamped."""
        source = Image.new("RGB", (500, 300))
        options = ServerCompressionOptions(width=400, height=400, fit=FitMode.COVER)
        assert resize_image(source, options).size == (400, 300)


# --- Test ID: CMP-02 ---
class TestCompressBuffer:
    def test_avatar_end_to_end(self, compressor, large_jpeg_bytes):
        """CMP-02-TC-01: A 3000x2000 JPEG becomes a webp avatar within 400x400."""
        result = compressor.compress_with_preset(large_jpeg_bytes, "avatar")

        assert isinstance(result, PresetCompressionResult)
        assert result.preset.name == "Avatar"
        assert result.info.format == "webp"
        assert result.info.width <= 400 and result.info.height <= 400
        assert result.original_size == len(large_jpeg_bytes)
        assert result.compressed_size == len(result.buffer)
        assert result.compressed_size < result.original_size
        assert result.compression_ratio > 0

        output = open_result(result.buffer)
        assert output.format == "WEBP"
        assert output.size == (result.info.width, result.info.height)

    def test_repeated_compression_stays_within_box(self, compressor, large_jpeg_bytes):
        """CMP-02-TC-02: Re-running a preset on its own output never grows the image."""
        first = compressor.compress_with_preset(large_jpeg_bytes, "avatar")
        second = compressor.compress_with_preset(first.buffer, "avatar")

        for result in (first, second):
            assert result.info.width <= 400
            assert result.info.height <= 400
        assert (second.info.width, second.info.height) == (first.info.width, first.info.height)

    def test_keeps_jpeg_format_when_none_requested(self, compressor, jpeg_bytes):
        """CMP-02-TC-03: jpeg sources stay jpeg without an explicit format."""
        result = compressor.compress_buffer(jpeg_bytes, ServerCompressionOptions(quality=60))
        assert result.info.format == "jpeg"
        assert open_result(result.buffer).format == "JPEG"

    def test_keeps_png_format_when_none_requested(self, compressor, png_rgba_bytes):
        """CMP-02-TC-04: png sources stay png and keep their alpha channel."""
        result = compressor.compress_buffer(png_rgba_bytes, ServerCompressionOptions(width=320))
        assert result.info.format == "png"
        assert result.info.channels == 4
        assert (result.info.width, result.info.height) == (320, 240)

    def test_other_formats_keep_their_own_encoder(self, compressor, image_factory):
        """CMP-02-TC-05: gif sources are written back as gif."""
        gif = image_factory((120, 80), "GIF", mode="RGB", noisy=False)
        result = compressor.compress_buffer(gif, ServerCompressionOptions())
        assert result.info.format == "gif"
        assert open_result(result.buffer).format == "GIF"

    def test_jpeg_output_flattens_transparency(self, compressor, png_rgba_bytes):
        """CMP-02-TC-06: Encoding an RGBA source as jpeg drops the alpha channel."""
        options = ServerCompressionOptions(format=ImageFormat.JPEG, quality=80)
        result = compressor.compress_buffer(png_rgba_bytes, options)
        assert result.info.format == "jpeg"
        assert result.info.channels == 3
        assert open_result(result.buffer).info.get("progressive")

    def test_document_preset_produces_png(self, compressor, jpeg_bytes):
        """CMP-02-TC-07: The document preset favours lossless png."""
        result = compressor.compress_with_preset(jpeg_bytes, "document")
        assert result.info.format == "png"
        assert (result.info.width, result.info.height) == (800, 600)

    def test_exif_orientation_is_applied(self, compressor):
        """CMP-02-TC-08: A rotated camera photo comes out upright."""
        image = Image.new("RGB", (200, 100), (255, 0, 0))
        exif = image.getexif()
        exif[0x0112] = 6  # rotate 90 CW on display
        output = io.BytesIO()
        image.save(output, format="JPEG", exif=exif)

        result = compressor.compress_buffer(output.getvalue(), ServerCompressionOptions(format=ImageFormat.WEBP))
        assert (result.info.width, result.info.height) == (100, 200)

    def test_source_buffer_is_not_mutated(self, compressor, jpeg_bytes):
        """CMP-02-TC-09: Output is newly allocated; the input is untouched."""
        snapshot = bytes(jpeg_bytes)
        compressor.compress_with_preset(jpeg_bytes, "thumbnail")
        assert jpeg_bytes == snapshot

    def test_undecodable_buffer_raises(self, compressor, corrupt_bytes):
        """CMP-02-TC-10: Garbage input is a terminal UnsupportedSourceError."""
        with pytest.raises(UnsupportedSourceError):
            compressor.compress_buffer(corrupt_bytes, ServerCompressionOptions(format=ImageFormat.WEBP))

    def test_truncated_image_raises(self, compressor, jpeg_bytes):
        """CMP-02-TC-11: A truncated file fails while decoding, not later."""
        with pytest.raises(UnsupportedSourceError):
            compressor.compress_buffer(jpeg_bytes[: len(jpeg_bytes) // 3], ServerCompressionOptions())

    def test_unknown_preset_raises(self, compressor, jpeg_bytes):
        """CMP-02-TC-12: Preset lookup failures surface as PresetNotFoundError."""
        with pytest.raises(PresetNotFoundError):
            compressor.compress_with_preset(jpeg_bytes, "billboard")

    def test_read_only_source_format_falls_back_to_png(self, compressor):
        """CMP-02-TC-13: Formats Pillow can decode but not encode are re-encoded as png."""
        xpm = (
            b"/* XPM */\n"
            b"static char *icon[] = {\n"
            b"\"4 4 2 1\",\n"
            b"\"a c #000000\",\n"
            b"\"b c #FFFFFF\",\n"
            b"\"aabb\",\n"
            b"\"aabb\",\n"
            b"\"bbaa\",\n"
            b"\"bbaa\"\n"
            b"};\n"
        )
        assert Image.open(io.BytesIO(xpm)).format == "XPM"

        result = compressor.compress_buffer(xpm, ServerCompressionOptions())

        assert result.info.format == "png"
        assert (result.info.width, result.info.height) == (4, 4)
        assert open_result(result.buffer).format == "PNG"


# --- Test ID: CMP-03 ---
class TestCreateVariants:
    def test_variants_are_built_from_the_same_source(self, compressor, jpeg_bytes):
        """CMP-03-TC-01: Each variant reads the original, not the previous variant."""
        variants = compressor.create_variants(jpeg_bytes, ["thumbnail", "standard"])

        assert list(variants) == ["thumbnail", "standard"]
        assert variants["thumbnail"].info.width == 300
        assert variants["thumbnail"].info.height == 300
        assert (variants["standard"].info.width, variants["standard"].info.height) == (800, 600)
        assert all(v.original_size == len(jpeg_bytes) for v in variants.values())

    def test_failing_variant_fails_the_whole_batch(self, compressor, jpeg_bytes):
        """CMP-03-TC-02: No partial map is returned when one variant fails."""
        thumbnail = compressor.compress_with_preset(jpeg_bytes, "thumbnail")

        with patch.object(
            ImageCompressor,
            "compress_with_preset",
            side_effect=[thumbnail, UnsupportedSourceError("corrupt")],
        ):
            with pytest.raises(UnsupportedSourceError):
                compressor.create_variants(jpeg_bytes, ["thumbnail", "standard"])

    def test_corrupt_source_fails(self, compressor, corrupt_bytes):
        """CMP-03-TC-03: A corrupt buffer rejects the batch."""
        with pytest.raises(UnsupportedSourceError):
            compressor.create_variants(corrupt_bytes, ["thumbnail", "standard"])

    def test_unknown_variant_fails(self, compressor, jpeg_bytes):
        """CMP-03-TC-04: Unknown variant names reject the batch."""
        with pytest.raises(PresetNotFoundError):
            compressor.create_variants(jpeg_bytes, ["thumbnail", "poster"])

    def test_module_helper_defaults(self, jpeg_bytes):
        """CMP-03-TC-05: The helper builds thumbnail and standard by default."""
        assert set(create_image_variants(jpeg_bytes)) == {"thumbnail", "standard"}


# --- Test ID: CMP-04 ---
class TestMetadataAndValidation:
    def test_get_metadata(self, compressor, png_rgba_bytes):
        """CMP-04-TC-01: Metadata reports format, size and alpha."""
        metadata = compressor.get_metadata(png_rgba_bytes)
        assert metadata.format == "png"
        assert (metadata.width, metadata.height) == (640, 480)
        assert metadata.has_alpha is True

    def test_get_metadata_corrupt(self, compressor, corrupt_bytes):
        """CMP-04-TC-02: Metadata on garbage raises."""
        with pytest.raises(UnsupportedSourceError):
            compressor.get_metadata(corrupt_bytes)

    def test_validate_valid_image(self, compressor, jpeg_bytes):
        """CMP-04-TC-03: A jpeg validates with its dimensions."""
        result = compressor.validate_image(jpeg_bytes)
        assert result.is_valid is True
        assert result.format == "jpeg"
        assert (result.width, result.height) == (800, 600)
        assert result.size == len(jpeg_bytes)
        assert result.error is None

    def test_validate_corrupt_image_never_raises(self, compressor, corrupt_bytes):
        """CMP-04-TC-04: Decode failures are captured in the result."""
        result = validate_image_buffer(corrupt_bytes)
        assert result.is_valid is False
        assert result.size == len(corrupt_bytes)
        assert result.error

    def test_validate_unsupported_format(self, compressor, image_factory):
        """CMP-04-TC-05: Decodable but unlisted formats are invalid."""
        icon = image_factory((32, 32), "ICO", noisy=False)
        result = compressor.validate_image(icon)
        assert result.is_valid is False
        assert result.error == "Unsupported image format: ico"

    def test_validate_accepts_transcoded_output(self, compressor, jpeg_bytes):
        """CMP-04-TC-06: webp results of the engine validate as images."""
        webp = compress_image_buffer(jpeg_bytes, "thumbnail").buffer
        assert compressor.validate_image(webp).format == "webp"


# --- Test ID: CMP-05 ---
class TestOptimizeForWeb:
    def test_auto_picks_webp_for_transparent_png(self, compressor, png_rgba_bytes):
        """CMP-05-TC-01: auto always means webp, alpha included."""
        result = compressor.optimize_for_web(png_rgba_bytes)
        assert result.info.format == "webp"
        assert result.info.channels == 4

    def test_auto_picks_webp_for_jpeg(self, compressor, large_jpeg_bytes):
        """CMP-05-TC-02: Large sources are bounded to 1920x1080."""
        result = compressor.optimize_for_web(large_jpeg_bytes)
        assert result.info.format == "webp"
        assert result.info.width <= 1920 and result.info.height <= 1080
        assert (result.info.width, result.info.height) == (1620, 1080)

    def test_explicit_format_and_box(self, compressor, jpeg_bytes):
        """CMP-05-TC-03: Explicit options are honoured."""
        result = compressor.optimize_for_web(
            jpeg_bytes, max_width=200, max_height=200, quality=70, output_format="jpeg"
        )
        assert result.info.format == "jpeg"
        assert (result.info.width, result.info.height) == (200, 150)

    def test_never_enlarges(self, compressor, image_factory):
        """CMP-05-TC-04: Small images keep their size."""
        small = image_factory((64, 48), "PNG")
        result = compressor.optimize_for_web(small)
        assert (result.info.width, result.info.height) == (64, 48)

    @pytest.mark.parametrize("output_format", ["png", "gif", "tiff"])
    def test_rejects_formats_outside_the_web_set(self, compressor, jpeg_bytes, output_format):
        """CMP-05-TC-05: Only auto, jpeg, webp and avif are accepted."""
        with pytest.raises(ValueError, match="Unsupported web format"):
            compressor.optimize_for_web(jpeg_bytes, output_format=output_format)
