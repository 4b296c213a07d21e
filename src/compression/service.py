# src/compression/service.py
import io
import logging

from PIL import Image, ImageOps

from src.compression.constants import DEFAULT_QUALITY, SERVER_SUPPORTED_FORMATS
from src.compression.exceptions import UnsupportedSourceError
from src.compression.schemas import (
    FitMode,
    ImageFormat,
    ImageMetadata,
    ImageValidationResult,
    OutputInfo,
    PresetCompressionResult,
    ServerCompressionOptions,
    ServerCompressionResult,
)
from src.compression.utils import calculate_compression_ratio, get_preset, normalize_format

logger = logging.getLogger(__name__)

# PngImagePlugin reports broken files with SyntaxError
DECODE_ERRORS = (OSError, SyntaxError, ValueError, Image.DecompressionBombError)

# Modes every encoder used here can write without conversion
SAFE_MODES = ("1", "L", "LA", "RGB", "RGBA")

# libavif speed: 0 is the slowest, best-compressing setting
AVIF_SPEED = 1
WEBP_METHOD = 6
PNG_COMPRESS_LEVEL = 9

# Output formats offered by optimize_for_web besides "auto"
WEB_FORMATS = (ImageFormat.JPEG, ImageFormat.WEBP, ImageFormat.AVIF)


def open_image(buffer: bytes) -> Image.Image:
    try:
        image = Image.open(io.BytesIO(buffer))
        image.load()
    except DECODE_ERRORS as e:
        raise UnsupportedSourceError(
            f"Input buffer contains unsupported image format: {e}"
        ) from e
    return image


def has_alpha(image: Image.Image) -> bool:
    return image.mode in ("RGBA", "LA", "PA") or (
        image.mode == "P" and "transparency" in image.info
    )


def normalize_mode(image: Image.Image) -> Image.Image:
    if image.mode in SAFE_MODES:
        return image
    return image.convert("RGBA" if has_alpha(image) else "RGB")


def flatten_alpha(image: Image.Image) -> Image.Image:
    """Composite transparent pixels onto white for formats without alpha."""
    if image.mode not in ("RGBA", "LA"):
        return image
    background = Image.new("RGB", image.size, (255, 255, 255))
    background.paste(image.convert("RGBA"), mask=image.getchannel("A"))
    return background


def _scale(image: Image.Image, factor: float) -> Image.Image:
    width, height = image.size
    size = (max(1, round(width * factor)), max(1, round(height * factor)))
    if size == image.size:
        return image
    return image.resize(size, Image.Resampling.LANCZOS)


def _center_crop(image: Image.Image, width: int, height: int) -> Image.Image:
    width, height = min(width, image.width), min(height, image.height)
    left = (image.width - width) // 2
    top = (image.height - height) // 2
    return image.crop((left, top, left + width, top + height))


def _letterbox(image: Image.Image, width: int, height: int) -> Image.Image:
    mode = "RGBA" if image.mode in ("RGBA", "LA") else "RGB"
    canvas = Image.new(mode, (width, height), (0, 0, 0, 255) if mode == "RGBA" else (0, 0, 0))
    offset = ((width - image.width) // 2, (height - image.height) // 2)
    canvas.paste(image.convert(mode), offset)
    return canvas


def resize_image(image: Image.Image, options: ServerCompressionOptions) -> Image.Image:
    """Resize ``image`` into the box described by ``options``.

    ``fit`` follows the usual CSS ``object-fit`` vocabulary: ``cover`` fills
    the box and crops the overflow, ``contain`` fits inside and pads the rest,
    ``fill`` stretches, ``inside`` fits inside without padding and ``outside``
    covers the box without cropping. When only one dimension is given the
    other follows the aspect ratio. Unless ``without_enlargement`` is
    explicitly False the image is never scaled up.
    """
    target_width, target_height = options.width, options.height
    if not target_width and not target_height:
        return image

    fit = options.fit or FitMode.INSIDE
    without_enlargement = options.without_enlargement is not False
    source_width, source_height = image.size

    if not target_width or not target_height:
        factor = (
            target_width / source_width
            if target_width
            else target_height / source_height
        )
        if without_enlargement:
            factor = min(factor, 1.0)
        return _scale(image, factor)

    if fit == FitMode.FILL:
        if without_enlargement:
            target_width = min(target_width, source_width)
            target_height = min(target_height, source_height)
        if (target_width, target_height) == image.size:
            return image
        return image.resize((target_width, target_height), Image.Resampling.LANCZOS)

    width_factor = target_width / source_width
    height_factor = target_height / source_height

    if fit in (FitMode.COVER, FitMode.OUTSIDE):
        factor = max(width_factor, height_factor)
    else:
        factor = min(width_factor, height_factor)

    clamped = without_enlargement and factor > 1.0
    if clamped:
        factor = 1.0
    resized = _scale(image, factor)

    if fit == FitMode.COVER:
        return _center_crop(resized, target_width, target_height)
    if fit == FitMode.CONTAIN and not clamped:
        return _letterbox(resized, target_width, target_height)
    return resized


def can_write(output_format: str) -> bool:
    Image.init()
    return output_format.upper() in Image.SAVE


def encode_image(
    image: Image.Image, output_format: str, quality: int = DEFAULT_QUALITY
) -> tuple[bytes, Image.Image]:
    """Encode ``image`` and return the bytes plus the image actually written."""
    output = io.BytesIO()

    if output_format == ImageFormat.JPEG.value:
        image = flatten_alpha(image)
        image.save(output, format="JPEG", quality=quality, optimize=True, progressive=True)
    elif output_format == ImageFormat.PNG.value:
        image.save(output, format="PNG", optimize=True, compress_level=PNG_COMPRESS_LEVEL)
    elif output_format == ImageFormat.WEBP.value:
        image.save(output, format="WEBP", quality=quality, method=WEBP_METHOD)
    elif output_format == ImageFormat.AVIF.value:
        image.save(output, format="AVIF", quality=quality, speed=AVIF_SPEED)
    else:
        # Anything else is written back in its own format with encoder defaults
        image.save(output, format=output_format.upper())

    return output.getvalue(), image


class ImageCompressor:
    """Server-side image transcoding on top of Pillow.

    The compressor holds no state; every call reads the source buffer and
    returns newly allocated output, so one instance can serve concurrent
    requests.
    """

    def compress_buffer(
        self, buffer: bytes, options: ServerCompressionOptions
    ) -> ServerCompressionResult:
        original_size = len(buffer)

        image = open_image(buffer)
        source_format = normalize_format(image.format)

        image = ImageOps.exif_transpose(image)
        image = normalize_mode(image)
        image = resize_image(image, options)

        output_format = options.format.value if options.format else source_format
        if options.format is None and not can_write(output_format):
            # Pillow reads a few formats (xpm, psd, cur) it has no encoder for
            output_format = ImageFormat.PNG.value
        quality = options.quality or DEFAULT_QUALITY
        data, written = encode_image(image, output_format, quality)

        compressed_size = len(data)
        compression_ratio = calculate_compression_ratio(original_size, compressed_size)

        logger.debug(
            "Compressed %s -> %s: %d -> %d bytes (%d%%)",
            source_format,
            output_format,
            original_size,
            compressed_size,
            compression_ratio,
        )

        return ServerCompressionResult(
            buffer=data,
            info=OutputInfo(
                format=output_format,
                width=written.width,
                height=written.height,
                channels=len(written.getbands()),
                size=compressed_size,
            ),
            original_size=original_size,
            compressed_size=compressed_size,
            compression_ratio=compression_ratio,
        )

    def compress_with_preset(self, buffer: bytes, preset_name: str) -> PresetCompressionResult:
        preset = get_preset(preset_name)
        result = self.compress_buffer(buffer, preset.server)
        return PresetCompressionResult(**result.model_dump(), preset=preset)

    def create_variants(
        self, buffer: bytes, variants: list[str]
    ) -> dict[str, PresetCompressionResult]:
        results: dict[str, PresetCompressionResult] = {}
        for variant in variants:
            try:
                results[variant] = self.compress_with_preset(buffer, variant)
            except Exception:
                logger.error("Failed to create variant '%s'", variant, exc_info=True)
                raise
        return results

    def get_metadata(self, buffer: bytes) -> ImageMetadata:
        image = open_image(buffer)
        return ImageMetadata(
            format=normalize_format(image.format),
            width=image.width,
            height=image.height,
            mode=image.mode,
            has_alpha=has_alpha(image),
        )

    def validate_image(self, buffer: bytes) -> ImageValidationResult:
        try:
            metadata = self.get_metadata(buffer)
        except UnsupportedSourceError as e:
            return ImageValidationResult(is_valid=False, size=len(buffer), error=str(e))

        if metadata.format not in SERVER_SUPPORTED_FORMATS:
            return ImageValidationResult(
                is_valid=False,
                size=len(buffer),
                error=f"Unsupported image format: {metadata.format}",
            )

        return ImageValidationResult(
            is_valid=True,
            format=metadata.format,
            width=metadata.width,
            height=metadata.height,
            size=len(buffer),
        )

    def optimize_for_web(
        self,
        buffer: bytes,
        max_width: int = 1920,
        max_height: int = 1080,
        quality: int = DEFAULT_QUALITY,
        output_format: str = "auto",
    ) -> ServerCompressionResult:
        # webp carries alpha as well, so "auto" never needs to look at the source
        if output_format == "auto":
            target_format = ImageFormat.WEBP
        else:
            target_format = next((f for f in WEB_FORMATS if f.value == output_format), None)
            if target_format is None:
                raise ValueError(
                    f"Unsupported web format '{output_format}'; expected auto, jpeg, webp or avif"
                )

        return self.compress_buffer(
            buffer,
            ServerCompressionOptions(
                width=max_width,
                height=max_height,
                quality=quality,
                format=target_format,
                fit=FitMode.INSIDE,
                without_enlargement=True,
            ),
        )


image_compressor = ImageCompressor()


def compress_image_buffer(buffer: bytes, preset: str = "standard") -> PresetCompressionResult:
    return image_compressor.compress_with_preset(buffer, preset)


def create_image_variants(
    buffer: bytes, variants: list[str] | None = None
) -> dict[str, PresetCompressionResult]:
    return image_compressor.create_variants(buffer, variants or ["thumbnail", "standard"])


def validate_image_buffer(buffer: bytes) -> ImageValidationResult:
    return image_compressor.validate_image(buffer)


def optimize_image_for_web(buffer: bytes, **options) -> ServerCompressionResult:
    return image_compressor.optimize_for_web(buffer, **options)
