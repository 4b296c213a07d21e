# src/compression/client.py
"""Pre-upload image compression.

Runs in the process that owns the file (an uploader, a sync agent, the API
layer before it forwards a payload) so that only the reduced file crosses the
network. Mirrors what a browser-side compressor does: cap the longest edge,
encode at an initial quality and keep shrinking until the output fits the
size target, reporting progress along the way and honouring cancellation.
"""
import asyncio
import base64
import io
import logging
import os
import threading
from typing import Callable

from PIL import Image, ImageOps

from src.compression.constants import (
    ALLOWED_EXTENSIONS,
    MAX_FILE_SIZE,
    SUPPORTED_IMAGE_FORMATS,
)
from src.compression.exceptions import (
    CompressionCancelled,
    ImageValidationError,
    UnsupportedSourceError,
)
from src.compression.schemas import (
    ClientCompressionOptions,
    CompressionPreset,
    CompressionResult,
    FileValidationResult,
    ImageFile,
    ProgressStatus,
    UploadProgress,
)
from src.compression.service import DECODE_ERRORS, flatten_alpha, normalize_mode
from src.compression.utils import (
    calculate_compression_ratio,
    find_preset,
    format_file_size,
)

logger = logging.getLogger(__name__)

MAX_ITERATIONS = 10
STEP_FACTOR = 0.95

# Output format per accepted MIME type; bmp and gif are re-encoded as png
OUTPUT_FORMATS = {
    "image/jpeg": ("JPEG", "image/jpeg", ".jpg"),
    "image/jpg": ("JPEG", "image/jpeg", ".jpg"),
    "image/png": ("PNG", "image/png", ".png"),
    "image/webp": ("WEBP", "image/webp", ".webp"),
    "image/bmp": ("PNG", "image/png", ".png"),
    "image/gif": ("PNG", "image/png", ".png"),
}

DEFAULT_OPTIONS = ClientCompressionOptions(
    initial_quality=1.0,
    always_keep_resolution=False,
    use_web_worker=True,
    preserve_exif=False,
)


class CancellationToken:
    """Thread-safe flag shared between a caller and a running transform."""

    def __init__(self):
        self._event = threading.Event()
        self.reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "Compression cancelled by user") -> None:
        self.reason = reason
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise CompressionCancelled(self.reason or "Compression cancelled")


def resolve_options(
    preset: CompressionPreset | None, custom_options: ClientCompressionOptions | None
) -> ClientCompressionOptions:
    options = DEFAULT_OPTIONS
    if preset is not None:
        options = options.model_copy(update=preset.client.model_dump(exclude_none=True))
    if custom_options is not None:
        options = options.model_copy(update=custom_options.model_dump(exclude_none=True))
    return options


def _encode(image: Image.Image, pil_format: str, quality: float, exif: bytes | None) -> bytes:
    output = io.BytesIO()
    params = {}
    if pil_format in ("JPEG", "WEBP"):
        params["quality"] = max(1, min(100, round(quality * 100)))
    if pil_format == "JPEG":
        image = flatten_alpha(image)
        params["optimize"] = True
    if pil_format == "PNG":
        params["optimize"] = True
    if exif and pil_format in ("JPEG", "WEBP", "PNG"):
        params["exif"] = exif
    image.save(output, format=pil_format, **params)
    return output.getvalue()


def compress_file(
    file: ImageFile,
    options: ClientCompressionOptions,
    token: CancellationToken | None = None,
    report: Callable[[int], None] | None = None,
) -> ImageFile:
    """Shrink ``file`` according to ``options``.

    Checks ``token`` between every encode pass and calls ``report`` with a
    percentage in [0, 100]. Returns the original file when compression does
    not make it smaller.
    """
    token = token or CancellationToken()
    report = report or (lambda percentage: None)

    report(0)
    try:
        image = Image.open(io.BytesIO(file.content))
        image.load()
    except DECODE_ERRORS as e:
        raise UnsupportedSourceError(f"Could not decode {file.filename}: {e}") from e
    token.raise_if_cancelled()
    report(10)

    pil_format, content_type, extension = OUTPUT_FORMATS.get(
        file.content_type.lower(), ("PNG", "image/png", ".png")
    )

    image = ImageOps.exif_transpose(image)
    # exif_transpose drops the orientation tag, so the kept EXIF stays consistent
    exif = image.info.get("exif") if options.preserve_exif else None
    image = normalize_mode(image)

    keep_resolution = bool(options.always_keep_resolution)
    max_edge = options.max_width_or_height
    if max_edge and not keep_resolution and max(image.size) > max_edge:
        image.thumbnail((max_edge, max_edge), Image.Resampling.LANCZOS)
    token.raise_if_cancelled()

    quality = options.initial_quality or 1.0
    data = _encode(image, pil_format, quality, exif)
    report(20)

    max_bytes = options.max_size_mb * 1024 * 1024 if options.max_size_mb else None
    quality_adjustable = pil_format in ("JPEG", "WEBP")
    iteration = 0
    while max_bytes is not None and len(data) > max_bytes and iteration < MAX_ITERATIONS:
        if keep_resolution and not quality_adjustable:
            break
        token.raise_if_cancelled()
        iteration += 1

        if not keep_resolution:
            width = max(1, round(image.width * STEP_FACTOR))
            height = max(1, round(image.height * STEP_FACTOR))
            image = image.resize((width, height), Image.Resampling.LANCZOS)
        if quality_adjustable:
            quality *= STEP_FACTOR

        data = _encode(image, pil_format, quality, exif)
        report(20 + round(75 * iteration / MAX_ITERATIONS))

    token.raise_if_cancelled()
    report(100)

    if len(data) >= file.size:
        return file

    filename = file.filename
    if pil_format == "PNG" and file.content_type.lower() != "image/png":
        filename = os.path.splitext(filename)[0] + extension

    return ImageFile(filename=filename, content_type=content_type, content=data)


def to_data_url(file: ImageFile) -> str:
    encoded = base64.b64encode(file.content).decode("ascii")
    return f"data:{file.content_type};base64,{encoded}"


class ClientImageCompressor:
    def __init__(
        self,
        preset: str = "standard",
        custom_options: ClientCompressionOptions | None = None,
        on_progress: Callable[[int], None] | None = None,
        on_error: Callable[[Exception], None] | None = None,
        on_success: Callable[[CompressionResult], None] | None = None,
    ):
        self.preset = preset
        self.custom_options = custom_options
        self.on_progress = on_progress
        self.on_error = on_error
        self.on_success = on_success

        self.progress = UploadProgress()
        self.is_compressing = False
        self.error: str | None = None
        self._token: CancellationToken | None = None

    def _update_progress(self, loaded: int, total: int, status: ProgressStatus) -> None:
        percentage = round(loaded / total * 100) if total > 0 else 0
        self.progress = UploadProgress(
            loaded=loaded, total=total, percentage=percentage, status=status
        )
        if self.on_progress:
            self.on_progress(percentage)

    def validate_file(self, file: ImageFile) -> FileValidationResult:
        if file.content_type.lower() not in SUPPORTED_IMAGE_FORMATS:
            return FileValidationResult(
                is_valid=False,
                error=f"Unsupported file format. Supported formats: {', '.join(SUPPORTED_IMAGE_FORMATS)}",
            )

        max_size = max(MAX_FILE_SIZE.values())
        if file.size > max_size:
            return FileValidationResult(
                is_valid=False,
                error=f"File size too large. Maximum size: {format_file_size(max_size)}",
            )

        # A bare ".jpg" counts as a jpg extension
        name = file.filename.lower()
        extension = name[name.rfind("."):] if "." in name else ""
        if extension not in ALLOWED_EXTENSIONS:
            return FileValidationResult(
                is_valid=False,
                error=f"Invalid file extension. Allowed extensions: {', '.join(ALLOWED_EXTENSIONS)}",
            )

        return FileValidationResult(is_valid=True)

    async def compress_image(self, file: ImageFile) -> CompressionResult | None:
        self.error = None
        self.is_compressing = True
        self._update_progress(0, 100, ProgressStatus.COMPRESSING)
        token = self._token = CancellationToken()

        try:
            validation = self.validate_file(file)
            if not validation.is_valid:
                raise ImageValidationError(validation.error)

            options = resolve_options(find_preset(self.preset), self.custom_options)

            if options.use_web_worker:
                loop = asyncio.get_running_loop()

                def apply(percentage: int) -> None:
                    # Reports still queued from the worker are dropped once cancelled
                    if not token.cancelled:
                        self._update_progress(percentage, 100, ProgressStatus.COMPRESSING)

                def report(percentage: int) -> None:
                    loop.call_soon_threadsafe(apply, percentage)

                compressed = await asyncio.to_thread(compress_file, file, options, token, report)
            else:
                compressed = compress_file(
                    file,
                    options,
                    token,
                    lambda percentage: self._update_progress(
                        percentage, 100, ProgressStatus.COMPRESSING
                    ),
                )

            # A cancel that lands after the last checkpoint still wins
            token.raise_if_cancelled()

            result = CompressionResult(
                original_size=file.size,
                compressed_size=compressed.size,
                compression_ratio=calculate_compression_ratio(file.size, compressed.size),
                file=compressed,
                data_url=to_data_url(compressed),
            )

            self._update_progress(100, 100, ProgressStatus.COMPLETED)
            if self.on_success:
                self.on_success(result)
            return result

        except CompressionCancelled:
            logger.info("Compression of %s cancelled", file.filename)
            self._update_progress(0, 100, ProgressStatus.IDLE)
            return None

        except asyncio.CancelledError:
            token.cancel("Compression task cancelled")
            self._update_progress(0, 100, ProgressStatus.IDLE)
            raise

        except Exception as e:
            self.error = str(e) or "Compression failed"
            self._update_progress(0, 100, ProgressStatus.ERROR)
            if self.on_error:
                self.on_error(e)
            raise

        finally:
            self.is_compressing = False
            self._token = None

    async def compress_multiple(self, files: list[ImageFile]) -> list[CompressionResult | None]:
        results: list[CompressionResult | None] = []

        for index, file in enumerate(files):
            self._update_progress(index, len(files), ProgressStatus.COMPRESSING)
            try:
                results.append(await self.compress_image(file))
            except Exception as e:
                logger.error("Failed to compress file %s: %s", file.filename, e)
                results.append(None)

        self._update_progress(len(files), len(files), ProgressStatus.COMPLETED)
        return results

    def abort_compression(self) -> None:
        if self._token is not None:
            self._token.cancel("Compression cancelled by user")

    def get_supported_formats(self) -> list[str]:
        return list(SUPPORTED_IMAGE_FORMATS)

    def get_preset_info(self, preset_name: str) -> CompressionPreset | None:
        return find_preset(preset_name)


def quick_image_compressor(**kwargs) -> ClientImageCompressor:
    return ClientImageCompressor(preset="standard", **kwargs)


def avatar_image_compressor(**kwargs) -> ClientImageCompressor:
    return ClientImageCompressor(preset="avatar", **kwargs)


def thumbnail_image_compressor(**kwargs) -> ClientImageCompressor:
    return ClientImageCompressor(preset="thumbnail", **kwargs)
