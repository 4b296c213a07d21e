# src/compression/constants.py
from src.compression.schemas import (
    ClientCompressionOptions,
    CompressionPreset,
    FitMode,
    ImageFormat,
    ServerCompressionOptions,
)

COMPRESSION_PRESETS: dict[str, CompressionPreset] = {
    "avatar": CompressionPreset(
        name="Avatar",
        description="Small circular profile pictures",
        client=ClientCompressionOptions(
            max_size_mb=0.5,
            max_width_or_height=400,
            initial_quality=0.8,
            use_web_worker=True,
            preserve_exif=False,
        ),
        server=ServerCompressionOptions(
            width=400,
            height=400,
            quality=85,
            format=ImageFormat.WEBP,
            fit=FitMode.COVER,
            without_enlargement=True,
        ),
    ),
    "thumbnail": CompressionPreset(
        name="Thumbnail",
        description="Small preview images",
        client=ClientCompressionOptions(
            max_size_mb=0.3,
            max_width_or_height=300,
            initial_quality=0.7,
            use_web_worker=True,
            preserve_exif=False,
        ),
        server=ServerCompressionOptions(
            width=300,
            height=300,
            quality=75,
            format=ImageFormat.WEBP,
            fit=FitMode.COVER,
            without_enlargement=True,
        ),
    ),
    "standard": CompressionPreset(
        name="Standard",
        description="Regular images for general use",
        client=ClientCompressionOptions(
            max_size_mb=1,
            max_width_or_height=1920,
            initial_quality=0.85,
            use_web_worker=True,
            preserve_exif=True,
        ),
        server=ServerCompressionOptions(
            width=1920,
            height=1080,
            quality=85,
            format=ImageFormat.WEBP,
            fit=FitMode.INSIDE,
            without_enlargement=True,
        ),
    ),
    "highQuality": CompressionPreset(
        name="High Quality",
        description="High quality images with minimal compression",
        client=ClientCompressionOptions(
            max_size_mb=2,
            max_width_or_height=2560,
            initial_quality=0.95,
            use_web_worker=True,
            preserve_exif=True,
        ),
        server=ServerCompressionOptions(
            width=2560,
            height=1440,
            quality=95,
            format=ImageFormat.WEBP,
            fit=FitMode.INSIDE,
            without_enlargement=True,
        ),
    ),
    "document": CompressionPreset(
        name="Document",
        description="Text documents and screenshots",
        client=ClientCompressionOptions(
            max_size_mb=1.5,
            max_width_or_height=1920,
            initial_quality=0.9,
            use_web_worker=True,
            preserve_exif=False,
        ),
        server=ServerCompressionOptions(
            width=1920,
            height=1080,
            quality=90,
            format=ImageFormat.PNG,
            fit=FitMode.INSIDE,
            without_enlargement=True,
        ),
    ),
}

# MIME types accepted before compression
SUPPORTED_IMAGE_FORMATS = [
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/webp",
    "image/bmp",
    "image/gif",
]

ALLOWED_EXTENSIONS = [".jpg", ".jpeg", ".png", ".webp", ".bmp", ".gif"]

# Formats the server engine accepts as already-decodable images
SERVER_SUPPORTED_FORMATS = ["jpeg", "png", "webp", "avif", "gif", "bmp", "tiff"]

MAX_FILE_SIZE = {
    "avatar": 5 * 1024 * 1024,
    "standard": 10 * 1024 * 1024,
    "document": 15 * 1024 * 1024,
    "highQuality": 20 * 1024 * 1024,
}

DEFAULT_QUALITY = 85

# Pillow names some formats differently from their common MIME subtype
PIL_FORMAT_ALIASES = {"mpo": "jpeg"}

CONTENT_TYPES = {
    "jpeg": "image/jpeg",
    "png": "image/png",
    "webp": "image/webp",
    "avif": "image/avif",
    "gif": "image/gif",
    "bmp": "image/bmp",
    "tiff": "image/tiff",
}

FILE_EXTENSIONS = {
    "jpeg": "jpg",
    "png": "png",
    "webp": "webp",
    "avif": "avif",
    "gif": "gif",
    "bmp": "bmp",
    "tiff": "tiff",
}
