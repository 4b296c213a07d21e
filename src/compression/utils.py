# src/compression/utils.py
import math

from src.compression.constants import (
    COMPRESSION_PRESETS,
    CONTENT_TYPES,
    FILE_EXTENSIONS,
    PIL_FORMAT_ALIASES,
)
from src.compression.exceptions import PresetNotFoundError
from src.compression.schemas import CompressionPreset

SIZE_UNITS = ["Bytes", "KB", "MB", "GB"]


def find_preset(preset_name: str) -> CompressionPreset | None:
    return COMPRESSION_PRESETS.get(preset_name)


def get_preset(preset_name: str) -> CompressionPreset:
    preset = find_preset(preset_name)
    if preset is None:
        raise PresetNotFoundError(preset_name)
    return preset


def format_file_size(size_bytes: int) -> str:
    if size_bytes <= 0:
        return "0 Bytes"
    exponent = 0
    while size_bytes >= 1024 ** (exponent + 1) and exponent < len(SIZE_UNITS) - 1:
        exponent += 1
    value = f"{size_bytes / 1024**exponent:.2f}".rstrip("0").rstrip(".")
    return f"{value} {SIZE_UNITS[exponent]}"


def calculate_compression_ratio(original_size: int, compressed_size: int) -> int:
    # An empty original has no meaningful ratio
    if original_size <= 0:
        return 0
    percent = (original_size - compressed_size) / original_size * 100
    return int(math.floor(percent + 0.5))


def normalize_format(pil_format: str | None) -> str | None:
    """Map a Pillow format name (``"JPEG"``, ``"MPO"``...) to its lowercase web name."""
    if not pil_format:
        return None
    name = pil_format.lower()
    return PIL_FORMAT_ALIASES.get(name, name)


def content_type_for(format_name: str) -> str:
    return CONTENT_TYPES.get(format_name, f"image/{format_name}")


def extension_for(format_name: str) -> str:
    return FILE_EXTENSIONS.get(format_name, format_name)
