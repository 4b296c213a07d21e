# src/compression/exceptions.py


class CompressionError(Exception):
    """Base class for failures raised by the compression engines."""


class ImageValidationError(CompressionError):
    pass


class PresetNotFoundError(CompressionError):
    def __init__(self, preset_name: str):
        self.preset_name = preset_name
        super().__init__(f"Compression preset '{preset_name}' not found")


class UnsupportedSourceError(CompressionError):
    pass


class CompressionCancelled(CompressionError):
    """Raised inside a transform when its cancellation token fires.

    Callers of the client engine never see it: a cancelled compression
    resolves to ``None``.
    """
