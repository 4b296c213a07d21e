# src/compression/router.py
from fastapi import APIRouter, File, Query, Response, UploadFile
from starlette.concurrency import run_in_threadpool

from src.compression.constants import COMPRESSION_PRESETS
from src.compression.exceptions import PresetNotFoundError, UnsupportedSourceError
from src.compression.schemas import (
    CompressionPreset,
    CompressionSummary,
    ImageValidationResult,
    ServerCompressionResult,
)
from src.compression.service import image_compressor
from src.compression.utils import content_type_for, find_preset, format_file_size
from src.exception import BadRequestException, NotFoundException

router = APIRouter()


def _compressed_response(result: ServerCompressionResult) -> Response:
    return Response(
        content=result.buffer,
        media_type=content_type_for(result.info.format),
        headers={
            "X-Original-Size": str(result.original_size),
            "X-Compressed-Size": str(result.compressed_size),
            "X-Compression-Ratio": str(result.compression_ratio),
        },
    )


def _summary(result: ServerCompressionResult) -> CompressionSummary:
    return CompressionSummary(
        original_size=result.original_size,
        compressed_size=result.compressed_size,
        compression_ratio=result.compression_ratio,
        original_size_label=format_file_size(result.original_size),
        compressed_size_label=format_file_size(result.compressed_size),
        format=result.info.format,
        width=result.info.width,
        height=result.info.height,
    )


@router.get("/presets", response_model=dict[str, CompressionPreset])
async def list_presets():
    return COMPRESSION_PRESETS


@router.get("/presets/{preset_name}", response_model=CompressionPreset)
async def get_preset_info(preset_name: str):
    preset = find_preset(preset_name)
    if preset is None:
        raise NotFoundException(f"Compression preset '{preset_name}' not found")
    return preset


@router.post("/validate", response_model=ImageValidationResult)
async def validate_image(file: UploadFile = File(...)):
    content = await file.read()
    return await run_in_threadpool(image_compressor.validate_image, content)


@router.post("/compress")
async def compress_image(
    file: UploadFile = File(...),
    preset: str = Query("standard"),
):
    content = await file.read()
    try:
        result = await run_in_threadpool(image_compressor.compress_with_preset, content, preset)
    except PresetNotFoundError as e:
        raise NotFoundException(str(e)) from e
    except UnsupportedSourceError as e:
        raise BadRequestException(str(e)) from e
    return _compressed_response(result)


@router.post("/optimize")
async def optimize_image(
    file: UploadFile = File(...),
    max_width: int = Query(1920, gt=0),
    max_height: int = Query(1080, gt=0),
    quality: int = Query(85, ge=1, le=100),
    output_format: str = Query("auto", alias="format", pattern="^(auto|jpeg|webp|avif)$"),
):
    content = await file.read()
    try:
        result = await run_in_threadpool(
            image_compressor.optimize_for_web,
            content,
            max_width,
            max_height,
            quality,
            output_format,
        )
    except UnsupportedSourceError as e:
        raise BadRequestException(str(e)) from e
    return _compressed_response(result)


@router.post("/variants", response_model=dict[str, CompressionSummary])
async def create_variants(
    file: UploadFile = File(...),
    names: list[str] = Query(["thumbnail", "standard"]),
):
    content = await file.read()
    try:
        variants = await run_in_threadpool(image_compressor.create_variants, content, names)
    except PresetNotFoundError as e:
        raise NotFoundException(str(e)) from e
    except UnsupportedSourceError as e:
        raise BadRequestException(str(e)) from e
    return {name: _summary(result) for name, result in variants.items()}
