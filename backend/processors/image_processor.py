from __future__ import annotations

import io
import logging

from PIL import Image, ImageOps

from models.media_models import ImageProcessResult
from models.tier_models import (
    IMAGE_THUMBNAIL_QUALITY,
    IMAGE_THUMBNAIL_SIZE,
    get_image_settings,
)
from utils.storage import BlobStorage, thumbnail_key_for

logger = logging.getLogger(__name__)


JPEG_CONTENT_TYPE = "image/jpeg"


def decode_image(data: bytes) -> Image.Image:
    image = Image.open(io.BytesIO(data))
    image.load()
    return image


def to_rgb(image: Image.Image) -> Image.Image:
    if image.mode == "RGB":
        return image
    if image.mode in ("RGBA", "LA") or (image.mode == "P" and "transparency" in image.info):
        rgba = image.convert("RGBA")
        background = Image.new("RGB", rgba.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.getchannel("A"))
        return background
    return image.convert("RGB")


def fit_inside(image: Image.Image, max_width: int, max_height: int) -> Image.Image:
    """Shrink to fit the box, keeping aspect ratio; never enlarges."""
    resized = image.copy()
    resized.thumbnail((max_width, max_height), Image.Resampling.LANCZOS)
    return resized


def cover_crop(image: Image.Image, size: tuple[int, int]) -> Image.Image:
    return ImageOps.fit(
        image, size, method=Image.Resampling.LANCZOS, centering=(0.5, 0.5)
    )


def encode_jpeg(image: Image.Image, quality: int, progressive: bool = True) -> bytes:
    buffer = io.BytesIO()
    to_rgb(image).save(
        buffer,
        format="JPEG",
        quality=quality,
        progressive=progressive,
        optimize=True,
    )
    return buffer.getvalue()


def process_image(
    storage: BlobStorage,
    tier: str,
    input_key: str,
    output_key: str,
) -> ImageProcessResult:
    settings = get_image_settings(tier)
    data = storage.download(input_key)
    original = decode_image(data)
    original_width, original_height = original.size

    main = original
    if settings.max_dimension:
        main = fit_inside(original, settings.max_dimension, settings.max_dimension)
    main_bytes = encode_jpeg(main, settings.quality)

    thumbnail = cover_crop(original, IMAGE_THUMBNAIL_SIZE)
    thumbnail_bytes = encode_jpeg(thumbnail, IMAGE_THUMBNAIL_QUALITY)
    thumbnail_key = thumbnail_key_for(output_key)

    storage.upload(output_key, main_bytes, JPEG_CONTENT_TYPE)
    storage.upload(thumbnail_key, thumbnail_bytes, JPEG_CONTENT_TYPE)

    logger.info(
        "Processed image %s -> %s tier=%s %dx%d -> %dx%d (%d bytes)",
        input_key,
        output_key,
        tier,
        original_width,
        original_height,
        main.width,
        main.height,
        len(main_bytes),
    )
    return ImageProcessResult(
        width=main.width,
        height=main.height,
        original_width=original_width,
        original_height=original_height,
        size=len(main_bytes),
        thumbnail_key=thumbnail_key,
    )
