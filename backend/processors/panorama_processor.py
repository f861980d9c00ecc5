from __future__ import annotations

import logging

from models.media_models import PanoramaProcessResult
from models.tier_models import (
    PANORAMA_ALLOWED_TIERS,
    PANORAMA_MAX_ASPECT,
    PANORAMA_MAX_SIZE,
    PANORAMA_MIN_ASPECT,
    PANORAMA_QUALITY,
    PANORAMA_THUMBNAIL_QUALITY,
    PANORAMA_THUMBNAIL_SIZE,
)
from processors.image_processor import (
    JPEG_CONTENT_TYPE,
    cover_crop,
    decode_image,
    encode_jpeg,
    fit_inside,
)
from utils.media_errors import TierRestrictionError
from utils.storage import BlobStorage, thumbnail_key_for

logger = logging.getLogger(__name__)


def is_equirectangular(width: int, height: int) -> tuple[float, bool]:
    if height <= 0:
        return 0.0, False
    aspect_ratio = width / height
    return aspect_ratio, PANORAMA_MIN_ASPECT <= aspect_ratio <= PANORAMA_MAX_ASPECT


def process_panorama(
    storage: BlobStorage,
    tier: str,
    input_key: str,
    output_key: str,
) -> PanoramaProcessResult:
    if tier not in PANORAMA_ALLOWED_TIERS:
        raise TierRestrictionError("360 panorama uploads require Pro subscription")

    data = storage.download(input_key)
    original = decode_image(data)
    original_width, original_height = original.size

    aspect_ratio, valid = is_equirectangular(original_width, original_height)
    if not valid:
        logger.warning(
            "Panorama %s has aspect ratio %.2f, expected ~2:1 equirectangular",
            input_key,
            aspect_ratio,
        )

    main = fit_inside(original, *PANORAMA_MAX_SIZE)
    main_bytes = encode_jpeg(main, PANORAMA_QUALITY)
    thumbnail_bytes = encode_jpeg(
        cover_crop(original, PANORAMA_THUMBNAIL_SIZE), PANORAMA_THUMBNAIL_QUALITY
    )
    thumbnail_key = thumbnail_key_for(output_key)

    storage.upload(output_key, main_bytes, JPEG_CONTENT_TYPE)
    storage.upload(thumbnail_key, thumbnail_bytes, JPEG_CONTENT_TYPE)

    logger.info(
        "Processed panorama %s -> %s %dx%d aspect=%.2f valid=%s",
        input_key,
        output_key,
        main.width,
        main.height,
        aspect_ratio,
        valid,
    )
    return PanoramaProcessResult(
        width=main.width,
        height=main.height,
        original_width=original_width,
        original_height=original_height,
        size=len(main_bytes),
        thumbnail_key=thumbnail_key,
        aspect_ratio=round(aspect_ratio, 4),
        is_valid_equirectangular=valid,
    )
