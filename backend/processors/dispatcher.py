from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel

from models.media_models import ContentType, MediaWorkerPayload
from processors.image_processor import process_image
from processors.panorama_processor import process_panorama
from processors.video_processor import process_video
from utils.processing_config import ProcessingConfig
from utils.storage import BlobStorage

logger = logging.getLogger(__name__)


def process_media_payload(
    payload: MediaWorkerPayload | dict[str, Any],
    storage: BlobStorage,
    config: ProcessingConfig | None = None,
) -> BaseModel:
    """Route one queue message to the processor for its content type."""
    if not isinstance(payload, MediaWorkerPayload):
        payload = MediaWorkerPayload.model_validate(payload)

    logger.info(
        "Processing %s %s -> %s tier=%s post=%s",
        payload.content_type.value,
        payload.input_key,
        payload.output_key,
        payload.tier,
        payload.post_id,
    )

    if payload.content_type == ContentType.IMAGE:
        return process_image(storage, payload.tier, payload.input_key, payload.output_key)
    if payload.content_type == ContentType.PANORAMA:
        return process_panorama(storage, payload.tier, payload.input_key, payload.output_key)
    return process_video(
        storage, payload.tier, payload.input_key, payload.output_key, config=config
    )
