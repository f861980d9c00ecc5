from functools import lru_cache

from utils.processing_config import ProcessingConfig
from utils.storage import BlobStorage


@lru_cache(maxsize=1)
def get_blob_storage() -> BlobStorage:
    return BlobStorage.from_env()


@lru_cache(maxsize=1)
def get_processing_config() -> ProcessingConfig:
    return ProcessingConfig.from_env()
