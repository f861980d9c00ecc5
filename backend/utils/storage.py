from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass
from urllib.parse import unquote, urlparse

import dotenv
from google.cloud import storage
from google.oauth2 import service_account


dotenv.load_dotenv()
logger = logging.getLogger(__name__)


GCS_PUBLIC_BASE_URL = "https://storage.googleapis.com"

_EXTENSION_RE = re.compile(r"\.[^./]+$")


@dataclass
class StorageConfig:
    bucket: str
    public_base_url: str
    credentials_json: str = ""

    @classmethod
    def from_env(cls) -> StorageConfig:
        bucket = os.getenv("GCS_BUCKET", "media-uploads").strip()
        public_base = os.getenv("STORAGE_PUBLIC_BASE_URL", "").strip()
        return cls(
            bucket=bucket,
            public_base_url=(public_base or f"{GCS_PUBLIC_BASE_URL}/{bucket}").rstrip("/"),
            credentials_json=os.getenv("GCP_CREDENTIALS", ""),
        )


def _build_storage_client(credentials_raw: str) -> storage.Client:
    if not credentials_raw:
        return storage.Client()
    credentials_info = json.loads(credentials_raw)
    credentials = service_account.Credentials.from_service_account_info(
        credentials_info
    )
    return storage.Client(
        credentials=credentials, project=credentials_info.get("project_id")
    )


class BlobStorage:
    """Object storage for raw uploads and processed derivatives."""

    def __init__(self, config: StorageConfig, client: storage.Client | None = None):
        self.config = config
        self._client = client
        self._bucket: storage.Bucket | None = None

    @classmethod
    def from_env(cls) -> BlobStorage:
        return cls(StorageConfig.from_env())

    def _get_bucket(self) -> storage.Bucket:
        if self._bucket is None:
            if self._client is None:
                self._client = _build_storage_client(self.config.credentials_json)
            self._bucket = self._client.bucket(self.config.bucket)
        return self._bucket

    def download(self, key: str) -> bytes:
        blob = self._get_bucket().blob(key)
        data = blob.download_as_bytes()
        logger.debug("Downloaded %s (%d bytes)", key, len(data))
        return data

    def upload(self, key: str, data: bytes, content_type: str) -> None:
        blob = self._get_bucket().blob(key)
        blob.upload_from_string(data, content_type=content_type)
        logger.debug("Uploaded %s (%d bytes, %s)", key, len(data), content_type)

    def public_url(self, key: str) -> str:
        return f"{self.config.public_base_url}/{key.lstrip('/')}"

    def key_from_url(self, url: str) -> str:
        """Recover an object key from a public URL, gs:// URI or bare key."""
        prefix = f"{self.config.public_base_url}/"
        if url.startswith(prefix):
            return unquote(url[len(prefix):])

        parsed = urlparse(url)
        if parsed.scheme == "gs":
            return unquote(parsed.path.lstrip("/"))
        if parsed.scheme in ("http", "https"):
            path = unquote(parsed.path.lstrip("/"))
            bucket_prefix = f"{self.config.bucket}/"
            if path.startswith(bucket_prefix):
                return path[len(bucket_prefix):]
            return path
        return url.lstrip("/")


def replace_extension(key: str, new_suffix: str) -> str:
    if _EXTENSION_RE.search(key):
        return _EXTENSION_RE.sub(new_suffix, key)
    return key + new_suffix


def thumbnail_key_for(key: str) -> str:
    return replace_extension(key, "_thumb.jpg")


def video_output_key(raw_key: str) -> str:
    if raw_key.startswith("raw/"):
        key = "video/" + raw_key[len("raw/"):]
    else:
        key = "video/" + raw_key
    return replace_extension(key, ".mp4")


def audio_output_key(raw_key: str) -> str:
    if raw_key.startswith("raw/audio/"):
        key = "audio/" + raw_key[len("raw/audio/"):]
    elif raw_key.startswith("raw/"):
        key = "audio/" + raw_key[len("raw/"):]
    else:
        key = "audio/" + raw_key
    return replace_extension(key, ".m4a")


def project_output_keys(user_id: str, project_id: str, timestamp: int) -> tuple[str, str]:
    base = f"video-projects/{user_id}/{project_id}/{timestamp}"
    return f"{base}.mp4", f"{base}_thumb.jpg"
