"""
Audio publishing to S3-compatible object storage (MinIO / Spaces / S3).

Synthesized replies are uploaded once and handed to Twilio as a presigned GET
URL. The URL only has to outlive Twilio's immediate fetch-and-play, so it
expires after an hour by default.
"""

import asyncio
import io
import re
import time
from abc import ABC, abstractmethod
from datetime import timedelta
from typing import Any, Optional

import structlog
from minio import Minio
from minio.error import S3Error

from src.autocaller.config import get_config
from src.autocaller.errors import PublishError, SignError

logger = structlog.get_logger(__name__)

_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9_-]")


def audio_object_name(call_id: str, extension: str = "mp3", *, now_ms: Optional[int] = None) -> str:
    """
    Collision-free object name for one turn's audio.

    Call id keeps concurrent calls apart; the millisecond timestamp keeps the
    turns of one call apart.
    """
    safe_call_id = _UNSAFE_NAME_CHARS.sub("", call_id or "") or "unknown"
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"tts-elevenlabs-{safe_call_id}-{now_ms}.{extension}"


class AudioPublisher(ABC):
    """Stores audio bytes and returns a time-limited fetch URL."""

    @abstractmethod
    async def publish(self, audio: bytes, name: str, content_type: str = "audio/mpeg") -> str:
        raise NotImplementedError


class MinioAudioPublisher(AudioPublisher):
    """Publisher backed by the MinIO client (works with any S3-compatible store)."""

    def __init__(self, config: Optional[Any] = None, *, client: Optional[Minio] = None):
        self.config = config or get_config()
        self._client = client
        self._bucket_checked = False

    @property
    def client(self) -> Minio:
        """Get or create the MinIO client."""
        if self._client is None:
            endpoint = self.config.s3_endpoint
            secure = self.config.s3_secure
            # Minio wants host[:port]; accept full URLs from env as well.
            if "://" in endpoint:
                scheme, endpoint = endpoint.split("://", 1)
                secure = scheme.lower() == "https"
            endpoint = endpoint.rstrip("/")

            logger.info(
                "Initializing storage client",
                endpoint=endpoint,
                secure=secure,
                region=self.config.s3_region or None,
            )
            self._client = Minio(
                endpoint=endpoint,
                access_key=self.config.s3_access_key,
                secret_key=self.config.s3_secret_key,
                secure=secure,
                region=self.config.s3_region or None,
            )
        return self._client

    @property
    def bucket(self) -> str:
        return self.config.s3_bucket

    @property
    def url_ttl(self) -> timedelta:
        return timedelta(seconds=self.config.audio_url_ttl_seconds)

    def _ensure_bucket(self) -> None:
        if self._bucket_checked:
            return
        if not self.client.bucket_exists(self.bucket):
            try:
                self.client.make_bucket(self.bucket)
                logger.info("Created bucket", bucket=self.bucket)
            except S3Error as e:
                # A concurrent turn created it between the check and here.
                if e.code != "BucketAlreadyOwnedByYou":
                    raise
        self._bucket_checked = True

    def _upload(self, audio: bytes, name: str, content_type: str) -> None:
        self._ensure_bucket()
        self.client.put_object(
            bucket_name=self.bucket,
            object_name=name,
            data=io.BytesIO(audio),
            length=len(audio),
            content_type=content_type,
        )

    def _sign(self, name: str) -> str:
        return self.client.presigned_get_object(
            bucket_name=self.bucket,
            object_name=name,
            expires=self.url_ttl,
        )

    async def publish(self, audio: bytes, name: str, content_type: str = "audio/mpeg") -> str:
        """
        Upload `audio` as `name` and return a presigned URL.

        Raises:
            PublishError: the upload failed
            SignError: the object was stored but no URL could be signed
        """
        # MinIO's client is blocking; keep the event loop free for other calls.
        try:
            await asyncio.to_thread(self._upload, audio, name, content_type)
        except Exception as e:
            logger.error("Audio upload failed", object_name=name, error=str(e))
            raise PublishError(f"Failed to upload audio to storage: {e}") from e

        try:
            url = await asyncio.to_thread(self._sign, name)
        except Exception as e:
            logger.error("Presigned URL failed", object_name=name, error=str(e))
            raise SignError(f"Failed to create signed URL: {e}") from e

        if not url:
            raise SignError("Storage returned an empty signed URL")

        logger.info(
            "Audio published",
            object_name=name,
            bytes=len(audio),
            expires_s=int(self.url_ttl.total_seconds()),
        )
        return url
