"""
StorageService for MinIO object storage operations.

This module provides a singleton service that stores uploaded plant images
in a public-read MinIO bucket and returns their access URLs.
"""

import io
import json
import logging
import re
import time
from typing import Optional

import urllib3
from minio import Minio
from minio.error import S3Error

from plant_doctor.core.config import get_settings

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")


class StorageConnectionError(Exception):
    """
    Raised when MinIO connection fails.

    This exception is raised when:
    - MinIO server is unreachable
    - Authentication fails (invalid access key or secret key)
    - Bucket or upload operations fail
    """

    pass


def build_object_name(plant_name: str, original_filename: Optional[str]) -> str:
    """
    Build the object name for an uploaded image.

    Example:
        >>> build_object_name("Cherry Tomato", "leaf.png")  # doctest: +SKIP
        'Cherry_Tomato_1710412345678.png'
    """
    if original_filename and "." in original_filename:
        extension = original_filename.rsplit(".", 1)[-1].lower()
    else:
        extension = "jpg"
    timestamp = int(time.time() * 1000)
    safe_name = _WHITESPACE.sub("_", plant_name.strip()) or "plant"
    return f"{safe_name}_{timestamp}.{extension}"


class StorageService:
    """
    Singleton service for MinIO object storage operations.

    Example:
        >>> service = get_storage_service()
        >>> url = service.upload_image(data, "Tomato_1710412345678.jpg")
        >>> print(url)
        http://localhost:9000/plant-doctor-plants-images/Tomato_1710412345678.jpg
    """

    _instance: Optional["StorageService"] = None

    def __new__(cls) -> "StorageService":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self._initialized:
            return
        self._initialized = True

        settings = get_settings()
        self._endpoint = settings.minio_endpoint
        self._bucket_name = settings.minio_bucket_name
        self._secure = settings.minio_secure

        # Disable SSL warnings for development
        if not self._secure:
            urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

        try:
            self._client = Minio(
                self._endpoint,
                access_key=settings.minio_access_key,
                secret_key=settings.minio_secret_key,
                secure=self._secure,
            )
            self._ensure_bucket_exists()
        except S3Error as e:
            raise StorageConnectionError(
                f"Failed to connect to MinIO at {self._endpoint}: {e}"
            ) from e

    def _ensure_bucket_exists(self):
        """
        Ensure the bucket exists with a public-read policy.

        Raises:
            StorageConnectionError: If bucket creation fails
        """
        try:
            if not self._client.bucket_exists(self._bucket_name):
                self._client.make_bucket(self._bucket_name)

                policy = {
                    "Version": "2012-10-17",
                    "Statement": [
                        {
                            "Effect": "Allow",
                            "Principal": {"AWS": "*"},
                            "Action": ["s3:GetObject"],
                            "Resource": [f"arn:aws:s3:::{self._bucket_name}/*"],
                        }
                    ],
                }
                self._client.set_bucket_policy(self._bucket_name, json.dumps(policy))
                logger.info(f"Created bucket '{self._bucket_name}' with public-read policy")

        except S3Error as e:
            raise StorageConnectionError(
                f"Failed to create or configure bucket '{self._bucket_name}': {e}"
            ) from e

    def upload_image(
        self, data: bytes, filename: str, content_type: str = "image/jpeg"
    ) -> str:
        """
        Upload image bytes to MinIO and return the accessible URL.

        Args:
            data: Image content
            filename: Object name in the bucket
            content_type: MIME type of the file (default: image/jpeg)

        Returns:
            Full HTTP URL to access the uploaded file

        Raises:
            StorageConnectionError: If upload fails
        """
        try:
            self._client.put_object(
                bucket_name=self._bucket_name,
                object_name=filename,
                data=io.BytesIO(data),
                length=len(data),
                content_type=content_type,
            )
        except S3Error as e:
            raise StorageConnectionError(
                f"Failed to upload file '{filename}' to MinIO: {e}"
            ) from e

        logger.info(f"Uploaded {filename} ({len(data)} bytes)")
        return self._get_public_url(filename)

    def _get_public_url(self, filename: str) -> str:
        protocol = "https" if self._secure else "http"
        return f"{protocol}://{self._endpoint}/{self._bucket_name}/{filename}"

    @property
    def bucket_name(self) -> str:
        """Get the configured bucket name."""
        return self._bucket_name


# Module-level singleton instance
_storage_service: Optional[StorageService] = None


def get_storage_service() -> StorageService:
    """
    Get the singleton StorageService instance.

    Returns:
        StorageService instance

    Raises:
        StorageConnectionError: If connection to MinIO fails
    """
    global _storage_service
    if _storage_service is None:
        _storage_service = StorageService()
    return _storage_service
