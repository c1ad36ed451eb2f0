"""
Blob storage client for profile pictures.

Images arrive as base64, optionally with a data URI prefix
("data:image/png;base64,..."). They are decoded, checked to be a real image,
cropped to a 200x200 PNG and stored in an S3 compatible bucket (DigitalOcean
Spaces). The public URL of the stored object is returned.
"""

import base64
import binascii
import logging
import re
import uuid
from io import BytesIO
from typing import Any, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from PIL import Image, ImageOps, UnidentifiedImageError

from app.core.config import settings
from app.core.exceptions import BlobStorageError

logger = logging.getLogger(__name__)

PROFILE_IMAGE_SIZE = 200

DATA_URI_PATTERN = re.compile(r"data:(?P<type>[\w.+-]+/[\w.+-]+);base64,(?P<data>.*)", re.DOTALL)


def decode_image_payload(payload: str, max_bytes: int) -> bytes:
    """
    Decode a base64 image payload into raw bytes.

    Raises:
        BlobStorageError: empty, not base64, labelled as a non-image, or too large
    """
    if not payload:
        raise BlobStorageError("Profile image is required")

    data = payload.strip()
    match = DATA_URI_PATTERN.fullmatch(data)
    if match:
        content_type = match.group("type").lower()
        if not content_type.startswith("image/"):
            raise BlobStorageError(f"Unsupported image type: {content_type}")
        data = match.group("data")
    elif data.startswith("data:"):
        raise BlobStorageError("Invalid image data URI")

    try:
        image = base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError):
        raise BlobStorageError("Invalid base64 encoded image")
    if not image:
        raise BlobStorageError("Profile image is required")
    if len(image) > max_bytes:
        raise BlobStorageError(f"Image exceeds the {max_bytes // (1024 * 1024)}MB limit")
    return image


def process_profile_image(data: bytes, size: int = PROFILE_IMAGE_SIZE) -> bytes:
    """Center-crop and resize to size x size, re-encoded as PNG."""
    try:
        with Image.open(BytesIO(data)) as image:
            image.load()
            if image.mode not in ("RGB", "RGBA"):
                image = image.convert("RGBA")
            fitted = ImageOps.fit(
                image, (size, size), method=Image.Resampling.LANCZOS, centering=(0.5, 0.5)
            )
    except UnidentifiedImageError:
        raise BlobStorageError("Failed to process image: not a supported image format")
    except (OSError, ValueError, Image.DecompressionBombError) as exc:
        raise BlobStorageError(f"Failed to process image: {exc}")

    buffer = BytesIO()
    fitted.save(buffer, format="PNG")
    return buffer.getvalue()


class SpacesBlobStore:
    def __init__(
        self,
        endpoint: Optional[str],
        access_key_id: Optional[str],
        secret_access_key: Optional[str],
        bucket: Optional[str],
        region: str = "nyc3",
        cdn_url: Optional[str] = None,
        max_bytes: int = 5 * 1024 * 1024,
        s3: Any = None,
    ):
        self.endpoint = endpoint.rstrip("/") if endpoint else None
        self.access_key_id = access_key_id
        self.secret_access_key = secret_access_key
        self.bucket = bucket
        self.region = region
        self.cdn_url = cdn_url.rstrip("/") if cdn_url else None
        self.max_bytes = max_bytes
        self._s3 = s3

    @property
    def configured(self) -> bool:
        return bool(self.endpoint and self.access_key_id and self.secret_access_key and self.bucket)

    @property
    def s3(self):
        if self._s3 is None:
            self._s3 = boto3.client(
                "s3",
                endpoint_url=self.endpoint,
                region_name=self.region,
                aws_access_key_id=self.access_key_id,
                aws_secret_access_key=self.secret_access_key,
                config=Config(s3={"addressing_style": "virtual"}),
            )
        return self._s3

    def public_url(self, key: str) -> str:
        if self.cdn_url:
            return f"{self.cdn_url}/{key}"
        host = re.sub(r"^https?://", "", self.endpoint)
        return f"https://{self.bucket}.{host}/{key}"

    def upload_profile_image(self, payload: str, user_id: Optional[str] = None) -> str:
        if not payload:
            raise BlobStorageError("Profile image is required")
        if not self.configured:
            raise BlobStorageError("Image storage is not configured")

        image = process_profile_image(decode_image_payload(payload, self.max_bytes))

        name = f"{user_id}-{uuid.uuid4()}" if user_id else str(uuid.uuid4())
        key = f"profile-pictures/{name}.png"

        try:
            self.s3.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=image,
                ContentType="image/png",
                ACL="public-read",
            )
        except ClientError as exc:
            code = exc.response.get("Error", {}).get("Code", "Unknown")
            logger.error("blob store rejected %s: %s", key, code)
            raise BlobStorageError(f"Failed to upload image: storage returned {code}") from exc
        except BotoCoreError as exc:
            logger.error("blob store unreachable: %s", type(exc).__name__)
            raise BlobStorageError("Failed to upload image: storage service unreachable") from exc

        logger.info("stored profile image %s (%d bytes)", key, len(image))
        return self.public_url(key)


def get_blob_store() -> SpacesBlobStore:
    return SpacesBlobStore(
        settings.SPACES_ENDPOINT,
        settings.SPACES_ACCESS_KEY_ID,
        settings.SPACES_SECRET_ACCESS_KEY,
        settings.SPACES_BUCKET_NAME,
        region=settings.SPACES_REGION,
        cdn_url=settings.SPACES_CDN_URL,
        max_bytes=settings.PROFILE_IMAGE_MAX_BYTES,
    )
