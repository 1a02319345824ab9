"""
S3 upload bridge.

Uploads return a URL rebuilt from region/bucket/key so every stored
reference has the same shape. Deleting an object is followed by a sweep
over trek and region documents that still point at it; the two steps are
not atomic, so a failure in between leaves a dangling reference.
"""
import logging
import os
import time
from typing import Any, Dict, Optional
from urllib.parse import unquote

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from database import REGION, TREK
from errors import ConfigError, InvalidRequestError, UpstreamError

logger = logging.getLogger(__name__)

DEFAULT_TREK_IMAGE = "default-trek.jpg"
DEFAULT_REGION_IMAGE = "default-region.jpg"
MAX_UPLOAD_BYTES = int(os.getenv("UPLOAD_MAX_BYTES", str(5 * 1024 * 1024)))
PDF_TYPE = "application/pdf"


def is_allowed_type(content_type: Optional[str]) -> bool:
    return bool(content_type) and (content_type.startswith("image/") or content_type == PDF_TYPE)


def _error_code(exc: Exception) -> Optional[str]:
    if isinstance(exc, ClientError):
        return exc.response.get("Error", {}).get("Code")
    return None


class S3Storage:
    def __init__(self, bucket: str, region: str, client=None, max_bytes: int = MAX_UPLOAD_BYTES):
        self.bucket = bucket
        self.region = region
        self.client = client or boto3.client("s3", region_name=region)
        self.max_bytes = max_bytes

    @classmethod
    def from_env(cls) -> "S3Storage":
        bucket = os.getenv("AWS_S3_BUCKET")
        region = os.getenv("AWS_REGION")
        if not bucket or not region:
            raise ConfigError("AWS_S3_BUCKET and AWS_REGION must be set")
        client = boto3.client(
            "s3",
            region_name=region,
            aws_access_key_id=os.getenv("AWS_ACCESS_KEY_ID"),
            aws_secret_access_key=os.getenv("AWS_SECRET_ACCESS_KEY"),
        )
        return cls(bucket, region, client=client)

    def public_url(self, key: str) -> str:
        return f"https://s3.{self.region}.amazonaws.com/{self.bucket}/{key}"

    def build_key(self, filename: str, folder: str) -> str:
        return f"{folder}/{int(time.time() * 1000)}-{filename}"

    def upload(self, data: bytes, filename: str, content_type: str, folder: Optional[str] = None) -> str:
        if not is_allowed_type(content_type):
            raise InvalidRequestError("Only images and PDFs are allowed")
        if len(data) > self.max_bytes:
            raise InvalidRequestError(f"File exceeds the {self.max_bytes} byte limit")

        folder = folder or ("pdfs" if content_type == PDF_TYPE else "images")
        key = self.build_key(filename, folder)
        try:
            self.client.put_object(Bucket=self.bucket, Key=key, Body=data, ContentType=content_type)
        except (BotoCoreError, ClientError) as exc:
            logger.exception("S3 upload failed for %s", key)
            raise UpstreamError(f"Error uploading file: {exc}", code=_error_code(exc))

        url = self.public_url(key)
        logger.info("Uploaded %s (%d bytes) to %s", filename, len(data), url)
        return url

    def normalize_key(self, key_or_url: str) -> str:
        key = unquote(key_or_url or "")
        if "amazonaws.com/" in key:
            key = key.split("amazonaws.com/", 1)[1]
        prefix = f"{self.bucket}/"
        if key.startswith(prefix):
            key = key[len(prefix):]
        if not key:
            raise InvalidRequestError("Invalid key format")
        return key

    def delete(self, key: str) -> None:
        try:
            self.client.delete_object(Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as exc:
            logger.exception("S3 delete failed for %s", key)
            raise UpstreamError(f"Error deleting from S3: {exc}", code=_error_code(exc))


def scrub_image_references(db, image_url: str) -> Dict[str, Any]:
    """Point treks and regions away from a deleted image.

    Cover fields fall back to the default image; gallery arrays lose the url.
    """
    treks = db[TREK]
    trek_matched = treks.count_documents({"$or": [{"imageUrl": image_url}, {"images": image_url}]})
    cover = treks.update_many({"imageUrl": image_url}, {"$set": {"imageUrl": DEFAULT_TREK_IMAGE}})
    gallery = treks.update_many({"images": image_url}, {"$pull": {"images": image_url}})
    trek_modified = cover.modified_count + gallery.modified_count

    regions = db[REGION]
    region_matched = regions.count_documents({"$or": [
        {"coverImage": image_url}, {"images": image_url}, {"descriptionImages": image_url},
    ]})
    region_cover = regions.update_many({"coverImage": image_url}, {"$set": {"coverImage": DEFAULT_REGION_IMAGE}})
    region_gallery = regions.update_many(
        {"$or": [{"images": image_url}, {"descriptionImages": image_url}]},
        {"$pull": {"images": image_url, "descriptionImages": image_url}},
    )
    region_modified = region_cover.modified_count + region_gallery.modified_count

    if trek_modified or region_modified:
        logger.info(
            "Scrubbed %s from %d trek(s) and %d region(s)", image_url, trek_matched, region_matched
        )
    else:
        logger.info("No trek or region documents referenced %s", image_url)
    return {
        "trekMatchedCount": trek_matched,
        "trekModifiedCount": trek_modified,
        "regionMatchedCount": region_matched,
        "regionModifiedCount": region_modified,
    }
