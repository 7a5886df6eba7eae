import logging
import mimetypes
import os
import time
from typing import Dict, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from sentiscope import config

logger = logging.getLogger(__name__)

CONTENT_TYPES = {"csv": "text/csv", "image": "application/octet-stream"}

_s3 = None


def is_enabled() -> bool:
    return bool(config.S3_BUCKET_NAME)


def _client():
    global _s3
    if _s3 is None:
        _s3 = boto3.client("s3", region_name=config.AWS_REGION, endpoint_url=config.S3_ENDPOINT_URL)
    return _s3


def _content_type(file_name: str, file_type: str) -> str:
    guessed, _ = mimetypes.guess_type(file_name)
    return guessed or CONTENT_TYPES.get(file_type, "application/octet-stream")


def _object_url(key: str) -> str:
    if config.S3_ENDPOINT_URL:
        return f"{config.S3_ENDPOINT_URL.rstrip('/')}/{config.S3_BUCKET_NAME}/{key}"
    return f"https://{config.S3_BUCKET_NAME}.s3.{config.AWS_REGION}.amazonaws.com/{key}"


def upload_file(file_path: str, file_name: str, user_id: str, file_type: str) -> Optional[Dict[str, str]]:
    """Store an uploaded file under <user>/<type>/<ts>-<name>; None when storage is unavailable."""
    if not is_enabled():
        return None
    key = f"{user_id}/{file_type}/{int(time.time() * 1000)}-{os.path.basename(file_name)}"
    try:
        with open(file_path, "rb") as fh:
            _client().upload_fileobj(
                fh,
                config.S3_BUCKET_NAME,
                key,
                ExtraArgs={"ContentType": _content_type(file_name, file_type)},
            )
    except (BotoCoreError, ClientError, OSError) as exc:
        logger.error("Failed to upload %s to storage: %s", file_name, exc)
        return None
    logger.info("Uploaded file to storage: %s", key)
    return {"path": key, "url": _object_url(key)}


def download_file(key: str) -> Optional[bytes]:
    if not is_enabled():
        return None
    try:
        response = _client().get_object(Bucket=config.S3_BUCKET_NAME, Key=key)
        return response["Body"].read()
    except (BotoCoreError, ClientError) as exc:
        logger.error("Failed to download %s: %s", key, exc)
        return None


def delete_file(key: str) -> bool:
    if not is_enabled():
        return False
    try:
        _client().delete_object(Bucket=config.S3_BUCKET_NAME, Key=key)
    except (BotoCoreError, ClientError) as exc:
        logger.error("Failed to delete %s: %s", key, exc)
        return False
    logger.info("Deleted file from storage: %s", key)
    return True


def get_signed_url(key: str, expires_in: int = 3600) -> Optional[str]:
    if not is_enabled():
        return None
    try:
        return _client().generate_presigned_url(
            "get_object",
            Params={"Bucket": config.S3_BUCKET_NAME, "Key": key},
            ExpiresIn=expires_in,
        )
    except (BotoCoreError, ClientError) as exc:
        logger.error("Failed to create signed URL for %s: %s", key, exc)
        return None
