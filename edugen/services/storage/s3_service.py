"""Object storage for uploaded learning resources.

Files go straight from the browser to S3 via presigned PUT URLs; the API
only issues URLs and records metadata.
"""

import logging
import re
from uuid import uuid4

import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError
from botocore.exceptions import ClientError

from edugen.core.config import settings
from edugen.core.exceptions import ConfigurationError
from edugen.core.exceptions import PersistenceError

logger = logging.getLogger(__name__)

_S3 = None


def _get_s3_client():
    global _S3
    if _S3 is None:
        if not all([settings.aws_access_key_id, settings.aws_secret_access_key, settings.s3_bucket_name]):
            logger.error("AWS S3 credentials or bucket name not configured.")
            raise ConfigurationError("Object storage is not configured.")
        session = boto3.session.Session(
            aws_access_key_id=settings.aws_access_key_id,
            aws_secret_access_key=settings.aws_secret_access_key,
            region_name=settings.aws_region,
        )
        _S3 = session.client("s3", config=Config(signature_version="s3v4"))
        logger.info("S3 client initialized for bucket: %s in region: %s", settings.s3_bucket_name, settings.aws_region)
    return _S3


def build_resource_key(user_id: str, filename: str) -> str:
    """Unique object key under the user's prefix, e.g. ``resources/<user>/<uuid>_notes.pdf``."""
    safe_name = re.sub(r"[^A-Za-z0-9._-]", "_", filename.strip()) or "upload"
    return f"resources/{user_id}/{uuid4()}_{safe_name}"


def create_presigned_put(key: str, content_type: str, expires: int | None = None) -> str:
    """Generate a presigned URL for uploading an object to S3."""
    client = _get_s3_client()
    try:
        url = client.generate_presigned_url(
            ClientMethod="put_object",
            Params={"Bucket": settings.s3_bucket_name, "Key": key, "ContentType": content_type},
            ExpiresIn=expires or settings.presign_expiry_seconds,
        )
    except (ClientError, BotoCoreError) as e:
        logger.error("Error generating presigned URL for key %s: %s", key, e, exc_info=True)
        raise PersistenceError(f"Could not create upload URL: {str(e)}") from e
    logger.info("Generated presigned PUT URL for key: %s", key)
    return url
