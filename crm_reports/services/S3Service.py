"""S3 Service for storing report attachments in an S3-compatible bucket."""

import logging
import re
from typing import BinaryIO, Optional
from urllib.parse import quote

import boto3
from botocore.exceptions import ClientError
from crm_reports.core.config import settings

logger = logging.getLogger(__name__)

# create_bucket errors that mean "nothing to do"
IGNORED_BUCKET_ERRORS = {
    "BucketAlreadyOwnedByYou",
    "BucketAlreadyExists",
    "AccessDenied",
    "Forbidden",
}


# S3 and MinIO bucket naming: 3-63 chars of lowercase letters, digits, dots and hyphens
BUCKET_NAME_PATTERN = re.compile(r"^[a-z0-9][a-z0-9.-]{1,61}[a-z0-9]$")


def bucket_name_problem(name: str) -> Optional[str]:
    """Why S3 would reject the bucket name, or None when it is valid."""
    if not BUCKET_NAME_PATTERN.match(name or ""):
        return (
            f"Bucket name '{name}' is not S3-compatible: use 3-63 lowercase letters, "
            "digits, dots or hyphens (set REPORT_ATTACHMENTS_BUCKET)"
        )
    if ".." in name:
        return f"Bucket name '{name}' contains consecutive dots"
    return None


class ObjectExistsError(Exception):
    """Raised when an upload would overwrite an existing key."""


class S3AttachmentStorage:
    """Thin wrapper over boto3 for write-once uploads and public URLs."""

    def __init__(self, bucket: Optional[str] = None, client=None):
        self.bucket = bucket or settings.REPORT_ATTACHMENTS_BUCKET
        self._client = client
        self._bucket_checked = False

    @property
    def client(self):
        if self._client is None:
            self._client = boto3.client(
                "s3",
                region_name=settings.AWS_REGION,
                endpoint_url=settings.AWS_S3_ENDPOINT_URL,
                aws_access_key_id=settings.AWS_ACCESS_KEY_ID or None,
                aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY or None,
            )
        return self._client

    def ensure_bucket(self) -> None:
        """Create the bucket once per process; existing or forbidden buckets are left alone."""
        if self._bucket_checked:
            return
        problem = bucket_name_problem(self.bucket)
        if problem:
            raise ValueError(problem)
        try:
            self.client.create_bucket(Bucket=self.bucket)
            logger.info(f"Created storage bucket {self.bucket}")
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "")
            if code not in IGNORED_BUCKET_ERRORS:
                raise
            logger.debug(f"Bucket {self.bucket} not created: {code}")
        self._bucket_checked = True

    def upload(self, path: str, body: BinaryIO, content_type: Optional[str] = None) -> None:
        """Upload without overwrite; an existing key raises ObjectExistsError."""
        extra = {"ContentType": content_type} if content_type else {}
        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=path,
                Body=body,
                IfNoneMatch="*",
                **extra,
            )
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "")
            if code in ("PreconditionFailed", "ConditionalRequestConflict"):
                raise ObjectExistsError(path) from e
            raise

    def public_url(self, path: str) -> str:
        key = quote(path)
        if settings.AWS_S3_BASE_URL:
            return f"{settings.AWS_S3_BASE_URL.rstrip('/')}/{key}"
        return f"https://{self.bucket}.s3.{settings.AWS_REGION}.amazonaws.com/{key}"


attachment_storage = S3AttachmentStorage()


def get_attachment_storage() -> S3AttachmentStorage:
    """FastAPI dependency returning the process-wide attachment storage."""
    return attachment_storage
