"""
S3 blob store for document files.

The catalog only ever sees the retrieval reference returned by store();
file bytes never touch the database.
"""
import time
from io import BytesIO
from typing import Optional, Tuple

import boto3
from botocore.exceptions import ClientError, BotoCoreError

from core.errors import AdapterFailure, ValidationFailure
from core.validators import sanitize_filename
from core.logger import get_logger

logger = get_logger(__name__)


def document_key(suggested_name: str, prefix: str = "documents") -> str:
    """Storage key for an uploaded document: documents/{millis}_{sanitized name}."""
    return f"{prefix}/{int(time.time() * 1000)}_{sanitize_filename(suggested_name)}"


def parse_s3_url(file_url: str) -> Tuple[str, str]:
    """Split "s3://bucket/key" into (bucket, key)."""
    if not file_url or not file_url.startswith("s3://"):
        raise ValidationFailure(f"Not an s3:// reference: {file_url}")
    parts = file_url[len("s3://"):].split("/", 1)
    if len(parts) < 2 or not parts[0] or not parts[1]:
        raise ValidationFailure(f"Incomplete s3:// reference: {file_url}")
    return parts[0], parts[1]


class S3BlobStore:
    """Stores document files in a single bucket and issues retrieval URLs."""

    def __init__(
        self,
        bucket_name: str,
        aws_access_key_id: Optional[str] = None,
        aws_secret_access_key: Optional[str] = None,
        region_name: str = "us-east-1",
        endpoint_url: Optional[str] = None,  # For S3-compatible services (MinIO, etc.)
        prefix: str = "documents",
        auto_create_bucket: bool = True,
        client=None
    ):
        """
        Initialize the blob store.

        Args:
            bucket_name: Bucket holding document files
            aws_access_key_id: AWS access key (or from env)
            aws_secret_access_key: AWS secret key (or from env)
            region_name: AWS region
            endpoint_url: Custom endpoint URL (for MinIO, etc.)
            prefix: Key prefix for document files
            auto_create_bucket: Create the bucket if it doesn't exist
            client: Preconfigured boto3 S3 client (tests)
        """
        self.bucket_name = bucket_name
        self.region_name = region_name
        self.prefix = prefix
        self.auto_create_bucket = auto_create_bucket
        self._bucket_verified = False

        if client is None:
            client_kwargs = {"region_name": region_name}
            if aws_access_key_id:
                client_kwargs["aws_access_key_id"] = aws_access_key_id
            if aws_secret_access_key:
                client_kwargs["aws_secret_access_key"] = aws_secret_access_key
            if endpoint_url:
                client_kwargs["endpoint_url"] = endpoint_url
            client = boto3.client("s3", **client_kwargs)
        self.s3_client = client

        logger.info(f"S3 blob store initialized (bucket: {bucket_name})")

    def _ensure_bucket_exists(self):
        """Ensure bucket exists, create if it doesn't."""
        if self._bucket_verified:
            return

        try:
            self.s3_client.head_bucket(Bucket=self.bucket_name)
            self._bucket_verified = True
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "")
            if error_code not in ("404", "NoSuchBucket") or not self.auto_create_bucket:
                raise
            if self.region_name == "us-east-1":
                self.s3_client.create_bucket(Bucket=self.bucket_name)
            else:
                self.s3_client.create_bucket(
                    Bucket=self.bucket_name,
                    CreateBucketConfiguration={"LocationConstraint": self.region_name}
                )
            logger.info(f"Created bucket: {self.bucket_name}")
            self._bucket_verified = True

    def store(self, file_bytes: bytes, suggested_name: str, content_type: Optional[str] = None) -> str:
        """
        Upload a document and return its durable retrieval reference.

        Args:
            file_bytes: File content
            suggested_name: Client filename, sanitized into the key
            content_type: MIME type

        Returns:
            "s3://bucket/key" reference to store in the catalog

        Raises:
            AdapterFailure: the upload failed; nothing was stored
        """
        s3_key = document_key(suggested_name, self.prefix)
        extra_args = {}
        if content_type:
            extra_args["ContentType"] = content_type

        try:
            self._ensure_bucket_exists()
            self.s3_client.upload_fileobj(
                BytesIO(file_bytes),
                self.bucket_name,
                s3_key,
                ExtraArgs=extra_args
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to upload document to S3: {e}")
            raise AdapterFailure(f"Blob store upload failed: {e}", resource_type="blob", resource_id=s3_key) from e

        url = f"s3://{self.bucket_name}/{s3_key}"
        logger.info(f"Uploaded document to S3: {url}")
        return url

    def presigned_url(self, file_url: str, expires_in: int = 3600) -> str:
        """
        Turn a stored s3:// reference into a time-limited HTTPS URL.

        Raises:
            AdapterFailure: URL generation failed
        """
        bucket, key = parse_s3_url(file_url)
        try:
            return self.s3_client.generate_presigned_url(
                "get_object",
                Params={"Bucket": bucket, "Key": key},
                ExpiresIn=expires_in
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to generate presigned URL for {file_url}: {e}")
            raise AdapterFailure(f"Could not issue download URL: {e}", resource_type="blob", resource_id=key) from e
