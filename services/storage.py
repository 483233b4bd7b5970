import os
import logging
from dataclasses import dataclass
from datetime import datetime

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from dotenv import load_dotenv

from services.errors import BlobNotFound, StorageError

# Logger for storage operations
logger = logging.getLogger(__name__)

load_dotenv()

R2_ACCESS_KEY_ID = os.getenv("CLOUDFLARE_R2_ACCESS_KEY_ID") or os.getenv("R2_ACCESS_KEY_ID")
R2_SECRET_ACCESS_KEY = os.getenv("CLOUDFLARE_R2_SECRET_ACCESS_KEY") or os.getenv("R2_SECRET_ACCESS_KEY")
R2_ACCOUNT_ID = os.getenv("CLOUDFLARE_R2_ACCOUNT_ID")
R2_BUCKET_NAME = os.getenv("CLOUDFLARE_R2_BUCKET") or os.getenv("R2_BUCKET")
R2_PUBLIC_URL_BASE = os.getenv("R2_PUBLIC_URL_BASE")

R2_ENDPOINT = (
    os.getenv("CLOUDFLARE_R2_ENDPOINT")
    or os.getenv("R2_ENDPOINT_URL")
    or (f"https://{R2_ACCOUNT_ID}.r2.cloudflarestorage.com" if R2_ACCOUNT_ID else None)
)

PDF_KEY_PREFIX = os.getenv("PDF_KEY_PREFIX", "pdf/")
PDF_THUMB_PREFIX = os.getenv("PDF_THUMB_PREFIX", "thumbs/")

_MISSING_CODES = ("404", "NoSuchKey", "NotFound")


def create_r2_client():
    """Build the boto3 S3 client for R2, or None when credentials are missing."""
    if not (R2_ACCESS_KEY_ID and R2_SECRET_ACCESS_KEY and R2_ENDPOINT):
        return None
    try:
        return boto3.client(
            "s3",
            aws_access_key_id=R2_ACCESS_KEY_ID,
            aws_secret_access_key=R2_SECRET_ACCESS_KEY,
            endpoint_url=R2_ENDPOINT,
            region_name="auto",
            config=Config(s3={"addressing_style": "path"}),
        )
    except Exception as e:
        logger.error(f"Failed to create R2 client: {e}")
        return None


def _error_code(e: ClientError) -> str | None:
    return e.response.get("Error", {}).get("Code")


@dataclass
class BlobInfo:
    """Listing entry for one stored object."""
    name: str
    size: int
    last_modified: datetime | None = None


@dataclass
class Blob:
    name: str
    content: bytes
    content_type: str
    size: int


class BlobStore:
    """Object store addressed by name, rooted at ``prefix`` inside one bucket.

    Names passed in and returned are relative to the prefix; the full S3 key
    is ``prefix + name``.
    """

    def __init__(self, client, bucket: str, prefix: str = PDF_KEY_PREFIX, public_url_base: str | None = None):
        self._client = client
        self.bucket = bucket
        self.prefix = prefix
        self.public_url_base = public_url_base

    def key(self, name: str) -> str:
        return f"{self.prefix}{name}"

    def with_prefix(self, prefix: str) -> "BlobStore":
        """Sibling store on the same client and bucket."""
        return BlobStore(self._client, self.bucket, prefix=prefix, public_url_base=self.public_url_base)

    def ensure_bucket(self) -> None:
        """Create the bucket if it does not exist yet."""
        try:
            self._client.head_bucket(Bucket=self.bucket)
            return
        except ClientError as e:
            if _error_code(e) not in ("404", "NoSuchBucket", "NotFound"):
                raise StorageError("head_bucket", self.bucket, e) from e
        logger.info(f"Creating bucket {self.bucket}")
        try:
            self._client.create_bucket(Bucket=self.bucket)
        except (ClientError, BotoCoreError) as e:
            raise StorageError("create_bucket", self.bucket, e) from e

    def list_blobs(self) -> list[BlobInfo]:
        """List every object under the prefix (unordered)."""
        items: list[BlobInfo] = []
        continuation = None
        try:
            while True:
                kwargs = {"Bucket": self.bucket, "Prefix": self.prefix}
                if continuation:
                    kwargs["ContinuationToken"] = continuation
                resp = self._client.list_objects_v2(**kwargs)
                for o in resp.get("Contents", []):
                    key = o.get("Key", "")
                    name = key[len(self.prefix):]
                    # skip folder markers and anything nested deeper
                    if not name or "/" in name:
                        continue
                    items.append(BlobInfo(name=name, size=o.get("Size", 0), last_modified=o.get("LastModified")))
                if resp.get("IsTruncated"):
                    continuation = resp.get("NextContinuationToken")
                else:
                    break
        except (ClientError, BotoCoreError) as e:
            raise StorageError("list", self.prefix, e) from e
        return items

    def exists(self, name: str) -> bool:
        try:
            self._client.head_object(Bucket=self.bucket, Key=self.key(name))
            return True
        except ClientError as e:
            if _error_code(e) in _MISSING_CODES:
                return False
            raise StorageError("head", self.key(name), e) from e
        except BotoCoreError as e:
            raise StorageError("head", self.key(name), e) from e

    def content_type(self, name: str) -> str | None:
        try:
            resp = self._client.head_object(Bucket=self.bucket, Key=self.key(name))
            return resp.get("ContentType")
        except ClientError as e:
            if _error_code(e) in _MISSING_CODES:
                raise BlobNotFound("head", self.key(name)) from e
            raise StorageError("head", self.key(name), e) from e
        except BotoCoreError as e:
            raise StorageError("head", self.key(name), e) from e

    def get(self, name: str) -> Blob:
        key = self.key(name)
        try:
            obj = self._client.get_object(Bucket=self.bucket, Key=key)
            content = obj["Body"].read()
        except ClientError as e:
            if _error_code(e) in _MISSING_CODES:
                raise BlobNotFound("get", key) from e
            raise StorageError("get", key, e) from e
        except BotoCoreError as e:
            raise StorageError("get", key, e) from e
        return Blob(
            name=name,
            content=content,
            content_type=obj.get("ContentType", "application/octet-stream"),
            size=len(content),
        )

    def put(self, name: str, content: bytes, content_type: str) -> str:
        """Store ``content`` and return its public location."""
        key = self.key(name)
        try:
            self._client.put_object(Bucket=self.bucket, Key=key, Body=content, ContentType=content_type)
        except (ClientError, BotoCoreError) as e:
            raise StorageError("put", key, e) from e
        return self.location(name)

    def delete(self, name: str) -> bool:
        """Delete ``name``; False when there was nothing to delete."""
        if not self.exists(name):
            return False
        key = self.key(name)
        try:
            self._client.delete_object(Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise StorageError("delete", key, e) from e
        return True

    def copy(self, source: str, target: str) -> None:
        # CopyObject keeps the source ContentType (MetadataDirective=COPY)
        try:
            self._client.copy_object(
                Bucket=self.bucket,
                Key=self.key(target),
                CopySource={"Bucket": self.bucket, "Key": self.key(source)},
            )
        except ClientError as e:
            if _error_code(e) in _MISSING_CODES:
                raise BlobNotFound("copy", self.key(source)) from e
            raise StorageError("copy", self.key(source), e) from e
        except BotoCoreError as e:
            raise StorageError("copy", self.key(source), e) from e

    def location(self, name: str) -> str:
        key = self.key(name)
        if self.public_url_base:
            return f"{self.public_url_base.rstrip('/')}/{key}"
        endpoint = (self._client.meta.endpoint_url or "").rstrip("/")
        return f"{endpoint}/{self.bucket}/{key}"


def create_blob_store(prefix: str = PDF_KEY_PREFIX) -> BlobStore | None:
    client = create_r2_client()
    if client is None or not R2_BUCKET_NAME:
        return None
    return BlobStore(client, R2_BUCKET_NAME, prefix=prefix, public_url_base=R2_PUBLIC_URL_BASE)
