"""Object-store access for the cache.

The engine only talks to :class:`ObjectStore`. :class:`S3ObjectStore` is the
stock implementation on top of a ``boto3`` S3 client and works against AWS S3,
MinIO, Cloudflare R2 and other S3-compatible services.
"""

from __future__ import annotations

from contextlib import closing
from typing import TYPE_CHECKING, Any, Protocol

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from bucketcache.exceptions import (
    BucketAlreadyExistsError,
    CacheError,
    ConfigurationError,
    ObjectNotFoundError,
    TransientRemoteError,
)

if TYPE_CHECKING:
    from bucketcache.config import CacheSettings

DEFAULT_REGION = "us-east-1"

_NOT_FOUND_CODES = {"NoSuchKey", "NotFound", "404"}
_MISSING_BUCKET_CODES = {"NoSuchBucket", "NotFound", "404"}
_BUCKET_EXISTS_CODES = {"BucketAlreadyOwnedByYou", "BucketAlreadyExists"}
_CONFIGURATION_CODES = {
    "AccessDenied",
    "InvalidAccessKeyId",
    "InvalidBucketName",
    "NoSuchBucket",
    "SignatureDoesNotMatch",
    "403",
}


class ObjectStore(Protocol):
    def put_object(self, bucket: str, name: str, data: bytes, content_type: str) -> None: ...

    def get_object(self, bucket: str, name: str) -> bytes: ...

    def delete_object(self, bucket: str, name: str) -> None: ...

    def bucket_exists(self, bucket: str) -> bool: ...

    def create_bucket(self, bucket: str) -> None: ...

    def close(self) -> None: ...


def build_endpoint_url(endpoint: str, use_tls: bool) -> str | None:
    """Turn a ``host[:port]`` endpoint into a URL; full URLs pass through."""
    endpoint = endpoint.strip()
    if not endpoint:
        return None
    if "://" in endpoint:
        return endpoint
    scheme = "https" if use_tls else "http"
    return f"{scheme}://{endpoint}"


def build_s3_client(settings: "CacheSettings") -> Any:
    return boto3.client(
        "s3",
        endpoint_url=build_endpoint_url(settings.endpoint, settings.use_tls),
        aws_access_key_id=settings.access_key or None,
        aws_secret_access_key=settings.secret_key or None,
        region_name=settings.region or DEFAULT_REGION,
        config=Config(
            signature_version="s3v4",
            s3={"addressing_style": "path"},
            connect_timeout=settings.connect_timeout,
            read_timeout=settings.read_timeout,
        ),
    )


def _error_code(exc: ClientError) -> str:
    error = exc.response.get("Error") or {}
    code = error.get("Code")
    if code:
        return str(code)
    status = (exc.response.get("ResponseMetadata") or {}).get("HTTPStatusCode")
    return str(status) if status else ""


def translate_client_error(
    exc: ClientError,
    *,
    bucket: str,
    object_name: str | None = None,
) -> CacheError:
    code = _error_code(exc)
    message = (exc.response.get("Error") or {}).get("Message") or str(exc)
    kwargs: dict[str, Any] = {"bucket": bucket, "object_name": object_name, "code": code}

    if object_name is not None and code in _NOT_FOUND_CODES:
        return ObjectNotFoundError(message, **kwargs)
    if code in _BUCKET_EXISTS_CODES:
        return BucketAlreadyExistsError(message, **kwargs)
    if code in _CONFIGURATION_CODES:
        return ConfigurationError(message, **kwargs)
    return TransientRemoteError(message, **kwargs)


class S3ObjectStore:
    """:class:`ObjectStore` backed by a ``boto3`` S3 client."""

    def __init__(self, client: Any, region: str | None = None) -> None:
        self.client = client
        self.region = region

    @classmethod
    def from_settings(cls, settings: "CacheSettings") -> "S3ObjectStore":
        return cls(build_s3_client(settings), region=settings.region)

    def put_object(self, bucket: str, name: str, data: bytes, content_type: str) -> None:
        try:
            self.client.put_object(
                Bucket=bucket,
                Key=name,
                Body=data,
                ContentLength=len(data),
                ContentType=content_type,
            )
        except ClientError as exc:
            raise translate_client_error(exc, bucket=bucket, object_name=name) from exc
        except BotoCoreError as exc:
            raise TransientRemoteError(str(exc), bucket=bucket, object_name=name) from exc

    def get_object(self, bucket: str, name: str) -> bytes:
        try:
            response = self.client.get_object(Bucket=bucket, Key=name)
            with closing(response["Body"]) as body:
                return body.read()
        except ClientError as exc:
            raise translate_client_error(exc, bucket=bucket, object_name=name) from exc
        except BotoCoreError as exc:
            raise TransientRemoteError(str(exc), bucket=bucket, object_name=name) from exc

    def delete_object(self, bucket: str, name: str) -> None:
        try:
            self.client.delete_object(Bucket=bucket, Key=name)
        except ClientError as exc:
            raise translate_client_error(exc, bucket=bucket, object_name=name) from exc
        except BotoCoreError as exc:
            raise TransientRemoteError(str(exc), bucket=bucket, object_name=name) from exc

    def bucket_exists(self, bucket: str) -> bool:
        try:
            self.client.head_bucket(Bucket=bucket)
            return True
        except ClientError as exc:
            if _error_code(exc) in _MISSING_BUCKET_CODES:
                return False
            raise translate_client_error(exc, bucket=bucket) from exc
        except BotoCoreError as exc:
            raise TransientRemoteError(str(exc), bucket=bucket) from exc

    def create_bucket(self, bucket: str) -> None:
        kwargs: dict[str, Any] = {"Bucket": bucket}
        if self.region and self.region != DEFAULT_REGION:
            kwargs["CreateBucketConfiguration"] = {"LocationConstraint": self.region}
        try:
            self.client.create_bucket(**kwargs)
        except ClientError as exc:
            raise translate_client_error(exc, bucket=bucket) from exc
        except BotoCoreError as exc:
            raise TransientRemoteError(str(exc), bucket=bucket) from exc

    def close(self) -> None:
        close = getattr(self.client, "close", None)
        if close is not None:
            close()
