from __future__ import annotations

import logging
from typing import Any, BinaryIO, Dict, Optional, Union

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from s3presign.core.errors import ConfigError, UpstreamError
from s3presign.core.settings import ClientConfig
from s3presign.providers.clock import Clock, NonceSource
from s3presign.providers.download import DownloadParams
from s3presign.providers.factory import ParentConfig, build_generators
from s3presign.providers.paths import BUCKET_LOOKUP_CNAME, BUCKET_LOOKUP_DNS, compose_object_key
from s3presign.providers.upload import DEFAULT_CONTENT_TYPE, UploadParams, UploadResult

logger = logging.getLogger(__name__)

# GetBucketLocation answers "" for buckets in the classic region
DEFAULT_BUCKET_REGION = "us-east-1"


def _s3_client(cfg: ClientConfig, region: str) -> Any:
    addressing_style = "virtual" if cfg.bucket_lookup == BUCKET_LOOKUP_DNS else "path"
    config = Config(
        retries={"max_attempts": 8, "mode": "standard"},
        signature_version="s3v4",
        s3={"addressing_style": addressing_style},
    )
    try:
        return boto3.client(
            "s3",
            endpoint_url=cfg.endpoint,
            aws_access_key_id=cfg.access_key,
            aws_secret_access_key=cfg.secret_key,
            region_name=region or DEFAULT_BUCKET_REGION,
            config=config,
        )
    except (BotoCoreError, ValueError) as exc:
        raise ConfigError(f"failed to create S3 client for {cfg.endpoint!r}: {exc}") from exc


class StorageClient:
    """
    Bucket scoped S3 client that also hands out pre-signed URLs.

    Direct object operations go through boto3 with the client credentials.
    Pre-signed downloads and uploads are delegated to the generators selected
    by download_generator_type / upload_generator_type; any field a generator
    leaves empty in its own config is taken from this client's config.

    All keys are relative to ``prefix``.
    """

    def __init__(
        self,
        config: ClientConfig,
        *,
        s3_client: Any = None,
        clock: Optional[Clock] = None,
        nonce: Optional[NonceSource] = None,
    ):
        config.validate_required()
        if config.bucket_lookup == BUCKET_LOOKUP_CNAME:
            raise ConfigError("custom domain by CNAME is not supported for the S3 client")

        self.config = config
        self.bucket = config.bucket
        self.prefix = config.prefix

        self.s3 = s3_client if s3_client is not None else _s3_client(config, config.region)
        self.region = config.region or self._bucket_region()
        if s3_client is None and self.region != (config.region or DEFAULT_BUCKET_REGION):
            # re-sign object operations for the region the bucket lives in
            self.s3 = _s3_client(config, self.region)

        self._generators = build_generators(
            ParentConfig(
                endpoint=config.endpoint,
                bucket=config.bucket,
                bucket_lookup=config.bucket_lookup,
                prefix=config.prefix,
                access_key=config.access_key,
                secret_key=config.secret_key,
                region=self.region,
            ),
            download_type=config.download_generator_type,
            download_config=config.download_generator_config,
            upload_type=config.upload_generator_type,
            upload_config=config.upload_generator_config,
            clock=clock,
            nonce=nonce,
        )

        logger.info(
            "[S3Client] endpoint=%s bucket=%s lookup=%s region=%s prefix=%s download=%s upload=%s",
            config.endpoint,
            self.bucket,
            config.bucket_lookup,
            self.region,
            self.prefix or "(none)",
            config.download_generator_type or "s3",
            config.upload_generator_type or "s3",
        )

    @classmethod
    def from_config(cls, config: ClientConfig, **kwargs: Any) -> "StorageClient":
        return cls(config, **kwargs)

    def _bucket_region(self) -> str:
        try:
            resp = self.s3.get_bucket_location(Bucket=self.bucket)
        except (BotoCoreError, ClientError) as exc:
            raise UpstreamError(f"failed to get bucket location of {self.bucket}: {exc}") from exc
        return (resp or {}).get("LocationConstraint") or DEFAULT_BUCKET_REGION

    def _key(self, key: str) -> str:
        return compose_object_key(self.prefix, key)

    # ------------------------------------------------------------------
    # Pre-signed URLs
    # ------------------------------------------------------------------

    def generate_download(self, params: DownloadParams) -> str:
        return self._generators.download.generate_download(params)

    def generate_upload(self, params: UploadParams) -> UploadResult:
        return self._generators.upload.generate_upload(params)

    # ------------------------------------------------------------------
    # Object operations
    # ------------------------------------------------------------------

    def put_object(
        self,
        key: str,
        data: bytes,
        content_type: str = DEFAULT_CONTENT_TYPE,
        metadata: Optional[Dict[str, str]] = None,
    ) -> None:
        k = self._key(key)
        kwargs: Dict[str, Any] = {
            "Bucket": self.bucket,
            "Key": k,
            "Body": data,
            "ContentType": content_type or DEFAULT_CONTENT_TYPE,
        }
        if metadata:
            # S3 metadata keys must be strings
            kwargs["Metadata"] = {str(kk): str(vv) for kk, vv in metadata.items()}
        try:
            self.s3.put_object(**kwargs)
        except (BotoCoreError, ClientError) as exc:
            raise UpstreamError(f"failed to put object {k}: {exc}") from exc

    def upload_file(
        self,
        key: str,
        fileobj: Union[str, BinaryIO],
        content_type: str = DEFAULT_CONTENT_TYPE,
    ) -> None:
        """Upload a local path or readable binary file object (multipart when large)."""
        k = self._key(key)
        extra = {"ContentType": content_type or DEFAULT_CONTENT_TYPE}
        try:
            if isinstance(fileobj, str):
                self.s3.upload_file(fileobj, self.bucket, k, ExtraArgs=extra)
            else:
                self.s3.upload_fileobj(fileobj, self.bucket, k, ExtraArgs=extra)
        except (BotoCoreError, ClientError) as exc:
            raise UpstreamError(f"failed to upload object {k}: {exc}") from exc

    def get_object(self, key: str) -> bytes:
        k = self._key(key)
        try:
            resp = self.s3.get_object(Bucket=self.bucket, Key=k)
            return resp["Body"].read()
        except (BotoCoreError, ClientError) as exc:
            raise UpstreamError(f"failed to get object {k}: {exc}") from exc

    def download_file(self, key: str, fileobj: Union[str, BinaryIO]) -> None:
        k = self._key(key)
        try:
            if isinstance(fileobj, str):
                self.s3.download_file(self.bucket, k, fileobj)
            else:
                self.s3.download_fileobj(self.bucket, k, fileobj)
        except (BotoCoreError, ClientError) as exc:
            raise UpstreamError(f"failed to download object {k}: {exc}") from exc

    def head_object(self, key: str) -> Dict[str, Any]:
        k = self._key(key)
        try:
            resp = self.s3.head_object(Bucket=self.bucket, Key=k)
        except (BotoCoreError, ClientError) as exc:
            raise UpstreamError(f"failed to head object {k}: {exc}") from exc
        # Return a stable dict (avoid dumping the whole boto response)
        return {
            "ContentLength": resp.get("ContentLength"),
            "ContentType": resp.get("ContentType"),
            "ETag": resp.get("ETag"),
            "LastModified": resp.get("LastModified").isoformat() if resp.get("LastModified") else None,
            "Metadata": resp.get("Metadata") or {},
        }

    def delete_object(self, key: str) -> None:
        k = self._key(key)
        try:
            self.s3.delete_object(Bucket=self.bucket, Key=k)
        except (BotoCoreError, ClientError) as exc:
            raise UpstreamError(f"failed to delete object {k}: {exc}") from exc

    def copy_object(self, src_key: str, dst_key: str) -> None:
        src = self._key(src_key)
        dst = self._key(dst_key)
        try:
            self.s3.copy_object(
                Bucket=self.bucket,
                Key=dst,
                CopySource={"Bucket": self.bucket, "Key": src},
            )
        except (BotoCoreError, ClientError) as exc:
            raise UpstreamError(f"failed to copy object {src} -> {dst}: {exc}") from exc

    def move_object(self, src_key: str, dst_key: str) -> None:
        """Copy then delete; the source is kept when the copy fails."""
        if self._key(src_key) == self._key(dst_key):
            return
        self.copy_object(src_key, dst_key)
        self.delete_object(src_key)
        logger.debug("[S3Client] moved %s -> %s", self._key(src_key), self._key(dst_key))
