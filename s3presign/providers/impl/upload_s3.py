from __future__ import annotations

import base64
import logging
from typing import Any, Dict, List, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from s3presign.core.errors import ConfigError, UpstreamError
from s3presign.providers.clock import Clock, utcnow
from s3presign.providers.impl.sigv4 import expires_seconds, presign_v4
from s3presign.providers.paths import (
    BUCKET_LOOKUP_CNAME,
    BUCKET_LOOKUP_DNS,
    apply_bucket_lookup,
    build_url,
    compose_content_disposition,
    compose_object_key,
    escape_s3_key_path,
    join_path,
    parse_endpoint,
)
from s3presign.providers.settings import S3UploadConfig
from s3presign.providers.upload import (
    DEFAULT_CONTENT_TYPE,
    METHOD_POST,
    METHOD_PUT,
    UploadGenerator,
    UploadParams,
    UploadResult,
)

logger = logging.getLogger(__name__)

HEADER_CONTENT_LENGTH = "Content-Length"
HEADER_CONTENT_TYPE = "Content-Type"
HEADER_CONTENT_DISPOSITION = "Content-Disposition"
HEADER_CHECKSUM_ALGORITHM = "x-amz-checksum-algorithm"
HEADER_CHECKSUM_SHA256 = "x-amz-checksum-sha256"
HEADER_USER_METADATA_PREFIX = "x-amz-meta-"

CHECKSUM_ALGORITHM_SHA256 = "SHA256"


def build_s3_client(cfg: S3UploadConfig) -> Any:
    """boto3 S3 client signing with SigV4 and addressing the bucket per bucket_lookup."""
    addressing_style = "virtual" if cfg.bucket_lookup == BUCKET_LOOKUP_DNS else "path"
    try:
        return boto3.client(
            "s3",
            endpoint_url=cfg.endpoint,
            aws_access_key_id=cfg.access_key,
            aws_secret_access_key=cfg.secret_key,
            region_name=cfg.region,
            config=Config(signature_version="s3v4", s3={"addressing_style": addressing_style}),
        )
    except (BotoCoreError, ValueError) as exc:
        raise ConfigError(f"failed to create S3 client for {cfg.endpoint!r}: {exc}") from exc


class S3UploadGenerator(UploadGenerator):
    """
    Pre-signed uploads straight into the bucket.

    Default strategy is a POST policy document (multipart form upload). With
    disable_post the generator falls back to a pre-signed PUT whose headers are
    all part of the signature.

    Either way the upload is pinned to the exact key and byte length, and, when
    checksums are enabled and a digest is supplied, to the content's sha256.
    """

    def __init__(self, cfg: S3UploadConfig, *, clock: Optional[Clock] = None, s3_client: Any = None):
        cfg.validate_required()
        if cfg.bucket_lookup == BUCKET_LOOKUP_CNAME:
            raise ConfigError("custom domain by CNAME is not supported for the S3 upload generator")

        endpoint = parse_endpoint(cfg.endpoint)
        self._object_base = apply_bucket_lookup(endpoint, cfg.bucket, cfg.bucket_lookup)
        self._cfg = cfg
        self._clock = clock or utcnow
        self._s3 = s3_client if s3_client is not None else build_s3_client(cfg)

        logger.info(
            "[S3Upload] endpoint=%s bucket=%s lookup=%s region=%s strategy=%s checksum=%s",
            endpoint.netloc,
            cfg.bucket,
            cfg.bucket_lookup,
            cfg.region,
            METHOD_PUT if cfg.disable_post else METHOD_POST,
            not cfg.disable_checksum,
        )

    def generate_upload(self, params: UploadParams) -> UploadResult:
        if self._cfg.disable_post:
            return self._generate_put(params)
        return self._generate_post(params)

    def _checksum_b64(self, params: UploadParams) -> Optional[str]:
        if self._cfg.disable_checksum or params.sha256 is None:
            return None
        return base64.b64encode(params.sha256).decode("ascii")

    def _generate_post(self, params: UploadParams) -> UploadResult:
        key = compose_object_key(self._cfg.prefix, params.remote_path)

        fields: Dict[str, str] = {}
        conditions: List[Any] = [["content-length-range", params.size, params.size]]

        def enforce(name: str, value: str) -> None:
            fields[name] = value
            conditions.append({name: value})

        if params.content_type:
            enforce(HEADER_CONTENT_TYPE, params.content_type)

        if params.attachment_filename:
            enforce(HEADER_CONTENT_DISPOSITION, compose_content_disposition(params.attachment_filename))

        checksum = self._checksum_b64(params)
        if checksum is not None:
            enforce(HEADER_CHECKSUM_ALGORITHM, CHECKSUM_ALGORITHM_SHA256)
            enforce(HEADER_CHECKSUM_SHA256, checksum)

        for name, value in sorted((params.metadata or {}).items()):
            enforce(HEADER_USER_METADATA_PREFIX + name, value)

        # boto3 adds the bucket and exact key conditions itself
        try:
            post = self._s3.generate_presigned_post(
                Bucket=self._cfg.bucket,
                Key=key,
                Fields=fields,
                Conditions=conditions,
                ExpiresIn=max(1, int(params.expire_in.total_seconds())),
            )
        except (BotoCoreError, ClientError) as exc:
            raise UpstreamError(f"failed to build POST policy for key={key}: {exc}") from exc

        logger.debug("[S3Upload] POST policy key=%s size=%s", key, params.size)
        return UploadResult(
            method=METHOD_POST,
            url=post["url"],
            form_data={str(k): str(v) for k, v in post["fields"].items()},
        )

    def _generate_put(self, params: UploadParams) -> UploadResult:
        key = compose_object_key(self._cfg.prefix, params.remote_path)

        header: Dict[str, str] = {
            HEADER_CONTENT_LENGTH: str(params.size),
            HEADER_CONTENT_TYPE: params.content_type or DEFAULT_CONTENT_TYPE,
        }

        if params.attachment_filename:
            header[HEADER_CONTENT_DISPOSITION] = compose_content_disposition(params.attachment_filename)

        checksum = self._checksum_b64(params)
        if checksum is not None:
            header[HEADER_CHECKSUM_ALGORITHM] = CHECKSUM_ALGORITHM_SHA256
            header[HEADER_CHECKSUM_SHA256] = checksum

        for name, value in sorted((params.metadata or {}).items()):
            header[HEADER_USER_METADATA_PREFIX + name] = value

        path = join_path("/", self._object_base.path, key)
        url = build_url(self._object_base, escape_s3_key_path(path))

        signed = presign_v4(
            METHOD_PUT,
            url,
            access_key=self._cfg.access_key,
            secret_key=self._cfg.secret_key,
            region=self._cfg.region,
            expires=expires_seconds(params.expire_in.total_seconds()),
            signed_at=self._clock(),
            headers=header,
        )

        logger.debug("[S3Upload] signed PUT key=%s size=%s", key, params.size)
        return UploadResult(method=METHOD_PUT, url=signed, header=header)
