from __future__ import annotations

import logging
from typing import Dict, Optional

from s3presign.providers.clock import Clock, utcnow
from s3presign.providers.download import DownloadGenerator, DownloadParams
from s3presign.providers.impl.sigv4 import expires_seconds, presign_v4
from s3presign.providers.paths import (
    apply_bucket_lookup,
    build_url,
    compose_content_disposition,
    compose_object_path,
    escape_s3_key_path,
    parse_endpoint,
)
from s3presign.providers.settings import S3DownloadConfig

logger = logging.getLogger(__name__)


class S3DownloadGenerator(DownloadGenerator):
    """
    Pre-signed GET Object URLs served by the object store itself.

    The bucket is folded into the endpoint once, according to bucket_lookup.
    Public-read buckets get a plain URL; everything else is SigV4 query-signed
    with the configured credentials.
    """

    def __init__(self, cfg: S3DownloadConfig, *, clock: Optional[Clock] = None):
        cfg.validate_required()

        endpoint = parse_endpoint(cfg.endpoint)
        self._endpoint = apply_bucket_lookup(endpoint, cfg.bucket, cfg.bucket_lookup)
        self._cfg = cfg
        self._clock = clock or utcnow

        logger.info(
            "[S3Download] endpoint=%s bucket=%s lookup=%s region=%s public_read=%s",
            endpoint.netloc,
            cfg.bucket,
            cfg.bucket_lookup,
            cfg.region,
            cfg.public_read,
        )

    def generate_download(self, params: DownloadParams) -> str:
        query: Dict[str, str] = {}

        if not self._cfg.disable_response_content_type and params.content_type:
            query["response-content-type"] = params.content_type

        if not self._cfg.disable_response_content_disposition and params.attachment_filename:
            query["response-content-disposition"] = compose_content_disposition(params.attachment_filename)

        path = compose_object_path(self._endpoint.path, self._cfg.prefix, params.remote_path)
        url = build_url(self._endpoint, escape_s3_key_path(path), query)

        if self._cfg.public_read:
            return url

        signed = presign_v4(
            "GET",
            url,
            access_key=self._cfg.access_key,
            secret_key=self._cfg.secret_key,
            region=self._cfg.region,
            expires=expires_seconds(params.expire_in.total_seconds()),
            signed_at=self._clock(),
        )
        logger.debug("[S3Download] signed GET path=%s", path)
        return signed
