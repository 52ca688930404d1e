from __future__ import annotations

import hashlib
import logging
from datetime import datetime, timedelta, tzinfo
from typing import Dict, Optional, Tuple, Type

from s3presign.core.errors import ConfigError
from s3presign.providers.clock import Clock, NonceSource, as_utc, utcnow, uuid_nonce
from s3presign.providers.download import DownloadGenerator, DownloadParams
from s3presign.providers.paths import (
    TIMEZONE_CST,
    build_url,
    compose_content_disposition,
    compose_object_path,
    escape_path,
    join_path,
    parse_endpoint,
)
from s3presign.providers.settings import CDNConfigCommon

logger = logging.getLogger(__name__)

# type-b timestamps: YYYYMMDDHHMM
MINUTE_TIMESTAMP_FORMAT = "%Y%m%d%H%M"

# fixed "uid" field of nonce based signatures
NONCE_SIGN_UID = "0"


class CDNDownloadGenerator(DownloadGenerator):
    """
    Download URLs served through a CDN that checks its own URL authentication.

    Subclasses pick the digest algorithm and map their vendor's auth modes onto
    the signing shapes below. All signing strings use the escaped URL path, the
    same bytes the CDN sees on the wire.

    Nothing here touches the network; the only per-call state is one clock read
    and, for nonce based modes, one nonce draw.
    """

    config_type: Type[CDNConfigCommon] = CDNConfigCommon
    hash_name = "md5"
    log_tag = "CDN"

    def __init__(
        self,
        cfg: CDNConfigCommon,
        *,
        clock: Optional[Clock] = None,
        nonce: Optional[NonceSource] = None,
        tz: tzinfo = TIMEZONE_CST,
    ):
        if not isinstance(cfg, self.config_type):
            raise ConfigError(f"{type(self).__name__} needs {self.config_type.__name__}, got {type(cfg).__name__}")
        cfg.validate_required()

        self._endpoint = parse_endpoint(cfg.endpoint)
        self._cfg = cfg
        self._clock = clock or utcnow
        self._nonce = nonce or uuid_nonce
        self._tz = tz

        logger.info(
            "[%s] endpoint=%s auth_mode=%s dynamic_expire=%s",
            self.log_tag,
            self._endpoint.netloc,
            cfg.auth_mode.value or "none",
            cfg.dynamic_expire,
        )

    def generate_download(self, params: DownloadParams) -> str:
        query: Dict[str, str] = {}

        if not self._cfg.disable_response_content_type and params.content_type:
            query["response-content-type"] = params.content_type

        if not self._cfg.disable_response_content_disposition and params.attachment_filename:
            query["response-content-disposition"] = compose_content_disposition(params.attachment_filename)

        path = escape_path(compose_object_path(self._endpoint.path, self._cfg.prefix, params.remote_path))
        path = self._sign(path, query, params.expire_in)

        return build_url(self._endpoint, path, query)

    def _sign(self, path: str, query: Dict[str, str], expire_in: timedelta) -> str:
        """Apply the configured auth mode; returns the (possibly rewritten) escaped path."""
        raise NotImplementedError

    def _digest(self, text: str) -> str:
        return hashlib.new(self.hash_name, text.encode("utf-8")).hexdigest()

    def _signed_at(self, expire_in: timedelta) -> datetime:
        signed_at = as_utc(self._clock())
        if self._cfg.dynamic_expire:
            # the CDN validity window is configured as 0, the timestamp is the expiry itself
            signed_at = signed_at + expire_in
        return signed_at

    def _sign_nonce_query(self, path: str, query: Dict[str, str], expire_in: timedelta, param: str) -> str:
        """<ts>-<nonce>-0-<digest> in a single query parameter; ts in decimal Unix seconds."""
        ts = int(self._signed_at(expire_in).timestamp())
        nonce = self._nonce()

        digest = self._digest(f"{path}-{ts}-{nonce}-{NONCE_SIGN_UID}-{self._cfg.auth_key}")

        query[param] = f"{ts}-{nonce}-{NONCE_SIGN_UID}-{digest}"
        return path

    def _sign_minute_path(self, path: str, expire_in: timedelta) -> str:
        """/<YYYYMMDDHHMM>/<digest>/<path>, timestamp rendered in the configured zone."""
        ts = self._signed_at(expire_in).astimezone(self._tz).strftime(MINUTE_TIMESTAMP_FORMAT)

        digest = self._digest(self._cfg.auth_key + ts + path)

        return join_path("/", ts, digest, path)

    def _hex_time_signature(self, path: str, expire_in: timedelta) -> Tuple[str, str]:
        ts = format(int(self._signed_at(expire_in).timestamp()), "x")
        return self._digest(self._cfg.auth_key + path + ts), ts

    def _sign_hex_path(self, path: str, expire_in: timedelta) -> str:
        """/<digest>/<hex-ts>/<path>"""
        digest, ts = self._hex_time_signature(path, expire_in)
        return join_path("/", digest, ts, path)

    def _sign_hex_path_and_query(
        self,
        path: str,
        query: Dict[str, str],
        expire_in: timedelta,
        sign_param: str,
        time_param: str,
    ) -> str:
        """Same as the hex path form, with digest and timestamp repeated in the query."""
        digest, ts = self._hex_time_signature(path, expire_in)
        query[sign_param] = digest
        query[time_param] = ts
        return join_path("/", digest, ts, path)
