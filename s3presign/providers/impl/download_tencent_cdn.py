from __future__ import annotations

from datetime import timedelta
from typing import Dict

from s3presign.providers.impl.cdn_base import CDNDownloadGenerator
from s3presign.providers.settings import TencentCloudCDNAuthMode, TencentCloudCDNConfig


class TencentCloudCDNDownloadGenerator(CDNDownloadGenerator):
    """
    Tencent Cloud CDN URL authentication, sha256 algorithm only.

    Docs:
      - type-a: https://cloud.tencent.com/document/product/228/41623
      - type-b: https://cloud.tencent.com/document/product/228/41871
      - type-c: https://cloud.tencent.com/document/product/228/41624
      - type-d: https://cloud.tencent.com/document/product/228/41625
    """

    config_type = TencentCloudCDNConfig
    hash_name = "sha256"
    log_tag = "TencentCloudCDN"

    _cfg: TencentCloudCDNConfig

    def _sign(self, path: str, query: Dict[str, str], expire_in: timedelta) -> str:
        mode = self._cfg.auth_mode
        if mode == TencentCloudCDNAuthMode.A:
            return self._sign_nonce_query(path, query, expire_in, "sign")
        if mode == TencentCloudCDNAuthMode.B:
            return self._sign_minute_path(path, expire_in)
        if mode == TencentCloudCDNAuthMode.C:
            return self._sign_hex_path(path, expire_in)
        if mode == TencentCloudCDNAuthMode.D:
            return self._sign_hex_path_and_query(path, query, expire_in, "sign", "t")
        return path
