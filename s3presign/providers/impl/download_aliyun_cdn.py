from __future__ import annotations

from datetime import timedelta
from typing import Dict

from s3presign.providers.impl.cdn_base import CDNDownloadGenerator
from s3presign.providers.settings import AliyunCDNAuthMode, AliyunCDNConfig


class AliyunCDNDownloadGenerator(CDNDownloadGenerator):
    """
    Aliyun CDN URL authentication (MD5).

    Docs:
      - type-a: https://help.aliyun.com/zh/cdn/user-guide/type-a-signing
      - type-b: https://help.aliyun.com/zh/cdn/user-guide/type-b-signing
      - type-c: https://help.aliyun.com/zh/cdn/user-guide/type-c-signing
      - type-f: https://help.aliyun.com/zh/cdn/user-guide/authentication-method-f-description
    """

    config_type = AliyunCDNConfig
    hash_name = "md5"
    log_tag = "AliyunCDN"

    _cfg: AliyunCDNConfig

    def _sign(self, path: str, query: Dict[str, str], expire_in: timedelta) -> str:
        mode = self._cfg.auth_mode
        if mode == AliyunCDNAuthMode.A:
            return self._sign_nonce_query(path, query, expire_in, "auth_key")
        if mode == AliyunCDNAuthMode.B:
            return self._sign_minute_path(path, expire_in)
        if mode == AliyunCDNAuthMode.C:
            return self._sign_hex_path(path, expire_in)
        if mode == AliyunCDNAuthMode.F:
            return self._sign_hex_path_and_query(path, query, expire_in, "sign", "time")
        return path
