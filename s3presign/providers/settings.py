from __future__ import annotations

from enum import Enum
from typing import Union

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from s3presign.core.errors import ConfigError
from s3presign.providers.paths import BUCKET_LOOKUP_CNAME, BUCKET_LOOKUP_DNS, BUCKET_LOOKUP_PATH

BUCKET_LOOKUPS = ("", BUCKET_LOOKUP_DNS, BUCKET_LOOKUP_PATH, BUCKET_LOOKUP_CNAME)

RawConfig = Union[None, str, bytes, bytearray, dict, "GeneratorConfig"]


class AliyunCDNAuthMode(str, Enum):
    """
    Aliyun CDN URL authentication types, as named in the CDN console.

    type-f console settings: sign parameter "sign", time parameter "time",
    hexadecimal Unix timestamp, URL encoding off.
    """
    NONE = ""
    A = "type-a"
    B = "type-b"
    C = "type-c"
    F = "type-f"


class TencentCloudCDNAuthMode(str, Enum):
    """
    Tencent Cloud CDN URL authentication types.

    Every type must use the sha256 algorithm in the console. type-a uses sign
    parameter "sign"; type-d uses "sign" / "t" with a hexadecimal Unix timestamp.
    """
    NONE = ""
    A = "type-a"
    B = "type-b"
    C = "type-c"
    D = "type-d"


def _check_bucket_lookup(value: str) -> str:
    value = (value or "").strip().lower()
    if value not in BUCKET_LOOKUPS:
        raise ValueError(f"unknown bucket lookup type: {value}")
    return value


class GeneratorConfig(BaseModel):
    """Base for generator configs; immutable once decoded, unknown keys ignored."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    @classmethod
    def from_raw(cls, raw: RawConfig) -> "GeneratorConfig":
        """Decode a raw config blob (dict, JSON text/bytes or nothing)."""
        if isinstance(raw, cls):
            return raw
        try:
            if raw is None:
                return cls()
            if isinstance(raw, (str, bytes, bytearray)):
                text = raw.decode("utf-8") if isinstance(raw, (bytes, bytearray)) else raw
                if text.strip() in ("", "null"):
                    return cls()
                return cls.model_validate_json(text)
            if isinstance(raw, dict):
                return cls.model_validate(raw)
        except (ValidationError, UnicodeDecodeError) as exc:
            raise ConfigError(f"invalid {cls.__name__}: {exc}") from exc
        raise ConfigError(f"invalid {cls.__name__}: unsupported config type {type(raw).__name__}")

    def validate_required(self) -> None:
        """Raise ConfigError when a field needed for signing is still empty."""


class GeneratorConfigCommon(GeneratorConfig):
    prefix: str = ""

    # Some providers reject "response-content-type" (Aliyun OSS) or ignore it on
    # public custom domains (Cloudflare R2). CDN auth usually does not cover the
    # query string, so the override can be tampered with there as well.
    disable_response_content_type: bool = False

    # Same story for "response-content-disposition" (ignored by Cloudflare R2 custom domains).
    disable_response_content_disposition: bool = False


class S3DownloadConfig(GeneratorConfigCommon):
    endpoint: str = ""
    bucket: str = ""
    bucket_lookup: str = ""
    region: str = ""

    public_read: bool = False
    access_key: str = ""
    secret_key: str = ""

    @field_validator("bucket_lookup")
    @classmethod
    def normalize_bucket_lookup(cls, value: str) -> str:
        return _check_bucket_lookup(value)

    def validate_required(self) -> None:
        if not self.endpoint:
            raise ConfigError("endpoint is required")
        if not self.bucket:
            raise ConfigError("bucket is required")
        if not self.region:
            raise ConfigError("region is required")
        if not self.public_read and (not self.access_key or not self.secret_key):
            raise ConfigError("access key and secret key are required unless public_read is set")
        if not self.bucket_lookup:
            raise ConfigError("bucket lookup is required")


class S3UploadConfig(GeneratorConfig):
    endpoint: str = ""
    bucket: str = ""
    bucket_lookup: str = ""
    prefix: str = ""
    region: str = ""

    access_key: str = ""
    secret_key: str = ""

    # Some providers cannot verify sha256 checksums. With this set an uploaded
    # digest is never enforced.
    disable_checksum: bool = False

    # Fall back to pre-signed PUT for providers without POST policy support
    # (Cloudflare R2).
    disable_post: bool = False

    @field_validator("bucket_lookup")
    @classmethod
    def normalize_bucket_lookup(cls, value: str) -> str:
        return _check_bucket_lookup(value)

    def validate_required(self) -> None:
        if not self.endpoint:
            raise ConfigError("endpoint is required")
        if not self.bucket:
            raise ConfigError("bucket is required")
        if not self.region:
            raise ConfigError("region is required")
        if not self.access_key or not self.secret_key:
            raise ConfigError("access key and secret key are required")
        if not self.bucket_lookup:
            raise ConfigError("bucket lookup is required")


class CDNConfigCommon(GeneratorConfigCommon):
    # public CDN base URL, e.g. https://cdn.example.com
    endpoint: str = ""

    # console "primary key" or "secondary key"
    auth_key: str = ""

    # Sign with the expiry instant instead of the signing instant. The console
    # validity window must then be set to 0.
    dynamic_expire: bool = False

    def validate_required(self) -> None:
        if not self.endpoint:
            raise ConfigError("endpoint is required")
        if self.auth_mode.value and not self.auth_key:
            raise ConfigError("auth key is required")


class AliyunCDNConfig(CDNConfigCommon):
    auth_mode: AliyunCDNAuthMode = AliyunCDNAuthMode.NONE


class TencentCloudCDNConfig(CDNConfigCommon):
    auth_mode: TencentCloudCDNAuthMode = TencentCloudCDNAuthMode.NONE
