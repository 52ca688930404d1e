from __future__ import annotations

import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from s3presign.core.errors import ConfigError
from s3presign.providers.paths import BUCKET_LOOKUP_CNAME, BUCKET_LOOKUP_DNS, BUCKET_LOOKUP_PATH


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else str(v)


def _env_json(name: str) -> Optional[Dict[str, Any]]:
    raw = _env(name, "").strip()
    if not raw:
        return None
    try:
        value = json.loads(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be a JSON object") from exc
    if value is not None and not isinstance(value, dict):
        raise ConfigError(f"{name} must be a JSON object (got {type(value).__name__})")
    return value


# ---------------------------------------------------------------------
# Client config
# ---------------------------------------------------------------------

class ClientConfig(BaseModel):
    """
    Owning client configuration.

    bucket_lookup:
      - "dns"   -> bucket is prepended to the endpoint host
      - "path"  -> bucket is the first segment of the endpoint path
      - "cname" -> custom domain already mapped to the bucket (download only)

    region is optional; when empty the client asks the store for the bucket
    location at construction.

    The generator configs are kept raw; the factory decodes them against the
    selected generator type.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    endpoint: str = ""
    bucket: str = ""
    bucket_lookup: str = ""
    prefix: str = ""
    region: str = ""

    access_key: str = ""
    secret_key: str = ""

    upload_generator_type: str = ""
    upload_generator_config: Optional[Dict[str, Any]] = None

    download_generator_type: str = ""
    download_generator_config: Optional[Dict[str, Any]] = None

    @field_validator("bucket_lookup")
    @classmethod
    def normalize_bucket_lookup(cls, value: str) -> str:
        value = (value or "").strip().lower()
        if value not in ("", BUCKET_LOOKUP_DNS, BUCKET_LOOKUP_PATH, BUCKET_LOOKUP_CNAME):
            raise ValueError(f"unknown bucket lookup type: {value}")
        return value

    @field_validator("prefix")
    @classmethod
    def strip_leading_slash(cls, value: str) -> str:
        return (value or "").strip().lstrip("/")

    def validate_required(self) -> None:
        if not self.endpoint:
            raise ConfigError("endpoint is required")
        if not self.bucket:
            raise ConfigError("bucket is required")
        if not self.bucket_lookup:
            raise ConfigError("bucket_lookup is required")
        if not self.access_key:
            raise ConfigError("access_key is required")
        if not self.secret_key:
            raise ConfigError("secret_key is required")


def _validate(data: Dict[str, Any]) -> ClientConfig:
    try:
        cfg = ClientConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"failed to validate config: {exc}") from exc
    cfg.validate_required()
    return cfg


# ---------------------------------------------------------------------
# Loaders
# ---------------------------------------------------------------------

def parse_config(data: Union[str, bytes]) -> ClientConfig:
    """Decode and validate a JSON client config document."""
    try:
        value = json.loads(data)
    except ValueError as exc:
        raise ConfigError(f"failed to unmarshal config: {exc}") from exc
    if not isinstance(value, dict):
        raise ConfigError("config must be a JSON object")
    return _validate(value)


def load_config_file(path: Union[str, Path]) -> ClientConfig:
    try:
        data = Path(path).read_bytes()
    except OSError as exc:
        raise ConfigError(f"failed to read config file {path}: {exc}") from exc
    return parse_config(data)


def load_config_from_env() -> ClientConfig:
    """
    Config precedence:
      1) S3_CONFIG_FILE (JSON document) wins when set
      2) individual S3_* variables
    """
    config_file = _env("S3_CONFIG_FILE", "").strip()
    if config_file:
        return load_config_file(config_file)

    return _validate(
        {
            "endpoint": _env("S3_ENDPOINT", "").strip().rstrip("/"),
            "bucket": _env("S3_BUCKET", "").strip(),
            "bucket_lookup": _env("S3_BUCKET_LOOKUP", "").strip(),
            "prefix": _env("S3_PREFIX", "").strip(),
            "region": (_env("S3_REGION", "") or _env("AWS_REGION", "") or "").strip(),
            "access_key": _env("S3_ACCESS_KEY", "").strip(),
            "secret_key": _env("S3_SECRET_KEY", "").strip(),
            "download_generator_type": _env("S3_DOWNLOAD_GENERATOR_TYPE", "").strip().lower(),
            "download_generator_config": _env_json("S3_DOWNLOAD_GENERATOR_CONFIG"),
            "upload_generator_type": _env("S3_UPLOAD_GENERATOR_TYPE", "").strip().lower(),
            "upload_generator_config": _env_json("S3_UPLOAD_GENERATOR_CONFIG"),
        }
    )


@lru_cache(maxsize=1)
def get_config() -> ClientConfig:
    return load_config_from_env()
