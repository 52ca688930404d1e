from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple, Type, TypeVar, Union

from s3presign.core.errors import ConfigError
from s3presign.providers.clock import Clock, NonceSource
from s3presign.providers.download import DownloadGenerator
from s3presign.providers.impl.download_aliyun_cdn import AliyunCDNDownloadGenerator
from s3presign.providers.impl.download_s3 import S3DownloadGenerator
from s3presign.providers.impl.download_tencent_cdn import TencentCloudCDNDownloadGenerator
from s3presign.providers.impl.upload_s3 import S3UploadGenerator
from s3presign.providers.paths import join_path
from s3presign.providers.settings import (
    AliyunCDNConfig,
    CDNConfigCommon,
    GeneratorConfig,
    RawConfig,
    S3DownloadConfig,
    S3UploadConfig,
    TencentCloudCDNConfig,
)
from s3presign.providers.upload import UploadGenerator

logger = logging.getLogger(__name__)


class DownloadGeneratorKind(str, Enum):
    S3 = "s3"
    ALIYUN_CDN = "aliyun_cdn"
    TENCENT_CLOUD_CDN = "tencent_cloud_cdn"


class UploadGeneratorKind(str, Enum):
    S3 = "s3"


@dataclass(frozen=True)
class ParentConfig:
    """
    The owning client's resolved settings.

    Generators inherit any of these they leave empty in their own config.
    """
    endpoint: str = ""
    bucket: str = ""
    bucket_lookup: str = ""
    prefix: str = ""
    access_key: str = ""
    secret_key: str = ""
    region: str = ""


@dataclass(frozen=True)
class Generators:
    """The download/upload generator pair an owning client forwards to."""
    download: DownloadGenerator
    upload: UploadGenerator


# fields copied from the parent when the generator's own value is empty
_S3_INHERITED = ("endpoint", "bucket", "bucket_lookup", "region", "access_key", "secret_key")

_C = TypeVar("_C", bound=GeneratorConfig)
_K = TypeVar("_K", DownloadGeneratorKind, UploadGeneratorKind)


def join_prefix(parent_prefix: str, child_prefix: str) -> str:
    """Generator prefix nested under the client prefix, without a leading "/"."""
    return join_path(parent_prefix, child_prefix).lstrip("/")


def _inherit(child: _C, parent: ParentConfig, names: Tuple[str, ...]) -> _C:
    update: Dict[str, Any] = {name: getattr(parent, name) for name in names if not getattr(child, name)}
    update["prefix"] = join_prefix(parent.prefix, child.prefix)
    return child.model_copy(update=update)


def merge_s3_download_config(child: S3DownloadConfig, parent: ParentConfig) -> S3DownloadConfig:
    return _inherit(child, parent, _S3_INHERITED)


def merge_s3_upload_config(child: S3UploadConfig, parent: ParentConfig) -> S3UploadConfig:
    return _inherit(child, parent, _S3_INHERITED)


def merge_cdn_config(child: CDNConfigCommon, parent: ParentConfig) -> CDNConfigCommon:
    # CDN endpoints and keys are unrelated to the bucket's; only the key namespace carries over
    return _inherit(child, parent, ())


def _parse_kind(kind: Union[None, str, _K], kind_type: Type[_K], label: str) -> _K:
    if kind is None or kind == "":
        return kind_type("s3")
    try:
        return kind_type(kind)
    except ValueError as exc:
        raise ConfigError(f"unknown {label} generator type: {kind}") from exc


def _build_s3_download(raw: RawConfig, parent: ParentConfig, clock: Optional[Clock], nonce: Optional[NonceSource]):
    cfg = merge_s3_download_config(S3DownloadConfig.from_raw(raw), parent)
    return S3DownloadGenerator(cfg, clock=clock)


def _build_aliyun_cdn(raw: RawConfig, parent: ParentConfig, clock: Optional[Clock], nonce: Optional[NonceSource]):
    cfg = merge_cdn_config(AliyunCDNConfig.from_raw(raw), parent)
    return AliyunCDNDownloadGenerator(cfg, clock=clock, nonce=nonce)


def _build_tencent_cloud_cdn(raw: RawConfig, parent: ParentConfig, clock: Optional[Clock], nonce: Optional[NonceSource]):
    cfg = merge_cdn_config(TencentCloudCDNConfig.from_raw(raw), parent)
    return TencentCloudCDNDownloadGenerator(cfg, clock=clock, nonce=nonce)


_DOWNLOAD_BUILDERS: Dict[DownloadGeneratorKind, Callable[..., DownloadGenerator]] = {
    DownloadGeneratorKind.S3: _build_s3_download,
    DownloadGeneratorKind.ALIYUN_CDN: _build_aliyun_cdn,
    DownloadGeneratorKind.TENCENT_CLOUD_CDN: _build_tencent_cloud_cdn,
}


def new_download_generator(
    kind: Union[None, str, DownloadGeneratorKind],
    raw: RawConfig,
    parent: ParentConfig,
    *,
    clock: Optional[Clock] = None,
    nonce: Optional[NonceSource] = None,
) -> DownloadGenerator:
    """
    Build the download generator of ``kind`` from its raw config blob.

    Empty ``kind`` selects the native S3 signer. Raises ConfigError for an
    unknown kind or a config that does not decode/validate.
    """
    k = _parse_kind(kind, DownloadGeneratorKind, "download")
    generator = _DOWNLOAD_BUILDERS[k](raw, parent, clock, nonce)
    logger.debug("download generator ready: %s", k.value)
    return generator


def new_upload_generator(
    kind: Union[None, str, UploadGeneratorKind],
    raw: RawConfig,
    parent: ParentConfig,
    *,
    clock: Optional[Clock] = None,
) -> UploadGenerator:
    """Build the upload generator of ``kind``; only the native S3 signer exists."""
    k = _parse_kind(kind, UploadGeneratorKind, "upload")
    cfg = merge_s3_upload_config(S3UploadConfig.from_raw(raw), parent)
    generator = S3UploadGenerator(cfg, clock=clock)
    logger.debug("upload generator ready: %s", k.value)
    return generator


def build_generators(
    parent: ParentConfig,
    *,
    download_type: Union[None, str, DownloadGeneratorKind] = None,
    download_config: RawConfig = None,
    upload_type: Union[None, str, UploadGeneratorKind] = None,
    upload_config: RawConfig = None,
    clock: Optional[Clock] = None,
    nonce: Optional[NonceSource] = None,
) -> Generators:
    try:
        download = new_download_generator(download_type, download_config, parent, clock=clock, nonce=nonce)
    except ConfigError as exc:
        raise ConfigError(f"failed to init download generator: {exc}") from exc

    try:
        upload = new_upload_generator(upload_type, upload_config, parent, clock=clock)
    except ConfigError as exc:
        raise ConfigError(f"failed to init upload generator: {exc}") from exc

    return Generators(download=download, upload=upload)
