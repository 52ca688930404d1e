from datetime import timedelta
from urllib.parse import urlsplit

import pytest

from s3presign.core.errors import ConfigError
from s3presign.providers.download import DownloadParams
from s3presign.providers.factory import (
    ParentConfig,
    build_generators,
    join_prefix,
    merge_cdn_config,
    merge_s3_download_config,
    new_download_generator,
    new_upload_generator,
)
from s3presign.providers.impl.download_aliyun_cdn import AliyunCDNDownloadGenerator
from s3presign.providers.impl.download_s3 import S3DownloadGenerator
from s3presign.providers.impl.download_tencent_cdn import TencentCloudCDNDownloadGenerator
from s3presign.providers.impl.upload_s3 import S3UploadGenerator
from s3presign.providers.settings import AliyunCDNConfig, S3DownloadConfig


def test_join_prefix():
    assert join_prefix("", "") == ""
    assert join_prefix("tenant-1", "") == "tenant-1"
    assert join_prefix("/tenant-1/", "/img") == "tenant-1/img"


def test_s3_download_inherits_empty_fields(parent):
    merged = merge_s3_download_config(S3DownloadConfig(region="eu-west-1", prefix="img"), parent)

    assert merged.endpoint == parent.endpoint
    assert merged.bucket == parent.bucket
    assert merged.access_key == parent.access_key
    assert merged.region == "eu-west-1"
    assert merged.prefix == "tenant-1/img"


def test_merge_never_mutates_inputs(parent):
    child = S3DownloadConfig()
    merge_s3_download_config(child, parent)
    assert child.endpoint == ""
    assert parent.prefix == "tenant-1"


def test_cdn_inherits_prefix_only(parent):
    merged = merge_cdn_config(AliyunCDNConfig(endpoint="https://cdn.example.com"), parent)
    assert merged.endpoint == "https://cdn.example.com"
    assert merged.auth_key == ""
    assert merged.prefix == "tenant-1"


@pytest.mark.parametrize("kind", [None, ""])
def test_empty_kind_selects_s3(parent, clock, kind):
    gen = new_download_generator(kind, None, parent, clock=clock)
    assert isinstance(gen, S3DownloadGenerator)

    url = gen.generate_download(DownloadParams(remote_path="a.txt", expire_in=timedelta(seconds=30)))
    assert urlsplit(url).path == "/media/tenant-1/a.txt"


def test_empty_config_blob_inherits_everything(parent, clock):
    gen = new_upload_generator("s3", b"", parent, clock=clock)
    assert isinstance(gen, S3UploadGenerator)


def test_cdn_kinds(parent, clock):
    blob = '{"endpoint": "https://cdn.example.com", "auth_mode": "type-b", "auth_key": "k"}'
    assert isinstance(new_download_generator("aliyun_cdn", blob, parent, clock=clock), AliyunCDNDownloadGenerator)
    assert isinstance(
        new_download_generator("tencent_cloud_cdn", blob, parent, clock=clock), TencentCloudCDNDownloadGenerator
    )


def test_cdn_prefix_nested_under_client_prefix(parent, clock):
    gen = new_download_generator(
        "aliyun_cdn", {"endpoint": "https://cdn.example.com", "prefix": "pub"}, parent, clock=clock
    )
    url = gen.generate_download(DownloadParams(remote_path="a.txt", expire_in=timedelta(seconds=30)))
    assert url == "https://cdn.example.com/tenant-1/pub/a.txt"


def test_cdn_with_empty_blob_fails_without_endpoint(parent):
    with pytest.raises(ConfigError):
        new_download_generator("aliyun_cdn", None, parent)


def test_unknown_kinds(parent):
    with pytest.raises(ConfigError):
        new_download_generator("cloudfront", None, parent)
    with pytest.raises(ConfigError):
        new_upload_generator("aliyun_cdn", None, parent)


def test_malformed_blob(parent):
    with pytest.raises(ConfigError):
        new_download_generator("s3", "{not json", parent)


def test_build_generators_labels_failures(parent):
    with pytest.raises(ConfigError, match="failed to init download generator"):
        build_generators(parent, download_type="nope")

    with pytest.raises(ConfigError, match="failed to init upload generator"):
        build_generators(parent, upload_config={"bucket_lookup": "cname"})


def test_build_generators_defaults(parent, clock, nonce):
    gens = build_generators(parent, clock=clock, nonce=nonce)
    assert isinstance(gens.download, S3DownloadGenerator)
    assert isinstance(gens.upload, S3UploadGenerator)


def test_missing_parent_fields_surface(clock):
    with pytest.raises(ConfigError):
        new_download_generator("s3", None, ParentConfig(endpoint="https://s3.example.com"), clock=clock)
