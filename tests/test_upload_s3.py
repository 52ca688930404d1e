import base64
import hashlib
import json
from datetime import timedelta
from urllib.parse import parse_qs, urlsplit

import pytest
from botocore.exceptions import ClientError

from s3presign.core.errors import ConfigError, UpstreamError
from s3presign.providers.impl.upload_s3 import S3UploadGenerator
from s3presign.providers.settings import S3UploadConfig
from s3presign.providers.upload import DEFAULT_CONTENT_TYPE, UploadGenerator, UploadParams, UploadResult

PAYLOAD = b"x" * 1024
PAYLOAD_SHA256 = hashlib.sha256(PAYLOAD).digest()


def _cfg(**kw):
    base = dict(
        endpoint="https://s3.example.com",
        bucket="media",
        bucket_lookup="path",
        region="us-east-1",
        access_key="AKIDEXAMPLE",
        secret_key="secret",
    )
    base.update(kw)
    return S3UploadConfig(**base)


def _params(**kw):
    base = dict(remote_path="a/b.bin", expire_in=timedelta(seconds=60), size=1024)
    base.update(kw)
    return UploadParams(**base)


class FailingS3:
    def generate_presigned_post(self, **kwargs):
        raise ClientError({"Error": {"Code": "AccessDenied", "Message": "nope"}}, "GeneratePresignedPost")


def _policy(result: UploadResult):
    return json.loads(base64.b64decode(result.form_data["policy"]))


def test_is_an_upload_generator(clock):
    assert isinstance(S3UploadGenerator(_cfg(), clock=clock), UploadGenerator)


def test_put_scenario_with_checksum(clock):
    gen = S3UploadGenerator(_cfg(disable_post=True), clock=clock)
    result = gen.generate_upload(_params(sha256=PAYLOAD_SHA256))

    assert result.method == "PUT"
    assert result.form_data is None
    assert result.header["Content-Length"] == "1024"
    assert result.header["Content-Type"] == DEFAULT_CONTENT_TYPE
    assert result.header["x-amz-checksum-algorithm"] == "SHA256"
    assert result.header["x-amz-checksum-sha256"] == base64.b64encode(PAYLOAD_SHA256).decode()

    u = urlsplit(result.url)
    q = parse_qs(u.query)
    assert u.path == "/media/a/b.bin"
    assert len(q["X-Amz-Signature"][0]) == 64
    signed = q["X-Amz-SignedHeaders"][0].split(";")
    assert "content-length" in signed
    assert "x-amz-checksum-sha256" in signed


def test_put_is_deterministic_under_frozen_clock(clock):
    gen = S3UploadGenerator(_cfg(disable_post=True), clock=clock)
    params = _params(sha256=PAYLOAD_SHA256, metadata={"owner": "u1"}, attachment_filename="b.bin")

    first = gen.generate_upload(params)
    second = gen.generate_upload(params)
    assert first.url == second.url
    assert first.header == second.header
    assert first.header["x-amz-meta-owner"] == "u1"
    assert first.header["Content-Disposition"].startswith("attachment;")


def test_put_disposition_header_has_no_raw_line_breaks(clock):
    gen = S3UploadGenerator(_cfg(disable_post=True), clock=clock)
    result = gen.generate_upload(_params(attachment_filename="a\r\nX-Evil: 1.txt"))

    value = result.header["Content-Disposition"]
    assert "\r" not in value
    assert "\n" not in value
    assert 'filename="a\\r\\nX-Evil: 1.txt"' in value


def test_put_without_checksum_when_disabled(clock):
    gen = S3UploadGenerator(_cfg(disable_post=True, disable_checksum=True), clock=clock)
    result = gen.generate_upload(_params(sha256=PAYLOAD_SHA256))
    assert "x-amz-checksum-sha256" not in result.header
    assert "x-amz-checksum-algorithm" not in result.header


def test_post_policy_pins_exact_size(clock):
    gen = S3UploadGenerator(_cfg(prefix="pre"), clock=clock)
    result = gen.generate_upload(_params(content_type="image/png", sha256=PAYLOAD_SHA256))

    assert result.method == "POST"
    assert result.header is None
    assert result.url.startswith("https://s3.example.com/")
    assert result.form_data["key"] == "pre/a/b.bin"
    assert result.form_data["Content-Type"] == "image/png"
    assert result.form_data["x-amz-checksum-algorithm"] == "SHA256"

    conditions = _policy(result)["conditions"]
    assert ["content-length-range", 1024, 1024] in conditions
    assert {"Content-Type": "image/png"} in conditions
    assert {"key": "pre/a/b.bin"} in conditions
    assert {"bucket": "media"} in conditions


def test_post_metadata_is_enforced(clock):
    gen = S3UploadGenerator(_cfg(), clock=clock)
    result = gen.generate_upload(_params(metadata={"owner": "u1"}))
    assert result.form_data["x-amz-meta-owner"] == "u1"
    assert {"x-amz-meta-owner": "u1"} in _policy(result)["conditions"]


def test_post_sdk_failure_is_upstream_error(clock):
    gen = S3UploadGenerator(_cfg(), clock=clock, s3_client=FailingS3())
    with pytest.raises(UpstreamError) as ei:
        gen.generate_upload(_params())
    assert isinstance(ei.value.__cause__, ClientError)


def test_cname_is_rejected():
    with pytest.raises(ConfigError):
        S3UploadGenerator(_cfg(bucket_lookup="cname"))


def test_missing_keys_rejected():
    with pytest.raises(ConfigError):
        S3UploadGenerator(_cfg(access_key=""))


@pytest.mark.parametrize(
    "kw",
    [
        {"size": -1},
        {"size": True},
        {"sha256": b"short"},
        {"expire_in": timedelta(seconds=-1)},
    ],
)
def test_upload_params_validation(kw):
    with pytest.raises(ValueError):
        _params(**kw)


def test_upload_result_envelope():
    put = UploadResult(method="PUT", url="https://x/y", header={"Content-Length": "1"})
    assert put.to_dict() == {"method": "PUT", "url": "https://x/y", "header": {"Content-Length": "1"}}

    with pytest.raises(ValueError):
        UploadResult(method="POST", url="https://x/y", header={"a": "b"})
    with pytest.raises(ValueError):
        UploadResult(method="PUT", url="https://x/y", header={}, form_data={})
