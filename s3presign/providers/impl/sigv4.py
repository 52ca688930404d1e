from __future__ import annotations

from datetime import datetime
from typing import Dict, Mapping, Optional

from botocore.auth import SIGV4_TIMESTAMP, S3SigV4QueryAuth
from botocore.awsrequest import AWSRequest
from botocore.credentials import Credentials
from botocore.exceptions import BotoCoreError

from s3presign.core.errors import SigningError
from s3presign.providers.clock import as_utc

# X-Amz-Expires upper bound accepted by S3 (7 days)
MAX_EXPIRES_SECONDS = 7 * 24 * 3600


class _InstantS3QueryAuth(S3SigV4QueryAuth):
    """
    botocore's S3 query-string signer, stamped with a caller supplied instant
    instead of reading the wall clock itself.
    """

    def __init__(self, credentials: Credentials, region_name: str, expires: int, signed_at: datetime):
        super().__init__(credentials, "s3", region_name, expires=expires)
        self._signed_at = signed_at

    def add_auth(self, request: AWSRequest) -> None:
        request.context["timestamp"] = self._signed_at.strftime(SIGV4_TIMESTAMP)
        self._modify_request_before_signing(request)
        canonical_request = self.canonical_request(request)
        string_to_sign = self.string_to_sign(request, canonical_request)
        signature = self.signature(string_to_sign, request)
        self._inject_signature_to_request(request, signature)


def expires_seconds(expire_in_seconds: float) -> int:
    """Whole seconds for X-Amz-Expires, clamped to what S3 accepts."""
    return max(1, min(int(expire_in_seconds), MAX_EXPIRES_SECONDS))


def presign_v4(
    method: str,
    url: str,
    *,
    access_key: str,
    secret_key: str,
    region: str,
    expires: int,
    signed_at: datetime,
    headers: Optional[Mapping[str, str]] = None,
) -> str:
    """
    Return ``url`` with an AWS SigV4 query signature appended.

    Every entry of ``headers`` becomes a signed header, so the client has to
    replay them verbatim. The payload is not signed (UNSIGNED-PAYLOAD).
    """
    signed_at = as_utc(signed_at)

    request_headers: Dict[str, str] = dict(headers or {})
    request = AWSRequest(method=method, url=url, headers=request_headers)
    auth = _InstantS3QueryAuth(Credentials(access_key, secret_key), region, expires, signed_at)
    try:
        auth.add_auth(request)
    except (BotoCoreError, ValueError, UnicodeError) as exc:
        raise SigningError(f"failed to sign {method} {url}: {exc}") from exc
    return request.url
