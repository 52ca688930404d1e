from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Protocol, runtime_checkable, Optional, Dict, Any, Mapping

METHOD_PUT = "PUT"
METHOD_POST = "POST"

SHA256_DIGEST_SIZE = 32

DEFAULT_CONTENT_TYPE = "application/octet-stream"


@dataclass(frozen=True)
class UploadParams:
    """
    One pre-signed upload request.

    size is the exact byte length the store will accept. sha256, when given,
    binds the credential to that content digest (raw 32 bytes, not hex).
    """
    remote_path: str
    expire_in: timedelta
    size: int
    content_type: Optional[str] = None
    attachment_filename: Optional[str] = None
    sha256: Optional[bytes] = None
    metadata: Optional[Mapping[str, str]] = None

    def __post_init__(self) -> None:
        if not isinstance(self.expire_in, timedelta):
            raise ValueError("expire_in must be a timedelta")
        if self.expire_in <= timedelta(0):
            raise ValueError("expire_in must be positive")
        if isinstance(self.size, bool) or not isinstance(self.size, int) or self.size < 0:
            raise ValueError("size must be a non-negative integer")
        if self.sha256 is not None and len(self.sha256) != SHA256_DIGEST_SIZE:
            raise ValueError(f"sha256 must be exactly {SHA256_DIGEST_SIZE} bytes")


@dataclass(frozen=True)
class UploadResult:
    """
    What the end client needs to perform the upload.

    PUT: send every entry of ``header`` verbatim, body unmodified.
    POST: multipart/form-data with every ``form_data`` field before the ``file`` field.
    """
    method: str
    url: str
    header: Optional[Dict[str, str]] = field(default=None)
    form_data: Optional[Dict[str, str]] = field(default=None)

    def __post_init__(self) -> None:
        if self.method not in (METHOD_PUT, METHOD_POST):
            raise ValueError(f"unsupported upload method: {self.method}")
        if (self.header is None) == (self.form_data is None):
            raise ValueError("exactly one of header / form_data must be set")
        if self.method == METHOD_PUT and self.header is None:
            raise ValueError("PUT upload requires header")
        if self.method == METHOD_POST and self.form_data is None:
            raise ValueError("POST upload requires form_data")

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"method": self.method, "url": self.url}
        if self.header is not None:
            out["header"] = dict(self.header)
        if self.form_data is not None:
            out["form_data"] = dict(self.form_data)
        return out


@runtime_checkable
class UploadGenerator(Protocol):
    """Produces pre-signed uploads an end client can send straight to the store."""

    def generate_upload(self, params: UploadParams) -> UploadResult: ...
