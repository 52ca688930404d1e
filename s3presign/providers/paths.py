from __future__ import annotations

import posixpath
import unicodedata
from datetime import timedelta, timezone
from typing import Mapping, Optional
from urllib.parse import SplitResult, quote, urlencode, urlsplit, urlunsplit

from s3presign.core.errors import ConfigError

# Minute-granularity CDN timestamps (Aliyun/Tencent type-b) are rendered in China Standard Time.
TIMEZONE_CST = timezone(timedelta(hours=8), "CST")

BUCKET_LOOKUP_DNS = "dns"
BUCKET_LOOKUP_PATH = "path"
BUCKET_LOOKUP_CNAME = "cname"

# Characters left as-is when escaping a URL path (RFC 3986 pchar minus "!'()*").
_PATH_SAFE = "/$&+,:;=@"

# S3 canonical URI encoding: only unreserved characters and "/" stay literal.
_S3_KEY_SAFE = "/~"


def clean_path(value: str) -> str:
    """
    Lexically clean a slash separated path.

    ``..`` above the root collapses to the root, repeated slashes are folded and
    trailing slashes are dropped. An empty input cleans to ``"."``.
    """
    cleaned = posixpath.normpath(value or ".")
    # normpath keeps a leading "//" (implementation defined in POSIX)
    if cleaned.startswith("//"):
        cleaned = "/" + cleaned.lstrip("/")
    return cleaned


def join_path(*parts: str) -> str:
    """Join the non-empty parts with "/" and clean the result ("" if all are empty)."""
    joined = "/".join(p for p in parts if p)
    if not joined:
        return ""
    return clean_path(joined)


def clean_remote_path(remote_path: str) -> str:
    # rooted before cleaning, so ".." can never climb out of the prefix
    return clean_path("/" + (remote_path or ""))


def compose_object_key(prefix: str, remote_path: str) -> str:
    """S3 object key for ``remote_path`` under ``prefix`` (never starts with "/")."""
    return join_path(prefix, clean_remote_path(remote_path)).lstrip("/")


def compose_object_path(base_path: str, prefix: str, remote_path: str) -> str:
    """Unescaped URL path of an object below an endpoint path."""
    return join_path("/", base_path, prefix, clean_remote_path(remote_path))


def escape_path(path: str) -> str:
    return quote(path, safe=_PATH_SAFE)


def escape_s3_key_path(path: str) -> str:
    return quote(path, safe=_S3_KEY_SAFE)


def encode_query(query: Mapping[str, str]) -> str:
    return urlencode(sorted(query.items()))


_QUOTED_ESCAPES = {
    "\\": "\\\\",
    '"': '\\"',
    "\a": "\\a",
    "\b": "\\b",
    "\f": "\\f",
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
    "\v": "\\v",
}


def _quote_char(c: str) -> str:
    # quoted-string content: no raw control characters may reach a header line
    if c in _QUOTED_ESCAPES:
        return _QUOTED_ESCAPES[c]
    if c < " " or c == "\x7f":
        return f"\\x{ord(c):02x}"
    return c


def compose_content_disposition(filename: str) -> str:
    """
    ``attachment`` disposition carrying both RFC 6266 filename forms.

    ``filename`` holds an ASCII fallback for legacy clients, ``filename*`` the
    UTF-8 percent-encoded name.
    """
    ascii_name = unicodedata.normalize("NFKD", filename).encode("ascii", "ignore").decode("ascii")
    ascii_name = "".join(_quote_char(c) for c in ascii_name)

    parts = ["attachment"]
    if ascii_name:
        parts.append(f'filename="{ascii_name}"')
    parts.append("filename*=UTF-8''" + quote(filename, safe=""))
    return "; ".join(parts)


def parse_endpoint(endpoint: str) -> SplitResult:
    endpoint = (endpoint or "").strip()
    if not endpoint:
        raise ConfigError("endpoint is required")

    try:
        u = urlsplit(endpoint)
    except ValueError as exc:
        raise ConfigError(f"failed to parse endpoint: {endpoint!r}") from exc

    if u.scheme not in ("http", "https"):
        raise ConfigError("endpoint scheme must be http or https")
    if not u.netloc:
        raise ConfigError(f"endpoint has no host: {endpoint!r}")

    return u


def apply_bucket_lookup(endpoint: SplitResult, bucket: str, lookup: str) -> SplitResult:
    """Place the bucket name into the endpoint the way the provider addresses it."""
    if lookup == BUCKET_LOOKUP_DNS:
        return endpoint._replace(netloc=f"{bucket}.{endpoint.netloc}")
    if lookup == BUCKET_LOOKUP_PATH:
        return endpoint._replace(path=join_path("/", bucket, endpoint.path))
    if lookup == BUCKET_LOOKUP_CNAME:
        # custom domain already mapped onto the bucket
        return endpoint
    raise ConfigError(f"unknown bucket lookup type: {lookup}")


def build_url(base: SplitResult, escaped_path: str, query: Optional[Mapping[str, str]] = None) -> str:
    return urlunsplit((base.scheme, base.netloc, escaped_path, encode_query(query or {}), ""))
