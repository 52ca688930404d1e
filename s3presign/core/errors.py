from __future__ import annotations


class PresignError(RuntimeError):
    """Base class for every error raised by s3presign."""


class ConfigError(PresignError):
    """
    Missing, invalid or unrecognized configuration.

    Raised at construction time only. A generator that fails validation is
    never handed back to the caller.
    """


class SigningError(PresignError):
    """Encoding fault while producing a signed URL (fatal for that call)."""


class UpstreamError(PresignError):
    """
    The object-storage SDK call failed.

    The SDK exception is kept as ``__cause__``; callers may retry.
    """
