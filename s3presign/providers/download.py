from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Protocol, runtime_checkable, Optional


@dataclass(frozen=True)
class DownloadParams:
    """
    One pre-signed download request.

    remote_path is the logical object key, before any prefix is applied.
    attachment_filename / content_type ask the server to answer with the
    matching response header (when the backend allows the override).
    """
    remote_path: str
    expire_in: timedelta
    attachment_filename: Optional[str] = None
    content_type: Optional[str] = None

    def __post_init__(self) -> None:
        if not isinstance(self.expire_in, timedelta):
            raise ValueError("expire_in must be a timedelta")
        if self.expire_in <= timedelta(0):
            raise ValueError("expire_in must be positive")


@runtime_checkable
class DownloadGenerator(Protocol):
    """
    Produces URLs an end client can GET directly, usually served by the object
    store itself or by a CDN in front of it.
    """

    def generate_download(self, params: DownloadParams) -> str: ...
