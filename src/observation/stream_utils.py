"""
Stream locator helpers.

Drone feeds arrive as RTMP/RTSP/HLS URLs (often with credentials or signed
tokens in them), local files, or device indexes.
"""

from __future__ import annotations

from typing import Union
from urllib.parse import urlparse, urlunparse

STREAM_SCHEMES = ("rtsp", "rtsps", "rtmp", "rtmps", "http", "https", "udp", "srt")


def is_stream_url(locator: Union[int, str]) -> bool:
    """True for network stream URLs (as opposed to files or device indexes)."""
    if not isinstance(locator, str):
        return False
    return urlparse(locator).scheme.lower() in STREAM_SCHEMES


def sanitize_url(locator: Union[int, str]) -> str:
    """
    Return a loggable form of a locator.

    User credentials are masked and query strings (signed playback tokens)
    are dropped.
    """
    if not is_stream_url(locator):
        return str(locator)

    parsed = urlparse(locator)
    netloc = parsed.hostname or ""
    if parsed.port:
        netloc += f":{parsed.port}"
    if parsed.username:
        netloc = f"***@{netloc}"
    return urlunparse((parsed.scheme, netloc, parsed.path, parsed.params, "", ""))
