"""
Connection URL codec and host synchronization.
"""

from .url import (
    ParsedUrl,
    build_url,
    parse_url,
    is_srt_url,
    SRT_SCHEME,
)
from .host import (
    HostConnection,
    InMemoryHost,
    ServiceFileHost,
)
from .engine import SyncEngine

__all__ = [
    "ParsedUrl",
    "build_url",
    "parse_url",
    "is_srt_url",
    "SRT_SCHEME",
    "HostConnection",
    "InMemoryHost",
    "ServiceFileHost",
    "SyncEngine",
]
