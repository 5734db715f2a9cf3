"""
SRT connection URL codec.

Format: srt://localhost:<port>[?streamid=<id>][&latency=<ms>]

The stream ID is percent-encoded where it would otherwise break the query
string, and decoded again on parse.

URLs built here always carry a latency parameter so the value survives a
round trip through the host's settings.
"""

import logging
from dataclasses import dataclass
from urllib.parse import quote, unquote

from ..config import DEFAULT_LATENCY_MS, MIN_LATENCY_MS

logger = logging.getLogger(__name__)

SRT_SCHEME = "srt://"
URL_HOST = "localhost"

LATENCY_PARAMS = ("latency", "delay")
STREAM_ID_PARAM = "streamid"

# Left as-is in stream IDs. &, ?, #, % and whitespace are encoded
STREAM_ID_SAFE = "/:,=!@$'()*+;~"


@dataclass
class ParsedUrl:
    """Fields extracted from a connection URL."""
    port: int
    latency_ms: int = DEFAULT_LATENCY_MS
    stream_id: str = ""
    ok: bool = True


def is_srt_url(url: str) -> bool:
    return bool(url) and url.startswith(SRT_SCHEME)


def build_url(
    port: int,
    latency_ms: int,
    stream_id: str = "",
    default_latency: int = DEFAULT_LATENCY_MS,
) -> str:
    """
    Build the canonical connection URL.

    Latencies below MIN_LATENCY_MS are replaced by default_latency. Values
    above the nominal range are kept as given.
    """
    url = f"{SRT_SCHEME}{URL_HOST}:{port}"
    separator = "?"

    if stream_id:
        url += f"?streamid={quote(stream_id, safe=STREAM_ID_SAFE)}"
        separator = "&"

    used_latency = latency_ms if latency_ms >= MIN_LATENCY_MS else default_latency
    url += f"{separator}latency={used_latency}"

    logger.debug(f"Built SRT URL: {url}")
    return url


def _parse_port(host_port: str, current_port: int) -> int:
    if ':' not in host_port:
        return current_port

    port_str = host_port.rsplit(':', 1)[1]
    try:
        port = int(port_str)
    except ValueError:
        logger.warning(f"Failed to parse port '{port_str}', keeping {current_port}")
        return current_port

    if not 0 < port <= 65535:
        logger.warning(f"Found invalid port ({port}) in URL, keeping original: {current_port}")
        return current_port
    return port


def parse_url(url: str, current_port: int) -> ParsedUrl:
    """
    Extract port, latency and stream ID from a connection URL.

    Never raises. Empty or non-SRT input returns ok=False with
    current_port echoed back. Malformed parameters are skipped.
    """
    if not is_srt_url(url):
        if url:
            logger.warning(f"Not an SRT URL: {url}")
        return ParsedUrl(port=current_port, ok=False)

    rest = url[len(SRT_SCHEME):]
    host_port, _, query = rest.partition('?')

    result = ParsedUrl(port=_parse_port(host_port, current_port))

    for param in query.split('&') if query else []:
        name, sep, value = param.partition('=')
        if not sep:
            continue

        name = name.lower()
        if name in LATENCY_PARAMS:
            try:
                result.latency_ms = int(value)
            except ValueError:
                logger.warning(f"Failed to parse latency value in SRT URL: {value}")
        elif name == STREAM_ID_PARAM:
            result.stream_id = unquote(value)

    logger.debug(
        f"Extracted SRT parameters - port: {result.port}, "
        f"latency: {result.latency_ms}, streamId: {result.stream_id}"
    )
    return result
