"""
Bidirectional sync between the relay settings and the host URL.

Whichever direction runs last wins for the fields it touches. Callers
decide when each direction runs (settings saved, host URL changed,
startup).
"""

import logging

from ..config import DEFAULT_LATENCY_MS, MAX_LATENCY_MS, MIN_LATENCY_MS
from ..relay.controller import RelayProcessController
from .host import HostConnection
from .url import build_url, is_srt_url, parse_url

logger = logging.getLogger(__name__)


class SyncEngine:
    """
    Reconciles a controller's settings with the host's connection URL.

    Usage:
        engine = SyncEngine(controller, host)
        engine.attach()              # setters now push URL changes
        engine.sync_from_external()  # host -> settings
        engine.sync_to_external()    # settings -> host
    """

    def __init__(self, controller: RelayProcessController, host: HostConnection):
        self.controller = controller
        self.host = host

    def attach(self) -> "SyncEngine":
        """Register with the controller so setters can push URL changes."""
        self.controller.attach_sync_engine(self)
        return self

    def canonical_url(self) -> str:
        """URL built from the controller's current settings."""
        settings = self.controller.settings
        return build_url(settings.local_port, settings.latency_ms, settings.stream_id)

    def sync_from_external(self, url: str = None) -> bool:
        """
        Adopt port, latency and stream ID from the host URL.

        Args:
            url: Host URL to use. Fetched from the host when omitted.

        Returns:
            True if the settings or the host URL changed
        """
        if url is None:
            url = self.host.get_current_connection_url()
        if not url:
            logger.warning("No connection URL available from host")
            return False

        if not is_srt_url(url):
            new_url = self.canonical_url()
            logger.info(f"URL is not an SRT URL, converting to SRT format: {new_url}")
            self.host.set_connection_url(new_url)
            return True

        settings = self.controller.settings
        parsed = parse_url(url, settings.local_port)
        if not parsed.ok:
            logger.warning(f"Failed to extract SRT parameters from URL: {url}")
            return False

        port = None
        if parsed.port > 0 and parsed.port != settings.local_port:
            port = parsed.port

        latency = None
        # The parser's default means "not specified", never override with it
        if parsed.latency_ms != DEFAULT_LATENCY_MS and parsed.latency_ms != settings.latency_ms:
            if MIN_LATENCY_MS <= parsed.latency_ms <= MAX_LATENCY_MS:
                latency = parsed.latency_ms
            else:
                logger.warning(
                    f"Ignoring latency {parsed.latency_ms} ms from host URL, "
                    f"outside {MIN_LATENCY_MS}-{MAX_LATENCY_MS}"
                )

        stream_id = None
        if parsed.stream_id and parsed.stream_id != settings.stream_id:
            stream_id = parsed.stream_id

        changed = self.controller.adopt_external(
            local_port=port, latency_ms=latency, stream_id=stream_id
        )
        if changed:
            logger.info("SRTLA settings updated to match host URL")
        else:
            logger.info("No changes needed, settings already match")
        return changed

    def sync_to_external(self) -> bool:
        """
        Push the canonical URL to the host if it differs.

        Returns:
            True if the host was asked to adopt a new URL
        """
        new_url = self.canonical_url()
        current = self.host.get_current_connection_url()

        if current == new_url:
            logger.debug("No changes needed, host URL already matches")
            return False

        logger.info(f"Host URL: {current or '(empty)'} -> {new_url}")
        if not self.host.set_connection_url(new_url):
            logger.warning("Host did not accept the new connection URL")
        return True

    def reconcile(self) -> bool:
        """
        One combined check of the host URL.

        SRT URLs are first adopted, then the canonical URL is pushed back so
        the host carries every parameter. Other URLs are replaced.

        Returns:
            True if either side changed
        """
        url = self.host.get_current_connection_url()
        if not url:
            return False

        if not is_srt_url(url):
            logger.info("Non-SRT URL detected on host, converting to SRT format")
            return self.sync_to_external()

        adopted = self.sync_from_external(url)
        pushed = self.sync_to_external()
        return adopted or pushed
