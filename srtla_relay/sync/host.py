"""
Host application connection URL adapters.

The host owns a single outbound connection URL. The sync engine reads and
writes it only through the HostConnection interface.
"""

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional, Union

logger = logging.getLogger(__name__)


class HostConnection(ABC):
    """Access to the host's outbound connection URL."""

    @abstractmethod
    def get_current_connection_url(self) -> str:
        """Current URL, or an empty string when none is configured."""
        pass

    @abstractmethod
    def set_connection_url(self, url: str) -> bool:
        """Ask the host to adopt url. Best effort."""
        pass


class InMemoryHost(HostConnection):
    """Host URL held in memory. Records every write."""

    def __init__(self, url: str = ""):
        self.url = url
        self.writes: List[str] = []

    def get_current_connection_url(self) -> str:
        return self.url

    def set_connection_url(self, url: str) -> bool:
        self.url = url
        self.writes.append(url)
        return True


class ServiceFileHost(HostConnection):
    """
    Host URL stored in a JSON service file.

    Layout:
        {"type": "rtmp_custom", "settings": {"server": "...", "url": "..."}}

    The 'server' field is read first, then 'url', then a top-level 'url'.
    Writes update both 'server' and 'url' inside 'settings'.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def _load(self) -> Optional[dict]:
        if not self.path.exists():
            return None
        try:
            with open(self.path, 'r') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Could not read service file {self.path}: {e}")
            return None
        return data if isinstance(data, dict) else None

    def get_current_connection_url(self) -> str:
        data = self._load()
        if data is None:
            return ""

        settings = data.get("settings")
        if isinstance(settings, dict):
            for key in ("server", "url"):
                value = settings.get(key)
                if isinstance(value, str) and value:
                    return value

        value = data.get("url")
        return value if isinstance(value, str) else ""

    def set_connection_url(self, url: str) -> bool:
        data = self._load() or {}
        settings = data.get("settings")
        if not isinstance(settings, dict):
            settings = {}
            data["settings"] = settings

        settings["server"] = url
        settings["url"] = url

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, 'w') as f:
                json.dump(data, f, indent=2)
        except OSError as e:
            logger.error(f"Failed to update service file {self.path}: {e}")
            return False

        logger.info(f"Updated service file {self.path} with URL: {url}")
        return True
