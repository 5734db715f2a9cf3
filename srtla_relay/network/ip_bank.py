"""
IP bank file writer.

The sender reads one IPv4 address per line from this file at launch and
again whenever it receives a reload signal.
"""

import logging
from pathlib import Path
from typing import Union

from .interfaces import InterfaceSnapshot

logger = logging.getLogger(__name__)

# Written at launch when no usable interface exists
FALLBACK_ADDRESS = "192.168.1.100"


def write_address_file(
    snapshot: InterfaceSnapshot,
    path: Union[str, Path],
    fallback: bool = False,
) -> bool:
    """
    Write the snapshot's usable addresses to the IP bank file.

    Args:
        snapshot: Interfaces to write
        path: Destination, overwritten in full
        fallback: Write FALLBACK_ADDRESS when no usable interface exists.
            Used at process start so the sender never launches on an
            empty file.

    Returns:
        True on success, False if the file or its directory could not be
        created
    """
    path = Path(path)
    addresses = snapshot.active_addresses()
    used_fallback = False

    if not addresses and fallback:
        addresses = [FALLBACK_ADDRESS]
        used_fallback = True

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w') as f:
            for address in addresses:
                f.write(f"{address}\n")
    except OSError as e:
        logger.error(f"Failed to write IP bank file {path}: {e}")
        return False

    if used_fallback:
        logger.info(f"No usable interfaces, wrote fallback {FALLBACK_ADDRESS} to {path}")
    elif not addresses:
        # The sender uses every system interface when the file is empty
        logger.info("No non-loopback network interfaces found")
    else:
        logger.info(f"Found network interfaces: {snapshot.describe()}")

    return True


def read_address_file(path: Union[str, Path]) -> list:
    """Read addresses back from an IP bank file. Missing file reads as empty."""
    path = Path(path)
    if not path.exists():
        return []
    with open(path, 'r') as f:
        return [line.strip() for line in f if line.strip()]
