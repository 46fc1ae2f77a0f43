"""Connectivity monitor: an explicit event source for online/offline changes.

External signals are fed in with :meth:`ConnectivityMonitor.set_online`;
:meth:`ConnectivityMonitor.poll` runs a probe instead. Subscribers are only
called on transitions.
"""

import logging
import socket
from typing import Callable, Optional
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

Probe = Callable[[], bool]
ConnectivityCallback = Callable[[bool], None]


def tcp_probe(host: str, port: int, timeout: float = 5.0) -> Probe:
    """Build a probe that succeeds when a TCP connection can be opened."""

    def probe() -> bool:
        try:
            with socket.create_connection((host, port), timeout=timeout):
                return True
        except OSError:
            return False

    return probe


def probe_for_url(url: str, timeout: float = 5.0) -> Probe:
    """TCP probe against the host and port of a remote URL."""
    parsed = urlparse(url)
    if not parsed.hostname:
        raise ValueError(f"Cannot probe URL without a host: {url!r}")
    port = parsed.port or (443 if parsed.scheme == "https" else 80)
    return tcp_probe(parsed.hostname, port, timeout)


class ConnectivityMonitor:
    """Tracks whether the remote store is reachable."""

    def __init__(self, probe: Optional[Probe] = None, online: bool = False):
        self.probe = probe
        self._online = online
        self._callbacks: list[ConnectivityCallback] = []

    @property
    def is_online(self) -> bool:
        return self._online

    def subscribe(self, callback: ConnectivityCallback) -> None:
        """Register a callback fired with the new state on every transition."""
        self._callbacks.append(callback)

    def unsubscribe(self, callback: ConnectivityCallback) -> None:
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def set_online(self, online: bool) -> None:
        """Feed an external connectivity signal."""
        online = bool(online)
        if online == self._online:
            return
        self._online = online
        logger.info("Connectivity %s", "restored" if online else "lost")
        for callback in list(self._callbacks):
            try:
                callback(online)
            except Exception as exc:
                logger.warning("Connectivity callback failed: %s", exc)

    def poll(self) -> bool:
        """Run the probe once and emit on a transition. Returns the state."""
        if self.probe is None:
            return self._online
        try:
            online = self.probe()
        except Exception as exc:
            logger.debug("Connectivity probe failed: %s", exc)
            online = False
        self.set_online(online)
        return online
