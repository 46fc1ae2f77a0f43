"""Transports carrying a sync batch to the remote reconciler and back.

A transport either returns the decoded response or raises
:class:`~bizledger.domain.errors.TransportError`; in that case the batch is
treated as never applied.
"""

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

import requests

from bizledger.domain.errors import DomainError, TransportError
from bizledger.sync.reconciler import Reconciler

logger = logging.getLogger(__name__)


class Transport(ABC):
    """Send one batch and return the decoded response body."""

    @abstractmethod
    def send(self, batch: dict[str, Any]) -> dict[str, Any]:
        """Send a batch.

        Raises:
            TransportError: If the batch did not arrive or no valid response
                came back
        """
        pass

    def close(self) -> None:
        """Release any resources held by the transport."""
        pass


class InProcessTransport(Transport):
    """Call a reconciler directly, with the same JSON round trip as HTTP."""

    def __init__(self, reconciler: Reconciler):
        self.reconciler = reconciler

    def send(self, batch: dict[str, Any]) -> dict[str, Any]:
        payload = json.loads(json.dumps(batch))
        try:
            response = self.reconciler.reconcile(payload)
        except DomainError as e:
            raise TransportError(f"Remote store rejected the batch: {e}") from e
        return json.loads(json.dumps(response.to_json()))


class HttpTransport(Transport):
    """POST batches to a remote reconciler endpoint with requests."""

    def __init__(
        self,
        url: str,
        timeout: float = 10.0,
        headers: Optional[dict[str, str]] = None,
        session: Optional[requests.Session] = None,
    ):
        if not url:
            raise ValueError("HTTP transport requires a URL")
        self.url = url
        self.timeout = timeout
        self._session = session or requests.Session()
        if headers:
            self._session.headers.update(headers)

    def send(self, batch: dict[str, Any]) -> dict[str, Any]:
        try:
            response = self._session.post(self.url, json=batch, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.warning("HTTP sync request failed: %s", exc)
            raise TransportError(f"Request to {self.url} failed: {exc}") from exc

        if not 200 <= response.status_code < 300:
            raise TransportError(f"Remote store answered HTTP {response.status_code}")
        try:
            body = response.json()
        except ValueError as exc:
            raise TransportError("Remote store returned an invalid JSON body") from exc
        if not isinstance(body, dict):
            raise TransportError("Remote store returned an unexpected response")
        return body

    def close(self) -> None:
        self._session.close()
