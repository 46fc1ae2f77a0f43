"""Sync configuration with documented defaults."""

import os
from dataclasses import dataclass, fields
from typing import Mapping, Optional

from bizledger.domain.errors import ValidationError

ENV_PREFIX = "BIZLEDGER_SYNC_"


@dataclass(frozen=True)
class SyncConfig:
    """Tunables of the sync engine.

    Attributes:
        max_attempts: Transport failures tolerated before the engine gives up
            and waits for a manual trigger
        base_delay: Delay in seconds before the first retry; doubled per attempt
        debounce_seconds: Quiet period after a local change before syncing
        request_timeout: Seconds before a transport call counts as failed
        probe_interval: Seconds between connectivity probes in watch mode
        remote_url: Endpoint of the remote reconciler, if any
    """

    max_attempts: int = 5
    base_delay: float = 2.0
    debounce_seconds: float = 0.3
    request_timeout: float = 10.0
    probe_interval: float = 30.0
    remote_url: Optional[str] = None

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValidationError("max_attempts must be at least 1")
        for name in ("base_delay", "debounce_seconds", "request_timeout", "probe_interval"):
            if getattr(self, name) < 0:
                raise ValidationError(f"{name} cannot be negative")
        if self.request_timeout == 0:
            raise ValidationError("request_timeout must be positive")

    def retry_delay(self, attempt: int) -> float:
        """Delay before retry number ``attempt`` (1-based)."""
        return self.base_delay * 2 ** (attempt - 1)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "SyncConfig":
        """Build a config from ``BIZLEDGER_SYNC_*`` variables.

        Unset variables keep their defaults.

        Raises:
            ValidationError: If a variable does not parse
        """
        environ = os.environ if environ is None else environ
        values = {}
        for field in fields(cls):
            raw = environ.get(ENV_PREFIX + field.name.upper())
            if raw is None or raw == "":
                continue
            if field.name == "remote_url":
                values[field.name] = raw
                continue
            convert = int if field.name == "max_attempts" else float
            try:
                values[field.name] = convert(raw)
            except ValueError:
                raise ValidationError(
                    f"Invalid value for {ENV_PREFIX}{field.name.upper()}: {raw!r}"
                ) from None
        return cls(**values)
