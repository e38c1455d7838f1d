"""Session and transport configuration.

Retry ceilings are tunables rather than constants: hardware revisions have
been driven with anything from 3 to 512 status polls per frame.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields

HELIOS_VID = 0x1209
HELIOS_PID = 0xE500
EP_BULK_OUT = 0x02

MIN_RATE = 7
MAX_RATE = 0xFFFF

_ENV_PREFIX = "HELIOS_"


@dataclass
class DacConfig:
    """Settings shared by the transport, the session and the playback loop."""

    vendor_id: int = HELIOS_VID
    product_id: int = HELIOS_PID
    configuration: int = 1
    interface: int = 0
    bulk_endpoint: int = EP_BULK_OUT
    timeout_ms: int = 1000
    default_rate: int = 30000
    status_attempts: int = 512
    command_attempts: int = 3
    settle_delay: float = 0.1  # seconds of quiescence after Stop
    max_consecutive_errors: int = 16

    def __post_init__(self) -> None:
        if not MIN_RATE <= self.default_rate <= MAX_RATE:
            raise ValueError(
                f"default_rate must be {MIN_RATE}-{MAX_RATE}, got {self.default_rate}"
            )
        for name in ("status_attempts", "command_attempts", "max_consecutive_errors"):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be at least 1, got {getattr(self, name)}")
        if self.settle_delay < 0:
            raise ValueError(f"settle_delay must be >= 0, got {self.settle_delay}")
        if self.timeout_ms <= 0:
            raise ValueError(f"timeout_ms must be positive, got {self.timeout_ms}")

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> DacConfig:
        """Build a config from ``HELIOS_<FIELD>`` environment variables.

        Integer fields accept any base Python understands (``0x1209``).
        Unset variables keep their defaults.
        """
        env = os.environ if environ is None else environ
        overrides: dict[str, int | float] = {}
        for f in fields(cls):
            raw = env.get(_ENV_PREFIX + f.name.upper())
            if raw is None:
                continue
            try:
                overrides[f.name] = float(raw) if f.type == "float" else int(raw, 0)
            except ValueError as e:
                raise ValueError(f"Invalid {_ENV_PREFIX}{f.name.upper()}={raw!r}") from e
        return cls(**overrides)
