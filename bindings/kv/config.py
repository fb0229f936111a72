"""Configuration for the key-value store binding."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

from ..base import DBError

# Property names read at init time.
HOST_PROPERTY = "host"
PORT_PROPERTY = "port"
SCAN_ENABLED_PROPERTY = "scan-enabled"

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 1234
DEFAULT_SCAN_ENABLED = False

# Extra attempts made by a range scan after the first one fails.
DEFAULT_RETRIES = 10

# Reserved attribute holding the numeric index derived from the record key.
INDEX_FIELD = "recno"

# Key suffixes are shifted into the upper half of the index space.
INDEX_SHIFT = 32


@dataclass(frozen=True)
class KvConfig:
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    scannable: bool = DEFAULT_SCAN_ENABLED
    retries: int = DEFAULT_RETRIES

    def __post_init__(self) -> None:
        if not self.host:
            raise DBError("host must not be empty")
        if not 0 < self.port < 65536:
            raise DBError(f"port out of range: {self.port}")
        if self.retries < 0:
            raise DBError(f"retries must be >= 0, got {self.retries}")

    @classmethod
    def from_properties(cls, props: Mapping[str, str]) -> KvConfig:
        host = props.get(HOST_PROPERTY, DEFAULT_HOST).strip()
        raw_port = props.get(PORT_PROPERTY, str(DEFAULT_PORT))
        try:
            port = int(raw_port)
        except ValueError:
            raise DBError(f"Invalid {PORT_PROPERTY}: {raw_port!r}") from None
        scannable = props.get(
            SCAN_ENABLED_PROPERTY, str(DEFAULT_SCAN_ENABLED),
        ).strip().lower() == "true"
        return cls(host=host, port=port, scannable=scannable)
