"""Base class and value types shared by all database bindings."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterable, Mapping, Union

# Status codes returned by every operation.
OK = 0
ERROR = 1
BAD_KEY = -1


class DBError(Exception):
    """Raised when a binding cannot be initialized or torn down."""


class ByteIterator:
    """A field value handed over by the driver, materialized on demand.

    Wraps either a bytes-like object or an iterable of byte chunks; the bytes
    are only joined the first time they are asked for.
    """

    def __init__(self, source: Union[bytes, bytearray, Iterable[bytes]]) -> None:
        self._source = source
        self._data: bytes | None = None

    def to_bytes(self) -> bytes:
        if self._data is None:
            if isinstance(self._source, (bytes, bytearray)):
                self._data = bytes(self._source)
            else:
                self._data = b"".join(self._source)
            self._source = None
        return self._data

    def __len__(self) -> int:
        return len(self.to_bytes())

    def __str__(self) -> str:
        return self.to_bytes().decode("utf-8", errors="replace")

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ByteIterator):
            return self.to_bytes() == other.to_bytes()
        return NotImplemented

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.to_bytes()!r})"


class StringByteIterator(ByteIterator):
    def __init__(self, value: str) -> None:
        super().__init__(value.encode("utf-8"))


# Driver-side record: field name -> value
Record = Mapping[str, Union[ByteIterator, bytes, str]]


class DB(ABC):
    """Abstract base for all database bindings.

    One instance is created per driver thread.  The driver fills in
    ``properties``, calls :meth:`init` once, issues operations, and finally
    calls :meth:`cleanup`.  Operations report failures through their status
    code (``OK``, ``ERROR``, ``BAD_KEY``) rather than by raising.
    """

    name: str = ""

    def __init__(self, properties: Mapping[str, str] | None = None) -> None:
        self.properties: dict[str, str] = dict(properties or {})

    def init(self) -> None:
        """Set up state for this instance. Raise DBError on failure."""

    def cleanup(self) -> None:
        """Release state held by this instance. Raise DBError on failure."""

    @abstractmethod
    def read(
        self, table: str, key: str, fields: set[str] | None,
    ) -> tuple[int, dict[str, ByteIterator] | None]:
        """Read one record, restricted to *fields* (None for all of them)."""

    @abstractmethod
    def scan(
        self, table: str, start_key: str, record_count: int, fields: set[str] | None,
    ) -> tuple[int, list[dict[str, ByteIterator]]]:
        """Read up to *record_count* records in key order starting at *start_key*."""

    @abstractmethod
    def update(self, table: str, key: str, values: Record) -> int:
        """Write *values* into the record, overwriting fields of the same name."""

    @abstractmethod
    def insert(self, table: str, key: str, values: Record) -> int:
        """Insert a record."""

    @abstractmethod
    def delete(self, table: str, key: str) -> int:
        """Delete a record."""
