"""YCSB binding for the Redis-backed key-value store.

Translates the driver's read/scan/update/insert/delete calls into
:class:`~lib.kv_client.KvClient` commands.  Every client failure collapses
to ``ERROR``; the only other non-zero code is ``BAD_KEY``, returned when scan
mode needs a numeric key suffix and the key has none.

With ``scan-enabled=true`` each written record also carries a ``recno``
attribute derived from its key (``user42`` -> ``42 << 32``), and scans become
range searches over that attribute.  With scan mode off, scans succeed
without returning anything.
"""

from __future__ import annotations

import logging
import re
from typing import Callable

from lib.kv_client import KvClient, KvError

from ..base import (
    BAD_KEY,
    DB,
    ERROR,
    OK,
    ByteIterator,
    DBError,
    Record,
    StringByteIterator,
)
from .config import INDEX_FIELD, INDEX_SHIFT, KvConfig

logger = logging.getLogger(__name__)

KEY_PATTERN = re.compile(r"([a-zA-Z]*)([0-9]*)")

ClientFactory = Callable[[str, int], KvClient]


class KvBinding(DB):
    name = "kv"

    def __init__(
        self,
        properties: dict[str, str] | None = None,
        *,
        client_factory: ClientFactory = KvClient,
    ) -> None:
        super().__init__(properties)
        self._client_factory = client_factory
        self._client: KvClient | None = None
        self.config: KvConfig | None = None

    # ---- Lifecycle ----------------------------------------------------------

    def init(self) -> None:
        self.config = KvConfig.from_properties(self.properties)
        try:
            self._client = self._client_factory(self.config.host, self.config.port)
        except KvError as e:
            raise DBError(str(e)) from e
        logger.debug("kv binding ready (scannable=%s)", self.config.scannable)

    def cleanup(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    @property
    def client(self) -> KvClient:
        if self._client is None:
            raise DBError("kv binding used before init()")
        return self._client

    # ---- Operations ---------------------------------------------------------

    def read(
        self, table: str, key: str, fields: set[str] | None,
    ) -> tuple[int, dict[str, ByteIterator] | None]:
        try:
            fetched = self.client.get(table, key)
        except KvError as e:
            logger.debug("read %s/%s failed: %s", table, key, e)
            return ERROR, None
        return OK, _to_driver(fields, fetched)

    def scan(
        self, table: str, start_key: str, record_count: int, fields: set[str] | None,
    ) -> tuple[int, list[dict[str, ByteIterator]]]:
        client = self.client
        if not self.config.scannable:
            return OK, []

        base = self._key_number(start_key)
        if base is None:
            return BAD_KEY, []
        if record_count <= 0:
            return OK, []

        lower = base << INDEX_SHIFT
        upper = (base + record_count) << INDEX_SHIFT

        for attempt in range(self.config.retries + 1):
            try:
                found = client.range_search(table, INDEX_FIELD, lower, upper)
            except KvError as e:
                logger.warning(
                    "scan %s from %s failed (attempt %d/%d): %s",
                    table, start_key, attempt + 1, self.config.retries + 1, e,
                )
                continue
            return OK, [_to_driver(fields, record) for record in found[:record_count]]

        return ERROR, []

    def update(self, table: str, key: str, values: Record) -> int:
        client = self.client
        payload = _to_remote(values)

        if self.config.scannable:
            num = self._key_number(key)
            if num is None:
                return BAD_KEY
            payload[INDEX_FIELD] = num << INDEX_SHIFT

        try:
            return OK if client.put(table, key, payload) else ERROR
        except KvError as e:
            logger.debug("update %s/%s failed: %s", table, key, e)
            return ERROR

    def insert(self, table: str, key: str, values: Record) -> int:
        # The store only has upserts
        return self.update(table, key, values)

    def delete(self, table: str, key: str) -> int:
        try:
            return OK if self.client.delete(table, key) else ERROR
        except KvError as e:
            logger.debug("delete %s/%s failed: %s", table, key, e)
            return ERROR

    # ---- Helpers ------------------------------------------------------------

    @staticmethod
    def _key_number(key: str) -> int | None:
        """Numeric suffix of a letters+digits key, or None if it has none."""
        match = KEY_PATTERN.fullmatch(key)
        if match is None or not match.group(2):
            logger.debug("key %r has no numeric suffix", key)
            return None
        return int(match.group(2))


# ---------------------------------------------------------------------------
# Field-map conversion
# ---------------------------------------------------------------------------

def _to_driver(fields: set[str] | None, fetched: dict[str, object]) -> dict[str, ByteIterator]:
    """Copy the selected fields of a fetched record into driver values."""
    if fields is None:
        fields = [name for name in fetched if name != INDEX_FIELD]
    return {
        name: StringByteIterator(str(fetched[name]))
        for name in fields
        if name in fetched
    }


def _to_remote(values: Record) -> dict[str, object]:
    """Stringify every driver value for the write payload."""
    return {name: _stringify(value) for name, value in values.items()}


def _stringify(value: object) -> str:
    """Invalid UTF-8 becomes U+FFFD, the same as str() of a ByteIterator."""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", errors="replace")
    return str(value)
