"""KvClient — thin record/index client for a Redis-backed key-value store.

Records live in Redis hashes named ``<table>:<key>``.  Integer attributes are
additionally kept in a per-attribute secondary index so that range searches
over them can be served without scanning the keyspace.
"""

from __future__ import annotations

import logging

import redis

logger = logging.getLogger(__name__)

# Width (hex digits) of the order-preserving integer encoding used for index members.
_INDEX_WIDTH = 32
_INDEX_MAX = 1 << (4 * _INDEX_WIDTH)


class KvError(Exception):
    """Error raised by the key-value client."""


class NotFoundError(KvError):
    """The requested record does not exist."""


class KvClient:
    """Connect to a store at *host*:*port* and expose record-level commands."""

    def __init__(
        self,
        host: str,
        port: int,
        *,
        db: int = 0,
        socket_timeout: float | None = None,
    ) -> None:
        self.host = host
        self.port = port
        self._redis = redis.Redis(
            host=host,
            port=port,
            db=db,
            socket_timeout=socket_timeout,
            decode_responses=True,
        )
        try:
            self._redis.ping()
        except redis.RedisError as e:
            self._redis.close()
            self._redis = None
            raise KvError(f"Cannot connect to {host}:{port}: {e}") from e
        logger.info("Connected to %s:%d", host, port)

    # ------------------------------------------------------------------
    # Key naming
    # ------------------------------------------------------------------

    @staticmethod
    def _record_key(table: str, key: str) -> str:
        return f"{table}:{key}"

    @staticmethod
    def _registry_key(table: str) -> str:
        return f"{table}:__indexes__"

    @staticmethod
    def _index_key(table: str, attr: str) -> str:
        return f"{table}:__index__:{attr}"

    def _conn(self) -> redis.Redis:
        if self._redis is None:
            raise KvError("Client is closed")
        return self._redis

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def get(self, table: str, key: str) -> dict[str, str]:
        conn = self._conn()
        try:
            record = conn.hgetall(self._record_key(table, key))
        except redis.RedisError as e:
            raise KvError(f"get {table}/{key} failed: {e}") from e
        if not record:
            raise NotFoundError(f"{table}/{key} not found")
        return record

    def put(self, table: str, key: str, attrs: dict[str, object]) -> bool:
        """Create or overwrite the attributes of a record.

        Integer values are indexed; everything else is stored as its string
        form.  Attributes not named in *attrs* keep their previous value.
        The previous values are read under WATCH, so a concurrent write to
        the same record restarts the transaction instead of leaving a stale
        index member behind.
        """
        conn = self._conn()
        if not attrs:
            raise KvError(f"put {table}/{key}: record has no attributes")

        indexed = {name: value for name, value in attrs.items() if _is_indexable(value)}
        members = {name: _index_member(value, key) for name, value in indexed.items()}
        record_key = self._record_key(table, key)
        registry_key = self._registry_key(table)

        def stage(pipe) -> None:
            names = sorted(set(pipe.smembers(registry_key)) | set(indexed))
            previous = pipe.hmget(record_key, names) if names else []
            pipe.multi()
            for name, old in zip(names, previous):
                stale = _parse_index(old)
                # Overwritten attributes drop their old member even if the new value is not indexed
                if name in attrs and stale is not None and stale != indexed.get(name):
                    pipe.zrem(self._index_key(table, name), _index_member(stale, key))
            for name in indexed:
                pipe.zadd(self._index_key(table, name), {members[name]: 0})
                pipe.sadd(registry_key, name)
            pipe.hset(record_key, mapping={name: str(value) for name, value in attrs.items()})

        try:
            conn.transaction(stage, record_key)
        except redis.RedisError as e:
            raise KvError(f"put {table}/{key} failed: {e}") from e
        return True

    def delete(self, table: str, key: str) -> bool:
        """Remove a record. Returns False if it did not exist."""
        conn = self._conn()
        record_key = self._record_key(table, key)
        registry_key = self._registry_key(table)

        def stage(pipe) -> None:
            names = sorted(pipe.smembers(registry_key))
            values = pipe.hmget(record_key, names) if names else []
            pipe.multi()
            for name, value in zip(names, values):
                indexed = _parse_index(value)
                if indexed is not None:
                    pipe.zrem(self._index_key(table, name), _index_member(indexed, key))
            pipe.delete(record_key)

        try:
            removed = conn.transaction(stage, record_key)[-1]
        except redis.RedisError as e:
            raise KvError(f"delete {table}/{key} failed: {e}") from e
        return removed > 0

    def range_search(
        self, table: str, attr: str, lower: int, upper: int,
    ) -> list[dict[str, str]]:
        """Return records whose *attr* lies in ``[lower, upper)``, in attribute order."""
        conn = self._conn()
        lower = max(lower, 0)
        if upper <= lower or lower >= _INDEX_MAX:
            return []
        start = "[" + _encode_index(lower)
        stop = "+" if upper >= _INDEX_MAX else "(" + _encode_index(upper)
        try:
            members = conn.zrangebylex(self._index_key(table, attr), start, stop)
            if not members:
                return []
            pipe = conn.pipeline(transaction=False)
            for member in members:
                _, _, key = member.partition(":")
                pipe.hgetall(self._record_key(table, key))
            fetched = pipe.execute()
        except redis.RedisError as e:
            raise KvError(f"range_search {table}/{attr} failed: {e}") from e
        # Records deleted between the index read and the fetch come back empty
        return [record for record in fetched if record]

    def ping(self) -> bool:
        conn = self._conn()
        try:
            return bool(conn.ping())
        except redis.RedisError as e:
            raise KvError(f"ping failed: {e}") from e

    # ------------------------------------------------------------------
    # Context manager
    # ------------------------------------------------------------------

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def close(self) -> None:
        if self._redis is None:
            return
        self._redis.close()
        self._redis = None


# ======================================================================
# Index encoding
# ======================================================================

def _is_indexable(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _encode_index(value: int) -> str:
    """Fixed-width big-endian hex, so lexicographic order equals numeric order."""
    if value < 0 or value >= _INDEX_MAX:
        raise KvError(f"Index value out of range: {value}")
    return format(value, f"0{_INDEX_WIDTH}x")


def _index_member(value: int, key: str) -> str:
    return f"{_encode_index(value)}:{key}"


def _parse_index(stored: str | None) -> int | None:
    """Decode a stored attribute back to its indexed integer, if it is one."""
    if stored is None or not (stored.isascii() and stored.isdigit()):
        return None
    value = int(stored)
    return value if value < _INDEX_MAX else None
