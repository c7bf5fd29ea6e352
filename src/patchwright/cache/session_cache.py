"""
SessionCache: TTL cache-aside layer over the durable store.

Reads try the cache first and refresh the entry's TTL on a hit (sliding
expiration). On a miss, expiry or backend outage they read the durable
store and repopulate the cache when it is reachable. Writes go to the
durable store first, then to the cache. Cache faults are logged and
absorbed; they cost latency, never correctness.
"""

import hashlib
import json
import sqlite3
from typing import Any, Callable, Dict, List, Optional

from patchwright.logging_config import logger
from patchwright.exceptions import CacheUnavailableError
from patchwright.schemas import ASTNode, ModificationChange, ProjectFile, SessionContext
from patchwright.storage import DurableStore
from .backends import CacheBackend
from .config import CACHE_KEYS, CACHE_TTLS


class SessionCache:

    def __init__(self, backend: CacheBackend, store: DurableStore, ttls: Optional[Dict[str, float]] = None):
        self.backend = backend
        self.store = store
        self.ttls = {**CACHE_TTLS, **(ttls or {})}
        self._stats = {"hits": 0, "misses": 0, "durable_reads": 0, "cache_errors": 0, "durable_errors": 0}

    # ------------------------------------------------------------------
    # Backend access with graceful degradation
    # ------------------------------------------------------------------

    def _cache_get(self, key: str, kind: str) -> Optional[str]:
        try:
            value = self.backend.get(key)
            if value is not None:
                self.backend.expire(key, self.ttls[kind])
        except CacheUnavailableError as e:
            self._stats["cache_errors"] += 1
            logger.warning(f"Cache read failed for {key}, using durable store: {e}")
            return None
        self._stats["hits" if value is not None else "misses"] += 1
        return value

    def _cache_set(self, key: str, value: str, kind: str) -> None:
        try:
            self.backend.set(key, value, self.ttls[kind])
        except CacheUnavailableError as e:
            self._stats["cache_errors"] += 1
            logger.warning(f"Cache write skipped for {key}: {e}")

    def _durable(self, operation: Callable[[], Any], label: str, default: Any = None) -> Any:
        try:
            return operation()
        except sqlite3.Error as e:
            self._stats["durable_errors"] += 1
            logger.error(f"Durable store {label} failed: {e}")
            return default

    def _read_through(self, key: str, kind: str, decode: Callable[[str], Any],
                      load: Callable[[], Any], encode: Callable[[Any], str]) -> Any:
        cached = self._cache_get(key, kind)
        if cached is not None:
            return decode(cached)

        self._stats["durable_reads"] += 1
        value = self._durable(load, f"read of {key}")
        if value is not None and self.is_connected():
            self._cache_set(key, encode(value), kind)
        return value

    # ------------------------------------------------------------------
    # File snapshots (long TTL)
    # ------------------------------------------------------------------

    def get_project_files(self, session_id: str) -> Optional[Dict[str, ProjectFile]]:
        return self._read_through(
            CACHE_KEYS["project_files"].format(session_id=session_id),
            "project_files",
            _decode_files,
            lambda: self.store.load_project_files(session_id),
            _encode_files,
        )

    def set_project_files(self, session_id: str, files: Dict[str, ProjectFile]) -> None:
        self._durable(lambda: self.store.save_project_files(session_id, files), "snapshot save")
        self._cache_set(CACHE_KEYS["project_files"].format(session_id=session_id), _encode_files(files), "project_files")

    def has_project_files(self, session_id: str) -> bool:
        return self.get_project_files(session_id) is not None

    # ------------------------------------------------------------------
    # Session context (medium TTL)
    # ------------------------------------------------------------------

    def get_context(self, session_id: str) -> Optional[SessionContext]:
        return self._read_through(
            CACHE_KEYS["session_context"].format(session_id=session_id),
            "session_context",
            SessionContext.model_validate_json,
            lambda: self.store.load_context(session_id),
            lambda ctx: ctx.model_dump_json(),
        )

    def set_context(self, context: SessionContext) -> None:
        self._durable(lambda: self.store.save_context(context), "context save")
        self._cache_set(
            CACHE_KEYS["session_context"].format(session_id=context.session_id),
            context.model_dump_json(),
            "session_context",
        )

    def has_context(self, session_id: str) -> bool:
        return self.get_context(session_id) is not None

    # ------------------------------------------------------------------
    # Generic keyed state (short TTL)
    # ------------------------------------------------------------------

    def get_state(self, session_id: str, key: str) -> Optional[Any]:
        return self._read_through(
            CACHE_KEYS["session_state"].format(session_id=session_id, key=key),
            "session_state",
            json.loads,
            lambda: self.store.load_state(session_id, key),
            json.dumps,
        )

    def set_state(self, session_id: str, key: str, value: Any) -> None:
        self._durable(lambda: self.store.save_state(session_id, key, value), "state save")
        self._cache_set(CACHE_KEYS["session_state"].format(session_id=session_id, key=key), json.dumps(value), "session_state")

    def has_state(self, session_id: str, key: str) -> bool:
        return self.get_state(session_id, key) is not None

    # ------------------------------------------------------------------
    # Change history
    # ------------------------------------------------------------------

    def append_change(self, session_id: str, change: ModificationChange) -> bool:
        """
        Persist one change and mirror it into the cache.

        Returns:
            True if the durable write succeeded
        """
        try:
            self.store.append_change(session_id, change)
        except sqlite3.Error as e:
            self._stats["durable_errors"] += 1
            logger.error(f"Failed to persist change for {change.file}: {e}")
            return False

        key = CACHE_KEYS["changes"].format(session_id=session_id)
        cached = self._cache_get(key, "changes")
        if cached is not None:
            entries = json.loads(cached)
            entries.append(change.model_dump(mode="json"))
            self._cache_set(key, json.dumps(entries), "changes")
        return True

    def get_changes(self, session_id: str) -> List[ModificationChange]:
        changes = self._read_through(
            CACHE_KEYS["changes"].format(session_id=session_id),
            "changes",
            lambda raw: [ModificationChange.model_validate(item) for item in json.loads(raw)],
            lambda: self.store.load_changes(session_id),
            lambda items: json.dumps([c.model_dump(mode="json") for c in items]),
        )
        return changes or []

    # ------------------------------------------------------------------
    # Content-hash keyed analysis results (cache only)
    # ------------------------------------------------------------------

    @staticmethod
    def content_hash(content: str) -> str:
        return hashlib.sha256(content.encode("utf-8")).hexdigest()

    def get_analysis(self, content_hash: str) -> Optional[List[ASTNode]]:
        raw = self._cache_get(CACHE_KEYS["analysis"].format(content_hash=content_hash), "analysis")
        if raw is None:
            return None
        return [ASTNode.model_validate(item) for item in json.loads(raw)]

    def set_analysis(self, content_hash: str, nodes: List[ASTNode]) -> None:
        self._cache_set(
            CACHE_KEYS["analysis"].format(content_hash=content_hash),
            json.dumps([node.model_dump() for node in nodes]),
            "analysis",
        )

    # ------------------------------------------------------------------
    # Lifecycle and health
    # ------------------------------------------------------------------

    def extend(self, key: str, ttl: Optional[float] = None) -> bool:
        """Refresh a key's TTL; the TTL class is inferred from the key prefix."""
        ttl = ttl if ttl is not None else self._ttl_for(key)
        try:
            return self.backend.expire(key, ttl)
        except CacheUnavailableError as e:
            logger.warning(f"Could not extend {key}: {e}")
            return False

    def clear_session(self, session_id: str, keep_history: bool = True) -> int:
        """
        Best-effort removal of every cached kind for a session, plus its
        durable snapshot, context and state.

        Returns:
            Number of cache keys removed
        """
        # durable first, so a concurrent read-through cannot repopulate the cache
        self._durable(lambda: self.store.delete_session(session_id, keep_history=keep_history), "session delete")
        removed = 0
        try:
            keys = self.backend.keys(f"*:{session_id}") + self.backend.keys(f"session:{session_id}:*")
            if keys:
                removed = self.backend.delete(*keys)
        except CacheUnavailableError as e:
            logger.warning(f"Cache cleanup skipped for session {session_id}: {e}")
        logger.info(f"Cleared session {session_id} ({removed} cache keys)")
        return removed

    def is_connected(self) -> bool:
        try:
            return bool(self.backend.ping())
        except CacheUnavailableError:
            return False

    def get_stats(self) -> Dict[str, Any]:
        stats: Dict[str, Any] = {"connected": self.is_connected(), **self._stats}
        try:
            stats["cached_keys"] = len(self.backend.keys("*"))
        except CacheUnavailableError:
            stats["cached_keys"] = 0
        stats["durable"] = self._durable(self.store.get_stats, "stats", default={})
        return stats

    def _ttl_for(self, key: str) -> float:
        prefix = key.split(":", 1)[0]
        for kind, template in CACHE_KEYS.items():
            if template.split(":", 1)[0] == prefix:
                return self.ttls[kind]
        return self.ttls["session_state"]


def _encode_files(files: Dict[str, ProjectFile]) -> str:
    return json.dumps({path: f.model_dump() for path, f in files.items()})


def _decode_files(raw: str) -> Dict[str, ProjectFile]:
    return {path: ProjectFile.model_validate(data) for path, data in json.loads(raw).items()}
