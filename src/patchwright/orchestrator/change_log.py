"""
ChangeLog: per-request accumulator of ModificationChange entries.

Entries are persisted through SessionCache as they are recorded. Any entry
whose durable write failed is retried by flush().
"""

from collections import Counter
from typing import Any, Dict, List, Optional

from patchwright.logging_config import logger
from patchwright.schemas import ModificationChange


class ChangeLog:

    def __init__(self, session_id: str, cache=None):
        self.session_id = session_id
        self.cache = cache
        self._entries: List[ModificationChange] = []
        self._unpersisted: List[ModificationChange] = []

    def record(
        self,
        kind: str,
        file: str,
        description: str,
        success: bool = True,
        details: Optional[Dict[str, Any]] = None,
    ) -> ModificationChange:
        change = ModificationChange(
            kind=kind, file=file, description=description, success=success, details=details or {}
        )
        self._entries.append(change)
        if self.cache is None or not self.cache.append_change(self.session_id, change):
            self._unpersisted.append(change)
        logger.debug(f"change {kind} {file}: {description}")
        return change

    def flush(self) -> int:
        """
        Retry persisting entries whose first write failed.

        Returns:
            Number of entries still unpersisted
        """
        if self.cache is None:
            return len(self._unpersisted)
        remaining = [c for c in self._unpersisted if not self.cache.append_change(self.session_id, c)]
        if remaining:
            logger.error(f"{len(remaining)} change records could not be persisted for {self.session_id}")
        self._unpersisted = remaining
        return len(remaining)

    @property
    def entries(self) -> List[ModificationChange]:
        return list(self._entries)

    def get_summary(self) -> str:
        if not self._entries:
            return "No changes recorded."
        lines = [f"{len(self._entries)} change(s):"]
        for change in self._entries:
            status = "ok" if change.success else "failed"
            lines.append(f"- [{change.kind}] {change.file}: {change.description} ({status})")
        return "\n".join(lines)

    def get_success_stats(self) -> Dict[str, int]:
        succeeded = sum(1 for c in self._entries if c.success)
        return {"total": len(self._entries), "succeeded": succeeded, "failed": len(self._entries) - succeeded}

    def get_changes_by_type(self) -> Dict[str, List[ModificationChange]]:
        grouped: Dict[str, List[ModificationChange]] = {"modified": [], "created": [], "updated": []}
        for change in self._entries:
            grouped[change.kind].append(change)
        return grouped


def get_contextual_summary(changes: List[ModificationChange], limit: int = 5) -> str:
    """Recent changes rendered for oracle context."""
    if not changes:
        return ""
    recent = changes[-limit:]
    return "\n".join(f"- {c.kind} {c.file}: {c.description}" for c in recent)


def get_most_modified_files(changes: List[ModificationChange], limit: int = 5) -> List[Dict[str, Any]]:
    counts = Counter(c.file for c in changes)
    return [{"file": path, "count": count} for path, count in counts.most_common(limit)]
