"""
Request orchestration: state machine, change log and session lifecycle.
"""

from .change_log import ChangeLog, get_contextual_summary, get_most_modified_files
from .facade import ModificationOrchestrator, OrchestratorState
from .lifecycle import SessionLifecycle, TrackedSession

__all__ = [
    "ModificationOrchestrator",
    "OrchestratorState",
    "ChangeLog",
    "get_contextual_summary",
    "get_most_modified_files",
    "SessionLifecycle",
    "TrackedSession",
]
