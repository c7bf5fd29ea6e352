"""
Session lifecycle: working directories and the hard wall-clock timeout.

When a session's timer fires, its bookkeeping is torn down whether or not
an oracle call is still in flight. Files already written stay written.
"""

import shutil
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Union

from loguru import logger

from patchwright.exceptions import SessionSetupError


@dataclass
class TrackedSession:
    session_id: str
    build_id: str
    working_directory: str
    owns_directory: bool = False
    started_at: float = field(default_factory=time.time)
    timer: Optional[threading.Timer] = None

    def age_seconds(self) -> float:
        return time.time() - self.started_at


class SessionLifecycle:
    """
    Tracks active sessions by build id and tears them down on timeout.
    """

    def __init__(self, cache, builds_dir: Union[str, Path], timeout_seconds: float = 300.0):
        self.cache = cache
        self.builds_dir = Path(builds_dir)
        self.timeout_seconds = timeout_seconds
        self.sessions: Dict[str, TrackedSession] = {}
        self.lock = threading.Lock()

    def create_workspace(self, build_id: str, source_dir: Union[str, Path]) -> Path:
        """
        Copy a project tree into builds_dir/<build_id>.

        Raises:
            SessionSetupError: source missing or workspace already exists
        """
        source = Path(source_dir)
        if not source.is_dir():
            raise SessionSetupError(build_id, f"source directory {source} does not exist")
        target = self.builds_dir / build_id
        if target.exists():
            raise SessionSetupError(build_id, f"workspace {target} already exists")

        self.builds_dir.mkdir(parents=True, exist_ok=True)
        shutil.copytree(source, target, ignore=shutil.ignore_patterns("node_modules", ".git", "dist", "build"))
        logger.info(f"Created workspace {target}")
        return target

    def start(self, session_id: str, build_id: str, working_directory: Union[str, Path],
              owns_directory: bool = False) -> TrackedSession:
        """Register a session and arm its timeout. Re-arming resets the clock."""
        with self.lock:
            existing = self.sessions.get(build_id)
            if existing is not None and existing.timer is not None:
                existing.timer.cancel()

            tracked = TrackedSession(
                session_id=session_id,
                build_id=build_id,
                working_directory=str(working_directory),
                owns_directory=owns_directory or (existing.owns_directory if existing else False),
            )
            tracked.timer = threading.Timer(self.timeout_seconds, self._expire, args=(build_id,))
            tracked.timer.daemon = True
            tracked.timer.start()
            self.sessions[build_id] = tracked

        logger.debug(f"Session {session_id} armed for {self.timeout_seconds}s (build {build_id})")
        return tracked

    def _expire(self, build_id: str) -> None:
        logger.warning(f"Session timeout reached for build {build_id}, tearing down")
        self.teardown(build_id)

    def teardown(self, build_id: str) -> bool:
        """
        Remove an owned working directory and clear the session's cache entries.

        Returns:
            True if the build was being tracked
        """
        with self.lock:
            tracked = self.sessions.pop(build_id, None)
        if tracked is None:
            return False

        if tracked.timer is not None:
            tracked.timer.cancel()

        if tracked.owns_directory:
            shutil.rmtree(tracked.working_directory, ignore_errors=True)
            logger.info(f"Removed workspace {tracked.working_directory}")

        self.cache.clear_session(tracked.session_id)
        return True

    def cancel(self, build_id: str) -> bool:
        """Disarm a session's timer without tearing it down."""
        with self.lock:
            tracked = self.sessions.get(build_id)
            if tracked is None or tracked.timer is None:
                return False
            tracked.timer.cancel()
            tracked.timer = None
            return True

    def active_sessions(self) -> List[TrackedSession]:
        with self.lock:
            return list(self.sessions.values())

    def shutdown(self) -> None:
        """Cancel all timers (no teardown)."""
        with self.lock:
            for tracked in self.sessions.values():
                if tracked.timer is not None:
                    tracked.timer.cancel()
            count = len(self.sessions)
            self.sessions.clear()
        logger.info(f"SessionLifecycle shut down ({count} sessions dropped)")
