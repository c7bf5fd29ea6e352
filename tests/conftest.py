"""
Pytest configuration for the patchwright test suite.

This conftest.py provides:
- Machine-mode logging (suppresses console output)
- A small React project on disk
- A scripted oracle that replays canned completions
- Cache/store fixtures wired the way the orchestrator uses them
"""

import os
import shutil
import tempfile
import threading
from pathlib import Path

import pytest

# before patchwright.logging_config configures itself on import
os.environ.setdefault("PATCHWRIGHT_MACHINE_MODE", "1")

from patchwright.logging_config import setup_logging
from patchwright.cache import InMemoryCacheBackend, SessionCache
from patchwright.exceptions import OracleError
from patchwright.oracle import ReasoningOracle
from patchwright.storage import DurableStore


# ============================================================================
# GLOBAL CONFIGURATION
# ============================================================================

@pytest.fixture(autouse=True)
def setup_test_logging():
    """
    Machine mode by default - suppress console logs for clean test output.
    """
    setup_logging(level="DEBUG", suppress_console=True)


# ============================================================================
# PROJECT FIXTURES
# ============================================================================

APP_TSX = """import { BrowserRouter, Routes, Route } from 'react-router-dom';
import Header from './components/Header';
import Home from './pages/Home';

function App() {
  return (
    <BrowserRouter>
      <Header />
      <Routes>
        <Route path="/" element={<Home />} />
      </Routes>
    </BrowserRouter>
  );
}

export default App;
"""

HEADER_TSX = """export default function Header() {
  return (
    <header className="header">
      <h1>My Site</h1>
      <button className="btn">Sign In</button>
    </header>
  );
}
"""

HOME_TSX = """export default function Home() {
  return (
    <main>
      <p>Welcome home</p>
    </main>
  );
}
"""


@pytest.fixture
def temp_dir():
    """Create a temporary directory that's cleaned up after the test."""
    tmp = Path(tempfile.mkdtemp(prefix="patchwright_test_"))
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def react_project(temp_dir):
    """
    Minimal Vite-style project:

        package.json
        src/App.tsx
        src/components/Header.tsx
        src/pages/Home.tsx
    """
    project = temp_dir / "project"
    (project / "src" / "components").mkdir(parents=True)
    (project / "src" / "pages").mkdir(parents=True)
    (project / "package.json").write_text('{"name": "demo"}\n')
    (project / "src" / "App.tsx").write_text(APP_TSX)
    (project / "src" / "components" / "Header.tsx").write_text(HEADER_TSX)
    (project / "src" / "pages" / "Home.tsx").write_text(HOME_TSX)
    return project


# ============================================================================
# ORACLE FIXTURES
# ============================================================================

class ScriptedOracle(ReasoningOracle):
    """
    Replays canned completions.

    Rules are (substring, reply) pairs matched against the prompt in order;
    unmatched calls pop the reply queue. A reply that is an exception
    instance is raised. With nothing left to reply, OracleError is raised.
    """

    name = "scripted"

    def __init__(self, replies=None, rules=None):
        self.replies = list(replies or [])
        self.rules = list(rules or [])
        self.calls = []
        self._lock = threading.Lock()

    def complete(self, context, prompt):
        with self._lock:
            self.calls.append((context, prompt))
            reply = None
            for marker, candidate in self.rules:
                if marker in prompt:
                    reply = candidate
                    break
            else:
                if self.replies:
                    reply = self.replies.pop(0)
        if reply is None:
            raise OracleError("no scripted reply", backend=self.name)
        if isinstance(reply, Exception):
            raise reply
        return reply

    def prompts_containing(self, marker):
        return [prompt for _, prompt in self.calls if marker in prompt]


@pytest.fixture
def scripted_oracle():
    return ScriptedOracle()


# ============================================================================
# CACHE / STORE FIXTURES
# ============================================================================

class FakeClock:
    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def memory_backend(clock):
    return InMemoryCacheBackend(clock=clock)


@pytest.fixture
def durable_store(temp_dir):
    return DurableStore(temp_dir / "store" / "patchwright.db")


@pytest.fixture
def session_cache(memory_backend, durable_store):
    return SessionCache(memory_backend, durable_store)
