"""
patchwright - natural-language modification engine for React projects.

Turns change requests into sandboxed edits: targeted markup-node edits,
whole-file regeneration, or new component/page synthesis.
"""

__version__ = "0.1.0"

from patchwright.cache import InMemoryCacheBackend, SessionCache
from patchwright.oracle import ReasoningOracle, create_oracle
from patchwright.orchestrator import ModificationOrchestrator, SessionLifecycle
from patchwright.parser import ASTIndexer
from patchwright.sandbox import PathSandbox
from patchwright.schemas import ModificationResult, ModificationStrategy
from patchwright.storage import DurableStore

__all__ = [
    "__version__",
    "ModificationOrchestrator",
    "ModificationResult",
    "ModificationStrategy",
    "PathSandbox",
    "ASTIndexer",
    "SessionCache",
    "InMemoryCacheBackend",
    "DurableStore",
    "ReasoningOracle",
    "create_oracle",
    "SessionLifecycle",
]
