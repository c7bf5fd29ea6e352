import time
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Optional, Literal


class ProjectFile(BaseModel):
    """
    A source file inside the sandbox, as seen by the modification engine.
    """
    name: str
    path: str  # absolute
    relative_path: str  # project-relative, forward slashes
    content: str
    lines: int
    size: int
    snippet: str = ""
    component_name: str = "Unknown"
    has_buttons: bool = False
    has_signin: bool = False
    is_main_file: bool = False

    def apply_content(self, new_content: str) -> None:
        """Update the in-memory view after a successful write."""
        self.content = new_content
        self.lines = len(new_content.split("\n"))
        self.size = len(new_content.encode("utf-8"))
        self.snippet = "\n".join(new_content.split("\n")[:15])


class ASTNode(BaseModel):
    """
    One markup element occurrence. Ids are only meaningful inside the
    parse pass that produced them.
    """
    id: str
    tag_name: str
    text_content: str = ""
    start_line: int
    end_line: int
    start_column: int
    end_column: int
    code_snippet: str
    full_context: str
    is_button: bool = False
    has_signin_text: bool = False
    attributes: List[str] = Field(default_factory=list)


class IndexedFile(BaseModel):
    """Result of one parse pass over one file."""
    pass_id: str
    path: str
    content_hash: str
    nodes: List[ASTNode] = Field(default_factory=list)

    def node_map(self) -> Dict[str, ASTNode]:
        return {node.id: node for node in self.nodes}


class ModificationStrategy(str, Enum):
    FULL_FILE = "FULL_FILE"
    TARGETED_NODES = "TARGETED_NODES"
    COMPONENT_ADDITION = "COMPONENT_ADDITION"


class ModificationScope(BaseModel):
    strategy: ModificationStrategy
    target_files: List[str] = Field(default_factory=list)
    reasoning: str = ""
    confidence: int = 0
    entity_name: Optional[str] = None
    entity_kind: Optional[Literal["component", "page"]] = None


class NodeSelection(BaseModel):
    """Oracle decision about which nodes of one file need to change."""
    path: str
    pass_id: str
    needs_change: bool = False
    selected_ids: List[str] = Field(default_factory=list)
    reasoning: str = ""
    confidence: int = 0


class NodeReplacement(BaseModel):
    node_id: str
    replacement_code: str
    reasoning: str = ""
    required_imports: List[str] = Field(default_factory=list)


class FileCandidate(BaseModel):
    """A file picked for whole-file regeneration."""
    file_path: str
    relevance_score: int = 0
    reasoning: str = ""
    change_type: str = "modify"
    priority: Literal["high", "medium", "low"] = "medium"


class ComponentClassification(BaseModel):
    name: str
    kind: Literal["component", "page"]
    confidence: int = 0
    reasoning: str = ""


class ModificationChange(BaseModel):
    """Append-only change log entry."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["modified", "created", "updated"]
    file: str
    description: str
    timestamp: float = Field(default_factory=time.time)
    success: bool = True
    details: Dict[str, Any] = Field(default_factory=dict)


class SessionContext(BaseModel):
    session_id: str
    build_id: str
    working_directory: str
    last_project_summary: Optional[str] = None
    last_activity: float = Field(default_factory=time.time)

    def touch(self) -> None:
        self.last_activity = time.time()


class FileOutcome(BaseModel):
    path: str
    status: Literal["applied", "skipped", "failed"]
    detail: str = ""


class ModificationResult(BaseModel):
    """What the orchestrator reports back to its caller."""
    success: bool
    session_id: str
    files_changed: List[str] = Field(default_factory=list)
    strategy_used: Optional[ModificationStrategy] = None
    reasoning: str = ""
    change_log: List[ModificationChange] = Field(default_factory=list)
    file_outcomes: List[FileOutcome] = Field(default_factory=list)
    states_visited: List[str] = Field(default_factory=list)
    final_state: str = "Idle"
    error: Optional[str] = None


class SandboxValidation(BaseModel):
    is_valid: bool
    normalized_path: Optional[str] = None
    absolute_path: Optional[str] = None
    error: Optional[str] = None
    error_kind: Optional[
        Literal["traversal", "outside_root", "disallowed_directory", "disallowed_extension", "invalid"]
    ] = None


class SuspicionCheck(BaseModel):
    is_suspicious: bool
    reasons: List[str] = Field(default_factory=list)


class SandboxWriteResult(BaseModel):
    success: bool
    normalized_path: Optional[str] = None
    absolute_path: Optional[str] = None
    error: Optional[str] = None


class AuditEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    timestamp: float = Field(default_factory=time.time)
    operation: Literal["read", "write", "create"]
    path: str
    success: bool
    detail: str = ""
