"""
Modification strategies.

- ScopeClassifier: pick FULL_FILE, TARGETED_NODES or COMPONENT_ADDITION
- NodeSelector / NodeMutator: targeted markup edits
- FullFileMutator: whole-file regeneration
- ComponentSynthesizer: new files plus page routing
"""

from .config import MODIFICATION_CONFIG, PROMPT_TEMPLATES
from .full_file import FullFileMutator
from .node_mutator import NodeMutator
from .scope import ScopeClassifier, determine_entity_kind, extract_entity_name
from .selector import NodeSelector
from .synthesizer import ComponentSynthesizer, SynthesisResult, add_route
from .editing import write_back

__all__ = [
    "ScopeClassifier",
    "NodeSelector",
    "NodeMutator",
    "FullFileMutator",
    "ComponentSynthesizer",
    "SynthesisResult",
    "add_route",
    "extract_entity_name",
    "determine_entity_kind",
    "write_back",
    "MODIFICATION_CONFIG",
    "PROMPT_TEMPLATES",
]
