"""
Configuration for markup indexing.
"""

# Grammar used for each source extension
LANGUAGE_BY_EXTENSION = {
    ".tsx": "tsx",
    ".ts": "typescript",
    ".jsx": "javascript",
    ".js": "javascript",
}

# Node types treated as addressable markup elements
ELEMENT_NODE_TYPES = ("jsx_element", "jsx_self_closing_element")

INDEXER_CONFIG = {
    "context_lines": 3,  # Lines of context on each side of a node
    "text_preview_chars": 50,  # Inline text shown per node in prompts
    "max_prompt_nodes": 60,  # Nodes listed per file in a selection prompt
}

SIGNIN_PATTERN = r"sign\s*in|log\s*in|login|signin"
