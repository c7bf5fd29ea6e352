"""
ASTIndexer: parse a component file into addressable markup nodes.

Every jsx_element and jsx_self_closing_element is recorded in document
order with a sequential id (node_1, node_2, ...). Ids are only valid for
the IndexedFile that carries them; each parse() call is a new pass.
"""

import hashlib
import re
import threading
import uuid
from pathlib import Path
from typing import Dict, List, Optional

from tree_sitter import Language, Node, Parser
import tree_sitter_javascript as tsjavascript
import tree_sitter_typescript as tstypescript

from patchwright.logging_config import logger
from patchwright.schemas import ASTNode, IndexedFile, ProjectFile
from .config import ELEMENT_NODE_TYPES, INDEXER_CONFIG, LANGUAGE_BY_EXTENSION, SIGNIN_PATTERN


_SIGNIN_RE = re.compile(SIGNIN_PATTERN, re.IGNORECASE)


class ASTIndexer:
    """
    Index markup elements with tree-sitter.

    An optional analysis cache (SessionCache) short-circuits re-parsing of
    content that has already been indexed, keyed by content hash and parse settings.
    """

    def __init__(self, cache=None, context_lines: Optional[int] = None):
        self.cache = cache
        self.context_lines = context_lines if context_lines is not None else INDEXER_CONFIG["context_lines"]
        self.parsers: Dict[str, Parser] = {}
        # tree-sitter parsers are not shared safely between threads
        self._parse_lock = threading.Lock()
        self._init_parsers()

    def _init_parsers(self):
        """Initialize tree-sitter parsers for supported languages."""
        languages = {
            "javascript": Language(tsjavascript.language()),
            "typescript": Language(tstypescript.language_typescript()),
            "tsx": Language(tstypescript.language_tsx()),
        }
        for name, language in languages.items():
            parser = Parser()
            parser.language = language
            self.parsers[name] = parser
        logger.debug(f"ASTIndexer initialized parsers: {list(self.parsers.keys())}")

    def parse(self, path: str, file_map: Dict[str, ProjectFile]) -> IndexedFile:
        """
        Index the current content of one project file.

        Args:
            path: Key into file_map (project-relative path)
            file_map: In-memory project files

        Returns:
            IndexedFile; its node list is empty when the file is unknown,
            unsupported or fails to parse
        """
        project_file = file_map.get(path)
        if project_file is None:
            logger.warning(f"ASTIndexer: {path} is not in the project file map")
            return IndexedFile(pass_id=uuid.uuid4().hex, path=path, content_hash="")
        return self.parse_content(path, project_file.content)

    def parse_content(self, path: str, content: str) -> IndexedFile:
        content_hash = self._hash(content)
        indexed = IndexedFile(pass_id=uuid.uuid4().hex, path=path, content_hash=content_hash)

        key = self.analysis_key(path, content_hash)
        cached = self._cached_nodes(key)
        if cached is not None:
            indexed.nodes = cached
            logger.debug(f"ASTIndexer: reused {len(cached)} cached nodes for {path}")
            return indexed

        try:
            indexed.nodes = self._index(path, content)
        except (ValueError, UnicodeError) as e:
            logger.warning(f"ASTIndexer: failed to parse {path}: {e}")
            return indexed

        if self.cache is not None and indexed.nodes:
            self.cache.set_analysis(key, indexed.nodes)
        logger.debug(f"ASTIndexer: {path} -> {len(indexed.nodes)} nodes")
        return indexed

    def _index(self, path: str, content: str) -> List[ASTNode]:
        language = LANGUAGE_BY_EXTENSION.get(Path(path).suffix.lower())
        if language is None:
            logger.debug(f"ASTIndexer: unsupported extension for {path}")
            return []

        text = content.replace("\r\n", "\n")
        source = text.encode("utf-8")
        with self._parse_lock:
            tree = self.parsers[language].parse(source)
        if tree.root_node.has_error:
            logger.warning(f"ASTIndexer: syntax errors in {path}, skipping")
            return []

        lines = text.split("\n")
        byte_lines = source.split(b"\n")
        nodes: List[ASTNode] = []

        stack = [tree.root_node]
        while stack:
            node = stack.pop()
            if node.type in ELEMENT_NODE_TYPES:
                ast_node = self._build_node(node, len(nodes) + 1, lines, byte_lines)
                if ast_node is not None:
                    nodes.append(ast_node)
            stack.extend(reversed(node.children))

        return nodes

    def _build_node(self, node: Node, index: int, lines: List[str], byte_lines: List[bytes]) -> Optional[ASTNode]:
        opening = node.child_by_field_name("open_tag") if node.type == "jsx_element" else node
        name_node = opening.child_by_field_name("name") if opening is not None else None
        if name_node is None:
            # fragment (<>...</>)
            return None

        tag_name = name_node.text.decode("utf-8")
        start_row, start_col = node.start_point
        end_row, end_col = node.end_point
        start_line = start_row + 1
        end_line = end_row + 1

        text_content = " ".join(
            child.text.decode("utf-8").strip()
            for child in node.children
            if child.type == "jsx_text" and child.text.decode("utf-8").strip()
        )

        attributes = []
        for child in opening.named_children:
            if child.type == "jsx_attribute" and child.named_children:
                attributes.append(child.named_children[0].text.decode("utf-8"))

        context_start = max(0, start_line - 1 - self.context_lines)
        context_end = min(len(lines), end_line + self.context_lines)

        return ASTNode(
            id=f"node_{index}",
            tag_name=tag_name,
            text_content=text_content,
            start_line=start_line,
            end_line=end_line,
            start_column=self._char_column(byte_lines[start_row], start_col) + 1,
            end_column=self._char_column(byte_lines[end_row], end_col),
            code_snippet="\n".join(lines[start_line - 1:end_line]),
            full_context="\n".join(lines[context_start:context_end]),
            is_button="button" in tag_name.lower(),
            has_signin_text=bool(_SIGNIN_RE.search(text_content)),
            attributes=attributes,
        )

    def analysis_key(self, path: str, content_hash: str) -> str:
        """Cache key for parsed nodes. The grammar and context width shape them too."""
        language = LANGUAGE_BY_EXTENSION.get(Path(path).suffix.lower(), "none")
        return f"{language}:{self.context_lines}:{content_hash}"

    def _cached_nodes(self, key: str) -> Optional[List[ASTNode]]:
        if self.cache is None:
            return None
        return self.cache.get_analysis(key)

    @staticmethod
    def _hash(content: str) -> str:
        return hashlib.sha256(content.encode("utf-8")).hexdigest()

    @staticmethod
    def _char_column(line: bytes, byte_col: int) -> int:
        return len(line[:byte_col].decode("utf-8", errors="replace"))


def describe_nodes(nodes: List[ASTNode], limit: Optional[int] = None) -> str:
    """
    Compact one-line-per-node listing used in selection prompts.

    Example line: node_3: <button> "Sign In" [BUTTON] [SIGNIN]
    """
    limit = limit or INDEXER_CONFIG["max_prompt_nodes"]
    preview = INDEXER_CONFIG["text_preview_chars"]
    rendered = []
    for node in nodes[:limit]:
        line = f"{node.id}: <{node.tag_name}>"
        if node.text_content:
            line += f' "{node.text_content[:preview]}"'
        if node.is_button:
            line += " [BUTTON]"
        if node.has_signin_text:
            line += " [SIGNIN]"
        line += f" (lines {node.start_line}-{node.end_line})"
        rendered.append(line)
    return "\n".join(rendered)
