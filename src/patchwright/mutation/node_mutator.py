"""
NodeMutator: obtain replacement code for selected nodes and splice it in.

Replacements for one file come from a single batched oracle call. Splicing
runs in descending start-line order so a splice never shifts the lines of
nodes still waiting to be processed.
"""

import hashlib
from typing import Dict, List, Optional

from patchwright.logging_config import logger
from patchwright.exceptions import OracleError, StaleParseError
from patchwright.oracle import ReasoningOracle, extract_json
from patchwright.schemas import ASTNode, IndexedFile, NodeReplacement, NodeSelection
from .config import PROMPT_TEMPLATES
from .editing import detect_line_ending, insert_import, normalize_line_endings


class NodeMutator:

    def __init__(self, oracle: ReasoningOracle):
        self.oracle = oracle

    def generate(
        self,
        indexed: IndexedFile,
        selection: NodeSelection,
        request: str,
        context: str = "",
    ) -> List[NodeReplacement]:
        """
        Ask for replacements of every selected node in one call.

        Returns:
            Replacements for the nodes the oracle answered; [] on any failure
        """
        self._check_pass(indexed, selection)
        node_map = indexed.node_map()
        nodes = [node_map[node_id] for node_id in selection.selected_ids if node_id in node_map]
        if not nodes:
            return []

        prompt = PROMPT_TEMPLATES["node_modification"].format(
            request=request,
            file_path=indexed.path,
            context=context or "none",
            node_blocks="\n".join(
                f"**{node.id}:** (lines {node.start_line}-{node.end_line})\n```jsx\n{node.code_snippet}\n```\n"
                for node in nodes
            ),
        )
        try:
            text = self.oracle.complete(PROMPT_TEMPLATES["system"], prompt)
        except OracleError as e:
            logger.warning(f"NodeMutator: oracle failed for {indexed.path}: {e}")
            return []

        payload = extract_json(text)
        if not isinstance(payload, dict):
            logger.warning(f"NodeMutator: no JSON object in reply for {indexed.path}")
            return []

        replacements = []
        for node in nodes:
            replacement = self._read_replacement(node, payload.get(node.id))
            if replacement is None:
                logger.debug(f"NodeMutator: no usable replacement for {node.id}")
                continue
            replacements.append(replacement)

        logger.info(f"NodeMutator: {len(replacements)}/{len(nodes)} replacements for {indexed.path}")
        return replacements

    def apply(
        self,
        indexed: IndexedFile,
        selection: NodeSelection,
        replacements: List[NodeReplacement],
        original_content: str,
    ) -> str:
        """
        Splice replacements into original_content.

        Raises:
            StaleParseError: selection or content does not belong to this parse pass
        """
        self._check_pass(indexed, selection)
        if hashlib.sha256(original_content.encode("utf-8")).hexdigest() != indexed.content_hash:
            raise StaleParseError(indexed.path, "content changed since it was indexed")

        node_map = indexed.node_map()
        allowed = set(selection.selected_ids)
        by_id: Dict[str, NodeReplacement] = {}
        for replacement in replacements:
            if replacement.node_id in allowed and replacement.node_id in node_map:
                by_id[replacement.node_id] = replacement
            else:
                logger.warning(f"NodeMutator: ignoring replacement for unselected node {replacement.node_id}")

        targets = self._disjoint([node_map[node_id] for node_id in by_id])

        line_ending = detect_line_ending(original_content)
        lines = original_content.replace("\r\n", "\n").split("\n")
        for node in sorted(targets, key=lambda n: n.start_line, reverse=True):
            new_lines = by_id[node.id].replacement_code.replace("\r\n", "\n").rstrip("\n").split("\n")
            lines[node.start_line - 1:node.end_line] = new_lines

        content = "\n".join(lines)
        for node in targets:
            for import_line in by_id[node.id].required_imports:
                content = insert_import(content, import_line.strip())

        return normalize_line_endings(content, line_ending)

    def _read_replacement(self, node: ASTNode, value) -> Optional[NodeReplacement]:
        required_imports: List[str] = []
        reasoning = ""
        if isinstance(value, dict):
            code = value.get("modifiedCode") or value.get("modified_code") or value.get("code")
            raw_imports = value.get("requiredImports") or value.get("required_imports") or []
            if isinstance(raw_imports, list):
                required_imports = [str(item) for item in raw_imports if str(item).strip()]
            reasoning = str(value.get("reasoning", ""))
        else:
            code = value
        if not isinstance(code, str) or not code.strip():
            return None
        return NodeReplacement(node_id=node.id, replacement_code=code, reasoning=reasoning, required_imports=required_imports)

    def _disjoint(self, nodes: List[ASTNode]) -> List[ASTNode]:
        """Keep the outermost/earliest node wherever line ranges overlap."""
        kept: List[ASTNode] = []
        for node in sorted(nodes, key=lambda n: (n.start_line, -n.end_line)):
            if any(node.start_line <= k.end_line and node.end_line >= k.start_line for k in kept):
                logger.warning(f"NodeMutator: {node.id} overlaps an earlier selected node, skipped")
                continue
            kept.append(node)
        return kept

    @staticmethod
    def _check_pass(indexed: IndexedFile, selection: NodeSelection) -> None:
        if selection.pass_id != indexed.pass_id or selection.path != indexed.path:
            raise StaleParseError(indexed.path)
