"""
NodeSelector: ask the oracle which markup nodes of one file need change.
"""

import re
from typing import Dict, Optional

from patchwright.logging_config import logger
from patchwright.exceptions import OracleError
from patchwright.oracle import ParsedResponse, ReasoningOracle, field_bool, field_int, field_list, field_str, parse_response
from patchwright.parser import describe_nodes
from patchwright.schemas import IndexedFile, NodeSelection
from .config import PROMPT_TEMPLATES


_NODE_ID = re.compile(r"node_\d+")


class NodeSelector:
    """
    One oracle call per file. Anything missing or malformed in the reply
    yields needs_change=False with confidence 0.
    """

    def __init__(self, oracle: ReasoningOracle, max_prompt_nodes: Optional[int] = None):
        self.oracle = oracle
        self.max_prompt_nodes = max_prompt_nodes

    def select(self, indexed: IndexedFile, request: str, context: str = "") -> NodeSelection:
        selection = NodeSelection(path=indexed.path, pass_id=indexed.pass_id)

        if not indexed.nodes:
            selection.reasoning = "No markup nodes in file"
            logger.debug(f"NodeSelector: skipping {indexed.path}, no nodes")
            return selection

        prompt = PROMPT_TEMPLATES["node_selection"].format(
            file_path=indexed.path,
            request=request,
            node_list=describe_nodes(indexed.nodes, self.max_prompt_nodes),
        )
        try:
            text = self.oracle.complete(context or PROMPT_TEMPLATES["system"], prompt)
        except OracleError as e:
            logger.warning(f"NodeSelector: oracle failed for {indexed.path}: {e}")
            selection.reasoning = f"Oracle unavailable: {e}"
            return selection

        reply = parse_response(text)
        if not isinstance(reply, ParsedResponse):
            logger.warning(f"NodeSelector: unparsable reply for {indexed.path}")
            selection.reasoning = "Unparsable oracle reply"
            return selection

        known = indexed.node_map()
        requested = []
        for item in field_list(reply, "targets"):
            requested.extend(_NODE_ID.findall(item))
        selected = [node_id for node_id in dict.fromkeys(requested) if node_id in known]

        relevant = field_bool(reply, "relevant", default=False)
        confidence = field_int(reply, "score", default=0)
        reasoning = field_str(reply, "reason", "")

        if not relevant or not selected:
            selection.reasoning = reasoning or "Oracle reported no relevant nodes"
            return selection

        dropped = len(requested) - len(selected)
        if dropped:
            logger.debug(f"NodeSelector: ignored {dropped} unknown ids for {indexed.path}")

        selection.needs_change = True
        selection.selected_ids = selected
        selection.confidence = confidence
        selection.reasoning = reasoning
        logger.info(f"NodeSelector: {indexed.path} -> {selected} ({confidence})")
        return selection
