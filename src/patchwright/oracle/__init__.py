"""
Reasoning oracle: capability interface, backends and reply parsing.
"""

from typing import Any, Dict, Optional

from patchwright.logging_config import logger
from .base import NullOracle, ReasoningOracle
from .config import ORACLE_CONFIG
from .parsing import (
    OracleReply,
    ParsedResponse,
    Unparsable,
    extract_code_block,
    extract_file_blocks,
    extract_json,
    field_bool,
    field_int,
    field_list,
    field_str,
    parse_response,
)


def create_oracle(config: Optional[Dict[str, Any]] = None) -> ReasoningOracle:
    """
    Build the oracle named by config["backend"].

    Backends are imported here so the choice is made once, at construction.
    """
    # None means "backend default" (e.g. the model name)
    config = {k: v for k, v in (config or {}).items() if v is not None}
    backend = config.get("backend", ORACLE_CONFIG["backend"])

    if backend == "ollama":
        from .ollama import OllamaOracle
        return OllamaOracle(config)
    if backend == "anthropic":
        from .anthropic_client import AnthropicOracle
        return AnthropicOracle(config)
    if backend != "none":
        logger.warning(f"Unsupported oracle backend: {backend}, using heuristics only")
    return NullOracle()


__all__ = [
    "ReasoningOracle",
    "NullOracle",
    "create_oracle",
    "OracleReply",
    "ParsedResponse",
    "Unparsable",
    "parse_response",
    "extract_json",
    "extract_code_block",
    "extract_file_blocks",
    "field_bool",
    "field_int",
    "field_list",
    "field_str",
]
