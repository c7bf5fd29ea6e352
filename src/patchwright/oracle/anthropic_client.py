"""
Anthropic Messages API backend for the reasoning oracle.
"""

import os
import time
from typing import Any, Dict, Optional

import anthropic
from loguru import logger

from patchwright.exceptions import ConfigError, OracleError
from .base import ReasoningOracle
from .config import ANTHROPIC_DEFAULT_MODEL, ORACLE_CONFIG


class AnthropicOracle(ReasoningOracle):
    """Oracle backed by anthropic.Anthropic().messages.create."""

    name = "anthropic"

    def __init__(self, config: Optional[Dict[str, Any]] = None, client: Optional[anthropic.Anthropic] = None):
        self.config = {**ORACLE_CONFIG, "model": ANTHROPIC_DEFAULT_MODEL, **(config or {})}
        if client is not None:
            self.client = client
            return

        # Support both ANTHROPIC_API_KEY and ANTHROPIC_AUTH_TOKEN
        api_key = self.config.get("api_key") or os.environ.get("ANTHROPIC_API_KEY") or os.environ.get("ANTHROPIC_AUTH_TOKEN")
        if not api_key:
            raise ConfigError("Anthropic API key required. Set ANTHROPIC_API_KEY or ANTHROPIC_AUTH_TOKEN.")
        client_kwargs = {"api_key": api_key}
        base_url = os.environ.get("ANTHROPIC_BASE_URL")
        if base_url:
            client_kwargs["base_url"] = base_url
        self.client = anthropic.Anthropic(**client_kwargs)

    def complete(self, context: str, prompt: str) -> str:
        request_params: Dict[str, Any] = {
            "model": self.config["model"],
            "max_tokens": self.config["max_tokens"],
            "temperature": self.config["temperature"],
            "messages": [{"role": "user", "content": prompt}],
        }
        if context:
            request_params["system"] = context

        start_time = time.time()
        try:
            response = self.client.messages.create(**request_params)
        except anthropic.APIError as e:
            raise OracleError(str(e), backend=self.name)

        content = ""
        for block in response.content:
            if block.type == "text":
                content += block.text

        if not content.strip():
            raise OracleError("empty completion", backend=self.name)

        logger.info(
            f"Oracle completion in {time.time() - start_time:.2f}s "
            f"({response.usage.input_tokens} in / {response.usage.output_tokens} out)"
        )
        return content
