"""
Ollama backend for the reasoning oracle.
"""

import time
from typing import Any, Dict, Optional

import requests
from loguru import logger

from patchwright.exceptions import OracleError
from .base import ReasoningOracle
from .config import ORACLE_CONFIG


class OllamaOracle(ReasoningOracle):
    """
    Client for a local ollama server (/api/generate, non-streaming).
    """

    name = "ollama"

    def __init__(self, config: Optional[Dict[str, Any]] = None, session: Optional[requests.Session] = None):
        self.config = {**ORACLE_CONFIG, **(config or {})}
        self.session = session or requests.Session()

    def is_available(self) -> bool:
        """Test if ollama is running and accessible."""
        try:
            response = self.session.get(f"{self.config['api_base']}/api/tags", timeout=5)
        except requests.RequestException as e:
            logger.warning(f"Ollama not available: {e}")
            return False
        if response.status_code != 200:
            logger.warning(f"Ollama responded with status {response.status_code}")
            return False
        return True

    def complete(self, context: str, prompt: str) -> str:
        payload = {
            "model": self.config["model"],
            "system": context,
            "prompt": prompt,
            "stream": False,
            "options": {
                "temperature": self.config["temperature"],
                "num_predict": self.config["max_tokens"],
            },
        }

        logger.debug(f"Sending request to ollama: {self.config['model']}")
        start_time = time.time()
        try:
            response = self.session.post(
                f"{self.config['api_base']}/api/generate",
                json=payload,
                timeout=self.config["timeout"],
            )
        except requests.RequestException as e:
            raise OracleError(f"request failed: {e}", backend=self.name)

        elapsed = time.time() - start_time
        if response.status_code != 200:
            raise OracleError(f"status {response.status_code}: {response.text[:200]}", backend=self.name)

        try:
            text = response.json().get("response", "")
        except ValueError as e:
            raise OracleError(f"invalid JSON body: {e}", backend=self.name)

        if not text.strip():
            raise OracleError("empty completion", backend=self.name)

        logger.info(f"Oracle completion in {elapsed:.2f}s ({len(text)} chars)")
        return text
