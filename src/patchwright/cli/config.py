"""
CLI Configuration
"""

import os
from typing import Optional


class CLIConfig:
    """Output mode for CLI commands."""

    _machine_mode: Optional[bool] = None

    @classmethod
    def set_machine_mode(cls, enabled: bool) -> None:
        cls._machine_mode = enabled

    @classmethod
    def is_machine_mode(cls) -> bool:
        """
        Machine mode (plain text, no colour) is the default. It is off only
        with --human or PATCHWRIGHT_HUMAN_MODE=1.
        """
        if cls._machine_mode is not None:
            return cls._machine_mode
        if os.getenv("PATCHWRIGHT_HUMAN_MODE", "").lower() in ("1", "true", "yes"):
            return False
        return True
