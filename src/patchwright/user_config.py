"""
patchwright User Configuration

Hierarchical config system with global defaults + local overrides:
- Global: ~/.patchwright/config.json (cross-project settings)
- Local: <project>/.patchwright/config.json (project-specific overrides)

Config structure:
{
  "sandbox": {
    "security_level": "strict"      // "strict" or "relaxed"
  },
  "oracle": {
    "backend": "ollama",            // "ollama", "anthropic" or "none"
    "model": "llama3.1:8b"
  },
  "cache": {
    "ttl": {"project_files": 7200, "session_context": 3600, "session_state": 1800}
  },
  "modification": {
    "relevance_threshold": 70,
    "max_workers": 2,
    "session_timeout_seconds": 300
  }
}
"""

import copy
import json
from pathlib import Path
from typing import Any, Dict, Optional

from patchwright.logging_config import logger
from patchwright.paths import PatchwrightPaths


DEFAULT_CONFIG = {
    "sandbox": {
        "security_level": "strict",
    },
    "oracle": {
        "backend": "ollama",
        "model": None,
        "api_base": "http://localhost:11434",
        "temperature": 0.2,
        "max_tokens": 4000,
        "timeout": 120,
    },
    "cache": {
        "ttl": {
            "project_files": 7200,
            "session_context": 3600,
            "session_state": 1800,
            "analysis": 3600,
        },
    },
    "modification": {
        "relevance_threshold": 70,
        "max_workers": 2,
        "session_timeout_seconds": 300,
        "builds_dir": None,
    },
}


class UserConfig:
    """
    Manages hierarchical user configuration.

    Load order (with override):
    1. Default config (hardcoded)
    2. Global config (~/.patchwright/config.json)
    3. Local config (<project>/.patchwright/config.json)
    """

    def __init__(self, project_root: Optional[Path] = None, overrides: Optional[Dict[str, Any]] = None):
        """
        Initialize config manager.

        Args:
            project_root: Project root directory (defaults to CWD)
            overrides: In-process overrides applied last (CLI flags, tests)
        """
        self.project_root = Path(project_root) if project_root else Path.cwd()
        paths = PatchwrightPaths(self.project_root)
        self.global_config_path = paths.global_config
        self.local_config_path = paths.local_config

        self._config = self._load_config()
        if overrides:
            self._config = self._deep_merge(self._config, overrides)

    def _load_config(self) -> Dict[str, Any]:
        config = copy.deepcopy(DEFAULT_CONFIG)

        for label, path in (("global", self.global_config_path), ("local", self.local_config_path)):
            if not path.exists():
                continue
            try:
                with open(path, 'r') as f:
                    config = self._deep_merge(config, json.load(f))
                    logger.debug(f"Loaded {label} config from {path}")
            except (OSError, json.JSONDecodeError) as e:
                logger.warning(f"Failed to load {label} config: {e}")

        return config

    def _deep_merge(self, base: Dict, override: Dict) -> Dict:
        """
        Deep merge two dictionaries, with override taking precedence.
        """
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a config value by dot-separated key.

        Examples:
            config.get("sandbox.security_level")  # "strict"
            config.get("cache.ttl.session_state")  # 1800
        """
        value = self._config

        for k in key.split("."):
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default

        return value

    def section(self, name: str) -> Dict[str, Any]:
        """Return a copy of one top-level section."""
        return copy.deepcopy(self._config.get(name, {}))

    def set_global(self, key: str, value: Any) -> bool:
        """Set a global config value and save to disk."""
        return self._set_and_save(key, value, self.global_config_path)

    def set_local(self, key: str, value: Any) -> bool:
        """Set a local config value and save to disk."""
        return self._set_and_save(key, value, self.local_config_path)

    def _set_and_save(self, key: str, value: Any, config_path: Path) -> bool:
        if config_path.exists():
            try:
                with open(config_path, 'r') as f:
                    config = json.load(f)
            except (OSError, json.JSONDecodeError) as e:
                logger.error(f"Failed to load config from {config_path}: {e}")
                return False
        else:
            config = {}

        keys = key.split(".")
        current = config
        for k in keys[:-1]:
            current = current.setdefault(k, {})
        current[keys[-1]] = value

        try:
            config_path.parent.mkdir(parents=True, exist_ok=True)
            with open(config_path, 'w') as f:
                json.dump(config, f, indent=2)
        except OSError as e:
            logger.error(f"Failed to save config to {config_path}: {e}")
            return False

        self._config = self._load_config()
        logger.info(f"Set {key} = {value} in {config_path}")
        return True
