"""
patchwright Path Configuration

Centralized path management for patchwright data files.
All paths are relative to the project root (current working directory).

Directory Structure:
.patchwright/
├── patchwright.db       # Durable session store
├── config.json          # Local config overrides
├── builds/              # Per-build working directories
└── logs/                # Log files
"""

from pathlib import Path
from typing import Optional


class PatchwrightPaths:
    """
    Centralized path configuration for patchwright.

    All paths are lazily resolved relative to project_root.
    Default project_root is current working directory.
    """

    DATA_DIR = ".patchwright"
    GLOBAL_DIR = Path.home() / ".patchwright"

    STORE_DB_NAME = "patchwright.db"
    CONFIG_NAME = "config.json"

    BUILDS_DIR = "builds"
    LOGS_DIR = "logs"

    def __init__(self, project_root: Optional[Path] = None):
        self._project_root = project_root

    @property
    def project_root(self) -> Path:
        """Get the project root directory."""
        if self._project_root is None:
            return Path.cwd()
        return self._project_root

    @property
    def data_dir(self) -> Path:
        return self.project_root / self.DATA_DIR

    @property
    def store_db(self) -> Path:
        """Get the durable store database path."""
        return self.data_dir / self.STORE_DB_NAME

    @property
    def local_config(self) -> Path:
        return self.data_dir / self.CONFIG_NAME

    @property
    def global_config(self) -> Path:
        return self.GLOBAL_DIR / self.CONFIG_NAME

    @property
    def builds_dir(self) -> Path:
        return self.data_dir / self.BUILDS_DIR

    @property
    def logs_dir(self) -> Path:
        return self.data_dir / self.LOGS_DIR

    def ensure_dirs(self) -> None:
        """Create all necessary directories if they don't exist."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.builds_dir.mkdir(exist_ok=True)
        self.logs_dir.mkdir(exist_ok=True)


_paths: Optional[PatchwrightPaths] = None


def get_paths(project_root: Optional[Path] = None) -> PatchwrightPaths:
    """
    Get the paths instance.

    Args:
        project_root: Optional project root. If provided, returns a fresh
                      instance for that root instead of the global one.
    """
    global _paths
    if project_root is not None:
        return PatchwrightPaths(project_root)
    if _paths is None:
        _paths = PatchwrightPaths()
    return _paths
