"""
ProjectScanner: build the in-memory ProjectFile map for a sandbox.

Every file is read through the sandbox, so the map only ever holds
paths that passed validation.
"""

import os
import re
from pathlib import Path
from typing import Dict, Optional

from patchwright.logging_config import logger
from patchwright.sandbox import PathSandbox
from patchwright.schemas import ProjectFile
from .config import SCAN_CONFIG


_COMPONENT_NAME = re.compile(r"(?:function|const)\s+([A-Z]\w+)")
_BUTTON = re.compile(r"button", re.IGNORECASE)
_SIGNIN = re.compile(r"signin|login", re.IGNORECASE)
_MAIN_FILE = re.compile(r"App\.(tsx|jsx)$")


def scan(sandbox: PathSandbox, extensions=None) -> Dict[str, ProjectFile]:
    """
    Walk the sandbox root and index every source file.

    Args:
        sandbox: Sandbox whose root is scanned
        extensions: Suffixes to include (defaults to SCAN_CONFIG)

    Returns:
        Map of project-relative path -> ProjectFile
    """
    allowed = set(extensions or SCAN_CONFIG["extensions"])
    skip_dirs = set(SCAN_CONFIG["skip_dirs"])
    skip_prefixes = tuple(SCAN_CONFIG["skip_relative_dirs"])
    files: Dict[str, ProjectFile] = {}

    logger.info(f"Scanning {sandbox.root}")
    for root, dirs, filenames in os.walk(sandbox.root):
        root_path = Path(root)
        rel_dir = root_path.relative_to(sandbox.root)

        dirs[:] = sorted(
            d for d in dirs
            if not d.startswith(".")
            and d not in skip_dirs
            and not _is_skipped((rel_dir / d).as_posix(), skip_prefixes)
            and sandbox.allows_directory((rel_dir / d).parts)
        )

        for filename in sorted(filenames):
            if Path(filename).suffix.lower() not in allowed:
                continue
            project_file = load_project_file(sandbox, root_path / filename)
            if project_file is not None:
                files[project_file.relative_path] = project_file

    logger.info(f"Scan found {len(files)} source files")
    return files


def load_project_file(sandbox: PathSandbox, path) -> Optional[ProjectFile]:
    validation = sandbox.validate(path)
    if not validation.is_valid:
        logger.debug(f"Skipping {path}: {validation.error}")
        return None

    content = sandbox.read(path)
    if content is None:
        return None

    name = Path(validation.normalized_path).name
    match = _COMPONENT_NAME.search(content)
    lines = content.split("\n")
    return ProjectFile(
        name=name,
        path=validation.absolute_path,
        relative_path=validation.normalized_path,
        content=content,
        lines=len(lines),
        size=len(content.encode("utf-8")),
        snippet="\n".join(lines[:SCAN_CONFIG["snippet_lines"]]),
        component_name=match.group(1) if match else "Unknown",
        has_buttons=bool(_BUTTON.search(content)),
        has_signin=bool(_SIGNIN.search(content)),
        is_main_file=bool(_MAIN_FILE.search(name)),
    )


def find_main_file(files: Dict[str, ProjectFile]) -> Optional[ProjectFile]:
    """The composition root (App.tsx / App.jsx), preferring the shallowest one."""
    candidates = [f for f in files.values() if f.is_main_file]
    if not candidates:
        return None
    return min(candidates, key=lambda f: (f.relative_path.count("/"), f.relative_path))


def build_project_summary(files: Dict[str, ProjectFile]) -> str:
    """
    Short text overview used as oracle context.
    """
    main_file = find_main_file(files)
    lines = [
        f"Project files: {len(files)}",
        f"Main file: {main_file.relative_path if main_file else 'none'}",
        "",
    ]
    for path in sorted(files):
        f = files[path]
        flags = [label for label, on in (("buttons", f.has_buttons), ("signin", f.has_signin), ("main", f.is_main_file)) if on]
        suffix = f" [{', '.join(flags)}]" if flags else ""
        lines.append(f"- {path}: {f.component_name} ({f.lines} lines){suffix}")
    return "\n".join(lines)


def _is_skipped(relative_dir: str, skip_prefixes) -> bool:
    return any(relative_dir == p or relative_dir.endswith("/" + p) for p in skip_prefixes)
