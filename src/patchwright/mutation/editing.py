"""
Shared write-back helpers for the modification strategies.
"""

import difflib
import re
from typing import Dict, Tuple

from patchwright.logging_config import logger
from patchwright.sandbox import PathSandbox
from patchwright.schemas import ProjectFile, SandboxWriteResult


def detect_line_ending(content: str) -> str:
    """'\\r\\n' if the content uses CRLF anywhere, else '\\n'."""
    if "\r\n" in content:
        return "\r\n"
    return "\n"


def normalize_line_endings(content: str, line_ending: str) -> str:
    content = content.replace("\r\n", "\n")
    if line_ending == "\r\n":
        content = content.replace("\n", "\r\n")
    return content


def diff_stats(original: str, modified: str) -> Dict[str, int]:
    """Added/removed line counts between two versions."""
    added = removed = 0
    for line in difflib.unified_diff(original.splitlines(), modified.splitlines(), lineterm="", n=0):
        if line.startswith("+++") or line.startswith("---"):
            continue
        if line.startswith("+"):
            added += 1
        elif line.startswith("-"):
            removed += 1
    return {"lines_added": added, "lines_removed": removed, "lines_changed": max(added, removed)}


def unified_diff(path: str, original: str, modified: str, max_lines: int = 100) -> str:
    """Unified diff for change details, cut at max_lines."""
    lines = list(difflib.unified_diff(
        original.splitlines(),
        modified.splitlines(),
        fromfile=f"a/{path}",
        tofile=f"b/{path}",
        lineterm="",
    ))
    if len(lines) > max_lines:
        omitted = len(lines) - max_lines
        lines = lines[:max_lines] + [f"... ({omitted} more diff lines)"]
    return "\n".join(lines)


def write_back(sandbox: PathSandbox, project_file: ProjectFile, new_content: str) -> Tuple[SandboxWriteResult, Dict[str, int]]:
    """
    Write new content for an existing project file through the sandbox.

    The file's original line-ending style is kept. On success the in-memory
    ProjectFile is updated in place.

    Returns:
        (write result, diff stats)
    """
    new_content = normalize_line_endings(new_content, detect_line_ending(project_file.content))
    stats = diff_stats(project_file.content, new_content)

    result = sandbox.write(project_file.relative_path, new_content)
    if result.success:
        project_file.apply_content(new_content)
        logger.debug(f"Updated {project_file.relative_path}: +{stats['lines_added']} -{stats['lines_removed']}")
    return result, stats


# Whole import statements, including ones whose braces span several lines
_IMPORT_STATEMENT = re.compile(r"^[ \t]*import\b[^;]*?['\"][^'\"\n]+['\"][ \t]*;?", re.MULTILINE)


def insert_import(content: str, import_line: str) -> str:
    """Insert an import statement after the last existing one (or at the top)."""
    if import_line.strip() in {line.strip() for line in content.split("\n")}:
        return content
    statements = list(_IMPORT_STATEMENT.finditer(content))
    if not statements:
        return f"{import_line}\n{content}"
    end = statements[-1].end()
    return content[:end] + "\n" + import_line + content[end:]
