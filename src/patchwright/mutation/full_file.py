"""
FullFileMutator: regenerate whole files for cross-cutting requests.
"""

import re
from pathlib import Path
from typing import Dict, List, Optional

from patchwright.logging_config import logger
from patchwright.exceptions import OracleError
from patchwright.oracle import ReasoningOracle, extract_code_block, extract_file_blocks, extract_json
from patchwright.project import find_main_file
from patchwright.schemas import FileCandidate, ProjectFile
from .config import MODIFICATION_CONFIG, PROMPT_TEMPLATES


_UI_CHANGE = re.compile(r"\b(theme|layout|style|styling|colou?r|design|dark mode|light mode|responsive|font)\b", re.IGNORECASE)
_NAV_CHANGE = re.compile(r"\b(nav|navigation|navbar|menu|header|footer|sidebar|link)s?\b", re.IGNORECASE)
_FUNCTIONAL_CHANGE = re.compile(r"\b(form|submit|validation|state|fetch|api|logic|handler)\b", re.IGNORECASE)
_LAYOUT_FILE = re.compile(r"(App|Layout|Theme)\.(tsx|jsx)$")
_NAV_FILE = re.compile(r"(nav|header|menu|footer|sidebar|App)", re.IGNORECASE)
_COMPONENT_FILE = re.compile(r"/(components|pages)/")
_MARKUP_FILE = re.compile(r"\.(tsx|jsx)$")

LANGUAGE_HINTS = {".tsx": "tsx", ".ts": "typescript", ".jsx": "jsx", ".js": "javascript"}


class FullFileMutator:

    def __init__(self, oracle: ReasoningOracle, config: Optional[Dict] = None):
        self.oracle = oracle
        self.config = {**MODIFICATION_CONFIG, **(config or {})}

    def select_files(self, request: str, project_files: Dict[str, ProjectFile]) -> List[FileCandidate]:
        """
        Pick the files to rewrite, oracle first, heuristic second.
        """
        if not project_files:
            return []

        file_list = "\n".join(
            f"- {path} ({f.component_name}, {f.lines} lines){' [main]' if f.is_main_file else ''}"
            for path, f in sorted(project_files.items())
        )
        prompt = PROMPT_TEMPLATES["file_selection"].format(request=request, file_list=file_list)
        try:
            candidates = self._parse_candidates(
                extract_json(self.oracle.complete(PROMPT_TEMPLATES["system"], prompt)),
                project_files,
            )
        except OracleError as e:
            logger.warning(f"File selection oracle failed: {e}")
            candidates = []

        if not candidates:
            candidates = self.fallback_selection(request, project_files)

        candidates.sort(key=lambda c: c.relevance_score, reverse=True)
        selected = candidates[:self.config["max_full_file_targets"]]
        logger.info(f"Full-file targets: {[c.file_path for c in selected]}")
        return selected

    def _parse_candidates(self, payload, project_files: Dict[str, ProjectFile]) -> List[FileCandidate]:
        if isinstance(payload, dict):
            payload = payload.get("files") or payload.get("targets")
        if not isinstance(payload, list):
            return []

        candidates = []
        for item in payload:
            if not isinstance(item, dict):
                continue
            path = item.get("filePath") or item.get("file_path")
            if path not in project_files:
                logger.debug(f"File selection named unknown file {path}")
                continue
            try:
                score = int(item.get("relevanceScore", item.get("relevance_score", 50)))
            except (TypeError, ValueError):
                score = 50
            priority = item.get("priority", "medium")
            candidates.append(FileCandidate(
                file_path=path,
                relevance_score=max(0, min(100, score)),
                reasoning=str(item.get("reasoning", "")),
                change_type=str(item.get("changeType", item.get("change_type", "modify"))),
                priority=priority if priority in ("high", "medium", "low") else "medium",
            ))
        return candidates

    def fallback_selection(self, request: str, project_files: Dict[str, ProjectFile]) -> List[FileCandidate]:
        """Score files by request wording; fall back to the main file."""
        ui_change = bool(_UI_CHANGE.search(request))
        nav_change = bool(_NAV_CHANGE.search(request))
        functional_change = bool(_FUNCTIONAL_CHANGE.search(request))

        candidates = []
        for path, f in project_files.items():
            score = 0
            reasons = []
            if f.is_main_file:
                score += 30
                reasons.append("main file")
            if ui_change:
                if _LAYOUT_FILE.search(path):
                    score += 40
                    reasons.append("layout file for UI change")
                elif _MARKUP_FILE.search(path):
                    score += 20
                    reasons.append("markup file for UI change")
            if nav_change and _NAV_FILE.search(Path(path).name):
                score += 50
                reasons.append("navigation file")
            if functional_change and _COMPONENT_FILE.search(path):
                score += 30
                reasons.append("component for functional change")
            if _MARKUP_FILE.search(path):
                score += 10
            if score >= self.config["file_selection_threshold"]:
                candidates.append(FileCandidate(
                    file_path=path,
                    relevance_score=min(100, score),
                    reasoning=", ".join(reasons) or "markup file",
                    priority="high" if score >= 60 else "medium",
                ))

        if not candidates:
            main_file = find_main_file(project_files)
            if main_file is not None:
                candidates.append(FileCandidate(
                    file_path=main_file.relative_path,
                    relevance_score=50,
                    reasoning="emergency fallback to the main file",
                ))
        return candidates

    def regenerate(self, path: str, current_content: str, request: str, project_context: str = "") -> Optional[str]:
        """
        Returns:
            Complete new file body, or None when the oracle produced no code
        """
        prompt = PROMPT_TEMPLATES["full_file"].format(
            request=request,
            file_path=path,
            project_summary=project_context or "none",
            language=LANGUAGE_HINTS.get(Path(path).suffix, ""),
            content=current_content,
        )
        try:
            text = self.oracle.complete(PROMPT_TEMPLATES["system"], prompt)
        except OracleError as e:
            logger.warning(f"FullFileMutator: oracle failed for {path}: {e}")
            return None

        code = extract_code_block(text)
        if code is None:
            logger.warning(f"FullFileMutator: no code block in reply for {path}")
            return None
        return self._keep_trailing_newline(current_content, code)

    def regenerate_batch(
        self,
        files: List[ProjectFile],
        request: str,
        project_context: str = "",
    ) -> Dict[str, str]:
        """
        Rewrite several files in one call. Blocks without a recognised
        `// FILE:` header are dropped.
        """
        by_path = {f.relative_path: f for f in files}
        file_blocks = "\n".join(
            f"```{LANGUAGE_HINTS.get(Path(f.relative_path).suffix, '')}\n// FILE: {f.relative_path}\n{f.content}\n```"
            for f in files
        )
        prompt = PROMPT_TEMPLATES["full_file_batch"].format(
            request=request, project_summary=project_context or "none", file_blocks=file_blocks
        )
        try:
            text = self.oracle.complete(PROMPT_TEMPLATES["system"], prompt)
        except OracleError as e:
            logger.warning(f"FullFileMutator: batch oracle call failed: {e}")
            return {}

        results = {}
        for path, code in extract_file_blocks(text):
            if path in by_path:
                results[path] = self._keep_trailing_newline(by_path[path].content, code)
            else:
                logger.debug(f"FullFileMutator: dropping block for unknown path {path}")
        return results

    @staticmethod
    def _keep_trailing_newline(original: str, code: str) -> str:
        if original.endswith("\n") and not code.endswith("\n"):
            return code + "\n"
        return code
