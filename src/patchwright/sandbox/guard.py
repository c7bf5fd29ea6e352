"""
PathSandbox: contain every filesystem access to an authorized subtree.

Validation never raises; it returns a SandboxValidation that callers treat
as skip/report. Writes compose validation, the suspicious-pattern deny-list,
directory creation and an atomic replace, and every attempt lands in the
audit log whatever its outcome.
"""

import os
import re
import shutil
import tempfile
from pathlib import Path
from typing import List, Optional, Sequence, Union

from patchwright.logging_config import logger
from patchwright.exceptions import SandboxViolation
from patchwright.schemas import AuditEntry, SandboxValidation, SandboxWriteResult, SuspicionCheck
from .config import SecurityLevel, get_security_level


WINDOWS_DRIVE = re.compile(r"^[A-Za-z]:")


class PathSandbox:
    """
    One sandbox per project root. Instances share no state.
    """

    def __init__(self, project_root: Union[str, Path], level: Union[str, SecurityLevel] = "strict"):
        self.level = get_security_level(level) if isinstance(level, str) else level
        self.project_root = Path(project_root).resolve()
        self.root = (self.project_root / self.level.root_subdir).resolve() if self.level.root_subdir else self.project_root
        self._root_prefix = self.level.root_subdir.strip("/")
        self._patterns = [(re.compile(p, re.IGNORECASE), reason) for p, reason in self.level.suspicious_patterns]
        self._audit: List[AuditEntry] = []

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate(self, path: Union[str, Path], kind: str = "file") -> SandboxValidation:
        """
        Resolve a path against the sandbox root and check it stays inside.

        Accepted forms: project-relative with the root prefix ("src/pages/A.tsx"),
        root-relative ("pages/A.tsx") and absolute paths under the root.

        Args:
            path: Candidate path
            kind: "file" applies the extension filter, "directory" skips it

        Returns:
            SandboxValidation with a project-relative normalized_path when valid
        """
        raw = str(path).replace("\\", "/").strip() if path is not None else ""
        if not raw:
            return self._reject(path, "Empty path", "invalid")
        if "\x00" in raw:
            return self._reject(path, "Path contains a NUL byte", "invalid")

        is_absolute = raw.startswith("/") or bool(WINDOWS_DRIVE.match(raw))
        if is_absolute:
            if WINDOWS_DRIVE.match(raw) and not os.path.isabs(raw):
                return self._reject(path, f"Absolute path {raw} is outside the sandbox root", "outside_root")
            candidate = Path(raw)
        elif self._root_prefix and (raw == self._root_prefix or raw.startswith(self._root_prefix + "/")):
            candidate = self.project_root / raw
        else:
            candidate = self.root / raw

        relative = Path(os.path.relpath(os.path.normpath(str(candidate)), str(self.root)))
        if ".." in relative.parts:
            if is_absolute:
                return self._reject(path, f"Absolute path {raw} is outside the sandbox root", "outside_root")
            return self._reject(path, f"Path traversal detected: {raw} resolves outside {self._root_label()}", "traversal")

        resolved = candidate.resolve()
        if resolved != self.root and self.root not in resolved.parents:
            return self._reject(path, f"{raw} resolves outside {self._root_label()}", "outside_root")

        parts = resolved.relative_to(self.root).parts
        if not self.allows_directory(parts[:-1] if kind == "file" else parts):
            return self._reject(
                path,
                f"Directory '{parts[0]}' is not allowed at security level '{self.level.name}'",
                "disallowed_directory",
            )

        if kind == "file" and self.level.allowed_extensions is not None and resolved != self.root:
            if resolved.suffix.lower() not in self.level.allowed_extensions:
                return self._reject(path, f"Extension '{resolved.suffix}' is not allowed", "disallowed_extension")

        return SandboxValidation(
            is_valid=True,
            normalized_path=resolved.relative_to(self.project_root).as_posix(),
            absolute_path=str(resolved),
        )

    def allows_directory(self, parts: Sequence[str]) -> bool:
        """Check root-relative directory parts against the subdirectory allow-list."""
        if self.level.allowed_subdirs is None or not parts:
            return True
        return parts[0] in self.level.allowed_subdirs

    def require_valid(self, path: Union[str, Path], kind: str = "file") -> SandboxValidation:
        """Like validate, but raise SandboxViolation on rejection."""
        result = self.validate(path, kind=kind)
        if not result.is_valid:
            raise SandboxViolation(str(path), result.error or "rejected", result.error_kind or "invalid")
        return result

    def detect_suspicious(self, path: Union[str, Path]) -> SuspicionCheck:
        """
        Independent deny-list check, applied even to structurally valid paths.
        """
        raw = str(path).replace("\\", "/")
        reasons = [reason for pattern, reason in self._patterns if pattern.search(raw)]
        return SuspicionCheck(is_suspicious=bool(reasons), reasons=reasons)

    # ------------------------------------------------------------------
    # I/O
    # ------------------------------------------------------------------

    def write(self, path: Union[str, Path], content: str) -> SandboxWriteResult:
        """
        Validate, deny-list check, create parents, then write atomically.

        No I/O happens unless both checks pass.
        """
        validation = self.validate(path)
        if not validation.is_valid:
            self._record("write", str(path), False, validation.error or "")
            logger.warning(f"Sandbox blocked write to {path}: {validation.error}")
            return SandboxWriteResult(success=False, error=validation.error)

        suspicion = self.detect_suspicious(path)
        if suspicion.is_suspicious:
            detail = f"Suspicious path: {', '.join(suspicion.reasons)}"
            self._record("write", str(path), False, detail)
            logger.warning(f"Sandbox blocked write to {path}: {detail}")
            return SandboxWriteResult(success=False, normalized_path=validation.normalized_path, error=detail)

        target = Path(validation.absolute_path)
        operation = "write" if target.exists() else "create"

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            self._atomic_write(target, content)
        except OSError as e:
            self._record(operation, validation.normalized_path, False, str(e))
            logger.error(f"Write failed for {validation.normalized_path}: {e}")
            return SandboxWriteResult(
                success=False,
                normalized_path=validation.normalized_path,
                absolute_path=validation.absolute_path,
                error=str(e),
            )

        self._record(operation, validation.normalized_path, True, f"{len(content)} chars")
        logger.info(f"Sandbox {operation}: {validation.normalized_path}")
        return SandboxWriteResult(
            success=True,
            normalized_path=validation.normalized_path,
            absolute_path=validation.absolute_path,
        )

    def read(self, path: Union[str, Path]) -> Optional[str]:
        """Read a file after validation. Returns None when rejected or unreadable."""
        validation = self.validate(path)
        if not validation.is_valid:
            self._record("read", str(path), False, validation.error or "")
            logger.warning(f"Sandbox blocked read of {path}: {validation.error}")
            return None

        try:
            with open(validation.absolute_path, "r", encoding="utf-8", newline="") as f:
                content = f.read()
        except (OSError, UnicodeDecodeError) as e:
            self._record("read", validation.normalized_path, False, str(e))
            logger.error(f"Read failed for {validation.normalized_path}: {e}")
            return None

        self._record("read", validation.normalized_path, True)
        return content

    def exists(self, path: Union[str, Path]) -> bool:
        validation = self.validate(path)
        return validation.is_valid and Path(validation.absolute_path).exists()

    def _atomic_write(self, target: Path, content: str) -> None:
        """
        Write file atomically using temp file + rename in the target directory.
        """
        existed = target.exists()
        fd, temp_path = tempfile.mkstemp(dir=str(target.parent), prefix=f".{target.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
                f.write(content)
            if existed:
                shutil.copymode(str(target), temp_path)
            else:
                os.chmod(temp_path, 0o644)
            os.replace(temp_path, str(target))
        except OSError:
            try:
                os.unlink(temp_path)
            except OSError:
                pass
            raise

    # ------------------------------------------------------------------
    # Audit
    # ------------------------------------------------------------------

    @property
    def audit_log(self) -> List[AuditEntry]:
        return list(self._audit)

    def clear_audit_log(self) -> None:
        self._audit.clear()

    def _record(self, operation: str, path: str, success: bool, detail: str = "") -> None:
        entry = AuditEntry(operation=operation, path=path, success=success, detail=detail)
        self._audit.append(entry)
        logger.debug(f"audit {operation} {path} success={success} {detail}".rstrip())

    def _reject(self, path, message: str, kind: str) -> SandboxValidation:
        return SandboxValidation(is_valid=False, error=message, error_kind=kind)

    def _root_label(self) -> str:
        return f"{self._root_prefix} folder" if self._root_prefix else "project root"
