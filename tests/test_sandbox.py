"""
Tests for the path sandbox: validation, deny-list, atomic writes and audit.
"""

import os

import pytest

from patchwright.exceptions import ConfigError, SandboxViolation
from patchwright.sandbox import SANDBOX_LEVELS, PathSandbox, get_security_level


class TestValidation:
    """Test PathSandbox.validate() under the strict level."""

    def test_project_relative_path(self, react_project):
        """Paths with the src/ prefix resolve against the project root."""
        sandbox = PathSandbox(react_project, "strict")
        result = sandbox.validate("src/components/Header.tsx")

        assert result.is_valid
        assert result.normalized_path == "src/components/Header.tsx"
        assert result.absolute_path == str(sandbox.root / "components" / "Header.tsx")

    def test_root_relative_path(self, react_project):
        """Paths without the prefix resolve against the sandbox root."""
        sandbox = PathSandbox(react_project, "strict")
        assert sandbox.validate("components/Header.tsx").normalized_path == "src/components/Header.tsx"
        assert sandbox.validate("App.tsx").normalized_path == "src/App.tsx"

    def test_backslash_separators(self, react_project):
        """Windows separators are normalized before checking."""
        sandbox = PathSandbox(react_project, "strict")
        result = sandbox.validate("components\\Header.tsx")
        assert result.is_valid
        assert result.normalized_path == "src/components/Header.tsx"

    def test_parent_traversal_rejected(self, react_project):
        """../../etc/passwd is a traversal, with or without the prefix."""
        sandbox = PathSandbox(react_project, "strict")
        for path in ("../../etc/passwd", "src/../../etc/passwd", "components/../../../x.tsx"):
            result = sandbox.validate(path)
            assert not result.is_valid, path
            assert result.error_kind == "traversal"
            assert result.normalized_path is None

    def test_absolute_path_outside_root(self, react_project):
        """Absolute paths outside the root are rejected as outside_root."""
        sandbox = PathSandbox(react_project, "strict")
        result = sandbox.validate("/etc/passwd")
        assert not result.is_valid
        assert result.error_kind == "outside_root"

    def test_drive_letter_path(self, react_project):
        """A Windows drive path is never inside a POSIX sandbox."""
        sandbox = PathSandbox(react_project, "strict")
        result = sandbox.validate("C:/Windows/system32/evil.tsx")
        assert not result.is_valid
        assert result.error_kind == "outside_root"

    def test_absolute_path_inside_root(self, react_project):
        """Absolute paths under the root are accepted."""
        sandbox = PathSandbox(react_project, "strict")
        result = sandbox.validate(str(sandbox.root / "App.tsx"))
        assert result.is_valid
        assert result.normalized_path == "src/App.tsx"

    def test_symlink_escape(self, react_project, temp_dir):
        """A symlink inside the root that points outside is rejected."""
        outside = temp_dir / "outside"
        outside.mkdir()
        os.symlink(outside, react_project / "src" / "components" / "linked")

        sandbox = PathSandbox(react_project, "strict")
        result = sandbox.validate("components/linked/Evil.tsx")
        assert not result.is_valid
        assert result.error_kind == "outside_root"

    def test_disallowed_directory(self, react_project):
        """Strict mode only allows the listed first-level directories."""
        sandbox = PathSandbox(react_project, "strict")
        result = sandbox.validate("config/settings.ts")
        assert not result.is_valid
        assert result.error_kind == "disallowed_directory"

    def test_disallowed_extension(self, react_project):
        sandbox = PathSandbox(react_project, "strict")
        result = sandbox.validate("components/logo.png")
        assert not result.is_valid
        assert result.error_kind == "disallowed_extension"

    def test_directory_kind_skips_extension_check(self, react_project):
        sandbox = PathSandbox(react_project, "strict")
        assert sandbox.validate("components", kind="directory").is_valid

    def test_empty_and_nul_paths(self, react_project):
        sandbox = PathSandbox(react_project, "strict")
        assert sandbox.validate("").error_kind == "invalid"
        assert sandbox.validate("App\x00.tsx").error_kind == "invalid"

    def test_relaxed_level_uses_project_root(self, react_project):
        """Relaxed mode has the project root as its boundary and no allow-list."""
        sandbox = PathSandbox(react_project, "relaxed")
        assert sandbox.root == react_project.resolve()

        result = sandbox.validate("scripts/build.ts")
        assert result.is_valid
        assert result.normalized_path == "scripts/build.ts"
        assert sandbox.validate("../outside.ts").error_kind == "traversal"

    def test_require_valid_raises(self, react_project):
        sandbox = PathSandbox(react_project, "strict")
        with pytest.raises(SandboxViolation) as exc_info:
            sandbox.require_valid("../../etc/passwd")
        assert exc_info.value.kind == "traversal"


class TestSuspiciousPatterns:
    """Test the deny-list applied on top of structural validation."""

    @pytest.mark.parametrize("path", [
        "node_modules/react/index.js",
        "../secrets.ts",
        ".env.local",
        "package.json",
        "yarn.lock",
        ".git/config",
        "dist/bundle.js",
    ])
    def test_suspicious_paths(self, react_project, path):
        sandbox = PathSandbox(react_project, "relaxed")
        check = sandbox.detect_suspicious(path)
        assert check.is_suspicious
        assert check.reasons

    def test_strict_adds_tool_config(self, react_project):
        """Tool configuration files are only denied in strict mode."""
        assert PathSandbox(react_project, "strict").detect_suspicious("vite.config.ts").is_suspicious
        assert not PathSandbox(react_project, "relaxed").detect_suspicious("vite.config.ts").is_suspicious

    def test_ordinary_source_is_clean(self, react_project):
        sandbox = PathSandbox(react_project, "strict")
        assert not sandbox.detect_suspicious("components/Button.tsx").is_suspicious


class TestWrites:
    """Test sandboxed writes and the audit log."""

    def test_write_creates_parents(self, react_project):
        sandbox = PathSandbox(react_project, "strict")
        result = sandbox.write("hooks/useToggle.ts", "export const x = 1;\n")

        assert result.success
        assert result.normalized_path == "src/hooks/useToggle.ts"
        assert (react_project / "src" / "hooks" / "useToggle.ts").read_text() == "export const x = 1;\n"
        assert sandbox.audit_log[-1].operation == "create"

        sandbox.write("hooks/useToggle.ts", "export const x = 2;\n")
        assert sandbox.audit_log[-1].operation == "write"
        assert sandbox.audit_log[-1].success

    def test_traversal_write_touches_nothing(self, react_project, temp_dir):
        """A rejected write performs no I/O but is still audited."""
        sandbox = PathSandbox(react_project, "strict")
        result = sandbox.write("../../escaped.tsx", "boom")

        assert not result.success
        assert "traversal" in result.error.lower()
        assert not (temp_dir / "escaped.tsx").exists()
        entry = sandbox.audit_log[-1]
        assert entry.operation == "write"
        assert not entry.success

    def test_suspicious_write_blocked(self, react_project):
        """Structurally valid but denied paths are not written."""
        sandbox = PathSandbox(react_project, "relaxed")
        original = (react_project / "package.json").read_text()

        result = sandbox.write("package.json", "{}")
        assert not result.success
        assert "Package manifest" in result.error
        assert (react_project / "package.json").read_text() == original

    def test_write_leaves_no_temp_files(self, react_project):
        sandbox = PathSandbox(react_project, "strict")
        sandbox.write("components/Header.tsx", "export default () => null;\n")
        leftovers = [p for p in (react_project / "src" / "components").iterdir() if p.name.endswith(".tmp")]
        assert leftovers == []

    def test_read_preserves_crlf(self, react_project):
        sandbox = PathSandbox(react_project, "strict")
        sandbox.write("components/Crlf.tsx", "line1\r\nline2\r\n")
        assert sandbox.read("components/Crlf.tsx") == "line1\r\nline2\r\n"

    def test_read_rejected_path(self, react_project):
        sandbox = PathSandbox(react_project, "strict")
        assert sandbox.read("../package.json") is None
        assert sandbox.audit_log[-1].operation == "read"
        assert not sandbox.audit_log[-1].success

    def test_sandboxes_are_independent(self, react_project):
        """Audit logs are per instance."""
        first = PathSandbox(react_project, "strict")
        second = PathSandbox(react_project, "strict")
        first.write("components/A.tsx", "a\n")
        assert len(first.audit_log) == 1
        assert second.audit_log == []


class TestSecurityLevels:

    def test_known_levels(self):
        assert set(SANDBOX_LEVELS) == {"strict", "relaxed"}
        assert get_security_level("STRICT").root_subdir == "src"

    def test_unknown_level(self):
        with pytest.raises(ConfigError):
            get_security_level("paranoid")
