"""
Security levels for the path sandbox.

Each level is a plain configuration block; PathSandbox applies the same
validation algorithm to whichever block it is given.
"""

from dataclasses import dataclass, field
from typing import FrozenSet, List, Optional, Tuple

from patchwright.exceptions import ConfigError


# (pattern, reason) pairs checked against the separator-normalized path
BASE_SUSPICIOUS_PATTERNS: List[Tuple[str, str]] = [
    (r"(^|/)\.\.(/|$)", "Parent directory traversal"),
    (r"^/", "Absolute path"),
    (r"^[A-Za-z]:", "Windows absolute path"),
    (r"(^|/)node_modules(/|$)", "Dependency directory"),
    (r"(^|/)\.git(/|$)", "Version control directory"),
    (r"(^|/)package\.json$", "Package manifest"),
    (r"(^|/)(yarn\.lock|package-lock\.json|pnpm-lock\.yaml)$", "Dependency lockfile"),
    (r"(^|/)\.env", "Environment file"),
    (r"(^|/)build/", "Build output directory"),
    (r"(^|/)dist/", "Build output directory"),
]

STRICT_EXTRA_PATTERNS: List[Tuple[str, str]] = [
    (r"(^|/)(vite|webpack|tailwind|postcss)\.config\.", "Tool configuration file"),
    (r"(^|/)tsconfig[^/]*\.json$", "TypeScript configuration file"),
]

ALLOWED_SUBDIRECTORIES = (
    "components",
    "pages",
    "hooks",
    "utils",
    "styles",
    "assets",
    "services",
    "types",
    "constants",
    "context",
)

SOURCE_EXTENSIONS = (".js", ".jsx", ".ts", ".tsx")


@dataclass(frozen=True)
class SecurityLevel:
    """
    Boundary and pattern set for one sandbox mode.

    root_subdir: sandbox root relative to the project root ("" = project root)
    allowed_subdirs: first-level directories under the root that may be touched,
                     None for no restriction
    allowed_extensions: permitted file suffixes, None for no restriction
    """
    name: str
    root_subdir: str
    allowed_subdirs: Optional[FrozenSet[str]]
    allowed_extensions: Optional[FrozenSet[str]]
    suspicious_patterns: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)


SANDBOX_LEVELS = {
    "strict": SecurityLevel(
        name="strict",
        root_subdir="src",
        allowed_subdirs=frozenset(ALLOWED_SUBDIRECTORIES),
        allowed_extensions=frozenset(SOURCE_EXTENSIONS + (".css", ".json", ".svg")),
        suspicious_patterns=tuple(BASE_SUSPICIOUS_PATTERNS + STRICT_EXTRA_PATTERNS),
    ),
    "relaxed": SecurityLevel(
        name="relaxed",
        root_subdir="",
        allowed_subdirs=None,
        allowed_extensions=None,
        suspicious_patterns=tuple(BASE_SUSPICIOUS_PATTERNS),
    ),
}


def get_security_level(name: str) -> SecurityLevel:
    try:
        return SANDBOX_LEVELS[name.lower()]
    except KeyError:
        raise ConfigError(
            f"Unknown security level '{name}'. Expected one of: {', '.join(SANDBOX_LEVELS)}"
        )
