"""
Filesystem sandbox.

Public API:
- PathSandbox: validate/detect_suspicious/write/read with an audit log
- SecurityLevel, SANDBOX_LEVELS, get_security_level
"""

from .config import SANDBOX_LEVELS, SecurityLevel, get_security_level
from .guard import PathSandbox

__all__ = ["PathSandbox", "SecurityLevel", "SANDBOX_LEVELS", "get_security_level"]
