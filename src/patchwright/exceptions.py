# Custom exceptions for patchwright

class PatchwrightError(Exception):
    """Base exception for all application-specific errors."""
    pass


class SandboxViolation(PatchwrightError):
    """Raised when a path is escalated after failing sandbox validation."""
    def __init__(self, path: str, reason: str, kind: str = "invalid"):
        self.path = path
        self.reason = reason
        self.kind = kind
        super().__init__(f"Sandbox rejected '{path}': {reason}")


class OracleError(PatchwrightError):
    """Raised when the reasoning oracle cannot be reached or returns nothing usable."""
    def __init__(self, message: str, backend: str = "unknown"):
        self.backend = backend
        self.message = message
        super().__init__(f"[{backend}] {message}")


class FileWriteError(PatchwrightError):
    """Raised when a sandboxed write fails at the filesystem level."""
    def __init__(self, path: str, message: str):
        self.path = path
        self.message = message
        super().__init__(f"Failed to write {path}: {message}")


class ClassificationAmbiguity(PatchwrightError):
    """Raised when an oracle classification is below the confidence threshold."""
    def __init__(self, confidence: int, threshold: int):
        self.confidence = confidence
        self.threshold = threshold
        super().__init__(
            f"Classification confidence {confidence} is below threshold {threshold}"
        )


class SessionSetupError(PatchwrightError):
    """Raised when a modification session cannot be established."""
    def __init__(self, session_id: str, message: str):
        self.session_id = session_id
        self.message = message
        super().__init__(f"Session {session_id}: {message}")


class StaleParseError(PatchwrightError):
    """Raised when node ids from one parse pass are applied to another."""
    def __init__(self, path: str, message: str = "node ids belong to a different parse pass"):
        self.path = path
        super().__init__(f"{path}: {message}")


class ConfigError(PatchwrightError):
    """Raised for configuration-related problems."""
    pass


class CacheUnavailableError(PatchwrightError):
    """Raised by a cache backend that cannot serve requests."""
    pass
