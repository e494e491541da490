"""Domain errors for devsession."""

from typing import Optional


class BootstrapError(RuntimeError):
    """Raised when the session bootstrap cannot continue."""

    def __init__(self, message: str, exit_code: int = 1):
        super().__init__(message)
        self.exit_code = exit_code


class StepFailedError(BootstrapError):
    """Raised when a wrapped tool exits non-zero; carries its exit status unchanged."""

    def __init__(self, message: str, step: Optional[str], returncode: int, stderr: str = ""):
        super().__init__(message, exit_code=returncode)
        self.step = step
        self.returncode = returncode
        self.stderr = stderr
