"""
Error taxonomy for gmg.

Every failure the tool reports to the operator derives from GmgError so the
CLI can print it and exit non-zero in one place.
"""


class GmgError(Exception):
    """Base exception for gmg errors."""
    pass


class ValidationFailure(GmgError):
    """Raised when a name or other input is rejected before any side effect."""
    pass


class NotFound(GmgError):
    """Raised when a repository or user does not exist."""
    pass


class AlreadyExists(GmgError):
    """Raised when creating something that is already there."""
    pass


class ExternalCommandFailure(GmgError):
    """
    Raised when a delegated host or git command exits non-zero.

    Attributes:
        args_list: The command that was run
        stdout: Captured standard output
        stderr: Captured standard error
        returncode: Process exit code
    """

    def __init__(self, args_list: list[str], stdout: str, stderr: str, returncode: int):
        self.args_list = list(args_list)
        self.stdout = stdout
        self.stderr = stderr
        self.returncode = returncode
        message = f"command failed: {' '.join(self.args_list)}"
        if stdout.strip():
            message += f"\n{stdout.rstrip()}"
        message += f"\nprocess exit code: {returncode}"
        super().__init__(message)


class CompensationFailure(GmgError):
    """Raised (and logged) when a saga's compensating action fails."""

    def __init__(self, saga: str, step: str, error: Exception):
        self.saga = saga
        self.step = step
        self.error = error
        super().__init__(f"{saga}: compensation for '{step}' failed: {error}")
