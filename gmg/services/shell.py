"""
Process execution primitive.

Runs host tools (groupadd, gpasswd, git, ...) with captured output. Commands
are always argument lists; nothing goes through a shell interpreter.
"""
import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path

from rich.console import Console
from rich.markup import escape

from gmg.errors import ExternalCommandFailure

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    """Captured result of a finished command."""
    args: list[str]
    stdout: str
    stderr: str
    returncode: int

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class Shell:
    """Runs commands, echoing them first when verbose."""

    def __init__(self, console: Console | None = None, verbose: bool = False):
        self.console = console or Console(stderr=True)
        self.verbose = verbose

    def run(self, args: list[str], cwd: Path | None = None, check: bool = True) -> CommandResult:
        """
        Run a command and capture its output.

        Args:
            args: Command and arguments
            cwd: Working directory for the command
            check: Raise ExternalCommandFailure on a non-zero exit code

        Returns:
            CommandResult with captured stdout/stderr
        """
        args = [str(arg) for arg in args]
        if self.verbose:
            self.console.print(f"[dim bold]> {escape(' '.join(args))}[/dim bold]")
        try:
            proc = subprocess.run(args, cwd=cwd, capture_output=True, text=True)
        except FileNotFoundError:
            result = CommandResult(args, "", f"{args[0]}: command not found", 127)
        else:
            result = CommandResult(args, proc.stdout, proc.stderr, proc.returncode)

        if check and not result.ok:
            if result.stderr.strip():
                logger.error(result.stderr.rstrip())
            raise ExternalCommandFailure(args, result.stdout, result.stderr, result.returncode)
        return result

    def run_any(self, args: list[str], cwd: Path | None = None) -> CommandResult:
        """Run a command, tolerating a non-zero exit code."""
        return self.run(args, cwd=cwd, check=False)
