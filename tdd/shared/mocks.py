"""
Mock infrastructure for gmg testing.

Provides in-memory stand-ins for the host's identity database and for the
process runner, so repository and user operations can be tested without
root privileges or real accounts.
"""

import io
from dataclasses import dataclass
from pathlib import Path

from rich.console import Console

from gmg.errors import ExternalCommandFailure
from gmg.services.shell import CommandResult, Shell


# =============================================================================
# Mock Shell
# =============================================================================


class RecordingShell(Shell):
    """Shell that records commands and answers from canned responses."""

    def __init__(self, verbose: bool = False):
        super().__init__(console=Console(file=io.StringIO()), verbose=verbose)
        self.calls: list[list[str]] = []
        self._responses: list[tuple[tuple[str, ...], CommandResult]] = []

    def respond(self, *prefix: str, stdout: str = "", stderr: str = "", returncode: int = 0):
        """Answer any command starting with `prefix` with the given result."""
        self._responses.append((prefix, CommandResult(list(prefix), stdout, stderr, returncode)))

    def run(self, args, cwd=None, check=True) -> CommandResult:
        args = [str(arg) for arg in args]
        self.calls.append(args)
        result = CommandResult(args, "", "", 0)
        best = -1
        for prefix, canned in self._responses:
            if tuple(args[:len(prefix)]) == prefix and len(prefix) > best:
                best = len(prefix)
                result = CommandResult(args, canned.stdout, canned.stderr, canned.returncode)
        if check and not result.ok:
            raise ExternalCommandFailure(args, result.stdout, result.stderr, result.returncode)
        return result

    def commands(self, program: str) -> list[list[str]]:
        return [call for call in self.calls if call[0] == program]


# =============================================================================
# Mock Identity Database
# =============================================================================


@dataclass
class FakeAccount:
    """Mock OS account."""
    login: str
    shell: str
    home: Path
    display_name: str = ""


class FakeAccounts:
    """
    In-memory replacement for HostAccounts.

    Mirrors the failure behavior of the real tools: adding an existing group,
    deleting a missing one or removing a non-member raise
    ExternalCommandFailure.
    """

    def __init__(self):
        self.users: dict[str, FakeAccount] = {}
        self.groups: dict[str, list[str]] = {}
        self.chowns: list[tuple[Path, str, str | None, bool]] = []

    @staticmethod
    def _fail(args: list[str], message: str, code: int):
        raise ExternalCommandFailure(args, "", message, code)

    # -- groups --------------------------------------------------------------

    def group_add(self, group: str) -> None:
        if group in self.groups:
            self._fail(["groupadd", group], f"group '{group}' already exists", 9)
        self.groups[group] = []

    def group_delete(self, group: str) -> None:
        if group not in self.groups:
            self._fail(["groupdel", group], f"group '{group}' does not exist", 6)
        del self.groups[group]

    def group_members(self, group: str) -> list[str]:
        return list(self.groups.get(group, []))

    def add_member(self, login: str, group: str) -> None:
        if group not in self.groups or login not in self.users:
            self._fail(["gpasswd", "-a", login, group], "unknown user or group", 3)
        if login not in self.groups[group]:
            self.groups[group].append(login)

    def remove_member(self, login: str, group: str) -> None:
        if login not in self.groups.get(group, []):
            self._fail(["gpasswd", "-d", login, group], f"user '{login}' is not a member", 3)
        self.groups[group].remove(login)

    # -- users ---------------------------------------------------------------

    def user_exists(self, login: str) -> bool:
        return login in self.users

    def user_groups(self, login: str) -> list[str]:
        if login not in self.users:
            self._fail(["id", "-nG", login], f"id: '{login}': no such user", 1)
        return [login] + [group for group, members in self.groups.items() if login in members]

    def user_add(self, login: str, shell: str, home: Path) -> None:
        if login in self.users:
            self._fail(["useradd", login], f"user '{login}' already exists", 9)
        home.mkdir(parents=True, exist_ok=True)
        self.users[login] = FakeAccount(login=login, shell=shell, home=home)

    def set_display_name(self, login: str, name: str) -> None:
        self.users[login].display_name = name

    def user_delete(self, login: str) -> None:
        if login not in self.users:
            self._fail(["userdel", login], f"user '{login}' does not exist", 6)
        del self.users[login]
        for members in self.groups.values():
            if login in members:
                members.remove(login)

    def users_with_shell(self, shell_name: str) -> list[tuple[str, str]]:
        return [
            (account.login, account.display_name)
            for account in self.users.values()
            if Path(account.shell).name == shell_name
        ]

    # -- ownership -----------------------------------------------------------

    def chown(self, path: Path, owner: str, group: str | None = None,
              recursive: bool = False) -> None:
        self.chowns.append((Path(path), owner, group, recursive))


def console_output(console: Console) -> str:
    """Text printed to a captured console so far."""
    return console.file.getvalue()
