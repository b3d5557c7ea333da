"""
Environment bundle.

Carries settings and the collaborators every entity needs (shell, account
database, git backend, consoles). Repository and User objects are cheap
references created through `repository()` / `user()`.
"""
import shutil
from dataclasses import dataclass, field
from pathlib import Path

from rich.console import Console

from gmg.config import Settings
from gmg.errors import NotFound
from gmg.services.accounts import HostAccounts
from gmg.services.git_backend import GitBackend
from gmg.services.repository import Repository
from gmg.services.shell import Shell
from gmg.services.user import User


@dataclass
class Environment:
    settings: Settings
    shell: Shell
    accounts: HostAccounts
    git: GitBackend
    console: Console = field(default_factory=Console)
    err_console: Console = field(default_factory=lambda: Console(stderr=True))

    @classmethod
    def from_settings(cls, settings: Settings, console: Console | None = None,
                      err_console: Console | None = None) -> "Environment":
        console = console or Console()
        shell = Shell(console=console, verbose=settings.verbose)
        return cls(
            settings=settings,
            shell=shell,
            accounts=HostAccounts(shell),
            git=GitBackend(shell),
            console=console,
            err_console=err_console or Console(stderr=True),
        )

    def repository(self, name: str) -> Repository:
        return Repository.parse(name, self)

    def user(self, login: str) -> User:
        return User.parse(login, self)

    def catalog_path(self, login: str) -> Path:
        return self.settings.catalog_root / f"{login}.cgitrc"

    def login_shell(self) -> str:
        """Restricted shell for hosted accounts, looked up on PATH unless configured."""
        if self.settings.login_shell:
            return self.settings.login_shell
        found = shutil.which(self.settings.login_shell_name)
        if found is None:
            raise NotFound(f"{self.settings.login_shell_name} not found in PATH")
        return found
