"""
User entity - hosted accounts and their derived artifacts.

Group membership is the access graph. The symlink farm under the user's home
and the generated cgit catalog are projections of it: every operation that
changes membership rebuilds the catalog from scratch afterwards.
"""
from __future__ import annotations

import logging
import os
import sys
from functools import total_ordering
from pathlib import Path
from typing import TYPE_CHECKING, TextIO

from rich.console import Console
from rich.markup import escape

from gmg.errors import AlreadyExists, ExternalCommandFailure, NotFound, ValidationFailure
from gmg.services.catalog import read_template, render_catalog, write_catalog
from gmg.services.metadata import UserField, user_key
from gmg.services.repository import Repository, print_repositories

if TYPE_CHECKING:
    from gmg.services.environment import Environment

logger = logging.getLogger(__name__)

STDIN_KEY_SOURCE = "-"


def validate_login(login: str) -> str:
    if not login:
        raise ValidationFailure("login can not be empty")
    if "/" in login or ":" in login:
        raise ValidationFailure(f"login can not contain / or : ({login})")
    if login.startswith("-"):
        raise ValidationFailure(f"login can not start with - ({login})")
    return login


def read_public_key(source: str, console: Console, stdin: TextIO | None = None) -> str:
    """Read an SSH public key from a file, or from stdin when source is '-'."""
    if source == STDIN_KEY_SOURCE:
        console.print("Paste a public SSH key here, Ctrl+C to abort")
        return (stdin or sys.stdin).read()
    try:
        return Path(source).read_text()
    except FileNotFoundError:
        raise NotFound(f"SSH key file not found: {source}")


@total_ordering
class User:
    """A hosted account, addressed by login."""

    def __init__(self, login: str, env: Environment):
        self.env = env
        self.login = login
        self.home = env.settings.home_root / login

    @classmethod
    def parse(cls, login: str, env: Environment) -> User:
        return cls(validate_login(login), env)

    def __repr__(self) -> str:
        return f"User({self.login!r})"

    def __eq__(self, other) -> bool:
        if not isinstance(other, User):
            return NotImplemented
        return self.login == other.login

    def __lt__(self, other: User) -> bool:
        return self.login < other.login

    def __hash__(self) -> int:
        return hash(self.login)

    @property
    def colored(self) -> str:
        return f"[yellow]{escape(self.login)}[/yellow]"

    @property
    def catalog_path(self) -> Path:
        return self.env.catalog_path(self.login)

    def exists(self) -> bool:
        return self.env.accounts.user_exists(self.login)

    def ensure_exists(self) -> None:
        if not self.exists():
            raise NotFound(f"User doesn't exist: {self.login}")

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def create(self, display_name: str, key_source: str, stdin: TextIO | None = None) -> None:
        """
        Create the account with the restricted git shell and seed its SSH key.

        Args:
            display_name: First/last name stored in the GECOS field
            key_source: Path to a public key file, or '-' to read it from stdin
            stdin: Stream used instead of sys.stdin for '-'
        """
        if self.exists():
            raise AlreadyExists(f"user already exists: {self.login}")
        accounts = self.env.accounts
        login_shell = self.env.login_shell()
        key = read_public_key(key_source, self.env.console, stdin)

        accounts.user_add(self.login, login_shell, self.home)
        accounts.set_display_name(self.login, display_name)
        os.chmod(self.home, 0o700)
        ssh_dir = self.home / ".ssh"
        ssh_dir.mkdir(parents=True, exist_ok=True)
        (ssh_dir / "authorized_keys").write_text(key)
        os.chmod(ssh_dir, 0o700)
        accounts.chown(ssh_dir, self.login, recursive=True)
        self.update_catalog()
        self.env.console.print(f"User created: {self.colored}")

    def destroy(self) -> None:
        """Delete the account and its catalog. The home directory is kept."""
        self.ensure_exists()
        self.env.accounts.user_delete(self.login)
        self.catalog_path.unlink(missing_ok=True)
        console = self.env.console
        console.print(f"User [bold red]destroyed[/bold red]: {self.colored}")
        console.print(
            f"Remove user's home directory [bold blue]{escape(str(self.home))}[/bold blue] if not needed"
        )

    # -------------------------------------------------------------------------
    # Access graph
    # -------------------------------------------------------------------------

    def repos(self) -> list[Repository]:
        """Repositories this user can access, read from group membership."""
        self.ensure_exists()
        prefix = self.env.settings.group_prefix
        repositories = []
        for group in self.env.accounts.user_groups(self.login):
            if group.startswith(prefix) and len(group) > len(prefix):
                repositories.append(self.env.repository(group[len(prefix):]))
        return sorted(repositories)

    def update(self) -> None:
        self.update_catalog()

    def update_catalog(self) -> None:
        """Regenerate this user's cgit catalog from the current access graph."""
        template = read_template(self.env.settings.catalog_template)
        write_catalog(self.catalog_path, render_catalog(template, self.repos()))

    def grant(self, repo: Repository) -> None:
        self.ensure_exists()
        repo.ensure_exists()
        link = self.home / repo.name
        self._check_link_path(link, repo)
        self.env.accounts.add_member(self.login, repo.group)

        if "/" in repo.name and not link.parent.is_dir():
            link.parent.mkdir(parents=True)
            top = self.home / repo.name.split("/", 1)[0]
            self.env.accounts.chown(top, self.login, recursive=True)
        if link.is_symlink() or link.is_file():
            link.unlink()
        link.symlink_to(repo.path)

        self.update_catalog()
        self.env.console.print(
            f"User {self.colored} has been [bold green]granted[/bold green] access to {repo.colored}"
        )

    def _check_link_path(self, link: Path, repo: Repository) -> None:
        """
        Refuse a farm path that collides with another repository's link.

        Names such as ``team`` and ``team/svc`` are both valid but map to the
        same farm entry: one as a symlink, the other as a directory.
        """
        for parent in reversed(link.relative_to(self.home).parents[:-1]):
            folder = self.home / parent
            if folder.is_symlink() or (folder.exists() and not folder.is_dir()):
                raise AlreadyExists(
                    f"{folder} is a repository link, can not grant {repo.name} to {self.login}"
                )
        if link.is_dir() and not link.is_symlink():
            raise AlreadyExists(
                f"{link} is a directory of other repositories, can not grant {repo.name} to {self.login}"
            )

    def revoke(self, repo: Repository) -> None:
        """
        Remove access to a repository.

        Safe to repeat: a failing group removal (e.g. not a member any more) is
        logged and the farm and catalog are still cleaned up.
        """
        self.ensure_exists()
        try:
            self.env.accounts.remove_member(self.login, repo.group)
        except ExternalCommandFailure as e:
            logger.warning(f"Removing {self.login} from {repo.group} failed: {e}")

        link = self.home / repo.name
        if link.is_symlink():
            link.unlink()
        if "/" in repo.name:
            self._prune_farm(self.home / repo.name.split("/", 1)[0])

        self.update_catalog()
        self.env.console.print(
            f"User {self.colored} has been [bold red]revoked[/bold red] access to {repo.colored}"
        )

    def _prune_farm(self, top: Path) -> None:
        if top.is_symlink() or not top.is_dir():
            return
        for dirpath, _dirnames, _filenames in os.walk(top, topdown=False):
            try:
                os.rmdir(dirpath)
            except OSError as e:
                logger.debug(f"Keeping {dirpath}: {e}")

    def maintainer_set(self, repo: Repository) -> None:
        self.ensure_exists()
        repo.set(user_key(self.login, UserField.MAINTAINER), "true")
        self.env.console.print(
            f"User {self.colored} has been [bold green]set[/bold green] as maintainer in {repo.colored}"
        )

    def maintainer_unset(self, repo: Repository) -> None:
        repo.unset(user_key(self.login, UserField.MAINTAINER))
        self.env.console.print(
            f"User {self.colored} has been [bold red]unset[/bold red] as maintainer in {repo.colored}"
        )

    # -------------------------------------------------------------------------
    # Listing
    # -------------------------------------------------------------------------

    def print_repos(self, short: bool = False) -> list[Repository]:
        repositories = self.repos()
        print_repositories(self.env, repositories, short)
        return repositories

    @classmethod
    def all(cls, env: Environment) -> list[tuple[User, str]]:
        """Hosted accounts (login shell is the git shell) with display names."""
        accounts = env.accounts.users_with_shell(env.settings.login_shell_name)
        return sorted(
            ((env.user(login), name) for login, name in accounts),
            key=lambda pair: pair[0].login,
        )

    @classmethod
    def list_all(cls, env: Environment, short: bool = False) -> list[tuple[User, str]]:
        users = cls.all(env)
        for user, name in users:
            if short:
                env.console.print(user.colored)
            else:
                env.console.print(f"{user.colored} ({escape(name)})")
        return users
