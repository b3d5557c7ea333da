"""
Repository entity - bare repository lifecycle and metadata.

A Repository is a reference, not a cache: every read goes back to the
filesystem or the OS group database, and every mutating method checks that
the repository exists first.

Access is represented by membership in the repository group
(``<group_prefix><name>``). The list returned by `users()` is the source of
truth that symlink farms and catalogs are rebuilt from.
"""
from __future__ import annotations

import logging
import os
import shutil
from dataclasses import dataclass
from functools import total_ordering
from pathlib import Path
from typing import TYPE_CHECKING

from rich.markup import escape

from gmg import __version__
from gmg.errors import AlreadyExists, ExternalCommandFailure, NotFound, ValidationFailure
from gmg.services.metadata import BranchField, MetadataStore, RepoMetadata, branch_key
from gmg.services.saga import Saga

if TYPE_CHECKING:
    from gmg.services.environment import Environment
    from gmg.services.user import User

logger = logging.getLogger(__name__)

REPO_SUFFIX = ".git"
SEED_FILE = "README.md"

# dulwich seeds `description` with exactly this; git appends "; edit this file ..."
NO_DESCRIPTION = "Unnamed repository"
DEFAULT_DESCRIPTION = "Unnamed repository; edit this file 'description' to name the repository.\n"

DIR_MODE = 0o2775
FILE_MODE = 0o664
ROOT_DIR_MODE = 0o2770
HOOKS_MODE = 0o755
META_FILE_MODE = 0o644
ARCHIVED_MODE = 0o700


def validate_name(name: str, max_length: int = 30) -> str:
    """
    Check a candidate repository name.

    Pure function; raises ValidationFailure describing the first rule broken.
    """
    if not name:
        raise ValidationFailure("repository name can not be empty")
    if name.startswith("/"):
        raise ValidationFailure("repository name can not start with /")
    segments = name.split("/")
    if any(segment.endswith(REPO_SUFFIX) for segment in segments):
        raise ValidationFailure(
            "repository name can not end with or contain .git in path chunks"
        )
    if any(segment in ("", ".", "..") for segment in segments):
        raise ValidationFailure("repository name can not contain empty, . or .. path chunks")
    if len(name) > max_length:
        raise ValidationFailure(f"repository name is longer than {max_length} chars")
    return name


@dataclass
class RepositoryInfo:
    """Aggregated view printed by `repo info`."""
    name: str
    description: str | None
    path: Path
    branches: list[str]
    protected_branches: list[str]
    users: list[str]
    maintainers: list[str]


@total_ordering
class Repository:
    """A hosted bare repository, addressed by its slash-segmented name."""

    def __init__(self, name: str, env: Environment):
        self.env = env
        self.name = name
        self.group = f"{env.settings.group_prefix}{name}"
        self.path = env.settings.git_root / f"{name}{REPO_SUFFIX}"

    @classmethod
    def parse(cls, name: str, env: Environment) -> Repository:
        return cls(validate_name(name, env.settings.name_max_length), env)

    def __repr__(self) -> str:
        return f"Repository({self.name!r})"

    def __eq__(self, other) -> bool:
        if not isinstance(other, Repository):
            return NotImplemented
        return self.name == other.name

    def __lt__(self, other: Repository) -> bool:
        return self.name < other.name

    def __hash__(self) -> int:
        return hash(self.name)

    @property
    def short_name(self) -> str:
        return self.name.rsplit("/", 1)[-1]

    @property
    def colored(self) -> str:
        return f"[bold cyan]{escape(self.name)}[/bold cyan]"

    @property
    def config_path(self) -> Path:
        return self.path / "config"

    @property
    def description_path(self) -> Path:
        return self.path / "description"

    # -------------------------------------------------------------------------
    # Existence
    # -------------------------------------------------------------------------

    def exists(self) -> bool:
        return self.path.exists()

    def ensure_exists(self) -> None:
        if not self.exists():
            raise NotFound(f"Repository doesn't exist: {self.name}")

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def create(self, init_only: bool = False, description: str | None = None) -> None:
        """
        Create the repository directory, group and bare repo.

        With `init_only` the repository is left without commits, description or
        branch protection (rename uses this before copying content over).
        """
        if self.exists():
            raise AlreadyExists(f"repository already exists: {self.name}")
        settings = self.env.settings

        self.path.mkdir(parents=True)
        self.env.accounts.group_add(self.group)
        self.env.git.init_bare(self.path, settings.main_branch)
        self.fix()
        self.set("gmg.version", __version__)
        self.set("receive.denyNonFastForwards", "false")
        if init_only:
            self.env.console.print(f"Repository initialized: {self.colored}")
            return

        self.env.git.initial_commit(
            self.path, settings.main_branch, SEED_FILE, f"# {self.short_name}"
        )
        # objects written by the seed commit need the shared permissions too
        self.fix()
        self.set_description(description)
        for branch in settings.protected_branches:
            self.protect(branch)
        self.env.console.print(f"Repository created: {self.colored}")

    def destroy(self) -> None:
        """Revoke every user, drop the group, then remove the directory tree."""
        self.ensure_exists()
        for user in self.users():
            user.revoke(self)
        self.env.accounts.group_delete(self.group)
        shutil.rmtree(self.path)
        self._prune_parents()
        self.env.console.print(f"Repository [bold red]destroyed[/bold red]: {self.colored}")

    def _prune_parents(self) -> None:
        root = self.env.settings.git_root
        for parent in Path(self.name).parents:
            if parent == Path("."):
                break
            try:
                (root / parent).rmdir()
            except OSError as e:
                logger.debug(f"Keeping {root / parent}: {e}")
                break

    def rename(self, target: Repository) -> None:
        """
        Move the repository to a new name.

        The target is created empty, receives a copy of the content and every
        user's access, and only then is this repository destroyed. If the copy
        fails the target is destroyed again and the error re-raised; this
        repository is left untouched. Failed cleanup steps are reported on
        the error console.
        """
        self.ensure_exists()
        saga = Saga(f"rename {self.name} -> {target.name}")
        saga.step(
            "create target",
            lambda: target.create(init_only=True),
            compensate=target.destroy,
        )
        saga.step("migrate content and access", lambda: self._replace_and_move(target))
        try:
            saga.run()
        except Exception:
            for failure in saga.compensation_failures:
                self.env.err_console.print(f"[red]{escape(str(failure))}[/red]")
            raise
        self.destroy()
        self.env.console.print(f"Repository {self.colored} renamed to {target.colored}")

    def _replace_and_move(self, target: Repository) -> None:
        root = self.env.settings.git_root.resolve()
        target_path = target.path.resolve()
        if target_path == root or not target_path.is_relative_to(root):
            raise ValidationFailure(f"invalid repository path: {target.path}")

        for child in target.path.iterdir():
            if child.is_dir() and not child.is_symlink():
                shutil.rmtree(child)
            else:
                child.unlink()
        shutil.copytree(self.path, target.path, symlinks=True, dirs_exist_ok=True)
        target.fix()
        for user in self.users():
            user.grant(target)

    def archive(self) -> None:
        """
        Drop the repository group and lock the directory to its owner.

        Users' symlinks and catalogs are left as they are; archiving cannot be
        undone by this tool.
        """
        self.ensure_exists()
        self.env.accounts.group_delete(self.group)
        os.chmod(self.path, ARCHIVED_MODE)
        self.env.console.print(f"Repository archived: {self.colored}")

    # -------------------------------------------------------------------------
    # Maintenance
    # -------------------------------------------------------------------------

    def fix(self, full: bool = False) -> None:
        """Normalize permissions and ownership; with `full`, also run cleanup()."""
        self.ensure_exists()
        settings = self.env.settings

        for dirpath, _dirnames, filenames in os.walk(self.path):
            os.chmod(dirpath, DIR_MODE)
            for filename in filenames:
                file_path = os.path.join(dirpath, filename)
                if not os.path.islink(file_path):
                    os.chmod(file_path, FILE_MODE)
        os.chmod(self.path, ROOT_DIR_MODE)

        hooks = self.path / "hooks"
        if hooks.is_dir():
            for dirpath, _dirnames, filenames in os.walk(hooks):
                os.chmod(dirpath, HOOKS_MODE)
                for filename in filenames:
                    os.chmod(os.path.join(dirpath, filename), HOOKS_MODE)

        self.env.accounts.chown(self.path, settings.git_user, self.group, recursive=True)
        for meta_file in (self.config_path, self.description_path):
            if meta_file.exists():
                self.env.accounts.chown(meta_file, "root", self.group)
                os.chmod(meta_file, META_FILE_MODE)

        if full:
            self.cleanup()

    def cleanup(self) -> None:
        self.ensure_exists()
        self.env.git.expire_reflogs(self.path)
        self.env.git.gc(self.path)
        self.fix()

    def check(self) -> bool:
        """Run an integrity check. Failures are reported, never raised."""
        self.ensure_exists()
        try:
            self.env.git.fsck(self.path)
        except ExternalCommandFailure as e:
            logger.error(f"Repository {self.name} failed to check: {e}")
            self.env.err_console.print(
                f"[red]Repository {escape(self.name)} failed to check[/red]\n{escape(str(e))}"
            )
            return False
        return True

    # -------------------------------------------------------------------------
    # Description and metadata
    # -------------------------------------------------------------------------

    def read_description(self) -> str | None:
        text = self.description_path.read_text().strip()
        if text == NO_DESCRIPTION or text.startswith(f"{NO_DESCRIPTION};"):
            return None
        return text

    def set_description(self, description: str | None) -> None:
        """Write the description and refresh every user's catalog."""
        self.ensure_exists()
        self.description_path.write_text(
            description if description is not None else DEFAULT_DESCRIPTION
        )
        for user in self.users():
            user.update_catalog()

    def metadata(self) -> RepoMetadata:
        self.ensure_exists()
        return MetadataStore(self.config_path).load()

    def get(self, key: str) -> str | None:
        self.ensure_exists()
        return MetadataStore(self.config_path).get(key)

    def set(self, key: str, value: str) -> None:
        self.ensure_exists()
        MetadataStore(self.config_path).set(key, value)
        os.chmod(self.config_path, META_FILE_MODE)

    def unset(self, key: str) -> None:
        self.ensure_exists()
        MetadataStore(self.config_path).unset(key)
        os.chmod(self.config_path, META_FILE_MODE)

    def protect(self, branch: str) -> None:
        self.set(branch_key(branch, BranchField.PROTECTED), "true")

    def unprotect(self, branch: str) -> None:
        self.unset(branch_key(branch, BranchField.PROTECTED))

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def branches(self) -> list[str]:
        self.ensure_exists()
        return self.env.git.list_branches(self.path)

    def users(self) -> list[User]:
        """Users with access, read from the repository group."""
        self.ensure_exists()
        members = self.env.accounts.group_members(self.group)
        return sorted(self.env.user(login) for login in members)

    def info(self) -> RepositoryInfo:
        meta = self.metadata()
        return RepositoryInfo(
            name=self.name,
            description=self.read_description(),
            path=self.path,
            branches=self.branches(),
            protected_branches=meta.protected_branches(),
            users=[user.login for user in self.users()],
            maintainers=meta.maintainers(),
        )

    def print_info(self) -> RepositoryInfo:
        info = self.info()
        console = self.env.console
        console.print(f"name: {self.colored}")
        if info.description is not None:
            console.print(f"description: {escape(info.description)}")
        console.print(f"path: [white]{info.path}[/white]")
        console.print("branches:")
        for branch in info.branches:
            console.print(f" [yellow]{escape(branch)}[/yellow]")
        console.print("protected branches:")
        for branch in info.protected_branches:
            console.print(f" [green]{escape(branch)}[/green]")
        console.print("users:")
        for login in info.users:
            console.print(f" [yellow]{escape(login)}[/yellow]")
        console.print("maintainers:")
        for login in info.maintainers:
            console.print(f" [green]{escape(login)}[/green]")
        return info

    @classmethod
    def all(cls, env: Environment) -> list[Repository]:
        """Every repository directory under the git root."""
        root = env.settings.git_root
        if not root.is_dir():
            return []
        names = []
        for dirpath, dirnames, _filenames in os.walk(root):
            for dirname in list(dirnames):
                if dirname.endswith(REPO_SUFFIX):
                    relative = (Path(dirpath) / dirname).relative_to(root)
                    names.append(str(relative)[:-len(REPO_SUFFIX)])
                    dirnames.remove(dirname)
        return sorted(env.repository(name) for name in names)

    @classmethod
    def list_all(cls, env: Environment, short: bool = False) -> list[Repository]:
        repositories = cls.all(env)
        print_repositories(env, repositories, short)
        return repositories


def print_repositories(env: Environment, repositories: list[Repository], short: bool) -> None:
    for repo in repositories:
        if short:
            env.console.print(repo.colored)
        else:
            env.console.print(f"{repo.colored} ({escape(repo.read_description() or '')})")
