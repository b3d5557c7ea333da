"""
gmg CLI - manage hosted git repositories and their users.

Usage:
    gmg repo create team/service -D "Service backend"
    gmg user create alice "Alice Smith" alice.pub
    gmg user grant alice team/service
    gmg repo rename team/service team/svc
"""

import functools
import logging
import sys

import click
from rich.console import Console
from rich.markup import escape

from gmg import __version__
from gmg.config import get_settings
from gmg.errors import GmgError
from gmg.services.environment import Environment
from gmg.services.rci import Rci
from gmg.services.repository import Repository
from gmg.services.user import User

console = Console()
err_console = Console(stderr=True)


def setup_logging(verbose: bool = False):
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )


def get_env() -> Environment:
    return click.get_current_context().obj


def handle_errors(fn):
    """Print gmg and filesystem errors and exit non-zero instead of dumping a traceback."""
    @functools.wraps(fn)
    def wrapper(*args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except (GmgError, OSError) as e:
            get_env().err_console.print(f"[red]Error:[/red] {escape(str(e))}")
            sys.exit(1)
    return wrapper


@click.group()
@click.version_option(version=__version__, prog_name="gmg")
@click.option("--verbose", "-v", is_flag=True, help="Echo every host command before running it")
@click.pass_context
def cli(ctx: click.Context, verbose: bool):
    """gmg - Git repository and user access manager."""
    if ctx.obj is None:
        setup_logging(verbose)
        settings = get_settings().model_copy(update={"verbose": verbose})
        ctx.obj = Environment.from_settings(settings, console=console, err_console=err_console)


# -----------------------------------------------------------------------------
# repo
# -----------------------------------------------------------------------------

@cli.group()
def repo():
    """Manage repositories."""
    pass


@repo.command()
@click.argument("repository")
@handle_errors
def archive(repository: str):
    """Drop the repository group and lock the directory."""
    get_env().repository(repository).archive()


@repo.command()
@click.argument("repository")
@handle_errors
def branches(repository: str):
    """List branches."""
    env = get_env()
    for branch in env.repository(repository).branches():
        env.console.print(f"[yellow]{escape(branch)}[/yellow]")


@repo.command()
@click.argument("repository")
@handle_errors
def check(repository: str):
    """Run an integrity check (advisory)."""
    get_env().repository(repository).check()


@repo.command()
@click.argument("repository")
@handle_errors
def cleanup(repository: str):
    """Expire reflogs and garbage-collect."""
    get_env().repository(repository).cleanup()


@repo.command()
@click.argument("repository")
@click.option("--init-only", is_flag=True, help="Skip the initial commit, description and protection")
@click.option("--description", "-D", default=None, help="Repository description")
@handle_errors
def create(repository: str, init_only: bool, description: str | None):
    """Create a repository."""
    get_env().repository(repository).create(init_only=init_only, description=description)


@repo.command()
@click.argument("repository")
@handle_errors
def destroy(repository: str):
    """Revoke all users and delete a repository."""
    get_env().repository(repository).destroy()


@repo.command()
@click.argument("repository")
@handle_errors
def fix(repository: str):
    """Normalize permissions, then clean up."""
    get_env().repository(repository).fix(full=True)


@repo.command()
@click.argument("repository")
@handle_errors
def info(repository: str):
    """Show description, branches, protection, users and maintainers."""
    get_env().repository(repository).print_info()


@repo.command("list")
@click.option("--short", "-s", is_flag=True, help="Names only")
@handle_errors
def list_repos(short: bool):
    """List all repositories."""
    Repository.list_all(get_env(), short=short)


@repo.command()
@click.argument("repository")
@click.argument("branch")
@handle_errors
def protect(repository: str, branch: str):
    """Mark a branch as protected."""
    env = get_env()
    target = env.repository(repository)
    target.protect(branch)
    env.console.print(
        f"Repository {target.colored} branch [yellow]{escape(branch)}[/yellow] "
        f"has been [bold green]protected[/bold green]"
    )


@repo.command()
@click.argument("repository")
@click.argument("branch")
@handle_errors
def unprotect(repository: str, branch: str):
    """Remove branch protection."""
    env = get_env()
    target = env.repository(repository)
    target.unprotect(branch)
    env.console.print(
        f"Repository {target.colored} branch [yellow]{escape(branch)}[/yellow] "
        f"has been [bold red]unprotected[/bold red]"
    )


@repo.command()
@click.argument("repository")
@click.argument("new_repository")
@handle_errors
def rename(repository: str, new_repository: str):
    """Rename a repository, keeping content and users."""
    env = get_env()
    source = env.repository(repository)
    target = env.repository(new_repository)
    source.rename(target)


@repo.command("set")
@click.argument("repository")
@click.argument("prop", metavar="PROPERTY", type=click.Choice(["description"]))
@click.argument("value")
@handle_errors
def set_property(repository: str, prop: str, value: str):
    """Set a repository property."""
    get_env().repository(repository).set_description(value)


@repo.command()
@click.argument("repository")
@handle_errors
def users(repository: str):
    """List users with access."""
    env = get_env()
    for user in env.repository(repository).users():
        env.console.print(user.colored)


@repo.group()
@click.argument("repository")
@click.argument("branch")
@click.pass_context
def rci(ctx: click.Context, repository: str, branch: str):
    """Configure RCI job triggers for a branch."""
    ctx.meta["gmg.rci"] = (repository, branch)


@rci.command("set")
@click.argument("rci_url")
@click.argument("rci_job")
@click.argument("rci_secret")
@click.pass_context
@handle_errors
def rci_set(ctx: click.Context, rci_url: str, rci_job: str, rci_secret: str):
    """Set the RCI server top URL, job and secret."""
    repository, branch = ctx.meta["gmg.rci"]
    Rci(get_env().repository(repository)).set(branch, rci_url, rci_job, rci_secret)


@rci.command("unset")
@click.pass_context
@handle_errors
def rci_unset(ctx: click.Context):
    """Remove the RCI trigger for the branch."""
    repository, branch = ctx.meta["gmg.rci"]
    Rci(get_env().repository(repository)).unset(branch)


# -----------------------------------------------------------------------------
# user
# -----------------------------------------------------------------------------

@cli.group()
def user():
    """Manage users."""
    pass


@user.command("create")
@click.argument("login")
@click.argument("name")
@click.argument("key_file")
@handle_errors
def user_create(login: str, name: str, key_file: str):
    """Create a user. NAME is the quoted first/last name, KEY_FILE '-' reads stdin."""
    get_env().user(login).create(name, key_file)


@user.command("destroy")
@click.argument("login")
@handle_errors
def user_destroy(login: str):
    """Delete a user account (the home directory is kept)."""
    get_env().user(login).destroy()


@user.command()
@click.argument("login")
@click.argument("repository")
@handle_errors
def grant(login: str, repository: str):
    """Grant a user access to a repository."""
    env = get_env()
    env.user(login).grant(env.repository(repository))


@user.command()
@click.argument("login")
@click.argument("repository")
@handle_errors
def revoke(login: str, repository: str):
    """Revoke a user's access to a repository."""
    env = get_env()
    env.user(login).revoke(env.repository(repository))


@user.command("list")
@click.option("--short", "-s", is_flag=True, help="Logins only")
@handle_errors
def list_users(short: bool):
    """List hosted users."""
    User.list_all(get_env(), short=short)


@user.command()
@click.argument("login")
@click.option("--short", "-s", is_flag=True, help="Names only")
@handle_errors
def repos(login: str, short: bool):
    """List repositories a user can access."""
    get_env().user(login).print_repos(short=short)


@user.command()
@click.argument("login")
@handle_errors
def update(login: str):
    """Regenerate the user's cgit catalog."""
    get_env().user(login).update()


# -----------------------------------------------------------------------------
# maintainer
# -----------------------------------------------------------------------------

@cli.group()
def maintainer():
    """Manage repository maintainers."""
    pass


@maintainer.command("set")
@click.argument("login")
@click.argument("repository")
@handle_errors
def maintainer_set(login: str, repository: str):
    """Make a user maintainer of a repository."""
    env = get_env()
    env.user(login).maintainer_set(env.repository(repository))


@maintainer.command("unset")
@click.argument("login")
@click.argument("repository")
@handle_errors
def maintainer_unset(login: str, repository: str):
    """Remove a user's maintainer flag."""
    env = get_env()
    env.user(login).maintainer_unset(env.repository(repository))


if __name__ == "__main__":
    cli()
