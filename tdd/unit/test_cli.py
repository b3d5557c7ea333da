"""
Unit tests for the gmg command line.

Commands run through click's CliRunner against the test Environment, so
output lands on the captured consoles rather than the runner.
"""
import pytest
from click.testing import CliRunner

from gmg.cli import cli
from gmg.services import repository as repository_module
from tdd.shared.mocks import console_output


@pytest.fixture
def run(env):
    runner = CliRunner()

    def _run(*args, input=None):
        return runner.invoke(cli, list(args), obj=env, input=input)
    return _run


class TestRepoCommands:
    """gmg repo ..."""

    def test_create_and_info(self, run, env):
        result = run("repo", "create", "teamA/svc", "-D", "Service backend")
        assert result.exit_code == 0, result.output
        assert env.repository("teamA/svc").exists()

        result = run("repo", "info", "teamA/svc")
        assert result.exit_code == 0
        out = console_output(env.console)
        assert "description: Service backend" in out
        assert "protected branches:" in out

    def test_create_init_only(self, run, env):
        assert run("repo", "create", "svc", "--init-only").exit_code == 0
        assert env.repository("svc").branches() == []

    def test_list(self, run, env, make_repo):
        make_repo("b", description="Bee")
        make_repo("a")
        assert run("repo", "list").exit_code == 0
        out = console_output(env.console)
        assert "a ()" in out
        assert "b (Bee)" in out
        assert out.index("a ()") < out.index("b (Bee)")

    def test_invalid_name_exits_non_zero(self, run, env):
        result = run("repo", "create", "svc.git")
        assert result.exit_code == 1
        err = console_output(env.err_console)
        assert "Error:" in err
        assert ".git" in err

    def test_missing_repository(self, run, env):
        result = run("repo", "destroy", "ghost")
        assert result.exit_code == 1
        assert "Repository doesn't exist: ghost" in console_output(env.err_console)

    def test_protect_and_unprotect(self, run, env, make_repo):
        repo = make_repo("svc")
        assert run("repo", "protect", "svc", "dev").exit_code == 0
        assert "dev" in repo.metadata().protected_branches()
        assert run("repo", "unprotect", "svc", "dev").exit_code == 0
        assert "dev" not in repo.metadata().protected_branches()
        assert "unprotected" in console_output(env.console)

    def test_set_description(self, run, make_repo):
        repo = make_repo("svc")
        assert run("repo", "set", "svc", "description", "New text").exit_code == 0
        assert repo.read_description() == "New text"

    def test_set_unknown_property_rejected(self, run, make_repo):
        make_repo("svc")
        assert run("repo", "set", "svc", "owner", "x").exit_code == 2

    def test_rename(self, run, env, make_repo):
        make_repo("svc")
        assert run("repo", "rename", "svc", "svc2").exit_code == 0
        assert not env.repository("svc").exists()
        assert env.repository("svc2").exists()

    def test_rename_filesystem_failure_exits_non_zero(self, run, env, make_repo, monkeypatch):
        make_repo("svc")

        def broken_copytree(*args, **kwargs):
            raise OSError("disk full")

        monkeypatch.setattr(repository_module.shutil, "copytree", broken_copytree)
        result = run("repo", "rename", "svc", "svc2")

        assert result.exit_code == 1
        err = console_output(env.err_console)
        assert "Error:" in err
        assert "disk full" in err
        assert env.repository("svc").exists()
        assert not env.repository("svc2").exists()

    def test_rci_set_and_unset(self, run, env, make_repo):
        repo = make_repo("svc")
        result = run("repo", "rci", "svc", "main", "set", "https://ci/", "build", "s3cret")
        assert result.exit_code == 0, result.output
        assert "https://ci/job/build/trigger" in console_output(env.console)
        assert repo.get("hooks.branch.main.rci.secret") == "s3cret"

        assert run("repo", "rci", "svc", "main", "unset").exit_code == 0
        assert repo.get("hooks.branch.main.rci.url") is None

    def test_check_reports_failure(self, run, env, shell, make_repo):
        make_repo("svc")
        shell.respond("git", "fsck", stdout="broken link", returncode=1)
        assert run("repo", "check", "svc").exit_code == 0
        assert "failed to check" in console_output(env.err_console)


class TestUserCommands:
    """gmg user ... and gmg maintainer ..."""

    def test_create_grant_and_list(self, run, env, make_repo, key_file):
        make_repo("svc")
        assert run("user", "create", "alice", "Alice Smith", str(key_file)).exit_code == 0
        assert run("user", "grant", "alice", "svc").exit_code == 0
        assert run("user", "repos", "alice", "-s").exit_code == 0
        assert run("repo", "users", "svc").exit_code == 0
        out = console_output(env.console)
        assert "granted" in out
        assert env.user("alice").repos() == [env.repository("svc")]

    def test_create_reads_key_from_stdin(self, run, env):
        result = run("user", "create", "bob", "Bob", "-", input="ssh-rsa AAAA bob\n")
        assert result.exit_code == 0, result.output
        assert (env.user("bob").home / ".ssh" / "authorized_keys").read_text() == "ssh-rsa AAAA bob\n"

    def test_revoke(self, run, env, make_repo, make_user):
        repo = make_repo("svc")
        make_user("alice").grant(repo)
        assert run("user", "revoke", "alice", "svc").exit_code == 0
        assert repo.users() == []

    def test_list_short(self, run, env, make_user):
        make_user("alice", "Alice Smith")
        env.console.file.truncate(0)
        env.console.file.seek(0)
        assert run("user", "list", "-s").exit_code == 0
        assert console_output(env.console) == "alice\n"

    def test_destroy_unknown_user(self, run, env):
        assert run("user", "destroy", "ghost").exit_code == 1
        assert "User doesn't exist: ghost" in console_output(env.err_console)

    def test_maintainer_set_and_unset(self, run, make_repo, make_user):
        repo = make_repo("svc")
        make_user("alice")
        assert run("maintainer", "set", "alice", "svc").exit_code == 0
        assert repo.metadata().maintainers() == ["alice"]
        assert run("maintainer", "unset", "alice", "svc").exit_code == 0
        assert repo.metadata().maintainers() == []


class TestTopLevel:
    """Group-level options."""

    def test_version(self, run):
        result = run("--version")
        assert result.exit_code == 0
        assert "gmg" in result.output
