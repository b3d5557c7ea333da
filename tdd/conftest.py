"""
Root conftest.py - Shared fixtures for all test types.

This file is automatically loaded by pytest and provides:
- Settings pointing every root (git, home, catalogs) into a temp directory
- An Environment wired to the in-memory account database and recording shell
- Helpers to create users and repositories in one call
"""
import io
from pathlib import Path

import pytest
from rich.console import Console

from gmg.config import Settings
from gmg.services.environment import Environment
from gmg.services.git_backend import GitBackend
from tdd.shared.mocks import FakeAccounts, RecordingShell

SAMPLE_KEY = "ssh-ed25519 AAAAC3NzaC1lZDI1NTE5AAAAIAbCdEfGhIjKlMnOpQrStUvWxYz alice@laptop\n"


# -----------------------------------------------------------------------------
# Environment Fixtures
# -----------------------------------------------------------------------------

@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings rooted in a temp directory."""
    return Settings(
        git_root=tmp_path / "git",
        home_root=tmp_path / "home",
        catalog_template=tmp_path / "cgitrc",
        catalog_dir=tmp_path / "cgit",
        login_shell="/usr/bin/git-shell",
    )


@pytest.fixture
def shell() -> RecordingShell:
    return RecordingShell()


@pytest.fixture
def accounts() -> FakeAccounts:
    return FakeAccounts()


@pytest.fixture
def env(settings, shell, accounts) -> Environment:
    """Environment with fake identity database and captured console output."""
    return Environment(
        settings=settings,
        shell=shell,
        accounts=accounts,
        git=GitBackend(shell),
        console=Console(file=io.StringIO(), width=200),
        err_console=Console(file=io.StringIO(), width=200),
    )


# -----------------------------------------------------------------------------
# Entity Fixtures
# -----------------------------------------------------------------------------

@pytest.fixture
def key_file(tmp_path: Path) -> Path:
    path = tmp_path / "alice.pub"
    path.write_text(SAMPLE_KEY)
    return path


@pytest.fixture
def make_user(env, key_file):
    """Create a hosted user: make_user("alice")."""
    def _make(login: str, name: str = "Test User"):
        user = env.user(login)
        user.create(name, str(key_file))
        return user
    return _make


@pytest.fixture
def make_repo(env):
    """Create a repository: make_repo("team/svc", description="...")."""
    def _make(name: str, init_only: bool = False, description: str | None = None):
        repo = env.repository(name)
        repo.create(init_only=init_only, description=description)
        return repo
    return _make


# -----------------------------------------------------------------------------
# Marker-based fixtures
# -----------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _mark_test(request):
    """Automatically apply markers based on test location."""
    if "unit" in str(request.fspath):
        request.applymarker(pytest.mark.unit)
    elif "integration" in str(request.fspath):
        request.applymarker(pytest.mark.integration)
