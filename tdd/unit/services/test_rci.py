"""
Unit tests for Rci - per-branch CI trigger configuration.
"""
import pytest

from gmg.errors import NotFound
from gmg.services.rci import Rci, trigger_url
from tdd.shared.mocks import console_output


class TestTriggerUrl:
    """Tests for trigger_url()."""

    @pytest.mark.parametrize("base", [
        "https://ci.example.com",
        "https://ci.example.com/",
        "https://ci.example.com///",
    ])
    def test_strips_trailing_slashes(self, base):
        assert trigger_url(base, "build") == "https://ci.example.com/job/build/trigger"


class TestRci:
    """Tests for Rci.set()/unset()."""

    def test_set_stores_url_and_secret(self, env, make_repo):
        repo = make_repo("svc")
        url = Rci(repo).set("main", "https://ci.example.com/", "build", "s3cret")
        assert url == "https://ci.example.com/job/build/trigger"
        assert repo.get("hooks.branch.main.rci.url") == url
        assert repo.get("hooks.branch.main.rci.secret") == "s3cret"
        hooks = repo.metadata().branches["main"]
        assert hooks.rci_url == url
        assert hooks.protected is True
        assert "trigger URL: https://ci.example.com/job/build/trigger" in console_output(env.console)

    def test_unset_removes_both_keys(self, make_repo):
        repo = make_repo("svc")
        rci = Rci(repo)
        rci.set("dev", "https://ci", "job", "secret")
        rci.unset("dev")
        assert repo.get("hooks.branch.dev.rci.url") is None
        assert repo.get("hooks.branch.dev.rci.secret") is None

    def test_set_on_missing_repository(self, env):
        with pytest.raises(NotFound):
            Rci(env.repository("ghost")).set("main", "https://ci", "job", "secret")
