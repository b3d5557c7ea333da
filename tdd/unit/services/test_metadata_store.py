"""
Unit tests for the repository metadata store.

These tests verify:
- Dotted key parsing into section / subsection / name
- set/get/unset against a git-config file
- The typed view (protected branches, RCI settings, maintainers)
"""
from pathlib import Path

import pytest

from gmg.errors import ValidationFailure
from gmg.services.metadata import (
    BranchField,
    MetadataKey,
    MetadataStore,
    UserField,
    branch_key,
    user_key,
)


@pytest.fixture
def config_path(tmp_path: Path) -> Path:
    path = tmp_path / "config"
    path.write_text("[core]\n\trepositoryformatversion = 0\n\tbare = true\n")
    return path


@pytest.fixture
def store(config_path) -> MetadataStore:
    return MetadataStore(config_path)


class TestMetadataKey:
    """Tests for MetadataKey.parse()."""

    def test_two_part_key(self):
        key = MetadataKey.parse("gmg.version")
        assert (key.section, key.subsection, key.name) == ("gmg", None, "version")

    def test_subsection_keeps_inner_dots(self):
        key = MetadataKey.parse("hooks.branch.main.rci.url")
        assert key.section == "hooks"
        assert key.subsection == "branch.main.rci"
        assert key.name == "url"

    def test_str_round_trip(self):
        assert str(MetadataKey.parse("hooks.user.alice.maintainer")) == "hooks.user.alice.maintainer"

    @pytest.mark.parametrize("key", ["version", ".version", "gmg.", "hooks..name"])
    def test_invalid_keys(self, key):
        with pytest.raises(ValidationFailure):
            MetadataKey.parse(key)

    def test_key_builders(self):
        assert branch_key("main", BranchField.PROTECTED) == "hooks.branch.main.protected"
        assert branch_key("dev", BranchField.RCI_SECRET) == "hooks.branch.dev.rci.secret"
        assert user_key("alice", UserField.MAINTAINER) == "hooks.user.alice.maintainer"


class TestMetadataStore:
    """Tests for MetadataStore get/set/unset."""

    def test_set_then_get(self, store):
        store.set("gmg.version", "0.1.0")
        assert store.get("gmg.version") == "0.1.0"

    def test_set_writes_git_config_syntax(self, store, config_path):
        store.set("hooks.branch.main.protected", "true")
        text = config_path.read_text()
        assert '[hooks "branch.main"]' in text
        assert "protected = true" in text

    def test_set_keeps_existing_sections(self, store, config_path):
        store.set("gmg.version", "1")
        assert "bare = true" in config_path.read_text()

    def test_set_twice_replaces_value(self, store, config_path):
        store.set("gmg.version", "1")
        store.set("gmg.version", "2")
        assert store.get("gmg.version") == "2"
        assert config_path.read_text().count("\tversion = ") == 1

    def test_values_keep_their_case(self, store):
        store.set(branch_key("main", BranchField.RCI_SECRET), "S3cReT")
        assert store.get("hooks.branch.main.rci.secret") == "S3cReT"
        assert store.load().branches["main"].rci_secret == "S3cReT"

    def test_get_missing_returns_none(self, store):
        assert store.get("hooks.branch.main.protected") is None

    def test_unset_removes_key(self, store):
        store.set("hooks.branch.main.protected", "true")
        assert store.unset("hooks.branch.main.protected") is True
        assert store.get("hooks.branch.main.protected") is None

    def test_unset_missing_is_noop(self, store, config_path):
        before = config_path.read_text()
        assert store.unset("hooks.branch.main.protected") is False
        assert config_path.read_text() == before


class TestRepoMetadata:
    """Tests for the typed view returned by load()."""

    def test_empty_config(self, store):
        meta = store.load()
        assert meta.version is None
        assert meta.branches == {}
        assert meta.users == {}

    def test_version_and_fast_forward_policy(self, store):
        store.set("gmg.version", "0.1.0")
        store.set("receive.denyNonFastForwards", "false")
        meta = store.load()
        assert meta.version == "0.1.0"
        assert meta.deny_non_fast_forwards is False

    def test_protected_branches_sorted(self, store):
        store.set(branch_key("main", BranchField.PROTECTED), "true")
        store.set(branch_key("develop", BranchField.PROTECTED), "true")
        store.set(branch_key("feature", BranchField.PROTECTED), "false")
        assert store.load().protected_branches() == ["develop", "main"]

    def test_rci_settings_attach_to_branch(self, store):
        store.set(branch_key("main", BranchField.RCI_URL), "https://ci/job/build/trigger")
        store.set(branch_key("main", BranchField.RCI_SECRET), "s3cret")
        hooks = store.load().branches["main"]
        assert hooks.rci_url == "https://ci/job/build/trigger"
        assert hooks.rci_secret == "s3cret"
        assert hooks.protected is False

    def test_maintainers_sorted(self, store):
        store.set(user_key("bob", UserField.MAINTAINER), "true")
        store.set(user_key("alice", UserField.MAINTAINER), "true")
        assert store.load().maintainers() == ["alice", "bob"]
