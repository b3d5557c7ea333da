"""
Repository metadata store.

The repository `config` file is the storage format (git-config syntax). In
code the hook metadata is handled as a typed mapping: branch hooks keyed by
branch name, user hooks keyed by login, each with an enumerated field set.
Textual keys such as ``hooks.branch.main.protected`` exist only at the
storage boundary.
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from dulwich.config import ConfigFile

from gmg.errors import ValidationFailure

logger = logging.getLogger(__name__)

HOOKS_SECTION = "hooks"
BRANCH_NAMESPACE = "branch"
USER_NAMESPACE = "user"


class BranchField(str, Enum):
    PROTECTED = "protected"
    RCI_URL = "rci.url"
    RCI_SECRET = "rci.secret"


class UserField(str, Enum):
    MAINTAINER = "maintainer"


def branch_key(branch: str, hook_field: BranchField) -> str:
    return f"{HOOKS_SECTION}.{BRANCH_NAMESPACE}.{branch}.{hook_field.value}"


def user_key(login: str, hook_field: UserField) -> str:
    return f"{HOOKS_SECTION}.{USER_NAMESPACE}.{login}.{hook_field.value}"


@dataclass(frozen=True)
class MetadataKey:
    """A git-config key split into section, optional subsection and name."""
    section: str
    subsection: str | None
    name: str

    @classmethod
    def parse(cls, key: str) -> "MetadataKey":
        if "." not in key:
            raise ValidationFailure(f"invalid config key (no section): {key}")
        section, rest = key.split(".", 1)
        if "." in rest:
            subsection, name = rest.rsplit(".", 1)
        else:
            subsection, name = None, rest
        if not section or not name or subsection == "":
            raise ValidationFailure(f"invalid config key: {key}")
        return cls(section, subsection, name)

    @property
    def config_section(self) -> tuple[bytes, ...]:
        if self.subsection is None:
            return (self.section.encode(),)
        return (self.section.encode(), self.subsection.encode())

    def __str__(self) -> str:
        if self.subsection is None:
            return f"{self.section}.{self.name}"
        return f"{self.section}.{self.subsection}.{self.name}"


@dataclass
class BranchHooks:
    protected: bool = False
    rci_url: str | None = None
    rci_secret: str | None = None


@dataclass
class UserHooks:
    maintainer: bool = False


@dataclass
class RepoMetadata:
    """Typed view of a repository's config file."""
    version: str | None = None
    deny_non_fast_forwards: bool | None = None
    branches: dict[str, BranchHooks] = field(default_factory=dict)
    users: dict[str, UserHooks] = field(default_factory=dict)

    def protected_branches(self) -> list[str]:
        return sorted(name for name, hooks in self.branches.items() if hooks.protected)

    def maintainers(self) -> list[str]:
        return sorted(login for login, hooks in self.users.items() if hooks.maintainer)

    @classmethod
    def from_config(cls, config: ConfigFile) -> "RepoMetadata":
        meta = cls()
        for section in config.sections():
            values = config[section]
            names = [section_part.decode("utf-8") for section_part in section]
            if names[0].lower() == "gmg" and len(names) == 1:
                meta.version = _lookup(values, "version")
            elif names[0].lower() == "receive" and len(names) == 1:
                deny = _lookup(values, "denyNonFastForwards")
                if deny is not None:
                    meta.deny_non_fast_forwards = _is_true(deny)
            elif names[0].lower() == HOOKS_SECTION and len(names) == 2:
                meta._add_hooks(names[1], values)
        return meta

    def _add_hooks(self, subsection: str, values) -> None:
        namespace, _, entity = subsection.partition(".")
        if not entity:
            return
        if namespace == BRANCH_NAMESPACE:
            if entity.endswith(".rci"):
                hooks = self.branches.setdefault(entity[:-len(".rci")], BranchHooks())
                hooks.rci_url = _lookup(values, "url")
                hooks.rci_secret = _lookup(values, "secret")
            else:
                hooks = self.branches.setdefault(entity, BranchHooks())
                hooks.protected = _is_true(_lookup(values, BranchField.PROTECTED.value))
        elif namespace == USER_NAMESPACE:
            hooks = self.users.setdefault(entity, UserHooks())
            hooks.maintainer = _is_true(_lookup(values, UserField.MAINTAINER.value))


def _lookup(values, name: str) -> str | None:
    try:
        value = values[name.encode()]
    except KeyError:
        return None
    return value.decode("utf-8")


def _is_true(value: str | None) -> bool:
    return value is not None and value.lower() in ("true", "yes", "on", "1")


class MetadataStore:
    """Reads and edits a repository `config` file."""

    def __init__(self, path: Path):
        self.path = path

    def _load_config(self) -> ConfigFile:
        return ConfigFile.from_path(str(self.path))

    def load(self) -> RepoMetadata:
        return RepoMetadata.from_config(self._load_config())

    def get(self, key: str) -> str | None:
        parsed = MetadataKey.parse(key)
        config = self._load_config()
        try:
            values = config[parsed.config_section]
        except KeyError:
            return None
        return _lookup(values, parsed.name)

    def set(self, key: str, value: str) -> None:
        parsed = MetadataKey.parse(key)
        config = self._load_config()
        self._drop(config, parsed)
        config.set(parsed.config_section, parsed.name.encode(), value.encode("utf-8"))
        config.write_to_path(str(self.path))
        logger.debug(f"{self.path}: {parsed} = {value}")

    def unset(self, key: str) -> bool:
        """Remove a key; returns False when it was not set."""
        parsed = MetadataKey.parse(key)
        config = self._load_config()
        if not self._drop(config, parsed):
            logger.warning(f"{self.path}: {parsed} is not set")
            return False
        config.write_to_path(str(self.path))
        logger.debug(f"{self.path}: unset {parsed}")
        return True

    @staticmethod
    def _drop(config: ConfigFile, key: MetadataKey) -> bool:
        try:
            values = config[key.config_section]
        except KeyError:
            return False
        name = key.name.encode()
        if name not in values:
            return False
        del values[name]
        return True
