from functools import lru_cache
from pathlib import Path
import os

from pydantic import BaseModel


class Settings(BaseModel):
    git_root: Path = Path("/git")
    home_root: Path = Path("/home")
    group_prefix: str = "g_"
    git_user: str = "git"
    main_branch: str = "main"
    protected_branches: list[str] = ["main"]
    login_shell_name: str = "git-shell"
    login_shell: str | None = None  # resolved from PATH when unset
    catalog_template: Path = Path("/etc/cgitrc")
    catalog_dir: Path | None = None  # defaults to <git_root>/.config/cgit
    name_max_length: int = 30
    verbose: bool = False

    @property
    def catalog_root(self) -> Path:
        if self.catalog_dir is not None:
            return self.catalog_dir
        return self.git_root / ".config" / "cgit"


def _split_list(value: str | None) -> list[str] | None:
    if not value:
        return None
    return [item.strip() for item in value.split(",") if item.strip()]


@lru_cache
def get_settings() -> Settings:
    overrides = {
        "git_root": os.getenv("GMG_GIT_ROOT"),
        "home_root": os.getenv("GMG_HOME_ROOT"),
        "group_prefix": os.getenv("GMG_GROUP_PREFIX"),
        "git_user": os.getenv("GMG_GIT_USER"),
        "main_branch": os.getenv("GMG_MAIN_BRANCH"),
        "protected_branches": _split_list(os.getenv("GMG_PROTECTED_BRANCHES")),
        "login_shell": os.getenv("GMG_LOGIN_SHELL"),
        "catalog_template": os.getenv("GMG_CATALOG_TEMPLATE"),
        "catalog_dir": os.getenv("GMG_CATALOG_DIR"),
    }
    return Settings(**{key: value for key, value in overrides.items() if value is not None})
