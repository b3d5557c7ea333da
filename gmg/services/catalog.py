"""
cgit catalog generation.

Each hosted user gets a generated cgitrc listing exactly the repositories
they can access. The file is rebuilt from the global template on every call,
never patched.
"""
from pathlib import Path
from typing import Iterable, Protocol

REPO_LINE_PREFIX = "repo."


class CatalogEntry(Protocol):
    name: str
    path: Path

    def read_description(self) -> str | None: ...


def render_catalog(template: str, repositories: Iterable[CatalogEntry]) -> str:
    """Render the template with any `repo.*` lines replaced by one block per repository."""
    lines = [line for line in template.splitlines() if not line.startswith(REPO_LINE_PREFIX)]
    for repo in repositories:
        lines.append(f"repo.url={repo.name}")
        lines.append(f"repo.path={repo.path}")
        description = repo.read_description()
        if description is not None:
            lines.append(f"repo.desc={description}")
    lines.append("")
    return "\n".join(lines)


def read_template(path: Path) -> str:
    """Read the global cgitrc; a missing template renders as empty."""
    try:
        return path.read_text()
    except FileNotFoundError:
        return ""


def write_catalog(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)
