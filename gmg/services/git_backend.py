"""
Version-control primitive.

Bare repository setup, the seed commit and branch listing go through dulwich;
maintenance (fsck, reflog expiry, gc) is delegated to the git executable.
"""
import logging
import time
from pathlib import Path

from dulwich.objects import Blob, Commit, Tree
from dulwich.repo import Repo as DulwichRepo

from gmg.services.shell import CommandResult, Shell

logger = logging.getLogger(__name__)

SEED_AUTHOR = "gmg <gmg@localhost>"


class GitBackend:
    """Git operations on bare repositories."""

    def __init__(self, shell: Shell):
        self.shell = shell

    def init_bare(self, path: Path, branch: str) -> None:
        """Initialize a group-shared bare repository with HEAD on `branch`."""
        path.mkdir(parents=True, exist_ok=True)
        repo = DulwichRepo.init_bare(str(path))
        try:
            repo.refs.set_symbolic_ref(b"HEAD", f"refs/heads/{branch}".encode())
            config = repo.get_config()
            config.set((b"core",), b"sharedRepository", b"group")
            config.write_to_path()
        finally:
            repo.close()

    def initial_commit(self, path: Path, branch: str, filename: str, content: str) -> str:
        """
        Write a single-file root commit straight into the object store.

        Returns:
            Hex SHA of the new commit
        """
        repo = DulwichRepo(str(path))
        try:
            blob = Blob.from_string(content.encode("utf-8"))
            tree = Tree()
            tree.add(filename.encode("utf-8"), 0o100644, blob.id)

            commit = Commit()
            commit.tree = tree.id
            commit.parents = []
            commit.author = commit.committer = SEED_AUTHOR.encode("utf-8")
            commit.commit_time = commit.author_time = int(time.time())
            commit.commit_timezone = commit.author_timezone = 0
            commit.encoding = b"UTF-8"
            commit.message = b"init\n"

            for obj in (blob, tree, commit):
                repo.object_store.add_object(obj)
            repo.refs[f"refs/heads/{branch}".encode()] = commit.id
            logger.debug(f"seed commit {commit.id.decode('ascii')[:8]} on {branch}")
            return commit.id.decode("ascii")
        finally:
            repo.close()

    def list_branches(self, path: Path) -> list[str]:
        repo = DulwichRepo(str(path))
        try:
            branches = [
                ref[len(b"refs/heads/"):].decode("utf-8")
                for ref in repo.get_refs()
                if ref.startswith(b"refs/heads/")
            ]
        finally:
            repo.close()
        return sorted(branches)

    def commit_count(self, path: Path, branch: str) -> int:
        """Count commits reachable from a branch, 0 if the branch is unborn."""
        repo = DulwichRepo(str(path))
        try:
            ref = f"refs/heads/{branch}".encode()
            refs = repo.get_refs()
            if ref not in refs:
                return 0
            return sum(1 for _ in repo.get_walker(include=[refs[ref]]))
        finally:
            repo.close()

    def fsck(self, path: Path) -> CommandResult:
        return self.shell.run(["git", "fsck"], cwd=path)

    def expire_reflogs(self, path: Path) -> CommandResult:
        return self.shell.run(["git", "reflog", "expire", "--expire=now", "--all"], cwd=path)

    def gc(self, path: Path) -> CommandResult:
        return self.shell.run(["git", "gc", "--aggressive", "--prune=now"], cwd=path)
