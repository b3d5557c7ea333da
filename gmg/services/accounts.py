"""
OS identity primitives.

Thin wrappers over the host's account tools. The identity database itself
is owned by the host; this module only issues commands and parses output.
"""
from pathlib import Path

from gmg.services.shell import Shell


class HostAccounts:
    """Manages OS users and groups through shadow-utils commands."""

    def __init__(self, shell: Shell):
        self.shell = shell

    # -- groups --------------------------------------------------------------

    def group_add(self, group: str) -> None:
        self.shell.run(["groupadd", group])

    def group_delete(self, group: str) -> None:
        self.shell.run(["groupdel", group])

    def group_members(self, group: str) -> list[str]:
        """Return member logins of a group, empty if the group is unknown."""
        result = self.shell.run_any(["getent", "group", group])
        members = []
        for line in result.stdout.splitlines():
            fields = line.split(":")
            if len(fields) < 4 or fields[0] != group:
                continue
            members.extend(member for member in fields[3].split(",") if member)
        return members

    def add_member(self, login: str, group: str) -> None:
        self.shell.run(["gpasswd", "-a", login, group])

    def remove_member(self, login: str, group: str) -> None:
        self.shell.run(["gpasswd", "-d", login, group])

    # -- users ---------------------------------------------------------------

    def user_exists(self, login: str) -> bool:
        return self.shell.run_any(["id", login]).ok

    def user_groups(self, login: str) -> list[str]:
        result = self.shell.run(["id", "-nG", login])
        return result.stdout.split()

    def user_add(self, login: str, shell: str, home: Path) -> None:
        self.shell.run(["useradd", "-m", "-d", str(home), "--shell", shell, login])

    def set_display_name(self, login: str, name: str) -> None:
        self.shell.run(["chfn", "-f", name, login])

    def user_delete(self, login: str) -> None:
        self.shell.run(["userdel", login])

    def users_with_shell(self, shell_name: str) -> list[tuple[str, str]]:
        """
        List accounts whose login shell is the given executable name.

        Returns:
            (login, display name) pairs in passwd order
        """
        result = self.shell.run_any(["getent", "passwd"])
        accounts = []
        for line in result.stdout.splitlines():
            fields = line.split(":")
            if len(fields) < 7:
                continue
            if Path(fields[6]).name != shell_name:
                continue
            accounts.append((fields[0], fields[4].split(",")[0]))
        return accounts

    # -- ownership -----------------------------------------------------------

    def chown(self, path: Path, owner: str, group: str | None = None,
              recursive: bool = False) -> None:
        ownership = f"{owner}:{group}" if group else owner
        args = ["chown"]
        if recursive:
            args.append("-R")
        args += [ownership, str(path)]
        self.shell.run(args)
