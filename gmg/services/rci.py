"""
Per-branch CI trigger configuration.

Stores the trigger URL and shared secret a post-receive hook uses to start
an RCI job when the branch is pushed.
"""
from rich.markup import escape

from gmg.services.metadata import BranchField, branch_key
from gmg.services.repository import Repository

TRIGGER_PATH = "/job/{job}/trigger"


def trigger_url(base_url: str, job: str) -> str:
    """Build the job trigger URL from the RCI server's top URL."""
    return base_url.rstrip("/") + TRIGGER_PATH.format(job=job)


class Rci:
    """RCI hook settings of one repository."""

    def __init__(self, repository: Repository):
        self.repository = repository

    def set(self, branch: str, url: str, job: str, secret: str) -> str:
        trigger = trigger_url(url, job)
        self.repository.set(branch_key(branch, BranchField.RCI_URL), trigger)
        self.repository.set(branch_key(branch, BranchField.RCI_SECRET), secret)
        self.repository.env.console.print(
            f"RCI config [bold green]SET[/bold green] for {self.repository.colored} "
            f"branch [yellow]{escape(branch)}[/yellow], trigger URL: {escape(trigger)}"
        )
        return trigger

    def unset(self, branch: str) -> None:
        self.repository.unset(branch_key(branch, BranchField.RCI_URL))
        self.repository.unset(branch_key(branch, BranchField.RCI_SECRET))
        self.repository.env.console.print(
            f"RCI config [bold yellow]UNSET[/bold yellow] for {self.repository.colored} "
            f"branch [yellow]{escape(branch)}[/yellow]"
        )
