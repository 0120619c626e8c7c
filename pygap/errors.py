"""Error types raised by pygap.

Lookup and precondition failures are raised where they are detected and
reported by the CLI. Rebase conflicts inside a cascade are turned into a
paused outcome instead of an exception, see ``pygap.cascade``.
"""

from typing import Optional


class GapError(Exception):
    """Base class for all pygap errors."""


class DirtyTreeError(GapError):
    """Working tree has uncommitted changes."""

    def __init__(self, message: str = "Working tree is not clean. Please commit or stash your changes.") -> None:
        super().__init__(message)


class NotInRepoError(GapError):
    """No repository identity could be resolved from the remote."""

    def __init__(self, message: str = "Not in a git repository with an 'origin' remote") -> None:
        super().__init__(message)


class NotStagedError(GapError):
    """Branch is not a member of any stack."""

    def __init__(self, branch: str) -> None:
        self.branch = branch
        super().__init__(f"Branch '{branch}' is not part of any stack")


class StackNotFoundError(GapError):
    """Named stack does not exist in this repository."""

    def __init__(self, stack_name: str) -> None:
        self.stack_name = stack_name
        super().__init__(f"Stack {stack_name} not found")


class StackExistsError(GapError):
    """A stack with this name already exists in this repository."""

    def __init__(self, stack_name: str) -> None:
        self.stack_name = stack_name
        super().__init__(f"Stack {stack_name} already exists")


class InvalidParentError(GapError):
    """Parent edge would break the tree shape of a stack."""


class RebaseConflictError(GapError):
    """Rebase stopped on conflicts that are still unresolved."""

    def __init__(self, branch: Optional[str], message: Optional[str] = None) -> None:
        self.branch = branch
        super().__init__(message or f"Unresolved conflicts while rebasing {branch}")


class NoCascadeInProgressError(GapError):
    """Continue or abort was requested with no persisted cascade."""

    def __init__(self) -> None:
        super().__init__("No modify operation in progress")


class CascadeInProgressError(GapError):
    """A new cascade was requested while another one is paused."""

    def __init__(self, stack_name: str, branch: Optional[str]) -> None:
        self.stack_name = stack_name
        self.branch = branch
        where = f" at {branch}" if branch else ""
        super().__init__(
            f"A modify operation on stack {stack_name} is already in progress{where}. "
            "Run 'gap modify --continue' or 'gap modify --abort' first."
        )


class ExternalCommandError(GapError):
    """A git invocation failed for a reason other than a rebase conflict."""

    def __init__(self, message: str, status: Optional[int] = None, command: str = "") -> None:
        self.status = status
        self.command = command
        super().__init__(message)


class PersistenceError(GapError):
    """Writing persisted state failed."""


class PullRequestError(GapError):
    """The pull request service rejected a request."""
