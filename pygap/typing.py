"""Common types used across the codebase."""

from dataclasses import dataclass
from typing import List, NewType, Optional, Protocol, Set

CommitHash = NewType('CommitHash', str)

@dataclass
class CommitInfo:
    """One commit as listed by ``commits_between``."""
    hash: CommitHash
    message: str
    author: str = ""
    date: str = ""

@dataclass
class WorkingTreeStatus:
    """Working tree state."""
    clean: bool
    current: Optional[str] = None

class GitInterface(Protocol):
    """Raw git command runner."""
    def run_cmd(self, command: str, output: Optional[str] = None) -> str:
        """Run a git command and return its stdout."""
        ...

    def must_git(self, command: str, output: Optional[str] = None) -> str:
        """Run a git command, raising on failure."""
        ...

class VersionControlPort(Protocol):
    """Version control operations the stack logic needs.

    ``GitVersionControl`` implements this on top of a real repository; tests
    substitute an in-memory fake.
    """
    def current_branch(self) -> str:
        ...

    def status(self) -> WorkingTreeStatus:
        ...

    def branch_exists(self, name: str) -> bool:
        ...

    def create_and_checkout_branch(self, name: str, start_point: str) -> None:
        ...

    def checkout(self, name: str) -> None:
        ...

    def current_commit(self) -> CommitHash:
        ...

    def commits_between(self, frm: str, to: str) -> List[CommitInfo]:
        ...

    def rebase(self, onto: str, target: str) -> bool:
        """Rebase ``target`` onto ``onto``. False means it stopped on a conflict."""
        ...

    def rebase_continue(self) -> bool:
        """Continue a stopped rebase. False means conflicts remain."""
        ...

    def rebase_abort(self) -> None:
        ...

    def rebase_in_progress(self) -> bool:
        ...

    def push(self, branch: str, force: bool = False) -> bool:
        ...

    def fetch(self) -> None:
        ...

    def pull(self) -> None:
        ...

    def delete_branch(self, name: str, force: bool = False) -> None:
        ...

    def local_branches(self) -> List[str]:
        ...

    def remote_branches(self) -> Set[str]:
        ...

    def merge_base(self, a: str, b: str) -> Optional[CommitHash]:
        ...

    def is_ancestor(self, a: str, b: str) -> bool:
        ...

    def patch_identity_unmerged_count(self, ref: str, branch: str) -> int:
        ...

    def behind_count(self, local: str, remote: str) -> int:
        ...

    def remote_identity(self) -> Optional[str]:
        ...

    def git_dir(self) -> str:
        ...
