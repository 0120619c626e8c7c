"""In-memory test doubles for the version control port and PyGithub."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple, Union

from pygap.errors import ExternalCommandError
from pygap.typing import CommitHash, CommitInfo, WorkingTreeStatus

REMOTE_URL = "git@github.com:acme/widgets.git"


class FakeVersionControl:
    """VersionControlPort with scripted rebase outcomes.

    ``conflicts`` lists branches whose next rebase stops on a conflict,
    ``failures`` maps branches to the exception their rebase raises.
    A successful rebase of target onto X records X as an ancestor of target.
    """

    def __init__(self, git_dir: Union[str, Path], current: str = "main",
                 branches: Optional[List[str]] = None, remote: Optional[str] = REMOTE_URL) -> None:
        self._git_dir = str(git_dir)
        self.current = current
        self.branches: List[str] = list(branches or ["main"])
        self.remote = remote
        self.clean = True
        self.calls: List[str] = []

        self.conflicts: Set[str] = set()
        self.failures: Dict[str, Exception] = {}
        self.continue_conflicts = False
        self.rebasing: Optional[Tuple[str, str]] = None
        self.ancestors: Set[Tuple[str, str]] = set()

        self.merge_bases: Dict[str, Optional[str]] = {}
        self.unmerged_counts: Dict[str, int] = {}
        self.commits: Dict[Tuple[str, str], List[CommitInfo]] = {}
        self.remote_refs: Set[str] = set()
        self.push_failures: Set[str] = set()
        self.delete_failures: Set[str] = set()
        self.behind = 0

    def current_branch(self) -> str:
        return self.current

    def status(self) -> WorkingTreeStatus:
        return WorkingTreeStatus(clean=self.clean, current=self.current)

    def branch_exists(self, name: str) -> bool:
        return name in self.branches

    def create_and_checkout_branch(self, name: str, start_point: str) -> None:
        self.calls.append(f"checkout -b {name} {start_point}")
        self.branches.append(name)
        self.ancestors.add((start_point, name))
        self.current = name

    def checkout(self, name: str) -> None:
        self.calls.append(f"checkout {name}")
        if name not in self.branches:
            raise ExternalCommandError(f"pathspec '{name}' did not match", status=1, command=f"checkout {name}")
        self.current = name

    def current_commit(self) -> CommitHash:
        return CommitHash(f"{self.current}-head")

    def commits_between(self, frm: str, to: str) -> List[CommitInfo]:
        return list(self.commits.get((frm, to), []))

    def rebase(self, onto: str, target: str) -> bool:
        self.calls.append(f"rebase {onto} {target}")
        if target in self.failures:
            raise self.failures.pop(target)
        self.current = target
        if target in self.conflicts:
            self.conflicts.discard(target)
            self.rebasing = (onto, target)
            return False
        self.ancestors.add((onto, target))
        return True

    def rebase_continue(self) -> bool:
        self.calls.append("rebase --continue")
        if self.continue_conflicts:
            return False
        if self.rebasing is not None:
            self.ancestors.add(self.rebasing)
        self.rebasing = None
        return True

    def rebase_abort(self) -> None:
        self.calls.append("rebase --abort")
        self.rebasing = None

    def rebase_in_progress(self) -> bool:
        return self.rebasing is not None

    def push(self, branch: str, force: bool = False) -> bool:
        self.calls.append(f"push {branch}" + (" --force-with-lease" if force else ""))
        if branch in self.push_failures:
            return False
        self.remote_refs.add(f"origin/{branch}")
        return True

    def fetch(self) -> None:
        self.calls.append("fetch")

    def pull(self) -> None:
        self.calls.append("pull")
        self.behind = 0

    def delete_branch(self, name: str, force: bool = False) -> None:
        self.calls.append(f"branch {'-D' if force else '-d'} {name}")
        if name in self.delete_failures:
            raise ExternalCommandError(f"error: branch '{name}' not found", status=1)
        self.branches.remove(name)

    def local_branches(self) -> List[str]:
        return list(self.branches)

    def remote_branches(self) -> Set[str]:
        return set(self.remote_refs)

    def merge_base(self, a: str, b: str) -> Optional[CommitHash]:
        value = self.merge_bases.get(b, "base")
        return CommitHash(value) if value else None

    def is_ancestor(self, a: str, b: str) -> bool:
        return a == b or (a, b) in self.ancestors

    def patch_identity_unmerged_count(self, ref: str, branch: str) -> int:
        return self.unmerged_counts.get(branch, 1)

    def behind_count(self, local: str, remote: str) -> int:
        return self.behind

    def remote_identity(self) -> Optional[str]:
        return self.remote

    def git_dir(self) -> str:
        return self._git_dir


@dataclass
class FakeRef:
    ref: str


@dataclass
class FakePull:
    number: int
    title: str
    body: Optional[str]
    html_url: str
    base: FakeRef
    head: FakeRef
    edits: List[Dict[str, Optional[str]]] = field(default_factory=list)

    def edit(self, title: Optional[str] = None, body: Optional[str] = None,
             base: Optional[str] = None) -> None:
        self.edits.append({"title": title, "body": body, "base": base})
        if base is not None:
            self.base = FakeRef(base)


class FakeGitHubRepo:
    """GitHubRepoProtocol keeping pull requests in a list."""

    def __init__(self, owner: str = "acme") -> None:
        self.owner = owner
        self.pulls: List[FakePull] = []
        self.fail_create: Set[str] = set()

    def get_pull(self, number: int) -> FakePull:
        for pr in self.pulls:
            if pr.number == number:
                return pr
        raise LookupError(f"No pull request #{number}")

    def get_pulls(self, state: str = "open", head: str = "", base: str = "") -> List[FakePull]:
        result = []
        for pr in self.pulls:
            if head and f"{self.owner}:{pr.head.ref}" != head:
                continue
            if base and pr.base.ref != base:
                continue
            result.append(pr)
        return result

    def create_pull(self, title: str, body: str, base: str, head: str) -> FakePull:
        if head in self.fail_create:
            raise RuntimeError(f"Validation Failed: {head}")
        number = len(self.pulls) + 1
        pr = FakePull(number, title, body, f"https://github.com/acme/widgets/pull/{number}",
                      FakeRef(base), FakeRef(head))
        self.pulls.append(pr)
        return pr


class FakePyGithub:
    """PyGithubProtocol serving a single repository."""

    def __init__(self, repo: Optional[FakeGitHubRepo] = None) -> None:
        self.repo = repo or FakeGitHubRepo()
        self.requested: List[str] = []

    def get_repo(self, full_name_or_id: str) -> FakeGitHubRepo:
        self.requested.append(full_name_or_id)
        return self.repo
