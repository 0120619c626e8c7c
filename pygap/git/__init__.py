"""Git interfaces and implementation."""

import os
import shlex
import logging
from typing import List, Optional, Set
import git
from git.exc import GitCommandError, InvalidGitRepositoryError, NoSuchPathError
from ..errors import DirtyTreeError, ExternalCommandError, NotInRepoError
from ..typing import CommitHash, CommitInfo, GitInterface, VersionControlPort, WorkingTreeStatus
from ..config.models import GapConfig

# Get module logger
logger = logging.getLogger(__name__)

# Field separator for machine-readable log output
FIELD_SEP = "\x1f"

class RealGit:
    """Real Git implementation."""
    def __init__(self, config: GapConfig, repo_dir: Optional[str] = None):
        """Initialize with config and an optional repository directory (default: cwd)."""
        self.config: GapConfig = config
        self.repo_dir = repo_dir

    def run_cmd(self, command: str, output: Optional[str] = None) -> str:
        """Run git command."""
        cmd_str = command.strip()

        if self.config.tool.pretend and cmd_str.startswith('push'):
            # Pretend mode - just log
            logger.info(f"[PRETEND] > git {cmd_str}")
            return ""

        if self.config.user.log_git_commands:
            logger.info(f"> git {cmd_str}")
        else:
            logger.debug(f"> git {cmd_str}")
        try:
            repo = git.Repo(self.repo_dir or os.getcwd(), search_parent_directories=True)
            git_cmd = repo.git
            # Never block on an editor for rebase --continue and friends
            git_cmd.update_environment(GIT_EDITOR="true")
            cmd_parts = shlex.split(cmd_str)
            git_command = cmd_parts[0]
            git_args = cmd_parts[1:]
            method = getattr(git_cmd, git_command.replace('-', '_'))
            result = method(*git_args)
            return result if isinstance(result, str) else str(result)
        except GitCommandError as e:
            raise ExternalCommandError(f"Git command failed: {str(e)}", status=e.status, command=cmd_str)
        except (InvalidGitRepositoryError, NoSuchPathError):
            raise NotInRepoError("Not in a git repository")

    def must_git(self, command: str, output: Optional[str] = None) -> str:
        """Run git command, failing on error."""
        return self.run_cmd(command, output)

def ensure_clean_working_tree(vc: VersionControlPort) -> None:
    """Raise DirtyTreeError when the working tree has changes."""
    if not vc.status().clean:
        raise DirtyTreeError()

class GitVersionControl:
    """VersionControlPort backed by the git binary."""

    def __init__(self, config: GapConfig, git_cmd: GitInterface):
        self.config = config
        self.git_cmd = git_cmd

    @property
    def remote(self) -> str:
        return self.config.repo.github_remote

    def current_branch(self) -> str:
        return self.git_cmd.must_git("rev-parse --abbrev-ref HEAD").strip()

    def status(self) -> WorkingTreeStatus:
        porcelain = self.git_cmd.must_git("status --porcelain")
        return WorkingTreeStatus(clean=not porcelain.strip(), current=self.current_branch())

    def branch_exists(self, name: str) -> bool:
        try:
            self.git_cmd.must_git(f"show-ref --verify --quiet refs/heads/{name}")
            return True
        except ExternalCommandError:
            return False

    def create_and_checkout_branch(self, name: str, start_point: str) -> None:
        self.git_cmd.must_git(f"checkout -b {name} {start_point}")

    def checkout(self, name: str) -> None:
        self.git_cmd.must_git(f"checkout {name}")

    def current_commit(self) -> CommitHash:
        return CommitHash(self.git_cmd.must_git("rev-parse HEAD").strip())

    def commits_between(self, frm: str, to: str) -> List[CommitInfo]:
        """Commits reachable from ``to`` but not ``frm``, newest first."""
        fmt = "%H%x1f%s%x1f%an%x1f%ai"
        out = self.git_cmd.must_git(f"log --format={fmt} {frm}..{to}")
        commits: List[CommitInfo] = []
        for line in out.splitlines():
            if not line.strip():
                continue
            fields = line.split(FIELD_SEP)
            fields += [""] * (4 - len(fields))
            commits.append(CommitInfo(CommitHash(fields[0]), fields[1], fields[2], fields[3]))
        return commits

    def rebase(self, onto: str, target: str) -> bool:
        try:
            self.git_cmd.must_git(f"rebase {onto} {target}")
            return True
        except ExternalCommandError as e:
            if self.rebase_in_progress():
                logger.warning(f"Rebase of {target} onto {onto} stopped: {e}")
                return False
            raise

    def rebase_continue(self) -> bool:
        try:
            self.git_cmd.must_git("rebase --continue")
            return True
        except ExternalCommandError as e:
            if self.rebase_in_progress():
                logger.warning(f"Rebase still has conflicts: {e}")
                return False
            raise

    def rebase_abort(self) -> None:
        self.git_cmd.must_git("rebase --abort")

    def rebase_in_progress(self) -> bool:
        git_dir = self.git_dir()
        return any(os.path.isdir(os.path.join(git_dir, d)) for d in ("rebase-merge", "rebase-apply"))

    def push(self, branch: str, force: bool = False) -> bool:
        cmd = f"push {self.remote} {branch}"
        if force:
            cmd += " --force-with-lease"
        try:
            self.git_cmd.must_git(cmd)
            return True
        except ExternalCommandError as e:
            logger.error(f"Push failed: {e}")
            return False

    def fetch(self) -> None:
        self.git_cmd.must_git(f"fetch {self.remote}")

    def pull(self) -> None:
        self.git_cmd.must_git("pull")

    def delete_branch(self, name: str, force: bool = False) -> None:
        flag = "-D" if force else "-d"
        self.git_cmd.must_git(f"branch {flag} {name}")

    def local_branches(self) -> List[str]:
        out = self.git_cmd.must_git("branch --format=%(refname:short)")
        return [b.strip() for b in out.splitlines() if b.strip()]

    def remote_branches(self) -> Set[str]:
        out = self.git_cmd.must_git("branch -r --format=%(refname:short)")
        prefix = f"{self.remote}/"
        return {b.strip() for b in out.splitlines()
                if b.strip().startswith(prefix) and b.strip() != f"{prefix}HEAD"}

    def merge_base(self, a: str, b: str) -> Optional[CommitHash]:
        try:
            out = self.git_cmd.must_git(f"merge-base {a} {b}").strip()
        except ExternalCommandError as e:
            if e.status == 1:
                return None
            raise
        return CommitHash(out) if out else None

    def is_ancestor(self, a: str, b: str) -> bool:
        try:
            self.git_cmd.must_git(f"merge-base --is-ancestor {a} {b}")
            return True
        except ExternalCommandError as e:
            if e.status == 1:
                return False
            raise

    def patch_identity_unmerged_count(self, ref: str, branch: str) -> int:
        # --cherry-pick compares patches, so squashed content already on ref is not counted
        out = self.git_cmd.must_git(
            f"rev-list --count --cherry-pick --right-only --no-merges {ref}...{branch}")
        return int(out.strip())

    def behind_count(self, local: str, remote: str) -> int:
        try:
            out = self.git_cmd.must_git(f"rev-list --count {local}..{remote}")
            return int(out.strip() or 0)
        except (ExternalCommandError, ValueError) as e:
            logger.debug(f"Error getting behind count: {e}")
            return 0

    def remote_identity(self) -> Optional[str]:
        for cmd in (f"remote get-url {self.remote}", f"remote get-url --push {self.remote}"):
            try:
                url = self.git_cmd.must_git(cmd).strip()
            except (ExternalCommandError, NotInRepoError):
                continue
            if url:
                return url
        return None

    def git_dir(self) -> str:
        return self.git_cmd.must_git("rev-parse --absolute-git-dir").strip()
