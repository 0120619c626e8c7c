"""GitHub interfaces and implementation."""

import os
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Protocol, runtime_checkable

import yaml

from ..config.models import GapConfig
from ..errors import PullRequestError

# Get module logger
logger = logging.getLogger(__name__)

@dataclass
class PullRequest:
    """Pull request info."""
    number: int
    head_ref: str
    base_ref: str
    title: str = ""
    body: str = ""
    url: str = ""

    def __str__(self) -> str:
        """Convert to string."""
        return f"PR #{self.number} - {self.title}"

# Define protocols for GitHub objects
@runtime_checkable
class GitHubRefProtocol(Protocol):
    """Protocol for GitHub ref objects (base/head references)."""
    @property
    def ref(self) -> str:
        """Get the ref name (e.g., 'main', 'feature-branch')."""
        ...

@runtime_checkable
class GitHubPullRequestProtocol(Protocol):
    """Protocol for GitHub pull request objects (real or fake)."""
    @property
    def number(self) -> int:
        """Get the PR number."""
        ...

    @property
    def title(self) -> str:
        """Get the PR title."""
        ...

    @property
    def body(self) -> Optional[str]:
        """Get the PR body."""
        ...

    @property
    def html_url(self) -> str:
        """Get the PR web url."""
        ...

    @property
    def base(self) -> GitHubRefProtocol:
        """Get the base reference."""
        ...

    @property
    def head(self) -> GitHubRefProtocol:
        """Get the head reference."""
        ...

    def edit(self, title: Optional[str] = None, body: Optional[str] = None,
             base: Optional[str] = None) -> None:
        """Edit the pull request."""
        ...

@runtime_checkable
class GitHubRepoProtocol(Protocol):
    """Protocol for GitHub repository objects (real or fake)."""
    def get_pull(self, number: int) -> GitHubPullRequestProtocol:
        """Get a pull request by number."""
        ...

    def get_pulls(self, state: str = "open", head: str = "", base: str = "") -> List[GitHubPullRequestProtocol]:
        """Get pull requests with optional filtering."""
        ...

    def create_pull(self, title: str, body: str, base: str, head: str) -> GitHubPullRequestProtocol:
        """Create a new pull request."""
        ...

@runtime_checkable
class PyGithubProtocol(Protocol):
    """Protocol for PyGithub implementations (real or fake)."""
    def get_repo(self, full_name_or_id: str) -> GitHubRepoProtocol:
        """Get a repository by full name."""
        ...

def find_github_token() -> Optional[str]:
    """Find GitHub token from env var or gh CLI config."""
    token = os.environ.get("GITHUB_TOKEN")
    if token:
        return token

    # Then try gh CLI config at ~/.config/gh/hosts.yml
    try:
        gh_config_path = Path.home() / ".config" / "gh" / "hosts.yml"
        if gh_config_path.exists():
            with open(gh_config_path, "r") as f:
                gh_config = yaml.safe_load(f)
                if gh_config and "github.com" in gh_config:
                    github_config: Dict[str, object] = gh_config["github.com"]
                    token = github_config.get("oauth_token")
                    if isinstance(token, str):
                        return token
    except (OSError, yaml.YAMLError) as e:
        logger.error(f"Error reading gh CLI config: {e}")
    return None

def _to_pull_request(pr: GitHubPullRequestProtocol) -> PullRequest:
    return PullRequest(
        number=pr.number,
        head_ref=pr.head.ref,
        base_ref=pr.base.ref,
        title=pr.title,
        body=pr.body or "",
        url=pr.html_url,
    )

class GitHubClient:
    """GitHub client implementation."""
    def __init__(self, config: GapConfig, github_client: PyGithubProtocol):
        """Initialize with config and GitHub client implementation (real or fake)."""
        self.config = config
        self.client = github_client
        self._repo: Optional[GitHubRepoProtocol] = None

    @property
    def repo(self) -> GitHubRepoProtocol:
        """Get GitHub repository."""
        if self._repo is None:
            owner = self.config.repo.github_repo_owner
            name = self.config.repo.github_repo_name
            if not owner or not name:
                raise PullRequestError("GitHub repository owner/name unknown - set repo.github_repo_owner/name in .gap.yaml")
            self._repo = self.client.get_repo(f"{owner}/{name}")
        return self._repo

    def get_pull_request_for_branch(self, branch_name: str) -> Optional[PullRequest]:
        """Get the open pull request whose head is branch_name."""
        owner = self.config.repo.github_repo_owner
        head_filter = f"{owner}:{branch_name}"
        logger.info(f"> github find pull request {head_filter}")
        try:
            pulls = list(self.repo.get_pulls(state='open', head=head_filter))
        except PullRequestError:
            raise
        except Exception as e:
            raise PullRequestError(f"Error getting PR for branch {branch_name}: {e}") from e

        logger.debug(f"GitHub API returned {len(pulls)} PRs for head filter {head_filter}")
        for pr in pulls:
            if pr.head.ref == branch_name:
                return _to_pull_request(pr)
        return None

    def create_pull_request(self, branch_name: str, base: str, title: str, body: str) -> PullRequest:
        """Create pull request of branch_name against base."""
        logger.info(f"> github create {branch_name} -> {base} : {title}")
        try:
            pr = self.repo.create_pull(title=title, body=body, base=base, head=branch_name)
        except PullRequestError:
            raise
        except Exception as e:
            raise PullRequestError(f"Failed to create PR for {branch_name}: {e}") from e
        return _to_pull_request(pr)

    def update_base(self, pr: PullRequest, base: str) -> bool:
        """Retarget pr at base. Returns False when it already targets base."""
        if pr.base_ref == base:
            return False
        logger.info(f"> github update #{pr.number} base {pr.base_ref} -> {base}")
        try:
            self.repo.get_pull(pr.number).edit(base=base)
        except PullRequestError:
            raise
        except Exception as e:
            raise PullRequestError(f"Failed to update PR #{pr.number}: {e}") from e
        pr.base_ref = base
        return True

    def format_stack_markdown(self, branch: str, stack: List[str]) -> str:
        """Format the stack's branches as markdown, top of the stack first."""
        lines: List[str] = []
        for name in reversed(stack):
            suffix = " ⬅" if name == branch else ""
            lines.append(f"- `{name}`{suffix}")
        return "\n".join(lines)

    def format_body(self, branch: str, stack: List[str], body: str = "") -> str:
        """Format PR body with stack info."""
        body = body.strip()
        if len(stack) <= 1:
            return body

        stack_markdown = self.format_stack_markdown(branch, stack)
        if not body:
            return f"**Stack**:\n{stack_markdown}"
        return f"{body}\n\n---\n\n**Stack**:\n{stack_markdown}"
