"""Stacked branches workflow: the operations behind the gap commands."""

import sys
import time
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, TextIO

from ..cascade import CascadeOutcome, CascadeStateSlot, RebaseCascade
from ..config.models import GapConfig
from ..errors import ExternalCommandError, GapError, NotStagedError, PullRequestError
from ..git import ensure_clean_working_tree
from ..github import GitHubClient, PullRequest
from ..merged import MergeDetector, MergeReport
from ..pretty import print_header, render_tree
from ..stack import StackGraph, StackRecord
from ..typing import CommitInfo, VersionControlPort

logger = logging.getLogger(__name__)

# Callbacks the CLI plugs prompts into
PromptText = Callable[[str, str], str]
ChooseBranch = Callable[[List[str]], str]
Confirm = Callable[[str], bool]

@dataclass
class SubmitReport:
    pushed: List[str] = field(default_factory=list)
    push_failed: List[str] = field(default_factory=list)
    created: List[PullRequest] = field(default_factory=list)
    retargeted: List[PullRequest] = field(default_factory=list)
    unchanged: List[PullRequest] = field(default_factory=list)
    pr_failed: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.push_failed and not self.pr_failed

@dataclass
class SyncReport:
    behind: int = 0
    pulled: bool = False
    merge_report: Optional[MergeReport] = None
    deleted: List[str] = field(default_factory=list)
    delete_failed: List[str] = field(default_factory=list)
    stale: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.delete_failed

def default_stack_name() -> str:
    return f"stack-{int(time.time() * 1000)}"

class StackedBranches:
    """Stacked branches implementation."""

    def __init__(self, config: GapConfig, vc: VersionControlPort, graph: StackGraph,
                 github: Optional[GitHubClient] = None):
        """Initialize with config, version control port, stack graph and optional GitHub client."""
        self.config = config
        self.vc = vc
        self.graph = graph
        self.github = github
        self.output: TextIO = sys.stdout
        self.concurrency: int = config.tool.concurrency

    def say(self, text: str = "") -> None:
        print(text, file=self.output)

    def _require_stack(self, branch: str) -> StackRecord:
        stack = self.graph.find(branch)
        if stack is None:
            raise NotStagedError(branch)
        return stack

    def cascade(self) -> RebaseCascade:
        return RebaseCascade(self.vc, self.graph, CascadeStateSlot.for_repo(self.vc))

    def create_branch(self, name: str, stack_name: Optional[str] = None,
                      prompt_stack_name: Optional[PromptText] = None) -> StackRecord:
        """Create name on top of the current branch and record it in the current stack.

        When the current branch belongs to no stack, a new stack based on it is
        created first. Its name is stack_name, else whatever prompt_stack_name
        returns, else a generated ``stack-<epoch ms>``.
        """
        ensure_clean_working_tree(self.vc)
        current = self.vc.current_branch()
        if self.vc.branch_exists(name):
            raise GapError(f"Branch '{name}' already exists")

        stack = self.graph.find(current)
        if stack is None:
            self.say("No stack found. Creating a new stack...")
            default = default_stack_name()
            if not stack_name:
                stack_name = prompt_stack_name("Enter a name for the new stack", default) if prompt_stack_name else default
            stack = self.graph.create_stack(stack_name, current)

        self.vc.create_and_checkout_branch(name, current)
        stack = self.graph.add_branch(stack.name, name, parent=current)
        self.say(f"Created branch '{name}' on top of '{current}'")
        self.say(f"Stack: {stack.name}")
        self.say(f"Branches in stack: {' → '.join(stack.branches)}")
        return stack

    def _commits(self, parent: str, branch: str) -> Optional[List[CommitInfo]]:
        try:
            return self.vc.commits_between(parent, branch)
        except ExternalCommandError as e:
            logger.debug(f"Unable to list commits {parent}..{branch}: {e}")
            return None

    def _print_tree(self, stack: StackRecord, current: str, verbose: bool) -> None:
        tree = self.graph.build_tree(stack)
        for line in render_tree(tree, current, self._commits if verbose else None):
            self.say(line)

    def log(self, all_stacks: bool = False, verbose: bool = False) -> None:
        """Print the tree of the current stack, or of every stack."""
        current = self.vc.current_branch()
        if not all_stacks:
            stack = self._require_stack(current)
            print_header(f"Stack: {stack.name}", file=self.output)
            self.say(f"Base branch: {stack.base_branch}")
            self._print_tree(stack, current, verbose)
            return

        stacks = self.graph.list_stacks()
        if not stacks:
            self.say("No stacks found in this repository")
            return
        print_header("All stacks in this repository", file=self.output)
        for stack in stacks:
            self.say(f"📚 {stack.name}")
            self.say(f"   Base: {stack.base_branch}")
            self.say(f"   Created: {stack.created}")
            if not stack.branches:
                self.say("   (empty stack)")
            else:
                self._print_tree(stack, current, verbose)
            self.say()

    def up(self, choose: Optional[ChooseBranch] = None) -> Optional[str]:
        """Checkout a child of the current branch. Returns the new branch, None at a leaf."""
        ensure_clean_working_tree(self.vc)
        current = self.vc.current_branch()
        stack = self.graph.find(current)
        if stack is not None:
            stacks = [stack]
        else:
            # On a base branch: the first members of every stack built on it
            stacks = [s for s in self.graph.list_stacks() if s.base_branch == current]
            if not stacks:
                raise NotStagedError(current)
        owner: Dict[str, StackRecord] = {}
        for s in stacks:
            for child in s.children_of(current):
                owner.setdefault(child, s)
        children = list(owner)
        if not children:
            self.say("No child branches found, you are at a leaf branch")
            return None

        target = children[0]
        if len(children) > 1 and choose is not None:
            target = choose(children)
        self.vc.checkout(target)
        self.say(f"Switched to child branch '{target}'")
        self.say(f"Stack: {owner[target].name}")
        self.say(f"{current} → {target}")
        return target

    def down(self) -> Optional[str]:
        """Checkout the parent of the current branch. Returns the new branch."""
        ensure_clean_working_tree(self.vc)
        current = self.vc.current_branch()
        stack = self._require_stack(current)
        parent = stack.parent_of(current)
        if not parent or parent == current:
            self.say("No parent branch found, you are at the base of the stack")
            return None

        self.vc.checkout(parent)
        self.say(f"Switched to parent branch '{parent}'")
        self.say(f"Stack: {stack.name}")
        self.say(f"{current} → {parent}")
        return parent

    def modify(self) -> CascadeOutcome:
        return self.cascade().start()

    def modify_continue(self) -> CascadeOutcome:
        return self.cascade().resume()

    def modify_abort(self) -> CascadeOutcome:
        return self.cascade().abort()

    def default_title(self, parent: str, branch: str) -> str:
        """Subject of the oldest commit between parent and branch, else the branch name."""
        commits = self.vc.commits_between(parent, branch)
        if commits:
            return commits[-1].message
        return branch

    def submit(self, branch: Optional[str] = None, force: bool = False, no_push: bool = False,
               prompt_title: Optional[PromptText] = None) -> SubmitReport:
        """Push stack branches and open or retarget one pull request per branch."""
        if self.github is None:
            raise PullRequestError("No GitHub client configured")

        start = branch or self.vc.current_branch()
        stack = self._require_stack(start)
        branches = [branch] if branch else list(stack.branches)
        report = SubmitReport()
        if not branches:
            self.say("No branches to submit")
            return report

        print_header(f"Submitting {len(branches)} branch(es) from stack: {stack.name}", file=self.output)
        for name in branches:
            self.say(f"\n{name}:")
            if not no_push:
                if self.vc.push(name, force=force):
                    report.pushed.append(name)
                    self.say(f"  Pushed {name}")
                else:
                    report.push_failed.append(name)
                    self.say(f"  Failed to push {name}")
                    continue

            parent = stack.parent_of(name)
            try:
                pr = self.github.get_pull_request_for_branch(name)
                if pr is not None:
                    if self.github.update_base(pr, parent):
                        report.retargeted.append(pr)
                        self.say(f"  Retargeted {pr} onto {parent}")
                    else:
                        report.unchanged.append(pr)
                        self.say(f"  {pr} already targets {parent}")
                    continue

                title = self.default_title(parent, name)
                if prompt_title is not None:
                    title = prompt_title("PR title", title)
                body = self.github.format_body(name, stack.branches)
                pr = self.github.create_pull_request(name, parent, title, body)
                report.created.append(pr)
                self.say(f"  Created {pr}: {pr.url}")
            except PullRequestError as e:
                logger.error(f"{e}")
                report.pr_failed.append(name)

        return report

    def main_branch(self) -> str:
        """First configured trunk that exists locally, else the configured trunk."""
        local = set(self.vc.local_branches())
        for candidate in self.config.repo.trunk_branches:
            if candidate in local:
                return candidate
        return self.config.repo.trunk_branch

    def stale_branches(self) -> List[str]:
        """Stack branches present locally without a counterpart on the remote."""
        local = set(self.vc.local_branches())
        remote = self.vc.remote_branches()
        prefix = f"{self.config.repo.github_remote}/"
        stale: List[str] = []
        for stack in self.graph.list_stacks():
            for branch in stack.branches:
                if f"{prefix}{branch}" not in remote and branch in local and branch not in stale:
                    stale.append(branch)
        return stale

    def sync(self, delete_merged: bool = False, force: bool = False,
             confirm: Optional[Confirm] = None) -> SyncReport:
        """Fetch, pull when behind, prune merged branches and report stale ones.

        confirm is asked before pulling and before deleting; without it both
        happen. force skips the delete confirmation. Branches classified as
        merged are deleted with ``-D``: ``branch -d`` refuses squash-merged ones.
        """
        report = SyncReport()
        self.vc.fetch()
        self.graph.require_repo()
        current = self.vc.current_branch()
        remote = self.config.repo.github_remote

        report.behind = self.vc.behind_count(current, f"{remote}/{current}")
        if report.behind > 0:
            self.say(f"Current branch is {report.behind} commits behind {remote}")
            if confirm is None or confirm("Pull latest changes?"):
                self.vc.pull()
                report.pulled = True
                self.say("Pulled latest changes")
        else:
            self.say("Current branch is up to date")

        if delete_merged:
            main = self.main_branch()
            detector = MergeDetector(self.vc, self.config.repo.trunk_branches, self.concurrency)
            report.merge_report = detector.detect(main)
            merged = report.merge_report.merged
            if not merged:
                self.say("No merged branches to delete")
            else:
                self.say(f"\nFound {len(merged)} merged branches:")
                for name in merged:
                    self.say(f"  - {name}")
                if force or confirm is None or confirm("Delete these branches?"):
                    for name in merged:
                        try:
                            self.vc.delete_branch(name, force=True)
                        except ExternalCommandError as e:
                            logger.error(f"Failed to delete {name}: {e}")
                            report.delete_failed.append(name)
                            continue
                        self.graph.remove_branch(name)
                        report.deleted.append(name)
                        self.say(f"Deleted {name}")
                else:
                    self.say("Skipping branch deletion")

        report.stale = self.stale_branches()
        if report.stale:
            self.say(f"\nFound {len(report.stale)} branches without remote:")
            for name in report.stale:
                self.say(f"  - {name}")
            self.say("\nConsider pushing these branches or removing them from your stacks")
        return report
