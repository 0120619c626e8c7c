"""CLI entry point."""

import os
import sys
import click
import logging
from typing import Any, Dict, List, NoReturn, Optional, Tuple
from click import Context

from ...cascade import CascadeOutcome, CascadeStatus
from ...config import Config, default_config
from ...config.config_parser import parse_config, stacks_file_path
from ...errors import CascadeInProgressError, GapError, NoCascadeInProgressError, PullRequestError
from ...git import GitVersionControl, RealGit
from ...github import GitHubClient, find_github_token
from ...stack import StackGraph, StackStore
from ...stacked import StackedBranches

# Get module logger
logger = logging.getLogger(__name__)

def check(err: Exception) -> NoReturn:
    """Log the error and exit."""
    logger.error(f"{err}")
    sys.exit(1)

class AliasedGroup(click.Group):
    """Command group with support for aliases."""

    def __init__(self, name: Optional[str] = None, commands: Optional[Dict[str, click.Command]] = None, **attrs: Any) -> None:
        """Initialize with aliases map."""
        super().__init__(name, commands, **attrs)
        self.aliases: Dict[str, str] = {}

    def add_alias(self, alias: str, command: str) -> None:
        """Add an alias for a command."""
        self.aliases[alias] = command

    def get_command(self, ctx: Context, cmd_name: str) -> Optional[click.Command]:
        """Get a command by name, supporting aliases."""
        if cmd_name in self.aliases:
            cmd_name = self.aliases[cmd_name]
        return super().get_command(ctx, cmd_name)

@click.group(cls=AliasedGroup)
@click.pass_context
def cli(ctx: Context) -> None:
    """gap - stacked branches for Git."""
    ctx.obj = {}

def setup_git(directory: Optional[str] = None) -> Tuple[Config, RealGit, GitVersionControl, StackGraph]:
    """Setup git command, config and stack graph."""
    if directory:
        os.chdir(directory)

    git_cmd = RealGit(default_config())
    try:
        git_cmd.run_cmd("rev-parse --git-dir")
    except GapError as e:
        check(e)

    config = Config(parse_config(git_cmd))
    git_cmd = RealGit(config)
    vc = GitVersionControl(config, git_cmd)
    store = StackStore(stacks_file_path(config.user.gap_home))
    graph = StackGraph(config, store, vc)
    return config, git_cmd, vc, graph

def setup_github(config: Config) -> GitHubClient:
    """Create a GitHub client backed by PyGithub."""
    from github import Github
    from ...github.adapters import PyGithubAdapter

    token = find_github_token()
    if not token:
        raise PullRequestError("No GitHub token found. Set GITHUB_TOKEN or log in with 'gh auth login'")
    host = config.repo.github_host
    if host and host != "github.com":
        # GitHub Enterprise serves the REST API under /api/v3
        return GitHubClient(config, PyGithubAdapter(Github(token, base_url=f"https://{host}/api/v3")))
    return GitHubClient(config, PyGithubAdapter(Github(token)))

def setup_workflow(directory: Optional[str], verbose: int, with_github: bool = False) -> StackedBranches:
    from ... import setup_logging
    setup_logging(verbose)

    config, _, vc, graph = setup_git(directory)
    github = setup_github(config) if with_github else None
    return StackedBranches(config, vc, graph, github)

def prompt_text(message: str, default: str) -> str:
    return click.prompt(message, default=default)

def choose_branch(branches: List[str]) -> str:
    for i, name in enumerate(branches, 1):
        click.echo(f"  {i}. {name}")
    index = click.prompt("Multiple child branches found. Select one",
                         type=click.IntRange(1, len(branches)), default=1)
    return branches[index - 1]

def confirm(message: str) -> bool:
    return click.confirm(message, default=True)

def report_cascade(outcome: CascadeOutcome) -> None:
    """Print a cascade outcome, exiting non-zero when it paused."""
    if outcome.status == CascadeStatus.NOTHING_TO_DO:
        click.echo("No downstream branches to update")
    elif outcome.status == CascadeStatus.COMPLETED:
        click.echo(f"Updated {len(outcome.processed)} branches: {', '.join(outcome.processed)}")
    elif outcome.status == CascadeStatus.ABORTED:
        click.echo("Modify operation aborted")
        if outcome.paused_branch:
            click.echo(f"Rebase of {outcome.paused_branch} was aborted, it is still checked out")
    elif outcome.status == CascadeStatus.PAUSED:
        click.echo(f"Rebase conflict on {outcome.paused_branch}")
        if outcome.processed:
            click.echo(f"Already updated: {', '.join(outcome.processed)}")
        click.echo("Resolve the conflicts, stage the files, then run 'gap modify --continue'")
        click.echo("Or run 'gap modify --abort' to stop")
        sys.exit(1)

directory_option = click.option(
    '-C', '--directory', type=click.Path(exists=True, file_okay=False, dir_okay=True),
    help='Run as if gap was started in DIRECTORY instead of the current working directory')
verbose_option = click.option(
    '-v', '--verbose', count=True, help="Increase verbosity (can be used multiple times for more verbosity)")

@cli.command(name="create", help="Create a new branch on top of the current one in your stack")
@click.argument('branch_name', required=False)
@click.option('--stack', '-s', 'stack_name', help="Name of the new stack when the current branch is not stacked")
@directory_option
@verbose_option
def create(branch_name: Optional[str], stack_name: Optional[str], directory: Optional[str], verbose: int) -> None:
    """Create command."""
    try:
        sb = setup_workflow(directory, verbose)
        if not branch_name:
            branch_name = click.prompt("Enter branch name")
        if not branch_name or " " in branch_name:
            raise click.BadParameter("Branch name is required and cannot contain spaces")
        sb.create_branch(branch_name, stack_name, prompt_stack_name=prompt_text)
    except GapError as e:
        check(e)

@cli.command(name="log", help="Get a bird's eye view of your stack")
@click.option('--all', '-a', 'all_stacks', is_flag=True, help="Show all stacks in the repository")
@click.option('--commits', '-c', is_flag=True, help="List the commits of each branch")
@directory_option
@verbose_option
def log(all_stacks: bool, commits: bool, directory: Optional[str], verbose: int) -> None:
    """Log command."""
    try:
        sb = setup_workflow(directory, verbose)
        sb.log(all_stacks=all_stacks, verbose=commits)
    except GapError as e:
        check(e)

@cli.command(name="up", help="Switch to a child branch of the current branch")
@directory_option
@verbose_option
def up(directory: Optional[str], verbose: int) -> None:
    """Up command."""
    try:
        sb = setup_workflow(directory, verbose)
        sb.up(choose=choose_branch)
    except GapError as e:
        check(e)

@cli.command(name="down", help="Switch to the parent branch of the current branch")
@directory_option
@verbose_option
def down(directory: Optional[str], verbose: int) -> None:
    """Down command."""
    try:
        sb = setup_workflow(directory, verbose)
        sb.down()
    except GapError as e:
        check(e)

@cli.command(name="modify", help="Rebase every branch downstream of the current one")
@click.option('--continue', 'continue_', is_flag=True, help="Continue after resolving conflicts")
@click.option('--abort', is_flag=True, help="Abort the modify operation in progress")
@click.option('--status', 'show_status', is_flag=True, help="Show the modify operation in progress")
@click.option('--yes', '-y', is_flag=True, help="Don't ask for confirmation")
@directory_option
@verbose_option
def modify(continue_: bool, abort: bool, show_status: bool, yes: bool,
           directory: Optional[str], verbose: int) -> None:
    """Modify command."""
    if sum([continue_, abort, show_status]) > 1:
        raise click.UsageError("--continue, --abort and --status are mutually exclusive")
    try:
        sb = setup_workflow(directory, verbose)
        cascade = sb.cascade()
    except GapError as e:
        check(e)
    try:
        if show_status:
            state = cascade.status()
            if state is None:
                click.echo("No modify operation in progress")
                return
            click.echo(f"Stack: {state.stack_name}")
            click.echo(f"Started from: {state.current_branch}")
            click.echo(f"Processed: {', '.join(state.processed) or '(none)'}")
            if state.paused_branch:
                click.echo(f"Paused at: {state.paused_branch} ({state.pause_reason})")
            click.echo(f"Remaining: {', '.join(state.remaining()) or '(none)'}")
            return
        if abort:
            report_cascade(sb.modify_abort())
            return
        if continue_:
            report_cascade(sb.modify_continue())
            return

        downstream = cascade.plan()
        if downstream and not yes:
            click.echo(f"Branches to rebase: {', '.join(downstream)}")
            if not click.confirm("Continue?", default=True):
                return
        report_cascade(sb.modify())
    except GapError as e:
        logger.error(f"{e}")
        known = isinstance(e, (CascadeInProgressError, NoCascadeInProgressError))
        if not known and cascade.status() is not None:
            click.echo("Run 'gap modify --status' to inspect, '--continue' to retry or '--abort' to stop", err=True)
        sys.exit(1)

@cli.command(name="submit", help="Create or update pull requests for every branch in your stack")
@click.option('--branch', '-b', help="Submit only this branch")
@click.option('--force', '-f', is_flag=True, help="Force push branches (with lease)")
@click.option('--no-push', is_flag=True, help="Skip pushing branches to the remote")
@click.option('--yes', '-y', is_flag=True, help="Don't prompt for pull request titles")
@directory_option
@verbose_option
def submit(branch: Optional[str], force: bool, no_push: bool, yes: bool,
           directory: Optional[str], verbose: int) -> None:
    """Submit command."""
    try:
        sb = setup_workflow(directory, verbose, with_github=True)
        report = sb.submit(branch=branch, force=force, no_push=no_push,
                           prompt_title=None if yes else prompt_text)
    except GapError as e:
        check(e)
    if not report.ok:
        logger.error(f"Failed: {', '.join(report.push_failed + report.pr_failed)}")
        sys.exit(1)
    click.echo("Submission complete")

@cli.command(name="sync", help="Sync with the remote and clean up merged branches")
@click.option('--delete-merged', '-d', is_flag=True, help="Delete local branches that have been merged")
@click.option('--force', '-f', is_flag=True, help="Delete merged branches without confirmation")
@click.option('--yes', '-y', is_flag=True, help="Answer yes to every prompt")
@directory_option
@verbose_option
def sync(delete_merged: bool, force: bool, yes: bool, directory: Optional[str], verbose: int) -> None:
    """Sync command."""
    try:
        sb = setup_workflow(directory, verbose)
        report = sb.sync(delete_merged=delete_merged, force=force,
                         confirm=None if yes else confirm)
    except GapError as e:
        check(e)
    if not report.ok:
        logger.error(f"Failed to delete: {', '.join(report.delete_failed)}")
        sys.exit(1)
    click.echo("Sync complete")

ALIASES = {'c': 'create', 'l': 'log', 'u': 'up', 'd': 'down', 'm': 'modify', 's': 'submit'}

for alias, command in ALIASES.items():
    cli.add_alias(alias, command)

def main() -> None:
    """Main entry point."""
    cli(obj={})

if __name__ == "__main__":
    main()
