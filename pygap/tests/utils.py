"""Shared utilities for pygap tests."""
import subprocess
from pathlib import Path
from typing import Optional, Union
import logging

logger = logging.getLogger(__name__)

def run_cmd(cmd: str, cwd: Optional[Union[str, Path]] = None, check: bool = True) -> str:
    """Run shell command and return output.

    Args:
        cmd: Command to run
        cwd: Working directory
        check: Whether to check return code

    Returns:
        str: Command output
    """
    logger.debug(f"Running command: {cmd}")
    result = subprocess.run(
        cmd, shell=True, check=check, cwd=cwd,
        capture_output=True, text=True
    )
    logger.debug(f"Command output: {result.stdout.strip()}")
    if result.stderr:
        logger.debug(f"Command stderr: {result.stderr.strip()}")
    return result.stdout.strip()

def commit_file(repo: Path, name: str, content: str, message: str) -> str:
    """Write name with content, commit it and return the new commit hash."""
    (repo / name).write_text(content)
    run_cmd(f"git add {name}", cwd=repo)
    run_cmd(f'git commit -q -m "{message}"', cwd=repo)
    return run_cmd("git rev-parse HEAD", cwd=repo)

def init_repo(path: Path, remote_url: str = "git@github.com:acme/widgets.git") -> Path:
    """Create a repository on branch main with one commit and an origin remote."""
    path.mkdir(parents=True, exist_ok=True)
    run_cmd("git init -q", cwd=path)
    run_cmd("git checkout -q -b main", cwd=path)
    run_cmd('git config user.email "test@example.com"', cwd=path)
    run_cmd('git config user.name "Test User"', cwd=path)
    run_cmd("git config commit.gpgsign false", cwd=path)
    run_cmd(f"git remote add origin {remote_url}", cwd=path)
    commit_file(path, "README.md", "# widgets\n", "Initial commit")
    return path
