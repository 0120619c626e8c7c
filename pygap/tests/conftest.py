"""Configuration for pytest."""

from pathlib import Path

import pytest

from pygap.config import Config, default_config
from pygap.git import GitVersionControl, RealGit
from pygap.stack import StackGraph, StackStore
from pygap.tests.fakes import FakeVersionControl
from pygap.tests.utils import init_repo


@pytest.fixture
def config() -> Config:
    return default_config()


@pytest.fixture
def store(tmp_path: Path) -> StackStore:
    return StackStore(tmp_path / "gap-home" / "stacks.json")


@pytest.fixture
def vc(tmp_path: Path) -> FakeVersionControl:
    return FakeVersionControl(git_dir=tmp_path / "git-dir")


@pytest.fixture
def graph(config: Config, store: StackStore, vc: FakeVersionControl) -> StackGraph:
    return StackGraph(config, store, vc)


@pytest.fixture
def git_repo(tmp_path: Path) -> Path:
    """Throwaway repository on main with an origin remote."""
    return init_repo(tmp_path / "repo")


@pytest.fixture
def real_vc(config: Config, git_repo: Path) -> GitVersionControl:
    return GitVersionControl(config, RealGit(config, repo_dir=str(git_repo)))
