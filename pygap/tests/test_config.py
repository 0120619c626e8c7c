"""Tests for configuration parsing."""

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from pygap.config import Config
from pygap.config.config_parser import (
    CONFIG_FILE_NAME, GAP_HOME_ENV, gap_home, parse_config, parse_remote_url, stacks_file_path,
)
from pygap.errors import ExternalCommandError


class TestParseRemoteUrl:
    """Owner and name extraction from remote urls."""

    @pytest.mark.parametrize("url", [
        "git@github.com:acme/widgets.git",
        "https://github.com/acme/widgets.git",
        "https://github.com/acme/widgets",
        "ssh://git@github.com/acme/widgets.git",
    ])
    def test_known_forms(self, url: str) -> None:
        assert parse_remote_url(url) == ("acme", "widgets")

    def test_unparseable(self) -> None:
        assert parse_remote_url("") is None
        assert parse_remote_url("/srv/git/widgets") is None


def git_for(top_level: Path, remote_url: str = "git@github.com:acme/widgets.git") -> MagicMock:
    git_mock = MagicMock()
    git_mock.must_git.side_effect = lambda cmd, *args, **kwargs: {
        "rev-parse --show-toplevel": str(top_level),
        "remote get-url origin": remote_url,
    }.get(cmd, "")
    return git_mock


class TestParseConfig:
    """Merging defaults, the repository file and the remote."""

    def test_defaults(self, tmp_path: Path) -> None:
        config = Config(parse_config(git_for(tmp_path)))
        assert config.repo.github_remote == "origin"
        assert config.repo.trunk_branch == "main"
        assert config.repo.trunk_branches == ["main", "master"]
        assert config.repo.github_repo_owner == "acme"
        assert config.repo.github_repo_name == "widgets"
        assert config.user.log_git_commands
        assert config.tool.concurrency == 0

    def test_repository_file_overrides(self, tmp_path: Path) -> None:
        (tmp_path / CONFIG_FILE_NAME).write_text(
            "repo:\n"
            "  trunk_branch: develop\n"
            "  github_repo_owner: other\n"
            "user:\n"
            "  log_git_commands: false\n"
            "tool:\n"
            "  gap:\n"
            "    concurrency: 4\n"
        )
        config = Config(parse_config(git_for(tmp_path)))
        assert config.repo.trunk_branch == "develop"
        assert config.repo.github_repo_owner == "other"
        assert config.repo.github_repo_name == "widgets"
        assert not config.user.log_git_commands
        assert config.tool.concurrency == 4

    def test_malformed_file_is_ignored(self, tmp_path: Path) -> None:
        (tmp_path / CONFIG_FILE_NAME).write_text("repo: [unclosed\n")
        config = Config(parse_config(git_for(tmp_path)))
        assert config.repo.trunk_branch == "main"

    def test_missing_remote(self, tmp_path: Path) -> None:
        git_mock = MagicMock()

        def respond(cmd: str, *args: object, **kwargs: object) -> str:
            if cmd.startswith("remote"):
                raise ExternalCommandError("No such remote 'origin'", status=2)
            return str(tmp_path)
        git_mock.must_git.side_effect = respond
        config = Config(parse_config(git_mock))
        assert config.repo.github_repo_owner is None


class TestGapHome:
    """Location of the stacks file."""

    def test_env_wins(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv(GAP_HOME_ENV, str(tmp_path / "env"))
        assert gap_home("~/configured") == tmp_path / "env"

    def test_configured(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv(GAP_HOME_ENV, raising=False)
        assert gap_home(str(tmp_path / "conf")) == tmp_path / "conf"

    def test_default(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv(GAP_HOME_ENV, raising=False)
        assert stacks_file_path() == Path.home() / ".gap" / "stacks.json"
