"""Tests for the GitHub client against an in-memory PyGithub double."""

import pytest

from pygap.config import Config
from pygap.errors import PullRequestError
from pygap.github import GitHubClient, find_github_token
from pygap.tests.fakes import FakeGitHubRepo, FakePyGithub


@pytest.fixture
def fake_github() -> FakePyGithub:
    return FakePyGithub()


@pytest.fixture
def client(config: Config, fake_github: FakePyGithub) -> GitHubClient:
    config.repo.github_repo_owner = "acme"
    config.repo.github_repo_name = "widgets"
    return GitHubClient(config, fake_github)


class TestGitHubClient:
    """Pull request lookups and mutations."""

    def test_create_and_find(self, client: GitHubClient, fake_github: FakePyGithub) -> None:
        pr = client.create_pull_request("f1", "main", "Add f1", "body")
        assert pr.number == 1
        assert pr.base_ref == "main"
        assert fake_github.requested == ["acme/widgets"]

        found = client.get_pull_request_for_branch("f1")
        assert found is not None
        assert found.number == 1
        assert found.url.endswith("/pull/1")
        assert client.get_pull_request_for_branch("f2") is None

    def test_update_base(self, client: GitHubClient, fake_github: FakePyGithub) -> None:
        pr = client.create_pull_request("f2", "main", "Add f2", "")
        assert client.update_base(pr, "f1")
        assert pr.base_ref == "f1"
        assert fake_github.repo.pulls[0].base.ref == "f1"
        assert not client.update_base(pr, "f1")
        assert len(fake_github.repo.pulls[0].edits) == 1

    def test_service_errors_are_wrapped(self, client: GitHubClient, fake_github: FakePyGithub) -> None:
        fake_github.repo.fail_create.add("f1")
        with pytest.raises(PullRequestError):
            client.create_pull_request("f1", "main", "Add f1", "")

    def test_unknown_repository(self, config: Config) -> None:
        config.repo.github_repo_owner = None
        client = GitHubClient(config, FakePyGithub(FakeGitHubRepo()))
        with pytest.raises(PullRequestError):
            client.get_pull_request_for_branch("f1")

    def test_format_body(self, client: GitHubClient) -> None:
        assert client.format_body("f1", ["f1"], "only") == "only"
        body = client.format_body("f1", ["f1", "f2"], "desc")
        assert body.startswith("desc\n\n---\n\n**Stack**:")
        assert body.endswith("- `f2`\n- `f1` ⬅")
        assert client.format_body("f2", ["f1", "f2"]) == "**Stack**:\n- `f2` ⬅\n- `f1`"


class TestFindToken:
    """Token discovery."""

    def test_env_token(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("GITHUB_TOKEN", "secret")
        assert find_github_token() == "secret"

    def test_gh_hosts_file(self, tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        monkeypatch.setenv("HOME", str(tmp_path))
        hosts = tmp_path / ".config" / "gh" / "hosts.yml"
        hosts.parent.mkdir(parents=True)
        hosts.write_text("github.com:\n  oauth_token: from-gh\n")
        assert find_github_token() == "from-gh"

    def test_no_token(self, tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        monkeypatch.setenv("HOME", str(tmp_path))
        assert find_github_token() is None
