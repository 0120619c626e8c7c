"""Config module."""

from typing import Dict, Any
from .models import RepoConfig, UserConfig, GapConfig, ToolConfig

class Config(GapConfig):
    """Config object holding repository, user and tool config.

    It directly exposes the Pydantic models with attribute access.
    """
    def __init__(self, config: Dict[str, Dict[str, Any]]):
        """Initialize with parsed config dict."""
        # Extract configuration sections with proper defaults
        repo_config = config.get('repo', {})
        user_config = config.get('user', {})
        tool_section = config.get('tool', {})
        tool_config = tool_section.get('gap', {})

        super().__init__(
            repo=RepoConfig.model_validate(repo_config),
            user=UserConfig.model_validate(user_config),
            tool=ToolConfig.model_validate(tool_config),
        )

def default_config() -> Config:
    """Get default config without parsing git."""
    return Config({
        'repo': {
            'github_remote': 'origin',
            'trunk_branch': 'main',
        },
        'user': {},
        'tool': {
            'gap': {
                'concurrency': 0
            }
        }
    })
