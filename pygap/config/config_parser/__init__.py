"""Config parser logic."""

import os
from pathlib import Path
from typing import Dict, Optional, Tuple, Union, Any
import logging
import yaml

from ...typing import GitInterface

# Get module logger
logger = logging.getLogger(__name__)

ConfigValue = Union[str, bool]
RepoConfig = Dict[str, Any]  # Use Any since yaml can return various types
Config = Dict[str, RepoConfig]

CONFIG_FILE_NAME = '.gap.yaml'
GAP_HOME_ENV = 'GAP_HOME'

def parse_remote_url(remote_url: str) -> Optional[Tuple[str, str]]:
    """Extract (owner, name) from an SSH or HTTPS remote url."""
    remote_url = remote_url.strip()
    if not remote_url:
        return None
    if "://" in remote_url:
        # HTTPS format: https://github.com/owner/repo.git
        repo_part = remote_url.split("://", 1)[1].split("/", 1)[-1]
    elif "@" in remote_url and ":" in remote_url:
        # SSH format: git@github.com:owner/repo.git
        repo_part = remote_url.split(":")[-1]
    else:
        return None

    if repo_part.endswith(".git"):
        repo_part = repo_part[:-4]
    parts = [p for p in repo_part.strip("/").split("/") if p]
    if len(parts) < 2:
        return None
    return parts[-2], parts[-1]

def _load_yaml(path: Path) -> Dict[str, Any]:
    try:
        with open(path, 'r') as f:
            data = yaml.safe_load(f)
    except FileNotFoundError:
        return {}
    except yaml.YAMLError as e:
        logger.warning(f"Ignoring malformed config file {path}: {e}")
        return {}
    if not isinstance(data, dict):
        return {}
    return data

def parse_config(git_cmd: GitInterface) -> Config:
    """Parse config from defaults, the repository's .gap.yaml and the git remote."""
    config: Config = {
        'repo': {
            'github_remote': 'origin',
            'trunk_branch': 'main',
            'trunk_branches': ['main', 'master'],
            'github_host': 'github.com',
        },
        'user': {},
        'tool': {
            'gap': {
                'concurrency': 0,
                'pretend': False,
            }
        }
    }

    try:
        top_level = git_cmd.must_git("rev-parse --show-toplevel").strip()
    except Exception as e:
        logger.debug(f"Could not resolve repository root: {e}")
        top_level = os.getcwd()

    repo_file = Path(top_level) / CONFIG_FILE_NAME
    repo_config = _load_yaml(repo_file)
    if repo_config:
        logger.info(f"Config from {repo_file}: {repo_config}")
        for section in ('repo', 'user'):
            if isinstance(repo_config.get(section), dict):
                config[section].update(repo_config[section])
        tool_section = repo_config.get('tool')
        if isinstance(tool_section, dict) and isinstance(tool_section.get('gap'), dict):
            config['tool']['gap'].update(tool_section['gap'])
    else:
        logger.debug(f"No {CONFIG_FILE_NAME} found, using defaults")

    # Try to extract repo owner/name from git remote if not in config
    if not config['repo'].get('github_repo_owner') or not config['repo'].get('github_repo_name'):
        remote = config['repo']['github_remote']
        try:
            remote_url = git_cmd.must_git(f"remote get-url {remote}")
            parsed = parse_remote_url(remote_url)
            if parsed:
                owner, name = parsed
                if not config['repo'].get('github_repo_owner'):
                    config['repo']['github_repo_owner'] = owner
                if not config['repo'].get('github_repo_name'):
                    config['repo']['github_repo_name'] = name
        except Exception as e:
            logger.debug(f"Failed to parse git remote: {e}")

    return config

def gap_home(configured: Optional[str] = None) -> Path:
    """Directory holding pygap's persisted stacks."""
    env_value = os.environ.get(GAP_HOME_ENV)
    if env_value:
        return Path(env_value)
    if configured:
        return Path(configured).expanduser()
    return Path.home() / ".gap"

def stacks_file_path(configured: Optional[str] = None) -> Path:
    """Get path to the stacks file."""
    return gap_home(configured) / "stacks.json"
