"""Pydantic models for config types."""

from typing import List, Optional
from pydantic import BaseModel, Field

class RepoConfig(BaseModel):
    """Repository configuration."""
    github_remote: str = "origin"
    trunk_branch: str = "main"
    trunk_branches: List[str] = Field(default_factory=lambda: ["main", "master"])
    github_host: str = "github.com"
    github_repo_owner: Optional[str] = None
    github_repo_name: Optional[str] = None

    class Config:
        """Pydantic config."""
        extra = "allow"  # Allow extra fields for backward compatibility

class UserConfig(BaseModel):
    """User configuration."""
    log_git_commands: bool = True
    gap_home: Optional[str] = None  # Directory holding stacks.json, default ~/.gap

    class Config:
        """Pydantic config."""
        extra = "allow"  # Allow extra fields

class ToolConfig(BaseModel):
    """Tool configuration."""
    concurrency: int = 0  # 0 means pick from the CPU count
    pretend: bool = False

    class Config:
        """Pydantic config."""
        extra = "allow"  # Allow extra fields

class GapConfig(BaseModel):
    """Full pygap configuration."""
    repo: RepoConfig = Field(default_factory=RepoConfig)
    user: UserConfig = Field(default_factory=UserConfig)
    tool: ToolConfig = Field(default_factory=ToolConfig)

    class Config:
        """Pydantic config."""
        extra = "allow"  # Allow extra fields
