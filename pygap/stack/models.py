"""Pydantic models for persisted stacks."""

import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

# repo identity -> stack name -> raw stack record
StacksFile = Dict[str, Dict[str, Dict[str, Any]]]

def now_iso() -> str:
    """UTC timestamp in the ISO-8601 form used by the stacks file."""
    now = datetime.datetime.now(datetime.timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")

class StackRecord(BaseModel):
    """One dependency chain rooted at a base branch.

    ``branch_parents`` is ``None`` for records written before parent tracking
    existed. Such records, and branches missing from a partial map, resolve
    their parent positionally: the element just before the branch in
    ``[base_branch, *branches]``.
    """
    name: str = Field(default="", exclude=True)
    base_branch: str = Field(alias="baseBranch")
    branches: List[str] = Field(default_factory=list)
    branch_parents: Optional[Dict[str, str]] = Field(default=None, alias="branchParents")
    created: str = Field(default_factory=now_iso)

    class Config:
        """Pydantic config."""
        populate_by_name = True
        extra = "allow"  # Keep unknown keys from newer writers

    def contains(self, branch: str) -> bool:
        return branch in self.branches

    def explicit_parent(self, branch: str) -> Optional[str]:
        if not self.branch_parents:
            return None
        return self.branch_parents.get(branch) or None

    def positional_parent(self, branch: str) -> str:
        if branch not in self.branches:
            return self.base_branch
        index = self.branches.index(branch)
        if index <= 0:
            return self.base_branch
        return self.branches[index - 1]

    def parent_of(self, branch: str) -> str:
        """Explicit parent when recorded, positional parent otherwise."""
        explicit = self.explicit_parent(branch)
        if explicit is not None:
            return explicit
        return self.positional_parent(branch)

    def children_of(self, branch: str) -> List[str]:
        """Members whose resolved parent is ``branch``, in member order."""
        return [b for b in self.branches if b != branch and self.parent_of(b) == branch]

    def to_dict(self) -> Dict[str, Any]:
        """Stacks-file representation; a legacy record stays without branchParents."""
        return self.model_dump(by_alias=True, exclude_none=True)
