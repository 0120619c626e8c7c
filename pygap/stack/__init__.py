"""Stack graph: membership and parent/child queries over persisted stacks."""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Set, Tuple

from pydantic import ValidationError

from ..config.models import GapConfig
from ..errors import InvalidParentError, NotInRepoError, StackExistsError, StackNotFoundError
from ..typing import VersionControlPort
from .models import StackRecord, StacksFile, now_iso
from .store import StackStore

logger = logging.getLogger(__name__)

__all__ = ["StackGraph", "StackRecord", "StackStore", "StackTree"]

@dataclass
class StackTree:
    """Adjacency view of one stack rooted at its base branch."""
    root: str
    children: Dict[str, List[str]] = field(default_factory=dict)
    # Members whose parent is not part of the stack, or that sit on a parent loop
    detached: List[str] = field(default_factory=list)

    def walk(self) -> Iterator[Tuple[str, int]]:
        """Pre-order (branch, depth) traversal from the root."""
        seen: Set[str] = set()
        pending: List[Tuple[str, int]] = [(self.root, 0)]
        while pending:
            name, depth = pending.pop()
            if name in seen:
                continue
            seen.add(name)
            yield name, depth
            for child in reversed(self.children.get(name, [])):
                pending.append((child, depth + 1))

def build_tree(stack: StackRecord) -> StackTree:
    """Build the presentation tree of a stack."""
    tree = StackTree(root=stack.base_branch)
    tree.children[stack.base_branch] = []
    for branch in stack.branches:
        tree.children.setdefault(branch, [])

    for branch in stack.branches:
        parent = stack.parent_of(branch)
        if parent == branch or parent not in tree.children:
            tree.detached.append(branch)
            continue
        tree.children[parent].append(branch)

    reachable = {name for name, _ in tree.walk()}
    for branch in stack.branches:
        if branch not in reachable and branch not in tree.detached:
            logger.warning(f"Branch {branch} in stack {stack.name} is on a parent cycle")
            tree.detached.append(branch)
    return tree

def check_parent(stack: StackRecord, branch: str, parent: str) -> None:
    """Raise InvalidParentError unless adding branch under parent keeps a tree."""
    if branch == stack.base_branch:
        raise InvalidParentError(f"Branch {branch} is the base of stack {stack.name}")
    if parent == branch:
        raise InvalidParentError(f"Branch {branch} cannot be its own parent")
    if parent != stack.base_branch and parent not in stack.branches:
        raise InvalidParentError(
            f"Parent {parent} is neither the base nor a member of stack {stack.name}")

    seen: Set[str] = {branch}
    current = parent
    while current != stack.base_branch:
        if current in seen:
            raise InvalidParentError(f"Parent chain of {parent} in stack {stack.name} loops at {current}")
        seen.add(current)
        current = stack.parent_of(current)

class StackGraph:
    """Queries and mutations over the current repository's stacks."""

    def __init__(self, config: GapConfig, store: StackStore, vc: VersionControlPort):
        self.config = config
        self.store = store
        self.vc = vc

    @property
    def trunk(self) -> str:
        return self.config.repo.trunk_branch

    def _repo(self) -> Optional[str]:
        return self.vc.remote_identity()

    def require_repo(self) -> str:
        repo = self._repo()
        if not repo:
            raise NotInRepoError()
        return repo

    @staticmethod
    def _parse(name: str, raw: Dict[str, Any]) -> Optional[StackRecord]:
        try:
            record = StackRecord.model_validate(raw)
        except ValidationError as e:
            logger.warning(f"Skipping malformed stack {name}: {e}")
            return None
        record.name = name
        return record

    def _records(self, stacks: StacksFile, repo: str) -> List[StackRecord]:
        records: List[StackRecord] = []
        for name, raw in stacks.get(repo, {}).items():
            record = self._parse(name, raw)
            if record is not None:
                records.append(record)
        return records

    def list_stacks(self) -> List[StackRecord]:
        """Every stack of the current repository, in stored order."""
        repo = self._repo()
        if not repo:
            return []
        return self._records(self.store.load(), repo)

    def stack_names(self) -> List[str]:
        return [s.name for s in self.list_stacks()]

    def get_stack(self, name: str) -> Optional[StackRecord]:
        for stack in self.list_stacks():
            if stack.name == name:
                return stack
        return None

    def find(self, branch: str) -> Optional[StackRecord]:
        """First stack whose members include branch."""
        for stack in self.list_stacks():
            if stack.contains(branch):
                return stack
        return None

    def parent_of(self, branch: str) -> str:
        stack = self.find(branch)
        if stack is None:
            return self.trunk
        return stack.parent_of(branch)

    def children_of(self, branch: str) -> List[str]:
        stack = self.find(branch)
        if stack is None:
            return []
        return stack.children_of(branch)

    def build_tree(self, stack: StackRecord) -> StackTree:
        return build_tree(stack)

    def create_stack(self, name: str, base: str, overwrite: bool = False) -> StackRecord:
        repo = self.require_repo()
        stacks = self.store.load()
        repo_stacks = stacks.setdefault(repo, {})
        if name in repo_stacks and not overwrite:
            raise StackExistsError(name)

        record = StackRecord(base_branch=base, branches=[], branch_parents={}, created=now_iso())
        record.name = name
        repo_stacks[name] = record.to_dict()
        self.store.save(stacks)
        logger.info(f"Created stack {name} on {base}")
        return record

    def add_branch(self, stack_name: str, branch: str, parent: Optional[str] = None) -> StackRecord:
        repo = self.require_repo()
        stacks = self.store.load()
        raw = stacks.get(repo, {}).get(stack_name)
        record = self._parse(stack_name, raw) if raw is not None else None
        if record is None:
            raise StackNotFoundError(stack_name)

        if record.contains(branch):
            logger.debug(f"Branch {branch} already in stack {stack_name}")
            return record

        if parent:
            check_parent(record, branch, parent)
        elif branch == record.base_branch:
            raise InvalidParentError(f"Branch {branch} is the base of stack {stack_name}")

        record.branches.append(branch)
        if parent:
            if record.branch_parents is None:
                record.branch_parents = {}
            record.branch_parents[branch] = parent

        stacks[repo][stack_name] = record.to_dict()
        self.store.save(stacks)
        logger.info(f"Added {branch} to stack {stack_name} (parent: {record.parent_of(branch)})")
        return record

    def remove_branch(self, branch: str) -> None:
        repo = self._repo()
        if not repo:
            return
        stacks = self.store.load()
        repo_stacks = stacks.get(repo, {})
        changed = False

        for name, raw in list(repo_stacks.items()):
            record = self._parse(name, raw)
            if record is None or not record.contains(branch):
                continue
            new_parent = record.parent_of(branch)
            record.branches.remove(branch)
            if record.branch_parents is not None:
                record.branch_parents.pop(branch, None)
                for child, parent in list(record.branch_parents.items()):
                    if parent == branch:
                        record.branch_parents[child] = new_parent
            changed = True

            if not record.branches:
                logger.info(f"Stack {name} is empty, deleting it")
                del repo_stacks[name]
            else:
                repo_stacks[name] = record.to_dict()

        if changed:
            self.store.save(stacks)
