"""Cascading rebase of every branch downstream of the current one.

A cascade walks the downstream branches of a stack in order and rebases each
one onto the branch handled just before it. Progress is written to a state
file in the repository's git directory after every step, so a rebase that
stops on conflicts can be resumed (``resume``) or abandoned (``abort``) by a
later invocation.
"""

import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional, Union

from pydantic import BaseModel, Field, ValidationError

from ..errors import (
    CascadeInProgressError, NoCascadeInProgressError, NotStagedError,
    PersistenceError, RebaseConflictError,
)
from ..git import ensure_clean_working_tree
from ..stack import StackGraph, StackRecord
from ..typing import VersionControlPort

logger = logging.getLogger(__name__)

CASCADE_STATE_VERSION = 1
CASCADE_STATE_FILE = "gap-cascade.json"

PAUSE_CONFLICT = "conflict"
PAUSE_ERROR = "error"

class CascadeStatus(str, Enum):
    NOTHING_TO_DO = "nothing-to-do"
    COMPLETED = "completed"
    PAUSED = "paused"
    ABORTED = "aborted"

class CascadeState(BaseModel):
    """Persisted progress of one cascade."""
    version: int = CASCADE_STATE_VERSION
    stack_name: str = Field(alias="stackName")
    current_branch: str = Field(alias="currentBranch")
    downstream_branches: List[str] = Field(alias="downstreamBranches")
    processed: List[str] = Field(default_factory=list)
    paused_branch: Optional[str] = Field(default=None, alias="pausedBranch")
    pause_reason: Optional[str] = Field(default=None, alias="pauseReason")

    class Config:
        """Pydantic config."""
        populate_by_name = True

    def remaining(self) -> List[str]:
        """Downstream branches not processed yet, paused branch excluded."""
        return [b for b in self.downstream_branches
                if b not in self.processed and b != self.paused_branch]

@dataclass
class CascadeOutcome:
    status: CascadeStatus
    state: Optional[CascadeState] = None
    paused_branch: Optional[str] = None
    processed: List[str] = field(default_factory=list)

class CascadeStateSlot:
    """Durable slot holding at most one CascadeState."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    @classmethod
    def for_repo(cls, vc: VersionControlPort) -> "CascadeStateSlot":
        return cls(Path(vc.git_dir()) / CASCADE_STATE_FILE)

    def get(self) -> Optional[CascadeState]:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable cascade state {self.path}: {e}")
            return None
        try:
            state = CascadeState.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Ignoring malformed cascade state {self.path}: {e}")
            return None
        if state.version != CASCADE_STATE_VERSION:
            logger.warning(f"Ignoring cascade state with unsupported version {state.version}")
            return None
        return state

    def set(self, state: CascadeState) -> None:
        payload = state.model_dump(by_alias=True)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(prefix=".gap-cascade-", dir=str(self.path.parent))
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(payload, f, indent=2)
                os.replace(tmp_path, self.path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except OSError as e:
            raise PersistenceError(f"Failed to save cascade state to {self.path}: {e}") from e

    def clear(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            raise PersistenceError(f"Failed to clear cascade state {self.path}: {e}") from e

def downstream_of(stack: StackRecord, branch: str) -> List[str]:
    """Members listed after branch, in stack order."""
    if branch not in stack.branches:
        return []
    return stack.branches[stack.branches.index(branch) + 1:]

class RebaseCascade:
    """Start, resume and abort cascades for the current repository."""

    def __init__(self, vc: VersionControlPort, graph: StackGraph, slot: CascadeStateSlot):
        self.vc = vc
        self.graph = graph
        self.slot = slot

    def status(self) -> Optional[CascadeState]:
        return self.slot.get()

    def plan(self) -> List[str]:
        """Downstream branches a start() from the current branch would rebase."""
        existing = self.slot.get()
        if existing is not None:
            raise CascadeInProgressError(existing.stack_name, existing.paused_branch)
        current = self.vc.current_branch()
        stack = self.graph.find(current)
        if stack is None:
            raise NotStagedError(current)
        return downstream_of(stack, current)

    def start(self) -> CascadeOutcome:
        existing = self.slot.get()
        if existing is not None:
            raise CascadeInProgressError(existing.stack_name, existing.paused_branch)

        ensure_clean_working_tree(self.vc)
        current = self.vc.current_branch()
        stack = self.graph.find(current)
        if stack is None:
            raise NotStagedError(current)

        downstream = downstream_of(stack, current)
        if not downstream:
            logger.info(f"No downstream branches after {current} in stack {stack.name}")
            return CascadeOutcome(CascadeStatus.NOTHING_TO_DO)

        state = CascadeState(
            stack_name=stack.name,
            current_branch=current,
            downstream_branches=downstream,
            processed=[],
        )
        self.slot.set(state)
        logger.info(f"Cascading {current} into {', '.join(downstream)}")
        return self._run(state, current)

    def resume(self) -> CascadeOutcome:
        state = self.slot.get()
        if state is None:
            raise NoCascadeInProgressError()

        if self.vc.rebase_in_progress():
            if not self.vc.rebase_continue():
                raise RebaseConflictError(
                    state.paused_branch,
                    "Failed to continue rebase. Resolve remaining conflicts.")

        anchor = state.processed[-1] if state.processed else state.current_branch
        paused = state.paused_branch
        if paused is not None:
            finished = state.pause_reason == PAUSE_CONFLICT
            if finished and not self.vc.is_ancestor(anchor, paused):
                logger.warning(f"Rebase of {paused} onto {anchor} was not completed, rebasing it again")
                finished = False
            state.paused_branch = None
            state.pause_reason = None
            if finished:
                state.processed.append(paused)
                anchor = paused
            self.slot.set(state)

        return self._run(state, anchor)

    def abort(self) -> CascadeOutcome:
        state = self.slot.get()
        if state is None:
            raise NoCascadeInProgressError()

        # A failed abort leaves the state in place so the abort can be retried
        if self.vc.rebase_in_progress():
            self.vc.rebase_abort()
        self.slot.clear()
        logger.info(f"Aborted cascade on stack {state.stack_name}")
        return CascadeOutcome(CascadeStatus.ABORTED, state, state.paused_branch, list(state.processed))

    def _pause(self, state: CascadeState, branch: str, reason: str) -> None:
        state.paused_branch = branch
        state.pause_reason = reason
        self.slot.set(state)

    def _run(self, state: CascadeState, anchor: str) -> CascadeOutcome:
        for branch in state.remaining():
            logger.info(f"Rebasing {branch} onto {anchor}")
            try:
                self.vc.checkout(branch)
                rebased = self.vc.rebase(anchor, branch)
            except Exception:
                self._pause(state, branch, PAUSE_ERROR)
                raise

            if not rebased:
                self._pause(state, branch, PAUSE_CONFLICT)
                return CascadeOutcome(CascadeStatus.PAUSED, state, branch, list(state.processed))

            state.processed.append(branch)
            self.slot.set(state)
            anchor = branch

        self.vc.checkout(state.current_branch)
        self.slot.clear()
        return CascadeOutcome(CascadeStatus.COMPLETED, state, None, list(state.processed))
