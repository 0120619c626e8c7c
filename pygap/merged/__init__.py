"""Detect local branches whose changes already landed on a reference branch."""

import concurrent.futures
import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional

from ..typing import VersionControlPort

logger = logging.getLogger(__name__)

MAX_DEFAULT_WORKERS = 8

class MergeReason(str, Enum):
    REACHABLE = "reachable-from-main"
    ALL_CHANGES_IN_MAIN = "all-changes-in-main"
    HAS_UNMERGED_CHANGES = "has-unmerged-changes"
    NO_COMMON_ANCESTOR = "no-common-ancestor"
    ERROR = "error"

@dataclass
class BranchMergeCheck:
    """Merge classification of one branch."""
    branch: str
    merged: bool
    reason: MergeReason
    unmerged_count: Optional[int] = None
    is_reachable: bool = False
    error: Optional[str] = None

@dataclass
class MergeReport:
    merged: List[str] = field(default_factory=list)
    unmerged: List[BranchMergeCheck] = field(default_factory=list)

def default_workers(concurrency: int = 0) -> int:
    if concurrency > 0:
        return concurrency
    return min(MAX_DEFAULT_WORKERS, os.cpu_count() or 1)

class MergeDetector:
    """Classify branches as merged into a reference, tolerating squash-merges.

    A branch counts as merged when every one of its non-merge commits has a
    patch-equivalent commit on the reference, or when its tip is an ancestor
    of the reference.
    """

    def __init__(self, vc: VersionControlPort, trunk_branches: Iterable[str] = ("main", "master"),
                 concurrency: int = 0):
        self.vc = vc
        self.trunk_branches = set(trunk_branches)
        self.workers = default_workers(concurrency)

    def check_branch(self, reference: str, branch: str) -> BranchMergeCheck:
        try:
            if self.vc.merge_base(reference, branch) is None:
                return BranchMergeCheck(branch, False, MergeReason.NO_COMMON_ANCESTOR)

            count = self.vc.patch_identity_unmerged_count(reference, branch)
            is_reachable = self.vc.is_ancestor(branch, reference)
        except Exception as e:
            logger.warning(f"Error checking branch {branch}: {e}")
            return BranchMergeCheck(branch, False, MergeReason.ERROR, error=str(e))

        if is_reachable:
            reason = MergeReason.REACHABLE
        elif count == 0:
            reason = MergeReason.ALL_CHANGES_IN_MAIN
        else:
            reason = MergeReason.HAS_UNMERGED_CHANGES
        return BranchMergeCheck(branch, count == 0 or is_reachable, reason,
                                unmerged_count=count, is_reachable=is_reachable)

    def candidates(self, reference: str) -> List[str]:
        skip = self.trunk_branches | {reference}
        return [b for b in self.vc.local_branches() if b and b not in skip]

    def detect(self, reference: str, branches: Optional[List[str]] = None) -> MergeReport:
        """Check every candidate branch against reference, concurrently."""
        if branches is None:
            branches = self.candidates(reference)
        if not branches:
            logger.debug("No branches to check")
            return MergeReport()

        logger.debug(f"Checking {len(branches)} branches against {reference} with {self.workers} workers")
        with concurrent.futures.ThreadPoolExecutor(max_workers=self.workers) as executor:
            checks = list(executor.map(lambda b: self.check_branch(reference, b), branches))

        report = MergeReport()
        for check in checks:
            if check.merged:
                report.merged.append(check.branch)
            else:
                report.unmerged.append(check)
        report.merged.sort()
        report.unmerged.sort(key=lambda c: c.branch)
        logger.debug(f"Found {len(report.merged)} merged and {len(report.unmerged)} unmerged branches")
        return report
