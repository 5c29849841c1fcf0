"""Removal of everything outside the closure.

RemovalSet = installed - (keep ∪ protected), erased in one batch.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from .adapter import EraseOptions, PackageDatabase
from .errors import InvariantViolation
from .pkgset import PackageSet, difference, intersection, sort_unique, union
from .rpm import normalize_name

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RemovalPlan:
    """Installed, kept, protected and to-be-removed names of one root."""
    installed: PackageSet
    keep: PackageSet
    protected: PackageSet
    remove: PackageSet

    @property
    def survivors(self) -> PackageSet:
        """Names that were installed and must still be installed afterwards."""
        return intersection(self.installed, union(self.keep, self.protected))


def plan_removal(installed: Iterable[str], keep: Iterable[str],
                 protected: Iterable[str]) -> RemovalPlan:
    """Compute the removal set.

    Args:
        installed: Installed identifiers, fully qualified or bare
        keep: Stable closure
        protected: Names exempt from removal

    Returns:
        RemovalPlan
    """
    installed = sort_unique(normalize_name(i) for i in installed)
    keep = sort_unique(keep)
    protected = sort_unique(protected)

    return RemovalPlan(
        installed=installed,
        keep=keep,
        protected=protected,
        remove=difference(installed, union(keep, protected)),
    )


def check_plan(plan: RemovalPlan):
    """Refuse a plan that would erase a protected or kept name."""
    hit = intersection(plan.remove, plan.protected)
    if hit:
        raise InvariantViolation(f"removal set contains protected package(s): {', '.join(hit)}")
    hit = intersection(plan.remove, plan.keep)
    if hit:
        raise InvariantViolation(f"removal set contains kept package(s): {', '.join(hit)}")


def remove_unneeded(db: PackageDatabase, root: Path, keep: Iterable[str],
                    protected: Iterable[str]) -> RemovalPlan:
    """Erase every installed package outside keep ∪ protected.

    Args:
        db: Package database adapter
        root: Target root
        keep: Stable closure
        protected: Names exempt from removal

    Returns:
        The RemovalPlan that was executed

    Raises:
        InvariantViolation: the plan touches a protected or kept name
        AdapterError: propagated from the package database
    """
    plan = plan_removal(db.query_installed(root), keep, protected)
    check_plan(plan)

    if not plan.remove:
        logger.info("Nothing to remove")
        return plan

    logger.info(f"Removing {len(plan.remove)} of {len(plan.installed)} installed package(s)")
    logger.debug(f"Removing: {' '.join(plan.remove)}")
    db.erase(root, plan.remove, EraseOptions(nodeps=True, allmatches=True))
    return plan


def verify_survivors(db: PackageDatabase, root: Path, plan: RemovalPlan):
    """Check that every kept or protected package is still installed.

    Raises:
        InvariantViolation: a survivor disappeared during the erase
    """
    after = sort_unique(normalize_name(i) for i in db.query_installed(root))
    missing = difference(plan.survivors, after)
    if missing:
        raise InvariantViolation(
            f"package(s) missing after removal: {', '.join(missing)}"
        )
