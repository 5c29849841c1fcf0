"""Runtime dependency closure of a keep set.

Starting from the seed names, repeatedly ask the package database what the
kept packages require, resolve each requirement to its providers, drop the
disallowed ones, and add the rest. The loop stops on the first iteration
that adds no new name.

Resolution is "propose, then filter": providers are proposed by the package
database first and the disallow list is applied afterwards, so every time a
declared requirement is overridden by policy it shows up in the log.
"""

import logging
import time
import warnings
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set, Tuple

from .adapter import PackageDatabase
from .errors import ClosureTimeout, InvariantViolation, UnsatisfiedProviderWarning
from .pkgset import PackageSet, difference, intersection, is_equal, is_subset, sort_unique, union
from .rpm import normalize_name

logger = logging.getLogger(__name__)

# Requirements the package manager satisfies internally (rpmlib features)
DEFAULT_INTERNAL_PREFIXES = ('rpmlib(',)


@dataclass(frozen=True)
class ClosureResult:
    """Outcome of a closure computation."""
    keep: PackageSet
    iterations: Tuple[PackageSet, ...]   # snapshot 0 is the sorted seed
    unsatisfied: Tuple[str, ...]         # requirements without a provider

    @property
    def iteration_count(self) -> int:
        """Number of expansion steps, including the final stable one."""
        return len(self.iterations) - 1


def filter_internal(requirements: Iterable[str],
                    prefixes: Tuple[str, ...] = DEFAULT_INTERNAL_PREFIXES) -> List[str]:
    """Drop manager-internal capability tokens, keeping order."""
    return [r for r in requirements if not r.startswith(prefixes)]


def propose_names(db: PackageDatabase, root: Path, keep: PackageSet,
                  prefixes: Tuple[str, ...] = DEFAULT_INTERNAL_PREFIXES,
                  unsatisfied: Set[str] = None) -> Dict[str, Set[str]]:
    """Resolve everything the kept packages require to bare package names.

    Args:
        db: Package database adapter
        root: Target root
        keep: Current keep snapshot
        prefixes: Requirement prefixes to ignore
        unsatisfied: Collects requirements that have no provider

    Returns:
        Dict mapping each proposed package name to the requirements that
        proposed it
    """
    requires = db.query_requires(root, keep)

    requirements = []
    seen = set()
    for name in keep:
        for req in filter_internal(requires.get(name, []), prefixes):
            if req not in seen:
                seen.add(req)
                requirements.append(req)

    proposed: Dict[str, Set[str]] = {}
    for req in requirements:
        providers = db.query_whatprovides(root, req)
        if not providers:
            if unsatisfied is not None and req not in unsatisfied:
                warnings.warn(f"nothing provides {req}", UnsatisfiedProviderWarning, stacklevel=2)
                unsatisfied.add(req)
            continue
        for ident in providers:
            proposed.setdefault(normalize_name(ident), set()).add(req)

    return proposed


def apply_disallow(proposed: Dict[str, Set[str]],
                   disallow: frozenset) -> PackageSet:
    """Filter proposed names through the disallow list.

    The disallow list wins over any dependency edge.
    """
    for name in sorted(intersection(proposed, disallow)):
        reqs = ', '.join(sorted(proposed[name]))
        logger.info(f"Disallowed {name} (required through: {reqs})")
    return difference(proposed, disallow)


def _check_invariants(prev: PackageSet, keep: PackageSet, disallow: frozenset):
    overlap = intersection(keep, disallow)
    if overlap:
        raise InvariantViolation(
            f"disallowed package(s) entered the keep set: {', '.join(overlap)}"
        )
    if not is_subset(prev, keep):
        lost = difference(prev, keep)
        raise InvariantViolation(
            f"keep set shrank between iterations, lost: {', '.join(lost)}"
        )


def compute_closure(db: PackageDatabase, root: Path, seed: Iterable[str],
                    disallow: Iterable[str] = (),
                    internal_prefixes: Tuple[str, ...] = DEFAULT_INTERNAL_PREFIXES,
                    deadline: Optional[float] = None) -> ClosureResult:
    """Expand seed to its full runtime closure inside root.

    Args:
        db: Package database adapter
        root: Target root, seed packages already installed
        seed: Initial keep set
        disallow: Names that must never enter the keep set
        internal_prefixes: Requirement prefixes satisfied by the manager itself
        deadline: time.monotonic() value after which no new iteration starts

    Returns:
        ClosureResult with the stable keep set and every snapshot

    Raises:
        InvariantViolation: seed intersects disallow, or an iteration broke
            disjointness or monotonicity
        ClosureTimeout: deadline passed before the keep set stabilized
        AdapterError: propagated from the package database
    """
    disallow = frozenset(disallow)
    keep = sort_unique(seed)

    overlap = intersection(keep, disallow)
    if overlap:
        raise InvariantViolation(f"seed contains disallowed package(s): {', '.join(overlap)}")

    snapshots = [keep]
    unsatisfied: Set[str] = set()
    prev: PackageSet = ()

    while not is_equal(keep, prev):
        if deadline is not None and time.monotonic() > deadline:
            raise ClosureTimeout(len(snapshots) - 1)

        prev = keep
        proposed = propose_names(db, root, keep, internal_prefixes, unsatisfied)
        keep = union(keep, apply_disallow(proposed, disallow))
        _check_invariants(prev, keep, disallow)

        snapshots.append(keep)
        added = difference(keep, prev)
        logger.debug(f"Closure iteration {len(snapshots) - 1}: "
                     f"{len(keep)} kept, {len(added)} new")

    logger.info(f"Closure stable after {len(snapshots) - 1} iteration(s): "
                f"{len(keep)} package(s)")

    return ClosureResult(
        keep=keep,
        iterations=tuple(snapshots),
        unsatisfied=tuple(sorted(unsatisfied)),
    )
