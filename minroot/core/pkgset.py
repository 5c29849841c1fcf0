"""Set operations over package names.

Sets are represented as sorted, deduplicated tuples so that every closure
iteration yields an immutable snapshot that can be compared and logged.
"""

from typing import Iterable, Tuple

PackageSet = Tuple[str, ...]


def sort_unique(names: Iterable[str]) -> PackageSet:
    """Return names sorted with duplicates removed."""
    return tuple(sorted(set(names)))


def union(a: Iterable[str], b: Iterable[str]) -> PackageSet:
    return sort_unique(list(a) + list(b))


def difference(a: Iterable[str], b: Iterable[str]) -> PackageSet:
    """Names of a that are not in b."""
    exclude = set(b)
    return sort_unique(n for n in a if n not in exclude)


def intersection(a: Iterable[str], b: Iterable[str]) -> PackageSet:
    other = set(b)
    return sort_unique(n for n in a if n in other)


def is_equal(a: Iterable[str], b: Iterable[str]) -> bool:
    """Set equality, ignoring order and duplicates.

    Used as the fixpoint stability test: two snapshots with the same size
    but different members are not equal.
    """
    return set(a) == set(b)


def is_subset(a: Iterable[str], b: Iterable[str]) -> bool:
    return set(a) <= set(b)
