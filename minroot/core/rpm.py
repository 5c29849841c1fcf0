"""
RPM identifier utilities for minroot.

Turns fully qualified package identifiers (name-version-release) back into
bare package names.
"""

import re
from typing import Tuple

# Every real version and release carries a digit (2.39, svn66984, 17.fc40)
_HAS_DIGIT = re.compile(r'\d')


def _looks_like_evr(version: str, release: str) -> bool:
    return bool(_HAS_DIGIT.search(version) and _HAS_DIGIT.search(release))


def normalize_name(identifier: str) -> str:
    """Extract the bare package name from a name-version-release identifier.

    The two rightmost hyphen-delimited fields are version and release
    (an .arch suffix rides along with the release). They are only stripped
    when both contain a digit, so bare names made of hyphenated words
    (glibc-minimal-langpack, xorg-x11-fonts) come back unchanged.

    Args:
        identifier: e.g. 'glibc-minimal-langpack-2.39-17.fc40.x86_64'

    Returns:
        The package name, e.g. 'glibc-minimal-langpack'

    Examples:
        bash-5.2.26-3.fc40 → bash
        texlive-base-svn66984-70.fc40 → texlive-base
        glibc-minimal-langpack → glibc-minimal-langpack
        bash → bash
    """
    parts = identifier.rsplit('-', 2)
    if len(parts) < 3:
        return identifier
    name, version, release = parts
    if not name or not _looks_like_evr(version, release):
        return identifier
    return name


def split_nevr(identifier: str) -> Tuple[str, str, str]:
    """Split an identifier into (name, version, release).

    Missing parts are returned as empty strings.
    """
    name = normalize_name(identifier)
    if name == identifier:
        return identifier, '', ''
    _, version, release = identifier.rsplit('-', 2)
    return name, version, release
