"""Package database capability interface.

The closure and removal engines only talk to a package manager through this
interface, so they can run against the real RPM database of a target root
or against a synthetic in-memory one.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple


@dataclass(frozen=True)
class InstallOptions:
    """Options for installing packages into a target root."""
    weak_deps: bool = False         # Recommends/Supplements
    docs: bool = False              # %doc files
    releasever: Optional[str] = None
    use_host_config: bool = False   # read repos from the host, not the root
    extra_args: Tuple[str, ...] = ()


@dataclass(frozen=True)
class EraseOptions:
    """Options for erasing packages from a target root."""
    nodeps: bool = True             # skip the manager's dependency check
    allmatches: bool = True         # every installed variant of a name


class PackageDatabase(ABC):
    """Install, query and erase packages inside a target root."""

    @abstractmethod
    def install(self, root: Path, names: Iterable[str],
                options: InstallOptions) -> None:
        """Install names and their resolved dependencies into root.

        Raises:
            InstallError: a name is unresolvable or no repository is reachable
        """

    @abstractmethod
    def query_requires(self, root: Path,
                       names: Iterable[str]) -> Dict[str, List[str]]:
        """Return the raw requirement strings of each installed name.

        Names that are not installed map to an empty list.

        Raises:
            AdapterError: the query failed
        """

    @abstractmethod
    def query_whatprovides(self, root: Path, requirement: str) -> List[str]:
        """Return identifiers (name-version-release) providing requirement.

        An unprovided requirement yields an empty list.

        Raises:
            AdapterError: the query failed
        """

    @abstractmethod
    def query_installed(self, root: Path) -> List[str]:
        """Return all installed identifiers (name-version-release).

        Raises:
            AdapterError: the query failed
        """

    @abstractmethod
    def erase(self, root: Path, names: Iterable[str],
              options: EraseOptions) -> None:
        """Force-remove names from root.

        Raises:
            AdapterError: the erase transaction failed
        """
