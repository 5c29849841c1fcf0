"""Shared fixtures: an in-memory package database."""

from pathlib import Path
from typing import Dict, Iterable, List

import pytest

from minroot.core.adapter import EraseOptions, InstallOptions, PackageDatabase
from minroot.core.errors import AdapterError, InstallError


class FakePackage:
    """Package available in the fake repository."""
    def __init__(self, name: str, requires: List[str] = None, provides: List[str] = None,
                 files: List[str] = None, version: str = "1.0", release: str = "1"):
        self.name = name
        self.version = version
        self.release = release
        self.requires = requires or []
        self.provides = [name] + (provides or [])
        self.files = files or []

    @property
    def ident(self) -> str:
        return f"{self.name}-{self.version}-{self.release}"


class FakePackageDatabase(PackageDatabase):
    """In-memory PackageDatabase.

    install() pulls in every provider of every requirement, so roots end up
    with more than the closure, the way a populated root does.
    """

    def __init__(self, packages: Iterable[FakePackage], preinstalled: Iterable[str] = ()):
        self.repo: Dict[str, FakePackage] = {p.name: p for p in packages}
        self.preinstalled = list(preinstalled)
        self.installed: Dict[Path, set] = {}
        self.calls: List[tuple] = []
        self.fail_on = set()

    def _check(self, operation: str):
        if operation in self.fail_on:
            raise AdapterError(operation, "simulated failure")

    def _providers(self, requirement: str) -> List[FakePackage]:
        return [p for p in self.repo.values()
                if requirement in p.provides or requirement in p.files]

    def install(self, root: Path, names: Iterable[str], options: InstallOptions) -> None:
        names = list(names)
        self.calls.append(('install', root, tuple(names), options))
        if 'install' in self.fail_on:
            raise InstallError("simulated install failure", packages=names)

        unknown = [n for n in names if n not in self.repo]
        if unknown:
            raise InstallError(f"No match for: {', '.join(unknown)}", packages=unknown)

        installed = self.installed.setdefault(root, set(self.preinstalled))
        todo = list(names)
        while todo:
            name = todo.pop()
            if name in installed:
                continue
            installed.add(name)
            for req in self.repo[name].requires:
                todo.extend(p.name for p in self._providers(req))

    def query_requires(self, root: Path, names: Iterable[str]) -> Dict[str, List[str]]:
        self._check('query-requires')
        installed = self.installed.get(root, set())
        return {n: list(self.repo[n].requires) if n in installed else [] for n in names}

    def query_whatprovides(self, root: Path, requirement: str) -> List[str]:
        self._check('query-whatprovides')
        installed = self.installed.get(root, set())
        return [p.ident for p in self._providers(requirement) if p.name in installed]

    def query_installed(self, root: Path) -> List[str]:
        self._check('query-installed')
        return sorted(self.repo[n].ident for n in self.installed.get(root, set()))

    def erase(self, root: Path, names: Iterable[str], options: EraseOptions) -> None:
        names = list(names)
        self.calls.append(('erase', root, tuple(names), options))
        self._check('erase')
        self.installed.get(root, set()).difference_update(names)

    def installed_names(self, root: Path) -> List[str]:
        return sorted(self.installed.get(root, set()))

    def populate(self, root: Path, names: Iterable[str]) -> None:
        """Mark names installed in root without resolving anything."""
        self.installed.setdefault(root, set()).update(names)


@pytest.fixture
def pkg():
    """The FakePackage class, for tests that build their own repository."""
    return FakePackage


@pytest.fixture
def alpha_repo():
    """alpha requires beta and gamma, gamma requires delta."""
    return [
        FakePackage('alpha', requires=['beta', 'gamma', 'rpmlib(PayloadIsZstd)']),
        FakePackage('beta'),
        FakePackage('gamma', requires=['delta']),
        FakePackage('delta'),
    ]


@pytest.fixture
def baseline_repo():
    """A small distribution: baseline packages, their deps, and extras."""
    return [
        FakePackage('bash', requires=['filesystem', 'libc.so.6', 'libtinfo.so.6',
                                      'rpmlib(CompressedFileNames)'],
                    files=['/bin/sh', '/usr/bin/bash']),
        FakePackage('glibc-minimal-langpack', requires=['glibc'],
                    provides=['glibc-langpack']),
        FakePackage('ncurses-libs', requires=['ncurses-base', 'libc.so.6'],
                    provides=['libtinfo.so.6']),
        FakePackage('ncurses-base'),
        FakePackage('glibc', requires=['glibc-common', 'glibc-langpack',
                                       'basesystem'],
                    provides=['libc.so.6'], version='2.39', release='17.fc40'),
        FakePackage('glibc-common', requires=['/bin/sh', 'tzdata'],
                    version='2.39', release='17.fc40'),
        FakePackage('glibc-all-langpacks', provides=['glibc-langpack']),
        FakePackage('tzdata'),
        FakePackage('basesystem', requires=['filesystem', 'setup']),
        FakePackage('filesystem', requires=['setup']),
        FakePackage('setup'),
        FakePackage('coreutils', requires=['libc.so.6']),
        FakePackage('systemd', requires=['libc.so.6']),
        FakePackage('bash-completion', requires=['bash']),
    ]


@pytest.fixture
def make_db():
    def factory(packages, preinstalled=()):
        return FakePackageDatabase(packages, preinstalled)
    return factory
