"""
RPM package database adapter

Installs into a target root through a dnf front-end (dnf5, dnf or microdnf)
and answers queries and erases through the python3-rpm bindings.
"""

import logging
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from .adapter import EraseOptions, InstallOptions, PackageDatabase
from .errors import AdapterError, InstallError

logger = logging.getLogger(__name__)

# Search order when no front-end is requested
FRONTENDS = ['dnf5', 'dnf', 'microdnf']

# Pseudo packages holding imported GPG keys, never real runtime artifacts
PSEUDO_PACKAGES = {'gpg-pubkey'}


@dataclass
class PackageFrontend:
    """Detected dnf-style installer."""
    name: str           # 'dnf5', 'dnf' or 'microdnf'
    path: str           # /usr/bin/dnf5


def detect_frontend(preferred: str = None) -> PackageFrontend:
    """Detect the available dnf front-end.

    Args:
        preferred: 'dnf5', 'dnf', 'microdnf', or None (auto-detect)

    Returns:
        PackageFrontend with detected info

    Raises:
        InstallError if no front-end found
    """
    candidates = [preferred] if preferred else FRONTENDS

    for name in candidates:
        path = shutil.which(name)
        if path:
            return PackageFrontend(name=name, path=path)

    raise InstallError(
        f"No package installer found (looked for: {', '.join(candidates)})"
    )


def _identifier(hdr) -> str:
    import rpm
    return f"{hdr[rpm.RPMTAG_NAME]}-{hdr[rpm.RPMTAG_VERSION]}-{hdr[rpm.RPMTAG_RELEASE]}"


class RpmDatabase(PackageDatabase):
    """PackageDatabase backed by the RPM database of the target root."""

    def __init__(self, preferred: str = None, timeout: int = None):
        """Initialize adapter.

        Args:
            preferred: Installer name, detected on first install
            timeout: Seconds allowed for one install run (None: no limit)
        """
        self.preferred = preferred
        self.frontend: Optional[PackageFrontend] = None
        self.timeout = timeout

    # --- install ---

    def build_install_command(self, root: Path, names: List[str],
                              options: InstallOptions) -> List[str]:
        """Build the front-end command line for an install into root."""
        if self.frontend is None:
            self.frontend = detect_frontend(self.preferred)

        args = [self.frontend.path, '-y', '--installroot', str(root)]

        if options.releasever:
            args.extend(['--releasever', options.releasever])
        if not options.weak_deps:
            args.append('--setopt=install_weak_deps=0')
        if not options.docs:
            if self.frontend.name == 'microdnf':
                args.append('--nodocs')
            else:
                args.append('--setopt=tsflags=nodocs')
        if options.use_host_config:
            if self.frontend.name == 'dnf5':
                args.append('--use-host-config')
            else:
                args.append('--setopt=reposdir=/etc/yum.repos.d')

        args.extend(options.extra_args)
        args.append('install')
        args.extend(names)
        return args

    def install(self, root: Path, names: Iterable[str],
                options: InstallOptions) -> None:
        names = list(names)
        if not names:
            return

        args = self.build_install_command(root, names, options)
        logger.debug(f"Running: {' '.join(args)}")

        try:
            result = subprocess.run(args, capture_output=True, text=True,
                                    timeout=self.timeout)
        except subprocess.TimeoutExpired:
            raise InstallError(f"{self.frontend.name} timed out after {self.timeout}s",
                               packages=names)
        except OSError as e:
            raise InstallError(f"Could not run {self.frontend.path}: {e}",
                               packages=names)

        if result.returncode != 0:
            output = (result.stderr or result.stdout).strip()
            raise InstallError(
                f"{self.frontend.name} install failed (exit {result.returncode}): "
                f"{output.splitlines()[-1] if output else 'no output'}",
                packages=names,
                output=output,
            )

        logger.info(f"Installed {len(names)} requested package(s) into {root}")

    # --- queries ---

    def _transaction_set(self, root: Path):
        import rpm

        ts = rpm.TransactionSet(str(root))
        ts.setVSFlags(rpm._RPMVSF_NOSIGNATURES | rpm._RPMVSF_NODIGESTS)
        return ts

    def query_requires(self, root: Path,
                       names: Iterable[str]) -> Dict[str, List[str]]:
        import rpm

        requires = {}
        try:
            ts = self._transaction_set(root)
            for name in names:
                reqs = []
                for hdr in ts.dbMatch('name', name):
                    for req in (hdr[rpm.RPMTAG_REQUIRENAME] or []):
                        if req not in reqs:
                            reqs.append(req)
                requires[name] = reqs
        except rpm.error as e:
            raise AdapterError('query-requires', str(e))

        return requires

    def query_whatprovides(self, root: Path, requirement: str) -> List[str]:
        import rpm

        providers = []
        try:
            ts = self._transaction_set(root)
            matches = list(ts.dbMatch('providename', requirement))
            # File requirements are mostly satisfied by file lists,
            # not by explicit Provides
            if requirement.startswith('/'):
                matches.extend(ts.dbMatch('basenames', requirement))
        except rpm.error as e:
            raise AdapterError('query-whatprovides', f"{requirement}: {e}")

        for hdr in matches:
            ident = _identifier(hdr)
            if ident not in providers:
                providers.append(ident)

        if not providers:
            logger.debug(f"No package provides {requirement}")
        return providers

    def query_installed(self, root: Path) -> List[str]:
        import rpm

        installed = []
        try:
            ts = self._transaction_set(root)
            for hdr in ts.dbMatch():
                if hdr[rpm.RPMTAG_NAME] in PSEUDO_PACKAGES:
                    continue
                installed.append(_identifier(hdr))
        except rpm.error as e:
            raise AdapterError('query-installed', str(e))

        return sorted(installed)

    # --- erase ---

    def erase(self, root: Path, names: Iterable[str],
              options: EraseOptions) -> None:
        import rpm

        names = list(names)
        if not names:
            return

        try:
            ts = rpm.TransactionSet(str(root))

            found = 0
            for name in names:
                matches = list(ts.dbMatch('name', name))
                if not matches:
                    logger.debug(f"Not installed, skipping erase: {name}")
                    continue
                if not options.allmatches:
                    matches = matches[:1]
                for hdr in matches:
                    ts.addErase(hdr)
                    found += 1

            if found == 0:
                return

            if not options.nodeps:
                unresolved = ts.check()
                if unresolved:
                    problems = '; '.join(str(p) for p in unresolved)
                    raise AdapterError('erase', f"dependency problems: {problems}")

            ts.order()

            def callback(reason, amount, total, key, client_data):
                if reason == rpm.RPMCALLBACK_UNINST_START:
                    logger.debug(f"Erasing {key}")

            problems = ts.run(callback, '')
        except rpm.error as e:
            raise AdapterError('erase', str(e))

        if problems:
            raise AdapterError('erase', '; '.join(str(p) for p in problems))

        logger.info(f"Erased {found} package header(s) from {root}")
