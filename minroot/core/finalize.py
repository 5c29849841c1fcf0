"""Final touches on a pruned root.

Refreshes the linker cache, optionally strips debug symbols, deletes
caches, logs, docs and unused locales, and registers the minimal users.
The RPM database and the scanner metadata directory are never touched by
cleanup, whatever the patterns say.
"""

import glob
import logging
import os
import shutil
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Tuple

from .errors import ConfigError

logger = logging.getLogger(__name__)

CLEANUP_PATTERNS = [
    'var/cache/dnf/*',
    'var/cache/libdnf5/*',
    'var/cache/yum/*',
    'var/cache/ldconfig/*',
    'var/log/*',
    'tmp/*',
    'var/tmp/*',
    'root/.bash_history',
    'usr/share/doc/*',
    'usr/share/man/*',
    'usr/share/info/*',
    'etc/**/*.rpmnew',                  # Config file backups (new version)
    'etc/**/*.rpmsave',                 # Config file backups (saved)
]

LOCALE_DIRS = ['usr/lib/locale', 'usr/share/locale']
LOCALE_ALLOWLIST = ('C', 'C.UTF-8')
# Not a locale, glibc reads it for every locale lookup
LOCALE_KEEP_FILES = {'locale.alias'}

# Package database and scanner metadata, never cleaned
BUILDINFO_DIR = 'root/buildinfo'
RPMDB_DIRS = ('var/lib/rpm', 'usr/lib/sysimage/rpm')
PRESERVED_DIRS = RPMDB_DIRS + (BUILDINFO_DIR,)

STRIP_DIRS = ['usr/bin', 'usr/sbin', 'usr/lib', 'usr/lib64', 'usr/libexec']
ELF_MAGIC = b'\x7fELF'


@dataclass(frozen=True)
class FinalizeOptions:
    """What the finalizer does besides the mandatory cleanup."""
    ldconfig: bool = True
    strip_binaries: bool = False
    locale_allowlist: Tuple[str, ...] = LOCALE_ALLOWLIST
    app_user: str = 'app'
    app_uid: int = 1001
    buildinfo_source: Path = Path('/root/buildinfo')


@dataclass
class FinalizeReport:
    ldconfig_ran: bool = False
    stripped: int = 0
    removed_paths: int = 0
    users_added: List[str] = field(default_factory=list)


def is_preserved(root: Path, path: str) -> bool:
    """True if path lies in the package database or buildinfo directory."""
    rel = os.path.relpath(path, root)
    for preserved in PRESERVED_DIRS:
        if rel == preserved or rel.startswith(preserved + os.sep):
            return True
    return False


def is_inside_root(root: Path, path: str) -> bool:
    """True if path, reached through any symlinked directories, stays in root.

    The final component is not resolved: a symlink inside root is removed
    as a link, never followed.
    """
    real_root = os.path.realpath(root)
    parent = os.path.realpath(os.path.dirname(path))
    return os.path.commonpath([real_root, parent]) == real_root


def _remove_path(path: str) -> bool:
    try:
        if os.path.islink(path) or os.path.isfile(path):
            os.remove(path)
        elif os.path.isdir(path):
            shutil.rmtree(path)
        else:
            return False
    except (IOError, OSError) as e:
        logger.warning(f"Could not remove {path}: {e}")
        return False
    return True


def refresh_linker_cache(root: Path) -> bool:
    """Regenerate ld.so.cache for root. Best-effort."""
    ldconfig = shutil.which('ldconfig')
    if not ldconfig:
        logger.info("ldconfig not available, linker cache not refreshed")
        return False

    result = subprocess.run([ldconfig, '-r', str(root)], capture_output=True, text=True)
    if result.returncode != 0:
        logger.warning(f"ldconfig failed: {result.stderr.strip()}")
        return False
    return True


def _is_elf(path: str) -> bool:
    try:
        with open(path, 'rb') as f:
            return f.read(4) == ELF_MAGIC
    except (IOError, OSError):
        return False


def strip_binaries(root: Path) -> int:
    """Strip debug symbols from ELF files. Best-effort.

    Returns:
        Number of files stripped
    """
    strip = shutil.which('strip')
    if not strip:
        logger.info("strip not available, binaries left as is")
        return 0

    stripped = 0
    for subdir in STRIP_DIRS:
        for dirpath, dirnames, filenames in os.walk(root / subdir):
            for filename in filenames:
                path = os.path.join(dirpath, filename)
                if os.path.islink(path) or not os.path.isfile(path) or not _is_elf(path):
                    continue
                result = subprocess.run([strip, '--strip-debug', path],
                                        capture_output=True, text=True)
                if result.returncode == 0:
                    stripped += 1
                else:
                    logger.debug(f"strip failed on {path}: {result.stderr.strip()}")
    return stripped


def _locale_key(name: str) -> str:
    return name.lower().replace('utf-8', 'utf8')


def prune_locales(root: Path, allowlist: Tuple[str, ...] = LOCALE_ALLOWLIST) -> int:
    """Delete locale data outside the allow-list.

    Returns:
        Number of entries removed
    """
    allowed = {_locale_key(a) for a in allowlist}
    removed = 0
    for locale_dir in LOCALE_DIRS:
        base = root / locale_dir
        if not base.is_dir():
            continue
        for entry in sorted(base.iterdir()):
            if entry.name in LOCALE_KEEP_FILES or _locale_key(entry.name) in allowed:
                continue
            if not is_inside_root(root, str(entry)):
                logger.warning(f"Skipping {entry}: resolves outside {root}")
                continue
            if _remove_path(str(entry)):
                removed += 1
    return removed


def cleanup(root: Path, patterns: List[str] = None) -> int:
    """Delete caches, logs, docs and config backups.

    Returns:
        Number of entries removed
    """
    removed = 0
    for pattern in (patterns if patterns is not None else CLEANUP_PATTERNS):
        for path in glob.glob(os.path.join(str(root), pattern), recursive=True):
            if not is_inside_root(root, path):
                logger.warning(f"Skipping {path}: resolves outside {root}")
                continue
            if is_preserved(root, path):
                continue
            if _remove_path(path):
                removed += 1
    return removed


def _read_entries(path: Path) -> List[List[str]]:
    if not path.exists():
        return []
    return [line.split(':') for line in path.read_text().splitlines() if line.strip()]


def _needs_newline(path: Path) -> bool:
    if not path.exists() or path.stat().st_size == 0:
        return False
    with open(path, 'rb') as f:
        f.seek(-1, os.SEEK_END)
        return f.read(1) != b'\n'


def ensure_users(root: Path, app_user: str, app_uid: int) -> List[str]:
    """Register root and the application identity in passwd and group.

    Entries are appended only when missing.

    Returns:
        Names of the users added

    Raises:
        ConfigError: app_uid already belongs to another user
    """
    etc = root / 'etc'
    etc.mkdir(parents=True, exist_ok=True)
    passwd = etc / 'passwd'
    group = etc / 'group'

    users = _read_entries(passwd)
    groups = _read_entries(group)
    user_names = {u[0] for u in users}
    group_names = {g[0] for g in groups}

    for entry in users:
        if len(entry) > 2 and entry[2] == str(app_uid) and entry[0] != app_user:
            raise ConfigError(f"uid {app_uid} already used by '{entry[0]}'")

    wanted = [
        ('root', 0, '/root', '/bin/bash'),
        (app_user, app_uid, f'/home/{app_user}', '/sbin/nologin'),
    ]

    passwd_newline = _needs_newline(passwd)
    group_newline = _needs_newline(group)

    added = []
    with open(passwd, 'a') as pf, open(group, 'a') as gf:
        # Never glue an entry onto an unterminated last line
        if passwd_newline:
            pf.write('\n')
        if group_newline:
            gf.write('\n')
        for name, uid, home, shell in wanted:
            if name not in user_names:
                pf.write(f"{name}:x:{uid}:{uid}:{name}:{home}:{shell}\n")
                added.append(name)
            if name not in group_names:
                gf.write(f"{name}:x:{uid}:\n")

    home = root / 'home' / app_user
    if not home.exists():
        home.mkdir(parents=True, mode=0o750)
        try:
            os.chown(home, app_uid, app_uid)
        except (IOError, OSError):
            logger.debug(f"Could not chown {home} (not running as root?)")

    return added


def preserve_buildinfo(root: Path, source: Path) -> Path:
    """Copy the scanner metadata directory into root, or create it empty."""
    dest = root / BUILDINFO_DIR
    if source and source.is_dir():
        shutil.copytree(source, dest, dirs_exist_ok=True)
        logger.info(f"Copied build metadata from {source}")
    dest.mkdir(parents=True, exist_ok=True)
    return dest


def finalize_rootfs(root: Path, options: FinalizeOptions = None) -> FinalizeReport:
    """Run every finalization step on root, in order."""
    options = options or FinalizeOptions()
    report = FinalizeReport()

    if options.ldconfig:
        report.ldconfig_ran = refresh_linker_cache(root)

    if options.strip_binaries:
        report.stripped = strip_binaries(root)
        logger.info(f"Stripped {report.stripped} ELF file(s)")

    report.removed_paths = cleanup(root) + prune_locales(root, options.locale_allowlist)
    logger.info(f"Removed {report.removed_paths} cache/doc/locale entries")

    # Required by RPM scriptlets and most runtimes
    var_tmp = root / 'var' / 'tmp'
    var_tmp.mkdir(parents=True, exist_ok=True)
    os.chmod(var_tmp, 0o1777)

    report.users_added = ensure_users(root, options.app_user, options.app_uid)
    preserve_buildinfo(root, options.buildinfo_source)

    return report
