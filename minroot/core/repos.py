"""Repository configuration for installs into a target root.

An empty target root has no repositories of its own. Either the install
reads the host's repository configuration (host mode), or the repository
files and signing keys are copied into the root first (copy mode).
"""

import logging
import shutil
from pathlib import Path
from typing import List

from .errors import ConfigError, InstallError

logger = logging.getLogger(__name__)

REPO_MODES = ('host', 'copy')

REPOS_DIR = 'yum.repos.d'
KEYS_DIR = 'pki/rpm-gpg'


def prepare_repos(root: Path, mode: str = 'host', host_etc: Path = Path('/etc')) -> List[Path]:
    """Make repositories reachable for installs into root.

    Args:
        root: Target root
        mode: 'host' (use host config) or 'copy' (copy repo files into root)
        host_etc: Host configuration directory

    Returns:
        Files copied into root (empty in host mode)

    Raises:
        ConfigError: unknown mode
        InstallError: copy mode found no repository file
    """
    if mode not in REPO_MODES:
        raise ConfigError(f"Unknown repository mode '{mode}' (use: {', '.join(REPO_MODES)})")

    if mode == 'host':
        logger.debug(f"Using host repositories from {host_etc / REPOS_DIR}")
        return []

    repo_files = sorted((host_etc / REPOS_DIR).glob('*.repo'))
    if not repo_files:
        raise InstallError(f"No repository files in {host_etc / REPOS_DIR}")

    copied = []
    for src_dir, pattern in ((REPOS_DIR, '*.repo'), (KEYS_DIR, '*')):
        dest_dir = root / 'etc' / src_dir
        dest_dir.mkdir(parents=True, exist_ok=True)
        for src in sorted((host_etc / src_dir).glob(pattern)):
            if not src.is_file():
                continue
            dest = dest_dir / src.name
            shutil.copy2(src, dest)
            copied.append(dest)

    logger.info(f"Copied {len(copied)} repository/key file(s) into {root}")
    return copied
