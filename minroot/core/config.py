"""
Central configuration for minroot.

Profiles describe what goes into a root:
    packages  - essential baseline, always seeded
    disallow  - names that never enter the closure
    protect   - names that always survive removal

Profile search order (first directory wins on a name clash):
    $MINROOT_PROFILE_DIR                    - extra directory, if set
    <project>/data/profiles/                - dev tree
    /usr/share/minroot/profiles/            - system, from package
    /etc/minroot/profiles/                  - local admin additions

Profile format (<name>.yaml):
    description: Minimal shell root
    packages: [bash, glibc-minimal-langpack, ncurses-libs]
    disallow: [systemd, dnf]
    protect: [glibc, bash]
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from .errors import ConfigError

logger = logging.getLogger(__name__)

# Where the root is built when no --root is given
DEFAULT_ROOT = Path("/target-rootfs")
DEFAULT_PROFILE = "default"

PROFILE_DIR_ENV = "MINROOT_PROFILE_DIR"
SYSTEM_PROFILE_DIR = Path("/usr/share/minroot/profiles")
LOCAL_PROFILE_DIR = Path("/etc/minroot/profiles")

OS_RELEASE = Path("/etc/os-release")


@dataclass(frozen=True)
class Profile:
    """Baseline, disallow and protect lists for one kind of root."""
    name: str
    description: str = ''
    packages: Tuple[str, ...] = ()
    disallow: frozenset = frozenset()
    protect: frozenset = frozenset()
    path: Optional[Path] = None


def get_profile_dirs() -> List[Path]:
    """Get profile directories in priority order."""
    dirs = []
    extra = os.environ.get(PROFILE_DIR_ENV)
    if extra:
        dirs.append(Path(extra).expanduser())
    # Dev mode: data/profiles/ next to the package
    dev_path = Path(__file__).parent.parent.parent / 'data' / 'profiles'
    if dev_path.exists():
        dirs.append(dev_path)
    dirs.extend([SYSTEM_PROFILE_DIR, LOCAL_PROFILE_DIR])
    return dirs


def _name_list(data: dict, key: str, path: Path) -> Tuple[str, ...]:
    value = data.get(key) or []
    if isinstance(value, str):
        value = value.split()
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ConfigError(f"{path}: '{key}' must be a list of package names")
    return tuple(v.strip() for v in value if v.strip())


def parse_profile(name: str, data, path: Path = None) -> Profile:
    """Build a Profile from parsed YAML data.

    Raises:
        ConfigError: data is not a mapping or a list is malformed
    """
    if not isinstance(data, dict):
        raise ConfigError(f"{path or name}: profile must be a mapping")

    packages = _name_list(data, 'packages', path)
    disallow = frozenset(_name_list(data, 'disallow', path))
    protect = frozenset(_name_list(data, 'protect', path))

    conflict = sorted(set(packages) & disallow)
    if conflict:
        raise ConfigError(
            f"{path or name}: baseline package(s) also disallowed: {', '.join(conflict)}"
        )

    return Profile(
        name=name,
        description=str(data.get('description', '')),
        packages=packages,
        disallow=disallow,
        protect=protect,
        path=path,
    )


def load_profiles(dirs: List[Path] = None) -> Dict[str, Profile]:
    """Load all profiles from the profile directories.

    Unreadable or malformed files are skipped with a warning.

    Returns:
        Dict mapping profile name to Profile
    """
    import yaml

    profiles = {}
    for profile_dir in (dirs if dirs is not None else get_profile_dirs()):
        if not profile_dir.is_dir():
            continue

        for yaml_file in sorted(profile_dir.glob('*.yaml')):
            name = yaml_file.stem
            if name in profiles:
                logger.debug(f"Profile {name} in {profile_dir} shadowed by {profiles[name].path}")
                continue
            try:
                with open(yaml_file, 'r') as f:
                    data = yaml.safe_load(f)
                profiles[name] = parse_profile(name, data, yaml_file)
            except (OSError, yaml.YAMLError, ConfigError) as e:
                logger.warning(f"Failed to load profile {yaml_file}: {e}")

    return profiles


def load_profile(name: str, dirs: List[Path] = None) -> Profile:
    """Load a single profile by name.

    Raises:
        ConfigError: no such profile
    """
    profiles = load_profiles(dirs)
    if name not in profiles:
        available = ', '.join(sorted(profiles)) or 'none'
        raise ConfigError(f"Unknown profile '{name}' (available: {available})")
    return profiles[name]


def get_system_version(os_release: Path = OS_RELEASE) -> Optional[str]:
    """Get the release identifier of the running system.

    Reads VERSION_ID from os-release, used as the default --releasever.

    Returns:
        Version string like '40', or None if unknown
    """
    try:
        with open(os_release) as f:
            for line in f:
                line = line.strip()
                if line.startswith('VERSION_ID='):
                    return line.split('=', 1)[1].strip().strip('"\'') or None
    except (OSError, IOError):
        return None
    return None
