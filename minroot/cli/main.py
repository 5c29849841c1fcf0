"""
Main CLI entry point for minroot

Commands with short aliases:
- minroot build / minroot b       (install, close, prune, finalize)
- minroot closure / minroot c     (closure of an existing root, dry run)
- minroot profiles / minroot p    (list profiles)
"""

import argparse
import logging
import sys

from .. import __version__
from ..core.config import DEFAULT_PROFILE, DEFAULT_ROOT
from ..core.repos import REPO_MODES
from ..core.rpmdb import FRONTENDS, RpmDatabase


def check_dependencies() -> list:
    """Check for required Python modules.

    Returns:
        List of (package, purpose) tuples for missing modules
    """
    missing = []

    try:
        import rpm
    except ImportError:
        missing.append(('python3-rpm', 'package database queries'))

    try:
        import yaml
    except ImportError:
        missing.append(('python3-pyyaml', 'profiles'))

    return missing


def print_missing_dependencies(missing: list):
    """Print error message for missing dependencies."""
    print("ERROR: Missing required Python modules:\n", file=sys.stderr)
    for pkg, purpose in missing:
        print(f"  - {pkg} ({purpose})", file=sys.stderr)
    print(f"\nInstall with:", file=sys.stderr)
    print(f"  dnf install {' '.join(pkg for pkg, _ in missing)}", file=sys.stderr)


class AliasedSubParsersAction(argparse._SubParsersAction):
    """Custom action to support command aliases in argparse."""

    def add_parser(self, name, **kwargs):
        aliases = kwargs.pop('aliases', [])
        parser = super().add_parser(name, **kwargs)

        for alias in aliases:
            self._name_parser_map[alias] = parser

        return parser


def _add_root_arguments(parser: argparse.ArgumentParser):
    parser.add_argument(
        'packages', nargs='*',
        help='Packages to keep, in addition to the profile baseline'
    )
    parser.add_argument(
        '--root', '-r',
        default=str(DEFAULT_ROOT),
        help=f'Target root directory (default: {DEFAULT_ROOT})'
    )
    parser.add_argument(
        '--profile', '-p',
        default=DEFAULT_PROFILE,
        help=f'Profile with baseline/disallow/protect lists (default: {DEFAULT_PROFILE})'
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the main argument parser with all commands and aliases."""

    parser = argparse.ArgumentParser(
        prog='minroot',
        description='Minimal container root filesystems from RPM packages',
        epilog='Use "minroot <command> --help" for command-specific help.'
    )

    parser.add_argument(
        '--version', '-V',
        action='version',
        version=f'minroot {__version__}'
    )
    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Verbose output'
    )
    parser.add_argument(
        '--nocolor',
        action='store_true',
        help='Disable colored output'
    )

    display_parent = argparse.ArgumentParser(add_help=False)
    display_parent.add_argument(
        '--json',
        action='store_true',
        help='JSON output for scripting'
    )

    parser.register('action', 'parsers', AliasedSubParsersAction)

    subparsers = parser.add_subparsers(
        dest='command',
        title='commands',
        metavar='<command>'
    )

    # =========================================================================
    # build / b
    # =========================================================================
    build_parser = subparsers.add_parser(
        'build', aliases=['b'],
        help='Build a minimal root',
        parents=[display_parent]
    )
    _add_root_arguments(build_parser)
    build_parser.add_argument(
        '--releasever',
        help='Release version for the installer (default: host VERSION_ID)'
    )
    build_parser.add_argument(
        '--repos',
        choices=REPO_MODES,
        default='host',
        help='Use host repositories, or copy them into the root (default: host)'
    )
    build_parser.add_argument(
        '--frontend',
        choices=FRONTENDS,
        help='Installer to use (default: first found)'
    )
    build_parser.add_argument(
        '--strip',
        action='store_true',
        help='Strip debug symbols from ELF files'
    )
    build_parser.add_argument(
        '--no-ldconfig',
        action='store_true',
        help='Do not refresh the linker cache'
    )
    build_parser.add_argument(
        '--app-user',
        default='app',
        help='Non-root application user (default: app)'
    )
    build_parser.add_argument(
        '--app-uid',
        type=int,
        default=1001,
        help='UID/GID of the application user (default: 1001)'
    )
    build_parser.add_argument(
        '--buildinfo',
        default='/root/buildinfo',
        help='Scanner metadata directory to copy into the root'
    )
    build_parser.add_argument(
        '--closure-timeout',
        type=float,
        metavar='SECONDS',
        help='Abort if the closure is not stable in time'
    )

    # =========================================================================
    # closure / c
    # =========================================================================
    closure_parser = subparsers.add_parser(
        'closure', aliases=['c'],
        help='Show the closure of a populated root without removing anything',
        parents=[display_parent]
    )
    _add_root_arguments(closure_parser)

    # =========================================================================
    # profiles / p
    # =========================================================================
    subparsers.add_parser(
        'profiles', aliases=['p'],
        help='List available profiles',
        parents=[display_parent]
    )

    return parser


def main(argv=None) -> int:
    """Main CLI entry point."""
    missing = check_dependencies()
    if missing:
        print_missing_dependencies(missing)
        return 1

    parser = create_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(name)s - %(levelname)s - %(message)s',
        stream=sys.stderr
    )
    # Unsatisfied providers and other warnings go through the same handler
    logging.captureWarnings(True)

    from . import colors
    colors.init(nocolor=args.nocolor)

    if not args.command:
        parser.print_help()
        return 1

    from .commands import cmd_build, cmd_closure, cmd_profiles

    try:
        if args.command in ('build', 'b'):
            return cmd_build(args, RpmDatabase(preferred=args.frontend))

        elif args.command in ('closure', 'c'):
            return cmd_closure(args, RpmDatabase())

        elif args.command in ('profiles', 'p'):
            return cmd_profiles(args)

        parser.print_help()
        return 1

    except KeyboardInterrupt:
        print("\nInterrupted")
        return 130

    except Exception as e:
        if args.verbose:
            import traceback
            traceback.print_exc()
        else:
            print(f"Error: {e}")
        return 1


if __name__ == '__main__':
    sys.exit(main())
