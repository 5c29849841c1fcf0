"""Build commands: build, closure, profiles."""

import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING

from ...core.adapter import InstallOptions
from ...core.builder import BuildConfig, RootfsBuilder
from ...core.closure import compute_closure
from ...core.config import get_system_version, load_profile, load_profiles
from ...core.errors import BuildError, ConfigError, MinrootError, Stage
from ...core.finalize import FinalizeOptions
from ...core.pkgset import intersection, union
from ...core.removal import plan_removal
from .. import colors

if TYPE_CHECKING:
    from ...core.adapter import PackageDatabase

logger = logging.getLogger(__name__)

# Exit codes per failing stage, so callers can tell failures apart
STAGE_EXIT_CODES = {
    Stage.INSTALL: 3,
    Stage.CLOSURE: 4,
    Stage.REMOVAL: 5,
    Stage.FINALIZE: 6,
}


def _print_names(title: str, names, fmt) -> None:
    print(f"\n{title} ({colors.count(len(names))}):")
    for name in names:
        print(f"  {fmt(name)}")


def build_config_from_args(args) -> BuildConfig:
    """Translate parsed arguments into a BuildConfig.

    Raises:
        ConfigError: unknown profile
    """
    profile = load_profile(args.profile)
    releasever = args.releasever or get_system_version()

    install_options = InstallOptions(
        weak_deps=False,
        docs=False,
        releasever=releasever,
        use_host_config=(args.repos == 'host'),
    )
    finalize_options = FinalizeOptions(
        ldconfig=not args.no_ldconfig,
        strip_binaries=args.strip,
        app_user=args.app_user,
        app_uid=args.app_uid,
        buildinfo_source=Path(args.buildinfo),
    )

    return BuildConfig(
        profile=profile,
        packages=list(args.packages),
        repo_mode=args.repos,
        install_options=install_options,
        finalize_options=finalize_options,
        closure_timeout=args.closure_timeout,
    )


def cmd_build(args, db: 'PackageDatabase') -> int:
    """Build a minimal root: install, compute closure, prune, finalize."""
    try:
        config = build_config_from_args(args)
    except ConfigError as e:
        print(colors.error(f"Error: {e}"))
        return 1

    root = Path(args.root)
    if not args.json:
        print(f"Building minimal root in {root}")
        print(f"  Profile:  {config.profile.name} ({config.profile.description})")
        print(f"  Seeds:    {' '.join(config.seeds)}")
        if config.install_options.releasever:
            print(f"  Release:  {config.install_options.releasever}")

    builder = RootfsBuilder(db, root, config)
    try:
        report = builder.build()
    except ConfigError as e:
        print(colors.error(f"Error: {e}"))
        return 1
    except BuildError as e:
        print(colors.error(f"Build failed at stage {colors.stage(e.stage.value)}: {e.cause}"))
        return STAGE_EXIT_CODES[e.stage]

    if args.json:
        print(json.dumps(report.to_dict(), indent=2))
        return 0

    if report.unsatisfied:
        print(colors.warning(f"\n{len(report.unsatisfied)} requirement(s) without a provider "
                             f"(satisfied outside package granularity?):"))
        for req in report.unsatisfied:
            print(colors.dim(f"  {req}"))

    print(colors.success(f"\nRoot ready: {report.root}"))
    print(f"  Kept:       {colors.count(len(report.kept))} package(s)")
    print(f"  Removed:    {colors.count(len(report.removed))} package(s)")
    print(f"  Iterations: {report.closure_iterations}")
    if report.finalize and report.finalize.users_added:
        print(f"  Users:      {', '.join(report.finalize.users_added)}")
    return 0


def cmd_closure(args, db: 'PackageDatabase') -> int:
    """Compute the closure of an already populated root, remove nothing."""
    try:
        profile = load_profile(args.profile)
    except ConfigError as e:
        print(colors.error(f"Error: {e}"))
        return 1

    seeds = union(profile.packages, args.packages)
    conflict = intersection(seeds, profile.disallow)
    if conflict:
        print(colors.error(f"Error: requested package(s) are disallowed: {', '.join(conflict)}"))
        return 1

    root = Path(args.root)
    try:
        result = compute_closure(db, root, seeds, disallow=profile.disallow)
        plan = plan_removal(db.query_installed(root), result.keep, profile.protect)
    except MinrootError as e:
        print(colors.error(f"Closure failed at stage {colors.stage(Stage.CLOSURE.value)}: {e}"))
        return STAGE_EXIT_CODES[Stage.CLOSURE]

    if args.json:
        print(json.dumps({
            'root': str(root),
            'keep': list(result.keep),
            'would_remove': list(plan.remove),
            'iterations': result.iteration_count,
            'unsatisfied': list(result.unsatisfied),
        }, indent=2))
        return 0

    _print_names("Closure", result.keep, colors.success)
    _print_names("Would remove", plan.remove, colors.error)
    print(colors.dim(f"\nStable after {result.iteration_count} iteration(s)"))
    return 0


def cmd_profiles(args, db: 'PackageDatabase' = None) -> int:
    """List available profiles."""
    profiles = load_profiles()
    if not profiles:
        print(colors.warning("No profiles found"))
        return 1

    if getattr(args, 'json', False):
        print(json.dumps({
            name: {
                'description': p.description,
                'packages': list(p.packages),
                'disallow': sorted(p.disallow),
                'protect': sorted(p.protect),
                'path': str(p.path) if p.path else None,
            }
            for name, p in sorted(profiles.items())
        }, indent=2))
        return 0

    for name, profile in sorted(profiles.items()):
        print(f"{colors.bold(name)}: {profile.description}")
        print(colors.dim(f"  packages: {' '.join(profile.packages)}"))
    return 0
