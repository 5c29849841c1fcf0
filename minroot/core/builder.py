"""Rootfs build pipeline.

    seed → install → closure → removal → finalize

Each stage runs against a consistent view of the target root left by the
previous one. Any failure aborts the build with the stage it happened in;
nothing is retried, a new build starts from a fresh root.
"""

import logging
import time
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from .adapter import InstallOptions, PackageDatabase
from .closure import DEFAULT_INTERNAL_PREFIXES, ClosureResult, compute_closure
from .config import Profile
from .errors import BuildError, ConfigError, MinrootError, Stage
from .finalize import FinalizeOptions, FinalizeReport, finalize_rootfs
from .pkgset import PackageSet, intersection, sort_unique, union
from .removal import RemovalPlan, remove_unneeded, verify_survivors
from .repos import prepare_repos

logger = logging.getLogger(__name__)


@dataclass
class BuildReport:
    """Summary of one build, reported to the user."""
    root: str
    seeds: PackageSet
    kept: PackageSet
    removed: PackageSet
    protected: PackageSet
    closure_iterations: int
    unsatisfied: Tuple[str, ...] = ()
    finalize: Optional[FinalizeReport] = None

    def to_dict(self) -> dict:
        data = asdict(self)
        for key in ('seeds', 'kept', 'removed', 'protected', 'unsatisfied'):
            data[key] = list(data[key])
        data['kept_count'] = len(self.kept)
        data['removed_count'] = len(self.removed)
        return data


@dataclass
class BuildConfig:
    """Everything a build needs besides the target root and the adapter."""
    profile: Profile
    packages: List[str] = field(default_factory=list)
    repo_mode: str = 'host'
    host_etc: Path = Path('/etc')
    install_options: InstallOptions = InstallOptions()
    finalize_options: FinalizeOptions = FinalizeOptions()
    internal_prefixes: Tuple[str, ...] = DEFAULT_INTERNAL_PREFIXES
    closure_timeout: Optional[float] = None

    @property
    def seeds(self) -> PackageSet:
        """Profile baseline plus caller packages."""
        return union(self.profile.packages, self.packages)


class RootfsBuilder:
    """Builds one minimal root. Not shareable between concurrent builds."""

    def __init__(self, db: PackageDatabase, root: Path, config: BuildConfig):
        self.db = db
        self.root = Path(root)
        self.config = config

    def validate(self):
        """Reject seeds that the disallow list forbids.

        Raises:
            ConfigError
        """
        conflict = intersection(self.config.seeds, self.config.profile.disallow)
        if conflict:
            raise ConfigError(f"Requested package(s) are disallowed: {', '.join(conflict)}")

    def _run_stage(self, stage: Stage, func, *args, **kwargs):
        logger.info(f"Stage {stage.value}: start")
        start = time.monotonic()
        try:
            result = func(*args, **kwargs)
        except (MinrootError, OSError) as e:
            logger.error(f"Stage {stage.value} failed: {e}")
            raise BuildError(stage, e) from e
        logger.info(f"Stage {stage.value}: done in {time.monotonic() - start:.1f}s")
        return result

    def install(self) -> PackageSet:
        seeds = self.config.seeds
        self.root.mkdir(parents=True, exist_ok=True)
        prepare_repos(self.root, self.config.repo_mode, self.config.host_etc)
        self.db.install(self.root, seeds, self.config.install_options)
        return seeds

    def closure(self, seeds: Iterable[str]) -> ClosureResult:
        deadline = None
        if self.config.closure_timeout is not None:
            deadline = time.monotonic() + self.config.closure_timeout
        return compute_closure(
            self.db, self.root, seeds,
            disallow=self.config.profile.disallow,
            internal_prefixes=self.config.internal_prefixes,
            deadline=deadline,
        )

    def removal(self, keep: Iterable[str]) -> RemovalPlan:
        plan = remove_unneeded(self.db, self.root, keep, self.config.profile.protect)
        verify_survivors(self.db, self.root, plan)
        return plan

    def finalize(self) -> FinalizeReport:
        return finalize_rootfs(self.root, self.config.finalize_options)

    def build(self) -> BuildReport:
        """Run the whole pipeline.

        Returns:
            BuildReport with kept and removed packages

        Raises:
            ConfigError: seeds conflict with the disallow list
            BuildError: a stage failed, see .stage and .cause
        """
        self.validate()

        seeds = self._run_stage(Stage.INSTALL, self.install)
        result = self._run_stage(Stage.CLOSURE, self.closure, seeds)
        plan = self._run_stage(Stage.REMOVAL, self.removal, result.keep)
        finalize_report = self._run_stage(Stage.FINALIZE, self.finalize)

        return BuildReport(
            root=str(self.root),
            seeds=seeds,
            kept=plan.survivors,
            removed=plan.remove,
            protected=sort_unique(self.config.profile.protect),
            closure_iterations=result.iteration_count,
            unsatisfied=result.unsatisfied,
            finalize=finalize_report,
        )
