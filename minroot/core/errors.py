"""Error taxonomy for rootfs builds.

Everything fatal derives from MinrootError and propagates up to the CLI,
which maps the failing stage to an exit code. Nothing is retried: a build
is restarted from a fresh target root instead.
"""

from enum import Enum


class Stage(Enum):
    """Pipeline stage, used to report where a build failed."""
    INSTALL = 'install'
    CLOSURE = 'closure'
    REMOVAL = 'removal'
    FINALIZE = 'finalize'


class MinrootError(Exception):
    """Base class for all minroot errors."""


class ConfigError(MinrootError):
    """Raised for unusable profiles or conflicting build arguments."""


class InstallError(MinrootError):
    """Raised when seed or dependency installation into the root fails."""

    def __init__(self, message: str, packages: list = None, output: str = ''):
        self.packages = list(packages or [])
        self.output = output
        super().__init__(message)


class AdapterError(MinrootError):
    """Raised when a package database query or erase fails unexpectedly."""

    def __init__(self, operation: str, message: str):
        self.operation = operation
        super().__init__(f"{operation}: {message}")


class InvariantViolation(MinrootError):
    """Raised when a set invariant the algorithm guarantees does not hold.

    This signals a defect, not a runtime condition, and is never corrected
    silently.
    """


class ClosureTimeout(MinrootError):
    """Raised when the closure deadline passes between two iterations."""

    def __init__(self, iterations: int):
        self.iterations = iterations
        super().__init__(
            f"closure not stable after {iterations} iteration(s), deadline exceeded"
        )


class UnsatisfiedProviderWarning(UserWarning):
    """A requirement had no provider in the target root.

    Logged, never raised: requirements such as file paths can be satisfied
    below package granularity.
    """


class BuildError(MinrootError):
    """A fatal error wrapped with the pipeline stage it happened in."""

    def __init__(self, stage: Stage, cause: Exception):
        self.stage = stage
        self.cause = cause
        super().__init__(f"[{stage.value}] {cause}")
