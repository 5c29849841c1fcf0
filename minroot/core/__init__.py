"""Core modules for minroot"""

from .builder import BuildConfig, BuildReport, RootfsBuilder
from .closure import ClosureResult, compute_closure
from .removal import RemovalPlan, plan_removal, remove_unneeded
from .rpm import normalize_name

__all__ = [
    'BuildConfig', 'BuildReport', 'RootfsBuilder',
    'ClosureResult', 'compute_closure',
    'RemovalPlan', 'plan_removal', 'remove_unneeded',
    'normalize_name',
]
