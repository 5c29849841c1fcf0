"""CLI command modules."""

from .build import (
    STAGE_EXIT_CODES,
    cmd_build,
    cmd_closure,
    cmd_profiles,
)

__all__ = [
    'STAGE_EXIT_CODES',
    'cmd_build',
    'cmd_closure',
    'cmd_profiles',
]
