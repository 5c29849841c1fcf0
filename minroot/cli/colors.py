"""Color output support for minroot CLI.

Color palette:
  - Red: errors and removed packages
  - Orange: warnings
  - Green: success and kept packages
  - Blue: stage progress
"""

import os
import sys

# ANSI color codes
_COLORS = {
    'reset': '\033[0m',
    'bold': '\033[1m',
    'red': '\033[91m',
    'orange': '\033[93m',   # no true orange in ANSI
    'green': '\033[92m',
    'blue': '\033[94m',
    'dim': '\033[2m',
}

_colors_enabled = True


def init(nocolor: bool = False, stream=None):
    """Initialize color support.

    Colors are off when nocolor is set, NO_COLOR is set (https://no-color.org/)
    or the output stream is not a terminal.
    """
    global _colors_enabled

    stream = stream or sys.stdout
    if nocolor or os.environ.get('NO_COLOR'):
        _colors_enabled = False
    else:
        _colors_enabled = stream.isatty()


def _wrap(text: str, color: str) -> str:
    if not _colors_enabled:
        return text
    return f"{_COLORS.get(color, '')}{text}{_COLORS['reset']}"


def error(text: str) -> str:
    return _wrap(text, 'red')


def warning(text: str) -> str:
    return _wrap(text, 'orange')


def success(text: str) -> str:
    return _wrap(text, 'green')


def info(text: str) -> str:
    return _wrap(text, 'blue')


def dim(text: str) -> str:
    return _wrap(text, 'dim')


def bold(text: str) -> str:
    return _wrap(text, 'bold')


def stage(name: str) -> str:
    """Format a pipeline stage name, e.g. [closure]."""
    return info(f"[{name}]")


def count(n: int) -> str:
    return bold(str(n))
