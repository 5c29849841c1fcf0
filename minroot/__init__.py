"""
minroot - Minimal container root filesystems from RPM packages

Installs a handful of packages into a target root, computes the exact
runtime dependency closure of what must stay, and erases the rest:
- Fixpoint closure over installed package requirements
- Disallow lists that override dependency edges
- Protected packages that always survive pruning
"""

__version__ = "0.1.0"
__author__ = "minroot contributors"
