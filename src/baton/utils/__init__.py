"""Utilities Package.

Modules:
    config: Configuration builder and access functions
    logger: Rich component logging
"""

from . import config, logger

__all__ = ["config", "logger"]
