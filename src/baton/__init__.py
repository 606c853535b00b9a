"""Baton Context Distribution.

Core package for handing structured context between collaborating agents.

This package contains:
- Context documents, store, classifier, budget allocator and fallback resolver
- The context loader that orchestrates them for a consumer request
- Event types and the append-only event log
- Configuration and logging utilities
"""

# Version information
__version__ = "0.3.0"

__all__ = ["__version__"]

# Package is designed for on-demand imports to avoid circular dependencies
# Use specific imports like: from baton.context import ContextLoader
