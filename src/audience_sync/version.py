"""
Version management for Audience Sync.
"""

from importlib.metadata import PackageNotFoundError, version

# Used when running from a source checkout that was never installed
BASE_VERSION = "1.0.0"


def get_version() -> str:
    """Get the installed distribution version, falling back to the base version."""
    try:
        return version("audience-sync")
    except PackageNotFoundError:
        return BASE_VERSION


__version__ = get_version()
