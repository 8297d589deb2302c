"""
Incremental audience sync from Mailchimp to Ometria.
"""

from .version import __version__

__all__ = ["__version__"]
