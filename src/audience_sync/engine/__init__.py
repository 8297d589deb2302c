"""
Sync engine for incrementally copying audience members between services.
"""

from .sync import SyncEngine
from .transforms import derive_names, transform_member, transform_members

__all__ = [
    "SyncEngine",
    "derive_names",
    "transform_member",
    "transform_members",
]
