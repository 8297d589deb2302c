"""
Models for the audience sync system.
"""

from .sync import ListSyncResult, PageOutcome, SweepResult, SyncStage

__all__ = [
    "ListSyncResult",
    "PageOutcome",
    "SweepResult",
    "SyncStage",
]
