"""
Services for Audience Sync.
"""

from .secrets import SecretManagerService
from .watermarks import FirestoreWatermarkStore, RedisWatermarkStore, WatermarkStore

__all__ = [
    "FirestoreWatermarkStore",
    "RedisWatermarkStore",
    "SecretManagerService",
    "WatermarkStore",
]
