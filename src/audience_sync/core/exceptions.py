"""
Shared exception classes for Audience Sync.
"""

from typing import Optional


class AudienceSyncError(Exception):
    """Base exception for all audience sync errors."""
    pass


class ConfigurationError(AudienceSyncError):
    """Raised when there's a configuration issue."""
    pass


class APIError(AudienceSyncError):
    """Base class for API-related errors."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class MailchimpAPIError(APIError):
    """Exception raised for Mailchimp API errors."""
    pass


class OmetriaAPIError(APIError):
    """Exception raised for Ometria API errors."""
    pass


class WatermarkStoreError(AudienceSyncError):
    """Raised when the watermark store cannot be read or written."""
    pass


class SyncError(AudienceSyncError):
    """A list sync cycle was aborted.

    Carries the list and the stage that failed so the caller can tell a
    watermark problem from a fetch or push failure.
    """

    def __init__(self, message: str, list_id: str, stage: str):
        super().__init__(f"[{list_id}] {stage}: {message}")
        self.list_id = list_id
        self.stage = stage
