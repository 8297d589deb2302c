"""
Secret Manager service for retrieving API credentials.
"""

import logging
import os
from typing import Any, Dict, Optional
from google.cloud import secretmanager

logger = logging.getLogger(__name__)

# settings path -> secret name
CREDENTIAL_SECRETS = {
    ("mailchimp", "api_key"): "mailchimp-api-key",
    ("ometria", "api_key"): "ometria-api-key",
}


class SecretManagerService:
    """Service for retrieving secrets from Google Secret Manager."""

    def __init__(self, project_id: Optional[str] = None, client: Optional[Any] = None):
        """Initialize Secret Manager service."""
        self.project_id = project_id or os.getenv("GOOGLE_CLOUD_PROJECT")
        if not self.project_id:
            raise ValueError("GOOGLE_CLOUD_PROJECT environment variable must be set")

        self.client = client or secretmanager.SecretManagerServiceClient()
        self._cache: Dict[str, str] = {}

    def get_secret(self, secret_name: str, version: str = "latest") -> str:
        """Retrieve a secret value from Secret Manager."""
        cache_key = f"{secret_name}:{version}"

        if cache_key in self._cache:
            return self._cache[cache_key]

        try:
            secret_path = f"projects/{self.project_id}/secrets/{secret_name}/versions/{version}"
            response = self.client.access_secret_version(request={"name": secret_path})
            secret_value = response.payload.data.decode("UTF-8")

            self._cache[cache_key] = secret_value
            logger.info(f"Retrieved secret: {secret_name}")
            return secret_value

        except Exception as e:
            logger.error(f"Failed to retrieve secret {secret_name}: {e}")
            raise

    def fill_missing_credentials(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Fill API keys the config file and environment left empty.

        Secrets that can't be read are skipped; settings validation reports
        whatever is still missing.

        Args:
            data: Raw settings dictionary, updated in place

        Returns:
            The same dictionary
        """
        for (section, key), secret_name in CREDENTIAL_SECRETS.items():
            section_data = data.setdefault(section, {})
            if section_data.get(key):
                continue
            try:
                section_data[key] = self.get_secret(secret_name)
            except Exception as e:
                logger.warning(f"Could not read {secret_name} from Secret Manager: {e}")
        return data
