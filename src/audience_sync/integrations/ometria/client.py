"""Ometria API client for pushing contacts."""

import logging
from typing import List

import requests
from requests.adapters import HTTPAdapter

from ...core.models import OmetriaContact
from ...core.exceptions import ConfigurationError, OmetriaAPIError

logger = logging.getLogger(__name__)

# Ometria acknowledges an accepted batch with 201 and nothing else
CREATED = 201


class OmetriaClient:
    """Client for interacting with the Ometria push API."""

    def __init__(self, api_key: str, endpoint: str, timeout: float = 30, pool_size: int = 10):
        """Initialize the Ometria client.

        Args:
            api_key: Ometria API key
            endpoint: Full URL of the contacts push endpoint
            timeout: Per-request timeout in seconds
            pool_size: Connection pool size, at least the number of concurrent pushes
        """
        if not endpoint:
            raise ConfigurationError("expecting the Ometria endpoint, but it was empty")
        if not api_key:
            raise ConfigurationError("expecting the Ometria api key, but it was empty")

        self.api_key = api_key
        self.endpoint = endpoint
        self.timeout = timeout

        self.session = requests.Session()
        adapter = HTTPAdapter(pool_connections=pool_size, pool_maxsize=pool_size)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

        self.session.headers.update({
            'Authorization': self.api_key,
            'Content-Type': 'application/json',
            'User-Agent': 'Audience-Sync/1.0.0'
        })

    def push_contacts(self, contacts: List[OmetriaContact]) -> None:
        """Push a batch of contacts in a single call.

        The batch either succeeds as a whole or fails as a whole.

        Args:
            contacts: Contacts to upsert

        Raises:
            OmetriaAPIError: If the request fails or the response is not 201 Created
        """
        payload = [contact.model_dump() for contact in contacts]

        try:
            logger.debug(f"Pushing {len(payload)} contacts to {self.endpoint}")
            response = self.session.post(self.endpoint, json=payload, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            logger.error(f"Ometria API request failed: {e}")
            raise OmetriaAPIError(f"Request failed: {str(e)}") from e

        if response.status_code != CREATED:
            raise OmetriaAPIError(
                f"push response was not successful: HTTP {response.status_code}: {response.text}",
                status_code=response.status_code
            )
