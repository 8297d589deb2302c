"""Mailchimp Marketing API client for audience list members."""

import logging
from typing import List, Optional, Dict, Any

import requests
from pydantic import ValidationError
from requests.adapters import HTTPAdapter

from ...core.models import AudienceList, ListsResponse, MembersPage
from ...core.exceptions import ConfigurationError, MailchimpAPIError

logger = logging.getLogger(__name__)

# Only what the transformer needs, keeps the payload small
MEMBER_FIELDS = [
    "total_items",
    "members.id",
    "members.email_address",
    "members.full_name",
    "members.status",
    "members.merge_fields.FNAME",
    "members.merge_fields.LNAME",
]


class MailchimpClient:
    """Client for interacting with the Mailchimp Marketing API (v3)."""

    def __init__(self, api_key: str, base_url: str, timeout: float = 30, pool_size: int = 10):
        """Initialize the Mailchimp client.

        Args:
            api_key: Mailchimp API key
            base_url: Data-center specific base URL, e.g. https://us1.api.mailchimp.com/3.0
            timeout: Per-request timeout in seconds
            pool_size: Connection pool size, at least the number of concurrent page fetches
        """
        if not base_url:
            raise ConfigurationError("expecting the Mailchimp base url, but it was empty")
        if not api_key:
            raise ConfigurationError("expecting the Mailchimp api key, but it was empty")

        self.api_key = api_key
        # avoid the double slash between the base URL and the API path
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout

        self.session = requests.Session()
        adapter = HTTPAdapter(pool_connections=pool_size, pool_maxsize=pool_size)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

        # Mailchimp accepts any username with the API key as password
        self.session.auth = ("anystring", self.api_key)
        self.session.headers.update({
            'Content-Type': 'application/json',
            'User-Agent': 'Audience-Sync/1.0.0'
        })

    def _make_request(self, method: str, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Make a request to the Mailchimp API.

        Args:
            method: HTTP method
            endpoint: API endpoint
            params: Query parameters

        Returns:
            JSON response data

        Raises:
            MailchimpAPIError: If the request fails or the body can't be decoded
        """
        url = f"{self.base_url}{endpoint}"

        try:
            logger.debug(f"Making {method} request to {url} with params: {params}")
            response = self.session.request(method, url, params=params, timeout=self.timeout)
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            logger.error(f"Mailchimp API request failed: {e}")
            if getattr(e, 'response', None) is not None:
                try:
                    error_data = e.response.json()
                except ValueError:
                    raise MailchimpAPIError(
                        f"HTTP {e.response.status_code}: {e.response.text}",
                        status_code=e.response.status_code
                    ) from e
                raise MailchimpAPIError(f"API Error: {error_data}", status_code=e.response.status_code) from e
            raise MailchimpAPIError(f"Request failed: {str(e)}") from e

        try:
            return response.json()
        except ValueError as e:
            raise MailchimpAPIError(
                f"Unable to decode the response body: {e}",
                status_code=response.status_code
            ) from e

    def get_members_page(self, list_id: str, offset: int, count: int,
                         since_last_changed: str = "") -> MembersPage:
        """Get one page of members of an audience list.

        Args:
            list_id: Audience list ID
            offset: Number of members to skip
            count: Page size (Mailchimp allows up to 1000)
            since_last_changed: Only return members changed after this ISO 8601
                timestamp. Empty means every member.

        Returns:
            MembersPage with the list's total item count and this page's members
        """
        params: Dict[str, Any] = {
            "fields": ",".join(MEMBER_FIELDS),
            "offset": offset,
            "count": count,
        }
        if since_last_changed:
            params["since_last_changed"] = since_last_changed

        data = self._make_request('GET', f'/lists/{list_id}/members', params=params)
        try:
            return MembersPage.model_validate(data)
        except ValidationError as e:
            raise MailchimpAPIError(f"Unexpected members response for list {list_id}: {e}") from e

    def get_all_lists(self) -> List[AudienceList]:
        """Get every audience list associated with the API key."""
        data = self._make_request('GET', '/lists', params={
            "count": 1000,
            "include_total_contacts": "true",
        })
        try:
            response = ListsResponse.model_validate(data)
        except ValidationError as e:
            raise MailchimpAPIError(f"Unexpected lists response: {e}") from e

        logger.info(f"Retrieved {len(response.lists)} audience lists")
        return response.lists

    def test_connection(self) -> bool:
        """Test connection to the Mailchimp API."""
        try:
            self._make_request('GET', '/ping')
            return True
        except MailchimpAPIError as e:
            logger.error(f"Mailchimp connection test failed: {e}")
            return False
