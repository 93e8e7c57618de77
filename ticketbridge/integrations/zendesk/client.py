"""
Zendesk API client with authentication and rate limiting
"""
import requests
import base64
import time
import logging
from typing import Dict, List, Any, Optional
from urllib.parse import urljoin

from ticketbridge.integrations.base import (
    RateLimiter,
    ApiError,
    RateLimitError,
    AuthenticationError,
    IntegrationError,
)
from ticketbridge.integrations.zendesk.models import (
    ZendeskSettings,
    ZendeskTicket,
    ZendeskUser,
    ZendeskCommentPage,
)
from ticketbridge.core.config import get_settings

logger = logging.getLogger(__name__)


class ZendeskClient:
    """
    Zendesk API client with rate limiting (700 requests/minute)
    """

    def __init__(self, settings: ZendeskSettings, user_agent: Optional[str] = None):
        """
        Args:
            settings: Organization's Zendesk settings (decrypted)
            user_agent: Sent on every request; Zendesk records it on comments we create
        """
        self.settings = settings
        self.is_enabled = settings.has_api_credentials
        self.user_agent = user_agent or get_settings().user_agent

        # Zendesk rate limit: 700 requests per minute
        self.rate_limiter = RateLimiter(max_requests=700, time_window=60)

        self.session = requests.Session()
        if self.is_enabled:
            self.base_url = f"https://{settings.subdomain}.zendesk.com"
            self.api_url = f"{self.base_url}/api/v2"
            self.session.headers.update({
                "Authorization": self._create_auth_header(),
                "Content-Type": "application/json",
                "Accept": "application/json",
                "User-Agent": self.user_agent,
            })
        else:
            logger.warning("ZendeskClient created without API credentials")
            self.base_url = ""
            self.api_url = ""

    @property
    def subdomain(self) -> Optional[str]:
        return self.settings.subdomain

    def _create_auth_header(self) -> str:
        """Basic auth (email/token) when an email is configured, otherwise OAuth bearer"""
        if self.settings.email:
            auth_string = f"{self.settings.email}/token:{self.settings.api_token}"
            encoded_auth = base64.b64encode(auth_string.encode()).decode()
            return f"Basic {encoded_auth}"
        return f"Bearer {self.settings.api_token}"

    def _make_request(self, method: str, endpoint: str, **kwargs) -> requests.Response:
        """
        Make rate-limited request to Zendesk API.

        429 responses are retried after Retry-After; every other error
        status raises ApiError for the caller to handle.
        """
        if not self.is_enabled:
            raise AuthenticationError("Zendesk client not properly configured")

        # Check rate limit
        if not self.rate_limiter.can_make_request():
            wait_time = self.rate_limiter.get_wait_time()
            if wait_time > 0:
                logger.info(f"Rate limit reached, waiting {wait_time:.1f} seconds")
                time.sleep(wait_time)

        url = urljoin(self.api_url + "/", endpoint.lstrip("/"))

        kwargs.setdefault("timeout", 30)
        max_retries = kwargs.pop("max_retries", 3)

        for attempt in range(max_retries + 1):
            self.rate_limiter.record_request()
            try:
                response = self.session.request(method, url, **kwargs)
            except requests.exceptions.RequestException as e:
                raise IntegrationError(f"{method} {url} failed: {e}") from e

            if response.status_code == 429:
                retry_after = int(response.headers.get("Retry-After", 60))
                if attempt < max_retries:
                    logger.warning(f"Rate limited, retrying after {retry_after} seconds (attempt {attempt + 1})")
                    time.sleep(retry_after)
                    continue
                raise RateLimitError(429, response.text, method, url)

            if response.status_code >= 400:
                logger.warning(f"Zendesk API error {response.status_code} for {method} {url}: {response.text}")
                raise ApiError(response.status_code, response.text, method, url)

            return response

        raise IntegrationError("Unexpected error in request handling")

    def get_ticket(self, ticket_id: int) -> ZendeskTicket:
        """Get a specific ticket by ID"""
        response = self._make_request("GET", f"/tickets/{ticket_id}.json")
        return ZendeskTicket.model_validate(response.json()["ticket"])

    def create_ticket(self, ticket_data: Dict[str, Any]) -> ZendeskTicket:
        """Create a new ticket in Zendesk"""
        response = self._make_request("POST", "/tickets.json", json={"ticket": ticket_data})
        return ZendeskTicket.model_validate(response.json()["ticket"])

    def update_ticket(self, ticket_id: int, ticket_data: Dict[str, Any]) -> ZendeskTicket:
        """Update an existing ticket (only the given fields change)"""
        response = self._make_request("PUT", f"/tickets/{ticket_id}.json", json={"ticket": ticket_data})
        return ZendeskTicket.model_validate(response.json()["ticket"])

    def list_ticket_comments(
        self,
        ticket_id: int,
        page_size: int = 100,
        after_cursor: Optional[str] = None,
    ) -> ZendeskCommentPage:
        """
        Get one page of a ticket's comments, oldest first

        Args:
            ticket_id: Ticket ID
            page_size: Comments per page (max 100)
            after_cursor: Cursor from the previous page, None for the first page
        """
        params = {"page[size]": min(page_size, 100)}
        if after_cursor:
            params["page[after]"] = after_cursor

        response = self._make_request("GET", f"/tickets/{ticket_id}/comments.json", params=params)
        data = response.json()
        meta = data.get("meta") or {}
        return ZendeskCommentPage.model_validate({
            "comments": data.get("comments", []),
            "has_more": meta.get("has_more", False),
            "after_cursor": meta.get("after_cursor"),
        })

    def get_user(self, user_id: int) -> ZendeskUser:
        response = self._make_request("GET", f"/users/{user_id}.json")
        return ZendeskUser.model_validate(response.json()["user"])

    def search_users(self, query: str) -> List[ZendeskUser]:
        """Search users, e.g. with ``email:someone@example.com``. Matches may be fuzzy."""
        response = self._make_request("GET", "/users/search.json", params={"query": query})
        return [ZendeskUser.model_validate(user) for user in response.json().get("users", [])]

    def create_or_update_user(self, user_data: Dict[str, Any]) -> ZendeskUser:
        """Create a user, or update the one matching the email or external_id"""
        response = self._make_request("POST", "/users/create_or_update.json", json={"user": user_data})
        return ZendeskUser.model_validate(response.json()["user"])


class ZendeskClientFactory:
    """Builds API clients from an organization's settings"""

    def create_client(self, settings: ZendeskSettings) -> ZendeskClient:
        return ZendeskClient(settings)
