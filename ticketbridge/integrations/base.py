"""
Base integration classes and utilities
"""
import json
from typing import Any, Optional
from datetime import datetime
import logging

logger = logging.getLogger(__name__)


class RateLimiter:
    """Rate limiting utility for API calls"""

    def __init__(self, max_requests: int, time_window: int = 60):
        """
        Args:
            max_requests: Maximum requests allowed in time window
            time_window: Time window in seconds (default: 60 seconds)
        """
        self.max_requests = max_requests
        self.time_window = time_window
        self.requests = []

    def can_make_request(self) -> bool:
        """Check if we can make a request without exceeding rate limit"""
        now = datetime.utcnow()
        # Remove requests outside the time window
        cutoff = now.timestamp() - self.time_window
        self.requests = [req for req in self.requests if req > cutoff]

        return len(self.requests) < self.max_requests

    def record_request(self):
        """Record a request being made"""
        self.requests.append(datetime.utcnow().timestamp())

    def get_wait_time(self) -> float:
        """Get seconds to wait before making next request"""
        if self.can_make_request():
            return 0

        # Find oldest request in current window
        if self.requests:
            oldest_request = min(self.requests)
            wait_time = self.time_window - (datetime.utcnow().timestamp() - oldest_request)
            return max(0, wait_time)

        return 0


class IntegrationError(Exception):
    """Base exception for integration errors"""
    pass


class ApiError(IntegrationError):
    """An external API answered with an error status"""

    def __init__(
        self,
        status_code: int,
        content: Optional[str] = None,
        method: Optional[str] = None,
        url: Optional[str] = None,
    ):
        self.status_code = status_code
        self.content = content
        self.method = method
        self.url = url
        super().__init__(f"{method or 'Request'} {url or ''} failed with {status_code}: {content}")

    @property
    def error_body(self) -> Optional[Any]:
        """The response body parsed as JSON, if it is JSON"""
        if not self.content:
            return None
        try:
            return json.loads(self.content)
        except ValueError:
            return None

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404


class RateLimitError(ApiError):
    """Exception raised when rate limit is exceeded"""
    pass


class AuthenticationError(IntegrationError):
    """Exception raised when a client is used without valid credentials"""
    pass


class ChatPostError(IntegrationError):
    """Exception raised when a message could not be posted to chat"""

    def __init__(self, message: str, error: Optional[str] = None):
        super().__init__(message)
        self.error = error
