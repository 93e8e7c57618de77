"""
Parsing and building of Zendesk ticket and user URLs
"""
import re
from dataclasses import dataclass
from typing import Optional


_TICKET_URL = re.compile(
    r"^https://(?P<subdomain>[a-z0-9][a-z0-9-]*)\.zendesk\.com/"
    r"(?:api/v2/tickets/(?P<api_id>\d+)(?:\.json)?|agent/tickets/(?P<web_id>\d+))/?$",
    re.IGNORECASE,
)
_USER_URL = re.compile(
    r"^https://(?P<subdomain>[a-z0-9][a-z0-9-]*)\.zendesk\.com/"
    r"(?:api/v2/users/(?P<api_id>\d+)(?:\.json)?|agent/users/(?P<web_id>\d+))/?$",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class ZendeskTicketLink:
    subdomain: str
    ticket_id: int

    def __post_init__(self):
        # Subdomains are case-insensitive; stored links use the lower-case form
        object.__setattr__(self, "subdomain", self.subdomain.lower())

    @property
    def api_url(self) -> str:
        return f"https://{self.subdomain}.zendesk.com/api/v2/tickets/{self.ticket_id}.json"

    @property
    def web_url(self) -> str:
        return f"https://{self.subdomain}.zendesk.com/agent/tickets/{self.ticket_id}"

    @classmethod
    def parse(cls, url: Optional[str]) -> Optional["ZendeskTicketLink"]:
        """Parse an API or agent URL of a ticket, returning None if it isn't one"""
        if not url:
            return None
        match = _TICKET_URL.match(url.strip())
        if not match:
            return None
        ticket_id = match.group("api_id") or match.group("web_id")
        return cls(subdomain=match.group("subdomain"), ticket_id=int(ticket_id))


@dataclass(frozen=True)
class ZendeskUserLink:
    subdomain: str
    user_id: int

    def __post_init__(self):
        object.__setattr__(self, "subdomain", self.subdomain.lower())

    @property
    def api_url(self) -> str:
        return f"https://{self.subdomain}.zendesk.com/api/v2/users/{self.user_id}.json"

    @property
    def web_url(self) -> str:
        return f"https://{self.subdomain}.zendesk.com/agent/users/{self.user_id}"

    @classmethod
    def parse(cls, url: Optional[str]) -> Optional["ZendeskUserLink"]:
        if not url:
            return None
        match = _USER_URL.match(url.strip())
        if not match:
            return None
        user_id = match.group("api_id") or match.group("web_id")
        return cls(subdomain=match.group("subdomain"), user_id=int(user_id))
