"""
Zendesk integration module
"""

from .client import ZendeskClient, ZendeskClientFactory
from .links import ZendeskTicketLink, ZendeskUserLink
from .models import (
    ZendeskSettings,
    ZendeskTicket,
    ZendeskUser,
    ZendeskComment,
    ZendeskImportResult,
    ZendeskWebhookPayload,
)

__all__ = [
    "ZendeskClient",
    "ZendeskClientFactory",
    "ZendeskTicketLink",
    "ZendeskUserLink",
    "ZendeskSettings",
    "ZendeskTicket",
    "ZendeskUser",
    "ZendeskComment",
    "ZendeskImportResult",
    "ZendeskWebhookPayload",
]
