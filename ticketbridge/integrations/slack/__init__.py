"""
Slack integration module
"""

from .client import SlackClient, SlackClientFactory
from .models import SlackUser, SlackMessage

__all__ = [
    "SlackClient",
    "SlackClientFactory",
    "SlackUser",
    "SlackMessage",
]
