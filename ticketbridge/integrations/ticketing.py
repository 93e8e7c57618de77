"""
Error taxonomy shared by ticketing integrations
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class TicketErrorReason(str, Enum):
    # A required user could not be resolved or created
    USER_CONFIGURATION = "UserConfiguration"
    # Credentials were rejected
    UNAUTHORIZED = "Unauthorized"
    # The external API returned an error response
    API_ERROR = "ApiError"
    # The conversation already has a ticket
    ALREADY_LINKED = "AlreadyLinked"
    UNKNOWN = "Unknown"


@dataclass(frozen=True)
class TicketError:
    """Classified failure of a ticketing operation"""
    reason: TicketErrorReason
    user_error_info: Optional[str] = None
    extra_info: Optional[str] = None


class TicketConfigurationError(Exception):
    """A ticket can't be created because of how the integration or users are set up"""

    def __init__(self, message: str, reason: TicketErrorReason = TicketErrorReason.USER_CONFIGURATION):
        super().__init__(message)
        self.reason = reason
