from .base import Base
from .organization import Organization
from .member import Member
from .room import Room
from .conversation import (
    Conversation,
    ConversationState,
    ConversationMember,
    ConversationLink,
    ConversationLinkType,
)
from .timeline import (
    ConversationEvent,
    MessagePostedEvent,
    StateChangedEvent,
    ExternalLinkEvent,
    TimelineEventType,
)
from .linked_identity import LinkedIdentity, LinkedIdentityType
from .setting import Setting
from .integration import Integration, IntegrationType

__all__ = [
    "Base",
    "Organization",
    "Member",
    "Room",
    "Conversation",
    "ConversationState",
    "ConversationMember",
    "ConversationLink",
    "ConversationLinkType",
    "ConversationEvent",
    "MessagePostedEvent",
    "StateChangedEvent",
    "ExternalLinkEvent",
    "TimelineEventType",
    "LinkedIdentity",
    "LinkedIdentityType",
    "Setting",
    "Integration",
    "IntegrationType",
]
