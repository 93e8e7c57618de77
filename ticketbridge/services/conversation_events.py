"""
Messages and events flowing through the conversation tracking pipeline
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from ticketbridge.models.conversation import Conversation, ConversationState
from ticketbridge.models.member import Member
from ticketbridge.models.organization import Organization
from ticketbridge.models.room import Room
from ticketbridge.models.timeline import MessagePostedEvent, StateChangedEvent


def slack_message_url(organization: Organization, room: Room, message_id: str, thread_id: Optional[str] = None) -> str:
    """Permalink to a message; replies carry the thread they belong to"""
    domain = organization.domain or "slack.com"
    url = f"https://{domain}/archives/{room.platform_room_id}/p{message_id.replace('.', '')}"
    if thread_id and thread_id != message_id:
        url += f"?thread_ts={thread_id}"
    return url


@dataclass
class ConversationMessage:
    """A chat message within a tracked conversation"""
    text: str
    organization: Organization
    from_member: Member
    room: Room
    utc_timestamp: datetime
    message_id: str
    thread_id: Optional[str] = None
    # Slack file objects ({"id", "name", "permalink", ...})
    files: List[Dict[str, Any]] = field(default_factory=list)
    # False for historical or imported messages being replayed
    is_live: bool = True

    @property
    def message_url(self) -> str:
        return slack_message_url(self.organization, self.room, self.message_id, self.thread_id)


@dataclass
class NewConversation:
    conversation: Conversation
    message: ConversationMessage


@dataclass
class NewMessageInConversation:
    conversation: Conversation
    message: ConversationMessage
    event: MessagePostedEvent


@dataclass
class ConversationStateChanged:
    conversation: Conversation
    old_state: ConversationState
    new_state: ConversationState
    actor: Member
    event: StateChangedEvent
    implicit: bool = False
    # e.g. "Zendesk" when the change came from a ticket status update
    source: Optional[str] = None
