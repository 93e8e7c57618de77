"""
State transition rules for tracked conversations.

Pure functions: given the current state and what happened (who posted, or
which status the linked ticket reports) they return the next state. Applying
the result and recording it on the timeline is ConversationService's job.
"""
from enum import Enum
from typing import Optional

from ticketbridge.models.conversation import ConversationState
from ticketbridge.models.member import Member
from ticketbridge.models.room import Room


class MessageProvenance(str, Enum):
    """Who a message came from, from the home organization's point of view"""
    # Foreign organization, guest, community member, or an unresolvable external author
    SUPPORTEE = "supportee"
    # Home organization member answering
    HOME_MEMBER = "home_member"
    # The bot's own posts
    BOT = "bot"


# States that already say "someone needs to answer"
_AWAITING_RESPONSE = (
    ConversationState.NEW,
    ConversationState.NEEDS_RESPONSE,
    ConversationState.OVERDUE,
)


def is_supportee(member: Member, room: Room) -> bool:
    """
    Whether the member is on the receiving end of support in this room

    Foreign-organization members and guests always are. In community rooms
    every home member who isn't an agent is too.
    """
    if member.organization_id != room.organization_id:
        return True
    if member.is_guest:
        return True
    return room.is_community and not member.is_agent


def classify_member(member: Optional[Member], room: Room) -> MessageProvenance:
    if member is None:
        return MessageProvenance.SUPPORTEE
    if member.is_bot:
        return MessageProvenance.BOT
    return MessageProvenance.SUPPORTEE if is_supportee(member, room) else MessageProvenance.HOME_MEMBER


def next_state_for_message(current: ConversationState, provenance: MessageProvenance) -> ConversationState:
    """State after a new message with the given provenance"""
    if provenance == MessageProvenance.BOT or current == ConversationState.ARCHIVED:
        return current

    if provenance == MessageProvenance.SUPPORTEE:
        # Snoozed conversations only wake up when someone answers
        if current in _AWAITING_RESPONSE or current == ConversationState.SNOOZED:
            return current
        return ConversationState.NEEDS_RESPONSE

    return ConversationState.WAITING


def next_state_for_ticket_status(current: ConversationState, status: Optional[str]) -> Optional[ConversationState]:
    """
    State implied by an external ticket status, or None when the status
    calls for no change.

    Re-confirming a status never moves a conversation backward in urgency:
    an open ticket doesn't pull a Waiting or Overdue conversation back to
    NeedsResponse.
    """
    if not status:
        return None
    status = status.strip().lower()

    if current.is_side_state:
        return None

    if status in ("new", "open"):
        if current in (ConversationState.UNKNOWN, ConversationState.NEW, ConversationState.CLOSED):
            return ConversationState.NEEDS_RESPONSE
        return None

    if status in ("pending", "hold"):
        if current == ConversationState.WAITING:
            return None
        return ConversationState.WAITING

    if status in ("solved", "closed"):
        if current == ConversationState.CLOSED:
            return None
        return ConversationState.CLOSED

    return None


def ticket_status_for_state(state: ConversationState, actor_is_supportee: bool) -> str:
    """Zendesk status string that reflects a conversation state"""
    if state == ConversationState.WAITING:
        return "pending"
    if state == ConversationState.CLOSED:
        return "solved"
    if state.is_side_state:
        return "open" if actor_is_supportee else "pending"
    return "open"
