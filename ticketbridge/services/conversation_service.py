"""
Conversation tracking: applies state transitions, keeps the timeline and
notifies listeners and publishers
"""
import logging
from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from ticketbridge.database.repositories.conversation_repository import ConversationRepository
from ticketbridge.models.conversation import Conversation, ConversationState
from ticketbridge.models.member import Member
from ticketbridge.models.timeline import MessagePostedEvent, StateChangedEvent
from ticketbridge.services.conversation_events import (
    ConversationMessage,
    ConversationStateChanged,
    NewConversation,
    NewMessageInConversation,
)
from ticketbridge.services.conversation_listener import ConversationListener
from ticketbridge.services.conversation_publisher import ConversationPublisher
from ticketbridge.services.conversation_state import (
    MessageProvenance,
    classify_member,
    next_state_for_message,
    next_state_for_ticket_status,
)

logger = logging.getLogger(__name__)


class ConversationService:
    """Service for mutating tracked conversations"""

    def __init__(
        self,
        db: Session,
        publisher: Optional[ConversationPublisher] = None,
        listeners: Optional[Iterable[ConversationListener]] = None,
    ):
        self.db = db
        self.conversation_repository = ConversationRepository(db)
        self.publisher = publisher or ConversationPublisher()
        self.listeners = list(listeners or [])

    def create_conversation(self, message: ConversationMessage, title: str) -> Conversation:
        """Start tracking the thread that begins with ``message``"""
        conversation = self.conversation_repository.create_conversation(
            room=message.room,
            title=title,
            started_by=message.from_member,
            first_message_id=message.message_id,
            created=message.utc_timestamp,
        )
        self.conversation_repository.add_event(
            conversation,
            MessagePostedEvent(
                member=message.from_member,
                timestamp=message.utc_timestamp,
                message_id=message.message_id,
                message_url=message.message_url,
            ),
        )
        self.conversation_repository.commit()
        logger.info(f"Tracking new conversation {conversation.id} in room {message.room.id}")

        self.publisher.publish(NewConversation(conversation=conversation, message=message))
        return conversation

    def update_for_new_message(
        self,
        conversation: Conversation,
        message: ConversationMessage,
        posted_event: MessagePostedEvent,
        provenance: Optional[MessageProvenance] = None,
    ) -> Optional[ConversationStateChanged]:
        """
        Record a new message: participation, timeline entry and the state
        transition its provenance implies

        Args:
            conversation: Conversation the message belongs to
            message: The message
            posted_event: Timeline entry for the message (provenance fields filled in by the caller)
            provenance: Overrides the provenance derived from the message's author

        Returns:
            The resulting state change, if any
        """
        if provenance is None:
            provenance = classify_member(message.from_member, message.room)

        self.conversation_repository.add_member(conversation, message.from_member, message.utc_timestamp)

        posted_event.member = message.from_member
        posted_event.timestamp = message.utc_timestamp
        posted_event.message_id = posted_event.message_id or message.message_id
        posted_event.message_url = posted_event.message_url or message.message_url
        self.conversation_repository.add_event(conversation, posted_event)

        if conversation.last_message_posted_on is None or conversation.last_message_posted_on < message.utc_timestamp:
            conversation.last_message_posted_on = message.utc_timestamp

        new_state = next_state_for_message(conversation.state, provenance)
        state_changed = self._transition(
            conversation,
            new_state,
            message.from_member,
            message.utc_timestamp,
            implicit=True,
        )
        self.conversation_repository.commit()

        self.publisher.publish(
            NewMessageInConversation(conversation=conversation, message=message, event=posted_event)
        )
        for listener in self.listeners:
            listener.on_new_message(conversation, message)

        if state_changed:
            self._notify_state_changed(state_changed)
        return state_changed

    def change_state(
        self,
        conversation: Conversation,
        new_state: ConversationState,
        actor: Member,
        timestamp: datetime,
        implicit: bool = False,
        source: Optional[str] = None,
    ) -> Optional[ConversationStateChanged]:
        """
        Move the conversation to ``new_state``. Returns None (and records
        nothing) when it is already in that state.
        """
        state_changed = self._transition(conversation, new_state, actor, timestamp, implicit, source)
        self.conversation_repository.commit()
        if state_changed:
            self._notify_state_changed(state_changed)
        return state_changed

    def apply_ticket_status(
        self,
        conversation: Conversation,
        status: Optional[str],
        actor: Member,
        timestamp: datetime,
        source: str = "Zendesk",
    ) -> Optional[ConversationStateChanged]:
        """Apply the state implied by an external ticket status"""
        new_state = next_state_for_ticket_status(conversation.state, status)
        if new_state is None:
            # Still commit whatever the caller staged alongside the status
            self.conversation_repository.commit()
            return None
        return self.change_state(
            conversation,
            new_state,
            actor,
            timestamp,
            implicit=actor.is_bot,
            source=source,
        )

    def _transition(
        self,
        conversation: Conversation,
        new_state: ConversationState,
        actor: Member,
        timestamp: datetime,
        implicit: bool,
        source: Optional[str] = None,
    ) -> Optional[ConversationStateChanged]:
        old_state = conversation.state
        if new_state == old_state:
            return None

        event = StateChangedEvent(
            member=actor,
            timestamp=timestamp,
            old_state=old_state,
            new_state=new_state,
            implicit=implicit,
        )
        self.conversation_repository.add_event(conversation, event)

        conversation.state = new_state
        conversation.last_state_changed_on = timestamp
        if new_state == ConversationState.CLOSED:
            conversation.closed_on = timestamp

        logger.info(
            f"Conversation {conversation.id} moved from {old_state.value} to {new_state.value} "
            f"(actor {actor.id}{', via ' + source if source else ''})"
        )
        return ConversationStateChanged(
            conversation=conversation,
            old_state=old_state,
            new_state=new_state,
            actor=actor,
            event=event,
            implicit=implicit,
            source=source,
        )

    def _notify_state_changed(self, state_changed: ConversationStateChanged):
        self.publisher.publish(state_changed)
        for listener in self.listeners:
            listener.on_state_changed(state_changed)
