from datetime import datetime
from typing import List, Optional
from sqlalchemy.orm import Session
from ticketbridge.models.conversation import (
    Conversation,
    ConversationState,
    ConversationMember,
    ConversationLink,
    ConversationLinkType,
)
from ticketbridge.models.timeline import ConversationEvent, ExternalLinkEvent
from ticketbridge.models.member import Member
from ticketbridge.models.room import Room
from .base_repository import BaseRepository
import logging

logger = logging.getLogger(__name__)


class ConversationRepository(BaseRepository[Conversation]):
    """Repository for conversations, their links and their timelines"""

    def __init__(self, db: Session):
        super().__init__(Conversation, db)

    def create_conversation(
        self,
        room: Room,
        title: str,
        started_by: Member,
        first_message_id: str,
        created: datetime,
        state: ConversationState = ConversationState.NEW,
    ) -> Conversation:
        conversation = self.create(
            {
                "organization_id": room.organization_id,
                "room_id": room.id,
                "title": title,
                "started_by_id": started_by.id,
                "first_message_id": first_message_id,
                "created": created,
                "last_message_posted_on": created,
                "state": state,
            },
            commit=False,
        )
        self.add_member(conversation, started_by, created)
        self.commit()
        return conversation

    def add_member(self, conversation: Conversation, member: Member, timestamp: datetime) -> ConversationMember:
        """Record that a member posted in the conversation (no commit)"""
        participation = (
            self.db.query(ConversationMember)
            .filter(
                ConversationMember.conversation_id == conversation.id,
                ConversationMember.member_id == member.id,
            )
            .first()
        )
        if participation is None:
            participation = ConversationMember(
                conversation=conversation,
                member=member,
                joined_on=timestamp,
                last_posted_on=timestamp,
            )
            self.db.add(participation)
        elif participation.last_posted_on is None or participation.last_posted_on < timestamp:
            participation.last_posted_on = timestamp
        return participation

    def add_event(self, conversation: Conversation, event: ConversationEvent) -> ConversationEvent:
        """Append a timeline event (no commit)"""
        event.conversation = conversation
        self.db.add(event)
        self.db.flush()
        return event

    def get_timeline(self, conversation: Conversation) -> List[ConversationEvent]:
        return (
            self.db.query(ConversationEvent)
            .filter(ConversationEvent.conversation_id == conversation.id)
            .order_by(ConversationEvent.id)
            .all()
        )

    def get_link(self, conversation: Conversation, link_type: ConversationLinkType) -> Optional[ConversationLink]:
        return (
            self.db.query(ConversationLink)
            .filter(
                ConversationLink.conversation_id == conversation.id,
                ConversationLink.link_type == link_type,
            )
            .first()
        )

    def get_conversation_link(
        self,
        organization_id: int,
        link_type: ConversationLinkType,
        external_id: str,
    ) -> Optional[ConversationLink]:
        """Find the link (and thus the conversation) for an external record"""
        return (
            self.db.query(ConversationLink)
            .filter(
                ConversationLink.organization_id == organization_id,
                ConversationLink.link_type == link_type,
                ConversationLink.external_id == external_id,
            )
            .first()
        )

    def create_link(
        self,
        conversation: Conversation,
        link_type: ConversationLinkType,
        external_id: str,
        actor: Member,
        created: datetime,
    ) -> ConversationLink:
        """
        Link the conversation to an external record and note it on the timeline

        Raises:
            ValueError: The conversation already has a link of this type
        """
        existing = self.get_link(conversation, link_type)
        if existing is not None:
            raise ValueError(
                f"Conversation {conversation.id} is already linked to {existing.external_id}"
            )

        link = ConversationLink(
            conversation=conversation,
            organization_id=conversation.organization_id,
            link_type=link_type,
            external_id=external_id,
            created_by=actor,
            created=created,
            settings={},
        )
        self.db.add(link)
        self.db.flush()
        self.add_event(conversation, ExternalLinkEvent(member=actor, timestamp=created, link=link))
        self.commit()
        logger.info(f"Linked conversation {conversation.id} to {link_type.value} {external_id}")
        return link
