from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Boolean, ForeignKey
from sqlalchemy.orm import relationship
import sqlalchemy as sa
from .base import Base
from .conversation import ConversationState


class TimelineEventType:
    MESSAGE_POSTED = "message_posted"
    STATE_CHANGED = "state_changed"
    EXTERNAL_LINK = "external_link"


class ConversationEvent(Base):
    """
    Append-only timeline entry of a conversation.

    Event kinds share one table and are told apart by ``event_type``.
    """

    __tablename__ = "conversation_events"

    conversation_id = Column(Integer, ForeignKey("conversations.id"), nullable=False, index=True)
    conversation = relationship("Conversation", back_populates="events")

    member_id = Column(Integer, ForeignKey("members.id"), nullable=False)
    member = relationship("Member")

    timestamp = Column(DateTime, default=datetime.utcnow, nullable=False)
    event_type = Column(String(50), nullable=False)

    __mapper_args__ = {
        "polymorphic_on": event_type,
        "polymorphic_identity": "event",
    }


class MessagePostedEvent(ConversationEvent):
    """A message was posted into the conversation's thread"""

    message_id = Column(String(100), nullable=True)
    message_url = Column(String(1024), nullable=True)

    # Provenance for messages imported from another system
    external_source = Column(String(50), nullable=True)
    external_message_id = Column(String(1024), nullable=True)
    external_author_id = Column(String(1024), nullable=True)
    external_author = Column(String(255), nullable=True)

    __mapper_args__ = {"polymorphic_identity": TimelineEventType.MESSAGE_POSTED}


class StateChangedEvent(ConversationEvent):
    """The conversation moved from one state to another"""

    old_state = Column(sa.Enum(ConversationState), nullable=True)
    new_state = Column(sa.Enum(ConversationState), nullable=True)
    implicit = Column(Boolean, default=False, nullable=True)

    __mapper_args__ = {"polymorphic_identity": TimelineEventType.STATE_CHANGED}


class ExternalLinkEvent(ConversationEvent):
    """The conversation was linked to an external record"""

    link_id = Column(Integer, ForeignKey("conversation_links.id"), nullable=True)
    link = relationship("ConversationLink")

    __mapper_args__ = {"polymorphic_identity": TimelineEventType.EXTERNAL_LINK}
