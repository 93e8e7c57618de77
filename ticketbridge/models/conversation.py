from datetime import datetime
from enum import Enum
from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    ForeignKey,
    JSON,
    UniqueConstraint,
    Index,
)
from sqlalchemy.orm import relationship
import sqlalchemy as sa
from .base import Base


class ConversationState(str, Enum):
    """Lifecycle state of a tracked conversation, ordered by urgency"""
    UNKNOWN = "unknown"
    NEW = "new"
    NEEDS_RESPONSE = "needs_response"
    WAITING = "waiting"
    OVERDUE = "overdue"
    CLOSED = "closed"
    SNOOZED = "snoozed"
    ARCHIVED = "archived"
    HIDDEN = "hidden"

    @property
    def is_side_state(self) -> bool:
        return self in (ConversationState.ARCHIVED, ConversationState.HIDDEN)


class ConversationLinkType(str, Enum):
    ZENDESK_TICKET = "zendesk_ticket"


class Conversation(Base):
    """A chat thread promoted into a tracked conversation"""

    __tablename__ = "conversations"
    __table_args__ = (
        UniqueConstraint("room_id", "first_message_id", name="uq_conversation_thread"),
    )

    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    organization = relationship("Organization")

    room_id = Column(Integer, ForeignKey("rooms.id"), nullable=False, index=True)
    room = relationship("Room", back_populates="conversations")

    # Platform message id (Slack ts) of the message that started the thread
    first_message_id = Column(String(100), nullable=False)
    title = Column(String(512), nullable=False, default="")

    state = Column(sa.Enum(ConversationState), default=ConversationState.NEW, nullable=False)

    started_by_id = Column(Integer, ForeignKey("members.id"), nullable=False)
    started_by = relationship("Member", foreign_keys=[started_by_id])

    created = Column(DateTime, default=datetime.utcnow, nullable=False)
    last_message_posted_on = Column(DateTime, default=datetime.utcnow, nullable=False)
    last_state_changed_on = Column(DateTime, nullable=True)
    closed_on = Column(DateTime, nullable=True)

    members = relationship(
        "ConversationMember",
        back_populates="conversation",
        cascade="all, delete-orphan",
    )
    links = relationship(
        "ConversationLink",
        back_populates="conversation",
        cascade="all, delete-orphan",
    )
    events = relationship(
        "ConversationEvent",
        back_populates="conversation",
        cascade="all, delete-orphan",
        order_by="ConversationEvent.id",
    )

    @property
    def first_message_url(self) -> str:
        """Permalink to the first message of the thread"""
        domain = self.organization.domain or "slack.com"
        return f"https://{domain}/archives/{self.room.platform_room_id}/p{self.first_message_id.replace('.', '')}"

    def __repr__(self):
        return f"<Conversation(id={self.id}, title='{self.title}', state='{self.state}')>"


class ConversationMember(Base):
    """Participation record of a member in a conversation"""

    __tablename__ = "conversation_members"
    __table_args__ = (
        UniqueConstraint("conversation_id", "member_id", name="uq_conversation_member"),
    )

    conversation_id = Column(Integer, ForeignKey("conversations.id"), nullable=False, index=True)
    conversation = relationship("Conversation", back_populates="members")

    member_id = Column(Integer, ForeignKey("members.id"), nullable=False)
    member = relationship("Member")

    joined_on = Column(DateTime, default=datetime.utcnow, nullable=False)
    last_posted_on = Column(DateTime, default=datetime.utcnow, nullable=False)


class ConversationLink(Base):
    """Link between a conversation and a record in an external system"""

    __tablename__ = "conversation_links"
    __table_args__ = (
        UniqueConstraint("conversation_id", "link_type", name="uq_conversation_link_type"),
        Index("ix_conversation_links_external", "organization_id", "link_type", "external_id"),
    )

    conversation_id = Column(Integer, ForeignKey("conversations.id"), nullable=False)
    conversation = relationship("Conversation", back_populates="links")

    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False)

    link_type = Column(sa.Enum(ConversationLinkType), nullable=False)
    external_id = Column(String(1024), nullable=False)  # e.g. Zendesk ticket API URL

    created_by_id = Column(Integer, ForeignKey("members.id"), nullable=False)
    created_by = relationship("Member")
    created = Column(DateTime, default=datetime.utcnow, nullable=False)

    settings = Column(JSON, nullable=True, default=dict)

    def __repr__(self):
        return f"<ConversationLink(type='{self.link_type}', external_id='{self.external_id}')>"
