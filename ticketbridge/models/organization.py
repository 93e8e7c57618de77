from sqlalchemy import Column, String, Boolean, Text
from sqlalchemy.orm import relationship
from .base import Base


class Organization(Base):
    """An organization (chat workspace) that installed the bot"""

    __tablename__ = "organizations"

    name = Column(String(255), nullable=False)
    slug = Column(String(100), unique=True, index=True, nullable=False)

    # Chat platform identity, e.g. Slack team id "T0123" on platform type "Slack"
    platform_id = Column(String(100), index=True, nullable=False)
    platform_type = Column(String(50), default="Slack", nullable=False)
    domain = Column(String(255), nullable=True)  # e.g. acme.slack.com

    # Bot identity within the workspace
    bot_name = Column(String(100), default="TicketBridge", nullable=False)
    bot_user_id = Column(String(100), nullable=True)

    # Encrypted chat platform token (see core.encryption)
    api_token = Column(Text, nullable=True)

    enabled = Column(Boolean, default=True, nullable=False)

    # Relationships
    members = relationship("Member", back_populates="organization")
    rooms = relationship("Room", back_populates="organization")
    integrations = relationship("Integration", back_populates="organization")

    @property
    def has_api_token(self) -> bool:
        return bool(self.api_token)

    def __repr__(self):
        return f"<Organization(name='{self.name}', slug='{self.slug}')>"
