from enum import Enum
from sqlalchemy import Column, Integer, String, Text, ForeignKey, UniqueConstraint, Index
from sqlalchemy.orm import relationship
import sqlalchemy as sa
from .base import Base


class LinkedIdentityType(str, Enum):
    ZENDESK = "zendesk"


class LinkedIdentity(Base):
    """Mapping from an internal member to a user in an external system"""

    __tablename__ = "linked_identities"
    __table_args__ = (
        UniqueConstraint("organization_id", "member_id", "type", name="uq_linked_identity"),
        Index("ix_linked_identities_external", "organization_id", "type", "external_id"),
    )

    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False)
    organization = relationship("Organization")

    member_id = Column(Integer, ForeignKey("members.id"), nullable=False)
    member = relationship("Member")

    type = Column(sa.Enum(LinkedIdentityType), nullable=False)
    external_id = Column(String(1024), nullable=True)  # e.g. Zendesk user API URL
    external_name = Column(String(255), nullable=True)

    # Serialized JSON metadata, shape depends on the identity type
    external_metadata = Column(Text, nullable=True)

    def __repr__(self):
        return f"<LinkedIdentity(type='{self.type}', external_id='{self.external_id}')>"
