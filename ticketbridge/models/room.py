from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from .base import Base


class Room(Base):
    """A chat channel where conversations are tracked"""

    __tablename__ = "rooms"
    __table_args__ = (
        UniqueConstraint("organization_id", "platform_room_id", name="uq_room_platform_room"),
    )

    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    organization = relationship("Organization", back_populates="rooms")

    platform_room_id = Column(String(100), nullable=False)
    name = Column(String(255), nullable=True)

    # Community rooms treat every non-agent home member as a supportee
    is_community = Column(Boolean, default=False, nullable=False)

    conversations = relationship("Conversation", back_populates="room")

    def __repr__(self):
        return f"<Room(name='{self.name}', platform_room_id='{self.platform_room_id}')>"
