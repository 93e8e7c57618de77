from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from .base import Base


class Member(Base):
    """A chat user as seen by one organization"""

    __tablename__ = "members"
    __table_args__ = (
        UniqueConstraint("organization_id", "platform_user_id", name="uq_member_platform_user"),
    )

    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    organization = relationship("Organization", back_populates="members")

    platform_user_id = Column(String(100), nullable=False)
    display_name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True, index=True)
    avatar_url = Column(String(1024), nullable=True)

    # Role flags
    is_guest = Column(Boolean, default=False, nullable=False)
    is_agent = Column(Boolean, default=False, nullable=False)
    is_bot = Column(Boolean, default=False, nullable=False)

    def is_in_organization(self, organization) -> bool:
        return self.organization_id == organization.id

    def __repr__(self):
        return f"<Member(display_name='{self.display_name}', platform_user_id='{self.platform_user_id}')>"
