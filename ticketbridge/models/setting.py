from sqlalchemy import Column, Integer, String, Text, ForeignKey, UniqueConstraint
from .base import Base


class Setting(Base):
    """Scoped key/value pair, e.g. a sync cursor for one conversation"""

    __tablename__ = "settings"
    __table_args__ = (
        UniqueConstraint("scope", "name", name="uq_setting_scope_name"),
    )

    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)

    # "Organization:{id}" or "Conversation:{id}"
    scope = Column(String(255), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    value = Column(Text, nullable=False, default="")

    created_by_id = Column(Integer, ForeignKey("members.id"), nullable=True)
    updated_by_id = Column(Integer, ForeignKey("members.id"), nullable=True)

    def __repr__(self):
        return f"<Setting(scope='{self.scope}', name='{self.name}')>"
