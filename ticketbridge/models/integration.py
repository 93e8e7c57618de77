from enum import Enum
from sqlalchemy import Column, Integer, String, Boolean, JSON, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
import sqlalchemy as sa
from .base import Base


class IntegrationType(str, Enum):
    ZENDESK = "zendesk"


class Integration(Base):
    """External ticketing system connected to an organization"""

    __tablename__ = "integrations"
    __table_args__ = (
        UniqueConstraint("organization_id", "type", name="uq_integration_type"),
    )

    type = Column(sa.Enum(IntegrationType), nullable=False)
    enabled = Column(Boolean, default=False, nullable=False)

    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False)
    organization = relationship("Organization", back_populates="integrations")

    # e.g. the Zendesk subdomain
    external_id = Column(String(255), nullable=True)

    # Configuration (sensitive keys encrypted by the repository)
    settings = Column(JSON, nullable=True, default=dict)

    def __repr__(self):
        return f"<Integration(type='{self.type}', enabled={self.enabled})>"
