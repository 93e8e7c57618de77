from typing import Optional
from sqlalchemy.orm import Session
from ticketbridge.models.organization import Organization
from ticketbridge.core.encryption import encrypt_data, decrypt_data
from .base_repository import BaseRepository


class OrganizationRepository(BaseRepository[Organization]):
    """Repository for Organization model"""

    def __init__(self, db: Session):
        super().__init__(Organization, db)

    def get_by_platform_id(self, platform_id: str) -> Optional[Organization]:
        return self.db.query(Organization).filter(Organization.platform_id == platform_id).first()

    def get_by_slug(self, slug: str) -> Optional[Organization]:
        return self.db.query(Organization).filter(Organization.slug == slug).first()

    def set_api_token(self, organization: Organization, api_token: str) -> Organization:
        """Store the chat platform token encrypted"""
        return self.update(organization, {"api_token": encrypt_data(api_token)})

    def get_api_token(self, organization: Organization) -> Optional[str]:
        if not organization.api_token:
            return None
        return decrypt_data(organization.api_token)
