from typing import Optional, Tuple, Type, TypeVar
from pydantic import BaseModel, ValidationError
from sqlalchemy.orm import Session
from ticketbridge.models.linked_identity import LinkedIdentity, LinkedIdentityType
from ticketbridge.models.member import Member
from ticketbridge.models.organization import Organization
from .base_repository import BaseRepository
import logging

logger = logging.getLogger(__name__)

MetadataType = TypeVar("MetadataType", bound=BaseModel)


class LinkedIdentityRepository(BaseRepository[LinkedIdentity]):
    """Repository for identities members hold in external systems"""

    def __init__(self, db: Session):
        super().__init__(LinkedIdentity, db)

    def get_linked_identity(
        self,
        organization: Organization,
        member: Member,
        identity_type: LinkedIdentityType,
        metadata_type: Type[MetadataType],
    ) -> Tuple[Optional[LinkedIdentity], Optional[MetadataType]]:
        """
        Get a member's linked identity together with its parsed metadata

        Returns:
            (identity, metadata). Metadata is None when missing or unreadable.
        """
        identity = (
            self.db.query(LinkedIdentity)
            .filter(
                LinkedIdentity.organization_id == organization.id,
                LinkedIdentity.member_id == member.id,
                LinkedIdentity.type == identity_type,
            )
            .first()
        )
        if identity is None:
            return None, None
        return identity, self._parse_metadata(identity, metadata_type)

    def get_by_external_id(
        self,
        organization: Organization,
        identity_type: LinkedIdentityType,
        external_id: str,
    ) -> Optional[LinkedIdentity]:
        return (
            self.db.query(LinkedIdentity)
            .filter(
                LinkedIdentity.organization_id == organization.id,
                LinkedIdentity.type == identity_type,
                LinkedIdentity.external_id == external_id,
            )
            .first()
        )

    def link_identity(
        self,
        organization: Organization,
        member: Member,
        identity_type: LinkedIdentityType,
        external_id: str,
        external_name: Optional[str],
        metadata: Optional[BaseModel] = None,
    ) -> LinkedIdentity:
        """Create the member's identity of this type, or overwrite the existing one"""
        identity = (
            self.db.query(LinkedIdentity)
            .filter(
                LinkedIdentity.organization_id == organization.id,
                LinkedIdentity.member_id == member.id,
                LinkedIdentity.type == identity_type,
            )
            .first()
        )
        data = {
            "external_id": external_id,
            "external_name": external_name,
            "external_metadata": metadata.model_dump_json() if metadata is not None else None,
        }
        if identity is None:
            data.update({
                "organization_id": organization.id,
                "member_id": member.id,
                "type": identity_type,
            })
            identity = self.create(data)
            logger.info(f"Linked member {member.id} to {identity_type.value} identity {external_id}")
            return identity

        return self.update(identity, data)

    def update_metadata(
        self,
        identity: LinkedIdentity,
        external_name: Optional[str],
        metadata: BaseModel,
    ) -> LinkedIdentity:
        return self.update(identity, {
            "external_name": external_name,
            "external_metadata": metadata.model_dump_json(),
        })

    def _parse_metadata(self, identity: LinkedIdentity, metadata_type: Type[MetadataType]) -> Optional[MetadataType]:
        if not identity.external_metadata:
            return None
        try:
            return metadata_type.model_validate_json(identity.external_metadata)
        except ValidationError as e:
            logger.warning(f"Unreadable metadata on linked identity {identity.id}: {e}")
            return None
