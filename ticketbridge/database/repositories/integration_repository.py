from typing import Optional, Dict, Any
from sqlalchemy.orm import Session
from ticketbridge.models.integration import Integration, IntegrationType
from ticketbridge.models.organization import Organization
from ticketbridge.core.encryption import encrypt_data, decrypt_data
from ticketbridge.integrations.zendesk.models import ZendeskSettings
from .base_repository import BaseRepository

SENSITIVE_KEYS = {"api_token", "token", "webhook_token", "secret", "password"}


class IntegrationRepository(BaseRepository[Integration]):
    """Repository for Integration model with encrypted configuration storage"""

    def __init__(self, db: Session):
        super().__init__(Integration, db)

    def get_integration(self, organization: Organization, integration_type: IntegrationType) -> Optional[Integration]:
        return (
            self.db.query(Integration)
            .filter(Integration.organization_id == organization.id, Integration.type == integration_type)
            .first()
        )

    def get_zendesk(self, organization: Organization) -> Optional[Integration]:
        return self.get_integration(organization, IntegrationType.ZENDESK)

    def create_zendesk_integration(
        self,
        organization: Organization,
        settings: ZendeskSettings,
        enabled: bool = True,
    ) -> Integration:
        """Create the organization's Zendesk integration with encrypted settings"""
        return self.create({
            "organization_id": organization.id,
            "type": IntegrationType.ZENDESK,
            "enabled": enabled,
            "external_id": settings.subdomain,
            "settings": self._encrypt_config(settings.model_dump(exclude_none=True)),
        })

    def save_zendesk_settings(self, integration: Integration, settings: ZendeskSettings) -> Integration:
        return self.update(integration, {
            "external_id": settings.subdomain,
            "settings": self._encrypt_config(settings.model_dump(exclude_none=True)),
        })

    def get_zendesk_settings(self, integration: Integration) -> ZendeskSettings:
        """Get decrypted typed settings for a Zendesk integration"""
        return ZendeskSettings.model_validate(self._decrypt_config(integration.settings or {}))

    def _encrypt_config(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """Encrypt sensitive configuration data"""
        return {
            key: encrypt_data(str(value)) if key.lower() in SENSITIVE_KEYS and value else value
            for key, value in config.items()
        }

    def _decrypt_config(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """Decrypt sensitive configuration data"""
        return {
            key: decrypt_data(value) if key.lower() in SENSITIVE_KEYS and value else value
            for key, value in config.items()
        }
