"""
Scoped key/value settings.

Sync cursors and cached external statuses live here so that jobs can resume
where a previous run stopped.
"""
from typing import Optional
from sqlalchemy.orm import Session
from ticketbridge.models.setting import Setting
from ticketbridge.models.member import Member
from .base_repository import BaseRepository
import logging

logger = logging.getLogger(__name__)


class SettingsScope:
    """Builders for setting scope strings"""

    @staticmethod
    def organization(organization_id: int) -> str:
        return f"Organization:{organization_id}"

    @staticmethod
    def conversation(conversation_id: int) -> str:
        return f"Conversation:{conversation_id}"


class SettingsRepository(BaseRepository[Setting]):
    """Repository for scoped settings"""

    def __init__(self, db: Session):
        super().__init__(Setting, db)

    def get_setting(self, scope: str, name: str) -> Optional[Setting]:
        return (
            self.db.query(Setting)
            .filter(Setting.scope == scope, Setting.name == name)
            .first()
        )

    def get_value(self, scope: str, name: str) -> Optional[str]:
        setting = self.get_setting(scope, name)
        return setting.value if setting else None

    def set_value(
        self,
        scope: str,
        name: str,
        value: str,
        organization_id: int,
        actor: Optional[Member] = None,
        commit: bool = True,
    ) -> Setting:
        """
        Create or overwrite a setting

        Args:
            scope: Scope string built with SettingsScope
            name: Setting name
            value: String value
            organization_id: Owning organization
            actor: Member making the change
            commit: Commit now, or let the caller commit with related changes
        """
        setting = self.get_setting(scope, name)
        actor_id = actor.id if actor else None
        if setting is None:
            return self.create(
                {
                    "scope": scope,
                    "name": name,
                    "value": value,
                    "organization_id": organization_id,
                    "created_by_id": actor_id,
                    "updated_by_id": actor_id,
                },
                commit=commit,
            )

        return self.update(setting, {"value": value, "updated_by_id": actor_id}, commit=commit)

    def remove(self, scope: str, name: str, commit: bool = True) -> bool:
        setting = self.get_setting(scope, name)
        if setting is None:
            return False
        self.delete(setting, commit=commit)
        return True
