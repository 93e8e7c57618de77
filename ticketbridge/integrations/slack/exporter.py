"""
Snapshots of Slack threads, stored as settings so a background job can
import them later without paging the Slack API again
"""
import json
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ticketbridge.database.repositories.organization_repository import OrganizationRepository
from ticketbridge.database.repositories.settings_repository import SettingsRepository, SettingsScope
from ticketbridge.integrations.slack.client import SlackClientFactory
from ticketbridge.integrations.slack.models import SlackMessage
from ticketbridge.models.member import Member
from ticketbridge.models.organization import Organization
from ticketbridge.models.setting import Setting

logger = logging.getLogger(__name__)

THREAD_EXPORT_SETTING_PREFIX = "Slack.Thread.Export"


def thread_export_setting_name(thread_ts: str, channel: str) -> str:
    return f"{THREAD_EXPORT_SETTING_PREFIX}:{thread_ts}:{channel}"


class SlackThreadExporter:
    """Exports a thread's messages into an organization-scoped setting"""

    def __init__(self, db: Session, slack_client_factory: Optional[SlackClientFactory] = None):
        self.organization_repository = OrganizationRepository(db)
        self.settings_repository = SettingsRepository(db)
        self.slack_client_factory = slack_client_factory or SlackClientFactory()

    def export_thread(
        self,
        organization: Organization,
        channel: str,
        thread_ts: str,
        actor: Member,
    ) -> Optional[Setting]:
        """
        Store every message of the thread

        Returns:
            The setting holding the export, or None if the organization has no Slack token
        """
        api_token = self.organization_repository.get_api_token(organization)
        if not api_token:
            logger.info(f"Organization {organization.id} has no Slack token, not exporting thread {thread_ts}")
            return None

        messages = self.slack_client_factory.create_client(api_token).get_thread_messages(channel, thread_ts)
        logger.info(f"Exported {len(messages)} messages from thread {thread_ts} in {channel}")

        return self.settings_repository.set_value(
            SettingsScope.organization(organization.id),
            thread_export_setting_name(thread_ts, channel),
            json.dumps([message.to_dict() for message in messages]),
            organization_id=organization.id,
            actor=actor,
        )

    def load_export(self, organization: Organization, setting_name: str) -> Optional[List[SlackMessage]]:
        value = self.settings_repository.get_value(SettingsScope.organization(organization.id), setting_name)
        if value is None:
            return None
        return [SlackMessage(**message) for message in json.loads(value)]

    def remove_export(self, organization: Organization, setting_name: str) -> bool:
        return self.settings_repository.remove(SettingsScope.organization(organization.id), setting_name)
