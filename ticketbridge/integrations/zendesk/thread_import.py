"""
Replays an exported Slack thread onto a newly linked Zendesk ticket
"""
import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from ticketbridge.database.repositories.conversation_repository import ConversationRepository
from ticketbridge.database.repositories.member_repository import MemberRepository
from ticketbridge.integrations.slack.exporter import SlackThreadExporter
from ticketbridge.integrations.slack.models import SlackMessage
from ticketbridge.integrations.zendesk.listener import SlackToZendeskConversationListener
from ticketbridge.models.conversation import Conversation, ConversationLink
from ticketbridge.services.conversation_events import ConversationMessage

logger = logging.getLogger(__name__)


class ZendeskThreadImporter:
    def __init__(
        self,
        db: Session,
        listener: Optional[SlackToZendeskConversationListener] = None,
        exporter: Optional[SlackThreadExporter] = None,
    ):
        self.db = db
        self.conversation_repository = ConversationRepository(db)
        self.member_repository = MemberRepository(db)
        self.listener = listener or SlackToZendeskConversationListener(db)
        self.exporter = exporter or SlackThreadExporter(db)

    def import_linked_thread(self, link_id: int, setting_name: str) -> int:
        """
        Post the exported thread to the ticket behind ``link_id``, then drop the export

        Returns:
            Number of comments created
        """
        link = self.db.get(ConversationLink, link_id)
        if link is None:
            logger.warning(f"Conversation link {link_id} no longer exists, skipping thread import")
            return 0

        conversation = link.conversation
        organization = conversation.organization
        exported = self.exporter.load_export(organization, setting_name)
        if exported is None:
            logger.warning(f"Thread export {setting_name} not found for organization {organization.id}")
            return 0

        messages = self._to_conversation_messages(conversation, exported)
        posted = self.listener.import_thread(conversation, messages)
        self.exporter.remove_export(organization, setting_name)
        return posted

    def _to_conversation_messages(self, conversation: Conversation, exported: List[SlackMessage]) -> List[ConversationMessage]:
        messages = []
        for slack_message in exported:
            if not slack_message.user or not slack_message.ts:
                continue
            member = self.member_repository.find_for_platform_user(conversation.organization, slack_message.user)
            if member is None:
                logger.debug(f"Skipping message {slack_message.ts} from unknown user {slack_message.user}")
                continue

            messages.append(ConversationMessage(
                text=slack_message.text,
                organization=conversation.organization,
                from_member=member,
                room=conversation.room,
                utc_timestamp=datetime.utcfromtimestamp(float(slack_message.ts)),
                message_id=slack_message.ts,
                thread_id=slack_message.thread_ts or conversation.first_message_id,
                files=slack_message.files or [],
                is_live=False,
            ))
        return messages
