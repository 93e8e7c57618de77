"""
Forwarding of chat activity to linked Zendesk tickets
"""
import logging
from typing import Iterable, Optional, Tuple

from sqlalchemy.orm import Session

from ticketbridge.database.repositories.conversation_repository import ConversationRepository
from ticketbridge.database.repositories.integration_repository import IntegrationRepository
from ticketbridge.database.repositories.member_repository import MemberRepository
from ticketbridge.database.repositories.settings_repository import SettingsRepository, SettingsScope
from ticketbridge.integrations.zendesk.client import ZendeskClient, ZendeskClientFactory
from ticketbridge.integrations.zendesk.formatter import ZendeskFormatter
from ticketbridge.integrations.zendesk.links import ZendeskTicketLink
from ticketbridge.integrations.zendesk.models import ZendeskTicketStatus, TICKET_STATUS_SETTING
from ticketbridge.integrations.zendesk.resolver import ZendeskResolver
from ticketbridge.models.conversation import Conversation, ConversationLinkType
from ticketbridge.models.member import Member
from ticketbridge.services.conversation_events import ConversationMessage, ConversationStateChanged
from ticketbridge.services.conversation_listener import ConversationListener
from ticketbridge.services.conversation_state import is_supportee, ticket_status_for_state

logger = logging.getLogger(__name__)


class SlackToZendeskConversationListener(ConversationListener):
    """
    Posts new chat replies as ticket comments and mirrors conversation state
    onto the ticket status. Zendesk failures propagate to the caller.
    """

    def __init__(
        self,
        db: Session,
        resolver: Optional[ZendeskResolver] = None,
        formatter: Optional[ZendeskFormatter] = None,
        client_factory: Optional[ZendeskClientFactory] = None,
    ):
        self.conversation_repository = ConversationRepository(db)
        self.integration_repository = IntegrationRepository(db)
        self.settings_repository = SettingsRepository(db)
        self.resolver = resolver or ZendeskResolver(db)
        self.formatter = formatter or ZendeskFormatter(MemberRepository(db))
        self.client_factory = client_factory or ZendeskClientFactory()

    def on_new_message(self, conversation: Conversation, message: ConversationMessage):
        if not message.is_live:
            logger.debug(f"Not forwarding replayed message {message.message_id}")
            return

        prepared = self._prepare(conversation)
        if prepared is None:
            return
        client, ticket_link = prepared

        ticket = client.get_ticket(ticket_link.ticket_id)
        if ticket.status == ZendeskTicketStatus.CLOSED.value:
            logger.info(f"Ticket {ticket_link.web_url} is closed, not adding a comment")
            return

        if self._post_comment(client, ticket_link, conversation, message):
            logger.info(f"Forwarded message {message.message_id} to {ticket_link.web_url}")

    def on_state_changed(self, state_changed: ConversationStateChanged):
        actor = state_changed.actor
        if actor.is_bot:
            # Our own imports change state; echoing those back would loop
            return

        conversation = state_changed.conversation
        prepared = self._prepare(conversation)
        if prepared is None:
            return
        client, ticket_link = prepared

        ticket = client.get_ticket(ticket_link.ticket_id)
        if ticket.status == ZendeskTicketStatus.CLOSED.value:
            logger.info(f"Ticket {ticket_link.web_url} is closed, not updating its status")
            return

        new_status = ticket_status_for_state(state_changed.new_state, is_supportee(actor, conversation.room))
        if new_status == ticket.status:
            return

        updated = client.update_ticket(ticket_link.ticket_id, {"status": new_status})
        logger.info(f"Set status of {ticket_link.web_url} to {new_status} after conversation {conversation.id} became {state_changed.new_state.value}")
        self._save_status(conversation, updated.status or new_status, actor)

    def import_thread(self, conversation: Conversation, messages: Iterable[ConversationMessage]) -> int:
        """
        Post historical thread messages to the linked ticket

        Returns:
            Number of messages posted
        """
        prepared = self._prepare(conversation)
        if prepared is None:
            return 0
        client, ticket_link = prepared

        posted = 0
        for message in messages:
            if message.from_member.is_bot:
                continue
            if self._post_comment(client, ticket_link, conversation, message):
                posted += 1

        logger.info(f"Imported {posted} thread messages into {ticket_link.web_url}")
        return posted

    def _post_comment(
        self,
        client: ZendeskClient,
        ticket_link: ZendeskTicketLink,
        conversation: Conversation,
        message: ConversationMessage,
    ) -> bool:
        user = self.resolver.resolve_zendesk_identity(client, conversation.organization, message.from_member)
        if user is None or user.id is None:
            logger.info(f"No Zendesk user for member {message.from_member.id}, not forwarding {message.message_id}")
            return False

        comment = self.formatter.create_comment(conversation, message, user.id)
        updated = client.update_ticket(ticket_link.ticket_id, {"comment": comment})
        if updated.status:
            self._save_status(conversation, updated.status, message.from_member)
        return True

    def _prepare(self, conversation: Conversation) -> Optional[Tuple[ZendeskClient, ZendeskTicketLink]]:
        """Client and ticket for a linked conversation, or None if we shouldn't sync"""
        link = self.conversation_repository.get_link(conversation, ConversationLinkType.ZENDESK_TICKET)
        if link is None:
            return None

        integration = self.integration_repository.get_zendesk(conversation.organization)
        if integration is None or not integration.enabled:
            logger.info(f"Zendesk integration disabled for organization {conversation.organization_id}")
            return None

        settings = self.integration_repository.get_zendesk_settings(integration)
        if not settings.has_api_credentials:
            logger.info(f"Zendesk integration of organization {conversation.organization_id} has no credentials")
            return None

        ticket_link = ZendeskTicketLink.parse(link.external_id)
        if ticket_link is None:
            logger.warning(f"Conversation {conversation.id} has an invalid Zendesk link: {link.external_id}")
            return None

        return self.client_factory.create_client(settings), ticket_link

    def _save_status(self, conversation: Conversation, status: str, actor: Member):
        self.settings_repository.set_value(
            SettingsScope.conversation(conversation.id),
            TICKET_STATUS_SETTING,
            status,
            organization_id=conversation.organization_id,
            actor=actor,
        )
