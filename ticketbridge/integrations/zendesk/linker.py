"""
Creation of Zendesk tickets from conversations
"""
import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from sqlalchemy.orm import Session

from ticketbridge.database.repositories.conversation_repository import ConversationRepository
from ticketbridge.database.repositories.member_repository import MemberRepository
from ticketbridge.database.repositories.settings_repository import SettingsRepository, SettingsScope
from ticketbridge.integrations.base import ApiError, IntegrationError
from ticketbridge.integrations.slack.exporter import SlackThreadExporter
from ticketbridge.integrations.ticketing import (
    TicketConfigurationError,
    TicketError,
    TicketErrorReason,
)
from ticketbridge.integrations.zendesk.client import ZendeskClientFactory
from ticketbridge.integrations.zendesk.formatter import ZendeskFormatter
from ticketbridge.integrations.zendesk.links import ZendeskTicketLink
from ticketbridge.integrations.zendesk.models import ZendeskSettings, TICKET_STATUS_SETTING
from ticketbridge.integrations.zendesk.resolver import ZendeskResolver
from ticketbridge.models.conversation import Conversation, ConversationLink, ConversationLinkType
from ticketbridge.models.integration import Integration
from ticketbridge.models.member import Member
from ticketbridge.tasks.job_client import JobClient, CeleryJobClient, IMPORT_LINKED_THREAD_TASK

logger = logging.getLogger(__name__)

USER_CONFIGURATION_MESSAGE = "I couldn't create the necessary Zendesk users for this conversation."


class ZendeskLinker:
    """Creates a Zendesk ticket for a conversation and links the two"""

    def __init__(
        self,
        db: Session,
        resolver: Optional[ZendeskResolver] = None,
        formatter: Optional[ZendeskFormatter] = None,
        client_factory: Optional[ZendeskClientFactory] = None,
        exporter: Optional[SlackThreadExporter] = None,
        job_client: Optional[JobClient] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.conversation_repository = ConversationRepository(db)
        self.settings_repository = SettingsRepository(db)
        self.resolver = resolver or ZendeskResolver(db)
        self.formatter = formatter or ZendeskFormatter(MemberRepository(db))
        self.client_factory = client_factory or ZendeskClientFactory()
        self.exporter = exporter or SlackThreadExporter(db)
        self.job_client = job_client or CeleryJobClient()
        self.clock = clock

    def create_ticket_link(
        self,
        integration: Integration,
        settings: ZendeskSettings,
        field_values: Dict[str, Any],
        conversation: Conversation,
        actor: Member,
    ) -> ConversationLink:
        """
        Create a ticket from the conversation and link it

        Args:
            integration: The organization's Zendesk integration
            settings: Its decrypted settings
            field_values: Ticket form values (subject, description, tags, type, priority, custom_field:{id})
            conversation: Conversation to create the ticket for
            actor: Member asking for the ticket

        Raises:
            TicketConfigurationError: The conversation is already linked, or no Zendesk requester could be resolved
            ApiError: Zendesk rejected a request (classify with parse_exception)
        """
        existing = self.conversation_repository.get_link(conversation, ConversationLinkType.ZENDESK_TICKET)
        if existing is not None:
            existing_ticket = ZendeskTicketLink.parse(existing.external_id)
            ticket_url = existing_ticket.web_url if existing_ticket else existing.external_id
            raise TicketConfigurationError(
                f"This conversation is already linked to {ticket_url}.",
                TicketErrorReason.ALREADY_LINKED,
            )

        client = self.client_factory.create_client(settings)
        zendesk_organization_id = _optional_int(field_values.get("organization_id"))

        requester = self.resolver.resolve_zendesk_identity(
            client,
            conversation.organization,
            conversation.started_by,
            zendesk_organization_id,
        )
        if requester is None or requester.id is None:
            raise TicketConfigurationError(USER_CONFIGURATION_MESSAGE, TicketErrorReason.USER_CONFIGURATION)

        subject = field_values.get("subject") or conversation.title
        ticket_payload = self.formatter.create_ticket(
            conversation,
            requester.id,
            subject,
            field_values,
            actor,
            zendesk_organization_id,
        )
        ticket = client.create_ticket(ticket_payload)
        ticket_link = ZendeskTicketLink(client.subdomain, ticket.id)
        logger.info(f"Created Zendesk ticket {ticket_link.web_url} for conversation {conversation.id} (integration {integration.id})")

        link = self.conversation_repository.create_link(
            conversation,
            ConversationLinkType.ZENDESK_TICKET,
            ticket_link.api_url,
            actor,
            self.clock(),
        )
        if ticket.status:
            self.settings_repository.set_value(
                SettingsScope.conversation(conversation.id),
                TICKET_STATUS_SETTING,
                ticket.status,
                organization_id=conversation.organization_id,
                actor=actor,
            )

        self._enqueue_thread_import(conversation, link, actor)
        return link

    def _enqueue_thread_import(self, conversation: Conversation, link: ConversationLink, actor: Member):
        """Export the thread now and import it into the ticket in the background"""
        try:
            setting = self.exporter.export_thread(
                conversation.organization,
                conversation.room.platform_room_id,
                conversation.first_message_id,
                actor,
            )
        except IntegrationError as e:
            # The ticket exists and is linked; only the history import is lost
            logger.error(f"Could not export thread of conversation {conversation.id} for import: {e}")
            return

        if setting is None:
            return
        self.job_client.enqueue(IMPORT_LINKED_THREAD_TASK, link_id=link.id, setting_name=setting.name)

    @staticmethod
    def parse_exception(exception: Exception) -> TicketError:
        """Classify a failure from create_ticket_link"""
        if isinstance(exception, TicketConfigurationError):
            return TicketError(exception.reason, user_error_info=str(exception))

        if isinstance(exception, ApiError):
            if exception.status_code == 401:
                return TicketError(TicketErrorReason.UNAUTHORIZED)
            return TicketError(
                TicketErrorReason.API_ERROR,
                user_error_info="Zendesk returned an error while creating the ticket.",
                extra_info=exception.content,
            )

        return TicketError(TicketErrorReason.UNKNOWN)


def _optional_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        logger.warning(f"Ignoring non-numeric Zendesk organization id: {value}")
        return None
