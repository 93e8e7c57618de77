from datetime import datetime

import pytest

from ticketbridge.database.repositories.conversation_repository import ConversationRepository
from ticketbridge.database.repositories.settings_repository import SettingsRepository, SettingsScope
from ticketbridge.integrations.base import ApiError, IntegrationError
from ticketbridge.integrations.slack.exporter import SlackThreadExporter
from ticketbridge.integrations.slack.models import SlackMessage
from ticketbridge.integrations.ticketing import TicketConfigurationError, TicketErrorReason
from ticketbridge.integrations.zendesk.linker import USER_CONFIGURATION_MESSAGE, ZendeskLinker
from ticketbridge.integrations.zendesk.models import ZendeskUser
from ticketbridge.integrations.zendesk.resolver import ZendeskResolver
from ticketbridge.models.conversation import ConversationLinkType
from ticketbridge.models.timeline import ExternalLinkEvent
from ticketbridge.tasks.job_client import IMPORT_LINKED_THREAD_TASK

THREAD_TS = "1672650000.000100"


@pytest.fixture
def linker(db, zendesk_client_factory, slack_client_factory, job_client):
    return ZendeskLinker(
        db,
        resolver=ZendeskResolver(db, slack_client_factory),
        client_factory=zendesk_client_factory,
        exporter=SlackThreadExporter(db, slack_client_factory),
        job_client=job_client,
        clock=lambda: datetime(2023, 1, 2, 12, 0),
    )


@pytest.fixture
def thread(slack_client):
    messages = [
        SlackMessage(ts=THREAD_TS, user="U0FOREIGN", text="Our widgets are broken", channel="C0ROOM"),
        SlackMessage(ts="1672650100.000200", user="U0HOME", text="Looking", channel="C0ROOM", thread_ts=THREAD_TS),
    ]
    slack_client.threads[("C0ROOM", THREAD_TS)] = messages
    return messages


class TestCreateTicketLink:
    def test_creates_ticket_and_link(self, db, linker, zendesk_client, job_client, integration, zendesk_settings, conversation, home_member, thread):
        zendesk_client.add_user(6, "Fran", "fran@customer.com")

        link = linker.create_ticket_link(
            integration,
            zendesk_settings,
            {"subject": "Broken widgets", "description": "Widgets *broken*", "tags": "widgets, urgent", "priority": "high"},
            conversation,
            home_member,
        )

        payload = zendesk_client.created_tickets[0]
        assert payload["subject"] == "Broken widgets"
        assert payload["requester_id"] == 6
        assert payload["tags"] == ["widgets", "urgent"]
        assert payload["priority"] == "high"
        assert "<strong>broken</strong>" in payload["comment"]["html_body"]

        ticket_id = zendesk_client._next_id
        assert link.link_type == ConversationLinkType.ZENDESK_TICKET
        assert link.external_id == f"https://acme.zendesk.com/api/v2/tickets/{ticket_id}.json"
        assert link.created_by == home_member

        timeline = ConversationRepository(db).get_timeline(conversation)
        assert isinstance(timeline[-1], ExternalLinkEvent)

        status = SettingsRepository(db).get_value(SettingsScope.conversation(conversation.id), "ZendeskTicketStatus")
        assert status == "new"

        setting_name = f"Slack.Thread.Export:{THREAD_TS}:C0ROOM"
        assert job_client.jobs == [(IMPORT_LINKED_THREAD_TASK, {"link_id": link.id, "setting_name": setting_name})]
        assert SettingsRepository(db).get_value(SettingsScope.organization(conversation.organization_id), setting_name)

    def test_requester_not_resolvable(self, db, linker, zendesk_client, integration, zendesk_settings, conversation, home_member):
        zendesk_client.create_or_update_user = lambda user_data: ZendeskUser(name=user_data["name"])

        with pytest.raises(TicketConfigurationError) as raised:
            linker.create_ticket_link(integration, zendesk_settings, {}, conversation, home_member)

        assert str(raised.value) == USER_CONFIGURATION_MESSAGE
        assert raised.value.reason == TicketErrorReason.USER_CONFIGURATION
        assert zendesk_client.created_tickets == []
        assert ConversationRepository(db).get_link(conversation, ConversationLinkType.ZENDESK_TICKET) is None

    def test_api_error_propagates_without_link(self, db, linker, zendesk_client, integration, zendesk_settings, conversation, home_member):
        zendesk_client.create_ticket_error = ApiError(422, '{"error": "RecordInvalid"}', "POST", "/tickets.json")

        with pytest.raises(ApiError):
            linker.create_ticket_link(integration, zendesk_settings, {}, conversation, home_member)

        assert ConversationRepository(db).get_link(conversation, ConversationLinkType.ZENDESK_TICKET) is None

    def test_export_failure_keeps_link(self, db, linker, slack_client, job_client, integration, zendesk_settings, conversation, home_member):
        def failing_export(channel, thread_ts):
            raise IntegrationError("Slack API error calling conversations_replies: channel_not_found")
        slack_client.get_thread_messages = failing_export

        link = linker.create_ticket_link(integration, zendesk_settings, {}, conversation, home_member)

        assert link.id is not None
        assert job_client.jobs == []

    def test_second_link_is_rejected(self, db, linker, zendesk_client, integration, zendesk_settings, conversation, home_member):
        link = linker.create_ticket_link(integration, zendesk_settings, {}, conversation, home_member)

        with pytest.raises(TicketConfigurationError) as raised:
            linker.create_ticket_link(integration, zendesk_settings, {}, conversation, home_member)

        ticket_id = zendesk_client._next_id
        assert raised.value.reason == TicketErrorReason.ALREADY_LINKED
        assert str(raised.value) == f"This conversation is already linked to https://acme.zendesk.com/agent/tickets/{ticket_id}."
        assert len(zendesk_client.created_tickets) == 1
        assert ConversationRepository(db).get_link(conversation, ConversationLinkType.ZENDESK_TICKET) == link

        error = ZendeskLinker.parse_exception(raised.value)
        assert error.reason == TicketErrorReason.ALREADY_LINKED
        assert error.user_error_info == str(raised.value)


class TestParseException:
    def test_configuration_error(self):
        error = ZendeskLinker.parse_exception(TicketConfigurationError(USER_CONFIGURATION_MESSAGE))

        assert error.reason == TicketErrorReason.USER_CONFIGURATION
        assert error.user_error_info == USER_CONFIGURATION_MESSAGE

    def test_unauthorized(self):
        error = ZendeskLinker.parse_exception(ApiError(401, '{"error": "Couldn\'t authenticate you"}'))

        assert error.reason == TicketErrorReason.UNAUTHORIZED

    def test_api_error(self):
        content = '{"error": "RecordInvalid", "details": {"requester": [{"description": "is suspended"}]}}'

        error = ZendeskLinker.parse_exception(ApiError(422, content))

        assert error.reason == TicketErrorReason.API_ERROR
        assert error.extra_info == content

    def test_unknown(self):
        error = ZendeskLinker.parse_exception(RuntimeError("network unreachable"))

        assert error.reason == TicketErrorReason.UNKNOWN
