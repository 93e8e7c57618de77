from datetime import datetime

import pytest

from ticketbridge.database.repositories.conversation_repository import ConversationRepository
from ticketbridge.models.conversation import ConversationState
from ticketbridge.models.timeline import MessagePostedEvent, StateChangedEvent
from ticketbridge.services.conversation_events import (
    ConversationMessage,
    ConversationStateChanged,
    NewConversation,
    NewMessageInConversation,
)
from ticketbridge.services.conversation_service import ConversationService
from ticketbridge.services.conversation_state import MessageProvenance

from conftest import RecordingListener


@pytest.fixture
def listener():
    return RecordingListener()


@pytest.fixture
def service(db, publisher, listener):
    return ConversationService(db, publisher=publisher, listeners=[listener])


def message_from(member, room, organization, ts="1672660000.000200", when=datetime(2023, 1, 2, 11, 0)):
    return ConversationMessage(
        text="Any update?",
        organization=organization,
        from_member=member,
        room=room,
        utc_timestamp=when,
        message_id=ts,
        thread_id="1672650000.000100",
    )


class TestCreateConversation:
    def test_creates_and_publishes(self, db, service, publisher, room, organization, foreign_member):
        message = message_from(foreign_member, room, organization, ts="1672650000.000100")

        conversation = service.create_conversation(message, "Widgets broken")

        assert conversation.id is not None
        assert conversation.state == ConversationState.NEW
        assert [m.member_id for m in conversation.members] == [foreign_member.id]
        assert isinstance(publisher.published[0], NewConversation)
        timeline = ConversationRepository(db).get_timeline(conversation)
        assert len(timeline) == 1
        assert isinstance(timeline[0], MessagePostedEvent)


class TestUpdateForNewMessage:
    def test_home_member_reply_sets_waiting(self, db, service, listener, publisher, conversation, room, organization, home_member):
        message = message_from(home_member, room, organization)

        state_changed = service.update_for_new_message(conversation, message, MessagePostedEvent())

        assert conversation.state == ConversationState.WAITING
        assert state_changed.old_state == ConversationState.NEW
        assert state_changed.implicit is True
        assert conversation.last_message_posted_on == message.utc_timestamp
        assert listener.messages == [(conversation, message)]
        assert listener.state_changes == [state_changed]
        assert [type(e) for e in publisher.published] == [NewMessageInConversation, ConversationStateChanged]

        timeline = ConversationRepository(db).get_timeline(conversation)
        assert [type(e) for e in timeline] == [MessagePostedEvent, StateChangedEvent]
        assert timeline[0].message_url == (
            "https://homeorg.slack.com/archives/C0ROOM/p1672660000000200?thread_ts=1672650000.000100"
        )

    def test_supportee_message_on_new_conversation_does_not_change_state(self, service, listener, conversation, room, organization, guest):
        state_changed = service.update_for_new_message(conversation, message_from(guest, room, organization), MessagePostedEvent())

        assert state_changed is None
        assert conversation.state == ConversationState.NEW
        assert listener.state_changes == []
        assert len(listener.messages) == 1

    def test_supportee_reply_after_waiting_needs_response(self, service, conversation, room, organization, home_member, foreign_member):
        service.update_for_new_message(conversation, message_from(home_member, room, organization), MessagePostedEvent())
        service.update_for_new_message(
            conversation,
            message_from(foreign_member, room, organization, ts="1672660000.000300", when=datetime(2023, 1, 2, 11, 5)),
            MessagePostedEvent(),
        )

        assert conversation.state == ConversationState.NEEDS_RESPONSE

    def test_provenance_override(self, service, conversation, room, organization, bot):
        state_changed = service.update_for_new_message(
            conversation,
            message_from(bot, room, organization),
            MessagePostedEvent(),
            provenance=MessageProvenance.SUPPORTEE,
        )

        assert state_changed is None
        assert conversation.state == ConversationState.NEW

    def test_records_participation(self, db, service, conversation, room, organization, home_member):
        service.update_for_new_message(conversation, message_from(home_member, room, organization), MessagePostedEvent())

        assert {m.member_id for m in conversation.members} == {conversation.started_by_id, home_member.id}


class TestApplyTicketStatus:
    def test_solved_closes_with_actor(self, db, service, conversation, home_member):
        now = datetime(2023, 1, 3)

        state_changed = service.apply_ticket_status(conversation, "solved", home_member, now)

        assert conversation.state == ConversationState.CLOSED
        assert conversation.closed_on == now
        assert state_changed.actor == home_member
        assert state_changed.implicit is False
        assert state_changed.source == "Zendesk"

    def test_bot_actor_is_implicit(self, service, conversation, bot):
        state_changed = service.apply_ticket_status(conversation, "pending", bot, datetime(2023, 1, 3))

        assert state_changed.implicit is True
        assert conversation.state == ConversationState.WAITING

    def test_same_status_twice_records_one_event(self, db, service, conversation, bot):
        service.apply_ticket_status(conversation, "solved", bot, datetime(2023, 1, 3))
        second = service.apply_ticket_status(conversation, "solved", bot, datetime(2023, 1, 4))

        assert second is None
        events = [e for e in ConversationRepository(db).get_timeline(conversation) if isinstance(e, StateChangedEvent)]
        assert len(events) == 1


class TestChangeState:
    def test_no_op_when_unchanged(self, service, listener, conversation, home_member):
        assert service.change_state(conversation, ConversationState.NEW, home_member, datetime(2023, 1, 3)) is None
        assert listener.state_changes == []

    def test_listener_sees_explicit_change(self, service, listener, conversation, home_member):
        service.change_state(conversation, ConversationState.ARCHIVED, home_member, datetime(2023, 1, 3))

        assert listener.state_changes[0].new_state == ConversationState.ARCHIVED
        assert listener.state_changes[0].implicit is False
