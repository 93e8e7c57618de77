import pytest
from sqlalchemy.orm import sessionmaker

from ticketbridge.integrations.base import ApiError, IntegrationError
from ticketbridge.integrations.zendesk.models import ZendeskImportResult
from ticketbridge.tasks import zendesk_tasks


class StubImporter:
    def __init__(self, error=None):
        self.error = error
        self.calls = []

    def import_comments(self, organization_id, ticket_url, ticket_status=None, zendesk_user_id=None):
        self.calls.append((organization_id, ticket_url, ticket_status, zendesk_user_id))
        if self.error is not None:
            raise self.error
        return ZendeskImportResult(ticket_url=ticket_url, comments_posted=2, cursor="5")


@pytest.fixture
def session_factory(engine, monkeypatch):
    monkeypatch.setattr(zendesk_tasks, "SessionLocal", sessionmaker(autoflush=False, bind=engine))


def test_import_task_returns_result(session_factory, monkeypatch):
    importer = StubImporter()
    monkeypatch.setattr(zendesk_tasks, "build_importer", lambda db: importer)

    result = zendesk_tasks.import_zendesk_comments.apply(kwargs={
        "organization_id": 1,
        "ticket_url": "https://acme.zendesk.com/api/v2/tickets/42.json",
        "ticket_status": "solved",
        "zendesk_user_id": 3,
    }).get()

    assert result["comments_posted"] == 2
    assert result["cursor"] == "5"
    assert importer.calls == [(1, "https://acme.zendesk.com/api/v2/tickets/42.json", "solved", 3)]


def test_import_task_does_not_retry_auth_failures(session_factory, monkeypatch):
    importer = StubImporter(ApiError(401, '{"error": "Couldn\'t authenticate you"}', "GET", "/tickets/42/comments.json"))
    monkeypatch.setattr(zendesk_tasks, "build_importer", lambda db: importer)

    result = zendesk_tasks.import_zendesk_comments.apply(kwargs={
        "organization_id": 1,
        "ticket_url": "https://acme.zendesk.com/api/v2/tickets/42.json",
    })

    assert result.failed()
    assert isinstance(result.result, ApiError)
    assert len(importer.calls) == 1


@pytest.mark.parametrize("error,retryable", [
    (ApiError(401, "", "GET", "/tickets/1.json"), False),
    (ApiError(403, "", "GET", "/tickets/1.json"), False),
    (ApiError(404, "", "GET", "/tickets/1.json"), False),
    (ApiError(422, "", "PUT", "/tickets/1.json"), True),
    (ApiError(500, "", "GET", "/tickets/1.json"), True),
    (IntegrationError("Connection reset"), True),
])
def test_is_retryable(error, retryable):
    assert zendesk_tasks._is_retryable(error) is retryable
