import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from ticketbridge.cache.distributed_lock import LockNotAcquiredError, get_distributed_lock
from ticketbridge.cache.redis_client import get_redis_client
from ticketbridge.core.config import get_settings
from ticketbridge.database.connection import SessionLocal
from ticketbridge.integrations.base import ApiError, IntegrationError
from ticketbridge.integrations.zendesk.importer import ZendeskToSlackImporter
from ticketbridge.integrations.zendesk.listener import SlackToZendeskConversationListener
from ticketbridge.integrations.zendesk.thread_import import ZendeskThreadImporter
from ticketbridge.services.conversation_publisher import ConversationPublisher
from ticketbridge.services.conversation_service import ConversationService
from ticketbridge.tasks.celery_app import celery_app
from ticketbridge.tasks.job_client import IMPORT_ZENDESK_COMMENTS_TASK, IMPORT_LINKED_THREAD_TASK

logger = logging.getLogger(__name__)
settings = get_settings()

# Retrying these won't help until someone fixes the configuration
_PERMANENT_STATUS_CODES = {401, 403, 404}


def build_importer(db: Session) -> ZendeskToSlackImporter:
    """Importer wired with the Zendesk listener, so imported state changes reach the ticket"""
    listener = SlackToZendeskConversationListener(db)
    conversation_service = ConversationService(
        db,
        publisher=ConversationPublisher(get_redis_client()),
        listeners=[listener],
    )
    return ZendeskToSlackImporter(db, lock=get_distributed_lock(), conversation_service=conversation_service)


def _is_retryable(error: IntegrationError) -> bool:
    return not (isinstance(error, ApiError) and error.status_code in _PERMANENT_STATUS_CODES)


@celery_app.task(bind=True, name=IMPORT_ZENDESK_COMMENTS_TASK, max_retries=settings.import_max_retries)
def import_zendesk_comments(
    self,
    organization_id: int,
    ticket_url: str,
    ticket_status: Optional[str] = None,
    zendesk_user_id: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Import new comments of a Zendesk ticket into its linked thread.

    Returns:
        Dict describing what the import did
    """
    db = SessionLocal()
    try:
        result = build_importer(db).import_comments(
            organization_id,
            ticket_url,
            ticket_status=ticket_status,
            zendesk_user_id=zendesk_user_id,
        )
        return result.model_dump()

    except LockNotAcquiredError as exc:
        logger.info(f"Import of {ticket_url} already running, retrying in {settings.import_retry_countdown}s")
        raise self.retry(exc=exc, countdown=settings.import_retry_countdown)

    except IntegrationError as exc:
        if not _is_retryable(exc):
            logger.error(f"Import of {ticket_url} failed permanently: {exc}")
            raise
        countdown = settings.import_retry_countdown * (2 ** self.request.retries)
        logger.warning(f"Import of {ticket_url} failed: {exc}, retrying in {countdown}s")
        raise self.retry(exc=exc, countdown=countdown)

    finally:
        db.close()


@celery_app.task(bind=True, name=IMPORT_LINKED_THREAD_TASK, max_retries=settings.import_max_retries)
def import_linked_thread(self, link_id: int, setting_name: str) -> Dict[str, Any]:
    """
    Post an exported Slack thread to the Zendesk ticket it was just linked to.

    Returns:
        Dict with the number of comments created
    """
    db = SessionLocal()
    try:
        posted = ZendeskThreadImporter(db).import_linked_thread(link_id, setting_name)
        return {"link_id": link_id, "comments_posted": posted, "status": "success"}

    except IntegrationError as exc:
        if not _is_retryable(exc):
            logger.error(f"Thread import for link {link_id} failed permanently: {exc}")
            raise
        countdown = settings.import_retry_countdown * (2 ** self.request.retries)
        logger.warning(f"Thread import for link {link_id} failed: {exc}, retrying in {countdown}s")
        raise self.retry(exc=exc, countdown=countdown)

    finally:
        db.close()
