"""
Enqueueing of background jobs
"""
import logging
from typing import Any, Optional

from ticketbridge.tasks.celery_app import celery_app

logger = logging.getLogger(__name__)

IMPORT_ZENDESK_COMMENTS_TASK = "ticketbridge.tasks.zendesk_tasks.import_zendesk_comments"
IMPORT_LINKED_THREAD_TASK = "ticketbridge.tasks.zendesk_tasks.import_linked_thread"


class JobClient:
    """Queues jobs by task name so callers don't import task modules"""

    def enqueue(self, task_name: str, **kwargs: Any) -> Optional[str]:
        raise NotImplementedError


class CeleryJobClient(JobClient):
    def enqueue(self, task_name: str, **kwargs: Any) -> Optional[str]:
        result = celery_app.send_task(task_name, kwargs=kwargs)
        logger.info(f"Queued {task_name} as {result.id}")
        return result.id
