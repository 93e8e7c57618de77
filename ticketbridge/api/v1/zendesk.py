from typing import Optional

from fastapi import APIRouter, Depends, Header
from sqlalchemy.orm import Session

from ticketbridge.database.connection import get_db
from ticketbridge.integrations.zendesk.models import ZendeskWebhookPayload
from ticketbridge.integrations.zendesk.webhook import ZendeskWebhookHandler
from ticketbridge.tasks.job_client import JobClient, CeleryJobClient

router = APIRouter(prefix="/zendesk", tags=["zendesk"])


def get_job_client() -> JobClient:
    return CeleryJobClient()


@router.post("/webhook/{organization_id}", status_code=202)
async def handle_zendesk_webhook(
    organization_id: int,
    payload: ZendeskWebhookPayload,
    authorization: Optional[str] = Header(None),
    db: Session = Depends(get_db),
    job_client: JobClient = Depends(get_job_client),
):
    """Receive a ticket update from the Zendesk trigger and queue its import"""
    handler = ZendeskWebhookHandler(db, job_client)
    return handler.handle_webhook(organization_id, payload, authorization)
