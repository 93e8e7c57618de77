"""
Zendesk trigger webhook: queues a comment import for the updated ticket
"""
import hmac
import logging
from typing import Any, Dict, Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ticketbridge.core.config import get_settings
from ticketbridge.database.repositories.integration_repository import IntegrationRepository
from ticketbridge.database.repositories.organization_repository import OrganizationRepository
from ticketbridge.integrations.zendesk.importer import ZendeskToSlackImporter
from ticketbridge.integrations.zendesk.links import ZendeskTicketLink
from ticketbridge.integrations.zendesk.models import ZendeskWebhookPayload
from ticketbridge.tasks.job_client import JobClient, CeleryJobClient

logger = logging.getLogger(__name__)


def normalize_ticket_url(ticket_url: str) -> str:
    """Zendesk's {{ticket.url}} placeholder has no scheme"""
    ticket_url = ticket_url.strip()
    if not ticket_url.lower().startswith(("https://", "http://")):
        ticket_url = f"https://{ticket_url}"
    return ticket_url


class ZendeskWebhookHandler:
    """Handler for ticket update webhooks sent by our Zendesk trigger"""

    def __init__(self, db: Session, job_client: Optional[JobClient] = None):
        self.db = db
        self.settings = get_settings()
        self.organization_repository = OrganizationRepository(db)
        self.integration_repository = IntegrationRepository(db)
        self.job_client = job_client or CeleryJobClient()

    def verify_token(self, authorization: Optional[str], expected_token: Optional[str]) -> bool:
        """
        Check the bearer token Zendesk sends with the webhook

        Args:
            authorization: Authorization header value
            expected_token: Configured webhook token
        """
        if not expected_token:
            logger.warning("Zendesk webhook token not configured, rejecting webhook")
            return False
        if not authorization:
            return False

        scheme, _, token = authorization.partition(" ")
        if scheme.lower() != "bearer" or not token:
            return False
        return hmac.compare_digest(token.strip(), expected_token)

    def handle_webhook(
        self,
        organization_id: int,
        payload: ZendeskWebhookPayload,
        authorization: Optional[str] = None,
    ) -> Dict[str, Any]:
        organization = self.organization_repository.get(organization_id)
        if organization is None:
            raise HTTPException(status_code=404, detail="Organization not found")

        integration = self.integration_repository.get_zendesk(organization)
        expected_token = self.settings.zendesk_webhook_token
        if integration is not None:
            expected_token = self.integration_repository.get_zendesk_settings(integration).webhook_token or expected_token

        if not self.verify_token(authorization, expected_token):
            raise HTTPException(status_code=401, detail="Invalid webhook token")

        ticket_url = normalize_ticket_url(payload.ticket_url)
        ticket_link = ZendeskTicketLink.parse(ticket_url)
        if ticket_link is None:
            raise HTTPException(status_code=400, detail=f"Not a Zendesk ticket URL: {payload.ticket_url}")

        logger.info(
            f"Zendesk webhook for {ticket_link.web_url} (status {payload.ticket_status}) "
            f"from organization {organization_id}"
        )

        importer = ZendeskToSlackImporter(self.db, job_client=self.job_client)
        job_id = importer.queue_comment_import(
            organization,
            ticket_link,
            ticket_status=payload.ticket_status,
            zendesk_user_id=payload.current_user_id,
        )
        if job_id is None:
            return {"status": "ignored", "reason": "Organization disabled"}

        return {"status": "queued", "job_id": job_id, "ticket_url": ticket_link.api_url}
