"""
Import of Zendesk ticket comments into the linked Slack thread
"""
import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional

from slack_sdk.models.blocks import (
    Block,
    ContextBlock,
    ImageBlock,
    MarkdownTextObject,
    SectionBlock,
)
from sqlalchemy.orm import Session

from ticketbridge.cache.distributed_lock import DistributedLock, get_distributed_lock
from ticketbridge.core.config import get_settings
from ticketbridge.database.repositories.conversation_repository import ConversationRepository
from ticketbridge.database.repositories.integration_repository import IntegrationRepository
from ticketbridge.database.repositories.member_repository import MemberRepository
from ticketbridge.database.repositories.organization_repository import OrganizationRepository
from ticketbridge.database.repositories.settings_repository import SettingsRepository, SettingsScope
from ticketbridge.integrations.base import ChatPostError
from ticketbridge.integrations.slack.client import SlackClient, SlackClientFactory
from ticketbridge.integrations.zendesk.client import ZendeskClient, ZendeskClientFactory
from ticketbridge.integrations.zendesk.html_parser import ZendeskHtmlParser, escape_mrkdwn
from ticketbridge.integrations.zendesk.links import ZendeskTicketLink, ZendeskUserLink
from ticketbridge.integrations.zendesk.models import (
    ZendeskAttachment,
    ZendeskComment,
    ZendeskImportResult,
    ZENDESK_SOURCE,
    COMMENT_MARKER_SETTING,
    TICKET_STATUS_SETTING,
)
from ticketbridge.integrations.zendesk.resolver import ZendeskResolver, SlackMessageAuthor
from ticketbridge.models.conversation import Conversation, ConversationLinkType
from ticketbridge.models.member import Member
from ticketbridge.models.organization import Organization
from ticketbridge.models.timeline import MessagePostedEvent
from ticketbridge.services.conversation_events import ConversationMessage
from ticketbridge.services.conversation_service import ConversationService
from ticketbridge.services.conversation_state import MessageProvenance, classify_member
from ticketbridge.tasks.job_client import JobClient, CeleryJobClient, IMPORT_ZENDESK_COMMENTS_TASK

logger = logging.getLogger(__name__)

# Slack Block Kit limits
SUPPORTED_IMAGE_TYPES = {"image/png", "image/jpeg", "image/gif"}
IMAGE_URL_MAX_LENGTH = 3000
IMAGE_MAX_SIZE = 2 * 1024 * 1024
IMAGE_TEXT_MAX_LENGTH = 2000
SECTION_TEXT_MAX_LENGTH = 3000
SECTION_FIELD_MAX_LENGTH = 2000
SECTION_MAX_FIELDS = 10


def is_supported_image(attachment: ZendeskAttachment) -> bool:
    """Whether Slack can show the attachment inline in an image block"""
    return (
        attachment.content_type in SUPPORTED_IMAGE_TYPES
        and bool(attachment.content_url)
        and len(attachment.content_url) <= IMAGE_URL_MAX_LENGTH
        and attachment.size <= IMAGE_MAX_SIZE
    )


def _truncate(text: str, max_length: int) -> str:
    if len(text) <= max_length:
        return text
    return text[:max_length - 1] + "…"


def _to_utc_naive(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class ZendeskToSlackImporter:
    """
    Copies new public comments of a linked ticket into the conversation's
    thread.

    Progress is tracked per conversation in the ``CommentMarker`` setting: the
    zero-based position of the last comment handled. Runs for the same ticket
    are serialized with a distributed lock.
    """

    component_name = "ZendeskToSlackImporter"

    def __init__(
        self,
        db: Session,
        lock: Optional[DistributedLock] = None,
        resolver: Optional[ZendeskResolver] = None,
        html_parser: Optional[ZendeskHtmlParser] = None,
        zendesk_client_factory: Optional[ZendeskClientFactory] = None,
        slack_client_factory: Optional[SlackClientFactory] = None,
        conversation_service: Optional[ConversationService] = None,
        job_client: Optional[JobClient] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.settings = get_settings()
        self.organization_repository = OrganizationRepository(db)
        self.integration_repository = IntegrationRepository(db)
        self.conversation_repository = ConversationRepository(db)
        self.member_repository = MemberRepository(db)
        self.settings_repository = SettingsRepository(db)
        self.slack_client_factory = slack_client_factory or SlackClientFactory()
        self.resolver = resolver or ZendeskResolver(db, self.slack_client_factory)
        self.html_parser = html_parser or ZendeskHtmlParser()
        self.zendesk_client_factory = zendesk_client_factory or ZendeskClientFactory()
        self.conversation_service = conversation_service or ConversationService(db)
        self.job_client = job_client or CeleryJobClient()
        self.clock = clock
        self._lock = lock

    @property
    def lock(self) -> DistributedLock:
        if self._lock is None:
            self._lock = get_distributed_lock()
        return self._lock

    def queue_comment_import(
        self,
        organization: Organization,
        ticket_link: ZendeskTicketLink,
        ticket_status: Optional[str] = None,
        zendesk_user_id: Optional[int] = None,
    ) -> Optional[str]:
        """Enqueue an import job for the ticket; returns the job id"""
        if not organization.enabled:
            logger.info(f"Organization {organization.id} is disabled, ignoring update to {ticket_link.web_url}")
            return None

        return self.job_client.enqueue(
            IMPORT_ZENDESK_COMMENTS_TASK,
            organization_id=organization.id,
            ticket_url=ticket_link.api_url,
            ticket_status=ticket_status,
            zendesk_user_id=zendesk_user_id,
        )

    def import_comments(
        self,
        organization_id: int,
        ticket_url: str,
        ticket_status: Optional[str] = None,
        zendesk_user_id: Optional[int] = None,
    ) -> ZendeskImportResult:
        """
        Import new comments of a ticket, then apply its status

        Args:
            organization_id: Organization that owns the Zendesk integration
            ticket_url: Ticket API URL
            ticket_status: Ticket status reported by the webhook
            zendesk_user_id: Zendesk user who made the change, if known

        Raises:
            LockNotAcquiredError: Another import of this ticket is still running
        """
        # Webhooks may send any casing of the subdomain; lock on the stored form
        ticket_link = ZendeskTicketLink.parse(ticket_url)
        key = f"{self.component_name}:{organization_id}:{ticket_link.api_url if ticket_link else ticket_url}"
        with self.lock.acquire(key, timeout=self.settings.lock_timeout_seconds):
            return self._import_comments(organization_id, ticket_url, ticket_status, zendesk_user_id)

    def _import_comments(
        self,
        organization_id: int,
        ticket_url: str,
        ticket_status: Optional[str],
        zendesk_user_id: Optional[int],
    ) -> ZendeskImportResult:
        result = ZendeskImportResult(ticket_url=ticket_url)

        organization = self.organization_repository.get(organization_id)
        if organization is None:
            logger.warning(f"Organization {organization_id} not found, skipping import of {ticket_url}")
            return self._skip(result, "organization_not_found")
        if not organization.enabled:
            logger.info(f"Organization {organization_id} is disabled, skipping import of {ticket_url}")
            return self._skip(result, "organization_disabled")

        api_token = self.organization_repository.get_api_token(organization)
        if not api_token:
            logger.info(f"Organization {organization_id} has no Slack token, skipping import of {ticket_url}")
            return self._skip(result, "no_slack_token")

        integration = self.integration_repository.get_zendesk(organization)
        if integration is None or not integration.enabled:
            logger.info(f"Zendesk integration disabled for organization {organization_id}, skipping {ticket_url}")
            return self._skip(result, "integration_disabled")

        zendesk_settings = self.integration_repository.get_zendesk_settings(integration)
        if not zendesk_settings.has_api_credentials:
            logger.info(f"Zendesk integration of organization {organization_id} has no credentials, skipping {ticket_url}")
            return self._skip(result, "no_credentials")

        ticket_link = ZendeskTicketLink.parse(ticket_url)
        if ticket_link is None:
            logger.warning(f"Not a Zendesk ticket URL: {ticket_url}")
            return self._skip(result, "invalid_ticket_url")
        if ticket_link.subdomain != zendesk_settings.subdomain.lower():
            logger.warning(f"Ticket {ticket_url} is not in the configured Zendesk ({zendesk_settings.subdomain})")
            return self._skip(result, "subdomain_mismatch")

        link = self.conversation_repository.get_conversation_link(
            organization.id, ConversationLinkType.ZENDESK_TICKET, ticket_link.api_url
        )
        if link is None:
            logger.info(f"No conversation associated with ticket {ticket_url}")
            return self._skip(result, "no_conversation")

        conversation = link.conversation
        result.conversation_id = conversation.id

        zendesk = self.zendesk_client_factory.create_client(zendesk_settings)
        slack = self.slack_client_factory.create_client(api_token)
        bot = self.member_repository.ensure_bot_member(organization)

        self._import_new_comments(zendesk, slack, organization, conversation, ticket_link, bot, result)
        self._apply_ticket_status(zendesk, organization, conversation, ticket_status, zendesk_user_id, bot, result)

        logger.info(
            f"Imported {ticket_url} into conversation {conversation.id}: "
            f"{result.comments_posted} posted, {result.comments_skipped} skipped, cursor {result.cursor}"
        )
        return result

    def _import_new_comments(
        self,
        zendesk: ZendeskClient,
        slack: SlackClient,
        organization: Organization,
        conversation: Conversation,
        ticket_link: ZendeskTicketLink,
        bot: Member,
        result: ZendeskImportResult,
    ):
        scope = SettingsScope.conversation(conversation.id)
        last_processed = self._parse_marker(self.settings_repository.get_value(scope, COMMENT_MARKER_SETTING))

        # Zendesk page cursors can't be reused across runs, so walk from the start
        # and skip everything up to the saved position.
        position = -1
        after_cursor = None
        while True:
            page = zendesk.list_ticket_comments(ticket_link.ticket_id, self.settings.comment_page_size, after_cursor)

            advanced = False
            for comment in page.comments:
                position += 1
                if position <= last_processed:
                    continue

                result.comments_seen += 1
                if self._should_import(comment):
                    self._import_comment(zendesk, slack, organization, conversation, ticket_link, comment, bot)
                    result.comments_posted += 1
                else:
                    result.comments_skipped += 1
                last_processed = position
                advanced = True

            if advanced:
                self.settings_repository.set_value(
                    scope,
                    COMMENT_MARKER_SETTING,
                    str(last_processed),
                    organization_id=organization.id,
                    actor=bot,
                )

            if not page.has_more or not page.after_cursor:
                break
            after_cursor = page.after_cursor

        result.cursor = str(last_processed) if last_processed >= 0 else None

    def _parse_marker(self, marker: Optional[str]) -> int:
        if marker is None:
            return -1
        try:
            return int(marker)
        except ValueError:
            logger.warning(f"Ignoring unreadable comment marker '{marker}', importing from the start")
            return -1

    def _should_import(self, comment: ZendeskComment) -> bool:
        if not comment.public:
            logger.debug(f"Skipping private comment {comment.id}")
            return False

        # Comments we created carry our user agent, e.g. "TicketBridge/1.0.0"
        client_parts = (comment.client or "").split("/")
        if len(client_parts) == 2 and client_parts[0] == self.settings.product_name:
            logger.debug(f"Skipping comment {comment.id} posted by {comment.client}")
            return False
        return True

    def _import_comment(
        self,
        zendesk: ZendeskClient,
        slack: SlackClient,
        organization: Organization,
        conversation: Conversation,
        ticket_link: ZendeskTicketLink,
        comment: ZendeskComment,
        bot: Member,
    ):
        author = self.resolver.resolve_message_author(zendesk, organization, comment.author_id)

        message_ts = self._post_comment(slack, conversation, ticket_link, comment, author)

        message = ConversationMessage(
            text=comment.body,
            organization=organization,
            from_member=author.member or bot,
            room=conversation.room,
            utc_timestamp=_to_utc_naive(comment.created_at) or self.clock(),
            message_id=message_ts,
            thread_id=conversation.first_message_id,
            is_live=False,
        )
        posted_event = MessagePostedEvent(
            external_source=ZENDESK_SOURCE,
            external_message_id=ticket_link.api_url,
            external_author_id=ZendeskUserLink(ticket_link.subdomain, comment.author_id).api_url
            if comment.author_id >= 0 else None,
            external_author=author.display_name,
        )
        if comment.author_id < 0:
            provenance = MessageProvenance.BOT
        else:
            provenance = classify_member(author.member, conversation.room)

        self.conversation_service.update_for_new_message(conversation, message, posted_event, provenance)

    def _post_comment(
        self,
        slack: SlackClient,
        conversation: Conversation,
        ticket_link: ZendeskTicketLink,
        comment: ZendeskComment,
        author: SlackMessageAuthor,
    ) -> str:
        """Post the comment as a thread reply; returns the Slack ts"""
        if comment.html_body:
            mrkdwn = self.html_parser.parse_html(comment.html_body)
        else:
            mrkdwn = escape_mrkdwn(comment.body)

        username = author.display_name if author.member else f"{author.display_name} (from Zendesk)"
        post_kwargs = {
            "channel": conversation.room.platform_room_id,
            "text": comment.body,
            "thread_ts": conversation.first_message_id,
            "username": username,
            "icon_url": author.avatar_url,
        }

        with_attachments = self.build_blocks(mrkdwn, comment.attachments, ticket_link)
        try:
            return slack.post_message(blocks=[block.to_dict() for block in with_attachments], **post_kwargs)
        except ChatPostError as e:
            if not comment.attachments:
                raise
            logger.warning(f"Posting comment {comment.id} with attachments failed ({e.error}), retrying without them")

        without_attachments = self.build_blocks(mrkdwn, [], ticket_link)
        return slack.post_message(blocks=[block.to_dict() for block in without_attachments], **post_kwargs)

    def build_blocks(
        self,
        mrkdwn: str,
        attachments: List[ZendeskAttachment],
        ticket_link: ZendeskTicketLink,
    ) -> List[Block]:
        """Blocks for an imported comment: body, images, file links and a ticket link"""
        blocks: List[Block] = [
            SectionBlock(text=MarkdownTextObject(text=mrkdwn[start:start + SECTION_TEXT_MAX_LENGTH]))
            for start in range(0, len(mrkdwn), SECTION_TEXT_MAX_LENGTH)
            if mrkdwn[start:start + SECTION_TEXT_MAX_LENGTH].strip()
        ]

        files = []
        for attachment in attachments:
            if is_supported_image(attachment):
                name = attachment.file_name or "image"
                blocks.append(ImageBlock(
                    image_url=attachment.content_url,
                    alt_text=_truncate(name, IMAGE_TEXT_MAX_LENGTH),
                    title=_truncate(name, IMAGE_TEXT_MAX_LENGTH),
                ))
            else:
                files.append(attachment)

        fields = []
        for attachment in files:
            field = f"<{attachment.content_url}|{escape_mrkdwn(attachment.file_name or attachment.content_url)}>"
            if len(field) > SECTION_FIELD_MAX_LENGTH:
                logger.debug(f"Dropping attachment {attachment.id}, its link is too long for Slack")
                continue
            fields.append(MarkdownTextObject(text=field))

        for start in range(0, len(fields), SECTION_MAX_FIELDS):
            blocks.append(SectionBlock(
                text=MarkdownTextObject(text="*File Attachments*"),
                fields=fields[start:start + SECTION_MAX_FIELDS],
            ))

        blocks.append(ContextBlock(elements=[
            MarkdownTextObject(text=f"This comment was posted on the <{ticket_link.web_url}|linked Zendesk ticket>.")
        ]))
        return blocks

    def _apply_ticket_status(
        self,
        zendesk: ZendeskClient,
        organization: Organization,
        conversation: Conversation,
        ticket_status: Optional[str],
        zendesk_user_id: Optional[int],
        bot: Member,
        result: ZendeskImportResult,
    ):
        """Apply the ticket status once, after all comments, if it changed since we last saw it"""
        if not ticket_status:
            return
        status = ticket_status.strip().lower()

        scope = SettingsScope.conversation(conversation.id)
        known_status = self.settings_repository.get_value(scope, TICKET_STATUS_SETTING)
        if known_status is not None and known_status.lower() == status:
            return

        actor = bot
        if zendesk_user_id is not None:
            author = self.resolver.resolve_message_author(zendesk, organization, zendesk_user_id)
            actor = author.member or bot

        # Saved in the same commit as the state change
        self.settings_repository.set_value(
            scope,
            TICKET_STATUS_SETTING,
            status,
            organization_id=organization.id,
            actor=actor,
            commit=False,
        )
        self.conversation_service.apply_ticket_status(conversation, status, actor, self.clock(), source=ZENDESK_SOURCE)
        result.status_applied = status

    @staticmethod
    def _skip(result: ZendeskImportResult, reason: str) -> ZendeskImportResult:
        result.skipped_reason = reason
        return result
